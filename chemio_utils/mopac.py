#======================================================================#
#|              Chemical file format conversion module                |#
#|                                                                    |#
#|   This is free software released under version 2 of the GNU GPL,   |#
#|   please use or redistribute as you see fit under the terms of     |#
#|   this license. (http://www.gnu.org/licenses/gpl-2.0.html)         |#
#|                                                                    |#
#|   This program is distributed in the hope that it will be useful,  |#
#|   but without any warranty; without even the implied warranty of   |#
#|   merchantability or fitness for a particular purpose.  See the    |#
#|   GNU General Public License for more details.                     |#
#|                                                                    |#
#=====================================================================|#

"""
MOPAC 7 output file reader.

MOPAC writes the Cartesian coordinates several times during an
optimization; the last table in the file is the optimized geometry and is
the only one kept.  It looks like this:

          CARTESIAN COORDINATES

    NO.       ATOM         X         Y         Z

     1         C        0.0000    0.0000    0.0000
     2         O        1.2261    0.0000    0.0000

The net atomic charge table that follows a converged SCF is read as well
and attached to the atoms as partial charges.
"""

import re
import logging

from .utils import (ReaderMode, tokenize, parse_float, isint, isfloat, is_blank,
                    MalformedRecordError, MissingSectionError)
from .molecule import MoleculeBuilder, MOLECULE
from .readers import ChemObjectReader

__all__ = ['Mopac7Reader', 'classify_line', 'SEEKING', 'IN_GEOMETRY', 'IN_CHARGES', 'DONE']

logger = logging.getLogger(__name__)

# Parser states
SEEKING = 'Seeking'
IN_GEOMETRY = 'InGeometrySection'
IN_CHARGES = 'InChargeSection'
DONE = 'Done'

# Line classes
GEOMETRY_HEADER = 'geometry_header'
CHARGE_HEADER = 'charge_header'
COLUMN_HEADER = 'column_header'
BLANK = 'blank'
DATA = 'data'
END = 'end'
OTHER = 'other'


def classify_line(line):
    """ Decide what kind of line this is, without knowing where we are in the file.

    A data line is one that starts like a table row: either an atom
    number, or a label followed by a number.  Rows with bad numbers further
    along still count as data so that the parser can complain about them.
    """
    if is_blank(line):
        return BLANK
    if '== MOPAC DONE ==' in line:
        return END
    if re.match(r'^\s*CARTESIAN COORDINATES\s*$', line):
        return GEOMETRY_HEADER
    if re.match(r'^\s*NET ATOMIC CHARGES', line):
        return CHARGE_HEADER
    sline = tokenize(line)
    if sline[0] in ('NO.', 'ATOM'):
        return COLUMN_HEADER
    if len(sline) >= 3 and (isint(sline[0]) or isfloat(sline[1])):
        return DATA
    return OTHER


class Mopac7Reader(ChemObjectReader):

    """ Reads the final geometry of a MOPAC 7 output file into an AtomContainer.

    The reader is a small state machine.  TRANSITIONS maps (state, line
    class) to the handler that consumes the line; each handler returns the
    next state.  Pairs not in the table leave the state alone and the line
    is ignored.

    Parameters
    ----------
    source : str, file or iterable of lines
        The output file.
    mode : ReaderMode
        Tolerance for malformed table rows.
    build_bonds : bool
        Infer bonds from distances once the geometry is read.
    fac : float
        Multiplicative factor to covalent radii criterion for bonding.
    """

    supported_targets = (MOLECULE,)

    TRANSITIONS = {
        (SEEKING, GEOMETRY_HEADER): '_begin_geometry',
        (SEEKING, CHARGE_HEADER): '_begin_charges',
        (SEEKING, END): '_done',

        (IN_GEOMETRY, DATA): '_geometry_row',
        (IN_GEOMETRY, BLANK): '_blank',
        (IN_GEOMETRY, COLUMN_HEADER): '_column_header',
        (IN_GEOMETRY, OTHER): '_end_block',
        (IN_GEOMETRY, GEOMETRY_HEADER): '_begin_geometry',
        (IN_GEOMETRY, CHARGE_HEADER): '_begin_charges',
        (IN_GEOMETRY, END): '_done',

        (IN_CHARGES, DATA): '_charge_row',
        (IN_CHARGES, BLANK): '_blank',
        (IN_CHARGES, COLUMN_HEADER): '_column_header',
        (IN_CHARGES, OTHER): '_end_block',
        (IN_CHARGES, GEOMETRY_HEADER): '_begin_geometry',
        (IN_CHARGES, CHARGE_HEADER): '_begin_charges',
        (IN_CHARGES, END): '_done',
    }

    def __init__(self, source=None, mode=ReaderMode.STRICT, build_bonds=False, fac=1.2):
        super(Mopac7Reader, self).__init__(source, mode=mode)
        self.build_bonds = build_bonds
        self.fac = fac
        self.reset()

    def reset(self):
        self.state = SEEKING
        self.geometry = None
        self.charges = None
        self.n_geometries = 0
        self.saw_geometry_header = False
        self._rows = []
        self._started = False

    #=====================================#
    #|          State handlers           |#
    #=====================================#

    def _commit(self):
        """ Store the block that is being read, if any. """
        if self._started and not self._rows:
            # Every row was skipped; whatever was read before still stands.
            logger.warning('No usable rows in the table ending before this point; keeping the previous one')
        elif self.state == IN_GEOMETRY and self._started:
            # Later geometries replace earlier ones, and invalidate their charges.
            self.geometry = self._rows
            self.charges = None
            self.n_geometries += 1
            logger.debug('Geometry block %i with %i atoms', self.n_geometries, len(self._rows))
        elif self.state == IN_CHARGES and self._started:
            self.charges = self._rows
            logger.debug('Charge block with %i atoms', len(self._rows))
        self._rows = []
        self._started = False

    def _begin_geometry(self, lineno, line):
        self._commit()
        self.saw_geometry_header = True
        return IN_GEOMETRY

    def _begin_charges(self, lineno, line):
        self._commit()
        return IN_CHARGES

    def _done(self, lineno, line):
        self._commit()
        return DONE

    def _end_block(self, lineno, line):
        self._commit()
        return SEEKING

    def _blank(self, lineno, line):
        # Blank lines separate the heading from the table; after the first row they end it.
        if self._started:
            return self._end_block(lineno, line)
        return self.state

    _column_header = _blank

    def _split_row(self, line, lineno, nval):
        """ Return (label, values) from "[index] label v1 v2 ..." using the first nval values. """
        sline = tokenize(line)
        if isint(sline[0]) and len(sline) > nval + 1:
            sline = sline[1:]
        if len(sline) < nval + 1:
            raise MalformedRecordError('expected a label and %i numbers' % nval, lineno=lineno, line=line)
        return sline[0], [parse_float(w, lineno=lineno) for w in sline[1:nval + 1]]

    def _geometry_row(self, lineno, line):
        self._started = True
        try:
            label, xyz = self._split_row(line, lineno, 3)
        except MalformedRecordError as err:
            self.anomaly(err)
        else:
            self._rows.append((label, xyz))
        return IN_GEOMETRY

    def _charge_row(self, lineno, line):
        self._started = True
        try:
            label, (charge,) = self._split_row(line, lineno, 1)
        except MalformedRecordError as err:
            self.anomaly(err)
        else:
            self._rows.append((label, charge))
        return IN_CHARGES

    #=====================================#
    #|            Main loop              |#
    #=====================================#

    def feed(self, lineno, line):
        """ Push one line through the state machine. """
        if self.state == DONE:
            return
        handler = self.TRANSITIONS.get((self.state, classify_line(line)))
        if handler is not None:
            self.state = getattr(self, handler)(lineno, line)

    def _parse(self, lines, target):
        self.reset()
        for lineno, line in enumerate(lines, 1):
            self.feed(lineno, line)
        # End of input closes whatever section we were in.
        if self.state != DONE:
            self._commit()
            self.state = DONE

        builder = MoleculeBuilder(build_bonds=self.build_bonds, fac=self.fac)
        if self.geometry is None:
            if self.saw_geometry_header:
                err = MissingSectionError('CARTESIAN COORDINATES section found but empty in the MOPAC output')
            else:
                err = MissingSectionError('No CARTESIAN COORDINATES section was found in the MOPAC output')
            if self.mode == ReaderMode.STRICT:
                raise err
            logger.warning('%s; returning an empty molecule', err)
            return builder.wrap(target)

        charges = self.charges
        if charges is not None and len(charges) != len(self.geometry):
            logger.warning('Found %i charges for %i atoms; charges are ignored', len(charges), len(self.geometry))
            charges = None
        for i, (label, xyz) in enumerate(self.geometry):
            builder.add_atom(label, xyz, partial_charge=(charges[i][1] if charges is not None else None))
        return builder.wrap(target)
