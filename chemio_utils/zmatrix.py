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
Z-matrix (internal coordinate) files and their conversion to Cartesian
coordinates.

A Z-matrix file looks like this; the leading atom count is optional and
reference indices start from one unless the reader is told otherwise:

    4
    C
    O  1 1.22
    H  1 1.10  2 121.0
    H  1 1.10  2 121.0  3 180.0

Bond lengths come out in whatever unit they went in (Angstrom, in
practice).  Angles are in degrees.
"""

import logging
import numpy as np
from numpy import sin, cos

from .utils import (ReaderMode, tokenize, parse_float, parse_int, is_blank, is_comment,
                    MalformedRecordError, InvalidReferenceError, MissingSectionError,
                    DegenerateGeometryError)
from .molecule import MoleculeBuilder, CHEM_FILE
from .readers import ChemObjectReader

__all__ = ['ZMatrixEntry', 'ZMatrix', 'parse_zmatrix', 'zmatrix_to_cartesian',
           'cartesian_to_internal', 'distance', 'angle', 'dihedral', 'ZMatrixReader']

logger = logging.getLogger(__name__)

radian = 180. / np.pi

# Frame vectors shorter than this can't be normalized.
DEGENERATE_TOL = 1e-8

# Lines starting with these are comments; '!' also starts an inline comment.
COMMENT_MARKERS = ('#', '!')


class ZMatrixEntry(object):

    """ One row of a Z-matrix.  References are 0-based positions of earlier rows. """

    def __init__(self, label, bond_ref=None, bond_length=None, angle_ref=None, angle=None,
                 dihedral_ref=None, dihedral=None, lineno=None):
        self.label = label
        self.bond_ref = bond_ref
        self.bond_length = bond_length
        self.angle_ref = angle_ref
        self.angle = angle
        self.dihedral_ref = dihedral_ref
        self.dihedral = dihedral
        self.lineno = lineno

    @property
    def refs(self):
        return [r for r in (self.bond_ref, self.angle_ref, self.dihedral_ref) if r is not None]

    def __repr__(self):
        out = [self.label]
        for r, v in ((self.bond_ref, self.bond_length), (self.angle_ref, self.angle),
                     (self.dihedral_ref, self.dihedral)):
            if r is not None:
                out += [str(r), '%.6f' % v]
        return 'ZMatrixEntry(%s)' % ' '.join(out)


class ZMatrix(object):

    """ An ordered list of ZMatrixEntry objects, plus an optional title. """

    def __init__(self, entries=None, title=None):
        self.entries = list(entries or [])
        self.title = title

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, i):
        return self.entries[i]

    def append(self, entry):
        self.entries.append(entry)

    @property
    def labels(self):
        return [e.label for e in self.entries]


#===========================#
#|   Geometry measurement  |#
#===========================#

def distance(x1, x2):
    return np.linalg.norm(np.asarray(x2) - np.asarray(x1))


def angle(x1, x2, x3):
    """ Angle x1-x2-x3 in degrees, with x2 at the vertex. """
    v1 = np.asarray(x1) - np.asarray(x2)
    v2 = np.asarray(x3) - np.asarray(x2)
    c = np.dot(v1, v2) / np.linalg.norm(v1) / np.linalg.norm(v2)
    return np.arccos(np.clip(c, -1.0, 1.0)) * radian


def dihedral(x1, x2, x3, x4):
    """ Dihedral angle x1-x2-x3-x4 in degrees, between -180 and 180. """
    v1 = np.asarray(x2) - np.asarray(x1)
    v2 = np.asarray(x3) - np.asarray(x2)
    v3 = np.asarray(x4) - np.asarray(x3)
    t1 = np.linalg.norm(v2) * np.dot(v1, np.cross(v2, v3))
    t2 = np.dot(np.cross(v1, v2), np.cross(v2, v3))
    return np.arctan2(t1, t2) * radian


#===========================#
#|   Z-matrix -> Cartesian  |#
#===========================#

def _unit(v, what, i):
    n = np.linalg.norm(v)
    if n < DEGENERATE_TOL:
        raise DegenerateGeometryError('Cannot place atom %i: %s' % (i + 1, what))
    return v / n


def _require(entry, i, *fields):
    for f in fields:
        if getattr(entry, f) is None:
            raise InvalidReferenceError('Z-matrix entry %i (%s) is missing its %s' % (i + 1, entry.label, f),
                                        lineno=entry.lineno)


def zmatrix_to_cartesian(zmatrix):
    """ Convert a Z-matrix to an (n, 3) array of Cartesian coordinates.

    The first atom goes to the origin, the second on the x axis and the
    third in the xy plane.  Every other atom is placed by the natural
    extension reference frame method: with A, B, C its bond, angle and
    dihedral reference atoms, build an orthonormal frame on the B->A and
    C->B directions, then step from A by the bond length at the requested
    angle and dihedral.

    A frame that can't be built (coincident atoms, or A, B, C collinear)
    raises DegenerateGeometryError regardless of the reader mode.

    Parameters
    ----------
    zmatrix : ZMatrix or list of ZMatrixEntry

    Returns
    -------
    np.ndarray
        One row per entry, in entry order.
    """
    xyz = np.zeros((len(zmatrix), 3))
    zhat = np.array([0.0, 0.0, 1.0])
    for i, e in enumerate(zmatrix):
        if i == 0:
            continue
        _require(e, i, 'bond_ref', 'bond_length')
        if any(r >= i for r in e.refs):
            raise InvalidReferenceError('Z-matrix entry %i refers forward to a later entry' % (i + 1), lineno=e.lineno)
        d = e.bond_length
        A = xyz[e.bond_ref]
        if i == 1:
            xyz[i] = A + d * np.array([1.0, 0.0, 0.0])
            continue
        _require(e, i, 'angle_ref', 'angle')
        theta = e.angle / radian
        B = xyz[e.angle_ref]
        if i == 2:
            u = _unit(B - A, 'bond and angle reference atoms coincide', i)
            v = _unit(np.cross(zhat, u), 'reference bond lies along the z axis', i)
            xyz[i] = A + d * (cos(theta) * u + sin(theta) * v)
            continue
        _require(e, i, 'dihedral_ref', 'dihedral')
        phi = e.dihedral / radian
        C = xyz[e.dihedral_ref]
        bc = _unit(A - B, 'bond and angle reference atoms coincide', i)
        n = _unit(np.cross(B - C, bc), 'reference atoms %i, %i, %i are collinear'
                  % (e.bond_ref + 1, e.angle_ref + 1, e.dihedral_ref + 1), i)
        m = np.cross(n, bc)
        xyz[i] = A + d * (-cos(theta) * bc + sin(theta) * cos(phi) * m + sin(theta) * sin(phi) * n)
    return xyz


def cartesian_to_internal(zmatrix, xyz):
    """ Measure each entry's defining distance, angle and dihedral from coordinates.

    Returns a new ZMatrix with the same labels and references; useful for
    checking a conversion or refreshing a Z-matrix after optimization.
    """
    out = ZMatrix(title=getattr(zmatrix, 'title', None))
    for i, e in enumerate(zmatrix):
        new = ZMatrixEntry(e.label, lineno=e.lineno)
        if e.bond_ref is not None:
            new.bond_ref = e.bond_ref
            new.bond_length = distance(xyz[i], xyz[e.bond_ref])
        if e.angle_ref is not None:
            new.angle_ref = e.angle_ref
            new.angle = angle(xyz[i], xyz[e.bond_ref], xyz[e.angle_ref])
        if e.dihedral_ref is not None:
            new.dihedral_ref = e.dihedral_ref
            new.dihedral = dihedral(xyz[i], xyz[e.bond_ref], xyz[e.angle_ref], xyz[e.dihedral_ref])
        out.append(new)
    return out


#===========================#
#|     Z-matrix parsing     |#
#===========================#

def _content_lines(lines):
    """ Yield (lineno, tokens) for lines that carry something. """
    for lineno, line in enumerate(lines, 1):
        if is_blank(line) or is_comment(line, COMMENT_MARKERS):
            continue
        sline = tokenize(line, comment='!')
        if sline:
            yield lineno, sline, line


def _parse_entry(i, sline, lineno, line, index_base, kept):
    """ Turn the tokens of entry i into a ZMatrixEntry with 0-based file positions as references. """
    nexpect = 2 * min(i, 3) + 1
    if len(sline) < nexpect:
        raise MalformedRecordError('Z-matrix entry %i needs %i fields, got %i' % (i + 1, nexpect, len(sline)),
                                   lineno=lineno, line=line)
    entry = ZMatrixEntry(sline[0], lineno=lineno)
    cols = [('bond_ref', 'bond_length'), ('angle_ref', 'angle'), ('dihedral_ref', 'dihedral')]
    for k, (rfield, vfield) in enumerate(cols[:min(i, 3)]):
        ref = parse_int(sline[1 + 2 * k], lineno=lineno) - index_base
        val = parse_float(sline[2 + 2 * k], lineno=lineno)
        if ref < 0 or ref >= i:
            raise InvalidReferenceError('Z-matrix entry %i: reference %s must point to one of the %i earlier entries'
                                        % (i + 1, sline[1 + 2 * k], i), lineno=lineno, line=line)
        if ref not in kept:
            raise InvalidReferenceError('Z-matrix entry %i: reference %s points to a skipped entry'
                                        % (i + 1, sline[1 + 2 * k]), lineno=lineno, line=line)
        setattr(entry, rfield, ref)
        setattr(entry, vfield, val)
    if len(set(entry.refs)) != len(entry.refs):
        raise InvalidReferenceError('Z-matrix entry %i uses the same reference atom twice' % (i + 1),
                                    lineno=lineno, line=line)
    return entry


def parse_zmatrix(lines, mode=ReaderMode.STRICT, index_base=1, anomaly=None):
    """ Parse Z-matrix text into a ZMatrix.

    Parameters
    ----------
    lines : iterable of str
        The file contents, line by line.
    mode : ReaderMode
        Only used when no anomaly callback is given.
    index_base : int
        What the first atom is called in reference columns (1 or 0).
    anomaly : callable, optional
        Called with each recoverable ReaderError.  It either raises or
        returns, in which case the offending entry is dropped.  By default
        the error is raised in strict mode and logged in relaxed mode.

    Returns
    -------
    ZMatrix
        The surviving entries, with references renumbered to positions in
        the returned ZMatrix.
    """
    if index_base not in (0, 1):
        raise ValueError('index_base must be 0 or 1, got %r' % (index_base,))
    if anomaly is None:
        def anomaly(err):
            if mode == ReaderMode.STRICT:
                raise err
            logger.warning('Skipping: %s', err)

    natoms = None
    kept = {}
    entries = []
    i = 0
    last_lineno = 0
    for lineno, sline, line in _content_lines(lines):
        last_lineno = lineno
        if natoms is None and i == 0 and not entries and len(sline) == 1 and sline[0].isdigit():
            natoms = int(sline[0])
            logger.debug('Z-matrix declares %i atoms', natoms)
            continue
        if natoms is not None and i >= natoms:
            logger.debug('Ignoring content after the %i declared Z-matrix entries (line %i)', natoms, lineno)
            break
        try:
            entry = _parse_entry(i, sline, lineno, line, index_base, kept)
        except MalformedRecordError as err:
            anomaly(err)
        else:
            kept[i] = len(entries)
            entries.append(entry)
        i += 1

    if natoms is not None and i < natoms:
        anomaly(MissingSectionError('Z-matrix declares %i atoms but only %i entries were found' % (natoms, i),
                                    lineno=last_lineno))

    # Renumber references to positions among the surviving entries.
    for e in entries:
        for rfield in ('bond_ref', 'angle_ref', 'dihedral_ref'):
            r = getattr(e, rfield)
            if r is not None:
                setattr(e, rfield, kept[r])
    return ZMatrix(entries)


class ZMatrixReader(ChemObjectReader):

    """ Reads a Z-matrix file into a ChemFile holding one molecule.

    Bonds are not implied by the reference graph; pass build_bonds=True to
    infer them from the converted coordinates.
    """

    supported_targets = (CHEM_FILE,)

    def __init__(self, source=None, mode=ReaderMode.STRICT, index_base=1, build_bonds=False, fac=1.2):
        super(ZMatrixReader, self).__init__(source, mode=mode)
        self.index_base = index_base
        self.build_bonds = build_bonds
        self.fac = fac
        self.zmatrix = None

    def _parse(self, lines, target):
        self.zmatrix = parse_zmatrix(lines, index_base=self.index_base, anomaly=self.anomaly)
        xyz = zmatrix_to_cartesian(self.zmatrix)
        builder = MoleculeBuilder(build_bonds=self.build_bonds, fac=self.fac)
        for e, x in zip(self.zmatrix, xyz):
            builder.add_atom(e.label, x)
        logger.debug('Read %i Z-matrix entries (%i skipped)', len(self.zmatrix), self.n_skipped)
        return builder.wrap(target)
