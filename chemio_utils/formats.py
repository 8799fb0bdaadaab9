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

import os

from .zmatrix import ZMatrixReader
from .mopac import Mopac7Reader

__all__ = ['Read_Tab', 'Funnel', 'reader_for', 'read_file']

#=========================================#
#|           File type tables            |#
#|    Feel free to edit these as more    |#
#|      readers are added                |#
#=========================================#
# The table of file readers
Read_Tab = {'zmatrix': ZMatrixReader,
            'mopac7': Mopac7Reader}

# A funnel dictionary that takes redundant file types
# and maps them down to a few.
Funnel = {'zmat': 'zmatrix',
          'zmt': 'zmatrix',
          'out': 'mopac7',
          'log': 'mopac7',
          'arc': 'mopac7',
          'mopac': 'mopac7'}
# Creates entries like 'zmatrix' : 'zmatrix' in the Funnel
for i in Read_Tab:
    Funnel[i] = i


def reader_for(ftype):
    """ Return the reader class for a file type or extension. """
    try:
        return Read_Tab[Funnel[ftype.lower()]]
    except KeyError:
        raise RuntimeError('Unknown file type %s; known types are %s\n'
                           % (ftype, ', '.join(sorted(Funnel))))


def read_file(fnm, ftype=None, target=None, **kwargs):
    """ Read a file with the reader picked from its type or, failing that, its extension.

    Parameters
    ----------
    fnm : str
        File name.
    ftype : str, optional
        File type, corresponding to an entry in Funnel.  Provide this if you
        have a nonstandard file extension.
    target : str, optional
        Target type tag; defaults to what the reader naturally produces.
    **kwargs
        Passed to the reader (mode, index_base, build_bonds, fac).
    """
    if ftype is None:
        # Try to determine from the file name using the extension.
        ftype = os.path.splitext(fnm)[1][1:]
    if not os.path.exists(fnm):
        raise IOError('Tried to read a file that does not exist: %s\n' % fnm)
    reader = reader_for(ftype)(fnm, **kwargs)
    return reader.parse(target)
