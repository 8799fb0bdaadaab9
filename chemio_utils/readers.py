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
import logging

from .utils import ReaderMode, UnsupportedTargetTypeError

__all__ = ['ChemObjectReader']

logger = logging.getLogger(__name__)


class ChemObjectReader(object):

    """ Common plumbing for the text readers.

    A reader is bound to one input source and one tolerance mode.  The
    source may be a file name, an open text stream or any iterable of
    lines; nothing is opened or read until parse() is called.

    Subclasses set supported_targets and implement _parse(lines, target).

    Fields
    ------
    mode : ReaderMode
        STRICT (default) raises on the first malformed record; RELAXED logs
        it, records it in skipped and carries on.
    skipped : list of ReaderError
        What was skipped during the last parse.
    """

    supported_targets = ()
    # Used both for files opened by name and for bytes sources.
    encoding = 'utf-8'

    def __init__(self, source=None, mode=ReaderMode.STRICT):
        self.source = source
        self.mode = mode
        self.skipped = []

    @property
    def mode(self):
        return self._mode

    @mode.setter
    def mode(self, value):
        if not isinstance(value, ReaderMode):
            value = ReaderMode(value)
        self._mode = value

    @property
    def n_skipped(self):
        return len(self.skipped)

    def accepts(self, target):
        """ Can this reader fill in an object of the given target type?  Never touches the input. """
        return target in self.supported_targets

    def anomaly(self, err):
        """ Raise the error in strict mode; log and remember it in relaxed mode. """
        if self.mode == ReaderMode.STRICT:
            raise err
        logger.warning('%s: skipping record: %s', type(self).__name__, err)
        self.skipped.append(err)

    def _lines(self):
        """ Yield input lines, opening the source first if it is a file name. """
        if self.source is None:
            return
        if isinstance(self.source, str):
            if not os.path.exists(self.source):
                raise IOError('Tried to read a file that does not exist: %s\n' % self.source)
            with open(self.source, encoding=self.encoding) as f:
                for line in f:
                    yield line
        elif isinstance(self.source, bytes):
            for line in self.source.decode(self.encoding).splitlines(True):
                yield line
        else:
            for line in self.source:
                yield line

    def parse(self, target=None):
        """ Read the source into a new object of the target type (default: the first supported one). """
        if target is None:
            target = self.supported_targets[0]
        if not self.accepts(target):
            raise UnsupportedTargetTypeError('%s cannot read into %r; supported: %s'
                                             % (type(self).__name__, target, ', '.join(self.supported_targets)))
        self.skipped = []
        return self._parse(self._lines(), target)

    def _parse(self, lines, target):
        raise NotImplementedError
