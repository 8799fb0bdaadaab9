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

import re
from enum import Enum

__all__ = ['ReaderMode', 'ReaderError', 'MalformedRecordError', 'NumericFormatError',
           'InvalidReferenceError', 'MissingSectionError', 'DegenerateGeometryError',
           'UnsupportedTargetTypeError', 'isint', 'isfloat', 'tokenize', 'parse_float',
           'parse_int', 'is_blank', 'is_comment']


class ReaderMode(Enum):
    """ How a reader reacts to a malformed record. """
    STRICT = 'strict'
    RELAXED = 'relaxed'


#=========================================#
#|        Reader error hierarchy         |#
#=========================================#

class ReaderError(RuntimeError):
    """ Base class of everything a reader raises on bad input.

    Parameters
    ----------
    msg : str
        What went wrong.
    lineno : int, optional
        1-based line number in the input, if known.
    line : str, optional
        Text of the offending line, if known.
    """

    def __init__(self, msg, lineno=None, line=None):
        self.msg = msg
        self.lineno = lineno
        self.line = line
        if lineno is not None:
            msg = 'line %i: %s' % (lineno, msg)
        if line is not None:
            msg = '%s (found: %r)' % (msg, line.rstrip('\n'))
        super(ReaderError, self).__init__(msg)


class MalformedRecordError(ReaderError):
    """ A single record (atom row, table line) cannot be understood. """


class NumericFormatError(MalformedRecordError):
    """ A token expected to be a number is not one. """


class InvalidReferenceError(MalformedRecordError):
    """ A Z-matrix row refers to an atom that is not a prior, retained row. """


class MissingSectionError(ReaderError):
    """ A section the format requires never showed up. """


class DegenerateGeometryError(ReaderError):
    """ Reference atoms do not define a local frame; always fatal. """


class UnsupportedTargetTypeError(ReaderError):
    """ The reader cannot populate the requested target type. """


#===========================#
#| Line tokenizing helpers |#
#===========================#

def isint(word):
    """ONLY matches integers! If you have a decimal point? None shall pass!"""
    return re.match(r'^[-+]?[0-9]+$', word)


def isfloat(word):
    """Matches ANY number; it can be a decimal, scientific notation, integer, or what have you"""
    return re.match(r'^[-+]?([0-9]+\.?[0-9]*|\.[0-9]+)([eEdD][-+]?[0-9]+)?$', word)


def tokenize(line, comment=None):
    """ Split a line on whitespace, dropping anything after the comment character if one is given. """
    if comment is not None:
        line = line.split(comment)[0]
    return line.expandtabs().split()


def parse_float(token, lineno=None):
    """ Convert a token to float using the decimal point only.

    Fortran double precision exponents (1.0D-03) are accepted since
    semiempirical programs print them.  Grouping separators, comma
    decimals, nan and inf are rejected.
    """
    if not isfloat(token):
        raise NumericFormatError('expected a floating point number', lineno=lineno, line=token)
    return float(token.replace('D', 'E').replace('d', 'e'))


def parse_int(token, lineno=None):
    """ Convert a token to int; the token must be an optionally signed run of digits. """
    if not isint(token):
        raise NumericFormatError('expected an integer', lineno=lineno, line=token)
    return int(token)


def is_blank(line):
    return len(line.strip()) == 0


def is_comment(line, markers=('#',)):
    """ True if the first non-blank character of the line is one of the comment markers. """
    stripped = line.strip()
    return len(stripped) > 0 and stripped[0] in markers
