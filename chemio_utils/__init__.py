from .utils import (ReaderMode, ReaderError, MalformedRecordError, NumericFormatError,
                    InvalidReferenceError, MissingSectionError, DegenerateGeometryError,
                    UnsupportedTargetTypeError)
from .molecule import (Atom, Bond, AtomContainer, ChemModel, ChemSequence, ChemFile,
                       MoleculeBuilder, build_bonds, MOLECULE, CHEM_MODEL, CHEM_SEQUENCE, CHEM_FILE)
from .zmatrix import ZMatrix, ZMatrixEntry, ZMatrixReader, parse_zmatrix, zmatrix_to_cartesian
from .mopac import Mopac7Reader
from .formats import read_file, reader_for
