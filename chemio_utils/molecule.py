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

#=========================================#
#|  The document hierarchy filled in by  |#
#|  the readers, from the outside in:    |#
#|                                       |#
#|  ChemFile > ChemSequence > ChemModel  |#
#|    > AtomContainer > Atom, Bond       |#
#|                                       |#
#|  Parents own their children; nothing  |#
#|  points back up the tree.             |#
#=========================================#

import re
import logging
import itertools
import numpy as np

__all__ = ['Atom', 'Bond', 'AtomContainer', 'ChemModel', 'ChemSequence', 'ChemFile',
           'MoleculeBuilder', 'build_bonds', 'atomic_number', 'Elements', 'Radii',
           'MOLECULE', 'CHEM_MODEL', 'CHEM_SEQUENCE', 'CHEM_FILE', 'TARGET_TYPES']

logger = logging.getLogger(__name__)

# Target type tags understood by Reader.accepts() and Reader.parse().
MOLECULE = 'AtomContainer'
CHEM_MODEL = 'ChemModel'
CHEM_SEQUENCE = 'ChemSequence'
CHEM_FILE = 'ChemFile'
TARGET_TYPES = (MOLECULE, CHEM_MODEL, CHEM_SEQUENCE, CHEM_FILE)

# Covalent radii from Cordero et al. 'Covalent radii revisited' Dalton
# Transactions 2008, 2832-2838.
Radii = [0.31, 0.28,  # H and He
         1.28, 0.96, 0.84, 0.76, 0.71, 0.66, 0.57, 0.58,  # First row elements
         1.66, 1.41, 1.21, 1.11, 1.07, 1.05, 1.02, 1.06,  # Second row elements
         2.03, 1.76, 1.70, 1.60, 1.53, 1.39, 1.61, 1.52, 1.50,
         # Third row elements, K through Kr
         1.24, 1.32, 1.22, 1.22, 1.20, 1.19, 1.20, 1.20, 1.16,
         2.20, 1.95, 1.90, 1.75, 1.64, 1.54, 1.47, 1.46, 1.42,
         # Fourth row elements, Rb through Xe
         1.39, 1.45, 1.44, 1.42, 1.39, 1.39, 1.38, 1.39, 1.40,
         2.44, 2.15, 2.07, 2.04, 2.03, 2.01, 1.99, 1.98,
         # Fifth row elements, s and f blocks
         1.98, 1.96, 1.94, 1.92, 1.92, 1.89, 1.90, 1.87,
         1.87, 1.75, 1.70, 1.62, 1.51, 1.44, 1.41, 1.36,
         # Fifth row elements, d and p blocks
         1.36, 1.32, 1.45, 1.46, 1.48, 1.40, 1.50, 1.50,
         2.60, 2.21, 2.15, 2.06, 2.00, 1.96, 1.90, 1.87, 1.80, 1.69]  # Sixth row elements

# A list that gives you the element if you give it the atomic number,
# hence the 'none' at the front.
Elements = ["None", 'H', 'He',
            'Li', 'Be', 'B', 'C', 'N', 'O', 'F', 'Ne',
            'Na', 'Mg', 'Al', 'Si', 'P', 'S', 'Cl', 'Ar',
            'K', 'Ca', 'Sc', 'Ti', 'V', 'Cr', 'Mn', 'Fe', 'Co', 'Ni', 'Cu', 'Zn', 'Ga', 'Ge', 'As', 'Se', 'Br', 'Kr',
            'Rb', 'Sr', 'Y', 'Zr', 'Nb', 'Mo', 'Tc', 'Ru', 'Rh', 'Pd', 'Ag', 'Cd', 'In', 'Sn', 'Sb', 'Te', 'I', 'Xe',
            'Cs', 'Ba', 'La', 'Ce', 'Pr', 'Nd', 'Pm', 'Sm', 'Eu', 'Gd', 'Tb', 'Dy', 'Ho', 'Er', 'Tm', 'Yb',
            'Lu', 'Hf', 'Ta', 'W', 'Re', 'Os', 'Ir', 'Pt', 'Au', 'Hg', 'Tl', 'Pb', 'Bi', 'Po', 'At', 'Rn',
            'Fr', 'Ra', 'Ac', 'Th', 'Pa', 'U', 'Np', 'Pu', 'Am', 'Cm', 'Bk', 'Cf', 'Es', 'Fm', 'Md', 'No', 'Lr', 'Rf', 'Db', 'Sg', 'Bh', 'Hs', 'Mt']


def atomic_number(label):
    """ Given an atom label (C, CL, Cl2, H12), attempt to get the atomic number.

    Returns None for dummy atoms and anything else that doesn't start
    with an element symbol.
    """
    m = re.match('[A-Za-z]+', label)
    if m is None:
        return None
    letters = m.group(0).capitalize()
    for sym in (letters, letters[:2], letters[0]):
        if sym in Elements[1:]:
            return Elements.index(sym)
    return None


class Atom(object):

    """ One atom: a label, an optional atomic number and a position in Angstrom.

    The position stays None until somebody places the atom.
    """

    def __init__(self, symbol, xyz=None, atomic_number=None, partial_charge=None):
        self.symbol = symbol
        self.atomic_number = atomic_number
        self.partial_charge = partial_charge
        self.xyz = None if xyz is None else np.array(xyz, dtype=float)

    @property
    def placed(self):
        return self.xyz is not None

    def __repr__(self):
        if self.xyz is None:
            return 'Atom(%r)' % self.symbol
        return 'Atom(%r, [% .6f, % .6f, % .6f])' % (self.symbol, self.xyz[0], self.xyz[1], self.xyz[2])


class Bond(object):

    """ An unordered pair of atoms plus a bond order. """

    def __init__(self, atom1, atom2, order=1):
        if atom1 is atom2:
            raise ValueError('A bond needs two different atoms')
        self.atoms = (atom1, atom2)
        self.order = order

    def contains(self, atom):
        return any(a is atom for a in self.atoms)

    def __eq__(self, other):
        if not isinstance(other, Bond):
            return NotImplemented
        a, b = self.atoms
        c, d = other.atoms
        return ((a is c and b is d) or (a is d and b is c)) and self.order == other.order

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        return hash(frozenset(id(a) for a in self.atoms)) ^ hash(self.order)

    def __repr__(self):
        return 'Bond(%s-%s, order=%s)' % (self.atoms[0].symbol, self.atoms[1].symbol, self.order)


class AtomContainer(object):

    """ The unit of "one molecule": an ordered list of atoms and a list of bonds.

    Every bond must join two atoms of this container; add_bond() enforces it.

    Special variables:

    na   = The number of atoms.
    elem = List of atom labels, in order.
    xyz  = (na, 3) array of coordinates; NaN rows for unplaced atoms.
    """

    def __init__(self, title=None):
        self.title = title
        self.atoms = []
        self.bonds = []

    def __len__(self):
        return len(self.atoms)

    def __iter__(self):
        return iter(self.atoms)

    def __getitem__(self, i):
        return self.atoms[i]

    @property
    def na(self):
        return len(self.atoms)

    @property
    def elem(self):
        return [a.symbol for a in self.atoms]

    @property
    def xyz(self):
        out = np.full((self.na, 3), np.nan)
        for i, a in enumerate(self.atoms):
            if a.placed:
                out[i] = a.xyz
        return out

    def index(self, atom):
        for i, a in enumerate(self.atoms):
            if a is atom:
                return i
        raise ValueError('%r is not in this container' % atom)

    def add_atom(self, atom):
        self.atoms.append(atom)
        return atom

    def add_bond(self, atom1, atom2, order=1):
        """ Add a bond; both atoms may be given as Atom objects or as indices. """
        if not isinstance(atom1, Atom):
            atom1 = self.atoms[atom1]
        if not isinstance(atom2, Atom):
            atom2 = self.atoms[atom2]
        # Raises ValueError for outsiders.
        self.index(atom1)
        self.index(atom2)
        bond = Bond(atom1, atom2, order)
        if bond not in self.bonds:
            self.bonds.append(bond)
        return bond

    def __repr__(self):
        return 'AtomContainer(na=%i, nbonds=%i)' % (self.na, len(self.bonds))


class _Holder(object):

    """ Ordered append-only list of children; base of the document levels. """

    def __init__(self, children=None):
        self._children = []
        for c in (children or []):
            self.add(c)

    child_type = None

    def add(self, child):
        if not isinstance(child, self.child_type):
            raise TypeError('%s can only hold %s objects, got %s\n' %
                            (type(self).__name__, self.child_type.__name__, type(child).__name__))
        self._children.append(child)
        return child

    def __len__(self):
        return len(self._children)

    def __iter__(self):
        return iter(self._children)

    def __getitem__(self, i):
        return self._children[i]

    def __repr__(self):
        return '%s(%i)' % (type(self).__name__, len(self))


class ChemModel(_Holder):
    """ One snapshot; holds zero or more molecules. """
    child_type = AtomContainer

    @property
    def molecules(self):
        return list(self._children)


class ChemSequence(_Holder):
    """ An ordered series of models. """
    child_type = ChemModel


class ChemFile(_Holder):
    """ The root of the document: one or more sequences. """
    child_type = ChemSequence

    def all_molecules(self):
        """ Flatten the hierarchy into a list of AtomContainers in file order. """
        return [m for seq in self for model in seq for m in model]


def build_bonds(molecule, fac=1.2):
    """ Infer bonds from interatomic distances.

    Two atoms are bonded if their distance is below the sum of their
    covalent radii times fac.  Atoms that aren't placed or whose element
    has no radius are left alone.

    @param[in] molecule The AtomContainer to add bonds to
    @param[in] fac Multiplicative factor to covalent radii criterion.
    Default value of 1.2 is reasonable, 1.4 will produce lots of bonds
    @return The number of bonds added
    """
    R = []
    for a in molecule.atoms:
        z = a.atomic_number
        R.append(Radii[z - 1] if (z is not None and 0 < z <= len(Radii)) else 0.0)
    nb0 = len(molecule.bonds)
    for i, j in itertools.combinations(range(molecule.na), 2):
        ai = molecule.atoms[i]
        aj = molecule.atoms[j]
        if R[i] == 0.0 or R[j] == 0.0 or not ai.placed or not aj.placed:
            continue
        if np.linalg.norm(ai.xyz - aj.xyz) < (R[i] + R[j]) * fac:
            molecule.add_bond(ai, aj)
    logger.debug('Inferred %i bonds for %i atoms', len(molecule.bonds) - nb0, molecule.na)
    return len(molecule.bonds) - nb0


class MoleculeBuilder(object):

    """ Accumulate atoms and bonds from a parser and hand them out as document objects.

    Parameters
    ----------
    build_bonds : bool, optional
        Infer bonds from distances when the molecule is finished.
    fac : float, optional
        Multiplicative factor to covalent radii criterion for deciding whether two atoms are bonded
    """

    def __init__(self, build_bonds=False, fac=1.2, title=None):
        self.build_bonds = build_bonds
        self.fac = fac
        self.mol = AtomContainer(title=title)
        self.finished = False

    def add_atom(self, symbol, xyz=None, **kwargs):
        if 'atomic_number' not in kwargs:
            kwargs['atomic_number'] = atomic_number(symbol)
        return self.mol.add_atom(Atom(symbol, xyz, **kwargs))

    def add_bond(self, i, j, order=1):
        return self.mol.add_bond(i, j, order)

    def molecule(self):
        """ Finish and return the AtomContainer.  Bonds are inferred once, on the first call. """
        if self.build_bonds and not self.finished:
            build_bonds(self.mol, self.fac)
        self.finished = True
        return self.mol

    def wrap(self, target=CHEM_FILE):
        """ Return the molecule wrapped in the minimal nesting that the target type requires.

        An empty molecule is left out of the model so that nothing parsed
        gives an empty (not missing) hierarchy.
        """
        mol = self.molecule()
        if target == MOLECULE:
            return mol
        model = ChemModel([mol] if mol.na > 0 else [])
        if target == CHEM_MODEL:
            return model
        sequence = ChemSequence([model])
        if target == CHEM_SEQUENCE:
            return sequence
        if target == CHEM_FILE:
            return ChemFile([sequence])
        raise ValueError('Unknown target type %r' % (target,))
