import io

import numpy as np
import pytest

from chemio_utils import (ZMatrixReader, ReaderMode, CHEM_FILE, MOLECULE, ChemFile,
                          NumericFormatError, InvalidReferenceError, MalformedRecordError,
                          MissingSectionError, DegenerateGeometryError, UnsupportedTargetTypeError)
from chemio_utils.zmatrix import (ZMatrix, ZMatrixEntry, parse_zmatrix, zmatrix_to_cartesian,
                                  cartesian_to_internal, distance, angle, dihedral)

FRAGMENT = """\
C
H 1 1.09
H 1 1.09 2 120.0
"""

PEROXIDE = """\
# hydrogen peroxide
O
O 1 1.45
H 1 0.97 2 100.0
H 2 0.97 1 100.0 3 120.0
"""

METHANOL = """\
6
C
O 1 1.43
H 1 1.09 2 109.5
H 1 1.09 2 109.5 3 120.0
H 1 1.09 2 109.5 3 -120.0
H 2 0.96 1 108.0 3 180.0
"""


def angle_diff(a, b):
    return (a - b + 180.0) % 360.0 - 180.0


def read(text, **kwargs):
    return ZMatrixReader(io.StringIO(text), **kwargs)


#===========================#
#|   Geometry measurement   |#
#===========================#

def test_measurements():
    assert distance([0, 0, 0], [3, 4, 0]) == pytest.approx(5.0)
    assert angle([1, 0, 0], [0, 0, 0], [0, 1, 0]) == pytest.approx(90.0)
    assert angle([1, 0, 0], [0, 0, 0], [-1, 0, 0]) == pytest.approx(180.0)
    assert dihedral([0, 1, 0], [0, 0, 0], [1, 0, 0], [1, 0, 1]) == pytest.approx(90.0)
    assert dihedral([0, 1, 0], [0, 0, 0], [1, 0, 0], [1, 0, -1]) == pytest.approx(-90.0)


#===========================#
#|   Z-matrix -> Cartesian  |#
#===========================#

def test_fragment_scenario():
    xyz = zmatrix_to_cartesian(parse_zmatrix(FRAGMENT.splitlines()))
    assert xyz.shape == (3, 3)
    np.testing.assert_allclose(xyz[0], [0, 0, 0])
    assert distance(xyz[0], xyz[1]) == pytest.approx(1.09)
    assert distance(xyz[0], xyz[2]) == pytest.approx(1.09)
    assert angle(xyz[1], xyz[0], xyz[2]) == pytest.approx(120.0, abs=1e-4)


def test_first_atoms_on_axis_and_plane():
    xyz = zmatrix_to_cartesian(parse_zmatrix(METHANOL.splitlines()))
    np.testing.assert_allclose(xyz[0], [0, 0, 0])
    np.testing.assert_allclose(xyz[1], [1.43, 0, 0])
    assert xyz[2][2] == pytest.approx(0.0)


@pytest.mark.parametrize("text", [FRAGMENT, PEROXIDE, METHANOL])
def test_round_trip(text):
    zm = parse_zmatrix(text.splitlines())
    xyz = zmatrix_to_cartesian(zm)
    back = cartesian_to_internal(zm, xyz)
    for e, b in zip(zm, back):
        if e.bond_ref is not None:
            assert b.bond_length == pytest.approx(e.bond_length, abs=1e-6)
        if e.angle_ref is not None:
            assert b.angle == pytest.approx(e.angle, abs=1e-4)
        if e.dihedral_ref is not None:
            assert abs(angle_diff(b.dihedral, e.dihedral)) < 1e-4


def random_zmatrix(rng, natoms):
    entries = [ZMatrixEntry('C')]
    for i in range(1, natoms):
        refs = rng.permutation(i)[:3]
        e = ZMatrixEntry('C', int(refs[0]), rng.uniform(0.8, 2.0))
        if i >= 2:
            e.angle_ref, e.angle = int(refs[1]), rng.uniform(20.0, 160.0)
        if i >= 3:
            e.dihedral_ref, e.dihedral = int(refs[2]), rng.uniform(-179.0, 179.0)
        entries.append(e)
    return ZMatrix(entries)


@pytest.mark.parametrize("seed", range(40))
def test_random_round_trip(seed):
    rng = np.random.RandomState(seed)
    zm = random_zmatrix(rng, rng.randint(3, 15))
    xyz = zmatrix_to_cartesian(zm)
    back = cartesian_to_internal(zm, xyz)
    for e, b in zip(zm, back):
        if e.bond_ref is not None:
            assert b.bond_length == pytest.approx(e.bond_length, abs=1e-6)
        if e.angle_ref is None:
            continue
        A, B = xyz[e.bond_ref], xyz[e.angle_ref]
        if distance(A, B) < 0.05:
            continue
        assert b.angle == pytest.approx(e.angle, abs=1e-4)
        if e.dihedral_ref is None:
            continue
        C = xyz[e.dihedral_ref]
        # The dihedral is poorly defined when the three reference atoms are nearly in line.
        if distance(B, C) < 0.05 or np.sin(angle(A, B, C) / 180.0 * np.pi) < 0.05:
            continue
        assert abs(angle_diff(b.dihedral, e.dihedral)) < 1e-3


def test_third_atom_bonded_to_second():
    zm = parse_zmatrix("C\nO 1 1.2\nH 2 1.0 1 110.0\n".splitlines())
    assert zm[2].bond_ref == 1 and zm[2].angle_ref == 0
    xyz = zmatrix_to_cartesian(zm)
    assert distance(xyz[2], xyz[1]) == pytest.approx(1.0)
    assert distance(xyz[2], xyz[0]) > 1.0
    assert angle(xyz[2], xyz[1], xyz[0]) == pytest.approx(110.0, abs=1e-6)
    assert xyz[2][2] == pytest.approx(0.0)


def test_dihedral_sign_is_kept():
    xyz = zmatrix_to_cartesian(parse_zmatrix(METHANOL.splitlines()))
    assert dihedral(xyz[3], xyz[0], xyz[1], xyz[2]) == pytest.approx(120.0, abs=1e-4)
    assert dihedral(xyz[4], xyz[0], xyz[1], xyz[2]) == pytest.approx(-120.0, abs=1e-4)


def test_collinear_references_are_degenerate():
    text = "C\nC 1 1.2\nC 2 1.2 1 180.0\nH 3 1.0 2 90.0 1 0.0\n"
    zm = parse_zmatrix(text.splitlines())
    with pytest.raises(DegenerateGeometryError):
        zmatrix_to_cartesian(zm)


def test_coincident_references_are_degenerate():
    zm = ZMatrix([ZMatrixEntry('C'),
                  ZMatrixEntry('C', 0, 0.0),
                  ZMatrixEntry('H', 0, 1.0, 1, 90.0)])
    with pytest.raises(DegenerateGeometryError):
        zmatrix_to_cartesian(zm)


def test_degenerate_is_fatal_in_relaxed_mode():
    text = "C\nC 1 1.2\nC 2 1.2 1 180.0\nH 3 1.0 2 90.0 1 0.0\n"
    reader = read(text, mode=ReaderMode.RELAXED)
    with pytest.raises(DegenerateGeometryError):
        reader.parse()


def test_converter_rejects_missing_columns():
    zm = ZMatrix([ZMatrixEntry('C'), ZMatrixEntry('H')])
    with pytest.raises(InvalidReferenceError):
        zmatrix_to_cartesian(zm)


#===========================#
#|     Z-matrix parsing     |#
#===========================#

def test_declared_count_and_comments():
    zm = parse_zmatrix(METHANOL.splitlines())
    assert len(zm) == 6
    assert zm.labels == ['C', 'O', 'H', 'H', 'H', 'H']
    zm = parse_zmatrix(PEROXIDE.splitlines())
    assert len(zm) == 4
    assert zm[3].bond_ref == 1
    assert zm[3].angle_ref == 0
    assert zm[3].dihedral_ref == 2


def test_inline_comments_and_blank_lines():
    text = "\n! water\nO\n\nH 1 0.96   ! OH bond\nH 1 0.96 2 104.5\n"
    zm = parse_zmatrix(text.splitlines())
    assert zm.labels == ['O', 'H', 'H']
    assert zm[2].angle == pytest.approx(104.5)


def test_extra_columns_are_ignored():
    zm = parse_zmatrix("C\nH 1 1.09 0\nH 1 1.09 2 120.0 0 0\n".splitlines())
    assert zm[1].bond_length == pytest.approx(1.09)
    assert zm[2].angle == pytest.approx(120.0)


def test_zero_based_indices():
    text = "C\nH 0 1.09\nH 0 1.09 1 120.0\n"
    one = zmatrix_to_cartesian(parse_zmatrix(FRAGMENT.splitlines()))
    zero = zmatrix_to_cartesian(parse_zmatrix(text.splitlines(), index_base=0))
    np.testing.assert_allclose(one, zero)
    with pytest.raises(InvalidReferenceError):
        parse_zmatrix(FRAGMENT.splitlines(), index_base=0)


def test_bad_index_base():
    with pytest.raises(ValueError):
        parse_zmatrix(FRAGMENT.splitlines(), index_base=2)


@pytest.mark.parametrize("text", [
    "C\nH 2 1.09\n",                # self reference
    "C\nH 3 1.09\n",                # forward reference
    "C\nH 0 1.09\n",                # before the first atom
    "C\nH 1 1.09\nH 1 1.09 1 120.0\n",  # same atom twice
])
def test_invalid_references(text):
    with pytest.raises(InvalidReferenceError):
        parse_zmatrix(text.splitlines())


def test_short_row():
    with pytest.raises(MalformedRecordError):
        parse_zmatrix("C\nH 1 1.09\nH 1 1.09\n".splitlines())


def test_numeric_error_reports_line():
    with pytest.raises(NumericFormatError) as excinfo:
        parse_zmatrix("C\nH 1 1,09\n".splitlines())
    assert excinfo.value.lineno == 2


def test_declared_count_not_met():
    text = "4\n" + FRAGMENT
    with pytest.raises(MissingSectionError):
        parse_zmatrix(text.splitlines())
    reader = read(text, mode=ReaderMode.RELAXED)
    mol = reader.parse().all_molecules()[0]
    assert mol.na == 3
    assert reader.n_skipped == 1


def test_content_after_declared_count_is_ignored():
    zm = parse_zmatrix(("2\n" + FRAGMENT).splitlines())
    assert zm.labels == ['C', 'H']


#===========================#
#|     ZMatrixReader        |#
#===========================#

ONE_BAD_LINE = """\
C
O 1 1.43
H 1 1.09 2 109.5
H 1 1.09 2 109.5 3 12O.0
H 1 1.09 2 109.5 3 -120.0
"""


def test_mode_symmetry():
    with pytest.raises(NumericFormatError) as excinfo:
        read(ONE_BAD_LINE).parse()
    assert excinfo.value.lineno == 4

    reader = read(ONE_BAD_LINE, mode=ReaderMode.RELAXED)
    mol = reader.parse().all_molecules()[0]
    assert mol.elem == ['C', 'O', 'H', 'H']
    assert reader.n_skipped == 1
    assert isinstance(reader.skipped[0], NumericFormatError)
    xyz = mol.xyz
    # The surviving last row now sits at position 3 and still measures right.
    assert distance(xyz[3], xyz[0]) == pytest.approx(1.09)
    assert dihedral(xyz[3], xyz[0], xyz[1], xyz[2]) == pytest.approx(-120.0, abs=1e-4)


def test_relaxed_skips_rows_that_refer_to_skipped_rows():
    text = "C\nO 1 1.43\nH 1 1.09 2 1O9.5\nH 1 1.09 2 109.5 3 120.0\nH 2 0.96 1 108.0\n"
    reader = read(text, mode=ReaderMode.RELAXED)
    mol = reader.parse().all_molecules()[0]
    assert mol.elem == ['C', 'O']
    assert reader.n_skipped == 3
    assert isinstance(reader.skipped[1], InvalidReferenceError)


def test_relaxed_survivors_are_renumbered_with_their_columns():
    text = ("C\nO 1 1.43\nH 1 1.09 2 109.5\nH 1 1.09 2 1O9.5 3 120.0\n"
            "H 2 0.96 1 108.0 3 180.0\n")
    zm = parse_zmatrix(text.splitlines(), mode=ReaderMode.RELAXED)
    assert zm.labels == ['C', 'O', 'H', 'H']
    for pos, e in enumerate(zm):
        assert len(e.refs) == min(pos, 3)
        assert all(r < pos for r in e.refs)
    assert (zm[3].bond_ref, zm[3].angle_ref, zm[3].dihedral_ref) == (1, 0, 2)


def test_relaxed_mode_set_after_construction():
    reader = read(ONE_BAD_LINE)
    assert reader.mode == ReaderMode.STRICT
    reader.mode = 'relaxed'
    assert reader.mode == ReaderMode.RELAXED
    assert reader.parse().all_molecules()[0].na == 4


def test_relaxed_logs_warning(caplog):
    with caplog.at_level('WARNING', logger='chemio_utils'):
        read(ONE_BAD_LINE, mode=ReaderMode.RELAXED).parse()
    assert any('skipping' in r.getMessage() for r in caplog.records)


def test_reader_builds_chemfile_without_bonds():
    cf = read(FRAGMENT).parse()
    assert isinstance(cf, ChemFile)
    assert len(cf) == 1 and len(cf[0]) == 1
    mol = cf.all_molecules()[0]
    assert mol.elem == ['C', 'H', 'H']
    assert mol.bonds == []
    assert [a.atomic_number for a in mol] == [6, 1, 1]


def test_reader_bond_inference_on_request():
    mol = read(FRAGMENT, build_bonds=True).parse().all_molecules()[0]
    assert len(mol.bonds) == 2


def test_reader_from_file(tmp_path):
    fnm = tmp_path / 'peroxide.zmat'
    fnm.write_text(PEROXIDE)
    reader = ZMatrixReader(str(fnm))
    mol = reader.parse(CHEM_FILE).all_molecules()[0]
    assert mol.na == 4
    assert len(reader.zmatrix) == 4


def test_missing_file():
    with pytest.raises(IOError):
        ZMatrixReader('/nonexistent/file.zmat').parse()


def test_capabilities_without_io():
    reader = ZMatrixReader(io.StringIO(''))
    assert reader.accepts(CHEM_FILE)
    assert not reader.accepts(MOLECULE)
    assert not reader.accepts('Reaction')
    # A file that does not exist is fine as long as nothing is read.
    assert ZMatrixReader('/nonexistent/file.zmat').accepts(CHEM_FILE)


def test_unsupported_target():
    reader = read(FRAGMENT)
    with pytest.raises(UnsupportedTargetTypeError):
        reader.parse(MOLECULE)
    assert reader.accepts(CHEM_FILE)
    assert reader.parse().all_molecules()[0].na == 3


def test_empty_input():
    cf = ZMatrixReader(io.StringIO('')).parse()
    assert cf.all_molecules() == []
