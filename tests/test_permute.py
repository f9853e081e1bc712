from math import factorial

import pytest

from fodgepermute import Permutation, Zn, Sn, ZR

PERMS = [
    [0],
    [1, 0],
    [2, 0, 1],
    [3, 1, 0, 2],
    [1, 2, 3, 4, 5, 0],
    [4, 3, 5, 0, 1, 2],
]

@pytest.mark.parametrize('perm', PERMS)
def test_inverse_and_order(perm):
    p = Permutation(perm)
    assert p * p.inverse() == 1
    assert p.inverse() * p == 1
    assert p ** p.order() == 1
    assert p ** -1 == p.inverse()
    assert sum(p.cycle_type()) == len(p)

def test_composition_acts_right_to_left():
    p = Permutation([2, 0, 1, 3])
    q = Permutation([1, 0, 3, 2])
    array = ['a', 'b', 'c', 'd']
    assert (p * q).permute(array) == p.permute(q.permute(array))
    assert (p * q)(array) == p(q(array))

def test_permute_moves_image_to_index():
    p = Permutation([2, 0, 1])
    assert p.permute(['a', 'b', 'c']) == ['c', 'a', 'b']

@pytest.mark.parametrize('perm', PERMS)
def test_permute_in_place_matches_permute(perm):
    p = Permutation(perm)
    array = list('abcdef')[:len(p)]
    expected = p.permute(array)
    assert p.permute_in_place(array) == expected
    assert array == expected

def test_permute_blocks_and_offset():
    p = Permutation([1, 0])
    assert p.permute([9, 1, 2, 3, 4], offset=1, block_len=2) == [9, 3, 4, 1, 2]
    assert p.block(2).offset(1).permute([9, 1, 2, 3, 4]) == [9, 3, 4, 1, 2]

def test_permute_bits():
    p = Permutation([1, 2, 0])
    # bit i goes to position p[i]
    assert p.permute_bits(0b001) == 0b010
    assert p.permute_bits(0b100) == 0b001
    assert p.permute_bits(0b111) == 0b111
    # bits outside the permuted range are untouched
    assert p.permute_bits(0b1_001_1, offset=1) == 0b1_010_1

def test_invalid_permutations():
    with pytest.raises(ValueError):
        Permutation([0, 0, 1])
    with pytest.raises(ValueError):
        Permutation([1, 2])
    with pytest.raises(ValueError):
        Permutation([0, 1], size=3)
    with pytest.raises(ValueError):
        Permutation()
    with pytest.raises(IndexError):
        Permutation([1, 0])[2]

def test_cycles_and_parity():
    p = Permutation([1, 2, 0, 4, 3])
    assert p.cycle_type() == [2, 3]
    assert p.order() == 6
    assert p.parity()
    assert not Permutation([1, 2, 0]).parity()
    assert Permutation.parse_cycles(len(p), p.cycle_string()) == p
    assert Permutation.identity(4).cycle_string() == 'id'
    assert Permutation.parse_cycles(3, '(1,2,3)', sep=',', base=1) == Permutation([1, 2, 0])

def test_strings():
    p = Permutation([2, 0, 1])
    assert str(p) == '(2 0 1)'
    assert p.oneline_string(sep=',', base=1) == '(3,1,2)'

def test_construction_helpers():
    assert Permutation.cyclic(4, 1) == Permutation([1, 2, 3, 0])
    assert Permutation([1, 0]) + Permutation([0, 1]) == Permutation([1, 0, 2, 3])
    assert Permutation.concatenate(Permutation([1, 0]), Permutation([1, 0])) == Permutation([1, 0, 3, 2])
    assert Permutation.sorting_permutation([30, 10, 20]).permute([30, 10, 20]) == [10, 20, 30]
    p = Permutation([1, 2, 0])
    q = Permutation([0, 2, 1])
    assert Permutation.compose(p, q, p) == p * q * p
    assert p.conjugate(q) == q * p * q.inverse()

def test_modulo_gives_class_representative():
    rot = Permutation.cyclic(4, 1)
    p = Permutation([3, 1, 2, 0])
    rep = p % rot
    assert all((p * rot**k) % rot == rep for k in range(4))
    assert all(not (p * rot**k) < rep for k in range(4))

@pytest.mark.parametrize('n', [1, 2, 3, 5, 7])
def test_cyclic_group(n):
    perms = list(Zn(n))
    assert len(perms) == n
    assert len(set(perms)) == n
    assert perms[0] == 1
    assert all(p.cycle_type() == [n] or p == 1 for p in perms) or n == 1

@pytest.mark.parametrize('n', [1, 2, 3, 4, 5])
def test_symmetric_group(n):
    group = Sn(n)
    perms = list(group)
    assert len(perms) == factorial(n)
    assert len(set(perms)) == factorial(n)
    assert perms[0] == 1
    # The group can be iterated again after wrapping around
    assert list(group) == perms
    assert len(group) == factorial(n)

@pytest.mark.parametrize('R', [[4], [2, 2], [2, 4], [3, 3], [2, 2, 2], [2, 2, 4], [1, 3, 3], [2, 3, 3, 4]])
def test_flavour_group(R):
    group = ZR(R)
    perms = list(group)
    assert perms[0] == 1
    assert len(perms) == group.order()
    assert len(set(perms)) == len(perms)
    # Closed under composition
    elements = set(perms)
    assert all(p * q in elements for p in perms[:6] for q in perms)

def test_flavour_group_order():
    assert ZR([4]).order() == 4
    assert ZR([2, 2]).order() == 8
    assert ZR([2, 2, 2]).order() == 2**3 * 6
    assert ZR([1, 1, 3]).order() == 3 * 2
    assert len(ZR([2, 4])) == 8

def test_length_does_not_disturb_iteration():
    group = ZR([2, 2])
    it = iter(group)
    first = [next(it) for _ in range(3)]
    assert len(group) == 8
    rest = list(it)
    assert len(first) + len(rest) == 8
    assert len(set(first + rest)) == 8

def test_ordering_against_other_types():
    p = Permutation([1, 0, 2])
    assert p.__lt__([0, 1, 2]) is NotImplemented
    with pytest.raises(TypeError):
        p < 'abc'
