import pytest

from fodgeutil import FodgeError, and_join, order_OtoN, order_NtoO, check_legs, parse_flav_splits, split_string

@pytest.mark.parametrize('order, name', [(2, 'LO'), (4, 'NLO'), (6, 'NNLO'), (8, 'N3LO'), (12, 'N5LO')])
def test_order_names(order, name):
    assert order_OtoN(order) == name
    assert order_NtoO(name) == order

@pytest.mark.parametrize('order', [0, 3, -2])
def test_invalid_order(order):
    with pytest.raises(FodgeError):
        order_OtoN(order)

def test_invalid_order_name():
    with pytest.raises(FodgeError):
        order_NtoO('NXLO')

def test_check_legs():
    assert check_legs(6) == 6
    for n_legs in (2, 5):
        with pytest.raises(FodgeError):
            check_legs(n_legs)

def test_parse_flav_splits():
    assert parse_flav_splits("2,2,4 5,3") == [[2, 2, 4], [3, 5]]
    assert parse_flav_splits("  8 ", 8) == [[8]]

@pytest.mark.parametrize('string', ["", "2,,4", "2,a", "0,6", "2,3"])
def test_invalid_flav_splits(string):
    with pytest.raises(FodgeError):
        parse_flav_splits(string, 6)

def test_text_helpers():
    assert and_join([]) == ""
    assert and_join(['a']) == 'a'
    assert and_join(['a', 'b']) == 'a and b'
    assert and_join(['a', 'b', 'c']) == 'a, b, and c'
    assert split_string([2, 4]) == '2,4'
