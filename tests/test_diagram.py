import pytest

from fodgediagram import Diagram, DiagramNode, Propagator, Labelling, normalise_mmask
from fodgepermute import Permutation

def test_momentum_normalisation():
    assert normalise_mmask(0b000111, 6) == 0b000111
    assert normalise_mmask(0b111000, 6) == 0b000111
    assert normalise_mmask(0b011110, 6) == 0b100001
    assert normalise_mmask(0b0011, 4) == 0b0011
    assert normalise_mmask(0b1100, 4) == 0b0011

def test_propagator_normalisation_swaps_ends():
    prop = Propagator(0b111000, 6, 2, 4)
    assert prop.momenta == 0b000111
    assert (prop.src_order, prop.dst_order) == (4, 2)

    again = Propagator(prop.momenta, 6, prop.src_order, prop.dst_order)
    assert again == prop

def test_singlet_propagator():
    prop = Propagator(0b000011, 6, 4, 2, 0b000100, 0b111110)
    assert prop.is_singlet
    assert prop.dst_prev == 0b000001
    assert str(prop) == "XX.... (4[..X...] -> 2[X.....])"
    assert len(prop.header()) == len(str(prop))

def test_propagator_string():
    prop = Propagator(0b000111, 6, 2, 2)
    assert not prop.is_singlet
    assert str(prop) == "XXX... (2 -> 2)"
    assert len(prop.header()) == len(str(prop))

def test_permuted_propagator():
    perm = Permutation([1, 2, 3, 4, 5, 0])
    prop = Propagator(0b000111, 6, 2, 2).permuted(perm)
    assert prop.momenta == 0b001110

def test_labellings_compare_by_propagators_only():
    props = [Propagator(0b0011, 4, 2, 2)]
    lbl = Labelling(Permutation.identity(4), props)
    other = Labelling(Permutation([1, 0, 2, 3]), props)
    assert lbl == other
    assert not lbl < other
    assert Labelling(Permutation.identity(4), []) < lbl
    assert lbl.index_locations() == Permutation.identity(4)
    assert other.index_locations() == Permutation([1, 0, 2, 3])

@pytest.mark.parametrize('order, n_legs, expected', [
    (2, 6, [[6]]),
    (4, 4, [[4], [2, 2]]),
    (4, 6, [[6], [2, 4]]),
    (6, 6, [[6], [2, 4], [2, 2, 2], [3, 3]]),
])
def test_valid_flav_splits(order, n_legs, expected):
    assert Diagram.valid_flav_splits(order, n_legs) == expected

def test_single_vertex_diagram():
    diagr = Diagram()
    assert diagr.order == 2
    assert diagr.n_legs == 4
    assert diagr.flav_split == [4]
    assert len(diagr.labellings) == 1
    assert diagr.labellings[0].props == []
    assert diagr.symmetry_factor == 4
    assert not diagr.is_zero()
    assert not diagr.is_singlet

def test_split_single_vertex_diagram():
    diagr = Diagram(4, [2, 2])
    assert len(diagr.labellings) == 1
    assert diagr.symmetry_factor == 8

def test_unsorted_split_is_sorted():
    diagr = Diagram(4, [4, 2])
    assert diagr.flav_split == [2, 4]
    assert diagr.n_legs == 6

def test_single_leg_trace_is_zero():
    assert Diagram(4, [1, 3]).is_zero()

def test_attach_builds_exchange_diagram():
    diagrs = Diagram().extend([(2, [4])], False)
    assert len(diagrs) == 1
    diagr = diagrs[0]
    assert (diagr.order, diagr.n_legs, diagr.flav_split) == (2, 6, [6])
    assert len(diagr.labellings) == 3
    assert all(len(lbl.props) == 1 for lbl in diagr.labellings)
    # The original is left untouched
    assert Diagram().labellings[0].props == []

def test_generate_lowest_order():
    diagrs = Diagram.generate(2, 4)
    assert len(diagrs) == 1
    assert diagrs[0].flav_split == [4]
    assert diagrs[0].symmetry_factor == 4

def test_generate_six_point_lowest_order():
    diagrs = Diagram.generate(2, 6)
    assert len(diagrs) == 2
    contact, exchange = diagrs
    assert len(contact.labellings) == 1
    assert contact.symmetry_factor == 6
    assert len(exchange.labellings) == 3
    assert exchange.symmetry_factor == 2

def test_generate_is_deterministic():
    first = Diagram.generate(4, 6)
    second = Diagram.generate(4, 6)
    assert first == second

def test_generate_sorting():
    diagrs = Diagram.generate(4, 4)
    assert [d.flav_split for d in diagrs] == [[4], [2, 2]]
    assert all(not diagrs[i+1] < diagrs[i] for i in range(len(diagrs) - 1))

def test_generate_next_to_leading_order():
    diagrs = Diagram.generate(4, 6, True)
    assert diagrs
    splits = [d.flav_split for d in diagrs]
    assert [6] in splits
    assert [2, 4] in splits
    for diagr in diagrs:
        assert diagr.order == 4
        assert sum(diagr.flav_split) == 6
        assert 720 % diagr.symmetry_factor == 0
        assert not diagr.is_singlet
    assert all(diagrs[i] != diagrs[i+1] for i in range(len(diagrs) - 1))

def test_singlets_appear_from_next_to_next_to_leading_order():
    with_singlets = Diagram.generate(6, 6, singlets=True)
    without_singlets = Diagram.generate(6, 6, singlets=False)
    assert any(d.is_singlet for d in with_singlets)
    assert not any(d.is_singlet for d in without_singlets)
    assert len(with_singlets) > len(without_singlets)
    for diagr in with_singlets:
        assert diagr.symmetry_factor > 0
        assert not diagr.is_zero()

def test_keeping_zero_diagrams():
    traceless = Diagram.generate(6, 8)
    everything = Diagram.generate(6, 8, traceless_generators=False)
    assert len(traceless) == 50
    assert len(everything) == 58
    assert not any(1 in d.flav_split for d in traceless)
    assert sum(1 for d in everything if 1 in d.flav_split) == 7
    assert all(d.is_zero() for d in everything if d not in traceless)
    assert all(d in everything for d in traceless)

def test_lone_leg_across_singlet_is_zero():
    # The continued trace keeps a single leg, which is ordinary while the vertex hangs on a singlet
    assert DiagramNode(4, [2, 4], 0, True).is_zero()
    assert not DiagramNode(4, [2, 4], 0, False).is_zero()

def test_singlet_and_ordinary_pair_is_zero():
    root = DiagramNode(4, [2, 2])
    assert not root.is_zero()

    root.traces[0].legs[0] = DiagramNode(4, [4], 0, True)
    assert root.is_zero()

    root.traces[0].legs[1] = DiagramNode(4, [4], 0, True)
    assert not root.is_zero()

    root.traces[0].legs[0] = DiagramNode(2, [4], 0, False)
    root.traces[0].legs[1] = DiagramNode(2, [4], 0, False)
    assert not root.is_zero()

def test_filter_flav_split():
    diagrs = Diagram.generate(4, 6)
    n_total = len(diagrs)
    n_unsplit = sum(1 for d in diagrs if d.flav_split == [6])

    kept = list(diagrs)
    assert Diagram.filter_flav_split(kept, [[6]], True) == n_total - n_unsplit
    assert all(d.flav_split == [6] for d in kept)

    kept = list(diagrs)
    assert Diagram.filter_flav_split(kept, [[6]], False) == n_unsplit
    assert all(d.flav_split != [6] for d in kept)

def test_summarise():
    table = Diagram.summarise(Diagram.generate(4, 6))
    lines = table.split('\n')
    assert 'flavour split' in lines[0]
    assert any(line.split()[2] == '2,4' for line in lines[1:])

def test_string():
    text = str(Diagram())
    assert text.startswith("O(p^2) 4-point diagram, flavour split [4], symmetry factor 4, 1 distinct labellings:")
    assert "(0 1 2 3) | [no propagators]" in text

def test_node_index_failure():
    node = DiagramNode(2, [4])
    with pytest.raises(AssertionError):
        node.index([[2, 0]])
