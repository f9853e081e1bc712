from copy import copy, deepcopy

from fodgepermute import Permutation, ZR
from fodgerep import PolygonDiagram, SideType, represent_diagram, get_symmetry
from fodgeutil import logextra, split_string, VERBOSE

import logging
logger = logging.getLogger("fodgediagram")

HI_CHAR = 'X'
LO_CHAR = '.'

def bits_string(mask, n_bits):
    """ Print a bitmask as a row of characters, least significant bit first. """
    return ''.join(HI_CHAR if mask & (1 << i) else LO_CHAR for i in range(n_bits))

def digits_string(n_bits):
    return ''.join(str(i % 10) for i in range(n_bits))

def normalise_mmask(mask, n_mom):
    """ Replace a momentum mask by its complement if that has fewer momenta, or as many but not the last one. """
    count = bin(mask).count('1')
    if count > n_mom//2 or (count == n_mom//2 and mask & (1 << (n_mom - 1))):
        mask ^= (1 << n_mom) - 1
    return mask

class Propagator:
    """
    Kinematic description of one internal line of a labelled diagram.

    For a labelling of a flavour-ordered diagram, the kinematic structure is fixed by
     - the momenta of the propagators, at O(p^2);
     - also the orders of the vertices at each end, at higher orders;
     - also, for singlet propagators, the momentum of the vertex leg just before the
       propagator on each side.
    Momenta are stored as bitmasks over the external legs, normalised under momentum
    conservation to the smaller half (or, for exactly half, the half without the last leg)
    so that equal structures compare equal.
    """

    def __init__(self, momenta, n_mom, src_order, dst_order, src_prev=0, dst_prev=0):
        self.momenta = momenta
        self.n_mom = n_mom
        self.src_order = src_order
        self.dst_order = dst_order
        self.src_prev = src_prev
        self.dst_prev = dst_prev

        self.normalise()

    def normalise(self):
        self.src_prev = normalise_mmask(self.src_prev, self.n_mom)
        self.dst_prev = normalise_mmask(self.dst_prev, self.n_mom)

        # Reversing the momentum swaps the roles of the two ends
        norm = normalise_mmask(self.momenta, self.n_mom)
        if norm != self.momenta:
            self.src_order, self.dst_order = self.dst_order, self.src_order
            self.src_prev, self.dst_prev = self.dst_prev, self.src_prev
            self.momenta = norm

    def permuted(self, perm):
        assert len(perm) == self.n_mom, f"Permuting {self.n_mom} momenta with {len(perm)}-element permutation"
        return Propagator(perm.permute_bits(self.momenta), self.n_mom,
                          self.src_order, self.dst_order,
                          perm.permute_bits(self.src_prev), perm.permute_bits(self.dst_prev))

    @property
    def is_singlet(self):
        return bool(self.src_prev or self.dst_prev)

    def key(self):
        return (self.src_order, self.dst_order, self.src_prev, self.dst_prev, self.momenta)

    def __eq__(self, other):
        if not isinstance(other, Propagator):
            return NotImplemented
        return self.key() == other.key()

    def __lt__(self, other):
        return self.key() < other.key()

    def __hash__(self):
        return hash(self.key())

    def __str__(self):
        if self.is_singlet:
            return (f"{bits_string(self.momenta, self.n_mom)} "
                    f"({self.src_order}[{bits_string(self.src_prev, self.n_mom)}]"
                    f" -> {self.dst_order}[{bits_string(self.dst_prev, self.n_mom)}])")
        return f"{bits_string(self.momenta, self.n_mom)} ({self.src_order} -> {self.dst_order})"

    def header(self):
        """ A line of leg numbers that lines up with the masks in str(self). """
        digits = digits_string(self.n_mom)
        if self.is_singlet:
            return (f"{digits}  {' '*len(str(self.src_order))} {digits} "
                    f"    {' '*len(str(self.dst_order))} {digits}  ")
        return f"{digits}  {' '*len(str(self.src_order))}    {' '*len(str(self.dst_order))} "

class Labelling:
    """
    One assignment of flavour indices to the legs of a diagram, identified by its propagators.

    The permutation only records how the labelling was obtained; comparisons look at the
    propagators alone, since labellings with the same propagators are physically identical.
    """

    def __init__(self, perm, props):
        self.perm = perm
        self.props = sorted(set(props))

    @classmethod
    def from_tree(cls, root, n_legs):
        """ Label a diagram whose flavour split has been found and whose legs have been indexed. """
        root.set_momenta()
        props = []
        root.label(props, n_legs)
        return cls(Permutation.identity(n_legs), props)

    def permuted(self, perm):
        return Labelling(perm, [prop.permuted(perm) for prop in self.props])

    def index_locations(self):
        """ Map each flavour index to the leg that carries it in the identity labelling. """
        return self.perm.inverse()

    def __eq__(self, other):
        if not isinstance(other, Labelling):
            return NotImplemented
        return self.props == other.props

    def __lt__(self, other):
        if len(self.props) != len(other.props):
            return len(self.props) < len(other.props)
        return self.props < other.props

    __hash__ = None

    def __str__(self):
        if not self.props:
            return f"{self.perm} | [no propagators]"
        return f"{self.perm}{''.join(f' | {prop}' for prop in self.props)}"

    def header(self):
        ident = str(Permutation.identity(len(self.perm)))
        if not self.props:
            return ident
        return f"{ident}{''.join(f'   {prop.header()}' for prop in self.props)}"

class FlavourTrace:
    __slots__ = ('legs', 'n_idcs', 'connected', 'momenta')

    def __init__(self, n_legs=0, connected=False):
        self.legs = [DiagramNode() for _ in range(n_legs)]
        self.n_idcs = n_legs
        self.connected = connected
        self.momenta = 0

class DiagramNode:
    """
    A node in the tree of a diagram: either an external leg (leaf) or a vertex.

    A vertex has one flavour trace per element of its flavour split. A non-root vertex
    hangs on a leg of its parent, and the trace at connect_idx is the continuation of
    the parent's trace through that leg, so it has one leg fewer than its split says.
    momenta is the bitmask of external legs whose momenta flow from the node to its parent.
    """

    def __init__(self, order=0, flav_split=None, split_idx=None, singlet=False):
        self.order = order
        self.n_legs = 0
        self.momenta = 0
        self.is_leaf = flav_split is None
        self.is_root = not self.is_leaf and split_idx is None
        self.is_singlet = singlet
        self.connect_idx = split_idx
        self.traces = []

        if self.is_leaf:
            return

        for i, split in enumerate(flav_split):
            size = split - (1 if i == split_idx else 0)
            self.traces.append(FlavourTrace(size, i == split_idx))
            self.n_legs += size

    @property
    def leg_index(self):
        assert self.is_leaf, "Only external legs have an index"
        return self.momenta.bit_length() - 1

    def is_zero(self):
        """
        Check if this node or its descendants make the whole diagram vanish: if a leg is
        alone in its flavour trace, or if a singlet and an ordinary propagator are the only
        two legs of a trace.
        """
        if self.is_leaf:
            return False

        first = self.traces[0]
        if len(first.legs) == 1 and self.is_singlet != first.legs[0].is_singlet:
            return True

        for tr in self.traces:
            if len(tr.legs) == 2 and tr.legs[0].is_singlet != tr.legs[1].is_singlet:
                return True
            for leg in tr.legs:
                if leg.is_zero():
                    return True

        return False

    def find_flav_split(self, flav_split):
        """
        Append the sizes of the traces rooted at this node and below to flav_split, and
        set n_idcs for every trace on the way.

        Returns the number of flavour indices that continue the parent's trace.
        """
        if self.is_leaf:
            return 1

        con_sum = 0
        for tr in self.traces:
            total = 0
            for leg in tr.legs:
                if leg.is_singlet:
                    singlet_sum = leg.find_flav_split(flav_split)
                    if singlet_sum > 0:
                        flav_split.append(singlet_sum)
                else:
                    total += leg.find_flav_split(flav_split)

            tr.n_idcs = total
            if tr.connected:
                con_sum = total
            elif total > 0:
                flav_split.append(total)

        return con_sum

    def index(self, flav_split_idcs, idx=-1):
        """
        Give the external legs flavour-ordered indices.

        flav_split_idcs -- list of [trace size, first index] for traces not yet placed.
                           Entries are consumed as traces are placed.
        idx -- the next index in the parent's trace.
        """
        if self.is_leaf:
            self.momenta = 1 << idx
            return idx + 1

        sub_idx = -1
        for tr in self.traces:
            # Every trace but the connected one takes its indices from the list.
            # A singlet-connected trace is not a continuation, and traces
            # containing only singlets have no indices at all.
            if (not tr.connected or self.is_singlet) and tr.n_idcs > 0:
                for i, (size, start) in enumerate(flav_split_idcs):
                    if size == tr.n_idcs:
                        sub_idx = start
                        del flav_split_idcs[i]
                        break
                else:
                    raise AssertionError(f"No flavour indices left for a trace of size {tr.n_idcs}")
            else:
                sub_idx = idx

            for leg in tr.legs:
                if leg.is_singlet:
                    leg.index(flav_split_idcs)
                else:
                    sub_idx = leg.index(flav_split_idcs, sub_idx)

                if tr.connected:
                    idx = sub_idx

        return idx

    def set_momenta(self):
        if self.is_leaf:
            return self.momenta

        self.momenta = 0
        for tr in self.traces:
            tr.momenta = 0
            for leg in tr.legs:
                tr.momenta |= leg.set_momenta()
            self.momenta |= tr.momenta

        return self.momenta

    def label(self, props, n_idcs, parent_order=0, parent_prev=0):
        """
        Append the propagators at and below this node to props.

        parent_prev -- momenta of the parent's leg just before the one leading here.
        """
        if self.is_leaf:
            return

        for tr in self.traces:
            if tr.connected:
                # The line to the parent precedes the first leg, and its momentum is ingoing
                prev = ((1 << n_idcs) - 1) ^ self.momenta
            else:
                prev = tr.legs[-1].momenta

            for leg in tr.legs:
                leg.label(props, n_idcs, self.order, prev)
                prev = leg.momenta

        if self.is_singlet:
            prev = self.traces[self.connect_idx].legs[-1].momenta
            props.append(Propagator(self.momenta, n_idcs, self.order, parent_order, prev, parent_prev))
        elif not self.is_root:
            props.append(Propagator(self.momenta, n_idcs, self.order, parent_order))

    def extend(self, diagrs, new_verts, idcs, traversal, original, singlet):
        """
        Attach every vertex in new_verts to every external leg whose index is in idcs.

        traversal -- the path from the root to this node, as (trace, leg) pairs.
        original -- the diagram this tree belongs to, which does the attaching.
        """
        if self.is_leaf:
            if self.leg_index not in idcs:
                return
            for vertex in new_verts:
                original.attach(vertex, traversal, diagrs, singlet and vertex[0] > 2)
            return

        for t_idx, tr in enumerate(self.traces):
            for l_idx, leg in enumerate(tr.legs):
                leg.extend(diagrs, new_verts, idcs, traversal + [(t_idx, l_idx)], original,
                           singlet and (not leg.is_leaf or self.order > 2))

    def attach(self, vertex, split_idx, where, singlet):
        """ Replace the node at the end of the path where with a new vertex. """
        node = self
        for t_idx, l_idx in where[:-1]:
            node = node.traces[t_idx].legs[l_idx]

        t_idx, l_idx = where[-1]
        order, flav_split = vertex
        node.traces[t_idx].legs[l_idx] = DiagramNode(order, flav_split, split_idx, singlet)

    def polygonise(self, diagram, path=(), parent_side=None):
        """
        Add one polygon per flavour trace of this node and its descendants to diagram.

        parent_side -- the (polygon, side) on the parent where this node hangs.
        The traces of one vertex are joined by flavour-split sides to a hub: the connected
        trace, or the first trace at the root.
        """
        if self.is_leaf:
            return

        hub = 0 if self.is_root else self.connect_idx
        polys = [diagram.add_polygon(self.order, (path, t_idx)) for t_idx in range(len(self.traces))]
        children = []

        for t_idx, tr in enumerate(self.traces):
            p_idx = polys[t_idx]
            if tr.connected:
                link = SideType.SINGLET if self.is_singlet else SideType.PROPGTR
                diagram.join(*parent_side, p_idx, diagram.add_side(p_idx, link))

            for l_idx, leg in enumerate(tr.legs):
                if leg.is_leaf:
                    diagram.add_side(p_idx, SideType.EXT_LEG, leg.leg_index)
                else:
                    kind = SideType.SINGLET if leg.is_singlet else SideType.PROPGTR
                    children.append((leg, (t_idx, l_idx), (p_idx, diagram.add_side(p_idx, kind))))

        for t_idx, p_idx in enumerate(polys):
            if t_idx != hub:
                diagram.join(polys[hub], diagram.add_side(polys[hub], SideType.FLSPLIT),
                             p_idx, diagram.add_side(p_idx, SideType.FLSPLIT))

        for leg, step, side in children:
            leg.polygonise(diagram, path + (step,), side)

    def vertex_split(self):
        """ The flavour split of the vertex itself, counting the line to the parent. """
        return [len(tr.legs) + (1 if tr.connected else 0) for tr in self.traces]

class Diagram:
    """
    A flavour-ordered tree diagram.

    Only single-vertex diagrams are constructed directly; all others come from extend(),
    which attaches new vertices to external legs of copies of a smaller diagram.
    """

    def __init__(self, order=2, flav_split=(4,)):
        self.order = order
        self.flav_split = sorted(flav_split)
        self.n_legs = sum(self.flav_split)
        self.singlet_diagram = False
        self.root = DiagramNode(order, self.flav_split)
        self.labellings = []
        self._polygons = None
        self._representation = None

        self.index()
        self.label()

    @property
    def is_singlet(self):
        return self.singlet_diagram

    def is_zero(self):
        """ Check if the diagram vanishes identically when the generators are traceless. """
        if self.flav_split[0] == 1:
            return True
        if self.order < 6:
            return False
        return self.root.is_zero()

    def find_flav_split(self):
        flav_split = []
        self.root.find_flav_split(flav_split)
        self.flav_split = sorted(flav_split)
        self.n_legs = sum(self.flav_split)

    def index(self):
        flav_split_idcs = []
        start = 0
        for split in self.flav_split:
            flav_split_idcs.append([split, start])
            start += split

        self.root.index(flav_split_idcs)

    def label(self):
        """
        Find the distinct labellings, by applying every element of Z_R to the identity labelling.
        Labellings with equal propagators are merged, keeping the first one generated.
        """
        identity = Labelling.from_tree(self.root, self.n_legs)
        labellings = sorted(identity.permuted(perm) for perm in ZR(self.flav_split))

        self.labellings = [lbl for i, lbl in enumerate(labellings) if i == 0 or lbl != labellings[i-1]]

    def extend(self, new_verts, singlets):
        """
        Make all diagrams obtained by attaching one of new_verts, given as (order, flav_split),
        to an external leg.

        Only legs that carry a representative of a class of flavour indices under Z_R in some
        labelling need to be tried: the first index of the first trace, and of each trace that
        is longer than the one before it.
        """
        idx_reps = [0]
        start = 0
        for i in range(1, len(self.flav_split)):
            start += self.flav_split[i-1]
            if self.flav_split[i] != self.flav_split[i-1]:
                idx_reps.append(start)

        rep_locs = set()
        for lbl in self.labellings:
            locs = lbl.index_locations()
            rep_locs.update(locs[rep] for rep in idx_reps)

        logger.debug(f"Attaching extensions of {self.name()} to legs {sorted(rep_locs)}", extra=logextra)

        diagrs = []
        self.root.extend(diagrs, new_verts, rep_locs, [], self, singlets)
        return diagrs

    def attach(self, vertex, where, diagrs, singlet):
        """
        Attach vertex at the leg given by the path where, once through each distinct
        trace of the vertex, and also with a singlet propagator if enabled and possible.
        """
        order, flav_split = vertex
        for i in range(len(flav_split)):
            if i > 0 and flav_split[i] == flav_split[i-1]:
                continue

            diagrs.append(self._attached(vertex, i, where, False))
            if singlet and flav_split[i] > 2:
                diagrs.append(self._attached(vertex, i, where, True))

    def _attached(self, vertex, split_idx, where, singlet):
        order, flav_split = vertex

        diagr = copy(self)
        diagr.root = deepcopy(self.root)
        diagr.order = self.order + order - 2
        diagr.singlet_diagram = self.singlet_diagram or singlet
        diagr._polygons = None
        diagr._representation = None

        diagr.root.attach(vertex, split_idx, where, singlet)
        diagr.find_flav_split()
        diagr.index()
        diagr.label()

        logger.debug(f"{'Singlet-attached' if singlet else 'Attached'} O(p^{order}) vertex with flavour split "
                     f"{split_string(flav_split)} at {where}, giving flavour split {split_string(diagr.flav_split)}",
                     extra=logextra)
        return diagr

    @staticmethod
    def valid_flav_splits(order, n_legs, smallest_split=2):
        """
        List the flavour splits a vertex of the given order and size may have.

        Each extra trace costs two orders, and an odd-sized extra trace two more.
        """
        flav_splits = [[n_legs]]
        if order == 2:
            return flav_splits

        step = 1 if order > 4 else 2
        for split in range(smallest_split, n_legs//2 + 1, step):
            for flav_split in Diagram.valid_flav_splits(order - 2*(1 + split % 2), n_legs - split, split):
                flav_splits.append(sorted(flav_split + [split]))

        return flav_splits

    @staticmethod
    def valid_vertices(order, n_legs):
        return [(order, flav_split) for flav_split in Diagram.valid_flav_splits(order, n_legs)]

    @staticmethod
    def generate(order, n_legs, singlets=True, traceless_generators=True):
        """
        Generate all distinct flavour-ordered diagrams of the given order and size, sorted.

        singlets -- include diagrams with singlet propagators.
        traceless_generators -- remove diagrams that vanish identically for SU(N) generators.
        """
        diagrs = Diagram._generate(order, n_legs, singlets, {})

        logextra['where'] = f"O(p^{order}) {n_legs}-point"
        if traceless_generators:
            n_before = len(diagrs)
            diagrs = [d for d in diagrs if not d.is_zero()]
            logger.log(VERBOSE, f"Removed {n_before - len(diagrs)} identically zero diagrams", extra=logextra)

        return diagrs

    @staticmethod
    def _generate(order, n_legs, singlets, cache):
        # Identically zero diagrams are kept while recursing,
        # since attaching to them may give nonzero diagrams
        if (order, n_legs) in cache:
            return cache[(order, n_legs)]

        diagrs = [Diagram(order, flav_split) for flav_split in Diagram.valid_flav_splits(order, n_legs)]

        # Extending a diagram of order o by a vertex of order 2+order-o gives the same
        # diagrams as the other way around, so only o > order/2 is needed.
        # The same holds for the size when both orders are equal.
        for o in range(order, order//2, -2):
            n_min = 4 if (n_legs <= 8 or 2*o != 2 + order) else n_legs//2
            for n in range(n_legs - 2, n_min - 1, -2):
                new_verts = Diagram.valid_vertices(2 + order - o, 2 + n_legs - n)
                for diagr in Diagram._generate(o, n, singlets, cache):
                    logextra['where'] = f"O(p^{order}) {n_legs}-point"
                    logger.debug(f"Extending {diagr.name()}", extra=logextra)
                    diagrs.extend(diagr.extend(new_verts, singlets and o > 2 and order > 4))

        diagrs.sort()
        diagrs = [d for i, d in enumerate(diagrs) if i == 0 or d != diagrs[i-1]]

        logextra['where'] = f"O(p^{order}) {n_legs}-point"
        logger.log(VERBOSE, f"Generated {len(diagrs)} diagrams", extra=logextra)

        cache[(order, n_legs)] = diagrs
        return diagrs

    @staticmethod
    def filter_flav_split(diagrs, flav_splits, include):
        """
        Remove, in place, the diagrams whose flavour split is not (if include)
        or is (otherwise) among flav_splits. Returns the number removed.
        """
        flav_splits = [sorted(split) for split in flav_splits]
        kept = [d for d in diagrs if (d.flav_split in flav_splits) == include]
        n_removed = len(diagrs) - len(kept)
        diagrs[:] = kept
        return n_removed

    @staticmethod
    def summarise(diagrs):
        """ Tabulate the number of diagrams and labellings per order and flavour split. """
        rows = {}
        for d in diagrs:
            row = rows.setdefault((d.n_legs, d.order, tuple(d.flav_split)), [0, 0, 0])
            row[0] += 1
            row[1] += 1 if d.is_singlet else 0
            row[2] += len(d.labellings)

        width = max([len('flavour split')] + [len(split_string(split)) for _, _, split in rows])
        lines = [f"{'legs':>4}  {'order':<7} {'flavour split':<{width}}  {'diagrams':>8}  {'singlet':>7}  {'labellings':>10}"]
        for (n_legs, order, split), (n_diagrs, n_singlet, n_labellings) in rows.items():
            lines.append(f"{n_legs:>4}  {'O(p^' + str(order) + ')':<7} {split_string(split):<{width}}  "
                         f"{n_diagrs:>8}  {n_singlet:>7}  {n_labellings:>10}")
        return '\n'.join(lines)

    def polygons(self):
        if self._polygons is None:
            self._polygons = PolygonDiagram()
            self.root.polygonise(self._polygons)
        return self._polygons

    @property
    def representation(self):
        if self._representation is None:
            self._representation = represent_diagram(self.polygons())
        return self._representation

    @property
    def symmetry_factor(self):
        return get_symmetry(self.representation)

    def name(self):
        return f"O(p^{self.order}) {self.n_legs}-point diagram with flavour split {split_string(self.flav_split)}"

    def __eq__(self, other):
        if not isinstance(other, Diagram):
            return NotImplemented
        return (self.n_legs == other.n_legs and self.order == other.order
                and self.flav_split == other.flav_split and self.labellings == other.labellings)

    def __lt__(self, other):
        if self.n_legs != other.n_legs:
            return self.n_legs < other.n_legs
        if self.order != other.order:
            return self.order < other.order
        # Reversed, so that unsplit diagrams come first
        if self.flav_split != other.flav_split:
            return self.flav_split > other.flav_split
        return self.labellings < other.labellings

    __hash__ = None

    def __str__(self):
        lines = [f"O(p^{self.order}) {self.n_legs}-point {'singlet ' if self.is_singlet else ''}diagram, "
                 f"flavour split {self.flav_split}, symmetry factor {self.symmetry_factor}, "
                 f"{len(self.labellings)} distinct labellings:"]
        lines.append(f"    {self.labellings[0].header()}")
        lines.extend(f"    {lbl}" for lbl in self.labellings)
        return '\n'.join(lines)
