from enum import Enum, IntFlag
from functools import cmp_to_key
from math import factorial

from bidict import bidict

from fodgeutil import logextra

import logging
logger = logging.getLogger("fodgerep")

# Comparison levels, consulted in this order since each is rarer to break ties than the previous
class Level(IntFlag):
    TOP = 1     # topology: which legs and propagators meet at which vertex
    ORD = 2     # vertex orders
    FSP = 4     # flavour-split connections
    ALL = 7

BOOTH_NIL = -1

def _cmp(a, b):
    return (a > b) - (a < b)

#-- Polygon view of diagrams --#

class SideType(Enum):
    EXT_LEG = 'leg'
    PROPGTR = 'propagator'
    SINGLET = 'singlet'
    FLSPLIT = 'split'

    @property
    def carries_flavour(self):
        return self in (SideType.EXT_LEG, SideType.PROPGTR)

class Side:
    __slots__ = ('kind', 'poly', 'twin', 'leg')

    def __init__(self, kind, leg=None):
        self.kind = kind
        self.poly = None    # polygon on the other side, for internal sides
        self.twin = None    # index of this side in that polygon
        self.leg = leg      # external leg index, for external sides

    def __str__(self):
        if self.kind is SideType.EXT_LEG:
            return f"leg {self.leg}"
        return f"{self.kind.value} to {self.poly}"

class Polygon:
    """
    One flavour trace of one vertex, drawn as a polygon whose sides are the legs of the trace
    in cyclic order, plus flavour-split sides joining it to the other traces of the vertex.
    """

    def __init__(self, order):
        self.order = order
        self.sides = []

    def __len__(self):
        return len(self.sides)

    def __str__(self):
        return f"O(p^{self.order}) [{', '.join(str(side) for side in self.sides)}]"

class PolygonDiagram:
    """
    The polygon view of a diagram.

    All polygon corners lie on the perimeter of the diagram, so walking around a polygon and
    crossing each internal side into the polygon on its other side traces out a boundary.
    Crossing only propagators traces out a flavour part; crossing only flavour splits traces out
    a vertex.

    trace_map maps each polygon index to and from the key of the trace it was made from.
    """

    def __init__(self):
        self.polys = []
        self.trace_map = bidict()

    def __len__(self):
        return len(self.polys)

    def __getitem__(self, p_idx):
        return self.polys[p_idx]

    def add_polygon(self, order, key):
        self.trace_map[len(self.polys)] = key
        self.polys.append(Polygon(order))
        return len(self.polys) - 1

    def add_side(self, p_idx, kind, leg=None):
        self.polys[p_idx].sides.append(Side(kind, leg))
        return len(self.polys[p_idx]) - 1

    def join(self, p_idx, g_idx, q_idx, t_idx):
        """ Glue side g_idx of polygon p_idx to side t_idx of polygon q_idx. """
        side = self.polys[p_idx].sides[g_idx]
        other = self.polys[q_idx].sides[t_idx]
        assert side.kind is other.kind, f"Joining {side.kind.value} to {other.kind.value}"

        side.poly, side.twin = q_idx, t_idx
        other.poly, other.twin = p_idx, g_idx

    def _step(self, p_idx, g_idx, crossing):
        side = self.polys[p_idx].sides[g_idx]
        if side.kind is crossing:
            return side.poly, (side.twin + 1) % len(self.polys[side.poly])
        return p_idx, (g_idx + 1) % len(self.polys[p_idx])

    def step_part(self, p_idx, g_idx):
        return self._step(p_idx, g_idx, SideType.PROPGTR)

    def step_vertex(self, p_idx, g_idx):
        return self._step(p_idx, g_idx, SideType.FLSPLIT)

    def actual_dist(self, p_idx, g_idx):
        """
        Count the legs and singlets on the far side of the propagator at side g_idx of
        polygon p_idx, i.e. the distance along the perimeter of its part between the two
        ends of the propagator.
        """
        target = (p_idx, (g_idx + 1) % len(self.polys[p_idx]))
        pos = (p_idx, g_idx)
        dist = 0
        while True:
            if self.polys[pos[0]].sides[pos[1]].kind in (SideType.EXT_LEG, SideType.SINGLET):
                dist += 1
            pos = self.step_part(*pos)
            if pos == target:
                return dist

    def __str__(self):
        return '\n'.join(f"polygon {p_idx} {self.trace_map[p_idx]}: {poly}" for p_idx, poly in enumerate(self.polys))

#-- Representations --#

class BackReference:
    """
    Placeholder for a part that is already being represented further up the recursion.

    All back references compare equal to each other and less than any part.
    """

    def __init__(self, part):
        self.part = part

    def __str__(self):
        return f"[back reference to part #{self.part}]"

def _is_null(rep):
    return rep is None or isinstance(rep, BackReference)

class LineRep:
    __slots__ = ('length', 'order', 'con', 'poly')

    def __init__(self, length, order, con, poly):
        self.length = length    # 0 marks a singlet line
        self.order = order
        self.con = con
        self.poly = poly        # only for bookkeeping, never compared

class GonRep:
    __slots__ = ('lines', 'poly', 'side')

    def __init__(self, poly, side):
        self.lines = [None]
        self.poly = poly
        self.side = side

def _con_ident(con):
    return -1 if con is None else con.ident

def _compare_lines(lines_1, lines_2, level, anti_doublecount=False):
    comp = _cmp(len(lines_1), len(lines_2))
    if comp:
        return comp

    for line_1, line_2 in zip(lines_1, lines_2):
        if level & Level.TOP:
            comp = _cmp(line_1.length, line_2.length)
            if comp:
                return comp
        if level & Level.ORD:
            comp = _cmp(line_1.order, line_2.order)
            if comp:
                return comp
        if level & Level.FSP:
            if anti_doublecount:
                comp = _cmp(_con_ident(line_1.con), _con_ident(line_2.con))
            else:
                comp = compare_comprep(line_1.con, line_2.con)
            if comp:
                return comp

    return 0

class CycRep:
    """
    Canonical representation of one flavour part: the gons along its perimeter, read cyclically
    from offset. After normalisation at a level, offset gives the least rotation and period the
    smallest rotation that leaves the part unchanged at that level.
    """

    def __init__(self):
        self.ident = None
        self.array = []
        self.n_flavidx = 0
        self.offset = 0
        self.period = 0
        self.polys = []

    def __len__(self):
        return len(self.array)

    def at(self, i):
        return self.array[(i + self.offset) % len(self.array)]

    def compare_self(self, idx_1, idx_2, seg_length, level, anti_doublecount=False):
        for i in range(seg_length):
            comp = _compare_lines(self.at(i + idx_1).lines, self.at(i + idx_2).lines, level, anti_doublecount)
            if comp:
                return comp
        return 0

    def _booth_normalise(self, level):
        # Booth's least-rotation algorithm, stepping in chunks of the period found at the
        # previous level, since only such rotations can still leave the part unchanged.
        length = len(self.array)
        if self.period == length:
            return self.offset

        step = self.period if self.period else 1
        ffunc = [BOOTH_NIL] * (2*length // step)
        noffs = 0

        for idx in range(step, 2*length, step):
            fval = ffunc[(idx - noffs)//step - 1]
            comp = self.compare_self(idx, (1 + fval)*step + noffs, step, level)
            while fval != BOOTH_NIL and comp != 0:
                if comp < 0:
                    noffs = idx - (1 + fval)*step
                fval = ffunc[fval]
                comp = self.compare_self(idx, (1 + fval)*step + noffs, step, level)

            if fval == BOOTH_NIL and comp != 0:
                if comp < 0:
                    noffs = idx
                ffunc[(idx - noffs)//step] = BOOTH_NIL
            else:
                ffunc[(idx - noffs)//step] = 1 + fval

        return (self.offset + noffs) % length

    def _find_period(self, level):
        length = len(self.array)
        step = self.period if self.period else 1

        for period in range(step, length//2 + 1, step):
            if length % period:
                continue
            # Connections are compared by identity here, since a symmetry carried by equal
            # connected parts is already counted when those parts are interchanged
            if self.compare_self(0, period, length, level, anti_doublecount=True) == 0:
                return period

        return length

    def normalise(self, level):
        # The offset search relies on the period of the previous level
        self.offset = self._booth_normalise(level)
        self.period = self._find_period(level)

    def describe(self, indent_level=0, indent_str=' '*4):
        lines = []
        for i in range(len(self)):
            gon = self.at(i)
            lines.append(f"{indent_str*indent_level}gon {i}:")
            for j, line in enumerate(gon.lines):
                prefix = f"{indent_str*(indent_level+1)}line {j}: "
                if line.length > 0:
                    if line.con is None:
                        lines.append(f"{prefix}{line.length} gons down, order {line.order}, no connection.")
                    else:
                        lines.append(f"{prefix}{line.length} gons down, order {line.order}, connected to:")
                        lines.append(describe_comprep(line.con, indent_level+2, indent_str))
                else:
                    lines.append(f"{prefix}singlet-connected to:")
                    lines.append(describe_comprep(line.con, indent_level+2, indent_str))
        return '\n'.join(lines)

    def __str__(self):
        return self.describe()

def compare_cycrep(rep_1, rep_2, level=Level.ALL):
    if _is_null(rep_1):
        return 0 if _is_null(rep_2) else -1
    if _is_null(rep_2):
        return +1

    # Parts without flavour indices (only singlets) go last
    comp = _cmp(not rep_1.n_flavidx, not rep_2.n_flavidx)
    if comp:
        return comp
    comp = _cmp(rep_1.n_flavidx, rep_2.n_flavidx)
    if comp:
        return comp
    comp = _cmp(len(rep_1), len(rep_2))
    if comp:
        return comp

    for i in range(len(rep_1)):
        comp = _compare_lines(rep_1.at(i).lines, rep_2.at(i).lines, level)
        if comp:
            return comp

    return 0

def _compare_part(rep_1, rep_2):
    return (compare_cycrep(rep_1, rep_2, Level.TOP)
            or compare_cycrep(rep_1, rep_2, Level.ORD)
            or compare_cycrep(rep_1, rep_2, Level.FSP))

class CompRep:
    """
    Compound representation: a sorted list of parts (or back references) with eq_reps such that
    eq_reps[i] == eq_reps[j] exactly when reps[i] and reps[j] are equal.

    At the top level, poly_reps maps each polygon index to the part containing it.
    """

    def __init__(self, reps):
        self.ident = None
        self.reps = sorted(reps, key=cmp_to_key(_compare_part))
        self.eq_reps = []
        for i, rep in enumerate(self.reps):
            if i > 0 and _compare_part(self.reps[i-1], rep) == 0:
                self.eq_reps.append(self.eq_reps[-1])
            else:
                self.eq_reps.append(i)
        self.poly_reps = None

    def __len__(self):
        return len(self.reps)

    def symmetry(self):
        return get_symmetry(self)

    def __eq__(self, other):
        if not isinstance(other, CompRep):
            return NotImplemented
        return compare_comprep(self, other) == 0

    def __lt__(self, other):
        return compare_comprep(self, other) < 0

    __hash__ = None

    def describe(self, indent_level=0, indent_str=' '*4):
        return describe_comprep(self, indent_level, indent_str)

    def __str__(self):
        return self.describe()

def describe_comprep(crep, indent_level=0, indent_str=' '*4):
    if crep is None:
        return f"{indent_str*indent_level}[null]"

    lines = []
    for i, rep in enumerate(crep.reps):
        lines.append(f"{indent_str*indent_level}Part {i}:")
        if isinstance(rep, BackReference):
            lines.append(f"{indent_str*(indent_level+1)}{rep}")
        else:
            lines.append(rep.describe(indent_level+1, indent_str))
    return '\n'.join(lines)

def compare_comprep(crep_1, crep_2):
    if crep_1 is None:
        return 0 if crep_2 is None else -1
    if crep_2 is None:
        return +1

    comp = _cmp(len(crep_1.reps), len(crep_2.reps))
    if comp:
        return comp
    for eq_1, eq_2 in zip(crep_1.eq_reps, crep_2.eq_reps):
        comp = _cmp(eq_1, eq_2)
        if comp:
            return comp

    for level in (Level.TOP, Level.ORD, Level.FSP):
        for rep_1, rep_2 in zip(crep_1.reps, crep_2.reps):
            comp = compare_cycrep(rep_1, rep_2, level)
            if comp:
                return comp

    return 0

def get_symmetry(crep):
    """
    The symmetry factor: each part's rotational symmetry (only when every gon of the part
    carries a flavour index), times k! for every run of k equal parts.
    """
    sym = 1
    run = 0
    for i, rep in enumerate(crep.reps):
        if not _is_null(rep) and len(rep) == rep.n_flavidx:
            sym *= len(rep) // rep.period

        if i > 0 and crep.eq_reps[i] == crep.eq_reps[i-1]:
            run += 1
        else:
            sym *= factorial(run)
            run = 1

    return sym * factorial(run)

#-- Building representations --#

class Representer:
    """
    Builds the compound representation of a polygon diagram.

    Each part refers to the parts joined to it at flavour-split vertices, which are represented
    as slaves of it. A slave sees its masters (every part further up the recursion) as back
    references rather than recursing into them, so each part is represented once as master
    and possibly several more times as a slave of different masters.

    Every representation built is kept in the arena and tagged with its index there.
    """

    def __init__(self, diagram):
        self.diagram = diagram
        self.arena = []

    def _register(self, rep):
        rep.ident = len(self.arena)
        self.arena.append(rep)
        return rep

    def represent_diagram(self):
        poly_reps = [None] * len(self.diagram)
        parts = []

        for p_idx in range(len(self.diagram)):
            if poly_reps[p_idx] is None:
                part = self.represent_part(p_idx, {})
                for q_idx in part.polys:
                    poly_reps[q_idx] = part
                parts.append(part)

        crep = self._register(CompRep(parts))
        crep.poly_reps = poly_reps

        logger.debug(f"Represented diagram with {len(parts)} parts using {len(self.arena)} representations", extra=logextra)
        return crep

    def represent_part(self, p_idx, master):
        """
        Represent the part containing polygon p_idx.

        master -- maps every polygon in a master part to the ident of that part.
        """

        part = self._register(CycRep())
        part.polys = self._discover_part(p_idx)

        master = master | {q_idx: part.ident for q_idx in part.polys}
        fsp_cons = {q_idx: self.represent_fsp_con(q_idx, master) for q_idx in part.polys}

        self._fill_part(part, p_idx, fsp_cons, master)

        for level in (Level.TOP, Level.ORD, Level.FSP):
            part.normalise(level)

        assert part.period > 0, f"Representation of part at polygon {p_idx} failed"
        return part

    def _discover_part(self, p_idx):
        polys = [p_idx]
        start = pos = (p_idx, 0)
        while True:
            pos = self.diagram.step_part(*pos)
            if pos == start:
                return polys
            if pos[0] not in polys:
                polys.append(pos[0])

    def represent_fsp_con(self, p_idx, master):
        """ Represent the other traces of the vertex containing polygon p_idx, or None if there are none. """

        visited = {p_idx}
        reps = []

        start = pos = (p_idx, 0)
        while True:
            q_idx = pos[0]
            if q_idx not in visited:
                visited.add(q_idx)
                if q_idx in master:
                    reps.append(BackReference(master[q_idx]))
                else:
                    reps.append(self.represent_part(q_idx, master))

            pos = self.diagram.step_vertex(*pos)
            if pos == start:
                break

        if not reps:
            return None
        return self._register(CompRep(reps))

    def represent_singlet(self, s_idx, master):
        """ Represent the part across a singlet propagator, ending at polygon s_idx. """

        if s_idx in master:
            rep = BackReference(master[s_idx])
        else:
            rep = self.represent_part(s_idx, master)
        return self._register(CompRep([rep]))

    def _fill_part(self, part, p_idx, fsp_cons, master):
        diagram = self.diagram
        n_sides = sum(len(diagram[q_idx]) for q_idx in part.polys)

        # Each entry starts right after a leg or singlet, since propagators only add
        # lines to the following entry
        pos = (p_idx, 0)
        for _ in range(n_sides):
            kind = diagram[pos[0]].sides[pos[1]].kind
            pos = diagram.step_part(*pos)
            if kind in (SideType.EXT_LEG, SideType.SINGLET):
                break
        else:
            raise AssertionError(f"Part at polygon {p_idx} has no legs")

        start = pos
        gon = None
        while True:
            q_idx, g_idx = pos
            poly = diagram[q_idx]
            side = poly.sides[g_idx]

            if gon is None:
                gon = GonRep(q_idx, g_idx)

            match side.kind:
                case SideType.EXT_LEG:
                    gon.lines[0] = LineRep(1, poly.order, fsp_cons[q_idx], q_idx)
                    part.array.append(gon)
                    part.n_flavidx += 1
                    gon = None
                case SideType.PROPGTR:
                    gon.lines.append(LineRep(diagram.actual_dist(q_idx, g_idx), poly.order, fsp_cons[q_idx], q_idx))
                case SideType.SINGLET:
                    gon.lines[0] = LineRep(1, poly.order, fsp_cons[q_idx], q_idx)
                    gon.lines.append(LineRep(0, 0, self.represent_singlet(side.poly, master), q_idx))
                    part.array.append(gon)
                    gon = None
                case SideType.FLSPLIT:
                    pass

            pos = diagram.step_part(q_idx, g_idx)
            if pos == start:
                break

def represent_diagram(diagram):
    return Representer(diagram).represent_diagram()
