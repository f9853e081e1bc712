from math import gcd, factorial
from functools import reduce
from re import findall
import collections.abc
from copy import deepcopy

from numpy import cumsum

class Permutation:
    """
    Class for representing permutations.

    A Permutation object represents a reordering of the elements of a list or similar container,
    and can be applied to any list of the same length as the permutation, to blocks of such
    a list, or to the bits of an integer.
    Composition acts right-to-left: (p*q).permute(list) == p.permute(q.permute(list)).
    """

#-- Magic methods --#

    def __init__(self, perm = None, size = None, check = True):
        """
        Create a permutation that permutes the elements of lists.

        perm -- the permutation moves the element at index perm[i] to index i.
        size -- if perm is omitted, create the identity permutation of size elements.
                    If perm is provided, size is only used for verification.
        check -- if True, verify that perm is actually a permutation and that
                    len(perm) == size (if size is given).
        """

        if perm is None:
            if size is None:
                raise ValueError("Insufficient information to create a permutation")
            if size < 1:
                raise ValueError("Permutation size must be positive")
            self._map = tuple(range(size))
        else:
            self._map = tuple(perm)

        if check:
            if size is not None and len(self._map) != size:
                raise ValueError(f"Permutation array size ({len(self._map)}) does not match the given size ({size})")
            if not self.is_valid():
                raise ValueError(f"Permutation array {self._map} is not a permutation")

    def __getitem__(self, idx):
        """ Obtain the image of element idx under the permutation. """
        if not 0 <= idx < len(self._map):
            raise IndexError(f"Index {idx} out of range for {len(self._map)}-element permutation")
        return self._map[idx]

    def __call__(self, array):
        """ Apply the permutation to the array given as argument. """
        return self.permute(array)

    def __len__(self):
        return len(self._map)

    def __iter__(self):
        return iter(self._map)

    def __str__(self):
        """ Represent a permutation as (i1 i2 i3 ...) where iN is the image of index N. """
        return self.oneline_string()
    def __repr__(self):
        return f"Permutation({list(self._map)})"

    def __hash__(self):
        return hash(self._map)

    def __add__(self, other):
        """ Concatenate permutations. """
        return self.append(other)

    def __mul__(self, other):
        """
        Compose permutations.

        (p*q).permute(list) is equivalent to p.permute(q.permute(list)): q acts first.
        """
        if len(self) != len(other):
            raise ValueError("Attempting to multiply permutations of different length")

        return Permutation(self.permute(other._map), check = False)

    def __pow__(self, power):
        """
        Take a power of a permutation by repeated squaring.

        The exponent is first reduced modulo the order of the permutation,
        so negative powers give powers of the inverse.
        """

        power %= self.order()

        result = Permutation.identity(len(self))
        square = self
        while power:
            if power & 1:
                result = result * square
            square = square * square
            power >>= 1

        return result

    def __mod__(self, other):
        """
        Take one permutation modulo another.

        Each permutation divides all other permutations into equivalence classes
        under composition with powers of this permutation. The modulo operation
        maps each permutation to a unique representative of the equivalence class it
        is in: the lexicographically least self * other**k.

        The implementation is brute-force, since the subgroups involved are small.
        """

        if len(self) != len(other):
            raise ValueError("Attempting to reduce permutations of different length")

        least = self
        power = other
        while not power.is_identity():
            perm = self * power
            if perm < least:
                least = perm
            power = power * other

        return least

    def __eq__(self, other):
        """
        Compare two permutations for equality.

        The comparison self == 1 is also valid, checking if the permutation is the identity.
        """
        if isinstance(other, int):
            return other == 1 and self.is_identity()
        if not isinstance(other, Permutation):
            return NotImplemented
        return self._map == other._map

    def __lt__(self, other):
        """ Compare two permutations lexicographically by their index maps. """
        if not isinstance(other, Permutation):
            return NotImplemented
        return self._map < other._map

#-- Generator methods --#

    @staticmethod
    def identity(size):
        return Permutation( size=size )

    @staticmethod
    def cyclic(size, offs):
        """ Generate the cyclic permutation that moves element offs to element 0. """
        return Permutation( [(i + offs) % size for i in range(size)] )

    def reversed(self):
        """
        Obtain the reverse of a permutation.

        For example, identity(size).reversed().permute(list) == list.reversed().
        """
        return Permutation( list(reversed(self._map)), check = False )

    def inverse(self):
        """ Obtain the inverse of a permutation, such that self * self.inverse() == 1. """

        inv = [0] * len(self)
        for i in range(len(self)):
            inv[ self._map[i] ] = i

        return Permutation(inv, check = False)

    def conjugate(self, other):
        """ Equivalent to other * self * other.inverse() """
        return other * self * other.inverse()

    def offset(self, offset):
        """
        Obtain a permutation such that
            self.offset(offset).permute(list) == self.permute(list, offset = offset)
        """
        return Permutation( [i for i in range(offset)] + [i + offset for i in self._map] )

    def block(self, block_len):
        """
        Obtain a permutation such that
            self.block(block_len).permute(list) == self.permute(list, block_len = block_len)
        """
        return Permutation( [i*block_len + j for i in self._map for j in range(block_len)] )

    def append(self, perm):
        """ Concatenate two permutations so that they act on subsequent portions of a list. """
        return Permutation( list(self._map) + [i + len(self) for i in perm._map] )

    @staticmethod
    def sorting_permutation(array, key = lambda x: x, reverse = False):
        """
        Obtain the permutation that sorts a given array.

        array -- the given array. Is not modified by this method.
        key -- key used for sorting; see array.sort()
        reverse -- if True, the permutation reverse-sorts the array.
        """
        sort = list(range(len(array)))
        sort.sort(reverse = reverse, key = lambda i: key(array[i]))
        return Permutation(sort)

    @staticmethod
    def parse_cycles(size, string, sep=' ', base=0):
        """
        Read a permutation specified in cycle notation.

        Thus, parse_cycles(len(p), p.cycle_string(sep), sep) == p.
        The string "id" gives the identity permutation.
        """
        if string.strip() == 'id':
            return Permutation.identity(size)

        perm = list(range(size))
        for cycle_str in findall(r'\(([^)]+)\)', string):
            cycle = [int(elem)-base for elem in cycle_str.split(sep)]
            for i in range(len(cycle)):
                perm[ cycle[i] ] = cycle[(i+1) % len(cycle)]

        return Permutation(perm)

    @staticmethod
    def concatenate(*perms):
        """ Concatenate a list of permutations, as if by repeated application of +. """

        if len(perms) == 1:
            return perms[0]

        cat = []
        for perm in perms:
            cat += [p + len(cat) for p in perm]

        return Permutation(cat)

    @staticmethod
    def compose(*perms):
        """ Compose a list of equal-length permutations, as if by repeated application of *. """
        return reduce(lambda p, q: p * q, perms)

#-- Application of permutations --#

    def permute(self, array, offset = 0, block_len = 1):
        """
        Return a permuted copy of an array as a list.

        offset -- the permutation acts on array[offset:], leaving the start unchanged.
        block_len -- the permutation moves contiguous blocks of this many elements.
        """
        result = list(array)
        return self.permute_in_place(result, offset, block_len)

    def permute_in_place(self, array, offset = 0, block_len = 1):
        """
        Apply a permutation in-place to an array, or to a block-structured part of it.

        Element (or block) self[i] is moved to position i, counting from offset.
        """

        if len(array) < offset + len(self) * block_len:
            raise ValueError("Array too short for permutation")

        for dst in range(len(self)):

            # Moving elements from higher indices to lower works fine, but
            # elements at lower indices have already been swapped away.
            # The permutation tells us where they went, so follow it until
            # we find a higher index.
            src = self._map[dst]
            while src < dst:
                src = self._map[src]

            if src != dst:
                lo = offset + dst*block_len
                hi = offset + src*block_len
                array[lo:lo+block_len], array[hi:hi+block_len] = array[hi:hi+block_len], array[lo:lo+block_len]

        return array

    def permute_bits(self, bits, offset = 0, block_len = 1):
        """
        Apply a permutation to the bits of an integer.

        Bit (or block of block_len bits) i, counting from bit offset, is moved to
        position self[i]. Bits below offset and above the permuted range are kept.
        """

        mask = (1 << block_len) - 1
        span = len(self) * block_len
        res = bits & ((1 << offset) - 1)
        res |= (bits >> (offset + span)) << (offset + span)

        bits >>= offset
        for i in self._map:
            res |= (bits & mask) << (offset + i*block_len)
            bits >>= block_len

        return res

#-- Properties of permutations --#

    @staticmethod
    def is_permutation(array):
        """ Check if a array of indices represents a permutation of range(len(array)). """
        return (
            len(array) > 0
            and min(array) == 0
            and max(array) == len(array)-1
            and len(array) == len(set(array))
            )
    def is_valid(self):
        return self.is_permutation(self._map)

    def is_identity(self):
        return all( i == m for i,m in enumerate(self._map) )

    def cycles(self, canonical = True):
        """
        Obtain the list of cycles of a permutation, omitting cycles of length 1.

        canonical -- if True, the cycles are rotated so that they start with their largest
                index, and are sorted by starting index.
        """
        cycles = []
        visited = [False] * len(self)

        for i in range(len(self)):
            if visited[i] or self._map[i] == i:
                continue

            cycle = []
            j = i
            while not visited[j]:
                visited[j] = True
                cycle.append(j)
                j = self._map[j]

            if canonical:
                top = cycle.index(max(cycle))
                cycle = cycle[top:] + cycle[:top]
            cycles.append(cycle)

        if canonical:
            cycles.sort(key = lambda c: c[0])

        return cycles

    def cycle_type(self):
        """
        Obtain the cycle type of a permutation: the sorted list of lengths of its cycles,
        including length-1 cycles. It always sums to len(self).
        """

        decomp = []
        visited = [False] * len(self)

        for i in range(len(self)):
            if visited[i]:
                continue

            cyc_len = 0
            j = i
            while not visited[j]:
                visited[j] = True
                cyc_len += 1
                j = self._map[j]

            decomp.append(cyc_len)

        return sorted(decomp)

    def oneline_string(self, sep=' ', base=0):
        """ Write the permutation as a parenthesized sep-separated list of the image of each element. """
        return f"({sep.join(str(base+i) for i in self._map)})"

    def cycle_string(self, sep=' ', base=0):
        """ Write the permutation in cycle form, or "id" for the identity. """
        cycles = self.cycles()
        if len(cycles) == 0:
            return 'id'
        else:
            return ''.join([f'({sep.join(str(base+c) for c in cycle)})' for cycle in cycles])

    def fixed_points(self):
        return [i for i in range(len(self)) if self._map[i] == i]

    def order(self):
        """ Obtain the smallest positive power to which self must be raised to give the identity. """
        return reduce(lambda a,b: (a*b)//gcd(a,b), self.cycle_type())

    def parity(self):
        """
        Obtain the parity of a permutation: True if odd, False if even, in analogy with i % 2 for integers.

        A cycle of length k is a product of k-1 transpositions.
        """
        return bool(sum(cyc_len - 1 for cyc_len in self.cycle_type()) % 2)


class Group(collections.abc.Iterator):
    """
    Class for enumerating permutation groups.

    A Group is an iterator that visits every element of a permutation group exactly once,
    starting with the identity. After raising StopIteration, it is back in its initial
    state, so the iteration may be repeated.

    Subclasses implement advance(), which steps the current permutation and returns
    False once the group wraps around to the identity.
    """

    def __init__(self, size):
        self._size = size
        self.reset()

    def reset(self):
        self._perm = list(range(self._size))
        self._started = False

    @property
    def perm(self):
        return Permutation(self._perm, check = False)

    def __iter__(self):
        self.reset()
        return self

    def __next__(self):
        if self._started:
            if not self.advance():
                self._started = False
                raise StopIteration
        else:
            self._started = True
        return self.perm

    def __len__(self):
        # Count on a copy, so an iteration in progress is left alone
        return sum(1 for _ in deepcopy(self))

    def _swap(self, i, j):
        self._perm[i], self._perm[j] = self._perm[j], self._perm[i]

class Zn(Group):
    """
    The cyclic group.

    Iterates over the cyclic rotations of n elements, one step at a time.
    """

    def reset(self):
        super().reset()
        self._count = 0

    def advance(self):
        for i in range(self._size - 1):
            self._swap(i, i+1)

        self._count += 1
        if self._count >= self._size:
            self._count %= self._size
            return False
        return True

    def __str__(self):
        return f'Cyclic group Z_{self._size}'

class Sn(Group):
    """
    The symmetric group.

    Iterates over all permutations of n elements with the non-recursive Heap's algorithm,
    one swap per step.
    """

    def reset(self):
        super().reset()
        self._stack = [0] * self._size
        self._idx = 0

    def advance(self):
        while self._idx < self._size:
            if self._stack[self._idx] < self._idx:
                if self._idx % 2 != 0:
                    self._swap(self._stack[self._idx], self._idx)
                else:
                    self._swap(0, self._idx)

                self._stack[self._idx] += 1
                self._idx = 0
                return True
            else:
                self._stack[self._idx] = 0
                self._idx += 1

        # Heap's algorithm does not end on the identity, so restore it explicitly
        self.reset()
        return False

    def __str__(self):
        return f'Symmetric group S_{self._size}'

class ZR(Group):
    """
    The flavour structure symmetry group.

    Given a list R of positive integers, which is sorted before continuing,
    it is generated by the rotations of each trace of length R[i] and the exchanges
    of whole traces of equal length.
    This makes it the symmetry group of a product of traces of matrices under permutation of
    those matrices, where R lists the size of the traces.

    The sub-groups are stepped like an odometer, cyclic ones first. The current permutation
    is always the product of the current positions of all sub-groups.
    """

    def __init__(self, R):
        R = sorted(R)
        starts = [0] + [int(s) for s in cumsum(R)[:-1]]

        # Entries are (group, offset, block length)
        self._cyclic = [(Zn(r), start, 1) for r, start in zip(R, starts) if r > 1]
        self._swaps = []

        count = 0
        for i in range(len(R)):
            count += 1
            if i == len(R)-1 or R[i] != R[i+1]:
                if count > 1:
                    self._swaps.append( (Sn(count), starts[i+1-count], R[i]) )
                count = 0

        self._R = R
        super().__init__(sum(R))

    def reset(self):
        super().reset()
        for group, _, _ in self._cyclic + self._swaps:
            group.reset()

    def order(self):
        """ The number of elements in the group, without iterating through it. """
        result = 1
        for group, _, _ in self._cyclic:
            result *= group._size
        for group, _, _ in self._swaps:
            result *= factorial(group._size)
        return result

    def advance(self):
        for group, offs, block_len in self._cyclic + self._swaps:
            group.perm.inverse().permute_in_place(self._perm, offs, block_len)
            if group.advance():
                group.perm.permute_in_place(self._perm, offs, block_len)
                return True
        return False

    def __str__(self):
        return f'Flavour symmetry group Z_R with R = {self._R}'
