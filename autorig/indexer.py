"""Point location in quadtrees and octrees through bit-interleaved coordinates.

Tree nodes are expected to expose ``children``: a sequence of ``2 ** dim``
child nodes, empty (or ``None``) for leaves. Child ``i`` holds the upper half
of axis ``d`` when bit ``d`` of ``i`` is set.
"""

from __future__ import annotations

from functools import lru_cache


@lru_cache(maxsize=None)
def interleave2(i: int) -> int:
    """Spread the 15 low bits of ``i`` so the most significant lands lowest."""
    return sum(1 << (28 - 2 * k) for k in range(15) if i & (1 << k))


@lru_cache(maxsize=None)
def interleave3(i: int) -> int:
    """Spread the 10 low bits of ``i`` so the most significant lands lowest."""
    return sum(1 << (27 - 3 * k) for k in range(10) if i & (1 << k))


def morton_index(vec) -> int:
    """Interleaved index of a point in the unit square or cube."""
    coords = [float(c) for c in vec]
    if len(coords) == 2:
        scale, limit, spread = 32767.999, 32768, interleave2
    elif len(coords) == 3:
        scale, limit, spread = 1023.999, 1024, interleave3
    else:
        raise ValueError(f"expected a 2D or 3D point, got {len(coords)} coordinates")
    out = 0
    for shift, value in enumerate(coords):
        cell = int(value * scale)
        if not 0 <= cell < limit:
            raise ValueError(f"coordinate {value} lies outside the unit range")
        out += spread(cell) << shift
    return out


def _child(node, i):
    children = getattr(node, "children", None)
    return children[i] if children else None


class Indexer:
    """Locates leaves by walking down from the root."""

    def __init__(self, dim=3):
        self.dim = dim
        self._root = None

    def set_root(self, root):
        self._root = root

    def preprocess_index(self):
        """Nothing is precomputed for a plain walk."""

    def locate(self, v):
        """The leaf whose cell contains ``v``."""
        if self._root is None:
            raise RuntimeError("indexer has no root")
        out = self._root
        idx = morton_index(v)
        mask = (1 << self.dim) - 1
        while (child := _child(out, idx & mask)) is not None:
            out = child
            idx >>= self.dim
        return out


class ArrayIndexer:
    """Locates leaves through a table of the first few tree levels."""

    def __init__(self, dim=3):
        self.dim = dim
        self.bits = 16 - (16 % dim)
        self._root = None
        self._table = []

    def set_root(self, root):
        self._root = root
        self._table = []

    def preprocess_index(self):
        if self._root is None:
            raise RuntimeError("indexer has no root")
        mask = (1 << self.dim) - 1
        depth = self.bits // self.dim
        table = []
        for i in range(1 << self.bits):
            node, cur, count = self._root, i, 0
            while _child(node, 0) is not None and count < depth:
                count += 1
                node = _child(node, cur & mask)
                cur >>= self.dim
            table.append(node)
        self._table = table

    def locate(self, v):
        if not self._table:
            raise RuntimeError("preprocess_index must run before locate")
        idx = morton_index(v)
        out = self._table[idx & ((1 << self.bits) - 1)]
        if _child(out, 0) is None:
            return out
        idx >>= self.bits
        mask = (1 << self.dim) - 1
        while True:
            out = _child(out, idx & mask)
            idx >>= self.dim
            if _child(out, idx & mask) is None:
                return out


class HashIndex:
    """Maps node indices at a fixed depth to nodes, keyed on their high bits."""

    bits = 16

    def __init__(self, level):
        self.level = level
        self._nodes = {}

    def add(self, node, idx):
        """Store ``node`` unless its bucket is already taken."""
        self._nodes.setdefault(idx >> (self.level - self.bits), (idx, node))

    def lookup(self, idx):
        """The node stored under exactly ``idx``, or ``None``."""
        entry = self._nodes.get(idx >> (self.level - self.bits))
        if entry is not None and entry[0] == idx:
            return entry[1]
        return None


class HashIndexer:
    """Quadtree leaf location using a level table plus a hashed deeper level."""

    bits = 16
    hlev = 22

    def __init__(self):
        self._root = None
        self._table = []
        self._nodes = HashIndex(self.hlev)

    def set_root(self, root):
        self._root = root
        self._table = []

    def preprocess_index(self):
        if self._root is None:
            raise RuntimeError("indexer has no root")
        table = []
        for i in range(1 << self.bits):
            node, cur, count = self._root, i, 0
            while _child(node, 0) is not None and count < self.bits // 2:
                count += 1
                node = _child(node, cur & 3)
                cur >>= 2
            table.append(node)
        self._table = table
        self._nodes = HashIndex(self.hlev)
        self._add(self._root, 0, 0)

    def _add(self, node, level, idx):
        if level == self.hlev:
            self._nodes.add(node, idx)
            return
        if _child(node, 0) is None:
            return
        for i in range(4):
            self._add(_child(node, i), level + 2, idx + (i << level))

    def locate(self, v):
        if not self._table:
            raise RuntimeError("preprocess_index must run before locate")
        idx = morton_index(v)
        out = self._table[idx & ((1 << self.bits) - 1)]
        if _child(out, 0) is None:
            return out
        node = self._nodes.lookup(idx & ((1 << self.hlev) - 1))
        if node is None:
            idx >>= self.bits
        else:
            out = node
            if _child(out, 0) is None:
                return out
            idx >>= self.hlev
        while True:
            out = _child(out, idx & 3)
            idx >>= 2
            if _child(out, idx & 3) is None:
                return out