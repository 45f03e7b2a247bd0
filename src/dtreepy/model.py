# -*- coding: utf-8 -*-
"""
dtreepy.model
=============

Decision and regression tree node graph.

A :class:`DecisionTree` owns an arena of :class:`Node` objects addressed by
integer index.  A node is either a leaf (target statistics) or a test node
(an attribute under test and one slot per attribute value).  Each slot is
:data:`EMPTY`, :class:`Owned` (the slot owns a child subtree) or
:class:`AliasOf` (the value shares the child of another slot of the same
node, the result of merging values during subset search).  Deleting a
subtree follows owned slots only, so every node is released exactly once.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass

import numpy as np

from .exceptions import TreeStructureError


# -----------------------------------------------------------------------------
# Slots
# -----------------------------------------------------------------------------
class _Empty:
    __slots__ = ()

    def __repr__(self) -> str:
        return "EMPTY"

    def __deepcopy__(self, memo):
        return self


EMPTY = _Empty()


@dataclass(frozen=True)
class Owned:
    """Slot owning the child subtree rooted at arena index ``node``."""

    node: int


@dataclass(frozen=True)
class AliasOf:
    """Slot sharing the child of slot ``slot`` of the same node."""

    slot: int


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
@dataclass
class Node:
    """A leaf or test node.

    Attributes
    ----------
    attid : int
        Test attribute (test nodes) or target attribute (leaves).
    frq : float
        Total weight of the cases at this node.
    err : float
        Misclassified weight (nominal target) or sum of squared errors
        (metric target) of the node used as a leaf.
    trg : int or float
        Most frequent class (nominal) or mean value (metric).
    frqs : ndarray or None
        Class frequencies of a leaf with a nominal target.
    cut : float
        Cut value of a test on a metric attribute.
    slots : list or None
        Child slots of a test node; ``None`` for leaves.
    selected : bool
        Node selection flag set by threshold based pruning.
    """

    attid: int
    frq: float = 0.0
    err: float = 0.0
    trg: float = 0
    frqs: np.ndarray | None = None
    cut: float = math.nan
    slots: list | None = None
    selected: bool = False

    @property
    def is_leaf(self) -> bool:
        return self.slots is None

    @property
    def size(self) -> int:
        if self.slots is not None:
            return len(self.slots)
        return 0 if self.frqs is None else len(self.frqs)


def nominal_stats(frqs: np.ndarray) -> tuple[float, float, int]:
    """Total, misclassified weight and majority class of a distribution."""
    k = int(np.argmax(frqs)) if len(frqs) else 0
    total = float(frqs.sum())
    return total, total - (float(frqs[k]) if len(frqs) else 0.0), k


# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------
class DecisionTree:
    """A decision tree (nominal target) or regression tree (metric target).

    Parameters
    ----------
    attset : AttributeSet
        Attributes the tree refers to.
    target : int
        Column index of the target attribute.
    """

    def __init__(self, attset, target: int):
        self.attset = attset
        self.trgid = int(target)
        att = attset[self.trgid]
        self.nominal = att.is_nominal
        self.clscnt = att.valcnt if self.nominal else 0
        self.nodes: list[Node | None] = []
        self._free: list[int] = []
        self.root: int | None = None
        self._total: float | None = None
        self.height = 0
        self.size = 0
        # attribute scores of an evaluation-only run
        self.evals: np.ndarray | None = None
        self.cuts: np.ndarray | None = None

    @property
    def target(self):
        return self.attset[self.trgid]

    def __getitem__(self, i: int) -> Node:
        return self.nodes[i]

    def __len__(self) -> int:
        return self.size

    # ------------------------------------------------------------------
    # Arena
    # ------------------------------------------------------------------
    def add(self, node: Node) -> int:
        if self._free:
            i = self._free.pop()
            self.nodes[i] = node
            return i
        self.nodes.append(node)
        return len(self.nodes) - 1

    def release(self, i: int) -> None:
        """Return a single node to the arena (children are not touched)."""
        self.nodes[i] = None
        self._free.append(i)

    def new_leaf(self, frqs=None, frq: float = 0.0, err: float = 0.0,
                 mean: float = 0.0) -> int:
        """Create a leaf from class frequencies or from metric statistics."""
        if self.nominal:
            frqs = np.zeros(self.clscnt) if frqs is None else \
                np.asarray(frqs, dtype=float)
            frq, err, trg = nominal_stats(frqs)
            return self.add(Node(self.trgid, frq, err, trg, frqs=frqs))
        return self.add(Node(self.trgid, float(frq), float(err), float(mean)))

    def new_test(self, attid: int, size: int, cut: float = math.nan,
                 like: int | None = None) -> int:
        """Create a test node, copying the statistics of node ``like``."""
        node = Node(attid, cut=cut, slots=[EMPTY] * size)
        if like is not None:
            src = self.nodes[like]
            node.frq, node.err, node.trg = src.frq, src.err, src.trg
        return self.add(node)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------
    def dest(self, i: int, k: int) -> int:
        """Follow the alias chain of slot ``k`` of node ``i`` to its owner."""
        slots = self.nodes[i].slots
        seen = 0
        while isinstance(slots[k], AliasOf):
            k = slots[k].slot
            seen += 1
            if seen > len(slots):
                raise TreeStructureError(f"alias cycle in node {i}")
        return k

    def child(self, i: int, k: int) -> int | None:
        """Child reached through slot ``k`` (aliases followed), or None."""
        slot = self.nodes[i].slots[self.dest(i, k)]
        return slot.node if isinstance(slot, Owned) else None

    def children(self, i: int) -> list[tuple[int, int]]:
        """``(slot, child)`` pairs of the owned slots of node ``i``."""
        slots = self.nodes[i].slots or ()
        return [(k, s.node) for k, s in enumerate(slots) if isinstance(s, Owned)]

    def adapt(self, i: int) -> None:
        """Grow a nominal test node's slot array to the attribute's value count."""
        node = self.nodes[i]
        att = self.attset[node.attid]
        if att.is_nominal and len(node.slots) < att.valcnt:
            node.slots.extend([EMPTY] * (att.valcnt - len(node.slots)))

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------
    def delete(self, i: int | None) -> None:
        """Release the subtree rooted at ``i`` (owned children only)."""
        if i is None:
            return
        stack = [i]
        while stack:
            j = stack.pop()
            stack.extend(c for _, c in self.children(j))
            self.release(j)

    def leaves(self, i: int):
        """Iterate over the leaf indices below node ``i``."""
        stack = [i]
        while stack:
            j = stack.pop()
            if self.nodes[j].is_leaf:
                yield j
            else:
                stack.extend(c for _, c in reversed(self.children(j)))

    def collapse(self, i: int) -> None:
        """Turn the subtree rooted at ``i`` into a single leaf in place."""
        node = self.nodes[i]
        if node.is_leaf:
            return
        if self.nominal:
            frqs = np.zeros(self.clscnt)
            for j in self.leaves(i):
                frqs += self.nodes[j].frqs
            node.frqs = frqs
            node.frq, node.err, node.trg = nominal_stats(frqs)
        for _, c in self.children(i):
            self.delete(c)
        node.attid = self.trgid
        node.slots = None
        node.cut = math.nan

    def aggregate(self) -> float:
        """Recompute the statistics of all test nodes from their leaves.

        Returns the total weight of the tree.
        """
        if self.root is None:
            self._total = 0.0
        else:
            self._aggr(self.root)
            self._total = self.nodes[self.root].frq
        return self._total

    def _aggr(self, i: int) -> np.ndarray:
        node = self.nodes[i]
        if node.is_leaf:
            if self.nominal:
                node.frq, node.err, node.trg = nominal_stats(node.frqs)
                return node.frqs.copy()
            s = node.frq * node.trg
            return np.array([node.frq, s, node.err + s * node.trg])
        buf = np.zeros(self.clscnt if self.nominal else 3)
        for _, c in self.children(i):
            buf += self._aggr(c)
        if self.nominal:
            node.frq, node.err, node.trg = nominal_stats(buf)
        else:
            mean = buf[1] / (buf[0] if buf[0] > 0 else 1.0)
            node.frq = float(buf[0])
            node.err = float(buf[2] - mean * buf[1])
            node.trg = float(mean)
        return buf

    @property
    def total(self) -> float:
        """Total weight of the cases the tree was built from."""
        if self._total is None:
            return self.aggregate()
        return self._total

    @total.setter
    def total(self, value: float | None) -> None:
        self._total = value

    def count(self) -> tuple[int, int]:
        """Recompute and return ``(height, size)`` (levels and node count)."""
        def rec(i):
            h, n = 0, 1
            for _, c in self.children(i):
                ch, cn = rec(c)
                h = max(h, ch)
                n += cn
            return h + 1, n
        self.height, self.size = rec(self.root) if self.root is not None \
            else (0, 0)
        return self.height, self.size

    def used_attributes(self) -> set[int]:
        """Indices of the attributes tested anywhere in the tree."""
        used = set()
        if self.root is not None:
            stack = [self.root]
            while stack:
                j = stack.pop()
                if not self.nodes[j].is_leaf:
                    used.add(self.nodes[j].attid)
                    stack.extend(c for _, c in self.children(j))
        return used

    def depth_of_leaves(self) -> list[int]:
        """Zero-based depth of every leaf."""
        out = []
        if self.root is None:
            return out
        stack = [(self.root, 0)]
        while stack:
            j, d = stack.pop()
            if self.nodes[j].is_leaf:
                out.append(d)
            else:
                stack.extend((c, d + 1) for _, c in self.children(j))
        return out

    # ------------------------------------------------------------------
    # Validation / copying
    # ------------------------------------------------------------------
    def check_node(self, i: int) -> Node:
        """Return node ``i`` after checking it against the attribute set."""
        node = self.nodes[i] if 0 <= i < len(self.nodes) else None
        if node is None:
            raise TreeStructureError(f"dangling node reference {i}")
        if node.is_leaf:
            if self.nominal and (node.frqs is None
                                 or len(node.frqs) != self.clscnt):
                raise TreeStructureError(
                    f"leaf {i} does not match the {self.clscnt} classes "
                    f"of target {self.target.name!r}")
            return node
        if not 0 <= node.attid < len(self.attset) or node.attid == self.trgid:
            raise TreeStructureError(f"node {i} tests an invalid attribute")
        att = self.attset[node.attid]
        size = len(node.slots)
        if att.is_nominal:
            if size > att.valcnt:
                raise TreeStructureError(
                    f"node {i} has {size} slots but attribute {att.name!r} "
                    f"has only {att.valcnt} values")
        elif size != 2 or math.isnan(node.cut):
            raise TreeStructureError(
                f"node {i} is not a valid cut test on {att.name!r}")
        for k, slot in enumerate(node.slots):
            if isinstance(slot, AliasOf):
                if not 0 <= slot.slot < size or slot.slot == k:
                    raise TreeStructureError(f"node {i} has a bad alias")
                self.dest(i, k)
        return node

    def validate(self) -> None:
        """Check every reachable node; raise :class:`TreeStructureError`."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            j = stack.pop()
            self.check_node(j)
            stack.extend(c for _, c in self.children(j))

    def copy(self) -> "DecisionTree":
        """Deep copy of the node graph (the attribute set is shared)."""
        dup = copy.copy(self)
        dup.nodes = copy.deepcopy(self.nodes)
        dup._free = list(self._free)
        if self.evals is not None:
            dup.evals = self.evals.copy()
            dup.cuts = self.cuts.copy()
        return dup

    def __repr__(self) -> str:
        kind = "decision" if self.nominal else "regression"
        return (f"DecisionTree({kind}, target={self.target.name!r}, "
                f"height={self.height}, size={self.size})")
