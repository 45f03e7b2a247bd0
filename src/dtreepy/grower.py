# -*- coding: utf-8 -*-
"""
dtreepy.grower
==============

Top-down induction of decision and regression trees.

:func:`grow` partitions the tuples of a table recursively.  At every node
each usable attribute is scored with a split evaluation measure over an
aggregation table (a :class:`~dtreepy.frqtab.FrequencyTable` for nominal
targets, a :class:`~dtreepy.vartab.VariationTable` for metric ones); the
best attribute becomes the test of the node.  Nominal attributes are split
into one branch per value, one value against the rest, or greedily merged
value subsets; metric attributes are cut at the best threshold found by a
sweep over the sorted values.

Tuples with a missing value of the test attribute are passed to every
branch with their weight scaled by the fraction of known weight the branch
receives, so the total weight below a node always equals the node's weight.
A freshly grown subtree is discarded again if it does not reduce the error
of the leaf it replaces (trivial pruning).
"""

from __future__ import annotations

import logging
import math
import sys
from enum import IntFlag

import numpy as np

from .attributes import FLOAT
from .frqtab import FrequencyTable
from .measures import (FrequencyMeasure, VariationMeasure, describe_measure,
                       measure_by_name)
from .model import AliasOf, DecisionTree, Owned
from .tuples import TupleSpan
from .vartab import VariationTable

logger = logging.getLogger(__name__)

EPSILON = 1e-6          # relative tolerance and minimal branch weight
WORTHLESS = -math.inf   # score of an unusable split
MINERROR = 0.1          # a nominal leaf with less error is not split


class GrowFlags(IntFlag):
    """Options of :func:`grow`."""

    EVAL = 0x01         # only score the attributes at the root
    ONE_IN_N = 0x02     # binary splits: one value against the rest
    SUBSET = 0x04       # greedy value subset search
    BINARY = 0x08       # force exactly two value subsets
    DUPAS = 0x10        # bind the tree to a copy of the attribute set
    NOPRUNE = 0x20      # keep subtrees that do not reduce the error


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _codes(values: np.ndarray) -> np.ndarray:
    """Nominal value identifiers with -1 for missing values."""
    return np.where(np.isnan(values), -1, values).astype(np.intp)


def resolve_measure(measure, metric: bool):
    """Measure enumeration member from a name, code or member."""
    if measure is None:
        return VariationMeasure.RMSE if metric else FrequencyMeasure.INFGR
    if isinstance(measure, str):
        return measure_by_name(measure, metric)
    return VariationMeasure(measure) if metric else FrequencyMeasure(measure)


def make_leaf(tree: DecisionTree, tab, x: int) -> int:
    """Create a leaf from column ``x`` of a filled aggregation table.

    Cases with an unknown split value are added to the leaf with the
    fraction of the known weight that column ``x`` holds.
    """
    if tree.nominal:
        yc = tab.ycnt
        frqs = tab.frq_xy[x, :yc].copy()
        if tab.frq_x[-1] > 0:
            wgt = tab.frq_x[x] / tab.known if tab.known > 0 \
                else 1.0 / tab.xcnt
            frqs += wgt * tab.frq_xy[-1, :yc]
        return tree.new_leaf(frqs)
    frq = tab.col_frq[x]
    null = tab.col_frq[-1]
    if null <= 0:
        f, err, mean = frq, tab.col_sse[x], tab.col_mean[x]
    else:
        wgt = frq / tab.known if tab.known > 0 else 1.0 / tab.cnt
        null *= wgt
        err = tab.col_ssv[x] + wgt * tab.col_ssv[-1]
        f = frq + null
        mean = (frq * tab.col_mean[x] + null * tab.col_mean[-1]) / f
        err -= f * mean * mean
    return tree.new_leaf(frq=f, err=max(err, 0.0), mean=mean)


# -----------------------------------------------------------------------------
# Grower
# -----------------------------------------------------------------------------
class _Grower:
    """Per-call state of a tree induction."""

    def __init__(self, tree: DecisionTree, measure, params, weighted, minval,
                 maxht, mincnt, flags, usable):
        self.tree = tree
        self.attset = tree.attset
        self.trgid = tree.trgid
        self.nominal = tree.nominal
        self.measure = measure
        self.params = params
        self.weighted = weighted
        self.minval = minval
        self.maxht = maxht - 1 if maxht > 0 else sys.maxsize
        self.mincnt = mincnt if mincnt > 0 else EPSILON
        self.minerr = MINERROR if self.nominal else -1.0
        self.flags = GrowFlags(flags)
        # True marks attributes that may not (or no longer) be tested
        self.used = ~usable
        make = FrequencyTable if self.nominal else VariationTable
        self.curr, self.best, self.mett = make(), make(), make()
        if self.flags & GrowFlags.EVAL:
            n = len(self.attset)
            tree.evals = np.full(n, WORTHLESS)
            tree.cuts = np.full(n, math.nan)

    # ------------------------------------------------------------------
    # Aggregation tables
    # ------------------------------------------------------------------
    def _init(self, tab, xcnt: int) -> None:
        if self.nominal:
            tab.init(xcnt, self.tree.clscnt)
        else:
            tab.init(xcnt)

    def _finish(self, tab) -> None:
        if self.nominal:
            tab.marginalize()
        else:
            tab.calculate()

    def _targets(self, span: TupleSpan) -> np.ndarray:
        y = span.values(self.trgid)
        return y.astype(np.intp) if self.nominal else y

    def _fill(self, tab, span: TupleSpan, x: np.ndarray, xcnt: int):
        self._init(tab, xcnt)
        tab.add(x, self._targets(span), span.weights())
        self._finish(tab)
        return tab

    def _weights(self, tab) -> np.ndarray:
        if self.nominal:
            return tab.frq_x[:tab.xcnt]
        return tab.col_frq[:tab.cnt]

    def _score(self, tab) -> float:
        v = tab.evaluate(self.measure, self.params, self.weighted)
        return WORTHLESS if math.isnan(v) else v

    def _leaf(self, tab, x: int) -> int:
        return make_leaf(self.tree, tab, x)

    # ------------------------------------------------------------------
    # Split evaluation: nominal attributes
    # ------------------------------------------------------------------
    def _eval_nominal(self, span: TupleSpan, col: int) -> float:
        if self.flags & GrowFlags.ONE_IN_N:
            return self._eval_bin(span, col)
        if self.flags & GrowFlags.SUBSET:
            return self._eval_set(span, col)
        valcnt = self.attset[col].valcnt
        tab = self._fill(self.curr, span, _codes(span.values(col)), valcnt)
        if np.count_nonzero(self._weights(tab) >= self.mincnt) < 2:
            return WORTHLESS
        return self._score(tab)

    def _eval_bin(self, span: TupleSpan, col: int) -> float:
        """Best split of one value against all others."""
        valcnt = self.attset[col].valcnt
        x = _codes(span.values(col))
        tab = self.curr
        best, k = WORTHLESS, -1
        for i in range(valcnt):
            xb = np.where(x == i, 1, np.where(x < 0, -1, 0))
            self._fill(tab, span, xb, 2)
            w = self._weights(tab)
            if w[0] < self.mincnt or w[1] < self.mincnt:
                continue
            curr = self._score(tab)
            if curr > best:
                best, k = curr, i
        if k < 0:
            return WORTHLESS
        self._fill(tab, span, x, valcnt)
        val = 1 if k <= 0 else 0
        for i in range(valcnt):
            if i != k and i != val:
                tab.combine(i, val)
        return best

    def _eval_set(self, span: TupleSpan, col: int) -> float:
        """Greedy bottom-up merging of value subsets."""
        valcnt = self.attset[col].valcnt
        tab = self._fill(self.curr, span, _codes(span.values(col)), valcnt)
        binary = bool(self.flags & GrowFlags.BINARY)
        mincnt = self.mincnt
        sets: list[int] = []
        imax, fmax, rtscnt = 0, 0.0, 0
        for i in range(valcnt):
            if tab.dest(i) != i:
                continue
            fdst = tab.column_weight(i)
            if fdst <= 0:
                continue
            sets.append(i)
            if self.nominal:
                fdst += self._merge_single_class(tab, i, fdst)
            if fdst > fmax:
                fmax, imax = fdst, len(sets) - 1
            if fdst >= mincnt:
                rtscnt += 1

        prev = self._score(tab)
        if len(sets) <= 2:
            return prev if rtscnt >= 2 else WORTHLESS
        while True:
            best, isrc, idst = WORTHLESS, 0, 0
            for i in range(len(sets)):
                if rtscnt <= 2 and i == imax:
                    continue
                for k in range(i + 1, len(sets)):
                    if rtscnt <= 2 and k == imax:
                        continue
                    tab.combine(sets[k], sets[i])
                    curr = self._score(tab)
                    tab.uncombine(sets[k])
                    if curr > best:
                        best, isrc, idst = curr, k, i
            if best <= WORTHLESS:
                break
            if binary:
                if len(sets) <= 2:
                    break
            elif best < prev:
                break
            prev = best
            if tab.column_weight(sets[isrc]) >= mincnt:
                rtscnt -= 1
            if tab.column_weight(sets[idst]) >= mincnt:
                rtscnt -= 1
            tab.combine(sets[isrc], sets[idst])
            fdst = tab.column_weight(sets[idst])
            if fdst >= mincnt:
                rtscnt += 1
            if fdst >= fmax:
                fmax, imax = fdst, idst
            if imax > isrc:
                imax -= 1
            del sets[isrc]
        if rtscnt < 2 or (binary and len(sets) > 2):
            return WORTHLESS
        return prev

    def _merge_single_class(self, tab, i: int, fdst: float) -> float:
        """Combine later values that hold only the single class of value i.

        Returns the weight added to value ``i``.
        """
        added = 0.0
        for cls in reversed(range(tab.ycnt)):
            if tab.frq_xy[i, cls] < fdst * (1 - EPSILON):
                if tab.frq_xy[i, cls] > EPSILON:
                    break
                continue
            for k in range(i + 1, tab.xcnt):
                fsrc = tab.frq_x[k]
                if fsrc <= 0:
                    continue
                if tab.frq_xy[k, cls] >= fsrc * (1 - EPSILON):
                    tab.combine(k, i)
                    added += fsrc
            break
        return added

    # ------------------------------------------------------------------
    # Split evaluation: metric attributes
    # ------------------------------------------------------------------
    def _eval_metric(self, span: TupleSpan, col: int) -> tuple[float, float]:
        """Best cut of a metric attribute; returns ``(score, cut)``.

        The tuples are sorted by value and one dividing point sweeps over
        them; the best scoring table is copied to ``curr``.  Ties keep the
        earliest cut.
        """
        integer = self.attset[col].type != FLOAT
        nnull = span.sort_by(col)
        n = len(span)
        if n - nnull <= 1:
            return WORTHLESS, math.nan
        vals = span.values(col)
        wgts = span.weights()
        ys = self._targets(span)
        tab = self.mett
        self._init(tab, 2)
        if nnull:
            tab.add(-1, ys[:nnull], wgts[:nnull])
        i, s = nnull, 0.0
        while True:
            if i + 1 >= n:
                return WORTHLESS, math.nan
            tab.add(0, ys[i], wgts[i])
            s += wgts[i]
            i += 1
            if s >= self.mincnt:
                break
        tab.add(1, ys[i:], wgts[i:])
        self._finish(tab)
        s = tab.column_weight(1)
        if s < self.mincnt:
            return WORTHLESS, math.nan

        best, cut = WORTHLESS, math.nan
        pval = vals[i - 1]
        while True:
            val = vals[i]
            if (val > pval) if integer else (0.5 * (pval + val) > pval):
                curr = self._score(tab)
                if curr > best:
                    best = curr
                    self.curr.copy_from(tab)
                    cut = 0.5 * (val + pval)
            if i + 1 >= n:
                break
            s -= wgts[i]
            if s < self.mincnt:
                break
            tab.move(1, 0, ys[i], wgts[i])
            pval = val
            i += 1
        return best, cut

    # ------------------------------------------------------------------
    # Recursion
    # ------------------------------------------------------------------
    def grow_root(self, span: TupleSpan) -> None:
        tab = self._fill(self.mett, span, np.zeros(len(span), dtype=np.intp), 1)
        if tab.known <= 0:
            return
        tree = self.tree
        tree.root = self._leaf(tab, 0)
        if self.flags & GrowFlags.EVAL:
            self.maxht = max(self.maxht, 1)
        if self.maxht > 0 and self.measure != 0:
            tree.root, _ = self._grow(tree.root, span)

    def _grow(self, leaf: int, span: TupleSpan) -> tuple[int, float]:
        """Grow the subtree for ``leaf``; returns ``(node, error)``."""
        tree = self.tree
        node = tree[leaf]
        if node.frq < 2 * self.mincnt or node.err < self.minerr \
                or self.maxht <= 0:
            return leaf, node.err

        best, col, cut = WORTHLESS, -1, math.nan
        evaluating = bool(self.flags & GrowFlags.EVAL)
        for i, att in enumerate(self.attset):
            if self.used[i]:
                continue
            if att.is_nominal:
                curr, c = self._eval_nominal(span, i), math.nan
            else:
                curr, c = self._eval_metric(span, i)
            if evaluating:
                tree.evals[i] = curr
                tree.cuts[i] = 0.0 if att.is_nominal else c
            if curr <= best:
                continue
            best, col, cut = curr, i, c
            self.best, self.curr = self.curr, self.best
        if evaluating or col < 0 or best < self.minval:
            return leaf, node.err

        att = self.attset[col]
        logger.debug("split on %r (%s = %.6g) at weight %.6g",
                     att.name, describe_measure(self.measure, self.weighted),
                     best, node.frq)
        tab = self.best
        size = att.valcnt if att.is_nominal else 2
        test = tree.new_test(col, size, cut, like=leaf)
        slots = tree[test].slots
        knowns = [0.0] * size
        for m in range(size):
            d = tab.dest(m)
            if d != m:
                slots[m] = AliasOf(d)
            elif tab.column_weight(m) >= EPSILON:
                slots[m] = Owned(self._leaf(tab, m))
                knowns[m] = tab.column_weight(m)
        known = tab.known

        self.maxht -= 1
        if att.is_nominal:
            err = self._branch_nominal(test, span, col, knowns, known)
        else:
            err = self._branch_metric(test, span, col, knowns, known)
        self.maxht += 1

        if not (self.flags & GrowFlags.NOPRUNE) \
                and node.err < err * (1 + EPSILON):
            tree.delete(test)
            return leaf, node.err
        tree.release(leaf)
        return test, err

    def _branch_nominal(self, test, span, col, knowns, known) -> float:
        tree = self.tree
        # a full split exhausts the attribute for the whole subtree
        exhaust = not self.flags & (GrowFlags.SUBSET | GrowFlags.ONE_IN_N)
        self.used[col] = exhaust
        slots = tree[test].slots
        g = span.group_null(col)
        frq = known
        err = 0.0
        rest = span
        for m in reversed(range(len(slots))):
            if not isinstance(slots[m], Owned):
                continue
            ids = [m] + [k for k, s in enumerate(slots)
                         if isinstance(s, AliasOf) and tree.dest(test, k) == m]
            r = rest.sub(g).group_values(col, ids)
            if g > 0:
                rest.sub(0, g).scale(knowns[m] / frq)
                frq = knowns[m]
            child, e = self._grow(slots[m].node, rest.sub(0, r + g))
            slots[m] = Owned(child)
            err += e
            rest.sub(0, r + g).group_values(col, ids)
            rest = rest.sub(r)
        if g > 0:
            rest.sub(0, g).scale(known / frq)
        self.used[col] = False
        return err

    def _branch_metric(self, test, span, col, knowns, known) -> float:
        tree = self.tree
        node = tree[test]
        slots = node.slots
        integer = self.attset[col].type != FLOAT
        r = span.group_greater(col, node.cut, integer)
        g = span.sub(r).group_null(col)
        frq = known
        err = 0.0
        if isinstance(slots[0], Owned):
            if g > 0:
                span.sub(r, r + g).scale(knowns[0] / frq)
                frq = knowns[0]
            child, e = self._grow(slots[0].node, span.sub(r))
            slots[0] = Owned(child)
            err += e
            if g > 0:
                span.sub(r).group_null(col)
        if isinstance(slots[1], Owned):
            if g > 0:
                span.sub(r, r + g).scale(knowns[1] / frq)
                frq = knowns[1]
            child, e = self._grow(slots[1].node, span.sub(0, r + g))
            slots[1] = Owned(child)
            err += e
            if g > 0:
                span.sub(0, r + g).group_null(col)
                if frq != known:
                    span.sub(0, g).scale(known / frq)
                return err
        if g > 0 and frq != known:
            span.sub(r, r + g).scale(known / frq)
        return err


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------
def grow(table, target, measure=None, params=None, weighted: bool = False,
         minval: float = -math.inf, maxht: int = 0, mincnt: float = 2.0,
         flags: GrowFlags | int = 0, attributes=None) -> DecisionTree:
    """Grow a decision tree (nominal target) or regression tree (metric target).

    Parameters
    ----------
    table : Table
        Training tuples; only tuples with a known target value are used.
    target : int or str
        Target attribute (column index or name).
    measure : str, int or measure enum, optional
        Split evaluation measure; ``"infgr"`` for nominal and ``"rmse"`` for
        metric targets by default.
    params : sequence of float, optional
        Measure parameters (sensitivity, prior, exponent).
    weighted : bool, default=False
        Weight the measure with the fraction of known split values.
    minval : float, default=-inf
        Minimal measure value of a split.
    maxht : int, default=0
        Maximal number of levels (0 = unlimited).
    mincnt : float, default=2.0
        Minimal weight of at least two branches.
    flags : GrowFlags, default=0
        Split policy and other options.
    attributes : iterable of int or str, optional
        Attributes that may be tested (all non-target attributes by default).

    Returns
    -------
    DecisionTree
        The grown tree.  In evaluation-only mode the tree holds just the root
        leaf and the attribute scores in ``evals``/``cuts``.
    """
    flags = GrowFlags(int(flags))
    attset = table.attset
    trgid = attset.index(target) if isinstance(target, str) else int(target)
    if not 0 <= trgid < len(attset):
        raise ValueError(f"target column {target!r} out of range")
    if flags & GrowFlags.DUPAS:
        attset = attset.copy()
    tree = DecisionTree(attset, trgid)
    measure = resolve_measure(measure, not tree.nominal)

    usable = np.zeros(len(attset), dtype=bool)
    if attributes is None:
        usable[:] = True
    else:
        for a in attributes:
            usable[attset.index(a) if isinstance(a, str) else int(a)] = True
    usable[trgid] = False

    grower = _Grower(tree, measure,
                     None if params is None else [float(p) for p in params],
                     bool(weighted), float(minval), int(maxht), float(mincnt),
                     flags, usable)
    span = TupleSpan.from_table(table, trgid)
    grower.grow_root(span)
    tree.total = tree[tree.root].frq if tree.root is not None else 0.0
    tree.count()
    logger.debug("grown tree: %d level(s), %d node(s), weight %g",
                 tree.height, tree.size, tree.total)
    return tree
