# -*- coding: utf-8 -*-
"""
dtreepy.pruner
==============

Post-pruning of decision and regression trees.

Two modes are available:

* without a table, the statistics stored in the nodes are used; a subtree is
  replaced by a leaf if the estimated error of the leaf does not exceed the
  estimated error of the subtree (and, for binary nominal targets, if none
  of its leaves is selected by the frequency threshold);
* with a table, the tuples are passed down the tree again.  Every node is
  re-estimated from the tuples that reach it, empty branches are removed,
  slots that now receive tuples get new leaves, and optionally the largest
  branch of a node is tried as a replacement of the node itself.

Error estimates are pessimistic: either a fixed number of added errors
(``PESS``) or the upper bound of a confidence interval (``CLVL``).
"""

from __future__ import annotations

import logging
import math
import sys
from enum import IntEnum

import numpy as np

from .attributes import FLOAT
from .frqtab import FrequencyTable
from .grower import make_leaf
from .model import EMPTY, AliasOf, Owned
from .tuples import TupleSpan
from .vartab import VariationTable

logger = logging.getLogger(__name__)

EPSILON = 1e-6      # relative tolerance of error comparisons
MAXFACT = 1e6       # bound of the metric confidence level factor


class PruneMethod(IntEnum):
    NONE = 0        # no error based pruning
    PESS = 1        # pessimistic: fixed number of added errors
    CLVL = 2        # upper bound of a confidence interval


# -----------------------------------------------------------------------------
# Error estimation
# -----------------------------------------------------------------------------
def _norm_ppf(p: float) -> float:
    """Approximate inverse CDF of standard normal (Acklam's approximation)."""
    p = min(max(p, 1e-12), 1 - 1e-12)
    a = [-3.969683028665376e+01, 2.209460984245205e+02,
         -2.759285104469687e+02, 1.383577518672690e+02,
         -3.066479806614716e+01, 2.506628277459239e+00]
    b = [-5.447609879822406e+01, 1.615858368580409e+02,
         -1.556989798598866e+02, 6.680131188771972e+01,
         -1.328068155288572e+01]
    c = [-7.784894002430293e-03, -3.223964580411365e-01,
         -2.400758277161838e+00, -2.549732539343734e+00,
         4.374664141464968e+00, 2.938163982698783e+00]
    d = [7.784695709041462e-03, 3.224671290700398e-01,
         2.445134137142996e+00, 3.754408661907416e+00]
    plow = 0.02425
    if p < plow:
        q = math.sqrt(-2 * math.log(p))
        return (((((c[0]*q + c[1])*q + c[2])*q + c[3])*q + c[4])*q + c[5]) / \
               ((((d[0]*q + d[1])*q + d[2])*q + d[3])*q + 1)
    if 1 - plow < p:
        q = math.sqrt(-2 * math.log(1 - p))
        return -(((((c[0]*q + c[1])*q + c[2])*q + c[3])*q + c[4])*q + c[5]) / \
                ((((d[0]*q + d[1])*q + d[2])*q + d[3])*q + 1)
    q = p - 0.5
    r = q * q
    return (((((a[0]*r + a[1])*r + a[2])*r + a[3])*r + a[4])*r + a[5])*q / \
           (((((b[0]*r + b[1])*r + b[2])*r + b[3])*r + b[4])*r + 1)


def _clamp_level(c: float) -> float:
    if c <= 0:
        return sys.float_info.min
    if c >= 1:
        return 1 - sys.float_info.epsilon
    return c


def nominal_pessimistic(param: float):
    """Estimator adding ``param`` errors to a leaf, at most ``n``."""
    adderr = max(param, 0.0)

    def est(n: float, e: float) -> float:
        return min(e + adderr, n)
    return est


def nominal_confidence(level: float):
    """Upper bound of the binomial confidence interval for the error count.

    Parameters
    ----------
    level : float
        Confidence level in (0, 1); ``0.25`` is the classic C4.5 setting.
    """
    beta = 0.5 * (1 - _clamp_level(level))
    z2 = _norm_ppf(beta) ** 2

    def est(n: float, e: float) -> float:
        if z2 <= 0:
            return e
        if e < EPSILON:
            return n * (1 - beta ** (1 / n)) if n > 0 else 0.0
        if e < 1:
            t0 = est(n, 0.0)
            return t0 + e * (est(n, 1.0) - t0)
        s = max(z2 * (e * (1 - e / n) + z2 / 4), 0.0)
        t0 = n * (e + z2 / 2 + math.sqrt(s)) / (n + z2)
        return max(e, t0)
    return est


def metric_pessimistic(param: float):
    """Estimator adding ``param`` to the sum of squared errors."""
    adderr = max(param, 0.0)

    def est(n: float, e: float) -> float:
        return e + adderr
    return est


def metric_confidence(level: float):
    # Coarse upper bound of the variance via chi^2_p ~ (sqrt(2n) + z_p)^2 / 2.
    z = _norm_ppf(0.5 * (1 - _clamp_level(level)))

    def est(n: float, e: float) -> float:
        t0 = 2 * n
        t1 = math.sqrt(t0) + z
        t1 = t0 / MAXFACT if t1 <= 0 else t1 * t1
        return min(t0 / t1, MAXFACT) * e
    return est


def make_estimator(method, param: float, nominal: bool):
    """Error estimation function ``est(n, e)`` for a method, or None."""
    method = PruneMethod(method)
    if method == PruneMethod.PESS:
        return (nominal_pessimistic if nominal else metric_pessimistic)(param)
    if method == PruneMethod.CLVL:
        return (nominal_confidence if nominal else metric_confidence)(param)
    return None


# -----------------------------------------------------------------------------
# Pruner
# -----------------------------------------------------------------------------
class _Pruner:

    def __init__(self, tree, est, maxht: int, check_largest: bool,
                 threshold: float):
        self.tree = tree
        self.est = est
        self.maxht = maxht - 1 if maxht > 0 else sys.maxsize
        self.chklb = check_largest
        self.thsel = threshold
        if tree.nominal:
            self.tab = FrequencyTable(1, tree.clscnt)
        else:
            self.tab = VariationTable(1)

    def _estimate(self, i: int) -> float:
        node = self.tree[i]
        return self.est(node.frq, node.err) if self.est else 0.0

    # ------------------------------------------------------------------
    # Pruning with the node statistics
    # ------------------------------------------------------------------
    def prune(self, i: int) -> float:
        """Prune the subtree rooted at ``i`` in place; returns its error."""
        tree = self.tree
        node = tree[i]
        e_leaf = self._estimate(i)
        node.selected = False
        if node.is_leaf:
            if self.thsel != 0:
                f = node.frqs[0] + node.frqs[1]
                f = node.frqs[0] / (f if f > 0 else 1)
                node.selected = (self.thsel > 0 and f >= self.thsel) \
                    or (self.thsel < 0 and f <= -self.thsel)
            return e_leaf
        if self.maxht <= 0:
            tree.collapse(i)
            return e_leaf
        self.maxht -= 1
        e_tree = 0.0
        for _, c in reversed(tree.children(i)):
            e_tree += self.prune(c)
            node.selected = node.selected or tree[c].selected
        self.maxht += 1
        if (self.thsel != 0 and not node.selected) \
                or (self.est and e_leaf < e_tree * (1 + EPSILON)):
            logger.debug("collapse node %d (leaf %.6g <= subtree %.6g)",
                         i, e_leaf, e_tree)
            tree.collapse(i)
            return e_leaf
        return e_tree

    # ------------------------------------------------------------------
    # Pruning with a table
    # ------------------------------------------------------------------
    def _leaf(self, span: TupleSpan) -> int:
        tree = self.tree
        tab = self.tab
        n = len(span)
        y = span.values(tree.trgid)
        if tree.nominal:
            tab.init(1, tree.clscnt)
            tab.add(np.zeros(n, dtype=np.intp), y.astype(np.intp),
                    span.weights())
            tab.marginalize()
        else:
            tab.init(1)
            tab.add(np.zeros(n, dtype=np.intp), y, span.weights())
            tab.calculate()
        return make_leaf(tree, tab, 0)

    def _slot_child(self, i: int, m: int):
        slot = self.tree[i].slots[m]
        return slot.node if isinstance(slot, Owned) else None

    def _set_child(self, i: int, m: int, child) -> None:
        self.tree[i].slots[m] = EMPTY if child is None else Owned(child)

    def _drop_child(self, i: int, m: int) -> None:
        child = self._slot_child(i, m)
        if child is not None:
            self.tree.delete(child)
            self.tree[i].slots[m] = EMPTY

    def prune_table(self, i, span: TupleSpan, execute: bool):
        """Re-estimate the subtree ``i`` with the tuples of ``span``.

        Returns ``(node, error)``.  With ``execute`` false the tree is not
        changed and the error is the best achievable one.
        """
        tree = self.tree
        if len(span) <= 0:
            leaf, e_leaf = None, 0.0
        else:
            leaf = self._leaf(span)
            e_leaf = self._estimate(leaf)
        if leaf is None or i is None or tree[i].is_leaf or self.maxht <= 0:
            if not execute:
                if leaf is not None:
                    tree.release(leaf)
                return i, e_leaf
            tree.delete(i)
            return leaf, e_leaf

        tree.adapt(i)
        node = tree[i]
        lf = tree[leaf]
        if execute:
            node.frq, node.trg, node.err = lf.frq, lf.trg, lf.err
        frq = lf.frq
        col = node.attid
        e_tree = 0.0
        lbcnt, lbslot = -1.0, -1
        self.maxht -= 1

        att = tree.attset[col]
        if att.is_nominal:
            g = span.group_null(col)
            t0 = frq = frq - span.sub(0, g).total()
            rest = span
            for m in range(node.size):
                if isinstance(node.slots[m], AliasOf):
                    continue
                ids = [m] + [k for k, s in enumerate(node.slots)
                             if isinstance(s, AliasOf) and tree.dest(i, k) == m]
                k = rest.sub(g).group_values(col, ids)
                t1 = rest.sub(g, g + k).total()
                if t1 < EPSILON:
                    if execute:
                        self._drop_child(i, m)
                    continue
                if g > 0:
                    rest.sub(0, g).scale(t1 / t0)
                    t0 = t1
                child, e = self.prune_table(self._slot_child(i, m),
                                            rest.sub(0, g + k), execute)
                self._set_child(i, m, child)
                e_tree += e
                if t1 > lbcnt:
                    lbcnt, lbslot = t1, m
                rest.sub(0, g + k).group_values(col, ids)
                rest = rest.sub(k)
            if g > 0:
                rest.sub(0, g).scale(frq / t0)
        else:
            integer = att.type != FLOAT
            k = span.group_greater(col, node.cut, integer)
            t1 = span.sub(0, k).total()
            g = span.sub(k).group_null(col)
            t0 = frq = frq - span.sub(k, k + g).total()
            lbcnt = t0 - t1
            if lbcnt < EPSILON:
                if execute:
                    self._drop_child(i, 0)
            else:
                if g > 0:
                    span.sub(k, k + g).scale(lbcnt / t0)
                    t0 = lbcnt
                child, e = self.prune_table(self._slot_child(i, 0),
                                            span.sub(k), execute)
                self._set_child(i, 0, child)
                e_tree += e
                lbslot = 0
                if g > 0:
                    span.sub(k).group_null(col)
            if t1 < EPSILON:
                if execute:
                    self._drop_child(i, 1)
            else:
                if g > 0:
                    span.sub(k, k + g).scale(t1 / t0)
                    t0 = t1
                child, e = self.prune_table(self._slot_child(i, 1),
                                            span.sub(0, k + g), execute)
                self._set_child(i, 1, child)
                e_tree += e
                if t1 > lbcnt:
                    lbslot = 1
                if g > 0:
                    span.sub(0, k + g).group_null(col)
                    k = 0
            if g > 0:
                span.sub(k, k + g).scale(frq / t0)
        self.maxht += 1

        if not self.est:
            tree.release(leaf)
            return i, e_tree

        lbra = self._slot_child(i, lbslot) if lbslot >= 0 else None
        if not self.chklb or lbra is None or tree[lbra].is_leaf:
            e_bran = e_leaf
        else:
            _, e_bran = self.prune_table(lbra, span, False)

        if not execute:
            tree.release(leaf)
            err = e_leaf
            if e_tree * (1 + EPSILON) < err:
                err = e_tree
            if e_bran * (1 + EPSILON) < err:
                err = e_bran
            return i, err
        if e_bran * (1 + EPSILON) < e_leaf and e_bran * (1 - EPSILON) < e_tree:
            logger.debug("replace node %d by its largest branch %d", i, lbra)
            for _, c in tree.children(i):
                if c != lbra:
                    tree.delete(c)
            tree.release(i)
            i, e_tree = self.prune_table(lbra, span, True)
        if e_leaf < e_tree * (1 + EPSILON):
            logger.debug("collapse node %d (leaf %.6g <= subtree %.6g)",
                         i, e_leaf, e_tree)
            tree.delete(i)
            return leaf, e_leaf
        tree.release(leaf)
        return i, e_tree


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------
def _adapt_classes(tree) -> None:
    """Widen the class frequency vectors if the target gained values."""
    clscnt = tree.target.valcnt
    if clscnt <= tree.clscnt:
        return
    pad = clscnt - tree.clscnt
    for node in tree.nodes:
        if node is not None and node.frqs is not None:
            node.frqs = np.concatenate((node.frqs, np.zeros(pad)))
    tree.clscnt = clscnt


def prune(tree, method=PruneMethod.CLVL, param: float = 0.5, maxht: int = 0,
          check_largest: bool = False, threshold: float = 0.0, table=None):
    """Prune a tree.

    Parameters
    ----------
    tree : DecisionTree
        The tree to prune; it is replaced by the pruned tree on success.
    method : PruneMethod or str, default=PruneMethod.CLVL
        Error estimation method (``"none"``, ``"pess"`` or ``"clvl"``).
    param : float, default=0.5
        Added errors (``PESS``) or confidence level (``CLVL``).
    maxht : int, default=0
        Maximal height of the pruned tree (0 = unlimited).
    check_largest : bool, default=False
        Try to replace a node by its largest branch (table pruning only).
    threshold : float, default=0.0
        Leaf selection threshold on the first-class fraction (binary
        nominal targets only); 0 disables selection.
    table : Table, optional
        Tuples to prune with.  Its columns must match the tree's attributes.

    Returns
    -------
    DecisionTree
        ``tree`` itself.
    """
    if isinstance(method, str):
        try:
            method = PruneMethod[method.upper()]
        except KeyError:
            raise ValueError(f"unknown pruning method {method!r}") from None
    else:
        try:
            method = PruneMethod(int(method))
        except ValueError:
            raise ValueError(f"unknown pruning method {method!r}") from None

    work = tree.copy()
    if work.nominal:
        _adapt_classes(work)
    est = make_estimator(method, float(param), work.nominal)
    pruner = _Pruner(work, est, int(maxht), bool(check_largest), 0.0)
    if work.root is not None and work.nominal and work.clscnt == 2:
        pruner.thsel = float(threshold)
    if table is None:
        if work.root is not None:
            work.total = None
            work.aggregate()
            pruner.prune(work.root)
    else:
        span = TupleSpan.from_table(table, work.trgid)
        work.root, _ = pruner.prune_table(work.root, span, True)

    tree.nodes, tree._free = work.nodes, work._free
    tree.root, tree.clscnt = work.root, work.clscnt
    tree.total = tree[tree.root].frq if tree.root is not None else 0.0
    tree.count()
    logger.debug("pruned tree: %d level(s), %d node(s)",
                 tree.height, tree.size)
    return tree
