# -*- coding: utf-8 -*-
"""
dtreepy.executor
================

Classify or predict a single tuple with a grown tree.

The tuple walks down from the root.  At a test node the slot matching the
tuple's value is followed (aliases resolved to the owning slot).  When the
value is unknown, or equals the cut of a metric test, the walk fans out
over every child and the partial results are summed.  When the value has
no child (a nominal value never seen below this node) the statistics of the
node itself are used, scaled by a small fallback weight, so that a tuple
that can be routed to a child always dominates one that cannot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

FALLBACK_WEIGHT = 1e-12


@dataclass
class Prediction:
    """Result of executing a tree on one tuple.

    Attributes
    ----------
    prediction : int or float
        Class identifier (decision tree) or predicted value (regression tree).
    support : float
        Weight of the training cases the prediction rests on.
    confidence : float
        Probability of the predicted class, or the standard deviation of the
        predicted value.
    distribution : ndarray
        Accumulated class frequencies, or ``[weight, sum, sum of squares]``
        for a regression tree.
    """

    prediction: float
    support: float
    confidence: float
    distribution: np.ndarray


# -----------------------------------------------------------------------------
# Walk
# -----------------------------------------------------------------------------
def _branch(node, value: float, nominal: bool) -> int:
    if math.isnan(value):
        return -1
    if nominal:
        return int(value)
    if value == node.cut:
        return -1
    return 0 if value <= node.cut else 1


def _accumulate(tree, i: int, buf: np.ndarray, w: float) -> None:
    """Add the leaf statistics below node ``i`` (or of ``i``) to ``buf``."""
    node = tree[i]
    if tree.nominal:
        if node.is_leaf:
            buf += w * node.frqs
        else:
            for j in tree.leaves(i):
                buf += w * tree[j].frqs
        return
    f = node.frq * w
    buf[0] += f
    buf[1] += f * node.trg
    buf[2] += w * node.err + f * node.trg * node.trg


def _execute(tree, i: int, tpl: np.ndarray, buf: np.ndarray, w: float,
             fallback: float) -> None:
    while True:
        node = tree.check_node(i)
        if node.is_leaf:
            _accumulate(tree, i, buf, w)
            return
        att = tree.attset[node.attid]
        k = _branch(node, tpl[node.attid], att.is_nominal)
        if 0 <= k < node.size:
            c = tree.child(i, k)
            if c is not None:
                i = c
                continue
        if k >= 0 and fallback >= 0:
            _accumulate(tree, i, buf, w * fallback)
            return
        children = tree.children(i)
        if not children:
            _accumulate(tree, i, buf, w)
            return
        for _, c in children:
            _execute(tree, c, tpl, buf, w, fallback)
        return


def classify(tree, tpl, weight: float = FALLBACK_WEIGHT) -> Prediction:
    """Execute ``tree`` on an encoded tuple.

    Parameters
    ----------
    tree : DecisionTree
        A grown or parsed tree.
    tpl : array-like of float
        Tuple encoded with :func:`dtreepy.attributes.encode` (nominal value
        identifiers, ``nan`` for unknown values).
    weight : float, default=1e-12
        Weight of the node statistics used when a value has no child.  A
        negative weight fans out over all children instead.

    Returns
    -------
    Prediction

    Raises
    ------
    TreeStructureError
        If a visited node does not match the tree's attribute set.
    """
    tpl = np.asarray(tpl, dtype=float)
    if tree.nominal:
        buf = np.zeros(tree.clscnt)
    else:
        buf = np.zeros(3)
    if tree.root is not None:
        _execute(tree, tree.root, tpl, buf, 1.0, weight)
    return _result(tree, buf)


def _result(tree, buf: np.ndarray) -> Prediction:
    if tree.nominal:
        total = float(buf.sum())
        k = int(np.argmax(buf)) if len(buf) else 0
        conf = float(buf[k]) / total if total > 0 else 0.0
        return Prediction(k, total, conf, buf)
    f0, f1, f2 = buf
    if f0 <= 0:
        return Prediction(0.0, 0.0, 0.0, buf)
    mean = f1 / f0
    conf = math.sqrt(max(0.0, (f2 - mean * f1) / f0))
    return Prediction(float(mean), float(f0), conf, buf)


def classify_many(tree, X, weight: float = FALLBACK_WEIGHT) -> list[Prediction]:
    """Execute ``tree`` on every row of an encoded 2-D array."""
    return [classify(tree, row, weight) for row in np.asarray(X, dtype=float)]
