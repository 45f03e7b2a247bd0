# -*- coding: utf-8 -*-
"""
dtreepy.selection
=================

Greedy forward attribute selection for two-class problems.

Starting from the empty set, every remaining candidate is added in turn, a
tree is grown on the enlarged set and scored by the area under the ROC
curve of its first-class confidence on the training tuples.  The candidate
with the best area is kept; selection stops when no candidate improves it.
"""

from __future__ import annotations

import logging

import numpy as np
from sklearn.metrics import roc_auc_score

from .executor import classify
from .grower import grow

logger = logging.getLogger(__name__)


def first_class_scores(tree, table) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(y_true, score)`` for the tuples with a known target.

    ``y_true`` is 1 for the first class, ``score`` the tree's relative
    frequency of the first class.
    """
    y = table.column(tree.trgid)
    rows = np.flatnonzero(~np.isnan(y))
    scores = np.empty(len(rows))
    for n, r in enumerate(rows):
        p = classify(tree, table.data[r])
        scores[n] = p.distribution[0] / p.support if p.support > 0 else 0.0
    return (y[rows] == 0).astype(int), scores


def forward_selection(table, target, candidates=None, **grow_kws):
    """Select attributes greedily by ROC area.

    Parameters
    ----------
    table : Table
        Training tuples.
    target : int or str
        A nominal target attribute with exactly two values.
    candidates : iterable of int or str, optional
        Attributes to choose from (all non-target attributes by default).
    **grow_kws
        Further arguments of :func:`dtreepy.grower.grow`.

    Returns
    -------
    list of (str, float)
        Selected attribute names in selection order with the ROC area
        reached after adding each.
    """
    attset = table.attset
    trgid = attset.index(target) if isinstance(target, str) else int(target)
    att = attset[trgid]
    if not att.is_nominal or att.valcnt != 2:
        raise ValueError(
            f"forward selection needs a two-class target, got {att!r}")
    if candidates is None:
        pool = [i for i in range(len(attset)) if i != trgid]
    else:
        pool = [attset.index(c) if isinstance(c, str) else int(c)
                for c in candidates]
        pool = [i for i in pool if i != trgid]

    y = table.column(trgid)
    y = y[~np.isnan(y)]
    if len(np.unique(y)) < 2:
        raise ValueError("both target classes must occur in the table")

    selected: list[int] = []
    result: list[tuple[str, float]] = []
    best = 0.5
    while pool:
        winner, winner_auc = -1, best
        for c in pool:
            tree = grow(table, trgid, attributes=selected + [c], **grow_kws)
            y_true, scores = first_class_scores(tree, table)
            auc = float(roc_auc_score(y_true, scores))
            logger.debug("candidate %r: auc %.6f", attset[c].name, auc)
            if auc > winner_auc:
                winner, winner_auc = c, auc
        if winner < 0:
            break
        selected.append(winner)
        pool.remove(winner)
        best = winner_auc
        result.append((attset[winner].name, best))
        logger.info("selected %r (auc %.6f)", attset[winner].name, best)
    return result
