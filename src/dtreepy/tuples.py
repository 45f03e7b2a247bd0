# -*- coding: utf-8 -*-
"""
dtreepy.tuples
==============

In-place partitioning of tuple references.

Growing and table-driven pruning both work on a single array of tuple
indices that is reordered, never copied.  A :class:`TupleSpan` is a window
``[lo, hi)`` onto that array; every ``group_*`` method moves the tuples
satisfying a predicate to the front of the window and returns how many
there are, so that the caller can hand disjoint sub-windows to recursive
calls.  Working weights live in a separate array indexed by tuple id and
may be rescaled temporarily (missing-value redistribution); the table's own
weights are never touched.
"""

from __future__ import annotations

import math

import numpy as np


class TupleSpan:
    """A reorderable window onto a shared tuple index array.

    Parameters
    ----------
    table : Table
        The table the indices refer to.
    rows : ndarray of int
        Shared tuple index array (reordered in place).
    wgts : ndarray of float
        Shared working weights, indexed by tuple id.
    lo, hi : int
        Window bounds within ``rows``.
    """

    def __init__(self, table, rows: np.ndarray, wgts: np.ndarray,
                 lo: int = 0, hi: int | None = None):
        self.table = table
        self.rows = rows
        self.wgts = wgts
        self.lo = lo
        self.hi = len(rows) if hi is None else hi

    @classmethod
    def from_table(cls, table, target: int) -> "TupleSpan":
        """All tuples with a known target value, at their stored weights."""
        known = ~np.isnan(table.data[:, target])
        rows = np.flatnonzero(known)
        return cls(table, rows, table.weights.astype(float, copy=True))

    def __len__(self) -> int:
        return self.hi - self.lo

    @property
    def idx(self) -> np.ndarray:
        return self.rows[self.lo:self.hi]

    def sub(self, start: int = 0, stop: int | None = None) -> "TupleSpan":
        """Sub-window, with bounds relative to this window."""
        stop = len(self) if stop is None else stop
        return TupleSpan(self.table, self.rows, self.wgts,
                         self.lo + start, self.lo + stop)

    def values(self, col: int) -> np.ndarray:
        return self.table.data[self.idx, col]

    def weights(self) -> np.ndarray:
        return self.wgts[self.idx]

    def total(self) -> float:
        return float(self.wgts[self.idx].sum())

    def scale(self, factor: float) -> None:
        """Multiply the working weights of all tuples in the window."""
        if len(self):
            self.wgts[self.idx] *= factor

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------
    def _partition(self, mask: np.ndarray) -> int:
        idx = self.idx
        self.rows[self.lo:self.hi] = np.concatenate((idx[mask], idx[~mask]))
        return int(np.count_nonzero(mask))

    def group_null(self, col: int) -> int:
        """Move tuples with a missing value in ``col`` to the front."""
        return self._partition(np.isnan(self.values(col)))

    def group_values(self, col: int, ids) -> int:
        """Move tuples whose (nominal) value is one of ``ids`` to the front."""
        return self._partition(np.isin(self.values(col), list(ids)))

    def group_greater(self, col: int, cut: float, integer: bool = False) -> int:
        """Move tuples with a value above the cut to the front.

        For integer attributes the comparison is against ``floor(cut)``.
        Missing values never qualify.
        """
        if integer:
            cut = math.floor(cut)
        v = self.values(col)
        with np.errstate(invalid="ignore"):
            mask = v > cut
        return self._partition(mask)

    def sort_by(self, col: int) -> int:
        """Sort the window by ``col``: missing values first, then ascending.

        Returns the number of tuples with a missing value.
        """
        v = self.values(col)
        nulls = np.isnan(v)
        known = np.flatnonzero(~nulls)
        known = known[np.argsort(v[known], kind="stable")]
        idx = self.idx
        self.rows[self.lo:self.hi] = np.concatenate(
            (idx[np.flatnonzero(nulls)], idx[known]))
        return int(np.count_nonzero(nulls))
