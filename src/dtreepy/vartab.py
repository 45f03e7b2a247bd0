# -*- coding: utf-8 -*-
"""
dtreepy.vartab
==============

Variation table for split evaluation with a metric target.

Per split group the table keeps the weight, the weighted sum and the
weighted sum of squares of the target, from which the group mean and sum of
squared errors follow.  As in :mod:`dtreepy.frqtab`, index ``-1`` is the
"value unknown" column and columns can be combined and uncombined along a
destination chain.
"""

from __future__ import annotations

import numpy as np

from .measures import VariationMeasure, evaluate_var


class VariationTable:
    """Weighted first and second moments of the target per split group.

    Attributes
    ----------
    col_frq, col_sum, col_ssv : ndarray of shape (cnt + 1,)
        Weight, sum and sum of squared values per column (last = unknown).
    col_mean, col_sse : ndarray of shape (cnt + 1,)
        Derived mean and sum of squared errors per column.
    frq, known, sum, ssv, mean, sse : float
        Table totals (``known`` excludes the unknown column).
    """

    def __init__(self, cnt: int = 0):
        self.col_frq = np.zeros(0)
        self.init(cnt)

    def init(self, cnt: int) -> None:
        self.cnt = int(cnt)
        n = self.cnt + 1
        if self.col_frq.shape == (n,):
            for a in (self.col_frq, self.col_sum, self.col_ssv,
                      self.col_mean, self.col_sse):
                a.fill(0.0)
            self.dsts.fill(-1)
        else:
            self.col_frq = np.zeros(n)
            self.col_sum = np.zeros(n)
            self.col_ssv = np.zeros(n)
            self.col_mean = np.zeros(n)
            self.col_sse = np.zeros(n)
            self.dsts = np.full(n, -1, dtype=np.intp)
        self.frq = self.known = 0.0
        self.sum = self.ssv = self.mean = self.sse = 0.0

    def add(self, x, y, w=1.0) -> None:
        """Accumulate weighted target values (scalars or arrays)."""
        x, y, w = np.broadcast_arrays(x, np.asarray(y, dtype=float),
                                      np.asarray(w, dtype=float))
        np.add.at(self.col_frq, x, w)
        np.add.at(self.col_sum, x, w * y)
        np.add.at(self.col_ssv, x, w * y * y)

    def calculate(self) -> None:
        """Recompute totals, means and errors from the raw moments."""
        live = self.dsts < 0
        self.frq = float(self.col_frq[live].sum())
        self.sum = float(self.col_sum[live].sum())
        self.ssv = float(self.col_ssv[live].sum())
        self.known = self.frq - float(self.col_frq[-1])
        self.mean = self.sum / self.frq if self.frq > 0 else 0.0
        self.sse = self.ssv - self.mean * self.sum
        for x in range(-1, self.cnt):
            self._update(x)

    def _update(self, x: int) -> None:
        f = self.col_frq[x]
        self.col_mean[x] = self.col_sum[x] / f if f > 0 else self.mean
        self.col_sse[x] = self.col_ssv[x] - self.col_mean[x] * self.col_sum[x]

    # ------------------------------------------------------------------
    # Column operations
    # ------------------------------------------------------------------
    def column_weight(self, x: int) -> float:
        return float(self.col_frq[x])

    def move(self, xsrc: int, xdst: int, y: float, w: float) -> None:
        """Move one weighted target value between columns."""
        self.col_frq[xsrc] -= w
        self.col_frq[xdst] += w
        self.col_sum[xsrc] -= w * y
        self.col_sum[xdst] += w * y
        self.col_ssv[xsrc] -= w * y * y
        self.col_ssv[xdst] += w * y * y
        self._update(xsrc)
        self._update(xdst)

    def combine(self, src: int, dst: int) -> None:
        if src == dst or self.dsts[src] >= 0:
            raise ValueError(f"column {src} cannot be combined into {dst}")
        self.dsts[src] = dst
        while dst >= 0:
            self.col_frq[dst] += self.col_frq[src]
            self.col_sum[dst] += self.col_sum[src]
            self.col_ssv[dst] += self.col_ssv[src]
            self._update(dst)
            dst = self.dsts[dst]

    def uncombine(self, src: int) -> None:
        dst = self.dsts[src]
        if dst < 0:
            return
        self.dsts[src] = -1
        while dst >= 0:
            self.col_frq[dst] -= self.col_frq[src]
            self.col_sum[dst] -= self.col_sum[src]
            self.col_ssv[dst] -= self.col_ssv[src]
            self._update(dst)
            dst = self.dsts[dst]

    def dest(self, x: int) -> int:
        while self.dsts[x] >= 0:
            x = int(self.dsts[x])
        return int(x)

    # ------------------------------------------------------------------
    # Copy / evaluation
    # ------------------------------------------------------------------
    def copy(self) -> "VariationTable":
        dup = VariationTable.__new__(VariationTable)
        dup.copy_from(self)
        return dup

    def copy_from(self, src: "VariationTable") -> None:
        self.cnt = src.cnt
        for name in ("col_frq", "col_sum", "col_ssv", "col_mean", "col_sse",
                     "dsts"):
            setattr(self, name, getattr(src, name).copy())
        for name in ("frq", "known", "sum", "ssv", "mean", "sse"):
            setattr(self, name, getattr(src, name))

    def evaluate(self, measure, params=None, weighted: bool = False) -> float:
        """Score the table with a :class:`VariationMeasure`."""
        return evaluate_var(self, VariationMeasure(measure), params, weighted)

    def __repr__(self) -> str:
        return (f"VariationTable(cnt={self.cnt}, known={self.known:g}, "
                f"frq={self.frq:g})")
