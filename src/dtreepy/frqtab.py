# -*- coding: utf-8 -*-
"""
dtreepy.frqtab
==============

Frequency table for split evaluation with a nominal target.

The table is a matrix of weighted counts ``frq_xy[x, y]`` with ``x`` the
group of the split attribute and ``y`` the target class, plus the marginals
``frq_x`` and ``frq_y``.  Index ``-1`` on either axis addresses the "value
unknown" row or column, which is stored as the last entry of each array so
that numpy's negative indexing reaches it directly.

Columns can be combined (value groups merged for subset search).  A combined
column keeps its own cells but records its destination in ``dsts`` and its
marginal is set to -1; its cells are added to the destination and to every
column further down the destination chain.  :meth:`FrequencyTable.uncombine`
is the exact inverse.
"""

from __future__ import annotations

import numpy as np

from .measures import FrequencyMeasure, evaluate_frq


class FrequencyTable:
    """Weighted joint frequencies of split groups and target classes.

    Parameters
    ----------
    xcnt : int, default=0
        Number of split groups (attribute values or cut sides).
    ycnt : int, default=0
        Number of target classes.

    Attributes
    ----------
    frq_xy : ndarray of shape (xcnt + 1, ycnt + 1)
        Joint frequencies; the last row and column hold unknown values.
    frq_x : ndarray of shape (xcnt + 1,)
        Group marginals (-1 for combined columns).
    frq_y : ndarray of shape (ycnt + 1,)
        Class marginals over the non-combined groups with known value.
    dsts : ndarray of int
        Destination of each combined column, -1 if not combined.
    known : float
        Total weight of the cases with a known split value.
    frq : float
        Total weight of all cases.
    """

    def __init__(self, xcnt: int = 0, ycnt: int = 0):
        self.frq_xy = np.zeros((0, 0))
        self.init(xcnt, ycnt)

    def init(self, xcnt: int, ycnt: int) -> None:
        """Clear the table and set its dimensions."""
        self.xcnt = int(xcnt)
        self.ycnt = int(ycnt)
        shape = (self.xcnt + 1, self.ycnt + 1)
        if self.frq_xy.shape == shape:
            self.frq_xy.fill(0.0)
            self.frq_x.fill(0.0)
            self.frq_y.fill(0.0)
            self.dsts.fill(-1)
        else:
            self.frq_xy = np.zeros(shape)
            self.frq_x = np.zeros(shape[0])
            self.frq_y = np.zeros(shape[1])
            self.dsts = np.full(shape[0], -1, dtype=np.intp)
        self.known = 0.0
        self.frq = 0.0

    def add(self, x, y, w=1.0) -> None:
        """Accumulate weighted observations (scalars or arrays, -1 = unknown)."""
        np.add.at(self.frq_xy, (x, y), w)

    def marginalize(self) -> None:
        """Recompute the marginals and totals from the joint cells."""
        xc, yc = self.xcnt, self.ycnt
        fxy = self.frq_xy
        live = self.dsts[:xc] < 0
        self.frq_x[:xc] = np.where(live, fxy[:xc, :yc].sum(axis=1), -1.0)
        self.frq_y[:yc] = fxy[:xc, :yc][live].sum(axis=0)
        self.frq_y[-1] = fxy[:xc, -1][live].sum()
        self.known = float(self.frq_x[:xc][live].sum())
        self.frq_x[-1] = fxy[-1, :yc].sum()
        self.frq = float(self.known + self.frq_x[-1] + self.frq_y[-1]
                         + fxy[-1, -1])

    # ------------------------------------------------------------------
    # Column operations
    # ------------------------------------------------------------------
    def column_weight(self, x: int) -> float:
        return float(self.frq_x[x])

    def move(self, xsrc: int, xdst: int, y: int, w: float) -> None:
        """Move weight of class ``y`` from one column to another."""
        self.frq_xy[xsrc, y] -= w
        self.frq_xy[xdst, y] += w
        self.frq_x[xsrc] -= w
        self.frq_x[xdst] += w

    def combine(self, src: int, dst: int) -> None:
        """Merge column ``src`` into ``dst`` (and dst's own destinations)."""
        if src == dst or self.dsts[src] >= 0:
            raise ValueError(f"column {src} cannot be combined into {dst}")
        self.dsts[src] = dst
        marg = self.frq_x[src]
        self.frq_x[src] = -1.0
        col = self.frq_xy[src]
        while dst >= 0:
            self.frq_xy[dst] += col
            self.frq_x[dst] += marg
            dst = self.dsts[dst]

    def uncombine(self, src: int) -> None:
        """Undo :meth:`combine` for column ``src``."""
        dst = self.dsts[src]
        if dst < 0:
            return
        self.dsts[src] = -1
        col = self.frq_xy[src]
        marg = col[:self.ycnt].sum()
        self.frq_x[src] = marg
        while dst >= 0:
            self.frq_xy[dst] -= col
            self.frq_x[dst] -= marg
            dst = self.dsts[dst]

    def dest(self, x: int) -> int:
        """Follow the destination chain of column ``x`` to its end."""
        while self.dsts[x] >= 0:
            x = int(self.dsts[x])
        return int(x)

    # ------------------------------------------------------------------
    # Copy / evaluation
    # ------------------------------------------------------------------
    def copy(self) -> "FrequencyTable":
        dup = FrequencyTable.__new__(FrequencyTable)
        dup.frq_xy = np.zeros((1, 1))
        dup.copy_from(self)
        return dup

    def copy_from(self, src: "FrequencyTable") -> None:
        """Make this table an exact copy of ``src``."""
        self.xcnt, self.ycnt = src.xcnt, src.ycnt
        self.frq_xy = src.frq_xy.copy()
        self.frq_x = src.frq_x.copy()
        self.frq_y = src.frq_y.copy()
        self.dsts = src.dsts.copy()
        self.known = src.known
        self.frq = src.frq

    def evaluate(self, measure, params=None, weighted: bool = False) -> float:
        """Score the table with a :class:`FrequencyMeasure`."""
        return evaluate_frq(self, FrequencyMeasure(measure), params, weighted)

    def __repr__(self) -> str:
        return (f"FrequencyTable(xcnt={self.xcnt}, ycnt={self.ycnt}, "
                f"known={self.known:g}, frq={self.frq:g})")
