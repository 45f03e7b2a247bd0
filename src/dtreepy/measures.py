# -*- coding: utf-8 -*-
"""
dtreepy.measures
================

Split evaluation measures.

Every measure is a pure function of an aggregation table's public arrays
(``frq_xy``/``frq_x``/``frq_y``/``known``/``frq`` of a frequency table, or
the column moments of a variation table) and returns a score where higher
is better.  The ``weighted`` flag rescales a score by the fraction of cases
with a known value of the split attribute (or divides by the total weight
instead of the known weight, depending on the measure).

Columns of a frequency table with a non-positive marginal are empty or have
been combined into another column and are skipped.  A table without known
weight scores 0.  Denominators that vanish make a measure return 0 rather
than an infinite or undefined value.
"""

from __future__ import annotations

import math
from enum import IntEnum

import numpy as np

EPSILON = 1e-12
LN_2 = math.log(2.0)


class FrequencyMeasure(IntEnum):
    """Measures for nominal targets (evaluated on a frequency table)."""

    NONE = 0
    INFGAIN = 1
    INFGBAL = 2
    INFGR = 3
    INFSGR1 = 4
    INFSGR2 = 5
    QIGAIN = 6
    QIGBAL = 7
    QIGR = 8
    QISGR1 = 9
    QISGR2 = 10
    GINI = 11
    GINISYM = 12
    GINIMOD = 13
    RELIEF = 14
    WDIFF = 15
    CHI2 = 16
    CHI2NRM = 17
    WEVID = 18
    RELEV = 19
    RELMOD = 20
    BDM = 21
    BDMOD = 22
    RDLREL = 23
    RDLABS = 24
    STOCO = 25
    SPCGAIN = 26
    SPCGBAL = 27
    SPCGR = 28
    SPCSGR1 = 29
    SPCSGR2 = 30


class VariationMeasure(IntEnum):
    """Measures for metric targets (evaluated on a variation table)."""

    NONE = 0
    SSE = 1
    MSE = 2
    RMSE = 3
    VAR = 4
    SDEV = 5


FM = FrequencyMeasure
VM = VariationMeasure

FREQUENCY_MEASURE_NAMES = {
    "none": FM.NONE, "infgain": FM.INFGAIN, "infgbal": FM.INFGBAL,
    "infgr": FM.INFGR, "infsgr1": FM.INFSGR1, "infsgr2": FM.INFSGR2,
    "qigain": FM.QIGAIN, "qigbal": FM.QIGBAL, "qigr": FM.QIGR,
    "qisgr1": FM.QISGR1, "qisgr2": FM.QISGR2, "gini": FM.GINI,
    "ginisym": FM.GINISYM, "ginimod": FM.GINIMOD, "relief": FM.RELIEF,
    "wdiff": FM.WDIFF, "chi2": FM.CHI2, "chi2nrm": FM.CHI2NRM,
    "wevid": FM.WEVID, "relev": FM.RELEV, "relmod": FM.RELMOD,
    "bdm": FM.BDM, "bdmod": FM.BDMOD, "rdlrel": FM.RDLREL,
    "rdlabs": FM.RDLABS, "stoco": FM.STOCO, "spcgain": FM.SPCGAIN,
    "spcgbal": FM.SPCGBAL, "spcgr": FM.SPCGR, "spcsgr1": FM.SPCSGR1,
    "spcsgr2": FM.SPCSGR2,
}

VARIATION_MEASURE_NAMES = {
    "none": VM.NONE, "sse": VM.SSE, "mse": VM.MSE, "rmse": VM.RMSE,
    "var": VM.VAR, "sd": VM.SDEV,
}

_DESCRIPTIONS = {
    FM.NONE: "no measure",
    FM.INFGAIN: "information gain",
    FM.INFGBAL: "balanced information gain",
    FM.INFGR: "information gain ratio",
    FM.INFSGR1: "symmetric information gain ratio 1",
    FM.INFSGR2: "symmetric information gain ratio 2",
    FM.QIGAIN: "quadratic information gain",
    FM.QIGBAL: "balanced quadratic information gain",
    FM.QIGR: "quadratic information gain ratio",
    FM.QISGR1: "symmetric quadratic information gain ratio 1",
    FM.QISGR2: "symmetric quadratic information gain ratio 2",
    FM.GINI: "Gini index",
    FM.GINISYM: "symmetric Gini index",
    FM.GINIMOD: "modified Gini index",
    FM.RELIEF: "relief measure",
    FM.WDIFF: "sum of weighted differences",
    FM.CHI2: "chi^2 measure",
    FM.CHI2NRM: "normalized chi^2 measure",
    FM.WEVID: "weight of evidence",
    FM.RELEV: "relevance",
    FM.RELMOD: "modified relevance",
    FM.BDM: "Bayesian-Dirichlet / K2 metric",
    FM.BDMOD: "modified Bayesian-Dirichlet / K2 metric",
    FM.RDLREL: "reduction of description length (rel. freq.)",
    FM.RDLABS: "reduction of description length (abs. freq.)",
    FM.STOCO: "stochastic complexity",
    FM.SPCGAIN: "specificity gain",
    FM.SPCGBAL: "balanced specificity gain",
    FM.SPCGR: "specificity gain ratio",
    FM.SPCSGR1: "symmetric specificity gain ratio 1",
    FM.SPCSGR2: "symmetric specificity gain ratio 2",
}

_VAR_DESCRIPTIONS = {
    VM.NONE: "no measure",
    VM.SSE: "reduction of sum of squared errors",
    VM.MSE: "reduction of mean squared error",
    VM.RMSE: "reduction of square root of mean squared error",
    VM.VAR: "reduction of variance (unbiased estimator)",
    VM.SDEV: "reduction of standard deviation (from variance)",
}


def measure_by_name(name: str, metric: bool = False):
    """Translate a measure name into its enumeration member.

    Parameters
    ----------
    name : str
        Short measure name, e.g. ``"infgr"`` or ``"rmse"``.  A pair
        ``"nominal:metric"`` selects the entry matching ``metric``.
    metric : bool, default=False
        Whether the target attribute is metric.

    Raises
    ------
    ValueError
        If the name is unknown for the target kind.
    """
    table = VARIATION_MEASURE_NAMES if metric else FREQUENCY_MEASURE_NAMES
    for part in str(name).lower().split(":"):
        if part in table:
            return table[part]
    kind = "metric" if metric else "nominal"
    raise ValueError(f"unknown measure {name!r} for a {kind} target; "
                     f"choose one of {sorted(table)}")


def describe_measure(measure, weighted: bool = False) -> str:
    """Long, human readable measure name."""
    if isinstance(measure, VariationMeasure):
        text = _VAR_DESCRIPTIONS[measure]
    else:
        text = _DESCRIPTIONS.get(FrequencyMeasure(measure), "<unknown measure>")
    return ("weighted " + text) if weighted else text


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _param(params, i: int, default: float) -> float:
    if params is None or len(params) <= i:
        return default
    return float(params[i])


def _parts(tab):
    xc, yc = tab.xcnt, tab.ycnt
    return tab.frq_x[:xc], tab.frq_y[:yc], tab.frq_xy[:xc, :yc]


def _xlogx(a: np.ndarray) -> float:
    a = a[a > 0]
    return float(np.sum(a * np.log(a)))


def _lgsum(a) -> float:
    return math.fsum(math.lgamma(v) for v in np.ravel(a))


def _nsp(dist) -> float:
    """Nonspecificity of a possibility distribution."""
    dist = np.sort(np.asarray(dist, dtype=float))
    n = len(dist)
    nsp = prev = 0.0
    for i in range(n - 1):
        t = dist[i] - prev
        prev = dist[i]
        if t > 0:
            nsp += t * math.log(n - i)
    return nsp


# -----------------------------------------------------------------------------
# Frequency table measures
# -----------------------------------------------------------------------------
def _info(tab, measure, params, weighted):
    """Shannon information gain and its ratios."""
    if tab.known < EPSILON:
        return 0.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    n = tab.known
    t = n * math.log(n)
    s_x = t - _xlogx(fx[live])
    s_y = t - _xlogx(fy)
    s_xy = t - _xlogx(fxy[live])
    info = s_x + s_y - s_xy
    if measure == FM.INFGBAL:
        d = math.log(tab.xcnt) * n if tab.xcnt > 1 else 0.0
    elif measure == FM.INFGR:
        d = s_x
    elif measure == FM.INFSGR1:
        d = s_xy
    elif measure == FM.INFSGR2:
        d = s_x + s_y
    else:
        d = LN_2 * n
    if d <= 0:
        return 0.0
    info /= d
    return info * (tab.known / tab.frq) if weighted else info


def _quad(tab, measure, params, weighted):
    """Quadratic information gain and its ratios."""
    if tab.known < EPSILON:
        return 0.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    t = tab.known * tab.known
    s_x = t - float(np.sum(fx[live] ** 2))
    s_y = t - float(np.sum(fy ** 2))
    s_xy = t - float(np.sum(fxy[live] ** 2))
    quad = s_x + s_y - s_xy
    if measure == FM.QIGBAL:
        d = t * (1 - 1.0 / tab.xcnt) if tab.xcnt > 0 else 0.0
    elif measure == FM.QIGR:
        d = s_x
    elif measure == FM.QISGR1:
        d = s_xy
    elif measure == FM.QISGR2:
        d = s_x + s_y
    else:
        d = 0.5 * t
    if d <= 0:
        return 0.0
    quad /= d
    return quad * (tab.known / tab.frq) if weighted else quad


def _gini(tab, measure, params, weighted):
    """Gini index, its symmetric and modified forms, and relief."""
    if tab.known < EPSILON:
        return 0.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    n = tab.known
    s_y = float(np.sum(fy ** 2))
    rows = np.sum(fxy[live] ** 2, axis=1)
    s_xy = float(rows.sum())
    w_yx = float(np.sum(rows / fx[live]))
    if measure == FM.GINI:
        return (w_yx - s_y / n) / (tab.frq if weighted else n)
    s_x = float(np.sum(fx[live] ** 2))
    t = n * n
    if measure == FM.GINIMOD:
        if s_x <= 0:
            return 0.0
        gini = s_xy / s_x - s_y / t
    elif measure == FM.RELIEF:
        if s_y <= 0 or t - s_y <= 0:
            return 0.0
        gini = s_xy / s_y - (s_x - s_xy) / (t - s_y)
    else:
        occ = fy > 0
        w_xy = float(np.sum(np.sum(fxy[live][:, occ] ** 2, axis=0) / fy[occ]))
        t = 2 * t - s_x - s_y
        if t <= 0:
            return 0.0
        gini = ((w_xy + w_yx) * n - s_x - s_y) / t
    return gini * (tab.known / tab.frq) if weighted else gini


def _wdiff(tab, measure, params, weighted):
    """Sum of weighted differences between joint and product distribution."""
    if tab.known < EPSILON:
        return 0.0
    e = _param(params, 0, 1.0)
    if e <= 0:
        e = 1.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    n = tab.known
    j = fxy[live]
    t = np.abs(np.outer(fx[live], fy) - j * n)
    s = float(np.sum(j * np.power(t, e)))
    return s / (np.power(n * n, e) * (tab.frq if weighted else n))


def _chi2(tab, measure, params, weighted):
    """Chi^2 measure, optionally normalized by the degrees of freedom."""
    if tab.known < EPSILON:
        return 0.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    occ = fy > 0
    p = np.outer(fx[live], fy[occ])
    t = p - fxy[live][:, occ] * tab.known
    chi2 = float(np.sum(t * t / p))
    if measure == FM.CHI2NRM:
        d = (tab.xcnt - 1) * (tab.ycnt - 1)
        if d > 0:
            chi2 /= d
    return chi2 / (tab.frq if weighted else tab.known)


def _wevid(tab, measure, params, weighted):
    """Weight of evidence."""
    if tab.known < EPSILON:
        return 0.0
    fx, fy, fxy = _parts(tab)
    live = fx > 0
    n = tab.known
    j = fxy[live]
    z = fy * j
    a = j * n - z
    b = np.outer(fx[live], fy) - z
    ok = (a >= EPSILON) & (b >= EPSILON)
    ratio = np.where(ok, a, 1.0) / np.where(ok, b, 1.0)
    inner = np.sum(np.where(ok, fy * np.abs(np.log(ratio)), 0.0), axis=1)
    outer = float(np.sum(fx[live] * inner)) / (LN_2 * n)
    return outer / (tab.frq if weighted else n)


def _relev(tab, measure, params, weighted):
    """Relevance and modified relevance."""
    if tab.known < EPSILON or tab.ycnt < 2:
        return 0.0
    fx, fy, fxy = _parts(tab)
    total = 0.0
    for x in np.flatnonzero(fx > 0):
        row = fxy[x]
        occ = row > 0
        if not occ.any():
            continue
        ratios = row[occ] / fy[occ]
        if measure == FM.RELMOD:
            total += ratios.sum() - ratios[np.argmax(row[occ])]
        else:
            total += ratios.sum() - ratios.max()
    relev = 1 - total / (tab.ycnt - 1)
    return relev * (tab.known / tab.frq) if weighted else relev


def _prior(tab, params) -> float:
    p = _param(params, 1, 0.0)
    if p == 0:
        p = 1.0
    if p < 0:
        p /= -tab.ycnt
    return p


def _bdm(tab, measure, params, weighted):
    """Bayesian-Dirichlet / K2 metric."""
    if tab.known < EPSILON:
        return 0.0
    a = _param(params, 0, 0.0) + 1
    a = a * a if a > 0 else 1.0
    p = _prior(tab, params)
    fx, fy, fxy = _parts(tab)
    yc = tab.ycnt
    s = yc * p
    r = (_lgsum(fy * a + p) - yc * math.lgamma(p)
         + (math.lgamma(s) - math.lgamma(tab.known * a + s)))
    if _param(params, 1, 0.0) < 0:
        p /= tab.xcnt
        s = yc * p
    z = math.lgamma(s) - yc * math.lgamma(p)
    bdm = 0.0
    for x in np.flatnonzero(fx >= 0):
        bdm += _lgsum(fxy[x] * a + p) + z - math.lgamma(fx[x] * a + s)
    bdm -= r
    return bdm / (LN_2 * (tab.frq if weighted else tab.known))


def _bdmod(tab, measure, params, weighted):
    """Modified Bayesian-Dirichlet / K2 metric."""
    if tab.known < EPSILON:
        return 0.0
    a = _param(params, 0, 0.0)
    if a < 0:
        a = 0.0
    p = _prior(tab, params)
    fx, fy, fxy = _parts(tab)
    yc = tab.ycnt
    z = fy * a + p
    r = _lgsum(z + fy) - _lgsum(z)
    z = tab.known * a + yc * p
    r += math.lgamma(z) - math.lgamma(z + tab.known)
    if _param(params, 1, 0.0) < 0:
        p /= tab.xcnt
    bdm = 0.0
    for x in np.flatnonzero(fx >= 0):
        z = fxy[x] * a + p
        t = _lgsum(z + fxy[x]) - _lgsum(z)
        z = fx[x] * a + yc * p
        bdm += t + (math.lgamma(z) - math.lgamma(z + fx[x]))
    bdm -= r
    return bdm / (LN_2 * (tab.frq if weighted else tab.known))


def _rdlen(tab, measure, params, weighted):
    """Reduction of description length (relative or absolute coding)."""
    if tab.known < EPSILON:
        return 0.0
    yc = tab.ycnt
    lgy = math.lgamma(yc) if yc > 0 else 0.0
    a = _param(params, 0, 0.0) + 1
    if a <= 0:
        a = 1.0
    fx, fy, fxy = _parts(tab)
    n = tab.known
    dat = mod = 0.0
    if measure == FM.RDLREL:
        for x in np.flatnonzero(fx > 0):
            dat -= fx[x] * math.log(fx[x]) - _xlogx(fxy[x])
            mod -= math.lgamma(fx[x] + yc) - math.lgamma(fx[x] + 1) - lgy
        dat += n * math.log(n) - _xlogx(fy)
        mod += math.lgamma(n + yc) - math.lgamma(n + 1) - lgy
    else:
        for x in np.flatnonzero(fx > 0):
            t = math.lgamma(fx[x] + 1)
            dat -= t - _lgsum(fxy[x] + 1)
            mod -= math.lgamma(fx[x] + yc) - t - lgy
        t = math.lgamma(n + 1)
        dat += t - _lgsum(fy + 1)
        mod += math.lgamma(n + yc) - t - lgy
    return (dat + mod / a) / (LN_2 * (tab.frq if weighted else n))


def _stoco(tab, measure, params, weighted):
    """Stochastic complexity."""
    if tab.known < EPSILON or tab.ycnt < 1:
        return 0.0
    fx, _, _ = _parts(tab)
    yc = tab.ycnt
    stc = math.log(0.5 * tab.known)
    stc -= float(np.sum(np.log(0.5 * fx[fx > 0])))
    stc *= 0.5 * (yc - 1)
    stc -= (tab.xcnt - 1) * (0.5 * yc * math.log(math.pi)
                             - math.lgamma(0.5 * yc))
    stc /= LN_2 * tab.known
    stc += _info(tab, FM.INFGAIN, None, False)
    return stc * (tab.known / tab.frq) if weighted else stc


def _specificity(tab, measure, params, weighted):
    """Specificity gain and its ratios."""
    if tab.xcnt <= 1 or tab.ycnt <= 1 or tab.known < EPSILON:
        return 0.0
    fx, _, fxy = _parts(tab)
    live = fx > 0
    j = np.where(live[:, None], fxy, 0.0)
    bx = np.maximum(j.max(axis=1), 0.0)
    by = np.maximum(j.max(axis=0), 0.0)
    bxy = j[j > 0]
    s_x, s_y, s_xy = _nsp(bx), _nsp(by), _nsp(bxy)
    spc = s_x + s_y - s_xy
    if measure == FM.SPCGBAL:
        d = math.log(tab.xcnt)
    elif measure == FM.SPCGR:
        d = s_x
    elif measure == FM.SPCSGR1:
        d = s_xy
    elif measure == FM.SPCSGR2:
        d = s_x + s_y
    else:
        d = LN_2
    if d <= 0:
        return 0.0
    spc /= d
    return spc * (tab.known / tab.frq) if weighted else spc


_FRQ_FUNCS = {
    FM.INFGAIN: _info, FM.INFGBAL: _info, FM.INFGR: _info,
    FM.INFSGR1: _info, FM.INFSGR2: _info,
    FM.QIGAIN: _quad, FM.QIGBAL: _quad, FM.QIGR: _quad,
    FM.QISGR1: _quad, FM.QISGR2: _quad,
    FM.GINI: _gini, FM.GINISYM: _gini, FM.GINIMOD: _gini, FM.RELIEF: _gini,
    FM.WDIFF: _wdiff, FM.CHI2: _chi2, FM.CHI2NRM: _chi2, FM.WEVID: _wevid,
    FM.RELEV: _relev, FM.RELMOD: _relev, FM.BDM: _bdm, FM.BDMOD: _bdmod,
    FM.RDLREL: _rdlen, FM.RDLABS: _rdlen, FM.STOCO: _stoco,
    FM.SPCGAIN: _specificity, FM.SPCGBAL: _specificity, FM.SPCGR: _specificity,
    FM.SPCSGR1: _specificity, FM.SPCSGR2: _specificity,
}


def evaluate_frq(tab, measure: FrequencyMeasure, params=None,
                 weighted: bool = False) -> float:
    """Evaluate a marginalized frequency table."""
    if measure == FM.NONE:
        return 0.0
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return float(_FRQ_FUNCS[measure](tab, measure, params, weighted))


# -----------------------------------------------------------------------------
# Variation table measures
# -----------------------------------------------------------------------------
def _columns(tab):
    live = tab.dsts[:tab.cnt] < 0
    return tab.col_frq[:tab.cnt][live], tab.col_sse[:tab.cnt][live]


def _sse(tab):
    _, sse = _columns(tab)
    return tab.sse - float(sse.sum())


def _mse(tab):
    _, sse = _columns(tab)
    return tab.sse / tab.frq - float(sse.sum()) / tab.known


def _rmse(tab):
    frq, sse = _columns(tab)
    red = float(np.sum(np.sqrt(np.maximum(sse * frq, 0.0))))
    return math.sqrt(max(tab.sse / tab.frq, 0.0)) - red / tab.known


def _var(tab):
    d = tab.frq - 1
    var = tab.sse / d if d > 0 else 0.0
    frq, sse = _columns(tab)
    dof = frq - 1
    cols = np.where(dof > 0, sse / np.where(dof > 0, dof, 1.0), var)
    return var - float(np.sum(frq * cols)) / tab.known


def _sdev(tab):
    d = tab.frq - 1
    sdev = math.sqrt(max(tab.sse / d, 0.0)) if d > 0 else 0.0
    frq, sse = _columns(tab)
    dof = frq - 1
    cols = np.where(dof > 0,
                    np.sqrt(np.maximum(sse / np.where(dof > 0, dof, 1.0), 0.0)),
                    sdev)
    return sdev - float(np.sum(frq * cols)) / tab.known


_VAR_FUNCS = {VM.SSE: _sse, VM.MSE: _mse, VM.RMSE: _rmse,
              VM.VAR: _var, VM.SDEV: _sdev}


def evaluate_var(tab, measure: VariationMeasure, params=None,
                 weighted: bool = False) -> float:
    """Evaluate a calculated variation table (reduction of an error measure)."""
    if measure == VM.NONE or tab.known <= 0:
        return 0.0
    red = _VAR_FUNCS[measure](tab)
    if weighted:
        red *= tab.known / tab.frq
    return float(red)
