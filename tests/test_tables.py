import numpy as np
import pytest

from dtreepy.frqtab import FrequencyTable
from dtreepy.measures import (FREQUENCY_MEASURE_NAMES, FrequencyMeasure,
                              VariationMeasure, measure_by_name)
from dtreepy.vartab import VariationTable


def _frq_table():
    tab = FrequencyTable(3, 2)
    tab.add(np.array([0, 0, 1, 2, 2, -1]),
            np.array([0, 1, 1, 0, 0, 1]),
            np.array([1.0, 2.0, 3.0, 1.0, 0.5, 2.0]))
    tab.marginalize()
    return tab


def _var_table():
    tab = VariationTable(3)
    tab.add(np.array([0, 0, 1, 1, 2, -1]),
            np.array([1.0, 2.0, 10.0, 11.0, 5.0, 4.0]),
            np.array([1.0, 1.0, 1.0, 1.0, 2.0, 1.0]))
    tab.calculate()
    return tab


def test_frequency_marginals():
    tab = _frq_table()
    assert np.isclose(tab.known, 7.5)
    assert np.isclose(tab.frq_x[-1], 2.0)
    assert np.isclose(tab.frq, 9.5)
    assert np.allclose(tab.frq_x[:3], [3.0, 3.0, 1.5])
    assert np.allclose(tab.frq_y[:2], [2.5, 5.0])


def test_frequency_combine_is_undone_by_uncombine():
    tab = _frq_table()
    xy, x = tab.frq_xy.copy(), tab.frq_x.copy()
    tab.combine(0, 1)
    assert tab.frq_x[0] == -1
    assert np.isclose(tab.frq_x[1], 6.0)
    tab.combine(1, 2)
    assert tab.dest(0) == 2
    assert np.isclose(tab.frq_x[2], 7.5)
    tab.uncombine(1)
    tab.uncombine(0)
    assert np.allclose(tab.frq_xy, xy, atol=1e-9)
    assert np.allclose(tab.frq_x, x, atol=1e-9)
    assert tab.dest(0) == 0


def test_frequency_combine_rejects_combined_source():
    tab = _frq_table()
    tab.combine(0, 1)
    with pytest.raises(ValueError):
        tab.combine(0, 2)


def test_variation_moments():
    tab = _var_table()
    assert np.isclose(tab.known, 6.0)
    assert np.isclose(tab.frq, 7.0)
    assert np.allclose(tab.col_mean[:3], [1.5, 10.5, 5.0])
    assert np.allclose(tab.col_sse[:3], [0.5, 0.5, 0.0])
    # the unknown column gets its own mean too
    assert np.isclose(tab.col_mean[-1], 4.0)


def test_variation_combine_is_undone_by_uncombine():
    tab = _var_table()
    frq, mean, sse = tab.col_frq.copy(), tab.col_mean.copy(), tab.col_sse.copy()
    tab.combine(0, 1)
    tab.combine(1, 2)
    assert np.isclose(tab.col_frq[2], 6.0)
    tab.uncombine(1)
    tab.uncombine(0)
    assert np.allclose(tab.col_frq, frq, atol=1e-9)
    assert np.allclose(tab.col_mean, mean, atol=1e-9)
    assert np.allclose(tab.col_sse, sse, atol=1e-9)


def test_variation_move():
    tab = _var_table()
    tab.move(1, 0, 10.0, 1.0)
    assert np.isclose(tab.col_frq[0], 3.0)
    assert np.isclose(tab.col_mean[1], 11.0)
    assert np.isclose(tab.col_sse[1], 0.0)


# ---------------------------------------------------------------------------
# Measures
# ---------------------------------------------------------------------------
def _perfect():
    tab = FrequencyTable(2, 2)
    tab.add(np.array([0, 0, 1, 1]), np.array([0, 0, 1, 1]))
    tab.marginalize()
    return tab


def _independent():
    tab = FrequencyTable(2, 2)
    tab.add(np.array([0, 0, 1, 1]), np.array([0, 1, 0, 1]))
    tab.marginalize()
    return tab


@pytest.mark.parametrize("name,value", [
    ("infgain", 1.0), ("infgr", 1.0), ("gini", 0.5), ("chi2", 4.0),
])
def test_perfect_split_scores(name, value):
    assert np.isclose(_perfect().evaluate(measure_by_name(name)), value)


@pytest.mark.parametrize("name", ["infgain", "infgr", "gini", "chi2"])
def test_independent_split_is_worth_nothing(name):
    assert np.isclose(_independent().evaluate(measure_by_name(name)), 0.0)


def test_measure_none_is_zero():
    assert _perfect().evaluate(FrequencyMeasure.NONE) == 0.0


def test_sse_reduction():
    tab = VariationTable(2)
    tab.add(np.array([0, 0, 1, 1]), np.array([1.0, 2.0, 10.0, 11.0]))
    tab.calculate()
    assert np.isclose(tab.sse, 82.0)
    assert np.isclose(tab.evaluate(VariationMeasure.SSE), 81.0)


def test_measure_by_name():
    assert measure_by_name("infgr:rmse") == FrequencyMeasure.INFGR
    assert measure_by_name("infgr:rmse", metric=True) == VariationMeasure.RMSE
    with pytest.raises(ValueError):
        measure_by_name("gini", metric=True)


@pytest.mark.parametrize("name", sorted(set(FREQUENCY_MEASURE_NAMES)
                                        - {"none", "wevid"}))
def test_every_measure_prefers_the_clear_split(name):
    measure = FREQUENCY_MEASURE_NAMES[name]
    clear, useless = _perfect().evaluate(measure), _independent().evaluate(measure)
    assert np.isfinite(clear) and np.isfinite(useless)
    assert clear > useless


@pytest.mark.parametrize("name", ["sse", "mse", "rmse", "var", "sd"])
def test_every_variation_measure_rewards_separation(name):
    tab = VariationTable(2)
    tab.add(np.array([0, 0, 1, 1]), np.array([1.0, 2.0, 10.0, 11.0]))
    tab.calculate()
    assert tab.evaluate(measure_by_name(name, metric=True)) > 0
