import numpy as np
import pytest

from dtreepy import PruneMethod, grow, prune
from dtreepy.attributes import FLOAT, NOMINAL, Attribute, AttributeSet, Table
from dtreepy.pruner import make_estimator, nominal_confidence


def _noisy_table():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("cls", NOMINAL)])
    labels = ["a"] * 10 + ["b"] * 10
    labels[3], labels[15] = "b", "a"
    records = [[float(i), c] for i, c in enumerate(labels)]
    return Table.from_records(attset, records)


def _noisy_tree(**kws):
    return grow(_noisy_table(), "cls", mincnt=1.0, **kws)


def test_zero_pessimistic_penalty_keeps_the_tree():
    tree = _noisy_tree()
    size = tree.size
    assert size > 3
    prune(tree, "pess", 0.0)
    assert tree.size == size


def test_confidence_pruning_shrinks_the_tree():
    tree = _noisy_tree()
    size = tree.size
    prune(tree, PruneMethod.CLVL, 0.25)
    assert tree.size < size
    assert tree[tree.root].attid == 0
    tree.validate()
    leaves = sum(tree[j].frqs.sum() for j in tree.leaves(tree.root))
    assert np.isclose(leaves, 20.0)
    assert np.isclose(tree.total, 20.0)


def test_max_height():
    tree = _noisy_tree()
    assert tree.height > 2
    prune(tree, "none", maxht=2)
    assert tree.height <= 2


def test_selection_threshold_collapses_unselected_subtrees():
    tree = _noisy_tree()
    prune(tree, "none", threshold=1.01)
    assert tree.height == 1


def test_unknown_method():
    with pytest.raises(ValueError):
        prune(_noisy_tree(), "bogus")
    with pytest.raises(ValueError):
        prune(_noisy_tree(), 7)


def test_pruning_with_a_table():
    table = _noisy_table()
    tree = grow(table, "cls", mincnt=1.0)
    prune(tree, "clvl", 0.25, table=table, check_largest=True)
    tree.validate()
    assert np.isclose(tree.total, 20.0)
    assert tree.height >= 2


def test_pruning_with_a_table_keeps_a_clean_split():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("y", FLOAT)])
    table = Table.from_records(
        attset, [[1, 1], [2, 2], [3, 3], [4, 10], [5, 11], [6, 12]])
    tree = grow(table, "y")
    prune(tree, "pess", 1.0, table=table)
    assert tree.size == 3
    assert np.isclose(tree[tree.root].cut, 3.5)


def test_metric_collapse_under_heavy_penalty():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("y", FLOAT)])
    table = Table.from_records(
        attset, [[1, 1], [2, 2], [3, 3], [4, 10], [5, 11], [6, 12]])
    tree = grow(table, "y")
    prune(tree, "pess", 1000.0)
    assert tree.size == 1
    assert np.isclose(tree[tree.root].trg, 6.5)


# ---------------------------------------------------------------------------
# Estimators
# ---------------------------------------------------------------------------
def test_confidence_estimate_is_an_upper_bound():
    est = nominal_confidence(0.25)
    for n, e in [(10.0, 0.0), (10.0, 0.5), (10.0, 3.0), (100.0, 40.0)]:
        assert e <= est(n, e) <= n


def test_confidence_estimate_grows_with_the_error():
    est = nominal_confidence(0.25)
    values = [est(20.0, e) for e in (0.0, 0.5, 1.0, 2.0, 5.0)]
    assert values == sorted(values)


def test_pessimistic_estimate_is_capped():
    est = make_estimator(PruneMethod.PESS, 2.0, True)
    assert est(10.0, 3.0) == 5.0
    assert est(4.0, 3.0) == 4.0


def test_no_estimator_for_none():
    assert make_estimator(PruneMethod.NONE, 0.5, True) is None
