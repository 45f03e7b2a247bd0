import numpy as np
import pytest

from dtreepy import TreeStructureError, classify, grow
from dtreepy.attributes import FLOAT, NOMINAL, Attribute, AttributeSet, Table, encode
from dtreepy.executor import classify_many
from dtreepy.model import EMPTY


def _nominal_tree():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("cls", NOMINAL)])
    table = Table.from_records(
        attset, [["x", "yes"], ["x", "yes"], ["x", "no"], ["z", "no"],
                 ["z", "no"], ["z", "no"]])
    return grow(table, "cls"), attset


def _metric_tree():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("y", FLOAT)])
    table = Table.from_records(
        attset, [[1, 1], [2, 2], [3, 3], [4, 10], [5, 11], [6, 12]])
    return grow(table, "y"), attset


def test_known_value_reaches_one_leaf():
    tree, attset = _nominal_tree()
    p = classify(tree, encode(attset, ["x", None]))
    assert p.prediction == attset["cls"].value_id("yes")
    assert np.isclose(p.support, 3.0)
    assert np.isclose(p.confidence, 2.0 / 3.0)
    assert np.allclose(p.distribution, [2.0, 1.0])


def test_missing_value_combines_all_children():
    tree, attset = _nominal_tree()
    p = classify(tree, encode(attset, [None, None]))
    assert np.allclose(p.distribution, [2.0, 4.0])
    assert np.isclose(p.support, tree.total)
    assert p.prediction == attset["cls"].value_id("no")


def test_unseen_value_uses_the_node_itself():
    tree, attset = _nominal_tree()
    p = classify(tree, encode(attset, ["w", None]))
    assert np.isclose(p.support, 6e-12)
    assert np.allclose(p.distribution / p.support, [1.0 / 3.0, 2.0 / 3.0])
    assert p.prediction == attset["cls"].value_id("no")


def test_negative_fallback_weight_fans_out():
    tree, attset = _nominal_tree()
    p = classify(tree, encode(attset, ["w", None]), weight=-1)
    assert np.allclose(p.distribution, [2.0, 4.0])


def test_metric_leaf_prediction():
    tree, attset = _metric_tree()
    p = classify(tree, encode(attset, [2.0, None]))
    assert np.isclose(p.prediction, 2.0)
    assert np.isclose(p.support, 3.0)
    assert np.isclose(p.confidence, np.sqrt(2.0 / 3.0))


def test_metric_missing_value_is_weighted_mean_of_children():
    tree, attset = _metric_tree()
    p = classify(tree, encode(attset, [None, None]))
    assert np.isclose(p.prediction, 6.5)
    assert np.isclose(p.support, 6.0)
    # pooled standard deviation of all six values
    assert np.isclose(p.confidence, np.std([1, 2, 3, 10, 11, 12]))


def test_value_on_the_cut_fans_out():
    tree, attset = _metric_tree()
    on_cut = classify(tree, encode(attset, [3.5, None]))
    missing = classify(tree, encode(attset, [None, None]))
    assert np.isclose(on_cut.prediction, missing.prediction)


def test_classify_many():
    tree, attset = _metric_tree()
    X = np.vstack([encode(attset, [v, None]) for v in (1, 6)])
    preds = classify_many(tree, X)
    assert [round(p.prediction, 9) for p in preds] == [2.0, 11.0]


def test_empty_tree_has_no_support():
    tree, attset = _nominal_tree()
    tree.root = None
    p = classify(tree, encode(attset, ["x", None]))
    assert p.support == 0.0
    assert p.confidence == 0.0


def test_mismatched_node_raises():
    tree, attset = _nominal_tree()
    tree[tree.root].slots.extend([EMPTY, EMPTY])
    with pytest.raises(TreeStructureError):
        classify(tree, encode(attset, ["x", None]))
    with pytest.raises(TreeStructureError):
        tree.validate()
