import math

import numpy as np
import pytest

from dtreepy import GrowFlags, grow
from dtreepy.attributes import FLOAT, NOMINAL, Attribute, AttributeSet, Table
from dtreepy.model import AliasOf


def _binary_table():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("cls", NOMINAL)])
    records = [["x", "yes"], ["x", "yes"], ["z", "no"], ["z", "no"]]
    return Table.from_records(attset, records)


def _metric_table():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("y", FLOAT)])
    records = [[1, 1], [2, 2], [3, 3], [4, 10], [5, 11], [6, 12]]
    return Table.from_records(attset, records)


def _missing_table():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("b", FLOAT),
                           Attribute("cls", NOMINAL)])
    records = [
        ["p", 1, "yes"], ["p", 2, "yes"], ["p", 3, "yes"], ["p", 4, "no"],
        ["q", 5, "no"], ["q", 6, "no"], ["q", 7, "no"], ["q", 8, "yes"],
        [None, 9, "yes"], [None, 10, "no"], ["p", None, "yes"],
        ["q", None, "no"],
    ]
    return Table.from_records(attset, records)


def _subset_table():
    attset = AttributeSet([Attribute("v", NOMINAL), Attribute("cls", NOMINAL)])
    records = [["a", "yes"], ["a", "yes"], ["b", "yes"], ["b", "yes"],
               ["c", "no"], ["c", "no"], ["c", "no"], ["c", "no"]]
    return Table.from_records(attset, records)


def _test_nodes(tree):
    stack = [tree.root]
    while stack:
        i = stack.pop()
        if not tree[i].is_leaf:
            yield i
            stack.extend(c for _, c in tree.children(i))


def test_perfectly_correlated_attribute():
    tree = grow(_binary_table(), "cls")
    assert tree.height == 2
    assert tree.size == 3
    root = tree[tree.root]
    assert root.attid == 0
    for _, c in tree.children(tree.root):
        leaf = tree[c]
        assert leaf.is_leaf
        assert leaf.err == 0.0
        assert np.count_nonzero(leaf.frqs) == 1
    assert tree.total == 4.0


def test_metric_cut_between_middle_values():
    tree = grow(_metric_table(), "y")
    root = tree[tree.root]
    assert root.attid == 0
    assert np.isclose(root.cut, 3.5)
    low, high = tree[tree.child(tree.root, 0)], tree[tree.child(tree.root, 1)]
    assert np.isclose(low.trg, 2.0)
    assert np.isclose(high.trg, 11.0)
    assert np.isclose(low.err, 2.0)
    assert np.isclose(high.err, 2.0)


def test_target_by_index_and_measure_by_name():
    tree = grow(_metric_table(), 1, measure="sse")
    assert np.isclose(tree[tree.root].cut, 3.5)


def test_unknown_measure_raises():
    with pytest.raises(ValueError):
        grow(_binary_table(), "cls", measure="rmse")


def test_weight_is_conserved_with_missing_values():
    table = _missing_table()
    tree = grow(table, "cls", mincnt=1.0, flags=GrowFlags.NOPRUNE)
    assert tree.height > 1
    assert np.isclose(tree.total, 12.0)
    for i in _test_nodes(tree):
        below = sum(tree[j].frqs.sum() for j in tree.leaves(i))
        assert np.isclose(below, tree[i].frq, atol=1e-9)
    # the working weights are a copy
    assert np.all(table.weights == 1.0)


def test_kept_subtrees_reduce_the_error():
    tree = grow(_missing_table(), "cls", mincnt=1.0)
    for i in _test_nodes(tree):
        below = sum(tree[j].err for j in tree.leaves(i))
        assert below <= tree[i].err


def test_max_height():
    tree = grow(_missing_table(), "cls", mincnt=1.0, maxht=2,
                flags=GrowFlags.NOPRUNE)
    assert tree.height <= 2
    assert max(tree.depth_of_leaves()) <= 1


def test_restricted_attributes():
    tree = grow(_missing_table(), "cls", mincnt=1.0, attributes=["b"],
                flags=GrowFlags.NOPRUNE)
    assert tree.used_attributes() <= {1}


def test_too_little_weight_gives_a_leaf():
    tree = grow(_binary_table(), "cls", mincnt=3.0)
    assert tree.height == 1
    assert tree[tree.root].is_leaf


def test_measure_none_gives_a_leaf():
    tree = grow(_binary_table(), "cls", measure="none")
    assert tree.size == 1


def test_evaluation_only():
    tree = grow(_binary_table(), "cls", flags=GrowFlags.EVAL)
    assert tree.size == 1
    assert np.isclose(tree.evals[0], 1.0)
    assert tree.evals[1] == -math.inf
    assert tree.cuts[0] == 0.0


def test_evaluation_only_reports_cuts():
    tree = grow(_metric_table(), "y", flags=GrowFlags.EVAL)
    assert np.isclose(tree.cuts[0], 3.5)
    assert tree.evals[0] > 0


@pytest.mark.parametrize("flags", [GrowFlags.SUBSET, GrowFlags.ONE_IN_N])
def test_value_subsets(flags):
    tree = grow(_subset_table(), "cls", flags=flags)
    root = tree[tree.root]
    assert isinstance(root.slots[1], AliasOf)
    assert tree.child(tree.root, 1) == tree.child(tree.root, 0)
    assert len(list(tree.leaves(tree.root))) == 2


def test_full_split_has_one_branch_per_value():
    tree = grow(_subset_table(), "cls")
    assert len(tree.children(tree.root)) == 3


def test_no_known_target_gives_empty_tree():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("cls", NOMINAL)])
    table = Table.from_records(attset, [["x", None], ["z", None]])
    tree = grow(table, "cls")
    assert tree.root is None
    assert tree.total == 0.0


def test_private_attribute_set():
    table = _binary_table()
    tree = grow(table, "cls", flags=GrowFlags.DUPAS)
    assert tree.attset is not table.attset
    assert tree.attset.names == table.attset.names


def test_table_encoding():
    table = _binary_table()
    row = table.encode(["z", None])
    assert row[0] == 1.0
    assert np.isnan(row[1])
    # unseen names map past the known values unless the table may extend
    assert table.encode(["w", "yes"])[0] == 2.0
    assert table.attset["a"].valcnt == 2
    assert len(table) == 4
