import numpy as np
import pytest

from dtreepy import forward_selection, grow
from dtreepy.attributes import NOMINAL, Attribute, AttributeSet, Table
from dtreepy.selection import first_class_scores


def _table(labels=None, values=("yes", "no")):
    attset = AttributeSet([Attribute("noise", NOMINAL),
                           Attribute("signal", NOMINAL),
                           Attribute("cls", NOMINAL, list(values))])
    if labels is None:
        labels = ["yes"] * 4 + ["no"] * 4
    records = [["p" if i % 2 == 0 else "q", "s1" if i < 4 else "s2", c]
               for i, c in enumerate(labels)]
    return Table.from_records(attset, records)


def test_selects_the_informative_attribute_only():
    result = forward_selection(_table(), "cls")
    assert result == [("signal", 1.0)]


def test_candidates_restrict_the_search():
    assert forward_selection(_table(), "cls", candidates=["noise"]) == []


def test_first_class_scores():
    table = _table()
    tree = grow(table, "cls", attributes=["signal"])
    y_true, scores = first_class_scores(tree, table)
    assert list(y_true) == [1] * 4 + [0] * 4
    assert np.allclose(scores, [1.0] * 4 + [0.0] * 4)


def test_needs_two_classes():
    with pytest.raises(ValueError):
        forward_selection(_table(values=("yes", "no", "maybe")), "cls")


def test_needs_both_classes_present():
    with pytest.raises(ValueError):
        forward_selection(_table(labels=["yes"] * 8), "cls")
