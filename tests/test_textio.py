import numpy as np
import pytest

from dtreepy import DescFlags, TreeParseError, classify, describe, grow, parse
from dtreepy.attributes import FLOAT, NOMINAL, Attribute, AttributeSet, Table, encode
from dtreepy.textio import format_name

EXPECTED = """\
dtree(cls) =
{ (a)
  x:{ yes: 2 },
  z:{ no: 2 }};
"""


def _binary():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("cls", NOMINAL)])
    table = Table.from_records(
        attset, [["x", "yes"], ["x", "yes"], ["z", "no"], ["z", "no"]])
    return grow(table, "cls"), attset


def _mixed():
    attset = AttributeSet([Attribute("a", NOMINAL), Attribute("b", FLOAT),
                           Attribute("cls", NOMINAL)])
    records = [
        ["p", 1, "yes"], ["p", 2, "yes"], ["p", 3, "yes"], ["p", 4, "no"],
        ["q", 5, "no"], ["q", 6, "no"], ["q", 7, "no"], ["q", 8, "yes"],
        ["r", 9, "yes"], ["r", 10, "no"], ["p", None, "yes"],
        [None, 2.5, "no"],
    ]
    table = Table.from_records(attset, records)
    return grow(table, "cls", mincnt=1.0), attset, table


def test_describe_layout():
    tree, _ = _binary()
    assert describe(tree) == EXPECTED


def test_describe_empty_tree():
    tree, _ = _binary()
    tree.root = None
    assert describe(tree) == "dtree(cls) =\n{ };\n"


def test_describe_with_title_and_info():
    tree, _ = _binary()
    text = describe(tree, DescFlags.TITLE | DescFlags.INFO)
    assert text.startswith("/*" + "-" * 70 + "\n  decision tree\n")
    assert "number of attributes: 1+1" in text
    assert "number of levels    : 2" in text
    assert "number of nodes     : 3" in text
    assert "number of tuples    : 4" in text


def test_relative_frequencies():
    tree, _ = _binary()
    assert "yes: 2 (100.0%)" in describe(tree, DescFlags.REL)


def test_round_trip_decision_tree():
    tree, attset, table = _mixed()
    text = describe(tree, DescFlags.ALIGN, maxlen=40)
    back = parse(attset, text)
    assert (back.height, back.size) == (tree.height, tree.size)
    for row in table.data:
        p, q = classify(tree, row), classify(back, row)
        assert np.allclose(p.distribution, q.distribution)


def test_round_trip_regression_tree():
    attset = AttributeSet([Attribute("x", FLOAT), Attribute("y", FLOAT)])
    table = Table.from_records(
        attset, [[1, 1], [2, 2], [3, 3], [4, 10], [5, 11], [6, 12]])
    tree = grow(table, "y")
    text = describe(tree)
    assert "(x|3.5)" in text
    back = parse(attset, text)
    for v in (1.0, 3.5, 6.0, None):
        tpl = encode(attset, [v, None])
        p, q = classify(tree, tpl), classify(back, tpl)
        assert np.isclose(p.prediction, q.prediction)
        assert np.isclose(p.confidence, q.confidence)


def test_parse_value_list_and_comments():
    attset = AttributeSet([Attribute("v", NOMINAL, ["a", "b", "c"]),
                           Attribute("cls", NOMINAL, ["yes", "no"])])
    text = """/* a comment */
dtree(cls) =
{ (v)
  a,b:{ yes: 4 },
  c:{ no: 3 (100.0%) }};
"""
    tree = parse(attset, text)
    assert tree.child(tree.root, 1) == tree.child(tree.root, 0)
    assert np.isclose(tree.total, 7.0)
    p = classify(tree, encode(attset, ["b", None]))
    assert p.prediction == 0


def test_parse_error_reports_the_line():
    _, attset = _binary()
    text = "dtree(cls) =\n{ (a)\n  x:{ yes: 2 },\n  w:{ no: 2 }};\n"
    with pytest.raises(TreeParseError) as info:
        parse(attset, text)
    assert info.value.line == 4
    assert "line 4" in str(info.value)


@pytest.mark.parametrize("text", [
    "tree(cls) = { };",
    "dtree(foo) = { };",
    "dtree(cls) = { yes: 1, yes: 2 };",
    "dtree(cls) = { yes: -1 };",
    "dtree(cls) = { (a) x:{ yes: 1 }, x:{ no: 1 }};",
    "dtree(cls) = { };  /* unterminated",
    "dtree(cls) = { } ",
])
def test_malformed_descriptions(text):
    _, attset = _binary()
    with pytest.raises(TreeParseError):
        parse(attset, text)


def test_format_name():
    assert format_name("plain_name-1.0") == "plain_name-1.0"
    assert format_name("two words") == '"two words"'
    assert format_name('say "hi"') == '"say \\"hi\\""'
