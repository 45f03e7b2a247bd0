# -*- coding: utf-8 -*-
"""
dtreepy.textio
==============

Human readable text form of decision and regression trees.

A tree is written as::

    dtree(play) =
    { (outlook)
      sunny:{ (humidity|77.5)
          <:{ yes: 2 },
          >:{ no: 3 }},
      rain,overcast:{ yes: 7, no: 2 }};

Leaves of a decision tree list the non-zero class frequencies (optionally
with percentages), leaves of a regression tree give ``mean ~sd [weight]``.
A test on a nominal attribute lists the branches by value; values sharing a
branch are listed together before the colon.  A test on a metric attribute
has the cut after a ``|`` and the branches ``<`` (at most the cut) and ``>``.
:func:`parse` reads this form back.
"""

from __future__ import annotations

import logging
import math
import re
import sys
from enum import IntFlag

from .exceptions import TreeParseError
from .model import EMPTY, AliasOf, DecisionTree, Owned

logger = logging.getLogger(__name__)

_PLAIN = re.compile(r"[A-Za-z0-9_.+\-]+\Z")
_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r"}


class DescFlags(IntFlag):
    """Options of :func:`describe`."""

    TITLE = 0x01    # title comment
    INFO = 0x02     # trailing comment with tree statistics
    ALIGN = 0x04    # align the values of a test
    REL = 0x08      # relative class frequencies


def format_name(name: str) -> str:
    """Quote a name unless it is a plain token."""
    name = str(name)
    if _PLAIN.match(name):
        return name
    out = []
    for ch in name:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch < " ":
            out.append("\\x%02x" % ord(ch))
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


# -----------------------------------------------------------------------------
# Writer
# -----------------------------------------------------------------------------
class _Writer:

    def __init__(self, tree: DecisionTree, flags: DescFlags, maxlen: int):
        self.tree = tree
        self.attset = tree.attset
        self.flags = flags
        self.max = maxlen if maxlen > 0 else sys.maxsize
        self.out: list[str] = []
        self.pos = 0
        self.ind = 0

    def write(self, s: str) -> None:
        self.out.append(s)

    def indent(self, newline: bool) -> None:
        if newline:
            self.write("\n")
            self.pos = 0
        if self.ind > self.pos:
            self.write(" " * (self.ind - self.pos))
            self.pos = self.ind

    def classes(self, node) -> None:
        att = self.tree.target
        rel = bool(self.flags & DescFlags.REL)
        r = 1.0
        if rel:
            r = float(node.frqs.sum())
            r = 100.0 / r if r > 0 else 1.0
        k = 0
        for i, f in enumerate(node.frqs):
            if f <= 0:
                continue
            if k > 0:
                self.write(",")
                self.pos += 1
            s = "%s: %.16g" % (format_name(att.values[i]), f)
            if rel:
                s += " (%.1f%%)" % (f * r)
            if self.pos + len(s) > self.max - 4 and self.pos > self.ind:
                self.indent(True)
            elif k > 0:
                self.write(" ")
                self.pos += 1
            self.write(s)
            self.pos += len(s)
            k += 1

    def node(self, i: int) -> None:
        tree = self.tree
        node = tree[i]
        self.write("{ ")
        self.ind += 2
        self.pos = self.ind
        if node.is_leaf:
            if tree.nominal:
                self.classes(node)
            else:
                sd = math.sqrt(node.err / node.frq) if node.frq > 0 else 0.0
                s = "%.16g ~%.16g [%.16g]" % (node.trg, sd, node.frq)
                self.write(s)
                self.pos += len(s)
            self.write(" }")
            self.pos += 2
            self.ind -= 2
            return

        att = self.attset[node.attid]
        s = "(" + format_name(att.name)
        if not att.is_nominal:
            s += "|%.16g" % node.cut
        self.write(s + ")")
        self.indent(True)
        align = bool(self.flags & DescFlags.ALIGN)
        swd = 1
        if att.is_nominal and att.values:
            swd = max(len(format_name(v)) for v in att.values)
        k = 0
        for m, slot in enumerate(node.slots):
            if not isinstance(slot, Owned):
                continue
            if k > 0:
                self.write(",")
                self.indent(True)
            k += 1
            if not att.is_nominal:
                buf, step = (">" if m > 0 else "<"), 1
            else:
                buf, step = format_name(att.values[m]), swd
                for n in range(node.size):
                    if n == m or not isinstance(node.slots[n], AliasOf) \
                            or tree.dest(i, n) != m:
                        continue
                    self.write(buf + ",")
                    self.pos += len(buf) + 1
                    if align:
                        self.indent(True)
                    buf = format_name(att.values[n])
            self.write(buf)
            self.pos += len(buf)
            self.ind += step if align else 1
            self.indent(False)
            self.write(":")
            self.pos += 1
            self.ind += 1
            self.node(slot.node)
            self.ind -= step if align else 1
            self.ind -= 1
        self.ind -= 2
        if self.pos >= self.max or (self.ind <= 0 and self.pos >= self.max - 1):
            self.indent(True)
        self.write("}")
        self.pos += 1


def describe(tree: DecisionTree, flags: DescFlags | int = 0,
             maxlen: int = 0) -> str:
    """Return the text form of a tree.

    Parameters
    ----------
    tree : DecisionTree
        Tree to describe.
    flags : DescFlags, default=0
        Output options.
    maxlen : int, default=0
        Maximal line length (0 = no limit).
    """
    flags = DescFlags(int(flags))
    maxlen = int(maxlen)
    dashes = "-" * (maxlen - 2 if maxlen > 0 else 70)
    parts = []
    if flags & DescFlags.TITLE:
        kind = "decision tree" if tree.nominal else "regression tree"
        parts.append("/*%s\n  %s\n%s*/\n" % (dashes, kind, dashes))
    w = _Writer(tree, flags, maxlen)
    w.write("dtree(%s) =\n" % format_name(tree.target.name))
    if tree.root is not None:
        w.node(tree.root)
    else:
        w.write("{ }")
    w.write(";\n")
    parts.extend(w.out)
    if flags & DescFlags.INFO:
        parts.append("\n/*%s" % dashes)
        parts.append("\n  number of attributes: %d+1"
                     % len(tree.used_attributes()))
        parts.append("\n  number of levels    : %d" % tree.height)
        parts.append("\n  number of nodes     : %d" % tree.size)
        parts.append("\n  number of tuples    : %g\n" % tree.total)
        parts.append("%s*/\n" % dashes)
    return "".join(parts)


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------
_TOKEN = re.compile(r"""
    (?P<ws>[ \t\r\f\v]+)
  | (?P<nl>\n)
  | (?P<comment>/\*.*?\*/)
  | (?P<string>"(?:[^"\\\n]|\\.)*")
  | (?P<word>[A-Za-z0-9_.+\-]+)
  | (?P<char>[{}()\[\]|:,;=<>~%])
""", re.VERBOSE | re.DOTALL)

_UNESCAPE = re.compile(r"\\(x[0-9A-Fa-f]{2}|.)")
_SIMPLE = {"n": "\n", "t": "\t", "r": "\r"}


def _unquote(s: str) -> str:
    def rep(m):
        e = m.group(1)
        if e[0] == "x" and len(e) == 3:
            return chr(int(e[1:], 16))
        return _SIMPLE.get(e, e)
    return _UNESCAPE.sub(rep, s[1:-1])


def _is_number(s: str) -> bool:
    try:
        float(s)
    except ValueError:
        return False
    return True


def _tokenize(text: str) -> list[tuple[str, str, int]]:
    """Split a tree description into ``(kind, value, line)`` triples."""
    tokens = []
    line, pos = 1, 0
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            if text.startswith("/*", pos):
                raise TreeParseError("unterminated comment", line)
            raise TreeParseError(f"unexpected character {text[pos]!r}", line)
        kind = m.lastgroup
        value = m.group()
        if kind == "string":
            tokens.append(("id", _unquote(value), line))
        elif kind == "word":
            tokens.append(("num" if _is_number(value) else "id", value, line))
        elif kind == "char":
            tokens.append((value, value, line))
        line += value.count("\n")
        pos = m.end()
    tokens.append(("eof", "", line))
    return tokens


class _Parser:

    def __init__(self, attset, text: str):
        self.attset = attset
        self.tokens = _tokenize(text)
        self.i = 0
        self.tree: DecisionTree | None = None

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    @property
    def kind(self) -> str:
        return self.tokens[self.i][0]

    def error(self, message: str):
        return TreeParseError(message, self.tokens[self.i][2])

    def next(self) -> str:
        value = self.tokens[self.i][1]
        if self.i < len(self.tokens) - 1:
            self.i += 1
        return value

    def expect(self, ch: str) -> None:
        if self.kind != ch:
            raise self.error(f"'{ch}' expected")
        self.next()

    def name(self, what: str) -> str:
        if self.kind not in ("id", "num"):
            raise self.error(f"{what} expected")
        return self.next()

    def number(self, lo: float = -math.inf, hi: float = math.inf) -> float:
        if self.kind != "num":
            raise self.error("number expected")
        f = float(self.tokens[self.i][1])
        if not math.isfinite(f) or f < lo or f > hi:
            raise self.error(f"illegal number {self.tokens[self.i][1]}")
        self.next()
        return f

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------
    def parse(self) -> DecisionTree:
        if self.kind != "id" or self.tokens[self.i][1] != "dtree":
            raise self.error("'dtree' expected")
        self.next()
        self.expect("(")
        name = self.name("attribute")
        trgid = self.attset.get(name)
        if trgid < 0:
            raise self.error(f"unknown attribute {name!r}")
        self.tree = DecisionTree(self.attset, trgid)
        self.expect(")")
        self.expect("=")
        self.tree.root = self.subtree()
        self.expect(";")
        return self.tree

    def classes(self):
        target = self.tree.target
        frqs = [-1.0] * self.tree.clscnt
        while True:
            name = self.name("class value")
            cls = target.value_id(name)
            if cls < 0:
                raise self.error(f"unknown value {name!r}")
            if frqs[cls] >= 0:
                raise self.error(f"duplicate value {name!r}")
            self.expect(":")
            frqs[cls] = self.number(0.0)
            if self.kind == "(":
                self.next()
                self.number(0.0, 100.0)
                self.expect("%")
                self.expect(")")
            if self.kind != ",":
                break
            self.next()
        return [max(f, 0.0) for f in frqs]

    def values(self, test: int, att) -> int:
        slots = self.tree[test].slots
        name = self.name("attribute value")
        v1 = att.value_id(name)
        if v1 < 0:
            raise self.error(f"unknown value {name!r}")
        if slots[v1] is not EMPTY:
            raise self.error(f"duplicate value {name!r}")
        while self.kind == ",":
            self.next()
            name = self.name("attribute value")
            v2 = att.value_id(name)
            if v2 < 0:
                raise self.error(f"unknown value {name!r}")
            if v2 == v1 or slots[v2] is not EMPTY:
                raise self.error(f"duplicate value {name!r}")
            slots[v2] = AliasOf(v1)
        self.expect(":")
        return v1

    def subtree(self) -> int | None:
        tree = self.tree
        self.expect("{")
        if self.kind == "}":
            self.next()
            return None

        if self.kind != "(":
            if tree.nominal:
                leaf = tree.new_leaf(self.classes())
            else:
                mean = self.number()
                self.expect("~")
                sd = self.number(0.0)
                self.expect("[")
                frq = self.number(0.0)
                self.expect("]")
                leaf = tree.new_leaf(frq=frq, err=sd * sd * frq, mean=mean)
            self.expect("}")
            return leaf

        self.next()
        name = self.name("attribute")
        attid = self.attset.get(name)
        if attid < 0:
            raise self.error(f"unknown attribute {name!r}")
        att = self.attset[attid]
        cut = math.nan
        if not att.is_nominal:
            self.expect("|")
            cut = self.number()
        self.expect(")")
        test = tree.new_test(attid, att.valcnt if att.is_nominal else 2, cut)
        slots = tree[test].slots
        k = 0
        while self.kind != "}":
            k += 1
            if k > 1:
                self.expect(",")
            if att.is_nominal:
                v = self.values(test, att)
            else:
                if self.kind not in ("<", ">"):
                    raise self.error(
                        f"unknown value {self.tokens[self.i][1]!r}")
                v = 0 if self.kind == "<" else 1
                if slots[v] is not EMPTY:
                    raise self.error(f"duplicate value {self.kind!r}")
                self.next()
                self.expect(":")
            child = self.subtree()
            if child is not None:
                slots[v] = Owned(child)
        self.next()
        return test


def parse(attset, text: str) -> DecisionTree:
    """Read a tree from its text form.

    Parameters
    ----------
    attset : AttributeSet
        Attributes the names in the text refer to.
    text : str
        Output of :func:`describe` (comments are allowed anywhere).

    Raises
    ------
    TreeParseError
        On malformed input, unknown attributes or values and duplicate
        values; the error carries the line number.
    """
    tree = _Parser(attset, text).parse()
    tree.aggregate()
    tree.count()
    logger.debug("parsed tree: %d level(s), %d node(s)",
                 tree.height, tree.size)
    return tree
