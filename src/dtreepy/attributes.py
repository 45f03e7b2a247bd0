# -*- coding: utf-8 -*-
"""
dtreepy.attributes
==================

Minimal attribute set and tuple table used by the tree core.

An :class:`AttributeSet` describes the columns of a :class:`Table`: every
attribute is nominal (a fixed, growable list of value names), integer or
float.  The table stores all cells in one float matrix.  Nominal cells hold
value identifiers (indices into the attribute's value list) and a missing
value is ``NaN`` for every attribute type, so a single null predicate
serves all of them.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np

NOMINAL = "nominal"
INTEGER = "integer"
FLOAT = "float"
_TYPES = (NOMINAL, INTEGER, FLOAT)

# raw record entries treated as missing
_NULL_NAMES = frozenset(["", "?"])


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def is_null(v) -> bool:
    """Return True for the raw representations of a missing value."""
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() in _NULL_NAMES
    try:
        return math.isnan(v)
    except TypeError:
        return False


def value_name(v) -> str:
    """Canonical name of a raw nominal value (``1.0`` and ``1`` coincide)."""
    if isinstance(v, (float, np.floating)) and float(v).is_integer():
        return str(int(v))
    if isinstance(v, (np.integer,)):
        return str(int(v))
    return str(v)


# -----------------------------------------------------------------------------
# Attributes
# -----------------------------------------------------------------------------
class Attribute:
    """A single column description.

    Parameters
    ----------
    name : str
        Attribute name, unique within its attribute set.
    type : {"nominal", "integer", "float"}, default="nominal"
        Semantic type of the attribute.
    values : iterable of str, optional
        Initial value names of a nominal attribute.
    """

    def __init__(self, name: str, type: str = NOMINAL,
                 values: Iterable | None = None):
        if type not in _TYPES:
            raise ValueError(f"unknown attribute type {type!r}")
        self.name = str(name)
        self.type = type
        self.values: list[str] = []
        self._ids: dict[str, int] = {}
        for v in values or ():
            if value_name(v) in self._ids:
                raise ValueError(f"duplicate value {v!r} of attribute {name!r}")
            self.add_value(v)

    @property
    def is_nominal(self) -> bool:
        return self.type == NOMINAL

    @property
    def valcnt(self) -> int:
        """Number of values (nominal attributes only, else 0)."""
        return len(self.values) if self.type == NOMINAL else 0

    def value_id(self, name) -> int:
        """Identifier of a value name, -1 if the name is unknown."""
        return self._ids.get(value_name(name), -1)

    def add_value(self, name) -> int:
        """Add a value (if new) and return its identifier."""
        key = value_name(name)
        vid = self._ids.get(key)
        if vid is None:
            vid = len(self.values)
            self.values.append(key)
            self._ids[key] = vid
        return vid

    def copy(self) -> "Attribute":
        return Attribute(self.name, self.type, list(self.values))

    def __repr__(self) -> str:
        if self.is_nominal:
            return f"Attribute({self.name!r}, nominal, {self.values!r})"
        return f"Attribute({self.name!r}, {self.type})"


class AttributeSet:
    """Ordered collection of attributes, addressable by index or name."""

    def __init__(self, attributes: Iterable[Attribute] = ()):
        self._atts: list[Attribute] = []
        self._ids: dict[str, int] = {}
        for att in attributes:
            self.add(att)

    def add(self, att: Attribute) -> int:
        if att.name in self._ids:
            raise ValueError(f"duplicate attribute name {att.name!r}")
        self._ids[att.name] = len(self._atts)
        self._atts.append(att)
        return len(self._atts) - 1

    def index(self, name: str) -> int:
        """Column index of an attribute; raises ``KeyError`` if unknown."""
        return self._ids[name]

    def get(self, name: str) -> int:
        """Column index of an attribute, -1 if unknown."""
        return self._ids.get(name, -1)

    @property
    def names(self) -> list[str]:
        return [a.name for a in self._atts]

    def copy(self) -> "AttributeSet":
        return AttributeSet(a.copy() for a in self._atts)

    def __len__(self) -> int:
        return len(self._atts)

    def __iter__(self):
        return iter(self._atts)

    def __getitem__(self, key) -> Attribute:
        if isinstance(key, str):
            return self._atts[self._ids[key]]
        return self._atts[key]


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------
class Table:
    """Weighted tuples over an attribute set.

    Parameters
    ----------
    attset : AttributeSet
        Column descriptions.
    data : array-like of shape (n_tuples, n_attributes)
        Encoded cells (value identifiers for nominal columns, NaN = missing).
    weights : array-like of shape (n_tuples,), optional
        Tuple weights, 1 by default.
    """

    def __init__(self, attset: AttributeSet, data, weights=None):
        data = np.asarray(data, dtype=float)
        if data.ndim == 1 and data.size == 0:
            data = data.reshape(0, len(attset))
        if data.ndim != 2 or data.shape[1] != len(attset):
            raise ValueError(
                f"data must have shape (n, {len(attset)}), got {data.shape}")
        if weights is None:
            weights = np.ones(data.shape[0], dtype=float)
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (data.shape[0],):
            raise ValueError("weights must have one entry per tuple.")
        if np.any(weights < 0):
            raise ValueError("tuple weights must be non-negative.")
        self.attset = attset
        self.data = data
        self.weights = weights

    @classmethod
    def from_records(cls, attset: AttributeSet, records: Iterable[Sequence],
                     weights=None) -> "Table":
        """Encode raw records; unseen nominal names are added to ``attset``."""
        rows = [encode(attset, r, extend=True) for r in records]
        data = np.vstack(rows) if rows else np.empty((0, len(attset)))
        return cls(attset, data, weights)

    def __len__(self) -> int:
        return self.data.shape[0]

    def column(self, col: int) -> np.ndarray:
        return self.data[:, col]

    def encode(self, record: Sequence, extend: bool = False) -> np.ndarray:
        return encode(self.attset, record, extend=extend)


def encode(attset: AttributeSet, record: Sequence,
           extend: bool = False) -> np.ndarray:
    """Encode one raw record into the float row layout of a :class:`Table`.

    Nominal names are mapped to value identifiers.  An unknown name is
    added to the attribute when ``extend`` is set; otherwise it is encoded
    as ``valcnt``, an identifier no test node has a child for, so that the
    executor treats it as a known but non-occurring value.
    """
    if len(record) != len(attset):
        raise ValueError(
            f"record has {len(record)} fields, expected {len(attset)}")
    row = np.empty(len(attset), dtype=float)
    for i, (att, v) in enumerate(zip(attset, record)):
        if is_null(v):
            row[i] = np.nan
        elif att.is_nominal:
            vid = att.add_value(v) if extend else att.value_id(v)
            row[i] = vid if vid >= 0 else att.valcnt
        else:
            row[i] = float(v)
            if att.type == INTEGER:
                row[i] = math.floor(row[i])
    return row
