# -*- coding: utf-8 -*-
"""
dtreepy.exceptions
==================

Errors raised at the boundary of the tree core.  Both derive from
``ValueError`` so callers can treat them like any other invalid input.
"""

from __future__ import annotations


class TreeStructureError(ValueError):
    """A tree whose node shapes do not match its attribute set."""


class TreeParseError(ValueError):
    """Malformed tree description.

    Parameters
    ----------
    message : str
        What went wrong.
    line : int, optional
        One-based line number of the offending token.
    """

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
