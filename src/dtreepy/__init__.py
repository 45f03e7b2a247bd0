# dtreepy/__init__.py
"""
dtreepy: decision and regression tree induction, pruning and execution.

Exports:
    - grow, GrowFlags
    - prune, PruneMethod
    - classify, Prediction
    - describe, parse, DescFlags
    - forward_selection
    - DTreeClassifier, DTreeRegressor
"""
from .attributes import Attribute, AttributeSet, Table
from .estimators import DTreeClassifier, DTreeRegressor
from .exceptions import TreeParseError, TreeStructureError
from .executor import Prediction, classify
from .grower import GrowFlags, grow
from .model import DecisionTree
from .pruner import PruneMethod, prune
from .selection import forward_selection
from .textio import DescFlags, describe, parse

__all__ = [
    "Attribute", "AttributeSet", "Table", "DecisionTree",
    "grow", "GrowFlags", "prune", "PruneMethod", "classify", "Prediction",
    "describe", "parse", "DescFlags", "forward_selection",
    "DTreeClassifier", "DTreeRegressor",
    "TreeParseError", "TreeStructureError",
]
__version__ = "0.1.0"
