# -*- coding: utf-8 -*-
"""
dtreepy.estimators
==================

scikit-learn style wrappers around the tree core.

:class:`DTreeClassifier` grows a decision tree for a nominal target and
:class:`DTreeRegressor` a regression tree for a metric one.  Both accept
numeric predictors and, via ``categorical_features``, nominal ones; missing
values may be given as ``None`` or ``numpy.nan`` in ``X`` and are handled by
the grower (weight redistribution) and the executor (fan-out).

Examples
--------
>>> clf = DTreeClassifier(criterion="infgr", pruning="clvl")
>>> clf.fit(X, y)                                          # doctest: +SKIP
>>> clf.print_tree()                                       # doctest: +SKIP
"""

from __future__ import annotations

import logging
import math

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin

from .attributes import (FLOAT, NOMINAL, Attribute, AttributeSet, Table,
                         encode)
from .executor import FALLBACK_WEIGHT, classify
from .grower import GrowFlags, grow
from .pruner import prune
from .textio import describe

logger = logging.getLogger(__name__)

_NOT_FITTED = "Estimator not fitted. Call fit(...) first."


class _DTreeBase(BaseEstimator):
    """Shared parameters and plumbing of the classifier and the regressor.

    Parameters
    ----------
    criterion : str or None, default=None
        Split evaluation measure (e.g. ``"infgr"``, ``"gini"``, ``"chi2"`` for
        classification, ``"sse"``, ``"rmse"`` for regression).  ``None``
        selects ``"infgr"`` resp. ``"rmse"``.
    weighted : bool, default=False
        Weight the measure with the fraction of known split values.
    criterion_params : sequence of float or None, default=None
        Measure parameters (sensitivity, prior, exponent).
    min_gain : float, default=-inf
        Minimal measure value of a split.
    max_depth : int or None, default=None
        Maximal number of tree levels; ``None`` means unbounded.
    min_weight : float, default=2.0
        Minimal weight in at least two branches of a split.
    subsets : bool, default=False
        Merge values of categorical features into subsets.
    binary : bool, default=False
        With ``subsets``: force exactly two value subsets.
    one_vs_rest : bool, default=False
        Split categorical features on one value against all others.
    trivial_pruning : bool, default=True
        Discard subtrees that do not reduce the training error.
    pruning : {"clvl", "pess", "none"} or None, default="clvl"
        Post-pruning method.
    pruning_param : float, default=0.5
        Confidence level (``"clvl"``) or added errors (``"pess"``).
    check_largest_branch : bool, default=False
        Re-prune with the training table and try to replace nodes by their
        largest branch.
    fallback_weight : float, default=1e-12
        Weight of a node's own statistics for values without a branch.
    feature_names : list of str or None, default=None
        Names of the columns of ``X``.
    categorical_features : list of int or str or None, default=None
        Columns (indices or names) treated as categorical.
    verbose : int, default=0
        Log a summary of the fitted tree at INFO level if positive.
    """

    def __init__(
        self,
        *,
        criterion: str | None = None,
        weighted: bool = False,
        criterion_params=None,
        min_gain: float = -math.inf,
        max_depth: int | None = None,
        min_weight: float = 2.0,
        subsets: bool = False,
        binary: bool = False,
        one_vs_rest: bool = False,
        trivial_pruning: bool = True,
        pruning: str | None = "clvl",
        pruning_param: float = 0.5,
        check_largest_branch: bool = False,
        fallback_weight: float = FALLBACK_WEIGHT,
        feature_names: list[str] | None = None,
        categorical_features: list[int | str] | None = None,
        verbose: int = 0,
    ):
        self.criterion = criterion
        self.weighted = bool(weighted)
        self.criterion_params = criterion_params
        self.min_gain = float(min_gain)
        self.max_depth = max_depth
        self.min_weight = float(min_weight)
        self.subsets = bool(subsets)
        self.binary = bool(binary)
        self.one_vs_rest = bool(one_vs_rest)
        self.trivial_pruning = bool(trivial_pruning)
        self.pruning = pruning
        self.pruning_param = float(pruning_param)
        self.check_largest_branch = bool(check_largest_branch)
        self.fallback_weight = float(fallback_weight)
        self.feature_names = feature_names
        self.categorical_features = categorical_features
        self.verbose = int(verbose)

    # ------------------------------------------------------------------
    # Table construction
    # ------------------------------------------------------------------
    def _resolve_features(self, n_features: int) -> None:
        if self.feature_names is not None:
            if len(self.feature_names) != n_features:
                raise ValueError("feature_names length must match X.shape[1]")
            self.feature_names_ = [str(n) for n in self.feature_names]
        else:
            self.feature_names_ = [f"f{i}" for i in range(n_features)]
        cats = set()
        for c in self.categorical_features or ():
            if isinstance(c, str):
                if c not in self.feature_names_:
                    raise ValueError(f"unknown categorical feature {c!r}")
                cats.add(self.feature_names_.index(c))
            else:
                cats.add(int(c))
        self.is_cat_ = [i in cats for i in range(n_features)]

    def _target_attribute(self, y) -> Attribute:
        raise NotImplementedError

    def _make_attset(self, y) -> AttributeSet:
        atts = [Attribute(n, NOMINAL if cat else FLOAT)
                for n, cat in zip(self.feature_names_, self.is_cat_)]
        atts.append(self._target_attribute(y))
        names = set(self.feature_names_)
        if atts[-1].name in names:
            raise ValueError(f"feature name {atts[-1].name!r} is reserved")
        return AttributeSet(atts)

    def _check_fitted(self):
        if getattr(self, "tree_", None) is None:
            raise ValueError(_NOT_FITTED)

    def _encode(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=object)
        if X.ndim != 2 or X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X must have {self.n_features_in_} columns, got {X.shape}")
        return np.vstack([encode(self.attset_, list(row) + [None])
                          for row in X]) if len(X) else \
            np.empty((0, len(self.attset_)))

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------
    def _flags(self) -> GrowFlags:
        flags = GrowFlags(0)
        if self.subsets:
            flags |= GrowFlags.SUBSET
        if self.binary:
            flags |= GrowFlags.BINARY
        if self.one_vs_rest:
            flags |= GrowFlags.ONE_IN_N
        if not self.trivial_pruning:
            flags |= GrowFlags.NOPRUNE
        return flags

    def fit(self, X, y, sample_weight=None):
        """Grow (and prune) a tree on ``X`` and ``y``.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Predictors; ``None``/``nan`` mark missing values.
        y : array-like of shape (n_samples,)
            Target values.
        sample_weight : array-like of shape (n_samples,), optional
            Case weights, 1 by default.

        Returns
        -------
        self
        """
        X = np.asarray(X, dtype=object)
        y = np.asarray(y)
        if X.ndim != 2:
            raise ValueError("X must be a 2-D array")
        if len(y) != X.shape[0]:
            raise ValueError("X and y must have the same number of rows")
        if sample_weight is None:
            w = np.ones(len(y), dtype=float)
        else:
            w = np.asarray(sample_weight, dtype=float)
            if len(w) != len(y):
                raise ValueError("sample_weight must have the same length as y")

        self.n_features_in_ = X.shape[1]
        self._resolve_features(self.n_features_in_)
        self.attset_ = self._make_attset(y)
        records = [list(row) + [t] for row, t in zip(X, y)]
        self.table_ = Table.from_records(self.attset_, records, w)
        trgid = len(self.attset_) - 1

        tree = grow(self.table_, trgid, measure=self.criterion,
                    params=self.criterion_params, weighted=self.weighted,
                    minval=self.min_gain, maxht=self.max_depth or 0,
                    mincnt=self.min_weight, flags=self._flags())
        if self.pruning not in (None, False) \
                and str(self.pruning).lower() != "none":
            table = self.table_ if self.check_largest_branch else None
            prune(tree, method=self.pruning, param=self.pruning_param,
                  check_largest=self.check_largest_branch, table=table)
        self.tree_ = tree
        if self.verbose > 0:
            logger.info("%s: %d level(s), %d node(s), weight %g",
                        type(self).__name__, tree.height, tree.size,
                        tree.total)
        return self

    def _predictions(self, X):
        self._check_fitted()
        rows = self._encode(X)
        return [classify(self.tree_, r, self.fallback_weight) for r in rows]

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------
    def export_text(self, flags: int = 0, maxlen: int = 0) -> str:
        """Text form of the fitted tree (see :func:`dtreepy.textio.describe`)."""
        self._check_fitted()
        return describe(self.tree_, flags, maxlen)

    def print_tree(self, flags: int = 0, maxlen: int = 0) -> None:
        """Pretty-print the fitted tree to ``stdout``."""
        print(self.export_text(flags, maxlen), end="")

    @property
    def depth_(self) -> int:
        self._check_fitted()
        return self.tree_.height

    @property
    def n_nodes_(self) -> int:
        self._check_fitted()
        return self.tree_.size


# -----------------------------------------------------------------------------
# Estimators
# -----------------------------------------------------------------------------
class DTreeClassifier(ClassifierMixin, _DTreeBase):
    """Decision tree classifier.

    See :class:`_DTreeBase` for the parameters.  The class labels are stored
    in ``classes_`` (sorted); ``predict_proba`` columns follow that order.
    """

    def _target_attribute(self, y) -> Attribute:
        self.classes_ = np.unique(y)
        return Attribute("__target__", NOMINAL, list(self.classes_))

    def predict(self, X):
        """Predict class labels for the rows of ``X``."""
        preds = self._predictions(X)
        return np.array([self.classes_[p.prediction] for p in preds])

    def predict_proba(self, X):
        """Predict class probabilities for the rows of ``X``.

        Rows that reach no case at all get a uniform distribution.
        """
        preds = self._predictions(X)
        k = len(self.classes_)
        out = np.full((len(preds), k), 1.0 / k)
        for n, p in enumerate(preds):
            if p.support > 0:
                out[n] = p.distribution / p.support
        return out


class DTreeRegressor(RegressorMixin, _DTreeBase):
    """Regression tree.

    See :class:`_DTreeBase` for the parameters.  ``predict_std`` returns the
    standard deviation of the cases behind each prediction.
    """

    def _target_attribute(self, y) -> Attribute:
        return Attribute("__target__", FLOAT)

    def predict(self, X):
        """Predict target values for the rows of ``X``."""
        return np.array([p.prediction for p in self._predictions(X)],
                        dtype=float)

    def predict_std(self, X):
        return np.array([p.confidence for p in self._predictions(X)],
                        dtype=float)
