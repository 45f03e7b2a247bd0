import numpy as np
import pytest

from dtreepy import DTreeClassifier, DTreeRegressor


def make_classification_data():
    X = np.array([
        [1.0, "A"], [2.0, "A"], [3.0, "A"], [4.0, "A"],
        [5.0, "B"], [6.0, "B"], [7.0, "B"], [8.0, "B"],
    ], dtype=object)
    y = np.array(["no", "no", "no", "no", "yes", "yes", "yes", "yes"])
    return X, y


def make_regression_data():
    X = np.array([[1.0], [2.0], [3.0], [4.0], [5.0], [6.0]])
    y = np.array([1.0, 2.0, 3.0, 10.0, 11.0, 12.0])
    return X, y


def test_classifier_fit_predict():
    X, y = make_classification_data()
    clf = DTreeClassifier(categorical_features=[1], feature_names=["num", "cat"])
    clf.fit(X, y)
    assert list(clf.classes_) == ["no", "yes"]
    assert list(clf.predict(X)) == list(y)
    assert clf.score(X, y) == 1.0
    assert clf.depth_ == 2


def test_classifier_predict_proba():
    X, y = make_classification_data()
    clf = DTreeClassifier(categorical_features=["cat"],
                          feature_names=["num", "cat"]).fit(X, y)
    proba = clf.predict_proba(X)
    assert proba.shape == (8, 2)
    assert np.allclose(proba.sum(axis=1), 1.0)
    assert np.allclose(proba[0], [1.0, 0.0])


def test_classifier_missing_values():
    X, y = make_classification_data()
    clf = DTreeClassifier(categorical_features=[1], pruning=None).fit(X, y)
    proba = clf.predict_proba(np.array([[None, None]], dtype=object))
    assert np.allclose(proba, [[0.5, 0.5]])


def test_classifier_unseen_category():
    X, y = make_classification_data()
    clf = DTreeClassifier(categorical_features=[1], pruning=None).fit(X, y)
    pred = clf.predict(np.array([[2.0, "C"]], dtype=object))
    assert pred.shape == (1,)


def test_classifier_export_text(capsys):
    X, y = make_classification_data()
    clf = DTreeClassifier(feature_names=["num", "cat"],
                          categorical_features=[1]).fit(X, y)
    text = clf.export_text()
    assert text.startswith("dtree(__target__) =\n")
    clf.print_tree()
    assert capsys.readouterr().out == text


def test_classifier_options():
    X, y = make_classification_data()
    for kws in ({"criterion": "gini"}, {"subsets": True},
                {"one_vs_rest": True}, {"pruning": "pess"},
                {"check_largest_branch": True}, {"max_depth": 1},
                {"trivial_pruning": False}):
        clf = DTreeClassifier(categorical_features=[1], **kws).fit(X, y)
        assert clf.predict(X).shape == (8,)
    clf = DTreeClassifier(max_depth=1).fit(X, y)
    assert clf.n_nodes_ == 1


def test_sample_weight():
    X, y = make_classification_data()
    w = np.ones(len(y))
    w[:4] = 3.0
    clf = DTreeClassifier(categorical_features=[1], pruning=None)
    clf.fit(X, y, sample_weight=w)
    assert np.isclose(clf.tree_.total, 16.0)
    with pytest.raises(ValueError):
        clf.fit(X, y, sample_weight=np.ones(3))


def test_not_fitted():
    X, _ = make_classification_data()
    with pytest.raises(ValueError):
        DTreeClassifier().predict(X)
    with pytest.raises(ValueError):
        DTreeRegressor().export_text()


def test_bad_inputs():
    X, y = make_classification_data()
    with pytest.raises(ValueError):
        DTreeClassifier().fit(X, y[:3])
    with pytest.raises(ValueError):
        DTreeClassifier(feature_names=["only_one"]).fit(X, y)
    with pytest.raises(ValueError):
        DTreeClassifier(criterion="rmse", categorical_features=[1]).fit(X, y)
    clf = DTreeClassifier(categorical_features=[1]).fit(X, y)
    with pytest.raises(ValueError):
        clf.predict(np.array([[1.0]], dtype=object))


def test_regressor_fit_predict():
    X, y = make_regression_data()
    regr = DTreeRegressor().fit(X, y)
    assert np.allclose(regr.predict(X), [2, 2, 2, 11, 11, 11])
    assert np.allclose(regr.predict_std(X[:1]), np.sqrt(2.0 / 3.0))
    assert regr.score(X, y) > 0.9


def test_regressor_missing_value_is_weighted_mean():
    X, y = make_regression_data()
    regr = DTreeRegressor(pruning=None).fit(X, y)
    assert np.allclose(regr.predict(np.array([[np.nan]])), [6.5])


def test_regressor_heavy_pruning_gives_the_mean():
    X, y = make_regression_data()
    regr = DTreeRegressor(pruning="pess", pruning_param=1e3).fit(X, y)
    assert np.allclose(regr.predict(X), np.mean(y))
    assert regr.depth_ == 1
