import logging
import pickle
from concurrent.futures import ThreadPoolExecutor
from types import GeneratorType

import numpy as np
import pandas as pd
import pytest

from svmlab import GaussianSupportVectorMachine, LinearSupportVectorMachine, SupportVectorMachine
from svmlab.exceptions import (
    InvalidCostError,
    InvalidDimensionError,
    InvalidHyperparameterError,
    MissingOrEmptyGroupError,
    NonFiniteInputError,
    NotTrainedError,
    NullOrMismatchedVectorError,
)
from svmlab.svm import CompositeKernel, GaussianKernel, LinearKernel, SupportVectorModel

PROBES = np.array([[0.5, 0.5], [-0.5, -0.5], [1.0, -1.0], [4.0, 0.0], [-1.0, 2.5], [0.1, 0.1]])


@pytest.fixture
def trained(separable):
    svm = LinearSupportVectorMachine(cost=10.0)
    svm.learn(2, *separable)
    return svm


# construction and state


@pytest.mark.parametrize("cost", [0.0, -2.0, np.inf])
def test_rejects_non_positive_cost(cost):
    with pytest.raises(InvalidCostError):
        LinearSupportVectorMachine(cost)
    with pytest.raises(InvalidCostError):
        GaussianSupportVectorMachine(cost, sigma=1.0)


def test_cost_is_checked_before_sigma():
    with pytest.raises(InvalidCostError):
        GaussianSupportVectorMachine(0.0, sigma=0.0)
    with pytest.raises(InvalidHyperparameterError):
        GaussianSupportVectorMachine(1.0, sigma=0.0)


@pytest.mark.parametrize("options", [{"sv_threshold": -1.0}, {"max_iter": 0}, {"tol": 0.0}])
def test_rejects_bad_options(options):
    with pytest.raises(InvalidHyperparameterError):
        LinearSupportVectorMachine(1.0, **options)


def test_untrained_machine_rejects_queries():
    svm = GaussianSupportVectorMachine(1.0, sigma=2.0)
    assert svm.group_count == 2
    assert svm.vector_dim is None
    assert not svm.is_trained
    assert svm.sigma == 2.0
    with pytest.raises(NotTrainedError):
        svm.classify([0.0, 0.0])
    with pytest.raises(NotTrainedError):
        svm.classify_raw_many([[0.0, 0.0]])
    with pytest.raises(RuntimeError):
        svm.predict([[0.0, 0.0]])


# training results


def test_trained_state(trained):
    assert trained.is_trained
    assert trained.vector_dim == 2
    assert trained.model.cost == 10.0
    assert trained.n_support_ == 2
    assert trained.converged_


def test_support_vector_weights_respect_box_constraint(blobs):
    svm = GaussianSupportVectorMachine(cost=0.5, sigma=1.0)
    svm.learn(2, *blobs)
    magnitudes = np.abs(svm.dual_coef_)
    assert svm.n_support_ > 0
    assert np.all(magnitudes > svm.sv_threshold)
    assert np.all(magnitudes <= 0.5 + 1e-12)


def test_separable_points_classify_correctly(trained, separable):
    positives, negatives = separable
    assert all(trained.classify(x) == 1 for x in positives)
    assert all(trained.classify(x) == -1 for x in negatives)


def test_separable_boundary_is_max_margin(trained):
    w = trained.dual_coef_ @ trained.support_vectors_
    np.testing.assert_allclose(w, [0.25, 0.25], atol=1e-6)
    assert trained.bias_ == pytest.approx(0.0, abs=1e-6)
    # the decision value changes sign on x + y = 0
    for t in (-3.0, 0.0, 2.5):
        assert trained.classify_raw([t, -t]) == pytest.approx(0.0, abs=1e-6)
    assert trained.classify_raw([0.01, 0.01]) > 0
    assert trained.classify_raw([-0.01, -0.01]) < 0


def test_separable_decision_matches_reference_solver(trained, separable):
    svc_module = pytest.importorskip("sklearn.svm")
    X = np.vstack(separable)
    y = np.array([1] * 4 + [-1] * 4)
    reference = svc_module.SVC(kernel="linear", C=10.0, tol=1e-6).fit(X, y)
    np.testing.assert_allclose(trained.classify_raw_many(PROBES), reference.decision_function(PROBES),
                               atol=1e-3)


def test_xor_needs_a_non_linear_kernel(xor):
    labels = np.array([1, 1, -1, -1])
    X = np.vstack(xor)

    linear = LinearSupportVectorMachine(cost=10.0)
    linear.learn(2, *xor)
    assert not np.array_equal(linear.classify_many(X), labels)

    gaussian = GaussianSupportVectorMachine(cost=10.0, sigma=0.5)
    gaussian.learn(2, *xor)
    np.testing.assert_array_equal(gaussian.classify_many(X), labels)


@pytest.mark.parametrize("kernel,params", [
    ("poly", {"degree": 2}),
    ("rbf", {"sigma": 0.5}),
    (CompositeKernel([LinearKernel(), GaussianKernel(0.5)]), {}),
])
def test_generic_machine_accepts_any_kernel(xor, kernel, params):
    svm = SupportVectorMachine(cost=10.0, kernel=kernel, **params)
    svm.learn(2, *xor)
    np.testing.assert_array_equal(svm.classify_many(np.vstack(xor)), [1, 1, -1, -1])


def test_training_is_deterministic(blobs):
    first = GaussianSupportVectorMachine(1.0, sigma=0.8)
    second = GaussianSupportVectorMachine(1.0, sigma=0.8)
    first.learn(2, *blobs)
    second.learn(2, *blobs)
    assert first.bias_ == pytest.approx(second.bias_, abs=1e-12)
    np.testing.assert_allclose(first.dual_coef_, second.dual_coef_, atol=1e-12)
    np.testing.assert_array_equal(first.support_vectors_, second.support_vectors_)


def test_iteration_cap_gives_usable_model(separable):
    svm = LinearSupportVectorMachine(10.0, max_iter=1)
    svm.learn(2, *separable)
    assert svm.converged_ is False
    assert svm.n_iter_ == 1
    assert svm.classify([3.0, 3.0]) == 1


def test_zero_kernel_gives_empty_model_and_zero_decisions(separable):
    svm = SupportVectorMachine(1.0, kernel=lambda a, b: 0.0)
    svm.learn(2, *separable)
    assert svm.n_support_ == 0
    assert svm.classify_raw([1.0, 1.0]) == 0.0
    assert svm.classify([1.0, 1.0]) == 0
    np.testing.assert_array_equal(svm.classify_many(PROBES), np.zeros(len(PROBES), dtype=int))


# classification


def test_threshold_dead_zone(trained):
    x = [0.5, 0.5]
    value = trained.classify_raw(x)
    assert 0 < value < 0.5
    assert trained.classify(x) == 1
    assert trained.classify(x, 0.5) == 0
    assert trained.classify([-0.5, -0.5], 0.5) == 0
    assert trained.classify([2.0, 2.0], 0.5) == 1
    assert trained.classify([-2.0, -2.0], 0.5) == -1
    np.testing.assert_array_equal(trained.classify_many(PROBES, 0.5),
                                  [trained.classify(p, 0.5) for p in PROBES])


def test_batch_forms_preserve_order(trained):
    expected_raw = [trained.classify_raw(p) for p in PROBES]
    np.testing.assert_allclose(trained.classify_raw_many(PROBES), expected_raw, atol=1e-12)
    np.testing.assert_array_equal(trained.classify_many(list(PROBES)), [trained.classify(p) for p in PROBES])
    assert trained.classify_many([]).shape == (0,)


def test_lazy_forms_are_generators(trained):
    lazy = trained.iter_classify(PROBES)
    assert isinstance(lazy, GeneratorType)
    assert list(lazy) == [trained.classify(p) for p in PROBES]
    assert list(trained.iter_classify_raw(PROBES[:2])) == [trained.classify_raw(p) for p in PROBES[:2]]


@pytest.mark.parametrize("vector", [None, [1.0], [1.0, 2.0, 3.0], [[1.0, 2.0]]])
def test_rejects_null_or_mismatched_query(trained, vector):
    with pytest.raises(NullOrMismatchedVectorError):
        trained.classify(vector)


def test_rejects_mismatched_batch(trained):
    with pytest.raises(NullOrMismatchedVectorError):
        trained.classify_many(np.zeros((3, 5)))
    with pytest.raises(NullOrMismatchedVectorError):
        trained.classify_many([[1.0, 2.0], [1.0]])
    with pytest.raises(NonFiniteInputError):
        trained.classify([np.nan, 0.0])


# validation keeps the previous model


@pytest.mark.parametrize("args,error", [
    ((2, [[1.0, 1.0]]), MissingOrEmptyGroupError),
    ((2, [[1.0, 1.0]], [[-1.0, -1.0]], [[0.0, 5.0]]), MissingOrEmptyGroupError),
    ((2, [], [[-1.0, -1.0]]), MissingOrEmptyGroupError),
    ((2, [[1.0, 1.0]], None), MissingOrEmptyGroupError),
    ((2, [[1.0, 1.0]], [[-1.0, -1.0, 0.0]]), InvalidDimensionError),
    ((2, np.ones((2, 3)), [[-1.0, -1.0]]), InvalidDimensionError),
    ((0, [[1.0, 1.0]], [[-1.0, -1.0]]), InvalidDimensionError),
    ((2.0, [[1.0, 1.0]], [[-1.0, -1.0]]), InvalidDimensionError),
    ((2, [[1.0, np.inf]], [[-1.0, -1.0]]), NonFiniteInputError),
])
def test_failed_learn_keeps_previous_model(trained, args, error):
    model = trained.model
    before = trained.classify_raw_many(PROBES)
    with pytest.raises(error):
        trained.learn(*args)
    assert trained.model is model
    assert trained.vector_dim == 2
    np.testing.assert_array_equal(trained.classify_raw_many(PROBES), before)


def test_failed_learn_leaves_untrained_machine_untrained():
    svm = LinearSupportVectorMachine(1.0)
    with pytest.raises(MissingOrEmptyGroupError):
        svm.learn(2, [[1.0, 1.0]], [])
    assert not svm.is_trained


def test_retraining_replaces_the_model(trained):
    old = trained.model
    trained.learn(3, [[1.0, 0.0, 0.0], [2.0, 0.0, 0.0]], [[-1.0, 0.0, 0.0]])
    assert trained.model is not old
    assert trained.vector_dim == 3
    assert trained.classify([3.0, 0.0, 0.0]) == 1
    with pytest.raises(NullOrMismatchedVectorError):
        trained.classify([1.0, 1.0])


def test_model_does_not_alias_caller_vectors(separable):
    positives, negatives = (group.copy() for group in separable)
    svm = LinearSupportVectorMachine(10.0)
    svm.learn(2, positives, negatives)
    before = svm.classify_raw_many(PROBES)
    positives[:] = 100.0
    negatives[:] = -100.0
    np.testing.assert_array_equal(svm.classify_raw_many(PROBES), before)
    with pytest.raises(ValueError):
        svm.support_vectors_[0, 0] = 7.0
    with pytest.raises(ValueError):
        svm.model.support_vectors[0].vector[0] = 7.0


def test_accepts_pandas_inputs(separable, trained):
    positives, negatives = separable
    svm = LinearSupportVectorMachine(10.0)
    svm.learn(2, pd.DataFrame(positives, columns=["a", "b"]), pd.DataFrame(negatives, columns=["a", "b"]))
    assert svm.bias_ == pytest.approx(trained.bias_)
    assert svm.classify(pd.Series([3.0, 3.0])) == 1
    np.testing.assert_allclose(svm.classify_raw_many(pd.DataFrame(PROBES)), trained.classify_raw_many(PROBES))


def test_model_can_be_built_directly():
    model = SupportVectorModel(bias=0.5, cost=1.0, vector_dim=2)
    assert model.n_support == 0
    assert model.vectors.shape == (0, 2)
    np.testing.assert_array_equal(model.decision_values(np.zeros((3, 2)), LinearKernel()), [-0.5] * 3)


# estimator adapter and ambient behaviour


def test_fit_predict_score_with_arbitrary_labels(blobs):
    X = np.vstack(blobs)
    y = np.array([1] * 25 + [0] * 25)
    svm = GaussianSupportVectorMachine(1.0, sigma=1.0).fit(X, y)
    np.testing.assert_array_equal(svm.classes_, [0, 1])
    predictions = svm.predict(X)
    assert set(np.unique(predictions)) <= {0, 1}
    assert svm.score(X, y) > 0.8
    assert svm.intercept_ == -svm.bias_
    np.testing.assert_array_equal(svm.decision_function(X), svm.classify_raw_many(X))


@pytest.mark.parametrize("y", [[1, 1, 1, 1], [0, 1, 2, 2]])
def test_fit_needs_exactly_two_classes(y):
    with pytest.raises(MissingOrEmptyGroupError):
        LinearSupportVectorMachine().fit(np.arange(8.0).reshape(4, 2), y)


def test_get_params_splits_configuration_and_fitted_state(trained):
    config = trained.get_params("non_trainable")
    fitted = trained.get_params("trainable")
    assert config["cost"] == 10.0
    assert isinstance(config["kernel"], LinearKernel)
    assert "bias_" not in config and "_model" not in config
    assert fitted["n_support_"] == 2
    assert set(trained.get_params()) == set(config) | set(fitted)
    with pytest.raises(ValueError):
        trained.get_params("weights")


def test_verbose_logs_training_at_info(separable, caplog):
    svm = LinearSupportVectorMachine(10.0, verbose=True)
    with caplog.at_level(logging.INFO, logger="svmlab"):
        svm.learn(2, *separable)
    assert "2 support vectors" in caplog.text
    assert "alphas changed" in caplog.text


def test_learn_after_fit_resets_class_labels():
    svm = LinearSupportVectorMachine(10.0)
    svm.fit(np.array([[2.0, 2.0], [3.0, 3.0], [-2.0, -2.0], [-3.0, -3.0]]), ["b", "b", "a", "a"])
    np.testing.assert_array_equal(svm.classes_, ["a", "b"])
    np.testing.assert_array_equal(svm.predict([[4.0, 4.0]]), ["b"])

    svm.learn(2, [[2.0, 2.0]], [[-2.0, -2.0]])
    np.testing.assert_array_equal(svm.classes_, [-1, 1])
    np.testing.assert_array_equal(svm.predict([[4.0, 4.0], [-4.0, -4.0]]), [1, -1])


def test_gaussian_decision_at_support_vectors_agrees_between_forms(blobs):
    svm = GaussianSupportVectorMachine(1.0, sigma=1.0)
    svm.learn(2, *blobs)
    batch = svm.classify_raw_many(svm.support_vectors_)
    single = [svm.classify_raw(v) for v in svm.support_vectors_]
    np.testing.assert_allclose(batch, single, rtol=0, atol=1e-12)


def test_pickle_round_trip(trained):
    restored = pickle.loads(pickle.dumps(trained))
    np.testing.assert_array_equal(restored.classify_raw_many(PROBES), trained.classify_raw_many(PROBES))
    restored.learn(2, [[1.0, 0.0]], [[-1.0, 0.0]])
    assert restored.classify([2.0, 0.0]) == 1


def test_concurrent_queries_agree(trained):
    expected = trained.classify_many(PROBES)
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: trained.classify_many(PROBES), range(16)))
    for result in results:
        np.testing.assert_array_equal(result, expected)
