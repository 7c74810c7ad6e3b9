import logging
import threading
from typing import Iterable, Iterator, NamedTuple, Optional, Sequence

import numpy as np

from ..base import BaseClassifier
from ..common.utils import as_matrix, as_vector, as_vector_group, get_logger
from ..exceptions import (
    InvalidDimensionError,
    InvalidHyperparameterError,
    MissingOrEmptyGroupError,
    NotTrainedError,
)
from ._kernels import GaussianKernel, Kernel, LinearKernel, make_kernel
from ._smo import SequentialMinimalOptimization, check_cost, check_optimizer_params

# smallest dual coefficient that makes a training vector a support vector
SUPPORT_VECTOR_EPSILON = 1.0e-3


class WeightedSupportVector(NamedTuple):
    vector: np.ndarray
    weight: float


class SupportVectorModel:
    """
    Immutable result of one training run.

    Holds the bias, the cost it was trained with, the vector dimension and the
    support vectors paired with their signed weights alpha_i * y_i.
    """

    def __init__(self, bias: float, cost: float, vector_dim: int,
                 support_vectors: Sequence[WeightedSupportVector] = ()):
        self._bias = float(bias)
        self._cost = float(cost)
        self._vector_dim = int(vector_dim)
        frozen = []
        for sv in support_vectors:
            vector = np.array(sv.vector, dtype=np.float64, copy=True)
            vector.flags.writeable = False
            frozen.append(WeightedSupportVector(vector, float(sv.weight)))
        self._support_vectors = tuple(frozen)
        if frozen:
            self._vectors = np.vstack([sv.vector for sv in frozen])
        else:
            self._vectors = np.empty((0, self._vector_dim))
        self._weights = np.array([sv.weight for sv in frozen], dtype=np.float64)
        self._vectors.flags.writeable = False
        self._weights.flags.writeable = False

    @property
    def bias(self) -> float:
        return self._bias

    @property
    def cost(self) -> float:
        return self._cost

    @property
    def vector_dim(self) -> int:
        return self._vector_dim

    @property
    def support_vectors(self):
        return self._support_vectors

    @property
    def vectors(self) -> np.ndarray:
        """Support vectors stacked into shape (n_support, vector_dim)."""
        return self._vectors

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def n_support(self) -> int:
        return len(self._support_vectors)

    def decision_value(self, vector: np.ndarray, kernel: Kernel) -> float:
        s = -self._bias
        for sv in self._support_vectors:
            s += sv.weight * kernel(vector, sv.vector)
        return s

    def decision_values(self, X: np.ndarray, kernel: Kernel) -> np.ndarray:
        if X.shape[0] == 0:
            return np.empty(0)
        if not self._support_vectors:
            return np.full(X.shape[0], -self._bias)
        return kernel.gram(X, self._vectors) @ self._weights - self._bias

    def __repr__(self):
        return (f"SupportVectorModel(bias={self._bias!r}, cost={self._cost!r}, "
                f"vector_dim={self._vector_dim}, n_support={self.n_support})")


def _sign(values: np.ndarray, threshold: float) -> np.ndarray:
    return np.where(values > threshold, 1, np.where(values < -threshold, -1, 0)).astype(int)


class SupportVectorMachine(BaseClassifier):
    """
    Binary kernel Support Vector Machine trained with Sequential Minimal Optimization.

    The classifier is untrained until ``learn`` (or ``fit``) succeeds. Each successful
    training run replaces the whole model; a run that fails validation leaves the
    previous model untouched.
    """
    _trainable_params = ("bias_", "support_vectors_", "dual_coef_", "intercept_", "n_support_",
                         "classes_", "n_iter_", "converged_")

    def __init__(self, cost: float = 1.0, kernel='linear', tol: float = 1e-3, eps: float = 1e-5,
                 max_iter: int = 10000, sv_threshold: float = SUPPORT_VECTOR_EPSILON,
                 cache_size: Optional[int] = None, verbose: bool = False, **kernel_params):
        """
        Initialize the SupportVectorMachine.
        Args:
            cost (float): Penalty C for margin violations, must be > 0.
            kernel: Kernel name ('linear', 'rbf', 'poly', 'sigmoid'), Kernel instance or callable.
            tol (float): KKT violation tolerance of the optimizer.
            eps (float): Smallest relative alpha change counted as progress.
            max_iter (int): Maximum optimizer passes; reaching it yields a best-effort model.
            sv_threshold (float): Dual coefficients above this become support vectors.
            cache_size (Optional[int]): Maximum cached kernel rows during training, unbounded when None.
            verbose (bool): Log training progress at INFO instead of DEBUG.
            **kernel_params: Hyperparameters for a kernel given by name.
        """
        self.cost = check_cost(cost)
        self.kernel = make_kernel(kernel, **kernel_params)
        check_optimizer_params(tol, eps, max_iter, cache_size)
        if not isinstance(sv_threshold, (int, float, np.number)) or not np.isfinite(sv_threshold) \
                or sv_threshold < 0:
            raise InvalidHyperparameterError(f"sv_threshold must be finite and >= 0, got {sv_threshold!r}")
        self.tol = tol
        self.eps = eps
        self.max_iter = max_iter
        self.sv_threshold = float(sv_threshold)
        self.cache_size = cache_size
        self.verbose = verbose

        self.classes_ = np.array([-1, 1])
        self.n_iter_ = None
        self.converged_ = None
        self._model: Optional[SupportVectorModel] = None
        self._lock = threading.RLock()
        self._logger = get_logger(f"{__name__}.{type(self).__name__}")

    @property
    def group_count(self) -> int:
        """Number of classes, always 2."""
        return 2

    @property
    def vector_dim(self) -> Optional[int]:
        """Dimension of the trained model, None before training."""
        model = self._model
        return None if model is None else model.vector_dim

    @property
    def model(self) -> Optional[SupportVectorModel]:
        return self._model

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    def learn(self, vector_dim: int, *vectors_groups) -> None:
        """
        Train on a positive and a negative group of vectors.
        Args:
            vector_dim (int): Dimension of every training vector, >= 1.
            *vectors_groups: Exactly two groups, positives then negatives. A group is a
                sequence of vectors, a 2-D numpy array or a pandas DataFrame.
        Raises:
            InvalidDimensionError: If vector_dim < 1 or a vector has another dimension.
            MissingOrEmptyGroupError: If there are not exactly two non-empty groups.
            NonFiniteInputError: If a vector contains NaN or inf.

        A successful run also resets ``classes_`` to [-1, 1]; ``fit`` sets its own labels afterwards.
        """
        inputs, outputs = self._validate_sample(vector_dim, vectors_groups)
        level = logging.INFO if self.verbose else logging.DEBUG

        with self._lock:
            self._logger.log(level, "Training on %d positive and %d negative vectors (dim=%d, cost=%g, kernel=%r)",
                             int(np.sum(outputs > 0)), int(np.sum(outputs < 0)), vector_dim,
                             self.cost, self.kernel)
            smo = SequentialMinimalOptimization(inputs, outputs, self.cost, self.kernel, tol=self.tol,
                                                eps=self.eps, max_iter=self.max_iter,
                                                cache_size=self.cache_size, log_level=level)
            result = smo.optimize()

            support_vectors = [
                WeightedSupportVector(inputs[i], result.alpha[i] * outputs[i])
                for i in np.flatnonzero(result.alpha > self.sv_threshold)
            ]
            self._model = SupportVectorModel(result.bias, self.cost, vector_dim, support_vectors)
            self.classes_ = np.array([-1, 1])
            self.n_iter_ = result.n_iter
            self.converged_ = result.converged
            self._logger.log(level, "%s after %d passes: %d support vectors, bias=%.6g",
                             "Converged" if result.converged else "Stopped at max_iter",
                             result.n_iter, self._model.n_support, result.bias)

    def _validate_sample(self, vector_dim, vectors_groups):
        if isinstance(vector_dim, bool) or not isinstance(vector_dim, (int, np.integer)) or vector_dim < 1:
            raise InvalidDimensionError(f"vector_dim must be an integer >= 1, got {vector_dim!r}")
        if vectors_groups is None or len(vectors_groups) != self.group_count:
            count = 0 if vectors_groups is None else len(vectors_groups)
            raise MissingOrEmptyGroupError(
                f"vectors_groups must hold exactly {self.group_count} groups (positives, negatives), got {count}")
        positives = as_vector_group(vectors_groups[0], int(vector_dim), name="positives")
        negatives = as_vector_group(vectors_groups[1], int(vector_dim), name="negatives")

        inputs = np.vstack([positives, negatives])
        outputs = np.where(np.arange(inputs.shape[0]) < positives.shape[0], 1.0, -1.0)
        return inputs, outputs

    def _require_model(self) -> SupportVectorModel:
        model = self._model
        if model is None:
            raise NotTrainedError("The model isn't trained, call `learn` or `fit` first")
        return model

    def classify_raw(self, vector) -> float:
        """
        Decision value sum_k weight_k * K(vector, sv_k) - bias.
        Raises:
            NotTrainedError: If no model has been trained.
            NullOrMismatchedVectorError: If vector is None or of another dimension.
        """
        model = self._require_model()
        x = as_vector(vector, model.vector_dim)
        return model.decision_value(x, self.kernel)

    def classify(self, vector, threshold: Optional[float] = None) -> int:
        """
        Classify one vector as +1, -1 or 0.

        Without a threshold the sign of the decision value is returned. With one,
        values inside [-threshold, threshold] give 0.
        """
        value = self.classify_raw(vector)
        threshold = 0.0 if threshold is None else float(threshold)
        if value > threshold:
            return 1
        if value < -threshold:
            return -1
        return 0

    def classify_raw_many(self, vectors) -> np.ndarray:
        """Decision values for a batch of vectors, in input order."""
        model = self._require_model()
        X = as_matrix(vectors, model.vector_dim, name="vectors")
        return model.decision_values(X, self.kernel)

    def classify_many(self, vectors, threshold: Optional[float] = None) -> np.ndarray:
        values = self.classify_raw_many(vectors)
        return _sign(values, 0.0 if threshold is None else float(threshold))

    def iter_classify_raw(self, vectors: Iterable) -> Iterator[float]:
        for vector in vectors:
            yield self.classify_raw(vector)

    def iter_classify(self, vectors: Iterable, threshold: Optional[float] = None) -> Iterator[int]:
        for vector in vectors:
            yield self.classify(vector, threshold)

    def fit(self, X, y):
        """
        Fit from a feature matrix and a label vector holding exactly two classes.

        The larger label is the positive class, so {-1, +1} and {0, 1} both work.
        Args:
            X: Training data, shape (n_samples, n_features).
            y: Training labels, shape (n_samples,).
        Returns:
            self
        """
        X = as_matrix(X, name="X")
        y = np.asarray(y).reshape(-1)
        if y.shape[0] != X.shape[0]:
            raise InvalidDimensionError(f"X has {X.shape[0]} samples but y has {y.shape[0]}")
        classes = np.unique(y)
        if len(classes) != self.group_count:
            raise MissingOrEmptyGroupError(
                f"This SVM supports binary classification only, got {len(classes)} classes")
        with self._lock:
            self.learn(X.shape[1], X[y == classes[1]], X[y == classes[0]])
            self.classes_ = classes
        return self

    def decision_function(self, X) -> np.ndarray:
        return self.classify_raw_many(X)

    def predict(self, X) -> np.ndarray:
        """Predict class labels; a decision value of exactly 0 maps to the negative class."""
        decision = self.decision_function(X)
        return np.where(decision > 0, self.classes_[1], self.classes_[0])

    @property
    def bias_(self) -> Optional[float]:
        model = self._model
        return None if model is None else model.bias

    @property
    def intercept_(self) -> Optional[float]:
        """Intercept in the f(x) = sum + intercept convention, i.e. -bias."""
        model = self._model
        return None if model is None else -model.bias

    @property
    def support_vectors_(self) -> Optional[np.ndarray]:
        model = self._model
        return None if model is None else model.vectors

    @property
    def dual_coef_(self) -> Optional[np.ndarray]:
        """Signed weights alpha_i * y_i of the support vectors."""
        model = self._model
        return None if model is None else model.weights

    @property
    def n_support_(self) -> Optional[int]:
        model = self._model
        return None if model is None else model.n_support

    def __getstate__(self):
        # locks and loggers cannot be pickled
        state = self.__dict__.copy()
        del state["_lock"]
        del state["_logger"]
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.RLock()
        self._logger = get_logger(f"{__name__}.{type(self).__name__}")


class LinearSupportVectorMachine(SupportVectorMachine):
    """
    Support Vector Machine with the linear kernel K(a, b) = a . b.
    """

    def __init__(self, cost: float = 1.0, **options):
        super().__init__(cost, kernel=LinearKernel(), **options)


class GaussianSupportVectorMachine(SupportVectorMachine):
    """
    Support Vector Machine with the Gaussian kernel K(a, b) = exp(-||a - b||^2 / (2 sigma^2)).
    """

    def __init__(self, cost: float = 1.0, sigma: float = 1.0, **options):
        check_cost(cost)
        super().__init__(cost, kernel=GaussianKernel(sigma), **options)

    @property
    def sigma(self) -> float:
        return self.kernel.sigma
