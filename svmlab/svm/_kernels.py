"""
Kernel functions for the support vector machines.

A kernel is a symmetric similarity k(a, b) between two vectors of equal dimension.
Each kernel evaluates single pairs through ``__call__`` and whole Gram matrices
through ``gram``, which the optimizer uses to fill kernel rows in one numpy call.
"""
from abc import abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from ..exceptions import InvalidDimensionError, InvalidHyperparameterError


# above this many elements the Gaussian Gram matrix uses the ||x||^2 + ||y||^2 - 2 x.y expansion
_DIRECT_DISTANCE_LIMIT = 1 << 20


def _check_positive(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidHyperparameterError(f"{name} must be a number, got {value!r}") from e
    if not np.isfinite(value) or value <= 0:
        raise InvalidHyperparameterError(f"{name} must be a finite positive number, got {value}")
    return value


def _as_rows(X: np.ndarray) -> np.ndarray:
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    return X


class Kernel:
    """
    Base class for kernels.

    Subclasses implement ``gram``. ``__call__`` validates a single pair and
    defers to ``_pair``, which subclasses may override with an exact scalar form.
    """

    @abstractmethod
    def gram(self, X: np.ndarray, Y: Optional[np.ndarray] = None) -> np.ndarray:
        """
        :param X: numpy array of shape (n, d)
        :param Y: numpy array of shape (m, d), defaults to X
        :return: numpy array K of shape (n, m) with K[i, j] = k(X[i], Y[j])
        """
        raise NotImplementedError

    def __call__(self, a, b) -> float:
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        if a.ndim != 1 or b.ndim != 1 or a.shape[0] != b.shape[0]:
            raise InvalidDimensionError(
                f"kernel arguments must be 1-D vectors of equal dimension, got {a.shape} and {b.shape}")
        return self._pair(a, b)

    def _pair(self, a: np.ndarray, b: np.ndarray) -> float:
        return float(self.gram(a.reshape(1, -1), b.reshape(1, -1))[0, 0])

    def is_positive_definite(self) -> bool:
        return True

    def get_params(self) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.get_params().items())
        return f"{type(self).__name__}({params})"


class LinearKernel(Kernel):
    """k(a, b) = a . b"""

    def gram(self, X, Y=None):
        X = _as_rows(X)
        Y = X if Y is None else _as_rows(Y)
        return X @ Y.T

    def _pair(self, a, b):
        return float(np.dot(a, b))


class GaussianKernel(Kernel):
    """
    Gaussian (RBF) kernel, k(a, b) = exp(-gamma * ||a - b||^2) with gamma = 1 / (2 sigma^2).

    k(x, x) is exactly 1 for every x. Gram matrices of moderate size are built from
    explicit differences, so a query equal to a training vector also gets exactly 1.
    """

    def __init__(self, sigma: float = 1.0):
        self._sigma = _check_positive("sigma", sigma)
        self._gamma = 1.0 / (2.0 * self._sigma * self._sigma)

    @property
    def sigma(self) -> float:
        """Scale parameter of the Gaussian."""
        return self._sigma

    @property
    def gamma(self) -> float:
        return self._gamma

    def gram(self, X, Y=None):
        X = _as_rows(X)
        same = Y is None
        Y = X if same else _as_rows(Y)
        if X.shape[0] * Y.shape[0] * X.shape[1] <= _DIRECT_DISTANCE_LIMIT:
            # explicit differences, so equal rows are exactly 0 apart
            diff = X[:, np.newaxis, :] - Y[np.newaxis, :, :]
            return np.exp(-self._gamma * np.einsum('ijk,ijk->ij', diff, diff))
        X_norm = np.sum(X**2, axis=1).reshape(-1, 1)
        Y_norm = np.sum(Y**2, axis=1).reshape(1, -1)
        sq_dist = np.maximum(X_norm + Y_norm - 2 * (X @ Y.T), 0.0)
        if same:
            np.fill_diagonal(sq_dist, 0.0)
        return np.exp(-self._gamma * sq_dist)

    def _pair(self, a, b):
        d = a - b
        return float(np.exp(-self._gamma * np.dot(d, d)))

    def get_params(self):
        return {"sigma": self._sigma}


class PolynomialKernel(Kernel):
    """k(a, b) = (gamma * a . b + coef0) ** degree"""

    def __init__(self, degree: int = 3, gamma: float = 1.0, coef0: float = 1.0):
        if isinstance(degree, bool) or not isinstance(degree, (int, np.integer)) or degree < 1:
            raise InvalidHyperparameterError(f"degree must be a positive integer, got {degree!r}")
        coef0 = float(coef0)
        if not np.isfinite(coef0) or coef0 < 0:
            raise InvalidHyperparameterError(f"coef0 must be finite and >= 0, got {coef0}")
        self.degree = int(degree)
        self.gamma = _check_positive("gamma", gamma)
        self.coef0 = coef0

    def gram(self, X, Y=None):
        X = _as_rows(X)
        Y = X if Y is None else _as_rows(Y)
        return (self.gamma * (X @ Y.T) + self.coef0) ** self.degree

    def _pair(self, a, b):
        return float((self.gamma * np.dot(a, b) + self.coef0) ** self.degree)

    def get_params(self):
        return {"degree": self.degree, "gamma": self.gamma, "coef0": self.coef0}


class SigmoidKernel(Kernel):
    """
    k(a, b) = tanh(gamma * a . b + coef0)

    Not positive definite in general; SMO skips pairs whose curvature is not positive.
    """

    def __init__(self, gamma: float = 0.01, coef0: float = 0.0):
        coef0 = float(coef0)
        if not np.isfinite(coef0):
            raise InvalidHyperparameterError(f"coef0 must be finite, got {coef0}")
        self.gamma = _check_positive("gamma", gamma)
        self.coef0 = coef0

    def gram(self, X, Y=None):
        X = _as_rows(X)
        Y = X if Y is None else _as_rows(Y)
        return np.tanh(self.gamma * (X @ Y.T) + self.coef0)

    def is_positive_definite(self):
        return False

    def get_params(self):
        return {"gamma": self.gamma, "coef0": self.coef0}


class CompositeKernel(Kernel):
    """
    Non-negative weighted sum, or product, of other kernels.

    Both operations keep a Gram matrix positive semi-definite when every part is.
    """

    OPERATIONS = ('sum', 'product')

    def __init__(self, kernels: Sequence[Kernel], weights: Optional[Sequence[float]] = None,
                 operation: str = 'sum'):
        kernels = list(kernels) if kernels is not None else []
        if not kernels:
            raise InvalidHyperparameterError("CompositeKernel needs at least one kernel")
        if operation not in self.OPERATIONS:
            raise InvalidHyperparameterError(
                f"operation must be one of {self.OPERATIONS}, got {operation!r}")
        if weights is None:
            weights = [1.0] * len(kernels)
        weights = [float(w) for w in weights]
        if len(weights) != len(kernels):
            raise InvalidHyperparameterError(
                f"got {len(weights)} weights for {len(kernels)} kernels")
        if any(not np.isfinite(w) or w < 0 for w in weights):
            raise InvalidHyperparameterError("composite kernel weights must be finite and >= 0")
        self.kernels: List[Kernel] = [make_kernel(k) for k in kernels]
        self.weights = weights
        self.operation = operation

    def gram(self, X, Y=None):
        X = _as_rows(X)
        Y = X if Y is None else _as_rows(Y)
        if self.operation == 'sum':
            K = np.zeros((X.shape[0], Y.shape[0]))
            for kernel, weight in zip(self.kernels, self.weights):
                K += weight * kernel.gram(X, Y)
            return K
        K = np.ones((X.shape[0], Y.shape[0]))
        for kernel in self.kernels:
            K *= kernel.gram(X, Y)
        return K

    def _pair(self, a, b):
        values = [kernel._pair(a, b) for kernel in self.kernels]  # pylint: disable=protected-access
        if self.operation == 'sum':
            return float(sum(w * v for w, v in zip(self.weights, values)))
        return float(np.prod(values))

    def is_positive_definite(self):
        return all(kernel.is_positive_definite() for kernel in self.kernels)

    def get_params(self):
        return {"kernels": self.kernels, "weights": self.weights, "operation": self.operation}


class CallableKernel(Kernel):
    """Adapts a plain function f(a, b) -> float; the Gram matrix is filled pair by pair."""

    def __init__(self, func: Callable[[np.ndarray, np.ndarray], float]):
        if not callable(func):
            raise InvalidHyperparameterError(f"kernel function must be callable, got {func!r}")
        self.func = func

    def gram(self, X, Y=None):
        X = _as_rows(X)
        Y = X if Y is None else _as_rows(Y)
        K = np.empty((X.shape[0], Y.shape[0]))
        for i, x in enumerate(X):
            for j, y in enumerate(Y):
                K[i, j] = self.func(x, y)
        return K

    def _pair(self, a, b):
        return float(self.func(a, b))

    def get_params(self):
        return {"func": self.func}


KERNELS = {
    'linear': LinearKernel,
    'rbf': GaussianKernel,
    'gaussian': GaussianKernel,
    'poly': PolynomialKernel,
    'sigmoid': SigmoidKernel,
}


def make_kernel(kernel='linear', **params) -> Kernel:
    """
    Resolve a kernel specification.

    Args:
        kernel: A name from ``KERNELS``, a ``Kernel`` instance, or a callable f(a, b).
        **params: Hyperparameters passed to the named kernel's constructor.
    Returns:
        Kernel: The kernel instance.
    Raises:
        InvalidHyperparameterError: If the name is unknown or parameters are given
            alongside an instance or callable.
    """
    if isinstance(kernel, Kernel):
        if params:
            raise InvalidHyperparameterError("kernel parameters given with a Kernel instance")
        return kernel
    if isinstance(kernel, str):
        try:
            kernel_cls = KERNELS[kernel.lower()]
        except KeyError as e:
            raise InvalidHyperparameterError(
                f"unknown kernel {kernel!r}, expected one of {sorted(KERNELS)}") from e
        try:
            return kernel_cls(**params)
        except TypeError as e:
            raise InvalidHyperparameterError(f"invalid parameters for kernel {kernel!r}: {e}") from e
    if callable(kernel):
        if params:
            raise InvalidHyperparameterError("kernel parameters given with a kernel function")
        return CallableKernel(kernel)
    raise InvalidHyperparameterError(f"kernel must be a name, Kernel or callable, got {kernel!r}")
