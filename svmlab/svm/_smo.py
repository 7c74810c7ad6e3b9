"""
Sequential Minimal Optimization for the soft-margin SVM dual problem.

    maximize    sum_i a_i - 1/2 sum_ij a_i a_j y_i y_j K(x_i, x_j)
    subject to  0 <= a_i <= C,  sum_i a_i y_i = 0

Decision values follow u(x) = sum_i a_i y_i K(x_i, x) - b, so the bias is subtracted.
Two multipliers are optimized analytically per step, which keeps the equality
constraint satisfied after every step. Pair selection uses Platt's heuristics
with deterministic scan orders, so identical inputs always give identical results.
"""
import logging
from collections import OrderedDict
from typing import NamedTuple, Optional

import numpy as np

from ._kernels import Kernel, make_kernel
from ..exceptions import InvalidCostError, InvalidDimensionError, InvalidHyperparameterError, InvalidLabelError

logger = logging.getLogger(__name__)

# alphas this close to a bound are snapped onto it
_BOUND_EPS = 1e-8


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def check_cost(cost) -> float:
    try:
        cost = float(cost)
    except (TypeError, ValueError) as e:
        raise InvalidCostError(f"cost must be a number, got {cost!r}") from e
    if not np.isfinite(cost) or cost <= 0:
        raise InvalidCostError(f"cost must be a finite positive number, got {cost}")
    return cost


def check_optimizer_params(tol, eps, max_iter, cache_size) -> None:
    """Raise InvalidHyperparameterError for an out-of-range optimizer setting."""
    for name, value in (("tol", tol), ("eps", eps)):
        if not isinstance(value, (int, float, np.number)) or not np.isfinite(value) or value <= 0:
            raise InvalidHyperparameterError(f"{name} must be a finite positive number, got {value!r}")
    if not _is_int(max_iter) or max_iter < 1:
        raise InvalidHyperparameterError(f"max_iter must be an integer >= 1, got {max_iter!r}")
    if cache_size is not None and (not _is_int(cache_size) or cache_size < 1):
        raise InvalidHyperparameterError(f"cache_size must be None or an integer >= 1, got {cache_size!r}")


class SMOResult(NamedTuple):
    alpha: np.ndarray
    bias: float
    n_iter: int
    converged: bool


class KernelCache:
    """
    Lazily computed rows of the Gram matrix with an optional LRU bound.

    The diagonal is computed up front since every step needs K_ii and K_jj.
    """

    def __init__(self, inputs: np.ndarray, kernel: Kernel, cache_size: Optional[int] = None):
        self._inputs = inputs
        self._kernel = kernel
        self._cache_size = cache_size
        self._rows: "OrderedDict[int, np.ndarray]" = OrderedDict()
        self.diagonal = np.array([kernel(x, x) for x in inputs])
        self.hits = 0
        self.misses = 0

    def row(self, i: int) -> np.ndarray:
        row = self._rows.get(i)
        if row is not None:
            self._rows.move_to_end(i)
            self.hits += 1
            return row
        self.misses += 1
        row = np.asarray(self._kernel.gram(self._inputs[i:i + 1], self._inputs)[0], dtype=np.float64)
        row[i] = self.diagonal[i]
        self._rows[i] = row
        if self._cache_size is not None and len(self._rows) > self._cache_size:
            self._rows.popitem(last=False)
        return row

    def __len__(self):
        return len(self._rows)


class SequentialMinimalOptimization:
    """
    SMO solver over a fixed training set.

    Args:
        inputs (np.ndarray): Training vectors, shape (n, d).
        outputs (np.ndarray): Labels in {+1, -1}, shape (n,).
        cost (float): Box constraint C > 0.
        kernel: Kernel instance, name or callable, see ``make_kernel``.
        tol (float): KKT violation tolerance.
        eps (float): Smallest relative alpha change that counts as progress.
        max_iter (int): Maximum number of passes over the examined set.
        cache_size (Optional[int]): Maximum number of cached kernel rows, unbounded when None.
        log_level (int): Level of the per-pass progress records.
    """

    def __init__(self, inputs, outputs, cost: float, kernel='linear', tol: float = 1e-3,
                 eps: float = 1e-5, max_iter: int = 10000, cache_size: Optional[int] = None,
                 log_level: int = logging.DEBUG):
        inputs = np.asarray(inputs, dtype=np.float64)
        outputs = np.asarray(outputs, dtype=np.float64)
        if inputs.ndim != 2 or inputs.shape[0] == 0 or inputs.shape[1] == 0:
            raise InvalidDimensionError(f"inputs must be a non-empty (n, d) array, got shape {inputs.shape}")
        if outputs.shape != (inputs.shape[0],):
            raise InvalidDimensionError(
                f"outputs must have shape ({inputs.shape[0]},), got {outputs.shape}")
        if not np.all(np.abs(outputs) == 1.0):
            raise InvalidLabelError("outputs must only contain the labels +1 and -1")
        cost = check_cost(cost)
        check_optimizer_params(tol, eps, max_iter, cache_size)

        self.inputs = inputs
        self.outputs = outputs
        self.C = cost
        self.kernel = make_kernel(kernel)
        self.tol = float(tol)
        self.eps = float(eps)
        self.max_iter = int(max_iter)
        self.cache_size = cache_size
        self.log_level = log_level

        self.alpha: Optional[np.ndarray] = None
        self._b = 0.0
        self._errors: Optional[np.ndarray] = None
        self._cache: Optional[KernelCache] = None
        self.n_iter_ = 0
        self.n_steps_ = 0
        self.converged_ = False

    @property
    def bias(self) -> float:
        """Bias b of u(x) = sum_i a_i y_i K(x_i, x) - b."""
        if self.alpha is None:
            raise RuntimeError("optimize() has not been run yet")
        return self._b

    @property
    def vector_weight(self) -> np.ndarray:
        """Read-only view of the dual coefficients, one per training vector."""
        if self.alpha is None:
            raise RuntimeError("optimize() has not been run yet")
        view = self.alpha.view()
        view.flags.writeable = False
        return view

    def optimize(self) -> SMOResult:
        n_samples = self.inputs.shape[0]
        self.alpha = np.zeros(n_samples)
        self._b = 0.0
        # u = 0 everywhere while all alphas are zero
        self._errors = -self.outputs.copy()
        self._cache = KernelCache(self.inputs, self.kernel, self.cache_size)
        self.n_steps_ = 0

        num_changed = 0
        examine_all = True
        n_iter = 0
        while (num_changed > 0 or examine_all) and n_iter < self.max_iter:
            num_changed = 0
            if examine_all:
                for i in range(n_samples):
                    num_changed += self._examine_example(i)
            else:
                for i in np.flatnonzero(self._non_bound_mask()):
                    num_changed += self._examine_example(int(i))
            n_iter += 1
            logger.log(self.log_level, "SMO pass %d (%s): %d alphas changed", n_iter,
                       "all" if examine_all else "non-bound", num_changed)
            if examine_all:
                examine_all = False
            elif num_changed == 0:
                examine_all = True

        self.n_iter_ = n_iter
        self.converged_ = not (num_changed > 0 or examine_all)
        if not self.converged_:
            logger.warning("SMO stopped after max_iter=%d passes without converging; "
                           "returning best-effort multipliers", self.max_iter)
        logger.debug("SMO finished: %d passes, %d steps, kernel cache %d hits / %d misses",
                     n_iter, self.n_steps_, self._cache.hits, self._cache.misses)
        return SMOResult(alpha=self.alpha.copy(), bias=self._b, n_iter=n_iter, converged=self.converged_)

    def _non_bound_mask(self) -> np.ndarray:
        return (self.alpha > 0) & (self.alpha < self.C)

    def _examine_example(self, i2: int) -> int:
        y2 = self.outputs[i2]
        alpha2 = self.alpha[i2]
        E2 = self._errors[i2]
        r2 = E2 * y2
        if not ((r2 < -self.tol and alpha2 < self.C) or (r2 > self.tol and alpha2 > 0)):
            return 0

        non_bound = np.flatnonzero(self._non_bound_mask())
        if len(non_bound) > 1:
            # second choice heuristic: largest |E1 - E2| gives the largest step
            i1 = int(non_bound[np.argmax(np.abs(self._errors[non_bound] - E2))])
            if self._take_step(i1, i2):
                return 1
        if len(non_bound) > 0:
            for i1 in np.roll(non_bound, -(i2 % len(non_bound))):
                if self._take_step(int(i1), i2):
                    return 1
        for i1 in np.roll(np.arange(len(self.alpha)), -i2):
            if self._take_step(int(i1), i2):
                return 1
        return 0

    def _take_step(self, i1: int, i2: int) -> bool:
        if i1 == i2:
            return False
        C = self.C
        alpha1, alpha2 = self.alpha[i1], self.alpha[i2]
        y1, y2 = self.outputs[i1], self.outputs[i2]
        E1, E2 = self._errors[i1], self._errors[i2]
        s = y1 * y2

        if y1 != y2:
            L = max(0.0, alpha2 - alpha1)
            H = min(C, C + alpha2 - alpha1)
        else:
            L = max(0.0, alpha1 + alpha2 - C)
            H = min(C, alpha1 + alpha2)
        if L >= H:
            return False

        row1 = self._cache.row(i1)
        row2 = self._cache.row(i2)
        k11 = self._cache.diagonal[i1]
        k22 = self._cache.diagonal[i2]
        k12 = row1[i2]
        eta = k11 + k22 - 2.0 * k12
        if eta <= 0:
            return False

        a2 = alpha2 + y2 * (E1 - E2) / eta
        a2 = min(max(a2, L), H)
        if a2 < _BOUND_EPS:
            a2 = 0.0
        elif a2 > C - _BOUND_EPS:
            a2 = C
        if abs(a2 - alpha2) < self.eps * (a2 + alpha2 + self.eps):
            return False

        a1 = alpha1 + s * (alpha2 - a2)
        # keep sum(a_i y_i) unchanged when rounding pushes a1 off the box
        if a1 < 0:
            a2 += s * a1
            a1 = 0.0
        elif a1 > C:
            a2 += s * (a1 - C)
            a1 = C
        a2 = min(max(a2, 0.0), C)

        d1 = y1 * (a1 - alpha1)
        d2 = y2 * (a2 - alpha2)
        b1 = E1 + d1 * k11 + d2 * k12 + self._b
        b2 = E2 + d1 * k12 + d2 * k22 + self._b
        inside1 = 0 < a1 < C
        inside2 = 0 < a2 < C
        if inside1 and not inside2:
            b_new = b1
        elif inside2 and not inside1:
            b_new = b2
        else:
            b_new = 0.5 * (b1 + b2)

        self._errors += d1 * row1 + d2 * row2 - (b_new - self._b)
        self.alpha[i1] = a1
        self.alpha[i2] = a2
        self._b = b_new
        self.n_steps_ += 1
        return True
