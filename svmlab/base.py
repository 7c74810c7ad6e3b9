# pylint: disable=missing-docstring
from abc import abstractmethod
from typing import Any, Tuple, TypeVar
import numpy as np

T = TypeVar("T", bound="BaseEstimator")


# pylint: disable=invalid-name line-too-long
class BaseEstimator:
    # attribute names holding fitted state; everything else is configuration
    _trainable_params: Tuple[str, ...] = ()

    @abstractmethod
    def fit(self: T, X: np.ndarray, y: np.ndarray) -> T:
        """
        :param X: numpy array of shape (N, d) with N being the number of samples and d being the number of feature dimensions
        :param y: numpy array of shape (N,) with the target of each sample
        :return: the fitted estimator
        """
        raise NotImplementedError

    def get_params(self, mode: str = "all") -> Any:
        """
        Get parameters for this estimator.

        :param mode: Specifies which parameters to return. Options are:
            - "all": Return all public parameters.
            - "trainable": Return only fitted state (e.g., support vectors and bias).
            - "non_trainable": Return only configuration (e.g., cost and tolerances).
        :return: Dictionary of parameter names mapped to their values.
        """
        params = {k: v for k, v in self.__dict__.items() if not k.startswith("_")}
        params.update({k: getattr(self, k) for k in self._trainable_params})
        if mode == "all":
            return params
        if mode == "trainable":
            return {k: v for k, v in params.items() if k in self._trainable_params}
        if mode == "non_trainable":
            return {k: v for k, v in params.items() if k not in self._trainable_params}

        raise ValueError(
            f"Invalid mode '{mode}'. Choose from 'all', 'trainable', or 'non_trainable'."
        )


class BaseClassifier(BaseEstimator):
    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        :param X: np array of shape (N, d)
        :return: np array of shape (N,) with the predicted labels
        """
        raise NotImplementedError

    def score(self, X: np.ndarray, y: np.ndarray) -> float:
        """
        :param X: numpy array of shape (N, d) with N being the number of samples and d being the number of feature dimensions
        :param y: numpy array of shape (N,) with the true labels
        :return: accuracy
        """
        y_pred = self.predict(X)
        return float(np.mean(y_pred == np.asarray(y).reshape(-1)))
