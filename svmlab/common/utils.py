import logging
from typing import Optional, Type

import numpy as np
import pandas as pd

from ..exceptions import (
    InvalidDimensionError,
    MissingOrEmptyGroupError,
    NonFiniteInputError,
    NullOrMismatchedVectorError,
)


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Return the logger for ``name``, optionally forcing its level.

    Handlers are left to the application; the package root only carries a NullHandler.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def as_vector(vector, dim: Optional[int] = None, name: str = "vector",
              error: Type[Exception] = NullOrMismatchedVectorError) -> np.ndarray:
    """
    Coerce a single sample into an owned 1-D float64 array.

    Args:
        vector: list, tuple, numpy array, pandas Series or single-row DataFrame.
        dim (Optional[int]): Expected dimension, not checked when None.
        name (str): Argument name used in error messages.
        error (Type[Exception]): Exception raised for a missing or misshapen vector.
    Returns:
        np.ndarray: A fresh copy, never a view of the caller's storage.
    Raises:
        error: If the vector is None, not 1-D, or of the wrong dimension.
        NonFiniteInputError: If the vector holds NaN or inf.
    """
    if vector is None:
        raise error(f"{name} must not be None")
    try:
        if isinstance(vector, pd.DataFrame):
            if vector.shape[0] != 1:
                raise error(f"{name} must be a single row, got {vector.shape[0]} rows")
            values = vector.iloc[0].to_numpy(dtype=np.float64)
        elif isinstance(vector, pd.Series):
            values = vector.to_numpy(dtype=np.float64)
        else:
            values = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError) as e:
        if isinstance(e, error):
            raise
        raise error(f"{name} is not a numeric vector: {e}") from e
    if values.ndim != 1:
        raise error(f"{name} must be 1-D, got shape {values.shape}")
    if dim is not None and values.shape[0] != dim:
        raise error(f"{name} has dimension {values.shape[0]}, expected {dim}")
    if not np.isfinite(values).all():
        raise NonFiniteInputError(f"{name} contains NaN or inf values")
    return np.array(values, dtype=np.float64, copy=True)


def as_vector_group(vectors, dim: int, name: str = "vectors") -> np.ndarray:
    """
    Coerce a group of samples into an owned (n, dim) float64 array.

    :param vectors: sequence of vectors, 2-D numpy array or pandas DataFrame
    :param dim: dimension every vector must have
    :param name: argument name used in error messages
    :return: numpy array of shape (n, dim), n >= 1
    """
    if vectors is None:
        raise MissingOrEmptyGroupError(f"{name} must not be None")
    if isinstance(vectors, pd.DataFrame):
        group = vectors.to_numpy(dtype=np.float64, copy=True)
    elif isinstance(vectors, np.ndarray) and vectors.ndim == 2:
        group = np.array(vectors, dtype=np.float64, copy=True)
    else:
        rows = [as_vector(v, dim, name=f"{name}[{i}]", error=InvalidDimensionError)
                for i, v in enumerate(vectors)]
        group = np.vstack(rows) if rows else np.empty((0, dim))
    if group.shape[0] == 0:
        raise MissingOrEmptyGroupError(f"{name} must contain at least one vector")
    if group.shape[1] != dim:
        raise InvalidDimensionError(f"{name} has dimension {group.shape[1]}, expected {dim}")
    if not np.isfinite(group).all():
        raise NonFiniteInputError(f"{name} contains NaN or inf values")
    return group


def as_matrix(vectors, dim: Optional[int] = None, name: str = "X") -> np.ndarray:
    """
    Stack query vectors into a (n, dim) float64 array for the batch entry points.

    An empty sequence gives an empty (0, dim) array. When dim is None it is taken
    from the data.
    """
    if vectors is None:
        raise NullOrMismatchedVectorError(f"{name} must not be None")
    if isinstance(vectors, pd.DataFrame):
        X = vectors.to_numpy(dtype=np.float64)
    elif isinstance(vectors, np.ndarray) and vectors.ndim == 2:
        X = np.asarray(vectors, dtype=np.float64)
    else:
        rows = [as_vector(v, dim, name=f"{name}[{i}]") for i, v in enumerate(vectors)]
        if not rows:
            return np.empty((0, dim or 0))
        if dim is None:
            dim = rows[0].shape[0]
            for i, row in enumerate(rows):
                if row.shape[0] != dim:
                    raise NullOrMismatchedVectorError(
                        f"{name}[{i}] has dimension {row.shape[0]}, expected {dim}")
        X = np.vstack(rows)
    if dim is not None and X.shape[0] and X.shape[1] != dim:
        raise NullOrMismatchedVectorError(f"{name} has dimension {X.shape[1]}, expected {dim}")
    if not np.isfinite(X).all():
        raise NonFiniteInputError(f"{name} contains NaN or inf values")
    return X
