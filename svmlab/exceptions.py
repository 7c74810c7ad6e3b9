"""
Exceptions raised by the svmlab estimators.

Validation errors derive from both ``SVMError`` and ``ValueError`` so that callers
who only know about the builtin types can still catch them.
"""


class SVMError(Exception):
    """Base class for every error raised by svmlab."""


class InvalidCostError(SVMError, ValueError):
    """The penalty cost C is not a finite positive number."""


class InvalidHyperparameterError(SVMError, ValueError):
    """A kernel or optimizer hyperparameter is out of range."""


class InvalidDimensionError(SVMError, ValueError):
    """A declared dimension is < 1 or a vector does not match it."""


class MissingOrEmptyGroupError(SVMError, ValueError):
    """The training groups are missing, not exactly two, or one of them is empty."""


class NullOrMismatchedVectorError(SVMError, ValueError):
    """A query vector is None or its dimension differs from the trained one."""


class InvalidLabelError(SVMError, ValueError):
    """Training labels are not all +1 or -1."""


class NonFiniteInputError(SVMError, ValueError):
    """A vector contains NaN or inf."""


class NotTrainedError(SVMError, RuntimeError):
    """The classifier was queried before any successful training run."""
