"""
svmlab: binary kernel Support Vector Machines trained with Sequential Minimal Optimization.
"""
import logging

from .svm import (
    LinearSupportVectorMachine,
    GaussianSupportVectorMachine,
    SupportVectorMachine,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    'LinearSupportVectorMachine',
    'GaussianSupportVectorMachine',
    'SupportVectorMachine',
]
