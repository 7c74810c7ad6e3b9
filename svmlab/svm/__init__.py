"""SVM module: kernels, the SMO dual optimizer and the support vector classifiers."""

from ._kernels import (
    Kernel,
    LinearKernel,
    GaussianKernel,
    PolynomialKernel,
    SigmoidKernel,
    CompositeKernel,
    CallableKernel,
    make_kernel
)
from ._smo import SequentialMinimalOptimization, SMOResult, KernelCache
from ._svm import (
    SupportVectorMachine,
    LinearSupportVectorMachine,
    GaussianSupportVectorMachine,
    SupportVectorModel,
    WeightedSupportVector,
    SUPPORT_VECTOR_EPSILON
)

__all__ = [
    'Kernel',
    'LinearKernel',
    'GaussianKernel',
    'PolynomialKernel',
    'SigmoidKernel',
    'CompositeKernel',
    'CallableKernel',
    'make_kernel',
    'SequentialMinimalOptimization',
    'SMOResult',
    'KernelCache',
    'SupportVectorMachine',
    'LinearSupportVectorMachine',
    'GaussianSupportVectorMachine',
    'SupportVectorModel',
    'WeightedSupportVector',
    'SUPPORT_VECTOR_EPSILON'
]
