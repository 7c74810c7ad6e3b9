import numpy as np
import pytest


@pytest.fixture
def separable():
    """Positives on the grid {2, 3}^2, negatives on {-2, -3}^2; the max-margin boundary is x + y = 0."""
    positives = np.array([[2.0, 2.0], [2.0, 3.0], [3.0, 2.0], [3.0, 3.0]])
    negatives = -positives
    return positives, negatives


@pytest.fixture
def xor():
    positives = np.array([[1.0, 1.0], [-1.0, -1.0]])
    negatives = np.array([[1.0, -1.0], [-1.0, 1.0]])
    return positives, negatives


@pytest.fixture
def blobs():
    """Two overlapping Gaussian clouds, so some multipliers end up at the bound C."""
    rng = np.random.default_rng(7)
    positives = rng.normal(loc=[1.0, 1.0], scale=1.0, size=(25, 2))
    negatives = rng.normal(loc=[-1.0, -1.0], scale=1.0, size=(25, 2))
    return positives, negatives
