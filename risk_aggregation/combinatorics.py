"""Subset enumeration for inclusion-exclusion over N events."""

from itertools import combinations
from math import comb

import numpy as np


def _check_count(n: int) -> int:
    n = int(n)
    if n < 1:
        raise ValueError(f"Number of events must be at least 1, got {n}")
    return n


def binomial_group_sizes(n: int) -> np.ndarray:
    """Return C(n, k) for k = 1..n."""
    n = _check_count(n)
    return np.array([comb(n, k) for k in range(1, n + 1)], dtype=np.int64)


def group_boundaries(n: int) -> np.ndarray:
    """Return the row index one past the end of each subset-size group."""
    return np.cumsum(binomial_group_sizes(n))


def all_combinations(n: int) -> np.ndarray:
    """Enumerate every non-empty subset of n events as indicator rows.

    Rows are grouped by subset size ascending and ordered lexicographically
    within a group, so for n = 3 the rows are A, B, C, AB, AC, BC, ABC.

    Args:
        n: Number of events

    Returns:
        Array of shape (2**n - 1, n) with 0/1 entries
    """
    n = _check_count(n)
    indicators = np.zeros((2 ** n - 1, n), dtype=np.int8)
    row = 0
    for size in range(1, n + 1):
        for subset in combinations(range(n), size):
            indicators[row, list(subset)] = 1
            row += 1
    return indicators


def subset_sizes(indicators: np.ndarray) -> np.ndarray:
    """Number of included events in each indicator row."""
    return np.asarray(indicators).sum(axis=1).astype(np.int64)
