"""Summary statistics shared by the feature extractors"""

from dataclasses import dataclass
from typing import Iterable, Tuple
import numpy as np


@dataclass(frozen=True)
class SummaryStats:
    mean: float
    std: float
    min: float
    max: float


ZERO_STATS = SummaryStats(0.0, 0.0, 0.0, 0.0)


def compute_stats(values: Iterable[float]) -> SummaryStats:
    """Mean, population standard deviation, min and max of a sequence.

    An empty sequence yields all zeros.
    """
    if not isinstance(values, np.ndarray):
        values = list(values)
    array = np.asarray(values, dtype=np.float64).ravel()
    if array.size == 0:
        return ZERO_STATS
    return SummaryStats(
        mean=float(np.mean(array)),
        std=float(np.std(array)),  # ddof=0: divide by n
        min=float(np.min(array)),
        max=float(np.max(array)),
    )


def mean_std(values: Iterable[float]) -> Tuple[float, float]:
    stats = compute_stats(values)
    return stats.mean, stats.std
