from __future__ import annotations

from typing import Iterable

# Cosine distance lies in [0, 2]; with nothing retrieved the mean is taken as 1.0.
EMPTY_RETRIEVAL_DISTANCE = 1.0
DEFAULT_CONFIDENCE_THRESHOLD = 0.7


def average_distance(distances: Iterable[float]) -> float:
    values = [float(d) for d in distances]
    if not values:
        return EMPTY_RETRIEVAL_DISTANCE
    return sum(values) / len(values)


def is_confident(
    distances: Iterable[float],
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> bool:
    """True when the mean neighbor distance beats ``1 - confidence_threshold``."""
    return average_distance(distances) < (1 - confidence_threshold)
