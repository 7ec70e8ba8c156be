"""
Similarity metrics shown next to an overlap comparison.

Two echoes can be compared by their source text (edit distance) and by
their embedding vectors (cosine similarity) in addition to the spatial
overlap of their flames.
"""

import numpy as np
from typing import Sequence


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0 for vectors of different or zero length and when either
    vector has zero norm.
    """
    if len(vector_a) != len(vector_b) or len(vector_a) == 0:
        return 0.0

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit-cost insertion, deletion and substitution."""
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(previous[j] + 1,
                             current[j - 1] + 1,
                             previous[j - 1] + cost)
        previous = current
    return previous[-1]


def text_distance_percent(a: str, b: str) -> float:
    """Edit distance as a percentage of the mean length of the two strings."""
    mean_length = (len(a) + len(b)) / 2
    if mean_length == 0:
        return 0.0
    return levenshtein_distance(a, b) / mean_length * 100.0
