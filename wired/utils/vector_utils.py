"""
Vector primitives used by candidate scoring.
"""

from typing import Optional, Sequence

import numpy as np


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity of two vectors in [-1, 1].

    Returns 0.0 when either vector is missing or empty, when their dimensions
    differ, or when either has zero norm. No clamping is applied.
    """
    if a is None or b is None or len(a) == 0 or len(b) == 0:
        return 0.0
    if len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / denom


def _is_vector(value) -> bool:
    if isinstance(value, np.ndarray):
        return value.ndim == 1
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def average_vectors(vectors: Sequence[Optional[Sequence[float]]]) -> list:
    """Element-wise mean of the usable vectors.

    Missing, empty and non-vector entries are dropped. The first remaining vector fixes the
    dimension and any vector of a different length is skipped.
    """
    valid = [v for v in vectors if _is_vector(v) and len(v) > 0]
    if not valid:
        return []

    length = len(valid[0])
    same_length = [v for v in valid if len(v) == length]
    return np.mean(np.asarray(same_length, dtype=np.float64), axis=0).tolist()
