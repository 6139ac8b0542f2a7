"""
core/similarity.py - Cosine similarity
======================================

Shared ranking primitive for the vector store and the intent index.
Vectors of different length are compared as if the shorter one were
zero-padded, so a model change never crashes a comparison.
"""

from typing import Sequence

import numpy as np


def _as_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64).ravel()


def pad_vectors(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Stack vectors into a 2D array, zero-padding to the longest one.

    Args:
        vectors: Non-empty sequence of vectors

    Returns:
        np.ndarray of shape (len(vectors), max_dim)
    """
    arrays = [_as_array(v) for v in vectors]
    width = max(a.shape[0] for a in arrays)
    padded = np.zeros((len(arrays), width), dtype=np.float64)
    for row, arr in enumerate(arrays):
        padded[row, : arr.shape[0]] = arr
    return padded


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero magnitude (or is empty).
    """
    a_arr = _as_array(a)
    b_arr = _as_array(b)

    width = max(a_arr.shape[0], b_arr.shape[0])
    if width == 0:
        return 0.0
    if a_arr.shape[0] < width:
        a_arr = np.pad(a_arr, (0, width - a_arr.shape[0]))
    if b_arr.shape[0] < width:
        b_arr = np.pad(b_arr, (0, width - b_arr.shape[0]))

    norm_a = float(np.linalg.norm(a_arr))
    norm_b = float(np.linalg.norm(b_arr))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(a_arr, b_arr)) / (norm_a * norm_b)
    # Rounding can push |score| a hair past 1
    return max(-1.0, min(1.0, score))


def centroid(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Element-wise mean of the given vectors (zero-padded to equal length)."""
    if not vectors:
        raise ValueError("centroid() needs at least one vector")
    return pad_vectors(vectors).mean(axis=0).tolist()
