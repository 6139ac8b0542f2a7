"""
Tests for core.similarity
"""
import math

import pytest

from core.similarity import centroid, cosine_similarity, pad_vectors


class TestCosineSimilarity:
    """Test cosine_similarity"""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_symmetric(self):
        a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.7]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 2], [-1, -2]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self):
        """A zero-magnitude vector must not produce NaN"""
        score = cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0])
        assert score == 0.0
        assert not math.isnan(score)

    def test_empty_vectors(self):
        assert cosine_similarity([], []) == 0.0

    def test_shorter_vector_is_zero_padded(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0], [1.0, 1.0]) == pytest.approx(1 / math.sqrt(2))

    def test_bounded(self):
        score = cosine_similarity([1e-8, 3e-8], [1e-8, 3e-8])
        assert -1.0 <= score <= 1.0


class TestCentroid:
    """Test centroid and pad_vectors"""

    def test_mean(self):
        assert centroid([[1.0, 3.0], [3.0, 5.0]]) == pytest.approx([2.0, 4.0])

    def test_mixed_lengths(self):
        assert centroid([[2.0], [0.0, 4.0]]) == pytest.approx([1.0, 2.0])

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            centroid([])

    def test_pad_vectors_shape(self):
        padded = pad_vectors([[1.0], [1.0, 2.0, 3.0]])
        assert padded.shape == (2, 3)
        assert padded[0].tolist() == [1.0, 0.0, 0.0]
