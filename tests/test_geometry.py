"""Tests for pairwise geometry and anisotropy."""

import numpy as np
import pytest

from krigsmith.primitives.geometry import (
    Anisotropy,
    anisotropic_transform,
    angular_difference,
    direction,
    distance,
    effective_distance,
    normalize_direction,
    pairwise_distances,
    pairwise_lags,
)
from krigsmith.utils.errors import InvalidParameterError


class TestDirection:
    """Tests for unsigned lag directions."""

    @pytest.mark.parametrize(
        "target,expected",
        [
            ((1.0, 0.0), 0.0),
            ((1.0, 1.0), 45.0),
            ((0.0, 1.0), 90.0),
            ((-1.0, 1.0), 135.0),
            ((-1.0, 0.0), 0.0),
            ((-1.0, -1.0), 45.0),
            ((0.0, -1.0), 90.0),
        ],
    )
    def test_direction_is_unsigned(self, target, expected):
        """Test that h and -h share a direction in [0, 180)."""
        assert direction((0.0, 0.0), target) == pytest.approx(expected)

    def test_reversed_vector_same_direction(self):
        """Test direction(a, b) == direction(b, a)."""
        a, b = (2.0, 3.0), (5.0, -1.0)
        assert direction(a, b) == pytest.approx(direction(b, a))

    def test_normalize_direction(self):
        """Test normalization of arrays and scalars."""
        assert normalize_direction(190.0) == pytest.approx(10.0)
        assert normalize_direction(-30.0) == pytest.approx(150.0)
        np.testing.assert_allclose(normalize_direction(np.array([180.0, 360.0])), [0.0, 0.0])

    def test_angular_difference(self):
        """Test wrap-around of undirected angles."""
        assert angular_difference(170.0, 10.0) == pytest.approx(20.0)
        assert angular_difference(0.0, 90.0) == pytest.approx(90.0)


class TestDistance:
    """Tests for Euclidean and anisotropic distances."""

    def test_euclidean(self):
        """Test the plain distance."""
        assert distance((0.0, 0.0), (3.0, 4.0)) == pytest.approx(5.0)

    def test_anisotropic_distance(self):
        """Test that lags along the minor axis are stretched."""
        aniso = Anisotropy(major_direction=0.0, minor_range_ratio=0.5)
        assert distance((0.0, 0.0), (1.0, 0.0), aniso) == pytest.approx(1.0)
        assert distance((0.0, 0.0), (0.0, 1.0), aniso) == pytest.approx(2.0)

    def test_transform_rotates_major_axis_to_x(self):
        """Test that the major direction maps onto +x."""
        transformed = anisotropic_transform((1.0, 1.0), 45.0, 1.0)
        np.testing.assert_allclose(transformed, [np.sqrt(2.0), 0.0], atol=1e-12)

    def test_effective_distance_matches_transform(self):
        """Test lag-based and coordinate-based anisotropic distances agree."""
        aniso = Anisotropy(major_direction=30.0, minor_range_ratio=0.4)
        np.random.seed(42)
        a = np.random.rand(10, 2) * 10
        b = np.random.rand(10, 2) * 10
        expected = np.array([distance(p, q, aniso) for p, q in zip(a, b)])
        raw = np.linalg.norm(b - a, axis=1)
        dirs = np.array([direction(p, q) for p, q in zip(a, b)])
        np.testing.assert_allclose(effective_distance(raw, dirs, aniso), expected)

    def test_pairwise_distances_shape(self):
        """Test distance matrix between two sets."""
        a = np.zeros((3, 2))
        b = np.ones((4, 2))
        result = pairwise_distances(a, b)
        assert result.shape == (3, 4)
        np.testing.assert_allclose(result, np.sqrt(2.0))

    def test_bad_shape(self):
        """Test that non-planar points are rejected."""
        with pytest.raises(InvalidParameterError, match="shape"):
            pairwise_distances(np.zeros((3, 3)))


class TestAnisotropy:
    """Tests for the Anisotropy container."""

    def test_direction_normalized(self):
        """Test that the major direction is folded into [0, 180)."""
        assert Anisotropy(190.0, 0.5).major_direction == pytest.approx(10.0)

    @pytest.mark.parametrize("ratio", [0.0, -0.5, 1.5])
    def test_invalid_ratio(self, ratio):
        """Test ratio outside (0, 1]."""
        with pytest.raises(InvalidParameterError, match="minor_range_ratio"):
            Anisotropy(0.0, ratio)

    def test_non_finite_direction(self):
        """Test that the major direction must be a finite angle."""
        with pytest.raises(InvalidParameterError, match="major_direction"):
            Anisotropy(np.nan, 0.5)

    def test_transform_rejects_bad_ratio(self):
        """Test the coordinate transform validates its ratio."""
        with pytest.raises(InvalidParameterError, match="0 < minor_range_ratio <= 1"):
            anisotropic_transform([[1.0, 2.0]], 30.0, 1.5)

    def test_isotropic(self):
        """Test the ratio-1 special case."""
        assert Anisotropy(45.0, 1.0).is_isotropic
        assert not Anisotropy(45.0, 0.9).is_isotropic


class TestPairwiseLags:
    """Tests for the all-pairs enumeration."""

    def test_pair_order_and_values(self):
        """Test row-major pair order and per-pair statistics."""
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        values = np.array([10.0, 12.0, 9.0])
        lags = pairwise_lags(coords, values)

        np.testing.assert_array_equal(lags.i, [0, 0, 1])
        np.testing.assert_array_equal(lags.j, [1, 2, 2])
        np.testing.assert_allclose(lags.distance, [1.0, 1.0, np.sqrt(2.0)])
        np.testing.assert_allclose(lags.direction, [0.0, 90.0, 135.0])
        np.testing.assert_allclose(lags.semivariance, [2.0, 0.5, 4.5])

    def test_matches_brute_force(self):
        """Test against a Python double loop on random data."""
        np.random.seed(42)
        coords = np.random.rand(25, 2) * 100
        values = np.random.randn(25)
        lags = pairwise_lags(coords, values)

        expected = [
            (i, j, 0.5 * (values[i] - values[j]) ** 2)
            for i in range(25)
            for j in range(i + 1, 25)
        ]
        assert len(lags.i) == len(expected) == 300
        np.testing.assert_array_equal(lags.i, [e[0] for e in expected])
        np.testing.assert_array_equal(lags.j, [e[1] for e in expected])
        np.testing.assert_allclose(lags.semivariance, [e[2] for e in expected])

    def test_single_sample(self):
        """Test that one sample yields no pairs."""
        lags = pairwise_lags(np.zeros((1, 2)), np.zeros(1))
        assert len(lags.distance) == 0
