"""Tests for empirical variogram estimation."""

import numpy as np
import pytest

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.variogram import (
    compute_directional_variogram,
    compute_experimental_variogram,
    compute_variogram_cloud,
    default_cutoff,
    lag_boundaries,
)
from krigsmith.utils.errors import InsufficientDataError, InvalidParameterError


@pytest.fixture
def square_points():
    """Four samples on the unit square."""
    return SpatialPointSet(
        coordinates=np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]),
        values=np.array([10.0, 12.0, 9.0, 11.0]),
    )


@pytest.fixture
def random_points():
    """Create synthetic sample data for testing."""
    np.random.seed(42)
    n_samples = 40
    coords = np.random.rand(n_samples, 2) * 100
    values = np.sin(coords[:, 0] / 15) * 3 + coords[:, 1] * 0.05 + np.random.randn(n_samples)
    return SpatialPointSet(coordinates=coords, values=values)


def _brute_force_pairs(points):
    coords = points.coordinates
    values = points.values
    rows = []
    for i in range(points.n_samples):
        for j in range(i + 1, points.n_samples):
            dx = coords[j, 0] - coords[i, 0]
            dy = coords[j, 1] - coords[i, 1]
            angle = np.degrees(np.arctan2(dy, dx)) % 180.0
            rows.append((np.sqrt(dx * dx + dy * dy), angle, 0.5 * (values[i] - values[j]) ** 2))
    return np.array(rows)


class TestLagBoundaries:
    """Tests for lag bin edges."""

    def test_even_split(self):
        """Test edges when width divides the cutoff."""
        np.testing.assert_allclose(lag_boundaries(3.0, 1.0), [0.0, 1.0, 2.0, 3.0])

    def test_last_edge_is_cutoff(self):
        """Test that a partial last bin ends at the cutoff."""
        edges = lag_boundaries(2.5, 1.0)
        np.testing.assert_allclose(edges, [0.0, 1.0, 2.0, 2.5])

    @pytest.mark.parametrize("cutoff,width", [(0.0, 1.0), (-1.0, 1.0), (1.0, 0.0)])
    def test_invalid(self, cutoff, width):
        """Test non-positive cutoff or width."""
        with pytest.raises(InvalidParameterError):
            lag_boundaries(cutoff, width)


class TestExperimentalVariogram:
    """Tests for compute_experimental_variogram."""

    def test_four_sample_scenario(self, square_points):
        """Test the unit-square scenario gives two bins at 1 and sqrt(2)."""
        ev = compute_experimental_variogram(square_points, cutoff=2.0, width=1.0)

        assert len(ev) == 2
        np.testing.assert_allclose(ev.mean_distance, [1.0, np.sqrt(2.0)])
        np.testing.assert_array_equal(ev.n_pairs, [4, 2])
        np.testing.assert_allclose(ev.semivariance, [1.25, 2.5])
        assert not ev.is_directional

    def test_left_closed_bins(self, square_points):
        """Test [lower, upper) bins move distance 1 into the second bin."""
        ev = compute_experimental_variogram(
            square_points, cutoff=2.0, width=1.0, closed="left"
        )
        assert len(ev) == 1
        assert ev.n_pairs[0] == 6
        assert ev.lower[0] == 1.0

    def test_pair_counts_match_recount(self, random_points):
        """Test every bin's pair count against an exact recount."""
        ev = compute_experimental_variogram(random_points)
        pairs = _brute_force_pairs(random_points)
        distances = pairs[:, 0]

        for point in ev.points:
            lower, upper = point.bin.lower, point.bin.upper
            in_bin = (distances > lower) & (distances <= upper)
            if lower == 0.0:
                in_bin |= distances == 0.0
            assert point.n_pairs == int(in_bin.sum())
            assert point.semivariance == pytest.approx(pairs[in_bin, 2].mean())
            assert point.mean_distance == pytest.approx(distances[in_bin].mean())

        assert int(ev.n_pairs.sum()) == int((distances <= ev.cutoff).sum())

    def test_default_cutoff(self, random_points):
        """Test default cutoff is one third of the largest distance."""
        ev = compute_experimental_variogram(random_points)
        assert ev.cutoff == pytest.approx(random_points.max_distance() / 3.0)
        assert ev.cutoff == pytest.approx(default_cutoff(random_points))
        assert ev.width == pytest.approx(ev.cutoff / 15.0)

    def test_empty_bins_dropped(self, random_points):
        """Test that no retained bin has zero pairs and rows are sorted."""
        ev = compute_experimental_variogram(random_points, cutoff=60.0, width=0.5)
        assert np.all(ev.n_pairs >= 1)
        assert np.all(np.diff(ev.mean_distance) > 0)

    def test_explicit_boundaries(self, square_points):
        """Test caller-provided bin edges."""
        ev = compute_experimental_variogram(square_points, boundaries=[0.0, 1.2, 1.5])
        np.testing.assert_array_equal(ev.n_pairs, [4, 2])
        assert ev.cutoff == 1.5

    @pytest.mark.parametrize("kwargs", [{"cutoff": 2.0}, {"width": 0.5}])
    def test_boundaries_exclude_cutoff_and_width(self, square_points, kwargs):
        """Test explicit edges cannot be mixed with cutoff or width."""
        with pytest.raises(InvalidParameterError, match="boundaries"):
            compute_experimental_variogram(square_points, boundaries=[0.0, 1.2, 1.5], **kwargs)

    def test_too_few_samples(self):
        """Test fewer than 2 samples."""
        points = SpatialPointSet(coordinates=np.zeros((1, 2)), values=np.zeros(1))
        with pytest.raises(InsufficientDataError, match="at least 2 samples"):
            compute_experimental_variogram(points)

    def test_invalid_cutoff(self, square_points):
        """Test non-positive cutoff."""
        with pytest.raises(InvalidParameterError, match="cutoff"):
            compute_experimental_variogram(square_points, cutoff=-1.0)

    def test_invalid_closed(self, square_points):
        """Test unknown interval closure."""
        with pytest.raises(InvalidParameterError, match="closed"):
            compute_experimental_variogram(square_points, closed="both")

    def test_to_frame(self, square_points):
        """Test tabular output."""
        frame = compute_experimental_variogram(square_points, cutoff=2.0, width=1.0).to_frame()
        assert list(frame["n_pairs"]) == [4, 2]


class TestDirectionalVariogram:
    """Tests for directional variograms."""

    def test_east_west(self, square_points):
        """Test the 0-degree cone keeps only horizontal pairs."""
        ev = compute_directional_variogram(
            square_points, direction=0.0, angle_tolerance=22.5, cutoff=2.0, width=1.0
        )
        assert len(ev) == 1
        assert ev.n_pairs[0] == 2
        assert ev.semivariance[0] == pytest.approx(2.0)
        assert ev.direction[0] == 0.0
        assert ev.is_directional

    def test_north_south(self, square_points):
        """Test the 90-degree cone keeps only vertical pairs."""
        ev = compute_directional_variogram(
            square_points, direction=90.0, angle_tolerance=22.5, cutoff=2.0, width=1.0
        )
        assert ev.n_pairs[0] == 2
        assert ev.semivariance[0] == pytest.approx(0.5)

    def test_direction_is_unsigned(self, square_points):
        """Test that 270 degrees selects the same pairs as 90."""
        ev_90 = compute_directional_variogram(square_points, 90.0, cutoff=2.0, width=1.0)
        ev_270 = compute_directional_variogram(square_points, 270.0, cutoff=2.0, width=1.0)
        np.testing.assert_array_equal(ev_90.n_pairs, ev_270.n_pairs)

    def test_several_directions(self, random_points):
        """Test cone pair counts against a recount."""
        directions = [(0.0, 30.0), (90.0, 30.0)]
        ev = compute_experimental_variogram(random_points, cutoff=50.0, directions=directions)
        pairs = _brute_force_pairs(random_points)

        for angle, tolerance in directions:
            diff = np.abs(pairs[:, 1] - angle) % 180.0
            diff = np.minimum(diff, 180.0 - diff)
            in_cone = (diff <= tolerance) & (pairs[:, 0] <= 50.0)
            assert int(ev.n_pairs[ev.direction == angle].sum()) == int(in_cone.sum())

    def test_invalid_tolerance(self, square_points):
        """Test tolerance outside (0, 90]."""
        with pytest.raises(InvalidParameterError, match="tolerance"):
            compute_directional_variogram(square_points, 0.0, angle_tolerance=120.0)

    @pytest.mark.parametrize(
        "entry", [(0.0, 22.5, 1.0), ("east", 22.5), 45.0, (None, 10.0)]
    )
    def test_malformed_direction(self, square_points, entry):
        """Test entries that are not numeric (angle, tolerance) pairs."""
        with pytest.raises(InvalidParameterError, match="directions"):
            compute_experimental_variogram(square_points, cutoff=2.0, directions=[entry])


class TestVariogramCloud:
    """Tests for the variogram cloud."""

    def test_all_pairs_in_order(self, square_points):
        """Test every pair appears once, in row-major order."""
        cloud = compute_variogram_cloud(square_points, cutoff=2.0)
        assert len(cloud) == 6
        np.testing.assert_array_equal(cloud.i, [0, 0, 0, 1, 1, 2])
        np.testing.assert_array_equal(cloud.j, [1, 2, 3, 2, 3, 3])
        np.testing.assert_allclose(cloud.semivariance, [2.0, 0.5, 0.5, 4.5, 0.5, 2.0])

    def test_cutoff_filters(self, square_points):
        """Test that pairs beyond the cutoff are dropped."""
        cloud = compute_variogram_cloud(square_points, cutoff=1.2)
        assert len(cloud) == 4
        assert np.all(cloud.distance <= 1.2)

    def test_directional_cloud(self, square_points):
        """Test cone filtering keeps each pair once."""
        cloud = compute_variogram_cloud(
            square_points, cutoff=2.0, directions=[(45.0, 10.0), (40.0, 10.0)]
        )
        assert len(cloud) == 1
        assert cloud.direction[0] == pytest.approx(45.0)

    def test_points_and_frame(self, square_points):
        """Test record and tabular views."""
        cloud = compute_variogram_cloud(square_points, cutoff=2.0)
        assert len(cloud.points) == 6
        assert len(cloud.to_frame()) == 6
