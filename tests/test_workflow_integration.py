"""Integration tests for the end-to-end interpolation workflow."""

import numpy as np
import pytest

import krigsmith
from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.variogram_models import VariogramModel
from krigsmith.workflows.geostatistics import (
    GeostatisticalModel,
    GeostatisticalResult,
    InterpolationConfig,
    default_initial_model,
)
from krigsmith.utils.errors import InvalidParameterError


@pytest.fixture
def square_points():
    """Four samples on the unit square."""
    return SpatialPointSet.from_mapping(
        {
            "a": ((0.0, 0.0), 10.0),
            "b": ((1.0, 0.0), 12.0),
            "c": ((0.0, 1.0), 9.0),
            "d": ((1.0, 1.0), 11.0),
        }
    )


@pytest.fixture
def monitoring_network():
    """Synthetic pollutant readings from a station network."""
    np.random.seed(42)
    n_stations = 60
    coords = np.random.rand(n_stations, 2) * 10_000
    trend = 20 + coords[:, 0] / 1_000 + 3 * np.sin(coords[:, 1] / 2_000)
    values = trend + np.random.randn(n_stations) * 0.5
    return SpatialPointSet(coordinates=coords, values=values)


class TestInterpolationConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        """Test documented defaults."""
        config = InterpolationConfig()
        assert config.cutoff is None
        assert config.width is None
        assert config.directions == ()
        assert config.model_type == "exponential"
        assert config.fitting_scheme == "weighted"
        assert config.kriging_mean == "ordinary"
        assert config.idw_power == 2.0
        assert config.cv_folds is None
        assert config.cv_seed == 0

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"cutoff": 0.0}, "cutoff"),
            ({"width": -1.0}, "width"),
            ({"model_type": "linear"}, "model_type"),
            ({"fitting_scheme": "robust"}, "fitting_scheme"),
            ({"kriging_mean": "universal"}, "kriging_mean"),
            ({"idw_power": 0.0}, "idw_power"),
            ({"cv_folds": 1}, "cv_folds"),
            ({"fit_anisotropy": True}, "fit_anisotropy"),
        ],
    )
    def test_invalid(self, kwargs, match):
        """Test that invalid settings are rejected."""
        with pytest.raises(InvalidParameterError, match=match):
            InterpolationConfig(**kwargs)

    def test_directions_normalized_to_tuples(self):
        """Test direction pairs are stored as float tuples."""
        config = InterpolationConfig(directions=[[0, 22.5], (90, 22.5)])
        assert config.directions == ((0.0, 22.5), (90.0, 22.5))

    @pytest.mark.parametrize(
        "directions", [[(0.0, 22.5, 5.0)], [("north", 22.5)], [90.0], [(0.0, 120.0)]]
    )
    def test_malformed_directions(self, directions):
        """Test direction entries are validated on construction."""
        with pytest.raises(InvalidParameterError, match="direction"):
            InterpolationConfig(directions=directions)


class TestGeostatisticalModel:
    """Tests for GeostatisticalModel."""

    def test_four_sample_pipeline(self, square_points):
        """Test the unit-square scenario end to end."""
        config = InterpolationConfig(cutoff=2.0, width=1.0)
        initial = VariogramModel("exponential", nugget=0.0, partial_sill=2.0, range_param=1.0)
        workflow = GeostatisticalModel(square_points, config, initial_model=initial)

        ev = workflow.compute_variogram()
        assert len(ev) == 2

        fit = workflow.fit_variogram()
        assert fit.converged

        result = workflow.estimate([[0.5, 0.5], [0.0, 0.0]])
        assert isinstance(result, GeostatisticalResult)
        assert np.all(np.isfinite(result.estimates))
        assert result.estimates[1] == 10.0
        assert np.all(result.variance >= 0)
        assert result.fit_result is fit
        assert result.empirical_variogram is ev

    def test_fit_is_cached(self, square_points):
        """Test repeated calls reuse the fitted variogram."""
        workflow = GeostatisticalModel(
            square_points,
            InterpolationConfig(cutoff=2.0, width=1.0),
            initial_model=VariogramModel("exponential", partial_sill=2.0, range_param=1.0),
        )
        assert workflow.fit_variogram() is workflow.fit_variogram()

    def test_supplied_model_skips_fit(self, monitoring_network):
        """Test a pre-fitted variogram model is used directly."""
        model = VariogramModel("spherical", nugget=0.2, partial_sill=5.0, range_param=4_000.0)
        workflow = GeostatisticalModel(monitoring_network, variogram_model=model)
        result = workflow.estimate(np.array([[5_000.0, 5_000.0]]))
        assert result.variogram_model is model
        assert result.fit_result is None

    def test_estimate_with_validation(self, monitoring_network):
        """Test estimation on a grid with cross-validation."""
        config = InterpolationConfig(model_type="spherical", cv_folds=5)
        workflow = GeostatisticalModel(monitoring_network, config)

        xs, ys = np.meshgrid(np.linspace(0, 10_000, 6), np.linspace(0, 10_000, 6))
        grid = np.column_stack([xs.ravel(), ys.ravel()])
        result = workflow.estimate(grid, validate=True)

        assert result.estimates.shape == (36,)
        assert not result.kriging_result.failures
        assert result.cv_result is not None
        assert result.cv_result.n_folds == 5
        assert result.cv_result.rmse >= 0
        assert len(result.to_frame()) == 36

    def test_idw_cross_validation(self, monitoring_network):
        """Test cross-validating the IDW baseline."""
        workflow = GeostatisticalModel(monitoring_network, InterpolationConfig(cv_folds=10))
        result = workflow.cross_validate(method="idw")
        assert result.n_folds == 10
        assert result.rmse >= 0

    def test_unknown_cv_method(self, square_points):
        """Test invalid cross-validation method."""
        workflow = GeostatisticalModel(square_points)
        with pytest.raises(InvalidParameterError, match="method"):
            workflow.cross_validate(method="spline")


class TestDefaultInitialModel:
    """Tests for the automatic starting guess."""

    def test_from_empirical(self, monitoring_network):
        """Test the guess is built from the empirical variogram."""
        ev = GeostatisticalModel(monitoring_network).compute_variogram()
        initial = default_initial_model(ev, "gaussian")
        assert initial.model_type == "gaussian"
        assert initial.nugget == pytest.approx(ev.semivariance.min())
        assert initial.partial_sill == pytest.approx(ev.semivariance.max() - ev.semivariance.min())
        assert initial.range_param == pytest.approx(0.25 * ev.mean_distance.max())

    def test_nugget_family(self, monitoring_network):
        """Test the pure-nugget guess."""
        ev = GeostatisticalModel(monitoring_network).compute_variogram()
        initial = default_initial_model(ev, "nugget")
        assert initial.partial_sill == 0.0
        assert initial.nugget == pytest.approx(ev.semivariance.mean())


class TestPackageExports:
    """Tests for the top-level namespace."""

    def test_top_level_names(self):
        """Test the public API is importable from the package root."""
        for name in krigsmith.__all__:
            assert hasattr(krigsmith, name)
        assert krigsmith.__version__
