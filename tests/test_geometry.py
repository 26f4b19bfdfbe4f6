"""Tests for spherical geometry and line-of-sight construction."""

import numpy as np
import pytest

from lostran.core.constants import EARTH_RADIUS
from lostran.core.errors import PreconditionError, UnsupportedPhysicsError
from lostran.geometry import (
    Background,
    altitude_at_distance,
    build_los_1d,
    distance_to_altitude,
    ray_invariants,
    tangent_altitude,
)

GRID = np.arange(0.0, 10001.0, 1000.0)
PRESSURE = np.linspace(1.0, 0.0, 11)


def _segment_step_counts(path, breakpoints):
    """Number of steps and length of each segment between breakpoints."""
    marks = np.flatnonzero(np.isin(path.altitude, breakpoints))
    segments = []
    for i, j in zip(marks[:-1], marks[1:]):
        segments.append((j - i, path.l_step[i:j].sum()))
    return segments


class TestSphericalRelations:
    """Tests for closed-form ray relations."""

    def test_tangent_altitude_horizontal(self):
        """A horizontal ray has its tangent point at the observer."""
        assert tangent_altitude(5000.0, 90.0) == pytest.approx(5000.0)

    def test_tangent_altitude_limb(self):
        z_tan = tangent_altitude(600e3, 112.0)
        expected = (EARTH_RADIUS + 600e3) * np.sin(np.radians(112.0)) - EARTH_RADIUS
        assert z_tan == pytest.approx(expected)

    def test_distance_and_altitude_are_inverse(self):
        """Altitude at the distance to an altitude gives that altitude."""
        c, d = ray_invariants(1000.0, 30.0)
        l = distance_to_altitude(8000.0, c, d)
        assert altitude_at_distance(l, 1000.0, 30.0) == pytest.approx(8000.0, abs=1e-6)

    def test_vertical_distance(self):
        c, d = ray_invariants(1000.0, 0.0)
        assert float(distance_to_altitude(4000.0, c, d)) == pytest.approx(3000.0)


class TestUpwardPath:
    """Upward looking paths."""

    @pytest.fixture
    def path(self):
        return build_los_1d(
            GRID, PRESSURE,
            surface_altitude=200.0,
            observer_altitude=1000.0,
            zenith_angle=45.0,
            max_step=500.0,
        )

    def test_altitude_increases_from_observer_to_top(self, path):
        assert path.altitude[0] == 1000.0
        assert path.altitude[-1] == 10000.0
        assert np.all(np.diff(path.altitude) > 0)

    def test_space_background_without_ground(self, path):
        assert not path.ground
        assert path.background == Background.SPACE
        assert path.reflection_index is None

    def test_first_pressure_matches_grid(self, path):
        """The observer pressure is the grid pressure at 1000 m."""
        assert path.pressure[0] == pytest.approx(np.interp(1000.0, GRID, PRESSURE))

    def test_observer_is_first_in_los_order(self, path):
        np.testing.assert_array_equal(path.los_indices, np.arange(path.n_points))
        assert path.i_stop == 0
        assert path.i_start == path.n_points - 1

    def test_step_bound_and_minimal_count(self, path):
        """Steps never exceed the maximum and their number is minimal."""
        assert np.all(path.l_step <= 500.0 * (1 + 1e-12))
        for n_steps, length in _segment_step_counts(path, GRID):
            assert n_steps * 500.0 >= length - 1e-6
            assert (n_steps - 1) * 500.0 < length

    def test_grid_levels_are_path_points(self, path):
        for z in GRID[1:]:
            assert z in path.altitude

    def test_positions_follow_altitude(self, path):
        np.testing.assert_allclose(path.ip_p, path.altitude / 1000.0, atol=1e-9)

    def test_observer_above_atmosphere_gives_empty_path(self):
        path = build_los_1d(GRID, PRESSURE, 0.0, 12000.0, 10.0, 500.0)
        assert path.is_empty
        assert path.background == Background.SPACE
        assert len(path.los_indices) == 0


class TestDownwardPath:
    """Paths looking down from inside and above the atmosphere."""

    def test_nadir_with_blackbody_ground(self):
        """Straight down ends at the ground with a surface background."""
        path = build_los_1d(
            GRID, PRESSURE,
            surface_altitude=200.0,
            observer_altitude=5000.0,
            zenith_angle=180.0,
            max_step=500.0,
            blackbody_ground=True,
        )
        assert path.ground
        assert path.background == Background.SURFACE
        assert path.altitude[path.los_indices[0]] == 5000.0
        assert path.altitude[path.los_indices[-1]] == 200.0
        assert path.altitude.max() == 5000.0

    def test_nadir_with_reflecting_ground(self):
        """Without blackbody ground the path is reflected back to space."""
        path = build_los_1d(GRID, PRESSURE, 200.0, 5000.0, 180.0, 500.0)
        assert path.ground
        assert path.background == Background.SPACE
        order = path.los_indices
        assert path.altitude[order[0]] == 5000.0
        assert path.altitude[order[path.reflection_index]] == 200.0
        assert path.altitude[order[-1]] == 10000.0
        assert len(path.los_steps) == len(order) - 1

    def test_limb_path_passes_tangent_point_twice(self):
        path = build_los_1d(GRID, PRESSURE, 0.0, 9000.0, 93.0, 1000.0)
        z_tan = tangent_altitude(9000.0, 93.0)
        assert not path.ground
        assert path.tangent_altitude == pytest.approx(z_tan)
        assert path.altitude[0] == pytest.approx(z_tan)
        order = path.los_indices
        assert path.altitude[order[0]] == 9000.0
        assert path.altitude[order[-1]] == 10000.0
        # Points below the observer are visited twice
        n_below = np.count_nonzero(path.altitude < 9000.0)
        assert len(order) == path.n_points + n_below

    def test_limb_above_atmosphere_gives_empty_path(self):
        path = build_los_1d(GRID, PRESSURE, 0.0, 600e3, 100.0, 5000.0)
        assert path.tangent_altitude > GRID[-1]
        assert path.is_empty

    def test_downward_from_space_enters_at_top(self):
        path = build_los_1d(GRID, PRESSURE, 0.0, 600e3, 120.0, 5000.0)
        order = path.los_indices
        assert path.ground
        assert path.altitude[order[0]] == GRID[-1]
        assert path.altitude[order[path.reflection_index]] == 0.0


class TestInputValidation:
    """Tests for rejected inputs."""

    def test_refraction_not_supported(self):
        with pytest.raises(UnsupportedPhysicsError):
            build_los_1d(GRID, PRESSURE, 0.0, 0.0, 0.0, 500.0, refraction=True)

    def test_scattering_not_supported(self):
        with pytest.raises(UnsupportedPhysicsError):
            build_los_1d(GRID, PRESSURE, 0.0, 0.0, 0.0, 500.0, scattering=True)

    def test_surface_outside_grid(self):
        with pytest.raises(PreconditionError):
            build_los_1d(GRID, PRESSURE, -10.0, 0.0, 0.0, 500.0)
        with pytest.raises(PreconditionError):
            build_los_1d(GRID, PRESSURE, 10000.0, 10000.0, 0.0, 500.0)

    def test_non_increasing_grid(self):
        with pytest.raises(PreconditionError):
            build_los_1d(GRID[::-1], PRESSURE, 0.0, 0.0, 0.0, 500.0)

    def test_observer_below_surface(self):
        with pytest.raises(PreconditionError):
            build_los_1d(GRID, PRESSURE, 500.0, 100.0, 0.0, 500.0)

    def test_invalid_step_and_angle(self):
        with pytest.raises(PreconditionError):
            build_los_1d(GRID, PRESSURE, 0.0, 0.0, 0.0, 0.0)
        with pytest.raises(PreconditionError):
            build_los_1d(GRID, PRESSURE, 0.0, 0.0, 190.0, 500.0)
