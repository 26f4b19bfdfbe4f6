"""Tests for retrieval quantities and analytical Jacobians."""

import copy

import numpy as np
import pytest

from lostran.core.constants import EARTH_RADIUS
from lostran.core.errors import (
    AmbiguousMatchError,
    NoMatchError,
    PreconditionError,
    UnsupportedPhysicsError,
)
from lostran.geometry import Background, build_los_1d
from lostran.rte.absorption import LineCatalog, LorentzLineAbsorption
from lostran.rte.integrator import RadiativeTransferIntegrator
from lostran.rte.jacobian import (
    JacobianQuantities,
    QuantityKind,
    RetrievalQuantity,
    project_to_retrieval_grid,
    retrieval_grid_positions,
)
from lostran.rte.providers import StandardBackground


def limb_zenith_angle(observer_altitude, tangent_altitude):
    """Zenith angle of a limb view with the given tangent altitude [deg]."""
    ratio = (EARTH_RADIUS + tangent_altitude) / (EARTH_RADIUS + observer_altitude)
    return 180.0 - np.degrees(np.arcsin(ratio))


# Viewing geometries in the conftest atmosphere (levels every 1 km up to
# 10 km). Observers and tangent points sit on grid levels.
VIEWS = {
    "upward": dict(observer_altitude=0.0, zenith_angle=0.0),
    "nadir_reflecting_ground": dict(
        observer_altitude=20e3, zenith_angle=180.0, surface_emissivity=0.6
    ),
    "nadir_blackbody_ground": dict(
        observer_altitude=20e3, zenith_angle=180.0, blackbody_ground=True
    ),
    "downward_inside_reflecting_ground": dict(
        observer_altitude=8e3, zenith_angle=180.0, surface_emissivity=0.6
    ),
    "limb": dict(observer_altitude=9e3, zenith_angle=limb_zenith_angle(9e3, 1e3)),
}


class TestRetrievalQuantities:
    """Tests for quantity bookkeeping."""

    def test_ranges(self):
        quantities = JacobianQuantities([
            RetrievalQuantity("species", [1e5, 5e4, 1e4], species_index=0),
            RetrievalQuantity("temperature", [1e5, 1e3]),
        ])
        assert quantities.n_x == 5
        assert quantities.index_range(1) == slice(3, 5)
        assert quantities[1].kind == QuantityKind.TEMPERATURE

    def test_find(self):
        quantities = JacobianQuantities([
            RetrievalQuantity("species", [1e5], species_index=0),
            RetrievalQuantity("species", [1e5], species_index=1),
        ])
        assert quantities.find("species", species_index=1) == 1
        with pytest.raises(AmbiguousMatchError):
            quantities.find("species")
        with pytest.raises(NoMatchError):
            quantities.find("wind")

    @pytest.mark.parametrize("grid", [[], [1e5, 2e5], [1e5, -1.0]])
    def test_invalid_grid(self, grid):
        with pytest.raises(PreconditionError):
            JacobianQuantities([RetrievalQuantity("temperature", grid)])

    def test_species_needs_index(self):
        with pytest.raises(PreconditionError):
            JacobianQuantities([RetrievalQuantity("species", [1e5])])

    def test_only_analytical(self):
        with pytest.raises(PreconditionError):
            JacobianQuantities([RetrievalQuantity("temperature", [1e5], analytical=False)])

    def test_magnetic_not_supported(self):
        quantities = JacobianQuantities([RetrievalQuantity("magnetic", [1e5], subtag="u")])
        with pytest.raises(UnsupportedPhysicsError):
            quantities.check_supported()


class TestProjection:
    """Tests for mapping path Jacobians to retrieval grids."""

    def test_positions_log_pressure(self):
        grid = np.array([1e5, 1e4, 1e3])
        positions = retrieval_grid_positions(np.array([1e5, np.sqrt(1e9), 1e3, 1e2, 2e5]), grid)
        np.testing.assert_allclose(positions, [0.0, 0.5, 2.0, 2.0, 0.0])

    def test_projection_conserves_sum(self):
        """Weights of each path point add up to one."""
        rng = np.random.default_rng(1)
        path_jacobian = rng.random((7, 2, 1))
        pressure = np.geomspace(9e4, 2e3, 7)
        out = project_to_retrieval_grid(path_jacobian, pressure, np.array([1e5, 1e4, 1e3]))
        np.testing.assert_allclose(out.sum(axis=0), path_jacobian.sum(axis=0))

    def test_grid_points_map_directly(self):
        path_jacobian = np.arange(3.0).reshape(3, 1, 1)
        grid = np.array([1e5, 1e4, 1e3])
        out = project_to_retrieval_grid(path_jacobian, grid.copy(), grid)
        np.testing.assert_allclose(out, path_jacobian)

    def test_empty_path(self):
        out = project_to_retrieval_grid(np.zeros((0, 2, 1)), np.zeros(0), np.array([1e5, 1e3]))
        assert out.shape == (2, 2, 1)


class TestAnalyticalJacobians:
    """Integrated Jacobians against finite differences of the spectrum.

    Every test runs for each geometry in VIEWS. The step limit is larger
    than any layer, so that path points coincide with grid levels and a
    perturbation of one level of the atmosphere is a perturbation of one
    retrieval grid point.
    """

    @pytest.fixture(params=list(VIEWS), ids=list(VIEWS))
    def view(self, request):
        return VIEWS[request.param]

    @pytest.fixture
    def background(self, view):
        return StandardBackground(
            surface_temperature=290.0,
            surface_emissivity=view.get("surface_emissivity", 1.0),
        )

    @pytest.fixture
    def path(self, atmosphere, view):
        return build_los_1d(
            atmosphere.altitude, atmosphere.pressure,
            surface_altitude=0.0,
            observer_altitude=view["observer_altitude"],
            zenith_angle=view["zenith_angle"],
            max_step=1e7,
            blackbody_ground=view.get("blackbody_ground", False),
        )

    @staticmethod
    def spectrum(integrator, path, atmosphere, frequencies):
        return integrator.integrate(path, atmosphere, frequencies).spectrum[:, 0]

    def finite_difference(self, integrator, path, atmosphere, frequencies, field, row, delta):
        out = np.zeros((atmosphere.n_levels, len(frequencies)))
        for i in range(atmosphere.n_levels):
            hi = copy.deepcopy(atmosphere)
            lo = copy.deepcopy(atmosphere)
            if row is None:
                getattr(hi, field)[i] += delta[i]
                getattr(lo, field)[i] -= delta[i]
            else:
                getattr(hi, field)[row, i] += delta[i]
                getattr(lo, field)[row, i] -= delta[i]
            out[i] = (
                self.spectrum(integrator, path, hi, frequencies)
                - self.spectrum(integrator, path, lo, frequencies)
            ) / (2 * delta[i])
        return out

    def analytic(self, integrator, path, atmosphere, frequencies, quantity):
        result = integrator.integrate(
            path, atmosphere, frequencies, quantities=JacobianQuantities([quantity])
        )
        return result.jacobian[0][:, :, 0]

    def test_path_points_are_grid_levels(self, path):
        assert path.n_points > 1
        np.testing.assert_allclose(path.ip_p, np.round(path.ip_p), atol=1e-6)

    def test_geometry_classification(self, path, view):
        """Each view exercises the intended branch of the integrator."""
        if view.get("blackbody_ground"):
            assert path.background == Background.SURFACE
            assert path.i_start == 0
        elif "surface_emissivity" in view:
            assert path.background == Background.SPACE
            assert path.ground
            assert path.reflection_index is not None
        elif view["zenith_angle"] > 90.0:
            assert not path.ground
            assert path.tangent_altitude == pytest.approx(1e3, abs=1e-3)

    def test_species(self, absorption, background, atmosphere, path, frequencies):
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantity = RetrievalQuantity("species", atmosphere.pressure, species_index=0)
        analytic = self.analytic(integrator, path, atmosphere, frequencies, quantity)
        numeric = self.finite_difference(
            integrator, path, atmosphere, frequencies, "vmr", 0, 1e-4 * atmosphere.vmr[0]
        )
        np.testing.assert_allclose(analytic, numeric, rtol=1e-4, atol=1e-6 * np.abs(numeric).max())

    def test_temperature(self, absorption, background, atmosphere, path, frequencies):
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantity = RetrievalQuantity("temperature", atmosphere.pressure)
        analytic = self.analytic(integrator, path, atmosphere, frequencies, quantity)
        numeric = self.finite_difference(
            integrator, path, atmosphere, frequencies, "temperature", None,
            np.full(atmosphere.n_levels, 0.01),
        )
        np.testing.assert_allclose(analytic, numeric, rtol=1e-3, atol=1e-4 * np.abs(numeric).max())

    def test_wind(self, absorption, background, atmosphere, path, frequencies):
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantity = RetrievalQuantity("wind", atmosphere.pressure)
        analytic = self.analytic(integrator, path, atmosphere, frequencies, quantity)
        numeric = self.finite_difference(
            integrator, path, atmosphere, frequencies, "wind", None,
            np.full(atmosphere.n_levels, 1.0),
        )
        np.testing.assert_allclose(analytic, numeric, rtol=1e-3, atol=1e-3 * np.abs(numeric).max())

    def test_line_strength_matches_species_for_single_absorber(
        self, absorption, background, atmosphere, path, frequencies
    ):
        """With one absorbing species dK/dS = vmr dK/dvmr."""
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantities = JacobianQuantities([
            RetrievalQuantity("species", atmosphere.pressure, species_index=0),
            RetrievalQuantity("other", atmosphere.pressure, subtag="line strength"),
        ])
        result = integrator.integrate(path, atmosphere, frequencies, quantities=quantities)
        np.testing.assert_allclose(
            result.jacobian[1],
            result.jacobian[0] * atmosphere.vmr[0][:, None, None],
            rtol=1e-10,
        )

    def test_nlte_species(self, absorption, background, atmosphere, path, frequencies):
        """Non-LTE Jacobians include the derivative of the source term."""
        atmosphere.nlte_temperature = atmosphere.temperature + 15.0
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantity = RetrievalQuantity("species", atmosphere.pressure, species_index=0)
        analytic = self.analytic(integrator, path, atmosphere, frequencies, quantity)
        numeric = self.finite_difference(
            integrator, path, atmosphere, frequencies, "vmr", 0, 1e-4 * atmosphere.vmr[0]
        )
        np.testing.assert_allclose(analytic, numeric, rtol=1e-4, atol=1e-6 * np.abs(numeric).max())

    def test_polarised_species(self, water_line, background, atmosphere, path, frequencies):
        """Full propagation matrices use the integral transmission derivative."""
        model = LorentzLineAbsorption(
            LineCatalog.from_lines([water_line]), atmosphere.species,
            polarization={"b": 0.3, "c": 0.1, "u": 0.2, "w": 0.1},
        )
        integrator = RadiativeTransferIntegrator(model, background, stokes_dim=4)
        quantity = RetrievalQuantity("species", atmosphere.pressure, species_index=0)
        result = integrator.integrate(
            path, atmosphere, frequencies, quantities=JacobianQuantities([quantity])
        )
        delta = 1e-4 * atmosphere.vmr[0]
        for i in (0, 3, 7):
            hi = copy.deepcopy(atmosphere)
            lo = copy.deepcopy(atmosphere)
            hi.vmr[0, i] += delta[i]
            lo.vmr[0, i] -= delta[i]
            numeric = (
                integrator.integrate(path, hi, frequencies).spectrum
                - integrator.integrate(path, lo, frequencies).spectrum
            ) / (2 * delta[i])
            np.testing.assert_allclose(
                result.jacobian[0][i], numeric, rtol=1e-4, atol=1e-6 * np.abs(numeric).max()
            )

    def test_jacobian_matrix_layout(self, absorption, background, atmosphere, path, frequencies):
        integrator = RadiativeTransferIntegrator(absorption, background)
        quantities = JacobianQuantities([
            RetrievalQuantity("species", atmosphere.pressure, species_index=0),
            RetrievalQuantity("temperature", atmosphere.pressure[:4]),
        ])
        result = integrator.integrate(path, atmosphere, frequencies, quantities=quantities)
        matrix = result.jacobian_matrix()
        assert matrix.shape == (len(frequencies), atmosphere.n_levels + 4)
        np.testing.assert_array_equal(matrix[:, :atmosphere.n_levels], result.jacobian[0][:, :, 0].T)
