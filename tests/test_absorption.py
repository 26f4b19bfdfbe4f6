"""Tests for the line catalog and Lorentz line absorption."""

import numpy as np
import pytest

from lostran.config.atmosphere import PointState
from lostran.core.errors import (
    AmbiguousMatchError,
    NoMatchError,
    PreconditionError,
    UnsupportedPhysicsError,
)
from lostran.rte.absorption import (
    LineBand,
    LineCatalog,
    LorentzLineAbsorption,
    SpectralLine,
)
from lostran.rte.jacobian import JacobianQuantities, QuantityKind, RetrievalQuantity


def _line(identifier, center=22e9, species="H2O"):
    return SpectralLine(species, center, 1e-18, 2e9, identifier=identifier)


@pytest.fixture
def catalog():
    return LineCatalog([
        LineBand("H2O", "v0", [_line("a"), _line("b", 23e9)]),
        LineBand("O3", "v0", [_line("c", 142e9, "O3")]),
    ])


@pytest.fixture
def state():
    return PointState(pressure=80000.0, temperature=275.0, vmr=np.array([5e-3, 5e-8]), wind=30.0)


class TestLineCatalog:
    """Tests for catalog merge operations."""

    def test_from_lines_groups_species(self, water_line):
        catalog = LineCatalog.from_lines([water_line, _line("x", 183e9)])
        assert len(catalog.bands) == 1
        assert len(catalog) == 2

    def test_replace(self, catalog):
        new = _line("b", 23.5e9)
        catalog.replace_lines([LineBand("H2O", "v0", [new])])
        assert catalog.bands[0].lines[1].center == 23.5e9

    def test_replace_unknown_line(self, catalog):
        with pytest.raises(NoMatchError):
            catalog.replace_lines([LineBand("H2O", "v0", [_line("zz")])])

    def test_replace_unknown_band(self, catalog):
        with pytest.raises(NoMatchError):
            catalog.replace_lines([LineBand("H2O", "v1", [_line("a")])])

    def test_ambiguous_band(self, catalog):
        catalog.bands.append(LineBand("H2O", "v0", [_line("q")]))
        with pytest.raises(AmbiguousMatchError):
            catalog.replace_lines([LineBand("H2O", "v0", [_line("a")])])

    def test_append_to_existing_band(self, catalog):
        catalog.append_lines([LineBand("H2O", "v0", [_line("new", 24e9)])])
        assert len(catalog.bands) == 2
        assert len(catalog.bands[0].lines) == 3

    def test_append_new_band(self, catalog):
        catalog.append_lines([LineBand("H2O", "v1", [_line("a")])])
        assert len(catalog.bands) == 3

    def test_append_existing_line_fails(self, catalog):
        with pytest.raises(AmbiguousMatchError):
            catalog.append_lines([LineBand("H2O", "v0", [_line("a")])])

    def test_delete(self, catalog):
        catalog.delete_lines([LineBand("H2O", "v0", [_line("a")])])
        assert [line.identifier for line in catalog.bands[0].lines] == ["b"]

    def test_delete_twice_fails(self, catalog):
        with pytest.raises(AmbiguousMatchError):
            catalog.delete_lines([LineBand("H2O", "v0", [_line("a"), _line("a")])])
        assert len(catalog.bands[0].lines) == 2

    def test_line_dict_round_trip(self, water_line):
        assert SpectralLine.from_dict(water_line.to_dict()) == water_line


class TestLorentzLineAbsorption:
    """Tests for optical properties at a point."""

    def test_unpolarised_extinction(self, absorption, state, frequencies):
        props = absorption.compute(frequencies, state, 2)
        assert props.extinction.shape == (3, 2, 2)
        assert props.is_lte
        np.testing.assert_array_equal(props.extinction[:, 0, 1], 0.0)
        np.testing.assert_allclose(props.extinction[:, 1, 1], props.extinction[:, 0, 0])
        assert np.all(props.extinction[:, 0, 0] > 0)

    def test_peak_at_line_center(self, absorption, state):
        f = np.linspace(18e9, 26e9, 81)
        k = absorption.compute(f, state, 1).extinction[:, 0, 0]
        assert abs(f[np.argmax(k)] - 22.235e9) < 0.2e9

    def test_species_extinction_sums_to_total(self, absorption, state, frequencies):
        props = absorption.compute(frequencies, state, 1)
        np.testing.assert_allclose(props.species_extinction.sum(axis=0), props.extinction)
        np.testing.assert_array_equal(props.species_extinction[1], 0.0)

    def test_polarisation_structure(self, water_line):
        model = LorentzLineAbsorption(
            LineCatalog.from_lines([water_line]), ["H2O"], polarization={"b": 0.1, "u": 0.2}
        )
        m = model.structure(3)
        np.testing.assert_allclose(m, [[1.0, 0.1, 0.0], [0.1, 1.0, 0.2], [0.0, -0.2, 1.0]])

    def test_unknown_polarisation_element(self, water_line):
        with pytest.raises(PreconditionError):
            LorentzLineAbsorption(LineCatalog.from_lines([water_line]), ["H2O"], {"x": 0.1})

    def test_vmr_size_is_checked(self, absorption, frequencies):
        state = PointState(pressure=1e5, temperature=280.0, vmr=np.array([1e-3]))
        with pytest.raises(PreconditionError):
            absorption.compute(frequencies, state, 1)

    def test_nlte_source(self, absorption, state, frequencies):
        state.nlte_temperature = 300.0
        props = absorption.compute(frequencies, state, 1)
        assert not props.is_lte
        assert props.source.shape == (3, 1)
        assert np.all(props.source > 0)


class TestAbsorptionDerivatives:
    """Analytical derivatives against finite differences."""

    @staticmethod
    def extinction(model, frequencies, state):
        return model.compute(frequencies, state, 1).extinction[:, 0, 0]

    def derivative(self, model, frequencies, state, kind, **kwargs):
        quantities = JacobianQuantities([RetrievalQuantity(kind, [1e5], **kwargs)])
        props = model.compute(frequencies, state, 1, quantities)
        return props.d_extinction[0][:, 0, 0]

    def test_species(self, absorption, state, frequencies):
        analytic = self.derivative(absorption, frequencies, state, "species", species_index=0)
        k = self.extinction(absorption, frequencies, state)
        np.testing.assert_allclose(analytic * state.vmr[0], k)

    def test_temperature(self, absorption, state, frequencies):
        analytic = self.derivative(absorption, frequencies, state, "temperature")
        dt = 0.01
        hi = PointState(state.pressure, state.temperature + dt, state.vmr, state.wind)
        lo = PointState(state.pressure, state.temperature - dt, state.vmr, state.wind)
        numeric = (self.extinction(absorption, frequencies, hi)
                   - self.extinction(absorption, frequencies, lo)) / (2 * dt)
        np.testing.assert_allclose(analytic, numeric, rtol=1e-5)

    def test_wind(self, absorption, state, frequencies):
        analytic = self.derivative(absorption, frequencies, state, "wind")
        dv = 1.0
        hi = PointState(state.pressure, state.temperature, state.vmr, state.wind + dv)
        lo = PointState(state.pressure, state.temperature, state.vmr, state.wind - dv)
        numeric = (self.extinction(absorption, frequencies, hi)
                   - self.extinction(absorption, frequencies, lo)) / (2 * dv)
        np.testing.assert_allclose(analytic, numeric, rtol=1e-4, atol=1e-3 * np.abs(numeric).max())

    def test_line_strength(self, absorption, state, frequencies):
        analytic = self.derivative(
            absorption, frequencies, state, QuantityKind.OTHER, subtag="line strength"
        )
        np.testing.assert_allclose(analytic, self.extinction(absorption, frequencies, state))

    def test_unknown_other_quantity(self, absorption, state, frequencies):
        with pytest.raises(UnsupportedPhysicsError):
            self.derivative(absorption, frequencies, state, "other", subtag="continuum")

    def test_magnetic_not_supported(self, absorption, state, frequencies):
        with pytest.raises(UnsupportedPhysicsError):
            self.derivative(absorption, frequencies, state, "magnetic", subtag="u")
