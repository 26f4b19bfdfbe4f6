"""Shared fixtures for LOS-Tran tests."""

import numpy as np
import pytest

from lostran.config.atmosphere import AtmosphericState
from lostran.rte.absorption import LineCatalog, LorentzLineAbsorption, SpectralLine
from lostran.rte.providers import StandardBackground


@pytest.fixture
def water_line():
    """The 22 GHz water vapour line."""
    return SpectralLine(
        species="H2O",
        center=22.23508e9,
        strength=2.3e-18,
        gamma=2.8e9,
        gamma_exponent=0.6,
        strength_exponent=1.0,
        identifier="6 1 6 - 5 2 3",
    )


@pytest.fixture
def atmosphere():
    """Exponential atmosphere from 0 to 10 km with H2O and O3."""
    altitude = np.linspace(0.0, 10e3, 11)
    return AtmosphericState(
        name="TEST",
        altitude=altitude,
        pressure=101325.0 * np.exp(-altitude / 7000.0),
        temperature=288.15 - 6.5e-3 * altitude,
        species=["H2O", "O3"],
        vmr=np.vstack([
            1e-2 * np.exp(-altitude / 2000.0),
            np.full_like(altitude, 5e-8),
        ]),
    )


@pytest.fixture
def absorption(water_line, atmosphere):
    return LorentzLineAbsorption(LineCatalog.from_lines([water_line]), atmosphere.species)


@pytest.fixture
def background():
    return StandardBackground(surface_temperature=290.0)


@pytest.fixture
def frequencies():
    """Frequencies around the 22 GHz line [Hz]."""
    return np.array([20.0e9, 22.235e9, 24.0e9])
