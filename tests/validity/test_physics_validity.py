"""
Physics validity checks for LOS-Tran.

These tests verify that simulated spectra are physically plausible: the
sign of emission features for upward and downward looks, the dependence on
path length and tangent altitude, and the limits of transparent and
opaque atmospheres.
"""

import numpy as np
import pytest

from lostran import Simulation
from lostran.core.constants import COSMIC_BACKGROUND_TEMPERATURE, EARTH_RADIUS

LINE_FREQUENCIES_HZ = [18.0e9, 22.235e9, 26.0e9]


def brightness_temperature(config):
    """Brightness temperature spectra (n_blocks, nf) of a configuration."""
    config.setdefault("spectral", {}).setdefault("frequencies_hz", list(LINE_FREQUENCIES_HZ))
    config.setdefault("output", {})["unit"] = "PlanckBT"
    return Simulation(config).run().spectrum[:, :, 0]


def limb_zenith_angle(observer_altitude, tangent_altitude):
    """Zenith angle of a limb view with the given tangent altitude [deg]."""
    ratio = (EARTH_RADIUS + tangent_altitude) / (EARTH_RADIUS + observer_altitude)
    return 180.0 - np.degrees(np.arcsin(ratio))


class TestGroundBased:
    """Upward looking observations from the ground."""

    def test_emission_line(self):
        """Looking up, the water vapour line appears in emission."""
        tb = brightness_temperature({"geometry": {"zenith_angles_deg": [0.0]}})[0]
        assert tb[1] > tb[0]
        assert tb[1] > tb[2]

    def test_bounded_by_atmospheric_temperatures(self):
        tb = brightness_temperature({"geometry": {"zenith_angles_deg": [0.0, 80.0]}})
        assert np.all(tb > COSMIC_BACKGROUND_TEMPERATURE)
        assert np.all(tb < 288.15)

    def test_slant_paths_are_brighter(self):
        """Longer paths through a warm atmosphere emit more."""
        tb = brightness_temperature({"geometry": {"zenith_angles_deg": [0.0, 40.0, 70.0]}})
        assert np.all(np.diff(tb, axis=0) > 0)

    def test_transparent_atmosphere(self):
        """Without absorbers only the cosmic background is seen."""
        tb = brightness_temperature({
            "atmosphere": {"vmr_overrides": {"H2O": 0.0, "O3": 0.0}},
            "geometry": {"zenith_angles_deg": [0.0]},
        })
        np.testing.assert_allclose(tb, COSMIC_BACKGROUND_TEMPERATURE, rtol=1e-6)

    def test_moister_atmosphere_is_brighter(self):
        dry = brightness_temperature({"atmosphere": {"model": "US_STANDARD_1976"}})
        wet = brightness_temperature({"atmosphere": {"model": "TROPICAL"}})
        assert wet[0, 1] > dry[0, 1]


class TestSpaceBorne:
    """Downward and limb looking observations from orbit."""

    ORBIT = 600e3

    def test_absorption_line_over_warm_ground(self):
        """Over a blackbody surface warmer than the air the line is in absorption."""
        tb = brightness_temperature({
            "atmosphere": {"surface_temperature_k": 300.0},
            "geometry": {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": [180.0],
                         "max_step_m": 5000.0},
        })[0]
        assert tb[1] < tb[0]
        assert tb[1] < tb[2]
        assert np.all(tb < 300.0)

    def test_transparent_atmosphere_sees_surface(self):
        tb = brightness_temperature({
            "atmosphere": {"surface_temperature_k": 280.0, "vmr_overrides": {"H2O": 0.0, "O3": 0.0}},
            "geometry": {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": [180.0],
                         "max_step_m": 5000.0},
        })
        np.testing.assert_allclose(tb, 280.0, rtol=1e-6)

    def test_reflecting_surface_is_colder(self):
        """Partial reflection replaces surface emission by cold sky radiation."""
        geometry = {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": [180.0],
                    "max_step_m": 5000.0, "blackbody_ground": False}
        blackbody = brightness_temperature({
            "atmosphere": {"surface_emissivity": 1.0}, "geometry": dict(geometry),
        })
        ocean = brightness_temperature({
            "atmosphere": {"surface_emissivity": 0.5}, "geometry": dict(geometry),
        })
        assert np.all(ocean < blackbody)

    def test_reflection_of_cold_sky_shows_emission_line(self):
        """A mirror surface reflects the downwelling emission spectrum."""
        tb = brightness_temperature({
            "atmosphere": {"surface_emissivity": 0.0},
            "geometry": {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": [180.0],
                         "max_step_m": 5000.0, "blackbody_ground": False},
        })[0]
        assert tb[1] > tb[0]

    def test_limb_brightness_decreases_with_tangent_altitude(self):
        angles = [limb_zenith_angle(self.ORBIT, z) for z in (5e3, 15e3, 40e3)]
        tb = brightness_temperature({
            "geometry": {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": angles,
                         "max_step_m": 20000.0},
        })
        assert np.all(np.diff(tb[:, 1]) < 0)

    def test_view_above_atmosphere_is_cosmic_background(self):
        za = limb_zenith_angle(self.ORBIT, 150e3)
        tb = brightness_temperature({
            "geometry": {"observer_altitude_m": self.ORBIT, "zenith_angles_deg": [za]},
        })
        np.testing.assert_allclose(tb, COSMIC_BACKGROUND_TEMPERATURE, rtol=1e-6)


class TestUnits:
    """Consistency of brightness temperature definitions."""

    def test_rayleigh_jeans_close_to_planck(self):
        """At microwave frequencies the two temperatures differ by about hf/2k."""
        config = {
            "geometry": {"zenith_angles_deg": [60.0]},
            "spectral": {"frequencies_hz": list(LINE_FREQUENCIES_HZ)},
        }
        planck_bt = Simulation({**config, "output": {"unit": "PlanckBT"}}).run().spectrum
        rj_bt = Simulation({**config, "output": {"unit": "RJBT"}}).run().spectrum
        assert np.all(np.abs(planck_bt - rj_bt) < 1.0)
        assert np.all(rj_bt < planck_bt)

    @pytest.mark.parametrize("unit", ["1", "RJBT", "PlanckBT"])
    def test_units_are_positive(self, unit):
        result = Simulation({
            "geometry": {"zenith_angles_deg": [0.0]},
            "spectral": {"frequencies_hz": list(LINE_FREQUENCIES_HZ)},
            "output": {"unit": unit},
        }).run()
        assert np.all(result.spectrum > 0)
