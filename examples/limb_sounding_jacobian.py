#!/usr/bin/env python
"""
Limb sounding with water vapour and temperature Jacobians.

A satellite at 600 km looks through the limb at several tangent altitudes.
The Jacobian shows which pressure levels each view is sensitive to.
"""

import numpy as np

from lostran import Simulation
from lostran.core.constants import EARTH_RADIUS

ORBIT_ALTITUDE = 600e3


def limb_zenith_angle(tangent_altitude):
    """Zenith angle at the satellite for a given tangent altitude [deg]."""
    ratio = (EARTH_RADIUS + tangent_altitude) / (EARTH_RADIUS + ORBIT_ALTITUDE)
    return 180.0 - np.degrees(np.arcsin(ratio))


def main():
    tangent_altitudes = [5e3, 10e3, 15e3, 20e3]
    retrieval_grid = [101325.0, 50000.0, 20000.0, 5000.0, 1000.0]

    sim = Simulation({
        "atmosphere": {"model": "TROPICAL"},
        "geometry": {
            "observer_altitude_m": ORBIT_ALTITUDE,
            "zenith_angles_deg": [limb_zenith_angle(z) for z in tangent_altitudes],
            "max_step_m": 10000.0,
        },
        "spectral": {"frequencies_hz": [22.235e9]},
        "jacobian": {"quantities": [
            {"kind": "species", "species": "H2O", "grid_pa": retrieval_grid},
            {"kind": "temperature", "grid_pa": retrieval_grid},
        ]},
        "system": {"num_threads": 4},
    })
    result = sim.run()

    n_grid = len(retrieval_grid)
    print("Tangent [km]   Radiance [W/(m2 sr Hz)]   dI/dVMR(H2O) per level")
    for ib, z in enumerate(tangent_altitudes):
        row = result.jacobian[ib, :n_grid]
        levels = " ".join(f"{v:10.3e}" for v in row)
        print(f"{z / 1e3:10.1f}   {result.spectrum[ib, 0, 0]:.4e}   {levels}")


if __name__ == "__main__":
    main()
