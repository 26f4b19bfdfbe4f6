#!/usr/bin/env python
"""
Basic LOS-Tran simulation example.

This script computes the downwelling microwave spectrum seen by a
ground-based radiometer around the 22 GHz water vapour line.
"""

from lostran import Simulation


def main():
    # Configure simulation
    config = {
        "atmosphere": {"model": "US_STANDARD_1976"},
        "geometry": {
            "observer_altitude_m": 0.0,
            "zenith_angles_deg": [0.0, 30.0, 60.0],
        },
        "spectral": {
            "min_frequency_hz": 18.0e9,
            "max_frequency_hz": 26.0e9,
            "num_frequencies": 33,
        },
        "output": {"unit": "PlanckBT", "aux_vars": ["Optical depth"]},
    }

    # Create and run simulation
    print("Creating simulation...")
    sim = Simulation(config)

    print("Running simulation...")
    result = sim.run()

    # Display results
    print("\n=== Simulation Results ===")
    print(f"Atmosphere: {result.metadata['atmosphere']}")
    print(f"Species: {result.metadata['species']}")
    print(f"\nSpectral range: {result.frequencies[0] / 1e9:.2f} - {result.frequencies[-1] / 1e9:.2f} GHz")
    print(f"Number of spectral points: {len(result.frequencies)}")

    for ib, za in enumerate(result.zenith_angles):
        tb = result.spectrum[ib, :, 0]
        tau = result.aux[ib]["Optical depth"]
        print(f"\nZenith angle {za:5.1f} deg")
        print(f"  Min brightness temperature: {tb.min():.2f} K")
        print(f"  Max brightness temperature: {tb.max():.2f} K")
        print(f"  Max optical depth: {tau.max():.4f}")

    # Save results
    output_file = "basic_simulation_result.json"
    sim.save_result(result, output_file, format="json")
    print(f"\nResults saved to: {output_file}")


if __name__ == "__main__":
    main()
