"""
Command-line interface for LOS-Tran.

Runs a line-of-sight simulation from a JSON or YAML configuration file or
from command line arguments, and prints a summary or saves the result.
"""

import argparse
import logging
import sys
from pathlib import Path

from lostran import __version__


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_config(args: argparse.Namespace) -> dict:
    """Build a configuration dictionary from CLI arguments."""
    config = {
        "system": {"num_threads": args.threads or 1},
        "atmosphere": {"model": args.atmosphere or "US_STANDARD_1976"},
        "geometry": {
            "observer_altitude_m": args.observer_altitude or 0.0,
            "zenith_angles_deg": args.zenith or [0.0],
            "max_step_m": args.max_step or 1000.0,
        },
        "spectral": {
            "min_frequency_hz": (args.f_min or 18.0) * 1e9,
            "max_frequency_hz": (args.f_max or 26.0) * 1e9,
            "num_frequencies": args.num_frequencies or 41,
        },
        "output": {"unit": args.unit or "1"},
    }
    if args.aux:
        config["output"]["aux_vars"] = args.aux
    return config


def run_simulation(args: argparse.Namespace) -> int:
    """Run a line-of-sight simulation."""
    from lostran import Simulation

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Configuration file not found: {args.config}")
            return 1
        config = str(config_path)
    else:
        config = build_config(args)

    print("Running simulation...")
    sim = Simulation(config)
    if args.threads:
        sim.config.system.num_threads = args.threads
    result = sim.run()

    if args.output:
        output_format = args.format or "json"
        output_path = sim.save_result(result, args.output, format=output_format)
        print(f"Results saved to: {output_path}")
    else:
        print("\nSimulation Results:")
        print(f"  Frequency range: {result.frequencies[0] / 1e9:.3f} - "
              f"{result.frequencies[-1] / 1e9:.3f} GHz")
        print(f"  Number of frequencies: {len(result.frequencies)}")
        for ib, za in enumerate(result.zenith_angles):
            print(f"  Zenith angle {za:6.2f} deg: mean I = "
                  f"{result.spectrum[ib, :, 0].mean():.6g} [{result.unit}]")
        if result.jacobian is not None:
            print(f"  Jacobian: {result.jacobian.shape[0]} x {result.jacobian.shape[1]}")

    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="LOS-Tran: Line-of-sight emission-absorption radiative transfer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run simulation with config file
    lostran --config simulation.yaml --output results.json

    # Ground-based zenith and slant views around the 22 GHz water vapour line
    lostran --zenith 0 60 --f-min 18 --f-max 26 --unit PlanckBT

    # Limb view from 20 km with diagnostics
    lostran --observer-altitude 20000 --zenith 92 --aux "Optical depth"
        """,
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"LOS-Tran {__version__}",
    )

    # Configuration options
    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to JSON or YAML configuration file",
    )
    parser.add_argument(
        "-t", "--threads",
        type=int,
        help="Number of worker threads",
    )

    # Atmosphere options
    parser.add_argument(
        "-a", "--atmosphere",
        type=str,
        choices=["US_STANDARD_1976", "TROPICAL"],
        help="Standard atmosphere model",
    )

    # Geometry options
    parser.add_argument(
        "--observer-altitude",
        type=float,
        help="Observer altitude [m]",
    )
    parser.add_argument(
        "--zenith",
        type=float,
        nargs="+",
        help="Zenith angles, one measurement block each [degrees]",
    )
    parser.add_argument(
        "--max-step",
        type=float,
        help="Maximum path step length [m]",
    )

    # Spectral options
    parser.add_argument(
        "--f-min",
        type=float,
        help="Minimum frequency [GHz]",
    )
    parser.add_argument(
        "--f-max",
        type=float,
        help="Maximum frequency [GHz]",
    )
    parser.add_argument(
        "-n", "--num-frequencies",
        type=int,
        help="Number of frequencies",
    )

    # Output options
    parser.add_argument(
        "-u", "--unit",
        type=str,
        choices=["1", "RJBT", "PlanckBT"],
        help="Output unit",
    )
    parser.add_argument(
        "--aux",
        type=str,
        nargs="+",
        help="Auxiliary diagnostics to record",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output file path",
    )
    parser.add_argument(
        "-f", "--format",
        type=str,
        choices=["json", "csv", "netcdf"],
        help="Output format",
    )

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        return run_simulation(args)
    except Exception as e:
        logging.exception(f"Simulation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
