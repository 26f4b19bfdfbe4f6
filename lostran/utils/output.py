"""
Output Formatter for exporting simulation results.

Supports multiple output formats:
- JSON: Full structured output with metadata and Jacobian
- CSV: One row per frequency, one column per block and Stokes component
- NetCDF: Scientific data format with metadata
"""

import json
import logging
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Check for optional dependencies
try:
    import xarray as xr
    import netCDF4  # noqa: F401
    NETCDF_AVAILABLE = True
except ImportError:
    NETCDF_AVAILABLE = False


class OutputFormatter:
    """Formatter for exporting simulation results to various formats.

    Example:
        >>> formatter = OutputFormatter()
        >>> formatter.save(result, "output.json", format="json")
        >>> formatter.save(result, "output.csv", format="csv")
        >>> formatter.save(result, "output.nc", format="netcdf")
    """

    def save(
        self,
        result,  # SimulationResult
        output_path: str,
        format: str = "json",
        **kwargs,
    ) -> str:
        """Save simulation result to file.

        Args:
            result: SimulationResult object
            output_path: Output file path
            format: Output format (csv, json, netcdf)
            **kwargs: Additional format-specific options

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        format = format.lower()

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if format == "json":
            return self._save_json(result, output_path, **kwargs)
        elif format == "csv":
            return self._save_csv(result, output_path, **kwargs)
        elif format == "netcdf" or format == "nc":
            return self._save_netcdf(result, output_path, **kwargs)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _save_json(self, result, output_path: Path, indent: int = 2, **kwargs) -> str:
        data = {
            "metadata": {
                "format_version": "1.0",
                "created": datetime.now().isoformat(),
                "software": "LOS-Tran",
                **result.metadata,
            },
            "results": result.to_dict(),
        }
        if result.config is not None:
            data["configuration"] = result.config.to_dict()

        with open(output_path, 'w') as f:
            json.dump(data, f, indent=indent)

        logger.info(f"Saved JSON output to {output_path}")
        return str(output_path)

    def _save_csv(self, result, output_path: Path, delimiter: str = ",", **kwargs) -> str:
        """Save the spectra to CSV format.

        The Jacobian and diagnostics are not written.
        """
        n_blocks, nf, ns = result.spectrum.shape
        columns = ["frequency_hz"]
        for ib in range(n_blocks):
            for s in range(ns):
                columns.append(f"za{result.zenith_angles[ib]:g}_s{s}")

        # (n_blocks, nf, ns) -> (nf, n_blocks * ns)
        values = result.spectrum.transpose(1, 0, 2).reshape(nf, n_blocks * ns)
        df = pd.DataFrame(
            np.column_stack([result.frequencies, values]), columns=columns
        )
        df.to_csv(output_path, index=False, sep=delimiter)

        logger.info(f"Saved CSV output to {output_path}")
        return str(output_path)

    def _save_netcdf(self, result, output_path: Path, **kwargs) -> str:
        if not NETCDF_AVAILABLE:
            raise RuntimeError(
                "NetCDF output requires xarray and netCDF4. "
                "Install with: pip install xarray netCDF4"
            )

        data_vars = {
            "spectrum": (["zenith_angle", "frequency", "stokes"], result.spectrum, {
                "long_name": "Spectrum at the observer",
                "units": "W/(m^2 sr Hz)" if result.unit == "1" else "K",
            }),
        }
        if result.jacobian is not None:
            data_vars["jacobian"] = (["measurement", "state"], result.jacobian, {
                "long_name": "Jacobian of the measurement vector",
            })

        ds = xr.Dataset(
            data_vars=data_vars,
            coords={
                "zenith_angle": (["zenith_angle"], result.zenith_angles, {
                    "long_name": "Zenith angle",
                    "units": "degree",
                }),
                "frequency": (["frequency"], result.frequencies, {
                    "long_name": "Frequency",
                    "units": "Hz",
                }),
                "stokes": (["stokes"], np.arange(result.spectrum.shape[2])),
            },
            attrs={
                "title": "LOS-Tran Line-of-Sight Radiative Transfer Results",
                "source": "LOS-Tran emission-absorption radiative transfer",
                "history": f"Created {datetime.now().isoformat()}",
                "conventions": "CF-1.8",
                "atmosphere": result.metadata.get("atmosphere", ""),
                "species": str(result.metadata.get("species", [])),
                "unit": result.unit,
            },
        )

        ds.to_netcdf(output_path)
        logger.info(f"Saved NetCDF output to {output_path}")
        return str(output_path)
