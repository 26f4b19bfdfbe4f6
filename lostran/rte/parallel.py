"""
Fork-join execution of independent units of work.

Units are single frequencies (frequency loop, Monte Carlo) or measurement
blocks (one viewing geometry each). Every unit runs on its own copy of the
task context. Results are placed by unit index, so the outcome does not
depend on the number of threads or the completion order.

A failing unit sets a shared failure flag. Units that have not started yet
are skipped, units already running finish, and the first failure is then
raised as CalculationError.
"""

import copy
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from lostran.core.constants import EARTH_RADIUS
from lostran.core.errors import CalculationError, NumericalSanityError, PreconditionError
from lostran.geometry import Path, build_los_1d
from lostran.rte.auxiliary import is_frequency_resolved
from lostran.rte.integrator import IntegrationResult, RadiativeTransferIntegrator
from lostran.rte.jacobian import JacobianQuantities
from lostran.rte.units import convert_spectrum

logger = logging.getLogger(__name__)


@dataclass
class TaskContext:
    """Collaborators and settings needed by one unit of work.

    Attributes:
        absorption: OpticalPropertyProvider
        background: BackgroundProvider
        stokes_dim: Number of Stokes components
        particles: Optional ParticleFieldProvider
        surface_altitude: Ground altitude [m]
        planet_radius: Planet radius [m]
        max_step: Maximum path step length [m]
        blackbody_ground: Whether the ground ends the path
        refraction: Include refraction (not supported)
        scattering: Couple paths to a scattering domain (not supported)
    """
    absorption: object
    background: object
    stokes_dim: int = 1
    particles: Optional[object] = None
    surface_altitude: float = 0.0
    planet_radius: float = EARTH_RADIUS
    max_step: float = 1000.0
    blackbody_ground: bool = False
    refraction: bool = False
    scattering: bool = False

    def fork(self) -> "TaskContext":
        """Private copy for one unit of work."""
        return copy.deepcopy(self)

    def integrator(self) -> RadiativeTransferIntegrator:
        return RadiativeTransferIntegrator(
            self.absorption, self.background, self.stokes_dim, self.particles
        )

    def build_path(self, atmosphere, observer_altitude: float, zenith_angle: float) -> Path:
        return build_los_1d(
            atmosphere.altitude,
            atmosphere.pressure,
            surface_altitude=self.surface_altitude,
            observer_altitude=observer_altitude,
            zenith_angle=zenith_angle,
            max_step=self.max_step,
            planet_radius=self.planet_radius,
            refraction=self.refraction,
            blackbody_ground=self.blackbody_ground,
            scattering=self.scattering,
        )


class _FailureState:
    """First failure of a fan-out, shared between workers."""

    def __init__(self):
        self._lock = threading.Lock()
        self.failed = False
        self.message = ""
        self.unit_index: Optional[int] = None
        self.error: Optional[BaseException] = None

    def is_set(self) -> bool:
        with self._lock:
            return self.failed

    def record(self, unit_index: int, message: str, error: BaseException) -> None:
        with self._lock:
            if not self.failed:
                self.failed = True
                self.message = message
                self.unit_index = unit_index
                self.error = error


def run_units(
    n_units: int,
    work: Callable[[int], object],
    num_threads: int = 1,
    describe: Optional[Callable[[int], str]] = None,
) -> List[object]:
    """Run independent units of work.

    Args:
        n_units: Number of units
        work: Function computing the result of one unit from its index
        num_threads: Number of worker threads
        describe: Description of a unit for error messages

    Returns:
        Results ordered by unit index

    Raises:
        CalculationError: If any unit fails, chained to the original error
    """
    describe = describe or (lambda i: f"unit #{i}")
    results: List[object] = [None] * n_units
    failure = _FailureState()

    def run(i: int) -> None:
        if failure.is_set():
            return
        try:
            results[i] = work(i)
        except Exception as e:
            failure.record(i, f"Run-time error in {describe(i)}:\n{e}", e)

    if num_threads <= 1 or n_units <= 1:
        for i in range(n_units):
            run(i)
    else:
        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            for future in [executor.submit(run, i) for i in range(n_units)]:
                future.result()

    if failure.failed:
        logger.error(failure.message)
        raise CalculationError(failure.message, unit_index=failure.unit_index) from failure.error
    return results


def _frequency_description(frequencies):
    return lambda i: f"frequency #{i} ({frequencies[i]:.6e} Hz)"


def loop_frequencies(
    context: TaskContext,
    path: Path,
    atmosphere,
    frequencies: np.ndarray,
    aux_vars: Sequence[str] = (),
    num_threads: int = 1,
) -> IntegrationResult:
    """Integrate a path one frequency at a time.

    No Jacobians are calculated. Frequency resolved diagnostics are joined
    along the frequency dimension.
    """
    frequencies = np.asarray(frequencies, dtype=np.float64)

    def work(i):
        unit = context.fork()
        return unit.integrator().integrate(path, atmosphere, frequencies[i:i + 1], aux_vars=aux_vars)

    parts = run_units(len(frequencies), work, num_threads, _frequency_description(frequencies))

    aux = {}
    for name in aux_vars:
        if is_frequency_resolved(name):
            aux[name] = np.concatenate([r.aux[name] for r in parts], axis=0)
        else:
            aux[name] = parts[0].aux[name]

    return IntegrationResult(
        frequencies=frequencies,
        spectrum=np.concatenate([r.spectrum for r in parts], axis=0),
        transmission=np.concatenate([r.transmission for r in parts], axis=0),
        optical_depth=np.concatenate([r.optical_depth for r in parts], axis=0),
        background=parts[0].background,
        aux=aux,
    )


def monte_carlo_spectrum(
    solver_factory: Callable[[], object],
    frequencies: np.ndarray,
    stokes_dim: int = 1,
    num_threads: int = 1,
):
    """Monte Carlo spectrum, one solver per frequency.

    Args:
        solver_factory: Returns a new MonteCarloSolver
        frequencies: Frequency grid [Hz]
        stokes_dim: Number of Stokes components
        num_threads: Number of worker threads

    Returns:
        Tuple of (spectrum (nf, ns), aux) with the error estimate in
        aux["Error"]
    """
    frequencies = np.asarray(frequencies, dtype=np.float64)

    def work(i):
        solver = solver_factory()
        stokes, error = solver.solve(i, float(frequencies[i]))
        stokes = np.asarray(stokes, dtype=np.float64).reshape(stokes_dim)
        return stokes, np.asarray(error, dtype=np.float64).reshape(stokes_dim)

    parts = run_units(len(frequencies), work, num_threads, _frequency_description(frequencies))
    spectrum = np.array([p[0] for p in parts])
    error = np.array([p[1] for p in parts])
    return spectrum, {"Error": error}


@dataclass
class MeasurementBlock:
    """A viewing geometry."""
    observer_altitude: float
    zenith_angle: float


@dataclass
class MeasurementResult:
    """Combined result of all measurement blocks.

    Attributes:
        y: Measurement vector, block major, then frequency, then Stokes
        y_f: Frequency of each element [Hz]
        y_pol: Stokes component of each element
        y_block: Measurement block of each element
        jacobian: Jacobian matrix (n_y, n_x), None without quantities
        aux: Diagnostics per block
        blocks: The measurement blocks
        unit: Unit of y
    """
    y: np.ndarray
    y_f: np.ndarray
    y_pol: np.ndarray
    y_block: np.ndarray
    jacobian: Optional[np.ndarray]
    aux: List[Dict[str, np.ndarray]] = field(default_factory=list)
    blocks: List[MeasurementBlock] = field(default_factory=list)
    unit: str = "1"


def calculate_measurements(
    context: TaskContext,
    blocks: Sequence[MeasurementBlock],
    atmosphere,
    frequencies: np.ndarray,
    quantities: Optional[JacobianQuantities] = None,
    aux_vars: Sequence[str] = (),
    unit: str = "1",
    num_threads: int = 1,
) -> MeasurementResult:
    """Calculate the spectra of all measurement blocks.

    Each block builds its path, integrates it and writes its spectrum and
    Jacobian rows into its own slice of the combined result.
    """
    if not blocks:
        raise PreconditionError("No measurement blocks given", quantity="blocks")
    frequencies = np.asarray(frequencies, dtype=np.float64)
    nf = len(frequencies)
    ns = context.stokes_dim
    n_block = nf * ns
    n_y = len(blocks) * n_block
    do_jacobian = quantities is not None and len(quantities) > 0

    y = np.empty(n_y)
    jacobian = np.zeros((n_y, quantities.n_x)) if do_jacobian else None
    aux: List[Dict[str, np.ndarray]] = [{} for _ in blocks]

    def work(ib):
        unit_context = context.fork()
        block = blocks[ib]
        path = unit_context.build_path(atmosphere, block.observer_altitude, block.zenith_angle)
        result = unit_context.integrator().integrate(
            path, atmosphere, frequencies, quantities=quantities, aux_vars=aux_vars
        )
        spectrum = result.spectrum
        block_jacobian = result.jacobian
        block_aux = result.aux
        if unit != "1":
            spectrum, block_jacobian, block_aux = convert_spectrum(
                spectrum, unit, frequencies, jacobian=block_jacobian, aux=block_aux
            )
            result.jacobian = block_jacobian

        rows = slice(ib * n_block, (ib + 1) * n_block)
        y[rows] = spectrum.reshape(n_block)
        if do_jacobian:
            jacobian[rows] = result.jacobian_matrix()
        aux[ib] = block_aux
        return ib

    run_units(
        len(blocks), work, num_threads,
        lambda ib: f"measurement block #{ib} (zenith angle {blocks[ib].zenith_angle} deg)",
    )

    if np.any(np.isnan(y)):
        raise NumericalSanityError("One or several NaNs found in the measurement vector")

    logger.info(f"Calculated {len(blocks)} measurement blocks, {n_y} values")
    return MeasurementResult(
        y=y,
        y_f=np.tile(np.repeat(frequencies, ns), len(blocks)),
        y_pol=np.tile(np.arange(ns), nf * len(blocks)),
        y_block=np.repeat(np.arange(len(blocks)), n_block),
        jacobian=jacobian,
        aux=aux,
        blocks=list(blocks),
        unit=unit,
    )
