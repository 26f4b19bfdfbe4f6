"""
Emission and absorption radiative transfer along a line of sight.

Radiation is propagated from the far end of the path towards the observer,
layer by layer, using

    I = T (I - S) + S

where T is the layer transmission and S the layer source function. For
LTE, S is the layer-mean Planck function. For non-LTE, S additionally
contains K⁻¹ n with the layer-mean extinction K and non-LTE source n.

Analytical Jacobians are accumulated per path point. The contribution of
a layer is propagated to the observer with the cumulative transmission
between the observer and the layer, and finally mapped to the retrieval
grid of each quantity.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from lostran.core.errors import (
    NumericalSanityError,
    PreconditionError,
    raise_if_invalid,
)
from lostran.geometry import Background
from lostran.rte.auxiliary import AuxiliaryRecorder, parse_aux_variables
from lostran.rte.jacobian import (
    JacobianQuantities,
    QuantityKind,
    project_to_retrieval_grid,
)
from lostran.rte.transmission import layer_transmission, transmission_derivative
from lostran.utils.spectral import dplanck_dt, planck

logger = logging.getLogger(__name__)


@dataclass
class IntegrationResult:
    """Result of integrating one path.

    Attributes:
        frequencies: Frequency grid [Hz]
        spectrum: Stokes vector at the observer, shape (nf, ns)
        transmission: Transmission from the observer to the far end,
            shape (nf, ns, ns)
        optical_depth: Optical depth of the path, shape (nf,)
        background: Radiative background of the path
        jacobian: Retrieval grid Jacobian per quantity, shape (n_grid, nf, ns)
        path_jacobian: Path point Jacobian per quantity, shape (np, nf, ns)
        aux: Requested diagnostics
        quantities: The retrieval quantities
    """
    frequencies: np.ndarray
    spectrum: np.ndarray
    transmission: np.ndarray
    optical_depth: np.ndarray
    background: Background
    jacobian: List[np.ndarray] = field(default_factory=list)
    path_jacobian: List[np.ndarray] = field(default_factory=list)
    aux: Dict[str, np.ndarray] = field(default_factory=dict)
    quantities: Optional[JacobianQuantities] = None

    @property
    def stokes_dim(self) -> int:
        return self.spectrum.shape[1]

    def jacobian_matrix(self) -> np.ndarray:
        """Jacobian as a matrix of shape (nf*ns, n_x).

        Rows follow the flattened spectrum (frequency major), columns the
        index ranges of the retrieval quantities.
        """
        nf, ns = self.spectrum.shape
        if not self.quantities:
            return np.zeros((nf * ns, 0))
        out = np.zeros((nf * ns, self.quantities.n_x))
        for iq, jac in enumerate(self.jacobian):
            out[:, self.quantities.index_range(iq)] = jac.reshape(jac.shape[0], nf * ns).T
        return out


def check_frequency_grid(frequencies: np.ndarray) -> List[str]:
    """Validate a frequency grid.

    Returns:
        List of problem descriptions (empty if valid)
    """
    problems = []
    if frequencies.ndim != 1 or len(frequencies) == 0:
        problems.append("frequency grid must be a non-empty vector")
        return problems
    if np.any(frequencies <= 0):
        problems.append("frequencies must be positive")
    if np.any(np.diff(frequencies) <= 0):
        problems.append("frequency grid must be strictly increasing")
    return problems


def _matvec(m: np.ndarray, v: np.ndarray) -> np.ndarray:
    return np.einsum("fij,fj->fi", m, v)


class RadiativeTransferIntegrator:
    """Integrates the radiative transfer equation along a path.

    Args:
        absorption: OpticalPropertyProvider
        background: BackgroundProvider
        stokes_dim: Number of Stokes components (1-4)
        particles: Optional ParticleFieldProvider for diagnostics
    """

    def __init__(self, absorption, background, stokes_dim: int = 1, particles=None):
        if stokes_dim not in (1, 2, 3, 4):
            raise PreconditionError(
                f"stokes_dim must be 1, 2, 3 or 4, got {stokes_dim}", quantity="stokes_dim"
            )
        self.absorption = absorption
        self.background = background
        self.stokes_dim = stokes_dim
        self.particles = particles

    def integrate(
        self,
        path,
        atmosphere,
        frequencies: np.ndarray,
        quantities: Optional[JacobianQuantities] = None,
        aux_vars: Sequence[str] = (),
    ) -> IntegrationResult:
        """Compute the spectrum at the observer.

        Args:
            path: Path from build_los_1d
            atmosphere: AtmosphericState on the grid the path was built for
            frequencies: Frequency grid [Hz]
            quantities: Retrieval quantities for analytical Jacobians
            aux_vars: Aliases of diagnostics to record

        Returns:
            IntegrationResult

        Raises:
            PreconditionError: For inconsistent input
            UnsupportedPhysicsError: For Jacobians without analytical form
            NumericalSanityError: If the spectrum contains NaN
        """
        frequencies = np.asarray(frequencies, dtype=np.float64)
        raise_if_invalid(check_frequency_grid(frequencies), quantity="frequencies")
        if quantities is not None and len(quantities) == 0:
            quantities = None
        if quantities is not None:
            quantities.check_supported()

        ns = self.stokes_dim
        nf = len(frequencies)
        n_points = path.n_points

        requests = parse_aux_variables(aux_vars, atmosphere.n_species, self.particles)
        recorder = AuxiliaryRecorder(requests, n_points, nf, ns)
        recorder.record_background(int(path.background))

        bg = self.background.boundary(path.background, frequencies, ns)
        stokes = np.array(bg.stokes, dtype=np.float64)
        if stokes.shape != (nf, ns):
            raise PreconditionError(
                f"background has shape {stokes.shape}, expected {(nf, ns)}",
                quantity="background",
            )

        n_q = len(quantities) if quantities is not None else 0
        path_jacobian = [np.zeros((n_points, nf, ns)) for _ in range(n_q)]

        states, props = [], []
        if n_points > 0:
            path_atmosphere = atmosphere.at_path(path)
            for k in range(n_points):
                state = path_atmosphere.point(k)
                states.append(state)
                props.append(self.absorption.compute(frequencies, state, ns, quantities))
                recorder.record_point(k, state, props[k])
            if self.particles is not None:
                recorder.record_particles(self.particles, path)

        if n_points <= 1:
            transmission = np.broadcast_to(np.eye(ns), (nf, ns, ns)).copy()
            tau = np.zeros(nf)
            for k in path.los_indices:
                recorder.record_radiance(k, stokes)
                recorder.record_transmission(k, transmission)
        else:
            stokes, transmission, tau = self._sweep(
                path, frequencies, states, props, stokes, quantities, path_jacobian, recorder
            )
        recorder.record_optical_depth(tau)

        if np.any(np.isnan(stokes)):
            raise NumericalSanityError(
                f"One or several NaNs found in the spectrum of the path with "
                f"zenith angle {path.zenith_angle} deg"
            )

        jacobian = []
        for iq in range(n_q):
            jac = project_to_retrieval_grid(path_jacobian[iq], path.pressure, quantities[iq].grid)
            if iq in bg.jacobian:
                jac += np.einsum("fij,gfj->gfi", transmission, bg.jacobian[iq])
            jacobian.append(jac)

        logger.debug(
            f"Integrated path with {n_points} points at {nf} frequencies, "
            f"background={path.background.name}"
        )
        return IntegrationResult(
            frequencies=frequencies,
            spectrum=stokes,
            transmission=transmission,
            optical_depth=tau,
            background=path.background,
            jacobian=jacobian,
            path_jacobian=path_jacobian,
            aux=recorder.data,
            quantities=quantities,
        )

    def _sweep(self, path, frequencies, states, props, stokes, quantities, path_jacobian, recorder):
        nf = len(frequencies)
        ns = self.stokes_dim
        identity = np.broadcast_to(np.eye(ns), (nf, ns, ns))
        zero_source = np.zeros((nf, ns))

        order = path.los_indices
        steps = path.los_steps
        n_layers = len(order) - 1
        i_refl = path.reflection_index

        planck_at = [planck(frequencies, s.temperature) for s in states]
        dbdt_at = None
        if quantities is not None and quantities.has(QuantityKind.TEMPERATURE):
            dbdt_at = [dplanck_dt(frequencies, s.temperature) for s in states]
        nlte = any(not p.is_lte for p in props)

        emission = reflectivity = None
        if i_refl is not None:
            emission, reflectivity = self.background.surface_properties(frequencies, ns)

        # Observer to far end: layer transmissions and cumulative transmission.
        # cum_layer[p] carries radiation leaving layer p at its near end to
        # the observer, including a reflection at that position.
        cum = np.empty((n_layers + 1, nf, ns, ns))
        cum_layer = np.empty((n_layers, nf, ns, ns))
        layer_k, layer_t = [], []
        tau = np.zeros(nf)
        cum[0] = identity
        for p in range(n_layers):
            k_mean = 0.5 * (props[order[p]].extinction + props[order[p + 1]].extinction)
            t = layer_transmission(k_mean, steps[p])
            cum_layer[p] = cum[p] @ reflectivity if p == i_refl else cum[p]
            cum[p + 1] = cum_layer[p] @ t
            tau += k_mean[:, 0, 0] * steps[p]
            layer_k.append(k_mean)
            layer_t.append(t)

        recorder.record_radiance(order[-1], stokes)
        recorder.record_transmission(order[-1], cum[-1])

        # Far end to observer
        for p in range(n_layers - 1, -1, -1):
            i0, i1 = order[p], order[p + 1]
            k_mean, t = layer_k[p], layer_t[p]

            source = np.zeros((nf, ns))
            source[:, 0] = 0.5 * (planck_at[i0] + planck_at[i1])
            kinv_n = None
            if nlte:
                n_mean = 0.5 * (self._nlte_source(props[i0], nf, ns) + self._nlte_source(props[i1], nf, ns))
                kinv_n = np.linalg.solve(k_mean, n_mean[..., None])[..., 0]
                source += kinv_n

            stokes_in = stokes
            stokes = _matvec(t, stokes_in - source) + source

            if quantities is not None:
                one_minus_t = identity - t
                k_pair = np.concatenate((k_mean, k_mean))
                t_pair = np.concatenate((t, t))
                for iq, q in enumerate(quantities):
                    # Both layer ends in one call, near end first
                    dk_pair = 0.5 * np.concatenate(
                        (props[i0].d_extinction[iq], props[i1].d_extinction[iq])
                    )
                    dt_pair = transmission_derivative(k_pair, dk_pair, steps[p], t_pair)
                    for end, j in enumerate((i0, i1)):
                        dk = dk_pair[end * nf:(end + 1) * nf]
                        dt = dt_pair[end * nf:(end + 1) * nf]
                        ds = zero_source
                        if q.kind == QuantityKind.TEMPERATURE:
                            ds = zero_source.copy()
                            ds[:, 0] = 0.5 * dbdt_at[j]
                        if nlte:
                            dn = 0.5 * props[j].d_source.get(iq, zero_source)
                            ds = ds + np.linalg.solve(k_mean, (dn - _matvec(dk, kinv_n))[..., None])[..., 0]
                        contribution = _matvec(dt, stokes_in - source) + _matvec(one_minus_t, ds)
                        path_jacobian[iq][j] += _matvec(cum_layer[p], contribution)

            if p == i_refl:
                stokes = _matvec(reflectivity, stokes) + emission

            recorder.record_radiance(i0, stokes)
            recorder.record_transmission(i0, cum[p])

        return stokes, cum[-1], tau

    @staticmethod
    def _nlte_source(props, nf, ns):
        if props.source is None:
            return np.zeros((nf, ns))
        return props.source
