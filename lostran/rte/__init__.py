"""
Radiative Transfer
==================

Emission-absorption radiative transfer along a line of sight:

- Closed-form layer transmission for propagation matrices
- Backward sweep from the far end of the path to the observer
- Analytical Jacobians projected to retrieval grids
- Auxiliary diagnostics and unit conversion
- Fork-join calculation over frequencies and measurement blocks
"""

from lostran.rte.providers import (
    OpticalProperties,
    BackgroundResult,
    OpticalPropertyProvider,
    BackgroundProvider,
    ParticleFieldProvider,
    MonteCarloSolver,
    StandardBackground,
    GriddedParticleField,
)

from lostran.rte.transmission import (
    ExtinctionCase,
    extinction_case,
    layer_transmission,
    transmission_derivative,
)

from lostran.rte.jacobian import (
    QuantityKind,
    RetrievalQuantity,
    JacobianQuantities,
    project_to_retrieval_grid,
)

from lostran.rte.absorption import (
    SpectralLine,
    LineBand,
    LineCatalog,
    LorentzLineAbsorption,
)

from lostran.rte.auxiliary import replace_from_aux

from lostran.rte.integrator import (
    IntegrationResult,
    RadiativeTransferIntegrator,
)

from lostran.rte.units import (
    apply_iy_unit,
    apply_iy_unit_jacobian,
    convert_spectrum,
    convert_measurement,
)

from lostran.rte.parallel import (
    TaskContext,
    MeasurementBlock,
    MeasurementResult,
    run_units,
    loop_frequencies,
    monte_carlo_spectrum,
    calculate_measurements,
)

__all__ = [
    # Collaborators
    "OpticalProperties",
    "BackgroundResult",
    "OpticalPropertyProvider",
    "BackgroundProvider",
    "ParticleFieldProvider",
    "MonteCarloSolver",
    "StandardBackground",
    "GriddedParticleField",
    # Transmission
    "ExtinctionCase",
    "extinction_case",
    "layer_transmission",
    "transmission_derivative",
    # Jacobians
    "QuantityKind",
    "RetrievalQuantity",
    "JacobianQuantities",
    "project_to_retrieval_grid",
    # Absorption
    "SpectralLine",
    "LineBand",
    "LineCatalog",
    "LorentzLineAbsorption",
    # Integration
    "replace_from_aux",
    "IntegrationResult",
    "RadiativeTransferIntegrator",
    # Units
    "apply_iy_unit",
    "apply_iy_unit_jacobian",
    "convert_spectrum",
    "convert_measurement",
    # Fan-out
    "TaskContext",
    "MeasurementBlock",
    "MeasurementResult",
    "run_units",
    "loop_frequencies",
    "monte_carlo_spectrum",
    "calculate_measurements",
]
