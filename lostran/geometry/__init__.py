"""
Line-of-Sight Geometry
======================

Path construction for a spherically symmetric (1-D) atmosphere:

- Tangent points and ground intersections
- Breakpoints at all grid levels and at the observer
- Sub-division into steps not exceeding a maximum length
- Radiative background classification

Refraction and paths coupled to a scattering domain are not supported.
"""

from lostran.geometry.spherical import (
    tangent_altitude,
    ground_zenith_angle,
    ray_invariants,
    distance_to_altitude,
    altitude_at_distance,
    latitude_offset,
)

from lostran.geometry.los import (
    Background,
    Path,
    check_los_inputs,
    build_los_1d,
)

__all__ = [
    # Spherical relations
    "tangent_altitude",
    "ground_zenith_angle",
    "ray_invariants",
    "distance_to_altitude",
    "altitude_at_distance",
    "latitude_offset",
    # Path construction
    "Background",
    "Path",
    "check_los_inputs",
    "build_los_1d",
]
