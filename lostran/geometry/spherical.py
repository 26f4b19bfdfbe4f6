"""
Spherical Planet Geometry Calculations
======================================

Closed-form relations for straight (non-refracted) rays in a spherically
symmetric atmosphere. A ray is fully described by its lowest point ``z0``
and the local zenith angle ``za0`` there; the quantities

    c = (R + z0) * sin(za0)
    d = (R + z0) * cos(za0)

are constant along the ray and give the distance from the lowest point to
any altitude as ``l(z) = sqrt((R + z)^2 - c^2) - d``.

Distances are evaluated in extended precision (numpy.longdouble) since
``(R + z)^2 - c^2`` suffers from cancellation close to tangent points.
"""

from typing import Tuple

import numpy as np

from lostran.core.constants import EARTH_RADIUS


# =============================================================================
# Viewing Geometry
# =============================================================================

def tangent_altitude(
    observer_altitude: float,
    zenith_angle_deg: float,
    planet_radius: float = EARTH_RADIUS,
) -> float:
    """
    Calculate the geometric tangent altitude of a ray.

    Parameters
    ----------
    observer_altitude : float
        Observer altitude in meters
    zenith_angle_deg : float
        Zenith angle in degrees (> 90 for limb viewing)
    planet_radius : float
        Planet radius in meters

    Returns
    -------
    z_tan : float
        Tangent altitude in meters (below the surface if the ray hits it)
    """
    return (planet_radius + observer_altitude) * np.sin(np.radians(zenith_angle_deg)) - planet_radius


def ground_zenith_angle(
    z_tan: float,
    ground_altitude: float,
    planet_radius: float = EARTH_RADIUS,
) -> float:
    """
    Local zenith angle at the point where a downward ray hits the ground.

    The angle is returned as a negative value in [-90, 0), the convention
    used for the lowest point of a path (a horizontal ray at a tangent
    point has -90).

    Parameters
    ----------
    z_tan : float
        Geometric tangent altitude of the ray in meters (below ground)
    ground_altitude : float
        Ground altitude in meters
    planet_radius : float
        Planet radius in meters

    Returns
    -------
    za : float
        Local zenith angle at the ground in degrees
    """
    ratio = (planet_radius + z_tan) / (planet_radius + ground_altitude)
    return -np.degrees(np.arcsin(ratio))


def ray_invariants(
    z0: float,
    za0_deg: float,
    planet_radius: float = EARTH_RADIUS,
) -> Tuple[np.longdouble, np.longdouble]:
    """Return the ray constants (c, d) in extended precision."""
    r0 = np.longdouble(planet_radius) + np.longdouble(z0)
    za0 = np.radians(np.longdouble(za0_deg))
    return r0 * np.sin(za0), r0 * np.cos(za0)


def distance_to_altitude(
    z: float,
    c: np.longdouble,
    d: np.longdouble,
    planet_radius: float = EARTH_RADIUS,
) -> np.longdouble:
    """Distance from the lowest point of a ray to altitude z."""
    r = np.longdouble(planet_radius) + np.longdouble(z)
    return np.sqrt(r * r - c * c) - d


def altitude_at_distance(
    distance: np.longdouble,
    z0: float,
    za0_deg: float,
    planet_radius: float = EARTH_RADIUS,
) -> float:
    """Altitude at a given distance from the lowest point of a ray."""
    r0 = np.longdouble(planet_radius) + np.longdouble(z0)
    cos_za = np.cos(np.radians(np.longdouble(za0_deg)))
    l = np.longdouble(distance)
    return float(np.sqrt(r0 * r0 + l * l + 2 * r0 * l * cos_za) - np.longdouble(planet_radius))


def latitude_offset(
    distance: np.longdouble,
    z: float,
    za0_deg: float,
    planet_radius: float = EARTH_RADIUS,
) -> float:
    """Latitude angle [deg] between the lowest point and a point on the ray."""
    sin_za = np.sin(np.radians(np.longdouble(za0_deg)))
    r = np.longdouble(planet_radius) + np.longdouble(z)
    return float(np.degrees(np.arcsin(np.longdouble(distance) * sin_za / r)))
