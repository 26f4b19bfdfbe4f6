"""
Line-of-sight path construction for 1-D atmospheres.

The path is stored from its lowest point upwards. For a limb path this is
the tangent point, for a path hitting the ground the ground point, and for
an upward look the observer. Limb paths are traversed twice (down to the
lowest point and up again); ``Path.los_indices`` gives the order in which
the stored points are met when walking from the observer along the line of
sight.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

import numpy as np

from lostran.core.constants import EARTH_RADIUS
from lostran.core.errors import UnsupportedPhysicsError, raise_if_invalid
from lostran.geometry.spherical import (
    altitude_at_distance,
    distance_to_altitude,
    ground_zenith_angle,
    latitude_offset,
    ray_invariants,
    tangent_altitude,
)
from lostran.interpolation import interp_1d

logger = logging.getLogger(__name__)


class Background(IntEnum):
    """Radiative background terminating a path."""
    SPACE = 0
    SURFACE = 1
    CLOUDBOX = 2


@dataclass
class Path:
    """Line-of-sight path through a 1-D atmosphere.

    Attributes:
        dim: Atmospheric dimensionality (always 1 here)
        altitude: Altitude of each point [m], lowest point first
        pressure: Pressure of each point [Pa]
        ip_p: Pressure grid position of each point
        latitude: Latitude angle of each point relative to the observer [deg]
        l_step: Length between point k and k+1 [m]
        valid: Validity flag of each point
        i_start: Index where the integration starts (far end)
        i_stop: Index where the integration stops (observer end)
        background: Radiative background at the far end
        ground: Whether the ray intersects the ground
        i_ground: Index of the ground point (0 when ground is set)
        tangent_altitude: Geometric tangent altitude [m], None for upward looks
        observer_altitude: Observer altitude [m]
        zenith_angle: Observation zenith angle [deg]
    """
    dim: int
    altitude: np.ndarray
    pressure: np.ndarray
    ip_p: np.ndarray
    latitude: np.ndarray
    l_step: np.ndarray
    valid: np.ndarray
    i_start: int
    i_stop: int
    background: Background = Background.SPACE
    ground: bool = False
    i_ground: int = 0
    tangent_altitude: Optional[float] = None
    observer_altitude: float = 0.0
    zenith_angle: float = 0.0

    @property
    def n_points(self) -> int:
        """Number of stored path points."""
        return len(self.altitude)

    @property
    def is_empty(self) -> bool:
        """True if the path does not enter the atmosphere."""
        return self.n_points == 0

    @property
    def path_length(self) -> np.ndarray:
        """Distance of each point from the lowest point [m]."""
        if self.is_empty:
            return np.zeros(0)
        return np.concatenate(([0.0], np.cumsum(self.l_step)))

    @property
    def los_indices(self) -> np.ndarray:
        """Point indices ordered from the observer to the far end."""
        n = self.n_points
        if n == 0:
            return np.zeros(0, dtype=int)
        if self.zenith_angle <= 90:
            return np.arange(n)

        near = np.arange(self.i_stop, -1, -1)
        if self.i_start == 0:
            return near
        return np.concatenate((near, np.arange(1, self.i_start + 1)))

    @property
    def los_steps(self) -> np.ndarray:
        """Step lengths between consecutive points in los_indices order."""
        order = self.los_indices
        if len(order) < 2:
            return np.zeros(0)
        return self.l_step[np.minimum(order[:-1], order[1:])]

    @property
    def reflection_index(self) -> Optional[int]:
        """Position in los_indices where a surface reflection happens.

        Only set for paths hitting a ground that is not treated as a
        blackbody, in which case the ray continues after reflection.
        """
        if self.ground and self.background == Background.SPACE and self.n_points:
            return int(self.i_stop)
        return None


@dataclass
class _Geometry:
    z_tan: Optional[float]
    altitude: np.ndarray
    ip_z: np.ndarray
    latitude: np.ndarray
    l_step: np.ndarray
    ground: bool = False


def check_los_inputs(
    altitude_grid: np.ndarray,
    pressure_grid: np.ndarray,
    surface_altitude: float,
    observer_altitude: float,
    zenith_angle: float,
    max_step: float,
) -> List[str]:
    """Validate the inputs of build_los_1d.

    Returns:
        List of problem descriptions (empty if valid)
    """
    problems = []
    z_abs = np.asarray(altitude_grid, dtype=np.float64)
    p_abs = np.asarray(pressure_grid, dtype=np.float64)

    if z_abs.ndim != 1 or len(z_abs) < 2:
        problems.append("altitude grid must be a vector with at least two levels")
        return problems
    if np.any(np.diff(z_abs) <= 0):
        problems.append("altitude grid must be strictly increasing")
    if p_abs.shape != z_abs.shape:
        problems.append(
            f"pressure grid has {p_abs.size} values, altitude grid {z_abs.size}"
        )
    if not (z_abs[0] <= surface_altitude < z_abs[-1]):
        problems.append(
            f"surface altitude {surface_altitude} m is outside the vertical "
            f"grid [{z_abs[0]}, {z_abs[-1]})"
        )
    if observer_altitude < surface_altitude:
        problems.append(
            f"observer altitude {observer_altitude} m is below the surface"
        )
    if max_step <= 0:
        problems.append("maximum step length must be positive")
    if not (0 <= zenith_angle <= 180):
        problems.append("zenith angle must be between 0 and 180 degrees")
    return problems


def _los_1d_geometry(
    z_abs: np.ndarray,
    z_ground: float,
    planet_radius: float,
    l_max: float,
    z_plat: float,
    za: float,
) -> _Geometry:
    n_zabs = len(z_abs)
    z_max = z_abs[-1]

    # Lowest point of the path (z1), the zenith angle there (za1) and the
    # latitude distance between the observer and z1 (lat0).
    z_tan = None
    ground = False
    do_down = False
    if za <= 90:
        z1, za1, lat0 = z_plat, za, 0.0
    else:
        z_tan = float(tangent_altitude(z_plat, za, planet_radius))
        if z_tan >= z_ground:
            z1, za1, lat0 = z_tan, -90.0, za - 90.0
        else:
            ground = True
            z1 = z_ground
            za1 = float(ground_zenith_angle(z_tan, z_ground, planet_radius))
            lat0 = za - za1 - 180.0
        do_down = z_plat < z_max

    empty = np.zeros(0)
    if z1 >= z_max:
        return _Geometry(z_tan, empty, empty, empty, empty, ground)

    # Breakpoints: z1, the observer for downward looks from inside the
    # atmosphere, and all grid levels above z1. Sorted without duplicates.
    special = [z1, z_plat] if do_down else [z1]
    special.append(np.inf)

    i_above = int(np.searchsorted(z_abs, z1, side="right"))

    zs = [special[0]]
    i2 = 1
    for i1 in range(i_above, n_zabs):
        while special[i2] <= z_abs[i1]:
            if special[i2] != zs[-1]:
                zs.append(special[i2])
            i2 += 1
        if z_abs[i1] != zs[-1]:
            zs.append(float(z_abs[i1]))

    # Distance from z1 to each breakpoint and number of steps in between
    c, d = ray_invariants(z1, za1, planet_radius)
    ls = [np.longdouble(0)]
    ns = []
    for z in zs[1:]:
        ls.append(distance_to_altitude(z, c, d, planet_radius))
        ns.append(int(np.ceil(float(ls[-1] - ls[-2]) / l_max)))

    n_total = sum(ns) + 1
    altitude = np.empty(n_total)
    ip_z = np.empty(n_total)
    latitude = np.empty(n_total)
    l_step = np.empty(n_total - 1)

    k = 0
    for i1 in range(len(zs) - 1):
        # Advance the bracketing grid level once the segment reaches it
        while zs[i1] >= z_abs[i_above]:
            i_above += 1
        z_low = z_abs[i_above - 1]
        dz = z_abs[i_above] - z_low

        dl = (ls[i1 + 1] - ls[i1]) / ns[i1]
        for i2 in range(ns[i1]):
            l = ls[i1] + i2 * dl
            if i2 == 0:
                zv = zs[i1]
            else:
                zv = altitude_at_distance(l, z1, za1, planet_radius)
            altitude[k] = zv
            l_step[k] = float(dl)
            ip_z[k] = i_above - 1 + (zv - z_low) / dz
            latitude[k] = lat0 + latitude_offset(l, zv, za1, planet_radius)
            k += 1

    # Uppermost grid level
    altitude[k] = z_max
    ip_z[k] = n_zabs - 1
    latitude[k] = lat0 + latitude_offset(ls[-1], z_max, za1, planet_radius)

    return _Geometry(z_tan, altitude, ip_z, latitude, l_step, ground)


def build_los_1d(
    altitude_grid: np.ndarray,
    pressure_grid: np.ndarray,
    surface_altitude: float,
    observer_altitude: float,
    zenith_angle: float,
    max_step: float,
    planet_radius: float = EARTH_RADIUS,
    refraction: bool = False,
    blackbody_ground: bool = False,
    scattering: bool = False,
) -> Path:
    """Construct the line-of-sight path for a 1-D spherical atmosphere.

    Args:
        altitude_grid: Altitudes of the vertical grid [m], strictly increasing
        pressure_grid: Pressures matching altitude_grid [Pa]
        surface_altitude: Ground altitude [m]
        observer_altitude: Observer (platform) altitude [m]
        zenith_angle: Observation zenith angle [deg], 0-180
        max_step: Maximum distance between path points [m]
        planet_radius: Planet radius [m]
        refraction: Include refraction (not supported)
        blackbody_ground: Treat the ground as a blackbody, ending the path
            at the ground
        scattering: Couple the path to a scattering domain (not supported)

    Returns:
        The constructed Path. All point arrays are empty if the path is
        entirely above the atmosphere.

    Raises:
        PreconditionError: For inconsistent input
        UnsupportedPhysicsError: If refraction or scattering is requested
    """
    if refraction:
        raise UnsupportedPhysicsError(
            "1D LOS calculations with refraction are not implemented"
        )
    if scattering:
        raise UnsupportedPhysicsError(
            "1D LOS calculations with scattering are not implemented"
        )

    raise_if_invalid(
        check_los_inputs(
            altitude_grid, pressure_grid, surface_altitude,
            observer_altitude, zenith_angle, max_step,
        ),
        quantity="line of sight",
    )

    z_abs = np.asarray(altitude_grid, dtype=np.float64)
    p_abs = np.asarray(pressure_grid, dtype=np.float64)

    geom = _los_1d_geometry(
        z_abs, surface_altitude, planet_radius, max_step,
        observer_altitude, zenith_angle,
    )
    altitude = geom.altitude
    ip_p = geom.ip_z
    latitude = geom.latitude
    l_step = geom.l_step
    n = len(altitude)

    if n == 0:
        i_start = i_stop = 0
    else:
        i_start = n - 1
        i_stop = 0 if zenith_angle <= 90 else n - 1
        # Downward look from inside the atmosphere stops at the observer
        if zenith_angle > 90 and observer_altitude < z_abs[-1]:
            i_stop = int(np.flatnonzero(altitude == observer_altitude)[0])

    background = Background.SPACE
    if geom.ground and blackbody_ground:
        background = Background.SURFACE
        i_start = 0
        if i_stop < n - 1:
            n = i_stop + 1
            altitude = altitude[:n]
            ip_p = ip_p[:n]
            latitude = latitude[:n]
            l_step = l_step[:n - 1]

    pressure = np.empty(n)
    interp_1d(p_abs, ip_p, pressure)

    path = Path(
        dim=1,
        altitude=altitude,
        pressure=pressure,
        ip_p=ip_p,
        latitude=latitude,
        l_step=l_step,
        valid=np.ones(n, dtype=bool),
        i_start=i_start,
        i_stop=i_stop,
        background=background,
        ground=geom.ground,
        i_ground=0,
        tangent_altitude=geom.z_tan,
        observer_altitude=observer_altitude,
        zenith_angle=zenith_angle,
    )

    logger.debug(
        f"LOS for za={zenith_angle} deg from {observer_altitude} m: "
        f"{n} points, background={background.name}, ground={geom.ground}"
    )
    return path
