"""Initial great-circle bearing, used to orient route arrow symbols."""

import math

from shapely.geometry import Point


def initial_bearing(origin: Point, destination: Point) -> float:
    """
    Compass bearing from origin toward destination along the great circle.

    Args:
        origin: Start point (x = longitude, y = latitude, degrees)
        destination: End point

    Returns:
        Degrees in [0, 360); 0.0 for coincident points
    """
    phi1 = math.radians(origin.y)
    phi2 = math.radians(destination.y)
    dlam = math.radians(destination.x - origin.x)

    x = math.sin(dlam) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlam)
    if abs(x) < 1e-12 and abs(y) < 1e-12:
        return 0.0

    bearing = (math.degrees(math.atan2(x, y)) + 360.0) % 360.0
    # -1e-15 + 360 rounds to 360.0
    return 0.0 if bearing >= 360.0 else bearing
