from typing import List, Tuple
import math

from ladestopp.types import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates in kilometers
    """
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * \
        math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def cumulative_distances(path: List[Coordinate]) -> List[float]:
    """
    Returns the distance from the start of the path to each point on the path
    """
    distances = [0.0] * len(path)
    for i in range(1, len(path)):
        distances[i] = distances[i - 1] + haversine_km(path[i - 1], path[i])
    return distances


def _project_onto_segment(a: Coordinate, b: Coordinate, point: Coordinate) -> Tuple[float, Coordinate]:
    # Equirectangular approximation is accurate enough for segments of a few kilometers
    cos_lat = math.cos(math.radians((a.lat + b.lat) / 2))
    ax, ay = a.lng * cos_lat, a.lat
    bx, by = b.lng * cos_lat, b.lat
    px, py = point.lng * cos_lat, point.lat
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return 0.0, a
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return t, Coordinate(lat=a.lat + t * (b.lat - a.lat), lng=a.lng + t * (b.lng - a.lng))


def along_route_distance(path: List[Coordinate], point: Coordinate) -> Tuple[float, float]:
    """
    Project a point onto a route path

    :param path: The route path from the routing provider, at least one point
    :param point: The point to project, e.g. a charging station
    :return: Tuple of (distance along the route from its start, distance from the route) in kilometers
    """
    if len(path) == 0:
        raise RuntimeError("Cannot project onto an empty route path")
    if len(path) == 1:
        return 0.0, haversine_km(path[0], point)

    distances = cumulative_distances(path)
    best_along, best_offset = 0.0, math.inf
    for i in range(len(path) - 1):
        t, projected = _project_onto_segment(path[i], path[i + 1], point)
        offset = haversine_km(projected, point)
        if offset < best_offset:
            best_offset = offset
            best_along = distances[i] + t * (distances[i + 1] - distances[i])
    return best_along, best_offset


def sample_path(path: List[Coordinate], interval_km: float) -> List[Coordinate]:
    """
    Pick points on the path roughly every interval_km, always including the start and end of the path
    """
    if len(path) == 0:
        return []
    samples = [path[0]]
    since_last = 0.0
    for previous, current in zip(path, path[1:]):
        since_last += haversine_km(previous, current)
        if since_last >= interval_km:
            samples.append(current)
            since_last = 0.0
    if samples[-1] != path[-1]:
        samples.append(path[-1])
    return samples
