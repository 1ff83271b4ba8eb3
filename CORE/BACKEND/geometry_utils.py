"""
Geometry utilities for territory capture.
Helper functions for polygon handling using Shapely.
"""
import logging
from shapely.geometry import Polygon
from shapely.errors import ShapelyError

logger = logging.getLogger(__name__)


def ring_to_polygon(points):
    """
    Build a fill polygon from a walked ring.

    Args:
        points: [(lat, lon), ...]; the ring is closed if it isn't already

    Returns:
        Shapely Polygon or MultiPolygon in (lon, lat) order, or None when the
        ring is degenerate (fewer than 3 distinct points, zero area).
    """
    # Swap from [lat, lon] to (lon, lat) for Shapely
    shapely_coords = [(p[1], p[0]) for p in points]
    if len(set(shapely_coords)) < 3:
        return None

    if shapely_coords[0] != shapely_coords[-1]:
        shapely_coords.append(shapely_coords[0])

    try:
        poly = Polygon(shapely_coords)
        if not poly.is_valid:
            # Self-intersecting walks (figure eights) are repaired, not rejected
            poly = poly.buffer(0)
    except (ShapelyError, ValueError) as e:
        logger.warning(f"ring_to_polygon error: {e}")
        return None

    if poly.is_empty or poly.area == 0:
        return None
    return poly


def viewport_sample_points(bbox, samples=5):
    """
    Probe points for region enumeration: a samples x samples lattice
    anchored at the south-west corner plus the four corners.

    Args:
        bbox: BoundingBox
        samples: lattice points per axis

    Returns:
        list of (lat, lon)
    """
    samples = max(1, samples)
    lat_step = (bbox.north - bbox.south) / samples
    lon_step = (bbox.east - bbox.west) / samples

    points = []
    for i in range(samples):
        lon = bbox.west + i * lon_step
        for j in range(samples):
            lat = bbox.south + j * lat_step
            points.append((lat, lon))

    points.extend(bbox.corners())
    return points
