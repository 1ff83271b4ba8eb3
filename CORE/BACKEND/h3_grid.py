"""
Grid index on the H3 hexagonal hierarchy.

Cells are H3 index strings at the game resolution; regions are their
parents at the (coarser) region resolution. Every method is a pure function
of its arguments.

Any other grid can stand in for H3Grid as long as it offers the same methods
(the tests use a square grid).
"""
import logging

import h3

from .geometry_utils import ring_to_polygon

logger = logging.getLogger(__name__)


class H3Grid:
    def __init__(self, resolution=11, region_resolution=4):
        if not 0 <= region_resolution < resolution <= 15:
            raise ValueError(
                f"region resolution {region_resolution} must be coarser than "
                f"cell resolution {resolution} (both 0-15)"
            )
        self.resolution = resolution
        self.region_resolution = region_resolution

    def cell_for_point(self, lat, lng, resolution=None):
        return h3.latlng_to_cell(lat, lng, resolution if resolution is not None else self.resolution)

    def parent_cell(self, cell, resolution=None):
        return h3.cell_to_parent(cell, resolution if resolution is not None else self.region_resolution)

    def boundary_polygon(self, cell):
        """Cell outline as [(lat, lng), ...] (not closed)."""
        return [tuple(p) for p in h3.cell_to_boundary(cell)]

    def cell_center(self, cell):
        return tuple(h3.cell_to_latlng(cell))

    def is_valid_cell(self, cell, resolution=None):
        if not isinstance(cell, str) or not h3.is_valid_cell(cell):
            return False
        if resolution is None:
            return True
        return h3.get_resolution(cell) == resolution

    def are_adjacent(self, cell_a, cell_b):
        try:
            return h3.are_neighbor_cells(cell_a, cell_b)
        except h3.H3BaseException:
            return False

    def line_cells(self, cell_a, cell_b):
        """
        Connected cells from cell_a to cell_b inclusive.
        Falls back to just the endpoints when H3 cannot trace the line
        (pentagon distortion, too far apart, mixed resolutions).
        """
        if cell_a == cell_b:
            return [cell_a]
        try:
            return list(h3.grid_path_cells(cell_a, cell_b))
        except h3.H3BaseException as e:
            logger.warning(f"line_cells fallback {cell_a} -> {cell_b}: {e}")
            return [cell_a, cell_b]

    def fill_polygon(self, points, resolution=None):
        """
        Every cell whose centre lies inside the ring formed by points.

        Args:
            points: [(lat, lng), ...], closed or not
            resolution: defaults to the game resolution

        Returns:
            list of cells; empty for degenerate rings
        """
        resolution = resolution if resolution is not None else self.resolution
        poly = ring_to_polygon(points)
        if poly is None:
            logger.warning(f"fill_polygon: degenerate ring of {len(points)} points, nothing to fill")
            return []

        try:
            return list(h3.geo_to_cells(poly, resolution))
        except h3.H3BaseException as e:
            logger.warning(f"fill_polygon error: {e}")
            return []
