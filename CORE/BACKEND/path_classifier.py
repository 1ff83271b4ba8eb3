"""
Turns a raw GPS path into the set of cells it claims.

    points -> cells -> collapse consecutive duplicates -> classify
        single_hex   one cell after collapsing
        closed_loop  first/last cell equal or adjacent; interior filled
        open_path    gaps between samples traced cell by cell
"""
import logging
from dataclasses import dataclass

from .errors import InvalidInput
from .models import PathType, is_valid_coordinate

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    path_type: str
    cell_path: list
    claimed_cells: list
    boundary_count: int
    interior_count: int


def collapse_consecutive_duplicates(cells):
    """Drop cells equal to their predecessor (GPS jitter while standing still)."""
    collapsed = []
    for cell in cells:
        if not collapsed or collapsed[-1] != cell:
            collapsed.append(cell)
    return collapsed


def unique_in_order(cells):
    seen = set()
    ordered = []
    for cell in cells:
        if cell not in seen:
            seen.add(cell)
            ordered.append(cell)
    return ordered


def is_closed_loop(grid, cell_path, min_loop_size=3):
    """
    A path closes when its first and last cells are the same cell or direct
    neighbours. Only one ring of adjacency is checked; a two-cell gap is an
    open path.
    """
    if len(cell_path) < min_loop_size + 1:
        return False
    first, last = cell_path[0], cell_path[-1]
    if first == last:
        return True
    return grid.are_adjacent(first, last)


class PathClassifier:
    def __init__(self, grid, max_points=500, max_fill_cells=50000):
        self.grid = grid
        self.max_points = max_points
        self.max_fill_cells = max_fill_cells

    def validate(self, path_input):
        """Raise InvalidInput for anything that must not reach storage."""
        points = path_input.points
        if not points:
            raise InvalidInput("Path cannot be empty")
        if len(points) > self.max_points:
            raise InvalidInput(f"Path has too many points (max {self.max_points})")
        for lat, lng in points:
            if not is_valid_coordinate(lat, lng):
                raise InvalidInput("Invalid coordinates")
        if path_input.options.min_loop_size < 1:
            raise InvalidInput("options.minLoopSize must be at least 1")

    def to_cell_path(self, points):
        cells = [self.grid.cell_for_point(lat, lng) for lat, lng in points]
        return collapse_consecutive_duplicates(cells)

    def classify(self, path_input):
        """
        Classify a validated PathInput.

        Returns:
            Classification with the claimed cells ordered boundary first
        """
        self.validate(path_input)
        cell_path = self.to_cell_path(path_input.points)
        options = path_input.options

        if len(cell_path) == 1:
            return Classification(
                path_type=PathType.SINGLE_HEX,
                cell_path=cell_path,
                claimed_cells=list(cell_path),
                boundary_count=1,
                interior_count=0,
            )

        if options.auto_close and is_closed_loop(self.grid, cell_path, options.min_loop_size):
            return self._classify_loop(path_input.points, cell_path)

        return self._classify_open_path(cell_path)

    def _classify_loop(self, points, cell_path):
        boundary = unique_in_order(cell_path)
        boundary_set = set(boundary)

        # Raw coordinates give a tighter ring than cell centres
        filled = self.grid.fill_polygon(points)
        if len(filled) > self.max_fill_cells:
            raise InvalidInput(f"Loop encloses too many cells (max {self.max_fill_cells})")
        interior = sorted(set(filled) - boundary_set)

        if not interior:
            logger.warning(
                f"Loop of {len(boundary)} cells encloses no interior cells, "
                f"capturing boundary only"
            )

        return Classification(
            path_type=PathType.CLOSED_LOOP,
            cell_path=cell_path,
            claimed_cells=boundary + interior,
            boundary_count=len(boundary),
            interior_count=len(interior),
        )

    def _classify_open_path(self, cell_path):
        traced = []
        for current, following in zip(cell_path, cell_path[1:]):
            traced.extend(self.grid.line_cells(current, following))
        claimed = unique_in_order(traced)

        return Classification(
            path_type=PathType.OPEN_PATH,
            cell_path=cell_path,
            claimed_cells=claimed,
            boundary_count=len(claimed),
            interior_count=0,
        )
