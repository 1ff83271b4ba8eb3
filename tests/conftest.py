"""
Pytest fixtures for territory engine tests.
"""
import sys
import os
import math
import re
import pytest

# Add project root to path for imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from shapely.geometry import Point  # noqa: E402

from CORE.BACKEND.document_store import MemoryDocumentStore  # noqa: E402
from CORE.BACKEND.geometry_utils import ring_to_polygon  # noqa: E402
from CORE.BACKEND.notifier import RealtimeNotifier  # noqa: E402
from CORE.BACKEND.settings import EngineSettings  # noqa: E402
from CORE.BACKEND.territory_engine import TerritoryEngine  # noqa: E402


CELL_RE = re.compile(r'^-?\d+:-?\d+$')
REGION_RE = re.compile(r'^R-?\d+:-?\d+$')


class SquareGrid:
    """
    Square grid with the same interface as H3Grid, for exact geometry in tests.

    Cell "r:c" covers lat [r*size, (r+1)*size) and lng [c*size, (c+1)*size).
    Region "Rr:c" groups region_span x region_span cells.
    Neighbours include diagonals.
    """

    def __init__(self, size=1.0, region_span=10):
        self.size = size
        self.region_span = region_span
        self.resolution = 11
        self.region_resolution = 4

    @staticmethod
    def _rc(cell):
        r, c = cell.lstrip('R').split(':')
        return int(r), int(c)

    def cell_for_point(self, lat, lng, resolution=None):
        return f"{math.floor(lat / self.size)}:{math.floor(lng / self.size)}"

    def parent_cell(self, cell, resolution=None):
        r, c = self._rc(cell)
        return f"R{r // self.region_span}:{c // self.region_span}"

    def boundary_polygon(self, cell):
        r, c = self._rc(cell)
        s = self.size
        return [(r * s, c * s), (r * s, (c + 1) * s), ((r + 1) * s, (c + 1) * s), ((r + 1) * s, c * s)]

    def cell_center(self, cell):
        r, c = self._rc(cell)
        return ((r + 0.5) * self.size, (c + 0.5) * self.size)

    def is_valid_cell(self, cell, resolution=None):
        if not isinstance(cell, str):
            return False
        if resolution == self.region_resolution:
            return bool(REGION_RE.match(cell))
        return bool(CELL_RE.match(cell))

    def are_adjacent(self, cell_a, cell_b):
        (ra, ca), (rb, cb) = self._rc(cell_a), self._rc(cell_b)
        return max(abs(ra - rb), abs(ca - cb)) == 1

    def line_cells(self, cell_a, cell_b):
        (ra, ca), (rb, cb) = self._rc(cell_a), self._rc(cell_b)
        steps = max(abs(ra - rb), abs(ca - cb))
        if steps == 0:
            return [cell_a]
        return [
            f"{round(ra + (rb - ra) * i / steps)}:{round(ca + (cb - ca) * i / steps)}"
            for i in range(steps + 1)
        ]

    def fill_polygon(self, points, resolution=None):
        poly = ring_to_polygon(points)
        if poly is None:
            return []
        min_lng, min_lat, max_lng, max_lat = poly.bounds
        cells = []
        for r in range(math.floor(min_lat / self.size), math.floor(max_lat / self.size) + 1):
            for c in range(math.floor(min_lng / self.size), math.floor(max_lng / self.size) + 1):
                cell = f"{r}:{c}"
                lat, lng = self.cell_center(cell)
                if poly.contains(Point(lng, lat)):
                    cells.append(cell)
        return cells


class RecordingNotifier(RealtimeNotifier):
    def __init__(self):
        self.events = []

    def on_capture_applied(self, result, stats=None):
        self.events.append((result, stats))


# Diamond of 4 boundary cells around the single interior cell "1:1"
SQUARE_LOOP = [[0.5, 1.5], [1.5, 0.5], [2.5, 1.5], [1.5, 2.5], [0.5, 1.5]]

# Ten samples two cells apart in both axes, alternating columns
ZIGZAG_PATH = [[0.5 + 2 * i, 0.5 if i % 2 == 0 else 2.5] for i in range(10)]


@pytest.fixture
def square_grid():
    return SquareGrid()


@pytest.fixture
def memory_store():
    return MemoryDocumentStore()


@pytest.fixture
def settings():
    return EngineSettings(storage_backend='memory')


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(settings, memory_store, square_grid, notifier):
    """Engine on the square grid with in-memory storage."""
    return TerritoryEngine(settings=settings, store=memory_store, grid=square_grid, notifier=notifier)


@pytest.fixture
def mock_env(monkeypatch):
    """Set up common environment variables for testing."""
    monkeypatch.setenv("SERVER_PORT", "8000")
    monkeypatch.setenv("REDIS_HOST", "localhost")
    monkeypatch.setenv("REDIS_PORT", "6379")


@pytest.fixture
def project_root():
    """Return path to project root."""
    return PROJECT_ROOT
