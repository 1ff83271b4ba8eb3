"""
Tests for the H3 grid index.
"""
import h3
import pytest

from CORE.BACKEND.h3_grid import H3Grid

LONDON = (51.5074, -0.1278)


@pytest.fixture
def grid():
    return H3Grid(resolution=11, region_resolution=4)


class TestH3Grid:
    def test_region_resolution_must_be_coarser(self):
        with pytest.raises(ValueError):
            H3Grid(resolution=4, region_resolution=11)

    def test_cell_for_point_is_deterministic(self, grid):
        a = grid.cell_for_point(*LONDON)
        b = grid.cell_for_point(*LONDON)
        assert a == b
        assert h3.get_resolution(a) == 11

    def test_parent_is_region_resolution(self, grid):
        cell = grid.cell_for_point(*LONDON)
        region = grid.parent_cell(cell)
        assert h3.get_resolution(region) == 4
        assert grid.is_valid_cell(region, 4)
        assert not grid.is_valid_cell(region, 11)

    def test_is_valid_cell(self, grid):
        assert grid.is_valid_cell(grid.cell_for_point(*LONDON), 11)
        assert not grid.is_valid_cell("not-a-cell")
        assert not grid.is_valid_cell(None)

    def test_adjacency(self, grid):
        cell = grid.cell_for_point(*LONDON)
        neighbours = [c for c in h3.grid_ring(cell, 1)]
        assert neighbours
        assert all(grid.are_adjacent(cell, n) for n in neighbours)
        assert not grid.are_adjacent(cell, cell)

    def test_line_cells_connects_endpoints(self, grid):
        a = grid.cell_for_point(*LONDON)
        b = grid.cell_for_point(LONDON[0] + 0.002, LONDON[1] + 0.002)
        line = grid.line_cells(a, b)
        assert line[0] == a
        assert line[-1] == b
        for current, following in zip(line, line[1:]):
            assert grid.are_adjacent(current, following)

    def test_line_cells_same_cell(self, grid):
        a = grid.cell_for_point(*LONDON)
        assert grid.line_cells(a, a) == [a]

    def test_line_cells_falls_back_on_mixed_resolution(self, grid):
        a = grid.cell_for_point(*LONDON)
        b = grid.cell_for_point(*LONDON, resolution=9)
        assert grid.line_cells(a, b) == [a, b]

    def test_fill_polygon_contains_centre(self, grid):
        lat, lng = LONDON
        d = 0.005
        ring = [(lat - d, lng - d), (lat - d, lng + d), (lat + d, lng + d), (lat + d, lng - d)]
        cells = grid.fill_polygon(ring)
        assert grid.cell_for_point(lat, lng) in cells
        assert all(h3.get_resolution(c) == 11 for c in cells)

    def test_fill_degenerate_ring_is_empty(self, grid):
        lat, lng = LONDON
        assert grid.fill_polygon([(lat, lng), (lat + 0.001, lng)]) == []
        assert grid.fill_polygon([(lat, lng), (lat + 0.001, lng), (lat + 0.002, lng)]) == []

    def test_boundary_and_center(self, grid):
        cell = grid.cell_for_point(*LONDON)
        assert len(grid.boundary_polygon(cell)) == 6
        lat, lng = grid.cell_center(cell)
        assert grid.cell_for_point(lat, lng) == cell
