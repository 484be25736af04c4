import numpy as np
import pytest

from lensing.errors import GridIndexOutOfBoundsError
from lensing.voxels import EMPTY_CELL, OUT_OF_GRID, OUTSIDE_CELL, VoxelGrid


def make_grid():
    # 10^3 cells of 1 m, spanning [-5, 5) on every axis
    return VoxelGrid(10, 10.0)


def test_index_of_inside_and_outside():
    grid = make_grid()
    assert grid.index_of((0.5, 0.5, 0.5)) == 5 + 5 * 10 + 5 * 100
    assert grid.index_of((-5.0, -5.0, -5.0)) == 0
    assert grid.index_of((100.0, 0.0, 0.0)) == OUT_OF_GRID
    assert grid.index_of((0.0, 0.0, 5.0)) == OUT_OF_GRID
    assert grid.contains((4.9, 4.9, 4.9))
    assert not grid.contains((-5.1, 0.0, 0.0))


def test_empty_and_out_of_grid_are_distinguishable():
    grid = make_grid()
    inside = grid.sample((0.0, 0.0, 0.0))
    outside = grid.sample((50.0, 0.0, 0.0))
    assert inside.count == 0 and inside.in_grid
    assert outside.count == 0 and not outside.in_grid
    assert inside is EMPTY_CELL
    assert outside is OUTSIDE_CELL


def test_rebuild_aggregates_particles():
    grid = make_grid()
    positions = np.array([[0.2, 0.2, 0.2], [0.7, 0.1, 0.9], [3.5, -2.5, 0.0]])
    velocities = np.array([[1.0, 0.0, 0.0], [3.0, 0.0, 0.0], [0.0, 5.0, 0.0]])
    temperatures = np.array([0.2, 0.6, 1.0])
    grid.rebuild_from_arrays(positions, velocities, temperatures)
    cell = grid.sample((0.5, 0.5, 0.5))
    assert cell.count == 2
    assert np.allclose(cell.average_velocity(), [2.0, 0.0, 0.0])
    assert cell.mean_temperature() == pytest.approx(0.4)
    assert grid.total_count == 3
    assert grid.occupied_cells == 2


def test_particles_outside_the_grid_are_ignored():
    grid = make_grid()
    positions = np.array([[0.5, 0.5, 0.5], [20.0, 0.0, 0.0]])
    grid.rebuild_from_arrays(positions, np.zeros((2, 3)), np.ones(2))
    assert grid.total_count == 1


def test_rebuild_is_idempotent_and_does_not_leak():
    grid = make_grid()
    positions = np.array([[1.5, 1.5, 1.5], [-2.5, 0.5, 3.5]])
    velocities = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    temperatures = np.array([0.5, 0.25])
    grid.rebuild_from_arrays(positions, velocities, temperatures)
    counts, vsums, tsums = grid.counts.copy(), grid.velocity_sums.copy(), grid.temperature_sums.copy()
    grid.rebuild_from_arrays(positions, velocities, temperatures)
    assert np.array_equal(grid.counts, counts)
    assert np.array_equal(grid.velocity_sums, vsums)
    assert np.array_equal(grid.temperature_sums, tsums)

    grid.rebuild_from_arrays(np.array([[-4.5, -4.5, -4.5]]), np.zeros((1, 3)), np.ones(1))
    assert grid.sample((1.5, 1.5, 1.5)).count == 0
    assert grid.total_count == 1

    grid.rebuild([])
    assert grid.total_count == 0


def test_compiled_binning_matches_scalar_lookup():
    grid = make_grid()
    rng = np.random.default_rng(1)
    positions = rng.uniform(-7.0, 7.0, size=(200, 3))
    indices = grid.indices_of(positions)
    assert [int(i) for i in indices] == [grid.index_of(p) for p in positions]


def test_strict_cell_accessor_raises_out_of_bounds():
    grid = make_grid()
    assert grid.cell(0, 0, 0).in_grid
    with pytest.raises(GridIndexOutOfBoundsError):
        grid.cell(10, 0, 0)
    with pytest.raises(IndexError):
        grid.cell(0, -1, 0)


def test_grid_centre_offsets_cells():
    grid = VoxelGrid(4, 8.0, center=(100.0, 0.0, 0.0))
    assert grid.contains((100.0, 0.0, 0.0))
    assert not grid.contains((0.0, 0.0, 0.0))
    assert grid.voxel_size == 2.0


def test_empty_cell_averages_are_zero():
    assert np.all(EMPTY_CELL.average_velocity() == 0.0)
    assert EMPTY_CELL.mean_temperature() == 0.0
