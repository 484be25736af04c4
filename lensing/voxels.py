# voxels.py
import logging
import math
from collections import namedtuple

import numpy as np
from numba import njit

from .errors import GridIndexOutOfBoundsError
from .particles import particle_arrays

logging.getLogger('numba').setLevel(logging.ERROR)

OUT_OF_GRID = -1


class VoxelCell(namedtuple('VoxelCell', ['count', 'velocity_sum', 'temperature_sum', 'in_grid'])):
    """Aggregate record of one voxel.

    count == 0 means no contribution; ``in_grid`` tells an empty cell inside
    the cube apart from a position outside it.
    """
    __slots__ = ()

    def average_velocity(self):
        if self.count == 0:
            return np.zeros(3)
        return self.velocity_sum / self.count

    def mean_temperature(self):
        if self.count == 0:
            return 0.0
        return self.temperature_sum / self.count


EMPTY_CELL = VoxelCell(0, np.zeros(3), 0.0, True)
OUTSIDE_CELL = VoxelCell(0, np.zeros(3), 0.0, False)
for _arr in (EMPTY_CELL.velocity_sum, OUTSIDE_CELL.velocity_sum):
    _arr.flags.writeable = False


@njit
def _bin_positions(positions, origin, inv_voxel_size, resolution, out):
    """Linear voxel index for each row of ``positions``; OUT_OF_GRID (-1) when outside."""
    for n in range(positions.shape[0]):
        vx = math.floor((positions[n, 0] - origin[0]) * inv_voxel_size)
        vy = math.floor((positions[n, 1] - origin[1]) * inv_voxel_size)
        vz = math.floor((positions[n, 2] - origin[2]) * inv_voxel_size)
        if (vx < 0 or vx >= resolution or vy < 0 or vy >= resolution
                or vz < 0 or vz >= resolution):
            out[n] = -1
        else:
            out[n] = vx + vy * resolution + vz * resolution * resolution
    return out


class VoxelGrid:
    """
    Uniform cubic grid of ``resolution``^3 cells centred on ``center``.

    Cell statistics live in flat arrays indexed by
    ``vx + vy*resolution + vz*resolution**2``. ``rebuild`` replaces all of
    them, so nothing survives from the previous frame.
    """
    def __init__(self, resolution, physical_size, center=(0.0, 0.0, 0.0)):
        if resolution <= 0:
            raise ValueError(f"grid resolution must be positive, got {resolution}")
        if not physical_size > 0:
            raise ValueError(f"grid size must be positive, got {physical_size}")
        self.resolution = int(resolution)
        self.physical_size = float(physical_size)
        self.voxel_size = self.physical_size / self.resolution
        self.center = np.array(center, dtype=np.float64)
        self.origin = self.center - self.physical_size / 2.0
        self._inv_voxel_size = 1.0 / self.voxel_size
        self.n_cells = self.resolution ** 3
        self._clear()

    def _clear(self):
        self.counts = np.zeros(self.n_cells, dtype=np.int64)
        self.velocity_sums = np.zeros((self.n_cells, 3), dtype=np.float64)
        self.temperature_sums = np.zeros(self.n_cells, dtype=np.float64)

    def voxel_coords(self, position):
        """Per-axis integer indices (may lie outside [0, resolution))."""
        return tuple(
            math.floor((position[axis] - self.origin[axis]) * self._inv_voxel_size)
            for axis in range(3)
        )

    def index_of(self, position):
        """Linear cell index of ``position``, or OUT_OF_GRID."""
        vx, vy, vz = self.voxel_coords(position)
        r = self.resolution
        if not (0 <= vx < r and 0 <= vy < r and 0 <= vz < r):
            return OUT_OF_GRID
        return vx + vy * r + vz * r * r

    def indices_of(self, positions):
        positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        out = np.empty(positions.shape[0], dtype=np.int64)
        return _bin_positions(positions, self.origin, self._inv_voxel_size, self.resolution, out)

    def rebuild(self, particles):
        """Clear every cell and re-bin ``particles`` (a list of Particle)."""
        positions, velocities, temperatures = particle_arrays(particles)
        self.rebuild_from_arrays(positions, velocities, temperatures)

    def rebuild_from_arrays(self, positions, velocities, temperatures):
        self._clear()
        if len(positions) == 0:
            return
        idx = self.indices_of(positions)
        inside = idx != OUT_OF_GRID
        idx = idx[inside]
        n = self.n_cells
        self.counts = np.bincount(idx, minlength=n).astype(np.int64)
        self.temperature_sums = np.bincount(idx, weights=np.asarray(temperatures)[inside], minlength=n)
        velocities = np.asarray(velocities)[inside]
        self.velocity_sums = np.stack(
            [np.bincount(idx, weights=velocities[:, k], minlength=n) for k in range(3)], axis=1)
        dropped = len(inside) - len(idx)
        if dropped:
            logging.debug(f"{dropped} particles outside the voxel grid")

    def cell(self, vx, vy, vz):
        """Strict accessor by per-axis index; raises GridIndexOutOfBoundsError."""
        r = self.resolution
        if not (0 <= vx < r and 0 <= vy < r and 0 <= vz < r):
            raise GridIndexOutOfBoundsError(f"voxel ({vx}, {vy}, {vz}) outside a {r}^3 grid")
        return self.cell_at(vx + vy * r + vz * r * r)

    def cell_at(self, index):
        if index == OUT_OF_GRID:
            return OUTSIDE_CELL
        count = int(self.counts[index])
        if count == 0:
            return EMPTY_CELL
        return VoxelCell(count, self.velocity_sums[index].copy(),
                         float(self.temperature_sums[index]), True)

    def sample(self, position):
        return self.cell_at(self.index_of(position))

    def contains(self, position):
        return self.index_of(position) != OUT_OF_GRID

    @property
    def occupied_cells(self):
        return int(np.count_nonzero(self.counts))

    @property
    def total_count(self):
        return int(self.counts.sum())
