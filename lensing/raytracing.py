# raytracing.py
"""
Per-ray integrator.

Every ray runs the same loop: measure the distance to the body, pick an
adaptive step, test the termination conditions in priority order
(absorbed, step budget, escaped, disk hit) and advance with the configured
stepping strategy. The render mode only decides what is accumulated along
the way (``SurfaceAccumulator`` or ``VolumeAccumulator``).
"""
import math
from collections import namedtuple

import numpy as np

from . import vectors as vec
from .constants import BLACK
from .errors import NumericalInstabilityError, StepBudgetExceeded
from .shading import to_rgb
from .voxels import OUT_OF_GRID

ABSORBED = 'absorbed'
ESCAPED = 'escaped'
DISK = 'disk'
STEP_BUDGET_EXCEEDED = 'step_budget_exceeded'
FAILED = 'failed'

STATUSES = (ABSORBED, ESCAPED, DISK, STEP_BUDGET_EXCEEDED, FAILED)

SURFACE = 'surface'
VOLUMETRIC = 'volumetric'
RENDER_MODES = (SURFACE, VOLUMETRIC)

TraceResult = namedtuple(
    'TraceResult', ['color', 'status', 'steps', 'disk_intersections', 'final_position', 'path'])


def plane_crossing(prev_origin, origin, plane_z):
    """Point where the segment prev_origin -> origin crosses z = plane_z, or None."""
    a = prev_origin[2] - plane_z
    b = origin[2] - plane_z
    if (a > 0) == (b > 0):
        return None
    t = a / (a - b)
    return prev_origin + (origin - prev_origin) * t


class SurfaceAccumulator:
    """Stops at a disk crossing once colour is found, or after ``max_intersections``."""
    def __init__(self, shader, background, max_intersections=2):
        self.shader = shader
        self.background = background
        self.max_intersections = max_intersections
        self.color = np.zeros(3)
        self.intersections = 0

    def step_limit(self, origin):
        return None

    def on_step(self, prev_origin, origin, direction):
        if prev_origin is None or self.shader is None:
            return False
        point = plane_crossing(prev_origin, origin, self.shader.body.position[2])
        if point is None:
            return False
        if not self.shader.in_band(vec.distance(point, self.shader.body.position)):
            return False
        self.intersections += 1
        self.color = np.clip(self.color + self.shader.shade(point, direction), 0.0, 255.0)
        return self.intersections >= self.max_intersections or bool(np.any(self.color > 0))

    def finish(self, status, direction):
        if status == ABSORBED:
            return BLACK
        if status == DISK:
            return to_rgb(self.color)
        return self.background(direction)


class VolumeAccumulator:
    """Integrates emission and absorption through the voxel grid; never stops a ray."""
    def __init__(self, shader):
        self.shader = shader
        self.emission = 0.0
        self.absorption = 0.0
        self.intersections = 0
        self._prev_index = OUT_OF_GRID

    def step_limit(self, origin):
        """Inside the grid a step never spans more than one voxel."""
        grid = self.shader.grid
        if grid.contains(origin):
            return grid.voxel_size
        return None

    def on_step(self, prev_origin, origin, direction):
        grid = self.shader.grid
        index = grid.index_of(origin)
        if index != self._prev_index and index != OUT_OF_GRID:
            emission, absorption = self.shader.contribution(grid.cell_at(index), direction)
            self.emission += emission
            self.absorption += absorption
        self._prev_index = index
        return False

    def finish(self, status, direction):
        if status == ABSORBED:
            return BLACK
        return to_rgb(self.shader.compose(self.emission, self.absorption))


class RayTracer:
    """
    Marches rays through the deflection field of ``body``.

    integrator: stepping strategy with ``advance(origin, direction, step)``
    step_rule: callable distance -> step size (see integrators.AdaptiveStep)
    escape_radius: rays farther than this and moving outward have escaped
    mode: 'surface' (disk_shader + background) or 'volumetric' (volume_shader)
    """
    def __init__(self, body, integrator, step_rule, escape_radius, max_steps,
                 mode=SURFACE, disk_shader=None, volume_shader=None, background=None,
                 max_disk_intersections=2):
        if mode not in RENDER_MODES:
            raise ValueError(f"unknown render mode {mode!r}")
        if mode == VOLUMETRIC and volume_shader is None:
            raise ValueError("volumetric mode needs a volume shader")
        self.body = body
        self.integrator = integrator
        self.step_rule = step_rule
        self.escape_radius = escape_radius
        self.max_steps = max_steps
        self.mode = mode
        self.disk_shader = disk_shader
        self.volume_shader = volume_shader
        self.background = background or (lambda direction: BLACK)
        self.max_disk_intersections = max_disk_intersections

    def _accumulator(self):
        if self.mode == VOLUMETRIC:
            return VolumeAccumulator(self.volume_shader)
        return SurfaceAccumulator(self.disk_shader, self.background, self.max_disk_intersections)

    def trace(self, ray, record_path=False, strict=False):
        """
        Integrate ``ray`` until it terminates; the ray is left at its final
        state. Raises NumericalInstabilityError if the distance to the body
        stops being finite. With ``strict`` an exhausted step budget raises
        StepBudgetExceeded instead of returning that status.
        """
        body_position = self.body.position
        rs = self.body.rs
        acc = self._accumulator()
        origin = ray.origin.copy()
        direction = ray.direction.copy()
        path = [origin] if record_path else None
        prev_origin = None
        steps = 0

        while True:
            offset = origin - body_position
            distance = vec.magnitude(offset)
            if not math.isfinite(distance):
                raise NumericalInstabilityError(
                    f"non-finite distance after {steps} steps (origin={origin.tolist()})")
            step = self.step_rule(distance)
            limit = acc.step_limit(origin)
            if limit is not None:
                step = min(step, limit)

            if distance < rs:
                status = ABSORBED
                break
            if steps >= self.max_steps:
                if strict:
                    raise StepBudgetExceeded(steps)
                status = STEP_BUDGET_EXCEEDED
                break
            if distance > self.escape_radius and vec.dot(offset, direction) > 0:
                status = ESCAPED
                break
            if acc.on_step(prev_origin, origin, direction):
                status = DISK
                break

            prev_origin = origin
            origin, direction = self.integrator.advance(origin, direction, step)
            steps += 1
            if record_path:
                path.append(origin)

        ray.origin = origin
        ray.direction = direction
        return TraceResult(
            color=acc.finish(status, direction),
            status=status,
            steps=steps,
            disk_intersections=acc.intersections,
            final_position=origin,
            path=np.array(path) if record_path else None,
        )
