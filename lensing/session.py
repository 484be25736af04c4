# session.py
import logging
from collections import Counter

import numpy as np
import pandas as pd
from tqdm import tqdm

from . import vectors as vec
from .blackhole import BlackHole, Camera
from .constants import MAGENTA
from .errors import LensingError
from .integrators import AdaptiveStep, DeflectionField, make_integrator
from .particles import generate_disk_particles, simulate_particles
from .raytracing import RayTracer, TraceResult, FAILED, STATUSES
from .shading import DiskShader, VolumeShader, make_background
from .voxels import VoxelGrid


class RenderResult:
    """
    One rendered frame.
    image: (height, width, 3) uint8 RGB buffer
    statuses: (height, width) array of termination statuses
    rows: per-pixel diagnostic records
    trajectories: {(i, j): (N, 3) path} for the sampled pixels
    """
    def __init__(self, frame_index, image, statuses, rows, trajectories=None):
        self.frame_index = frame_index
        self.image = image
        self.statuses = statuses
        self.rows = rows
        self.trajectories = trajectories or {}

    def to_dataframe(self):
        return pd.DataFrame(self.rows, columns=[
            'i', 'j', 'status', 'steps', 'disk_intersections', 'final_r', 'error'])

    def summary(self):
        counts = Counter(self.statuses.ravel().tolist())
        return {status: counts.get(status, 0) for status in STATUSES}

    def mask(self, status):
        return self.statuses == status

    def failures(self):
        return [row for row in self.rows if row['status'] == FAILED]

    def trajectories_dataframe(self):
        rows = []
        for ray_id, ((i, j), path) in enumerate(sorted(self.trajectories.items())):
            for point_idx, (x, y, z) in enumerate(path):
                rows.append({'ray_id': ray_id, 'i': i, 'j': j, 'point_idx': point_idx,
                             'x': x, 'y': y, 'z': z})
        return pd.DataFrame(rows, columns=['ray_id', 'i', 'j', 'point_idx', 'x', 'y', 'z'])


class RenderSession:
    """
    Owns one scene: body, camera, disk particles, voxel grid and ray tracer.

    A frame is two phases: ``advance(dt)`` moves the particles and rebuilds
    the grid, then ``render_frame()`` traces every pixel against that frozen
    grid. Setup errors (InvalidSceneConfigurationError) are raised from the
    constructor before anything is rendered.
    """
    def __init__(self, config, rng=None):
        self.config = config.validate()
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

        self.body = BlackHole(config.mass, config.body_position, config.spin)
        self.camera = Camera(config.camera_position, config.look_at, config.up,
                             config.fov_radians, config.resolved_aspect_ratio)
        rs = self.body.rs
        self.inner_radius, self.outer_radius = config.disk_radii(rs)
        logging.info(f"Schwarzschild radius: {rs:.6g} m; disk {self.inner_radius:.6g}-{self.outer_radius:.6g} m")

        self.particles = generate_disk_particles(self.body, config, self.rng)
        self.grid = VoxelGrid(config.grid_resolution, config.grid_physical_size(rs),
                              center=self.body.position)
        self.grid.rebuild(self.particles)

        self.field = DeflectionField(self.body, config.influence_radius(rs))
        camera_distance = vec.distance(self.camera.position, self.body.position)
        self.escape_radius = config.escape_radius_factor * camera_distance

        disk_shader = DiskShader(
            self.body, self.inner_radius, self.outer_radius, config.doppler_exponent,
            grid=self.grid if self.particles else None,
            source=config.disk_color_source, colormap=config.colormap)
        volume_shader = VolumeShader(
            self.grid, config.doppler_exponent,
            emission_scale=config.emission_scale,
            emission_threshold=config.emission_threshold,
            absorption_temperature_scale=config.absorption_temperature_scale,
            absorption_count_scale=config.absorption_count_scale,
            transmittance_scale=config.transmittance_scale,
            background_intensity=config.background_intensity,
            tone_scale=config.tone_scale)
        self.tracer = RayTracer(
            self.body,
            make_integrator(config.integrator, self.field),
            AdaptiveStep.from_config(config, rs),
            escape_radius=self.escape_radius,
            max_steps=config.max_steps,
            mode=config.render_mode,
            disk_shader=disk_shader,
            volume_shader=volume_shader,
            background=make_background(config.background),
            max_disk_intersections=config.max_disk_intersections)

        self.frame_index = 0
        self.time = 0.0
        self._cancelled = False
        self._closed = False

    # ------------------------------------------------------------------ #
    def _check_open(self):
        if self._closed:
            raise RuntimeError("render session is closed")

    def advance(self, dt):
        """Phase 1: tick every particle by ``dt`` and rebuild the voxel grid."""
        self._check_open()
        self.particles = simulate_particles(self.particles, dt)
        self.grid.rebuild(self.particles)
        self.time += dt
        logging.debug(f"Advanced to t={self.time:g} s; {self.grid.occupied_cells} occupied voxels")

    def render_pixel(self, x, y, record_path=False):
        """
        Trace the ray through pixel (x, y). A per-pixel failure is logged and
        returned as a FAILED result in magenta; it never propagates.
        """
        ray = self.camera.generate_ray(x, y, self.config.width, self.config.height)
        try:
            return self.tracer.trace(ray, record_path=record_path), None
        except (LensingError, ArithmeticError) as e:
            logging.warning(f"Pixel ({x}, {y}) failed: {e}")
            return TraceResult(MAGENTA, FAILED, 0, 0, ray.origin, None), str(e)

    def render_frame(self, n_samples=0, progress=True):
        """Phase 2: trace every pixel and composite the frame buffer."""
        self._check_open()
        w, h = int(self.config.width), int(self.config.height)
        image = np.zeros((h, w, 3), dtype=np.uint8)
        statuses = np.empty((h, w), dtype=object)
        rows = []
        trajectories = {}

        sampled = set()
        n_samples = min(n_samples, w * h)
        while len(sampled) < n_samples:
            sampled.add((int(self.rng.integers(h)), int(self.rng.integers(w))))

        rs = self.body.rs
        for i in tqdm(range(h), desc=f"Tracing rows ({self.config.render_mode})", unit="row", disable=not progress):
            for j in range(w):
                record = (i, j) in sampled
                result, error = self.render_pixel(j, i, record_path=record)
                image[i, j] = result.color
                statuses[i, j] = result.status
                final_r = vec.distance(result.final_position, self.body.position)
                rows.append({'i': i, 'j': j, 'status': result.status, 'steps': result.steps,
                             'disk_intersections': result.disk_intersections,
                             'final_r': final_r / rs, 'error': error})
                if record and result.path is not None:
                    trajectories[(i, j)] = result.path

        frame = RenderResult(self.frame_index, image, statuses, rows, trajectories)
        self.frame_index += 1
        summary = frame.summary()
        logging.info(
            f"Frame {frame.frame_index}: {summary['absorbed']} absorbed, {summary['escaped']} escaped, "
            f"{summary['disk']} disk, {summary['step_budget_exceeded']} unresolved, {summary['failed']} failed")
        return frame

    def render_sequence(self, frames, dt, sink=None, n_samples=0, progress=True):
        """
        Render ``frames`` frames, advancing the simulation by ``dt`` between
        them. ``sink(result)`` receives every frame. ``cancel()`` stops
        the sequence before the next frame starts. Returns the number of
        frames rendered.
        """
        rendered = 0
        for k in range(frames):
            if k > 0:
                self.advance(dt)
            if self._cancelled:
                logging.info(f"Render cancelled after {rendered} frames")
                break
            result = self.render_frame(n_samples=n_samples, progress=progress)
            if sink is not None:
                sink(result)
            rendered += 1
        return rendered

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self):
        return self._cancelled

    def close(self):
        self.particles = []
        self.grid = None
        self.tracer = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
