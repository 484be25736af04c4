# shading.py
import math

import matplotlib
import numpy as np
from einsteinpy.coordinates.utils import cartesian_to_spherical_fast

from . import vectors as vec
from .constants import C, BLACK, WHITE
from .particles import Particle, gaussian_falloff

BETA_LIMIT = 0.99
CHECKER_CELLS = 250


def clamp_beta(beta):
    return max(-BETA_LIMIT, min(beta, BETA_LIMIT))


def doppler_factor(beta, exponent):
    """
    ((1 + beta) / (1 - beta)) ** (exponent / 2), with beta clamped to
    [-0.99, 0.99]. Positive beta (matter moving towards the viewer) brightens.
    """
    beta = clamp_beta(beta)
    return ((1.0 + beta) / (1.0 - beta)) ** (exponent / 2.0)


def line_of_sight_beta(velocity, direction_to_camera):
    return vec.dot(velocity, direction_to_camera) / C


def clamp_color(color):
    return np.clip(np.asarray(color, dtype=np.float64), 0.0, 255.0)


def to_rgb(color):
    """Float colour -> tuple of ints in [0, 255]."""
    r, g, b = clamp_color(color)
    return int(r), int(g), int(b)


class DiskShader:
    """
    Colour of the disk where a ray crosses the orbital plane.

    source='grid' reads the voxel cell at the crossing point (mean
    temperature, averaged velocity); an empty cell contributes nothing.
    source='analytic' (also used when no grid exists) evaluates the
    temperature falloff at the crossing radius and takes the velocity of a
    freshly constructed orbiting particle there.
    """
    def __init__(self, body, inner_radius, outer_radius, doppler_exponent,
                 grid=None, source='grid', colormap='afmhot'):
        if source not in ('grid', 'analytic'):
            raise ValueError(f"unknown disk colour source {source!r}")
        self.body = body
        self.inner_radius = inner_radius
        self.outer_radius = outer_radius
        self.falloff_width = (outer_radius - inner_radius) / 4.0
        self.doppler_exponent = doppler_exponent
        self.grid = grid
        self.source = source if grid is not None else 'analytic'
        self.cmap = matplotlib.colormaps[colormap]

    def in_band(self, radius):
        return self.inner_radius < radius < self.outer_radius

    def temperature_color(self, temperature):
        rgba = self.cmap(float(np.clip(temperature, 0.0, 1.0)))
        return np.array(rgba[:3]) * 255.0

    def local_sample(self, point):
        """(temperature, velocity) at ``point``, or None when nothing is there."""
        if self.source == 'grid':
            cell = self.grid.sample(point)
            if cell.count == 0:
                return None
            return cell.mean_temperature(), cell.average_velocity()
        radius = vec.distance(point, self.body.position)
        temperature = float(gaussian_falloff(radius, self.inner_radius, self.falloff_width))
        return temperature, Particle(point, self.body).velocity

    def shade(self, point, ray_direction):
        """Doppler-weighted colour (float RGB, clamped) seen along ``ray_direction``."""
        sample = self.local_sample(point)
        if sample is None:
            return np.zeros(3)
        temperature, velocity = sample
        beta = line_of_sight_beta(velocity, -ray_direction)
        color = self.temperature_color(temperature) * doppler_factor(beta, self.doppler_exponent)
        return clamp_color(color)


def checker_sky(direction, cells=CHECKER_CELLS):
    """Celestial checkerboard: alternate black/white cells in longitude/latitude."""
    # rotate 90 degrees about z so the seam sits behind the default camera
    rx, ry, rz = -direction[1], direction[0], direction[2]
    _, _, theta, phi = cartesian_to_spherical_fast(0, rx, ry, rz)
    u = 0.5 + phi / (2 * math.pi)
    v = theta / math.pi
    gx = int(math.floor(u * cells))
    gy = int(math.floor(v * cells))
    return BLACK if (gx + gy) % 2 == 0 else WHITE


def make_background(name):
    """Background colour function ``f(direction) -> (r, g, b)``."""
    if name == 'black':
        return lambda direction: BLACK
    if name == 'white':
        return lambda direction: WHITE
    if name == 'checker':
        return checker_sky
    raise ValueError(f"unknown background {name!r}")


class VolumeShader:
    """
    Emission/absorption accumulated while a ray crosses populated voxels.
    A cell is counted once per entry (consecutive steps in the same cell do
    not accumulate twice).
    """
    def __init__(self, grid, doppler_exponent, emission_scale=0.005, emission_threshold=1.0,
                 absorption_temperature_scale=0.05, absorption_count_scale=0.001,
                 transmittance_scale=1.5, background_intensity=0.0, tone_scale=0.5):
        self.grid = grid
        self.doppler_exponent = doppler_exponent
        self.emission_scale = emission_scale
        self.emission_threshold = emission_threshold
        self.absorption_temperature_scale = absorption_temperature_scale
        self.absorption_count_scale = absorption_count_scale
        self.transmittance_scale = transmittance_scale
        self.background_intensity = background_intensity
        self.tone_scale = tone_scale

    def contribution(self, cell, ray_direction):
        """(emission, absorption) added by one populated cell."""
        if cell.count == 0:
            return 0.0, 0.0
        beta = line_of_sight_beta(cell.average_velocity(), -ray_direction)
        emission = 0.0
        if cell.temperature_sum > self.emission_threshold:
            emission = cell.temperature_sum * self.emission_scale * doppler_factor(beta, self.doppler_exponent)
        absorption = (cell.temperature_sum * self.absorption_temperature_scale
                      + cell.count * self.absorption_count_scale)
        return emission, absorption

    def compose(self, emission, absorption):
        """Grey level in [0, 255] from the accumulated totals."""
        transmittance = math.exp(-absorption * self.transmittance_scale)
        intensity = self.background_intensity * transmittance + emission
        level = min(255.0, math.tanh(intensity * self.tone_scale) * 255.0)
        level = max(0.0, level)
        return np.array([level, level, level])
