#blackhole.py
import math

import numpy as np

from . import vectors as vec
from .constants import G, C, PHOTON_SPHERE_FACTOR
from .errors import InvalidSceneConfigurationError


def schwarzschild_radius(mass):
    """r_s = 2 G M / c^2 in metres, for a mass in kg."""
    return 2.0 * G * mass / C ** 2


class BlackHole:
    """
    Represents the gravitating body at the centre of the scene.
    mass: kg (SI units, unlike the geometrized M = 1 convention)
    position: 3-vector in metres
    spin: dimensionless, stored only; the deflection field ignores it
    """
    def __init__(self, mass, position=(0.0, 0.0, 0.0), spin=0.0):
        if not mass > 0:
            raise InvalidSceneConfigurationError(f"body mass must be positive, got {mass}")
        if not 0.0 <= spin <= 1.0:
            raise InvalidSceneConfigurationError(f"spin must lie in [0, 1], got {spin}")
        self._mass = float(mass)
        self._position = vec.as_vec3(position)
        self._position.flags.writeable = False
        self._spin = float(spin)
        self._rs = schwarzschild_radius(self._mass)

    @property
    def mass(self):
        return self._mass

    @property
    def position(self):
        return self._position

    @property
    def spin(self):
        return self._spin

    @property
    def rs(self):
        return self._rs

    @property
    def spin_length(self):
        # a = spin * r_s
        return self._spin * self._rs

    @property
    def photon_sphere_radius(self):
        return PHOTON_SPHERE_FACTOR * self._rs

    def __repr__(self):
        return f"BlackHole(mass={self._mass:g}, position={self._position.tolist()}, rs={self._rs:.4g})"


class Ray:
    """
    A light ray being marched through the scene.
    origin: 3-vector, moves as the ray steps
    direction: unit vector; renormalized on creation and on every assignment
    """
    def __init__(self, origin, direction):
        self.origin = vec.as_vec3(origin)
        self.direction = direction

    @property
    def direction(self):
        return self._direction

    @direction.setter
    def direction(self, value):
        self._direction = vec.normalize(vec.as_vec3(value))

    def point_at(self, t):
        return self.origin + self._direction * t

    def warp(self, warp_function):
        """Replace the direction with ``warp_function(ray)`` (renormalized)."""
        self.direction = warp_function(self)

    def step(self, step_size):
        self.origin = self.origin + self._direction * step_size


class Camera:
    """
    Pinhole camera.
    position, look_at, up: 3-vectors
    fov: vertical field of view in radians
    aspect_ratio: width / height

    forward/right/true_up form a right-handed orthonormal basis. An ``up``
    parallel to the view direction leaves ``right`` undefined; this is
    rejected as an invalid configuration.
    """
    def __init__(self, position, look_at, up, fov, aspect_ratio):
        self.position = vec.as_vec3(position)
        self.look_at = vec.as_vec3(look_at)
        self.up = vec.as_vec3(up)
        self.fov = float(fov)
        self.aspect_ratio = float(aspect_ratio)

        try:
            self.forward = vec.normalize(self.look_at - self.position)
            self.right = vec.normalize(vec.cross(self.forward, self.up))
        except ZeroDivisionError as e:
            raise InvalidSceneConfigurationError(f"degenerate camera basis: {e}") from e
        self.true_up = vec.cross(self.right, self.forward)

        self.viewport_height = 2.0 * math.tan(self.fov / 2.0)
        self.viewport_width = self.viewport_height * self.aspect_ratio
        for arr in (self.position, self.forward, self.right, self.true_up):
            arr.flags.writeable = False

    def generate_ray(self, x, y, width, height):
        """Ray through the centre of pixel (x, y); y grows downwards."""
        u = (x + 0.5) / width - 0.5
        v = 0.5 - (y + 0.5) / height
        direction = (self.forward
                     + self.right * (u * self.viewport_width)
                     + self.true_up * (v * self.viewport_height))
        return Ray(np.array(self.position), direction)

    def angular_size(self, radius, target):
        """Angular radius (rad) of a sphere of ``radius`` centred on ``target``."""
        d = vec.distance(self.position, vec.as_vec3(target))
        return math.asin(min(1.0, radius / d))
