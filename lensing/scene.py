# scene.py
import inspect
import json
import math
import re

import numpy as np

from .constants import SOLAR_MASS
from .errors import InvalidSceneConfigurationError
from .integrators import INTEGRATORS
from .raytracing import RENDER_MODES

BACKGROUNDS = ('black', 'white', 'checker')
DISK_COLOR_SOURCES = ('grid', 'analytic')


def _snake_case(name):
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


class SceneConfig:
    """
    Everything needed to set up and render a scene. Lengths are metres, mass
    is kg; ``*_factor`` fields are multiples of the Schwarzschild radius
    unless stated otherwise.
    """
    def __init__(
        self, *,
        mass=SOLAR_MASS, body_position=(0.0, 0.0, 0.0), spin=0.0,
        camera_position=(0.0, 500000.0, 10000.0), look_at=(0.0, 0.0, 0.0), up=(0.0, 0.0, 1.0),
        fov_degrees=10.0, aspect_ratio=None, width=200, height=100,
        disk_inner_radius_factor=3.0, disk_outer_radius_factor=25.0, disk_thickness=500.0,
        particle_count=20000, grid_resolution=100, grid_size=None,
        max_steps=10000, doppler_exponent=5.0,
        render_mode='surface', integrator='euler',
        base_step_factor=0.05, min_step_factor=0.01, max_step_factor=5.0,
        photon_sphere_step_factor=0.02, photon_sphere_band=0.5,
        field_influence_radius=None, escape_radius_factor=1.1,
        max_disk_intersections=2, disk_color_source='grid', colormap='afmhot',
        background='black', background_intensity=0.0,
        emission_scale=0.005, emission_threshold=1.0,
        absorption_temperature_scale=0.05, absorption_count_scale=0.001,
        transmittance_scale=1.5, tone_scale=0.5,
        jitter_amplitude=50.0, seed=None,
    ):
        self.mass = mass
        self.body_position = tuple(body_position)
        self.spin = spin
        self.camera_position = tuple(camera_position)
        self.look_at = tuple(look_at)
        self.up = tuple(up)
        self.fov_degrees = fov_degrees
        self.aspect_ratio = aspect_ratio
        self.width = width
        self.height = height
        self.disk_inner_radius_factor = disk_inner_radius_factor
        self.disk_outer_radius_factor = disk_outer_radius_factor
        self.disk_thickness = disk_thickness
        self.particle_count = particle_count
        self.grid_resolution = grid_resolution
        self.grid_size = grid_size
        self.max_steps = max_steps
        self.doppler_exponent = doppler_exponent
        self.render_mode = render_mode
        self.integrator = integrator
        self.base_step_factor = base_step_factor
        self.min_step_factor = min_step_factor
        self.max_step_factor = max_step_factor
        self.photon_sphere_step_factor = photon_sphere_step_factor
        self.photon_sphere_band = photon_sphere_band
        self.field_influence_radius = field_influence_radius
        self.escape_radius_factor = escape_radius_factor
        self.max_disk_intersections = max_disk_intersections
        self.disk_color_source = disk_color_source
        self.colormap = colormap
        self.background = background
        self.background_intensity = background_intensity
        self.emission_scale = emission_scale
        self.emission_threshold = emission_threshold
        self.absorption_temperature_scale = absorption_temperature_scale
        self.absorption_count_scale = absorption_count_scale
        self.transmittance_scale = transmittance_scale
        self.tone_scale = tone_scale
        self.jitter_amplitude = jitter_amplitude
        self.seed = seed

    # ------------------------------------------------------------------ #
    # construction helpers
    # ------------------------------------------------------------------ #
    @classmethod
    def field_names(cls):
        return [name for name in inspect.signature(cls.__init__).parameters if name != 'self']

    @classmethod
    def from_dict(cls, options):
        """
        Build a config from a mapping. Keys may use the camelCase option
        names (``bodyPosition``, ``fovDegrees``, ...) or snake_case.
        """
        known = set(cls.field_names())
        kwargs = {}
        for key, value in options.items():
            name = _snake_case(key)
            if name not in known:
                raise InvalidSceneConfigurationError(f"unknown scene option {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path):
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def to_dict(self):
        return {name: getattr(self, name) for name in self.field_names()}

    def replace(self, **changes):
        options = self.to_dict()
        options.update(changes)
        return type(self)(**options)

    # ------------------------------------------------------------------ #
    # derived quantities
    # ------------------------------------------------------------------ #
    @property
    def resolved_aspect_ratio(self):
        return self.aspect_ratio if self.aspect_ratio is not None else self.width / self.height

    @property
    def fov_radians(self):
        return math.radians(self.fov_degrees)

    def disk_radii(self, rs):
        return self.disk_inner_radius_factor * rs, self.disk_outer_radius_factor * rs

    def particle_bounds(self, rs):
        return 2.0 * self.disk_outer_radius_factor * rs

    def grid_physical_size(self, rs):
        return self.grid_size if self.grid_size is not None else self.particle_bounds(rs)

    def influence_radius(self, rs):
        if self.field_influence_radius is not None:
            return self.field_influence_radius
        return 2.0 * self.particle_bounds(rs)

    def camera_distance(self):
        return float(np.linalg.norm(np.subtract(self.camera_position, self.body_position)))

    # ------------------------------------------------------------------ #
    # validation
    # ------------------------------------------------------------------ #
    def validate(self):
        """Raise InvalidSceneConfigurationError on the first problem found."""
        def fail(message):
            raise InvalidSceneConfigurationError(message)

        for name in ('body_position', 'camera_position', 'look_at', 'up'):
            value = getattr(self, name)
            if len(value) != 3 or not all(math.isfinite(float(c)) for c in value):
                fail(f"{name} must be three finite numbers, got {value!r}")
        if not self.mass > 0:
            fail(f"mass must be positive, got {self.mass}")
        if not 0.0 <= self.spin <= 1.0:
            fail(f"spin must lie in [0, 1], got {self.spin}")
        if not 0.0 < self.fov_degrees < 180.0:
            fail(f"fov_degrees must lie in (0, 180), got {self.fov_degrees}")
        if int(self.width) < 1 or int(self.height) < 1:
            fail(f"image size must be positive, got {self.width}x{self.height}")
        if not self.resolved_aspect_ratio > 0:
            fail(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if not 0.0 < self.disk_inner_radius_factor < self.disk_outer_radius_factor:
            fail("disk radii must satisfy 0 < inner < outer, got "
                 f"{self.disk_inner_radius_factor} and {self.disk_outer_radius_factor}")
        if self.particle_count < 0:
            fail(f"particle_count must be non-negative, got {self.particle_count}")
        if self.grid_resolution < 1:
            fail(f"grid_resolution must be at least 1, got {self.grid_resolution}")
        if self.grid_size is not None and not self.grid_size > 0:
            fail(f"grid_size must be positive, got {self.grid_size}")
        if self.max_steps < 1:
            fail(f"max_steps must be at least 1, got {self.max_steps}")
        if self.render_mode not in RENDER_MODES:
            fail(f"render_mode must be one of {RENDER_MODES}, got {self.render_mode!r}")
        if self.integrator not in INTEGRATORS:
            fail(f"integrator must be one of {sorted(INTEGRATORS)}, got {self.integrator!r}")
        if self.background not in BACKGROUNDS:
            fail(f"background must be one of {BACKGROUNDS}, got {self.background!r}")
        if self.disk_color_source not in DISK_COLOR_SOURCES:
            fail(f"disk_color_source must be one of {DISK_COLOR_SOURCES}, got {self.disk_color_source!r}")
        for name in ('base_step_factor', 'min_step_factor', 'max_step_factor', 'photon_sphere_step_factor'):
            if not getattr(self, name) > 0:
                fail(f"{name} must be positive, got {getattr(self, name)}")
        if self.min_step_factor > self.max_step_factor:
            fail("min_step_factor must not exceed max_step_factor")
        if self.photon_sphere_band < 0:
            fail(f"photon_sphere_band must be non-negative, got {self.photon_sphere_band}")
        if self.field_influence_radius is not None and self.field_influence_radius < 0:
            fail(f"field_influence_radius must be non-negative, got {self.field_influence_radius}")
        if not self.escape_radius_factor > 1.0:
            fail(f"escape_radius_factor must exceed 1, got {self.escape_radius_factor}")
        if self.max_disk_intersections < 1:
            fail(f"max_disk_intersections must be at least 1, got {self.max_disk_intersections}")
        if self.disk_thickness < 0 or self.jitter_amplitude < 0:
            fail("disk_thickness and jitter_amplitude must be non-negative")
        if self.camera_distance() == 0.0:
            fail("camera coincides with the body")
        forward = np.subtract(self.look_at, self.camera_position)
        if not np.any(forward):
            fail("camera look_at coincides with camera_position")
        if not np.any(np.cross(forward, self.up)):
            fail("camera up vector is parallel to the view direction")
        return self

    def __repr__(self):
        return f"SceneConfig({', '.join(f'{k}={v!r}' for k, v in self.to_dict().items())})"
