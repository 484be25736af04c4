# particles.py
import logging
import math

import numpy as np

from . import vectors as vec
from .constants import G
from .errors import NonPositiveDistanceError, SingularityReachedError

Z_AXIS = vec.vec3(0.0, 0.0, 1.0)
FALLBACK_DIRECTION = vec.vec3(1.0, 0.0, 0.0)


def gaussian_falloff(value, center, width):
    """exp(-(value - center)^2 / (2 width^2)); works on scalars and arrays."""
    return np.exp(-((value - center) ** 2) / (2.0 * width ** 2))


def vertical_jitter(rng, amplitude):
    """
    Turbulence noise for ``Particle.update``: a uniform offset in
    [-amplitude, amplitude) along z, drawn from the injected generator.
    """
    def jitter(particle):
        return vec.vec3(0.0, 0.0, rng.uniform(-amplitude, amplitude))
    return jitter


class Particle:
    """
    A point of disk matter orbiting the body under inverse-square attraction.
    position, velocity: 3-vectors, mutated on every ``update``
    temperature: brightness proxy, set from a falloff of the distance to the body
    jitter: optional callable ``jitter(particle) -> 3-vector`` added to the
        position each tick; ``None`` keeps the motion deterministic
    """
    def __init__(self, position, body, temperature=0.0, jitter=None):
        self.body = body
        self.position = vec.as_vec3(position)
        self.temperature = float(temperature)
        self.jitter = jitter

        offset = self.position - body.position
        self.distance = vec.magnitude(offset)
        if not self.distance > 0:
            raise NonPositiveDistanceError(
                f"particle at {self.position.tolist()} coincides with the body centre")

        # circular-orbit heuristic
        self.speed = math.sqrt(G * body.mass / self.distance)

        radial = vec.normalize(offset)
        tangent = vec.cross(radial, Z_AXIS)
        if vec.magnitude(tangent) == 0.0:
            tangent = FALLBACK_DIRECTION.copy()
        else:
            tangent = vec.normalize(tangent)
        self.velocity = tangent * self.speed

    def update(self, dt):
        """Semi-implicit Euler: velocity first, then position with the new velocity."""
        if self.jitter is not None:
            vec.add_inplace(self.position, self.jitter(self))

        to_body = self.body.position - self.position
        distance = vec.magnitude(to_body)
        if distance == 0.0:
            raise SingularityReachedError(
                f"particle reached the body centre at {self.position.tolist()}")
        self.distance = distance

        accel = to_body * (G * self.body.mass / distance ** 2 / distance)
        vec.add_inplace(self.velocity, accel * dt)
        vec.add_inplace(self.position, self.velocity * dt)
        self.speed = vec.magnitude(self.velocity)


def generate_disk_particles(body, config, rng, batch_size=None):
    """
    Sample the accretion-disk population around ``body``.

    x and y are normal with sigma = particle_bounds / 4 (particle_bounds is
    twice the outer disk radius), z is normal with sigma = disk_thickness.
    Candidates closer than half the inner radius or beyond the outer radius
    are rejected; sampling continues until ``config.particle_count``
    particles have been accepted.
    """
    count = config.particle_count
    if count == 0:
        return []

    inner = config.disk_inner_radius_factor * body.rs
    outer = config.disk_outer_radius_factor * body.rs
    bounds = 2.0 * outer
    falloff_width = (outer - inner) / 4.0
    jitter = vertical_jitter(rng, config.jitter_amplitude) if config.jitter_amplitude > 0 else None
    batch_size = batch_size or max(1024, count)

    positions = []
    accepted = 0
    while accepted < count:
        xy = rng.normal(0.0, bounds / 4.0, size=(batch_size, 2))
        z = rng.normal(0.0, config.disk_thickness, size=(batch_size, 1))
        candidates = np.hstack([xy, z]) + body.position
        d = np.linalg.norm(candidates - body.position, axis=1)
        keep = candidates[(d > 0.5 * inner) & (d < outer)]
        positions.append(keep[:count - accepted])
        accepted += len(positions[-1])
    positions = np.vstack(positions)

    distances = np.linalg.norm(positions - body.position, axis=1)
    temperatures = gaussian_falloff(distances, inner, falloff_width)
    particles = [Particle(p, body, temperature=t, jitter=jitter)
                 for p, t in zip(positions, temperatures)]
    logging.info(f"Generated {len(particles)} disk particles between {inner:.4g} m and {outer:.4g} m")
    return particles


def simulate_particles(particles, dt):
    """
    Tick every particle by ``dt``. Particles that fall into the singularity
    are dropped; the surviving list is returned.
    """
    survivors = []
    for particle in particles:
        try:
            particle.update(dt)
        except SingularityReachedError as e:
            logging.warning(f"Dropping particle: {e}")
            continue
        survivors.append(particle)
    return survivors


def particle_arrays(particles):
    """Stack particle state into (N,3) positions, (N,3) velocities, (N,) temperatures."""
    if not particles:
        return np.zeros((0, 3)), np.zeros((0, 3)), np.zeros(0)
    positions = np.array([p.position for p in particles], dtype=np.float64)
    velocities = np.array([p.velocity for p in particles], dtype=np.float64)
    temperatures = np.array([p.temperature for p in particles], dtype=np.float64)
    return positions, velocities, temperatures
