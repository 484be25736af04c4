import math

import numpy as np
import pytest

from lensing import vectors as vec
from lensing.blackhole import BlackHole, Ray
from lensing.constants import SOLAR_MASS
from lensing.integrators import (AdaptiveStep, DeflectionField, EulerIntegrator, RK4Integrator,
                                 make_integrator)
from lensing.raytracing import ESCAPED, RayTracer

BH = BlackHole(SOLAR_MASS)
RS = BH.rs


def default_steps():
    return AdaptiveStep(RS, 0.05 * RS, 0.01 * RS, 5.0 * RS, 0.02 * RS, 0.5 * RS)


def test_field_points_towards_the_body():
    field = DeflectionField(BH)
    pos = vec.vec3(0.0, 10 * RS, 0.0)
    a = field.acceleration(pos)
    assert a[1] < 0.0 and a[0] == 0.0 and a[2] == 0.0
    assert vec.magnitude(a) == pytest.approx(field.strength / (10 * RS) ** 2)
    assert field.strength == pytest.approx(2 * RS)


def test_field_is_zero_at_the_centre_and_outside_influence():
    field = DeflectionField(BH, influence_radius=20 * RS)
    assert np.all(field.acceleration(vec.vec3()) == 0.0)
    assert np.all(field.acceleration(vec.vec3(30 * RS, 0.0, 0.0)) == 0.0)
    assert np.any(field.acceleration(vec.vec3(10 * RS, 0.0, 0.0)) != 0.0)
    assert np.all(DeflectionField(BH, 0.0).acceleration(vec.vec3(RS, 0.0, 0.0)) == 0.0)


@pytest.mark.parametrize("integrator_cls", [EulerIntegrator, RK4Integrator])
def test_single_step_bends_towards_the_body(integrator_cls):
    integrator = integrator_cls(DeflectionField(BH))
    origin, direction = integrator.advance(vec.vec3(0.0, 10 * RS, 0.0), vec.vec3(1.0, 0.0, 0.0), RS)
    assert direction[1] < 0.0
    assert abs(vec.magnitude(direction) - 1.0) < 1e-12
    assert origin[0] > 0.0


def test_euler_and_rk4_agree_on_small_steps():
    field = DeflectionField(BH)
    start, direction = vec.vec3(-5 * RS, 8 * RS, 0.0), vec.vec3(1.0, 0.0, 0.0)
    e = EulerIntegrator(field).advance(start, direction, 0.01 * RS)
    r = RK4Integrator(field).advance(start, direction, 0.01 * RS)
    assert np.allclose(e[0], r[0], rtol=0, atol=1e-3 * RS)
    assert np.allclose(e[1], r[1], atol=1e-4)


@pytest.mark.parametrize("name", ["euler", "rk4"])
def test_weak_field_deflection_angle(name):
    b = 50 * RS
    tracer = RayTracer(BH, make_integrator(name, DeflectionField(BH)), default_steps(),
                       escape_radius=400 * RS, max_steps=10000)
    ray = Ray((-400 * RS, b, 0.0), (1.0, 0.0, 0.0))
    result = tracer.trace(ray)
    assert result.status == ESCAPED
    angle = math.atan2(-ray.direction[1], ray.direction[0])
    assert angle == pytest.approx(4 * RS / b, rel=0.1)


def test_make_integrator_rejects_unknown_names():
    assert isinstance(make_integrator('euler', DeflectionField(BH)), EulerIntegrator)
    assert isinstance(make_integrator('rk4', DeflectionField(BH)), RK4Integrator)
    with pytest.raises(ValueError):
        make_integrator('leapfrog', DeflectionField(BH))


def test_adaptive_step_rules():
    step = default_steps()
    # far away: capped
    assert step(100 * RS) == pytest.approx(5.0 * RS)
    # quadratic growth
    assert step(3 * RS) == pytest.approx(0.45 * RS)
    # floor
    assert step(0.1 * RS) == pytest.approx(0.01 * RS)
    # photon sphere band
    for d in (1.01 * RS, 1.5 * RS, 1.99 * RS):
        assert step(d) == pytest.approx(0.02 * RS)
    assert step(2.1 * RS) == pytest.approx(0.05 * 2.1 ** 2 * RS)
