# vectors.py
"""Vector3 math kernel.

Vectors are ``float64`` numpy arrays of shape ``(3,)``. The free functions
never mutate their inputs; the ``*_inplace`` variants mutate their first
argument and return it.
"""
import math

import numpy as np

from .errors import DegenerateVectorError


def vec3(x=0.0, y=0.0, z=0.0):
    return np.array([x, y, z], dtype=np.float64)


def as_vec3(value):
    """Copy ``value`` (sequence or array) into a fresh float64 3-vector."""
    v = np.array(value, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"expected 3 components, got shape {v.shape}")
    return v


def add(a, b):
    return a + b


def subtract(a, b):
    return a - b


def scale(v, s):
    return v * s


def dot(a, b):
    return float(a[0] * b[0] + a[1] * b[1] + a[2] * b[2])


def cross(a, b):
    # right-hand rule
    return np.array([
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    ], dtype=np.float64)


def magnitude_squared(v):
    return dot(v, v)


def magnitude(v):
    return math.sqrt(magnitude_squared(v))


def distance(a, b):
    return magnitude(a - b)


def normalize(v):
    """Return ``v / |v|``; raise ``DegenerateVectorError`` on a zero vector."""
    n = magnitude(v)
    if n == 0.0:
        raise DegenerateVectorError("cannot normalize a zero-length vector")
    return v / n


def normalize_inplace(v):
    """Scale ``v`` to unit length in place. A zero vector is left unchanged."""
    n = magnitude(v)
    if n != 0.0:
        v /= n
    return v


def add_inplace(v, w):
    v += w
    return v


def scale_inplace(v, s):
    v *= s
    return v
