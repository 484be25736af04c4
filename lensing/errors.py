# errors.py
"""Error kinds raised by the rendering core.

Per-pixel failures are caught by the render session and turned into a
sentinel colour; only ``InvalidSceneConfigurationError`` is fatal.
"""


class LensingError(Exception):
    """Base class for every error raised by the lensing core."""


class DegenerateVectorError(LensingError, ZeroDivisionError):
    """Normalising a zero-length vector."""


class NonPositiveDistanceError(LensingError, ValueError):
    """A particle was created at (or inside) the body's centre."""


class SingularityReachedError(LensingError, ArithmeticError):
    """A particle or ray reached the body's centre mid-simulation."""


class GridIndexOutOfBoundsError(LensingError, IndexError):
    """A voxel index outside ``[0, resolution)`` on some axis."""


class StepBudgetExceeded(LensingError):
    """A ray did not terminate within ``max_steps``."""

    def __init__(self, steps):
        super().__init__(f"ray did not terminate within {steps} steps")
        self.steps = steps


class NumericalInstabilityError(LensingError, ArithmeticError):
    """A step produced a NaN or infinite quantity."""


class InvalidSceneConfigurationError(LensingError, ValueError):
    """The scene configuration cannot be rendered."""
