"""
Exception hierarchy for the stabilization engine.

Registration errors are recoverable: the stabilizer falls back to an
identity transform and the locator reports an invalid detection.
InvalidFrameError is the only error that escapes a processing stage.
"""


class EdstabError(Exception):
    """Base class for all edstab errors."""


class ConfigError(EdstabError, ValueError):
    """A configuration value is outside its legal range."""


class InvalidFrameError(EdstabError):
    """A frame has no pixels or a zero dimension."""


class RegistrationError(EdstabError):
    """Base class for recoverable estimation failures."""


class InsufficientCorrespondences(RegistrationError):
    """Too few matched points to attempt estimation."""

    def __init__(self, count: int, required: int):
        self.count = count
        self.required = required
        super().__init__(f"{count} correspondences, need at least {required}")


class DegenerateGeometry(RegistrationError):
    """The estimator found no consistent model."""


class InsufficientInliers(RegistrationError):
    """A gate after RANSAC or the Euclidean pass rejected too many points."""

    def __init__(self, stage: str, count: int, required: int):
        self.stage = stage
        self.count = count
        self.required = required
        super().__init__(f"{stage}: {count} inliers, need at least {required}")


class OutOfBoundsProjection(RegistrationError):
    """A projected point landed outside the frame."""

    def __init__(self, point: tuple[float, float], width: int, height: int):
        self.point = point
        self.width = width
        self.height = height
        super().__init__(
            f"Projected point ({point[0]:.1f}, {point[1]:.1f}) outside "
            f"{width}x{height} frame"
        )
