"""Core data types and enumerations for photocull."""

import dataclasses
import math
import enum
from datetime import datetime
from pathlib import Path

from photocull.errors import InvalidParameters

DEFAULT_DISCARD_PERCENT = 0.05
DEFAULT_VALUE_GAMMA = 1.15


def _token(value) -> str:
    # Full precision, and 10 and 10.0 give the same token
    return repr(float(value))


def _require_finite(**values):
    for name, value in values.items():
        if not math.isfinite(value):
            raise InvalidParameters(f"{name} must be a finite number, got {value}")


class TransformKind(enum.Enum):
    """The closed set of results the engine can produce for an image."""
    ORIGINAL = "original"
    WHITE_BALANCE_VALUE = "wb_value"
    WHITE_BALANCE_RGB = "wb_rgb"
    CUSTOM = "custom"
    ROTATE = "rotate"

    @property
    def suffix(self) -> str:
        """File name suffix used when the result is saved to the selection folder."""
        return _SUFFIXES[self]


_SUFFIXES = {
    TransformKind.ORIGINAL: "",
    TransformKind.WHITE_BALANCE_VALUE: "_wbv",
    TransformKind.WHITE_BALANCE_RGB: "_wb",
    TransformKind.CUSTOM: "_custom",
    TransformKind.ROTATE: "_rotated",
}


@dataclasses.dataclass(frozen=True)
class ImageFile:
    """Represents a single image file on disk."""
    path: Path
    name: str
    modified: datetime
    size_bytes: int


@dataclasses.dataclass(frozen=True)
class PercentileParams:
    """Per-channel stretch. discard_percent is a percentage: 0.05 means 0.05%."""
    discard_percent: float = DEFAULT_DISCARD_PERCENT

    def validate(self) -> "PercentileParams":
        _require_finite(discard_percent=self.discard_percent)
        if not 0.0 <= self.discard_percent < 50.0:
            raise InvalidParameters(
                f"discard_percent must be in [0, 50), got {self.discard_percent}"
            )
        return self

    def cache_token(self) -> str:
        return f"discard={_token(self.discard_percent)}"


@dataclasses.dataclass(frozen=True)
class LevelsParams:
    gamma: float = DEFAULT_VALUE_GAMMA
    low_output: int = 0
    high_output: int = 255

    def validate(self) -> "LevelsParams":
        _require_finite(gamma=self.gamma)
        if self.gamma <= 0:
            raise InvalidParameters(f"gamma must be positive, got {self.gamma}")
        if not 0 <= self.low_output < self.high_output <= 255:
            raise InvalidParameters(
                f"output range must satisfy 0 <= low < high <= 255, "
                f"got [{self.low_output}, {self.high_output}]"
            )
        return self

    def cache_token(self) -> str:
        return f"gamma={_token(self.gamma)},out={self.low_output}-{self.high_output}"


@dataclasses.dataclass(frozen=True)
class CustomLevelsParams:
    """User-driven clamp and gamma applied to the value channel."""
    low_clamp: float = 0.0
    high_clamp: float = 255.0
    gamma: float = 1.0

    def validate(self) -> "CustomLevelsParams":
        _require_finite(low_clamp=self.low_clamp, high_clamp=self.high_clamp, gamma=self.gamma)
        if self.high_clamp <= self.low_clamp:
            raise InvalidParameters(
                f"high_clamp ({self.high_clamp}) must be greater than low_clamp ({self.low_clamp})"
            )
        if self.low_clamp < 0 or self.high_clamp > 255:
            raise InvalidParameters(
                f"clamp range must lie within [0, 255], got [{self.low_clamp}, {self.high_clamp}]"
            )
        if self.gamma <= 0:
            raise InvalidParameters(f"gamma must be positive, got {self.gamma}")
        return self

    def cache_token(self) -> str:
        return (
            f"low={_token(self.low_clamp)},high={_token(self.high_clamp)},"
            f"gamma={_token(self.gamma)}"
        )


@dataclasses.dataclass(frozen=True)
class RotateParams:
    angle_degrees: float
    preserve_aspect_ratio: bool = True

    def validate(self) -> "RotateParams":
        _require_finite(angle_degrees=self.angle_degrees)
        return self

    def cache_token(self) -> str:
        crop = "crop" if self.preserve_aspect_ratio else "nocrop"
        return f"angle={_token(self.angle_degrees)},{crop}"


def default_params(kind: TransformKind):
    """Returns the standard preset parameters for a transform kind, if it has one."""
    if kind is TransformKind.WHITE_BALANCE_RGB:
        return PercentileParams()
    if kind is TransformKind.WHITE_BALANCE_VALUE:
        return LevelsParams()
    if kind is TransformKind.CUSTOM:
        return CustomLevelsParams()
    return None
