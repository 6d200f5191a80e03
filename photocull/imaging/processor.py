"""Turns a source file plus a transform selection into encoded result bytes."""

import logging
import threading
import time
from pathlib import Path
from typing import Optional, Union

import numpy as np

from photocull.errors import DecodeError, InvalidParameters, raise_if_cancelled
from photocull.imaging.geometry import rotate_and_crop
from photocull.imaging.levels import custom_levels, levels_on_value, white_balance_rgb
from photocull.io import raster as raster_io
from photocull.models import (
    CustomLevelsParams,
    LevelsParams,
    PercentileParams,
    RotateParams,
    TransformKind,
    default_params,
)

log = logging.getLogger(__name__)


def resolve_params(kind: TransformKind, params=None):
    """Fills in the preset for kind when params is None, and validates the result."""
    if params is None:
        params = default_params(kind)
    expected = {
        TransformKind.WHITE_BALANCE_RGB: PercentileParams,
        TransformKind.WHITE_BALANCE_VALUE: LevelsParams,
        TransformKind.CUSTOM: CustomLevelsParams,
        TransformKind.ROTATE: RotateParams,
    }.get(kind)
    if expected is None:
        return None
    if not isinstance(params, expected):
        raise InvalidParameters(
            f"{kind.value} expects {expected.__name__}, got {type(params).__name__}"
        )
    return params.validate()


def apply_transform(
    raster: np.ndarray,
    kind: TransformKind,
    params=None,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """Applies one transform kind to a decoded BGR raster."""
    params = resolve_params(kind, params)
    if kind is TransformKind.ORIGINAL:
        return raster.copy()
    if kind is TransformKind.WHITE_BALANCE_RGB:
        return white_balance_rgb(raster, params.discard_percent, cancel=cancel)
    if kind is TransformKind.WHITE_BALANCE_VALUE:
        return levels_on_value(raster, params.gamma, cancel=cancel)
    if kind is TransformKind.CUSTOM:
        return custom_levels(raster, params.low_clamp, params.high_clamp, params.gamma, cancel=cancel)
    if kind is TransformKind.ROTATE:
        return rotate_and_crop(raster, params.angle_degrees, params.preserve_aspect_ratio, cancel=cancel)
    raise InvalidParameters(f"Unsupported transform kind: {kind!r}")


def process_file(
    path: Union[Path, str],
    kind: TransformKind,
    params=None,
    cancel: Optional[threading.Event] = None,
) -> bytes:
    """Decodes path, applies the transform and returns PNG bytes.

    ORIGINAL returns the file's own bytes untouched.

    Raises:
        DecodeError: the file cannot be read or decoded.
        InvalidParameters: params are rejected before decoding.
        CancelledOperation: cancel was set while the work was in progress.
    """
    path = Path(path)
    params = resolve_params(kind, params)

    if kind is TransformKind.ORIGINAL:
        try:
            return path.read_bytes()
        except OSError as e:
            raise DecodeError(path, str(e)) from e

    t_start = time.perf_counter()
    raise_if_cancelled(cancel)
    raster = raster_io.decode(path)
    raise_if_cancelled(cancel)
    result = apply_transform(raster, kind, params, cancel=cancel)
    raise_if_cancelled(cancel)
    data = raster_io.encode(result)
    log.debug("Computed %s for %s in %.3fs", kind.value, path, time.perf_counter() - t_start)
    return data
