"""Channel transforms: percentile stretch, value-channel levels and custom clamp/gamma.

Channel functions are pure: they take a 2-D uint8 buffer and return a new one.
Raster functions take a BGR raster and an optional threading.Event, checked
between channel-level steps so a superseded job can stop early.
"""

import logging
import threading
from typing import Optional

import cv2
import numpy as np

from photocull.errors import raise_if_cancelled
from photocull.imaging.histogram import find_high_cut, find_low_cut, histogram
from photocull.models import (
    DEFAULT_DISCARD_PERCENT,
    DEFAULT_VALUE_GAMMA,
    CustomLevelsParams,
    LevelsParams,
    PercentileParams,
)

log = logging.getLogger(__name__)

V_CHANNEL = 2


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


# ----------------------------
# Percentile stretch
# ----------------------------

def stretch(channel: np.ndarray, discard_percent: float = DEFAULT_DISCARD_PERCENT) -> np.ndarray:
    """Maps the low/high percentile cut points of a channel to 0/255.

    Returns an unchanged copy when the channel has no usable range.
    """
    hist = histogram(channel)
    low = find_low_cut(hist, discard_percent)
    high = find_high_cut(hist, discard_percent)
    if high <= low:
        log.debug("Degenerate channel (low=%d, high=%d); leaving unchanged", low, high)
        return channel.copy()

    arr = channel.astype(np.float64)
    arr -= low
    arr *= 255.0 / (high - low)
    return _to_uint8(arr)


def white_balance_rgb(
    raster: np.ndarray,
    discard_percent: float = DEFAULT_DISCARD_PERCENT,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """Stretches each colour channel independently. Colour casts can shift."""
    PercentileParams(discard_percent).validate()
    out = np.empty_like(raster)
    for c in range(raster.shape[2]):
        raise_if_cancelled(cancel)
        out[:, :, c] = stretch(raster[:, :, c], discard_percent)
    return out


# ----------------------------
# Value-channel levels
# ----------------------------

def levels_channel(
    channel: np.ndarray,
    gamma: float = 1.0,
    low_output: int = 0,
    high_output: int = 255,
) -> np.ndarray:
    """Auto levels: input range from the darkest non-zero to the brightest value.

    Zero-valued pixels are ignored when finding the input range; with the default
    output range they stay at zero.
    """
    positive = channel[channel > 0]
    if positive.size == 0:
        return channel.copy()
    low_input = int(positive.min())
    high_input = int(positive.max())
    if low_input >= high_input:
        log.debug("Degenerate value channel (%d..%d); leaving unchanged", low_input, high_input)
        return channel.copy()

    norm = (channel.astype(np.float64) - low_input) / (high_input - low_input)
    np.clip(norm, 0.0, 1.0, out=norm)
    np.power(norm, 1.0 / gamma, out=norm)
    out = norm * (high_output - low_output) + low_output
    np.clip(out, low_output, high_output, out=out)
    return _to_uint8(out)


def _apply_to_value(raster: np.ndarray, fn, cancel: Optional[threading.Event]) -> np.ndarray:
    hsv = cv2.cvtColor(raster, cv2.COLOR_BGR2HSV)
    raise_if_cancelled(cancel)
    hsv[:, :, V_CHANNEL] = fn(hsv[:, :, V_CHANNEL])
    raise_if_cancelled(cancel)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


def levels_on_value(
    raster: np.ndarray,
    gamma: float = DEFAULT_VALUE_GAMMA,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """Levels on the HSV value channel only, so hue and saturation are untouched."""
    params = LevelsParams(gamma=gamma).validate()
    return _apply_to_value(
        raster,
        lambda v: levels_channel(v, params.gamma, params.low_output, params.high_output),
        cancel,
    )


# ----------------------------
# Custom clamp + gamma
# ----------------------------

def custom_levels_channel(
    channel: np.ndarray, low_clamp: float, high_clamp: float, gamma: float
) -> np.ndarray:
    arr = np.clip(channel.astype(np.float64), low_clamp, high_clamp)
    norm = (arr - low_clamp) / (high_clamp - low_clamp)
    return _to_uint8(np.power(norm, 1.0 / gamma) * 255.0)


def custom_levels(
    raster: np.ndarray,
    low_clamp: float,
    high_clamp: float,
    gamma: float,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """User-tunable white balance on the value channel.

    Raises InvalidParameters when high_clamp <= low_clamp or gamma <= 0.
    """
    params = CustomLevelsParams(low_clamp, high_clamp, gamma).validate()
    return _apply_to_value(
        raster,
        lambda v: custom_levels_channel(v, params.low_clamp, params.high_clamp, params.gamma),
        cancel,
    )
