"""256-bin channel histograms and percentile cut points."""

import cv2
import numpy as np

BINS = 256


def histogram(channel: np.ndarray) -> np.ndarray:
    """Counts of each 8-bit value in a single channel.

    The returned int64 array always has 256 entries summing to channel.size.
    """
    if channel.ndim != 2:
        raise ValueError(f"Expected a single channel, got shape {channel.shape}")
    flat = np.ascontiguousarray(channel, dtype=np.uint8).ravel()
    return np.bincount(flat, minlength=BINS).astype(np.int64)


def _threshold(hist: np.ndarray, discard_percent: float) -> float:
    return float(hist.sum()) * (discard_percent / 100.0)


def find_low_cut(hist: np.ndarray, discard_percent: float) -> int:
    """Lowest bin at which the ascending cumulative count reaches the discard threshold.

    discard_percent is a percentage of the pixel count. Falls back to 0 when the
    threshold is never reached (only possible for discard_percent >= 100).
    """
    threshold = _threshold(hist, discard_percent)
    reached = np.flatnonzero(np.cumsum(hist) >= threshold)
    return int(reached[0]) if reached.size else 0


def find_high_cut(hist: np.ndarray, discard_percent: float) -> int:
    """Mirror of find_low_cut scanning from 255 downwards; falls back to 255."""
    threshold = _threshold(hist, discard_percent)
    reached = np.flatnonzero(np.cumsum(hist[::-1]) >= threshold)
    return BINS - 1 - int(reached[0]) if reached.size else BINS - 1


def value_histogram(raster: np.ndarray) -> np.ndarray:
    """Histogram of the HSV value channel of an unmodified BGR raster."""
    hsv = cv2.cvtColor(raster, cv2.COLOR_BGR2HSV)
    return histogram(hsv[:, :, 2])
