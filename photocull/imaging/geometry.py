"""Rotation onto a white canvas, with an optional aspect-preserving centre crop."""

import logging
import math
import threading
from typing import Optional, Tuple

import cv2
import numpy as np

from photocull.errors import raise_if_cancelled
from photocull.models import RotateParams

log = logging.getLogger(__name__)

FILL_COLOR = (255, 255, 255)


def rotated_canvas_size(w: int, h: int, angle_deg: float) -> Tuple[int, int]:
    """Size of the axis-aligned canvas that fully contains a w x h image rotated by angle_deg."""
    angle_rad = math.radians(angle_deg)
    cos_a = abs(math.cos(angle_rad))
    sin_a = abs(math.sin(angle_rad))
    return round(w * cos_a + h * sin_a), round(w * sin_a + h * cos_a)


def aspect_crop_size(w: int, h: int, angle_deg: float) -> Tuple[float, float]:
    """
    Largest rectangle with the w/h aspect ratio that fits inside the rotated image.
    Returns (crop_w, crop_h) in pixels, unrounded.
    """
    if w <= 0 or h <= 0:
        return 0.0, 0.0

    angle_rad = math.radians(angle_deg)
    cos_a = abs(math.cos(angle_rad))
    sin_a = abs(math.sin(angle_rad))
    r = w / h

    k = 1.0 / max(cos_a + sin_a / r, r * sin_a + cos_a)
    return k * w, k * h


def _center_crop(img: np.ndarray, crop_w: float, crop_h: float) -> np.ndarray:
    rot_h, rot_w = img.shape[:2]
    x = max(0, int((rot_w - crop_w) / 2.0))
    y = max(0, int((rot_h - crop_h) / 2.0))
    w = min(int(crop_w), rot_w - x)
    h = min(int(crop_h), rot_h - y)
    if w <= 0 or h <= 0:
        return img.copy()
    return img[y:y + h, x:x + w].copy()


def rotate_and_crop(
    raster: np.ndarray,
    angle_deg: float,
    preserve_aspect_ratio: bool = True,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """
    Rotate by any angle (positive = clockwise on screen) onto an expanded white canvas.

    With preserve_aspect_ratio, the canvas is cropped to the largest centred rectangle
    of the source aspect ratio; pass False for exact quarter turns, where the canvas
    has no exposed background to trim.

    The pivot is the pixel-grid centre ((w-1)/2, (h-1)/2), half a pixel up and left
    of (w/2, h/2), so quarter turns land exactly on the pixel grid.

    Raises InvalidParameters for a non-finite angle.
    """
    RotateParams(angle_deg, preserve_aspect_ratio).validate()
    if angle_deg == 0:
        return raster.copy()

    h, w = raster.shape[:2]
    new_w, new_h = rotated_canvas_size(w, h, angle_deg)

    # Pixel centres sit on integer coordinates, so the true centre is ((w-1)/2, (h-1)/2)
    center = ((w - 1) / 2.0, (h - 1) / 2.0)
    matrix = cv2.getRotationMatrix2D(center, -angle_deg, 1.0)
    matrix[0, 2] += (new_w - w) / 2.0
    matrix[1, 2] += (new_h - h) / 2.0

    raise_if_cancelled(cancel)
    rotated = cv2.warpAffine(
        raster,
        matrix,
        (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=FILL_COLOR,
    )
    raise_if_cancelled(cancel)

    if not preserve_aspect_ratio:
        return rotated

    crop_w, crop_h = aspect_crop_size(w, h, angle_deg)
    log.debug("Rotated %dx%d by %.2f deg; cropping %.1fx%.1f from %dx%d canvas",
              w, h, angle_deg, crop_w, crop_h, new_w, new_h)
    return _center_crop(rotated, crop_w, crop_h)
