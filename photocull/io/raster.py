"""Decodes image files into BGR numpy rasters and encodes rasters back to PNG."""

import logging
from io import BytesIO
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from photocull.errors import DecodeError

log = logging.getLogger(__name__)

LOSSLESS_FORMAT = "PNG"


def _to_bgr(img: Image.Image) -> np.ndarray:
    # Honour the camera's orientation tag before the pixels leave Pillow
    img = ImageOps.exif_transpose(img)
    rgb = np.asarray(img.convert("RGB"), dtype=np.uint8)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def decode(path: Union[Path, str]) -> np.ndarray:
    """Loads a file as an (H, W, 3) uint8 BGR raster.

    Raises DecodeError for missing, unreadable or unsupported files.
    """
    path = Path(path)
    try:
        # Load and close the file handle immediately
        with Image.open(path) as im:
            im.load()
            return _to_bgr(im)
    except FileNotFoundError as e:
        raise DecodeError(path, "file not found") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.warning("Failed to decode %s: %s", path, e)
        raise DecodeError(path, str(e)) from e


def decode_bytes(data: bytes, source: Union[Path, str] = "<bytes>") -> np.ndarray:
    """Like decode(), for an in-memory encoded image."""
    try:
        with Image.open(BytesIO(data)) as im:
            im.load()
            return _to_bgr(im)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.warning("Failed to decode %s: %s", source, e)
        raise DecodeError(source, str(e)) from e


def encode(raster: np.ndarray, fmt: str = LOSSLESS_FORMAT) -> bytes:
    """Encodes a BGR raster, losslessly by default."""
    if raster.ndim != 3 or raster.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) raster, got shape {raster.shape}")
    rgb = cv2.cvtColor(np.ascontiguousarray(raster, dtype=np.uint8), cv2.COLOR_BGR2RGB)
    buf = BytesIO()
    Image.fromarray(rgb, "RGB").save(buf, format=fmt)
    return buf.getvalue()
