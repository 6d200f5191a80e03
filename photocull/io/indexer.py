"""Scans a directory for supported image files."""

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import List

from photocull.models import ImageFile

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".tif", ".heic", ".heif",
}

def is_supported_image(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS

def find_images(directory: Path) -> List[ImageFile]:
    """Finds all supported images directly inside a directory, ordered by name."""
    t_start = time.perf_counter()
    log.info("Scanning directory for images: %s", directory)
    image_files: List[ImageFile] = []

    try:
        for entry in os.scandir(directory):
            if not entry.is_file():
                continue
            p = Path(entry.path)
            if not is_supported_image(p):
                continue
            try:
                st = entry.stat()
            except OSError as e:
                log.warning("Skipping %s: %s", p, e)
                continue
            image_files.append(ImageFile(
                path=p,
                name=p.name,
                modified=datetime.fromtimestamp(st.st_mtime),
                size_bytes=st.st_size,
            ))
    except OSError:
        log.exception("Error scanning directory %s", directory)
        return []

    image_files.sort(key=lambda im: im.name)

    elapsed = time.perf_counter() - t_start
    log.info("Found %d image files in %.3fs", len(image_files), elapsed)
    return image_files
