"""Writes chosen results into the 'selection' folder next to the source image."""

import logging
from pathlib import Path
from typing import Optional

from photocull.models import TransformKind

log = logging.getLogger(__name__)

SELECTION_DIR_NAME = "selection"
ENCODED_EXTENSION = ".png"


def selection_path(source: Path, kind: TransformKind) -> Path:
    """Returns <source dir>/selection/<stem><suffix><ext>, without uniqueness checks.

    The original keeps its own extension; every processed variant is PNG encoded.
    """
    ext = source.suffix if kind is TransformKind.ORIGINAL else ENCODED_EXTENSION
    return source.parent / SELECTION_DIR_NAME / f"{source.stem}{kind.suffix}{ext}"


def unique_path(path: Path) -> Path:
    """Appends -2, -3, ... to the stem until the path does not exist."""
    if not path.exists():
        return path
    i = 2
    candidate = path.with_name(f"{path.stem}-{i}{path.suffix}")
    while candidate.exists():
        i += 1
        candidate = path.with_name(f"{path.stem}-{i}{path.suffix}")
    return candidate


def save_selection(source: Path, data: bytes, kind: TransformKind) -> Optional[Path]:
    """Saves encoded bytes for a source image into its selection folder.

    Returns:
        The written path, or None if writing failed.
    """
    target = unique_path(selection_path(Path(source), kind))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as e:
        log.exception(f"Failed to save selection {target}: {e}")
        return None
    log.info("Saved %s result for %s to %s", kind.value, source, target)
    return target
