"""Headless culling session: folder, selection, transform choice and saving."""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import numpy as np

from photocull.config import config
from photocull.errors import DecodeError, InvalidParameters
from photocull.imaging.cache import ProcessedImageCache, build_cache_key
from photocull.imaging.histogram import value_histogram
from photocull.imaging.prefetch import Precomputer
from photocull.imaging.processor import process_file
from photocull.io import raster as raster_io
from photocull.io.indexer import find_images
from photocull.io.selection import save_selection
from photocull.logging_setup import setup_logging
from photocull.models import CustomLevelsParams, ImageFile, RotateParams, TransformKind

log = logging.getLogger(__name__)


def build_cache_from_config() -> ProcessedImageCache:
    return ProcessedImageCache(
        capacity=config.getint('cache', 'capacity', fallback=50),
        ttl=config.getfloat('cache', 'ttl_seconds', fallback=300.0),
    )


def build_precomputer_from_config(cache: ProcessedImageCache) -> Precomputer:
    return Precomputer(
        cache,
        max_workers=config.getint('prefetch', 'max_workers', fallback=0) or None,
        discard_percent=config.getfloat('processing', 'discard_percent', fallback=0.05),
        value_gamma=config.getfloat('processing', 'value_gamma', fallback=1.15),
    )


class CullSession:
    """Drives the engine for one folder: one selected image and one chosen transform."""

    def __init__(
        self,
        directory: Path,
        cache: Optional[ProcessedImageCache] = None,
        precomputer: Optional[Precomputer] = None,
    ):
        self.directory = Path(directory)
        self.cache = cache if cache is not None else build_cache_from_config()
        self.precomputer = precomputer if precomputer is not None else build_precomputer_from_config(self.cache)
        self.image_files: List[ImageFile] = []
        self.current_index = -1
        self.transform = TransformKind.ORIGINAL
        self.custom_params = CustomLevelsParams(
            config.getfloat('processing', 'custom_low_clamp', fallback=0.0),
            config.getfloat('processing', 'custom_high_clamp', fallback=255.0),
            config.getfloat('processing', 'custom_gamma', fallback=1.0),
        )
        self._histogram: Optional[np.ndarray] = None
        self._histogram_path: Optional[Path] = None

    def load_folder(self) -> int:
        """Scans the directory and selects the first image. Returns the image count."""
        self.precomputer.cancel_all()
        self.image_files = find_images(self.directory)
        self.current_index = -1
        self._histogram = None
        self._histogram_path = None
        if self.image_files:
            self.select(0)
        return len(self.image_files)

    @property
    def current_image(self) -> Optional[ImageFile]:
        if 0 <= self.current_index < len(self.image_files):
            return self.image_files[self.current_index]
        return None

    def select(self, index: int) -> bool:
        """Makes index the active image and starts precomputing its variants."""
        if not 0 <= index < len(self.image_files):
            log.warning("select called with out of bounds index %d", index)
            return False
        if index == self.current_index:
            return True
        self.current_index = index
        self._histogram = None
        self._histogram_path = None
        self.precomputer.select(self.image_files[index].path)
        return True

    def next_image(self) -> bool:
        if self.current_index < len(self.image_files) - 1:
            return self.select(self.current_index + 1)
        return False

    def prev_image(self) -> bool:
        if self.current_index > 0:
            return self.select(self.current_index - 1)
        return False

    def set_transform(self, kind: TransformKind):
        if kind is TransformKind.ROTATE:
            raise InvalidParameters("Use rotate_current() for rotation")
        self.transform = kind

    def set_custom_params(self, low_clamp: float, high_clamp: float, gamma: float):
        """Validates and stores the custom white balance parameters."""
        self.custom_params = CustomLevelsParams(low_clamp, high_clamp, gamma).validate()

    def value_histogram(self) -> Optional[np.ndarray]:
        """Brightness histogram of the current image, computed once per selection."""
        image = self.current_image
        if image is None:
            return None
        if self._histogram is None or self._histogram_path != image.path:
            try:
                self._histogram = value_histogram(raster_io.decode(image.path))
            except DecodeError as e:
                log.warning("Cannot build histogram: %s", e)
                return None
            self._histogram_path = image.path
        return self._histogram

    def _params_for(self, kind: TransformKind):
        if kind is TransformKind.CUSTOM:
            return self.custom_params
        return None

    def get_processed(self, kind: Optional[TransformKind] = None) -> Optional[bytes]:
        """Encoded bytes of the current image under kind (default: the chosen transform)."""
        image = self.current_image
        if image is None:
            return None
        kind = kind or self.transform
        if kind is TransformKind.ORIGINAL:
            try:
                return process_file(image.path, kind)
            except DecodeError as e:
                log.warning("Cannot read original: %s", e)
                return None
        return self.precomputer.get_or_compute(image.path, kind, self._params_for(kind))

    def rotate_current(self, angle_degrees: float, preserve_aspect_ratio: bool = True) -> Optional[bytes]:
        """Rotated (and optionally cropped) bytes of the current image."""
        image = self.current_image
        if image is None:
            return None
        params = RotateParams(angle_degrees, preserve_aspect_ratio)
        return self.precomputer.get_or_compute(image.path, TransformKind.ROTATE, params)

    def save_selected(self) -> Optional[Path]:
        """Saves the chosen transform of the current image into the selection folder."""
        image = self.current_image
        if image is None:
            return None
        data = self.get_processed()
        if data is None:
            log.error("Nothing to save for %s", image.path)
            return None
        return save_selection(image.path, data, self.transform)

    def save_rotated(self, angle_degrees: float, preserve_aspect_ratio: bool = True) -> Optional[Path]:
        image = self.current_image
        if image is None:
            return None
        data = self.rotate_current(angle_degrees, preserve_aspect_ratio)
        if data is None:
            return None
        return save_selection(image.path, data, TransformKind.ROTATE)

    def cache_key(self, kind: TransformKind) -> Optional[str]:
        image = self.current_image
        if image is None:
            return None
        params = self._params_for(kind) or self.precomputer.params_for(kind)
        return build_cache_key(image.path, kind, params)

    def shutdown(self):
        self.precomputer.shutdown()


MODES = {
    "original": TransformKind.ORIGINAL,
    "value": TransformKind.WHITE_BALANCE_VALUE,
    "rgb": TransformKind.WHITE_BALANCE_RGB,
    "custom": TransformKind.CUSTOM,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photocull",
        description="photocull - white balance, levels and straighten images into a selection folder",
    )
    parser.add_argument("image_dir", nargs="?", default="", help="Directory of images to process.")
    parser.add_argument("--mode", choices=sorted(MODES), default="value", help="Transform to apply.")
    parser.add_argument("--low", type=float, default=None, help="Custom mode low clamp (0-255).")
    parser.add_argument("--high", type=float, default=None, help="Custom mode high clamp (0-255).")
    parser.add_argument("--gamma", type=float, default=None, help="Custom mode gamma.")
    parser.add_argument("--rotate", type=float, default=None, help="Rotate by degrees (clockwise) instead.")
    parser.add_argument("--no-crop", action="store_true", help="Keep the full rotated canvas.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--index", type=int, default=0, help="Index of the image to process.")
    group.add_argument("--all", action="store_true", help="Process every image in the directory.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """photocull command line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug)
    log.info("Starting photocull")

    image_dir_str = args.image_dir or config.get('core', 'default_directory', fallback="")
    if not image_dir_str:
        log.error("No image directory provided and no default directory set.")
        print("error: no image directory given", file=sys.stderr)
        return 1
    image_dir = Path(image_dir_str)
    if not image_dir.is_dir():
        log.error("Image directory not found: %s", image_dir)
        print(f"error: directory not found: {image_dir}", file=sys.stderr)
        return 1

    session = CullSession(image_dir)
    try:
        kind = MODES[args.mode]
        session.set_transform(kind)
        if kind is TransformKind.CUSTOM:
            try:
                session.set_custom_params(
                    args.low if args.low is not None else session.custom_params.low_clamp,
                    args.high if args.high is not None else session.custom_params.high_clamp,
                    args.gamma if args.gamma is not None else session.custom_params.gamma,
                )
            except InvalidParameters as e:
                parser.error(str(e))
        if args.rotate is not None:
            try:
                RotateParams(args.rotate, not args.no_crop).validate()
            except InvalidParameters as e:
                parser.error(str(e))

        if session.load_folder() == 0:
            log.error("No images found in %s", image_dir)
            print(f"error: no images found in {image_dir}", file=sys.stderr)
            return 1

        indices = range(len(session.image_files)) if args.all else [args.index]
        failures = 0
        for index in indices:
            if not session.select(index):
                print(f"error: no image at index {index}", file=sys.stderr)
                failures += 1
                continue
            t0 = time.perf_counter()
            if args.rotate is not None:
                saved = session.save_rotated(args.rotate, preserve_aspect_ratio=not args.no_crop)
            else:
                saved = session.save_selected()
            if saved is None:
                failures += 1
                continue
            log.info("Processed %s in %.3fs", session.current_image.name, time.perf_counter() - t0)
            print(saved)
        return 1 if failures else 0
    finally:
        session.shutdown()


if __name__ == "__main__":
    sys.exit(main())
