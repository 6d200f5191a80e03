from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from photocull import app
from photocull.app import CullSession, main
from photocull.errors import InvalidParameters
from photocull.imaging.cache import ProcessedImageCache, build_cache_key
from photocull.imaging.prefetch import Precomputer
from photocull.io import raster as raster_io
from photocull.models import CustomLevelsParams, TransformKind


@pytest.fixture
def photo_dir(tmp_path):
    rng = np.random.default_rng(21)
    for name in ("a.png", "b.png", "c.png"):
        pixels = rng.integers(40, 210, size=(12, 18, 3)).astype(np.uint8)
        Image.fromarray(pixels, "RGB").save(tmp_path / name)
    (tmp_path / "readme.txt").write_text("not an image")
    return tmp_path


@pytest.fixture
def session(photo_dir):
    cache = ProcessedImageCache(capacity=20, ttl=60)
    s = CullSession(photo_dir, cache=cache, precomputer=Precomputer(cache, max_workers=2))
    yield s
    s.precomputer.shutdown(wait=True)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(app, "setup_logging", lambda debug=False: None)


def test_load_folder_selects_first_image(session):
    assert session.load_folder() == 3
    assert session.current_index == 0
    assert session.current_image.name == "a.png"
    assert session.precomputer.current_job.path == session.current_image.path


def test_load_folder_restarts_precompute(photo_dir):
    precomputer = MagicMock(spec=Precomputer)
    s = CullSession(photo_dir, cache=ProcessedImageCache(capacity=2, ttl=60), precomputer=precomputer)

    s.load_folder()
    s.select(0)

    precomputer.cancel_all.assert_called_once()
    precomputer.select.assert_called_once_with(photo_dir / "a.png")


def test_navigation_stays_in_bounds(session):
    session.load_folder()

    assert not session.prev_image()
    assert session.next_image()
    assert session.next_image()
    assert session.current_image.name == "c.png"
    assert not session.next_image()
    assert not session.select(7)
    assert session.current_index == 2


def test_empty_folder(tmp_path):
    cache = ProcessedImageCache(capacity=2, ttl=60)
    s = CullSession(tmp_path, cache=cache, precomputer=Precomputer(cache, max_workers=1))
    try:
        assert s.load_folder() == 0
        assert s.current_image is None
        assert s.get_processed() is None
        assert s.save_selected() is None
        assert s.value_histogram() is None
    finally:
        s.precomputer.shutdown(wait=True)


def test_get_processed_defaults_to_original_bytes(session, photo_dir):
    session.load_folder()

    assert session.transform is TransformKind.ORIGINAL
    assert session.get_processed() == (photo_dir / "a.png").read_bytes()


def test_get_processed_variants_decode_to_source_size(session):
    session.load_folder()

    for kind in (TransformKind.WHITE_BALANCE_RGB, TransformKind.WHITE_BALANCE_VALUE, TransformKind.CUSTOM):
        data = session.get_processed(kind)
        assert raster_io.decode_bytes(data).shape == (12, 18, 3)


def test_set_transform_rejects_rotate(session):
    with pytest.raises(InvalidParameters):
        session.set_transform(TransformKind.ROTATE)


def test_set_custom_params_validates(session):
    session.set_custom_params(10, 240, 1.3)
    assert session.custom_params == CustomLevelsParams(10, 240, 1.3)

    with pytest.raises(InvalidParameters):
        session.set_custom_params(240, 10, 1.0)
    assert session.custom_params == CustomLevelsParams(10, 240, 1.3)


def test_save_selected_writes_suffixed_files(session, photo_dir):
    session.load_folder()
    session.set_transform(TransformKind.WHITE_BALANCE_VALUE)

    first = session.save_selected()
    second = session.save_selected()

    assert first == photo_dir / "selection" / "a_wbv.png"
    assert second == photo_dir / "selection" / "a_wbv-2.png"
    assert first.read_bytes() == second.read_bytes()


def test_save_original_keeps_source_bytes(session, photo_dir):
    session.load_folder()
    session.next_image()

    saved = session.save_selected()

    assert saved == photo_dir / "selection" / "b.png"
    assert saved.read_bytes() == (photo_dir / "b.png").read_bytes()


def test_rotate_current_and_save(session, photo_dir):
    session.load_folder()

    data = session.rotate_current(90, preserve_aspect_ratio=False)
    saved = session.save_rotated(90, preserve_aspect_ratio=False)

    assert raster_io.decode_bytes(data).shape == (18, 12, 3)
    assert saved == photo_dir / "selection" / "a_rotated.png"


def test_value_histogram_is_computed_once_per_selection(session):
    session.load_folder()

    hist = session.value_histogram()

    assert hist.shape == (256,)
    assert hist.sum() == 12 * 18
    assert session.value_histogram() is hist
    session.next_image()
    assert session.value_histogram() is not hist


def test_cache_key_uses_active_parameters(session):
    session.load_folder()
    path = session.current_image.path
    session.set_custom_params(5, 250, 2.0)

    assert session.cache_key(TransformKind.WHITE_BALANCE_RGB) == build_cache_key(path, TransformKind.WHITE_BALANCE_RGB)
    assert session.cache_key(TransformKind.CUSTOM) == build_cache_key(
        path, TransformKind.CUSTOM, CustomLevelsParams(5, 250, 2.0)
    )


# ----------------------------
# Command line
# ----------------------------

def test_main_saves_requested_mode(photo_dir, capsys):
    assert main([str(photo_dir), "--mode", "rgb", "--index", "1"]) == 0

    saved = photo_dir / "selection" / "b_wb.png"
    assert saved.exists()
    assert str(saved) in capsys.readouterr().out


def test_main_processes_all_images(photo_dir):
    assert main([str(photo_dir), "--all", "--rotate", "15"]) == 0

    names = sorted(p.name for p in (photo_dir / "selection").iterdir())
    assert names == ["a_rotated.png", "b_rotated.png", "c_rotated.png"]


def test_main_custom_mode(photo_dir):
    assert main([str(photo_dir), "--mode", "custom", "--low", "20", "--high", "230", "--gamma", "1.4"]) == 0
    assert (photo_dir / "selection" / "a_custom.png").exists()


def test_main_rejects_invalid_custom_parameters(photo_dir):
    with pytest.raises(SystemExit) as excinfo:
        main([str(photo_dir), "--mode", "custom", "--low", "200", "--high", "100"])
    assert excinfo.value.code == 2
    assert not (photo_dir / "selection").exists()


def test_main_missing_directory(tmp_path):
    assert main([str(tmp_path / "nowhere")]) == 1


def test_main_empty_directory(tmp_path):
    assert main([str(tmp_path)]) == 1


def test_main_index_out_of_range(photo_dir):
    assert main([str(photo_dir), "--index", "9"]) == 1


@pytest.mark.parametrize("extra", [
    ["--mode", "custom", "--low", "nan"],
    ["--mode", "custom", "--gamma", "inf"],
    ["--rotate", "nan"],
])
def test_main_rejects_non_finite_numbers(photo_dir, extra):
    with pytest.raises(SystemExit) as excinfo:
        main([str(photo_dir)] + extra)
    assert excinfo.value.code == 2
    assert not (photo_dir / "selection").exists()


def test_set_custom_params_rejects_nan(session):
    with pytest.raises(InvalidParameters):
        session.set_custom_params(float("nan"), 255, 1.0)
