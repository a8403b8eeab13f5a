import pytest
from PIL import Image

from fitwright.capture.screenshot import ScreenshotStore
from fitwright.utils import markup
from fitwright.utils.config import get_settings


def test_save_png(tmp_path, png_base64):
    store = ScreenshotStore(tmp_path / "shots")
    result = store.save_base64(png_base64, "row 1: click")
    assert result.path == tmp_path / "shots" / "row_1__click.png"
    assert (result.width, result.height) == (4, 3)
    assert result.path.exists()


def test_repeated_names_get_suffix(tmp_path, png_base64):
    store = ScreenshotStore(tmp_path)
    first = store.save_base64(png_base64, "shot")
    second = store.save_base64(png_base64, "shot")
    assert first.path.name == "shot.png"
    assert second.path.name == "shot_2.png"


def test_save_jpeg(tmp_path, monkeypatch, png_base64):
    monkeypatch.setenv("SCREENSHOT_FORMAT", "jpeg")
    get_settings.cache_clear()
    result = ScreenshotStore(tmp_path).save_base64(png_base64, "shot")
    assert result.path.suffix == ".jpg"
    with Image.open(result.path) as im:
        assert im.format == "JPEG"


def test_invalid_base64(tmp_path):
    with pytest.raises(ValueError, match="not valid base64"):
        ScreenshotStore(tmp_path).save_base64("***", "bad")


def test_save_from_message(tmp_path, png_base64):
    store = ScreenshotStore(tmp_path)
    message = markup.exception_message("boom", png_base64)
    assert store.save_from_message(message, "failure").path.name == "failure.png"
    assert store.save_from_message("plain message", "failure") is None
    # decodable base64 that is not an image
    assert store.save_from_message(markup.exception_message("boom", "U0hPVA=="), "failure") is None
