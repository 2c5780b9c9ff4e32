from pathlib import Path

import pytest

from imageforge.core.config import (
    ConfigStore,
    DEFAULT_UPSCAYL_BINS,
    Settings,
    UpscalerConfig,
    default_upscayl_bin,
    initial_upscaler_config,
)
from imageforge.core.exceptions import ValidationError
from imageforge.core.storage import LocalStorage, safe_filename


def test_models_path_is_sibling_of_bin():
    config = UpscalerConfig.from_bin("/opt/Upscayl/resources/bin/upscayl-bin")

    assert Path(config.models_path) == Path("/opt/Upscayl/resources/models")


def test_default_bin_per_platform():
    assert default_upscayl_bin("win32") == DEFAULT_UPSCAYL_BINS["win32"]
    assert default_upscayl_bin("darwin").startswith("/Applications/Upscayl.app")
    assert default_upscayl_bin("sunos5") == DEFAULT_UPSCAYL_BINS["linux"]


def test_settings_override_wins():
    app_settings = Settings(UPSCAYL_BIN="/srv/upscayl/resources/bin/upscayl-bin")

    config = initial_upscaler_config(app_settings)

    assert config.upscayl_bin == "/srv/upscayl/resources/bin/upscayl-bin"


def test_config_store_replaces_whole_value(tmp_path):
    store = ConfigStore(UpscalerConfig.from_bin("/a/resources/bin/upscayl-bin"))
    before = store.get()

    updated = store.update(str(tmp_path / "resources" / "bin" / "upscayl-bin"))

    assert store.get() is updated
    assert before.upscayl_bin == "/a/resources/bin/upscayl-bin"
    assert Path(updated.models_path) == tmp_path / "resources" / "models"
    assert updated.available is False


def test_available_tracks_file_on_disk(tmp_path):
    binary = tmp_path / "upscayl-bin"
    config = UpscalerConfig.from_bin(str(binary))
    assert not config.available

    binary.write_text("")
    assert config.available


def test_storage_creates_layout(tmp_path):
    storage = LocalStorage(tmp_path / "root")

    for name in ("input", "output", "temp", "uploads"):
        assert (tmp_path / "root" / name).is_dir()
    assert storage.output_path("scan.PNG") == tmp_path / "root" / "output" / "scan.jpg"
    assert storage.output_url(storage.output_path("scan.PNG")) == "/output/scan.jpg"


def test_list_inputs_filters_extensions_case_insensitively(storage):
    for name in ("b.JPG", "a.png", "c.webp", "d.jpeg", "notes.txt", "e.gif"):
        storage.input_path(name).write_bytes(b"x")
    (storage.input_dir / "nested.png").mkdir()

    assert storage.list_inputs() == ["a.png", "b.JPG", "c.webp", "d.jpeg"]


def test_save_upload_moves_into_input(storage):
    target = storage.save_upload(b"data", "upload.png")

    assert target == storage.input_path("upload.png")
    assert target.read_bytes() == b"data"
    assert list(storage.uploads_dir.iterdir()) == []


@pytest.mark.parametrize("name", ["../escape.png", "dir/file.png", "..\\win.png", "", ".."])
def test_safe_filename_rejects_paths(name):
    with pytest.raises(ValidationError):
        safe_filename(name)


def test_delete_reports_presence(storage):
    path = storage.input_path("x.png")
    path.write_bytes(b"x")

    assert storage.delete(path) is True
    assert storage.delete(path) is False
