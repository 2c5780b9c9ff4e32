import os
import stat
import struct
import tempfile
from pathlib import Path
from typing import AsyncGenerator

# Keep the app's default data root out of the working tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="imageforge-test-"))
os.environ.setdefault("LOG_FORMAT_JSON", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

from imageforge.api.dependencies import (
    get_broadcaster,
    get_config_store,
    get_dispatcher,
    get_storage,
)
from imageforge.core.config import ConfigStore, UpscalerConfig
from imageforge.core.events import EventBroadcaster
from imageforge.core.storage import LocalStorage
from imageforge.main import app
from imageforge.pipeline.tasks import BatchDispatcher


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "data")


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(queue_size=100)


@pytest.fixture
def events(broadcaster):
    """A subscriber queue attached before anything is processed."""
    return broadcaster.subscribe()


def drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


@pytest.fixture
def missing_upscaler(tmp_path) -> UpscalerConfig:
    return UpscalerConfig.from_bin(str(tmp_path / "nowhere" / "resources" / "bin" / "upscayl-bin"))


def write_upscaler_script(tmp_path: Path, body: str) -> UpscalerConfig:
    """Stand-in upscayl-bin laid out like a real install."""
    bin_dir = tmp_path / "Upscayl" / "resources" / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    script = bin_dir / "upscayl-bin"
    args_file = tmp_path / "upscaler-args.txt"
    script.write_text(
        "#!/bin/sh\n"
        f"printf '%s\\n' \"$@\" > '{args_file}'\n"
        + body
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return UpscalerConfig.from_bin(str(script))


@pytest.fixture
def copying_upscaler(tmp_path) -> UpscalerConfig:
    """Copies the input to the output path and chatters on stderr."""
    return write_upscaler_script(
        tmp_path,
        "echo 'vkGetPhysicalDeviceProperties noise' >&2\n"
        "cp \"$2\" \"$4\"\n"
    )


@pytest.fixture
def enlarging_upscaler(tmp_path) -> UpscalerConfig:
    """Writes a 64x48 image, four times a 16x12 input."""
    upscaled = make_image(tmp_path / "upscaled.png", size=(64, 48))
    return write_upscaler_script(tmp_path, f"cp '{upscaled}' \"$4\"\n")


@pytest.fixture
def failing_upscaler(tmp_path) -> UpscalerConfig:
    return write_upscaler_script(tmp_path, "echo 'model not found' >&2\nexit 3\n")


@pytest.fixture
def config_store(missing_upscaler) -> ConfigStore:
    return ConfigStore(missing_upscaler)


@pytest.fixture
def dispatcher(storage, config_store, broadcaster) -> BatchDispatcher:
    return BatchDispatcher(storage, config_store, broadcaster)


def make_image(path: Path, size=(32, 24), color=(200, 40, 40), fmt=None, **save_kwargs) -> Path:
    image = Image.new("RGB", size, color)
    image.save(path, format=fmt, **save_kwargs)
    return path


@pytest_asyncio.fixture
async def client(storage, config_store, broadcaster, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_config_store] = lambda: config_store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    try:
        async with app.router.lifespan_context(app):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()


def _s15f16(value: float) -> bytes:
    return struct.pack(">i", round(value * 65536))


def _xyz_tag(x: float, y: float, z: float) -> bytes:
    return b"XYZ " + b"\0" * 4 + _s15f16(x) + _s15f16(y) + _s15f16(z)


def swapped_primaries_profile() -> bytes:
    """
    Linear RGB display profile whose red and green colorants are sRGB's
    green and red. Pure red in this space is pure green in sRGB.
    """
    d50 = (0.9642, 1.0, 0.8249)
    srgb_red = (0.4361, 0.2225, 0.0139)
    srgb_green = (0.3851, 0.7169, 0.0971)
    srgb_blue = (0.1431, 0.0606, 0.7141)
    linear_curve = b"curv" + b"\0" * 4 + struct.pack(">I", 0)

    tags = [
        (b"wtpt", _xyz_tag(*d50)),
        (b"rXYZ", _xyz_tag(*srgb_green)),
        (b"gXYZ", _xyz_tag(*srgb_red)),
        (b"bXYZ", _xyz_tag(*srgb_blue)),
        (b"rTRC", linear_curve),
        (b"gTRC", linear_curve),
        (b"bTRC", linear_curve),
    ]

    offset = 128 + 4 + 12 * len(tags)
    table = struct.pack(">I", len(tags))
    data = b""
    for signature, body in tags:
        table += signature + struct.pack(">II", offset + len(data), len(body))
        data += body
    size = offset + len(data)

    header = (
        struct.pack(">I", size)
        + b"\0" * 4
        + struct.pack(">I", 0x02100000)
        + b"mntr"
        + b"RGB "
        + b"XYZ "
        + b"\0" * 12
        + b"acsp"
        + b"\0" * 24
        + struct.pack(">I", 0)
        + _s15f16(d50[0]) + _s15f16(d50[1]) + _s15f16(d50[2])
        + b"\0" * 48
    )
    assert len(header) == 128
    return header + table + data
