import io

import pytest
from PIL import Image

from config import DatabaseSettings, Settings, StorageSettings
from context import close_context, init_context
from script_versions import VersionManager


def make_png(width: int = 100, height: int = 45) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database=DatabaseSettings(url="sqlite://"),
        storage=StorageSettings(blob_dir=tmp_path / "blobs"),
    )


@pytest.fixture
def ctx(settings):
    context = init_context(settings)
    yield context
    close_context(context)


@pytest.fixture
def store(ctx):
    return ctx.script_store()


@pytest.fixture
def manager(store):
    return VersionManager(store)


@pytest.fixture
def png_bytes():
    return make_png()
