# tests/conftest.py
import pytest
from unittest.mock import MagicMock

# Settings can be imported without a .env file; every field has a default.
from imgshelf.config import Settings, get_settings
from imgshelf.storage.local import LocalStorageClient


@pytest.fixture
def data_dir(tmp_path):
    """An empty storage root for a single test."""
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def mock_settings(data_dir):
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.DATA_PATH = str(data_dir)
    settings.DATA_DIR = data_dir
    settings.LOG_LEVEL = "DEBUG"
    settings.LOG_FILE = None
    settings.MAX_FILE_SIZE = 50 * 1024 * 1024
    settings.ALLOWED_FILE_TYPES = ["image/jpeg", "image/png", "image/*"]
    settings.STREAM_WRITE_THRESHOLD = 5 * 1024 * 1024
    settings.STREAM_WRITE_TIMEOUT_SECONDS = 30.0
    settings.STREAM_CHUNK_SIZE = 1024 * 1024
    settings.FILE_URL_PREFIX = "/api/file/"
    return settings


@pytest.fixture
def storage(mock_settings):
    """A local storage client rooted at the test data directory."""
    return LocalStorageClient.from_settings(mock_settings)


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    Replaces the `Settings` constructor so any `get_settings()` call during a
    test receives `mock_settings`. The cache is cleared first because a real
    instance may have been cached during collection.
    """
    get_settings.cache_clear()
    monkeypatch.setattr("imgshelf.config.Settings", lambda *args, **kwargs: mock_settings)
    yield
    get_settings.cache_clear()
