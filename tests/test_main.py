# tests/test_main.py
import json
import logging
from unittest.mock import patch

import pytest

from imgshelf.main import main, setup_logging


@pytest.fixture
def run_cli(capsys):
    """Runs the command line front end and returns (exit code, parsed stdout)."""

    def _run(*argv):
        with patch("imgshelf.main.setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                main(list(argv))
        out = capsys.readouterr().out
        return exc_info.value.code, (json.loads(out) if out.strip() else None)

    return _run


@pytest.fixture
def isolated_logger():
    """Hands setup_logging a throwaway logger instead of the real root logger."""
    test_logger = logging.Logger("imgshelf-test-root")
    with patch("imgshelf.main.logging.getLogger", return_value=test_logger):
        yield test_logger
    for handler in test_logger.handlers:
        handler.close()


def test_setup_logging_console_only(isolated_logger):
    setup_logging()

    handlers = isolated_logger.handlers
    assert isolated_logger.level == logging.DEBUG
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)


def test_setup_logging_with_file(isolated_logger, mock_settings, tmp_path):
    mock_settings.LOG_FILE = str(tmp_path / "app.log")

    setup_logging()

    assert any(isinstance(h, logging.FileHandler) for h in isolated_logger.handlers)


def test_cli_mkdir_and_ls(run_cli, data_dir):
    code, result = run_cli("mkdir", "", "album")
    assert code == 0
    assert result["success"] is True

    code, listing = run_cli("ls")
    assert code == 0
    assert listing["path"] == ""
    assert listing["items"][0]["name"] == "album"
    assert listing["items"][0]["isDirectory"] is True


def test_cli_failed_operation_exits_non_zero(run_cli, data_dir):
    code, result = run_cli("rm", "missing")
    assert code == 1
    assert result["error"] == "NotFound"


def test_cli_upload_rename_mv_tree(run_cli, data_dir, tmp_path):
    source = tmp_path / "pic.png"
    source.write_bytes(b"png")

    code, result = run_cli("upload", "inbox", str(source))
    assert code == 0
    assert result["message"] == "Files uploaded successfully"

    code, result = run_cli("rename", "inbox/pic.png", "cover.png")
    assert result["data"] == {"newPath": "inbox/cover.png"}

    run_cli("mkdir", "", "covers")
    code, result = run_cli("mv", "inbox/cover.png", "covers")
    assert result["data"] == {"newPath": "covers/cover.png"}

    code, tree = run_cli("tree")
    assert code == 0
    assert "covers/cover.png" in [item["path"] for item in tree["items"]]


def test_cli_cat_writes_bytes(capsys, data_dir):
    (data_dir / "a.png").write_bytes(b"raw-bytes")

    with patch("imgshelf.main.setup_logging"):
        with pytest.raises(SystemExit) as exc_info:
            main(["cat", "a.png"])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out == "raw-bytes"


def test_cli_cat_missing_file(run_cli):
    code, _ = run_cli("cat", "nope.png")
    assert code == 1


def test_cli_data_path_override(run_cli, tmp_path):
    other = tmp_path / "other"
    (other / "x").mkdir(parents=True)

    code, listing = run_cli("--data-path", str(other), "ls")

    assert code == 0
    assert [item["name"] for item in listing["items"]] == ["x"]
