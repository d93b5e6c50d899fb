import io
import logging
import logging.handlers
import sys

import pytest
from pydantic import ValidationError

import main
from config import Settings, logger
from logger import LogManager
from stream_decoder import MAX_BUFFER_SIZE


@pytest.fixture(autouse=True)
def disable_logging():
    logger.disabled = True
    yield
    logger.disabled = False


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory so no .env file is picked up."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "APP_NAME",
        "DEV",
        "LOG_DIR",
        "LOG_LEVEL",
        "MAX_BUFFER_SIZE",
        "READ_CHUNK_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Test class for Settings."""

    def test_defaults(self, clean_env):
        settings = Settings()
        assert settings.app_name == "JsonStream"
        assert settings.dev is False
        assert settings.log_dir == "logs"
        assert settings.log_level == logging.DEBUG
        assert settings.max_buffer_size == MAX_BUFFER_SIZE
        assert settings.read_chunk_size == 4096

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("MAX_BUFFER_SIZE", "1024")
        monkeypatch.setenv("dev", "true")
        settings = Settings()
        assert settings.max_buffer_size == 1024
        assert settings.dev is True

    def test_env_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("READ_CHUNK_SIZE=16\nUNRELATED=1\n")
        assert Settings().read_chunk_size == 16

    def test_rejects_non_positive_limit(self, clean_env, monkeypatch):
        monkeypatch.setenv("MAX_BUFFER_SIZE", "0")
        with pytest.raises(ValidationError):
            Settings()


class TestLogManager:
    """Test class for LogManager."""

    def test_file_handler(self, tmp_path):
        manager = LogManager(app_name="test-file", log_dir=str(tmp_path / "logs"))
        handlers = manager.logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
        assert (tmp_path / "logs").is_dir()
        assert manager.logger.level == logging.INFO

    def test_development_adds_console(self, tmp_path):
        manager = LogManager(
            app_name="test-console", log_dir=str(tmp_path), development=True
        )
        assert len(manager.logger.handlers) == 2

    def test_recreating_does_not_duplicate_handlers(self, tmp_path):
        LogManager(app_name="test-twice", log_dir=str(tmp_path))
        manager = LogManager(app_name="test-twice", log_dir=str(tmp_path))
        assert len(manager.logger.handlers) == 1

    def test_writes_json_records(self, tmp_path):
        manager = LogManager(
            app_name="test-json", log_dir=str(tmp_path), level=logging.DEBUG
        )
        manager.logger.debug({"message": "buffering", "size": 7})
        for handler in manager.logger.handlers:
            handler.flush()

        record = (tmp_path / "test-json.log").read_text()
        assert '"level": "DEBUG"' in record
        assert '"size": 7' in record

    def test_requires_log_dir(self):
        with pytest.raises(AssertionError):
            LogManager(app_name="test-missing", log_dir="")


class TestMain:
    """Test class for the stdin driver."""

    def test_read_chunks(self):
        stream = io.BytesIO(b"abcdefg")
        assert list(main.read_chunks(stream, 3)) == [b"abc", b"def", b"g"]

    def test_decode_stdin(self, monkeypatch, capsys):
        data = b'{"response": "Hel'
        data += b'lo"}\n\n{"response": "World", "done": true}\n'
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(data)))
        monkeypatch.setattr(main.settings, "read_chunk_size", 5)

        assert main.decode_stdin() == 0
        assert capsys.readouterr().out.splitlines() == [
            '{"response":"Hello"}',
            '{"response":"World","done":true}',
        ]

    def test_decode_stdin_malformed(self, monkeypatch, capsys):
        data = b'{"response": "Hello"}\n{"response": "Hello" invalid}\n'
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(data)))

        assert main.decode_stdin() == 1
        captured = capsys.readouterr()
        assert captured.out.splitlines() == ['{"response":"Hello"}']
        assert "JSON parse error for chunk" in captured.err
