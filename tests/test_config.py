"""Tests for environment-driven configuration."""

import logging
from unittest.mock import patch

from image_gateway.core.config import Config
from image_gateway.main import main


def test_defaults(config):
    assert config.json_webp_quality == 80
    assert config.file_webp_quality == 50
    assert config.openai_model == "gpt-4o-mini"
    assert config.max_transcode_workers == 2
    assert config.max_file_size_bytes == 5 * 1024 * 1024
    assert config.openai_api_key is None


def test_quality_is_clamped(config, monkeypatch):
    monkeypatch.setenv("JSON_WEBP_QUALITY", "150")
    monkeypatch.setenv("FILE_WEBP_QUALITY", "0")

    clamped = Config()

    assert clamped.json_webp_quality == 100
    assert clamped.file_webp_quality == 1


def test_invalid_integer_falls_back_to_default(config, monkeypatch):
    monkeypatch.setenv("JSON_WEBP_QUALITY", "high")

    assert Config().json_webp_quality == 80


def test_zero_file_size_disables_limit(config, monkeypatch):
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "0")

    assert Config().max_file_size_bytes is None


def test_workers_at_least_one(config, monkeypatch):
    monkeypatch.setenv("MAX_TRANSCODE_WORKERS", "0")

    assert Config().max_transcode_workers == 1


def test_cancel_on_disconnect_flag(config, monkeypatch):
    monkeypatch.setenv("CANCEL_ON_DISCONNECT", "false")

    assert Config().cancel_on_disconnect is False


def test_configured_logging_opens_no_log_file(config, monkeypatch, tmp_path):
    """A second Config must not leave a file handler or an empty log behind."""
    log_dir = tmp_path / "more-logs"
    monkeypatch.setenv("LOG_TO_FILE", "true")
    monkeypatch.setenv("LOG_DIR", str(log_dir))
    root = logging.getLogger()
    handler = logging.NullHandler()
    root.addHandler(handler)
    handlers_before = list(root.handlers)
    try:
        Config()
        handlers_after = list(root.handlers)
    finally:
        root.removeHandler(handler)

    assert handlers_after == handlers_before
    assert not log_dir.exists() or not any(log_dir.iterdir())


def test_main_loads_dotenv_from_working_directory(config, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("OPENAI_API_KEY=sk-from-dotenv\nOPENAI_MODEL=gpt-4o\n")
    # Registers teardown for the variables load_dotenv is about to set
    monkeypatch.setenv("OPENAI_API_KEY", "placeholder")
    monkeypatch.delenv("OPENAI_API_KEY")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1-mini")

    with patch("uvicorn.run") as run:
        main()

    app = run.call_args.args[0]
    app.state.transcoder.shutdown()
    assert app.state.config.openai_api_key == "sk-from-dotenv"
    # Real environment variables win over .env
    assert app.state.config.openai_model == "gpt-4.1-mini"
