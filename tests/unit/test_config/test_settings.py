"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from livecommentary.config.settings import (
    AppSettings,
    CaptureConfig,
    CommentaryConfig,
    ProviderConfig,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's shell and .env out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("VLM_REMOTE_URL", "VLM_API_KEY", "VISION_MODEL"):
        # setenv so .env loader writes are restored too
        monkeypatch.setenv(name, "")


class TestSettings:

    def test_default_settings(self) -> None:
        settings = AppSettings()
        assert settings.capture.mode == "screen-capture"
        assert settings.provider.request_timeout == 60.0
        assert settings.server.port == 8765
        assert settings.storage.key == "live-commentary-settings"
        assert settings.commentary.display_interval == (2.5, 3.5)

    def test_section_defaults(self) -> None:
        assert CaptureConfig().max_dimension == 1024
        assert CaptureConfig().jpeg_quality == 60
        assert ProviderConfig().history_window == 8

    def test_invalid_capture_mode(self) -> None:
        with pytest.raises(ValidationError):
            CaptureConfig(mode="webcam")

    def test_display_interval_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            CommentaryConfig(display_interval_min=4, display_interval_max=2)

    def test_load_settings_missing_file(self, tmp_path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.capture.monitor == 1
        assert settings.commentary.defaults == {}

    def test_load_settings_from_yaml(self, tmp_path) -> None:
        config = tmp_path / "livecommentary.yaml"
        config.write_text(
            "capture:\n"
            "  mode: external\n"
            "provider:\n"
            "  request_timeout: 15\n"
            "commentary:\n"
            "  usernames: [alpha, beta]\n"
            "  prompts:\n"
            "    interval: Describe the match.\n"
            "  defaults:\n"
            "    modelName: llava\n"
            "server:\n"
            "  port: 9000\n"
        )
        settings = load_settings(config)
        assert settings.capture.mode == "external"
        assert settings.provider.request_timeout == 15
        assert settings.commentary.usernames == ["alpha", "beta"]
        assert settings.commentary.prompts == {"interval": "Describe the match."}
        assert settings.commentary.defaults == {"modelName": "llava"}
        assert settings.server.port == 9000

    def test_env_vars_seed_commentary_defaults(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("VLM_REMOTE_URL", "http://gpu-box:8000/v1/chat/completions")
        monkeypatch.setenv("VLM_API_KEY", "sk-test")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.commentary.defaults == {
            "remoteUrl": "http://gpu-box:8000/v1/chat/completions",
            "apiKey": "sk-test",
        }

    def test_yaml_defaults_win_over_env(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("VISION_MODEL", "from-env")
        config = tmp_path / "livecommentary.yaml"
        config.write_text("commentary:\n  defaults:\n    model_name: from-yaml\n")
        settings = load_settings(config)
        assert settings.commentary.defaults == {"model_name": "from-yaml"}

    def test_dotenv_file_is_read(self, monkeypatch, tmp_path) -> None:
        (tmp_path / ".env").write_text("# local\nVLM_API_KEY=sk-dotenv\n")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.commentary.defaults["apiKey"] == "sk-dotenv"
