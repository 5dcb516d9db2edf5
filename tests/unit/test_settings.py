"""Tests for persisted settings."""

import json

import pytest
from llamachat.settings import Settings, default_settings_path


class TestDefaults:
    def test_fresh_settings(self, settings):
        assert settings.ollama_url == ""
        assert settings.last_model == ""
        assert settings.tools_enabled is False
        assert settings.rag_enabled is False
        assert settings.chroma_collection == "documents"
        assert settings.dark_mode is False
        assert settings.tool_response_format is None

    def test_missing_file_is_not_created_on_load(self, settings, settings_path):
        assert not settings_path.exists()
        assert settings.path == settings_path

    def test_default_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LLAMACHAT_SETTINGS_PATH", str(tmp_path / "x.json"))
        assert default_settings_path() == tmp_path / "x.json"
        assert Settings.load().path == tmp_path / "x.json"

    def test_default_path_in_home(self, monkeypatch):
        monkeypatch.delenv("LLAMACHAT_SETTINGS_PATH")
        path = default_settings_path()
        assert path.parts[-3:] == (".config", "llamachat", "settings.json")


class TestPersistence:
    def test_update_writes_file(self, settings, settings_path):
        settings.update(last_model="llama3:latest", rag_enabled=True)

        data = json.loads(settings_path.read_text())
        assert data["last_model"] == "llama3:latest"
        assert data["rag_enabled"] is True

    def test_round_trip(self, settings, settings_path):
        settings.update(ollama_url="http://ollama.test:11434", dark_mode=True)

        reloaded = Settings.load(settings_path)

        assert reloaded.ollama_url == "http://ollama.test:11434"
        assert reloaded.dark_mode is True

    def test_unknown_keys_are_ignored(self, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(json.dumps({"last_model": "m", "LastModel": "old"}))
        assert Settings.load(settings_path).last_model == "m"

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"rag_enabled": "maybe"}'])
    def test_bad_file_gives_defaults(self, settings_path, content, caplog):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(content)

        with caplog.at_level("WARNING", logger="llamachat.settings"):
            loaded = Settings.load(settings_path)

        assert loaded.rag_enabled is False
        assert loaded.path == settings_path
        assert "Ignoring" in caplog.text

    def test_save_failure_is_logged(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        settings = Settings.load(blocker / "settings.json")

        with caplog.at_level("WARNING", logger="llamachat.settings"):
            settings.update(dark_mode=True)

        assert settings.dark_mode is True
        assert "Could not save settings" in caplog.text


class TestEnvironment:
    def test_env_prefix(self, settings_path, monkeypatch):
        monkeypatch.setenv("LLAMACHAT_CHROMA_URL", "http://chroma.test:8000")
        monkeypatch.setenv("LLAMACHAT_TOOLS_ENABLED", "true")

        loaded = Settings.load(settings_path)

        assert loaded.chroma_url == "http://chroma.test:8000"
        assert loaded.tools_enabled is True

    def test_file_wins_over_env(self, settings_path, monkeypatch):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(json.dumps({"chroma_url": "http://from-file"}))
        monkeypatch.setenv("LLAMACHAT_CHROMA_URL", "http://from-env")

        assert Settings.load(settings_path).chroma_url == "http://from-file"

    def test_assignment_is_validated(self, settings):
        with pytest.raises(ValueError):
            settings.request_timeout = "soon"
