"""Tests for configuration loading and saving."""
from __future__ import annotations

import json
from unittest.mock import patch

from dpp_tracker.config import DEFAULTS, Settings, load_settings, save_settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.backend == "local"
        assert s.questions_collection == "question_bank"
        assert s.attempts_collection == "dpp_attempts"

    def test_to_dict(self):
        d = Settings().to_dict()
        assert d["backend"] == "local"
        assert isinstance(d["question_files"], list)
        assert set(d) == set(DEFAULTS)

    def test_to_dict_roundtrip(self):
        s = Settings(backend="pocketbase", request_timeout=5.0)
        s2 = Settings(**s.to_dict())
        assert s2.backend == "pocketbase"
        assert s2.request_timeout == 5.0

    def test_public_dict_masks_token(self):
        assert Settings(pocketbase_token="secret").to_public_dict()["pocketbase_token"] == "***"
        assert Settings().to_public_dict()["pocketbase_token"] == ""

    def test_resolved_question_files(self):
        s = Settings(question_files=["banks/physics.json"])
        assert s.resolved_question_files() == [s.project_root / "banks/physics.json"]


class TestLoadSaveSettings:
    def test_load_from_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("POCKETBASE_URL", raising=False)
        monkeypatch.delenv("POCKETBASE_TOKEN", raising=False)
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"backend": "pocketbase", "pocketbase_url": "http://pb:8090"}))

        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            s = load_settings()
        assert s.backend == "pocketbase"
        assert s.pocketbase_url == "http://pb:8090"
        # Defaults for unspecified fields
        assert s.db_path == "progress.db"

    def test_load_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("POCKETBASE_URL", raising=False)
        with patch("dpp_tracker.config.CONFIG_PATH", tmp_path / "nonexistent.json"):
            s = load_settings()
        assert s.backend == "local"
        assert s.pocketbase_url == DEFAULTS["pocketbase_url"]

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"pocketbase_url": "http://file:8090"}))
        monkeypatch.setenv("POCKETBASE_URL", "http://env:8090")
        monkeypatch.setenv("POCKETBASE_TOKEN", "tok")

        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            s = load_settings()
        assert s.pocketbase_url == "http://env:8090"
        assert s.pocketbase_token == "tok"

    def test_save_creates_file(self, tmp_path):
        config_path = tmp_path / "config.json"
        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            save_settings(Settings(backend="pocketbase"))

        data = json.loads(config_path.read_text())
        assert data["backend"] == "pocketbase"

    def test_unknown_keys_ignored(self, tmp_path, monkeypatch):
        monkeypatch.delenv("POCKETBASE_URL", raising=False)
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"backend": "local", "llm_provider": "ollama"}))

        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            s = load_settings()
        assert s.backend == "local"
        assert not hasattr(s, "llm_provider")

    def test_save_leaves_out_env_values(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"pocketbase_url": "http://file:8090"}))
        monkeypatch.setenv("POCKETBASE_URL", "http://env:8090")
        monkeypatch.setenv("POCKETBASE_TOKEN", "secret-token")

        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            s = load_settings()
            s.backend = "pocketbase"
            save_settings(s)

        data = json.loads(config_path.read_text())
        assert data["backend"] == "pocketbase"
        assert data["pocketbase_url"] == "http://file:8090"
        assert "pocketbase_token" not in data

    def test_save_keeps_values_changed_after_load(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        monkeypatch.setenv("POCKETBASE_TOKEN", "secret-token")

        with patch("dpp_tracker.config.CONFIG_PATH", config_path):
            save_settings(Settings(pocketbase_token="typed-in"))

        assert json.loads(config_path.read_text())["pocketbase_token"] == "typed-in"
