from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "backend": "local",
    "pocketbase_url": "http://127.0.0.1:8090",
    "pocketbase_token": "",
    "questions_collection": "question_bank",
    "attempts_collection": "dpp_attempts",
    "db_path": "progress.db",
    "question_files": [],
    "request_timeout": 15.0,
}

# Environment variables that win over config.json
ENV_OVERRIDES = {
    "POCKETBASE_URL": "pocketbase_url",
    "POCKETBASE_TOKEN": "pocketbase_token",
}


@dataclass
class Settings:
    backend: str = DEFAULTS["backend"]  # local | pocketbase
    pocketbase_url: str = DEFAULTS["pocketbase_url"]
    pocketbase_token: str = DEFAULTS["pocketbase_token"]
    questions_collection: str = DEFAULTS["questions_collection"]
    attempts_collection: str = DEFAULTS["attempts_collection"]
    db_path: str = DEFAULTS["db_path"]
    question_files: list[str] = field(default_factory=lambda: list(DEFAULTS["question_files"]))
    request_timeout: float = DEFAULTS["request_timeout"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    def resolved_question_files(self) -> list[Path]:
        if self.question_files:
            root = self.project_root
            return [root / f for f in self.question_files]
        return sorted(self.data_dir.glob("*.json"))

    def to_dict(self) -> dict:
        return {
            "backend": self.backend,
            "pocketbase_url": self.pocketbase_url,
            "pocketbase_token": self.pocketbase_token,
            "questions_collection": self.questions_collection,
            "attempts_collection": self.attempts_collection,
            "db_path": self.db_path,
            "question_files": self.question_files,
            "request_timeout": self.request_timeout,
        }

    def to_public_dict(self) -> dict:
        d = self.to_dict()
        d["pocketbase_token"] = "***" if self.pocketbase_token else ""
        return d


def load_settings() -> Settings:
    raw: dict = {}
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            raw[key] = value
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    filtered = {k: v for k, v in raw.items() if k in known}
    return Settings(**filtered)


def save_settings(settings: Settings) -> None:
    data = settings.to_dict()
    on_disk: dict = {}
    if CONFIG_PATH.exists():
        on_disk = json.loads(CONFIG_PATH.read_text())
    # Values that came from the environment stay out of config.json
    for env_name, key in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value and data.get(key) == env_value:
            if key in on_disk:
                data[key] = on_disk[key]
            else:
                data.pop(key)
    CONFIG_PATH.write_text(json.dumps(data, indent=4) + "\n")
