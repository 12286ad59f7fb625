"""settings.yaml 読み込みのテスト。"""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config import load_settings
from src.errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for name in ("FIRESTORE_API_KEY", "FIRESTORE_ID_TOKEN", "DISCORD_WEBHOOK_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.light
def test_repository_settings_yaml_is_loadable():
    settings = load_settings(str(PROJECT_ROOT / "settings.yaml"))
    assert settings.firestore.project_id
    assert settings.firestore.collection == "songs"
    assert settings.firestore.api_key is None
    assert settings.discord_webhook_url is None


@pytest.mark.light
def test_defaults_and_env_overrides(tmp_path: Path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("firestore:\n  project_id: demo\n  api_key: from-file\n", encoding="utf-8")
    monkeypatch.setenv("FIRESTORE_API_KEY", "from-env")
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.invalid/webhook")

    settings = load_settings(str(path))

    assert settings.firestore.database == "(default)"
    assert settings.firestore.timeout == 30
    assert settings.firestore.api_key == "from-env"
    assert settings.firestore.id_token is None
    assert settings.legacy_store_path == "legacy_songs.json"
    assert settings.discord_webhook_url == "https://discord.invalid/webhook"
    assert settings.log_level == "INFO"


@pytest.mark.light
def test_missing_project_id_is_config_error(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("firestore:\n  collection: songs\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="project_id"):
        load_settings(str(path))


@pytest.mark.light
def test_invalid_timeout_is_config_error(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("firestore:\n  project_id: demo\n  timeout: soon\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="timeout"):
        load_settings(str(path))
