"""
設定ファイル(settings.yaml)の読み込み処理を提供するモジュール。

settings.yaml からリモートストア接続や旧ローカルストアの場所などを読み込み、
アプリ内で扱いやすい dataclass に変換する。

秘匿情報は環境変数で上書きできる:
- FIRESTORE_API_KEY
- FIRESTORE_ID_TOKEN
- DISCORD_WEBHOOK_URL
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import yaml

from src.errors import ConfigError


@dataclass(frozen=True)
class FirestoreConfig:
    """
    Cloud Firestore 接続設定。

    Attributes:
        project_id: GCPプロジェクトID。
        database: データベースID。通常は "(default)"。
        collection: 曲を保存するコレクション名。
        api_key: Web API キー（任意）。
        id_token: Bearer 認証に使うIDトークン（任意）。
        timeout: HTTPタイムアウト秒。
    """

    project_id: str
    database: str = "(default)"
    collection: str = "songs"
    api_key: Optional[str] = None
    id_token: Optional[str] = None
    timeout: int = 30


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション全体設定。

    Attributes:
        firestore: Firestore接続設定。
        legacy_store_path: 旧ローカルストア(JSON)のファイルパス。
        discord_webhook_url: 取り込み結果の通知先（任意）。
        log_level: ログレベル名。
    """

    firestore: FirestoreConfig
    legacy_store_path: str = "legacy_songs.json"
    discord_webhook_url: Optional[str] = None
    log_level: str = "INFO"


def _optional_str(value) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def load_settings(path: str) -> Settings:
    """
    settings.yaml を読み込み Settings に変換する。

    Args:
        path: settings.yaml のファイルパス。

    Returns:
        Settingsオブジェクト。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合。
        yaml.YAMLError: YAMLのパースに失敗した場合。
        ConfigError: firestore.project_id が未設定、または timeout が数値でない場合。
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    fs_data = data.get("firestore") or {}
    project_id = str(fs_data.get("project_id", "")).strip()
    if not project_id:
        raise ConfigError("settings.yaml の firestore.project_id が必要です")

    try:
        timeout = int(fs_data.get("timeout", 30))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"firestore.timeout が不正です: {fs_data.get('timeout')}") from e

    firestore = FirestoreConfig(
        project_id=project_id,
        database=str(fs_data.get("database", "(default)")).strip() or "(default)",
        collection=str(fs_data.get("collection", "songs")).strip() or "songs",
        api_key=_optional_str(os.environ.get("FIRESTORE_API_KEY") or fs_data.get("api_key")),
        id_token=_optional_str(os.environ.get("FIRESTORE_ID_TOKEN") or fs_data.get("id_token")),
        timeout=timeout,
    )

    return Settings(
        firestore=firestore,
        legacy_store_path=str(data.get("legacy_store_path", "legacy_songs.json")),
        discord_webhook_url=_optional_str(
            os.environ.get("DISCORD_WEBHOOK_URL") or data.get("discord_webhook_url")
        ),
        log_level=str(data.get("log_level", "INFO")).upper(),
    )
