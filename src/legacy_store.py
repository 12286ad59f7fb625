"""
旧ローカルストア(JSONファイル)の読み書き。

リモートストア導入前は曲一覧をローカルの JSON ファイルへ保存していた。
ファイルは {"songs": [...]} の形で、1つのキー配下に曲リストを持つ。
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

STORAGE_KEY = "songs"


class LegacySongStore:
    def __init__(self, path: str, key: str = STORAGE_KEY):
        self.path = path
        self.key = key

    def _read_all(self) -> dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as file_obj:
            data = json.load(file_obj)
        return data if isinstance(data, dict) else {}

    def load_songs(self) -> list[dict[str, Any]]:
        """
        保存済みの曲リストを返す。

        ファイルが無い、壊れている、キーが無い場合は空リストを返す。
        """
        if not os.path.exists(self.path):
            return []
        try:
            data = self._read_all()
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read legacy store %s: %s", self.path, e)
            return []

        songs = data.get(self.key)
        if not isinstance(songs, list):
            return []
        return [s for s in songs if isinstance(s, dict)]

    def save_songs(self, songs: list[dict[str, Any]]) -> None:
        data: dict[str, Any] = {}
        if os.path.exists(self.path):
            try:
                data = self._read_all()
            except (OSError, json.JSONDecodeError):
                data = {}
        data[self.key] = songs

        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as file_obj:
            json.dump(data, file_obj, ensure_ascii=False, indent=2)
            file_obj.write("\n")

    def has_data(self) -> bool:
        return len(self.load_songs()) > 0

    def clear(self) -> None:
        """曲リストのキーを削除する。他のキーが無ければファイルごと削除する。"""
        if not os.path.exists(self.path):
            return
        try:
            data = self._read_all()
        except (OSError, json.JSONDecodeError):
            data = {}
        data.pop(self.key, None)

        if data:
            with open(self.path, "w", encoding="utf-8") as file_obj:
                json.dump(data, file_obj, ensure_ascii=False, indent=2)
                file_obj.write("\n")
        else:
            os.remove(self.path)
