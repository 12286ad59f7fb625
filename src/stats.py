"""
カタログの集計とバックアップ用 JSON の組み立て。
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from src.models import Song

BACKUP_VERSION = "1.0"


def build_stats(songs: Iterable[Song]) -> dict:
    """
    曲一覧の件数集計を返す。

    Returns:
        {"total": int, "by_state": {...}, "by_type": {...}, "by_artist": {...}}
        各内訳のキーは状態/種別のラベル値、アーティスト名。
    """
    songs = list(songs)
    return {
        "total": len(songs),
        "by_state": dict(Counter(song.state.value for song in songs)),
        "by_type": dict(Counter(song.song_type.value for song in songs)),
        "by_artist": dict(Counter(song.artist_name for song in songs)),
    }


def build_backup(songs: Iterable[Song], exported_at: str) -> dict:
    """バックアップ用に曲一覧を保存用キー名の辞書へ変換する。"""
    return {
        "songs": [song.to_dict() for song in songs],
        "exportDate": exported_at,
        "version": BACKUP_VERSION,
    }
