"""
曲一覧の絞り込み処理。

検索文字列・種別・状態の3条件で曲一覧を絞り込む純粋関数を提供する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from src.models import Song, SongState, SongType


@dataclass(frozen=True)
class FilterQuery:
    """
    絞り込み条件。

    - search_text が空なら検索条件なし
    - types/states が空集合ならその条件なし
    """

    search_text: str = ""
    types: frozenset[SongType] = frozenset()
    states: frozenset[SongState] = frozenset()

    @staticmethod
    def build(
        search_text: str = "",
        types: Iterable[SongType] = (),
        states: Iterable[SongState] = (),
    ) -> "FilterQuery":
        return FilterQuery(
            search_text=search_text or "",
            types=frozenset(types),
            states=frozenset(states),
        )

    @property
    def is_empty(self) -> bool:
        return not self.search_text.strip() and not self.types and not self.states


def matches(song: Song, query: FilterQuery) -> bool:
    """song が query の全条件を満たすか判定する。"""
    needle = query.search_text.strip().lower()
    if needle:
        hit = (
            needle in song.artist_name.lower()
            or needle in song.song_name.lower()
            or needle in (song.comments or "").lower()
        )
        if not hit:
            return False

    if query.types and song.song_type not in query.types:
        return False
    if query.states and song.state not in query.states:
        return False
    return True


def apply_filter(songs: Sequence[Song], query: FilterQuery) -> list[Song]:
    """
    条件に一致する曲を元の順序のまま返す。

    返す要素は songs 内の同一オブジェクトであり、コピーは作らない。

    Args:
        songs: 曲一覧。
        query: 絞り込み条件。

    Returns:
        songs の部分列。
    """
    return [song for song in songs if matches(song, query)]
