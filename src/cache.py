"""
リモートカタログのメモリ上ミラー。

songs（全曲）と、そこから導出される filtered_songs（絞り込み結果）および
アーティスト名索引を保持する。

- songs への書き込みはリモートストアの成功応答後にのみ行う（呼び出し側の責務）
- filtered_songs は直接変更せず、songs/query の変更のたびに再計算する
- アーティスト名索引は songs の変更で無効化し、次回参照時に再構築する
"""

from __future__ import annotations

from typing import Callable, Optional

from src.filters import FilterQuery, apply_filter
from src.models import Song

MIN_SUGGEST_LENGTH = 2


class SongCache:
    def __init__(self):
        self._songs: list[Song] = []
        self._query = FilterQuery()
        self._filtered: list[Song] = []
        self._artists: Optional[list[str]] = None

    @property
    def songs(self) -> tuple[Song, ...]:
        return tuple(self._songs)

    @property
    def filtered_songs(self) -> tuple[Song, ...]:
        return tuple(self._filtered)

    @property
    def query(self) -> FilterQuery:
        return self._query

    def _refilter(self) -> None:
        self._filtered = apply_filter(self._songs, self._query)

    # ---- 絞り込み ----

    def set_query(self, query: FilterQuery) -> None:
        self._query = query
        self._refilter()

    def clear_query(self) -> None:
        self.set_query(FilterQuery())

    def result_counts(self) -> tuple[int, int]:
        """(絞り込み後件数, 全件数) を返す。"""
        return len(self._filtered), len(self._songs)

    # ---- songs の変更 ----

    def find(self, song_id: str) -> Optional[Song]:
        for song in self._songs:
            if song.id == song_id:
                return song
        return None

    def replace_all(self, songs: list[Song]) -> None:
        self._songs = list(songs)
        self.invalidate_artist_index()
        self._refilter()

    def append(self, song: Song) -> None:
        self._songs.append(song)
        self.invalidate_artist_index()
        self._refilter()

    def replace(self, song: Song) -> bool:
        """同じ id の曲を置き換える。見つからなければ False。"""
        for index, current in enumerate(self._songs):
            if current.id == song.id:
                self._songs[index] = song
                if current.artist_name != song.artist_name:
                    self.invalidate_artist_index()
                self._refilter()
                return True
        return False

    def update(self, song_id: str, change: Callable[[Song], Song]) -> Optional[Song]:
        """id の曲に change を適用して置き換え、置き換え後の曲を返す。"""
        current = self.find(song_id)
        if current is None:
            return None
        updated = change(current)
        self.replace(updated)
        return updated

    def remove(self, song_id: str) -> bool:
        before = len(self._songs)
        self._songs = [song for song in self._songs if song.id != song_id]
        removed = len(self._songs) != before
        if removed:
            self.invalidate_artist_index()
            self._refilter()
        return removed

    # ---- アーティスト名索引 ----

    def invalidate_artist_index(self) -> None:
        self._artists = None

    @property
    def artist_index_is_stale(self) -> bool:
        return self._artists is None

    def artists(self) -> list[str]:
        """重複を除いたアーティスト名一覧（初出順）を返す。"""
        if self._artists is None:
            self._artists = list(dict.fromkeys(song.artist_name for song in self._songs))
        return list(self._artists)

    def suggest_artists(self, text: str) -> list[str]:
        """
        入力途中の文字列に部分一致するアーティスト名を返す。

        2文字未満の入力では候補を出さない。
        """
        if len(text) < MIN_SUGGEST_LENGTH:
            return []
        needle = text.lower()
        return [artist for artist in self.artists() if needle in artist.lower()]
