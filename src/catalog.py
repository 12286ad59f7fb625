"""
曲カタログの操作窓口(オーケストレータ)。

リモートストアへの永続化とメモリ上ミラー(SongCache)の更新を調停する。

処理方針:
- 追加/更新/削除はリモートストアの成功応答を待ってからミラーへ反映する
- 失敗時はミラーを変更せず例外をそのまま呼び出し元へ伝播する
- 同一 id への同時編集は防がない（後から返った応答が勝つ）
- 旧ローカルストアからの移行はセッション中に一度だけ、最初の読み込み前に行う
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Optional

from src.cache import SongCache
from src.csv_export import build_csv_content
from src.csv_import import ImportReport, ParsedCsv, filter_duplicates, import_songs, parse_csv
from src.errors import CatalogError
from src.filters import FilterQuery
from src.legacy_store import LegacySongStore
from src.migration import MigrationResult, migrate_legacy_songs
from src.models import Song
from src.stats import build_backup, build_stats

logger = logging.getLogger(__name__)


@dataclass
class ImportPreview:
    """取り込み前の確認用情報。"""

    parsed: ParsedCsv
    new_songs: list[Song]

    @property
    def duplicates(self) -> int:
        return len(self.parsed.songs) - len(self.new_songs)


def _require_names(artist_name: Optional[str], song_name: Optional[str]) -> None:
    if artist_name is not None and not artist_name.strip():
        raise ValueError("アーティスト名は必須です")
    if song_name is not None and not song_name.strip():
        raise ValueError("曲名は必須です")


class SongCatalog:
    """
    リモートストアとミラーを束ねるカタログ。

    Args:
        store: FirestoreSongStore 互換のリモートストア。
        legacy: 旧ローカルストア。None なら移行しない。
        ready_timeout: 初期化待ちのタイムアウト秒。
    """

    def __init__(
        self,
        store,
        legacy: Optional[LegacySongStore] = None,
        ready_timeout: Optional[float] = None,
    ):
        self.store = store
        self.legacy = legacy
        self.ready_timeout = ready_timeout
        self.cache = SongCache()
        self.migration_result: Optional[MigrationResult] = None
        self._migration_attempted = False

    @property
    def songs(self) -> tuple[Song, ...]:
        return self.cache.songs

    @property
    def filtered_songs(self) -> tuple[Song, ...]:
        return self.cache.filtered_songs

    # ---- 読み込み ----

    def load(self) -> tuple[Song, ...]:
        """
        初期化完了を待ち、必要なら旧データを移行してから全曲を読み込む。

        Raises:
            CatalogError: 初期化・移行判定・一覧取得に失敗した場合。ミラーは空になる。
        """
        try:
            self.store.wait_ready(timeout=self.ready_timeout)
            if self.legacy is not None and not self._migration_attempted:
                self._migration_attempted = True
                self.migration_result = migrate_legacy_songs(self.store, self.legacy)
            songs = self.store.list_songs()
        except CatalogError as e:
            logger.error("Failed to load songs: %s", e)
            self.cache.replace_all([])
            raise

        self.cache.replace_all(songs)
        logger.info("Loaded %d songs", len(songs))
        return self.songs

    # ---- 単一レコード操作 ----

    def add_song(self, draft: Song) -> Song:
        """下書きを登録し、採番済みの Song をミラーへ追加して返す。"""
        _require_names(draft.artist_name, draft.song_name)
        created = self.store.create_song(draft.as_draft())
        self.cache.append(created)
        return created

    def update_song(self, song_id: str, fields: dict[str, Any]) -> Optional[Song]:
        """
        id の曲へ fields をマージする。

        Args:
            song_id: 対象の id。
            fields: 保存用キー名の辞書（例: {"state": "Listo"}）。

        Returns:
            ミラー上の更新後 Song。ミラーに無い id なら None。

        Raises:
            NotFound: リモートに id が存在しない場合。
        """
        _require_names(fields.get("artistName"), fields.get("songName"))
        updated_at = self.store.update_song(song_id, fields)

        def merge(song: Song) -> Song:
            merged = song.with_fields(fields)
            return dataclasses.replace(merged, updated_at=updated_at or song.updated_at)

        return self.cache.update(song_id, merge)

    def update_comment(self, song_id: str, comment: str) -> Optional[Song]:
        return self.update_song(song_id, {"comments": comment})

    def delete_song(self, song_id: str) -> None:
        self.store.delete_song(song_id)
        self.cache.remove(song_id)

    # ---- 絞り込み ----

    def set_filters(self, query: FilterQuery) -> tuple[Song, ...]:
        self.cache.set_query(query)
        return self.filtered_songs

    def clear_filters(self) -> tuple[Song, ...]:
        self.cache.clear_query()
        return self.filtered_songs

    def suggest_artists(self, text: str) -> list[str]:
        return self.cache.suggest_artists(text)

    # ---- CSV ----

    def preview_import(self, text: str) -> ImportPreview:
        """CSV を解析し、既存カタログと重複しない曲を求める。書き込みは行わない。"""
        parsed = parse_csv(text)
        new_songs = filter_duplicates(parsed.songs, self.cache.songs)
        return ImportPreview(parsed=parsed, new_songs=new_songs)

    def apply_import(self, preview: ImportPreview) -> ImportReport:
        """確認済みの取り込み内容を1件ずつ登録し、成功分をミラーへ追加する。"""
        batch = import_songs(self.store, preview.new_songs)
        for song in batch.created:
            self.cache.append(song)

        return ImportReport(
            total_rows=preview.parsed.total_rows,
            parsed=len(preview.parsed.songs),
            skipped_rows=preview.parsed.skipped_rows,
            duplicates=preview.duplicates,
            batch=batch,
        )

    def import_csv(self, text: str) -> ImportReport:
        return self.apply_import(self.preview_import(text))

    def export_csv(self) -> str:
        """絞り込み後の曲一覧を CSV 文字列で返す。"""
        return build_csv_content(self.filtered_songs)

    # ---- 集計 ----

    def stats(self) -> dict:
        return build_stats(self.songs)

    def backup(self, exported_at: str) -> dict:
        return build_backup(self.songs, exported_at)
