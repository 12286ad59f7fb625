"""
旧ローカルストアからリモートストアへの一度きりの移行処理。

処理方針:
- 旧ローカルストアが空なら何もしない
- リモートの件数が旧ローカルの件数以上なら移行済みとみなしてスキップする
  （件数のみの比較であり、どのレコードが存在するかは確認しない。
   別のレコードで件数が埋まっている場合も移行されない既知の欠陥がある）
- それ以外は旧レコードの id を捨てて1件ずつ作成し、個々の失敗は記録して継続する
- 移行を試みた場合もスキップした場合も旧ローカルストアは消去する
- 件数取得自体が失敗した場合は旧ローカルストアを残し、次回起動時に再判定する
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from src.batch import BatchResult, ItemOutcome, run_sequential
from src.legacy_store import LegacySongStore
from src.models import Song

logger = logging.getLogger(__name__)


class MigrationStatus(Enum):
    NOTHING_TO_MIGRATE = "nothing_to_migrate"
    SKIPPED_BY_COUNT = "skipped_by_count"
    MIGRATED = "migrated"


@dataclass
class MigrationResult:
    status: MigrationStatus
    legacy_count: int = 0
    remote_count: int = 0
    batch: BatchResult = field(default_factory=BatchResult)


def _to_drafts(records: list[dict]) -> tuple[list[tuple[int, Song]], list[ItemOutcome]]:
    """旧レコードを (旧一覧での位置, 下書き) へ変換する。曲名/アーティスト名が無いものは失敗扱い。"""
    drafts: list[tuple[int, Song]] = []
    invalid: list[ItemOutcome] = []
    for index, record in enumerate(records):
        song = Song.from_dict(record).as_draft()
        if not song.artist_name or not song.song_name:
            invalid.append(ItemOutcome(index=index, draft=song, error="invalid legacy record"))
            continue
        drafts.append((index, song))
    return drafts, invalid


def migrate_legacy_songs(store, legacy: LegacySongStore) -> MigrationResult:
    """
    旧ローカルストアの曲をリモートストアへ移行する。

    Args:
        store: count_songs/create_song を持つリモートストア（初期化済み）。
        legacy: 旧ローカルストア。

    Returns:
        MigrationResult。

    Raises:
        StoreUnavailable / RemoteError: 件数取得に失敗した場合（旧データは残る）。
    """
    records = legacy.load_songs()
    if not records:
        return MigrationResult(status=MigrationStatus.NOTHING_TO_MIGRATE)

    remote_count = store.count_songs()
    if remote_count >= len(records):
        logger.info(
            "Skipping legacy migration: remote has %d songs, legacy has %d (count-only check)",
            remote_count, len(records),
        )
        legacy.clear()
        return MigrationResult(
            status=MigrationStatus.SKIPPED_BY_COUNT,
            legacy_count=len(records),
            remote_count=remote_count,
        )

    logger.info("Migrating %d legacy songs (remote has %d)", len(records), remote_count)
    drafts, invalid = _to_drafts(records)
    for outcome in invalid:
        logger.warning("[migration] skipped legacy record #%d: %s", outcome.index, outcome.error)

    batch = run_sequential(drafts, store.create_song, label="migration")
    batch.outcomes.extend(invalid)
    legacy.clear()

    return MigrationResult(
        status=MigrationStatus.MIGRATED,
        legacy_count=len(records),
        remote_count=remote_count,
        batch=batch,
    )
