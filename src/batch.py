"""
一括作成(取り込み・移行)の結果集計。

1件ずつ順番に処理し、個々の失敗はログに残して次へ進む。
各件の成否は BatchResult に順序付きで記録する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from src.errors import CatalogError
from src.models import Song

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemOutcome:
    """
    1件分の処理結果。

    Attributes:
        index: 入力元(CSV の有効行や旧レコード一覧)での位置(0始まり)。
        draft: 処理対象の下書き。
        song: 成功時の採番済み Song。
        error: 失敗時のエラーメッセージ。
    """

    index: int
    draft: Song
    song: Optional[Song] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.song is not None


@dataclass
class BatchResult:
    """一括処理の結果一覧。outcomes は処理順。"""

    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def created(self) -> list[Song]:
        return [o.song for o in self.outcomes if o.song is not None]

    @property
    def failures(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded_count(self) -> int:
        return len(self.created)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


def run_sequential(
    items: Iterable[tuple[int, Song]],
    create: Callable[[Song], Song],
    label: str = "batch",
) -> BatchResult:
    """
    (位置, 下書き) の組を1件ずつ順番に create へ渡す。

    同時に実行中の create は常に1件のみ。CatalogError は記録して継続し、
    それ以外の例外(プログラム誤り)はそのまま伝播する。

    Args:
        items: 入力元での位置と作成対象の下書きの組。位置は ItemOutcome.index になる。
        create: 1件を作成して採番済み Song を返す関数。
        label: ログ出力用の処理名。

    Returns:
        BatchResult。
    """
    result = BatchResult()
    for index, draft in items:
        try:
            song = create(draft.as_draft())
        except CatalogError as e:
            logger.warning(
                "[%s] failed to create #%d (%s / %s): %s",
                label, index, draft.artist_name, draft.song_name, e,
            )
            result.outcomes.append(ItemOutcome(index=index, draft=draft, error=str(e)))
            continue
        result.outcomes.append(ItemOutcome(index=index, draft=draft, song=song))

    logger.info(
        "[%s] finished: %d created, %d failed",
        label, result.succeeded_count, result.failed_count,
    )
    return result
