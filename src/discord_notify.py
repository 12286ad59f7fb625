"""
Discord Webhook通知を行うユーティリティ。

このモジュールは CSV 取り込みや旧データ移行の結果(件数/失敗一覧)をDiscordへ送信する用途で使用する。
通知失敗は処理全体の失敗とはみなさず、警告ログのみ残す。
"""

from __future__ import annotations

import logging

import requests
from requests import RequestException

from src.csv_import import ImportReport
from src.migration import MigrationResult, MigrationStatus

logger = logging.getLogger(__name__)

DISCORD_CONTENT_LIMIT = 1900


def send_discord(webhook_url: str, message: str) -> bool:
    """
    Discord Webhookへメッセージを送信する。

    webhook_urlが空の場合は何もせず終了する。

    Args:
        webhook_url: Discord Webhook URL。
        message: 送信する本文。

    Returns:
        送信できた場合 True。
    """
    if not webhook_url:
        return False

    payload = {"content": message}

    try:
        response = requests.post(webhook_url, json=payload, timeout=15)
        response.raise_for_status()
    except RequestException as e:
        # 通知失敗は致命にしない
        logger.warning("Failed to send Discord notification: %s", e)
        return False
    return True


def _failure_lines(report: ImportReport, top_n: int) -> list[str]:
    return [
        f"- {o.draft.artist_name} / {o.draft.song_name}: {o.error}"
        for o in report.batch.failures[:top_n]
    ]


def build_import_message(report: ImportReport, limit: int = DISCORD_CONTENT_LIMIT) -> str:
    """
    取り込み結果の通知本文を組み立てる。

    失敗一覧は Top10 → Top5 → 省略 の順で limit 文字以内に収める。
    """
    header = (
        "✅ CSV取り込み完了\n"
        f"- rows: {report.total_rows}\n"
        f"- parsed: {report.parsed}\n"
        f"- skipped rows: {report.skipped_rows}\n"
        f"- duplicates: {report.duplicates}\n"
        f"- inserted: {report.inserted}\n"
        f"- failed: {report.failed}"
    )
    if not report.failed:
        return header

    for top_n in (10, 5):
        content = "\n".join([header, "Failed Songs:"] + _failure_lines(report, top_n))
        if len(content) <= limit:
            return content

    return header + "\nFailed Songs: See log"


def build_migration_message(result: MigrationResult) -> str:
    if result.status is MigrationStatus.SKIPPED_BY_COUNT:
        return (
            "⚠️ 旧データ移行をスキップ（件数のみで判定）\n"
            f"- legacy: {result.legacy_count}\n"
            f"- remote: {result.remote_count}"
        )
    return (
        "✅ 旧データ移行完了\n"
        f"- legacy: {result.legacy_count}\n"
        f"- migrated: {result.batch.succeeded_count}\n"
        f"- failed: {result.batch.failed_count}"
    )
