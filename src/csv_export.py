"""曲一覧の CSV 書き出し。"""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable

from src.models import Song

CSV_HEADERS = ["Nombre", "Artista", "Estado", "Tipo", "Comentarios", "YouTube"]


def build_csv_content(songs: Iterable[Song]) -> str:
    """
    曲一覧を CSV 文字列へ変換する。

    カンマ・ダブルクォート・改行を含む値はダブルクォートで囲み、
    内部のダブルクォートは二重化する(csv.QUOTE_MINIMAL)。
    行区切りは \\n で、末尾に改行は付けない。

    Raises:
        ValueError: 書き出す曲が1件も無い場合。
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    count = 0
    for song in songs:
        writer.writerow([
            song.song_name,
            song.artist_name,
            song.state.value,
            song.song_type.value,
            song.comments or "",
            song.youtube_link or "",
        ])
        count += 1

    if count == 0:
        raise ValueError("書き出す曲がありません。絞り込み条件を見直すか曲を追加してください。")
    return buffer.getvalue().removesuffix("\n")


def export_filename(day: date) -> str:
    return f"canciones_{day.isoformat()}.csv"
