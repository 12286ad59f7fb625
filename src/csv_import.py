"""
CSV 一括取り込み処理。

外部から渡された CSV テキストを曲の下書きへ変換し、
既存カタログと重複する行を除外したうえで、リモートストアへ1件ずつ登録する。

想定フォーマット:
- UTF-8、カンマ区切り、1行目はヘッダ
- ダブルクォートで囲まれたフィールド内のカンマ・改行は区切りとみなさない
- 新形式: Nombre,Artista,Estado,Tipo,Comentarios,YouTube
- 旧形式: Nombre,Artista,Género,Estado,Tipo（コメント/リンク列なし）

例外方針:
- ペイロード全体が不正な場合のみ ParseError を送出して取り込みを中止する
- 列数不足や曲名/アーティスト名が空の行はエラーにせず読み飛ばして件数のみ数える
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

from src.batch import BatchResult, run_sequential
from src.errors import ParseError
from src.models import Song, state_or_default, type_or_default

logger = logging.getLogger(__name__)

MIN_FIELDS = 4

_STATE_HEADERS = {"estado", "state"}
_TYPE_HEADERS = {"tipo", "type"}


class CsvLayout(Enum):
    NEW = "new"
    LEGACY = "legacy"


@dataclass
class ParsedCsv:
    """
    CSV の解析結果。

    Attributes:
        layout: 判定した列構成。
        songs: 有効行から作った下書き。
        total_rows: 空行を除いたデータ行数。
        skipped_rows: 列数不足などで読み飛ばした行数。
    """

    layout: CsvLayout
    songs: list[Song] = field(default_factory=list)
    total_rows: int = 0
    skipped_rows: int = 0


@dataclass
class ImportReport:
    """取り込み結果の件数集計。"""

    total_rows: int
    parsed: int
    skipped_rows: int
    duplicates: int
    batch: BatchResult = field(default_factory=BatchResult)

    @property
    def inserted(self) -> int:
        return self.batch.succeeded_count

    @property
    def failed(self) -> int:
        return self.batch.failed_count

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "parsed": self.parsed,
            "skipped_rows": self.skipped_rows,
            "duplicates": self.duplicates,
            "inserted": self.inserted,
            "failed": self.failed,
        }


def parse_csv_line(line: str) -> list[str]:
    """
    CSV 1行をフィールドへ分割する。

    ダブルクォートで「クォート内」状態を切り替え、クォート内のカンマは文字として扱う。
    クォート内で連続する "" は1文字の " として扱う。

    Args:
        line: split_csv_rows で分割した1行。クォート内の改行を含みうる。

    Returns:
        フィールドのリスト（前後空白は除去しない）。
    """
    result: list[str] = []
    current: list[str] = []
    in_quotes = False

    index = 0
    while index < len(line):
        ch = line[index]
        if ch == '"':
            if in_quotes and index + 1 < len(line) and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            result.append("".join(current))
            current = []
        else:
            current.append(ch)
        index += 1

    result.append("".join(current))
    return result


def split_csv_rows(text: str) -> list[str]:
    """
    CSV テキストを行へ分割する。

    クォート内の改行はフィールドの一部として残し、クォート外の改行のみを行区切りとする。
    行末の CR は取り除く。閉じられていないクォートは末尾までを1行として扱う。
    """
    rows: list[str] = []
    current: list[str] = []
    in_quotes = False

    for ch in text:
        if ch == '"':
            # "" は2回の切り替えとなり状態は変わらない
            in_quotes = not in_quotes
        elif ch == "\n" and not in_quotes:
            rows.append("".join(current).rstrip("\r"))
            current = []
            continue
        current.append(ch)

    rows.append("".join(current).rstrip("\r"))
    return rows


def detect_layout(headers: Sequence[str]) -> CsvLayout:
    """ヘッダに状態列と種別列の両方があれば新形式、なければ旧形式と判定する。"""
    lowered = {h.strip().lower() for h in headers}
    if lowered & _STATE_HEADERS and lowered & _TYPE_HEADERS:
        return CsvLayout.NEW
    return CsvLayout.LEGACY


def _cell(values: list[str], index: int) -> str:
    return values[index].strip() if index < len(values) else ""


def _row_to_song(values: list[str], layout: CsvLayout) -> Song:
    if layout is CsvLayout.NEW:
        return Song(
            song_name=_cell(values, 0),
            artist_name=_cell(values, 1),
            state=state_or_default(_cell(values, 2)),
            song_type=type_or_default(_cell(values, 3)),
            comments=_cell(values, 4),
            youtube_link=_cell(values, 5),
        )

    # 旧形式の3列目(ジャンル)は使わない
    return Song(
        song_name=_cell(values, 0),
        artist_name=_cell(values, 1),
        state=state_or_default(_cell(values, 3)),
        song_type=type_or_default(_cell(values, 4)),
    )


def parse_csv(text: str) -> ParsedCsv:
    """
    CSV テキストを解析し、曲の下書き一覧を返す。

    Args:
        text: CSV 全体の文字列。

    Returns:
        ParsedCsv。

    Raises:
        ParseError: テキストが空、またはヘッダ行が空の場合。
    """
    if text is None or not text.strip():
        raise ParseError("CSV が空です")

    lines = split_csv_rows(text.lstrip("\ufeff"))
    header_line = lines[0]
    if not header_line.strip():
        raise ParseError("CSV のヘッダ行が空です")

    headers = [h.strip() for h in header_line.split(",")]
    parsed = ParsedCsv(layout=detect_layout(headers))

    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue
        parsed.total_rows += 1

        values = parse_csv_line(line)
        if len(values) < MIN_FIELDS:
            parsed.skipped_rows += 1
            continue

        song = _row_to_song(values, parsed.layout)
        if not song.artist_name or not song.song_name:
            parsed.skipped_rows += 1
            continue
        parsed.songs.append(song)

    logger.debug(
        "Parsed CSV (%s): %d rows, %d songs, %d skipped",
        parsed.layout.value, parsed.total_rows, len(parsed.songs), parsed.skipped_rows,
    )
    return parsed


def read_csv_file(path: str) -> str:
    """
    CSV ファイルを UTF-8(BOM付き可)で読み込む。

    Raises:
        ParseError: 拡張子が .csv でない、または UTF-8 として読めない場合。
        FileNotFoundError: ファイルが存在しない場合。
    """
    file_path = Path(path)
    if file_path.suffix.lower() != ".csv":
        raise ParseError(f"CSV ファイルではありません: {path}")

    try:
        return file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"CSV を UTF-8 として読み込めません: {path} ({e})") from e


def filter_duplicates(candidates: Iterable[Song], existing: Iterable[Song]) -> list[Song]:
    """
    既存カタログと (アーティスト名, 曲名) が大文字小文字を無視して一致する候補を除外する。

    候補同士の重複は除外しない。
    """
    existing_keys = {song.dedup_key() for song in existing}
    return [song for song in candidates if song.dedup_key() not in existing_keys]


def import_songs(store, candidates: Sequence[Song]) -> BatchResult:
    """
    候補を1件ずつリモートストアへ登録する。

    Args:
        store: create_song を持つリモートストア。
        candidates: 登録する下書き。

    Returns:
        BatchResult。個々の失敗は記録のみで処理は継続する。
    """
    return run_sequential(enumerate(candidates), store.create_song, label="csv-import")
