"""
データモデル定義モジュール。

カタログの唯一のエンティティである Song と、
状態(SongState)・種別(SongType)の列挙およびその解釈処理を定義する。

- 列挙値はリモートストア/CSV上ではスペイン語ラベルで表現される
- 解釈できない入力値はエラーにせず既定値へ倒す
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union


class SongState(Enum):
    """曲の承認状態。"""

    APPROVED = "Aprobado"
    PENDING_APPROVAL = "Por aprobar"
    RECORDING = "En grabación"
    READY = "Listo"
    REJECTED = "Rechazado"


class SongType(Enum):
    """曲の種別。"""

    SLOW = "Lento"
    UPBEAT = "Movido"


DEFAULT_STATE = SongState.PENDING_APPROVAL
DEFAULT_TYPE = SongType.SLOW

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class Known(Generic[E]):
    """列挙として解釈できた値。"""

    value: E


@dataclass(frozen=True)
class Unknown:
    """列挙として解釈できなかった生の入力値。"""

    raw: str


def _compact(s: str) -> str:
    return s.replace(" ", "").replace("_", "").lower()


def _parse_enum(enum_cls: type[E], raw: Any) -> Union[Known[E], Unknown]:
    """
    生の入力値を列挙へ解釈する。

    以下のいずれかに一致すれば Known を返す（前後空白除去・大文字小文字無視）。
    - 列挙のラベル値（例: "Por aprobar"）
    - 列挙のメンバー名から空白/アンダースコアを除いたもの（例: "PendingApproval"）

    Args:
        enum_cls: 対象の列挙クラス。
        raw: 入力値。None や文字列以外も受け付ける。

    Returns:
        Known または Unknown。
    """
    text = "" if raw is None else str(raw).strip()
    if isinstance(raw, enum_cls):
        return Known(raw)

    lowered = text.lower()
    compact = _compact(text)
    for member in enum_cls:
        if member.value.lower() == lowered or _compact(member.name) == compact:
            return Known(member)

    return Unknown(text)


def parse_state(raw: Any) -> Union[Known[SongState], Unknown]:
    return _parse_enum(SongState, raw)


def parse_type(raw: Any) -> Union[Known[SongType], Unknown]:
    return _parse_enum(SongType, raw)


def state_or_default(raw: Any) -> SongState:
    """状態値を解釈し、解釈できなければ PENDING_APPROVAL を返す。"""
    parsed = parse_state(raw)
    if isinstance(parsed, Known):
        return parsed.value
    return DEFAULT_STATE


def type_or_default(raw: Any) -> SongType:
    """種別値を解釈し、解釈できなければ SLOW を返す。"""
    parsed = parse_type(raw)
    if isinstance(parsed, Known):
        return parsed.value
    return DEFAULT_TYPE


# Song のフィールド名と保存時のキー名の対応
FIELD_KEYS = {
    "artist_name": "artistName",
    "song_name": "songName",
    "state": "state",
    "song_type": "type",
    "youtube_link": "youtubeLink",
    "comments": "comments",
}


@dataclass(frozen=True)
class Song:
    """
    1曲分のカタログ情報を保持するモデル。

    - id はリモートストアが採番する。ローカルで組み立てた下書きでは None
    - created_at/updated_at はサーバ側で設定され、ローカルでは設定しない
    """

    artist_name: str
    song_name: str
    state: SongState = DEFAULT_STATE
    song_type: SongType = DEFAULT_TYPE
    youtube_link: str = ""
    comments: str = ""

    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_draft(self) -> bool:
        return self.id is None

    def dedup_key(self) -> tuple[str, str]:
        """重複判定キー（アーティスト名, 曲名）を小文字化して返す。"""
        return (self.artist_name.lower(), self.song_name.lower())

    def as_draft(self) -> "Song":
        """id とタイムスタンプを取り除いた下書きを返す。"""
        return dataclasses.replace(self, id=None, created_at=None, updated_at=None)

    def with_fields(self, fields: dict[str, Any]) -> "Song":
        """
        保存用キー名の辞書をマージした新しい Song を返す。

        Args:
            fields: {"comments": "...", "state": "Listo"} のような保存用キーの辞書。

        Returns:
            マージ後の Song。未知のキーは無視する。
        """
        changes: dict[str, Any] = {}
        for attr, key in FIELD_KEYS.items():
            if key not in fields:
                continue
            value = fields[key]
            if attr == "state":
                changes[attr] = state_or_default(value)
            elif attr == "song_type":
                changes[attr] = type_or_default(value)
            else:
                changes[attr] = "" if value is None else str(value)
        return dataclasses.replace(self, **changes)

    def to_fields(self) -> dict[str, str]:
        """
        保存用のフィールド辞書を返す。

        id・タイムスタンプは含めない。列挙はラベル値で表現する。
        """
        return {
            "artistName": self.artist_name,
            "songName": self.song_name,
            "state": self.state.value,
            "type": self.song_type.value,
            "youtubeLink": self.youtube_link,
            "comments": self.comments,
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id}
        data.update(self.to_fields())
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Song":
        """
        保存用キー名の辞書から Song を組み立てる。

        旧ローカルストアやバックアップJSONのように型が揃っていない入力も受け付け、
        状態/種別は既定値へフォールバックする。
        """

        def text(key: str) -> str:
            value = data.get(key)
            return "" if value is None else str(value)

        raw_id = data.get("id")
        return Song(
            artist_name=text("artistName"),
            song_name=text("songName"),
            state=state_or_default(data.get("state")),
            song_type=type_or_default(data.get("type")),
            youtube_link=text("youtubeLink"),
            comments=text("comments"),
            id=str(raw_id) if raw_id not in (None, "") else None,
            created_at=data.get("createdAt") or None,
            updated_at=data.get("updatedAt") or None,
        )
