"""
Firestore REST API の型付き値(Value)と Song の相互変換。

Firestore の REST 表現では各フィールドが {"stringValue": "..."} のように
型名付きで送受信されるため、その変換をまとめる。
"""

from __future__ import annotations

from typing import Any, Optional

from src.models import Song


def encode_value(value: Any) -> dict:
    """Python値を Firestore の Value 表現へ変換する。"""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    return {"stringValue": str(value)}


def decode_value(value: dict) -> Any:
    """
    Firestore の Value 表現を Python値へ変換する。

    timestampValue は ISO 8601 文字列のまま返す。
    対応外の型(map/array等)は None とする。
    """
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    return None


def encode_fields(fields: dict[str, Any]) -> dict[str, dict]:
    return {key: encode_value(val) for key, val in fields.items()}


def decode_fields(fields: dict[str, dict]) -> dict[str, Any]:
    return {key: decode_value(val) for key, val in (fields or {}).items()}


def document_id(name: str) -> str:
    """`projects/.../documents/songs/<id>` 形式のリソース名から id を取り出す。"""
    return name.rsplit("/", 1)[-1]


def song_from_document(doc: dict) -> Song:
    """
    Firestore の Document を Song に変換する。

    Args:
        doc: {"name": ..., "fields": {...}, "createTime": ..., "updateTime": ...}

    Returns:
        id を付与した Song。
    """
    data = decode_fields(doc.get("fields", {}))
    data["id"] = document_id(doc["name"])
    return Song.from_dict(data)


def read_aggregate_count(rows: list[dict], alias: str) -> Optional[int]:
    """runAggregationQuery のレスポンスから count 集計値を取り出す。"""
    for row in rows:
        result = row.get("result")
        if not result:
            continue
        field = result.get("aggregateFields", {}).get(alias)
        if field is not None:
            return int(decode_value(field))
    return None
