"""
Cloud Firestore をリモートストアとして扱うアダプタ。

曲コレクションに対する一覧・作成・更新・削除を Firestore REST API (v1) で行う。
永続化の唯一の権威であり、id の採番とサーバ時刻の付与もここで行う。

処理方針:
- 初期化はバックグラウンドスレッドで非同期に行い、完了を一度だけ解決される Future で通知する
- 初期化が完了するまで全操作は StoreUnavailable を送出する
- 通信失敗・HTTPエラーは RemoteError に変換して上位へ伝播する（自動リトライはしない）
- 存在しない id の削除は何もせず成功する（Firestore の削除仕様に合わせる）
"""

from __future__ import annotations

import dataclasses
import logging
import secrets
import string
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Optional

import requests

from src.config import FirestoreConfig
from src.errors import NotFound, RemoteError, StoreUnavailable
from src.firestore_codec import encode_fields, read_aggregate_count, song_from_document
from src.models import FIELD_KEYS, Song, state_or_default, type_or_default

logger = logging.getLogger(__name__)

FIRESTORE_API = "https://firestore.googleapis.com/v1"

_AUTO_ID_CHARS = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20

_WRITABLE_KEYS = set(FIELD_KEYS.values())
_COUNT_ALIAS = "total"


def generate_auto_id() -> str:
    """Firestore クライアントSDKの自動IDと同形式(英数字20文字)のIDを生成する。"""
    return "".join(secrets.choice(_AUTO_ID_CHARS) for _ in range(_AUTO_ID_LENGTH))


def _error_detail(response: requests.Response) -> str:
    """Firestore のエラーレスポンスから表示用メッセージを取り出す。"""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict):
        error = body.get("error") or {}
        if error:
            return f"{error.get('status', '')}: {error.get('message', '')}"[:200]
        return str(body)[:200]
    return str(body)[:200]


def _normalize_update_fields(fields: dict[str, Any]) -> dict[str, str]:
    """
    更新用フィールドを検証し、保存形式へ揃える。

    id/createdAt/updatedAt は無視する。状態・種別は既定値フォールバック付きで解釈する。

    Raises:
        ValueError: 更新可能なフィールドが1つも無い、または未知のキーを含む場合。
    """
    cleaned: dict[str, str] = {}
    for key, value in fields.items():
        if key in ("id", "createdAt", "updatedAt"):
            continue
        if key not in _WRITABLE_KEYS:
            raise ValueError(f"Unknown song field: {key}")
        if key == "state":
            cleaned[key] = state_or_default(value).value
        elif key == "type":
            cleaned[key] = type_or_default(value).value
        else:
            cleaned[key] = "" if value is None else str(value)

    if not cleaned:
        raise ValueError("No song fields to update")
    return cleaned


class FirestoreSongStore:
    """
    Firestore の曲コレクションに対する CRUD アダプタ。

    使い方:
        store = FirestoreSongStore(config)
        store.start()
        store.wait_ready(timeout=30)
        songs = store.list_songs()
    """

    def __init__(self, config: FirestoreConfig):
        self.config = config
        self._ready: Future = Future()
        self._start_lock = threading.Lock()
        self._started = False

    # ---- URL / 認証 ----

    @property
    def database_path(self) -> str:
        return f"projects/{self.config.project_id}/databases/{self.config.database}"

    @property
    def documents_url(self) -> str:
        return f"{FIRESTORE_API}/{self.database_path}/documents"

    def document_name(self, song_id: str) -> str:
        return f"{self.database_path}/documents/{self.config.collection}/{song_id}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.id_token:
            headers["Authorization"] = f"Bearer {self.config.id_token}"
        return headers

    def _params(self) -> dict:
        return {"key": self.config.api_key} if self.config.api_key else {}

    def _request(
        self,
        method: str,
        url: str,
        json_body: Optional[dict] = None,
        params: Optional[dict] = None,
        not_found: Optional[str] = None,
    ) -> Any:
        """
        Firestore REST API へリクエストし、JSONレスポンスを返す。

        Args:
            method: HTTPメソッド。
            url: リクエストURL。
            json_body: 送信するJSON。
            params: 追加のクエリパラメータ。
            not_found: 指定時、404 をこのメッセージの NotFound として送出する。

        Raises:
            NotFound: not_found 指定時に 404 が返った場合。
            RemoteError: 通信失敗、または 4xx/5xx が返った場合。
        """
        query = self._params()
        if params:
            query.update(params)

        try:
            response = requests.request(
                method,
                url,
                params=query,
                json=json_body,
                headers=self._headers(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"Firestore request failed: {method} {url} ({e})") from e

        if response.status_code == 404 and not_found:
            raise NotFound(not_found)
        if response.status_code >= 400:
            raise RemoteError(
                f"Firestore error {response.status_code}: {method} {url} ({_error_detail(response)})"
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Firestore returned invalid JSON: {method} {url}") from e

    # ---- 初期化 ----

    def start(self) -> Future:
        """
        非同期初期化を開始し、準備完了を表す Future を返す。

        複数回呼ばれても初期化は一度しか行わない。
        """
        with self._start_lock:
            if not self._started:
                self._started = True
                thread = threading.Thread(
                    target=self._initialize,
                    name="firestore-init",
                    daemon=True,
                )
                thread.start()
        return self._ready

    def _initialize(self) -> None:
        """コレクションへの疎通確認を行い、結果で Future を解決する。"""
        url = f"{self.documents_url}/{self.config.collection}"
        try:
            self._request("GET", url, params={"pageSize": 1})
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Firestore initialization failed: %s", e)
            self._ready.set_exception(StoreUnavailable(f"Firestore の初期化に失敗しました: {e}"))
            return

        logger.info("Firestore initialized: %s/%s", self.config.project_id, self.config.collection)
        self._ready.set_result(True)

    @property
    def is_ready(self) -> bool:
        return self._ready.done() and self._ready.exception() is None

    def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        初期化完了を待つ。未開始なら初期化を開始する。

        Raises:
            StoreUnavailable: 初期化に失敗した、またはタイムアウトした場合。
        """
        future = self.start()
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise StoreUnavailable(f"Firestore の初期化が {timeout} 秒以内に完了しませんでした") from e

    def _require_ready(self) -> None:
        if not self.is_ready:
            raise StoreUnavailable(
                "Firestore が初期化されていません。アプリケーションの動作には Firestore が必要です。"
            )

    # ---- CRUD ----

    def list_songs(self) -> list[Song]:
        """全曲を createdAt の降順で返す。"""
        self._require_ready()
        body = {
            "structuredQuery": {
                "from": [{"collectionId": self.config.collection}],
                "orderBy": [
                    {"field": {"fieldPath": "createdAt"}, "direction": "DESCENDING"},
                ],
            }
        }
        rows = self._request("POST", f"{self.documents_url}:runQuery", json_body=body)

        songs: list[Song] = []
        for row in rows or []:
            doc = row.get("document")
            if doc:
                songs.append(song_from_document(doc))
        return songs

    def count_songs(self) -> int:
        """コレクション内の現在の件数を返す。"""
        self._require_ready()
        body = {
            "structuredAggregationQuery": {
                "structuredQuery": {"from": [{"collectionId": self.config.collection}]},
                "aggregations": [{"alias": _COUNT_ALIAS, "count": {}}],
            }
        }
        rows = self._request("POST", f"{self.documents_url}:runAggregationQuery", json_body=body)
        count = read_aggregate_count(rows or [], _COUNT_ALIAS)
        if count is None:
            raise RemoteError("Firestore の件数集計レスポンスに count がありません")
        return count

    def create_song(self, draft: Song) -> Song:
        """
        下書きを新規ドキュメントとして保存し、採番済みの Song を返す。

        クライアント側の id は信用せず、常に新しい id を採番する。
        createdAt/updatedAt はサーバ時刻(REQUEST_TIME)で設定する。
        """
        self._require_ready()
        song_id = generate_auto_id()
        write = {
            "update": {
                "name": self.document_name(song_id),
                "fields": encode_fields(draft.to_fields()),
            },
            "currentDocument": {"exists": False},
            "updateTransforms": [
                {"fieldPath": "createdAt", "setToServerValue": "REQUEST_TIME"},
                {"fieldPath": "updatedAt", "setToServerValue": "REQUEST_TIME"},
            ],
        }
        created_at = self._commit(write)
        return dataclasses.replace(draft, id=song_id, created_at=created_at, updated_at=created_at)

    def update_song(self, song_id: str, fields: dict[str, Any]) -> Optional[str]:
        """
        既存ドキュメントへ fields をマージし、updatedAt を更新する。

        Args:
            song_id: 対象の id。
            fields: 保存用キー名の辞書。

        Returns:
            サーバが記録した更新時刻。

        Raises:
            NotFound: id のドキュメントが存在しない場合。
            ValueError: 更新可能なフィールドが無い場合。
        """
        self._require_ready()
        cleaned = _normalize_update_fields(fields)
        write = {
            "update": {
                "name": self.document_name(song_id),
                "fields": encode_fields(cleaned),
            },
            "updateMask": {"fieldPaths": sorted(cleaned)},
            "currentDocument": {"exists": True},
            "updateTransforms": [
                {"fieldPath": "updatedAt", "setToServerValue": "REQUEST_TIME"},
            ],
        }
        return self._commit(write, not_found=f"Song not found: {song_id}")

    def delete_song(self, song_id: str) -> None:
        """id のドキュメントを削除する。存在しない場合も成功扱い。"""
        self._require_ready()
        url = f"{FIRESTORE_API}/{self.document_name(song_id)}"
        self._request("DELETE", url)

    def _commit(self, write: dict, not_found: Optional[str] = None) -> Optional[str]:
        """
        1件の書き込みを commit し、サーバ時刻を返す。

        事前条件(currentDocument.exists)違反は Firestore 上 404 または
        FAILED_PRECONDITION で返るため、not_found 指定時は両方を NotFound とする。
        """
        try:
            result = self._request(
                "POST",
                f"{self.documents_url}:commit",
                json_body={"writes": [write]},
                not_found=not_found,
            )
        except RemoteError as e:
            if not_found and "FAILED_PRECONDITION" in str(e):
                raise NotFound(not_found) from e
            raise

        write_results = result.get("writeResults") or [{}]
        transforms = write_results[0].get("transformResults") or []
        for transform in transforms:
            if "timestampValue" in transform:
                return transform["timestampValue"]
        return write_results[0].get("updateTime") or result.get("commitTime")
