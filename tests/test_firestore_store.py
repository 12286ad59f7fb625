"""Firestore アダプタのテスト（HTTP はモックする）。"""

from __future__ import annotations

import json

import pytest
import requests

from src.config import FirestoreConfig
from src.errors import NotFound, RemoteError, StoreUnavailable
from src.firestore_store import FirestoreSongStore, generate_auto_id
from src.models import Song, SongState, SongType

DOC_PREFIX = "projects/demo/databases/(default)/documents/songs"


class _FakeResponse:
    def __init__(self, status_code: int = 200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode("utf-8")
        self.text = self.content.decode("utf-8")

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


def _install(monkeypatch, handler) -> list:
    calls: list = []

    def fake_request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        if method == "GET":
            return _FakeResponse(200, {})
        return handler(method, url, kwargs)

    monkeypatch.setattr("src.firestore_store.requests.request", fake_request)
    return calls


def _ready_store(monkeypatch, handler):
    calls = _install(monkeypatch, handler)
    store = FirestoreSongStore(FirestoreConfig(project_id="demo", api_key="k"))
    store.wait_ready(timeout=5)
    return store, calls


@pytest.mark.light
def test_operations_reject_before_initialization():
    store = FirestoreSongStore(FirestoreConfig(project_id="demo"))
    assert store.is_ready is False
    with pytest.raises(StoreUnavailable):
        store.list_songs()
    with pytest.raises(StoreUnavailable):
        store.create_song(Song("A", "B"))
    with pytest.raises(StoreUnavailable):
        store.update_song("x", {"comments": "c"})
    with pytest.raises(StoreUnavailable):
        store.delete_song("x")


@pytest.mark.light
def test_failed_initialization_surfaces_store_unavailable(monkeypatch):
    def fake_request(method, url, **kwargs):
        return _FakeResponse(403, {"error": {"status": "PERMISSION_DENIED", "message": "denied"}})

    monkeypatch.setattr("src.firestore_store.requests.request", fake_request)
    store = FirestoreSongStore(FirestoreConfig(project_id="demo"))

    with pytest.raises(StoreUnavailable, match="PERMISSION_DENIED"):
        store.wait_ready(timeout=5)
    assert store.is_ready is False
    with pytest.raises(StoreUnavailable):
        store.list_songs()


@pytest.mark.light
def test_start_resolves_readiness_once(monkeypatch):
    calls = _install(monkeypatch, lambda *_: _FakeResponse(200, {}))
    store = FirestoreSongStore(FirestoreConfig(project_id="demo"))
    first = store.start()
    second = store.start()
    store.wait_ready(timeout=5)

    assert first is second
    assert store.is_ready
    assert [c["method"] for c in calls] == ["GET"]


@pytest.mark.light
def test_list_songs_orders_by_created_at_desc(monkeypatch):
    rows = [
        {
            "document": {
                "name": f"{DOC_PREFIX}/abc",
                "fields": {
                    "artistName": {"stringValue": "Maná"},
                    "songName": {"stringValue": "Clavado en un bar"},
                    "state": {"stringValue": "Listo"},
                    "type": {"stringValue": "Movido"},
                    "createdAt": {"timestampValue": "2026-01-02T00:00:00Z"},
                    "updatedAt": {"timestampValue": "2026-01-03T00:00:00Z"},
                },
            },
            "readTime": "2026-01-04T00:00:00Z",
        },
        {"readTime": "2026-01-04T00:00:00Z"},
    ]
    store, calls = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, rows))

    songs = store.list_songs()

    assert len(songs) == 1
    song = songs[0]
    assert song.id == "abc"
    assert song.state is SongState.READY
    assert song.song_type is SongType.UPBEAT
    assert song.comments == ""
    assert song.created_at == "2026-01-02T00:00:00Z"

    query_call = calls[-1]
    assert query_call["url"].endswith("/documents:runQuery")
    order_by = query_call["json"]["structuredQuery"]["orderBy"][0]
    assert order_by == {"field": {"fieldPath": "createdAt"}, "direction": "DESCENDING"}
    assert query_call["params"] == {"key": "k"}


@pytest.mark.light
def test_count_songs_reads_aggregation_result(monkeypatch):
    body = [{"result": {"aggregateFields": {"total": {"integerValue": "5"}}}, "readTime": "t"}]
    store, calls = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, body))

    assert store.count_songs() == 5
    assert calls[-1]["url"].endswith(":runAggregationQuery")


@pytest.mark.light
def test_create_song_assigns_new_id_and_server_timestamps(monkeypatch):
    commit = {
        "writeResults": [
            {
                "updateTime": "2026-02-01T00:00:00Z",
                "transformResults": [
                    {"timestampValue": "2026-02-01T00:00:00Z"},
                    {"timestampValue": "2026-02-01T00:00:00Z"},
                ],
            }
        ],
        "commitTime": "2026-02-01T00:00:00Z",
    }
    store, calls = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, commit))

    created = store.create_song(Song("Juanes", "A Dios le pido", id="client-id", comments="ok"))

    assert created.id != "client-id"
    assert len(created.id) == 20
    assert created.created_at == "2026-02-01T00:00:00Z"
    assert created.updated_at == "2026-02-01T00:00:00Z"
    assert created.comments == "ok"

    write = calls[-1]["json"]["writes"][0]
    assert calls[-1]["url"].endswith("/documents:commit")
    assert write["update"]["name"] == f"{DOC_PREFIX}/{created.id}"
    assert "id" not in write["update"]["fields"]
    assert write["update"]["fields"]["artistName"] == {"stringValue": "Juanes"}
    assert write["currentDocument"] == {"exists": False}
    assert {t["fieldPath"] for t in write["updateTransforms"]} == {"createdAt", "updatedAt"}


@pytest.mark.light
def test_update_song_sends_mask_and_precondition(monkeypatch):
    commit = {"writeResults": [{"transformResults": [{"timestampValue": "2026-03-01T00:00:00Z"}]}]}
    store, calls = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, commit))

    updated_at = store.update_song("abc", {"comments": "nuevo", "state": "xx", "id": "ignored"})

    assert updated_at == "2026-03-01T00:00:00Z"
    write = calls[-1]["json"]["writes"][0]
    assert write["updateMask"] == {"fieldPaths": ["comments", "state"]}
    assert write["currentDocument"] == {"exists": True}
    assert write["update"]["fields"]["state"] == {"stringValue": "Por aprobar"}
    assert write["updateTransforms"] == [{"fieldPath": "updatedAt", "setToServerValue": "REQUEST_TIME"}]


@pytest.mark.light
def test_update_song_rejects_unknown_or_empty_fields(monkeypatch):
    store, _ = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, {}))
    with pytest.raises(ValueError):
        store.update_song("abc", {"genre": "rock"})
    with pytest.raises(ValueError):
        store.update_song("abc", {"id": "x"})


@pytest.mark.light
@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse(404, {"error": {"status": "NOT_FOUND", "message": "No document to update"}}),
        _FakeResponse(400, {"error": {"status": "FAILED_PRECONDITION", "message": "missing"}}),
    ],
)
def test_update_missing_document_raises_not_found(monkeypatch, response):
    store, _ = _ready_store(monkeypatch, lambda *_: response)
    with pytest.raises(NotFound):
        store.update_song("gone", {"comments": "x"})


@pytest.mark.light
def test_delete_song_is_silent_for_missing_documents(monkeypatch):
    store, calls = _ready_store(monkeypatch, lambda *_: _FakeResponse(200, {}))
    store.delete_song("gone")
    assert calls[-1]["method"] == "DELETE"
    assert calls[-1]["url"].endswith(f"{DOC_PREFIX}/gone")


@pytest.mark.light
def test_transport_and_server_errors_become_remote_error(monkeypatch):
    def handler(method, url, kwargs):
        if url.endswith(":runQuery"):
            raise requests.ConnectionError("network down")
        return _FakeResponse(503, {"error": {"status": "UNAVAILABLE", "message": "try later"}})

    store, _ = _ready_store(monkeypatch, handler)
    with pytest.raises(RemoteError, match="network down"):
        store.list_songs()
    with pytest.raises(RemoteError, match="503"):
        store.create_song(Song("A", "B"))


@pytest.mark.light
def test_generate_auto_id_shape():
    ids = {generate_auto_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 20 and i.isalnum() for i in ids)


@pytest.mark.full
def test_live_create_update_delete_roundtrip(live_firestore_config):
    store = FirestoreSongStore(live_firestore_config)
    store.wait_ready(timeout=30)

    created = store.create_song(Song("pytest", "roundtrip"))
    try:
        assert any(s.id == created.id for s in store.list_songs())
        store.update_song(created.id, {"comments": "updated"})
        song = next(s for s in store.list_songs() if s.id == created.id)
        assert song.comments == "updated"
    finally:
        store.delete_song(created.id)
    assert all(s.id != created.id for s in store.list_songs())
