from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.config import FirestoreConfig
from src.errors import NotFound, RemoteError, StoreUnavailable
from src.models import Song


class FakeSongStore:
    """
    FirestoreSongStore と同じ操作を持つメモリ上のストア。

    fail_create_on に create 呼び出しの通番(1始まり)を入れるとその回だけ RemoteError になる。
    """

    def __init__(self, ready: bool = True):
        self.ready = ready
        self.records: dict[str, Song] = {}
        self.create_calls: list[Song] = []
        self.update_calls: list[tuple[str, dict]] = []
        self.delete_calls: list[str] = []
        self.fail_create_on: set[int] = set()
        self.fail_update = False
        self.fail_count = False
        self._clock = 0

    def _tick(self) -> str:
        self._clock += 1
        return f"2026-01-01T00:00:{self._clock:02d}Z"

    def seed(self, artist: str, song: str, **kwargs) -> Song:
        stamp = self._tick()
        record = Song(
            artist_name=artist,
            song_name=song,
            id=f"seed{len(self.records) + 1}",
            created_at=stamp,
            updated_at=stamp,
            **kwargs,
        )
        self.records[record.id] = record
        return record

    def start(self) -> None:
        pass

    def wait_ready(self, timeout=None) -> None:
        if not self.ready:
            raise StoreUnavailable("fake store is not ready")

    def _require_ready(self) -> None:
        if not self.ready:
            raise StoreUnavailable("fake store is not ready")

    def list_songs(self) -> list[Song]:
        self._require_ready()
        return sorted(self.records.values(), key=lambda s: s.created_at, reverse=True)

    def count_songs(self) -> int:
        self._require_ready()
        if self.fail_count:
            raise RemoteError("count failed")
        return len(self.records)

    def create_song(self, draft: Song) -> Song:
        self._require_ready()
        self.create_calls.append(draft)
        call_no = len(self.create_calls)
        if call_no in self.fail_create_on:
            raise RemoteError(f"create #{call_no} failed")
        stamp = self._tick()
        created = dataclasses.replace(
            draft, id=f"new{call_no}", created_at=stamp, updated_at=stamp
        )
        self.records[created.id] = created
        return created

    def update_song(self, song_id: str, fields: dict):
        self._require_ready()
        self.update_calls.append((song_id, fields))
        if self.fail_update:
            raise RemoteError("update failed")
        if song_id not in self.records:
            raise NotFound(f"Song not found: {song_id}")
        stamp = self._tick()
        merged = self.records[song_id].with_fields(fields)
        self.records[song_id] = dataclasses.replace(merged, updated_at=stamp)
        return stamp

    def delete_song(self, song_id: str) -> None:
        self._require_ready()
        self.delete_calls.append(song_id)
        self.records.pop(song_id, None)


@pytest.fixture
def fake_store() -> FakeSongStore:
    return FakeSongStore()


@pytest.fixture
def fixture_dir() -> Path:
    return Path(__file__).resolve().parent / "fixtures"


@pytest.fixture(scope="session")
def live_firestore_config() -> FirestoreConfig:
    project_id = os.environ.get("FIRESTORE_TEST_PROJECT_ID")
    if not project_id:
        if os.environ.get("CI") and os.environ.get("REQUIRE_LIVE_FIRESTORE"):
            pytest.fail("FIRESTORE_TEST_PROJECT_ID が未設定です")
        pytest.skip("FIRESTORE_TEST_PROJECT_ID が未設定のためスキップ")

    return FirestoreConfig(
        project_id=project_id,
        collection=os.environ.get("FIRESTORE_TEST_COLLECTION", "songs_test"),
        api_key=os.environ.get("FIRESTORE_API_KEY") or None,
        id_token=os.environ.get("FIRESTORE_ID_TOKEN") or None,
    )
