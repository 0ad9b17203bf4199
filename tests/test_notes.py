from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from orbfield.notes import (
    BODY_LIMIT,
    TITLE_LIMIT,
    InvalidNoteId,
    LocalNoteStore,
    MemoryNoteStore,
    Note,
    NoteStoreError,
    RemoteNoteStore,
    create_note_store,
    note_key,
    truncate_note,
)


def test_note_key_and_id_validation() -> None:
    assert note_key(7) == "note:7"
    assert note_key("abc") == "note:abc"
    for bad in (-1, "", "a/b", True, None, 1.5):
        with pytest.raises(InvalidNoteId):
            note_key(bad)  # type: ignore[arg-type]


def test_truncate_note_limits() -> None:
    title, body = truncate_note("t" * 200, "b" * 10001)
    assert len(title) == TITLE_LIMIT
    assert len(body) == BODY_LIMIT
    assert truncate_note(None, None) == ("", "")


def test_note_from_mapping_tolerates_garbage() -> None:
    assert Note.from_mapping(None) == Note()
    assert Note.from_mapping({"title": "a", "updatedAt": "nope"}) == Note("a", "", None)
    assert Note.from_mapping({"title": "a", "body": "b", "updatedAt": 5}).to_dict() == {
        "title": "a",
        "body": "b",
        "updatedAt": 5.0,
    }


def test_memory_store_round_trip() -> None:
    store = MemoryNoteStore()
    assert store.get(3) == Note.empty()
    stored = store.put(3, "title", "body")
    assert store.get(3) == stored
    assert stored.updated_at is not None
    store.delete(3)
    store.delete(3)
    assert store.get(3).is_empty
    assert len(store) == 0


def test_local_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "sub" / "notes.json"
    store = LocalNoteStore(path)
    store.put(1, "x" * 300, "hello")
    reopened = LocalNoteStore(path)
    note = reopened.get(1)
    assert note.title == "x" * TITLE_LIMIT
    assert note.body == "hello"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert set(payload) == {"note:1"}
    reopened.delete(1)
    assert LocalNoteStore(path).get(1).is_empty


def test_local_store_treats_corrupt_file_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "notes.json"
    path.write_text("{not json", encoding="utf-8")
    store = LocalNoteStore(path)
    assert store.get(0).is_empty
    store.put(0, "fresh", "")
    assert LocalNoteStore(path).get(0).title == "fresh"


def test_local_store_write_failure_raises_store_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = LocalNoteStore(blocker / "notes.json")
    with pytest.raises(NoteStoreError):
        store.put(1, "a", "b")
    assert store.get(1).is_empty


def _mock_remote(handler) -> RemoteNoteStore:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteNoteStore("https://notes.example/api/notes/", client=client)


def test_remote_store_speaks_json() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        if request.method == "GET":
            return httpx.Response(200, json={"title": "t", "body": "b", "updatedAt": 12})
        return httpx.Response(200, json={"ok": True})

    store = _mock_remote(handler)
    assert store.get(4) == Note("t", "b", 12.0)
    store.put(4, "n" * 130, "body")
    store.delete(4)
    methods = [m for m, _path, _body in seen]
    assert methods == ["GET", "PUT", "DELETE"]
    assert all(path == "/api/notes/4" for _m, path, _body in seen)
    assert json.loads(seen[1][2]) == {"title": "n" * TITLE_LIMIT, "body": "body"}


def test_remote_store_maps_errors() -> None:
    store = _mock_remote(lambda request: httpx.Response(500, json={"error": "Server error"}))
    with pytest.raises(NoteStoreError):
        store.get(1)

    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(NoteStoreError):
        _mock_remote(broken).put(1, "a", "b")

    garbage = _mock_remote(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(NoteStoreError):
        garbage.get(1)


def test_remote_store_requires_http_url() -> None:
    with pytest.raises(ValueError):
        RemoteNoteStore("ftp://example")


def test_create_note_store_backends(tmp_path: Path) -> None:
    assert isinstance(create_note_store({"backend": "memory"}), MemoryNoteStore)
    local = create_note_store({"backend": "local", "path": str(tmp_path / "n.json")})
    assert isinstance(local, LocalNoteStore)
    remote = create_note_store({"backend": "remote", "url": '"http://127.0.0.1:9/api/notes"'})
    assert isinstance(remote, RemoteNoteStore)
    assert remote.base_url == "http://127.0.0.1:9/api/notes"
    remote.close()
    with pytest.raises(ValueError):
        create_note_store({"backend": "remote", "url": ""})
    with pytest.raises(ValueError):
        create_note_store({"backend": "redis"})
