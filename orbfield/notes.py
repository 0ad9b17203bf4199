"""Note persistence behind a small get/put/delete capability.

Three interchangeable stores are provided:

* :class:`MemoryNoteStore` keeps notes in a dictionary (tests, ``--notes memory``).
* :class:`LocalNoteStore` keeps one JSON document on the local disk.
* :class:`RemoteNoteStore` talks to the ``/api/notes/<id>`` HTTP endpoint
  served by :mod:`orbfield.notes_server` (or any compatible service).

Every record lives under the key ``note:<id>``.  Stores truncate the title to
120 characters and the body to 10000 characters and stamp ``updated_at`` on
every write.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import httpx

from . import log

__all__ = [
    "TITLE_LIMIT",
    "BODY_LIMIT",
    "Note",
    "NoteId",
    "NoteStore",
    "NoteStoreError",
    "InvalidNoteId",
    "MemoryNoteStore",
    "LocalNoteStore",
    "RemoteNoteStore",
    "truncate_note",
    "note_key",
    "create_note_store",
]

TITLE_LIMIT = 120
BODY_LIMIT = 10000

NoteId = Union[int, str]


class NoteStoreError(Exception):
    """Raised when a store cannot complete a read or a write."""


class InvalidNoteId(NoteStoreError, ValueError):
    pass


@dataclass(frozen=True)
class Note:
    title: str = ""
    body: str = ""
    updated_at: Optional[float] = None

    @classmethod
    def empty(cls) -> "Note":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.title and not self.body

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "Note":
        if not isinstance(raw, Mapping):
            return cls()
        updated = raw.get("updatedAt")
        try:
            updated_at = float(updated) if updated is not None else None
        except (TypeError, ValueError):
            updated_at = None
        return cls(str(raw.get("title", "") or ""), str(raw.get("body", "") or ""), updated_at)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"title": self.title, "body": self.body}
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload


def truncate_note(title: object, body: object) -> Tuple[str, str]:
    return str(title if title is not None else "")[:TITLE_LIMIT], str(body if body is not None else "")[:BODY_LIMIT]


def _clean_id(orb_id: NoteId) -> str:
    if isinstance(orb_id, bool):
        raise InvalidNoteId(f"invalid note id {orb_id!r}")
    if isinstance(orb_id, int):
        if orb_id < 0:
            raise InvalidNoteId(f"note id must be non-negative, got {orb_id}")
        return str(orb_id)
    if isinstance(orb_id, str):
        text = orb_id.strip()
        if text and "/" not in text and len(text) <= 128:
            return text
    raise InvalidNoteId(f"invalid note id {orb_id!r}")


def note_key(orb_id: NoteId) -> str:
    return f"note:{_clean_id(orb_id)}"


def _now_ms() -> float:
    return float(int(time.time() * 1000))


class NoteStore(ABC):
    """Capability interface shared by every note backend."""

    @abstractmethod
    def get(self, orb_id: NoteId) -> Note:
        """Return the stored note, or an empty note when none exists."""

    @abstractmethod
    def put(self, orb_id: NoteId, title: str, body: str) -> Note:
        """Truncate, stamp and store a note as a whole; return what was stored."""

    @abstractmethod
    def delete(self, orb_id: NoteId) -> None:
        """Remove a note.  Deleting a missing note is not an error."""


class MemoryNoteStore(NoteStore):
    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, orb_id: NoteId) -> Note:
        key = note_key(orb_id)
        with self._lock:
            return Note.from_mapping(self._records.get(key))

    def put(self, orb_id: NoteId, title: str, body: str) -> Note:
        key = note_key(orb_id)
        clean_title, clean_body = truncate_note(title, body)
        note = Note(clean_title, clean_body, _now_ms())
        with self._lock:
            self._records[key] = note.to_dict()
        return note

    def delete(self, orb_id: NoteId) -> None:
        key = note_key(orb_id)
        with self._lock:
            self._records.pop(key, None)

    def __len__(self) -> int:
        return len(self._records)


class LocalNoteStore(NoteStore):
    """Single-device store persisting every note in one JSON file."""

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        base_dir = Path.home() / ".orbfield"
        self.path = Path(storage_path) if storage_path is not None else (base_dir / "notes.json")
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._records = {}
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warn(f"ignoring unreadable note file {self.path}: {exc}")
            self._records = {}
            return
        if not isinstance(payload, dict):
            log.warn(f"ignoring malformed note file {self.path}")
            self._records = {}
            return
        self._records = {
            str(key): dict(value) for key, value in payload.items() if isinstance(value, dict)
        }

    def _flush(self, records: Dict[str, Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".notes-", suffix=".json", dir=str(self.path.parent))
        except OSError as exc:
            raise NoteStoreError(f"failed to write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(records, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise NoteStoreError(f"failed to write {self.path}: {exc}") from exc

    def get(self, orb_id: NoteId) -> Note:
        key = note_key(orb_id)
        with self._lock:
            return Note.from_mapping(self._records.get(key))

    def put(self, orb_id: NoteId, title: str, body: str) -> Note:
        key = note_key(orb_id)
        clean_title, clean_body = truncate_note(title, body)
        note = Note(clean_title, clean_body, _now_ms())
        with self._lock:
            records = copy.deepcopy(self._records)
            records[key] = note.to_dict()
            self._flush(records)
            self._records = records
        return note

    def delete(self, orb_id: NoteId) -> None:
        key = note_key(orb_id)
        with self._lock:
            if key not in self._records:
                return
            records = copy.deepcopy(self._records)
            del records[key]
            self._flush(records)
            self._records = records


class RemoteNoteStore(NoteStore):
    """Client for a ``GET/PUT/DELETE <base_url>/<id>`` JSON note service."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        base = (base_url or "").strip()
        if not base.startswith(("http://", "https://")):
            raise ValueError(f"note service URL must be http(s), got {base_url!r}")
        self.base_url = base.rstrip("/")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    def _url(self, orb_id: NoteId) -> str:
        return f"{self.base_url}/{_clean_id(orb_id)}"

    def _request(self, method: str, orb_id: NoteId, payload: Optional[dict] = None) -> Any:
        url = self._url(orb_id)
        try:
            response = self._client.request(method, url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise NoteStoreError(f"{method} {url} failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NoteStoreError(f"{method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise NoteStoreError(f"{method} {url} returned invalid JSON") from exc

    def get(self, orb_id: NoteId) -> Note:
        return Note.from_mapping(self._request("GET", orb_id))

    def put(self, orb_id: NoteId, title: str, body: str) -> Note:
        clean_title, clean_body = truncate_note(title, body)
        self._request("PUT", orb_id, {"title": clean_title, "body": clean_body})
        return Note(clean_title, clean_body, _now_ms())

    def delete(self, orb_id: NoteId) -> None:
        self._request("DELETE", orb_id)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1].strip()
    return value


def create_note_store(notes_cfg: Mapping[str, object]) -> NoteStore:
    """Build the store selected by the ``notes`` configuration section."""

    backend = str(notes_cfg.get("backend", "local") or "local").strip().lower()
    if backend == "memory":
        return MemoryNoteStore()
    if backend == "remote":
        url = _strip_quotes(str(notes_cfg.get("url", "") or ""))
        if not url:
            raise ValueError("remote note store selected but no URL configured (set ORBFIELD_NOTES_URL)")
        timeout = float(notes_cfg.get("timeout", 10.0) or 10.0)  # type: ignore[arg-type]
        return RemoteNoteStore(url, timeout=timeout)
    if backend == "local":
        raw_path = notes_cfg.get("path")
        path = Path(os.path.expanduser(str(raw_path))) if raw_path else None
        return LocalNoteStore(path)
    raise ValueError(f"unknown note backend {backend!r}")
