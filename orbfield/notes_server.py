"""HTTP endpoint exposing a :class:`~orbfield.notes.NoteStore` as JSON.

Routes::

    GET    /api/notes/<id>   -> {"title": ..., "body": ..., "updatedAt": ...}
    PUT    /api/notes/<id>   <- {"title": ..., "body": ...}   -> {"ok": true}
    DELETE /api/notes/<id>   -> {"ok": true}
    OPTIONS /api/notes/<id>  -> 204 (CORS preflight)

Any other method answers 405 with an ``Allow`` header.  Cross-origin requests
are allowed from everywhere.
"""

from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Optional, Type
from urllib.parse import unquote, urlparse

from . import log
from .notes import InvalidNoteId, LocalNoteStore, NoteStore, NoteStoreError

__all__ = ["NOTES_PREFIX", "NotesHandler", "make_handler", "make_server", "serve", "parse_args", "main"]

NOTES_PREFIX = "/api/notes/"
ALLOWED_METHODS = "GET,PUT,DELETE"


class NotesHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "OrbfieldNotes/0.1"

    store: NoteStore

    def _set_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET,PUT,DELETE,OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")

    def _send_json(self, payload: Any, status: int = HTTPStatus.OK, *, extra_headers: Optional[dict] = None) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self._set_cors_headers()
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        if extra_headers:
            for key, value in extra_headers.items():
                self.send_header(str(key), str(value))
        self.end_headers()
        if self.command == "HEAD":
            return
        try:
            self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError):
            pass

    def _read_raw_body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = 0
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def _note_id(self) -> Optional[str]:
        path = urlparse(self.path).path
        if not path.startswith(NOTES_PREFIX):
            return None
        raw = unquote(path[len(NOTES_PREFIX):])
        if not raw or "/" in raw:
            return None
        return raw

    def _dispatch(self, method: str) -> None:
        note_id = self._note_id()
        if note_id is None:
            self._read_raw_body()
            self._send_json({"error": "Not found"}, HTTPStatus.NOT_FOUND)
            return
        try:
            if method == "GET":
                self._send_json(self.store.get(note_id).to_dict())
            elif method == "PUT":
                raw = self._read_raw_body()
                try:
                    payload = json.loads(raw.decode("utf-8")) if raw else {}
                except (UnicodeDecodeError, ValueError):
                    self._send_json({"error": "Invalid JSON"}, HTTPStatus.BAD_REQUEST)
                    return
                if not isinstance(payload, dict):
                    self._send_json({"error": "Invalid JSON"}, HTTPStatus.BAD_REQUEST)
                    return
                self.store.put(note_id, payload.get("title", ""), payload.get("body", ""))
                self._send_json({"ok": True})
            elif method == "DELETE":
                self.store.delete(note_id)
                self._send_json({"ok": True})
            else:
                self._read_raw_body()
                self._send_json(
                    {"error": "Method not allowed"},
                    HTTPStatus.METHOD_NOT_ALLOWED,
                    extra_headers={"Allow": ALLOWED_METHODS},
                )
        except InvalidNoteId:
            self._send_json({"error": "Invalid note id"}, HTTPStatus.BAD_REQUEST)
        except (NoteStoreError, OSError) as exc:
            log.warn(f"{method} {self.path} failed: {exc}")
            self._send_json({"error": "Server error"}, HTTPStatus.INTERNAL_SERVER_ERROR)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self._set_cors_headers()
        self.send_header("Access-Control-Max-Age", "86400")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch("GET")

    def do_PUT(self) -> None:  # noqa: N802
        self._dispatch("PUT")

    def do_DELETE(self) -> None:  # noqa: N802
        self._dispatch("DELETE")

    def __getattr__(self, name: str) -> Any:
        # http.server looks up ``do_<VERB>``; every other verb answers 405.
        if name.startswith("do_") and len(name) > 3:
            method = name[3:]
            return lambda: self._dispatch(method)
        raise AttributeError(name)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        log.debug("notes %s - %s" % (self.address_string(), format % args))


def make_handler(store: NoteStore) -> Type[NotesHandler]:
    class BoundNotesHandler(NotesHandler):
        pass

    BoundNotesHandler.store = store
    return BoundNotesHandler


def make_server(store: NoteStore, host: str = "127.0.0.1", port: int = 8788) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((host, port), make_handler(store))


def serve(host: str = "127.0.0.1", port: int = 8788, storage: Optional[Path] = None) -> None:
    store = LocalNoteStore(storage)
    server = make_server(store, host, port)
    log.info(f"serving notes from {store.path} on http://{host}:{server.server_address[1]}{NOTES_PREFIX}<id>")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve orb notes over HTTP.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8788)
    parser.add_argument("--storage", type=Path, default=None, help="JSON file holding the notes")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    serve(args.host, args.port, args.storage)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
