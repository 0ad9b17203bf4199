"""Hover, open and note-editing state layered over the swarm.

The controller never mutates the swarm.  It keeps its own display scale per
orb (base scale, or base scale x 1.6 for the hovered orb) and routes note
reads and writes through an injected :class:`~orbfield.notes.NoteStore` and
task runner so the animation keeps going while a request is in flight.

Results that arrive after the editor was closed, or after another orb was
opened, are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from . import log
from .camera import OrbitCamera, Ray
from .notes import Note, NoteStore, NoteStoreError, truncate_note
from .picking import HitTester
from .swarm import OrbSwarm
from .tasks import Runner, run_inline

__all__ = ["HOVER_SCALE", "EditorState", "InteractionController"]

HOVER_SCALE = 1.6

LOAD_FAILED = "Failed to load note"
SAVE_FAILED = "Failed to save note"
DELETE_FAILED = "Failed to delete note"

Notifier = Callable[[str], None]
Listener = Callable[["InteractionController"], None]

_STORE_ERRORS = (NoteStoreError, OSError)


@dataclass(frozen=True)
class EditorState:
    orb_id: int
    title: str = ""
    body: str = ""
    loading: bool = True
    updated_at: Optional[float] = None


def _default_notify(message: str) -> None:
    log.warn(message)


class InteractionController:
    def __init__(
        self,
        swarm: OrbSwarm,
        store: NoteStore,
        hit_tester: Optional[HitTester] = None,
        *,
        runner: Runner = run_inline,
        notify: Optional[Notifier] = None,
        hover_scale: float = HOVER_SCALE,
    ) -> None:
        self.swarm = swarm
        self.store = store
        self.hit_tester = hit_tester if hit_tester is not None else HitTester()
        self.runner = runner
        self.notify = notify if notify is not None else _default_notify
        self.hover_scale = float(hover_scale)
        self._scales: List[float] = list(swarm.base_scales())
        self._hovered: Optional[int] = None
        self._editor: Optional[EditorState] = None
        self._request = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------ state
    @property
    def hovered_orb_id(self) -> Optional[int]:
        return self._hovered

    @property
    def open_orb_id(self) -> Optional[int]:
        return self._editor.orb_id if self._editor is not None else None

    @property
    def editor(self) -> Optional[EditorState]:
        return self._editor

    def display_scales(self) -> Tuple[float, ...]:
        return tuple(self._scales)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------ hover
    def _set_hovered(self, orb_id: Optional[int]) -> bool:
        previous = self._hovered
        if previous == orb_id:
            return False
        if previous is not None:
            self._scales[previous] = self.swarm.base_scale(previous)
        if orb_id is not None:
            self._scales[orb_id] = self.swarm.base_scale(orb_id) * self.hover_scale
        self._hovered = orb_id
        self._changed()
        return True

    def pointer_move(self, ray: Ray) -> Optional[int]:
        hit = self.hit_tester.pick(ray, self.swarm.positions(), self._scales)
        self._set_hovered(hit)
        return hit

    def pointer_move_ndc(self, camera: OrbitCamera, nx: float, ny: float) -> Optional[int]:
        return self.pointer_move(camera.ray_from_ndc(nx, ny))

    def pointer_leave(self) -> None:
        self._set_hovered(None)

    # ------------------------------------------------------------------ open / close
    def click(self) -> bool:
        """Open the hovered orb's note; a click with the editor open closes it.

        Returns ``True`` when an editor was opened.
        """

        if self._editor is not None:
            self.background_click()
            return False
        orb_id = self._hovered
        if orb_id is None:
            return False
        self._request += 1
        token = self._request
        self._editor = EditorState(orb_id)
        self._changed()
        self.runner(lambda: self.store.get(orb_id), lambda note, error: self._on_loaded(token, orb_id, note, error))
        return True

    def _is_current(self, token: int, orb_id: int) -> bool:
        return token == self._request and self._editor is not None and self._editor.orb_id == orb_id

    def _on_loaded(self, token: int, orb_id: int, note: Optional[Note], error: Optional[BaseException]) -> None:
        if not self._is_current(token, orb_id):
            log.debug(f"dropping stale note load for orb {orb_id}")
            return
        if error is not None:
            self._editor = EditorState(orb_id, loading=False)
            self._changed()
            self.notify(LOAD_FAILED)
            if not isinstance(error, _STORE_ERRORS):
                raise error
            return
        note = note if note is not None else Note.empty()
        self._editor = EditorState(orb_id, note.title, note.body, loading=False, updated_at=note.updated_at)
        self._changed()

    def close(self) -> None:
        if self._editor is None:
            return
        self._request += 1
        self._editor = None
        self._changed()

    def escape(self) -> None:
        self.close()

    def background_click(self) -> None:
        self.close()

    def edit(self, title: str, body: str) -> None:
        """Record the editor's current text without persisting it."""

        if self._editor is None:
            return
        clean_title, clean_body = truncate_note(title, body)
        self._editor = replace(self._editor, title=clean_title, body=clean_body)

    # ------------------------------------------------------------------ persistence
    def save(self, title: Optional[str] = None, body: Optional[str] = None) -> bool:
        """Persist the open note and close the editor right away.

        A failed write is only reported; nothing is retried or queued.
        """

        editor = self._editor
        if editor is None:
            return False
        clean_title, clean_body = truncate_note(
            editor.title if title is None else title,
            editor.body if body is None else body,
        )
        orb_id = editor.orb_id
        self.close()
        self.runner(
            lambda: self.store.put(orb_id, clean_title, clean_body),
            lambda _note, error: self._on_written(orb_id, error, SAVE_FAILED),
        )
        return True

    def delete(self) -> bool:
        editor = self._editor
        if editor is None:
            return False
        orb_id = editor.orb_id
        self.close()
        self.runner(
            lambda: self.store.delete(orb_id),
            lambda _result, error: self._on_written(orb_id, error, DELETE_FAILED),
        )
        return True

    def _on_written(self, orb_id: int, error: Optional[BaseException], message: str) -> None:
        if error is None:
            log.debug(f"note for orb {orb_id} written")
            return
        log.warn(f"note write for orb {orb_id} failed: {error}")
        self.notify(message)
        if not isinstance(error, _STORE_ERRORS):
            raise error
