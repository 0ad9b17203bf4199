"""Note editor overlay and transient toast shown above the orb view."""

from __future__ import annotations

from typing import Callable, Optional

from PyQt5 import QtCore, QtGui, QtWidgets
from PyQt5.QtCore import Qt

from ..interaction import EditorState, InteractionController
from ..notes import BODY_LIMIT, TITLE_LIMIT

__all__ = ["NoteEditorOverlay", "ToastLabel"]

_PANEL_STYLE = """
QFrame#noteEditor {
    background: rgba(12, 16, 26, 225);
    border: 1px solid rgba(255, 255, 255, 60);
    border-radius: 10px;
}
QLabel { color: #E8ECF4; }
QLineEdit, QPlainTextEdit {
    background: rgba(255, 255, 255, 18);
    color: #FFFFFF;
    border: 1px solid rgba(255, 255, 255, 40);
    border-radius: 6px;
    padding: 4px;
}
QPushButton {
    color: #FFFFFF;
    background: rgba(255, 255, 255, 30);
    border: 1px solid rgba(255, 255, 255, 50);
    border-radius: 6px;
    padding: 4px 12px;
}
QPushButton:hover { background: rgba(255, 255, 255, 55); }
"""


class ToastLabel(QtWidgets.QLabel):
    """Non-blocking notification that hides itself after a delay."""

    def __init__(self, parent: QtWidgets.QWidget) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.setAlignment(Qt.AlignCenter)
        self.setStyleSheet(
            "background: rgba(170, 40, 40, 220); color: white; border-radius: 8px; padding: 6px 14px;"
        )
        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self.hide)
        self.hide()

    def show_message(self, text: str, duration_ms: int = 2600) -> None:
        self.setText(text)
        self.adjustSize()
        parent = self.parentWidget()
        if parent is not None:
            self.move((parent.width() - self.width()) // 2, parent.height() - self.height() - 24)
        self.show()
        self.raise_()
        self._timer.start(duration_ms)


class NoteEditorOverlay(QtWidgets.QFrame):
    """Floating title/body editor bound to an :class:`InteractionController`."""

    def __init__(self, parent: QtWidgets.QWidget, controller: InteractionController) -> None:
        super().__init__(parent)
        self.setObjectName("noteEditor")
        self.setStyleSheet(_PANEL_STYLE)
        self.setFixedWidth(340)
        self._controller = controller
        self._shown_for: Optional[int] = None
        self._shown_loading = False
        self._syncing = False

        self._heading = QtWidgets.QLabel("", self)
        font = self._heading.font()
        font.setBold(True)
        self._heading.setFont(font)

        self._title = QtWidgets.QLineEdit(self)
        self._title.setMaxLength(TITLE_LIMIT)
        self._title.setPlaceholderText("Title")

        self._body = QtWidgets.QPlainTextEdit(self)
        self._body.setPlaceholderText("Write a note for this orb…")
        self._body.setMinimumHeight(160)

        self._counter = QtWidgets.QLabel("", self)
        self._counter.setAlignment(Qt.AlignRight | Qt.AlignVCenter)

        save_btn = QtWidgets.QPushButton("Save", self)
        delete_btn = QtWidgets.QPushButton("Delete", self)
        close_btn = QtWidgets.QPushButton("Close", self)
        save_btn.clicked.connect(self._on_save)
        delete_btn.clicked.connect(self._on_delete)
        close_btn.clicked.connect(controller.close)

        buttons = QtWidgets.QHBoxLayout()
        buttons.addWidget(self._counter, 1)
        buttons.addWidget(delete_btn)
        buttons.addWidget(close_btn)
        buttons.addWidget(save_btn)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(14, 12, 14, 12)
        layout.addWidget(self._heading)
        layout.addWidget(self._title)
        layout.addWidget(self._body, 1)
        layout.addLayout(buttons)

        self._title.textChanged.connect(self._on_text_changed)
        self._body.textChanged.connect(self._on_text_changed)
        QtWidgets.QShortcut(QtGui.QKeySequence(Qt.Key_Escape), self, activated=controller.escape)
        QtWidgets.QShortcut(QtGui.QKeySequence("Ctrl+Return"), self, activated=self._on_save)

        self._unsubscribe: Callable[[], None] = controller.subscribe(lambda _c: self.refresh())
        self.hide()

    # ------------------------------------------------------------------ sync
    def refresh(self) -> None:
        editor = self._controller.editor
        if editor is None:
            self._shown_for = None
            self.hide()
            return
        if self._shown_for != editor.orb_id or self._shown_loading != editor.loading:
            self._load_fields(editor)
        self._place()
        self.show()
        self.raise_()

    def _load_fields(self, editor: EditorState) -> None:
        self._syncing = True
        try:
            self._shown_for = editor.orb_id
            self._shown_loading = editor.loading
            self._heading.setText(f"Orb #{editor.orb_id}")
            self._title.setText(editor.title)
            self._body.setPlainText(editor.body)
            enabled = not editor.loading
            self._title.setEnabled(enabled)
            self._body.setEnabled(enabled)
            if editor.loading:
                self._body.setPlaceholderText("Loading…")
            else:
                self._body.setPlaceholderText("Write a note for this orb…")
                self._title.setFocus()
            self._update_counter()
        finally:
            self._syncing = False

    def _place(self) -> None:
        parent = self.parentWidget()
        if parent is None:
            return
        self.adjustSize()
        self.move(max(12, parent.width() - self.width() - 24), 24)

    def _update_counter(self) -> None:
        self._counter.setText(f"{len(self._body.toPlainText())}/{BODY_LIMIT}")

    # ------------------------------------------------------------------ actions
    def _on_text_changed(self) -> None:
        if self._syncing:
            return
        body = self._body.toPlainText()
        if len(body) > BODY_LIMIT:
            self._syncing = True
            try:
                cursor = self._body.textCursor()
                position = min(cursor.position(), BODY_LIMIT)
                self._body.setPlainText(body[:BODY_LIMIT])
                cursor = self._body.textCursor()
                cursor.setPosition(position)
                self._body.setTextCursor(cursor)
            finally:
                self._syncing = False
        self._controller.edit(self._title.text(), self._body.toPlainText())
        self._update_counter()

    def _on_save(self) -> None:
        if self._controller.editor is None or self._controller.editor.loading:
            return
        self._controller.save(self._title.text(), self._body.toPlainText())

    def _on_delete(self) -> None:
        self._controller.delete()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self._unsubscribe()
        super().closeEvent(event)
