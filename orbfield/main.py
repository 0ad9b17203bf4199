# -*- coding: utf-8 -*-
"""Desktop entry point: one window showing the orb swarm and the cloud."""

from __future__ import annotations

import argparse
import sys
import traceback
from pathlib import Path
from typing import Dict, List, NoReturn, Optional


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    details = str(exc)
    message_lines = [
        "Unable to start Orbfield: importing PyQt5 failed.",
        "Check that PyQt5 is installed and that the required OpenGL libraries are available.",
    ]
    if "libGL.so.1" in details:
        message_lines.append(
            "Hint: the system library libGL.so.1 is missing. Install the Mesa/OpenGL packages for your platform."
        )
    message_lines.append(f"Original error: {details}")
    raise SystemExit("\n".join(message_lines)) from exc


try:
    from PyQt5 import QtGui, QtWidgets
    from PyQt5.QtCore import Qt
    from PyQt5.QtGui import QSurfaceFormat
except ImportError as exc:  # pragma: no cover - depends on the environment
    _handle_qt_import_error(exc)

from . import log
from .config import load_config, merge_config
from .view import OrbfieldViewWidget

ROOT = Path(__file__).resolve().parents[1]


class ViewWindow(QtWidgets.QMainWindow):
    def __init__(self, screen: QtGui.QScreen, config: Optional[Dict[str, object]] = None, *, backend: Optional[str] = None):
        super().__init__(None)
        self._target_screen = screen
        self.setWindowTitle("Orbfield")
        self.view = OrbfieldViewWidget(self, config=config, force_backend=backend)
        self.setCentralWidget(self.view)
        self._apply_screen_geometry(screen)

    def _apply_screen_geometry(self, screen: QtGui.QScreen) -> None:
        if window_handle := self.windowHandle():
            window_handle.setScreen(screen)
        geometry = screen.geometry()
        width = int(geometry.width() * 0.8)
        height = int(geometry.height() * 0.8)
        left = geometry.left() + (geometry.width() - width) // 2
        top = geometry.top() + (geometry.height() - height) // 2
        self.setGeometry(left, top, width, height)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.view.shutdown()
        super().closeEvent(event)


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drifting orb swarm with per-orb notes.")
    parser.add_argument("--mode", choices=("orbs", "cloud", "both"), default=None, help="What to draw")
    parser.add_argument("--notes", choices=("local", "remote", "memory"), default=None, help="Note backend")
    parser.add_argument("--notes-url", default=None, help="Base URL of the note service (implies --notes remote)")
    parser.add_argument("--notes-path", default=None, help="JSON file for the local note backend")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the swarm and the cloud")
    parser.add_argument("--orbs", type=int, default=None, help="Number of orbs")
    parser.add_argument("--backend", choices=("opengl", "raster"), default=None, help="Force a render backend")
    parser.add_argument("--config", type=Path, default=None, help="Alternate config.json")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> Dict[str, object]:
    """Merge command-line overrides over the file and environment config."""

    overrides: Dict[str, dict] = {}
    if args.mode:
        overrides.setdefault("system", {})["mode"] = args.mode
    if args.seed is not None:
        overrides.setdefault("system", {})["seed"] = args.seed
    if args.orbs is not None:
        overrides.setdefault("swarm", {})["count"] = args.orbs
    if args.notes_url:
        overrides.setdefault("notes", {}).update(backend="remote", url=args.notes_url)
    if args.notes_path:
        overrides.setdefault("notes", {})["path"] = args.notes_path
    if args.notes:
        overrides.setdefault("notes", {})["backend"] = args.notes
    return merge_config(load_config(args.config), overrides)


def _write_unhandled(exc_type, exc_value, exc_tb) -> None:
    try:
        with (ROOT / "run_exception.txt").open("w", encoding="utf-8") as handle:
            traceback.print_exception(exc_type, exc_value, exc_tb, file=handle)
    except OSError:
        pass
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def main(argv: Optional[List[str]] = None, headless: bool = False) -> int:
    """Start the application and return the exit code.

    With ``headless`` the arguments and configuration are resolved and the
    function returns 0 without creating any Qt object.
    """

    args = parse_args(sys.argv[1:] if argv is None else argv)
    config = config_from_args(args)
    if headless:
        return 0

    sys.excepthook = _write_unhandled

    fmt = QSurfaceFormat()
    fmt.setAlphaBufferSize(8)
    QSurfaceFormat.setDefaultFormat(fmt)
    QtWidgets.QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QtWidgets.QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)
    app = QtWidgets.QApplication(sys.argv[:1])
    window = ViewWindow(QtGui.QGuiApplication.primaryScreen(), config, backend=args.backend)
    log.info(f"viewer started with {getattr(window.view, 'backend_name', '?')} backend")
    window.show()
    return app.exec_()


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
