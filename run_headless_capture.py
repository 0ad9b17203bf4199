"""Render a few frames offscreen and capture any exception.

The parent process launches a child Python process so that OS-level output
(for example messages from Qt's C++ layer) lands in files instead of the
console.  The child builds the viewer with ``QT_QPA_PLATFORM=offscreen`` and
an in-memory note store, renders several frames and saves the last one.

Usage:
  python run_headless_capture.py [frames]

Outputs:
  - run_capture.png : last rendered frame
  - run_output.txt : combined stdout+stderr from the child run
  - run_exception.txt : the full output if the child exited with an error
"""
from __future__ import annotations

import os
import sys
import traceback

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = os.path.dirname(os.path.abspath(__file__))

out_file = os.path.join(ROOT, "run_output.txt")
err_file = os.path.join(ROOT, "run_exception.txt")
png_file = os.path.join(ROOT, "run_capture.png")


def _run_child_mode(frames: int) -> int:
    """Build the raster viewer and render ``frames`` frames into a QImage."""
    try:
        from PyQt5 import QtGui, QtWidgets

        from orbfield.notes import MemoryNoteStore
        from orbfield.view import OrbfieldViewWidget

        app = QtWidgets.QApplication(sys.argv[:1])
        widget = OrbfieldViewWidget(
            None,
            config={"system": {"seed": 7, "frameIntervalMs": 0}},
            store=MemoryNoteStore(),
            force_backend="raster",
        )
        widget.resize(960, 600)
        image = QtGui.QImage(widget.size(), QtGui.QImage.Format_ARGB32_Premultiplied)
        for _ in range(max(1, frames)):
            painter = QtGui.QPainter(image)
            try:
                widget._render_with_painter(painter)
            finally:
                painter.end()
            app.processEvents()
        ok = image.save(png_file)
        print("saved" if ok else "failed to save", png_file)
        widget.shutdown()
        return 0 if ok else 1
    except Exception:
        traceback.print_exc()
        return 2


def _run_parent_mode(frames: int) -> None:
    """Launch the child with RUN_AS_CHILD=1 and write its output to files."""
    import subprocess

    env = dict(os.environ)
    env["RUN_AS_CHILD"] = "1"
    env["PYTHONPATH"] = ROOT + os.pathsep + env.get("PYTHONPATH", "")

    proc = subprocess.run([sys.executable, __file__, str(frames)], env=env, capture_output=True, text=True)

    combined = proc.stdout + ("\n" + proc.stderr if proc.stderr else "")
    with open(out_file, "w", encoding="utf-8") as outf:
        outf.write(combined)

    if proc.returncode != 0:
        with open(err_file, "w", encoding="utf-8") as errf:
            errf.write(combined)
        print("Child process failed; see", err_file)
    else:
        print("Capture completed; see", png_file)


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 30
    if os.environ.get("RUN_AS_CHILD") == "1":
        sys.exit(_run_child_mode(count))
    else:
        _run_parent_mode(count)
