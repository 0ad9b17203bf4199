"""Tagged console output shared by the engine, the stores and the viewer."""

from __future__ import annotations

import os
import sys

TAG = "[Orbfield]"
DEBUG_MARKER = f"{TAG}[DEBUG]"


def debug_enabled() -> bool:
    return os.environ.get("ORBFIELD_DEBUG", "").strip().lower() in {"1", "true", "yes"}


def debug(message: str) -> None:
    if debug_enabled():
        print(f"{DEBUG_MARKER} {message}", flush=True)


def info(message: str) -> None:
    print(f"{TAG} {message}", flush=True)


def warn(message: str) -> None:
    print(f"{TAG}[WARN] {message}", file=sys.stderr, flush=True)
