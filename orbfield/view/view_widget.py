"""QPainter renderer for the orb swarm and the sculpted cloud.

The widget is a thin shell around :class:`OrbfieldEngine`, which owns the
camera, the swarm, the cloud layers and the interaction controller.  Each
timer tick the engine advances the swarm once, refreshes the hover under the
last known pointer position and returns depth-sorted :class:`RenderItem`
records that the widget paints.

Two backends share the same behaviour: a ``QOpenGLWidget`` when a GL context
can be created and a plain raster ``QWidget`` otherwise.
"""

from __future__ import annotations

import copy
import math
import os
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from PyQt5 import QtCore, QtGui, QtWidgets

from .. import log
from ..camera import OrbitCamera
from ..cloud import CloudLayer, build_cloud
from ..config import DEFAULTS, merge_config
from ..interaction import InteractionController
from ..notes import NoteStore, create_note_store
from ..picking import HitTester
from ..swarm import OrbSwarm, SwarmConfig
from ..tasks import Runner, run_inline
from .note_editor import NoteEditorOverlay, ToastLabel
from .qt_tasks import QtTaskRunner

__all__ = ["RenderItem", "OrbfieldEngine", "OrbfieldViewWidget"]

MODES = ("orbs", "cloud", "both")

# ---------------------------------------------------------------------------
# Data structures


@dataclass
class RenderItem:
    """Structure describing a point projected on screen."""

    sx: float
    sy: float
    r: float
    color: QtGui.QColor
    alpha: float
    depth: float
    role: str = "cloud"
    orb_id: Optional[int] = None


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _coerce_float(value: object, default: float = 0.0) -> float:
    """Return ``value`` converted to ``float`` when possible."""

    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def _rgb_to_qcolor(rgb: Tuple[float, float, float]) -> QtGui.QColor:
    return QtGui.QColor.fromRgbF(clamp01(rgb[0]), clamp01(rgb[1]), clamp01(rgb[2]))


def _camera_from_config(cam: Mapping[str, object]) -> OrbitCamera:
    raw_position = cam.get("position") or (0.0, 0.5, 5.0)
    px, py, pz = (float(v) for v in raw_position)  # type: ignore[union-attr]
    return OrbitCamera(
        fov_deg=_coerce_float(cam.get("fov"), 60.0),
        near=_coerce_float(cam.get("near"), 0.1),
        far=_coerce_float(cam.get("far"), 200.0),
        position=(px, py, pz),
        min_distance=_coerce_float(cam.get("minDistance"), 2.0),
        max_distance=_coerce_float(cam.get("maxDistance"), 12.0),
        min_polar=_coerce_float(cam.get("minPolar"), 0.05),
        max_polar=_coerce_float(cam.get("maxPolar"), math.pi - 0.05),
        damping=_coerce_float(cam.get("damping"), 0.05),
    )


class OrbfieldEngine:
    """Owns the scene state and turns it into render items every frame."""

    def __init__(
        self,
        config: Optional[Mapping[str, object]] = None,
        *,
        store: Optional[NoteStore] = None,
        runner: Runner = run_inline,
        notify=None,
    ) -> None:
        self.state: Dict[str, dict] = merge_config(DEFAULTS, config or {})  # type: ignore[assignment]
        system = self.state["system"]
        mode = str(system.get("mode", "both") or "both").lower()
        self.mode = mode if mode in MODES else "both"
        raw_seed = system.get("seed")
        self.seed: Optional[int] = int(raw_seed) if raw_seed is not None else None

        swarm_cfg = self.state["swarm"]
        self.camera = _camera_from_config(self.state["camera"])
        self.swarm = OrbSwarm(SwarmConfig.from_mapping(swarm_cfg), seed=self.seed)
        self.hit_tester = HitTester(
            point_size=_coerce_float(swarm_cfg.get("pointSize"), 0.18),
            pick_scale=_coerce_float(swarm_cfg.get("pickScale"), 1.0),
        )
        self.store = store if store is not None else create_note_store(self.state["notes"])
        self.interaction = InteractionController(
            self.swarm,
            self.store,
            self.hit_tester,
            runner=runner,
            notify=notify,
            hover_scale=_coerce_float(swarm_cfg.get("hoverScale"), 1.6),
        )
        self.layers: List[CloudLayer] = []
        if self.shows_cloud:
            self.rebuild_cloud()

        self._orb_color = QtGui.QColor(str(swarm_cfg.get("color", "#FFF4D6")))
        self._orb_opacity = clamp01(_coerce_float(swarm_cfg.get("opacity"), 0.9))
        self._start_time = time.perf_counter()
        self._last_time: Optional[float] = None
        self._pointer_ndc: Optional[Tuple[float, float]] = None
        self._last_item_count = -1

    # ------------------------------------------------------------------ helpers
    @property
    def now(self) -> float:
        return time.perf_counter() - self._start_time

    @property
    def shows_orbs(self) -> bool:
        return self.mode in ("orbs", "both")

    @property
    def shows_cloud(self) -> bool:
        return self.mode in ("cloud", "both")

    def rebuild_cloud(self, seed: Optional[int] = None) -> None:
        self.layers = build_cloud(self.state["cloud"], seed if seed is not None else self.seed)

    def set_params(self, payload: Mapping[str, object]) -> None:
        """Merge live parameter changes; a changed ``cloud`` section is resampled."""

        self.state = merge_config(self.state, payload)  # type: ignore[assignment]
        if "cloud" in payload and self.shows_cloud:
            self.rebuild_cloud()
        swarm_cfg = self.state["swarm"]
        self._orb_color = QtGui.QColor(str(swarm_cfg.get("color", "#FFF4D6")))
        self._orb_opacity = clamp01(_coerce_float(swarm_cfg.get("opacity"), 0.9))

    # ------------------------------------------------------------------ input
    def pointer_move(self, x: float, y: float) -> Optional[int]:
        if not self.shows_orbs:
            return None
        self._pointer_ndc = self.camera.ndc_from_pixel(x, y)
        return self.interaction.pointer_move_ndc(self.camera, *self._pointer_ndc)

    def pointer_leave(self) -> None:
        self._pointer_ndc = None
        self.interaction.pointer_leave()

    def click(self) -> bool:
        if not self.shows_orbs:
            return False
        return self.interaction.click()

    def drag(self, dx: float, dy: float) -> None:
        speed = _coerce_float(self.state["camera"].get("dragSpeed"), 0.005)
        self.camera.rotate(-dx * speed, -dy * speed)

    def wheel(self, steps: float) -> None:
        base = _coerce_float(self.state["camera"].get("zoomStep"), 1.1)
        self.camera.zoom(base ** (-steps))

    # ------------------------------------------------------------------ frame
    def advance(self, dt: float) -> float:
        """Advance the simulation by ``dt`` seconds (clamped by the swarm)."""

        used = 0.0
        if self.shows_orbs:
            used = self.swarm.step(dt)
            if self._pointer_ndc is not None:
                self.interaction.pointer_move_ndc(self.camera, *self._pointer_ndc)
        self.camera.update()
        return used

    def step(self, width: int, height: int) -> List[RenderItem]:
        if width <= 0 or height <= 0:
            return []
        self.camera.resize(width, height)
        now = self.now
        dt = 0.0 if self._last_time is None else now - self._last_time
        self._last_time = now
        self.advance(dt)
        return self.render_items()

    def render_items(self) -> List[RenderItem]:
        camera = self.camera
        items: List[RenderItem] = []

        for layer in self.layers:
            spec = layer.spec
            projected = camera.project_many(point.position for point in layer.points)
            for point, proj in zip(layer.points, projected):
                if proj is None:
                    continue
                sx, sy, depth = proj
                radius = max(0.5, 0.5 * spec.point_size * camera.pixel_scale(depth))
                items.append(RenderItem(sx, sy, radius, _rgb_to_qcolor(point.color), spec.opacity, depth))

        if self.shows_orbs:
            point_size = self.hit_tester.point_size
            scales = self.interaction.display_scales()
            hovered = self.interaction.hovered_orb_id
            projected = camera.project_many(self.swarm.positions())
            for orb_id, proj in enumerate(projected):
                if proj is None:
                    continue
                sx, sy, depth = proj
                radius = max(1.0, 0.5 * point_size * scales[orb_id] * camera.pixel_scale(depth))
                alpha = 1.0 if orb_id == hovered else self._orb_opacity
                items.append(RenderItem(sx, sy, radius, self._orb_color, alpha, depth, "orb", orb_id))

        if self.state["system"].get("depthSort", True):
            items.sort(key=lambda it: it.depth, reverse=True)
        if len(items) != self._last_item_count:
            log.debug(
                "step rendered %d items (%d cloud layers, %d orbs, hovered=%s)"
                % (len(items), len(self.layers), self.swarm.count if self.shows_orbs else 0, self.interaction.hovered_orb_id)
            )
            self._last_item_count = len(items)
        return items


def _orb_gradient(item: RenderItem) -> QtGui.QRadialGradient:
    gradient = QtGui.QRadialGradient(QtCore.QPointF(item.sx, item.sy), item.r)
    for stop, strength in ((0.0, 0.95), (0.35, 0.35), (1.0, 0.0)):
        color = QtGui.QColor(item.color)
        color.setAlphaF(clamp01(strength * item.alpha))
        gradient.setColorAt(stop, color)
    return gradient


class _ViewWidgetBase:
    """Common behaviour shared by both the OpenGL and raster backends."""

    def _init_view_widget(self, config: Optional[Mapping[str, object]], store: Optional[NoteStore]) -> None:
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, False)
        self.setMouseTracking(True)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self._gl: Optional[object] = None
        self._transparent = False
        self._toast = ToastLabel(self)
        self.runner = QtTaskRunner(self)
        self.engine = OrbfieldEngine(config, store=store, runner=self.runner, notify=self._toast.show_message)
        self.editor = NoteEditorOverlay(self, self.engine.interaction)
        self._background = QtGui.QColor(str(self.engine.state["system"].get("background", "#05070C")))
        self._press_pos: Optional[QtCore.QPoint] = None
        self._dragging = False
        self._timer = QtCore.QTimer(self)
        self._frame_interval_ms = 16
        self._timer.timeout.connect(self.update)
        self._apply_frame_interval(int(_coerce_float(self.engine.state["system"].get("frameIntervalMs"), 16)))

    def _apply_frame_interval(self, interval_ms: int) -> None:
        """Update the refresh interval used by the render timer."""

        interval_ms = max(int(interval_ms), 0)
        self._frame_interval_ms = interval_ms
        if interval_ms <= 0:
            if self._timer.isActive():
                self._timer.stop()
            return
        if self._timer.isActive():
            self._timer.setInterval(interval_ms)
        else:
            self._timer.start(interval_ms)

    # ------------------------------------------------------------------ OpenGL hooks
    def _apply_clear_color(self) -> None:
        if self._gl is None:
            return
        alpha = 0.0 if self._transparent else 1.0
        self._gl.glClearColor(0.0, 0.0, 0.0, alpha)

    # ------------------------------------------------------------------ API
    def set_params(self, payload: Mapping[str, object]) -> None:
        self.engine.set_params(payload)
        system = self.engine.state["system"]
        self._background = QtGui.QColor(str(system.get("background", "#05070C")))
        self._apply_frame_interval(int(_coerce_float(system.get("frameIntervalMs"), 16)))
        self.update()

    def set_transparent(self, enabled: bool) -> None:  # pragma: no cover - simple setter
        self._transparent = bool(enabled)
        self.setAttribute(QtCore.Qt.WA_NoSystemBackground, enabled)
        self.setAttribute(QtCore.Qt.WA_TranslucentBackground, enabled)
        self.setAutoFillBackground(not enabled)
        self._apply_clear_color()
        self.update()

    def shutdown(self) -> None:
        self._timer.stop()
        self.runner.wait_for_done(3000)

    # ------------------------------------------------------------------ input
    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() == QtCore.Qt.LeftButton:
            self._press_pos = event.pos()
            self._dragging = False
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        pos = event.pos()
        if self._press_pos is not None and event.buttons() & QtCore.Qt.LeftButton:
            delta = pos - self._press_pos
            if self._dragging or delta.manhattanLength() > 3:
                self._dragging = True
                self.engine.drag(float(delta.x()), float(delta.y()))
                self._press_pos = pos
        self.engine.pointer_move(float(pos.x()), float(pos.y()))
        event.accept()

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() == QtCore.Qt.LeftButton and self._press_pos is not None:
            if not self._dragging:
                pos = event.pos()
                self.engine.pointer_move(float(pos.x()), float(pos.y()))
                self.engine.click()
            self._press_pos = None
            self._dragging = False
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        steps = event.angleDelta().y() / 120.0
        if steps:
            self.engine.wheel(steps)
        event.accept()

    def leaveEvent(self, event: QtCore.QEvent) -> None:  # type: ignore[override]
        self.engine.pointer_leave()
        super().leaveEvent(event)

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # type: ignore[override]
        if event.key() == QtCore.Qt.Key_Escape and self.engine.interaction.open_orb_id is not None:
            self.engine.interaction.escape()
            event.accept()
            return
        super().keyPressEvent(event)

    def _handle_resize(self) -> None:
        self.engine.camera.resize(max(1, self.width()), max(1, self.height()))
        self.editor.refresh()

    # ------------------------------------------------------------------ Rendering helpers
    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        painter.setRenderHint(QtGui.QPainter.Antialiasing, True)
        if self._transparent:
            painter.setCompositionMode(QtGui.QPainter.CompositionMode_Source)
            painter.fillRect(self.rect(), QtCore.Qt.transparent)
        else:
            painter.fillRect(self.rect(), self._background)
        painter.setCompositionMode(QtGui.QPainter.CompositionMode_SourceOver)
        painter.setPen(QtCore.Qt.NoPen)

        items = self.engine.step(max(1, self.width()), max(1, self.height()))
        for item in items:
            rect = QtCore.QRectF(item.sx - item.r, item.sy - item.r, item.r * 2, item.r * 2)
            if item.role == "orb":
                # Additive glow, like sprites blended onto the sky.
                painter.setCompositionMode(QtGui.QPainter.CompositionMode_Plus)
                painter.setBrush(QtGui.QBrush(_orb_gradient(item)))
                painter.drawEllipse(rect)
                painter.setCompositionMode(QtGui.QPainter.CompositionMode_SourceOver)
            else:
                color = QtGui.QColor(item.color)
                color.setAlphaF(clamp01(item.alpha))
                painter.setBrush(color)
                painter.drawEllipse(rect)

        hovered = self.engine.interaction.hovered_orb_id
        cursor = QtCore.Qt.PointingHandCursor if hovered is not None else QtCore.Qt.ArrowCursor
        if self.cursor().shape() != cursor:
            self.setCursor(cursor)


class _OpenGLViewWidget(_ViewWidgetBase, QtWidgets.QOpenGLWidget):
    """OpenGL-backed renderer when the system can create a GL context."""

    def __init__(
        self,
        parent: Optional[QtWidgets.QWidget] = None,
        config: Optional[Mapping[str, object]] = None,
        store: Optional[NoteStore] = None,
    ) -> None:
        QtWidgets.QOpenGLWidget.__init__(self, parent)
        self._init_view_widget(config, store)

    def initializeGL(self) -> None:  # pragma: no cover - requires GUI context
        factory = getattr(QtGui, "QOpenGLFunctions", None)
        self._gl = None
        if factory is not None:
            try:
                functions = factory()
                functions.initializeOpenGLFunctions()
                self._gl = functions
            except Exception as exc:  # pragma: no cover - depends on runtime GL state
                log.warn(f"OpenGL initialisation failed: {exc}. Falling back to raster clear handling.")
        self._apply_clear_color()

    def resizeGL(self, width: int, height: int) -> None:  # pragma: no cover - requires GUI context
        del width, height
        self._handle_resize()

    def paintGL(self) -> None:  # pragma: no cover - requires GUI context
        if self._gl is not None:
            # GL_COLOR_BUFFER_BIT
            self._gl.glClear(0x00004000)
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()


class _RasterViewWidget(_ViewWidgetBase, QtWidgets.QWidget):
    """Fallback renderer using the traditional raster ``QWidget`` backend."""

    def __init__(
        self,
        parent: Optional[QtWidgets.QWidget] = None,
        config: Optional[Mapping[str, object]] = None,
        store: Optional[NoteStore] = None,
    ) -> None:
        QtWidgets.QWidget.__init__(self, parent)
        self._init_view_widget(config, store)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._handle_resize()
        self.update()


def _should_use_opengl(force_backend: Optional[str]) -> bool:
    if force_backend == "raster":
        return False
    if force_backend == "opengl":
        return True

    env_backend = os.environ.get("ORBFIELD_FORCE_BACKEND", "").strip().lower()
    if env_backend == "raster":
        return False
    if env_backend == "opengl":
        return True
    if os.environ.get("QT_QPA_PLATFORM", "").strip().lower() == "offscreen":
        return False
    return hasattr(QtWidgets, "QOpenGLWidget")


def OrbfieldViewWidget(
    parent: Optional[QtWidgets.QWidget] = None,
    *,
    config: Optional[Mapping[str, object]] = None,
    store: Optional[NoteStore] = None,
    force_backend: Optional[str] = None,
) -> QtWidgets.QWidget:
    """Factory returning the best available renderer widget.

    Parameters
    ----------
    parent:
        Parent widget used by Qt for ownership.
    config:
        Configuration overrides merged over :data:`orbfield.config.DEFAULTS`.
    store:
        Note store to use instead of the one described by ``config["notes"]``.
    force_backend:
        ``"opengl"`` forces the OpenGL widget while ``"raster"`` selects the
        pure QWidget implementation.
    """

    if _should_use_opengl(force_backend):
        try:
            widget = _OpenGLViewWidget(parent, copy.deepcopy(config) if config else None, store)
            setattr(widget, "backend_name", "opengl")
            return widget
        except Exception as exc:
            print(
                f"[Orbfield][WARN] Unable to initialise OpenGL backend ({exc!r}). Using raster widget instead.",
                file=sys.stderr,
            )
    widget = _RasterViewWidget(parent, copy.deepcopy(config) if config else None, store)
    setattr(widget, "backend_name", "raster")
    return widget
