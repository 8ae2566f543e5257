from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from PyQt6.QtCore import QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QAction, QImage, QPainter, QPixmap, QTransform
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QGraphicsPixmapItem,
    QGraphicsScene,
    QGraphicsView,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMenu,
    QMessageBox,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from . import image_io
from .image_buffer import ImageBuffer
from .matching import equalize_histograms, match_histograms
from .settings import MatchSettings, SettingsError, load_settings, save_settings

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".histmatch.json"
OPEN_FILTER = "Images (*.ppm *.png *.jpg *.jpeg *.bmp *.tif *.tiff *.webp);;All files (*)"
SAVE_FILTER = "PNG (*.png);;JPEG (*.jpg *.jpeg);;PPM (*.ppm)"


def _buffer_to_qimage(buffer: ImageBuffer) -> QImage:
    data = bytes(buffer.data)
    image = QImage(data, buffer.width, buffer.height, buffer.width * 3, QImage.Format.Format_RGB888)
    return image.copy()  # detach from temporary bytes


class ImagePane(QGraphicsView):
    """Titled, zoomable view of one image that reports the pixel under the cursor."""

    cursorMoved = pyqtSignal(str, int, int, object)  # object for tuple[int, int, int] | None

    def __init__(self, title: str) -> None:
        super().__init__()
        self.title = title
        self.setRenderHints(QPainter.RenderHint.SmoothPixmapTransform)
        self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.setMouseTracking(True)
        self.setBackgroundBrush(Qt.GlobalColor.black)

        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)
        self._pixmap_item: QGraphicsPixmapItem | None = None
        self._buffer: ImageBuffer | None = None
        self._scale = 1.0

    def set_image(self, buffer: ImageBuffer | None) -> None:
        self._scene.clear()
        self._pixmap_item = None
        self._buffer = buffer
        if buffer is None:
            return
        pixmap = QPixmap.fromImage(_buffer_to_qimage(buffer))
        self._pixmap_item = self._scene.addPixmap(pixmap)
        self._scene.setSceneRect(QRectF(pixmap.rect()))
        self.fit_image()

    def fit_image(self) -> None:
        if not self._pixmap_item:
            return
        view_rect = self.viewport().rect()
        image_rect = self._pixmap_item.boundingRect()
        if view_rect.width() == 0 or image_rect.width() == 0 or image_rect.height() == 0:
            return
        scale_x = view_rect.width() / image_rect.width()
        scale_y = view_rect.height() / image_rect.height()
        self._set_scale(min(scale_x, scale_y))

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        if not self._pixmap_item:
            return
        factor = 1.25 if event.angleDelta().y() > 0 else 0.8
        old_pos = self.mapToScene(event.position().toPoint())
        self._set_scale(self._scale * factor)
        self.centerOn(old_pos)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        super().mouseMoveEvent(event)
        if not self._buffer:
            self.cursorMoved.emit(self.title, -1, -1, None)
            return
        scene_pos = self.mapToScene(event.position().toPoint())
        x = int(scene_pos.x())
        y = int(scene_pos.y())
        if 0 <= x < self._buffer.width and 0 <= y < self._buffer.height:
            self.cursorMoved.emit(self.title, x, y, self._buffer.get_pixel(x, y))
        else:
            self.cursorMoved.emit(self.title, -1, -1, None)

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.fit_image()

    def _set_scale(self, scale: float) -> None:
        self._scale = max(0.05, min(16.0, scale))
        transform = QTransform()
        transform.scale(self._scale, self._scale)
        self.setTransform(transform)


class MatchWindow(QMainWindow):
    def __init__(self, settings_path: Path = SETTINGS_PATH) -> None:
        super().__init__()
        self.setWindowTitle("Histogram matching")
        self.resize(1400, 600)

        self.settings_path = settings_path
        self.settings = self._load_settings()
        self.source: ImageBuffer | None = None
        self.reference: ImageBuffer | None = None
        self.result: ImageBuffer | None = None

        self.source_pane = ImagePane("Source")
        self.reference_pane = ImagePane("Reference")
        self.result_pane = ImagePane("Result")

        central_widget = QWidget()
        layout = QHBoxLayout(central_widget)
        layout.setContentsMargins(8, 8, 8, 8)
        for pane in (self.source_pane, self.reference_pane, self.result_pane):
            column = QVBoxLayout()
            column.addWidget(QLabel(pane.title))
            column.addWidget(pane)
            layout.addLayout(column)
            pane.cursorMoved.connect(self._on_cursor_moved)
        self.setCentralWidget(central_widget)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self._build_menus()

    def _build_menus(self) -> None:
        menubar = self.menuBar()

        file_menu = menubar.addMenu("File")
        self._add_action(file_menu, "Open source...", self.open_source, shortcut="Ctrl+O")
        self._add_action(file_menu, "Open reference...", self.open_reference, shortcut="Ctrl+R")
        self._add_action(file_menu, "Save result as...", self.save_result, shortcut="Ctrl+S")
        file_menu.addSeparator()
        self._add_action(file_menu, "Quit", self.close, shortcut="Ctrl+Q")

        histogram_menu = menubar.addMenu("Histogram")
        self._add_action(histogram_menu, "Match to reference", self.match, shortcut="Ctrl+M")
        self._add_action(histogram_menu, "Equalize source", self.equalize, shortcut="Ctrl+E")
        histogram_menu.addSeparator()
        self.first_action = self._add_action(
            histogram_menu, "Equal levels: keep first value", lambda: self.set_collision("first")
        )
        self.last_action = self._add_action(
            histogram_menu, "Equal levels: keep last value", lambda: self.set_collision("last")
        )
        for action in (self.first_action, self.last_action):
            action.setCheckable(True)
        self._sync_collision_actions()

    def _add_action(self, menu: QMenu, text: str, handler: Callable, shortcut: str | None = None) -> QAction:
        action = QAction(text, self)
        if shortcut:
            action.setShortcut(shortcut)
        action.triggered.connect(handler)
        menu.addAction(action)
        return action

    # File operations
    def open_source(self) -> None:
        image = self._open_image("Open source image")
        if image is not None:
            self.source = image
            self.result = None
            self.source_pane.set_image(image)
            self.result_pane.set_image(None)

    def open_reference(self) -> None:
        image = self._open_image("Open reference image")
        if image is not None:
            self.reference = image
            self.reference_pane.set_image(image)

    def save_result(self) -> None:
        if self.result is None:
            QMessageBox.information(self, "Information", "Nothing to save yet.")
            return
        path, _ = QFileDialog.getSaveFileName(self, "Save result", "", SAVE_FILTER)
        if not path:
            return
        try:
            image_io.save_image(self.result, path, quality=self.settings.jpeg_quality)
            self.status_bar.showMessage(f"Saved: {Path(path).name}", 5000)
        except Exception as exc:  # noqa: BLE001
            QMessageBox.critical(self, "Error", f"Could not save image:\n{exc}")

    # Histogram operations
    def match(self) -> None:
        if self.source is None or self.reference is None:
            QMessageBox.information(self, "Information", "Open a source and a reference image first.")
            return
        reference = self.reference
        self._run(lambda img: match_histograms(img, reference, self.settings), "Matched to reference")

    def equalize(self) -> None:
        if self.source is None:
            QMessageBox.information(self, "Information", "Open a source image first.")
            return
        self._run(lambda img: equalize_histograms(img, self.settings), "Equalized")

    def set_collision(self, policy: str) -> None:
        self.settings = self.settings.with_overrides(collision=policy)
        self._sync_collision_actions()
        try:
            save_settings(self.settings, self.settings_path)
        except OSError as exc:
            logger.warning("Could not store settings in %s: %s", self.settings_path, exc)

    # Helpers
    def _open_image(self, title: str) -> ImageBuffer | None:
        path, _ = QFileDialog.getOpenFileName(self, title, "", OPEN_FILTER)
        if not path:
            return None
        try:
            image = image_io.load_image(path)
        except Exception as exc:  # noqa: BLE001
            QMessageBox.critical(self, "Error", f"Could not load image:\n{exc}")
            return None
        self.status_bar.showMessage(f"Loaded: {Path(path).name} ({image.width}x{image.height})", 5000)
        return image

    def _run(self, func: Callable[[ImageBuffer], ImageBuffer], label: str) -> None:
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            self.result = func(self.source)  # type: ignore[arg-type]
            self.result_pane.set_image(self.result)
            self.status_bar.showMessage(f"{label} (equal levels keep {self.settings.collision} value)", 4000)
        except Exception as exc:  # noqa: BLE001
            QMessageBox.critical(self, "Error", f"Operation failed:\n{exc}")
        finally:
            QApplication.restoreOverrideCursor()

    def _load_settings(self) -> MatchSettings:
        if not self.settings_path.exists():
            return MatchSettings()
        try:
            return load_settings(self.settings_path)
        except (SettingsError, OSError) as exc:
            logger.warning("Ignoring settings file %s: %s", self.settings_path, exc)
            return MatchSettings()

    def _sync_collision_actions(self) -> None:
        self.first_action.setChecked(self.settings.collision == "first")
        self.last_action.setChecked(self.settings.collision == "last")

    def _on_cursor_moved(self, title: str, x: int, y: int, color: tuple[int, int, int] | None) -> None:
        if color:
            self.status_bar.showMessage(f"{title} X:{x} Y:{y} | R:{color[0]} G:{color[1]} B:{color[2]}")
        else:
            self.status_bar.clearMessage()


def run_app() -> None:
    import sys

    app = QApplication(sys.argv)
    window = MatchWindow()
    window.show()
    sys.exit(app.exec())
