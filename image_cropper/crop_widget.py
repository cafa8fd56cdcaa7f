"""
Interactive crop-overlay widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, ``load_pixmap``, the background ``ImageLoaderThread``,
and the ``CropWidget`` editor.  The widget owns no geometry of its own: it
feeds pointer, wheel and size events to a ``Cropper`` and paints whatever
rectangle the cropper reports.
"""

import logging
from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, QTimer, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QBrush, QImage,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent, QWheelEvent,
)

from image_cropper.config import NUDGE_SMALL, NUDGE_LARGE
from image_cropper.cropper import Cropper
from image_cropper.errors import DegenerateImage
from image_cropper.image_io import open_image
from image_cropper.options import CropOptions

logger = logging.getLogger(__name__)


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgb = pil_img.convert("RGBA")
    data = img_rgb.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgb.width, img_rgb.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg.copy())


def load_pixmap(path: Path) -> QPixmap:
    """Load a QPixmap from any supported image file."""
    path = Path(path)
    if path.suffix.lower() == ".psd":
        return pil_to_qpixmap(open_image(path))
    return QPixmap(str(path))


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread for loading/compositing images (especially large PSDs)."""
    loaded = pyqtSignal(QPixmap)
    error = pyqtSignal(str)

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self._path = path

    def run(self):
        try:
            pixmap = load_pixmap(self._path)
            if pixmap.isNull():
                raise ValueError(f"Could not load image {self._path}")
            self.loaded.emit(pixmap)
        except Exception as e:
            logger.warning("Loading %s failed: %s", self._path, e)
            self.error.emit(str(e))


# =============================================================================
# Crop widget
# =============================================================================

class CropWidget(QWidget):
    """Widget that displays an image with an interactive, resizable crop overlay."""

    crop_changed = pyqtSignal(dict)

    CORNERS = ("nw", "ne", "sw", "se")
    EDGES = ("n", "s", "e", "w")
    CURSORS = {
        "box": Qt.CursorShape.SizeAllCursor,
        "nw": Qt.CursorShape.SizeFDiagCursor,
        "se": Qt.CursorShape.SizeFDiagCursor,
        "ne": Qt.CursorShape.SizeBDiagCursor,
        "sw": Qt.CursorShape.SizeBDiagCursor,
        "n": Qt.CursorShape.SizeVerCursor,
        "s": Qt.CursorShape.SizeVerCursor,
        "e": Qt.CursorShape.SizeHorCursor,
        "w": Qt.CursorShape.SizeHorCursor,
    }

    def __init__(self, options: CropOptions | dict | None = None, settings: dict | None = None,
                 parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(True)

        if options is None:
            options = CropOptions(id="crop")
        self.cropper = Cropper(None, options, settings=settings)
        self.cropper.messages.subscribe(lambda board: self.update())
        self.cropper.listen("stopped", self._on_stopped)
        self._handle_size = self.cropper.settings["handle_size"]

        self._pixmap: QPixmap | None = None
        self._img_w = 0
        self._img_h = 0
        self._loading = False

        # Display mapping
        self._disp_w = 0.0
        self._disp_h = 0.0
        self._offset_x = 0.0
        self._offset_y = 0.0

        self._zoom_timer = QTimer(self)
        self._zoom_timer.setSingleShot(True)
        self._zoom_timer.setInterval(self.cropper.settings["zoom_quiet_ms"])
        self._zoom_timer.timeout.connect(self._commit_zoom)

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_image(self, pixmap: QPixmap, img_w: int | None = None, img_h: int | None = None):
        """Set the image to display and place the initial crop."""
        self._loading = False
        self._pixmap = pixmap
        self._img_w = pixmap.width() if img_w is None else img_w
        self._img_h = pixmap.height() if img_h is None else img_h
        self._update_display_mapping()
        try:
            self.cropper.load(self._img_w, self._img_h, self._disp_w, self._disp_h)
        except DegenerateImage as exc:
            logger.warning("Cannot crop %s x %s image: %s", self._img_w, self._img_h, exc)
        else:
            self.crop_changed.emit(self.cropper.data())
        self.update()

    def has_image(self) -> bool:
        """Return True if an image is loaded and ready for crop operations."""
        return self._pixmap is not None and self.cropper.loaded

    def clear(self):
        self._pixmap = None
        self._img_w = 0
        self._img_h = 0
        self.update()

    def set_target(self, target) -> bool:
        changed = self.cropper.set_target(target)
        if changed:
            self.crop_changed.emit(self.cropper.data())
        self.update()
        return changed

    def set_keep_ratio(self, keep_ratio: bool | None):
        self.cropper.set_keep_ratio(keep_ratio)
        if self.cropper.loaded:
            self.crop_changed.emit(self.cropper.data())
        self.update()

    def data(self) -> dict | None:
        return self.cropper.data() if self.cropper.loaded else None

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Calculate displayed size and offset to fit image in widget with letterboxing."""
        if not self._pixmap or self._img_w == 0 or self._img_h == 0:
            return
        ww, wh = self.width(), self.height()
        fit = min(ww / self._img_w, wh / self._img_h)
        self._disp_w = self._img_w * fit
        self._disp_h = self._img_h * fit
        self._offset_x = (ww - self._disp_w) / 2
        self._offset_y = (wh - self._disp_h) / 2

    def _to_pointer(self, pos: QPointF) -> tuple[float, float]:
        """Widget position to displayed-image pixels."""
        return pos.x() - self._offset_x, pos.y() - self._offset_y

    def _box_display_rect(self) -> QRectF:
        rect = self.cropper.visual
        return QRectF(rect.x + self._offset_x, rect.y + self._offset_y, rect.w, rect.h)

    def _image_display_rect(self) -> QRectF:
        """Displayed image after the zoom about its centre."""
        scale = self.cropper.box.scale
        w, h = self._disp_w * scale, self._disp_h * scale
        cx = self._offset_x + self._disp_w / 2
        cy = self._offset_y + self._disp_h / 2
        return QRectF(cx - w / 2, cy - h / 2, w, h)

    # --- Handle hit testing ---

    def _handle_rects(self) -> dict[str, QRectF]:
        """Return screen-coordinate rectangles for the active handles."""
        r = self._box_display_rect()
        hs = self._handle_size
        points = {
            "nw": QPointF(r.left(), r.top()),
            "ne": QPointF(r.right(), r.top()),
            "sw": QPointF(r.left(), r.bottom()),
            "se": QPointF(r.right(), r.bottom()),
        }
        if not self.cropper.policy.locked:
            points.update({
                "n": QPointF(r.center().x(), r.top()),
                "s": QPointF(r.center().x(), r.bottom()),
                "e": QPointF(r.right(), r.center().y()),
                "w": QPointF(r.left(), r.center().y()),
            })
        return {key: QRectF(p.x() - hs, p.y() - hs, hs * 2, hs * 2) for key, p in points.items()}

    def _hit_test(self, pos: QPointF) -> str | None:
        """Returns the action tag under a screen position, or None."""
        for tag, rect in self._handle_rects().items():
            if rect.contains(pos):
                return tag
        if self._box_display_rect().contains(pos):
            return "box"
        return None

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if not self._pixmap or not self.cropper.loaded:
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            self._paint_messages(painter)
            painter.end()
            return

        frame_rect = QRectF(self._offset_x, self._offset_y, self._disp_w, self._disp_h)
        painter.save()
        painter.setClipRect(frame_rect)
        painter.drawPixmap(self._image_display_rect().toRect(), self._pixmap)
        painter.restore()

        # Dim area outside crop
        crop_rect = self._box_display_rect()
        dim = QColor(0, 0, 0, 140)
        dest = frame_rect
        painter.fillRect(QRectF(dest.left(), dest.top(), dest.width(), crop_rect.top() - dest.top()), dim)
        painter.fillRect(QRectF(dest.left(), crop_rect.bottom(), dest.width(), dest.bottom() - crop_rect.bottom()), dim)
        painter.fillRect(QRectF(dest.left(), crop_rect.top(), crop_rect.left() - dest.left(), crop_rect.height()), dim)
        painter.fillRect(QRectF(crop_rect.right(), crop_rect.top(), dest.right() - crop_rect.right(), crop_rect.height()), dim)

        # Crop border
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(crop_rect)

        # Rule-of-thirds lines
        painter.setPen(QPen(QColor(255, 255, 255, 80), 1, Qt.PenStyle.DashLine))
        for i in range(1, 3):
            x = crop_rect.left() + crop_rect.width() * i / 3
            painter.drawLine(QPointF(x, crop_rect.top()), QPointF(x, crop_rect.bottom()))
            y = crop_rect.top() + crop_rect.height() * i / 3
            painter.drawLine(QPointF(crop_rect.left(), y), QPointF(crop_rect.right(), y))

        # Handles
        painter.setPen(QPen(QColor(0, 0, 0), 1))
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        for rect in self._handle_rects().values():
            painter.drawRect(rect)

        # Output size label (committed box)
        out = self.cropper.data()
        painter.setPen(QColor(255, 255, 255))
        painter.drawText(
            crop_rect.adjusted(0, -20, 0, 0).toRect(),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignBottom,
            f"{out['width']} × {out['height']}",
        )

        self._paint_messages(painter)
        painter.end()

    def _paint_messages(self, painter: QPainter):
        """Advisory messages, stacked from the bottom edge."""
        texts = list(self.cropper.messages)
        if not texts:
            return
        line_h = painter.fontMetrics().height() + 6
        top = self.height() - line_h * len(texts) - 4
        for i, text in enumerate(texts):
            rect = QRectF(4, top + i * line_h, self.width() - 8, line_h - 2)
            painter.fillRect(rect, QColor(120, 60, 0, 200))
            painter.setPen(QColor(255, 230, 200))
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, text)

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        if self.cropper.loaded and self._disp_w > 0:
            try:
                self.cropper.resize(self._disp_w, self._disp_h)
            except DegenerateImage as exc:
                logger.debug("Skipping resize: %s", exc)
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self.has_image():
            return
        if self.cropper.dragging:
            return
        tag = self._hit_test(event.position())
        if tag is not None:
            self.cropper.begin(tag, self._to_pointer(event.position()), event)
            self.setCursor(self.CURSORS[tag])

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self.has_image():
            return
        pos = event.position()
        if self.cropper.dragging:
            self.cropper.update(self._to_pointer(pos), event)
            self.update()
            return
        tag = self._hit_test(pos)
        self.setCursor(self.CURSORS.get(tag, Qt.CursorShape.ArrowCursor))

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self.cropper.dragging:
            self.cropper.end(self._to_pointer(event.position()), event)
            self.unsetCursor()
            self.update()

    def wheelEvent(self, event: QWheelEvent):
        if not self.has_image():
            event.ignore()
            return
        delta = event.angleDelta().y()
        if delta:
            self.cropper.zoom(delta)
            self._zoom_timer.start()
            self.update()
        event.accept()

    def _commit_zoom(self):
        if self.cropper.dragging:
            # settled by the mouse release
            return
        if not self.cropper.poll_zoom():
            # The timer can fire a hair early relative to the debouncer clock
            self._zoom_timer.start()
            return
        self.update()

    def _on_stopped(self, event, cropper):
        self.crop_changed.emit(cropper.data())

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        if not self.has_image() or self.cropper.dragging:
            super().keyPressEvent(event)
            return
        amount = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        offsets = {
            Qt.Key.Key_Left: (-amount, 0),
            Qt.Key.Key_Right: (amount, 0),
            Qt.Key.Key_Up: (0, -amount),
            Qt.Key.Key_Down: (0, amount),
        }
        offset = offsets.get(event.key())
        if offset is None:
            super().keyPressEvent(event)
            return
        self.cropper.begin("move", (0, 0), event)
        self.cropper.update(offset, event)
        self.cropper.end(event=event)
        self.update()
