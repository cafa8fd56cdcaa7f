"""
Main application window.

Hosts one crop widget, lets the user open an image and choose the target
size and ratio lock, and shows the crop region in image pixels.
"""

import logging
from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QFileDialog, QLabel, QMessageBox, QSpinBox, QCheckBox,
    QToolBar, QStatusBar, QApplication,
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QPixmap, QAction, QKeySequence

from image_cropper.config import IMAGE_EXTENSIONS
from image_cropper.crop_widget import CropWidget, ImageLoaderThread
from image_cropper.image_io import get_image_size, is_supported_image
from image_cropper.options import CropOptions

logger = logging.getLogger(__name__)

_TARGET_MAX = 20000


class MainWindow(QMainWindow):
    def __init__(self, settings: dict | None = None):
        super().__init__()
        self.setWindowTitle("Image Cropper")
        self.setMinimumSize(800, 500)

        # Screen-aware startup size, clamped to 80% of screen
        preferred_w, preferred_h = 1280, 800
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._path: Path | None = None
        self._img_size: tuple[int, int] | None = None
        self._loader: ImageLoaderThread | None = None

        self.crop_widget = CropWidget(CropOptions(id="main"), settings=settings)
        self.crop_widget.crop_changed.connect(self._on_crop_changed)
        self.setCentralWidget(self.crop_widget)

        self._build_toolbar()
        self.setStatusBar(QStatusBar())
        self._crop_label = QLabel("No image")
        self.statusBar().addPermanentWidget(self._crop_label)

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        open_action = QAction("Open…", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self._choose_image)
        toolbar.addAction(open_action)
        toolbar.addSeparator()

        toolbar.addWidget(QLabel(" Target "))
        self._target_w = self._make_target_spin("Target width (0 = derive from image)")
        toolbar.addWidget(self._target_w)
        toolbar.addWidget(QLabel(" × "))
        self._target_h = self._make_target_spin("Target height (0 = derive from image)")
        toolbar.addWidget(self._target_h)

        apply_action = QAction("Apply", self)
        apply_action.triggered.connect(self._apply_target)
        toolbar.addAction(apply_action)
        toolbar.addSeparator()

        self._keep_ratio = QCheckBox("Keep ratio")
        self._keep_ratio.setTristate(True)
        self._keep_ratio.setCheckState(Qt.CheckState.PartiallyChecked)
        self._keep_ratio.setToolTip("Partially checked: lock only when both target sides are set")
        self._keep_ratio.stateChanged.connect(self._on_keep_ratio_changed)
        toolbar.addWidget(self._keep_ratio)

    def _make_target_spin(self, tooltip: str) -> QSpinBox:
        spin = QSpinBox()
        spin.setRange(0, _TARGET_MAX)
        spin.setSpecialValueText("auto")
        spin.setToolTip(tooltip)
        return spin

    # =========================================================================
    # Image loading
    # =========================================================================

    def _choose_image(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(self, "Open image", "", f"Images ({patterns})")
        if path:
            self.open_image(Path(path))

    def open_image(self, path: Path):
        if not is_supported_image(path):
            QMessageBox.warning(self, "Unsupported file", f"Cannot open {path.name}")
            return
        try:
            self._img_size = get_image_size(path)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            QMessageBox.warning(self, "Could not open image", str(exc))
            return

        self._path = path
        self.crop_widget.set_loading(True)
        self.statusBar().showMessage(f"Loading {path.name}…")
        self._cancel_loader()
        self._loader = ImageLoaderThread(path, self)
        self._loader.loaded.connect(self._on_image_loaded)
        self._loader.error.connect(self._on_image_error)
        self._loader.start()

    def _cancel_loader(self):
        """Detach the previous loader so a late result cannot reach the new image."""
        if self._loader is None:
            return
        try:
            self._loader.loaded.disconnect()
            self._loader.error.disconnect()
        except (TypeError, RuntimeError):
            pass  # Already disconnected or destroyed
        if self._loader.isRunning():
            self._loader.quit()
            self._loader.wait(500)
        self._loader = None

    def _on_image_loaded(self, pixmap: QPixmap):
        if self.sender() is not self._loader:
            return  # stale result from a replaced loader
        img_w, img_h = self._img_size
        self.crop_widget.set_image(pixmap, img_w, img_h)
        self.statusBar().showMessage(f"{self._path.name}: {img_w} × {img_h}", 5000)

    def _on_image_error(self, message: str):
        self.crop_widget.set_loading(False)
        QMessageBox.warning(self, "Could not open image", message)

    # =========================================================================
    # Target and ratio
    # =========================================================================

    def _target(self) -> tuple:
        w = self._target_w.value() or None
        h = self._target_h.value() or None
        return w, h

    def _apply_target(self):
        target = self._target()
        if not self.crop_widget.set_target(target):
            self.statusBar().showMessage("Target ignored: set a width or a height", 5000)
        self._refresh_label()

    def _on_keep_ratio_changed(self, state: int):
        state = Qt.CheckState(state)
        if state == Qt.CheckState.PartiallyChecked:
            keep_ratio = None
        else:
            keep_ratio = state == Qt.CheckState.Checked
        self.crop_widget.set_keep_ratio(keep_ratio)
        self._refresh_label()

    # =========================================================================
    # Status
    # =========================================================================

    def _on_crop_changed(self, data: dict):
        self._refresh_label(data)

    def _refresh_label(self, data: dict | None = None):
        if data is None:
            data = self.crop_widget.data()
        if data is None:
            self._crop_label.setText("No image")
            return
        ratio = self.crop_widget.cropper.policy.label()
        self._crop_label.setText(
            f"{data['width']} × {data['height']} at ({data['x']}, {data['y']})"
            f"  zoom {data['scale']:.2f}  ratio {ratio}"
        )

    def closeEvent(self, event):
        self._cancel_loader()
        self.crop_widget.cropper.destroy()
        super().closeEvent(event)
