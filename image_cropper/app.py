"""
Application entry point, logging setup and dark-theme stylesheet.

Usage:
    image-cropper [IMAGE]          (after pip install)

Set IMAGE_CROPPER_LOG_LEVEL=debug to trace every commit.
"""

import logging
import os
import sys
from pathlib import Path

from PyQt6.QtWidgets import QApplication

from image_cropper.main_window import MainWindow
from image_cropper.settings import load_settings

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QSpinBox { background: #1e1e1e; border: 1px solid #555; padding: 2px 4px; }
    QToolBar { background: #333; border-bottom: 1px solid #444; spacing: 4px; padding: 4px; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
"""

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the package logger with one stderr handler; env overrides the level."""
    env_level = (os.getenv("IMAGE_CROPPER_LOG_LEVEL") or "").strip().lower()
    level = _LEVELS.get(env_level, level)

    logger = logging.getLogger("image_cropper")
    logger.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(logging.Formatter(
            fmt="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))
        logger.addHandler(handler)
    return logger


def main():
    setup_logging()
    app = QApplication(sys.argv)
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow(settings=load_settings())
    window.show()
    if len(sys.argv) > 1:
        window.open_image(Path(sys.argv[1]))

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
