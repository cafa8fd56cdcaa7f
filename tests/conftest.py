"""Pytest configuration.

The widget tests need a QApplication before any QPixmap is created, and
they run headless.  One QApplication is created for the whole session
when PyQt6 is importable; the Qt-free tests do not need it.
"""

import os
from typing import Any

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

_APP: Any | None = None


def pytest_configure(config):
    """Ensure a QApplication exists before collecting/running tests."""
    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP
    _APP = QApplication.instance() or QApplication([])


def pytest_sessionfinish(session, exitstatus):
    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()
