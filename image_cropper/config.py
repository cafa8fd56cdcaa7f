"""
Application constants and configuration.

Engine constants (minimum box size, tolerances, zoom limits) are the
defaults used by the Qt-free core.  ``DEFAULT_SETTINGS`` is the built-in
fallback for the user-editable settings loaded via the settings module.

The ``config_dir()`` helper returns the platform-appropriate config
directory shared by all persistence modules.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "image-cropper"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# ENGINE CONSTANTS
# =============================================================================
# Minimum crop box size (displayed pixels)
MIN_BOX_W = 20
MIN_BOX_H = 20

# Allowed deviation of w/h from the locked ratio
RATIO_TOLERANCE = 0.02

# Slack allowed when comparing a box edge against the frame edge
EDGE_TOLERANCE = 0.02

# Zoom (CSS-style scale applied around the image centre)
SCALE_MIN = 0.1
ZOOM_STEP = 0.05
ZOOM_QUIET_MS = 100

# =============================================================================
# UI CONSTANTS
# =============================================================================
# Handle size for resize points (pixels in screen coordinates)
HANDLE_SIZE = 10

# Keyboard nudge amounts (displayed pixels)
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp", ".gif", ".psd"}

# =============================================================================
# DEFAULT SETTINGS: built-in fallback when settings.json is missing or corrupt
# =============================================================================
DEFAULT_SETTINGS = {
    "min_box_w": MIN_BOX_W,
    "min_box_h": MIN_BOX_H,
    "zoom_step": ZOOM_STEP,
    "zoom_quiet_ms": ZOOM_QUIET_MS,
    "handle_size": HANDLE_SIZE,
}
