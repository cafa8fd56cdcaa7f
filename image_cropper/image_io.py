"""
Qt-free image I/O utilities.

Provides the natural image size to the crop engine: helpers to open images
(including PSD) and to read dimensions without full loading.
"""

from pathlib import Path

from PIL import Image
from psd_tools import PSDImage

from image_cropper.config import IMAGE_EXTENSIONS

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None


def is_supported_image(path: Path) -> bool:
    """True if the file extension is one the cropper can display."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def open_image(path: Path) -> Image.Image:
    """Open an image file, using psd-tools for PSD and Pillow for the rest."""
    path = Path(path)
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.composite()
    return Image.open(path)


def get_image_size(path: Path) -> tuple[int, int]:
    """Get image dimensions without fully loading/compositing."""
    path = Path(path)
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.width, psd.height
    with Image.open(path) as img:
        return img.size
