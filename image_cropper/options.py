"""
Per-widget crop options: parse and validate.

Options arrive either as a dict or as a JSON document (the format used in
a ``data-crop`` markup attribute)::

    {
        "id": "avatar",
        "target": [600, 400],
        "keep_ratio": true,
        "crop": {"width": 1200, "height": 800, "x": 40, "y": 0, "scale": 1}
    }

``target`` may omit or null either side.  ``crop`` is the initial crop in
natural image pixels; a missing or all-zero crop means "whole image,
centred".

This module is Qt-free.
"""

import json
import logging
import math
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_OPTION_KEYS = {"id", "target", "keep_ratio", "crop"}
_CROP_KEYS = ("width", "height", "x", "y")


@dataclass
class InitialCrop:
    """Initial crop rectangle in natural image pixels, plus zoom scale."""
    width: int = 0
    height: int = 0
    x: int = 0
    y: int = 0
    scale: float = 1.0


@dataclass
class CropOptions:
    id: str = ""
    target: tuple | None = None
    keep_ratio: bool | None = None
    crop: InitialCrop = field(default_factory=InitialCrop)


def _is_number(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value))
        except ValueError:
            return False
    return False


# =============================================================================
# Validation
# =============================================================================
def validate_options(data: object) -> list[str]:
    """
    Validate an options dict.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        errors.append("Options must be a dict")
        return errors

    unknown = data.keys() - _OPTION_KEYS
    if unknown:
        errors.append(f"unknown keys: {', '.join(sorted(map(str, unknown)))}")

    crop_id = data.get("id")
    if crop_id is None or (isinstance(crop_id, str) and not crop_id.strip()):
        errors.append("id must be a non-empty string or number")
    elif not isinstance(crop_id, (str, int)) or isinstance(crop_id, bool):
        errors.append(f"id must be a string or number, got {crop_id!r}")

    target = data.get("target")
    if target is not None:
        if not isinstance(target, (list, tuple)) or not 1 <= len(target) <= 2:
            errors.append(f"target must be a list of one or two sides, got {target!r}")
        else:
            for i, side in enumerate(target):
                if side is not None and not _is_number(side):
                    errors.append(f"target[{i}] must be a number or null, got {side!r}")

    keep_ratio = data.get("keep_ratio")
    if keep_ratio is not None and not isinstance(keep_ratio, bool):
        errors.append(f"keep_ratio must be true or false, got {keep_ratio!r}")

    crop = data.get("crop")
    if crop is not None:
        if not isinstance(crop, dict):
            errors.append("crop must be a dict")
        else:
            for key in _CROP_KEYS:
                if key in crop and not _is_number(crop[key]):
                    errors.append(f"crop.{key} must be a number, got {crop[key]!r}")
            if "scale" in crop:
                scale = crop["scale"]
                if not _is_number(scale) or float(scale) <= 0:
                    errors.append(f"crop.scale must be a positive number, got {scale!r}")

    return errors


# =============================================================================
# Parsing
# =============================================================================
def parse_options(data: dict) -> CropOptions:
    """
    Build CropOptions from a dict.

    Raises ValueError listing every problem if validation fails.
    """
    errors = validate_options(data)
    if errors:
        raise ValueError("Invalid crop options:\n  " + "\n  ".join(errors))

    target = data.get("target")
    crop = data.get("crop") or {}
    initial = InitialCrop(
        **{key: int(float(crop[key])) for key in _CROP_KEYS if key in crop},
        scale=float(crop.get("scale", 1.0)),
    )
    return CropOptions(
        id=str(data["id"]),
        target=tuple(target) if target is not None else None,
        keep_ratio=data.get("keep_ratio"),
        crop=initial,
    )


def options_from_json(text: str) -> CropOptions:
    """Parse options from a JSON document; raises ValueError on bad input."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Crop options are not valid JSON: {exc}") from exc
    return parse_options(data)
