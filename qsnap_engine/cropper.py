from __future__ import annotations

from PIL import Image

from .types import Zone
from .utils import clamp_int


class ZoneTooNarrow(ValueError):
    """The label zone is too small for OCR to be reliable; the page is skipped."""


def zone_box(zone: Zone, *, w: int, h: int) -> tuple[int, int, int, int]:
    """Full-height crop box for the zone, clamped to the page."""
    x1, x2 = zone.bounds()
    x0 = clamp_int(x1, 0, w)
    x1 = clamp_int(x2, 0, w)
    return x0, 0, x1, h


def extract_zone(image: Image.Image, zone: Zone, *, min_height: int = 100) -> Image.Image:
    """Crop the vertical band [round(x1), round(x2)) over the full page height.

    Raises ZoneTooNarrow when the band is shorter than min_height or has no
    columns inside the page.
    """
    w, h = image.size
    box = zone_box(zone, w=w, h=h)
    band_w = box[2] - box[0]
    band_h = box[3] - box[1]
    if band_h < min_height:
        raise ZoneTooNarrow(f"zone height {band_h}px < {min_height}px")
    if band_w <= 0:
        raise ZoneTooNarrow(f"zone {zone.bounds()} has no columns inside page width {w}")
    return image.crop(box)
