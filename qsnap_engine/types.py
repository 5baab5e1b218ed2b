from __future__ import annotations

import base64
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Any

from PIL import Image

from .utils import round_half_up

# Tesseract hierarchy: 1 page, 2 block, 3 paragraph, 4 line, 5 word.
WORD_LEVEL = 5


@dataclass(frozen=True)
class Page:
    page_index: int  # 0-based, upload order
    data: bytes  # encoded image bytes as uploaded
    source_ref: str = ""  # e.g. book.pdf#page=3

    def open_image(self) -> Image.Image:
        img = Image.open(BytesIO(self.data))
        img.load()
        return img


@dataclass(frozen=True)
class Zone:
    x1: float
    x2: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.x1) and math.isfinite(self.x2)):
            raise ValueError(f"zone bounds must be finite: x1={self.x1!r} x2={self.x2!r}")

    def bounds(self) -> tuple[int, int]:
        return round_half_up(self.x1), round_half_up(self.x2)


@dataclass(frozen=True)
class OCRToken:
    """Engine output, in the coordinate space of the image given to the engine."""

    text: str
    top: float
    level: int = WORD_LEVEL
    confidence: float = -1.0


@dataclass(frozen=True)
class RawToken:
    text: str
    top: int  # page pixels
    level: int = WORD_LEVEL
    order: int = 0  # detection order within the page


@dataclass(frozen=True)
class Label:
    text: str  # normalized
    top: int
    raw_text: str = ""
    order: int = 0


@dataclass
class Segment:
    page_index: int
    label: str
    top: int
    bottom: int
    image: Image.Image

    def to_png_bytes(self) -> bytes:
        buf = BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def to_payload(self) -> dict[str, Any]:
        return {
            "quesNumber": self.label,
            "imgSRC": base64.b64encode(self.to_png_bytes()).decode("ascii"),
        }
