"""Shared fixtures: synthetic pages and a scripted OCR engine."""
from __future__ import annotations

from io import BytesIO
from typing import Callable

import pytest
from PIL import Image, ImageDraw

from qsnap_engine.config import EngineConfig
from qsnap_engine.ocr import LabelDetector, OCREngine
from qsnap_engine.types import OCRToken


class FakeEngine(OCREngine):
    """Returns scripted tokens, one list per recognize() call (i.e. per page)."""

    name = "fake"

    def __init__(self, pages: list[list[OCRToken]] | None = None):
        self.pages = list(pages or [])
        self.calls = 0
        self.loaded = False
        self.seen_sizes: list[tuple[int, int]] = []

    def load(self) -> None:
        self.loaded = True

    def recognize(self, image: Image.Image, *, timeout: float | None = None) -> list[OCRToken]:
        self.seen_sizes.append(image.size)
        i = self.calls
        self.calls += 1
        return list(self.pages[i]) if i < len(self.pages) else []


def _page_image(width: int, height: int) -> Image.Image:
    img = Image.new("RGB", (width, height), color=(255, 255, 255))
    draw = ImageDraw.Draw(img)
    # a few horizontal rules so crops are not blank
    for y in range(0, height, 50):
        draw.line([(0, y), (width, y)], fill=(0, 0, 0), width=1)
    return img


def _png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def page_image() -> Callable[[int, int], Image.Image]:
    return _page_image


@pytest.fixture
def page_bytes() -> Callable[[int, int], bytes]:
    def _make(width: int = 300, height: int = 700) -> bytes:
        return _png_bytes(_page_image(width, height))

    return _make


@pytest.fixture
def make_detector() -> Callable[..., tuple[LabelDetector, FakeEngine]]:
    def _make(pages: list[list[OCRToken]] | None = None, *, start: bool = True) -> tuple[LabelDetector, FakeEngine]:
        engine = FakeEngine(pages)
        detector = LabelDetector(engine=engine, preprocess_cfg=EngineConfig().preprocess, timeout_s=None)
        if start:
            detector.start()
        return detector, engine

    return _make


@pytest.fixture
def fake_engine_cls() -> type[FakeEngine]:
    return FakeEngine
