from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

import cv2
import numpy as np
import pytesseract
from PIL import Image

from .types import WORD_LEVEL, OCRToken, RawToken
from .utils import round_half_up

logger = logging.getLogger(__name__)


class OCRNotReady(RuntimeError):
    """The OCR engine has not finished loading (or failed to load)."""


def _poly_top(poly: list[list[float]] | list[tuple[float, float]]) -> float:
    return float(min(p[1] for p in poly))


def preprocess_zone(image: Image.Image, preprocess_cfg: dict[str, Any]) -> Image.Image:
    """Greyscale -> contrast normalize -> linear stretch -> binarize -> upscale."""
    a = float(preprocess_cfg.get("linear_a", 4.0))
    b = float(preprocess_cfg.get("linear_b", -150.0))
    threshold = int(preprocess_cfg.get("threshold", 100))
    upscale = max(1, int(preprocess_cfg.get("upscale", 2)))

    gray = np.array(image.convert("L"))
    normalized = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)
    stretched = np.clip(normalized.astype(np.float32) * a + b, 0, 255).astype(np.uint8)

    # pixels >= threshold turn white; THRESH_BINARY is strictly greater-than
    _, binary = cv2.threshold(stretched, threshold - 1, 255, cv2.THRESH_BINARY)

    h, w = binary.shape[:2]
    if upscale > 1:
        binary = cv2.resize(binary, (w * upscale, h * upscale), interpolation=cv2.INTER_CUBIC)
    return Image.fromarray(binary)


class OCREngine:
    """OCR capability: load once, then recognize preprocessed images."""

    name = "base"

    def load(self) -> None:
        return None

    def recognize(self, image: Image.Image, *, timeout: float | None = None) -> list[OCRToken]:
        raise NotImplementedError


@dataclass
class TesseractEngine(OCREngine):
    lang: str = "eng"
    config: str = ""
    name = "tesseract"

    def load(self) -> None:
        # Raises TesseractNotFoundError when the binary is missing.
        version = pytesseract.get_tesseract_version()
        logger.info("tesseract %s ready (lang=%s)", version, self.lang)

    def recognize(self, image: Image.Image, *, timeout: float | None = None) -> list[OCRToken]:
        data = pytesseract.image_to_data(
            image,
            lang=self.lang,
            config=self.config,
            output_type=pytesseract.Output.DICT,
            timeout=timeout or 0,
        )
        tokens: list[OCRToken] = []
        for i in range(len(data.get("text", []))):
            try:
                conf = float(data["conf"][i])
            except (KeyError, TypeError, ValueError):
                conf = -1.0
            tokens.append(
                OCRToken(
                    text=str(data["text"][i] or ""),
                    top=float(data["top"][i]),
                    level=int(data["level"][i]),
                    confidence=conf,
                )
            )
        return tokens


@dataclass
class EasyOCREngine(OCREngine):
    lang: str = "en"
    gpu: bool = False
    name = "easyocr"
    _reader: Any | None = None

    def load(self) -> None:
        import easyocr

        langs = [s.strip() for s in self.lang.split(",") if s.strip()]
        self._reader = easyocr.Reader(langs or ["en"], gpu=self.gpu)
        logger.info("easyocr reader ready (langs=%s)", langs)

    def recognize(self, image: Image.Image, *, timeout: float | None = None) -> list[OCRToken]:
        # easyocr has no timeout knob; timeout is accepted for interface parity
        if self._reader is None:
            raise OCRNotReady("easyocr reader not loaded")
        arr = np.array(image.convert("RGB"))
        tokens: list[OCRToken] = []
        for bbox, text, confidence in self._reader.readtext(arr):
            tokens.append(OCRToken(text=str(text), top=_poly_top(bbox), level=WORD_LEVEL, confidence=float(confidence)))
        return tokens


def build_engine(name: str, *, lang: str | None = None, tesseract_config: str = "") -> OCREngine:
    if name == "tesseract":
        return TesseractEngine(lang=lang or "eng", config=tesseract_config)
    if name == "easyocr":
        return EasyOCREngine(lang=lang or "en")
    raise ValueError(f"Unknown OCR engine: {name}")


@dataclass
class LabelDetector:
    """Shared, process-wide OCR front end for label zones.

    The engine is loaded once by start(); detect() fails fast with
    OCRNotReady until that load has finished.
    """

    engine: OCREngine
    preprocess_cfg: dict[str, Any] = field(default_factory=dict)
    timeout_s: float | None = None
    _ready: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _load_error: BaseException | None = field(default=None, init=False, repr=False)
    _loader: threading.Thread | None = field(default=None, init=False, repr=False)

    @property
    def upscale(self) -> int:
        return max(1, int(self.preprocess_cfg.get("upscale", 2)))

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def _load(self) -> None:
        try:
            self.engine.load()
        except Exception as e:
            self._load_error = e
            logger.exception("OCR engine %s failed to load", self.engine.name)
            return
        self._ready.set()
        logger.info("OCR engine %s ready", self.engine.name)

    def start(self, *, background: bool = False) -> None:
        if self.ready or self._loader is not None:
            return
        if not background:
            self._load()
            if self._load_error is not None:
                raise OCRNotReady(f"OCR engine {self.engine.name} failed to load: {self._load_error}") from self._load_error
            return
        self._loader = threading.Thread(target=self._load, name="ocr-loader", daemon=True)
        self._loader.start()

    def wait_ready(self, timeout: float | None = None) -> bool:
        return self._ready.wait(timeout)

    def ensure_ready(self) -> None:
        if self.ready:
            return
        if self._load_error is not None:
            raise OCRNotReady(f"OCR engine {self.engine.name} failed to load: {self._load_error}")
        raise OCRNotReady(f"OCR engine {self.engine.name} is not ready")

    def detect(self, zone_image: Image.Image) -> list[RawToken]:
        """Word-level tokens of the zone, tops in page pixels."""
        self.ensure_ready()
        processed = preprocess_zone(zone_image, self.preprocess_cfg)
        found = self.engine.recognize(processed, timeout=self.timeout_s)

        up = self.upscale
        tokens: list[RawToken] = []
        for order, t in enumerate(found):
            text = (t.text or "").strip()
            if t.level != WORD_LEVEL or not text:
                continue
            tokens.append(RawToken(text=text, top=round_half_up(t.top / up), level=t.level, order=order))
        logger.debug("detected %d word tokens (%d raw entries)", len(tokens), len(found))
        return tokens
