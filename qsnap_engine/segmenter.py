from __future__ import annotations

import logging
from typing import Iterator, Sequence

from PIL import Image

from .types import Label, Segment

logger = logging.getLogger(__name__)


def compute_spans(tops: Sequence[int], page_height: int, *, lift_px: int = 5) -> list[tuple[int, int] | None]:
    """Row spans for labels sorted by top.

    Returns one entry per label: (start, end) with rows [start, end),
    or None when the label leaves no room before the next one.

    Label i runs from `lift_px` above its own top down to the next label's
    top (page bottom for the last label). The lift keeps glyphs that sit a
    little above the OCR box.
    """
    spans: list[tuple[int, int] | None] = []
    n = len(tops)
    for i, top in enumerate(tops):
        boundary = tops[i + 1] if i + 1 < n else page_height
        if boundary - top <= 0:
            spans.append(None)
            continue
        start = max(top - lift_px, 0)
        end = min(boundary, page_height)
        if end <= start:
            spans.append(None)
            continue
        spans.append((start, end))
    return spans


def segment_page(
    image: Image.Image,
    labels: Sequence[Label],
    *,
    page_index: int = 0,
    lift_px: int = 5,
) -> Iterator[Segment]:
    """Lazily crop one full-width Segment per label, top to bottom."""
    w, h = image.size
    spans = compute_spans([lb.top for lb in labels], h, lift_px=lift_px)
    for lb, span in zip(labels, spans):
        if span is None:
            logger.info("page %d: label %r at y=%d has no height, skipped", page_index, lb.text, lb.top)
            continue
        start, end = span
        crop = image.crop((0, start, w, end))
        yield Segment(page_index=page_index, label=lb.text, top=start, bottom=end, image=crop)
