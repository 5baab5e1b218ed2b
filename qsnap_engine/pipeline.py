from __future__ import annotations

import logging
from contextlib import closing
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator

from .cleaner import LabelFilter
from .config import EngineConfig
from .cropper import ZoneTooNarrow, extract_zone
from .events import ERROR, StreamEvent
from .ocr import LabelDetector
from .segmenter import segment_page
from .session import Session, SessionBusy
from .types import Page, Segment, Zone

logger = logging.getLogger(__name__)


@dataclass
class RunStats:
    pages_total: int = 0
    pages_processed: int = 0
    pages_zone_too_narrow: int = 0
    pages_without_labels: int = 0
    pages_failed: int = 0
    labels_detected: int = 0
    segments_emitted: int = 0
    segments_skipped: int = 0
    cancelled: bool = False
    page_errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class QuestionPipeline:
    """Zone -> OCR -> label filter -> crops, page by page, as an event stream."""

    def __init__(self, detector: LabelDetector, cfg: EngineConfig | None = None):
        self.detector = detector
        self.cfg = cfg or EngineConfig()

    def stream(self, session: Session, stats: RunStats | None = None) -> Iterator[StreamEvent]:
        """Return the run's event stream.

        Raises OCRNotReady right away (not on first iteration) when the
        shared detector is still loading.

        Closing the returned generator stops all remaining work and clears
        the session.
        """
        self.detector.ensure_ready()
        return self._stream(session, stats if stats is not None else RunStats())

    def iter_segments(self, session: Session, stats: RunStats | None = None) -> Iterator[Segment]:
        for ev in self.stream(session, stats):
            if ev.kind == ERROR:
                raise ValueError(ev.data)
            if ev.segment is not None:
                yield ev.segment

    def _stream(self, session: Session, stats: RunStats) -> Iterator[StreamEvent]:
        busy = False
        try:
            yield StreamEvent.connected()

            problem = session.configuration_error()
            if problem is not None:
                logger.warning("session %s: %s", session.session_id, problem)
                yield StreamEvent.error(problem)
                return

            try:
                pages = session.begin_run()
            except SessionBusy as e:
                busy = True
                logger.warning("%s", e)
                yield StreamEvent.error("Session busy")
                return

            zone = session.zone
            label_filter = session.label_filter()
            stats.pages_total = len(pages)

            for page in pages:
                if session.cancelled:
                    break
                try:
                    with closing(self.process_page(page, zone, label_filter, stats)) as segs:
                        for seg in segs:
                            yield StreamEvent.from_segment(seg)
                            stats.segments_emitted += 1
                            if session.cancelled:
                                break
                except Exception as e:
                    # one bad page (decode/OCR/crop) must not sink the run
                    stats.pages_failed += 1
                    stats.page_errors.append({"page_index": page.page_index, "source_ref": page.source_ref, "message": str(e)})
                    logger.exception("page %d failed", page.page_index)
                    continue
                if session.cancelled:
                    break
                stats.pages_processed += 1

            if session.cancelled:
                stats.cancelled = True
                logger.info("session %s: run cancelled", session.session_id)
                return

            logger.info(
                "session %s: done, pages=%d segments=%d",
                session.session_id,
                stats.pages_total,
                stats.segments_emitted,
            )
            yield StreamEvent.done()
        except GeneratorExit:
            stats.cancelled = True
            logger.info("session %s: client disconnected", session.session_id)
            raise
        finally:
            if not busy:
                session.reset()

    def process_page(self, page: Page, zone: Zone, label_filter: LabelFilter, stats: RunStats) -> Iterator[Segment]:
        image = page.open_image()

        try:
            zone_img = extract_zone(image, zone, min_height=self.cfg.min_zone_height)
        except ZoneTooNarrow as e:
            stats.pages_zone_too_narrow += 1
            logger.info("page %d skipped: %s", page.page_index, e)
            return

        raw = self.detector.detect(zone_img)
        labels = label_filter.apply(raw)
        stats.labels_detected += len(labels)
        if not labels:
            stats.pages_without_labels += 1
            logger.info("page %d: no question numbers detected (%d word tokens)", page.page_index, len(raw))
            return

        logger.info("page %d: labels %s", page.page_index, [lb.text for lb in labels])
        emitted = 0
        for seg in segment_page(image, labels, page_index=page.page_index, lift_px=self.cfg.lift_px):
            emitted += 1
            yield seg
        stats.segments_skipped += len(labels) - emitted
