from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from .cleaner import LabelFilter, normalize_banned_words, normalize_token
from .patterns import SequencePattern, compile_templates
from .types import Page, Zone

if TYPE_CHECKING:
    from .events import StreamEvent
    from .pipeline import QuestionPipeline, RunStats

logger = logging.getLogger(__name__)


class SessionBusy(RuntimeError):
    """A run is already active, or already consumed, for this session."""


@dataclass
class Session:
    """Pages and label settings for exactly one segmentation run.

    Lifecycle: add_page()* -> configure() -> begin_run() -> reset().
    reset() runs after every run, whatever its outcome, and leaves the
    session empty and reusable.
    """

    session_id: str = "default"
    pages: list[Page] = field(default_factory=list)
    zone: Zone | None = None
    patterns: list[SequencePattern] = field(default_factory=list)
    banned: frozenset[str] = field(default_factory=frozenset)
    running: bool = False
    _cancel: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def add_page(self, data: bytes, source_ref: str = "") -> int:
        if not data:
            raise ValueError("empty page upload")
        with self._lock:
            if self.running:
                raise SessionBusy(f"session {self.session_id}: cannot upload during a run")
            self.pages.append(Page(page_index=len(self.pages), data=bytes(data), source_ref=source_ref))
            count = len(self.pages)
        logger.info("session %s: page received, total=%d", self.session_id, count)
        return count

    def configure(self, zone: Zone, templates: Iterable[str], banned_words: Iterable[str] = ()) -> None:
        # Templates go through the same normalizer as OCR tokens ("Q.1" -> "q1").
        bounds = zone.bounds()
        canonical = [normalize_token(t) for t in templates if str(t or "").strip()]
        patterns = compile_templates(canonical)
        banned = normalize_banned_words(banned_words)
        with self._lock:
            if self.running:
                raise SessionBusy(f"session {self.session_id}: cannot configure during a run")
            self.zone = zone
            self.patterns.extend(patterns)
            self.banned = self.banned | banned
        logger.info(
            "session %s: zone=%s patterns=%s banned=%d",
            self.session_id,
            bounds,
            [p.pattern for p in self.patterns],
            len(self.banned),
        )

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def configuration_error(self) -> str | None:
        if self.zone is None:
            return "Zone not set"
        if not self.patterns:
            return "Question style not set"
        return None

    def label_filter(self) -> LabelFilter:
        return LabelFilter(patterns=tuple(self.patterns), banned=self.banned)

    def begin_run(self) -> list[Page]:
        """Mark the run as started and hand over the pages in upload order."""
        with self._lock:
            if self.running:
                raise SessionBusy(f"session {self.session_id}: a run is already active")
            self.running = True
            self._cancel.clear()
            return list(self.pages)

    def cancel(self) -> None:
        """Consumer went away; the running pipeline stops at the next checkpoint."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def reset(self) -> None:
        with self._lock:
            self.pages = []
            self.zone = None
            self.patterns = []
            self.banned = frozenset()
            self.running = False
        logger.info("session %s: reset", self.session_id)


class SessionStore:
    """Sessions keyed by id; created on first upload, dropped on teardown."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> Session:
        with self._lock:
            s = self._sessions.get(session_id)
            if s is None:
                s = Session(session_id=session_id)
                self._sessions[session_id] = s
            return s

    def upload(self, session_id: str, data: bytes, source_ref: str = "") -> int:
        return self.get_or_create(session_id).add_page(data, source_ref=source_ref)

    def configure(self, session_id: str, payload: dict[str, Any]) -> Session:
        """Apply a confirm-zone payload: {zoneXBounds: {x1, x2}, quesSeqStyle: [...], banWord: [...]}."""
        bounds = payload.get("zoneXBounds") or {}
        try:
            zone = Zone(x1=float(bounds["x1"]), x2=float(bounds["x2"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"invalid zoneXBounds: {bounds!r}") from e
        s = self.get_or_create(session_id)
        s.configure(zone, list(payload.get("quesSeqStyle") or []), list(payload.get("banWord") or []))
        return s

    def stream(
        self, session_id: str, pipeline: QuestionPipeline, stats: RunStats | None = None
    ) -> Iterator[StreamEvent]:
        """Run the session through pipeline; the session leaves the store when the stream ends.

        OCRNotReady is raised here, before any event, and the session stays put.
        """
        session = self.get_or_create(session_id)
        events = pipeline.stream(session, stats)
        return self._drain(session, events)

    def _drain(self, session: Session, events: Iterator[StreamEvent]) -> Iterator[StreamEvent]:
        try:
            yield from events
        finally:
            events.close()
            self._release(session)

    def _release(self, session: Session) -> None:
        # A "Session busy" stream must not drop the run that owns the session.
        with self._lock:
            if session.running or self._sessions.get(session.session_id) is not session:
                return
            del self._sessions[session.session_id]
        logger.info("session %s: dropped from store", session.session_id)

    def discard(self, session_id: str) -> None:
        with self._lock:
            s = self._sessions.pop(session_id, None)
        if s is not None:
            s.cancel()
            s.reset()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
