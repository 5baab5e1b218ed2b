from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .types import Segment

CONNECTED = "connected"
ERROR = "error"
SEGMENT = "segment"
DONE = "done"

TERMINAL_KINDS = frozenset({ERROR, DONE})


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    data: str
    segment: Segment | None = None

    @property
    def terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    def payload(self) -> Any:
        if self.kind == SEGMENT:
            return json.loads(self.data)
        return self.data

    @classmethod
    def connected(cls) -> "StreamEvent":
        return cls(CONNECTED, "ok")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(ERROR, message)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(DONE, "all done")

    @classmethod
    def from_segment(cls, seg: Segment) -> "StreamEvent":
        return cls(SEGMENT, json.dumps(seg.to_payload()), segment=seg)


def encode_sse(event: StreamEvent) -> str:
    """text/event-stream framing. Segment events go out untyped (data only)."""
    lines = []
    if event.kind != SEGMENT:
        lines.append(f"event: {event.kind}")
    for chunk in event.data.split("\n"):
        lines.append(f"data: {chunk}")
    return "\n".join(lines) + "\n\n"
