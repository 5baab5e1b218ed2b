from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

_DIGIT_RUN_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class SequencePattern:
    """A compiled sequence-style template ("q.1" -> ^q\\.\\d+$)."""

    template: str
    regex: re.Pattern[str]

    def test(self, text: str) -> bool:
        return self.regex.fullmatch(text) is not None

    @property
    def pattern(self) -> str:
        return self.regex.pattern


def template_to_regex(template: str) -> str:
    escaped = re.escape(template)
    return _DIGIT_RUN_RE.sub(lambda _m: r"\d+", escaped)


def compile_template(template: str) -> SequencePattern | None:
    """Compile one template; returns None for empty/whitespace-only input.

    Literal characters must match exactly, every run of digits matches any run
    of digits, and the whole token must match.
    """
    t = (template or "").strip().lower()
    if not t:
        return None
    return SequencePattern(template=t, regex=re.compile(template_to_regex(t), re.ASCII))


def compile_templates(templates: Iterable[str]) -> list[SequencePattern]:
    out: list[SequencePattern] = []
    for t in templates:
        p = compile_template(t)
        if p is not None:
            out.append(p)
    return out


def matches_any(text: str, patterns: Iterable[SequencePattern]) -> bool:
    return any(p.test(text) for p in patterns)
