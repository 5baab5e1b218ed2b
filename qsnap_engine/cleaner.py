from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from .patterns import SequencePattern, matches_any
from .types import Label, RawToken

logger = logging.getLogger(__name__)

_ASCII_DIGITS = frozenset("0123456789")

_NOISE_RE = re.compile(r"[()\[\]{}|]")
# "O1" / "®1" / "O." are misreads of "Q1" / "Q."
_Q_LOOKALIKE_RE = re.compile(r"[o®](?=[0-9.])")
_NON_LABEL_RE = re.compile(r"[^0-9q.]")
_LEADING_Q_SEP_RE = re.compile(r"^q\.+")


def _disambiguate_zeros(s: str) -> str:
    """A '0' stays a digit only next to another digit, otherwise it is a 'Q'.

    Neighbours are read from the unmodified input string.
    """
    out: list[str] = []
    for i, ch in enumerate(s):
        if ch != "0":
            out.append(ch)
            continue
        prev = s[i - 1] if i > 0 else ""
        nxt = s[i + 1] if i + 1 < len(s) else ""
        out.append("0" if (prev in _ASCII_DIGITS or nxt in _ASCII_DIGITS) else "q")
    return "".join(out)


def normalize_token(text: str) -> str:
    """Collapse an OCR token onto the canonical label alphabet [0-9q.]."""
    s = (text or "").strip().lower()
    s = _NOISE_RE.sub("", s)
    s = _disambiguate_zeros(s)
    s = _Q_LOOKALIKE_RE.sub("q", s)
    s = _NON_LABEL_RE.sub("", s)
    # "q.14" -> "q14"; runs after the whitelist so junk between "q" and "." can't resurface it
    s = _LEADING_Q_SEP_RE.sub("q", s)
    return s


def normalize_banned_words(words: Iterable[str]) -> frozenset[str]:
    out: set[str] = set()
    for w in words:
        n = normalize_token(str(w or ""))
        if n:
            out.add(n)
    return frozenset(out)


@dataclass(frozen=True)
class LabelFilter:
    patterns: tuple[SequencePattern, ...]
    banned: frozenset[str] = field(default_factory=frozenset)

    def accepts(self, normalized: str) -> bool:
        # banned check first: a banned token never counts even if it matches
        if normalized in self.banned:
            return False
        return matches_any(normalized, self.patterns)

    def apply(self, raw_tokens: Iterable[RawToken]) -> list[Label]:
        labels: list[Label] = []
        for t in raw_tokens:
            clean = normalize_token(t.text)
            if not self.accepts(clean):
                logger.debug("token rejected: raw=%r clean=%r top=%d", t.text, clean, t.top)
                continue
            labels.append(Label(text=clean, top=t.top, raw_text=t.text, order=t.order))

        # sorted() is stable, so equal tops keep OCR order
        return sorted(labels, key=lambda lb: lb.top)


def filter_and_sort(
    raw_tokens: Iterable[RawToken],
    banned: Iterable[str],
    patterns: Iterable[SequencePattern],
) -> list[Label]:
    return LabelFilter(patterns=tuple(patterns), banned=frozenset(banned)).apply(raw_tokens)
