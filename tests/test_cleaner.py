"""Token normalization and label filtering."""
from __future__ import annotations

import pytest

from qsnap_engine.cleaner import LabelFilter, filter_and_sort, normalize_banned_words, normalize_token
from qsnap_engine.patterns import compile_template, compile_templates
from qsnap_engine.types import RawToken


# ═══════════════════════════════════════════════════════════════════════════════
# NORMALIZER
# ═══════════════════════════════════════════════════════════════════════════════

class TestNormalizeToken:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Q.1", "q1"),
            ("  Q.1  ", "q1"),
            ("(Q12)", "q12"),
            ("[Q|5]", "q5"),
            ("O1", "q1"),
            ("O.7", "q7"),
            ("®3.", "q3."),
            ("01", "01"),
            ("10", "10"),
            ("0.5", "q5"),
            ("Q0", "qq"),
            ("1)", "1"),
            ("2.", "2."),
            ("Page", ""),
            ("page 3", "3"),
            ("xq.1", "q1"),
            ("q..4", "q4"),
            ("", ""),
        ],
    )
    def test_known_ocr_confusions(self, raw: str, expected: str):
        assert normalize_token(raw) == expected

    def test_zero_neighbours_read_from_original_text(self):
        # both zeros sit next to each other but not next to a digit 1-9;
        # each sees the other's original "0", so both stay digits
        assert normalize_token("00") == "00"
        assert normalize_token("a0b") == "q"

    @pytest.mark.parametrize(
        "raw",
        ["Q.1", "xq.1", "q..4", "®0", "0.0", "O0.1", "(0)", "q.x.1", "Q 1 0", "o.o.1", "{Q.10}", "..q", "0q0"],
    )
    def test_idempotent(self, raw: str):
        once = normalize_token(raw)
        assert normalize_token(once) == once

    def test_output_alphabet(self):
        out = normalize_token("Question #12 (a) — see page 4!")
        assert set(out) <= set("0123456789q.")

    def test_banned_words_normalized_and_empty_dropped(self):
        banned = normalize_banned_words(["  Q.1 ", "Page", "", "2019"])
        assert banned == frozenset({"q1", "2019"})


# ═══════════════════════════════════════════════════════════════════════════════
# FILTER & SORT
# ═══════════════════════════════════════════════════════════════════════════════

class TestFilterAndSort:

    def test_keeps_matches_sorted_by_top(self):
        patterns = compile_templates(["q1"])
        tokens = [
            RawToken("Q.3", top=500, order=0),
            RawToken("Answer", top=120, order=1),
            RawToken("Q.1", top=100, order=2),
            RawToken("Q.2", top=300, order=3),
        ]
        labels = filter_and_sort(tokens, banned=[], patterns=patterns)
        assert [lb.text for lb in labels] == ["q1", "q2", "q3"]
        assert [lb.top for lb in labels] == [100, 300, 500]
        assert labels[0].raw_text == "Q.1"

    def test_banned_token_excluded_even_when_pattern_matches(self):
        patterns = compile_templates(["q1"])
        tokens = [RawToken("Q12", top=10), RawToken("Q13", top=20)]
        labels = filter_and_sort(tokens, banned={"q12"}, patterns=patterns)
        assert [lb.text for lb in labels] == ["q13"]

    def test_any_pattern_counts(self):
        patterns = compile_templates(["q1", "1."])
        tokens = [RawToken("Q4", top=40), RawToken("7.", top=10), RawToken("abc", top=5)]
        labels = filter_and_sort(tokens, banned=[], patterns=patterns)
        assert [lb.text for lb in labels] == ["7.", "q4"]

    def test_ties_keep_detection_order(self):
        patterns = compile_templates(["q1"])
        tokens = [
            RawToken("Q9", top=200, order=0),
            RawToken("Q2", top=100, order=1),
            RawToken("Q5", top=100, order=2),
        ]
        labels = filter_and_sort(tokens, banned=[], patterns=patterns)
        assert [lb.text for lb in labels] == ["q2", "q5", "q9"]

    def test_no_patterns_means_no_labels(self):
        assert filter_and_sort([RawToken("Q1", top=1)], banned=[], patterns=[]) == []

    def test_label_filter_accepts(self):
        f = LabelFilter(patterns=(compile_template("q1"),), banned=frozenset({"q7"}))
        assert f.accepts("q3")
        assert not f.accepts("q7")
        assert not f.accepts("3")
