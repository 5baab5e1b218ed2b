"""Sequence-style template compilation."""
from __future__ import annotations

import pytest

from qsnap_engine.patterns import compile_template, compile_templates, matches_any, template_to_regex


class TestCompileTemplate:

    def test_q_dot_template(self):
        p = compile_template("Q.1")
        assert p is not None
        assert p.pattern == r"q\.\d+"
        for ok in ("q.1", "q.23", "q.100"):
            assert p.test(ok), ok
        for bad in ("q1", "qa.1", "q.1x", "xq.1", "q.", ""):
            assert not p.test(bad), bad

    def test_template_without_digits_is_literal(self):
        p = compile_template("header")
        assert p is not None
        assert p.test("header")
        assert not p.test("header1")
        assert not p.test("headers")

    def test_every_digit_run_becomes_wildcard(self):
        p = compile_template("12-3")
        assert p is not None
        assert p.test("7-99")
        assert not p.test("7-")

    def test_special_characters_are_literal(self):
        p = compile_template("1)")
        assert p is not None
        assert p.test("12)")
        assert not p.test("12")
        assert template_to_regex("(1)") == r"\(\d+\)"

    @pytest.mark.parametrize("blank", ["", "   ", "\t\n"])
    def test_blank_template_skipped(self, blank: str):
        assert compile_template(blank) is None

    def test_compile_many_drops_blanks(self):
        patterns = compile_templates(["Q.1", "", "  ", "1."])
        assert [p.template for p in patterns] == ["q.1", "1."]
        assert matches_any("4.", patterns)
        assert matches_any("q.9", patterns)
        assert not matches_any("q9", patterns)

    def test_unicode_digits_do_not_match(self):
        p = compile_template("q1")
        assert p is not None
        assert not p.test("q٣")
