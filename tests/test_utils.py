"""Unit tests for shared utilities (projectgen.utils).

Tests cover:
- sanitize_name
- canonical_json
- truncate
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import pytest

from projectgen.utils import (
    canonical_json,
    format_duration,
    print_error,
    print_state_header,
    print_success,
    print_summary_table,
    print_warning,
    sanitize_name,
    truncate,
)


# ---------------------------------------------------------------------------
# sanitize_name
# ---------------------------------------------------------------------------


class TestSanitizeName:
    @pytest.mark.unit
    def test_simple_name(self):
        assert sanitize_name("myapp") == "myapp"

    @pytest.mark.unit
    def test_spaces_and_case(self):
        assert sanitize_name("My Cool App") == "my-cool-app"

    @pytest.mark.unit
    def test_special_chars_collapsed(self):
        assert sanitize_name("  Fit (Track)  ") == "fit-track"

    @pytest.mark.unit
    def test_empty_string(self):
        assert sanitize_name("") == ""


# ---------------------------------------------------------------------------
# canonical_json
# ---------------------------------------------------------------------------


class TestCanonicalJson:
    @pytest.mark.unit
    def test_key_order_does_not_matter(self):
        assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1})

    @pytest.mark.unit
    def test_compact_separators(self):
        assert canonical_json({"a": [1, 2]}) == '{"a":[1,2]}'

    @pytest.mark.unit
    def test_nested_mappings_sorted(self):
        assert canonical_json({"x": {"z": 1, "y": 2}}) == '{"x":{"y":2,"z":1}}'


# ---------------------------------------------------------------------------
# truncate
# ---------------------------------------------------------------------------


class TestTruncate:
    @pytest.mark.unit
    def test_short_text_unchanged(self):
        assert truncate("hello", 10) == "hello"

    @pytest.mark.unit
    def test_long_text_cut(self):
        assert truncate("a" * 20, 5) == "aaaaa..."


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    def test_seconds_only(self):
        assert format_duration(3.7) == "3.7s"

    @pytest.mark.unit
    def test_minutes_and_seconds(self):
        assert format_duration(65.2) == "1m 5s"

    @pytest.mark.unit
    def test_hours_minutes_seconds(self):
        assert format_duration(3661.0) == "1h 1m 1s"

    @pytest.mark.unit
    def test_negative(self):
        assert format_duration(-5.0) == "0.0s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


class TestRichOutputHelpers:
    @pytest.mark.unit
    def test_print_state_header(self):
        # Should not raise
        print_state_header("PLAN_ARCHITECTURE")

    @pytest.mark.unit
    def test_print_summary_table(self):
        print_summary_table({"Files": "12", "Batches": "3"}, title="Generation Summary")

    @pytest.mark.unit
    def test_print_messages(self):
        print_success("done")
        print_error("failed")
        print_warning("careful")
