"""Tests for UTC timestamp helpers."""

from datetime import UTC, datetime

from whspine.core.timestamps import from_iso8601, to_iso8601, utc_now, utc_now_iso


class TestTimestamps:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is UTC

    def test_iso_roundtrip(self):
        parsed = from_iso8601(utc_now_iso())
        assert parsed is not None and parsed.tzinfo is not None

    def test_naive_text_is_utc(self):
        assert from_iso8601("2024-01-15 10:00:00") == datetime(2024, 1, 15, 10, tzinfo=UTC)

    def test_none(self):
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None
        assert from_iso8601("") is None
