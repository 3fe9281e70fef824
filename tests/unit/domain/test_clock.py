"""Unit tests for UTC clock helpers"""

from datetime import datetime, timedelta, timezone
from coop_ledger.domain.clock import as_naive_utc, utcnow


class TestAsNaiveUtc:
    def test_aware_value_converted_to_utc(self):
        value = datetime(2024, 2, 10, 3, 0, tzinfo=timezone(timedelta(hours=3)))

        assert as_naive_utc(value) == datetime(2024, 2, 10, 0, 0)

    def test_zulu_value_drops_tzinfo(self):
        value = datetime.fromisoformat("2024-02-10T00:00:00+00:00")

        result = as_naive_utc(value)

        assert result == datetime(2024, 2, 10)
        assert result.tzinfo is None

    def test_naive_value_unchanged(self):
        value = datetime(2024, 2, 10, 8, 30)

        assert as_naive_utc(value) is value

    def test_none_passes_through(self):
        assert as_naive_utc(None) is None


def test_utcnow_is_naive():
    assert utcnow().tzinfo is None
