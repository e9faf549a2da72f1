"""
Tests for the partition and view naming contract.
"""

from __future__ import annotations

from datetime import date

import pytest

from whspine.core.naming import (
    day_partition_name,
    days_in_year,
    iter_dates,
    iter_year,
    public_view_name,
    tenant_view_name,
    validate_identifier,
    year_partition_name,
)


class TestNames:
    def test_day_partition(self):
        assert day_partition_name("sales", date(2024, 1, 15)) == "sales_2024_01_15"

    def test_year_partition(self):
        assert year_partition_name("sales", 2023) == "sales_2023"

    def test_views_are_named_after_template(self):
        assert tenant_view_name("sales") == "sales"
        assert public_view_name("sales") == "sales"


class TestValidateIdentifier:
    @pytest.mark.parametrize("value", ["acme", "_wh", "sales_2024", "A1"])
    def test_accepts_plain_identifiers(self, value):
        assert validate_identifier(value) == value

    @pytest.mark.parametrize("value", ["", "1acme", "acme-prod", 'x"; DROP TABLE t; --', "a b"])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValueError, match="Invalid schema"):
            validate_identifier(value, "schema")


class TestCalendar:
    def test_days_in_year(self):
        assert days_in_year(2023) == 365
        assert days_in_year(2024) == 366
        assert days_in_year(1900) == 365
        assert days_in_year(2000) == 366

    def test_iter_dates_inclusive(self):
        days = list(iter_dates(date(2024, 2, 27), date(2024, 3, 1)))
        assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_iter_dates_single_day(self):
        assert list(iter_dates(date(2024, 1, 1), date(2024, 1, 1))) == [date(2024, 1, 1)]

    def test_iter_dates_empty_when_reversed(self):
        assert list(iter_dates(date(2024, 1, 2), date(2024, 1, 1))) == []

    def test_iter_year(self):
        days = list(iter_year(2023))
        assert len(days) == 365
        assert days[0] == date(2023, 1, 1)
        assert days[-1] == date(2023, 12, 31)
