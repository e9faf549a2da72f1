"""Tests for CLI date keywords and output helpers."""

from datetime import date

import pytest
import typer

from whspine.cli.utils import _to_dict, parse_date
from whspine.partitions.lifecycle import UpsertOutcome

TODAY = date(2024, 3, 1)


class TestParseDate:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("today", TODAY),
            ("TODAY", TODAY),
            ("yesterday", date(2024, 2, 29)),
            ("today-14", date(2024, 2, 16)),
            ("today-0", TODAY),
            ("2023-12-31", date(2023, 12, 31)),
        ],
    )
    def test_keywords(self, value, expected):
        assert parse_date(value, today=TODAY) == expected

    @pytest.mark.parametrize("value", ["tomorrow", "today+1", "2023-13-01", ""])
    def test_rejects(self, value):
        with pytest.raises(typer.BadParameter):
            parse_date(value, today=TODAY)


class TestToDict:
    def test_enum(self):
        assert _to_dict(UpsertOutcome.CREATED) == {"outcome": "created"}

    def test_scalar(self):
        assert _to_dict(3) == {"value": 3}

    def test_dict_passthrough(self):
        assert _to_dict({"a": 1}) == {"a": 1}
