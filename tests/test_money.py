"""Tests for casegen/money.py and casegen/dates.py."""

from datetime import date

import pytest

from casegen.dates import (
    add_days,
    days_between,
    format_pseudo_date,
    long_date,
    parse_pseudo_date,
    sort_key,
    year_token,
)
from casegen.money import (
    amount_in_words,
    dollars,
    floor_to,
    format_money,
    format_money_number,
    number_to_words,
    rate_from_bp,
    round_to,
    scale,
    tax_on,
    to_dollars,
)


class TestCents:
    def test_dollars_to_cents(self):
        assert dollars(25) == 2500
        assert dollars(0.1) == 10
        assert dollars(1234.56) == 123456

    def test_to_dollars(self):
        assert to_dollars(123456) == 1234.56
        assert to_dollars(-5) == -0.05

    def test_scale_rounds_half_up(self):
        assert scale(1000, 0.6) == 600
        assert scale(5, 0.5) == 3

    def test_round_to_half_up(self):
        assert round_to(3750, 2500) == 5000
        assert round_to(3749, 2500) == 2500
        assert round_to(1237, 2500) == 0

    def test_floor_to(self):
        assert floor_to(199_999, 100_000) == 100_000
        assert floor_to(-1, 100_000) == -100_000


class TestTax:
    def test_exact_rate(self):
        assert tax_on(10_000, 725) == 725

    def test_rounds_half_up(self):
        assert tax_on(1010, 500) == 51
        assert tax_on(1001, 500) == 50

    def test_rate_from_bp(self):
        assert rate_from_bp(825) == 0.0825


class TestFormatting:
    def test_format_money(self):
        assert format_money(123456) == "$1,234.56"
        assert format_money(-5) == "-$0.05"

    def test_format_money_number(self):
        assert format_money_number(100_000_000) == "1,000,000.00"

    def test_number_to_words(self):
        assert number_to_words(0) == "Zero"
        assert number_to_words(115) == "One Hundred Fifteen"
        assert number_to_words(40) == "Forty"
        assert number_to_words(1_000_001) == "One Million One"

    def test_amount_in_words(self):
        assert amount_in_words(1_250_007) == "Twelve Thousand Five Hundred and 07/100"


class TestPseudoDates:
    def test_parse_pseudo(self):
        assert parse_pseudo_date("20X2-12-31") == date(2002, 12, 31)

    def test_parse_iso(self):
        assert parse_pseudo_date("2024-02-29") == date(2024, 2, 29)

    def test_parse_rejects_garbage(self):
        assert parse_pseudo_date("") is None
        assert parse_pseudo_date(None) is None
        assert parse_pseudo_date("December 31") is None
        assert parse_pseudo_date("20X2-02-30") is None

    def test_format_round_trip(self):
        assert format_pseudo_date(date(2003, 1, 5)) == "20X3-01-05"

    def test_add_days_crosses_year(self):
        assert add_days("20X2-12-31", 1) == "20X3-01-01"
        assert add_days("20X3-01-01", -1) == "20X2-12-31"

    def test_add_days_keeps_iso(self):
        assert add_days("2024-12-31", 5) == "2025-01-05"
        assert days_between("2024-12-31", add_days("2024-12-31", 5)) == 5

    def test_add_days_past_last_pseudo_year(self):
        with pytest.raises(ValueError, match="pseudo-year"):
            add_days("20X9-12-31", 5)

    def test_add_days_unparseable_unchanged(self):
        assert add_days("garbage", 3) == "garbage"

    def test_days_between(self):
        assert days_between("20X2-12-31", "20X3-01-31") == 31
        assert days_between("20X2-12-31", "bad") is None

    def test_year_token(self):
        assert year_token("20X2-12-31") == "20X2"
        assert year_token("20X2-12-31", 1) == "20X3"
        assert year_token("2024-12-31", 1) == "2025"
        with pytest.raises(ValueError, match="pseudo-year"):
            year_token("20X9-12-31", 1)

    def test_long_date(self):
        assert long_date("20X2-12-31") == "December 31 20X2"

    def test_sort_key_puts_unparseable_last(self):
        values = ["zzz", "20X3-01-10", "20X2-12-31"]
        assert sorted(values, key=sort_key) == ["20X2-12-31", "20X3-01-10", "zzz"]
