"""Tests for calendar and sub-period utilities."""

import pytest
from datetime import date, datetime

from motoring.models.records import Order, SubPeriod
from motoring.reports.periods import (
    available_months,
    elapsed_working_days,
    in_period,
    month_label,
    parse_month_key,
    period_bounds,
    period_day_range,
    resolve_record_date,
    sub_period_of,
    trailing_months,
    working_days_in_period,
    working_days_in_range,
)

from conftest import make_order


class TestDateResolution:
    """A record's day: explicit date, then creation day, then today."""

    def test_explicit_date_wins(self):
        record = {"tanggal": "2024-03-03", "createdAt": "2024-04-01T10:00:00Z"}
        assert resolve_record_date(record) == date(2024, 3, 3)

    def test_date_field_used_when_no_tanggal(self):
        assert resolve_record_date({"date": "2024-03-04"}) == date(2024, 3, 4)

    def test_falls_back_to_creation_day(self):
        assert resolve_record_date({"createdAt": "2024-03-05T10:00:00Z"}) == date(2024, 3, 5)

    def test_falls_back_to_today(self):
        assert resolve_record_date({}, today=date(2024, 3, 20)) == date(2024, 3, 20)

    def test_works_on_models(self):
        order = Order(owner_id="u1", quantity=1, unit_rate=1000, created_at=datetime(2024, 3, 7, 9))
        assert resolve_record_date(order) == date(2024, 3, 7)


class TestPeriodBounds:
    def test_first_half(self):
        assert period_bounds(2024, 3, SubPeriod.FIRST_HALF) == (date(2024, 3, 1), date(2024, 3, 16))

    def test_second_half_ends_at_next_month(self):
        assert period_bounds(2024, 2, "16-31") == (date(2024, 2, 16), date(2024, 3, 1))
        assert period_bounds(2024, 12, "16-31") == (date(2024, 12, 16), date(2025, 1, 1))

    def test_day_range_is_inclusive(self):
        assert period_day_range(2024, 2, "16-31") == (date(2024, 2, 16), date(2024, 2, 29))
        assert period_day_range(2024, 4) == (date(2024, 4, 1), date(2024, 4, 30))

    def test_sub_period_of(self):
        assert sub_period_of(date(2024, 3, 15)) == SubPeriod.FIRST_HALF
        assert sub_period_of(date(2024, 3, 16)) == SubPeriod.SECOND_HALF

    def test_in_period(self):
        day = date(2024, 3, 20)
        assert in_period(day, "2024-03", None)
        assert in_period(day, None, SubPeriod.SECOND_HALF)
        assert not in_period(day, "2024-03", SubPeriod.FIRST_HALF)
        assert not in_period(day, "2024-04", None)


class TestWorkingDays:
    def test_sunday_counts_zero(self):
        assert working_days_in_range(date(2024, 3, 3), date(2024, 3, 3)) == 0

    def test_wednesday_counts_one(self):
        assert working_days_in_range(date(2024, 3, 6), date(2024, 3, 6)) == 1

    def test_halves_of_march_2024(self):
        assert working_days_in_period(2024, 3, SubPeriod.FIRST_HALF) == 11
        assert working_days_in_period(2024, 3, SubPeriod.SECOND_HALF) == 10
        assert working_days_in_period(2024, 3) == 21

    def test_elapsed_up_to_today(self):
        assert elapsed_working_days(2024, 3, SubPeriod.SECOND_HALF, date(2024, 3, 20)) == 3

    def test_elapsed_future_period_is_zero(self):
        assert elapsed_working_days(2024, 4, None, date(2024, 3, 20)) == 0

    def test_elapsed_past_period_is_full(self):
        assert elapsed_working_days(2024, 2, None, date(2024, 3, 20)) == 21


class TestMonthKeys:
    def test_parse(self):
        assert parse_month_key("2024-03") == (2024, 3)

    @pytest.mark.parametrize("key", ["2024-13", "March", "2024/03", ""])
    def test_parse_rejects(self, key):
        with pytest.raises(ValueError):
            parse_month_key(key)

    def test_trailing_months_cross_year(self):
        assert trailing_months(date(2024, 2, 10), 3) == ["2023-12", "2024-01", "2024-02"]

    def test_available_months_newest_first(self):
        orders = [
            make_order(date(2024, 1, 5)),
            make_order(date(2024, 3, 5)),
            make_order(date(2023, 12, 31)),
            make_order(date(2024, 3, 9)),
        ]
        assert available_months(orders) == ["2024-03", "2024-01", "2023-12"]

    def test_month_label(self):
        assert month_label("2024-03") == "Mar 2024"
