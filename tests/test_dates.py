from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from app.services.activity_log import build_report_log, report_log_description
from app.utils.dates import format_date_string, format_japanese_date, format_month_year, parse_date_string


class TestFormatDateString:
    def test_zero_pads(self) -> None:
        assert format_date_string(date(2024, 5, 1)) == "2024-05-01"

    def test_aware_datetime_keeps_its_own_day(self) -> None:
        # 00:30 in JST is the previous day in UTC
        value = datetime(2024, 5, 1, 0, 30, tzinfo=timezone(timedelta(hours=9)))
        assert format_date_string(value) == "2024-05-01"

    def test_late_evening_west_of_utc(self) -> None:
        value = datetime(2024, 5, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert format_date_string(value) == "2024-05-01"


def test_parse_date_string() -> None:
    assert parse_date_string("2024-02-29") == date(2024, 2, 29)
    with pytest.raises(ValueError):
        parse_date_string("2024-02-30")


def test_japanese_formats() -> None:
    assert format_japanese_date(date(2024, 5, 1)) == "2024年5月1日"
    assert format_month_year(2024, 12) == "2024年12月"


class TestActivityLog:
    def test_description_for_create_and_update(self) -> None:
        day = date(2024, 5, 1)
        assert report_log_description("Oasis", day, True) == "プロジェクト「Oasis」の日報を作成しました（2024年5月1日）"
        assert report_log_description("Oasis", day, False) == "プロジェクト「Oasis」の日報を更新しました（2024年5月1日）"

    def test_build_report_log(self) -> None:
        log = build_report_log(7, date(2024, 5, 1), "Oasis", True, now=datetime(2024, 5, 1, 18, 5))
        assert log.user_id == 7
        assert log.date == date(2024, 5, 1)
        assert log.start_time == "18:05"
        assert log.end_time == "18:05"
        assert log.category == "documentation"
        assert log.completed is True
