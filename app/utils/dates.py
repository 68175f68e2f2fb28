# app/utils/dates.py
from datetime import date, datetime
from typing import Union


def format_date_string(value: Union[date, datetime]) -> str:
    """YYYY-MM-DD from the value's own calendar fields.

    Aware datetimes are not converted to UTC (or any zone) first; the date
    the caller sees is the date that gets written.
    """
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date_string(value: str) -> date:
    return date.fromisoformat(value)


def format_japanese_date(value: Union[date, datetime]) -> str:
    # 2024年5月1日
    return f"{value.year}年{value.month}月{value.day}日"


def format_month_year(year: int, month: int) -> str:
    return f"{year}年{month}月"


def today_local() -> date:
    return datetime.now().date()
