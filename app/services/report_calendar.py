"""Calendar and statistics derived from a ReportCollection.

Everything here is a pure function of its inputs and returns frozen
snapshots. Reports may be ``DailyReportRecord`` objects or plain dicts from
an older cache; missing or malformed fields fall back to defaults
(status ``pending``, project ``""``, not reviewed) instead of raising.
"""
import calendar
import logging
from datetime import date
from typing import Any, Iterable, List, Optional

from app.schemas.calendar import DayCell, MonthGrid, ReportMetrics, ReportStats
from app.schemas.report import REPORT_STATUSES, MemberReports, ReportCollection
from app.services.report_store import normalize_day_entry
from app.utils.dates import format_date_string, format_month_year, today_local

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "pending"


def report_field(report: Any, name: str, default: Any = None) -> Any:
    if isinstance(report, dict):
        value = report.get(name, default)
    else:
        value = getattr(report, name, default)
    return default if value is None else value


def _reviewed(report: Any) -> bool:
    value = report_field(report, "admin_reviewed", False)
    return value is True or (isinstance(value, int) and value == 1)


def _last(entry: Any) -> Optional[Any]:
    reports = normalize_day_entry(entry)
    return reports[-1] if reports else None


def effective_status(entry: Any) -> str:
    """Status of the day's highest-indexed (most recently created) report."""
    last = _last(entry)
    status = report_field(last, "status") if last is not None else None
    if status not in REPORT_STATUSES:
        if last is not None:
            logger.debug("Unknown report status %r, treating as %s", status, DEFAULT_STATUS)
        return DEFAULT_STATUS
    return status


def effective_project(entry: Any) -> str:
    last = _last(entry)
    if last is None:
        return ""
    project = report_field(last, "project", "")
    return project if isinstance(project, str) else ""


def effective_user_feedback(entry: Any) -> Optional[str]:
    last = _last(entry)
    return report_field(last, "user_feedback") if last is not None else None


def effective_admin_feedback(entry: Any) -> Optional[str]:
    last = _last(entry)
    return report_field(last, "admin_feedback") if last is not None else None


def is_report_reviewed(entry: Any) -> bool:
    """True only when every report of the day has been reviewed."""
    reports = normalize_day_entry(entry)
    return bool(reports) and all(_reviewed(r) for r in reports)


def report_metrics(entry: Any) -> ReportMetrics:
    totals = {"completed": 0, "in_progress": 0, "issues": 0, "tomorrow": 0}
    for report in normalize_day_entry(entry):
        for name in totals:
            items = report_field(report, name, [])
            if isinstance(items, (list, tuple)):
                totals[name] += len(items)
    return ReportMetrics(**totals)


def get_day_entry(collection: ReportCollection, user_id: int, date_string: str) -> list:
    member = collection.get(user_id) or {}
    return normalize_day_entry(member.get(date_string))


def has_report_for_date(collection: ReportCollection, user_id: int, date_string: str) -> bool:
    return bool(get_day_entry(collection, user_id, date_string))


def report_owners(collection: ReportCollection, date_string: str) -> List[int]:
    return [user_id for user_id in collection if get_day_entry(collection, user_id, date_string)]


def count_total(collection: ReportCollection, owners: Iterable[int], date_string: str) -> int:
    return sum(len(get_day_entry(collection, owner, date_string)) for owner in owners)


def count_reviewed(collection: ReportCollection, owners: Iterable[int], date_string: str) -> int:
    return sum(
        1
        for owner in owners
        for report in get_day_entry(collection, owner, date_string)
        if _reviewed(report)
    )


def calculate_report_stats(member_reports: Optional[MemberReports]) -> ReportStats:
    counts = {"completed": 0, "pending": 0, "overdue": 0}
    total = 0
    for entry in (member_reports or {}).values():
        if not normalize_day_entry(entry):
            continue
        total += 1
        counts[effective_status(entry)] += 1
    return ReportStats(total=total, **counts)


def _build_cell(
    collection: ReportCollection,
    year: int,
    month: int,
    day: int,
    column: int,
    view_mode: str,
    selected_member: Optional[int],
    today: date,
) -> DayCell:
    current = date(year, month, day)
    date_string = format_date_string(current)

    if view_mode == "single":
        owners = [selected_member] if has_report_for_date(collection, selected_member, date_string) else []
    else:
        owners = report_owners(collection, date_string)

    total = count_total(collection, owners, date_string)
    reviewed = count_reviewed(collection, owners, date_string)

    status = project = None
    if len(owners) == 1:
        entry = get_day_entry(collection, owners[0], date_string)
        status = effective_status(entry)
        project = effective_project(entry)

    return DayCell(
        day=day,
        date_string=date_string,
        has_report=bool(owners),
        report_owners=owners if view_mode == "team" else [],
        is_reviewed=total > 0 and reviewed == total,
        reviewed_count=reviewed,
        total_count=total,
        effective_status=status,
        effective_project=project,
        is_today=current == today,
        is_weekend=column in (0, 6),
    )


def build_month_grid(
    collection: ReportCollection,
    year: int,
    month: int,
    *,
    view_mode: str = "single",
    selected_member: Optional[int] = None,
    today: Optional[date] = None,
) -> MonthGrid:
    """Sunday-first month grid with per-day report state.

    ``single`` looks only at ``selected_member``; ``team`` looks at every
    user in the collection and fills ``report_owners``.
    """
    if view_mode not in ("single", "team"):
        raise ValueError(f"unknown view mode: {view_mode!r}")
    if view_mode == "single" and selected_member is None:
        raise ValueError("single view needs a selected member")
    today = today or today_local()

    weeks = []
    for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdayscalendar(year, month):
        weeks.append([
            None if day == 0 else _build_cell(
                collection, year, month, day, column, view_mode, selected_member, today
            )
            for column, day in enumerate(week)
        ])

    return MonthGrid(
        year=year,
        month=month,
        title=format_month_year(year, month),
        view_mode=view_mode,
        weeks=weeks,
    )


def shift_month(year: int, month: int, delta: int):
    """(year, month) moved by ``delta`` months, for prev/next navigation."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
