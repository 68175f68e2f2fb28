"""Conversion between flat report rows and the nested per-user collection,
plus the persistence operations behind the /reports endpoints.

Rows are stored one per (user, date, report_index). Everything above the
database works with ``ReportCollection``: user_id -> date string -> list of
reports ordered by report_index. A date always maps to a list, even when it
holds a single report.
"""
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.models.report import DailyReport
from app.schemas.report import DailyReportFields, DailyReportRecord, FeedbackRequest, MemberReports, ReportCollection
from app.services.activity_log import build_report_log
from app.utils.dates import format_date_string

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shape conversion
# ---------------------------------------------------------------------------

def to_record(report: DailyReport) -> DailyReportRecord:
    return DailyReportRecord(
        id=report.id,
        user_id=report.user_id,
        date=report.date,
        report_index=report.report_index or 0,
        project=report.project or "",
        project_id=report.project_id,
        status=report.status or "pending",
        user_feedback=report.user_feedback,
        admin_feedback=report.admin_feedback,
        admin_reviewed=bool(report.admin_reviewed),
        created_at=report.created_at,
        updated_at=report.updated_at,
        **{field: report.get_list(field) for field in DailyReport.LIST_FIELDS},
    )


def group_reports(records: Iterable[DailyReportRecord]) -> MemberReports:
    """Group one user's flat records by date, each list sorted by index."""
    grouped: MemberReports = {}
    for record in records:
        grouped.setdefault(format_date_string(record.date), []).append(record)
    for entries in grouped.values():
        entries.sort(key=lambda r: r.report_index)
    return grouped


def build_collection(records: Iterable[DailyReportRecord]) -> ReportCollection:
    by_user: dict = {}
    for record in records:
        by_user.setdefault(record.user_id, []).append(record)
    return {user_id: group_reports(items) for user_id, items in by_user.items()}


def normalize_day_entry(entry: Any) -> list:
    """A date's value as a list, whatever shape it arrived in."""
    if entry is None:
        return []
    if isinstance(entry, (list, tuple)):
        return list(entry)
    return [entry]


def normalize_collection(raw: Mapping) -> ReportCollection:
    """Parse a JSON payload shaped ``{user_id: {date: report | [report]}}``.

    The date key and the outer user key are authoritative. Null or wrongly
    typed fields fall back to their defaults; only entries that are not
    objects, or that sit under a key that is not a date, are skipped.
    """
    collection: ReportCollection = {}
    for raw_user_id, member_reports in (raw or {}).items():
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            logger.warning("Skipping reports for unparseable user id %r", raw_user_id)
            continue
        if member_reports is None:
            member_reports = {}
        if not isinstance(member_reports, Mapping):
            logger.warning("Skipping reports for user %s: expected an object, got %s",
                           user_id, type(member_reports).__name__)
            continue
        parsed: MemberReports = {}
        for date_string, entry in member_reports.items():
            records = []
            for item in normalize_day_entry(entry):
                if not isinstance(item, Mapping):
                    logger.warning("Skipping non-object report for user %s on %s", user_id, date_string)
                    continue
                data = dict(item, user_id=user_id, date=date_string)
                try:
                    records.append(DailyReportRecord.model_validate(data))
                except ValidationError as exc:
                    logger.warning("Skipping report for user %s under bad date %r: %s", user_id, date_string, exc)
            if records:
                records.sort(key=lambda r: r.report_index)
                parsed[date_string] = records
        collection[user_id] = parsed
    return collection


def flatten_collection(collection: ReportCollection) -> List[DailyReportRecord]:
    """Nested collection back to flat rows, ordered by user, date, index."""
    rows = []
    for user_id in collection:
        for date_string in sorted(collection[user_id]):
            rows.extend(sorted(collection[user_id][date_string], key=lambda r: r.report_index))
    return rows


def next_report_index(indices: Iterable[Optional[int]]) -> int:
    existing = [i for i in indices if i is not None]
    return max(existing) + 1 if existing else 0


def replace_in_collection(collection: ReportCollection, record: DailyReportRecord) -> ReportCollection:
    """Copy of ``collection`` with ``record`` inserted or replacing the entry
    at the same (user, date, report_index)."""
    date_string = format_date_string(record.date)
    member = dict(collection.get(record.user_id, {}))
    entries = [r for r in member.get(date_string, []) if r.report_index != record.report_index]
    entries.append(record)
    entries.sort(key=lambda r: r.report_index)
    member[date_string] = entries
    updated = dict(collection)
    updated[record.user_id] = member
    return updated


def remove_from_collection(
    collection: ReportCollection,
    user_id: int,
    date_string: str,
    report_index: int,
) -> ReportCollection:
    """Copy of ``collection`` without one report.

    Remaining reports keep their indices. A date whose last report
    is removed disappears from the user's mapping.
    """
    member = collection.get(user_id)
    if not member or date_string not in member:
        return collection
    remaining = [r for r in member[date_string] if r.report_index != report_index]
    if len(remaining) == len(member[date_string]):
        logger.debug("No report %s/%s/%s to remove locally", user_id, date_string, report_index)
        return collection
    member = dict(member)
    if remaining:
        member[date_string] = remaining
    else:
        del member[date_string]
    updated = dict(collection)
    updated[user_id] = member
    return updated


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

async def list_reports_for_user(db: AsyncSession, user_id: int) -> MemberReports:
    result = await db.execute(
        select(DailyReport)
        .where(DailyReport.user_id == user_id)
        .order_by(DailyReport.date.desc(), DailyReport.report_index)
    )
    return group_reports(to_record(r) for r in result.scalars().all())


async def list_reports_in_range(
    db: AsyncSession,
    start: date,
    end: date,
    user_ids: Optional[Iterable[int]] = None,
) -> ReportCollection:
    query = (
        select(DailyReport)
        .where(DailyReport.date >= start)
        .where(DailyReport.date <= end)
    )
    if user_ids is not None:
        query = query.where(DailyReport.user_id.in_(list(user_ids)))
    result = await db.execute(query.order_by(DailyReport.user_id, DailyReport.date, DailyReport.report_index))
    return build_collection(to_record(r) for r in result.scalars().all())


async def find_report(
    db: AsyncSession,
    user_id: int,
    report_date: date,
    report_index: Optional[int] = None,
) -> Optional[DailyReport]:
    """Report at (user, date, index); without an index, the lowest-indexed
    report of that day."""
    query = (
        select(DailyReport)
        .where(DailyReport.user_id == user_id)
        .where(DailyReport.date == report_date)
    )
    if report_index is not None:
        query = query.where(DailyReport.report_index == report_index)
    result = await db.execute(query.order_by(DailyReport.report_index).limit(1))
    return result.scalar_one_or_none()


async def _next_index_for(db: AsyncSession, user_id: int, report_date: date) -> int:
    result = await db.execute(
        select(func.max(DailyReport.report_index))
        .where(DailyReport.user_id == user_id)
        .where(DailyReport.date == report_date)
    )
    return next_report_index([result.scalar_one_or_none()])


def _apply_fields(report: DailyReport, fields: DailyReportFields) -> None:
    # Admin review fields are never touched by a content save
    report.set_list("completed", fields.completed)
    report.set_list("in_progress", fields.in_progress)
    report.set_list("issues", fields.issues)
    report.set_list("tomorrow", fields.tomorrow)
    report.set_list("task_ids", fields.task_ids)
    report.project = fields.project
    report.project_id = fields.project_id or None
    report.status = fields.status
    report.user_feedback = fields.user_feedback or None


async def save_report(
    db: AsyncSession,
    user_id: int,
    report_date: date,
    report_index: Optional[int],
    fields: DailyReportFields,
) -> Tuple[DailyReport, bool]:
    """Upsert one report and record the activity-log entry.

    Returns ``(report, created)``. An explicit index updates the row at that
    index (creating it if missing), so retrying the same call is safe. No
    index means a new report at the next free index.
    """
    existing = None
    if report_index is not None:
        existing = await find_report(db, user_id, report_date, report_index)

    if existing is not None:
        report = existing
        _apply_fields(report, fields)
        report.updated_at = datetime.now(timezone.utc)
        created = False
    else:
        if report_index is None:
            report_index = await _next_index_for(db, user_id, report_date)
        report = DailyReport(
            user_id=user_id,
            date=report_date,
            report_index=report_index,
            admin_reviewed=False,
        )
        _apply_fields(report, fields)
        db.add(report)
        created = True

    db.add(build_report_log(user_id, report_date, fields.project, created))
    await db.commit()
    await db.refresh(report)
    logger.info(
        "%s report user=%s date=%s index=%s",
        "Created" if created else "Updated", user_id, report_date, report.report_index,
    )
    return report, created


async def get_report_by_id(db: AsyncSession, report_id: int) -> Optional[DailyReport]:
    result = await db.execute(select(DailyReport).where(DailyReport.id == report_id))
    return result.scalar_one_or_none()


async def delete_report(db: AsyncSession, report: DailyReport) -> int:
    result = await db.execute(delete(DailyReport).where(DailyReport.id == report.id))
    await db.commit()
    logger.info(
        "Deleted report id=%s user=%s date=%s index=%s",
        report.id, report.user_id, report.date, report.report_index,
    )
    return result.rowcount or 0


async def apply_feedback(
    db: AsyncSession,
    report: DailyReport,
    feedback: FeedbackRequest,
) -> DailyReport:
    """Write the admin review fields and leave a notification for the owner."""
    report.admin_feedback = feedback.admin_feedback
    report.admin_reviewed = feedback.admin_reviewed
    db.add(report)

    date_string = format_date_string(report.date)
    db.add(Notification(
        user_id=report.user_id,
        type="REPORT_FEEDBACK",
        title="日報フィードバック",
        message=f"管理者があなたの{date_string}の日報にフィードバックを提供しました。",
        read=False,
        link_url=f"/reports?date={date_string}",
        data=json.dumps({"report_id": report.id, "report_index": report.report_index}),
    ))
    await db.commit()
    await db.refresh(report)
    return report
