import logging
from calendar import monthrange
from datetime import date, datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.auth import get_current_user, get_current_admin
from app.schemas.calendar import MonthGrid, ReportStats
from app.schemas.report import (
    DailyReportRecord,
    FeedbackRequest,
    FeedbackReportSummary,
    FeedbackResponse,
    MemberReports,
    ReportDeleteResponse,
    ReportSaveRequest,
)
from app.services import report_store
from app.services.report_calendar import build_month_grid, calculate_report_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _resolve_target_user(user_id: Optional[int], current_user) -> int:
    """The user whose reports are read; others' reports need admin rights."""
    target = current_user.id if user_id is None else user_id
    if target != current_user.id and current_user.role != "admin":
        raise HTTPException(403, "自分の日報のみ閲覧できます")
    return target


def _validate_month(month: int, year: int) -> None:
    if not (1 <= month <= 12):
        raise HTTPException(400, "Invalid month")
    if year < 1900 or year > 2100:
        raise HTTPException(400, "Invalid year")


@router.get("", response_model=Dict[int, MemberReports])
async def get_reports(
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    target = _resolve_target_user(user_id, current_user)
    reports = await report_store.list_reports_for_user(db, target)
    logger.debug("Found %d report dates for user %s", len(reports), target)
    return {target: reports}


@router.get("/calendar", response_model=MonthGrid)
async def get_report_calendar(
    month: int = None,
    year: int = None,
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Month grid for one user, or for the whole team when an admin omits
    ``user_id``."""
    now = datetime.now()
    if month is None:
        month = now.month
    if year is None:
        year = now.year
    _validate_month(month, year)

    start_of_month = date(year, month, 1)
    end_of_month = date(year, month, monthrange(year, month)[1])

    if user_id is None and current_user.role == "admin":
        collection = await report_store.list_reports_in_range(db, start_of_month, end_of_month)
        return build_month_grid(collection, year, month, view_mode="team")

    target = _resolve_target_user(user_id, current_user)
    collection = await report_store.list_reports_in_range(db, start_of_month, end_of_month, [target])
    return build_month_grid(collection, year, month, view_mode="single", selected_member=target)


@router.get("/stats", response_model=ReportStats)
async def get_report_stats(
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    target = _resolve_target_user(user_id, current_user)
    return calculate_report_stats(await report_store.list_reports_for_user(db, target))


@router.post("", response_model=DailyReportRecord)
async def save_report(
    report_in: ReportSaveRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    # Report content belongs to its author; admins review through /feedback
    if report_in.user_id != current_user.id:
        raise HTTPException(403, "自分の日報のみ作成・更新できます")

    # Rollback expires the ORM user, so keep the id as a plain value
    user_id = current_user.id
    # Without an index, a concurrent save may take the computed next index;
    # one retry recomputes it
    attempts = 2 if report_in.report_index is None else 1
    for attempt in range(1, attempts + 1):
        try:
            report, _ = await report_store.save_report(
                db,
                user_id,
                report_in.date,
                report_in.report_index,
                report_in.report,
            )
            break
        except IntegrityError:
            await db.rollback()
            if attempt == attempts:
                raise HTTPException(409, "同じ番号の日報が既に存在します。再読み込みしてください。")
            logger.info("Report index taken for user=%s date=%s, retrying", user_id, report_in.date)
    return report_store.to_record(report)


@router.delete("", response_model=ReportDeleteResponse)
async def delete_report(
    id: Optional[int] = None,
    user_id: Optional[int] = None,
    date: Optional[date] = None,
    report_index: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if id is not None:
        report = await report_store.get_report_by_id(db, id)
    elif user_id is not None and date is not None and report_index is not None:
        if user_id != current_user.id:
            raise HTTPException(403, "自分の日報のみ削除できます")
        report = await report_store.find_report(db, user_id, date, report_index)
    else:
        raise HTTPException(400, "id、または user_id・date・report_index を指定してください")

    if not report:
        raise HTTPException(404, "日報が見つかりません")
    if report.user_id != current_user.id:
        raise HTTPException(403, "自分の日報のみ削除できます")

    deleted = await report_store.delete_report(db, report)
    return ReportDeleteResponse(success=deleted > 0, deleted_count=deleted)


@router.post("/{user_id}/{report_date}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    user_id: int,
    report_date: date,
    feedback_in: FeedbackRequest,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    report = await report_store.find_report(db, user_id, report_date, feedback_in.report_index)
    if not report:
        raise HTTPException(404, "レポートが見つかりません")

    report = await report_store.apply_feedback(db, report, feedback_in)
    logger.info(
        "Admin %s reviewed report user=%s date=%s index=%s",
        admin.id, user_id, report_date, report.report_index,
    )
    return FeedbackResponse(
        message="フィードバックが保存されました",
        report=FeedbackReportSummary.model_validate(report),
    )
