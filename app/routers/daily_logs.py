from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.auth import get_current_user
from app.models.daily_log import DailyLog
from app.schemas.daily_log import DailyLogResponse

router = APIRouter(prefix="/daily-logs", tags=["daily-logs"])


@router.get("", response_model=List[DailyLogResponse])
async def get_daily_logs(
    log_date: Optional[date] = Query(None, alias="date"),
    category: Optional[str] = None,
    user_id: Optional[int] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """
    Activity feed. Staff see their own entries; admins may pass user_id,
    or omit it to see everyone's.
    """
    query = select(DailyLog)

    if current_user.role == "admin":
        if user_id is not None:
            query = query.where(DailyLog.user_id == user_id)
    else:
        if user_id is not None and user_id != current_user.id:
            raise HTTPException(403, "自分のログのみ閲覧できます")
        query = query.where(DailyLog.user_id == current_user.id)

    if log_date:
        query = query.where(DailyLog.date == log_date)
    if category and category != "all":
        query = query.where(DailyLog.category == category)

    query = query.order_by(DailyLog.date.desc(), DailyLog.created_at.desc(), DailyLog.id.desc())
    if limit:
        query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
