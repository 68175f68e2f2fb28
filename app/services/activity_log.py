from datetime import date, datetime
from typing import Optional

from app.models.daily_log import DailyLog
from app.utils.dates import format_japanese_date

REPORT_LOG_CATEGORY = "documentation"


def report_log_description(project: str, report_date: date, created: bool) -> str:
    action = "作成" if created else "更新"
    return f"プロジェクト「{project}」の日報を{action}しました（{format_japanese_date(report_date)}）"


def build_report_log(
    user_id: int,
    report_date: date,
    project: str,
    created: bool,
    now: Optional[datetime] = None,
) -> DailyLog:
    """Activity-feed entry for a report save. The caller adds it to the
    same session as the report so both commit together."""
    now = now or datetime.now()
    stamp = now.strftime("%H:%M")
    return DailyLog(
        user_id=user_id,
        date=report_date,
        start_time=stamp,
        end_time=stamp,
        description=report_log_description(project, report_date, created),
        category=REPORT_LOG_CATEGORY,
        completed=True,
    )
