import json

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, UniqueConstraint, func
from app.database import Base

class DailyReport(Base):
    __tablename__ = "daily_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Calendar date only; a timestamp here shifts days across timezones
    date = Column(Date, nullable=False)
    report_index = Column(Integer, nullable=False, default=0)

    # List fields are stored as JSON arrays of strings
    completed = Column(Text, nullable=False, default="[]")
    in_progress = Column(Text, nullable=False, default="[]")
    issues = Column(Text, nullable=False, default="[]")
    tomorrow = Column(Text, nullable=False, default="[]")
    task_ids = Column(Text, nullable=False, default="[]")

    project = Column(String, nullable=False, default="")
    project_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="completed")  # completed, pending, overdue

    user_feedback = Column(Text, nullable=True)
    admin_feedback = Column(Text, nullable=True)
    admin_reviewed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "date", "report_index", name="uq_report_user_date_index"),
    )

    LIST_FIELDS = ("completed", "in_progress", "issues", "tomorrow", "task_ids")

    def get_list(self, field: str) -> list:
        raw = getattr(self, field)
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            return []
        return value if isinstance(value, list) else []

    def set_list(self, field: str, values) -> None:
        setattr(self, field, json.dumps(list(values or []), ensure_ascii=False))
