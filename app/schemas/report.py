import logging
from datetime import datetime, date
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

logger = logging.getLogger(__name__)

ReportStatus = Literal["completed", "pending", "overdue"]
REPORT_STATUSES = ("completed", "pending", "overdue")


class DailyReportFields(BaseModel):
    """Content a user fills in on the daily report form."""
    completed: List[str] = Field(default_factory=list)
    in_progress: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    tomorrow: List[str] = Field(default_factory=list)
    project: str = Field(..., min_length=1, description="Project display name")
    project_id: Optional[str] = None
    task_ids: List[str] = Field(default_factory=list)
    status: ReportStatus = "completed"
    user_feedback: Optional[str] = None


class ReportSaveRequest(BaseModel):
    user_id: int
    date: date
    report_index: Optional[int] = Field(None, ge=0)
    report: DailyReportFields


class DailyReportRecord(BaseModel):
    """One persisted report as it travels over the wire.

    Defaults are lenient: older rows may predate optional
    fields and must still load.
    """
    id: Optional[int] = None
    user_id: int
    date: date
    report_index: int = 0
    completed: List[str] = Field(default_factory=list)
    in_progress: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    tomorrow: List[str] = Field(default_factory=list)
    project: str = ""
    project_id: Optional[str] = None
    task_ids: List[str] = Field(default_factory=list)
    status: str = "pending"
    user_feedback: Optional[str] = None
    admin_feedback: Optional[str] = None
    admin_reviewed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator(
        "id", "report_index", "completed", "in_progress", "issues", "tomorrow",
        "project", "project_id", "task_ids", "status", "user_feedback",
        "admin_feedback", "admin_reviewed", "created_at", "updated_at",
        mode="wrap",
    )
    @classmethod
    def _default_when_invalid(cls, value, handler, info: ValidationInfo):
        # A null or wrongly typed field falls back to its default; the
        # report itself is kept
        try:
            return handler(value)
        except ValidationError:
            logger.debug("Invalid %s %r in report, using default", info.field_name, value)
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)


# user_id -> "YYYY-MM-DD" -> reports ordered by report_index
MemberReports = Dict[str, List[DailyReportRecord]]
ReportCollection = Dict[int, MemberReports]


class ReportDeleteResponse(BaseModel):
    success: bool
    deleted_count: int


class FeedbackRequest(BaseModel):
    admin_feedback: str
    admin_reviewed: bool = True
    report_index: Optional[int] = Field(None, ge=0)


class FeedbackReportSummary(BaseModel):
    id: int
    date: date
    report_index: int
    admin_feedback: Optional[str]
    admin_reviewed: bool

    model_config = {"from_attributes": True}


class FeedbackResponse(BaseModel):
    message: str
    report: FeedbackReportSummary
