from pydantic import BaseModel, Field
from typing import List, Optional, Literal, Union, Annotated

ViewMode = Literal["single", "team"]

_frozen = {"frozen": True}


class ReportStats(BaseModel):
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0

    model_config = _frozen


class ReportMetrics(BaseModel):
    completed: int = 0
    in_progress: int = 0
    issues: int = 0
    tomorrow: int = 0

    model_config = _frozen


class DayCell(BaseModel):
    day: int
    date_string: str
    has_report: bool
    report_owners: List[int] = Field(default_factory=list)
    is_reviewed: bool = False
    reviewed_count: int = 0
    total_count: int = 0
    effective_status: Optional[str] = None
    effective_project: Optional[str] = None
    is_today: bool = False
    is_weekend: bool = False

    model_config = _frozen


class MonthGrid(BaseModel):
    year: int
    month: int
    title: str
    view_mode: ViewMode
    # Sunday-first weeks; None pads days outside the month
    weeks: List[List[Optional[DayCell]]]

    model_config = _frozen

    def cells(self) -> List[DayCell]:
        return [cell for week in self.weeks for cell in week if cell is not None]

    def cell(self, date_string: str) -> Optional[DayCell]:
        for cell in self.cells():
            if cell.date_string == date_string:
                return cell
        return None


# Dialog state produced by a calendar click

class ViewReport(BaseModel):
    kind: Literal["view_report"] = "view_report"
    date_string: str
    user_id: int
    report_index: int

    model_config = _frozen


class SelectOwner(BaseModel):
    kind: Literal["select_owner"] = "select_owner"
    date_string: str
    owners: List[int]

    model_config = _frozen


class SelectReport(BaseModel):
    kind: Literal["select_report"] = "select_report"
    date_string: str
    user_id: int
    report_indices: List[int]

    model_config = _frozen


class CreateReport(BaseModel):
    kind: Literal["create_report"] = "create_report"
    date_string: str
    user_id: int
    report_index: int

    model_config = _frozen


class Notice(BaseModel):
    kind: Literal["notice"] = "notice"
    date_string: str
    message: str

    model_config = _frozen


DialogState = Annotated[
    Union[ViewReport, SelectOwner, SelectReport, CreateReport, Notice],
    Field(discriminator="kind"),
]
