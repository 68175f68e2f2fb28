"""What a click on a calendar day opens.

Returns a dialog state value instead of touching any view; the caller
renders whatever variant comes back.
"""
from datetime import date
from typing import Optional

from app.schemas.calendar import CreateReport, DialogState, Notice, SelectOwner, SelectReport, ViewReport
from app.schemas.report import ReportCollection
from app.services.report_calendar import get_day_entry, report_owners, report_field
from app.services.report_store import next_report_index
from app.utils.dates import parse_date_string, today_local

ADMIN_READ_ONLY_MESSAGE = "管理者は閲覧のみ可能です。新規レポートの作成はできません。"
FUTURE_DATE_MESSAGE = "将来の日付の日報は作成できません"


def _open_owner(collection: ReportCollection, owner: int, date_string: str) -> DialogState:
    entries = get_day_entry(collection, owner, date_string)
    indices = [report_field(r, "report_index", 0) for r in entries]
    if len(entries) == 1:
        return ViewReport(date_string=date_string, user_id=owner, report_index=indices[0])
    return SelectReport(date_string=date_string, user_id=owner, report_indices=indices)


def resolve_new_report(
    collection: ReportCollection,
    date_string: str,
    *,
    viewer_id: int,
    is_admin: bool,
    today: Optional[date] = None,
) -> DialogState:
    """Creation form for ``date_string``, or the reason it is refused.

    Also used for "add another report on this day".
    """
    today = today or today_local()
    if is_admin:
        return Notice(date_string=date_string, message=ADMIN_READ_ONLY_MESSAGE)
    if parse_date_string(date_string) > today:
        return Notice(date_string=date_string, message=FUTURE_DATE_MESSAGE)
    existing = get_day_entry(collection, viewer_id, date_string)
    return CreateReport(
        date_string=date_string,
        user_id=viewer_id,
        report_index=next_report_index(report_field(r, "report_index", 0) for r in existing),
    )


def resolve_day_click(
    collection: ReportCollection,
    date_string: str,
    *,
    viewer_id: int,
    is_admin: bool,
    view_mode: str = "single",
    selected_member: Optional[int] = None,
    today: Optional[date] = None,
) -> DialogState:
    if view_mode == "single":
        member = selected_member if selected_member is not None else viewer_id
        owners = [member] if get_day_entry(collection, member, date_string) else []
    else:
        owners = report_owners(collection, date_string)

    if len(owners) == 1:
        return _open_owner(collection, owners[0], date_string)
    if len(owners) > 1:
        return SelectOwner(date_string=date_string, owners=owners)
    return resolve_new_report(
        collection, date_string, viewer_id=viewer_id, is_admin=is_admin, today=today
    )
