"""Async client for the /reports API.

Fetches come back as a ``ReportCollection`` (user_id -> date -> list of
reports). Loads through ``load_reports`` are cached for a short TTL; every
write clears the cache before the request goes out and again when it
returns.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

import httpx
import pydantic

from app.client.cache import ReportCache
from app.client.errors import NetworkError, ReportClientError, ValidationError, error_from_response
from app.config import settings
from app.schemas.report import (
    DailyReportFields,
    DailyReportRecord,
    FeedbackRequest,
    FeedbackResponse,
    ReportCollection,
    ReportDeleteResponse,
    ReportSaveRequest,
)
from app.services.report_store import normalize_collection
from app.utils.dates import format_date_string, parse_date_string

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date_string(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"日付の形式が正しくありません: {value!r}") from exc


class ReportClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ReportCache] = None,
        timeout: float = 10.0,
    ):
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL, timeout=timeout
        )
        self.cache = cache or ReportCache()
        self.last_failed_user_ids: List[int] = []

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ReportClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise NetworkError(str(exc)) from exc
        if response.is_error:
            error = error_from_response(response)
            logger.warning("%s %s -> %s %s", method, url, response.status_code, error.detail)
            raise error
        try:
            return response.json()
        except ValueError as exc:
            raise ReportClientError("サーバーの応答を解析できませんでした", status_code=response.status_code) from exc

    # -- reads --------------------------------------------------------------

    async def fetch_reports_for_user(self, user_id: int) -> ReportCollection:
        """One user's reports; ``{}`` when the user has none."""
        payload = await self._request("GET", "/reports", params={"user_id": user_id})
        if not isinstance(payload, Mapping):
            raise ReportClientError("サーバーの応答形式が正しくありません")
        return {uid: member for uid, member in normalize_collection(payload).items() if member}

    async def fetch_reports_for_admin(self, user_ids: Iterable[int]) -> ReportCollection:
        """Reports of every given user, fetched concurrently.

        A failed user is logged and listed in ``last_failed_user_ids``; the
        rest are still returned. Raises only when every user failed.
        """
        ids = list(dict.fromkeys(user_ids))
        results = await asyncio.gather(
            *(self.fetch_reports_for_user(uid) for uid in ids),
            return_exceptions=True,
        )
        merged: ReportCollection = {}
        failures = []
        for uid, result in zip(ids, results):
            if isinstance(result, ReportClientError):
                logger.warning("Could not fetch reports for user %s: %s", uid, result)
                failures.append((uid, result))
            elif isinstance(result, Exception):
                logger.error("Unexpected error fetching reports for user %s", uid, exc_info=result)
                error = ReportClientError(f"{type(result).__name__}: {result}")
                error.__cause__ = result
                failures.append((uid, error))
            elif isinstance(result, BaseException):
                raise result
            else:
                merged.update(result)
        self.last_failed_user_ids = [uid for uid, _ in failures]
        if ids and len(failures) == len(ids):
            raise failures[0][1]
        return merged

    async def load_reports(
        self,
        current_user_id: int,
        is_admin: bool = False,
        member_ids: Iterable[int] = (),
    ) -> ReportCollection:
        """Cached load for the reports page: own reports, plus every member's
        for admins."""
        key = ("reports", is_admin, current_user_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached reports for %s", key)
            return cached

        generation = self.cache.generation
        if is_admin:
            collection = await self.fetch_reports_for_admin([current_user_id, *member_ids])
        else:
            collection = await self.fetch_reports_for_user(current_user_id)
        self.cache.set(key, collection, generation=generation)
        return collection

    async def refresh_reports(
        self,
        current_user_id: int,
        is_admin: bool = False,
        member_ids: Iterable[int] = (),
    ) -> ReportCollection:
        self.cache.invalidate()
        return await self.load_reports(current_user_id, is_admin, member_ids)

    # -- writes -------------------------------------------------------------

    async def _mutate(self, method: str, url: str, **kwargs) -> Any:
        self.cache.invalidate()
        try:
            return await self._request(method, url, **kwargs)
        finally:
            self.cache.invalidate()

    async def save_report(
        self,
        user_id: int,
        report_date: DateLike,
        report: Union[DailyReportFields, Mapping],
        report_index: Optional[int] = None,
    ) -> DailyReportRecord:
        """Create or update a report. Without ``report_index`` the server
        appends a new report at the next free index."""
        try:
            body = ReportSaveRequest(
                user_id=user_id,
                date=_as_date(report_date),
                report_index=report_index,
                report=report if isinstance(report, DailyReportFields) else DailyReportFields.model_validate(report),
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(str(exc)) from exc
        payload = await self._mutate("POST", "/reports", json=body.model_dump(mode="json"))
        return DailyReportRecord.model_validate(payload)

    async def delete_report(self, user_id: int, report_date: DateLike, report_index: int) -> int:
        params = {
            "user_id": user_id,
            "date": format_date_string(_as_date(report_date)),
            "report_index": report_index,
        }
        payload = await self._mutate("DELETE", "/reports", params=params)
        return ReportDeleteResponse.model_validate(payload).deleted_count

    async def delete_report_by_id(self, report_id: int) -> int:
        payload = await self._mutate("DELETE", "/reports", params={"id": report_id})
        return ReportDeleteResponse.model_validate(payload).deleted_count

    async def submit_feedback(
        self,
        user_id: int,
        report_date: DateLike,
        admin_feedback: str,
        admin_reviewed: bool = True,
        report_index: Optional[int] = None,
    ) -> FeedbackResponse:
        body = FeedbackRequest(
            admin_feedback=admin_feedback,
            admin_reviewed=admin_reviewed,
            report_index=report_index,
        )
        date_string = format_date_string(_as_date(report_date))
        payload = await self._mutate(
            "POST",
            f"/reports/{user_id}/{date_string}/feedback",
            json=body.model_dump(mode="json"),
        )
        return FeedbackResponse.model_validate(payload)
