"""Report client against a mocked transport."""

from __future__ import annotations

from typing import Callable, List

import httpx
import pytest

from app.client.cache import ReportCache
from app.client.errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ReportClientError,
    ValidationError,
    describe_error,
)
from app.client.report_client import ReportClient

REPORT = {"report_index": 0, "project": "Oasis", "status": "completed", "admin_reviewed": False}


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> ReportClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")
    return ReportClient(token="t0ken", http_client=http_client, **kwargs)


def reports_handler(payloads: dict, calls: List[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.method == "GET":
            user_id = request.url.params["user_id"]
            status, body = payloads[user_id]
            return httpx.Response(status, json=body)
        return httpx.Response(200, json={"success": True, "deleted_count": 1})
    return handler


class TestFetch:
    async def test_user_without_reports_is_empty(self) -> None:
        calls = []
        client = make_client(reports_handler({"5": (200, {"5": {}})}, calls))
        assert await client.fetch_reports_for_user(5) == {}
        assert calls[0].headers["Authorization"] == "Bearer t0ken"

    async def test_single_object_becomes_list(self) -> None:
        client = make_client(reports_handler({"1": (200, {"1": {"2024-05-01": REPORT}})}, []))
        collection = await client.fetch_reports_for_user(1)
        entries = collection[1]["2024-05-01"]
        assert isinstance(entries, list)
        assert entries[0].project == "Oasis"

    async def test_admin_fetch_survives_partial_failure(self) -> None:
        payloads = {
            "1": (200, {"1": {"2024-05-01": [REPORT]}}),
            "2": (500, {"detail": "boom"}),
            "3": (200, {"3": {"2024-05-02": [REPORT]}}),
        }
        client = make_client(reports_handler(payloads, []))
        collection = await client.fetch_reports_for_admin([1, 2, 3])
        assert set(collection) == {1, 3}
        assert client.last_failed_user_ids == [2]

    async def test_admin_fetch_raises_when_everyone_fails(self) -> None:
        payloads = {"1": (403, {"detail": "no"}), "2": (403, {"detail": "no"})}
        client = make_client(reports_handler(payloads, []))
        with pytest.raises(PermissionDeniedError):
            await client.fetch_reports_for_admin([1, 2])
        assert client.last_failed_user_ids == [1, 2]

    async def test_admin_fetch_survives_malformed_member_payload(self) -> None:
        payloads = {
            "1": (200, {"1": {"2024-05-01": [REPORT]}}),
            "2": (200, {"2": ["not", "a", "mapping"]}),
        }
        client = make_client(reports_handler(payloads, []))
        collection = await client.fetch_reports_for_admin([1, 2])
        assert list(collection) == [1]
        assert len(collection[1]["2024-05-01"]) == 1
        assert client.last_failed_user_ids == []

    async def test_admin_fetch_counts_unexpected_errors_as_failures(self, monkeypatch) -> None:
        client = make_client(reports_handler({"1": (200, {"1": {"2024-05-01": [REPORT]}})}, []))
        fetch_one = client.fetch_reports_for_user

        async def flaky_fetch(user_id):
            if user_id == 2:
                raise AttributeError("broken payload")
            return await fetch_one(user_id)

        monkeypatch.setattr(client, "fetch_reports_for_user", flaky_fetch)
        collection = await client.fetch_reports_for_admin([1, 2])
        assert list(collection) == [1]
        assert client.last_failed_user_ids == [2]

    async def test_unexpected_errors_everywhere_raise_a_client_error(self, monkeypatch) -> None:
        client = make_client(reports_handler({}, []))

        async def broken_fetch(user_id):
            raise KeyError(user_id)

        monkeypatch.setattr(client, "fetch_reports_for_user", broken_fetch)
        with pytest.raises(ReportClientError) as info:
            await client.fetch_reports_for_admin([1, 2])
        assert isinstance(info.value.__cause__, KeyError)
        assert client.last_failed_user_ids == [1, 2]


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, error_class",
        [
            (400, ValidationError),
            (401, AuthenticationError),
            (403, PermissionDeniedError),
            (404, NotFoundError),
            (409, ValidationError),
            (422, ValidationError),
            (503, NetworkError),
            (418, ReportClientError),
        ],
    )
    async def test_status_codes(self, status, error_class) -> None:
        client = make_client(lambda request: httpx.Response(status, json={"detail": "詳細"}))
        with pytest.raises(error_class) as info:
            await client.fetch_reports_for_user(1)
        assert info.value.status_code == status
        assert info.value.detail == "詳細"

    async def test_non_json_error_body(self) -> None:
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(NetworkError) as info:
            await client.fetch_reports_for_user(1)
        assert info.value.detail == "Bad Gateway"

    async def test_transport_failure_is_retryable(self) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(NetworkError) as info:
            await client.fetch_reports_for_user(1)
        assert info.value.retryable is True
        assert describe_error(info.value) == NetworkError.user_message

    def test_describe_unknown_exception(self) -> None:
        assert describe_error(RuntimeError("x")) == ReportClientError.user_message


class TestCaching:
    async def test_load_is_cached_until_a_write(self) -> None:
        calls = []
        client = make_client(reports_handler({"1": (200, {"1": {"2024-05-01": [REPORT]}})}, calls))

        first = await client.load_reports(1)
        second = await client.load_reports(1)
        assert first is second
        assert len([c for c in calls if c.method == "GET"]) == 1

        await client.delete_report(1, "2024-05-01", 0)
        assert len(client.cache) == 0

        await client.load_reports(1)
        assert len([c for c in calls if c.method == "GET"]) == 2

    async def test_admin_and_staff_keys_differ(self) -> None:
        calls = []
        client = make_client(reports_handler({
            "1": (200, {"1": {}}),
            "2": (200, {"2": {"2024-05-01": [REPORT]}}),
        }, calls))
        assert await client.load_reports(1) == {}
        admin_view = await client.load_reports(1, is_admin=True, member_ids=[2])
        assert set(admin_view) == {2}
        assert len(client.cache) == 2

    async def test_fetch_overlapping_a_write_is_not_cached(self) -> None:
        cache = ReportCache(ttl=60)

        def handler(request):
            # a write lands while this read is in flight
            cache.invalidate()
            return httpx.Response(200, json={"1": {"2024-05-01": [REPORT]}})

        client = make_client(handler, cache=cache)
        collection = await client.load_reports(1)
        assert 1 in collection
        assert len(cache) == 0

    async def test_refresh_bypasses_cache(self) -> None:
        calls = []
        client = make_client(reports_handler({"1": (200, {"1": {}})}, calls))
        await client.load_reports(1)
        await client.refresh_reports(1)
        assert len(calls) == 2

    async def test_failed_write_still_invalidates(self) -> None:
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"1": {}})
            return httpx.Response(404, json={"detail": "日報が見つかりません"})

        client = make_client(handler)
        await client.load_reports(1)
        with pytest.raises(NotFoundError):
            await client.delete_report_by_id(99)
        assert len(client.cache) == 0


class TestLocalValidation:
    async def test_missing_project_never_hits_the_server(self) -> None:
        calls = []
        client = make_client(reports_handler({}, calls))
        with pytest.raises(ValidationError):
            await client.save_report(1, "2024-05-01", {"completed": ["x"], "project": ""})
        assert calls == []

    async def test_bad_date_string(self) -> None:
        client = make_client(reports_handler({}, []))
        with pytest.raises(ValidationError):
            await client.delete_report(1, "05/01/2024", 0)
