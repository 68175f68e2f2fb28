# app/client/errors.py
from typing import Optional

import httpx


class ReportClientError(Exception):
    """Base for every failure the report client surfaces.

    ``user_message`` is the Japanese text shown to the user; ``detail`` keeps
    whatever the server said, for logs.
    """
    user_message = "日報の処理中にエラーが発生しました"
    retryable = False

    def __init__(self, detail: Optional[str] = None, *, status_code: Optional[int] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        self.status_code = status_code


class NetworkError(ReportClientError):
    user_message = "サーバーに接続できませんでした。時間をおいて再試行してください。"
    retryable = True


class AuthenticationError(ReportClientError):
    user_message = "ログインが必要です"


class PermissionDeniedError(ReportClientError):
    user_message = "この操作を行う権限がありません"


class NotFoundError(ReportClientError):
    user_message = "日報が見つかりません"


class ValidationError(ReportClientError):
    user_message = "入力内容に誤りがあります。必須項目を確認してください。"


_STATUS_ERRORS = {
    400: ValidationError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ValidationError,
    422: ValidationError,
}


def error_from_response(response: httpx.Response) -> ReportClientError:
    try:
        body = response.json()
        detail = body.get("detail") if isinstance(body, dict) else None
    except ValueError:
        detail = response.text or None
    if detail is not None and not isinstance(detail, str):
        detail = str(detail)
    if response.status_code >= 500:
        error_class = NetworkError
    else:
        error_class = _STATUS_ERRORS.get(response.status_code, ReportClientError)
    return error_class(detail, status_code=response.status_code)


def describe_error(exc: BaseException) -> str:
    """Japanese message for any exception reaching a call site."""
    if isinstance(exc, ReportClientError):
        return exc.user_message
    return ReportClientError.user_message
