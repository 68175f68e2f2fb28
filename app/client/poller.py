"""Periodic background refresh for a page that shows reports."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from app.client.errors import ReportClientError
from app.config import settings

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 30.0
MAX_INTERVAL_SECONDS = 300.0


class ReportPoller:
    """Calls ``refresh`` every ``interval`` seconds until stopped.

    Client errors are logged and handed to ``on_error``; any other error is
    logged with its traceback. Either way the loop keeps going. After
    ``stop`` returns, neither callback fires again.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any]],
        *,
        interval: Optional[float] = None,
        on_update: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[ReportClientError], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        interval = settings.REPORTS_POLL_INTERVAL_SECONDS if interval is None else interval
        if not MIN_INTERVAL_SECONDS <= interval <= MAX_INTERVAL_SECONDS:
            raise ValueError(
                f"poll interval must be between {MIN_INTERVAL_SECONDS:.0f}s and {MAX_INTERVAL_SECONDS:.0f}s"
            )
        self.interval = interval
        self._refresh = refresh
        self._on_update = on_update
        self._on_error = on_error
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while not self._stopped:
            await self._sleep(self.interval)
            if self._stopped:
                break
            logger.debug("Auto-refreshing reports")
            try:
                result = await self._refresh()
            except ReportClientError as exc:
                logger.warning("Auto-refresh failed: %s", exc)
                if self._on_error is not None and not self._stopped:
                    self._on_error(exc)
                continue
            except Exception:
                logger.exception("Auto-refresh raised an unexpected error")
                continue
            if self._on_update is not None and not self._stopped:
                self._on_update(result)

    async def __aenter__(self) -> "ReportPoller":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
