# Local notification scheduler backed by the running asyncio loop

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from ginmai.models.base import as_utc, utc_now

log = logging.getLogger(__name__)


class LocalScheduler(Protocol):
    def schedule_at(self, when: datetime, title: str, body: str, data: Dict[str, Any]) -> str:
        ...

    def cancel(self, handle: str) -> None:
        ...


def _log_notification(title: str, body: str, data: Dict[str, Any]) -> None:
    log.info("notification: %s | %s", title, body)


class AsyncioScheduler:
    """
    schedule_at -> loop.call_later. Must be used from inside a running loop.
    on_fire receives (title, body, data) when the timer fires.
    """

    def __init__(
        self,
        on_fire: Callable[[str, str, Dict[str, Any]], None] = _log_notification,
        clock: Callable[[], datetime] = utc_now,
        loop=None,
    ):
        self.on_fire = on_fire
        self.clock = clock
        self.loop = loop
        self._timers: Dict[str, Any] = {}

    def _loop(self):
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    def schedule_at(self, when: datetime, title: str, body: str, data: Dict[str, Any]) -> str:
        handle = uuid.uuid4().hex
        delay = max((as_utc(when) - self.clock()).total_seconds(), 0.0)
        self._timers[handle] = self._loop().call_later(delay, self._fire, handle, title, body, data)
        return handle

    def _fire(self, handle: str, title: str, body: str, data: Dict[str, Any]) -> None:
        self._timers.pop(handle, None)
        try:
            self.on_fire(title, body, data)
        except Exception:
            log.exception("notification callback failed")

    def cancel(self, handle: str) -> None:
        timer: Optional[Any] = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()

    @property
    def pending(self) -> int:
        return len(self._timers)
