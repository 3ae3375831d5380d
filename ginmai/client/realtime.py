# Realtime session: SSE subscriptions feeding MomentView / GuestRoster
#
# Missed events are never replayed, so every (re)connect waits for the
# stream's "ready" frame and then replaces local state with a fresh snapshot.

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from ginmai.client.api import GinMaiClient
from ginmai.client.views import GuestEvent, GuestRoster, MomentView
from ginmai.errors import StoreUnavailable

log = logging.getLogger(__name__)

RECONNECT_DELAY_SEC = 2.0


@dataclass
class SSEMessage:
    event: str
    data: str

    def json(self) -> Dict[str, Any]:
        return json.loads(self.data) if self.data else {}


class SSEDecoder:
    """Line-by-line text/event-stream decoder. Comment lines (heartbeats) are dropped."""

    def __init__(self):
        self._event = "message"
        self._data: List[str] = []

    def feed(self, line: str) -> Optional[SSEMessage]:
        line = line.rstrip("\r")
        if line == "":
            if not self._data and self._event == "message":
                return None
            msg = SSEMessage(self._event, "\n".join(self._data))
            self._event, self._data = "message", []
            return msg
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None


class RealtimeSession:
    """
    Session-scoped realtime state. One moments subscription for the whole
    session, plus at most one connections subscription (the moment the host
    is watching). Use as `async with RealtimeSession(api) as rt: ...`.
    """

    def __init__(
        self,
        api: GinMaiClient,
        moments: Optional[MomentView] = None,
        on_guest_event: Optional[Callable[[GuestEvent], None]] = None,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
    ):
        self.api = api
        self.moments = moments or MomentView()
        self.on_guest_event = on_guest_event
        self.reconnect_delay = reconnect_delay
        self.roster: Optional[GuestRoster] = None
        self._moments_task: Optional[asyncio.Task] = None
        self._roster_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "RealtimeSession":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def open(self) -> None:
        if self._moments_task is None:
            self._moments_task = asyncio.create_task(self._run("/moments/stream", self._resync_moments, self._on_moment))

    async def watch_moment(
        self, moment_id: int, resolve_name: Optional[Callable[[int], Optional[str]]] = None
    ) -> GuestRoster:
        """Switch the host view to another moment; the previous subscription is closed first."""
        await self.unwatch()
        self.roster = GuestRoster(moment_id, resolve_name=resolve_name)
        self._roster_task = asyncio.create_task(
            self._run(f"/moments/{moment_id}/connections/stream", self._resync_roster, self._on_connection)
        )
        return self.roster

    async def unwatch(self) -> None:
        await self._stop(self._roster_task)
        self._roster_task = None
        self.roster = None

    async def close(self) -> None:
        await self.unwatch()
        await self._stop(self._moments_task)
        self._moments_task = None

    @staticmethod
    async def _stop(task: Optional[asyncio.Task]) -> None:
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # --- snapshot + apply ---

    async def _resync_moments(self) -> None:
        outcome = await self.api.list_active(include_full=self.moments.include_full)
        if outcome.ok:
            self.moments.replace_all(outcome.value)

    async def _resync_roster(self) -> None:
        roster = self.roster
        if roster is None:
            return
        outcome = await self.api.list_guests(roster.moment_id)
        if outcome.ok:
            roster.replace_all(outcome.value)

    def _on_moment(self, change: Dict[str, Any]) -> None:
        self.moments.apply(change)

    def _on_connection(self, change: Dict[str, Any]) -> None:
        if self.roster is None:
            return
        event = self.roster.apply(change)
        if event is not None and self.on_guest_event is not None:
            self.on_guest_event(event)

    async def _consume(self, path: str, resync, apply) -> None:
        decoder = SSEDecoder()
        async with self.api.stream(path) as resp:
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                msg = decoder.feed(line)
                if msg is None:
                    continue
                if msg.event == "ready":
                    await resync()
                elif msg.event == "change":
                    try:
                        apply(msg.json())
                    except Exception:
                        log.warning("bad change event on %s", path, exc_info=True)

    async def _run(self, path: str, resync, apply) -> None:
        while True:
            try:
                await self._consume(path, resync, apply)
            except (httpx.HTTPError, StoreUnavailable):
                log.warning("realtime stream %s dropped, reconnecting", path, exc_info=True)
            except Exception:
                log.exception("realtime stream %s failed, reconnecting", path)
            await asyncio.sleep(self.reconnect_delay)
