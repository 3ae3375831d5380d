# Local state fed by the change feed: the nearby moments list and a host's guest roster
#
# The feed may redeliver or reorder events, so both views remember the last
# updated_at seen per row (removed rows included) and drop anything not newer.

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ginmai.models.base import as_utc, utc_now
from ginmai.realtime.pubsub import DELETE, INSERT, UPDATE
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.moment import MomentOut

log = logging.getLogger(__name__)

GUEST_FALLBACK_NAME = "Guest"


def _is_newer(incoming: Optional[datetime], seen: Optional[datetime]) -> bool:
    """Strictly newer than the last version seen. Unseen rows always pass."""
    if seen is None:
        return True
    if incoming is None:
        return False
    return as_utc(incoming) > as_utc(seen)


def _is_older(snapshot: Optional[datetime], seen: Optional[datetime]) -> bool:
    if snapshot is None or seen is None:
        return False
    return as_utc(snapshot) < as_utc(seen)


class MomentView:
    """Active, unexpired moments keyed by id."""

    def __init__(self, include_full: bool = False, clock: Callable[[], datetime] = utc_now):
        self.include_full = include_full
        self.clock = clock
        self._moments: Dict[int, MomentOut] = {}
        # last updated_at per id, kept after the row leaves the view
        self._seen: Dict[int, Optional[datetime]] = {}
        self._deleted: Set[int] = set()

    def _visible(self, moment: MomentOut) -> bool:
        statuses = ("active", "full") if self.include_full else ("active",)
        return moment.status in statuses and not moment.is_expired(self.clock())

    def replace_all(self, moments: Iterable[MomentOut]) -> None:
        """
        Fresh snapshot after (re)connect. A row already seen in a newer version
        (an event that raced the snapshot request) keeps that version.
        """
        fresh: Dict[int, MomentOut] = {}
        for m in moments:
            if m.id in self._deleted:
                continue
            if _is_older(m.updated_at, self._seen.get(m.id)):
                held = self._moments.get(m.id)
                if held is not None:
                    fresh[m.id] = held
                continue
            self._seen[m.id] = m.updated_at
            if self._visible(m):
                fresh[m.id] = m
        self._moments = fresh

    def apply(self, change: Dict[str, Any]) -> None:
        change_type = change.get("type")
        if change_type == DELETE:
            old = change.get("old") or {}
            if "id" in old:
                self._deleted.add(old["id"])
                self._moments.pop(old["id"], None)
            return
        if change_type not in (INSERT, UPDATE):
            log.debug("ignoring change type %r", change_type)
            return

        record = change.get("record")
        if record is None:
            return
        moment = MomentOut.model_validate(record)
        if moment.id in self._deleted:
            return
        # redelivered or late: the version we already saw wins
        if not _is_newer(moment.updated_at, self._seen.get(moment.id)):
            return

        self._seen[moment.id] = moment.updated_at
        if self._visible(moment):
            self._moments[moment.id] = moment
        else:
            self._moments.pop(moment.id, None)

    def get(self, moment_id: int) -> Optional[MomentOut]:
        return self._moments.get(moment_id)

    def snapshot(self) -> List[MomentOut]:
        """Visible moments, soonest first. Entries that expired since they arrived are dropped."""
        visible = [m for m in self._moments.values() if self._visible(m)]
        return sorted(visible, key=lambda m: (m.starts_at, m.id))

    def __len__(self) -> int:
        return len(self._moments)


@dataclass
class GuestEvent:
    kind: str  # "joined" | "cancelled"
    moment_id: int
    user_id: int
    name: str


class GuestRoster:
    """
    One moment's guests from the host's side. Turns connection changes into
    joined / cancelled events, at most one per transition.
    """

    def __init__(self, moment_id: int, resolve_name: Optional[Callable[[int], Optional[str]]] = None):
        self.moment_id = moment_id
        self.resolve_name = resolve_name
        self._names: Dict[int, str] = {}
        self._status: Dict[int, str] = {}
        self._updated: Dict[int, Optional[datetime]] = {}

    def _name_for(self, user_id: int) -> str:
        if user_id in self._names:
            return self._names[user_id]
        name = None
        if self.resolve_name is not None:
            try:
                name = self.resolve_name(user_id)
            except Exception:
                log.warning("guest name lookup failed for user %s", user_id, exc_info=True)
        name = name or GUEST_FALLBACK_NAME
        self._names[user_id] = name
        return name

    def replace_all(self, guests: Iterable[Any]) -> None:
        """
        Snapshot of seated guests (GuestOut rows) after (re)connect. Seen
        timestamps are kept, so events older than the snapshot stay quiet.
        """
        previous = self._status
        self._status = {}
        for g in guests:
            self._names[g.user_id] = g.first_name
            seen = self._updated.get(g.user_id)
            if _is_older(g.updated_at, seen):
                # a newer change already arrived for this guest
                self._status[g.user_id] = previous.get(g.user_id, g.status)
                continue
            self._status[g.user_id] = g.status
            self._updated[g.user_id] = g.updated_at
        for user_id, status in previous.items():
            # cancelled after the snapshot was taken
            if user_id not in self._status and status == "cancelled":
                self._status[user_id] = status

    def apply(self, change: Dict[str, Any]) -> Optional[GuestEvent]:
        if change.get("type") not in (INSERT, UPDATE):
            return None
        record = change.get("record")
        if record is None:
            return None
        conn = ConnectionOut.model_validate(record)
        if conn.moment_id != self.moment_id:
            return None
        if not _is_newer(conn.updated_at, self._updated.get(conn.user_id)):
            return None

        previous = self._status.get(conn.user_id)
        self._status[conn.user_id] = conn.status
        self._updated[conn.user_id] = conn.updated_at

        if conn.status == "confirmed" and previous not in ("confirmed", "arrived"):
            return GuestEvent("joined", self.moment_id, conn.user_id, self._name_for(conn.user_id))
        if conn.status == "cancelled" and previous != "cancelled":
            name = self._names.get(conn.user_id, GUEST_FALLBACK_NAME)
            return GuestEvent("cancelled", self.moment_id, conn.user_id, name)
        return None

    def seated(self) -> List[int]:
        return [uid for uid, status in self._status.items() if status in ("confirmed", "arrived")]
