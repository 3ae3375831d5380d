# "Your meal starts soon" reminders for the moments a user is tied to
#
# At most one pending reminder per moment, fired REMINDER_LEAD_MIN before
# starts_at. Scheduling is housekeeping: failures are logged, never raised.

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from ginmai.client.scheduler import LocalScheduler
from ginmai.config import REMINDER_LEAD_MIN, REMINDER_MIN_DELAY_SEC
from ginmai.models.base import as_utc, utc_now
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.moment import MomentOut

log = logging.getLogger(__name__)

SEATED = ("confirmed", "arrived")
CLOSED = ("cancelled", "completed")


@dataclass
class PendingReminder:
    moment_id: int
    handle: str
    fire_at: datetime


class ReminderScheduler:
    def __init__(
        self,
        user_id: int,
        scheduler: LocalScheduler,
        clock: Callable[[], datetime] = utc_now,
        lead: timedelta = timedelta(minutes=REMINDER_LEAD_MIN),
        min_delay: timedelta = timedelta(seconds=REMINDER_MIN_DELAY_SEC),
    ):
        self.user_id = user_id
        self.scheduler = scheduler
        self.clock = clock
        self.lead = lead
        self.min_delay = min_delay
        self._pending: Dict[int, PendingReminder] = {}

    def _wants_reminder(self, moment: MomentOut, seated_ids: set) -> bool:
        if moment.status in CLOSED:
            return False
        if as_utc(moment.starts_at) <= self.clock():
            return False
        return moment.host_id == self.user_id or moment.id in seated_ids

    def schedule(self, moment: MomentOut) -> bool:
        """
        Schedule (or move) the reminder for one moment. Returns False when it
        is too late to bother or the scheduler failed.
        """
        fire_at = as_utc(moment.starts_at) - self.lead
        if fire_at - self.clock() <= self.min_delay:
            self.cancel(moment.id)
            return False

        current = self._pending.get(moment.id)
        if current is not None and current.fire_at == fire_at:
            return True
        self.cancel(moment.id)

        place = moment.place_name or moment.area_name or "your spot"
        minutes = int(self.lead.total_seconds() // 60)
        try:
            handle = self.scheduler.schedule_at(
                fire_at,
                "Your meal starts soon",
                f"Your lunch at {place} starts in {minutes} minutes. Running late?",
                {"type": "running_late_reminder", "momentId": moment.id},
            )
        except Exception:
            log.exception("reminder scheduling failed for moment %s", moment.id)
            return False
        self._pending[moment.id] = PendingReminder(moment.id, handle, fire_at)
        return True

    def cancel(self, moment_id: int) -> None:
        pending = self._pending.pop(moment_id, None)
        if pending is None:
            return
        try:
            self.scheduler.cancel(pending.handle)
        except Exception:
            log.exception("reminder cancel failed for moment %s", moment_id)

    def sync(self, moments: Iterable[MomentOut], connections: Iterable[ConnectionOut]) -> List[int]:
        """
        Bring pending reminders in line with the user's hosted and joined moments.
        Reminders for moments no longer of interest are cancelled.
        Returns the moment ids that have a pending reminder afterwards.
        """
        seated_ids = {c.moment_id for c in connections if c.status in SEATED}
        wanted = [m for m in moments if self._wants_reminder(m, seated_ids)]
        wanted_ids = {m.id for m in wanted}

        for moment_id in list(self._pending):
            if moment_id not in wanted_ids:
                self.cancel(moment_id)
        for moment in wanted:
            self.schedule(moment)
        return sorted(self._pending)

    def clear(self) -> None:
        """Logout / unmount."""
        for moment_id in list(self._pending):
            self.cancel(moment_id)

    def pending_for(self, moment_id: int) -> Optional[PendingReminder]:
        return self._pending.get(moment_id)
