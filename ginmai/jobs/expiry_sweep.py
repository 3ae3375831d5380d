# Optional background sweep: rewrite expired active/full moments to completed
#
# Listings already exclude expired moments at query time. The sweep settles the
# stored status and credits each host a hosted meal.
# Enabled with EXPIRY_SWEEP_ENABLED=1 (started from main.py).
#
#   one-off:  asyncio.run(expire_once())
#   loop:     start_expiry_sweep_loop() inside a running event loop

import asyncio
import logging
from typing import List, Optional

from ginmai.config import EXPIRY_SWEEP_INTERVAL_SEC
from ginmai.database import SessionLocal
from ginmai.errors import StoreUnavailable
from ginmai.realtime.pubsub import ChangePublisher, get_publisher
from ginmai.services import moment_service

log = logging.getLogger(__name__)


async def expire_once(session_factory=SessionLocal, publisher: Optional[ChangePublisher] = None) -> List[int]:
    """One pass: commit the rewrite, then publish the UPDATE events."""
    with session_factory() as db:
        outcome = moment_service.expire(db)
    if outcome.changes:
        await (publisher or get_publisher()).publish(outcome.changes)
    log.info("expiry sweep: %d moment(s) completed", len(outcome.value or []))
    return outcome.value or []


async def _loop(interval_sec: float) -> None:
    while True:
        try:
            await expire_once()
        except StoreUnavailable:
            log.warning("expiry sweep skipped: store unavailable")
        except Exception:
            log.exception("expiry sweep iteration failed")
        await asyncio.sleep(interval_sec)


def start_expiry_sweep_loop(interval_sec: float = EXPIRY_SWEEP_INTERVAL_SEC) -> Optional[asyncio.Task]:
    """Schedule the sweep on the running loop (FastAPI startup). No loop -> no-op."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.create_task(_loop(interval_sec))
