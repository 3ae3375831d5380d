# Change feed: Redis Pub/Sub publish + SSE relay
# Every committed mutation becomes a row change event {table, type, record, old, ts}
# moments -> one global channel, connections -> one channel per moment

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Iterable, Optional

import redis.asyncio as redis

from ginmai.config import REDIS_URL
from ginmai.models.connection import Connection
from ginmai.models.moment import Moment
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.moment import MomentOut

log = logging.getLogger(__name__)

MOMENTS_CHANNEL = "moments:changes"
CHANNEL_PREFIX = "moment:"
CHANNEL_SUFFIX_CONNECTIONS = ":connections"
HEARTBEAT_INTERVAL = 15.0

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


def connections_channel(moment_id: int) -> str:
    return f"{CHANNEL_PREFIX}{moment_id}{CHANNEL_SUFFIX_CONNECTIONS}"


@dataclass
class ChangeEvent:
    table: str
    type: str
    record: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def channel(self) -> str:
        if self.table == "connections":
            row = self.record or self.old or {}
            return connections_channel(row["moment_id"])
        return MOMENTS_CHANNEL

    def to_json(self) -> str:
        return json.dumps(
            {"table": self.table, "type": self.type, "record": self.record, "old": self.old, "ts": self.ts},
            ensure_ascii=False,
        )


def moment_change(change_type: str, moment: Moment) -> ChangeEvent:
    """Serialize the moment through MomentOut so subscribers see the API shape."""
    record = MomentOut.model_validate(moment).model_dump(mode="json")
    if change_type == DELETE:
        return ChangeEvent(table="moments", type=DELETE, old=record)
    return ChangeEvent(table="moments", type=change_type, record=record)


def connection_change(change_type: str, connection: Connection) -> ChangeEvent:
    record = ConnectionOut.model_validate(connection).model_dump(mode="json")
    if change_type == DELETE:
        return ChangeEvent(table="connections", type=DELETE, old=record)
    return ChangeEvent(table="connections", type=change_type, record=record)


class ChangePublisher:
    """Publishes change events after commit. Redis being down never fails the mutation."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    async def publish(self, events: Iterable[ChangeEvent]) -> int:
        sent = 0
        for ev in events:
            try:
                await self.client.publish(ev.channel, ev.to_json())
                sent += 1
            except Exception:
                log.warning("realtime publish failed: %s %s on %s", ev.table, ev.type, ev.channel, exc_info=True)
        return sent


# one client for the module (no new connection per request)
redis_client = redis.from_url(REDIS_URL, decode_responses=True)
publisher = ChangePublisher(redis_client)


def get_publisher() -> ChangePublisher:
    """FastAPI dependency; tests override it."""
    return publisher


async def stream_changes(*channels: str) -> AsyncGenerator[str, None]:
    """
    SSE relay for GET /moments/stream and GET /moments/{id}/connections/stream.

    Long-lived connection: heartbeats keep proxies from closing it, and clients
    re-fetch a snapshot after any reconnect since missed events are not replayed.
    """
    pubsub = redis_client.pubsub()
    try:
        await pubsub.subscribe(*channels)
        last_heartbeat = datetime.now(timezone.utc).timestamp()
        yield "event: ready\ndata: {}\n\n"

        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            now = datetime.now(timezone.utc).timestamp()
            if now - last_heartbeat >= HEARTBEAT_INTERVAL:
                yield ": ping\n\n"
                last_heartbeat = now
            if message and message.get("type") == "message":
                data = message.get("data") or ""
                yield f"event: change\ndata: {data}\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.unsubscribe(*channels)
        await pubsub.close()
