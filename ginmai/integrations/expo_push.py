# Expo push notification transport (fire-and-forget, best effort)

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import httpx

from ginmai.config import EXPO_PUSH_ENDPOINT

log = logging.getLogger(__name__)


@dataclass
class PushMessage:
    to: str  # Expo push token
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "sound": "default",
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "priority": "high",
            "channelId": "default",
        }


# --- templates (type values match what the mobile app routes on) ---

def guest_joined(token: str, guest_name: str, moment_id: int) -> PushMessage:
    return PushMessage(
        to=token,
        title="New guest! 🎉",
        body=f"{guest_name} wants to join your lunch",
        data={"type": "guest_joined", "momentId": moment_id, "guestName": guest_name},
    )


def guest_cancelled(token: str, guest_name: str, moment_id: int) -> PushMessage:
    return PushMessage(
        to=token,
        title="Guest cancelled",
        body=f"{guest_name} can't make it anymore",
        data={"type": "guest_cancelled", "momentId": moment_id, "guestName": guest_name},
    )


def guest_arrived(token: str, guest_name: str, moment_id: int) -> PushMessage:
    return PushMessage(
        to=token,
        title="Guest arrived!",
        body=f"{guest_name} is here",
        data={"type": "guest_arrived", "momentId": moment_id, "guestName": guest_name},
    )


def guest_running_late(token: str, guest_name: str, moment_id: int) -> PushMessage:
    return PushMessage(
        to=token,
        title="Running late",
        body=f"{guest_name} is running a few minutes late",
        data={"type": "guest_running_late", "momentId": moment_id, "guestName": guest_name},
    )


def eat_again_match(token: str, matched_user_name: str) -> PushMessage:
    return PushMessage(
        to=token,
        title="You matched! 🎉",
        body=f"You and {matched_user_name} want to eat again!",
        data={"type": "eat_again_match"},
    )


class ExpoPushSender:
    """POSTs to the Expo push API. Never raises: failures are logged and reported as False."""

    def __init__(self, endpoint: str = EXPO_PUSH_ENDPOINT, client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint
        self.client = client

    async def _post(self, client: httpx.AsyncClient, message: PushMessage) -> bool:
        resp = await client.post(
            self.endpoint,
            json=message.to_payload(),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )
        if resp.status_code != 200:
            log.warning("push rejected (HTTP %s) type=%s", resp.status_code, message.data.get("type"))
            return False
        return True

    async def send(self, message: PushMessage) -> bool:
        try:
            if self.client is not None:
                return await self._post(self.client, message)
            async with httpx.AsyncClient(timeout=10.0) as client:
                return await self._post(client, message)
        except Exception:
            log.warning("push send failed type=%s", message.data.get("type"), exc_info=True)
            return False

    async def send_all(self, messages: Iterable[PushMessage]) -> int:
        sent = 0
        for message in messages:
            if await self.send(message):
                sent += 1
        return sent


push_sender = ExpoPushSender()


def get_push_sender() -> ExpoPushSender:
    """FastAPI dependency; tests override it."""
    return push_sender
