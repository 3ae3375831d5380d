# HTTP client for the GinMai API (what the mobile app does, in Python)

import logging
from typing import Any, Dict, List, Optional

import httpx

from ginmai.errors import (
    Conflict,
    DomainError,
    ErrorKind,
    NotFound,
    Outcome,
    Reason,
    StoreUnavailable,
    Unauthorized,
    ValidationFailed,
)
from ginmai.identity import USER_ID_HEADER
from ginmai.schemas.connection import ConnectionOut, GuestOut
from ginmai.schemas.moment import MomentOut

log = logging.getLogger(__name__)

_ERRORS_BY_KIND = {
    ErrorKind.VALIDATION.value: ValidationFailed,
    ErrorKind.NOT_FOUND.value: NotFound,
    ErrorKind.CONFLICT.value: Conflict,
    ErrorKind.UNAUTHORIZED.value: Unauthorized,
}


def _error_from_response(resp: httpx.Response) -> DomainError:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, dict) and detail.get("reason"):
        cls = _ERRORS_BY_KIND.get(detail.get("kind"), DomainError)
        try:
            reason = Reason(detail["reason"])
        except ValueError:
            reason = Reason.INVALID_INPUT
        return cls(reason, detail.get("message") or reason.value)
    # request validation (422) and anything unexpected
    return ValidationFailed(Reason.INVALID_INPUT, f"HTTP {resp.status_code}")


class GinMaiClient:
    """
    Thin async wrapper. Expected failures come back as a failed Outcome with
    the server's reason; an unreachable server raises StoreUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        user_id: Optional[int] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {USER_ID_HEADER: str(user_id)} if user_id is not None else {}
        self.user_id = user_id
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GinMaiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as e:
            raise StoreUnavailable(f"{method} {path}: {e}") from e
        if resp.status_code == 503:
            raise StoreUnavailable(f"{method} {path}: HTTP 503")
        return resp

    async def _outcome(self, method: str, path: str, parse, **kwargs) -> Outcome:
        resp = await self._call(method, path, **kwargs)
        if resp.is_success:
            return Outcome(value=parse(resp.json()))
        return Outcome.fail(_error_from_response(resp))

    # --- moments ---

    async def list_active(
        self,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_km: Optional[float] = None,
        include_full: bool = False,
    ) -> Outcome[List[MomentOut]]:
        params: Dict[str, Any] = {"include_full": include_full}
        if lat is not None and lng is not None:
            params.update(lat=lat, lng=lng)
        if radius_km is not None:
            params["radius_km"] = radius_km
        return await self._outcome(
            "GET", "/moments", lambda data: [MomentOut.model_validate(m) for m in data], params=params
        )

    async def get_moment(self, moment_id: int) -> Outcome[MomentOut]:
        return await self._outcome("GET", f"/moments/{moment_id}", MomentOut.model_validate)

    async def create_moment(self, **fields) -> Outcome[MomentOut]:
        return await self._outcome("POST", "/moments", MomentOut.model_validate, json=fields)

    async def _post_join(self, moment_id: int) -> Outcome[MomentOut]:
        return await self._outcome(
            "POST", f"/moments/{moment_id}/join", lambda data: MomentOut.model_validate(data["moment"])
        )

    async def join_moment(self, moment_id: int) -> Outcome[MomentOut]:
        """
        Join with timeout reconciliation: a timed-out request may still have
        committed, so the connection is looked up before retrying once.
        already_joined on that retry means the first attempt went through.
        """
        try:
            return await self._post_join(moment_id)
        except httpx.TimeoutException:
            log.warning("join %s timed out, reconciling", moment_id)

        try:
            joined = await self.is_joined(moment_id)
            if joined.ok and joined.value:
                return await self.get_moment(moment_id)
            outcome = await self._post_join(moment_id)
        except httpx.TimeoutException as e:
            raise StoreUnavailable(f"join {moment_id}: timed out twice") from e

        if outcome.reason == Reason.ALREADY_JOINED:
            return await self.get_moment(moment_id)
        return outcome

    async def leave_moment(self, moment_id: int) -> Outcome[MomentOut]:
        return await self._outcome(
            "DELETE", f"/moments/{moment_id}/leave", lambda data: MomentOut.model_validate(data["moment"])
        )

    async def list_guests(self, moment_id: int) -> Outcome[List[GuestOut]]:
        return await self._outcome(
            "GET", f"/moments/{moment_id}/guests", lambda data: [GuestOut.model_validate(g) for g in data]
        )

    # --- ledger ---

    async def my_connections(self) -> Outcome[List[ConnectionOut]]:
        return await self._outcome(
            "GET", "/users/me/connections", lambda data: [ConnectionOut.model_validate(c) for c in data]
        )

    async def is_joined(self, moment_id: int) -> Outcome[bool]:
        return await self._outcome("GET", f"/users/me/connections/{moment_id}", lambda data: bool(data["joined"]))

    # --- realtime ---

    def stream(self, path: str):
        """Open an SSE stream (async context manager yielding the response)."""
        return self._client.stream("GET", path, timeout=httpx.Timeout(10.0, read=None))
