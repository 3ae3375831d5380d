# Identity provider boundary: the app trusts the opaque user id it issued

from typing import Optional

from fastapi import Header, HTTPException

from ginmai.errors import Reason, Unauthorized

USER_ID_HEADER = "X-User-Id"


def require_user_id(x_user_id: Optional[int] = Header(default=None, alias=USER_ID_HEADER)) -> int:
    if x_user_id is None:
        err = Unauthorized(Reason.UNAUTHENTICATED, "Sign in first")
        raise HTTPException(status_code=err.status_code, detail=err.to_detail())
    return x_user_id
