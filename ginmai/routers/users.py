# User API: profile upsert, reliability, own connections and matches, blocks and reports

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ginmai.database import get_db
from ginmai.errors import Reason, Unauthorized
from ginmai.identity import require_user_id
from ginmai.routers.responses import unwrap
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.feedback import MatchOut
from ginmai.schemas.safety import BlockCreate, BlockedStatus, BlockOut, ReportCreate, ReportOut
from ginmai.schemas.user import ReliabilityOut, UserOut, UserUpsert
from ginmai.services import feedback_service, ledger_service, safety_service, user_service

router = APIRouter(prefix="/users", tags=["Users"])


class JoinedStatus(BaseModel):
    moment_id: int
    joined: bool


@router.put("/{user_id}", response_model=UserOut)
def put_user(
    user_id: int,
    body: UserUpsert,
    caller_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> UserOut:
    """Profile mirror for a verified identity. Users can only write their own row."""
    if caller_id != user_id:
        err = Unauthorized(Reason.NOT_OWNER, "You can only edit your own profile")
        raise HTTPException(status_code=err.status_code, detail=err.to_detail())
    return unwrap(user_service.upsert_user(db, user_id, body.first_name, body.push_token))


@router.get("/me/connections", response_model=List[ConnectionOut])
def get_my_connections(user_id: int = Depends(require_user_id), db: Session = Depends(get_db)) -> List[ConnectionOut]:
    return unwrap(ledger_service.list_user_connections(db, user_id))


@router.get("/me/connections/{moment_id}", response_model=JoinedStatus)
def get_my_connection(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> JoinedStatus:
    joined = unwrap(ledger_service.has_active_connection(db, user_id, moment_id))
    return JoinedStatus(moment_id=moment_id, joined=joined)


@router.get("/me/matches", response_model=List[MatchOut])
def get_my_matches(user_id: int = Depends(require_user_id), db: Session = Depends(get_db)) -> List[MatchOut]:
    return unwrap(feedback_service.list_matches(db, user_id))


@router.get("/me/blocks", response_model=List[BlockOut])
def get_my_blocks(user_id: int = Depends(require_user_id), db: Session = Depends(get_db)) -> List[BlockOut]:
    return unwrap(safety_service.list_blocks(db, user_id))


@router.post("/me/blocks", response_model=BlockOut)
def post_block(
    body: BlockCreate,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> BlockOut:
    """Block another user. Blocking someone already blocked returns the existing block."""
    return unwrap(safety_service.block_user(db, user_id, body.blocked_id))


@router.get("/me/blocks/{blocked_id}", response_model=BlockedStatus)
def get_block_status(
    blocked_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> BlockedStatus:
    return BlockedStatus(user_id=blocked_id, blocked=unwrap(safety_service.is_blocked(db, user_id, blocked_id)))


@router.delete("/me/blocks/{blocked_id}", response_model=BlockedStatus)
def delete_block(
    blocked_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> BlockedStatus:
    unwrap(safety_service.unblock_user(db, user_id, blocked_id))
    return BlockedStatus(user_id=blocked_id, blocked=False)


@router.get("/me/reports", response_model=List[ReportOut])
def get_my_reports(user_id: int = Depends(require_user_id), db: Session = Depends(get_db)) -> List[ReportOut]:
    return unwrap(safety_service.list_reports(db, user_id))


@router.post("/{reported_id}/report", response_model=ReportOut)
def post_report(
    reported_id: int,
    body: ReportCreate,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
) -> ReportOut:
    return unwrap(
        safety_service.submit_report(
            db, user_id, reported_id, body.category, moment_id=body.moment_id, description=body.description
        )
    )


@router.get("/{user_id}/reliability", response_model=ReliabilityOut)
def get_reliability(user_id: int, db: Session = Depends(get_db)) -> ReliabilityOut:
    return unwrap(user_service.get_reliability(db, user_id))
