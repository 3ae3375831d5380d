# Safety: blocking other users and reporting them for review

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ginmai.crud import safety_crud
from ginmai.crud.user_crud import get_user
from ginmai.errors import Outcome
from ginmai.schemas.safety import BlockOut, ReportOut
from ginmai.services.transaction import run_in_transaction

log = logging.getLogger(__name__)


def block_user(db: Session, blocker_id: int, blocked_id: int) -> Outcome[BlockOut]:
    def op() -> Outcome[BlockOut]:
        block, created = safety_crud.block_user(db, blocker_id, blocked_id)
        if created:
            log.info("user %s blocked user %s", blocker_id, blocked_id)
        blocked = get_user(db, blocked_id)
        name = blocked.first_name if blocked is not None else "Unknown"
        return Outcome(
            value=BlockOut(id=block.id, blocked_id=block.blocked_id, first_name=name, created_at=block.created_at)
        )

    return run_in_transaction(db, op, "block_user")


def unblock_user(db: Session, blocker_id: int, blocked_id: int) -> Outcome[bool]:
    def op() -> Outcome[bool]:
        return Outcome(value=safety_crud.unblock_user(db, blocker_id, blocked_id))

    return run_in_transaction(db, op, "unblock_user")


def is_blocked(db: Session, blocker_id: int, blocked_id: int) -> Outcome[bool]:
    def op() -> Outcome[bool]:
        return Outcome(value=safety_crud.is_blocked(db, blocker_id, blocked_id))

    return run_in_transaction(db, op, "is_blocked")


def list_blocks(db: Session, blocker_id: int) -> Outcome[List[BlockOut]]:
    def op() -> Outcome[List[BlockOut]]:
        rows = safety_crud.list_blocks(db, blocker_id)
        return Outcome(
            value=[
                BlockOut(id=b.id, blocked_id=b.blocked_id, first_name=name, created_at=b.created_at)
                for b, name in rows
            ]
        )

    return run_in_transaction(db, op, "list_blocks")


def submit_report(
    db: Session,
    reporter_id: int,
    reported_user_id: int,
    category: str,
    moment_id: Optional[int] = None,
    description: Optional[str] = None,
) -> Outcome[ReportOut]:
    """File a report. It stays pending until staff review it."""

    def op() -> Outcome[ReportOut]:
        report = safety_crud.submit_report(
            db, reporter_id, reported_user_id, category, moment_id=moment_id, description=description
        )
        log.info("report %s filed against user %s (%s)", report.id, reported_user_id, category)
        return Outcome(value=ReportOut.model_validate(report))

    return run_in_transaction(db, op, "submit_report")


def list_reports(db: Session, reporter_id: int) -> Outcome[List[ReportOut]]:
    def op() -> Outcome[List[ReportOut]]:
        return Outcome(value=[ReportOut.model_validate(r) for r in safety_crud.list_reports(db, reporter_id)])

    return run_in_transaction(db, op, "list_reports")
