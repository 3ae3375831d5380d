# Safety CRUD: user blocks and reports

from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ginmai.crud.moment_crud import require_moment
from ginmai.crud.user_crud import require_user
from ginmai.errors import Reason, ValidationFailed
from ginmai.models.block import Block
from ginmai.models.report import Report, ReportCategory, ReportStatus
from ginmai.models.user import User

CATEGORIES = {c.value for c in ReportCategory}
DESCRIPTION_MAX_LEN = 1000


def _find_block(db: Session, blocker_id: int, blocked_id: int) -> Optional[Block]:
    return db.query(Block).filter(Block.blocker_id == blocker_id, Block.blocked_id == blocked_id).first()


def block_user(db: Session, blocker_id: int, blocked_id: int) -> Tuple[Block, bool]:
    """Returns (block, created). Blocking someone twice keeps the first row."""
    if blocker_id == blocked_id:
        raise ValidationFailed(Reason.INVALID_INPUT, "You can't block yourself")
    require_user(db, blocked_id)

    existing = _find_block(db, blocker_id, blocked_id)
    if existing is not None:
        return existing, False

    block = Block(blocker_id=blocker_id, blocked_id=blocked_id)
    try:
        with db.begin_nested():
            db.add(block)
    except IntegrityError:
        # same block written concurrently
        return _find_block(db, blocker_id, blocked_id), False
    return block, True


def unblock_user(db: Session, blocker_id: int, blocked_id: int) -> bool:
    """True when a block was removed. Unblocking someone not blocked is a no-op."""
    removed = (
        db.query(Block)
        .filter(Block.blocker_id == blocker_id, Block.blocked_id == blocked_id)
        .delete(synchronize_session=False)
    )
    db.flush()
    return removed > 0


def is_blocked(db: Session, blocker_id: int, blocked_id: int) -> bool:
    return _find_block(db, blocker_id, blocked_id) is not None


def list_blocks(db: Session, blocker_id: int) -> List[Tuple[Block, str]]:
    """(block, blocked user's first name), newest first."""
    rows = (
        db.query(Block, User.first_name)
        .outerjoin(User, User.id == Block.blocked_id)
        .filter(Block.blocker_id == blocker_id)
        .order_by(Block.created_at.desc(), Block.id.desc())
        .all()
    )
    return [(block, name or "Unknown") for block, name in rows]


def submit_report(
    db: Session,
    reporter_id: int,
    reported_user_id: int,
    category: str,
    moment_id: Optional[int] = None,
    description: Optional[str] = None,
) -> Report:
    """New reports start pending. The moment, when given, must exist."""
    if category not in CATEGORIES:
        raise ValidationFailed(Reason.INVALID_INPUT, f"Unknown report category: {category}")
    if reporter_id == reported_user_id:
        raise ValidationFailed(Reason.INVALID_INPUT, "You can't report yourself")
    if description is not None and len(description) > DESCRIPTION_MAX_LEN:
        raise ValidationFailed(Reason.INVALID_INPUT, "Description is too long")
    require_user(db, reported_user_id)
    if moment_id is not None:
        require_moment(db, moment_id)

    report = Report(
        reporter_id=reporter_id,
        reported_user_id=reported_user_id,
        moment_id=moment_id,
        category=category,
        description=(description or "").strip() or None,
        status=ReportStatus.PENDING.value,
    )
    db.add(report)
    db.flush()
    return report


def list_reports(db: Session, reporter_id: int) -> List[Report]:
    """Reports the user filed, newest first."""
    return (
        db.query(Report)
        .filter(Report.reporter_id == reporter_id)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .all()
    )
