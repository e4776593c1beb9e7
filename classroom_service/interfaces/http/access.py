from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ...domain.entities import TEACHER
from ...infrastructure.metrics import db_queries_total
from ...infrastructure.models import Classroom, User, UserClassroom


def require_member(db: Session, classroom_id: int, email: str) -> tuple[User, UserClassroom]:
    """Return the requester and their membership, or raise 404/403."""
    db_queries_total.inc()
    row = (
        db.query(User, UserClassroom)
        .join(UserClassroom, UserClassroom.user_id == User.id)
        .filter(User.email == email, UserClassroom.classroom_id == classroom_id)
        .first()
    )
    if row is None:
        if db.get(Classroom, classroom_id) is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "classroom not found")
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not a member of this classroom")
    return row[0], row[1]


def require_teacher(db: Session, classroom_id: int, email: str) -> tuple[User, UserClassroom]:
    user, membership = require_member(db, classroom_id, email)
    if membership.role != TEACHER:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Teacher required")
    return user, membership
