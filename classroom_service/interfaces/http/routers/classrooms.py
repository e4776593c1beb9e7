from functools import partial

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.membership import MembershipService, generate_classroom_code
from ....config import settings
from ....domain.entities import STUDENT, TEACHER
from ....infrastructure.cache import get_cache, set_cache, delete_cache_pattern
from ....infrastructure.db import get_db
from ....infrastructure.metrics import cache_hits_total, cache_misses_total, db_queries_total, memberships_created_total
from ....infrastructure.repositories import (
    ClassroomRepository,
    MembershipRepository,
    SqlUnitOfWork,
    UserRepository,
)
from ..access import require_member
from ..authz import get_optional_email, get_user_email
from ..schemas import ClassroomCreate, ClassroomOut, JoinReq, MemberOut

router = APIRouter(prefix="/api/classrooms", tags=["classrooms"])


def get_membership_service(db: Session = Depends(get_db)) -> MembershipService:
    return MembershipService(
        classrooms=ClassroomRepository(db),
        users=UserRepository(db),
        memberships=MembershipRepository(db),
        uow=SqlUnitOfWork(db),
        code_factory=partial(generate_classroom_code, settings.CLASSROOM_CODE_LENGTH),
    )


def _my_classrooms_key(email: str) -> str:
    return f"user:{email}:classrooms"


@router.post("", response_model=ClassroomOut, status_code=status.HTTP_201_CREATED)
def create_classroom(payload: ClassroomCreate,
                     email: str | None = Depends(get_optional_email),
                     service: MembershipService = Depends(get_membership_service)):
    classroom = service.create_class(payload.name, email)
    memberships_created_total.labels(role=TEACHER).inc()
    delete_cache_pattern(_my_classrooms_key(email))
    return classroom

@router.post("/join", response_model=ClassroomOut)
def join_classroom(payload: JoinReq,
                   email: str | None = Depends(get_optional_email),
                   service: MembershipService = Depends(get_membership_service)):
    classroom = service.join_class(payload.code.strip(), email)
    memberships_created_total.labels(role=STUDENT).inc()
    delete_cache_pattern(_my_classrooms_key(email))
    delete_cache_pattern(f"classroom:{classroom.id}:members")
    return classroom

@router.get("", response_model=list[ClassroomOut])
def my_classrooms(email: str = Depends(get_user_email),
                  service: MembershipService = Depends(get_membership_service)):
    cache_key = _my_classrooms_key(email)
    cached = get_cache(cache_key)
    if cached:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    db_queries_total.inc()
    result = [ClassroomOut.model_validate(c) for c in service.list_classrooms(email)]
    set_cache(cache_key, [r.model_dump(mode="json") for r in result])
    return result

@router.get("/{classroom_id}", response_model=ClassroomOut)
def get_classroom(classroom_id: int,
                  email: str = Depends(get_user_email),
                  db: Session = Depends(get_db)):
    require_member(db, classroom_id, email)
    return ClassroomRepository(db).get(classroom_id)

@router.get("/{classroom_id}/members", response_model=list[MemberOut])
def classroom_members(classroom_id: int,
                      email: str = Depends(get_user_email),
                      db: Session = Depends(get_db),
                      service: MembershipService = Depends(get_membership_service)):
    require_member(db, classroom_id, email)
    cache_key = f"classroom:{classroom_id}:members"
    cached = get_cache(cache_key)
    if cached:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    db_queries_total.inc()
    result = [MemberOut.model_validate(m) for m in service.list_members(classroom_id)]
    set_cache(cache_key, [r.model_dump(mode="json") for r in result])
    return result
