import secrets
import string
from typing import Callable

import structlog

from ...domain.entities import Classroom, Member, Membership, User, STUDENT, TEACHER
from ...domain.errors import (
    ClassroomNotFoundError,
    CodeAllocationError,
    MembershipConflictError,
    UnauthenticatedError,
    UserNotFoundError,
)

logger = structlog.get_logger()

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 5


def generate_classroom_code(length: int = 7) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class IClassroomRepository:
    def get_by_code(self, code: str) -> Classroom | None: ...
    def add(self, code: str, name: str) -> Classroom: ...
    def list_for_user(self, user_id: int) -> list[Classroom]: ...


class IUserRepository:
    def get_by_email(self, email: str) -> User | None: ...


class IMembershipRepository:
    def get(self, user_id: int, classroom_id: int) -> Membership | None: ...
    def add(self, user_id: int, classroom_id: int, role: str = STUDENT) -> Membership: ...
    def list_members(self, classroom_id: int) -> list[Member]: ...


class IUnitOfWork:
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class MembershipService:
    """Creates classrooms and admits users into them.

    Lookups on the repositories return ``None`` on a miss; the service turns
    each miss into the matching domain error. ``create_class`` stores the
    classroom and the creator's membership in a single unit of work.
    """

    def __init__(
        self,
        classrooms: IClassroomRepository,
        users: IUserRepository,
        memberships: IMembershipRepository,
        uow: IUnitOfWork,
        code_factory: Callable[[], str] = generate_classroom_code,
    ):
        self.classrooms = classrooms
        self.users = users
        self.memberships = memberships
        self.uow = uow
        self.code_factory = code_factory

    def create_class(self, name: str, requester_email: str | None) -> Classroom:
        try:
            classroom = self.classrooms.add(self._allocate_code(), name)
            self._join(classroom.code, requester_email, TEACHER)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise
        logger.info("classroom_created", classroom_id=classroom.id, code=classroom.code)
        return classroom

    def join_class(self, code: str, requester_email: str | None) -> Classroom:
        try:
            classroom = self._join(code, requester_email, STUDENT)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise
        return classroom

    def list_classrooms(self, requester_email: str | None) -> list[Classroom]:
        user = self._require_user(requester_email)
        return self.classrooms.list_for_user(user.id)

    def list_members(self, classroom_id: int) -> list[Member]:
        return self.memberships.list_members(classroom_id)

    def _join(self, code: str, requester_email: str | None, role: str) -> Classroom:
        # Deliberately ahead of the code lookup: an anonymous caller is
        # unauthenticated whatever code it sends.
        if not requester_email:
            raise UnauthenticatedError()
        classroom = self.classrooms.get_by_code(code)
        if classroom is None:
            raise ClassroomNotFoundError(code)
        user = self._require_user(requester_email)
        if self.memberships.get(user.id, classroom.id) is not None:
            raise MembershipConflictError()
        self.memberships.add(user.id, classroom.id, role)
        logger.info("member_joined", classroom_id=classroom.id, user_id=user.id, role=role)
        return classroom

    def _require_user(self, email: str | None) -> User:
        if not email:
            raise UnauthenticatedError()
        user = self.users.get_by_email(email)
        if user is None:
            raise UserNotFoundError(email)
        return user

    def _allocate_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self.code_factory()
            if self.classrooms.get_by_code(code) is None:
                return code
        raise CodeAllocationError(MAX_CODE_ATTEMPTS)
