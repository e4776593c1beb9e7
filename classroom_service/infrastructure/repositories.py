from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import ClassroomORM, UserClassroomORM, UserORM
from ..domain import entities
from ..domain.errors import MembershipConflictError
from ..application.use_cases.membership import (
    IClassroomRepository,
    IMembershipRepository,
    IUnitOfWork,
    IUserRepository,
)
from ..application.use_cases.register_user import IUserAccountRepository


def to_domain(u: UserORM) -> entities.User:
    return entities.User(id=u.id, email=u.email, name=u.name or "", role=u.role)


def classroom_to_domain(c: ClassroomORM) -> entities.Classroom:
    return entities.Classroom(id=c.id, code=c.code, name=c.name, created_at=c.created_at)


def membership_to_domain(m: UserClassroomORM) -> entities.Membership:
    return entities.Membership(
        id=m.id, user_id=m.user_id, classroom_id=m.classroom_id, role=m.role, joined_at=m.joined_at
    )


class UserRepository(IUserRepository, IUserAccountRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_email(self, email: str) -> entities.User | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return to_domain(row) if row else None

    def create(self, email: str, password_hash: str, name: str = "", role: str = "student") -> entities.User:
        row = UserORM(email=email, password_hash=password_hash, name=name, role=role)
        self.db.add(row); self.db.commit(); self.db.refresh(row)
        return to_domain(row)


class ClassroomRepository(IClassroomRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_code(self, code: str) -> entities.Classroom | None:
        row = self.db.query(ClassroomORM).filter(ClassroomORM.code == code).first()
        return classroom_to_domain(row) if row else None

    def get(self, classroom_id: int) -> entities.Classroom | None:
        row = self.db.get(ClassroomORM, classroom_id)
        return classroom_to_domain(row) if row else None

    def add(self, code: str, name: str) -> entities.Classroom:
        row = ClassroomORM(code=code, name=name)
        self.db.add(row); self.db.flush()
        return classroom_to_domain(row)

    def list_for_user(self, user_id: int) -> list[entities.Classroom]:
        rows = (
            self.db.query(ClassroomORM)
            .join(UserClassroomORM, UserClassroomORM.classroom_id == ClassroomORM.id)
            .filter(UserClassroomORM.user_id == user_id)
            .order_by(UserClassroomORM.joined_at, ClassroomORM.id)
            .all()
        )
        return [classroom_to_domain(r) for r in rows]


class MembershipRepository(IMembershipRepository):
    def __init__(self, db: Session): self.db = db

    def get(self, user_id: int, classroom_id: int) -> entities.Membership | None:
        row = (
            self.db.query(UserClassroomORM)
            .filter(UserClassroomORM.user_id == user_id, UserClassroomORM.classroom_id == classroom_id)
            .first()
        )
        return membership_to_domain(row) if row else None

    def add(self, user_id: int, classroom_id: int, role: str = entities.STUDENT) -> entities.Membership:
        row = UserClassroomORM(user_id=user_id, classroom_id=classroom_id, role=role)
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            # concurrent join of the same pair hit uq_user_classroom
            raise MembershipConflictError() from e
        return membership_to_domain(row)

    def list_members(self, classroom_id: int) -> list[entities.Member]:
        rows = (
            self.db.query(UserClassroomORM, UserORM)
            .join(UserORM, UserORM.id == UserClassroomORM.user_id)
            .filter(UserClassroomORM.classroom_id == classroom_id)
            .order_by(UserClassroomORM.joined_at, UserClassroomORM.id)
            .all()
        )
        return [
            entities.Member(user_id=u.id, email=u.email, name=u.name or "", role=m.role, joined_at=m.joined_at)
            for m, u in rows
        ]


class SqlUnitOfWork(IUnitOfWork):
    def __init__(self, db: Session): self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
