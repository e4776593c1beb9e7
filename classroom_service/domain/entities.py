from dataclasses import dataclass
from datetime import datetime

TEACHER = "teacher"
STUDENT = "student"


@dataclass(frozen=True)
class User:
    id: int | None
    email: str
    name: str = ""
    role: str = "student"


@dataclass(frozen=True)
class Classroom:
    id: int | None
    code: str
    name: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Membership:
    id: int | None
    user_id: int
    classroom_id: int
    role: str = STUDENT
    joined_at: datetime | None = None


@dataclass(frozen=True)
class Member:
    user_id: int
    email: str
    name: str
    role: str
    joined_at: datetime | None = None
