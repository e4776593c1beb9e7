from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

class RegisterReq(BaseModel):
    email: EmailStr
    password: str
    name: str = ""

class LoginReq(BaseModel):
    email: EmailStr
    password: str

class UserResp(BaseModel):
    id: int
    email: EmailStr
    name: str = ""
    role: str

class TokenResp(BaseModel):
    access_token: str
    token_type: str = "bearer"

class ClassroomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)

class JoinReq(BaseModel):
    code: str = Field(min_length=1, max_length=32)

class ClassroomOut(BaseModel):
    id: int
    code: str
    name: str
    created_at: datetime | None = None
    class Config: from_attributes = True

class MemberOut(BaseModel):
    user_id: int
    email: str
    name: str
    role: str
    joined_at: datetime | None = None
    class Config: from_attributes = True

class AssignmentOut(BaseModel):
    id: int
    classroom_id: int
    created_by_id: int
    title: str
    content: str | None = None
    due_date: datetime
    file_url: str
    solution_url: str | None = None
    created_at: datetime | None = None
    class Config: from_attributes = True

class SubmissionOut(BaseModel):
    id: int
    assignment_id: int
    submitted_by_id: int
    file_url: str
    submitted_at: datetime
    is_late: bool
    score: float | None = None
    grade: str | None = None
    feedback: str | None = None
    evaluated_at: datetime | None = None
    class Config: from_attributes = True

class ScoreReq(BaseModel):
    score: float = Field(ge=0, le=100)
    feedback: str | None = None

class EvaluationOut(BaseModel):
    score: float
    grade: str
    feedback: str | None = None
