from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from ....infrastructure.db import get_db
from ....infrastructure.rate_limit import limiter
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher, create_access_token, decode_token
from ....application.use_cases.register_user import RegisterUser
from ....interfaces.http.schemas import RegisterReq, LoginReq, UserResp, TokenResp
from ....infrastructure.models import UserORM
from ....config import settings

router = APIRouter(prefix="/api/auth", tags=["auth"])
bearer = HTTPBearer()

@router.post("/register", response_model=UserResp, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
def register(
    request: Request,
    payload: RegisterReq,
    db: Session = Depends(get_db),
):
    uc = RegisterUser(repo=UserRepository(db), hasher=PasswordHasher())
    try:
        user = uc.execute(payload.email, payload.password, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UserResp(id=user.id, email=user.email, name=user.name, role=user.role)

# brute-force protection: stricter than the global limit
@router.post("/login", response_model=TokenResp)
@limiter.limit("10/minute")
def login(
    request: Request,
    payload: LoginReq,
    db: Session = Depends(get_db),
):
    row = db.query(UserORM).filter(UserORM.email == payload.email).first()
    if not row or not row.is_active or not PasswordHasher().verify(payload.password, row.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(sub=row.email, role=row.role)
    return TokenResp(access_token=token)


@router.get("/me", response_model=UserResp)
def me(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
):
    try:
        email = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    row = db.query(UserORM).filter(UserORM.email == email).first()
    if not row:
        raise HTTPException(status_code=401, detail="User not found")
    return UserResp(id=row.id, email=row.email, name=row.name or "", role=row.role)
