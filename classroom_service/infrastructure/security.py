from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from ..config import settings

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__truncate_error=False,
)

class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool: return pwd.verify(plain, hashed)

def create_access_token(sub: str, role: str = "student", minutes: int | None = None) -> str:
    """Sign a token whose subject is the user's email."""
    lifetime = timedelta(minutes=minutes or settings.ACCESS_TOKEN_MINUTES)
    payload = {"sub": sub, "role": role, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_claims(token: str) -> dict:
    """Verify signature and expiry; raise JWTError otherwise."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def decode_token(token: str) -> str:
    sub = decode_claims(token).get("sub")
    if not sub:
        raise JWTError("No subject")
    return sub
