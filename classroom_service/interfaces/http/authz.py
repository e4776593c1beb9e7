from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from ...infrastructure.security import decode_claims

bearer = HTTPBearer()
optional_bearer = HTTPBearer(auto_error=False)

def _claims_or_401(token: str) -> dict:
    try:
        return decode_claims(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def get_claims(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    return _claims_or_401(creds.credentials)

def get_user_email(claims: dict = Depends(get_claims)) -> str:
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return sub

def get_optional_email(
    creds: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> str | None:
    # No header means anonymous; the membership service decides whether that is allowed.
    if creds is None:
        return None
    return _claims_or_401(creds.credentials).get("sub") or None
