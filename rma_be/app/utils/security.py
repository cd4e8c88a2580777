from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials, HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
import logging
import secrets
import uuid

from jose import jwt, JWTError

from app.config import get_settings

logger = logging.getLogger(__name__)

http_basic = HTTPBasic()
http_bearer = HTTPBearer(auto_error=False)


class RmaSession(BaseModel):
    rmaId: str
    customerEmail: Optional[str] = None
    customerId: Optional[str] = None


# ===== Customer session token =====
def create_rma_session_token(
    rma_id: str,
    customer_email: Optional[str] = None,
    customer_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.SESSION_TTL_MINUTES))
    payload = {
        "rmaId": rma_id,
        "customerEmail": customer_email,
        "customerId": customer_id,
        "exp": expire,
        "iat": now,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.SESSION_SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)


def verify_rma_session_token(token: str) -> RmaSession:
    settings = get_settings()
    payload = jwt.decode(token, settings.SESSION_SECRET_KEY, algorithms=[settings.SESSION_ALGORITHM])
    if not payload.get("rmaId"):
        raise JWTError("rmaId missing from session token")
    return RmaSession(
        rmaId=payload["rmaId"],
        customerEmail=payload.get("customerEmail"),
        customerId=payload.get("customerId"),
    )


def get_rma_session(token: HTTPAuthorizationCredentials = Depends(http_bearer)) -> RmaSession:
    if not token or not token.credentials:
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")
    try:
        return verify_rma_session_token(token.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session token")


def require_rma_access(rma_id: str, session: RmaSession) -> None:
    if session.rmaId != rma_id:
        raise HTTPException(status_code=403, detail="Access denied")


# ===== Admin console =====
def get_current_admin(credentials: HTTPBasicCredentials = Depends(http_basic)) -> str:
    settings = get_settings()
    if not settings.ADMIN_PASSWORD:
        logger.warning("Admin request rejected: ADMIN_PASSWORD is not configured")
        raise HTTPException(status_code=403, detail="Admin access disabled")
    user_ok = secrets.compare_digest(credentials.username.encode(), settings.ADMIN_USERNAME.encode())
    pass_ok = secrets.compare_digest(credentials.password.encode(), settings.ADMIN_PASSWORD.encode())
    if not (user_ok and pass_ok):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})
    return credentials.username
