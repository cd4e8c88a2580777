from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from app.config import get_settings
from app.utils.security import (
    RmaSession,
    create_rma_session_token,
    require_rma_access,
    verify_rma_session_token,
)


def test_token_carries_rma_and_customer():
    token = create_rma_session_token("rma-1", customer_email="a@example.com", customer_id="C-1")
    session = verify_rma_session_token(token)
    assert session == RmaSession(rmaId="rma-1", customerEmail="a@example.com", customerId="C-1")


def test_expired_token_rejected():
    token = create_rma_session_token("rma-1", expires_delta=timedelta(seconds=-5))
    with pytest.raises(JWTError):
        verify_rma_session_token(token)


def test_token_without_rma_id_rejected():
    settings = get_settings()
    token = jwt.encode({"customerEmail": "a@example.com"}, settings.SESSION_SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)
    with pytest.raises(JWTError):
        verify_rma_session_token(token)


def test_access_limited_to_own_rma():
    session = RmaSession(rmaId="rma-1")
    require_rma_access("rma-1", session)
    with pytest.raises(HTTPException) as exc:
        require_rma_access("rma-2", session)
    assert exc.value.status_code == 403
