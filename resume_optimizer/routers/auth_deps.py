"""
Authentication dependencies.
Resolves the bearer token to an active user; ownership checks live in the services.
"""
import logging
from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from resume_optimizer.core.exceptions import AuthenticationError
from resume_optimizer.database import get_db
from resume_optimizer.models.user import User
from resume_optimizer.services import auth as auth_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Query(default=None, include_in_schema=False),
    db: Session = Depends(get_db),
) -> User:
    """
    Extracts and validates the current user from the JWT token.
    EventSource clients cannot set headers, so the token may also arrive as ?access_token=.
    """
    token = credentials.credentials if credentials else access_token
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = auth_service.decode_access_token(token)
    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError()
    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")
    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    email = payload.get("sub")
    if email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise AuthenticationError("Missing subject in token")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.warning(f"Authentication failed: User {email} not found in database")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {email} is inactive")
        raise AuthenticationError("User is inactive")
    return user
