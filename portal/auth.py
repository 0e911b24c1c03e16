import logging
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from portal.identity import IdentitySession
from portal.schemas import SessionUser

logger = logging.getLogger(__name__)

ROLES = ("admin", "client")
DEFAULT_ROLE = "client"


def token_claims(token: str, secret: Optional[str] = None) -> Optional[dict]:
    """
    Decode the bearer token issued by the identity provider, or return None.
    Without a secret the claims are read unverified; the backend still
    verifies every call it receives.
    """
    try:
        if secret:
            return jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def role_from_claims(claims: dict) -> str:
    for section in ("app_metadata", "user_metadata"):
        role = (claims.get(section) or {}).get("role")
        if role in ROLES:
            return role
    return DEFAULT_ROLE


def user_from_session(session: IdentitySession, secret: Optional[str] = None) -> Optional[SessionUser]:
    claims = token_claims(session.access_token, secret)
    if claims is None:
        return None
    email = claims.get("email") or session.user.get("email") or ""
    return SessionUser(id=claims.get("sub"), email=email, role=role_from_claims(claims))


def login_session(request: Request, session: IdentitySession, secret: Optional[str] = None) -> Optional[SessionUser]:
    """Store the identity session in the signed cookie. Returns None for an unusable token."""
    user = user_from_session(session, secret)
    if user is None:
        logger.warning("Rejected an identity session with an invalid token")
        return None
    request.session["access_token"] = session.access_token
    request.session["user"] = user.model_dump()
    return user


def get_current_user(request: Request, secret: Optional[str] = None) -> Optional[SessionUser]:
    token = request.session.get("access_token")
    data = request.session.get("user")
    if not token or not data:
        return None
    if secret and token_claims(token, secret) is None:
        # stale or forged cookie
        request.session.clear()
        return None
    return SessionUser(**data)


def get_access_token(request: Request) -> Optional[str]:
    return request.session.get("access_token")
