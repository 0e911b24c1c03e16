"""
Client for the identity provider (a Supabase/GoTrue-compatible auth API).

Only the two calls the portal needs are implemented: account creation and
password sign-in. Session refresh is left to the provider.
"""

import logging
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel

from portal.errors import AuthError, SignupError

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIRMED = "email_not_confirmed"


class IdentitySession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    user: Dict[str, Any] = {}


def _error_message(response: requests.Response, fallback: str) -> str:
    """Pull the human-readable message out of a provider error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or fallback
    if not isinstance(body, dict):
        return fallback
    for key in ("msg", "error_description", "message", "error"):
        if body.get(key):
            return str(body[key])
    return fallback


def _error_code(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    code = body.get("error_code") or body.get("code") or ""
    if not code and "not confirmed" in str(body.get("msg") or body.get("error_description") or "").lower():
        code = EMAIL_NOT_CONFIRMED
    return str(code)


class IdentityClient:
    def __init__(self, base_url: str, anon_key: str, http: requests.Session, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.http = http
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.anon_key:
            headers["apikey"] = self.anon_key
        return headers

    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> Dict[str, Any]:
        """Create an account. Raises SignupError when the provider refuses."""
        try:
            r = self.http.post(
                f"{self.base_url}/auth/v1/signup",
                json={"email": email, "password": password, "data": metadata or {}},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Identity provider unreachable during signup: %s", e)
            raise SignupError("Could not reach the sign-up service. Please try again.") from e

        if not r.ok:
            message = _error_message(r, "Signup failed")
            logger.info("Signup rejected for %s: %s %s", email, r.status_code, message)
            raise SignupError(message)
        try:
            return r.json()
        except ValueError:
            # the account exists; the body is informational only
            logger.info("Signup for %s returned a non-JSON body", email)
            return {}

    def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        """Exchange credentials for a session. Raises AuthError on failure."""
        try:
            r = self.http.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Identity provider unreachable during sign-in: %s", e)
            raise AuthError("Could not reach the sign-in service. Please try again.") from e

        if not r.ok:
            if _error_code(r) == EMAIL_NOT_CONFIRMED:
                raise AuthError("Please confirm your email address, then sign in to continue.")
            message = _error_message(r, "Sign in failed")
            logger.info("Sign-in rejected for %s: %s %s", email, r.status_code, message)
            raise AuthError(message)

        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthError("Sign in did not return a session")
        return IdentitySession(**data)
