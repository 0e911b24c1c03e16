import os
import secrets
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


NOTIFICATION_POLICIES = ("log", "abort")

_TRUTHY = ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Process-wide configuration, loaded once at startup."""

    api_base_url: str = "http://localhost:4000"
    identity_url: str = "http://localhost:54321"
    identity_anon_key: str = ""
    identity_jwt_secret: Optional[str] = None
    workflow_webhook_url: Optional[str] = None
    notification_policy: str = "log"
    dashboard_all_or_nothing: bool = False
    http_timeout: float = 15.0
    session_secret: str = ""
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(env: Optional[dict] = None) -> Settings:
    """
    Build Settings from the environment (or from ``env`` when given).
    .env files are honoured only when reading the real environment.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    policy = env.get("PORTAL_NOTIFICATION_POLICY", "log").strip().lower()
    if policy not in NOTIFICATION_POLICIES:
        raise ValueError(
            f"PORTAL_NOTIFICATION_POLICY must be one of {NOTIFICATION_POLICIES}, got {policy!r}"
        )

    raw_timeout = env.get("PORTAL_HTTP_TIMEOUT", "15")
    try:
        timeout = float(raw_timeout)
    except ValueError:
        raise ValueError(f"PORTAL_HTTP_TIMEOUT must be a number, got {raw_timeout!r}")
    if timeout <= 0:
        raise ValueError("PORTAL_HTTP_TIMEOUT must be positive")

    return Settings(
        api_base_url=env.get("PORTAL_API_BASE_URL", "http://localhost:4000").rstrip("/"),
        identity_url=env.get("PORTAL_IDENTITY_URL", "http://localhost:54321").rstrip("/"),
        identity_anon_key=env.get("PORTAL_IDENTITY_ANON_KEY", ""),
        identity_jwt_secret=env.get("PORTAL_IDENTITY_JWT_SECRET") or None,
        workflow_webhook_url=env.get("PORTAL_WORKFLOW_WEBHOOK_URL") or None,
        notification_policy=policy,
        dashboard_all_or_nothing=env.get("PORTAL_DASHBOARD_ALL_OR_NOTHING", "false").strip().lower() in _TRUTHY,
        http_timeout=timeout,
        # generate a new secret on each run if none is set in env
        session_secret=env.get("SESSION_SECRET") or secrets.token_hex(32),
        environment=env.get("PORTAL_ENV", "development"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
