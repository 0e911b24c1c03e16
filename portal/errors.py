"""Error taxonomy for the portal's remote calls."""

from typing import Optional


class PortalError(Exception):
    """Base class; ``str(err)`` is safe to show to the user."""


class SignupError(PortalError):
    """The identity provider rejected account creation."""


class AuthError(PortalError):
    """Password sign-in failed."""


class BackendError(PortalError):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotificationFailure(PortalError):
    """The workflow webhook could not be notified."""


class DashboardLoadError(PortalError):
    """One of the dashboard data sources failed to load."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source
