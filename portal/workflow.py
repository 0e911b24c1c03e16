"""Notifies the external workflow-automation webhook about new signups."""

import logging
from typing import Optional

import requests

from portal.config import NOTIFICATION_POLICIES
from portal.errors import NotificationFailure
from portal.schemas import DraftProfile

logger = logging.getLogger(__name__)


class WorkflowNotifier:
    """
    Posts the signup profile to the webhook.

    With policy "log" a failed delivery is logged and reported back as False;
    with policy "abort" it raises NotificationFailure.
    """

    def __init__(self, webhook_url: Optional[str], http: requests.Session,
                 policy: str = "log", timeout: float = 15.0):
        if policy not in NOTIFICATION_POLICIES:
            raise ValueError(f"Unknown notification policy: {policy!r}")
        self.webhook_url = webhook_url
        self.http = http
        self.policy = policy
        self.timeout = timeout

    def _deliver(self, profile: DraftProfile) -> None:
        try:
            r = self.http.post(
                self.webhook_url,
                json=profile.model_dump(by_alias=True),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotificationFailure(f"Workflow webhook unreachable: {e}") from e
        if not r.ok:
            raise NotificationFailure(f"Workflow webhook returned {r.status_code}: {r.text}")

    def notify(self, profile: DraftProfile) -> bool:
        """Return True when the webhook accepted the notification."""
        if not self.webhook_url:
            logger.warning("No workflow webhook configured; onboarding for %s was not announced", profile.email)
            return False

        try:
            self._deliver(profile)
        except NotificationFailure as e:
            if self.policy == "abort":
                logger.error("Workflow notification for %s failed: %s", profile.email, e)
                raise
            logger.warning("Workflow notification for %s failed, continuing: %s", profile.email, e)
            return False

        logger.info("Workflow notified for %s", profile.email)
        return True
