"""
Account creation: the four-step signup sequence.

1. create the account with the identity provider
2. sign in with the same credentials to get a bearer token
3. create the onboarding draft on the backend
4. notify the workflow webhook

Each step runs only after the previous one finished; the first failure of
steps 1-3 stops the sequence. Step 4 follows the notifier's failure policy.
"""

import logging
from typing import List

from pydantic import BaseModel, field_validator

from portal.backend import BackendClient
from portal.identity import IdentityClient, IdentitySession
from portal.schemas import DraftProfile
from portal.workflow import WorkflowNotifier

logger = logging.getLogger(__name__)

ONBOARDING_START_ROUTE = "/onboarding/start"
FIRST_ONBOARDING_STEP = 1


class AccountDraft(BaseModel):
    business_name: str
    name: str
    email: str
    password: str

    @field_validator("business_name", "name", "email")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    def missing_fields(self) -> List[str]:
        return [field for field in ("business_name", "name", "email", "password")
                if not getattr(self, field).strip()]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def profile(self) -> DraftProfile:
        return DraftProfile(business_name=self.business_name, name=self.name, email=self.email)


class SignupResult(BaseModel):
    session: IdentitySession
    draft: dict = {}
    notification_delivered: bool = False
    redirect_to: str = ONBOARDING_START_ROUTE


class SignupOrchestrator:
    def __init__(self, identity: IdentityClient, backend: BackendClient, notifier: WorkflowNotifier):
        self.identity = identity
        self.backend = backend
        self.notifier = notifier

    def run(self, draft: AccountDraft) -> SignupResult:
        """
        Raises SignupError, AuthError or BackendError from the failing step;
        NotificationFailure only under the "abort" policy.
        """
        missing = draft.missing_fields()
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        profile = draft.profile()

        logger.info("Signup step 1/4: creating account for %s", draft.email)
        self.identity.sign_up(
            draft.email,
            draft.password,
            metadata={"businessName": draft.business_name, "name": draft.name},
        )

        logger.info("Signup step 2/4: signing in %s", draft.email)
        session = self.identity.sign_in_with_password(draft.email, draft.password)

        logger.info("Signup step 3/4: creating onboarding draft for %s", draft.email)
        record = self.backend.create_onboarding_draft(
            session.access_token, profile, current_step=FIRST_ONBOARDING_STEP
        )

        logger.info("Signup step 4/4: notifying workflow for %s", draft.email)
        delivered = self.notifier.notify(profile)

        logger.info("Signup complete for %s", draft.email)
        return SignupResult(session=session, draft=record, notification_delivered=delivered)

