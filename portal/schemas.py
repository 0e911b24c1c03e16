from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ─── Signup / onboarding draft ────────────────────────────────────────────────

class DraftProfile(CamelModel):
    business_name: str
    name: str
    email: str


class OnboardingDraftRequest(CamelModel):
    step_data: DraftProfile
    current_step: int = 1


class SessionUser(BaseModel):
    id: Optional[str] = None
    email: str
    role: str = "client"


# ─── Dashboard aggregates ─────────────────────────────────────────────────────

class RecentActivity(CamelModel):
    last_7_days: int = Field(0, alias="last7Days")
    last_30_days: int = Field(0, alias="last30Days")


class StatusCounts(CamelModel):
    not_started: int = 0
    in_progress: int = 0
    pending_review: int = 0
    completed: int = 0
    archived: int = 0


class ExpiringCertification(CamelModel):
    user_id: Union[int, str, None] = None
    user_name: str
    license_state: str
    days_until_expiration: int


class DashboardStats(CamelModel):
    total_providers: int = 0
    recent_activity: RecentActivity = Field(default_factory=RecentActivity)
    status_counts: StatusCounts = Field(default_factory=StatusCounts)
    expiring_certifications: List[ExpiringCertification] = []


class ClientPipelineStats(CamelModel):
    intake: int = 0
    docs_received: int = 0
    credentialing_started: int = 0
    submitted_to_payers: int = 0


class ProviderSummary(CamelModel):
    user_id: Union[int, str]
    email: str
    first_name: str = ""
    last_name: str = ""
    status: str = "not_started"
    current_step: str = ""
    document_count: int = 0
    last_updated: Optional[datetime] = None


class AllProvidersResponse(CamelModel):
    providers: List[ProviderSummary] = []
    total: int = 0


class OnboardingStatus(CamelModel):
    status: str = "not_started"
    current_step: Union[int, str, None] = None
    total_steps: Optional[int] = None
    updated_at: Optional[datetime] = None


class OnboardingStatusResponse(CamelModel):
    status: Optional[OnboardingStatus] = None
