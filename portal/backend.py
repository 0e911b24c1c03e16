"""Client for the credentialing backend API."""

import logging
from typing import Optional, Tuple

import requests

from portal.errors import BackendError
from portal.schemas import (
    AllProvidersResponse,
    ClientPipelineStats,
    DashboardStats,
    DraftProfile,
    OnboardingDraftRequest,
    OnboardingStatusResponse,
)

logger = logging.getLogger(__name__)


class BackendClient:
    def __init__(self, base_url: str, http: requests.Session, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.timeout = timeout

    def _auth(self, token: Optional[str]) -> dict:
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _get(self, path: str, token: str, params: Optional[dict] = None) -> requests.Response:
        try:
            r = self.http.get(
                f"{self.base_url}{path}",
                headers=self._auth(token),
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(f"Backend request {path} failed: {e}") from e
        return r

    def _get_json(self, path: str, token: str, params: Optional[dict] = None) -> dict:
        r = self._get(path, token, params)
        if not r.ok:
            raise BackendError(f"Backend request {path} failed: {r.status_code} {r.text}",
                               status_code=r.status_code, body=r.text)
        return r.json()

    # ─── Onboarding ──────────────────────────────────────────────────────────

    def create_onboarding_draft(self, token: Optional[str], profile: DraftProfile, current_step: int = 1) -> dict:
        payload = OnboardingDraftRequest(step_data=profile, current_step=current_step)
        try:
            r = self.http.post(
                f"{self.base_url}/onboarding/draft",
                json=payload.model_dump(by_alias=True),
                headers={"Content-Type": "application/json", **self._auth(token)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(f"Onboarding draft request failed: {e}") from e

        if not r.ok:
            raise BackendError(f"Onboarding draft failed: {r.status_code} {r.text}",
                               status_code=r.status_code, body=r.text)
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError:
            return {}

    def get_onboarding_status(self, token: str) -> OnboardingStatusResponse:
        """A 404 means the caller has no onboarding record yet."""
        r = self._get("/onboarding/status", token)
        if r.status_code == 404:
            return OnboardingStatusResponse(status=None)
        if not r.ok:
            raise BackendError(f"Backend request /onboarding/status failed: {r.status_code} {r.text}",
                               status_code=r.status_code, body=r.text)
        return OnboardingStatusResponse(**r.json())

    def check_auth_me(self, token: Optional[str]) -> Tuple[int, str]:
        """Diagnostic call; returns the raw status and body, never raises on status."""
        r = self._get("/auth/me", token)
        return r.status_code, r.text

    # ─── Dashboard ───────────────────────────────────────────────────────────

    def get_stats(self, token: str) -> DashboardStats:
        return DashboardStats(**self._get_json("/dashboard/stats", token))

    def get_pipeline(self, token: str) -> ClientPipelineStats:
        return ClientPipelineStats(**self._get_json("/dashboard/pipeline", token))

    def list_providers(self, token: str, limit: Optional[int] = None, offset: Optional[int] = None) -> AllProvidersResponse:
        params = {}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        return AllProvidersResponse(**self._get_json("/dashboard/providers", token, params or None))
