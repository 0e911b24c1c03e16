"""Loads and shapes the data behind the admin and client dashboards."""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from portal.backend import BackendClient
from portal.errors import DashboardLoadError
from portal.schemas import (
    AllProvidersResponse,
    ClientPipelineStats,
    DashboardStats,
    OnboardingStatus,
    ProviderSummary,
)

logger = logging.getLogger(__name__)

ADMIN_SOURCES = ("stats", "pipeline", "providers")

SOURCE_LABELS = {
    "stats": "statistics",
    "pipeline": "client pipeline",
    "providers": "provider list",
}

GENERIC_LOAD_FAILURE = "Failed to load dashboard data"

MAX_EXPIRING_SHOWN = 5
MAX_PROVIDERS_SHOWN = 10

# searches reuse the last admin view loaded with the same token
RECENT_VIEW_SECONDS = 300
RECENT_VIEW_LIMIT = 256


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SourceResult(BaseModel):
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Toast(BaseModel):
    title: str = "Error"
    description: str
    variant: str = "destructive"


class AdminDashboard(BaseModel):
    state: LoadState = LoadState.IDLE
    results: Dict[str, SourceResult] = {}
    toasts: List[Toast] = []

    def _value(self, source: str):
        result = self.results.get(source)
        return result.value if result is not None and result.ok else None

    @property
    def stats(self) -> Optional[DashboardStats]:
        return self._value("stats")

    @property
    def pipeline(self) -> Optional[ClientPipelineStats]:
        return self._value("pipeline")

    @property
    def providers(self) -> Optional[AllProvidersResponse]:
        return self._value("providers")

    def failed(self, source: str) -> bool:
        result = self.results.get(source)
        return result is not None and not result.ok


class ClientDashboard(BaseModel):
    state: LoadState = LoadState.IDLE
    status: Optional[OnboardingStatus] = None
    error: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.status is not None


class DashboardLoader:
    """
    Admin dashboards fetch their three sources concurrently. By default every
    source is an independent slot, so one failure leaves the others rendered;
    with ``all_or_nothing`` any failure discards everything.

    The last view per token is kept briefly so that provider searches filter
    already-fetched data instead of hitting the backend again.
    """

    def __init__(self, backend: BackendClient, all_or_nothing: bool = False, max_workers: int = 3,
                 recent_seconds: float = RECENT_VIEW_SECONDS):
        self.backend = backend
        self.all_or_nothing = all_or_nothing
        self.max_workers = max_workers
        self.recent_seconds = recent_seconds
        self._recent: "OrderedDict[str, Tuple[float, AdminDashboard]]" = OrderedDict()
        self._lock = threading.Lock()

    def _fetchers(self, token: str) -> Dict[str, Callable[[], Any]]:
        return {
            "stats": lambda: self.backend.get_stats(token),
            "pipeline": lambda: self.backend.get_pipeline(token),
            "providers": lambda: self.backend.list_providers(token),
        }

    def load_admin(self, token: str) -> AdminDashboard:
        """
        Raises DashboardLoadError in all-or-nothing mode when any source fails.
        """
        results: Dict[str, SourceResult] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {name: executor.submit(fn) for name, fn in self._fetchers(token).items()}
            for name, future in futures.items():
                try:
                    results[name] = SourceResult(value=future.result())
                except Exception as e:
                    logger.exception("Failed to load admin %s", SOURCE_LABELS[name])
                    results[name] = SourceResult(error=str(e) or e.__class__.__name__)

        failed = [name for name in ADMIN_SOURCES if not results[name].ok]

        if self.all_or_nothing and failed:
            first = failed[0]
            raise DashboardLoadError(f"{GENERIC_LOAD_FAILURE}: {results[first].error}", source=first)

        view = AdminDashboard(results=results)
        for name in failed:
            view.toasts.append(Toast(description=f"Failed to load {SOURCE_LABELS[name]}"))
        view.state = LoadState.ERROR if len(failed) == len(ADMIN_SOURCES) else LoadState.SUCCESS
        self._remember(token, view)
        return view

    def _remember(self, token: str, view: AdminDashboard) -> None:
        with self._lock:
            self._recent[token] = (time.monotonic(), view)
            self._recent.move_to_end(token)
            while len(self._recent) > RECENT_VIEW_LIMIT:
                self._recent.popitem(last=False)

    def recent_admin(self, token: str) -> Optional[AdminDashboard]:
        """The last admin view loaded with this token, if still fresh."""
        with self._lock:
            entry = self._recent.get(token)
            if entry is None:
                return None
            loaded_at, view = entry
            if time.monotonic() - loaded_at > self.recent_seconds:
                del self._recent[token]
                return None
            return view

    def load_client(self, token: str) -> ClientDashboard:
        view = ClientDashboard(state=LoadState.LOADING)
        try:
            response = self.backend.get_onboarding_status(token)
        except Exception as e:
            logger.exception("Failed to load client data")
            view.state = LoadState.ERROR
            view.error = str(e) or e.__class__.__name__
            return view
        view.status = response.status
        view.state = LoadState.SUCCESS
        return view


# ─── Search & presentation helpers ───────────────────────────────────────────

def filter_providers(providers: Iterable[ProviderSummary], term: str) -> List[ProviderSummary]:
    """Case-insensitive substring match on email, first name or last name."""
    needle = (term or "").lower()
    return [
        p for p in providers
        if needle in p.email.lower()
        or needle in p.first_name.lower()
        or needle in p.last_name.lower()
    ]


STATUS_BADGES = {
    "not_started": ("outline", "Not Started"),
    "in_progress": ("default", "In Progress"),
    "pending_review": ("secondary", "Pending Review"),
    "completed": ("default", "Completed"),
    "archived": ("secondary", "Archived"),
}


def status_badge(status: str) -> Dict[str, str]:
    variant, label = STATUS_BADGES.get(status, ("outline", status))
    return {"variant": variant, "label": label}


def step_label(step: Any) -> str:
    if step is None:
        return ""
    return str(step).replace("-", " ").title()


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return f"{value.strftime('%b')} {value.day}, {value.year}"
