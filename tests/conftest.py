import pytest
from fastapi.testclient import TestClient

from fakes import API_URL, IDENTITY_URL, WEBHOOK_URL, FakeHttp
from portal.backend import BackendClient
from portal.config import Settings
from portal.dashboard import DashboardLoader
from portal.identity import IdentityClient
from portal.main import (
    app,
    get_dashboard_loader,
    get_identity,
    get_settings,
    get_signup_orchestrator,
)
from portal.signup import SignupOrchestrator
from portal.workflow import WorkflowNotifier


@pytest.fixture
def settings():
    return Settings(
        api_base_url=API_URL,
        identity_url=IDENTITY_URL,
        identity_anon_key="anon-key",
        workflow_webhook_url=WEBHOOK_URL,
        session_secret="test-session-secret",
    )


# No test talks to a real service: every client shares this recorder.
@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def identity(settings, http):
    return IdentityClient(settings.identity_url, settings.identity_anon_key, http, settings.http_timeout)


@pytest.fixture
def backend(settings, http):
    return BackendClient(settings.api_base_url, http, settings.http_timeout)


@pytest.fixture
def notifier(settings, http):
    return WorkflowNotifier(settings.workflow_webhook_url, http, policy=settings.notification_policy)


@pytest.fixture
def orchestrator(identity, backend, notifier):
    return SignupOrchestrator(identity, backend, notifier)


@pytest.fixture
def loader(settings, backend):
    return DashboardLoader(backend, all_or_nothing=settings.dashboard_all_or_nothing)


@pytest.fixture
def client(settings, identity, orchestrator, loader):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_identity] = lambda: identity
    app.dependency_overrides[get_signup_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_dashboard_loader] = lambda: loader
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
