from fakes import (
    DRAFT_URL,
    JWT_SECRET,
    SIGNUP_URL,
    STATUS_URL,
    TOKEN_URL,
    FakeResponse,
    admin_routes,
    happy_signup_routes,
    make_token,
    session_body,
)
from portal.dashboard import DashboardLoader
from portal.main import app, get_dashboard_loader, get_settings

SIGNUP_FORM = {
    "business_name": "Acme Clinic",
    "name": "Jane Doe",
    "email": "jane@acme.com",
    "password": "secret123",
}


def login(client, http, role="client", email="jane@acme.com"):
    http.on("POST", TOKEN_URL, FakeResponse(200, session_body(make_token(email=email, role=role))))
    return client.post("/login", data={"email": email, "password": "pw"}, follow_redirects=False)


def test_signup_flow_lands_on_onboarding_start(client, http):
    happy_signup_routes(http)

    r = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/onboarding/start"

    # the new session cookie signs the user in
    r = client.get("/onboarding/start")
    assert r.status_code == 200
    assert "jane@acme.com" in r.text


def test_rejected_signup_keeps_form_and_skips_backend(client, http):
    happy_signup_routes(http)
    http.on("POST", SIGNUP_URL, FakeResponse(422, {"msg": "email already registered"}))

    r = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)

    assert r.status_code == 400
    assert "email already registered" in r.text
    assert 'value="Acme Clinic"' in r.text
    assert "secret123" not in r.text
    assert not http.calls_to(DRAFT_URL)


def test_backend_failure_shows_status_code(client, http):
    happy_signup_routes(http)
    http.on("POST", DRAFT_URL, FakeResponse(503, text="maintenance"))

    r = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)

    assert r.status_code == 400
    assert "503" in r.text


def test_incomplete_signup_form_makes_no_calls(client, http):
    r = client.post("/signup", data={**SIGNUP_FORM, "business_name": "   "}, follow_redirects=False)

    assert r.status_code == 400
    assert "All fields are required" in r.text
    assert http.calls == []


def test_signed_in_user_is_sent_to_portal(client, http):
    login(client, http)

    for path in ("/signup", "/login"):
        r = client.get(path, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/portal"


def test_login_failure_shows_message(client, http):
    http.on("POST", TOKEN_URL, FakeResponse(400, {"error_description": "Invalid login credentials"}))

    r = client.post("/login", data={"email": "jane@acme.com", "password": "nope"})

    assert r.status_code == 400
    assert "Invalid login credentials" in r.text


def test_login_rejects_token_with_bad_signature(client, http, settings):
    app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"identity_jwt_secret": "other-secret"})

    r = login(client, http)

    assert r.status_code == 400
    assert client.get("/dashboard", follow_redirects=False).headers["location"].endswith("/login")


def test_verified_token_is_accepted(client, http, settings):
    app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"identity_jwt_secret": JWT_SECRET})

    assert login(client, http).headers["location"] == "/dashboard"


def test_client_dashboard_without_status_offers_get_started(client, http):
    login(client, http)
    http.on("GET", STATUS_URL, FakeResponse(404, text="none"))

    r = client.get("/dashboard")

    assert r.status_code == 200
    assert "Get Started" in r.text


def test_client_dashboard_shows_status(client, http):
    login(client, http)
    http.on("GET", STATUS_URL, FakeResponse(200, {"status": {"status": "pending_review", "currentStep": "license-info"}}))

    r = client.get("/dashboard")

    assert "Pending Review" in r.text
    assert "License Info" in r.text
    assert 'href="/portal"' in r.text
    assert "/documents" not in r.text


def test_portal_sends_new_clients_to_onboarding_start(client, http):
    login(client, http)
    http.on("GET", STATUS_URL, FakeResponse(200, {"status": None}))

    r = client.get("/portal", follow_redirects=False)

    assert r.headers["location"] == "/onboarding/start"


def test_admin_dashboard_renders_all_sections(client, http):
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http)

    r = client.get("/dashboard")

    assert r.status_code == 200
    assert "Admin Dashboard" in r.text
    assert "Ann Lee" in r.text
    assert "Robert Stone" in r.text
    assert "Docs Received" in r.text
    assert "21 days remaining" in r.text


def test_admin_search_filters_provider_rows(client, http):
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http)

    r = client.get("/dashboard", params={"q": "STONE"})

    assert "rstone@practice.org" in r.text
    assert "ann.lee@clinic.com" not in r.text
    assert "2 total providers" in r.text


def test_admin_pipeline_failure_keeps_other_sections(client, http):
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http, pipeline=FakeResponse(500, text="boom"))

    r = client.get("/dashboard")

    assert "Pipeline data is unavailable" in r.text
    assert "Failed to load client pipeline" in r.text
    assert "Ann Lee" in r.text


def test_admin_pipeline_failure_in_all_or_nothing_mode(client, http, backend):
    app.dependency_overrides[get_dashboard_loader] = lambda: DashboardLoader(backend, all_or_nothing=True)
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http, pipeline=FakeResponse(500, text="boom"))

    r = client.get("/dashboard")

    assert r.status_code == 200
    assert "Failed to load dashboard data" in r.text
    assert "No providers found" in r.text
    assert "Ann Lee" not in r.text


def test_logout_clears_session(client, http):
    login(client, http)

    client.get("/logout")

    r = client.get("/dashboard", follow_redirects=False)
    assert r.headers["location"].endswith("/login")


def test_plain_text_signup_body_still_redirects(client, http):
    happy_signup_routes(http)
    http.on("POST", SIGNUP_URL, FakeResponse(200, None, text="OK"))

    r = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)

    assert r.status_code == 303
    assert r.headers["location"] == "/onboarding/start"


def test_signup_with_refused_session_explains_next_step(client, http, settings):
    app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"identity_jwt_secret": "other-secret"})
    happy_signup_routes(http)

    r = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)

    assert r.status_code == 400
    assert "could not sign you in" in r.text
    assert 'value="jane@acme.com"' in r.text
    assert http.calls_to(DRAFT_URL)


def test_admin_search_reuses_fetched_providers(client, http):
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http)
    client.get("/dashboard")
    calls_before = len(http.calls)

    r = client.get("/dashboard", params={"q": "stone"})

    assert len(http.calls) == calls_before
    assert "rstone@practice.org" in r.text
    assert "ann.lee@clinic.com" not in r.text


def test_admin_search_does_not_repeat_load_toasts(client, http):
    login(client, http, role="admin", email="ops@acme.com")
    admin_routes(http, pipeline=FakeResponse(500, text="boom"))
    assert "Failed to load client pipeline" in client.get("/dashboard").text

    r = client.get("/dashboard", params={"q": "ann"})

    assert "Failed to load client pipeline" not in r.text
    assert "Pipeline data is unavailable" in r.text
    assert "ann.lee@clinic.com" in r.text
