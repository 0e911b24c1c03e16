# ─── Standard library ──────────────────────────────────────────────────────────
import logging
import os
from datetime import datetime

# ─── HTTP client ───────────────────────────────────────────────────────────────
import requests

# ─── Web framework (FastAPI) ──────────────────────────────────────────────────
from fastapi import Depends, FastAPI, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

# ─── Templating & Sessions (Starlette) ────────────────────────────────────────
from starlette.middleware.sessions import SessionMiddleware
from starlette.templating import Jinja2Templates

# ─── Local modules ─────────────────────────────────────────────────────────────
from portal.auth import get_access_token, get_current_user, login_session
from portal.backend import BackendClient
from portal.config import Settings, load_settings
from portal.dashboard import (
    GENERIC_LOAD_FAILURE,
    MAX_EXPIRING_SHOWN,
    MAX_PROVIDERS_SHOWN,
    AdminDashboard,
    DashboardLoader,
    LoadState,
    Toast,
    filter_providers,
    format_date,
    status_badge,
    step_label,
)
from portal.errors import AuthError, DashboardLoadError, PortalError
from portal.identity import IdentityClient
from portal.logging_setup import configure_logging
from portal.signup import ONBOARDING_START_ROUTE, AccountDraft, SignupOrchestrator
from portal.workflow import WorkflowNotifier

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ──────────────── INIT ────────────────

settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Credentialing Portal")

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    https_only=not settings.is_development,
)

app.mount("/static", StaticFiles(directory=os.path.join(BASE_DIR, "static")), name="static")
templates = Jinja2Templates(directory=os.path.join(BASE_DIR, "templates"))
templates.env.filters["status_badge"] = status_badge
templates.env.filters["step_label"] = step_label
templates.env.filters["format_date"] = format_date


def build_services(app: FastAPI, settings: Settings) -> None:
    """Wire the remote clients once; they share one connection pool."""
    http = requests.Session()
    identity = IdentityClient(settings.identity_url, settings.identity_anon_key, http, settings.http_timeout)
    backend = BackendClient(settings.api_base_url, http, settings.http_timeout)
    notifier = WorkflowNotifier(settings.workflow_webhook_url, http,
                                policy=settings.notification_policy, timeout=settings.http_timeout)

    app.state.settings = settings
    app.state.http = http
    app.state.identity = identity
    app.state.orchestrator = SignupOrchestrator(identity, backend, notifier)
    app.state.loader = DashboardLoader(backend, all_or_nothing=settings.dashboard_all_or_nothing)


build_services(app, settings)

# ──────────────── DEPENDENCIES ────────────────

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity(request: Request) -> IdentityClient:
    return request.app.state.identity


def get_signup_orchestrator(request: Request) -> SignupOrchestrator:
    return request.app.state.orchestrator


def get_dashboard_loader(request: Request) -> DashboardLoader:
    return request.app.state.loader


def current_user(request: Request, settings: Settings = Depends(get_settings)):
    return get_current_user(request, settings.identity_jwt_secret)


def render(request: Request, page: str, status_code: int = 200, **context):
    context.setdefault("user", None)
    context.setdefault("toasts", [])
    context.update({"page": page, "current_year": datetime.now().year})
    return templates.TemplateResponse(request, "index.html", context, status_code=status_code)

# ──────────────── ROUTES ────────────────

@app.get("/health")
def health():
    return JSONResponse({"status": "ok"})


@app.get("/")
def home(user=Depends(current_user)):
    if user:
        return RedirectResponse("/dashboard", status_code=303)
    return RedirectResponse("/login", status_code=303)


@app.get("/signup", response_class=HTMLResponse)
def signup_page(request: Request, user=Depends(current_user)):
    if user:
        return RedirectResponse("/portal", status_code=303)
    return render(request, "signup", form={}, error=None)


@app.post("/signup")
def signup(
    request: Request,
    business_name: str = Form(""),
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    user=Depends(current_user),
    settings: Settings = Depends(get_settings),
    orchestrator: SignupOrchestrator = Depends(get_signup_orchestrator),
):
    if user:
        return RedirectResponse("/portal", status_code=303)

    draft = AccountDraft(business_name=business_name, name=name, email=email, password=password)
    # the password is never echoed back into the form
    form = {"business_name": draft.business_name, "name": draft.name, "email": draft.email}

    if not draft.is_complete:
        return render(request, "signup", status_code=400, form=form, error="All fields are required")

    try:
        result = orchestrator.run(draft)
    except PortalError as e:
        logger.warning("Signup for %s failed: %s", draft.email, e)
        return render(request, "signup", status_code=400, form=form, error=str(e) or "Signup failed")

    if login_session(request, result.session, settings.identity_jwt_secret) is None:
        # the account and draft exist; only the session was refused
        return render(request, "login", status_code=400, form={"email": draft.email},
                      error="Your account was created, but we could not sign you in. Please sign in.")
    return RedirectResponse(result.redirect_to, status_code=303)


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, user=Depends(current_user)):
    if user:
        return RedirectResponse("/portal", status_code=303)
    return render(request, "login", form={}, error=None)


@app.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    settings: Settings = Depends(get_settings),
    identity: IdentityClient = Depends(get_identity),
):
    form = {"email": email.strip()}
    if not email.strip() or not password:
        return render(request, "login", status_code=400, form=form, error="Email and password are required")

    try:
        session = identity.sign_in_with_password(email.strip(), password)
    except AuthError as e:
        return render(request, "login", status_code=400, form=form, error=str(e))

    if login_session(request, session, settings.identity_jwt_secret) is None:
        return render(request, "login", status_code=400, form=form, error="Sign in failed")
    return RedirectResponse("/dashboard", status_code=303)


@app.get("/logout")
def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/login", status_code=303)


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    q: str = Query(""),
    user=Depends(current_user),
    loader: DashboardLoader = Depends(get_dashboard_loader),
):
    if not user:
        return RedirectResponse("/login", status_code=303)

    token = get_access_token(request)

    if user.role == "admin":
        # a search filters the providers already fetched for this session
        view = loader.recent_admin(token) if q else None
        toasts = []
        if view is None:
            try:
                view = loader.load_admin(token)
            except DashboardLoadError as e:
                logger.error("Failed to load admin data: %s", e)
                view = AdminDashboard(state=LoadState.ERROR, toasts=[Toast(description=GENERIC_LOAD_FAILURE)])
            toasts = view.toasts

        all_providers = view.providers.providers if view.providers else []
        filtered = filter_providers(all_providers, q)
        expiring = view.stats.expiring_certifications[:MAX_EXPIRING_SHOWN] if view.stats else []
        return render(
            request,
            "admin_dashboard",
            user=user,
            view=view,
            toasts=toasts,
            search=q,
            providers=filtered[:MAX_PROVIDERS_SHOWN],
            expiring=expiring,
        )

    view = loader.load_client(token)
    return render(request, "client_dashboard", user=user, view=view)


@app.get("/portal")
def portal(
    request: Request,
    user=Depends(current_user),
    loader: DashboardLoader = Depends(get_dashboard_loader),
):
    if not user:
        return RedirectResponse("/login", status_code=303)
    if user.role == "admin":
        return RedirectResponse("/dashboard", status_code=303)

    view = loader.load_client(get_access_token(request))
    if view.state == LoadState.SUCCESS and not view.started:
        return RedirectResponse(ONBOARDING_START_ROUTE, status_code=303)
    return RedirectResponse("/dashboard", status_code=303)


@app.get(ONBOARDING_START_ROUTE, response_class=HTMLResponse)
def onboarding_start(request: Request, user=Depends(current_user)):
    if not user:
        return RedirectResponse("/login", status_code=303)
    return render(request, "onboarding_start", user=user)
