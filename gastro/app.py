import contextlib
import functools
import json
import logging
from typing import Any, Awaitable, Callable

from databases import Database
from jinja2 import Environment, FileSystemLoader, select_autoescape
import pydantic
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.authentication import (
    AuthCredentials,
    AuthenticationBackend,
    BaseUser,
    requires,
)
from starlette.middleware import Middleware
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import HTTPConnection, Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from approvals import services
from approvals.audit import AuditLog
from approvals.errors import (
    AlreadyProcessed,
    ApprovalError,
    AuthorizationError,
    EmailNotVerified,
    InternalError,
    InvalidAction,
    InvalidToken,
    MissingParameters,
    NotFoundError,
    ValidationError,
)
from approvals.mail import LogMailer, Mailer, SmtpMailer
from approvals.models import EMAIL_ACTION_ACTOR, Action, Approve, Decision, Reject
from approvals.notifications import NotificationDispatcher
from approvals.repository import CompanyRepository
from approvals.tokens import TokenAuthority
from gastro import config
from gastro.html.pages import AlreadyProcessedPage, ConfirmPage, ErrorPage, SuccessPage
from gastro.schemas import DecisionRequest


logger = logging.getLogger(__name__)


DEFAULT_ACTION_SECRET = config.Config.model_fields["action_secret"].default


class Admin(BaseUser):
    def __init__(self, admin_id: str) -> None:
        self.admin_id = admin_id

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.admin_id

    @property
    def identity(self) -> str:
        return self.admin_id


class SessionBackend(AuthenticationBackend):
    """Admins are whoever the login flow put in the session."""

    async def authenticate(
        self, conn: HTTPConnection
    ) -> tuple[AuthCredentials, BaseUser] | None:
        admin_id = conn.session.get("admin_id")
        if not admin_id:
            return None
        return AuthCredentials(["authenticated", "admin"]), Admin(str(admin_id))


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


def admin_status_code(error: ApprovalError) -> int:
    match error:
        case ValidationError() | EmailNotVerified():
            return 400
        case AuthorizationError():
            return 403
        case NotFoundError():
            return 404
        case AlreadyProcessed():
            return 409
        case _:
            return 500


def public_status_code(error: ApprovalError) -> int:
    match error:
        case ValidationError() | EmailNotVerified():
            return 400
        case AuthorizationError():
            return 401
        case NotFoundError():
            return 404
        case _:
            return 500


def parse_action(value: str) -> Action:
    try:
        return Action(value)
    except ValueError:
        raise InvalidAction from None


def as_decision(action: Action, reason: str | None = None) -> Decision:
    match action:
        case Action.approve:
            return Approve()
        case Action.reject:
            return Reject(reason=reason)


async def decide(request: Request, company_id: str, decision: Decision, actor: str):
    state = request.app.state
    return await services.decide(
        company_id,
        decision,
        actor=actor,
        repository=state.repo,
        dispatcher=state.dispatcher,
        audit=state.audit,
    )


# Admin console


@requires("admin", status_code=403)
async def business_applications(request: Request) -> JSONResponse:
    match request.method.lower():
        case "get":
            applications = await request.app.state.repo.list()
            return JSONResponse([a.to_dict() for a in applications])
        case "post":
            try:
                body = DecisionRequest.model_validate(await request.json())
            except (json.JSONDecodeError, pydantic.ValidationError) as e:
                return JSONResponse({"error": "Invalid request", "detail": str(e)}, 400)

            admin_id = request.user.identity
            try:
                application = await decide(
                    request, body.company_id, body.decision(), admin_id
                )
            except ApprovalError as e:
                if isinstance(e, InternalError):
                    logger.exception("Could not update company %s", body.company_id)
                return JSONResponse({"error": e.message}, admin_status_code(e))
            return JSONResponse({"company": application.company.to_dict()})
        case _:
            raise ValueError("Unsupported method.")


@requires("admin", status_code=403)
async def action_links(request: Request) -> JSONResponse:
    company_id = request.path_params["company_id"]
    state = request.app.state
    if await state.repo.get(company_id) is None:
        return JSONResponse({"error": NotFoundError.message}, 404)
    links = state.tokens.links(company_id, state.config.base_url)
    return JSONResponse({action.value: url for action, url in links.items()})


@requires("admin", status_code=403)
async def resend_registration(request: Request) -> JSONResponse:
    """Send the admins the registration email again, with fresh links."""
    company_id = request.path_params["company_id"]
    state = request.app.state
    application = await state.repo.get(company_id)
    if application is None:
        return JSONResponse({"error": NotFoundError.message}, 404)
    if not application.company.is_pending:
        error = AlreadyProcessed(application.company.status, application.company.name)
        return JSONResponse({"error": error.message}, 409)
    links = state.tokens.links(company_id, state.config.base_url)
    sent = await state.dispatcher.notify_registration(application, links)
    return JSONResponse({"sent": sent})


@requires("admin", status_code=403)
async def audit_logs(request: Request) -> JSONResponse:
    entity_id = request.query_params.get("entityId") or None
    try:
        limit = min(500, int(request.query_params.get("limit") or 100))
    except ValueError:
        return JSONResponse({"error": "Invalid limit"}, 400)
    events = await request.app.state.audit.list(entity_id=entity_id, limit=limit)
    return JSONResponse([e.to_dict() for e in events])


# Links from emails


async def follow_link(request: Request) -> str:
    """First click on an approve or reject link."""
    state = request.app.state
    company_id = request.query_params.get("companyId")
    action = request.query_params.get("action")
    token = request.query_params.get("token")

    if not (company_id and action and token):
        raise MissingParameters
    action = parse_action(action)
    if not state.tokens.verify(company_id, action, token):
        logger.warning("Invalid %s token for company %s", action.value, company_id)
        raise InvalidToken

    decision = as_decision(action)
    application = await services.load(company_id, decision, repository=state.repo)

    if action is Action.reject or state.config.confirm_approvals:
        return ConfirmPage(
            application.company.name,
            company_id,
            token,
            action,
            environment=state.templates,
            app_url=state.config.base_url,
        ).render()

    application = await decide(request, company_id, decision, EMAIL_ACTION_ACTOR)
    return SuccessPage(
        application.company.name,
        application.company.status,
        environment=state.templates,
        app_url=state.config.base_url,
    ).render()


async def submit_form(request: Request) -> str:
    """Confirmation form posted back from `follow_link`."""
    state = request.app.state
    async with request.form() as form:
        company_id = str(form.get("companyId") or "")
        token = str(form.get("token") or "")
        action = str(form.get("action") or Action.reject.value)
        reason = str(form.get("reason") or "") or None

    if not (company_id and token):
        raise MissingParameters("Invalid request.")
    action = parse_action(action)
    if not state.tokens.verify(company_id, action, token):
        logger.warning("Invalid %s token for company %s", action.value, company_id)
        raise InvalidToken

    application = await decide(
        request, company_id, as_decision(action, reason), EMAIL_ACTION_ACTOR
    )
    return SuccessPage(
        application.company.name,
        application.company.status,
        environment=state.templates,
        app_url=state.config.base_url,
    ).render()


@aHTMLResponse
async def email_action(request: Request) -> str | tuple[str, int]:
    state = request.app.state
    try:
        match request.method.lower():
            case "get":
                return await follow_link(request)
            case "post":
                return await submit_form(request)
            case _:
                raise ValueError("Unsupported method.")
    except AlreadyProcessed as e:
        # Links get opened twice. Not an error.
        return AlreadyProcessedPage(
            e.company_name,
            e.status,
            environment=state.templates,
            app_url=state.config.base_url,
        ).render()
    except ApprovalError as e:
        if isinstance(e, InternalError):
            logger.exception("Email action failed")
        page = ErrorPage(
            e.message,
            status_code=public_status_code(e),
            environment=state.templates,
            app_url=state.config.base_url,
        )
        return page.render(), page.status_code
    except Exception:
        logger.exception("Email action failed")
        page = ErrorPage(
            InternalError.message,
            status_code=500,
            environment=state.templates,
            app_url=state.config.base_url,
        )
        return page.render(), page.status_code


def create_app(
    cfg: config.Config | None = None,
    *,
    database: Database | None = None,
    mailer: Mailer | None = None,
    auth_backend: AuthenticationBackend | None = None,
) -> Starlette:
    cfg = config.Config() if cfg is None else cfg

    if cfg.env == config.Env.local:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler()],
        )
    elif cfg.action_secret == DEFAULT_ACTION_SECRET:
        raise ValueError("Set ACTION_SECRET outside of local development.")

    database = Database(cfg.db_url) if database is None else database
    if mailer is None:
        mailer = (
            SmtpMailer(
                host=cfg.smtp_host,
                port=cfg.smtp_port,
                user=cfg.smtp_user,
                password=cfg.smtp_password,
                use_tls=cfg.smtp_use_tls,
            )
            if cfg.smtp_configured
            else LogMailer()
        )

    templates = Environment(
        loader=FileSystemLoader(cfg.html_dir),
        autoescape=select_autoescape(),
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await database.connect()
        await app.state.repo.create_tables()
        await app.state.audit.create_tables()
        yield
        await database.disconnect()

    app = Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=[
            Route(
                "/admin/business-applications",
                business_applications,
                methods=["GET", "POST"],
            ),
            Route(
                "/admin/business-applications/{company_id}/links",
                action_links,
                methods=["GET"],
            ),
            Route(
                "/admin/business-applications/{company_id}/resend",
                resend_registration,
                methods=["POST"],
            ),
            Route("/admin/audit-logs", audit_logs, methods=["GET"]),
            Route("/email-action", email_action, methods=["GET", "POST"]),
        ],
        middleware=[
            Middleware(SessionMiddleware, secret_key=cfg.session_secret),
            Middleware(
                AuthenticationMiddleware,
                backend=SessionBackend() if auth_backend is None else auth_backend,
            ),
        ],
        lifespan=lifespan,
    )

    app.state.config = cfg
    app.state.db = database
    app.state.templates = templates
    app.state.repo = CompanyRepository(database)
    app.state.audit = AuditLog(database)
    app.state.tokens = TokenAuthority(cfg.action_secret, length=cfg.token_length)
    app.state.dispatcher = NotificationDispatcher(
        mailer,
        environment=templates,
        sender=cfg.mail_from,
        app_url=cfg.base_url,
        admin_email=cfg.admin_email,
    )
    return app
