from email.message import EmailMessage
from pathlib import Path
import smtplib
from typing import Any, AsyncIterator

from databases import Database
import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape
import pytest
import pytest_asyncio
from starlette.applications import Starlette
from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser
from starlette.requests import HTTPConnection

from approvals.audit import AuditLog
from approvals.models import Application
from approvals.notifications import NotificationDispatcher
from approvals.repository import CompanyRepository
from gastro.app import Admin, create_app
from gastro.config import Config, Env


SECRET = "test-secret"
APP_URL = "https://gastro.test"


class HeaderBackend(AuthenticationBackend):
    """Stands in for the login flow: the admin id comes from a header."""

    async def authenticate(
        self, conn: HTTPConnection
    ) -> tuple[AuthCredentials, BaseUser] | None:
        admin_id = conn.headers.get("x-admin-id")
        if not admin_id:
            return None
        return AuthCredentials(["authenticated", "admin"]), Admin(admin_id)


class RecordingMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise smtplib.SMTPException("Connection refused")
        self.sent.append(message)


class SpyDispatcher(NotificationDispatcher):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def notify_approved(self, *args: Any) -> bool:
        self.calls.append(("approved", args))
        return await super().notify_approved(*args)

    async def notify_rejected(self, *args: Any) -> bool:
        self.calls.append(("rejected", args))
        return await super().notify_rejected(*args)


class BrokenDispatcher(SpyDispatcher):
    async def notify_approved(self, *args: Any) -> bool:
        raise RuntimeError("Mail server on fire")

    async def notify_rejected(self, *args: Any) -> bool:
        raise RuntimeError("Mail server on fire")


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        env=Env.dev,
        db_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        action_secret=SECRET,
        app_url=APP_URL,
        admin_email="admin@gastro.test",
    )


@pytest.fixture
def templates(config: Config) -> Environment:
    return Environment(
        loader=FileSystemLoader(config.html_dir),
        autoescape=select_autoescape(),
    )


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def dispatcher(mailer: RecordingMailer, templates: Environment) -> SpyDispatcher:
    return SpyDispatcher(
        mailer,
        environment=templates,
        sender="noreply@gastro.test",
        app_url=APP_URL,
        admin_email="admin@gastro.test",
    )


@pytest_asyncio.fixture
async def database(config: Config) -> AsyncIterator[Database]:
    db = Database(config.db_url)
    await db.connect()
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def repo(database: Database) -> CompanyRepository:
    repository = CompanyRepository(database)
    await repository.create_tables()
    return repository


@pytest_asyncio.fixture
async def audit(database: Database) -> AuditLog:
    log = AuditLog(database)
    await log.create_tables()
    return log


async def add_application(
    repo: CompanyRepository,
    *,
    name: str = "Bistro Boterham",
    email: str = "jan@boterham.nl",
    verified: bool = True,
) -> Application:
    owner = await repo.add_owner(
        email=email,
        first_name="Jan",
        last_name="de Vries",
        email_verified=verified,
        phone="+31 20 123 4567",
    )
    return await repo.add_company(
        name=name,
        owner=owner,
        kvk_number="12345678",
        street="Damrak 1",
        postal_code="1012 LG",
        city="Amsterdam",
        country="Netherlands",
    )


@pytest_asyncio.fixture
async def c1(repo: CompanyRepository) -> Application:
    return await add_application(repo)


@pytest_asyncio.fixture
async def unverified(repo: CompanyRepository) -> Application:
    return await add_application(
        repo, name="Eetcafe Ongeverifieerd", email="piet@eetcafe.nl", verified=False
    )


@pytest.fixture
def app(
    config: Config,
    database: Database,
    repo: CompanyRepository,
    audit: AuditLog,
    mailer: RecordingMailer,
    dispatcher: SpyDispatcher,
) -> Starlette:
    app = create_app(
        config, database=database, mailer=mailer, auth_backend=HeaderBackend()
    )
    # Tables already exist and the database is connected; lifespan does not run.
    app.state.dispatcher = dispatcher
    return app


@pytest_asyncio.fixture
async def client(app: Starlette) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url=APP_URL
    ) as client:
        yield client
