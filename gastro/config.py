from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    env: Env = Env.local
    html_dir: Path = Path(__file__).parent / "html" / "templates"
    db_url: str = "sqlite+aiosqlite:///gastro.db"
    app_url: str = "http://localhost:8000"
    # Signs the approve/reject links in admin emails.
    action_secret: str = "gastro-elite-secret"
    token_length: int = 32
    session_secret: str = "gastro-elite-session"
    # Approve links render a confirmation form instead of approving on click.
    confirm_approvals: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "Gastro-Elite <noreply@gastro-elite.com>"
    admin_email: str | None = None

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @property
    def base_url(self) -> str:
        return self.app_url.rstrip("/")
