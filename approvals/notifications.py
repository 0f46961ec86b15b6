from email.message import EmailMessage
import logging
from typing import Any

from jinja2 import Environment

from approvals.mail import Mailer
from approvals.models import Action, Application


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Best-effort outcome emails.

    Every `notify_*` method returns whether the message went out. A failure is
    logged and swallowed: by the time we notify, the decision is already
    committed and the caller has been told so.
    """

    def __init__(
        self,
        mailer: Mailer,
        *,
        environment: Environment,
        sender: str,
        app_url: str,
        admin_email: str | None = None,
    ) -> None:
        self.mailer = mailer
        self.env = environment
        self.sender = sender
        self.app_url = app_url.rstrip("/")
        self.admin_email = admin_email

    def message(
        self,
        *,
        to: str,
        subject: str,
        template_name: str,
        **context: Any,
    ) -> EmailMessage:
        html = self.env.get_template(template_name).render(
            app_url=self.app_url, **context
        )
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html, subtype="html")
        return message

    async def send(
        self,
        *,
        to: str,
        subject: str,
        template_name: str,
        **context: Any,
    ) -> bool:
        try:
            message = self.message(
                to=to, subject=subject, template_name=template_name, **context
            )
            await self.mailer.send(message)
        except Exception:
            logger.exception("Could not send %r to %s", subject, to)
            return False
        return True

    async def notify_approved(
        self,
        owner_email: str,
        company_name: str,
        owner_name: str,
    ) -> bool:
        return await self.send(
            to=owner_email,
            subject="Your Business Account Has Been Approved!",
            template_name="email/approved.html",
            company_name=company_name,
            owner_name=owner_name,
        )

    async def notify_rejected(
        self,
        owner_email: str,
        company_name: str,
        owner_name: str,
        reason: str | None = None,
    ) -> bool:
        return await self.send(
            to=owner_email,
            subject="Business Account Application Update",
            template_name="email/rejected.html",
            company_name=company_name,
            owner_name=owner_name,
            reason=reason,
        )

    async def notify_registration(
        self,
        application: Application,
        links: dict[Action, str],
    ) -> bool:
        """Tell the admins about a new application, with signed action links."""
        if not self.admin_email:
            logger.warning(
                "No admin email configured, not announcing %s", application.company.id
            )
            return False
        return await self.send(
            to=self.admin_email,
            subject=f"New Business Account Request - {application.company.name}",
            template_name="email/registration.html",
            company=application.company,
            owner=application.owner,
            approve_url=links[Action.approve],
            reject_url=links[Action.reject],
        )
