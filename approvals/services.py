"""Applying approve/reject decisions to business applications."""

import datetime as dt
import logging
from typing import Callable, TypeAlias

from approvals import validator
from approvals.audit import AuditLog
from approvals.errors import ApprovalError, InternalError
from approvals.models import Application, Approve, Decision, Reject, Status
from approvals.notifications import NotificationDispatcher
from approvals.repository import CompanyRepository


logger = logging.getLogger(__name__)


Clock: TypeAlias = Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


async def load(
    company_id: str,
    decision: Decision,
    *,
    repository: CompanyRepository,
) -> Application:
    """Load an application and check the decision may be applied to it."""
    try:
        application = await repository.get(company_id)
    except Exception as e:
        raise InternalError from e
    return validator.check(application, decision)


async def _commit(
    application: Application,
    decision: Decision,
    *,
    actor: str,
    repository: CompanyRepository,
    now: Clock,
) -> Application:
    match decision:
        case Approve():
            status, reason = Status.approved, None
        case Reject(reason=reason):
            status = Status.rejected
    try:
        return await repository.record_decision(
            application.company.id,
            status=status,
            approved_at=now(),
            approved_by=actor,
            rejection_reason=reason,
        )
    except ApprovalError:
        raise
    except Exception as e:
        raise InternalError from e


async def decide(
    company_id: str,
    decision: Decision,
    *,
    actor: str,
    repository: CompanyRepository,
    dispatcher: NotificationDispatcher,
    audit: AuditLog | None = None,
    now: Clock = utcnow,
) -> Application:
    """Move a pending application to approved or rejected.

    The decision is committed before anyone is notified, and nothing that
    happens while notifying undoes it.
    """
    if isinstance(decision, Reject) and not decision.reason:
        decision = Reject(reason=None)

    application = await load(company_id, decision, repository=repository)
    application = await _commit(
        application, decision, actor=actor, repository=repository, now=now
    )
    company, owner = application.company, application.owner
    logger.info("Company %s %s by %s", company.id, company.status.value, actor)

    try:
        match decision:
            case Approve():
                await dispatcher.notify_approved(
                    owner.email, company.name, owner.full_name
                )
            case Reject(reason=reason):
                await dispatcher.notify_rejected(
                    owner.email, company.name, owner.full_name, reason
                )
    except Exception:
        logger.exception("Could not notify %s about company %s", owner.email, company.id)

    if audit is not None:
        await audit.record(
            f"company.{company.status.value}",
            entity_type="company",
            entity_id=company.id,
            actor=actor,
            details={"reason": company.rejection_reason} if company.rejection_reason else None,
        )

    return application


async def approve(
    company_id: str,
    *,
    actor: str,
    repository: CompanyRepository,
    dispatcher: NotificationDispatcher,
    audit: AuditLog | None = None,
    now: Clock = utcnow,
) -> Application:
    return await decide(
        company_id,
        Approve(),
        actor=actor,
        repository=repository,
        dispatcher=dispatcher,
        audit=audit,
        now=now,
    )


async def reject(
    company_id: str,
    *,
    actor: str,
    reason: str | None = None,
    repository: CompanyRepository,
    dispatcher: NotificationDispatcher,
    audit: AuditLog | None = None,
    now: Clock = utcnow,
) -> Application:
    return await decide(
        company_id,
        Reject(reason=reason),
        actor=actor,
        repository=repository,
        dispatcher=dispatcher,
        audit=audit,
        now=now,
    )
