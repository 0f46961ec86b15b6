from approvals.errors import AlreadyProcessed, EmailNotVerified, NotFoundError
from approvals.models import Application, Approve, Decision


def check(application: Application | None, decision: Decision) -> Application:
    """Raise unless the decision may be applied to the application.

    Rules run in order: the company exists, it is still pending, and for an
    approval the owner has verified their email. Rejecting is always allowed
    on a pending application.
    """
    if application is None:
        raise NotFoundError
    if not application.company.is_pending:
        raise AlreadyProcessed(application.company.status, application.company.name)
    if isinstance(decision, Approve) and not application.owner.email_verified:
        raise EmailNotVerified
    return application
