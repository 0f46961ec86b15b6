import pytest

from approvals import validator
from approvals.errors import AlreadyProcessed, EmailNotVerified, NotFoundError
from approvals.models import Application, Approve, Company, Owner, Reject, Status


def application(
    *,
    status: Status = Status.pending,
    verified: bool = True,
) -> Application:
    owner = Owner(
        id="o1",
        email="jan@boterham.nl",
        first_name="Jan",
        last_name="de Vries",
        email_verified=verified,
    )
    company = Company(id="c1", name="Bistro Boterham", owner_id="o1", status=status)
    return Application(company, owner)


@pytest.mark.parametrize("decision", (Approve(), Reject(), Reject("No KvK")))
def test_missing_company(decision: Approve | Reject) -> None:
    with pytest.raises(NotFoundError):
        validator.check(None, decision)


@pytest.mark.parametrize("status", (Status.approved, Status.rejected))
@pytest.mark.parametrize("decision", (Approve(), Reject()))
def test_terminal_states(status: Status, decision: Approve | Reject) -> None:
    with pytest.raises(AlreadyProcessed) as e:
        validator.check(application(status=status), decision)
    assert e.value.status is status
    assert e.value.company_name == "Bistro Boterham"


def test_already_processed_wins_over_unverified_email() -> None:
    with pytest.raises(AlreadyProcessed):
        validator.check(application(status=Status.approved, verified=False), Approve())


def test_approve_requires_verified_email() -> None:
    with pytest.raises(EmailNotVerified):
        validator.check(application(verified=False), Approve())


def test_reject_skips_email_check() -> None:
    app = application(verified=False)
    assert validator.check(app, Reject()) is app


def test_pending_and_verified() -> None:
    app = application()
    assert validator.check(app, Approve()) is app
