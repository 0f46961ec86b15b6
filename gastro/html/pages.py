from jinja2 import Environment

from approvals.models import Action, Status


class Page:
    """A self-contained document for someone who followed a link from an email.

    They are not logged in, so every page stands on its own and offers a way
    back to the admin panel rather than redirecting there.
    """

    template_name = "pages/base.html"
    status_code = 200

    def __init__(self, *, environment: Environment, app_url: str) -> None:
        self.env = environment
        self.app_url = app_url.rstrip("/")

    @property
    def admin_url(self) -> str:
        return f"{self.app_url}/admin/business-applications"

    @property
    def title(self) -> str:
        return "Gastro-Elite"

    def render(self) -> str:
        return self.env.get_template(self.template_name).render(page=self)


class SuccessPage(Page):
    template_name = "pages/success.html"

    def __init__(
        self,
        company_name: str,
        status: Status,
        *,
        environment: Environment,
        app_url: str,
    ) -> None:
        super().__init__(environment=environment, app_url=app_url)
        self.company_name = company_name
        self.status = status

    @property
    def approved(self) -> bool:
        return self.status is Status.approved

    @property
    def title(self) -> str:
        return f"Application {self.status.value}"


class AlreadyProcessedPage(SuccessPage):
    template_name = "pages/already-processed.html"

    @property
    def title(self) -> str:
        return "Already processed"


class ErrorPage(Page):
    template_name = "pages/error.html"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        environment: Environment,
        app_url: str,
    ) -> None:
        super().__init__(environment=environment, app_url=app_url)
        self.message = message
        self.status_code = status_code

    @property
    def title(self) -> str:
        return "An error occurred"


class ConfirmPage(Page):
    """Asks for an explicit click before anything changes.

    Link previews and mail scanners open links too. Carries the token along
    to the form submission.
    """

    template_name = "pages/confirm.html"

    def __init__(
        self,
        company_name: str,
        company_id: str,
        token: str,
        action: Action,
        *,
        environment: Environment,
        app_url: str,
    ) -> None:
        super().__init__(environment=environment, app_url=app_url)
        self.company_name = company_name
        self.company_id = company_id
        self.token = token
        self.action = action

    @property
    def form_url(self) -> str:
        return f"{self.app_url}/email-action"

    @property
    def rejecting(self) -> bool:
        return self.action is Action.reject

    @property
    def title(self) -> str:
        return "Reject application" if self.rejecting else "Approve application"
