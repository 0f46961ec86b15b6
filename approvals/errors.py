from approvals.models import Status


class ApprovalError(Exception):
    message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = self.message if message is None else message
        super().__init__(self.message)


class ValidationError(ApprovalError):
    message = "Invalid request."


class MissingParameters(ValidationError):
    message = "Invalid link. Check that you used the complete link."


class InvalidAction(ValidationError):
    message = "Invalid action."


class AuthorizationError(ApprovalError):
    message = "Invalid or expired link."


class InvalidToken(AuthorizationError):
    pass


class NotFoundError(ApprovalError):
    message = "Company not found."


class PreconditionError(ApprovalError):
    message = "The application cannot be processed in its current state."


class AlreadyProcessed(PreconditionError):
    def __init__(self, status: Status, company_name: str = "") -> None:
        self.status = status
        self.company_name = company_name
        super().__init__(f"Application already {status.value}.")


class EmailNotVerified(PreconditionError):
    message = "The owner's email must be verified first."


class InternalError(ApprovalError):
    message = "An error occurred. Please try again later."
