from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from approvals.models import Approve, Decision, Reject


class DecisionRequest(BaseModel):
    """Body of an admin approve/reject request."""

    model_config = ConfigDict(populate_by_name=True)

    company_id: str = Field(alias="companyId", min_length=1)
    status: Literal["approved", "rejected"]
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")

    @model_validator(mode="after")
    def reason_only_when_rejecting(self) -> "DecisionRequest":
        if self.status == "approved" and self.rejection_reason:
            raise ValueError("A rejection reason only applies to rejections.")
        return self

    def decision(self) -> Decision:
        match self.status:
            case "approved":
                return Approve()
            case "rejected":
                return Reject(reason=self.rejection_reason or None)
