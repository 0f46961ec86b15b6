from dataclasses import dataclass
import datetime as dt
from enum import Enum
from typing import TypeAlias


EMAIL_ACTION_ACTOR = "email-action"


class Status(Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Action(Enum):
    approve = "approve"
    reject = "reject"


@dataclass(frozen=True)
class Approve:
    pass


@dataclass(frozen=True)
class Reject:
    reason: str | None = None


Decision: TypeAlias = Approve | Reject


class Owner:
    def __init__(
        self,
        *,
        id: str,
        email: str,
        first_name: str,
        last_name: str,
        email_verified: bool = False,
        phone: str | None = None,
    ) -> None:
        self.id = id
        self.email = email
        self.first_name = first_name
        self.last_name = last_name
        self.email_verified = email_verified
        self.phone = phone

    def __repr__(self) -> str:
        return f"<Owner(id={self.id}, email={self.email})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Company:
    def __init__(
        self,
        *,
        id: str,
        name: str,
        owner_id: str,
        status: Status = Status.pending,
        rejection_reason: str | None = None,
        approved_at: dt.datetime | None = None,
        approved_by: str | None = None,
        kvk_number: str = "",
        vat_number: str | None = None,
        phone: str | None = None,
        street: str = "",
        postal_code: str = "",
        city: str = "",
        country: str = "",
        created_at: dt.datetime | None = None,
    ) -> None:
        self.id = id
        self.name = name
        self.owner_id = owner_id
        self.status = status
        self.rejection_reason = rejection_reason
        self.approved_at = approved_at
        self.approved_by = approved_by
        self.kvk_number = kvk_number
        self.vat_number = vat_number
        self.phone = phone
        self.street = street
        self.postal_code = postal_code
        self.city = city
        self.country = country
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name}, status={self.status.value})>"

    @property
    def is_pending(self) -> bool:
        return self.status is Status.pending

    def to_dict(self) -> dict[str, str | None]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "rejectionReason": self.rejection_reason,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "approvedBy": self.approved_by,
            "ownerId": self.owner_id,
            "kvkNumber": self.kvk_number,
            "vatNumber": self.vat_number,
            "phone": self.phone,
            "address": ", ".join(
                p for p in (self.street, self.postal_code, self.city, self.country) if p
            ),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Application:
    """A company loaded together with the owner who registered it."""

    def __init__(self, company: Company, owner: Owner) -> None:
        self.company = company
        self.owner = owner

    def __repr__(self) -> str:
        return f"<Application(company={self.company!r}, owner={self.owner!r})>"

    def to_dict(self) -> dict[str, str | bool | None]:
        return {
            **self.company.to_dict(),
            "contactName": self.owner.full_name,
            "contactEmail": self.owner.email,
            "contactPhone": self.owner.phone,
            "emailVerified": self.owner.email_verified,
        }
