import datetime as dt
from uuid import uuid4

from databases import Database
from databases.interfaces import Record

from approvals.errors import AlreadyProcessed, NotFoundError
from approvals.models import Application, Company, Owner, Status


CREATE_OWNERS_TABLE = """
CREATE TABLE IF NOT EXISTS Owners (
    id VARCHAR(64) PRIMARY KEY,
    email VARCHAR(256) NOT NULL UNIQUE,
    first_name VARCHAR(128) NOT NULL,
    last_name VARCHAR(128) NOT NULL,
    email_verified BOOLEAN NOT NULL DEFAULT 0,
    phone VARCHAR(64)
)
"""


CREATE_COMPANIES_TABLE = """
CREATE TABLE IF NOT EXISTS Companies (
    id VARCHAR(64) PRIMARY KEY,
    name VARCHAR(256) NOT NULL,
    owner_id VARCHAR(64) NOT NULL REFERENCES Owners(id),
    status VARCHAR(16) NOT NULL DEFAULT 'pending',
    rejection_reason VARCHAR(3000),
    approved_at VARCHAR(64),
    approved_by VARCHAR(256),
    kvk_number VARCHAR(64) NOT NULL DEFAULT '',
    vat_number VARCHAR(64),
    phone VARCHAR(64),
    street VARCHAR(256) NOT NULL DEFAULT '',
    postal_code VARCHAR(32) NOT NULL DEFAULT '',
    city VARCHAR(128) NOT NULL DEFAULT '',
    country VARCHAR(128) NOT NULL DEFAULT '',
    created_at VARCHAR(64) NOT NULL
)
"""


CREATE_OWNER = """
INSERT INTO Owners(id, email, first_name, last_name, email_verified, phone)
VALUES (:id, :email, :first_name, :last_name, :email_verified, :phone)
"""


CREATE_COMPANY = """
INSERT INTO Companies(
    id, name, owner_id, status, kvk_number, vat_number, phone,
    street, postal_code, city, country, created_at
)
VALUES (
    :id, :name, :owner_id, :status, :kvk_number, :vat_number, :phone,
    :street, :postal_code, :city, :country, :created_at
)
"""


APPLICATION_COLUMNS = """
c.*,
o.email AS owner_email,
o.first_name AS owner_first_name,
o.last_name AS owner_last_name,
o.email_verified AS owner_email_verified,
o.phone AS owner_phone
"""


GET_APPLICATION = f"""
SELECT {APPLICATION_COLUMNS}
FROM Companies c JOIN Owners o ON o.id = c.owner_id
WHERE c.id = :id
"""


LIST_APPLICATIONS = f"""
SELECT {APPLICATION_COLUMNS}
FROM Companies c JOIN Owners o ON o.id = c.owner_id
ORDER BY c.created_at DESC
"""


GET_STATUS = "SELECT status, name FROM Companies WHERE id = :id"


RECORD_DECISION = """
UPDATE Companies
SET status = :status,
    rejection_reason = :rejection_reason,
    approved_at = :approved_at,
    approved_by = :approved_by
WHERE id = :id AND status = 'pending'
"""


SET_EMAIL_VERIFIED = "UPDATE Owners SET email_verified = :verified WHERE id = :id"


def _datetime(value: str | None) -> dt.datetime | None:
    return dt.datetime.fromisoformat(value) if value else None


def _application(row: Record) -> Application:
    company = Company(
        id=row["id"],
        name=row["name"],
        owner_id=row["owner_id"],
        status=Status(row["status"]),
        rejection_reason=row["rejection_reason"],
        approved_at=_datetime(row["approved_at"]),
        approved_by=row["approved_by"],
        kvk_number=row["kvk_number"],
        vat_number=row["vat_number"],
        phone=row["phone"],
        street=row["street"],
        postal_code=row["postal_code"],
        city=row["city"],
        country=row["country"],
        created_at=_datetime(row["created_at"]),
    )
    owner = Owner(
        id=row["owner_id"],
        email=row["owner_email"],
        first_name=row["owner_first_name"],
        last_name=row["owner_last_name"],
        email_verified=bool(row["owner_email_verified"]),
        phone=row["owner_phone"],
    )
    return Application(company, owner)


class CompanyRepository:
    """Companies and the owners who registered them."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_tables(self) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_OWNERS_TABLE
        )
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_COMPANIES_TABLE
        )

    async def add_owner(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        email_verified: bool = False,
        phone: str | None = None,
    ) -> Owner:
        owner = Owner(
            id=uuid4().hex,
            email=email,
            first_name=first_name,
            last_name=last_name,
            email_verified=email_verified,
            phone=phone,
        )
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_OWNER,
            values={
                "id": owner.id,
                "email": owner.email,
                "first_name": owner.first_name,
                "last_name": owner.last_name,
                "email_verified": owner.email_verified,
                "phone": owner.phone,
            },
        )
        return owner

    async def add_company(
        self,
        *,
        name: str,
        owner: Owner,
        kvk_number: str = "",
        vat_number: str | None = None,
        phone: str | None = None,
        street: str = "",
        postal_code: str = "",
        city: str = "",
        country: str = "",
    ) -> Application:
        company = Company(
            id=uuid4().hex,
            name=name,
            owner_id=owner.id,
            kvk_number=kvk_number,
            vat_number=vat_number,
            phone=phone,
            street=street,
            postal_code=postal_code,
            city=city,
            country=country,
            created_at=dt.datetime.now(dt.timezone.utc),
        )
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_COMPANY,
            values={
                "id": company.id,
                "name": company.name,
                "owner_id": company.owner_id,
                "status": company.status.value,
                "kvk_number": company.kvk_number,
                "vat_number": company.vat_number,
                "phone": company.phone,
                "street": company.street,
                "postal_code": company.postal_code,
                "city": company.city,
                "country": company.country,
                "created_at": company.created_at.isoformat(),  # pyright: ignore[reportOptionalMemberAccess]
            },
        )
        return Application(company, owner)

    async def set_email_verified(self, owner_id: str, verified: bool = True) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            SET_EMAIL_VERIFIED, values={"id": owner_id, "verified": verified}
        )

    async def get(self, company_id: str) -> Application | None:
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_APPLICATION, values={"id": company_id}
        )
        if row is None:
            return None
        return _application(row)

    async def list(self) -> tuple[Application, ...]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_APPLICATIONS
        )
        return tuple(_application(r) for r in rows)

    async def record_decision(
        self,
        company_id: str,
        *,
        status: Status,
        approved_at: dt.datetime,
        approved_by: str,
        rejection_reason: str | None = None,
    ) -> Application:
        """Move a pending company to a terminal status.

        The status is read again inside the transaction so a decision made by
        another request since the caller loaded the company is not overwritten.
        """
        if status is Status.pending:
            raise ValueError("Cannot record a decision back to pending.")

        async with self.db.transaction():
            row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
                GET_STATUS, values={"id": company_id}
            )
            if row is None:
                raise NotFoundError
            current = Status(row["status"])
            if current is not Status.pending:
                raise AlreadyProcessed(current, row["name"])
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                RECORD_DECISION,
                values={
                    "id": company_id,
                    "status": status.value,
                    "rejection_reason": rejection_reason,
                    "approved_at": approved_at.isoformat(),
                    "approved_by": approved_by,
                },
            )

        application = await self.get(company_id)
        if application is None:
            raise NotFoundError
        return application
