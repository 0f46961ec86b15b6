import datetime as dt
import json
import logging
from typing import Any
from uuid import uuid4

from databases import Database


logger = logging.getLogger(__name__)


CREATE_AUDIT_LOGS_TABLE = """
CREATE TABLE IF NOT EXISTS AuditLogs (
    id VARCHAR(64) PRIMARY KEY,
    action VARCHAR(64) NOT NULL,
    entity_type VARCHAR(64) NOT NULL,
    entity_id VARCHAR(64) NOT NULL,
    actor VARCHAR(256),
    details VARCHAR(3000),
    created_at VARCHAR(64) NOT NULL
)
"""


CREATE_AUDIT_EVENT = """
INSERT INTO AuditLogs(id, action, entity_type, entity_id, actor, details, created_at)
VALUES (:id, :action, :entity_type, :entity_id, :actor, :details, :created_at)
"""


LIST_AUDIT_EVENTS = """
SELECT * FROM AuditLogs ORDER BY created_at DESC LIMIT :limit
"""


LIST_AUDIT_EVENTS_FOR_ENTITY = """
SELECT * FROM AuditLogs WHERE entity_id = :entity_id
ORDER BY created_at DESC LIMIT :limit
"""


class AuditEvent:
    def __init__(
        self,
        *,
        id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        actor: str | None,
        details: dict[str, Any] | None,
        created_at: dt.datetime,
    ) -> None:
        self.id = id
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.actor = actor
        self.details = details
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"<AuditEvent(action={self.action}, entity_id={self.entity_id})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "actor": self.actor,
            "details": self.details,
            "createdAt": self.created_at.isoformat(),
        }


class AuditLog:
    """Who decided what. Writing here never breaks the decision itself."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_tables(self) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_AUDIT_LOGS_TABLE
        )

    async def record(
        self,
        action: str,
        *,
        entity_type: str,
        entity_id: str,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        try:
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_AUDIT_EVENT,
                values={
                    "id": uuid4().hex,
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "actor": actor,
                    "details": json.dumps(details) if details else None,
                    "created_at": dt.datetime.now(dt.timezone.utc).isoformat(),
                },
            )
        except Exception:
            logger.exception("Could not write audit event %s for %s", action, entity_id)
            return False
        return True

    async def list(
        self,
        *,
        entity_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        if entity_id is None:
            rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                LIST_AUDIT_EVENTS, values={"limit": limit}
            )
        else:
            rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                LIST_AUDIT_EVENTS_FOR_ENTITY,
                values={"entity_id": entity_id, "limit": limit},
            )
        return [
            AuditEvent(
                id=r["id"],
                action=r["action"],
                entity_type=r["entity_type"],
                entity_id=r["entity_id"],
                actor=r["actor"],
                details=json.loads(r["details"]) if r["details"] else None,
                created_at=dt.datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]
