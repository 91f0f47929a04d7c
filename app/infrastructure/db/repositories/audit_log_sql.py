from datetime import datetime, timezone

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.infrastructure.db.tables import audit_logs


class AuditLogSQL(AuditLog):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, event: AuditEvent) -> None:
        await self._session.execute(
            insert(audit_logs).values(
                action=event.action,
                entity=event.entity,
                entity_id=event.entity_id,
                user_id=event.user_id,
                status=event.status,
                details=event.details,
                created_at=datetime.now(timezone.utc),
            )
        )

    async def exists(self, action: str, entity_id: str) -> bool:
        stmt = (
            select(audit_logs.c.id)
            .where(audit_logs.c.action == action, audit_logs.c.entity_id == entity_id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar() is not None
