from app.application.interfaces.audit_log import AuditEvent, AuditLog


class InMemoryAuditLog(AuditLog):
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    async def exists(self, action: str, entity_id: str) -> bool:
        return any(e.action == action and e.entity_id == entity_id for e in self.events)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]
