from dataclasses import dataclass, field
from typing import Any


@dataclass
class AuditEvent:
    action: str
    entity: str
    entity_id: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    status: str = "success"


class AuditLog:
    async def record(self, event: AuditEvent) -> None:
        raise NotImplementedError

    async def exists(self, action: str, entity_id: str) -> bool:
        raise NotImplementedError
