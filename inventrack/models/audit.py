from typing import Any, Dict, Optional
from beanie import Document
from pydantic import Field
from datetime import datetime

class AuditLog(Document):
    """Trail of administrative actions (hard deletes of bills)."""
    action: str              # e.g. "bill.delete"
    entity: str              # e.g. "bill"
    entity_id: str
    actor_id: str
    actor_role: str
    branch_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "audit_logs"
