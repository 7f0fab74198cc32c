from typing import Annotated, Optional
from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime

class Branch(Document):
    # Business code used everywhere as the branch key, e.g. "BR-001"
    branch_id: Annotated[str, Indexed(unique=True)]
    name: str
    location: str
    phone: Optional[str] = None

    manager_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "branches"
