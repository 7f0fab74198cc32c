from typing import Optional
from datetime import datetime
from inventrack.schemas.common import CamelModel

# Shared properties
class BranchBase(CamelModel):
    branch_id: str         # e.g., "BR-001"
    name: str
    location: str
    phone: Optional[str] = None
    manager_id: Optional[str] = None

# Input data when creating a branch
class BranchCreate(BranchBase):
    pass

# Output data when reading a branch
class BranchResponse(BranchBase):
    created_at: datetime
