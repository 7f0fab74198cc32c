from pydantic import Field
from typing import Dict, Optional
from datetime import datetime
from inventrack.models.inventory import ProductCategory
from inventrack.schemas.common import CamelModel


# Used by: POST /inventory
class InventoryItemCreate(CamelModel):
    # Only a superadmin picks the branch; staff and managers use their own
    branch_id: Optional[str] = None
    pid: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    category: ProductCategory = ProductCategory.OTHER
    sub_category: str = "general"
    attributes: Dict[str, str] = Field(default_factory=dict)
    price: float = Field(..., ge=0)
    quantity: int = Field(default=0, ge=0)


# Used by: PUT /inventory/{branch_id}/{pid}
class InventoryItemUpdate(CamelModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[ProductCategory] = None
    sub_category: Optional[str] = None
    attributes: Optional[Dict[str, str]] = None
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)


class InventoryItemResponse(CamelModel):
    branch_id: str
    pid: str
    name: str
    brand: str
    category: ProductCategory
    sub_category: str
    attributes: Dict[str, str]
    price: float
    quantity: int
    last_updated: datetime
