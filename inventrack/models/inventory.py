from typing import Annotated, Dict
from enum import Enum
from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime


class ProductCategory(str, Enum):
    CLOTHING = "clothing"
    UTENSIL = "utensil"
    FOOD = "food"
    DRINK = "drink"
    ICECREAM = "icecream"
    ELECTRONICS = "electronics"
    STATIONERY = "stationery"
    GROCERY = "grocery"
    COSMETICS = "cosmetics"
    HOME_APPLIANCE = "home_appliance"
    TOYS = "toys"
    OTHER = "other"


class BranchInventory(Document):
    """
    Marks that a branch owns an inventory. Created on the first product add,
    removed only when the branch itself is deleted.
    """
    branch_id: Annotated[str, Indexed(unique=True)]

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "branch_inventories"


class InventoryItem(Document):
    """
    One stock-keeping unit at a SPECIFIC branch.
    Quantity changes are single-document conditional updates.
    """
    branch_id: Annotated[str, Indexed()]
    pid: str

    name: str
    brand: str
    category: ProductCategory = ProductCategory.OTHER
    sub_category: str = "general"
    attributes: Dict[str, str] = Field(default_factory=dict)

    price: float = Field(..., ge=0)
    quantity: int = Field(default=0, ge=0)

    last_updated: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "inventory_items"
        # A pid can only appear once per branch
        indexes = [
            IndexModel([("branch_id", ASCENDING), ("pid", ASCENDING)], unique=True)
        ]
