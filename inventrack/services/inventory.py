"""Branch-scoped inventory store.

Each SKU is its own document keyed by ``(branch_id, pid)``, so every quantity
change below is a single-document update that MongoDB applies atomically.
Billing, bill reversal and the product edit endpoint all go through here.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie import UpdateResponse
from pymongo.errors import DuplicateKeyError

from inventrack.core.exceptions import (
    BranchInventoryNotFound,
    DuplicateSKU,
    InsufficientStock,
    ProductNotFound,
)
from inventrack.models.inventory import BranchInventory, InventoryItem

logger = logging.getLogger(__name__)

# Fields a product edit may not touch
IMMUTABLE_FIELDS = {"branch_id", "pid"}


async def get_branch_inventory(branch_id: str) -> Optional[BranchInventory]:
    return await BranchInventory.find_one(BranchInventory.branch_id == branch_id)


async def ensure_branch_inventory(branch_id: str) -> BranchInventory:
    inventory = await get_branch_inventory(branch_id)
    if inventory:
        return inventory

    inventory = BranchInventory(branch_id=branch_id)
    try:
        await inventory.insert()
        logger.info("Created inventory for branch %s", branch_id)
    except DuplicateKeyError:
        # Another request created it first
        inventory = await get_branch_inventory(branch_id)
    return inventory


async def find_item(branch_id: str, pid: str, session=None) -> Optional[InventoryItem]:
    return await InventoryItem.find_one(
        InventoryItem.branch_id == branch_id,
        InventoryItem.pid == pid,
        session=session,
    )


async def get_item(branch_id: str, pid: str) -> InventoryItem:
    item = await find_item(branch_id, pid)
    if not item:
        raise ProductNotFound(branch_id, pid)
    return item


async def list_items(branch_id: str) -> List[InventoryItem]:
    if not await get_branch_inventory(branch_id):
        raise BranchInventoryNotFound(branch_id)
    return await InventoryItem.find(InventoryItem.branch_id == branch_id).sort("_id").to_list()


async def list_all_items() -> List[InventoryItem]:
    return await InventoryItem.find_all().sort("branch_id", "_id").to_list()


async def low_stock_items(branch_id: str, threshold: int) -> List[InventoryItem]:
    if not await get_branch_inventory(branch_id):
        raise BranchInventoryNotFound(branch_id)
    return await InventoryItem.find(
        {"branch_id": branch_id, "quantity": {"$lte": threshold}}
    ).sort("quantity").to_list()


async def add_item(branch_id: str, data: Dict[str, Any]) -> InventoryItem:
    """Add a SKU to a branch, creating the branch inventory on first use."""
    data = dict(data)
    data.pop("branch_id", None)
    pid = data.pop("pid")

    await ensure_branch_inventory(branch_id)

    if await find_item(branch_id, pid):
        raise DuplicateSKU(branch_id, pid)

    item = InventoryItem(branch_id=branch_id, pid=pid, **data)
    try:
        await item.insert()
    except DuplicateKeyError:
        raise DuplicateSKU(branch_id, pid)

    logger.info("Added %s (%s) to branch %s with quantity %d", pid, item.name, branch_id, item.quantity)
    return item


async def update_item(branch_id: str, pid: str, changes: Dict[str, Any]) -> InventoryItem:
    changes = {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}
    changes["last_updated"] = datetime.utcnow()

    updated = await InventoryItem.find_one(
        InventoryItem.branch_id == branch_id,
        InventoryItem.pid == pid,
    ).update({"$set": changes}, response_type=UpdateResponse.NEW_DOCUMENT)

    if updated is None:
        raise ProductNotFound(branch_id, pid)
    return updated


async def remove_item(branch_id: str, pid: str) -> None:
    item = await find_item(branch_id, pid)
    if not item:
        raise ProductNotFound(branch_id, pid)
    await item.delete()
    logger.info("Removed %s from branch %s", pid, branch_id)


async def adjust_quantity(branch_id: str, pid: str, delta: int, session=None) -> InventoryItem:
    """
    Apply ``quantity += delta`` in one conditional update.

    A decrement only matches while ``quantity >= -delta``, so concurrent
    sales can never push stock below zero.
    """
    query: Dict[str, Any] = {"branch_id": branch_id, "pid": pid}
    if delta < 0:
        query["quantity"] = {"$gte": -delta}

    updated = await InventoryItem.find_one(query, session=session).update(
        {"$inc": {"quantity": delta}, "$set": {"last_updated": datetime.utcnow()}},
        session=session,
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is not None:
        return updated

    current = await find_item(branch_id, pid, session=session)
    if current is None:
        raise ProductNotFound(branch_id, pid)
    raise InsufficientStock(pid, current.name, current.quantity, -delta)


async def delete_branch_inventory(branch_id: str) -> int:
    """Cascade for branch deletion. Returns the number of SKUs removed."""
    removed = await InventoryItem.find(InventoryItem.branch_id == branch_id).count()
    await InventoryItem.find(InventoryItem.branch_id == branch_id).delete()
    await BranchInventory.find(BranchInventory.branch_id == branch_id).delete()
    return removed
