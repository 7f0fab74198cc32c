from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from inventrack.core.config import settings
from inventrack.dependencies.auth import (
    ensure_branch_access,
    get_current_user,
    get_manager_or_superadmin,
    get_superadmin,
    resolve_branch,
)
from inventrack.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
)
from inventrack.schemas.user import CurrentUser
from inventrack.services import inventory as inventory_store

router = APIRouter()


# ==========================================
# 1. READ STOCK
# ==========================================

@router.get("/all", response_model=List[InventoryItemResponse])
async def get_all_inventory(
    current_admin: CurrentUser = Depends(get_superadmin)
):
    """Every SKU of every branch (Superadmin only)."""
    return await inventory_store.list_all_items()


@router.get("/{branch_id}", response_model=List[InventoryItemResponse])
async def get_branch_inventory(
    branch_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Stock of one branch.
    Staff and Managers can only see their own branch.
    """
    ensure_branch_access(current_user, branch_id)
    return await inventory_store.list_items(branch_id)


@router.get("/{branch_id}/low-stock", response_model=List[InventoryItemResponse])
async def get_low_stock(
    branch_id: str,
    threshold: Optional[int] = Query(default=None, ge=0),
    current_user: CurrentUser = Depends(get_current_user)
):
    """SKUs at or below the threshold, lowest first."""
    ensure_branch_access(current_user, branch_id)
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    return await inventory_store.low_stock_items(branch_id, threshold)


@router.get("/{branch_id}/{pid}", response_model=InventoryItemResponse)
async def get_inventory_item(
    branch_id: str,
    pid: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    ensure_branch_access(current_user, branch_id)
    return await inventory_store.get_item(branch_id, pid)


# ==========================================
# 2. CHANGE STOCK (Manager / Superadmin)
# ==========================================

@router.post("/", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    item_in: InventoryItemCreate,
    current_user: CurrentUser = Depends(get_manager_or_superadmin)
):
    """
    Add a product to a branch.
    The branch inventory is created on its first product.
    """
    branch_id = resolve_branch(current_user, item_in.branch_id)
    return await inventory_store.add_item(branch_id, item_in.model_dump(mode="json"))


@router.put("/{branch_id}/{pid}", response_model=InventoryItemResponse)
async def update_product(
    branch_id: str,
    pid: str,
    update_data: InventoryItemUpdate,
    current_user: CurrentUser = Depends(get_manager_or_superadmin)
):
    ensure_branch_access(current_user, branch_id)
    changes = update_data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    return await inventory_store.update_item(branch_id, pid, changes)


@router.delete("/{branch_id}/{pid}")
async def delete_product(
    branch_id: str,
    pid: str,
    current_user: CurrentUser = Depends(get_manager_or_superadmin)
):
    ensure_branch_access(current_user, branch_id)
    await inventory_store.remove_item(branch_id, pid)
    return {"success": True, "message": "Product deleted successfully"}
