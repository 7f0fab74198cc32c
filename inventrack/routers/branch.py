import logging

from fastapi import APIRouter, Depends, status
from typing import List
from pymongo.errors import DuplicateKeyError
from inventrack.core.exceptions import BranchNotFound, DuplicateBranch
from inventrack.models.branch import Branch
from inventrack.schemas.branch import BranchCreate, BranchResponse
from inventrack.schemas.user import CurrentUser
from inventrack.dependencies.auth import get_current_user, get_superadmin
from inventrack.services import inventory as inventory_store

logger = logging.getLogger(__name__)

router = APIRouter()

# --- 1. CREATE BRANCH (Superadmin Only) ---
@router.post("/", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    branch_in: BranchCreate,
    current_admin: CurrentUser = Depends(get_superadmin)
):
    """
    Create a new branch.
    - Checks if the Branch ID (e.g., 'BR-001') already exists.
    """
    if await Branch.find_one(Branch.branch_id == branch_in.branch_id):
        raise DuplicateBranch(branch_in.branch_id)

    new_branch = Branch(**branch_in.model_dump())
    try:
        await new_branch.insert()
    except DuplicateKeyError:
        raise DuplicateBranch(branch_in.branch_id)

    logger.info("Branch %s created by %s", new_branch.branch_id, current_admin.id)
    return new_branch

# --- 2. LIST ALL BRANCHES (Open to all Staff) ---
@router.get("/", response_model=List[BranchResponse])
async def get_all_branches(
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Retrieve a list of all branches.
    Any logged-in staff member can see this list.
    """
    return await Branch.find_all().sort("branch_id").to_list()

# --- 3. GET ONE BRANCH ---
@router.get("/{branch_id}", response_model=BranchResponse)
async def get_branch(
    branch_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    branch = await Branch.find_one(Branch.branch_id == branch_id)
    if not branch:
        raise BranchNotFound(branch_id)
    return branch

# --- 4. DELETE BRANCH (Superadmin Only) ---
@router.delete("/{branch_id}")
async def delete_branch(
    branch_id: str,
    current_admin: CurrentUser = Depends(get_superadmin)
):
    """
    Deletes the branch together with its inventory.
    Bills stay: they keep the branch name they were issued under.
    """
    branch = await Branch.find_one(Branch.branch_id == branch_id)
    if not branch:
        raise BranchNotFound(branch_id)

    removed = await inventory_store.delete_branch_inventory(branch_id)
    await branch.delete()

    logger.warning("Branch %s deleted by %s (%d SKU(s) removed)", branch_id, current_admin.id, removed)
    return {
        "success": True,
        "message": "Branch deleted successfully",
        "inventoryItemsRemoved": removed,
    }
