from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from pydantic import ValidationError
from inventrack.core.security import decode_access_token
from inventrack.schemas.user import CurrentUser, UserRole

# 1. SETUP BEARER SCHEME
bearer_scheme = HTTPBearer(auto_error=False)

# 2. GET CURRENT USER (Base Dependency)
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise credentials_exception

    if payload.get("type", "access") != "access" or payload.get("sub") is None:
        raise credentials_exception

    try:
        user = CurrentUser(
            id=str(payload["sub"]),
            name=payload.get("name", ""),
            role=str(payload.get("role", "")).lower(),
            branch_id=payload.get("branchId"),
        )
    except ValidationError:
        raise credentials_exception

    return user

# 3. ROLE GATES
async def get_manager_or_superadmin(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    if current_user.role not in (UserRole.MANAGER, UserRole.SUPERADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Managers or Superadmins only."
        )
    return current_user

async def get_superadmin(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    if current_user.role != UserRole.SUPERADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Superadmins only."
        )
    return current_user

# 4. BRANCH SCOPING
def resolve_branch(current_user: CurrentUser, requested_branch_id: Optional[str]) -> str:
    """
    Superadmin may act on any branch (and must name one).
    Staff and Managers are pinned to their assigned branch.
    """
    if current_user.is_superadmin:
        if not requested_branch_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="branchId is required"
            )
        return requested_branch_id

    if not current_user.branch_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Your account is not assigned to a branch"
        )
    if requested_branch_id and requested_branch_id != current_user.branch_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your assigned branch"
        )
    return current_user.branch_id

def ensure_branch_access(current_user: CurrentUser, branch_id: str) -> None:
    if not current_user.is_superadmin and current_user.branch_id != branch_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your assigned branch"
        )
