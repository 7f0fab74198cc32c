"""Domain errors raised by the inventory and billing services.

Every error carries an HTTP status and optional context that the API layer
renders next to the message, e.g. ``{"success": false, "message": ...,
"available": 1, "requested": 2}``.
"""

from typing import Any, Dict


class InvenTrackError(Exception):
    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None, **context: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, **self.context}


# --- Not found ---

class BranchNotFound(InvenTrackError):
    status_code = 404

    def __init__(self, branch_id: str):
        super().__init__(f"Branch '{branch_id}' not found", branch_id=branch_id)


class BranchInventoryNotFound(InvenTrackError):
    status_code = 404

    def __init__(self, branch_id: str):
        super().__init__(
            f"No inventory found for branch '{branch_id}'", branch_id=branch_id
        )


class ProductNotFound(InvenTrackError):
    status_code = 404

    def __init__(self, branch_id: str, pid: str, status_code: int | None = None):
        super().__init__(
            f"Product '{pid}' not found in inventory of branch '{branch_id}'",
            status_code=status_code,
            branch_id=branch_id,
            pid=pid,
        )


class BillNotFound(InvenTrackError):
    status_code = 404

    def __init__(self, bill_ref: str):
        super().__init__("Bill not found", bill=bill_ref)


# --- Conflicts ---

class DuplicateBranch(InvenTrackError):
    def __init__(self, branch_id: str):
        super().__init__(f"Branch '{branch_id}' already exists", branch_id=branch_id)


class DuplicateSKU(InvenTrackError):
    def __init__(self, branch_id: str, pid: str):
        super().__init__(
            f"Product '{pid}' already exists in branch '{branch_id}'",
            branch_id=branch_id,
            pid=pid,
        )


class InsufficientStock(InvenTrackError):
    def __init__(self, pid: str, product: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product}. Available: {available}, Requested: {requested}",
            pid=pid,
            product=product,
            available=available,
            requested=requested,
        )


# --- Access ---

class BranchAccessDenied(InvenTrackError):
    status_code = 403

    def __init__(self, message: str = "You can only access your assigned branch"):
        super().__init__(message)


# --- Bill lifecycle ---

class InvalidStatus(InvenTrackError):
    def __init__(self, value: str):
        super().__init__(f"Invalid status '{value}'", status=value)


class InvalidStatusTransition(InvenTrackError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change bill status from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )


class BillingInconsistency(InvenTrackError):
    """Bill persisted but its stock deduction could not be applied or undone."""

    status_code = 500

    def __init__(self, bill_number: str):
        super().__init__(
            f"Bill {bill_number} needs manual stock reconciliation",
            bill_number=bill_number,
        )
