from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
from datetime import date
import math

from inventrack.core.email import send_bill_email
from inventrack.dependencies.auth import (
    ensure_branch_access,
    get_current_user,
    get_manager_or_superadmin,
    get_superadmin,
    resolve_branch,
)
from inventrack.models.bill import Bill, BillStatus, Customer
from inventrack.schemas.bill import (
    BillCollection,
    BillCreate,
    BillEmailRequest,
    BillEnvelope,
    BillListResponse,
    BillResponse,
    BillStatusUpdate,
    TodaySummary,
)
from inventrack.schemas.common import Pagination
from inventrack.schemas.report import RevenueSummary
from inventrack.schemas.user import CurrentUser, UserRole
from inventrack.services import billing, reports

router = APIRouter()


def to_response(bill: Bill) -> BillResponse:
    return BillResponse.model_validate(bill)


def _scope_filter(current_user: CurrentUser) -> Optional[str]:
    """Branch a non-superadmin listing is limited to."""
    return None if current_user.is_superadmin else current_user.branch_id


# ==========================================
# 1. CREATE BILL (CRITICAL ENDPOINT)
# ==========================================

@router.post("/", response_model=BillEnvelope, status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_data: BillCreate,
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Bill a cart at a branch.
    Prices come from the branch inventory, and stock is deducted.

    Access: Staff, Manager (own branch), Superadmin (any branch)
    """
    branch_id = resolve_branch(current_user, bill_data.branch_id)

    bill = await billing.create_bill(
        branch_id,
        current_user,
        bill_data.items,
        customer=Customer(**bill_data.customer.model_dump()),
        gst_rate=bill_data.gst_rate,
        discount=bill_data.discount,
        payment_method=bill_data.payment_method,
        notes=bill_data.notes,
    )
    return BillEnvelope(message="Bill created successfully", bill=to_response(bill))


# ==========================================
# 2. LISTINGS
# ==========================================

@router.get("/all", response_model=BillListResponse)
async def get_all_bills(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    bill_status: Optional[BillStatus] = Query(default=None, alias="status"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_admin: CurrentUser = Depends(get_superadmin)
):
    """Bills of every branch (Superadmin only)."""
    bills, total = await billing.list_bills(
        None, page=page, limit=limit, status=bill_status,
        start_date=start_date, end_date=end_date,
    )
    return _page(bills, total, page, limit)


@router.get("/branch/{branch_id}", response_model=BillListResponse)
async def get_branch_bills(
    branch_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    bill_status: Optional[BillStatus] = Query(default=None, alias="status"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Bills of one branch, newest first.
    Staff and Managers can only view their own branch.
    """
    if not branch_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="branchId is required")
    ensure_branch_access(current_user, branch_id)

    bills, total = await billing.list_bills(
        branch_id, page=page, limit=limit, status=bill_status,
        start_date=start_date, end_date=end_date,
    )
    return _page(bills, total, page, limit)


def _page(bills, total: int, page: int, limit: int) -> BillListResponse:
    return BillListResponse(
        bills=[to_response(bill) for bill in bills],
        pagination=Pagination(
            total=total, page=page, limit=limit, pages=math.ceil(total / limit)
        ),
    )


@router.get("/revenue/{branch_id}")
async def get_branch_revenue(
    branch_id: str,
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Revenue of completed bills between two dates (inclusive)."""
    ensure_branch_access(current_user, branch_id)
    if not start_date or not end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date and end date are required"
        )

    revenue: RevenueSummary = await reports.branch_revenue(branch_id, start_date, end_date)
    return {"success": True, "revenue": revenue}


@router.get("/today/{branch_id}")
async def get_today_sales(
    branch_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Today's completed sales of a branch."""
    ensure_branch_access(current_user, branch_id)

    summary, bills = await billing.today_summary(branch_id)
    return {
        "success": True,
        "summary": TodaySummary(**summary),
        "bills": [to_response(bill) for bill in bills],
    }


@router.get("/number/{bill_number}", response_model=BillEnvelope)
async def get_bill_by_number(
    bill_number: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    bill = await billing.get_bill_by_number(bill_number)
    ensure_branch_access(current_user, bill.branch_id)
    return BillEnvelope(bill=to_response(bill))


@router.get("/customer/{phone}", response_model=BillCollection)
async def get_bills_by_customer(
    phone: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    """A customer's bills; non-superadmins only see their own branch."""
    bills = await billing.bills_by_customer(phone, branch_id=_scope_filter(current_user))
    return BillCollection(bills=[to_response(bill) for bill in bills], count=len(bills))


@router.get("/staff/{staff_id}", response_model=BillCollection)
async def get_bills_by_staff(
    staff_id: str,
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Bills raised by one staff member.
    Staff can only list their own bills.
    """
    if current_user.role == UserRole.STAFF and staff_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own bills"
        )

    bills = await billing.bills_by_staff(
        staff_id, branch_id=_scope_filter(current_user),
        start_date=start_date, end_date=end_date,
    )
    return BillCollection(bills=[to_response(bill) for bill in bills], count=len(bills))


# ==========================================
# 3. RECEIPT EMAIL
# ==========================================

@router.post("/send-email")
async def email_bill(
    data: BillEmailRequest,
    current_user: CurrentUser = Depends(get_current_user)
):
    bill = await billing.get_bill(data.bill_id)
    ensure_branch_access(current_user, bill.branch_id)

    try:
        await send_bill_email(data.email, bill)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to send email: {exc}"
        )

    return {"success": True, "message": f"Bill sent successfully to {data.email}"}


# ==========================================
# 4. STATUS CHANGE (Manager / Superadmin)
# ==========================================

@router.put("/{bill_id}/status", response_model=BillEnvelope)
async def update_bill_status(
    bill_id: str,
    data: BillStatusUpdate,
    current_user: CurrentUser = Depends(get_manager_or_superadmin)
):
    """
    Cancel or refund a bill.
    Moving a completed bill to cancelled/refunded returns its stock once.
    """
    bill = await billing.update_bill_status(bill_id, data.status, current_user)
    return BillEnvelope(message="Bill status updated successfully", bill=to_response(bill))


# ==========================================
# 5. SINGLE BILL
# ==========================================

@router.get("/{bill_id}", response_model=BillEnvelope)
async def get_bill(
    bill_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    bill = await billing.get_bill(bill_id)
    ensure_branch_access(current_user, bill.branch_id)
    return BillEnvelope(bill=to_response(bill))


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: str,
    current_admin: CurrentUser = Depends(get_superadmin)
):
    """
    Administrative hard delete (Superadmin only, audited).
    A completed bill hands its stock back before it is removed.
    """
    bill = await billing.delete_bill(bill_id, current_admin)
    return {
        "success": True,
        "message": f"Bill {bill.bill_number} deleted",
    }
