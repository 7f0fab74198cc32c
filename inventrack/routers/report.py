from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Literal, Optional
from datetime import date

from inventrack.dependencies.auth import ensure_branch_access, get_current_user, get_superadmin
from inventrack.schemas.report import BillStatistics, DailyRevenue
from inventrack.schemas.user import CurrentUser
from inventrack.services import reports

router = APIRouter()


def _scoped_branch(current_user: CurrentUser, branch_id: Optional[str]) -> Optional[str]:
    """Superadmin may report on all branches; everyone else on their own."""
    if current_user.is_superadmin:
        return branch_id
    if branch_id:
        ensure_branch_access(current_user, branch_id)
        return branch_id
    if not current_user.branch_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Your account is not assigned to a branch"
        )
    return current_user.branch_id


@router.get("/statistics")
async def get_statistics(
    branch_id: Optional[str] = Query(default=None, alias="branchId"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    group_by: Optional[Literal["branch", "paymentMethod"]] = Query(default=None, alias="groupBy"),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Totals over completed bills: revenue, bill count, items, average bill.
    Optionally one row per branch or per payment method.
    """
    scoped = _scoped_branch(current_user, branch_id)
    stats = await reports.bill_statistics(scoped, start_date, end_date, group_by)

    if group_by is None:
        return {"success": True, "statistics": stats[0]}
    return {"success": True, "statistics": stats}


@router.get("/revenue/branches", response_model=dict)
async def get_revenue_by_branch(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_admin: CurrentUser = Depends(get_superadmin)
):
    revenue: List[BillStatistics] = await reports.bill_statistics(
        None, start_date, end_date, group_by="branch"
    )
    return {"success": True, "revenue": revenue}


@router.get("/revenue/payment-methods", response_model=dict)
async def get_revenue_by_payment_method(
    branch_id: Optional[str] = Query(default=None, alias="branchId"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_user)
):
    scoped = _scoped_branch(current_user, branch_id)
    revenue = await reports.bill_statistics(scoped, start_date, end_date, group_by="paymentMethod")
    return {"success": True, "revenue": revenue}


@router.get("/revenue/daily", response_model=dict)
async def get_daily_revenue(
    branch_id: Optional[str] = Query(default=None, alias="branchId"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_user)
):
    scoped = _scoped_branch(current_user, branch_id)
    daily: List[DailyRevenue] = await reports.daily_revenue(scoped, start_date, end_date)
    return {"success": True, "dailyRevenue": daily}
