"""Read-only revenue aggregation over completed bills."""

from datetime import date
from typing import Any, Dict, List, Optional

from inventrack.models.bill import Bill, BillStatus
from inventrack.schemas.report import BillStatistics, DailyRevenue, RevenueSummary
from inventrack.services.billing import date_window

GROUP_KEYS = {
    "branch": "$branch_id",
    "paymentMethod": "$payment_method",
}


def _completed_match(
    branch_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Dict[str, Any]:
    match: Dict[str, Any] = {"status": BillStatus.COMPLETED.value}
    if branch_id:
        match["branch_id"] = branch_id
    window = date_window(start_date, end_date)
    if window:
        match["bill_date"] = window
    return match


async def branch_revenue(branch_id: str, start_date: date, end_date: date) -> RevenueSummary:
    pipeline = [
        {"$match": _completed_match(branch_id, start_date, end_date)},
        {"$group": {
            "_id": None,
            "total_revenue": {"$sum": "$totals.total"},
            "total_bills": {"$sum": 1},
            "total_items": {"$sum": "$total_items"},
        }},
    ]
    result = await Bill.aggregate(pipeline).to_list()
    if not result:
        return RevenueSummary()
    return RevenueSummary(**{k: v for k, v in result[0].items() if k != "_id"})


async def bill_statistics(
    branch_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group_by: Optional[str] = None,
) -> List[BillStatistics]:
    """
    ``{totalRevenue, billCount, totalItems, avgBillValue}`` overall, or one
    row per branch / payment method (highest revenue first).
    """
    if group_by is not None and group_by not in GROUP_KEYS:
        raise ValueError(f"Unsupported grouping '{group_by}'")

    group: Dict[str, Any] = {
        "_id": GROUP_KEYS.get(group_by),
        "total_revenue": {"$sum": "$totals.total"},
        "bill_count": {"$sum": 1},
        "total_items": {"$sum": "$total_items"},
        "avg_bill_value": {"$avg": "$totals.total"},
    }
    if group_by == "branch":
        group["branch_name"] = {"$first": "$branch_name"}

    pipeline = [
        {"$match": _completed_match(branch_id, start_date, end_date)},
        {"$group": group},
    ]
    rows = await Bill.aggregate(pipeline).to_list()

    if group_by is None:
        if not rows:
            return [BillStatistics()]
        row = rows[0]
        return [BillStatistics(
            total_revenue=row["total_revenue"],
            bill_count=row["bill_count"],
            total_items=row["total_items"],
            avg_bill_value=row["avg_bill_value"] or 0.0,
        )]

    stats = [
        BillStatistics(
            group=row["_id"],
            branch_name=row.get("branch_name"),
            total_revenue=row["total_revenue"],
            bill_count=row["bill_count"],
            total_items=row["total_items"],
            avg_bill_value=row["avg_bill_value"] or 0.0,
        )
        for row in rows
    ]
    stats.sort(key=lambda s: s.total_revenue, reverse=True)
    return stats


async def daily_revenue(
    branch_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[DailyRevenue]:
    pipeline = [
        {"$match": _completed_match(branch_id, start_date, end_date)},
        {"$group": {
            "_id": {
                "year": {"$year": "$bill_date"},
                "month": {"$month": "$bill_date"},
                "day": {"$dayOfMonth": "$bill_date"},
            },
            "total_revenue": {"$sum": "$totals.total"},
            "bill_count": {"$sum": 1},
        }},
    ]
    rows = await Bill.aggregate(pipeline).to_list()

    days = [
        DailyRevenue(
            date=date(row["_id"]["year"], row["_id"]["month"], row["_id"]["day"]),
            total_revenue=row["total_revenue"],
            bill_count=row["bill_count"],
        )
        for row in rows
    ]
    days.sort(key=lambda d: d.date)
    return days
