from typing import Optional
import datetime
from inventrack.schemas.common import CamelModel


class RevenueSummary(CamelModel):
    total_revenue: float = 0.0
    total_bills: int = 0
    total_items: int = 0


class BillStatistics(CamelModel):
    # branch id or payment method when grouped, None for the overall figure
    group: Optional[str] = None
    branch_name: Optional[str] = None
    total_revenue: float = 0.0
    bill_count: int = 0
    total_items: int = 0
    avg_bill_value: float = 0.0


class DailyRevenue(CamelModel):
    date: datetime.date
    total_revenue: float
    bill_count: int
