from pydantic import EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from inventrack.models.bill import BillStatus, PaymentMethod
from inventrack.schemas.common import CamelModel, Pagination


# ==========================================
# REQUEST SCHEMAS (What users send)
# ==========================================

class CartItem(CamelModel):
    """A cart line. Name, brand and price are resolved from the branch inventory."""
    pid: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, description="Must be at least 1")


class CustomerIn(CamelModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str = ""
    address: str = ""

    @field_validator("name", "phone", "email", "address")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class BillCreate(CamelModel):
    """Create a bill from a cart"""
    # Only a superadmin picks the branch; staff and managers bill their own
    branch_id: Optional[str] = None
    customer: CustomerIn
    items: List[CartItem] = Field(..., min_length=1, description="At least one item is required")
    gst_rate: Optional[float] = Field(default=None, ge=0)
    discount: float = Field(default=0.0, ge=0, le=100, description="Percentage of the subtotal")
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: str = ""


class BillStatusUpdate(CamelModel):
    # Plain string so an unknown value is reported as an invalid status
    status: str


class BillEmailRequest(CamelModel):
    bill_id: str
    email: EmailStr


# ==========================================
# RESPONSE SCHEMAS (What API returns)
# ==========================================

class CustomerOut(CamelModel):
    name: str
    phone: str
    email: str
    address: str


class BillItemOut(CamelModel):
    pid: str
    name: str
    brand: str
    price: float
    quantity: int
    amount: float


class BillTotalsOut(CamelModel):
    subtotal: float
    discount_amount: float
    taxable_amount: float
    gst_amount: float
    total: float


class BillResponse(CamelModel):
    id: str
    bill_number: str
    bill_date: datetime
    customer: CustomerOut
    items: List[BillItemOut]
    totals: BillTotalsOut
    total_items: int
    gst_rate: float
    discount: float
    payment_method: PaymentMethod
    notes: str
    branch_id: str
    branch_name: str
    branch_location: str
    staff_id: str
    staff_name: str
    status: BillStatus
    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def convert_id(cls, v: Any) -> str:
        return str(v)


class BillEnvelope(CamelModel):
    success: bool = True
    message: str = ""
    bill: BillResponse


class BillListResponse(CamelModel):
    success: bool = True
    bills: List[BillResponse]
    pagination: Pagination


class BillCollection(CamelModel):
    success: bool = True
    bills: List[BillResponse]
    count: int


class TodaySummary(CamelModel):
    total_sales: float
    total_bills: int
    total_items: int
    payment_methods: Dict[str, float]
