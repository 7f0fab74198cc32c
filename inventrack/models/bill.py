from beanie import Document, Indexed
from pydantic import BaseModel, Field
from typing import Annotated, List, Optional
from datetime import datetime
from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"
    NET_BANKING = "Net Banking"
    OTHER = "Other"


class BillStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Statuses that hand the billed stock back to the branch
REVERSING_STATUSES = {BillStatus.CANCELLED, BillStatus.REFUNDED}


class Customer(BaseModel):
    name: str
    phone: str
    email: str = ""
    address: str = ""


class BillItem(BaseModel):
    """Line item - embedded in Bill document"""
    pid: str
    name: str
    brand: str
    price: float     # Price at time of sale (snapshot)
    quantity: int = Field(..., ge=1)
    amount: float    # price × quantity


class BillTotals(BaseModel):
    subtotal: float
    discount_amount: float = 0.0
    taxable_amount: float
    gst_amount: float
    total: float


class Bill(Document):
    """
    A sale at a branch. Only ``status`` changes after creation.
    """
    bill_number: Annotated[str, Indexed(unique=True)]
    bill_date: datetime = Field(default_factory=datetime.utcnow)

    customer: Customer
    items: List[BillItem]
    totals: BillTotals
    total_items: int = 0  # Sum of line quantities

    gst_rate: float = 18.0
    discount: float = Field(default=0.0, ge=0, le=100)
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: str = ""

    # Provenance
    branch_id: Annotated[str, Indexed()]
    branch_name: str
    branch_location: str = ""
    staff_id: Annotated[str, Indexed()]
    staff_name: str

    status: BillStatus = BillStatus.COMPLETED
    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "bills"
        indexes = [
            [("branch_id", 1), ("bill_date", -1)],
            "customer.phone",
            "status",
        ]


class BillSequence(Document):
    """Per-branch counter behind the last part of a bill number."""
    branch_id: Annotated[str, Indexed(unique=True)]
    seq: int = 0

    class Settings:
        name = "bill_sequences"
