"""Billing transaction orchestrator.

``create_bill`` is the one place where two aggregates change together: a Bill
is written and the branch inventory is decremented. Validation happens first
and has no side effects; the writes that follow either all land or are undone.
"""

import logging
import time
from collections import defaultdict
from datetime import date, datetime, time as dtime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from beanie import PydanticObjectId, UpdateResponse
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from inventrack.core.config import settings
from inventrack.core.database import get_client
from inventrack.core.exceptions import (
    BillNotFound,
    BillingInconsistency,
    BranchAccessDenied,
    BranchInventoryNotFound,
    InsufficientStock,
    InvalidStatus,
    InvalidStatusTransition,
    ProductNotFound,
)
from inventrack.models.audit import AuditLog
from inventrack.models.bill import (
    Bill,
    BillItem,
    BillSequence,
    BillStatus,
    BillTotals,
    Customer,
    PaymentMethod,
    REVERSING_STATUSES,
)
from inventrack.models.branch import Branch
from inventrack.models.inventory import InventoryItem
from inventrack.schemas.user import CurrentUser, UserRole
from inventrack.services import inventory as inventory_store

logger = logging.getLogger(__name__)


# ==========================================
# HELPER FUNCTIONS
# ==========================================

def calculate_totals(items: Iterable[BillItem], discount: float, gst_rate: float) -> BillTotals:
    """
    subtotal -> discount -> taxable -> GST -> total, in that order.
    Nothing is rounded here; rounding belongs to whoever displays the bill.
    """
    subtotal = sum(item.amount for item in items)
    discount_amount = subtotal * discount / 100
    taxable_amount = subtotal - discount_amount
    gst_amount = taxable_amount * gst_rate / 100
    total = taxable_amount + gst_amount
    return BillTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        gst_amount=gst_amount,
        total=total,
    )


def date_window(start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, datetime]:
    """Inclusive ``bill_date`` bounds; a bare end date covers that whole day."""
    window: Dict[str, datetime] = {}
    if start:
        window["$gte"] = start if isinstance(start, datetime) else datetime.combine(start, dtime.min)
    if end:
        window["$lte"] = end if isinstance(end, datetime) else datetime.combine(end, dtime.max)
    return window


def parse_status(value: str) -> BillStatus:
    try:
        return BillStatus(value)
    except ValueError:
        raise InvalidStatus(value)


async def next_bill_number(branch_id: str) -> str:
    """``{branch_id}-{epoch millis}-{per-branch sequence}``.

    The sequence is a counter document bumped with ``$inc``, so two bills of
    the same branch can never share a number. A branch numbered for the first
    time continues from its existing bill count.
    """
    if await BillSequence.find_one(BillSequence.branch_id == branch_id) is None:
        existing = await Bill.find(Bill.branch_id == branch_id).count()
        try:
            await BillSequence(branch_id=branch_id, seq=existing).insert()
        except DuplicateKeyError:
            pass  # seeded concurrently

    counter = await BillSequence.get_motor_collection().find_one_and_update(
        {"branch_id": branch_id},
        {"$inc": {"seq": 1}},
        return_document=ReturnDocument.AFTER,
    )
    millis = int(time.time() * 1000)
    return f"{branch_id}-{millis}-{counter['seq']}"


async def _branch_details(branch_id: str) -> Tuple[str, str]:
    branch = await Branch.find_one(Branch.branch_id == branch_id)
    if not branch:
        return branch_id, ""
    return branch.name, branch.location


# ==========================================
# 1. CREATE BILL
# ==========================================

async def create_bill(
    branch_id: str,
    staff: CurrentUser,
    cart: List[Any],
    customer: Customer,
    gst_rate: Optional[float] = None,
    discount: float = 0.0,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    notes: str = "",
) -> Bill:
    """
    Bill a cart of ``{pid, quantity}`` lines against a branch inventory.

    Raises BranchInventoryNotFound, ProductNotFound or InsufficientStock
    before anything is written.
    """
    if gst_rate is None:
        gst_rate = settings.DEFAULT_GST_RATE

    # 1. Branch inventory must exist
    if not await inventory_store.get_branch_inventory(branch_id):
        raise BranchInventoryNotFound(branch_id)

    # 2. Resolve every line against current stock
    pids = [line.pid for line in cart]
    stock: Dict[str, InventoryItem] = {
        item.pid: item
        for item in await InventoryItem.find(
            {"branch_id": branch_id, "pid": {"$in": pids}}
        ).to_list()
    }
    for line in cart:
        if line.pid not in stock:
            raise ProductNotFound(branch_id, line.pid, status_code=400)

    # 3. Stock sufficiency, all lines before any write.
    # A pid listed twice is checked against its combined quantity.
    requested: Dict[str, int] = defaultdict(int)
    for line in cart:
        requested[line.pid] += line.quantity
        item = stock[line.pid]
        if item.quantity < requested[line.pid]:
            raise InsufficientStock(line.pid, item.name, item.quantity, requested[line.pid])

    # 4. Price snapshot from the inventory, never from the caller
    bill_items = [
        BillItem(
            pid=line.pid,
            name=stock[line.pid].name,
            brand=stock[line.pid].brand,
            price=stock[line.pid].price,
            quantity=line.quantity,
            amount=stock[line.pid].price * line.quantity,
        )
        for line in cart
    ]

    # 5. Totals
    totals = calculate_totals(bill_items, discount, gst_rate)

    # 6. Bill number
    bill_number = await next_bill_number(branch_id)

    branch_name, branch_location = await _branch_details(branch_id)
    bill = Bill(
        bill_number=bill_number,
        customer=customer,
        items=bill_items,
        totals=totals,
        total_items=sum(item.quantity for item in bill_items),
        gst_rate=gst_rate,
        discount=discount,
        payment_method=payment_method,
        notes=notes,
        branch_id=branch_id,
        branch_name=branch_name,
        branch_location=branch_location,
        staff_id=staff.id,
        staff_name=staff.name,
        status=BillStatus.COMPLETED,
    )

    # 7 + 8. Persist and deduct stock
    if settings.MONGODB_TRANSACTIONS:
        await _commit_in_transaction(bill)
    else:
        await _commit_with_compensation(bill)

    logger.info(
        "Bill %s created at %s by %s: %d item(s), total %.2f",
        bill.bill_number, branch_id, staff.id, bill.total_items, bill.totals.total,
    )
    # 9.
    return bill


async def _commit_in_transaction(bill: Bill) -> None:
    try:
        async with await get_client().start_session() as session:
            async with session.start_transaction():
                await bill.insert(session=session)
                for line in bill.items:
                    await inventory_store.adjust_quantity(
                        bill.branch_id, line.pid, -line.quantity, session=session
                    )
    except ProductNotFound as exc:
        _raise_as_cart_error(bill, exc)
        raise


async def _commit_with_compensation(bill: Bill) -> None:
    await bill.insert()

    applied: List[BillItem] = []
    try:
        for line in bill.items:
            await inventory_store.adjust_quantity(bill.branch_id, line.pid, -line.quantity)
            applied.append(line)
    except Exception as exc:
        # A concurrent sale or edit won the stock; give back what this bill took
        try:
            for line in applied:
                await inventory_store.adjust_quantity(bill.branch_id, line.pid, line.quantity)
            await bill.delete()
        except Exception as rollback_exc:
            logger.critical(
                "Bill %s is stored but its stock deduction is incomplete. "
                "Reconcile branch %s: deducted %s, pending %s",
                bill.bill_number,
                bill.branch_id,
                [(line.pid, line.quantity) for line in applied],
                [(line.pid, line.quantity) for line in bill.items if line not in applied],
            )
            raise BillingInconsistency(bill.bill_number) from rollback_exc

        logger.warning("Bill %s rolled back: %s", bill.bill_number, exc)
        _raise_as_cart_error(bill, exc)
        raise


def _raise_as_cart_error(bill: Bill, exc: Exception) -> None:
    # A product removed after validation is still a bad cart line, not a missing resource
    if isinstance(exc, ProductNotFound) and exc.status_code != 400:
        raise ProductNotFound(bill.branch_id, exc.context["pid"], status_code=400) from exc


# ==========================================
# 2. READ BILLS
# ==========================================

async def get_bill(bill_id: str) -> Bill:
    try:
        object_id = PydanticObjectId(bill_id)
    except (InvalidId, TypeError):
        raise BillNotFound(bill_id)

    bill = await Bill.get(object_id)
    if not bill:
        raise BillNotFound(bill_id)
    return bill


async def get_bill_by_number(bill_number: str) -> Bill:
    bill = await Bill.find_one(Bill.bill_number == bill_number)
    if not bill:
        raise BillNotFound(bill_number)
    return bill


async def list_bills(
    branch_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    status: Optional[BillStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[List[Bill], int]:
    """Newest first. Returns one page and the total match count."""
    query: Dict[str, Any] = {}
    if branch_id:
        query["branch_id"] = branch_id
    if status:
        query["status"] = status.value
    window = date_window(start_date, end_date)
    if window:
        query["bill_date"] = window

    total = await Bill.find(query).count()
    bills = await (
        Bill.find(query)
        .sort(-Bill.bill_date)
        .skip((page - 1) * limit)
        .limit(limit)
        .to_list()
    )
    return bills, total


async def bills_by_customer(phone: str, branch_id: Optional[str] = None) -> List[Bill]:
    query: Dict[str, Any] = {"customer.phone": phone}
    if branch_id:
        query["branch_id"] = branch_id
    return await Bill.find(query).sort(-Bill.bill_date).to_list()


async def bills_by_staff(
    staff_id: str,
    branch_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Bill]:
    query: Dict[str, Any] = {"staff_id": staff_id}
    if branch_id:
        query["branch_id"] = branch_id
    window = date_window(start_date, end_date)
    if window:
        query["bill_date"] = window
    return await Bill.find(query).sort(-Bill.bill_date).to_list()


async def today_summary(branch_id: str) -> Tuple[Dict[str, Any], List[Bill]]:
    """Completed sales of the current UTC day, with a per payment method split."""
    today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    today_end = today_start + timedelta(days=1)

    bills = await Bill.find({
        "branch_id": branch_id,
        "bill_date": {"$gte": today_start, "$lt": today_end},
        "status": BillStatus.COMPLETED.value,
    }).sort(-Bill.bill_date).to_list()

    payment_methods = {method.value: 0.0 for method in PaymentMethod}
    for bill in bills:
        payment_methods[bill.payment_method.value] += bill.totals.total

    summary = {
        "total_sales": sum(bill.totals.total for bill in bills),
        "total_bills": len(bills),
        "total_items": sum(bill.total_items for bill in bills),
        "payment_methods": payment_methods,
    }
    return summary, bills


# ==========================================
# 3. STATUS CHANGES (Cancel / Refund)
# ==========================================

async def restore_stock(bill: Bill) -> int:
    """Give the bill's quantities back to its branch. Returns lines restored."""
    restored = 0
    for line in bill.items:
        try:
            await inventory_store.adjust_quantity(bill.branch_id, line.pid, line.quantity)
            restored += 1
        except ProductNotFound:
            logger.warning(
                "Bill %s: %s is no longer stocked at %s, %d unit(s) not restored",
                bill.bill_number, line.pid, bill.branch_id, line.quantity,
            )
    return restored


async def _claim_status(bill: Bill, target: BillStatus, actor: CurrentUser) -> Optional[Bill]:
    """Compare-and-set ``completed -> target``. None when another caller won."""
    now = datetime.utcnow()
    return await Bill.find_one(
        {"_id": bill.id, "status": BillStatus.COMPLETED.value}
    ).update(
        {"$set": {
            "status": target.value,
            "status_changed_at": now,
            "status_changed_by": actor.id,
            "updated_at": now,
        }},
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def update_bill_status(bill_id: str, new_status: str, actor: CurrentUser) -> Bill:
    """
    Only ``completed -> cancelled|refunded`` moves stock. Repeating the
    current status is a no-op, so a second cancel restores nothing.
    """
    target = parse_status(new_status)
    bill = await get_bill(bill_id)

    if actor.role != UserRole.SUPERADMIN and actor.branch_id != bill.branch_id:
        raise BranchAccessDenied("You can only update bills for your assigned branch")

    if bill.status == target:
        return bill
    if bill.status != BillStatus.COMPLETED:
        raise InvalidStatusTransition(bill.status.value, target.value)

    updated = await _claim_status(bill, target, actor)
    if updated is None:
        current = await get_bill(bill_id)
        if current.status == target:
            return current
        raise InvalidStatusTransition(current.status.value, target.value)

    if target in REVERSING_STATUSES:
        restored = await restore_stock(updated)
        logger.info(
            "Bill %s %s by %s, %d/%d line(s) restocked",
            updated.bill_number, target.value, actor.id, restored, len(updated.items),
        )
    return updated


# ==========================================
# 4. ADMINISTRATIVE DELETE
# ==========================================

async def delete_bill(bill_id: str, actor: CurrentUser) -> Bill:
    """
    Hard delete for data-entry mistakes. Stock of a still completed bill is
    returned first, and the removal is written to the audit log.
    """
    bill = await get_bill(bill_id)

    # Only the caller that wins completed -> cancelled restocks
    restored = 0
    if bill.status == BillStatus.COMPLETED:
        claimed = await _claim_status(bill, BillStatus.CANCELLED, actor)
        if claimed is not None:
            restored = await restore_stock(claimed)

    result = await Bill.find_one(Bill.id == bill.id).delete()
    if result is None or result.deleted_count == 0:
        raise BillNotFound(bill_id)

    await AuditLog(
        action="bill.delete",
        entity="bill",
        entity_id=str(bill.id),
        actor_id=actor.id,
        actor_role=actor.role.value,
        branch_id=bill.branch_id,
        details={
            "bill_number": bill.bill_number,
            "status": bill.status.value,
            "total": bill.totals.total,
            "lines_restocked": restored,
        },
    ).insert()

    logger.warning(
        "Bill %s (%s) deleted by %s %s", bill.bill_number, bill.status.value, actor.role.value, actor.id
    )
    return bill
