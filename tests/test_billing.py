import asyncio

import pytest

from inventrack.core.exceptions import (
    BillNotFound,
    BranchInventoryNotFound,
    InsufficientStock,
    InvalidStatus,
    InvalidStatusTransition,
    ProductNotFound,
)
from inventrack.models.audit import AuditLog
from inventrack.models.bill import Bill, BillItem, BillStatus, Customer, PaymentMethod
from inventrack.schemas.bill import CartItem
from inventrack.services import billing
from inventrack.services import inventory as inventory_store
from tests.conftest import BRANCH_A, BRANCH_B

CUSTOMER = Customer(name="Asha", phone="9876543210")


async def quantity(pid: str, branch_id: str = BRANCH_A) -> int:
    return (await inventory_store.get_item(branch_id, pid)).quantity


def cart(*lines):
    return [CartItem(pid=pid, quantity=qty) for pid, qty in lines]


# --- Totals ---

def test_totals_apply_discount_before_gst():
    items = [BillItem(pid="X", name="X", brand="B", price=500.0, quantity=2, amount=1000.0)]

    totals = billing.calculate_totals(items, discount=10, gst_rate=18)

    assert totals.subtotal == 1000
    assert totals.discount_amount == pytest.approx(100)
    assert totals.taxable_amount == pytest.approx(900)
    assert totals.gst_amount == pytest.approx(162)
    assert totals.total == pytest.approx(1062)


def test_parse_status_rejects_unknown_value():
    with pytest.raises(InvalidStatus):
        billing.parse_status("void")


# --- Create ---

async def test_create_bill_snapshots_prices_and_deducts_stock(stocked, staff_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 2)), CUSTOMER)

    assert bill.items[0].price == 50.0
    assert bill.items[0].amount == 100.0
    assert bill.totals.subtotal == 100.0
    assert bill.totals.gst_amount == pytest.approx(18.0)
    assert bill.totals.total == pytest.approx(118.0)
    assert bill.total_items == 2
    assert bill.status == BillStatus.COMPLETED
    assert bill.branch_name == "Central"
    assert bill.staff_id == "u-staff"
    assert await quantity("P1") == 3


async def test_price_change_after_sale_leaves_bill_untouched(stocked, staff_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 1)), CUSTOMER)
    await inventory_store.update_item(BRANCH_A, "P1", {"price": 75.0})

    stored = await billing.get_bill(str(bill.id))
    assert stored.items[0].price == 50.0


async def test_insufficient_stock_reports_available_and_requested(stocked, staff_user):
    with pytest.raises(InsufficientStock) as exc_info:
        await billing.create_bill(BRANCH_A, staff_user, cart(("P3", 2)), CUSTOMER)

    assert exc_info.value.context["available"] == 1
    assert exc_info.value.context["requested"] == 2
    assert "Available: 1, Requested: 2" in exc_info.value.message
    assert await quantity("P3") == 1
    assert await Bill.find_all().count() == 0


async def test_one_bad_line_blocks_the_whole_cart(stocked, staff_user):
    with pytest.raises(InsufficientStock):
        await billing.create_bill(
            BRANCH_A, staff_user, cart(("P1", 1), ("P2", 1), ("P3", 5)), CUSTOMER
        )

    assert await quantity("P1") == 5
    assert await quantity("P2") == 10
    assert await quantity("P3") == 1
    assert await Bill.find_all().count() == 0


async def test_repeated_pid_is_checked_against_combined_quantity(stocked, staff_user):
    with pytest.raises(InsufficientStock) as exc_info:
        await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 3), ("P1", 3)), CUSTOMER)

    assert exc_info.value.context["requested"] == 6
    assert await quantity("P1") == 5


async def test_unknown_product_is_a_bad_request(stocked, staff_user):
    with pytest.raises(ProductNotFound) as exc_info:
        await billing.create_bill(BRANCH_A, staff_user, cart(("NOPE", 1)), CUSTOMER)

    assert exc_info.value.status_code == 400


async def test_branch_without_inventory_cannot_bill(branches, staff_user):
    with pytest.raises(BranchInventoryNotFound):
        await billing.create_bill(BRANCH_B, staff_user, cart(("P1", 1)), CUSTOMER)


async def test_default_gst_rate_and_payment_method(stocked, staff_user):
    bill = await billing.create_bill(
        BRANCH_A, staff_user, cart(("P2", 1)), CUSTOMER,
        gst_rate=5, discount=50, payment_method=PaymentMethod.UPI, notes="festival offer",
    )

    assert bill.gst_rate == 5
    assert bill.totals.taxable_amount == pytest.approx(10.0)
    assert bill.totals.total == pytest.approx(10.5)
    assert bill.payment_method == PaymentMethod.UPI
    assert bill.notes == "festival offer"


async def test_bill_numbers_are_unique_and_increasing(stocked, staff_user):
    first = await billing.create_bill(BRANCH_A, staff_user, cart(("P2", 1)), CUSTOMER)
    second = await billing.create_bill(BRANCH_A, staff_user, cart(("P2", 1)), CUSTOMER)

    branch, millis, seq = first.bill_number.rsplit("-", 2)
    assert branch == BRANCH_A
    assert millis.isdigit()
    assert seq == "1"
    assert second.bill_number.rsplit("-", 1)[1] == "2"


async def test_failed_deduction_undoes_applied_lines(stocked, staff_user, monkeypatch):
    original = inventory_store.adjust_quantity

    async def flaky_adjust(branch_id, pid, delta, session=None):
        # Simulates a concurrent sale draining P2 between check and write
        if pid == "P2" and delta < 0:
            raise InsufficientStock(pid, "Product P2", 0, -delta)
        return await original(branch_id, pid, delta, session=session)

    monkeypatch.setattr(inventory_store, "adjust_quantity", flaky_adjust)

    with pytest.raises(InsufficientStock):
        await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 2), ("P2", 1)), CUSTOMER)

    assert await quantity("P1") == 5
    assert await Bill.find_all().count() == 0


# --- Reads ---

async def test_get_bill_with_malformed_id_is_not_found(db):
    with pytest.raises(BillNotFound):
        await billing.get_bill("not-an-object-id")


async def test_list_bills_is_paginated_newest_first(stocked, staff_user):
    created = [
        await billing.create_bill(BRANCH_A, staff_user, cart(("P2", 1)), CUSTOMER)
        for _ in range(3)
    ]

    page, total = await billing.list_bills(BRANCH_A, page=1, limit=2)

    assert total == 3
    assert len(page) == 2
    assert page[0].bill_date >= page[1].bill_date
    assert {b.bill_number for b in created} >= {b.bill_number for b in page}


async def test_today_summary_splits_by_payment_method(stocked, staff_user):
    await billing.create_bill(BRANCH_A, staff_user, cart(("P2", 1)), CUSTOMER, gst_rate=0)
    await billing.create_bill(
        BRANCH_A, staff_user, cart(("P1", 1)), CUSTOMER, gst_rate=0, payment_method=PaymentMethod.CARD
    )

    summary, bills = await billing.today_summary(BRANCH_A)

    assert summary["total_bills"] == 2
    assert summary["total_sales"] == pytest.approx(70.0)
    assert summary["payment_methods"]["Cash"] == pytest.approx(20.0)
    assert summary["payment_methods"]["Card"] == pytest.approx(50.0)
    assert len(bills) == 2


# --- Status changes ---

async def test_cancel_restores_stock_exactly_once(stocked, staff_user, superadmin_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 2), ("P2", 3)), CUSTOMER)

    cancelled = await billing.update_bill_status(str(bill.id), "cancelled", superadmin_user)
    again = await billing.update_bill_status(str(bill.id), "cancelled", superadmin_user)

    assert cancelled.status == BillStatus.CANCELLED
    assert cancelled.status_changed_by == "u-root"
    assert again.status == BillStatus.CANCELLED
    assert await quantity("P1") == 5
    assert await quantity("P2") == 10


async def test_cancelled_bill_cannot_be_refunded(stocked, staff_user, superadmin_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 1)), CUSTOMER)
    await billing.update_bill_status(str(bill.id), "cancelled", superadmin_user)

    with pytest.raises(InvalidStatusTransition):
        await billing.update_bill_status(str(bill.id), "refunded", superadmin_user)
    with pytest.raises(InvalidStatusTransition):
        await billing.update_bill_status(str(bill.id), "completed", superadmin_user)

    assert await quantity("P1") == 5


async def test_refund_skips_products_no_longer_stocked(stocked, staff_user, superadmin_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 1), ("P2", 2)), CUSTOMER)
    await inventory_store.remove_item(BRANCH_A, "P1")

    refunded = await billing.update_bill_status(str(bill.id), "refunded", superadmin_user)

    assert refunded.status == BillStatus.REFUNDED
    assert await quantity("P2") == 10


# --- Delete ---

async def test_delete_restores_stock_and_writes_audit_entry(stocked, staff_user, superadmin_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 4)), CUSTOMER)

    await billing.delete_bill(str(bill.id), superadmin_user)

    assert await quantity("P1") == 5
    assert await Bill.find_all().count() == 0
    entry = await AuditLog.find_one(AuditLog.entity_id == str(bill.id))
    assert entry.action == "bill.delete"
    assert entry.actor_id == "u-root"
    assert entry.details["bill_number"] == bill.bill_number


async def test_delete_of_cancelled_bill_does_not_restock_twice(stocked, staff_user, superadmin_user):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 4)), CUSTOMER)
    await billing.update_bill_status(str(bill.id), "cancelled", superadmin_user)

    await billing.delete_bill(str(bill.id), superadmin_user)

    assert await quantity("P1") == 5


async def test_cancel_racing_delete_restocks_once(stocked, staff_user, superadmin_user, monkeypatch):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 4)), CUSTOMER)
    original_get = billing.get_bill

    async def slow_get(bill_id):
        # Yield like a real round-trip so both callers read the completed bill
        found = await original_get(bill_id)
        await asyncio.sleep(0)
        return found

    monkeypatch.setattr(billing, "get_bill", slow_get)

    await asyncio.gather(
        billing.update_bill_status(str(bill.id), "cancelled", superadmin_user),
        billing.delete_bill(str(bill.id), superadmin_user),
        return_exceptions=True,
    )

    assert await quantity("P1") == 5
    assert await Bill.find_all().count() == 0


async def test_concurrent_deletes_restock_once(stocked, staff_user, superadmin_user, monkeypatch):
    bill = await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 4)), CUSTOMER)
    original_get = billing.get_bill

    async def slow_get(bill_id):
        found = await original_get(bill_id)
        await asyncio.sleep(0)
        return found

    monkeypatch.setattr(billing, "get_bill", slow_get)

    results = await asyncio.gather(
        billing.delete_bill(str(bill.id), superadmin_user),
        billing.delete_bill(str(bill.id), superadmin_user),
        return_exceptions=True,
    )

    assert sum(isinstance(r, BillNotFound) for r in results) == 1
    assert await quantity("P1") == 5
    assert await AuditLog.find(AuditLog.entity_id == str(bill.id)).count() == 1


async def test_product_removed_mid_sale_is_a_bad_cart_line(stocked, staff_user, monkeypatch):
    original = inventory_store.adjust_quantity

    async def remove_then_adjust(branch_id, pid, delta, session=None):
        if pid == "P2" and delta < 0:
            await inventory_store.remove_item(branch_id, pid)
        return await original(branch_id, pid, delta, session=session)

    monkeypatch.setattr(inventory_store, "adjust_quantity", remove_then_adjust)

    with pytest.raises(ProductNotFound) as exc_info:
        await billing.create_bill(BRANCH_A, staff_user, cart(("P1", 2), ("P2", 1)), CUSTOMER)

    assert exc_info.value.status_code == 400
    assert exc_info.value.context["pid"] == "P2"
    assert await quantity("P1") == 5
    assert await Bill.find_all().count() == 0
