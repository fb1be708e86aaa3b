"""
Billing Service - inventory-consistent bill create / edit / delete

WHY: A bill and the stock it consumed must never disagree. Every path that
touches a bill also touches the Catalog through the StockLedger, and every
partial step can be undone.

DESIGN:
- Line items freeze product name, SKU and price at sale time; product_id is
  a weak reference used only for live stock math.
- Edit = "fully restore, then fully reapply": the old items go back into
  stock, the new list is validated against the restored stock, and the new
  items are taken out again. A product dropped from the bill therefore always
  gets its stock back.
- Each mutating step is recorded on a CompensationLog with its undo. On any
  failure the log is unwound in reverse order before the error is raised,
  so the session's stock footprint is exactly what it was before the call.
  When the service owns the transaction (commit=True) it is rolled back too.
- Edits and deletes of the same bill are serialized by an in-process keyed
  lock plus a row lock on the bill.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import or_

from ..errors import (
    BillNotFound,
    InsufficientStock,
    NegativeGrandTotal,
    ProductNotFound,
    ShopledgerError,
    ValidationError,
)
from ..extensions import db
from ..models import Bill, BillLineItem, Product, PAYMENT_TYPES, DEFAULT_PAYMENT_TYPE
from ..validation import coerce_int, coerce_money_cents
from .compensation import CompensationLog, abort_operation
from .concurrency import keyed_locks, lock_for_update, storage_errors
from .ledger_service import append_ledger_event
from .sequence_service import next_bill_number
from .stock_ledger import apply_deltas, restore_deltas, sale_deltas


# =============================================================================
# INPUT PARSING
# =============================================================================

@dataclass(frozen=True)
class BillItemInput:
    """One requested line. selling_price_cents=None means "use the catalog price"."""
    product_id: int
    quantity: int
    selling_price_cents: int | None = None
    discount_cents: int = 0
    comment: str = ""


@dataclass(frozen=True)
class BillTotals:
    subtotal_cents: int
    global_discount_cents: int
    total_discount_cents: int
    grand_total_cents: int


def parse_bill_items(raw_items: Any) -> list[BillItemInput]:
    """
    Validate a client item list into BillItemInput rows.

    Accepts dicts (JSON payloads) or BillItemInput instances.
    """
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise ValidationError("At least one item is required")

    parsed: list[BillItemInput] = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, BillItemInput):
            raw = raw.__dict__
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        if raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        product_id = coerce_int(raw["product_id"], f"items[{index}].product_id")

        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        quantity = coerce_int(raw["quantity"], f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(
                f"Quantity must be greater than 0 for items[{index}]",
                details={"product_id": product_id, "quantity": quantity},
            )

        price = raw.get("selling_price_cents")
        if price is not None:
            price = coerce_money_cents(price, f"items[{index}].selling_price_cents")

        discount = coerce_money_cents(
            raw.get("discount_cents"), f"items[{index}].discount_cents", default=0
        )

        comment = raw.get("comment") or ""
        if not isinstance(comment, str):
            raise ValidationError(f"items[{index}].comment must be a string")
        if len(comment) > 500:
            raise ValidationError(f"items[{index}].comment exceeds max length 500")

        parsed.append(BillItemInput(
            product_id=product_id,
            quantity=quantity,
            selling_price_cents=price,
            discount_cents=discount,
            comment=comment.strip(),
        ))
    return parsed


def _require_text(value: Any, field: str, max_length: int) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value


def _optional_text(value: Any, field: str, max_length: int) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _require_text(value, field, max_length)


def resolve_payment_type(value: Any) -> str:
    if value is None or value == "":
        return DEFAULT_PAYMENT_TYPE
    if value not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of {', '.join(PAYMENT_TYPES)}",
            details={"payment_type": value},
        )
    return value


# =============================================================================
# LINE ITEMS AND TOTALS
# =============================================================================

def _requested_by_product(items: Iterable) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def _load_products(items: list[BillItemInput]) -> dict[int, Product]:
    ids = sorted({item.product_id for item in items})
    products = db.session.query(Product).filter(Product.id.in_(ids)).all()
    by_id = {p.id: p for p in products}
    for item in items:
        if item.product_id not in by_id:
            raise ProductNotFound(item.product_id)
    return by_id


def _freeze_items(items: list[BillItemInput], products: dict[int, Product]) -> list[BillLineItem]:
    lines = []
    for position, item in enumerate(items):
        product = products[item.product_id]
        price = item.selling_price_cents
        if price is None:
            price = product.selling_price_cents
        lines.append(BillLineItem(
            position=position,
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            quantity=item.quantity,
            selling_price_cents=price,
            discount_cents=item.discount_cents,
            comment=item.comment,
            subtotal_cents=item.quantity * price - item.discount_cents,
        ))
    return lines


def compute_totals(lines: Iterable[BillLineItem], global_discount_cents: int) -> BillTotals:
    """
    subtotal = sum(qty * price); total_discount = sum(line discounts) + global;
    grand_total = subtotal - total_discount, which must not be negative.
    """
    subtotal = 0
    total_discount = 0
    for line in lines:
        subtotal += line.quantity * line.selling_price_cents
        total_discount += line.discount_cents
    total_discount += global_discount_cents

    grand_total = subtotal - total_discount
    if grand_total < 0:
        raise NegativeGrandTotal(subtotal, total_discount)

    return BillTotals(
        subtotal_cents=subtotal,
        global_discount_cents=global_discount_cents,
        total_discount_cents=total_discount,
        grand_total_cents=grand_total,
    )


def _apply_totals(bill: Bill, totals: BillTotals) -> None:
    bill.subtotal_cents = totals.subtotal_cents
    bill.global_discount_cents = totals.global_discount_cents
    bill.total_discount_cents = totals.total_discount_cents
    bill.grand_total_cents = totals.grand_total_cents


def _lock_bill(bill_id: int) -> Bill:
    bill = (
        lock_for_update(db.session.query(Bill).filter_by(id=bill_id))
        .populate_existing()
        .first()
    )
    if not bill:
        raise BillNotFound(bill_id)
    return bill


def _lock_timeout() -> float:
    return float(current_app.config.get("LOCK_TIMEOUT_SECONDS", 5.0))


# =============================================================================
# CREATE
# =============================================================================

def create_bill(
    *,
    customer_name: Any,
    customer_phone: Any,
    items: Any,
    global_discount_cents: Any = None,
    payment_type: Any = None,
    commit: bool = True,
) -> Bill:
    """
    Create a bill and take its items out of stock.

    Steps: validate items against current stock, freeze line items, compute
    totals, allocate the bill number, persist the bill, decrement stock.

    Raises:
        ValidationError, ProductNotFound, InsufficientStock, NegativeGrandTotal,
        ConcurrencyConflict, StorageError
    """
    name = _require_text(customer_name, "customer_name", 255)
    phone = _require_text(customer_phone, "customer_phone", 32)
    requested = parse_bill_items(items)
    global_discount = coerce_money_cents(global_discount_cents, "global_discount_cents", default=0)
    payment = resolve_payment_type(payment_type)

    log = CompensationLog()
    try:
        with storage_errors():
            products = _load_products(requested)

            shortfalls = []
            for product_id, quantity in _requested_by_product(requested).items():
                product = products[product_id]
                if product.quantity < quantity:
                    shortfalls.append({
                        "product_id": product_id,
                        "name": product.name,
                        "available": product.quantity,
                        "requested": quantity,
                    })
            if shortfalls:
                raise InsufficientStock(shortfalls)

            lines = _freeze_items(requested, products)
            totals = compute_totals(lines, global_discount)

            bill = Bill(
                bill_number=next_bill_number(),
                customer_name=name,
                customer_phone=phone,
                items=lines,
                payment_type=payment,
            )
            _apply_totals(bill, totals)

            def _persist():
                db.session.add(bill)
                db.session.flush()

            def _unpersist():
                db.session.delete(bill)
                db.session.flush()

            log.run("persist bill", do=_persist, undo=_unpersist)

            sold = sale_deltas(lines)
            log.run(
                "decrement stock",
                do=lambda: apply_deltas(sold, note=f"Bill {bill.bill_number}"),
                undo=lambda: apply_deltas(restore_deltas(lines), skip_missing=True,
                                          note=f"Undo bill {bill.bill_number}"),
            )

            append_ledger_event(
                event_type="bill.created",
                entity_type="bill",
                entity_id=bill.id,
                note=f"Bill {bill.bill_number} created",
                payload={"grand_total_cents": bill.grand_total_cents, "items": len(lines)},
            )

            if commit:
                db.session.commit()
    except ShopledgerError:
        abort_operation(log, commit=commit)
        raise

    log.discard()
    current_app.logger.info(
        "Bill %s created: %d items, grand total %d", bill.bill_number, len(bill.items), bill.grand_total_cents
    )
    return bill


# =============================================================================
# UPDATE (delta reconciliation)
# =============================================================================

def _snapshot_lines(bill: Bill) -> list[dict]:
    return [
        {
            "position": line.position,
            "product_id": line.product_id,
            "product_name": line.product_name,
            "sku": line.sku,
            "quantity": line.quantity,
            "selling_price_cents": line.selling_price_cents,
            "discount_cents": line.discount_cents,
            "comment": line.comment,
            "subtotal_cents": line.subtotal_cents,
        }
        for line in bill.items
    ]


def update_bill(
    bill_id: int,
    *,
    items: Any,
    customer_name: Any = None,
    customer_phone: Any = None,
    global_discount_cents: Any = None,
    payment_type: Any = None,
    commit: bool = True,
) -> Bill:
    """
    Replace a bill's entire item list, reconciling stock.

    1. Load the bill (BillNotFound), then parse the request.
    2. Put every original line back into stock.
    3. Validate the new list against the restored stock: for each product,
       the extra quantity over the original bill must be available.
    4. On any failure, undo the restore before raising.
    5. Recompute totals (NegativeGrandTotal).
    6. Overwrite customer fields (only if provided), items, totals, payment type.
    7. Take the new items out of stock.

    global_discount_cents defaults to 0 when omitted.
    """
    with keyed_locks.hold("bill", bill_id, timeout=_lock_timeout()):
        log = CompensationLog()
        try:
            with storage_errors():
                bill = _lock_bill(bill_id)

                requested = parse_bill_items(items)
                name = _optional_text(customer_name, "customer_name", 255)
                phone = _optional_text(customer_phone, "customer_phone", 32)
                global_discount = coerce_money_cents(global_discount_cents, "global_discount_cents", default=0)
                payment = resolve_payment_type(payment_type) if payment_type not in (None, "") else None

                original_restore = restore_deltas(bill.items)
                original_sale = sale_deltas(bill.items)
                original_qty = _requested_by_product(bill.items)
                note = f"Edit bill {bill.bill_number}"

                log.run(
                    "restore original stock",
                    do=lambda: apply_deltas(original_restore, skip_missing=True, note=note),
                    undo=lambda: apply_deltas(original_sale, skip_missing=True, note=f"Undo {note}"),
                )

                products = _load_products(requested)

                shortfalls = []
                for product_id, quantity in _requested_by_product(requested).items():
                    delta = quantity - original_qty.get(product_id, 0)
                    available = products[product_id].quantity
                    if delta > 0 and available < delta:
                        shortfalls.append({
                            "product_id": product_id,
                            "name": products[product_id].name,
                            "available": available,
                            "requested": delta,
                        })
                if shortfalls:
                    raise InsufficientStock(shortfalls)

                lines = _freeze_items(requested, products)
                totals = compute_totals(lines, global_discount)

                previous = {
                    "customer_name": bill.customer_name,
                    "customer_phone": bill.customer_phone,
                    "payment_type": bill.payment_type,
                    "subtotal_cents": bill.subtotal_cents,
                    "global_discount_cents": bill.global_discount_cents,
                    "total_discount_cents": bill.total_discount_cents,
                    "grand_total_cents": bill.grand_total_cents,
                }
                previous_lines = _snapshot_lines(bill)

                def _overwrite():
                    if name is not None:
                        bill.customer_name = name
                    if phone is not None:
                        bill.customer_phone = phone
                    if payment is not None:
                        bill.payment_type = payment
                    bill.items = lines
                    _apply_totals(bill, totals)
                    db.session.flush()

                def _revert():
                    for key, value in previous.items():
                        setattr(bill, key, value)
                    bill.items = [BillLineItem(**row) for row in previous_lines]
                    db.session.flush()

                log.run("overwrite bill", do=_overwrite, undo=_revert)

                log.run(
                    "decrement stock for new items",
                    do=lambda: apply_deltas(sale_deltas(lines), note=note),
                    undo=lambda: apply_deltas(restore_deltas(lines), skip_missing=True,
                                              note=f"Undo {note}"),
                )

                append_ledger_event(
                    event_type="bill.updated",
                    entity_type="bill",
                    entity_id=bill.id,
                    note=f"Bill {bill.bill_number} updated",
                    payload={"grand_total_cents": bill.grand_total_cents, "items": len(lines)},
                )

                if commit:
                    db.session.commit()
        except ShopledgerError:
            abort_operation(log, commit=commit)
            raise

    log.discard()
    current_app.logger.info(
        "Bill %s updated: %d items, grand total %d", bill.bill_number, len(bill.items), bill.grand_total_cents
    )
    return bill


# =============================================================================
# DELETE
# =============================================================================

def delete_bill(bill_id: int, *, commit: bool = True) -> str:
    """
    Put every item back into stock and remove the bill.

    Deletion is an unwind, not a correction: nothing is recorded against
    profit. Returns the deleted bill's number.
    """
    with keyed_locks.hold("bill", bill_id, timeout=_lock_timeout()):
        log = CompensationLog()
        try:
            with storage_errors():
                bill = _lock_bill(bill_id)
                bill_number = bill.bill_number
                restore = restore_deltas(bill.items)
                resell = sale_deltas(bill.items)

                log.run(
                    "restore stock",
                    do=lambda: apply_deltas(restore, skip_missing=True, note=f"Delete bill {bill_number}"),
                    undo=lambda: apply_deltas(resell, skip_missing=True, note=f"Undo delete bill {bill_number}"),
                )

                db.session.delete(bill)
                db.session.flush()

                append_ledger_event(
                    event_type="bill.deleted",
                    entity_type="bill",
                    entity_id=bill_id,
                    note=f"Bill {bill_number} deleted",
                )

                if commit:
                    db.session.commit()
        except ShopledgerError:
            abort_operation(log, commit=commit)
            raise

    log.discard()
    current_app.logger.info("Bill %s deleted", bill_number)
    return bill_number


# =============================================================================
# READS
# =============================================================================

def get_bill(bill_id: int) -> Bill:
    bill = db.session.get(Bill, bill_id)
    if not bill:
        raise BillNotFound(bill_id)
    return bill


def list_bills(*, limit: int | None = None, offset: int = 0) -> list[Bill]:
    """All bills, newest first."""
    query = db.session.query(Bill).order_by(Bill.created_at.desc(), Bill.id.desc())
    if offset:
        query = query.offset(max(offset, 0))
    if limit is not None:
        query = query.limit(max(1, min(limit, 500)))
    return query.all()


def search_bills(query_text: str) -> list[Bill]:
    """Case-insensitive substring match on bill number or customer phone."""
    text = (query_text or "").strip()
    if not text:
        return []
    pattern = f"%{text}%"
    return (
        db.session.query(Bill)
        .filter(or_(Bill.bill_number.ilike(pattern), Bill.customer_phone.ilike(pattern)))
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .all()
    )
