"""
Credit Note Service - partial returns against a prior bill

WHY: A customer brings back part of a sale. The returned goods go back into
stock and the note records how much money and margin the return gave back.

DESIGN PRINCIPLES:
- Every returned line must match a line on the original bill by product_id,
  and may not exceed that line's sold quantity.
- selling price comes from the request (the price the item was sold at);
  cost price is the product's CURRENT cost price at return time.
- Stock only ever comes back on this path (positive deltas).
- Credit notes are append-only: never edited, never deleted.

KNOWN LIMITATION:
- Quantities already returned by earlier notes against the same bill line
  are not subtracted. Two notes for 2 units each against a line of 3 are
  both accepted. Duplicate prevention belongs to the policy layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..errors import (
    CreditNoteNotFound,
    ExcessReturnQuantity,
    ItemNotInOriginalBill,
    ProductNotFound,
    ShopledgerError,
    ValidationError,
)
from ..extensions import db
from ..models import Bill, CreditNote, CreditNoteLineItem, Product
from ..validation import coerce_int, coerce_money_cents
from .billing_service import get_bill
from .compensation import CompensationLog, abort_operation
from .concurrency import storage_errors
from .ledger_service import append_ledger_event
from .sequence_service import next_credit_note_number
from .stock_ledger import apply_deltas, restore_deltas, sale_deltas


@dataclass(frozen=True)
class ReturnItemInput:
    product_id: int
    quantity: int
    selling_price_cents: int | None = None
    reason: str = ""


def parse_return_items(raw_items: Any) -> list[ReturnItemInput]:
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise ValidationError("At least one item is required")

    parsed: list[ReturnItemInput] = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, ReturnItemInput):
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
            raise ValidationError(f"items[{index}].quantity must be greater than 0")

        price = raw.get("selling_price_cents")
        if price is not None:
            price = coerce_money_cents(price, f"items[{index}].selling_price_cents")

        reason = raw.get("reason") or ""
        if not isinstance(reason, str):
            raise ValidationError(f"items[{index}].reason must be a string")

        parsed.append(ReturnItemInput(
            product_id=product_id,
            quantity=quantity,
            selling_price_cents=price,
            reason=reason.strip()[:500],
        ))
    return parsed


def _original_line(bill: Bill, product_id: int):
    # first matching line wins
    for line in bill.items:
        if line.product_id == product_id:
            return line
    return None


def issue_credit_note(
    *,
    original_bill_id: Any,
    items: Any,
    reason: Any = None,
    commit: bool = True,
) -> CreditNote:
    """
    Issue a credit note against a bill and put the returned goods back in stock.

    Per line: amount = qty * selling price, cost = qty * current cost price,
    profit/loss = amount - cost. Totals are the sums over all lines.

    When a line omits selling_price_cents, the price frozen on the original
    bill line is used.

    Raises:
        BillNotFound, ValidationError, ProductNotFound, ItemNotInOriginalBill,
        ExcessReturnQuantity, ConcurrencyConflict, StorageError
    """
    if original_bill_id is None:
        raise ValidationError("original_bill_id is required")
    bill_id = coerce_int(original_bill_id, "original_bill_id")

    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be a string")

    log = CompensationLog()
    try:
        with storage_errors():
            bill = get_bill(bill_id)
            requested = parse_return_items(items)

            total_amount = 0
            total_profit_loss = 0
            lines: list[CreditNoteLineItem] = []

            for position, item in enumerate(requested):
                product = db.session.get(Product, item.product_id)
                if not product:
                    raise ProductNotFound(item.product_id)

                original = _original_line(bill, item.product_id)
                if original is None:
                    raise ItemNotInOriginalBill(item.product_id, bill.bill_number)
                if item.quantity > original.quantity:
                    raise ExcessReturnQuantity(item.product_id, item.quantity, original.quantity)

                price = item.selling_price_cents
                if price is None:
                    price = original.selling_price_cents

                item_amount = item.quantity * price
                item_cost = item.quantity * product.cost_price_cents
                total_amount += item_amount
                total_profit_loss += item_amount - item_cost

                lines.append(CreditNoteLineItem(
                    position=position,
                    product_id=product.id,
                    product_name=product.name,
                    sku=product.sku,
                    quantity=item.quantity,
                    selling_price_cents=price,
                    cost_price_cents=product.cost_price_cents,
                    reason=item.reason,
                ))

            credit_note = CreditNote(
                credit_note_number=next_credit_note_number(),
                original_bill_id=bill.id,
                original_bill_number=bill.bill_number,
                customer_name=bill.customer_name,
                customer_phone=bill.customer_phone,
                items=lines,
                total_amount_cents=total_amount,
                total_profit_loss_cents=total_profit_loss,
                reason=(reason or "").strip(),
            )

            def _persist():
                db.session.add(credit_note)
                db.session.flush()

            def _unpersist():
                db.session.delete(credit_note)
                db.session.flush()

            log.run("persist credit note", do=_persist, undo=_unpersist)

            note = f"Credit note {credit_note.credit_note_number}"
            log.run(
                "return stock",
                do=lambda: apply_deltas(restore_deltas(lines), note=note),
                undo=lambda: apply_deltas(sale_deltas(lines), skip_missing=True, note=f"Undo {note}"),
            )

            append_ledger_event(
                event_type="credit_note.issued",
                entity_type="credit_note",
                entity_id=credit_note.id,
                note=f"{note} against bill {bill.bill_number}",
                payload={
                    "original_bill_id": bill.id,
                    "total_amount_cents": total_amount,
                    "total_profit_loss_cents": total_profit_loss,
                },
            )

            if commit:
                db.session.commit()
    except ShopledgerError:
        abort_operation(log, commit=commit)
        raise

    log.discard()
    current_app.logger.info(
        "Credit note %s issued against bill %s: amount %d",
        credit_note.credit_note_number, credit_note.original_bill_number, credit_note.total_amount_cents,
    )
    return credit_note


# =============================================================================
# READS
# =============================================================================

def get_credit_note(credit_note_id: int) -> CreditNote:
    credit_note = db.session.get(CreditNote, credit_note_id)
    if not credit_note:
        raise CreditNoteNotFound(credit_note_id)
    return credit_note


def list_credit_notes() -> list[CreditNote]:
    """All credit notes, newest first."""
    return (
        db.session.query(CreditNote)
        .order_by(CreditNote.created_at.desc(), CreditNote.id.desc())
        .all()
    )


def list_credit_notes_for_bill(bill_id: int) -> list[CreditNote]:
    return (
        db.session.query(CreditNote)
        .filter(CreditNote.original_bill_id == bill_id)
        .order_by(CreditNote.created_at.desc(), CreditNote.id.desc())
        .all()
    )
