# Overview: Service-layer operations for stock; the only writer of Product.quantity for sales and returns.

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import update

from ..errors import ConcurrencyConflict, InsufficientStock, ProductNotFound
from ..extensions import db
from ..models import Product
from .concurrency import lock_for_update
from .ledger_service import append_ledger_event
"""
Shopledger Stock Invariants (authoritative)

- Product.quantity >= 0 in every committed and every in-session state.
- A batch of deltas is all-or-nothing: if any product would go negative,
  nothing in the batch is written.
- Negative delta = stock leaves (sale). Positive delta = stock comes back
  (return, bill edit, bill delete). Reversal is the same primitive with the
  sign flipped.
- Products are locked and written in ascending id order; each write is a
  compare-and-swap on the quantity read under the lock.
"""

Delta = tuple[int, int]


def sale_deltas(items: Iterable) -> list[Delta]:
    """Deltas that take `items` out of stock (anything with product_id/quantity)."""
    return [(item.product_id, -item.quantity) for item in items]


def restore_deltas(items: Iterable) -> list[Delta]:
    """Deltas that put `items` back into stock."""
    return [(item.product_id, item.quantity) for item in items]


def _net_deltas(deltas: Iterable[Delta]) -> dict[int, int]:
    net: dict[int, int] = {}
    for product_id, quantity in deltas:
        net[product_id] = net.get(product_id, 0) + quantity
    return net


def _compare_and_set(product_id: int, expected: int, new_quantity: int) -> None:
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.quantity == expected)
        .values(quantity=new_quantity, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrencyConflict(
            "Stock changed concurrently, please retry",
            details={"product_id": product_id, "expected_quantity": expected},
        )


def apply_deltas(
    deltas: Iterable[Delta],
    *,
    skip_missing: bool = False,
    note: str | None = None,
) -> dict[int, int]:
    """
    Apply signed quantity changes to the Catalog.

    Entries for the same product are summed first. Returns the new quantity
    per touched product id.

    skip_missing: products deleted from the Catalog since the document was
    written are ignored instead of failing the batch. Used when putting
    stock back for historical line items, where there is no product left to
    restore into.

    Raises:
        ProductNotFound: a product is missing and skip_missing is False
        InsufficientStock: any product would end below zero (lists all of them)
        ConcurrencyConflict: a compare-and-swap lost a race; earlier writes in
            this batch have been reverted
    """
    net = _net_deltas(deltas)
    if not net:
        return {}

    ids = sorted(net)
    products = (
        lock_for_update(
            db.session.query(Product)
            .filter(Product.id.in_(ids))
            .order_by(Product.id.asc())
        )
        .populate_existing()
        .all()
    )
    by_id = {p.id: p for p in products}

    missing = [pid for pid in ids if pid not in by_id]
    if missing and not skip_missing:
        raise ProductNotFound(missing[0])

    planned: list[tuple[int, int, int]] = []
    shortfalls: list[dict] = []
    for pid in ids:
        product = by_id.get(pid)
        delta = net[pid]
        if product is None or delta == 0:
            continue
        new_quantity = product.quantity + delta
        if new_quantity < 0:
            shortfalls.append({
                "product_id": pid,
                "name": product.name,
                "available": product.quantity,
                "requested": -delta,
            })
        planned.append((pid, product.quantity, new_quantity))

    if shortfalls:
        current_app.logger.info("Stock change rejected: %s", shortfalls)
        raise InsufficientStock(shortfalls)

    written: list[tuple[int, int, int]] = []
    try:
        for pid, seen, new_quantity in planned:
            _compare_and_set(pid, seen, new_quantity)
            written.append((pid, seen, new_quantity))
    except ConcurrencyConflict:
        for pid, seen, new_quantity in reversed(written):
            _compare_and_set(pid, new_quantity, seen)
        raise
    finally:
        for product in products:
            db.session.expire(product)

    if planned:
        append_ledger_event(
            event_type="stock.applied",
            entity_type="product",
            note=note,
            payload={str(pid): new - seen for pid, seen, new in planned},
        )

    return {pid: new_quantity for pid, _, new_quantity in planned}


def available_quantity(product_id: int) -> int | None:
    """Current stock for a product, or None if it is not in the Catalog."""
    return (
        db.session.query(Product.quantity)
        .filter(Product.id == product_id)
        .scalar()
    )
