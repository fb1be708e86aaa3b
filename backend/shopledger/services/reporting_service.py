# Overview: Service-layer operations for reporting (the ReportAggregator); read-only.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Bill, CreditNote, Product, PAYMENT_TYPES, DEFAULT_PAYMENT_TYPE
from ..time_utils import local_period_bounds, to_utc_z

REPORT_PERIODS = ("daily", "monthly", "all-time")


class ReportError(ValidationError):
    """Raised when a report cannot be generated for the requested period."""


def resolve_window(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """UTC-naive [start, end] for a period, computed in the shop's timezone."""
    if period not in REPORT_PERIODS:
        raise ReportError(
            f"period must be one of {', '.join(REPORT_PERIODS)}",
            details={"period": period},
        )
    tz_name = current_app.config.get("SHOP_TIMEZONE", "UTC")
    return local_period_bounds(period, tz_name, now=now)


def _bills_in(start: datetime, end: datetime) -> list[Bill]:
    return (
        db.session.query(Bill)
        .filter(Bill.created_at >= start, Bill.created_at <= end)
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .all()
    )


def _credit_notes_in(start: datetime, end: datetime) -> list[CreditNote]:
    return (
        db.session.query(CreditNote)
        .filter(CreditNote.created_at >= start, CreditNote.created_at <= end)
        .all()
    )


def _catalog() -> dict[int, Product]:
    return {p.id: p for p in db.session.query(Product).all()}


def _window(period: str, start: datetime, end: datetime) -> dict:
    return {"period": period, "date_range": {"start": to_utc_z(start), "end": to_utc_z(end)}}


# =============================================================================
# SECTIONS
# =============================================================================

def _sales_section(bills: list[Bill], credit_notes: list[CreditNote], catalog: dict[int, Product]) -> dict:
    total_discounts = sum(b.total_discount_cents for b in bills)
    gross_revenue = sum(b.grand_total_cents for b in bills)

    # live cost price; lines for products no longer in the catalog cost nothing
    cogs = 0
    for bill in bills:
        for line in bill.items:
            product = catalog.get(line.product_id)
            if product is not None:
                cogs += line.quantity * product.cost_price_cents

    by_type: dict[str, list[dict]] = {t: [] for t in PAYMENT_TYPES}
    for bill in bills:
        by_type.setdefault(bill.payment_type or DEFAULT_PAYMENT_TYPE, []).append({
            "bill_number": bill.bill_number,
            "amount_cents": bill.grand_total_cents,
            "customer_name": bill.customer_name,
            "date": to_utc_z(bill.created_at),
        })
    payment_totals = {t: sum(row["amount_cents"] for row in rows) for t, rows in by_type.items()}

    credit_note_amount = sum(cn.total_amount_cents for cn in credit_notes)
    credit_note_profit_loss = sum(cn.total_profit_loss_cents or 0 for cn in credit_notes)

    return {
        "total_bills": len(bills),
        "total_discounts_cents": total_discounts,
        "gross_revenue_cents": gross_revenue,
        "total_cost_of_goods_sold_cents": cogs,
        "total_profit_cents": gross_revenue - cogs - total_discounts,
        "bills_by_payment_type": by_type,
        "payment_totals": payment_totals,
        "grand_total_cents": sum(payment_totals.values()),
        "total_credit_note_amount_cents": credit_note_amount,
        "total_credit_note_profit_loss_cents": credit_note_profit_loss,
        "net_revenue_cents": gross_revenue - credit_note_amount,
    }


def _inventory_section(bills: list[Bill], catalog: dict[int, Product]) -> dict:
    sold: dict[int, dict] = {}
    for bill in bills:
        for line in bill.items:
            row = sold.get(line.product_id)
            if row is None:
                product = catalog.get(line.product_id)
                row = {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "sku": line.sku,
                    "quantity": 0,
                    "cost_price_cents": product.cost_price_cents if product is not None else None,
                }
                sold[line.product_id] = row
            row["quantity"] += line.quantity

    breakdown = sorted(sold.values(), key=lambda r: (-r["quantity"], r["product_id"]))

    return {
        "total_items_sold": sum(r["quantity"] for r in breakdown),
        "items_remaining": sum(p.quantity for p in catalog.values()),
        "total_inventory_value_cents": sum(p.quantity * (p.cost_price_cents or 0) for p in catalog.values()),
        "items_sold_breakdown": breakdown,
    }


def _cash_section(bills: list[Bill], credit_notes: list[CreditNote]) -> dict:
    total_sales = sum(b.grand_total_cents for b in bills)
    credit_note_amount = sum(cn.total_amount_cents for cn in credit_notes)
    return {
        "total_sales_cents": total_sales,
        "total_discounts_cents": sum(b.total_discount_cents for b in bills),
        "total_credit_note_amount_cents": credit_note_amount,
        # discounts are already inside grand_total
        "cash_in_hand_cents": total_sales - credit_note_amount,
    }


# =============================================================================
# PUBLIC
# =============================================================================

def sales_summary(period: str, now: datetime | None = None) -> dict:
    start, end = resolve_window(period, now)
    section = _sales_section(_bills_in(start, end), _credit_notes_in(start, end), _catalog())
    return {**_window(period, start, end), **section}


def inventory_summary(period: str, now: datetime | None = None) -> dict:
    start, end = resolve_window(period, now)
    section = _inventory_section(_bills_in(start, end), _catalog())
    return {**_window(period, start, end), **section}


def cash_summary(period: str, now: datetime | None = None) -> dict:
    start, end = resolve_window(period, now)
    section = _cash_section(_bills_in(start, end), _credit_notes_in(start, end))
    return {**_window(period, start, end), **section}


def build_report(period: str, now: datetime | None = None) -> dict:
    """
    Comprehensive report for a period: sales, inventory and cash sections.

    Reads every in-range Bill and Credit Note and the full current Catalog
    once. Performs no writes; an empty window yields an all-zero report.

    Note: cost of goods sold uses each product's CURRENT cost price, so a
    report for a past period changes if cost prices are edited afterwards.
    """
    start, end = resolve_window(period, now)
    bills = _bills_in(start, end)
    credit_notes = _credit_notes_in(start, end)
    catalog = _catalog()

    return {
        **_window(period, start, end),
        "sales": _sales_section(bills, credit_notes, catalog),
        "inventory": _inventory_section(bills, catalog),
        "cash": _cash_section(bills, credit_notes),
    }
