# Overview: Service-layer operations for sharing a bill as a WhatsApp message.

from __future__ import annotations

import re
from urllib.parse import quote

from ..models import Bill
from .settings_service import ensure_settings

WHATSAPP_BASE_URL = "https://wa.me/"
DEFAULT_COUNTRY_CODE = "91"
CURRENCY_SYMBOL = "₹"


def format_cents(cents: int) -> str:
    """1234 -> '₹12.34'"""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{CURRENCY_SYMBOL}{whole}.{frac:02d}"


def build_bill_message(bill: Bill, shop_name: str) -> str:
    lines = [
        f"*{shop_name}*",
        "",
        f"Bill No: {bill.bill_number}",
        f"Customer: {bill.customer_name}",
        f"Phone: {bill.customer_phone}",
        "",
        "*Items:*",
    ]

    for index, item in enumerate(bill.items, start=1):
        lines.append(f"{index}. {item.product_name} ({item.sku})")
        row = f"   Qty: {item.quantity} x {format_cents(item.selling_price_cents)}"
        if item.discount_cents > 0:
            row += f" - Discount: {format_cents(item.discount_cents)}"
        row += f" = {format_cents(item.subtotal_cents)}"
        lines.append(row)
        if item.comment:
            lines.append(f"   Note: {item.comment}")

    lines.append("")
    lines.append(f"*Subtotal:* {format_cents(bill.subtotal_cents)}")
    if bill.global_discount_cents > 0:
        lines.append(f"*Global Discount:* {format_cents(bill.global_discount_cents)}")
    if bill.total_discount_cents > 0:
        lines.append(f"*Total Discount:* {format_cents(bill.total_discount_cents)}")
    lines.append(f"*Grand Total:* {format_cents(bill.grand_total_cents)}")
    lines.append("")
    lines.append("Thank you for shopping")
    return "\n".join(lines)


def whatsapp_share(bill: Bill, *, country_code: str = DEFAULT_COUNTRY_CODE) -> dict:
    """
    Message text plus a wa.me link addressed to the bill's customer.

    Non-digits are stripped from the stored phone number before the country
    code is prefixed.
    """
    shop_name = ensure_settings().shop_name
    message = build_bill_message(bill, shop_name)
    phone = re.sub(r"[^0-9]", "", bill.customer_phone or "")
    link = f"{WHATSAPP_BASE_URL}{country_code}{phone}?text={quote(message, safe='')}"
    return {"whatsapp_link": link, "message": message}
