"""Shared helpers for shopledger tests."""

from shopledger.extensions import db
from shopledger.models import Product


def stock_of(product_id: int) -> int:
    """Fresh read of a product's quantity, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(Product, product_id).quantity


def line(product_id: int, quantity: int, price: int | None = 100, discount: int = 0, comment: str = "") -> dict:
    item = {"product_id": product_id, "quantity": quantity, "discount_cents": discount, "comment": comment}
    if price is not None:
        item["selling_price_cents"] = price
    return item
