# Overview: Service-layer operations for the Catalog (product CRUD).
"""
Products Service

The Catalog is a collaborator of the billing core: it owns product master
data and the live stock count. SKUs are unique across the shop.

Deletion is a hard delete. Bills and credit notes hold frozen copies of
name/SKU/price and reference products by id only, so history is unaffected;
restoring stock for a deleted product is skipped by the StockLedger.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import ProductNotFound
from ..extensions import db
from ..models import Product
from ..validation import ConflictError, ValidationError, enforce_rules_product
from .ledger_service import append_ledger_event

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "quantity", "cost_price_cents", "selling_price_cents"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sku_taken(sku: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def list_products(search: str | None = None) -> dict:
    """
    All products ordered by name, optionally filtered by a case-insensitive
    substring of name or SKU.
    """
    query = db.session.query(Product)
    text = (search or "").strip()
    if text:
        pattern = f"%{text}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def list_available_products() -> dict:
    """In-stock products for the billing picker, ordered by name."""
    products = (
        db.session.query(Product)
        .filter(Product.quantity > 0)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return {
        "items": [
            {
                "id": p.id,
                "sku": p.sku,
                "name": p.name,
                "quantity": p.quantity,
                "selling_price_cents": p.selling_price_cents,
            }
            for p in products
        ],
        "count": len(products),
    }


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise ProductNotFound(product_id)
    return p


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: sku missing or a business rule fails
        ConflictError: SKU already exists
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValidationError("sku is required")

    enforce_rules_product(patch)

    if _sku_taken(sku):
        raise ConflictError("SKU already exists.", details={"sku": sku})

    p = Product()
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before ledger append

    append_ledger_event(
        event_type="product.created",
        entity_type="product",
        entity_id=p.id,
        note=f"Created product sku={p.sku} name={p.name}",
    )

    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update a product.

    Direct edits to quantity are catalog corrections (restocking, counts)
    and bypass the StockLedger; they are still recorded on the audit log.

    Raises:
        ProductNotFound, ValidationError, ConflictError
    """
    p = get_product(product_id)

    enforce_rules_product(patch)

    if "sku" in patch and patch["sku"] != p.sku and _sku_taken(patch["sku"], exclude_id=p.id):
        raise ConflictError("SKU already exists.", details={"sku": patch["sku"]})

    previous_quantity = p.quantity
    apply_product_patch(p, patch)

    payload = None
    if "quantity" in patch and patch["quantity"] != previous_quantity:
        payload = {"quantity_before": previous_quantity, "quantity_after": patch["quantity"]}

    append_ledger_event(
        event_type="product.updated",
        entity_type="product",
        entity_id=p.id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
        payload=payload,
    )
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int) -> dict:
    """
    Hard-delete a product. Returns the deleted product's last state.

    Raises:
        ProductNotFound
    """
    p = get_product(product_id)
    snapshot = p.to_dict()

    db.session.delete(p)
    append_ledger_event(
        event_type="product.deleted",
        entity_type="product",
        entity_id=product_id,
        note=f"Deleted product sku={snapshot['sku']}",
    )
    db.session.commit()
    return snapshot
