# Overview: Flask API routes for the Catalog; parses input and returns JSON responses.

from flask import Blueprint, request

from . import internal_error, json_error
from ..errors import ShopledgerError
from ..models import Product
from ..services import products_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "quantity", "cost_price_cents", "selling_price_cents"},
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List all products ordered by name.

    Query params:
    - q: str (optional) - case-insensitive match on name or SKU
    """
    try:
        return products_service.list_products(search=request.args.get("q"))
    except Exception:
        return internal_error("Failed to list products")


@products_bp.get("/stock/available")
def list_available_products():
    """Products with stock left, for picking bill items."""
    try:
        return products_service.list_available_products()
    except Exception:
        return internal_error("Failed to list available products")


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to load product")


@products_bp.post("")
def create_product():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to create product")

    return created, 201


@products_bp.put("/<int:product_id>")
def update_product(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        return products_service.update_product(product_id=product_id, patch=patch)
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update product")


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to delete product")

    return {"ok": True, "product": deleted}, 200
