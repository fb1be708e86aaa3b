# Overview: Flask API routes for bills; parses input and returns JSON responses.

"""
Billing API Routes

DESIGN:
- Create/update/delete go through billing_service, which keeps Catalog
  stock consistent with every bill (see services/billing_service.py).
- Domain errors carry their own HTTP status; InsufficientStock returns the
  available vs requested quantities under "details".
"""

from flask import Blueprint, jsonify, request

from . import internal_error, json_error
from ..errors import ShopledgerError
from ..services import billing_service, share_service

bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


@bills_bp.post("")
def create_bill():
    """
    Create a bill and take its items out of stock.

    Request body:
    {
        "customer_name": "Asha",
        "customer_phone": "9876543210",
        "items": [
            {"product_id": 1, "quantity": 3, "selling_price_cents": 10000,
             "discount_cents": 0, "comment": ""}
        ],
        "global_discount_cents": 0,   (optional)
        "payment_type": "Cash"        (optional: UPI | Cash | Pending)
    }

    Returns:
        201: {"bill": {...}}
        400: invalid input or negative grand total
        404: product not found
        409: insufficient stock / concurrent modification
    """
    data = request.get_json(silent=True) or {}
    try:
        bill = billing_service.create_bill(
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            items=data.get("items"),
            global_discount_cents=data.get("global_discount_cents"),
            payment_type=data.get("payment_type"),
        )
        return jsonify({"bill": bill.to_dict()}), 201
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to create bill")


@bills_bp.get("")
def list_bills():
    """
    Query params:
    - limit: int (optional, max 500)
    - offset: int (optional)
    """
    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", default=0, type=int)
    try:
        bills = billing_service.list_bills(limit=limit, offset=offset)
        return jsonify({"bills": [b.to_dict() for b in bills], "count": len(bills)})
    except Exception:
        return internal_error("Failed to list bills")


@bills_bp.get("/search/<string:query>")
def search_bills(query: str):
    try:
        bills = billing_service.search_bills(query)
        return jsonify({"bills": [b.to_dict() for b in bills], "count": len(bills)})
    except Exception:
        return internal_error("Failed to search bills")


@bills_bp.get("/<int:bill_id>")
def get_bill(bill_id: int):
    try:
        return jsonify({"bill": billing_service.get_bill(bill_id).to_dict()})
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to load bill")


@bills_bp.put("/<int:bill_id>")
def update_bill(bill_id: int):
    """
    Replace a bill's items (and optionally customer fields / payment type).

    Stock for the old items is restored before the new items are taken out;
    on any failure the bill and stock are left as they were.
    """
    data = request.get_json(silent=True) or {}
    try:
        bill = billing_service.update_bill(
            bill_id,
            items=data.get("items"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            global_discount_cents=data.get("global_discount_cents"),
            payment_type=data.get("payment_type"),
        )
        return jsonify({"bill": bill.to_dict()})
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update bill")


@bills_bp.delete("/<int:bill_id>")
def delete_bill(bill_id: int):
    try:
        bill_number = billing_service.delete_bill(bill_id)
        return jsonify({"ok": True, "bill_number": bill_number})
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to delete bill")


@bills_bp.get("/<int:bill_id>/whatsapp")
def whatsapp_link(bill_id: int):
    try:
        bill = billing_service.get_bill(bill_id)
        return jsonify(share_service.whatsapp_share(bill))
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to build WhatsApp link")
