# Overview: Flask API routes for credit notes; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from . import internal_error, json_error
from ..errors import ShopledgerError
from ..services import credit_note_service

credit_notes_bp = Blueprint("credit_notes", __name__, url_prefix="/api/credit-notes")


@credit_notes_bp.post("")
def issue_credit_note():
    """
    Issue a credit note against a bill; returned items go back into stock.

    Request body:
    {
        "original_bill_id": 1,
        "items": [{"product_id": 1, "quantity": 2, "selling_price_cents": 10000, "reason": "damaged"}],
        "reason": "Customer return"  (optional)
    }

    Returns:
        201: {"credit_note": {...}}
        400: invalid input, item not on bill, quantity exceeds bill line
        404: bill or product not found
    """
    data = request.get_json(silent=True) or {}
    try:
        credit_note = credit_note_service.issue_credit_note(
            original_bill_id=data.get("original_bill_id"),
            items=data.get("items"),
            reason=data.get("reason"),
        )
        return jsonify({"credit_note": credit_note.to_dict()}), 201
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to issue credit note")


@credit_notes_bp.get("")
def list_credit_notes():
    try:
        notes = credit_note_service.list_credit_notes()
        return jsonify({"credit_notes": [n.to_dict() for n in notes], "count": len(notes)})
    except Exception:
        return internal_error("Failed to list credit notes")


@credit_notes_bp.get("/<int:credit_note_id>")
def get_credit_note(credit_note_id: int):
    try:
        return jsonify({"credit_note": credit_note_service.get_credit_note(credit_note_id).to_dict()})
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to load credit note")


@credit_notes_bp.get("/bill/<int:bill_id>")
def list_credit_notes_for_bill(bill_id: int):
    try:
        notes = credit_note_service.list_credit_notes_for_bill(bill_id)
        return jsonify({"credit_notes": [n.to_dict() for n in notes], "count": len(notes)})
    except Exception:
        return internal_error("Failed to list credit notes for bill")
