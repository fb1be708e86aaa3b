# Overview: Flask API routes for shop settings.

from flask import Blueprint, jsonify, request

from . import internal_error, json_error
from ..errors import ShopledgerError
from ..models import ShopSettings
from ..services import settings_service
from ..validation import ModelValidationPolicy, validate_payload

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"shop_name", "last_bill_number"},
    required_on_create=set(),
)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings():
    try:
        return jsonify(settings_service.get_settings())
    except Exception:
        return internal_error("Failed to load settings")


@settings_bp.put("")
def update_settings():
    """
    Request body (all optional):
    {"shop_name": "Corner Store", "last_bill_number": 120}

    last_bill_number may only move forward.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ShopSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
        return jsonify(settings_service.update_settings(patch=patch))
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update settings")
