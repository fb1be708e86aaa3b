# Overview: Flask API routes for reports; read-only.

from flask import Blueprint, jsonify

from . import internal_error, json_error
from ..errors import ShopledgerError
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _run(builder, period: str, label: str):
    try:
        return jsonify(builder(period))
    except ShopledgerError as e:
        return json_error(e)
    except Exception:
        return internal_error(f"Failed to build {label} report")


@reports_bp.get("/<string:period>")
def comprehensive_report(period: str):
    """
    Sales, inventory and cash sections for daily | monthly | all-time.
    """
    return _run(reporting_service.build_report, period, "comprehensive")


@reports_bp.get("/sales/<string:period>")
def sales_report(period: str):
    return _run(reporting_service.sales_summary, period, "sales")


@reports_bp.get("/inventory/<string:period>")
def inventory_report(period: str):
    return _run(reporting_service.inventory_summary, period, "inventory")


@reports_bp.get("/cash/<string:period>")
def cash_report(period: str):
    return _run(reporting_service.cash_summary, period, "cash")
