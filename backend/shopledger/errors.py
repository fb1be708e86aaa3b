# Overview: Error taxonomy shared by services and routes.

"""
Shopledger error taxonomy.

Services raise these; routes translate them into JSON responses using
`status_code`. `details` carries structured context (e.g. available vs
requested stock) and is returned to the caller verbatim.
"""

from __future__ import annotations


class ShopledgerError(Exception):
    """Base class for all domain errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ShopledgerError, ValueError):
    """400-level input problem."""


class ConflictError(ShopledgerError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(ShopledgerError):
    status_code = 404


class BillNotFound(NotFoundError):
    def __init__(self, bill_id):
        super().__init__("Bill not found", details={"bill_id": bill_id})


class ProductNotFound(NotFoundError):
    def __init__(self, product_id, product_name: str | None = None):
        label = product_name or product_id
        super().__init__(f"Product {label} not found", details={"product_id": product_id})


class CreditNoteNotFound(NotFoundError):
    def __init__(self, credit_note_id):
        super().__init__("Credit note not found", details={"credit_note_id": credit_note_id})


# =============================================================================
# BUSINESS RULES
# =============================================================================

class InsufficientStock(ShopledgerError):
    """
    Raised when a stock change would drive a product below zero.

    details["items"] lists every offending product with its available and
    requested quantities.
    """
    status_code = 409

    def __init__(self, items: list[dict]):
        if len(items) == 1:
            item = items[0]
            message = (
                f"Insufficient stock for {item.get('name') or item['product_id']}. "
                f"Available: {item['available']}, Requested: {item['requested']}"
            )
        else:
            message = f"Insufficient stock for {len(items)} products"
        super().__init__(message, details={"items": items})
        self.items = items


class NegativeGrandTotal(ShopledgerError):
    def __init__(self, subtotal_cents: int, total_discount_cents: int):
        super().__init__(
            "Grand total cannot be negative",
            details={
                "subtotal_cents": subtotal_cents,
                "total_discount_cents": total_discount_cents,
            },
        )


class ItemNotInOriginalBill(ShopledgerError):
    def __init__(self, product_id, bill_number: str):
        super().__init__(
            f"Item {product_id} not found in original bill {bill_number}",
            details={"product_id": product_id, "bill_number": bill_number},
        )


class ExcessReturnQuantity(ShopledgerError):
    def __init__(self, product_id, requested: int, original: int):
        super().__init__(
            f"Credit quantity ({requested}) cannot exceed original quantity ({original})",
            details={
                "product_id": product_id,
                "requested": requested,
                "original": original,
            },
        )


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class ConcurrencyConflict(ShopledgerError):
    """Another writer got there first; the caller may retry."""
    status_code = 409


class StorageError(ShopledgerError):
    """Underlying persistence failure."""
    status_code = 500
