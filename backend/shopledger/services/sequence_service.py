# Overview: Service-layer operations for document numbering (the SequenceAllocator).

from __future__ import annotations

from sqlalchemy import update

from ..errors import StorageError
from ..extensions import db
from ..models import ShopSettings, SETTINGS_ROW_ID
from .settings_service import ensure_settings

BILL_PREFIX = "RG"
CREDIT_NOTE_PREFIX = "CN"
NUMBER_PAD = 3


class DocumentSequenceError(StorageError):
    """Raised when document sequence operations fail."""


def format_document_number(prefix: str, number: int, pad: int = NUMBER_PAD) -> str:
    """RG-001, RG-042, RG-1000: padding is cosmetic and never truncates."""
    return f"{prefix}-{number:0{pad}d}"


def _increment(column) -> int:
    """
    Atomically bump one counter on the settings row and return the new value.

    A single UPDATE ... SET n = n + 1 is the compare-and-swap: concurrent
    callers serialize on the row's write lock, so no two callers can read
    back the same value. Runs in the caller's transaction; a rollback
    returns the number (gaps are fine, duplicates are not).
    """
    stmt = (
        update(ShopSettings)
        .where(ShopSettings.id == SETTINGS_ROW_ID)
        .values({column.key: column + 1})
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        ensure_settings()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError("Settings row missing; cannot allocate number")

    current = (
        db.session.query(column)
        .filter(ShopSettings.id == SETTINGS_ROW_ID)
        .scalar()
    )

    # keep any loaded settings object in step with the database
    settings = db.session.identity_map.get(db.session.identity_key(ShopSettings, SETTINGS_ROW_ID))
    if settings is not None:
        db.session.expire(settings)

    return current


def next_bill_number() -> str:
    """Allocate the next bill number (RG-###)."""
    return format_document_number(BILL_PREFIX, _increment(ShopSettings.last_bill_number))


def next_credit_note_number() -> str:
    """Allocate the next credit note number (CN-###)."""
    return format_document_number(CREDIT_NOTE_PREFIX, _increment(ShopSettings.last_credit_note_number))
