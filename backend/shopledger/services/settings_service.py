# Overview: Service-layer operations for shop settings (the Counter Store singleton).

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ShopSettings, SETTINGS_ROW_ID
from ..validation import enforce_rules_settings
from .ledger_service import append_ledger_event

SETTINGS_MUTABLE_FIELDS = {"shop_name", "last_bill_number"}


def ensure_settings() -> ShopSettings:
    """
    Return the singleton settings row, creating it on first use.

    Safe to call repeatedly (idempotent) and from concurrent first requests:
    the insert runs in a SAVEPOINT and a losing racer re-reads the winner's row.
    """
    settings = db.session.get(ShopSettings, SETTINGS_ROW_ID)
    if settings:
        return settings

    try:
        with db.session.begin_nested():
            settings = ShopSettings(
                id=SETTINGS_ROW_ID,
                shop_name=current_app.config.get("SHOP_NAME", "My Shop"),
                last_bill_number=0,
                last_credit_note_number=0,
            )
            db.session.add(settings)
    except IntegrityError:
        settings = db.session.get(ShopSettings, SETTINGS_ROW_ID, populate_existing=True)
    return settings


def get_settings() -> dict:
    settings = ensure_settings()
    db.session.commit()
    return settings.to_dict()


def update_settings(*, patch: dict) -> dict:
    """
    Update shop name and/or fast-forward the bill counter.

    The bill counter may only move forward (skipping numbers is allowed,
    re-issuing them is not). The credit-note counter is not client-writable.
    """
    settings = ensure_settings()
    enforce_rules_settings(patch, current_last_bill_number=settings.last_bill_number)

    changed = []
    for k, v in patch.items():
        if k not in SETTINGS_MUTABLE_FIELDS:
            continue
        setattr(settings, k, v)
        changed.append(k)

    if changed:
        append_ledger_event(
            event_type="settings.updated",
            entity_type="settings",
            entity_id=settings.id,
            note=f"Updated fields: {', '.join(sorted(changed))}",
        )

    db.session.commit()
    return settings.to_dict()
