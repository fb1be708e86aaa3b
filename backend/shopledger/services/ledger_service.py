# Overview: Service-layer operations for ledger; encapsulates business logic and database work.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
from shopledger.time_utils import utcnow
"""
Shopledger Audit Ledger Invariants (authoritative)

- Append-only audit log for cross-cutting domain events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the domain event they record.
"""


def append_ledger_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - payload is stored as JSON text.
    """
    ev = LedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:500] if note else note,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    query = db.session.query(LedgerEvent)
    if entity_type:
        query = query.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(LedgerEvent.entity_id == entity_id)

    limit = max(1, min(limit, 500))
    return query.order_by(LedgerEvent.id.desc()).limit(limit).all()
