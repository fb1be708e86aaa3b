from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class CreditNote(db.Model):
    """
    Partial-return document issued against a prior bill.

    Append-only: created once, never edited or deleted. original_bill_id is
    a weak reference, and original_bill_number is frozen so the note stays
    readable after the bill is deleted.
    """
    __tablename__ = "credit_notes"
    __table_args__ = (
        db.CheckConstraint("total_amount_cents >= 0", name="ck_credit_notes_amount_non_negative"),
        db.Index("ix_credit_notes_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    credit_note_number = db.Column(db.String(32), nullable=False, unique=True)

    original_bill_id = db.Column(db.Integer, nullable=False, index=True)
    original_bill_number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    # Profit given back by the return; negative when sold below cost
    total_profit_loss_cents = db.Column(db.Integer, nullable=False, default=0)

    reason = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "CreditNoteLineItem",
        back_populates="credit_note",
        cascade="all, delete-orphan",
        order_by="CreditNoteLineItem.position",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_note_number": self.credit_note_number,
            "original_bill_id": self.original_bill_id,
            "original_bill_number": self.original_bill_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "items": [item.to_dict() for item in self.items],
            "total_amount_cents": self.total_amount_cents,
            "total_profit_loss_cents": self.total_profit_loss_cents,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditNoteLineItem(db.Model):
    """One returned product: selling price from the sale, cost price at return time."""
    __tablename__ = "credit_note_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_credit_note_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    credit_note_id = db.Column(
        db.Integer, db.ForeignKey("credit_notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(500), nullable=False, default="")

    credit_note = db.relationship("CreditNote", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "selling_price_cents": self.selling_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "reason": self.reason,
        }
