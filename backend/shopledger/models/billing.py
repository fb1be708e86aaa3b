from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow

PAYMENT_TYPES = ("UPI", "Cash", "Pending")
DEFAULT_PAYMENT_TYPE = "Cash"


class Bill(db.Model):
    """
    A sale document with frozen line items and totals.

    Invariants:
    - total_discount_cents = sum(line discounts) + global_discount_cents
    - grand_total_cents = subtotal_cents - total_discount_cents >= 0
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.CheckConstraint("grand_total_cents >= 0", name="ck_bills_grand_total_non_negative"),
        db.Index("ix_bills_customer_phone", "customer_phone"),
        db.Index("ix_bills_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "RG-042")
    bill_number = db.Column(db.String(32), nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    global_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_type = db.Column(db.String(16), nullable=False, default=DEFAULT_PAYMENT_TYPE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "BillLineItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillLineItem.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "items": [item.to_dict() for item in self.items],
            "subtotal_cents": self.subtotal_cents,
            "global_discount_cents": self.global_discount_cents,
            "total_discount_cents": self.total_discount_cents,
            "grand_total_cents": self.grand_total_cents,
            "payment_type": self.payment_type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class BillLineItem(db.Model):
    """
    Frozen snapshot of one sold product.

    product_id is a weak reference: name, sku and price are copied at sale
    time so later catalog edits or deletes never change the bill.
    """
    __tablename__ = "bill_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_bill_line_items_quantity_positive"),
        db.CheckConstraint("selling_price_cents >= 0", name="ck_bill_line_items_price_non_negative"),
        db.CheckConstraint("discount_cents >= 0", name="ck_bill_line_items_discount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    comment = db.Column(db.String(500), nullable=False, default="")
    subtotal_cents = db.Column(db.Integer, nullable=False)

    bill = db.relationship("Bill", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "selling_price_cents": self.selling_price_cents,
            "discount_cents": self.discount_cents,
            "comment": self.comment,
            "subtotal_cents": self.subtotal_cents,
        }
