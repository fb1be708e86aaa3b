from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow

SETTINGS_ROW_ID = 1


class ShopSettings(db.Model):
    """
    Singleton Counter Store row.

    last_bill_number and last_credit_note_number only ever increase; they
    are bumped with a single atomic UPDATE by the sequence service.
    """
    __tablename__ = "shop_settings"
    __table_args__ = (
        db.CheckConstraint("id = 1", name="ck_shop_settings_singleton"),
    )

    id = db.Column(db.Integer, primary_key=True, default=SETTINGS_ROW_ID)
    shop_name = db.Column(db.String(255), nullable=False)

    last_bill_number = db.Column(db.Integer, nullable=False, default=0)
    last_credit_note_number = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "shop_name": self.shop_name,
            "last_bill_number": self.last_bill_number,
            "last_credit_note_number": self.last_credit_note_number,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
