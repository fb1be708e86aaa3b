# Overview: Pytest coverage for the Catalog, shop settings, and bill sharing.

import json
from urllib.parse import unquote

import pytest

from shopledger.errors import ConflictError, ProductNotFound, ValidationError
from shopledger.models import LedgerEvent, ShopSettings, SETTINGS_ROW_ID
from shopledger.services import products_service
from shopledger.services.billing_service import create_bill
from shopledger.services.ledger_service import list_ledger_events
from shopledger.services.settings_service import ensure_settings, get_settings, update_settings
from shopledger.services.share_service import format_cents, whatsapp_share

from helpers import line


class TestProductsService:
    def test_create_and_list(self, db_session):
        created = products_service.create_product(patch={
            "sku": "TEA-250", "name": "Tea 250g", "quantity": 4,
            "cost_price_cents": 9000, "selling_price_cents": 12000,
        })
        assert created["id"] is not None
        assert created["version_id"] == 1

        listed = products_service.list_products()
        assert listed["count"] == 1
        assert products_service.list_products(search="tea-")["count"] == 1
        assert products_service.list_products(search="coffee")["count"] == 0

        events = list_ledger_events(entity_type="product", entity_id=created["id"])
        assert [e.event_type for e in events] == ["product.created"]

    def test_duplicate_sku(self, db_session, product):
        with pytest.raises(ConflictError):
            products_service.create_product(patch={"sku": "SKU-1", "name": "Other"})

    def test_sku_change_to_existing_conflicts(self, db_session, make_product):
        a = make_product(sku="A")
        make_product(sku="B")
        with pytest.raises(ConflictError):
            products_service.update_product(product_id=a.id, patch={"sku": "B"})

    def test_business_rules(self, db_session, product):
        with pytest.raises(ValidationError):
            products_service.update_product(product_id=product.id, patch={"quantity": -3})
        with pytest.raises(ValidationError):
            products_service.create_product(patch={"sku": "X", "name": "X", "selling_price_cents": -1})
        with pytest.raises(ValidationError):
            products_service.create_product(patch={"name": "no sku"})

    def test_quantity_correction_is_audited(self, db_session, product):
        products_service.update_product(product_id=product.id, patch={"quantity": 25})

        event = db_session.query(LedgerEvent).filter_by(event_type="product.updated").one()
        assert json.loads(event.payload) == {"quantity_before": 10, "quantity_after": 25}

    def test_delete(self, db_session, product):
        product_id = product.id
        deleted = products_service.delete_product(product_id=product_id)
        assert deleted["sku"] == "SKU-1"
        with pytest.raises(ProductNotFound):
            products_service.get_product(product_id)
        with pytest.raises(ProductNotFound):
            products_service.delete_product(product_id=product_id)


class TestSettingsService:
    def test_ensure_is_idempotent(self, db_session):
        first = ensure_settings()
        second = ensure_settings()
        assert first is second
        assert db_session.query(ShopSettings).count() == 1
        assert first.id == SETTINGS_ROW_ID

    def test_defaults(self, db_session):
        settings = get_settings()
        assert settings["shop_name"] == "Test Shop"
        assert settings["last_bill_number"] == 0
        assert settings["last_credit_note_number"] == 0

    def test_update_records_event(self, db_session):
        updated = update_settings(patch={"shop_name": "Corner Store"})
        assert updated["shop_name"] == "Corner Store"
        assert db_session.query(LedgerEvent).filter_by(event_type="settings.updated").count() == 1

    def test_credit_note_counter_ignored(self, db_session):
        updated = update_settings(patch={"last_credit_note_number": 50})
        assert updated["last_credit_note_number"] == 0


class TestShareService:
    def test_format_cents(self):
        assert format_cents(12345) == "₹123.45"
        assert format_cents(5) == "₹0.05"
        assert format_cents(-250) == "-₹2.50"

    def test_message_and_link(self, db_session, product):
        bill = create_bill(
            customer_name="Asha",
            customer_phone="+91 98765 43210",
            items=[line(product.id, 2, discount=20, comment="gift wrap")],
            global_discount_cents=10,
        )

        share = whatsapp_share(bill)
        message = share["message"]

        assert message.startswith("*Test Shop*\n\nBill No: RG-001")
        assert "1. Soap (SKU-1)" in message
        assert "Qty: 2 x ₹1.00 - Discount: ₹0.20 = ₹1.80" in message
        assert "Note: gift wrap" in message
        assert "*Global Discount:* ₹0.10" in message
        assert "*Grand Total:* ₹1.70" in message
        assert message.endswith("Thank you for shopping")

        link = share["whatsapp_link"]
        assert link.startswith("https://wa.me/91919876543210?text=")
        assert unquote(link.split("?text=", 1)[1]) == message
