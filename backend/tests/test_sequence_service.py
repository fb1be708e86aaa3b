# Overview: Pytest coverage for document numbering.

import pytest

from shopledger.errors import StorageError
from shopledger.models import ShopSettings, SETTINGS_ROW_ID
from shopledger.services.sequence_service import (
    DocumentSequenceError,
    format_document_number,
    next_bill_number,
    next_credit_note_number,
)
from shopledger.services.settings_service import ensure_settings, update_settings


class TestFormatting:
    def test_zero_padded_to_three(self):
        assert format_document_number("RG", 1) == "RG-001"
        assert format_document_number("RG", 42) == "RG-042"

    def test_beyond_three_digits_is_not_truncated(self):
        assert format_document_number("RG", 1000) == "RG-1000"
        assert format_document_number("CN", 123456) == "CN-123456"

    def test_sequence_error_is_storage_error(self):
        assert issubclass(DocumentSequenceError, StorageError)


class TestAllocation:
    def test_first_numbers_create_settings_row(self, db_session):
        assert db_session.get(ShopSettings, SETTINGS_ROW_ID) is None

        assert next_bill_number() == "RG-001"
        assert next_credit_note_number() == "CN-001"

        settings = db_session.get(ShopSettings, SETTINGS_ROW_ID)
        assert settings.shop_name == "Test Shop"

    def test_strictly_increasing(self, db_session):
        numbers = [next_bill_number() for _ in range(5)]
        assert numbers == ["RG-001", "RG-002", "RG-003", "RG-004", "RG-005"]
        assert len(set(numbers)) == len(numbers)

    def test_counters_are_independent(self, db_session):
        next_bill_number()
        next_bill_number()
        assert next_credit_note_number() == "CN-001"
        assert next_bill_number() == "RG-003"

    def test_loaded_settings_object_stays_in_step(self, db_session):
        settings = ensure_settings()
        db_session.commit()

        next_bill_number()
        next_bill_number()
        assert settings.last_bill_number == 2

    def test_rollback_returns_the_number(self, db_session):
        ensure_settings()
        db_session.commit()

        assert next_bill_number() == "RG-001"
        db_session.rollback()
        assert next_bill_number() == "RG-001"

    def test_fast_forwarded_counter_continues_past_999(self, db_session):
        update_settings(patch={"last_bill_number": 999})
        assert next_bill_number() == "RG-1000"

    def test_counter_cannot_go_backwards(self, db_session):
        update_settings(patch={"last_bill_number": 10})
        with pytest.raises(ValueError):
            update_settings(patch={"last_bill_number": 5})
