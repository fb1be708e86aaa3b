# Overview: Pytest coverage for credit notes (partial returns).

import pytest

from shopledger.errors import (
    BillNotFound,
    ConcurrencyConflict,
    CreditNoteNotFound,
    ExcessReturnQuantity,
    ItemNotInOriginalBill,
    ProductNotFound,
    ValidationError,
)
from shopledger.models import CreditNote
from shopledger.services.billing_service import create_bill, delete_bill
from shopledger.services.credit_note_service import (
    get_credit_note,
    issue_credit_note,
    list_credit_notes,
    list_credit_notes_for_bill,
)
from shopledger.services import stock_ledger
from shopledger.services.products_service import delete_product, update_product

from helpers import line, stock_of


@pytest.fixture
def sold(db_session, product):
    """Bill RG-001: 3 x SKU-1 at 100 (cost 60). Stock left: 7."""
    return create_bill(customer_name="Asha", customer_phone="9876543210", items=[line(product.id, 3)])


def _return(product_id, quantity, price=100, reason=""):
    return {"product_id": product_id, "quantity": quantity, "selling_price_cents": price, "reason": reason}


class TestIssueCreditNote:
    def test_partial_return(self, db_session, product, sold):
        note = issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 2)], reason="Damaged")

        assert note.credit_note_number == "CN-001"
        assert note.original_bill_number == "RG-001"
        assert note.customer_name == "Asha"
        assert note.customer_phone == "9876543210"
        assert note.total_amount_cents == 200
        assert note.total_profit_loss_cents == 2 * (100 - 60)
        assert note.reason == "Damaged"
        assert note.items[0].cost_price_cents == 60
        assert stock_of(product.id) == 9

    def test_repeat_notes_are_not_cumulatively_bounded(self, db_session, product, sold):
        """Known limitation: each note is checked against the bill line alone."""
        issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 2)])
        second = issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 2)])

        assert second.credit_note_number == "CN-002"
        assert stock_of(product.id) == 11

    def test_uses_current_cost_price(self, db_session, product, sold):
        update_product(product_id=product.id, patch={"cost_price_cents": 90})
        note = issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 1)])
        assert note.total_profit_loss_cents == 10

    def test_price_defaults_to_bill_line(self, db_session, product, sold):
        note = issue_credit_note(
            original_bill_id=sold.id,
            items=[{"product_id": product.id, "quantity": 1}],
        )
        assert note.total_amount_cents == 100

    def test_loss_is_negative(self, db_session, product, sold):
        note = issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 1, price=40)])
        assert note.total_profit_loss_cents == -20

    def test_full_quantity_allowed(self, db_session, product, sold):
        issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 3)])
        assert stock_of(product.id) == 10


class TestCreditNoteRules:
    def test_excess_quantity(self, db_session, product, sold):
        with pytest.raises(ExcessReturnQuantity) as exc:
            issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 4)])
        assert exc.value.details == {"product_id": product.id, "requested": 4, "original": 3}
        assert stock_of(product.id) == 7

    def test_item_not_on_bill(self, db_session, make_product, product, sold):
        other = make_product()
        with pytest.raises(ItemNotInOriginalBill):
            issue_credit_note(original_bill_id=sold.id, items=[_return(other.id, 1)])
        assert stock_of(other.id) == 10

    def test_one_bad_line_blocks_the_note(self, db_session, make_product, product, sold):
        other = make_product()
        with pytest.raises(ItemNotInOriginalBill):
            issue_credit_note(
                original_bill_id=sold.id,
                items=[_return(product.id, 1), _return(other.id, 1)],
            )
        assert stock_of(product.id) == 7
        assert db_session.query(CreditNote).count() == 0

    def test_missing_bill(self, db_session, product):
        with pytest.raises(BillNotFound):
            issue_credit_note(original_bill_id=4242, items=[_return(product.id, 1)])

    def test_empty_items(self, db_session, sold):
        with pytest.raises(ValidationError):
            issue_credit_note(original_bill_id=sold.id, items=[])

    def test_zero_quantity(self, db_session, product, sold):
        with pytest.raises(ValidationError):
            issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 0)])

    def test_product_deleted_since_sale(self, db_session, product, sold):
        product_id = product.id
        delete_product(product_id=product_id)
        with pytest.raises(ProductNotFound):
            issue_credit_note(original_bill_id=sold.id, items=[_return(product_id, 1)])

    @pytest.mark.parametrize("commit", [True, False])
    def test_stock_conflict_removes_credit_note(self, db_session, product, sold, monkeypatch, commit):
        product_id = product.id
        sold_id = sold.id

        def lost_race(*args):
            raise ConcurrencyConflict("lost race")

        monkeypatch.setattr(stock_ledger, "_compare_and_set", lost_race)

        with pytest.raises(ConcurrencyConflict):
            issue_credit_note(original_bill_id=sold_id, items=[_return(product_id, 2)], commit=commit)

        monkeypatch.undo()
        assert db_session.query(CreditNote).count() == 0
        assert stock_of(product_id) == 7

    def test_history_survives_bill_delete(self, db_session, product, sold):
        note = issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 1)])
        delete_bill(sold.id)

        db_session.expire_all()
        kept = get_credit_note(note.id)
        assert kept.original_bill_number == "RG-001"


class TestCreditNoteReads:
    def test_list_and_filter_by_bill(self, db_session, product, sold):
        other_bill = create_bill(customer_name="B", customer_phone="2", items=[line(product.id, 1)])
        issue_credit_note(original_bill_id=sold.id, items=[_return(product.id, 1)])
        issue_credit_note(original_bill_id=other_bill.id, items=[_return(product.id, 1)])

        assert len(list_credit_notes()) == 2
        for_bill = list_credit_notes_for_bill(sold.id)
        assert [n.original_bill_id for n in for_bill] == [sold.id]

    def test_get_missing(self, db_session):
        with pytest.raises(CreditNoteNotFound):
            get_credit_note(777)
