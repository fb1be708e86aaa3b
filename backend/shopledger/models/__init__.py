from .catalog import Product
from .billing import Bill, BillLineItem, PAYMENT_TYPES, DEFAULT_PAYMENT_TYPE
from .credit_notes import CreditNote, CreditNoteLineItem
from .settings import ShopSettings, SETTINGS_ROW_ID
from .ledger import LedgerEvent

__all__ = [
    'Product',
    'Bill', 'BillLineItem', 'PAYMENT_TYPES', 'DEFAULT_PAYMENT_TYPE',
    'CreditNote', 'CreditNoteLineItem',
    'ShopSettings', 'SETTINGS_ROW_ID',
    'LedgerEvent',
]
