"""ORM models exposed for easy imports."""

from .business import Business
from .business_member import BusinessMember
from .contact import Contact
from .invoice import INVOICE_STATUSES, Invoice
from .invoice_item import InvoiceItem
from .invoice_sequence import InvoiceNumberSequence
from .user import User

__all__ = [
    "Business",
    "BusinessMember",
    "Contact",
    "INVOICE_STATUSES",
    "Invoice",
    "InvoiceItem",
    "InvoiceNumberSequence",
    "User",
]
