"""Read-only selectors returning domain DTOs."""

from estate_kernel.selectors.bank_selector import BankTransactionSelector
from estate_kernel.selectors.invoice_selector import InvoiceSelector
from estate_kernel.selectors.participant_selector import ParticipantSelector
from estate_kernel.selectors.posting_selector import PostingSelector
from estate_kernel.selectors.tenant_selector import TenantSelector

__all__ = [
    "BankTransactionSelector",
    "InvoiceSelector",
    "ParticipantSelector",
    "PostingSelector",
    "TenantSelector",
]
