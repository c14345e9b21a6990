"""ORM models for the estate kernel."""

from estate_kernel.models.bank import BankTransactionModel
from estate_kernel.models.invoice import InvoiceModel
from estate_kernel.models.participant import DistributionParticipantModel
from estate_kernel.models.payment import PaymentAllocationModel, PaymentModel
from estate_kernel.models.posting import PostingLineModel, PostingModel
from estate_kernel.models.tenant import TenantModel

__all__ = [
    "BankTransactionModel",
    "DistributionParticipantModel",
    "InvoiceModel",
    "PaymentAllocationModel",
    "PaymentModel",
    "PostingLineModel",
    "PostingModel",
    "TenantModel",
]
