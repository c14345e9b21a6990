"""
Estate Kernel - money, domain snapshots and persistence for the estate
ledger engine.

- Cent-exact Money with a single rounding function
- Boundary-validated invoice, payment, participant and bank DTOs
- Idempotent postings keyed by (source_type, source_id)
- Optimistic locking on invoices
- Structured JSON logging
"""

__version__ = "0.1.0"
