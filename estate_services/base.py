"""
BaseService -- base for session-bound services.

Responsibility:
    Common constructor for services that work inside a caller-owned
    SQLAlchemy ``Session``. They persist with ``session.flush()`` and never
    commit or roll back; the caller owns the transaction.

Architecture position:
    Services -- imperative shell over the pure engines. Services that must
    own their transactions (payment allocation with optimistic retry, bank
    match confirmation) take a session factory instead and do not extend
    this class.
"""

from abc import ABC

from sqlalchemy.orm import Session

from estate_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Contract:
        Accepts a ``Session`` from the caller; flushes, never commits.
    Non-goals:
        - Read-only queries belong in ``estate_kernel.selectors``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
