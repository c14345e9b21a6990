"""
Chart-of-accounts role resolution.

The posting emitter references accounts by semantic role; this resolver
maps each role to the account code configured for the property's chart of
accounts. Bindings come from ``estate_config`` through
``estate_config.bridges.build_role_resolver``.
"""

from __future__ import annotations

from dataclasses import dataclass

from estate_kernel.domain.posting import AccountRole
from estate_kernel.exceptions import RoleResolutionError
from estate_kernel.logging_config import get_logger

logger = get_logger("services.chart_of_accounts")


@dataclass(frozen=True)
class BindingRecord:
    role: AccountRole
    account_code: str
    account_name: str = ""
    config_id: str = ""


class RoleResolver:
    """
    In-memory role -> account code lookup.

    Instances are callable so they can be handed to ``PostingEmitter``
    directly as its ``resolve_account`` function.
    """

    def __init__(self):
        self._bindings: dict[AccountRole, BindingRecord] = {}

    def register_binding(
        self,
        role: AccountRole | str,
        account_code: str,
        *,
        account_name: str = "",
        config_id: str = "",
    ) -> None:
        role = AccountRole(role)
        self._bindings[role] = BindingRecord(role, account_code, account_name, config_id)

    def resolve(self, role: AccountRole | str) -> str:
        """
        Raises:
            RoleResolutionError: If no account is bound to ``role``.
        """
        return self.resolve_full(role).account_code

    def resolve_full(self, role: AccountRole | str) -> BindingRecord:
        try:
            key = AccountRole(role)
        except ValueError as exc:
            raise RoleResolutionError(str(role)) from exc
        binding = self._bindings.get(key)
        if binding is None:
            logger.error("role_resolution_failed", extra={"role": key.value})
            raise RoleResolutionError(key.value)
        return binding

    def __call__(self, role: AccountRole) -> str:
        return self.resolve(role)

    @property
    def roles(self) -> frozenset[AccountRole]:
        return frozenset(self._bindings)

    def missing_roles(self) -> list[AccountRole]:
        """Roles the emitter may use that have no binding."""
        return [role for role in AccountRole if role not in self._bindings]

    def clear(self) -> None:
        """Clear all bindings. For testing only."""
        self._bindings.clear()
