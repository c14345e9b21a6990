"""
Settings loader (``estate_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the typed
``estate_config.schema`` dataclasses. Runtime callers go through
``estate_config.get_active_settings()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Missing keys fall back to the schema defaults; present keys are
  validated and never silently coerced from floats or booleans.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  source mapping.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``ConfigError`` (chained from ``yaml.YAMLError``).
* Malformed values  -> ``ConfigError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from estate_config.schema import (
    AccountBinding,
    AllocationSettings,
    DistributionSettings,
    DunningSettings,
    DunningStageDef,
    EngineSettings,
    InterestSettings,
    MatchingSettings,
)
from estate_kernel.domain.posting import AccountRole

_KNOWN_ROLES = frozenset(r.value for r in AccountRole)


class ConfigError(ValueError):
    """Settings file is structurally or semantically invalid."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(key, "must be a mapping")
    return value


def _decimal(data: dict[str, Any], key: str, default: Decimal, path: str) -> Decimal:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ConfigError(f"{path}.{key}", f"expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigError(f"{path}.{key}", f"not a decimal: {value!r}") from exc
    if not result.is_finite() or result < 0:
        raise ConfigError(f"{path}.{key}", f"must be a finite non-negative number: {value!r}")
    return result


def _int(data: dict[str, Any], key: str, default: int, path: str, minimum: int = 0) -> int:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{path}.{key}", f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{path}.{key}", f"must be >= {minimum}, got {value}")
    return value


def parse_dunning(data: dict[str, Any]) -> DunningSettings:
    """Parse the dunning ladder; stage levels must be unique."""
    raw_stages = data.get("stages")
    if raw_stages is None:
        return DunningSettings()
    if not isinstance(raw_stages, list) or not raw_stages:
        raise ConfigError("dunning.stages", "must be a non-empty list")

    stages: list[DunningStageDef] = []
    for i, raw in enumerate(raw_stages):
        path = f"dunning.stages[{i}]"
        if not isinstance(raw, dict):
            raise ConfigError(path, "must be a mapping")
        if "level" not in raw or "min_days" not in raw:
            raise ConfigError(path, "level and min_days are required")
        stages.append(
            DunningStageDef(
                level=_int(raw, "level", 0, path),
                min_days=_int(raw, "min_days", 0, path),
                label=str(raw.get("label", f"level_{raw['level']}")),
                fee=_decimal(raw, "fee", Decimal("0"), path),
            )
        )
    levels = [s.level for s in stages]
    if len(set(levels)) != len(levels):
        raise ConfigError("dunning.stages", f"duplicate levels: {levels}")
    if max(levels) > 3:
        raise ConfigError("dunning.stages", "levels must be between 0 and 3")
    return DunningSettings(stages=tuple(sorted(stages, key=lambda s: s.min_days)))


def parse_interest(data: dict[str, Any]) -> InterestSettings:
    defaults = InterestSettings()
    return InterestSettings(
        annual_rate=_decimal(data, "annual_rate", defaults.annual_rate, "interest"),
    )


def parse_matching(data: dict[str, Any]) -> MatchingSettings:
    d = MatchingSettings()
    p = "matching"
    return MatchingSettings(
        exact_amount_weight=_decimal(data, "exact_amount_weight", d.exact_amount_weight, p),
        similar_amount_weight=_decimal(data, "similar_amount_weight", d.similar_amount_weight, p),
        date_match_weight=_decimal(data, "date_match_weight", d.date_match_weight, p),
        date_close_weight=_decimal(data, "date_close_weight", d.date_close_weight, p),
        name_match_weight=_decimal(data, "name_match_weight", d.name_match_weight, p),
        exact_tolerance=_decimal(data, "exact_tolerance", d.exact_tolerance, p),
        similar_ratio=_decimal(data, "similar_ratio", d.similar_ratio, p),
        date_match_days=_int(data, "date_match_days", d.date_match_days, p),
        date_close_days=_int(data, "date_close_days", d.date_close_days, p),
        max_days_apart=_int(data, "max_days_apart", d.max_days_apart, p),
        min_confidence=_decimal(data, "min_confidence", d.min_confidence, p),
        max_suggestions=_int(data, "max_suggestions", d.max_suggestions, p),
    )


def parse_allocation(data: dict[str, Any]) -> AllocationSettings:
    return AllocationSettings(
        max_retries=_int(data, "max_retries", AllocationSettings().max_retries, "allocation", 1),
    )


def parse_distribution(data: dict[str, Any]) -> DistributionSettings:
    d = DistributionSettings()
    return DistributionSettings(
        max_workers=_int(data, "max_workers", d.max_workers, "distribution", 1),
        minimum_reserve_per_sqm=_decimal(
            data, "minimum_reserve_per_sqm", d.minimum_reserve_per_sqm, "distribution"
        ),
    )


def parse_account_bindings(data: Any) -> tuple[AccountBinding, ...]:
    """Parse ``accounts``: a mapping of role -> code or role -> {code, name}."""
    if data is None:
        return ()
    if not isinstance(data, dict):
        raise ConfigError("accounts", "must be a mapping of role to account code")
    bindings: list[AccountBinding] = []
    for role, value in data.items():
        if role not in _KNOWN_ROLES:
            raise ConfigError(f"accounts.{role}", "unknown account role")
        if isinstance(value, dict):
            if "code" not in value:
                raise ConfigError(f"accounts.{role}", "code is required")
            bindings.append(
                AccountBinding(str(role), str(value["code"]), str(value.get("name", "")))
            )
        elif isinstance(value, (str, int)) and not isinstance(value, bool):
            bindings.append(AccountBinding(str(role), str(value)))
        else:
            raise ConfigError(f"accounts.{role}", f"invalid binding {value!r}")
    return tuple(sorted(bindings, key=lambda b: b.role))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any], source_path: str | None = None) -> EngineSettings:
    """Build EngineSettings from an already loaded mapping."""
    currency = str(data.get("currency", "EUR"))
    if len(currency) != 3 or not currency.isalpha():
        raise ConfigError("currency", f"expected an ISO 4217 code, got {currency!r}")
    return EngineSettings(
        config_id=str(data.get("config_id", "default")),
        version=_int(data, "version", 1, "root", 1),
        currency=currency.upper(),
        dunning=parse_dunning(_section(data, "dunning")),
        interest=parse_interest(_section(data, "interest")),
        matching=parse_matching(_section(data, "matching")),
        allocation=parse_allocation(_section(data, "allocation")),
        distribution=parse_distribution(_section(data, "distribution")),
        account_bindings=parse_account_bindings(data.get("accounts")),
        checksum=compute_checksum(data),
        source_path=source_path,
    )


def load_settings(path: Path) -> EngineSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path), source_path=str(path))
