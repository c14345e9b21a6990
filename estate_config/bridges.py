"""
Settings -> engine bridges.

Functions that turn EngineSettings into configured engine instances and
the chart-of-accounts role resolver. They live here because engines and
the kernel must never import estate_config.

Usage:
    from estate_config import get_active_settings
    from estate_config.bridges import build_posting_emitter, build_dunning_calculator

    settings = get_active_settings()
    emitter = build_posting_emitter(settings)
    calculator = build_dunning_calculator(settings)
"""

from __future__ import annotations

from estate_config.schema import EngineSettings
from estate_engines.bank_matching import BankMatchScorer, MatchScoring
from estate_engines.dunning import DunningCalculator, DunningLevel, DunningStage
from estate_engines.posting import PostingEmitter
from estate_kernel.domain.values import Money
from estate_services.chart_of_accounts import RoleResolver


def build_role_resolver(settings: EngineSettings) -> RoleResolver:
    resolver = RoleResolver()
    for binding in settings.account_bindings:
        resolver.register_binding(
            binding.role,
            binding.account_code,
            account_name=binding.account_name,
            config_id=settings.config_id,
        )
    return resolver


def build_posting_emitter(settings: EngineSettings) -> PostingEmitter:
    return PostingEmitter(build_role_resolver(settings))


def build_dunning_calculator(settings: EngineSettings) -> DunningCalculator:
    stages = tuple(
        DunningStage(
            level=DunningLevel(stage.level),
            min_days=stage.min_days,
            label=stage.label,
            fee=Money(stage.fee, settings.currency),
        )
        for stage in settings.dunning.stages
    )
    return DunningCalculator(stages=stages, annual_rate=settings.interest.annual_rate)


def build_match_scoring(settings: EngineSettings) -> MatchScoring:
    m = settings.matching
    return MatchScoring(
        exact_amount=m.exact_amount_weight,
        similar_amount=m.similar_amount_weight,
        date_match=m.date_match_weight,
        date_close=m.date_close_weight,
        name_match=m.name_match_weight,
        exact_tolerance=m.exact_tolerance,
        similar_ratio=m.similar_ratio,
        date_match_days=m.date_match_days,
        date_close_days=m.date_close_days,
        max_days_apart=m.max_days_apart,
        min_confidence=m.min_confidence,
        max_suggestions=m.max_suggestions,
    )


def build_bank_match_scorer(settings: EngineSettings) -> BankMatchScorer:
    return BankMatchScorer(build_match_scoring(settings))
