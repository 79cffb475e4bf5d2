"""
Factor registry: named scoring functions indexed by (sport, bet type).

Factor modules describe themselves with ``FactorDefinition`` objects; the
registry stores them, answers metadata queries for the factor browser and
turns raw ``FactorResult`` values into the ``ComputedFactor`` rows that runs
persist.

compute() is strict (unknown key → KeyError, factor errors propagate).
compute_many() is lenient: a failing factor becomes a neutral row tagged
``computation_error`` so one bad input never sinks the whole run.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from pickgen.core.factor_types import (
    ComputedFactor,
    FactorDefinition,
    FactorResult,
    NBAStatsBundle,
    RunContext,
)
from pickgen.core.sport_config import BetType, Sport
from pickgen.core.signal_math import clamp, signal_to_scores

logger = logging.getLogger(__name__)


def _index_key(sport, bet_type) -> str:
    return f"{Sport(sport).value}:{BetType(bet_type).value}"


class FactorRegistry:
    """In-memory store of factor definitions."""

    def __init__(self):
        self._factors: Dict[str, FactorDefinition] = {}
        self._by_context: Dict[str, List[str]] = defaultdict(list)
        self._aliases: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, definition: FactorDefinition) -> None:
        """Add a definition.  Keys are unique per (sport, bet type)."""
        ctx_key = _index_key(definition.sport, definition.bet_type)
        storage_key = f"{ctx_key}:{definition.key}"
        if storage_key in self._factors:
            raise ValueError(f"Factor {definition.key!r} already registered for {ctx_key}")
        self._factors[storage_key] = definition
        self._by_context[ctx_key].append(definition.key)

    def register_alias(self, alias: str, target: str) -> None:
        """Resolve a legacy profile key to a current factor key."""
        self._aliases[alias] = target

    def resolve_key(self, key: str) -> str:
        return self._aliases.get(key, key)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all(self) -> List[FactorDefinition]:
        return list(self._factors.values())

    def get_by_key(
        self,
        key: str,
        sport=Sport.NBA,
        bet_type=BetType.TOTAL,
    ) -> Optional[FactorDefinition]:
        ctx_key = _index_key(sport, bet_type)
        return self._factors.get(f"{ctx_key}:{self.resolve_key(key)}")

    def get_by_sport_and_bet_type(self, sport, bet_type) -> List[FactorDefinition]:
        ctx_key = _index_key(sport, bet_type)
        return [self._factors[f"{ctx_key}:{k}"] for k in self._by_context.get(ctx_key, [])]

    def get_keys(self, sport=None, bet_type=None) -> List[str]:
        if sport is None or bet_type is None:
            return sorted({d.key for d in self._factors.values()})
        return list(self._by_context.get(_index_key(sport, bet_type), []))

    def has(self, key: str, sport=Sport.NBA, bet_type=BetType.TOTAL) -> bool:
        return self.get_by_key(key, sport, bet_type) is not None

    def get_factor_details(self, key: str, sport=Sport.NBA, bet_type=BetType.TOTAL) -> Optional[Dict]:
        definition = self.get_by_key(key, sport, bet_type)
        return definition.details() if definition else None

    def get_factor_logic(self, key: str, sport=Sport.NBA, bet_type=BetType.TOTAL) -> Optional[str]:
        definition = self.get_by_key(key, sport, bet_type)
        return definition.logic if definition else None

    def get_grouped_by_category(self, sport, bet_type) -> Dict[str, List[Dict]]:
        grouped: Dict[str, List[Dict]] = defaultdict(list)
        for definition in self.get_by_sport_and_bet_type(sport, bet_type):
            grouped[definition.category.value].append(definition.details())
        return dict(grouped)

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def compute(
        self,
        key: str,
        bundle: Optional[NBAStatsBundle],
        ctx: RunContext,
    ) -> ComputedFactor:
        """Run one factor and shape its result into a ComputedFactor.

        Raises:
            KeyError: ``key`` is not registered for the context's sport and
                bet type.
        """
        definition = self.get_by_key(key, ctx.sport, ctx.bet_type)
        if definition is None:
            raise KeyError(
                f"Unknown factor {key!r} for {_index_key(ctx.sport, ctx.bet_type)}"
            )
        result = definition.compute(bundle, ctx)
        return self._to_computed(definition, result, ctx.factor_weights.get(key))

    def compute_many(
        self,
        keys: Iterable[str],
        bundle: Optional[NBAStatsBundle],
        ctx: RunContext,
    ) -> List[ComputedFactor]:
        """Run several factors; failures become neutral error rows."""
        computed: List[ComputedFactor] = []
        for key in keys:
            try:
                computed.append(self.compute(key, bundle, ctx))
            except Exception as exc:
                logger.warning("Factor %s failed for game %s: %s", key, ctx.game_id, exc)
                definition = self.get_by_key(key, ctx.sport, ctx.bet_type)
                computed.append(ComputedFactor(
                    factor_no=definition.factor_number if definition else 0,
                    key=key,
                    name=definition.name if definition else key,
                    normalized_value=0.0,
                    raw_values_json={},
                    parsed_values_json={"signal": 0.0, "points": 0.0},
                    caps_applied=False,
                    cap_reason="computation_error",
                    notes=f"Error: {exc}",
                    weight_total_pct=ctx.factor_weights.get(key),
                ))
        return computed

    @staticmethod
    def _to_computed(
        definition: FactorDefinition,
        result: FactorResult,
        weight_pct: Optional[float],
    ) -> ComputedFactor:
        signal = clamp(float(result.signal), -1.0, 1.0)
        positive_side, negative_side = definition.score_sides()
        scores = signal_to_scores(signal, definition.max_points, positive_side, negative_side)

        parsed = dict(result.meta)
        parsed.update(scores)
        parsed["signal"] = signal
        parsed["points"] = max(scores.values())

        return ComputedFactor(
            factor_no=definition.factor_number,
            key=definition.key,
            name=definition.name,
            normalized_value=signal,
            raw_values_json=dict(result.raw),
            parsed_values_json=parsed,
            caps_applied=result.caps_applied,
            cap_reason=result.cap_reason,
            notes=result.notes,
            weight_total_pct=weight_pct,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_registry: Optional[FactorRegistry] = None


def build_default_registry() -> FactorRegistry:
    """Registry populated with every NBA totals and spread factor."""
    from pickgen.factors import spread, totals

    registry = FactorRegistry()
    for definition in totals.DEFINITIONS:
        registry.register(definition)
    for definition in spread.DEFINITIONS:
        registry.register(definition)
    for alias, target in spread.LEGACY_ALIASES.items():
        registry.register_alias(alias, target)
    return registry


def get_factor_registry() -> FactorRegistry:
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry
