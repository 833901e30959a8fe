"""
Heuristic evaluation of non-terminal battle states.

The search only relies on the contract: ``score(state, side)`` is finite,
higher is better for ``side``, continuous in HP fractions, a pure function of
the state, and bounded well below the terminal win/loss constants.
"""

import logging
import math
from typing import Mapping, Optional, Protocol, Sequence

import numpy as np
from poke_env.environment.effect import Effect
from poke_env.environment.status import Status

from pokesearch.data_cache import DEFAULT_TYPE_CHART_GEN, type_effectiveness
from pokesearch.oracle import BattleOracle, Combatant, State, hp_fraction, opponent_of


logger = logging.getLogger(__name__)

FEATURE_NAMES = ("hp", "remaining", "matchup", "status", "boosts", "volatile")
DEFAULT_WEIGHTS = np.array([6.0, 2.0, 0.8, 2.0, 1.5, 1.5])

# How much each non-volatile status hurts its bearer.
STATUS_BURDEN: Mapping[Status, float] = {
    Status.PAR: 0.3,
    Status.PSN: 0.25,
    Status.TOX: 0.4,
    Status.BRN: 0.35,
    Status.FRZ: 0.5,
    Status.SLP: 0.45,
}

VOLATILE_SCORES: Mapping[Effect, float] = {
    Effect.CONFUSION: -0.25,
    Effect.LEECH_SEED: -0.15,
    Effect.TRAPPED: -0.2,
    Effect.FOCUS_ENERGY: 0.15,
}

BOOST_WEIGHTS: Mapping[str, float] = {
    "atk": 0.15,
    "def": 0.15,
    "spa": 0.15,
    "spd": 0.15,
    "spe": 0.2,
    "accuracy": 0.1,
    "evasion": 0.1,
}


class HeuristicEvaluator(Protocol):
    def score(self, state: State, side: int) -> float:
        ...


def sanitize_score(value: float, bound: float) -> float:
    """Clamp non-finite scores to zero and finite ones into ``[-bound, bound]``."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric heuristic score %r, using 0.0", value)
        return 0.0
    if not math.isfinite(value):
        logger.warning("Non-finite heuristic score %r, using 0.0", value)
        return 0.0
    return max(-bound, min(bound, value))


def stage_multiplier(stage: int) -> float:
    if stage >= 0:
        return (2 + stage) / 2
    return 2 / (2 - stage)


def team_hp_fraction(oracle: BattleOracle, roster: Sequence[Combatant]) -> float:
    total = sum(max(0, oracle.current_hp(c)) for c in roster)
    maximum = sum(oracle.max_hp(c) for c in roster)
    return total / maximum if maximum > 0 else 0.0


def offensive_matchup(
    oracle: BattleOracle, attacker: Combatant, defender: Combatant, gen: int = DEFAULT_TYPE_CHART_GEN
) -> float:
    """Best type effectiveness of the attacker's own types against the defender."""
    defender_types = tuple(oracle.types(defender))
    if not defender_types:
        return 1.0
    second = defender_types[1] if len(defender_types) > 1 else None
    best = 1.0
    for attack_type in oracle.types(attacker):
        best = max(best, type_effectiveness(attack_type, defender_types[0], second, gen))
    return best


def type_advantage(
    oracle: BattleOracle, mine: Combatant, theirs: Combatant, gen: int = DEFAULT_TYPE_CHART_GEN
) -> float:
    if oracle.has_fainted(mine) or oracle.has_fainted(theirs):
        return 0.0
    return offensive_matchup(oracle, mine, theirs, gen) - offensive_matchup(oracle, theirs, mine, gen)


class WeightedHeuristic:
    """Weighted combination of side-minus-opponent battle features."""

    def __init__(
        self,
        oracle: BattleOracle,
        weights: Optional[Sequence[float]] = None,
        type_chart_gen: int = DEFAULT_TYPE_CHART_GEN,
    ):
        self.oracle = oracle
        self.weights = DEFAULT_WEIGHTS.copy() if weights is None else np.asarray(weights, dtype=float)
        if self.weights.shape != (len(FEATURE_NAMES),):
            raise ValueError(f"expected {len(FEATURE_NAMES)} weights, got shape {self.weights.shape}")
        self.type_chart_gen = type_chart_gen

    def features(self, state: State, side: int) -> np.ndarray:
        oracle = self.oracle
        other = opponent_of(side)
        mine = oracle.active_combatant(state, side)
        theirs = oracle.active_combatant(state, other)
        my_roster = oracle.roster(state, side)
        their_roster = oracle.roster(state, other)

        active_hp = hp_fraction(oracle, mine) - hp_fraction(oracle, theirs)
        team_hp = team_hp_fraction(oracle, my_roster) - team_hp_fraction(oracle, their_roster)

        my_left = sum(1 for c in my_roster if not oracle.has_fainted(c))
        their_left = sum(1 for c in their_roster if not oracle.has_fainted(c))
        remaining = my_left / max(1, len(my_roster)) - their_left / max(1, len(their_roster))

        # Effectiveness lies in [0, 4]; scale the difference into [-1, 1].
        matchup = type_advantage(oracle, mine, theirs, self.type_chart_gen) / 4.0

        status = STATUS_BURDEN.get(oracle.status(theirs), 0.0) - STATUS_BURDEN.get(oracle.status(mine), 0.0)

        my_boosts = oracle.boosts(mine)
        their_boosts = oracle.boosts(theirs)
        boosts = sum(
            weight * (stage_multiplier(my_boosts.get(stat, 0)) - stage_multiplier(their_boosts.get(stat, 0)))
            for stat, weight in BOOST_WEIGHTS.items()
        )

        volatile = sum(
            score * (int(oracle.volatile_flag(mine, flag)) - int(oracle.volatile_flag(theirs, flag)))
            for flag, score in VOLATILE_SCORES.items()
        )

        return np.array([0.7 * active_hp + 0.3 * team_hp, remaining, matchup, status, boosts, volatile])

    def score(self, state: State, side: int) -> float:
        return float(self.weights @ self.features(state, side))
