"""
1-ply action ranking.

Ranks a side's actions by the expected heuristic over the outcome
distribution of committing each one. Used to cap decision-node branching,
to order children for earlier cutoffs, to pick the counterpart reply at
chance nodes, and as the controller's fallback.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pokesearch.heuristic import HeuristicEvaluator, sanitize_score
from pokesearch.oracle import Action, BattleOracle, State, opponent_of, winner


logger = logging.getLogger(__name__)

RankedActions = List[Tuple[Action, float]]

UNSCORED = float("-inf")


class ActionRanker:
    """
    Expected-heuristic ranking with a per-decision cache.

    The cache is keyed by state identity, side and the identities of the
    actions ranked. States are immutable snapshots, so one object always
    ranks the same way; the stored state and ranking keep those ids from
    being recycled while the entry lives.
    """

    def __init__(
        self,
        oracle: BattleOracle,
        heuristic: HeuristicEvaluator,
        heuristic_bound: float = 1000.0,
        terminal_value: float = 10000.0,
    ):
        self.oracle = oracle
        self.heuristic = heuristic
        self.heuristic_bound = heuristic_bound
        self.terminal_value = terminal_value
        self._cache: Dict[Tuple[int, int, Tuple[int, ...]], Tuple[State, RankedActions]] = {}
        self.rankings_computed = 0

    def clear(self):
        self._cache.clear()

    def outcome_score(self, state: State, side: int) -> float:
        if self.oracle.is_over(state):
            won = winner(self.oracle, state)
            if won is None:
                return 0.0
            return self.terminal_value if won == side else -self.terminal_value
        return sanitize_score(self.heuristic.score(state, side), self.heuristic_bound)

    def expected_score(self, state: State, action: Action, side: int) -> float:
        outcomes = self.oracle.apply_action(state, action, side, opponent_of(side))
        total = 0.0
        weighted = 0.0
        for probability, result in outcomes:
            if probability <= 0.0:
                continue
            total += probability
            weighted += probability * self.outcome_score(result, side)
        if total <= 0.0:
            logger.warning(
                "Oracle returned no outcomes for %s on side %d, ranking it last",
                getattr(action, "id", action),
                side,
            )
            return UNSCORED
        return weighted / total

    def rank(
        self,
        state: State,
        side: int,
        actions: Optional[Sequence[Action]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> RankedActions:
        """
        Actions best-first with their expected 1-ply scores.

        Ties keep the oracle's order. If ``should_stop`` fires part way
        through, the actions scored so far come first and the rest follow
        unscored in their original order; such a partial ranking is not cached.
        """
        if actions is None:
            active = self.oracle.active_combatant(state, side)
            actions = () if self.oracle.has_fainted(active) else self.oracle.available_actions(active)
        actions = tuple(actions)

        key = (id(state), side, tuple(id(action) for action in actions))
        cached = self._cache.get(key)
        if cached is not None and cached[0] is state:
            return cached[1]

        scored: RankedActions = []
        unscored: RankedActions = []
        for action in actions:
            if unscored or (should_stop is not None and should_stop()):
                unscored.append((action, UNSCORED))
                continue
            scored.append((action, self.expected_score(state, action, side)))

        # sorted() is stable, so equal scores keep the oracle's order.
        ranking = sorted(scored, key=lambda pair: -pair[1]) + unscored
        if not unscored:
            self._cache[key] = (state, ranking)
            self.rankings_computed += 1
        return ranking

    def best_reply(self, state: State, side: int) -> Optional[Action]:
        """Top-ranked action of ``side``, or None when it cannot move."""
        ranking = self.rank(state, side)
        if not ranking:
            return None
        return ranking[0][0]
