"""
Time-boxed search controller.

Turns the expectiminimax evaluator into an anytime decision procedure:
rank, maybe short-circuit, then deepen iteratively until the soft deadline,
always keeping a legal answer ready.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pokesearch.config import SearchConfig
from pokesearch.exceptions import NoActionAvailable, SearchTimeout
from pokesearch.expansion import TreeExpander, TurnResolver
from pokesearch.expectiminimax import ExpectiminimaxEvaluator
from pokesearch.heuristic import HeuristicEvaluator, WeightedHeuristic
from pokesearch.minimax_optimizer import MinimaxCache, canonical_action
from pokesearch.node import Role, SearchNode
from pokesearch.oracle import Action, BattleOracle, State
from pokesearch.ranking import UNSCORED, ActionRanker


logger = logging.getLogger(__name__)


class SearchPhase(Enum):
    IDLE = "idle"
    RANKING = "ranking"
    SHORT_CIRCUIT_RETURN = "short_circuit_return"
    ITERATING = "iterating"
    COMPLETE = "complete"
    DEADLINE_HIT = "deadline_hit"
    DEPTH_CAP = "depth_cap"
    FALLBACK = "fallback"


@dataclass
class SearchResult:
    action: Action
    value: Optional[float]
    depth_reached: int
    phase: SearchPhase
    elapsed: float
    # Actions that could not beat the best one so far may hold an upper bound
    # rather than their exact value.
    action_values: Dict[str, float] = field(default_factory=dict)
    ranked: List[Tuple[str, float]] = field(default_factory=list)
    nodes_evaluated: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    iterations: int = 0
    cutoffs: int = 0


class SearchController:
    """
    Chooses an action for one side under a wall-clock budget.

    Every call builds its own ranker, expander, evaluator and cache, so no
    memoized value ever leaks from one decision into the next.
    """

    def __init__(
        self,
        oracle: BattleOracle,
        heuristic: Optional[HeuristicEvaluator] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.oracle = oracle
        self.heuristic = heuristic if heuristic is not None else WeightedHeuristic(oracle)
        self.config = config if config is not None else SearchConfig()
        self.phase = SearchPhase.IDLE

    def select_action(
        self,
        state: State,
        side: int,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Action:
        """Legal action for ``side``. ``deadline`` is a ``time.monotonic()`` timestamp."""
        return self.search(state, side, deadline, cancel_event).action

    def make_ranker(self) -> ActionRanker:
        return ActionRanker(
            self.oracle,
            self.heuristic,
            heuristic_bound=self.config.heuristic_bound,
            terminal_value=self.config.terminal_value,
        )

    def search(
        self,
        state: State,
        side: int,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchResult:
        config = self.config
        start = time.monotonic()
        if deadline is None:
            deadline = start + config.move_time_limit_s
        soft_deadline = start + config.safety_fraction * max(0.0, deadline - start)
        self.phase = SearchPhase.IDLE

        def should_stop() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return True
            return time.monotonic() >= soft_deadline

        active = self.oracle.active_combatant(state, side)
        if self.oracle.has_fainted(active):
            raise NoActionAvailable(side, "active combatant has fainted")
        actions = list(self.oracle.available_actions(active))
        if not actions:
            raise NoActionAvailable(side)

        self.phase = SearchPhase.RANKING
        ranker = self.make_ranker()
        ranked = ranker.rank(state, side, actions, should_stop=should_stop)
        ranked_labels = [(canonical_action(a), s) for a, s in ranked]

        if should_stop():
            return self._fallback(actions, ranked, ranked_labels, start, "deadline reached while ranking")

        if ranked[0][1] >= config.decisive_threshold:
            self.phase = SearchPhase.SHORT_CIRCUIT_RETURN
            logger.debug("Short-circuit on %s (1-ply %.1f)", ranked_labels[0][0], ranked[0][1])
            return SearchResult(
                action=ranked[0][0],
                value=ranked[0][1],
                depth_reached=1,
                phase=self.phase,
                elapsed=time.monotonic() - start,
                ranked=ranked_labels,
            )

        cache = MinimaxCache()
        resolver = TurnResolver(self.oracle, config)
        expander = TreeExpander(self.oracle, ranker, resolver, config, root_side=side)
        evaluator = ExpectiminimaxEvaluator(
            self.oracle,
            self.heuristic,
            expander,
            config,
            root_side=side,
            cache=cache,
            deadline=soft_deadline,
            cancel_event=cancel_event,
        )
        root = SearchNode(state, Role.MAXIMIZER)
        candidates = expander.candidate_actions(state, side, Role.MAXIMIZER, actions)

        best_action: Optional[Action] = None
        best_value: Optional[float] = None
        best_values: Dict[str, float] = {}
        depth_reached = 0
        iterations = 0
        final_phase = SearchPhase.DEPTH_CAP

        self.phase = SearchPhase.ITERATING
        for depth in range(config.initial_depth, config.max_depth + 1, config.depth_step):
            evaluator.hit_depth_limit = False
            values: Dict[str, float] = {}
            iteration_best: Optional[Action] = None
            iteration_value = float("-inf")
            try:
                for action in candidates:
                    if should_stop():
                        raise SearchTimeout("deadline reached between root actions")
                    node = root.child(state, Role.CHANCE, incoming_action=action, actor=Role.MAXIMIZER)
                    alpha = iteration_value if config.alpha_beta else float("-inf")
                    value = evaluator.value(node, depth - 1, alpha)
                    values[canonical_action(action)] = value
                    # Strict improvement only: ties go to the better-ranked action.
                    if iteration_best is None or value > iteration_value:
                        iteration_best, iteration_value = action, value
            except SearchTimeout:
                final_phase = SearchPhase.DEADLINE_HIT
                logger.debug("Deadline hit during depth %d", depth)
                break

            best_action, best_value, best_values = iteration_best, iteration_value, values
            depth_reached = depth
            iterations += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Depth %d complete: %s", depth, values)
            if not evaluator.hit_depth_limit:
                final_phase = SearchPhase.COMPLETE
                break

        hits, misses, _ = cache.get_stats()
        if best_action is None:
            result = self._fallback(actions, ranked, ranked_labels, start, "no iteration completed")
            result.nodes_evaluated = evaluator.nodes_evaluated
            result.cache_hits, result.cache_misses = hits, misses
            result.cutoffs = evaluator.cutoffs
            return result

        self.phase = final_phase
        return SearchResult(
            action=best_action,
            value=best_value,
            depth_reached=depth_reached,
            phase=final_phase,
            elapsed=time.monotonic() - start,
            action_values=best_values,
            ranked=ranked_labels,
            nodes_evaluated=evaluator.nodes_evaluated,
            cache_hits=hits,
            cache_misses=misses,
            iterations=iterations,
            cutoffs=evaluator.cutoffs,
        )

    def _fallback(self, actions, ranked, ranked_labels, start: float, reason: str) -> SearchResult:
        """Best 1-ply action if ranking produced one, else the first legal action."""
        self.phase = SearchPhase.FALLBACK
        if ranked and ranked[0][1] != UNSCORED:
            action, value = ranked[0]
        else:
            action, value = actions[0], None
        logger.info("Search fallback (%s): %s", reason, canonical_action(action))
        return SearchResult(
            action=action,
            value=value,
            depth_reached=0,
            phase=SearchPhase.FALLBACK,
            elapsed=time.monotonic() - start,
            ranked=ranked_labels,
        )
