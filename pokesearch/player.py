"""
Players that pick actions over a BattleOracle.

``SearchPlayer`` runs the search controller on a dedicated worker and
enforces the per-move time limit from the calling thread; ``RandomPlayer``
and ``GreedyPlayer`` are baselines for local battles.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import List, Optional

import numpy as np

from pokesearch.config import SearchConfig
from pokesearch.exceptions import NoActionAvailable
from pokesearch.heuristic import HeuristicEvaluator, WeightedHeuristic, type_advantage
from pokesearch.minimax_optimizer import canonical_action
from pokesearch.oracle import Action, BattleOracle, State, hp_fraction, opponent_of
from pokesearch.ranking import UNSCORED, ActionRanker
from pokesearch.search import SearchController, SearchResult


logger = logging.getLogger(__name__)

METRICS_HEADER = (
    'player,turn,side,latency_ms,phase,depth_reached,value,action,'
    'nodes_evaluated,cache_hits,cache_misses,fallback_reason,near_timeout\n'
)


class BattlePlayer:
    """Base player: picks moves and replacements for one side."""

    def __init__(self, oracle: BattleOracle, username: str = "player"):
        self.oracle = oracle
        self.username = username

    def legal_actions(self, state: State, side: int) -> List[Action]:
        active = self.oracle.active_combatant(state, side)
        if self.oracle.has_fainted(active):
            return []
        return list(self.oracle.available_actions(active))

    def choose_move(self, state: State, side: int) -> Optional[Action]:
        """Action for ``side``; None when it has nothing to commit this turn."""
        raise NotImplementedError

    def choose_replacement(self, state: State, side: int) -> Optional[State]:
        """
        Pick the successor state after the active combatant fainted.

        Prefers good type matchups against the opposing active combatant, then
        healthy candidates: 2.0 * matchup + 1.5 * HP ratio.
        """
        options = self.oracle.replacements(state, side)
        if not options:
            return None
        other = opponent_of(side)

        def score(successor: State) -> float:
            mine = self.oracle.active_combatant(successor, side)
            theirs = self.oracle.active_combatant(successor, other)
            return 2.0 * type_advantage(self.oracle, mine, theirs) + 1.5 * hp_fraction(self.oracle, mine)

        return max(options, key=score)

    def close(self):
        pass


class RandomPlayer(BattlePlayer):
    def __init__(self, oracle: BattleOracle, seed: Optional[int] = None, username: str = "random"):
        super().__init__(oracle, username)
        self.rng = np.random.default_rng(seed)

    def choose_move(self, state: State, side: int) -> Optional[Action]:
        actions = self.legal_actions(state, side)
        if not actions:
            return None
        return actions[int(self.rng.integers(len(actions)))]


class GreedyPlayer(BattlePlayer):
    """Plays the best 1-ply expected-heuristic action."""

    def __init__(
        self,
        oracle: BattleOracle,
        heuristic: Optional[HeuristicEvaluator] = None,
        username: str = "greedy",
    ):
        super().__init__(oracle, username)
        self.heuristic = heuristic if heuristic is not None else WeightedHeuristic(oracle)

    def choose_move(self, state: State, side: int) -> Optional[Action]:
        ranker = ActionRanker(self.oracle, self.heuristic)
        return ranker.best_reply(state, side)


class SearchPlayer(BattlePlayer):
    """
    Expectiminimax player with a hard per-move time limit.

    The search runs on a single worker thread. If it has not answered by the
    limit, the player flags the worker to stop and falls back to a quick
    ranking (or the first legal action) instead of waiting.
    """

    def __init__(
        self,
        oracle: BattleOracle,
        config: Optional[SearchConfig] = None,
        heuristic: Optional[HeuristicEvaluator] = None,
        log_dir: Optional[str] = None,
        username: str = "search",
        fallback_grace_s: float = 0.25,
    ):
        super().__init__(oracle, username)
        self.config = config if config is not None else SearchConfig()
        self.controller = SearchController(oracle, heuristic, self.config)
        self.log_dir = log_dir
        self.fallback_grace_s = fallback_grace_s
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pokesearch")
        self._metrics_file_initialized = False
        self._move_metrics: List[list] = []
        self.last_result: Optional[SearchResult] = None
        self.timeouts = 0

    def choose_move(self, state: State, side: int) -> Optional[Action]:
        start_time = time.monotonic()
        limit = self.config.move_time_limit_s
        cancel_event = threading.Event()
        future = self._executor.submit(self.controller.search, state, side, start_time + limit, cancel_event)
        try:
            result = future.result(timeout=limit)
        except NoActionAvailable as e:
            logger.debug("No action for %s: %s", self.username, e)
            self._record_metric(state, side, start_time, None, fallback_reason='no_action')
            return None
        except FuturesTimeout:
            cancel_event.set()
            self.timeouts += 1
            action = self._safe_default(state, side)
            logger.warning("Search timed out after %.2fs, falling back to %s", limit, canonical_action(action))
            self._record_metric(state, side, start_time, None, fallback_reason='timeout', action=action)
            return action

        self.last_result = result
        self._record_metric(state, side, start_time, result)
        return result.action

    def _safe_default(self, state: State, side: int) -> Optional[Action]:
        """Best quick 1-ply action, or the first legal one."""
        actions = self.legal_actions(state, side)
        if not actions:
            return None
        grace_deadline = time.monotonic() + self.fallback_grace_s
        ranked = self.controller.make_ranker().rank(
            state, side, actions, should_stop=lambda: time.monotonic() >= grace_deadline
        )
        if ranked and ranked[0][1] != UNSCORED:
            return ranked[0][0]
        return actions[0]

    def _init_metrics_file(self):
        if not self.log_dir:
            return
        os.makedirs(self.log_dir, exist_ok=True)
        path = os.path.join(self.log_dir, 'metrics.csv')
        if not os.path.exists(path):
            with open(path, 'w', encoding='utf-8') as f:
                f.write(METRICS_HEADER)
        self._metrics_file_initialized = True

    def _record_metric(
        self,
        state: State,
        side: int,
        start_time: float,
        result: Optional[SearchResult],
        fallback_reason: str = '',
        action: Optional[Action] = None,
    ):
        elapsed = max(0.0, time.monotonic() - start_time)
        if result is not None:
            action = result.action
            if not fallback_reason and result.phase.value == 'fallback':
                fallback_reason = 'search_fallback'
        row = [
            self.username,
            getattr(state, 'turn', 0),
            side,
            int(elapsed * 1000),
            result.phase.value if result is not None else 'fallback',
            result.depth_reached if result is not None else 0,
            '' if result is None or result.value is None else round(result.value, 3),
            canonical_action(action),
            result.nodes_evaluated if result is not None else 0,
            result.cache_hits if result is not None else 0,
            result.cache_misses if result is not None else 0,
            fallback_reason,
            int(elapsed > self.config.safety_fraction * self.config.move_time_limit_s),
        ]
        self._move_metrics.append(row)
        if self.log_dir:
            if not self._metrics_file_initialized:
                self._init_metrics_file()
            try:
                with open(os.path.join(self.log_dir, 'metrics.csv'), 'a', encoding='utf-8') as f:
                    f.write(','.join(map(str, row)) + "\n")
            except OSError as e:
                logger.warning("Could not write metrics row: %s", e)

    def close(self):
        self._executor.shutdown(wait=False)
