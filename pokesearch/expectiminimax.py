"""
Expectiminimax evaluation.

Decision nodes fold with alpha-beta, chance nodes take the probability
weighted mean of their outcomes. Values are always from the root side's
point of view.
"""

import logging
import threading
import time
from typing import Optional

from pokesearch.config import SearchConfig
from pokesearch.exceptions import SearchTimeout
from pokesearch.expansion import TreeExpander
from pokesearch.heuristic import HeuristicEvaluator, sanitize_score
from pokesearch.minimax_optimizer import Bound, MinimaxCache, mk_ttkey
from pokesearch.node import Role, SearchNode
from pokesearch.oracle import BattleOracle, State, winner


logger = logging.getLogger(__name__)

NEG_INF = float("-inf")
POS_INF = float("inf")


class ExpectiminimaxEvaluator:
    """
    Recursive value function for one decision.

    Owns the memoization cache; create a new evaluator for every top-level
    decision. Decision folds stop early once a line reaches
    ``early_exit_threshold`` for the folding side. That trades optimality
    for speed: a still better line below the cut is never looked at.
    """

    def __init__(
        self,
        oracle: BattleOracle,
        heuristic: HeuristicEvaluator,
        expander: TreeExpander,
        config: SearchConfig,
        root_side: int,
        cache: Optional[MinimaxCache] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.oracle = oracle
        self.heuristic = heuristic
        self.expander = expander
        self.config = config
        self.root_side = root_side
        self.cache = cache if cache is not None else MinimaxCache()
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.nodes_evaluated = 0
        # Set whenever a non-terminal node is cut off by the depth limit.
        self.hit_depth_limit = False
        # Decision folds stopped by the alpha-beta window.
        self.cutoffs = 0

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check_timeout(self):
        if self.nodes_evaluated % self.config.time_check_interval == 0 and self.should_stop():
            raise SearchTimeout(f"deadline reached after {self.nodes_evaluated} nodes")

    def terminal_value(self, state: State) -> float:
        won = winner(self.oracle, state)
        if won is None:
            return 0.0
        return self.config.terminal_value if won == self.root_side else -self.config.terminal_value

    def leaf_value(self, state: State) -> float:
        return sanitize_score(self.heuristic.score(state, self.root_side), self.config.heuristic_bound)

    def value(
        self,
        node: SearchNode,
        depth: int,
        alpha: float = NEG_INF,
        beta: float = POS_INF,
    ) -> float:
        """Value of ``node`` searched ``depth`` more plies."""
        if not isinstance(node.role, Role):
            raise ValueError(f"Unknown node role: {node.role!r}")

        self.nodes_evaluated += 1
        self.check_timeout()

        if self.oracle.is_over(node.state):
            return self._finish(node, self.terminal_value(node.state))
        if depth <= 0:
            self.hit_depth_limit = True
            return self._finish(node, self.leaf_value(node.state))

        key = mk_ttkey(self.oracle, node)
        cached = self.cache.get_evaluation(key, depth, alpha, beta)
        if cached is not None:
            return self._finish(node, cached)

        children = self.expander.expand(node)
        if not children:
            # Nothing to expand: no replacement available or every branch dropped.
            value = self.leaf_value(node.state)
            self.cache.set_evaluation(key, value, depth)
            return self._finish(node, value)

        if node.role is Role.CHANCE:
            value, bound = self._chance_value(children, depth, alpha, beta)
        elif node.role is Role.MAXIMIZER:
            value, bound = self._max_value(children, depth, alpha, beta)
        else:
            value, bound = self._min_value(children, depth, alpha, beta)

        self.cache.set_evaluation(key, value, depth, bound)
        return self._finish(node, value)

    def _finish(self, node: SearchNode, value: float) -> float:
        if node.cached_value is None:
            node.cached_value = value
        return value

    def _chance_value(self, children, depth: int, alpha: float, beta: float):
        """
        Probability weighted mean of the outcomes.

        A single certain outcome (replacements, deterministic turns) is the
        node itself, so the window passes through to it. Otherwise every
        outcome is searched with the full window: an expectation cannot be
        cut by the parent's bounds.
        """
        if len(children) == 1 and self.config.alpha_beta:
            value = self.value(children[0], depth - 1, alpha, beta)
            if value <= alpha:
                return value, Bound.UPPER
            if value >= beta:
                return value, Bound.LOWER
            return value, Bound.EXACT

        total = 0.0
        weighted = 0.0
        for child in children:
            total += child.reach_probability
            weighted += child.reach_probability * self.value(child, depth - 1)
        return weighted / total, Bound.EXACT

    def _max_value(self, children, depth: int, alpha: float, beta: float):
        alpha_orig = alpha
        best = NEG_INF
        clipped = False
        for child in children:
            best = max(best, self.value(child, depth - 1, alpha, beta))
            alpha = max(alpha, best)
            if best >= beta:
                self.cutoffs += 1
                break
            if best >= self.config.early_exit_threshold:
                clipped = True
                break
        if clipped or best >= beta:
            return best, Bound.LOWER
        if best <= alpha_orig:
            return best, Bound.UPPER
        return best, Bound.EXACT

    def _min_value(self, children, depth: int, alpha: float, beta: float):
        beta_orig = beta
        best = POS_INF
        clipped = False
        for child in children:
            best = min(best, self.value(child, depth - 1, alpha, beta))
            beta = min(beta, best)
            if best <= alpha:
                self.cutoffs += 1
                break
            if best <= -self.config.early_exit_threshold:
                clipped = True
                break
        if clipped or best <= alpha:
            return best, Bound.UPPER
        if best >= beta_orig:
            return best, Bound.LOWER
        return best, Bound.EXACT
