"""
Minimax Memoization

Transposition keys and the per-decision value cache used by the
expectiminimax evaluator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Optional, Tuple

from poke_env.environment.status import Status

from pokesearch.node import SearchNode
from pokesearch.oracle import BattleOracle, SIDES, remaining_count


@dataclass(frozen=True)
class SideKey:
    active: Hashable
    current_hp: int
    status: str
    remaining: int


@dataclass(frozen=True)
class TTKey:
    """
    Transposition table key for expectiminimax caching.

    Deliberately approximate: stat stages, volatile flags and the bench are
    left out. Entries only live for one decision, so a near-miss costs at
    most a slightly worse move, never an illegal one.
    """
    role: str
    depth: int
    actor: str                      # role that committed the incoming action
    replacement: bool
    incoming_action: str            # canonical_action() of the edge into the node
    sides: Tuple[SideKey, SideKey]


class Bound(Enum):
    EXACT = "exact"
    LOWER = "lower"     # true value >= stored value
    UPPER = "upper"     # true value <= stored value


def canonical_action(action) -> str:
    """
    Canonicalize action to stable string for cache key.

    Examples: "M:bodyslam", "M:confusionselfhit", "none"
    """
    if action is None:
        return "none"
    move_id = getattr(action, "id", None)
    if move_id:
        return "M:" + str(move_id).lower().replace(" ", "").replace("-", "")
    return "A:" + str(action)


def _status_name(status: Optional[Status]) -> str:
    return status.name if status is not None else ""


def mk_ttkey(oracle: BattleOracle, node: SearchNode) -> TTKey:
    """Create a transposition table key for ``node``."""
    state = node.state
    sides = []
    for side in SIDES:
        combatant = oracle.active_combatant(state, side)
        sides.append(
            SideKey(
                active=oracle.combatant_key(combatant),
                current_hp=int(oracle.current_hp(combatant)),
                status=_status_name(oracle.status(combatant)),
                remaining=remaining_count(oracle, state, side),
            )
        )
    return TTKey(
        role=node.role.value,
        depth=node.depth,
        actor=node.actor.value if node.actor is not None else "",
        replacement=node.replacement,
        incoming_action=canonical_action(node.incoming_action),
        sides=(sides[0], sides[1]),
    )


class MinimaxCache:
    """Cache for expectiminimax evaluation results to avoid recomputation."""

    def __init__(self, max_size: int = 200_000):
        # Store (value, remaining depth, bound) so shallow results never
        # answer for deeper searches.
        self._cache: Dict[TTKey, Tuple[float, int, Bound]] = {}
        self._max_size = max_size
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def get_evaluation(
        self,
        key: TTKey,
        min_depth: int,
        alpha: float = float("-inf"),
        beta: float = float("inf"),
    ) -> Optional[float]:
        """Cached value usable for a search of ``min_depth`` in window (alpha, beta)."""
        entry = self._cache.get(key)
        if entry is not None:
            value, depth, bound = entry
            if depth >= min_depth and (
                bound is Bound.EXACT
                or (bound is Bound.LOWER and value >= beta)
                or (bound is Bound.UPPER and value <= alpha)
            ):
                self._hits += 1
                return value
            # treat as miss if shallower than required or the bound does not decide
        self._misses += 1
        return None

    def set_evaluation(self, key: TTKey, value: float, depth: int, bound: Bound = Bound.EXACT) -> bool:
        """
        Cache an evaluation result.

        Returns:
            True if cached, False if skipped (existing entry was deeper, or as
            deep and exact)
        """
        existing = self._cache.get(key)
        if existing is not None:
            _, existing_depth, existing_bound = existing
            if depth < existing_depth:
                return False
            if depth == existing_depth and existing_bound is Bound.EXACT and bound is not Bound.EXACT:
                return False

        # Simple eviction: if cache is full, remove oldest 25% of entries
        if existing is None and len(self._cache) >= self._max_size:
            items_to_remove = list(self._cache.keys())[:self._max_size // 4]
            for item in items_to_remove:
                del self._cache[item]

        self._cache[key] = (float(value), int(depth), bound)
        return True

    def clear(self):
        """Clear the cache."""
        self._cache.clear()
        self._hits = 0
        self._misses = 0

    def get_stats(self) -> Tuple[int, int, float]:
        """Get cache statistics: (hits, misses, hit_rate)."""
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return self._hits, self._misses, hit_rate
