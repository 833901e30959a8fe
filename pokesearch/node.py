"""Search tree node model."""

from enum import Enum
from typing import Optional

from pokesearch.oracle import Action, State, opponent_of


class Role(Enum):
    MAXIMIZER = "max"
    MINIMIZER = "min"
    CHANCE = "chance"

    @property
    def is_decision(self) -> bool:
        return self is not Role.CHANCE

    def opposite(self) -> "Role":
        if self is Role.MAXIMIZER:
            return Role.MINIMIZER
        if self is Role.MINIMIZER:
            return Role.MAXIMIZER
        raise ValueError("CHANCE has no opposite decision role")


def role_for_side(side: int, root_side: int) -> Role:
    return Role.MAXIMIZER if side == root_side else Role.MINIMIZER


def side_for_role(role: Role, root_side: int) -> int:
    if role is Role.MAXIMIZER:
        return root_side
    if role is Role.MINIMIZER:
        return opponent_of(root_side)
    raise ValueError(f"Unknown decision role: {role!r}")


class SearchNode:
    """
    One position in the search tree.

    Nodes are created during expansion and dropped once evaluated. The state
    is shared and never mutated; ``cached_value`` can be written once.

    Children of a decision node are always reached with probability 1.0
    (the side picks them); children of a chance node carry the combined
    probability of the outcome they stand for.
    """

    __slots__ = (
        "state",
        "role",
        "depth",
        "incoming_action",
        "reach_probability",
        "actor",
        "replacement",
        "_cached_value",
    )

    def __init__(
        self,
        state: State,
        role: Role,
        depth: int = 0,
        incoming_action: Optional[Action] = None,
        reach_probability: float = 1.0,
        actor: Optional[Role] = None,
        replacement: bool = False,
    ):
        if not isinstance(role, Role):
            raise ValueError(f"Unknown node role: {role!r}")
        if depth < 0:
            raise ValueError(f"depth must be non-negative, got {depth}")
        if not 0.0 < reach_probability <= 1.0 + 1e-9:
            raise ValueError(f"reach_probability must be in (0, 1], got {reach_probability}")
        self.state = state
        self.role = role
        self.depth = depth
        self.incoming_action = incoming_action
        self.reach_probability = min(1.0, reach_probability)
        # Decision role that committed the turn being (or just) resolved. Set on
        # chance nodes and carried to the decision nodes they produce.
        self.actor = actor
        self.replacement = replacement
        self._cached_value: Optional[float] = None

    @property
    def cached_value(self) -> Optional[float]:
        return self._cached_value

    @cached_value.setter
    def cached_value(self, value: float) -> None:
        if self._cached_value is not None:
            raise AttributeError("cached_value is write-once")
        self._cached_value = float(value)

    def child(
        self,
        state: State,
        role: Role,
        incoming_action: Optional[Action] = None,
        reach_probability: float = 1.0,
        actor: Optional[Role] = None,
        replacement: bool = False,
    ) -> "SearchNode":
        return SearchNode(
            state,
            role,
            depth=self.depth + 1,
            incoming_action=incoming_action,
            reach_probability=reach_probability,
            actor=actor,
            replacement=replacement,
        )

    def __repr__(self) -> str:
        return (
            f"SearchNode(role={self.role.name}, depth={self.depth}, "
            f"action={getattr(self.incoming_action, 'id', self.incoming_action)!r}, "
            f"p={self.reach_probability:.4f})"
        )
