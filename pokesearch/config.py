"""
Search configuration.

Every pruning expedient of the engine (branching caps, outcome caps, early-exit
and short-circuit thresholds, time budget) lives here as a tunable value rather
than as a constant buried in the algorithm.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import orjson

from pokesearch.gen1_quirks import PreventionModel


COUNTERPART_POLICIES = ("greedy", "none")


@dataclass(frozen=True)
class SearchConfig:
    """Tunable parameters for one search controller."""

    # Depth is counted in plies (one edge = one ply). A decision node and the
    # chance node it spawns make up one game turn.
    max_depth: int = 6
    initial_depth: int = 2
    depth_step: int = 2

    # Top-K actions kept at decision nodes after 1-ply ranking. The maximizing
    # side gets the larger budget.
    max_branching_max: int = 4
    max_branching_min: int = 3
    order_moves: bool = True
    # Alpha-beta windows at decision nodes, threaded from the root's running
    # best. Off searches every kept action with the full window.
    alpha_beta: bool = True

    # Most probable outcomes kept per chance node; the kept subset is
    # renormalized to 1.0.
    max_chance_outcomes: int = 12

    # How the side that did not commit the chance node's action behaves:
    # "greedy" plays its best 1-ply reply, "none" skips its move.
    counterpart_policy: str = "greedy"

    terminal_value: float = 10000.0
    heuristic_bound: float = 1000.0
    # Decision folds stop once a line this good (for the folding side) is
    # found, even if a better one might exist.
    early_exit_threshold: float = 5000.0
    # Root actions whose 1-ply expected score reaches this are played without
    # deeper search.
    decisive_threshold: float = 9000.0

    move_time_limit_s: float = 8.0
    safety_fraction: float = 0.8
    time_check_interval: int = 64

    prevention: PreventionModel = field(default_factory=PreventionModel)

    def __post_init__(self):
        # One ply only reaches the root action's chance node, which would be
        # scored on the position before anyone moves.
        if self.initial_depth < 2 or self.max_depth < self.initial_depth:
            raise ValueError(
                f"invalid depth range: initial_depth={self.initial_depth}, max_depth={self.max_depth}"
            )
        if self.depth_step < 1:
            raise ValueError(f"depth_step must be positive, got {self.depth_step}")
        if self.max_branching_max < 1 or self.max_branching_min < 1:
            raise ValueError("branching caps must be positive")
        if self.max_chance_outcomes < 1:
            raise ValueError("max_chance_outcomes must be positive")
        if self.counterpart_policy not in COUNTERPART_POLICIES:
            raise ValueError(
                f"counterpart_policy must be one of {COUNTERPART_POLICIES}, got {self.counterpart_policy!r}"
            )
        if not 0.0 < self.safety_fraction < 1.0:
            raise ValueError(f"safety_fraction must be in (0, 1), got {self.safety_fraction}")
        if self.heuristic_bound >= self.terminal_value:
            raise ValueError("heuristic_bound must stay below terminal_value")
        if self.time_check_interval < 1:
            raise ValueError("time_check_interval must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchConfig":
        """Build a config from a plain mapping, ignoring nothing silently."""
        data = dict(data)
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        prevention = data.pop("prevention", None)
        if isinstance(prevention, dict):
            data["prevention"] = PreventionModel(**prevention)
        elif prevention is not None:
            data["prevention"] = prevention
        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "SearchConfig":
        with open(path, "rb") as f:
            return cls.from_dict(orjson.loads(f.read()))

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def with_overrides(self, **overrides: Any) -> "SearchConfig":
        return dataclasses.replace(self, **overrides)
