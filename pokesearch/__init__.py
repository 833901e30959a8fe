"""Expectiminimax move selection for simultaneous-turn Pokemon-style battles."""

from pokesearch.config import SearchConfig
from pokesearch.exceptions import NoActionAvailable, SearchError
from pokesearch.gen1_quirks import ConfusionSelfHit, PreventionModel
from pokesearch.heuristic import WeightedHeuristic, sanitize_score
from pokesearch.node import Role, SearchNode
from pokesearch.search import SearchController, SearchPhase, SearchResult

__all__ = [
    "ConfusionSelfHit",
    "NoActionAvailable",
    "PreventionModel",
    "Role",
    "SearchConfig",
    "SearchController",
    "SearchError",
    "SearchNode",
    "SearchPhase",
    "SearchResult",
    "WeightedHeuristic",
    "sanitize_score",
]
