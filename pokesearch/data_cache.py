"""
Global data cache for static game data.

Type charts are loaded from poke_env's bundled generation data once and shared
by the heuristic and the local simulator.
"""

import logging
from functools import lru_cache
from typing import Dict, Optional

from poke_env.data.gen_data import GenData
from poke_env.environment.pokemon_type import PokemonType


logger = logging.getLogger(__name__)

# Generation whose type chart is used when callers do not ask for one.
DEFAULT_TYPE_CHART_GEN = 9

TypeChart = Dict[str, Dict[str, float]]


class GameDataCache:
    """Singleton cache for static game data."""

    _instance = None
    _type_charts: Dict[int, TypeChart] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_type_chart(self, gen: int = DEFAULT_TYPE_CHART_GEN) -> TypeChart:
        if gen not in self._type_charts:
            self._type_charts[gen] = GenData.from_gen(gen).type_chart
            logger.debug("Loaded gen%d type chart", gen)
        return self._type_charts[gen]

    def clear_cache(self):
        """Clear all cached data (useful for testing)."""
        self._type_charts.clear()
        type_effectiveness.cache_clear()


# Global cache instance
_cache = GameDataCache()


def get_cached_type_chart(gen: int = DEFAULT_TYPE_CHART_GEN) -> TypeChart:
    return _cache.get_type_chart(gen)


@lru_cache(maxsize=2048)
def type_effectiveness(
    attack_type: PokemonType,
    defender_type_1: PokemonType,
    defender_type_2: Optional[PokemonType] = None,
    gen: int = DEFAULT_TYPE_CHART_GEN,
) -> float:
    """Damage multiplier of ``attack_type`` against a (possibly dual) typing."""
    return attack_type.damage_multiplier(
        defender_type_1, defender_type_2, type_chart=get_cached_type_chart(gen)
    )
