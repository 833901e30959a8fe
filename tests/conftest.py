"""
Shared pytest fixtures for the pokesearch test suite.

This module provides reusable fixtures for:
- LocalSim oracles with deterministic (crit-free) damage
- Small search configurations that finish quickly
- Battle snapshots built from the Gen1 sample sets
"""

import pytest

from pokesearch.config import SearchConfig
from pokesearch.heuristic import WeightedHeuristic
from pokesearch.local_sim import LocalSim, SimBattle
from pokesearch.teams import build_pokemon


def make_battle(team_a, team_b) -> SimBattle:
    """Battle from two sequences of SimPokemon, first member active."""
    return SimBattle(teams=(tuple(team_a), tuple(team_b)))


def fainted(species: str):
    return build_pokemon(species).with_hp(0)


# =============================================================================
# Oracle Fixtures
# =============================================================================


@pytest.fixture
def sim():
    """LocalSim with critical hits disabled so damage branches are predictable."""
    return LocalSim(crit_chance=0.0)


@pytest.fixture
def crit_sim():
    """LocalSim with the default critical hit chance."""
    return LocalSim()


@pytest.fixture
def heuristic(sim):
    return WeightedHeuristic(sim)


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def small_config():
    """Shallow, narrow search that completes well inside its budget."""
    return SearchConfig(
        max_depth=4,
        initial_depth=2,
        depth_step=2,
        max_branching_max=2,
        max_branching_min=2,
        max_chance_outcomes=6,
        move_time_limit_s=60.0,
    )


# =============================================================================
# Battle Fixtures
# =============================================================================


@pytest.fixture
def tauros_vs_chansey():
    """Neither side can knock the other out in one turn."""
    return make_battle([build_pokemon('tauros')], [build_pokemon('chansey')])


@pytest.fixture
def tauros_vs_last_snorlax():
    """Side 0 outspeeds and KOs the opponent's last combatant with any hit."""
    snorlax = build_pokemon('snorlax').with_hp(1)
    return make_battle([build_pokemon('tauros')], [snorlax])


@pytest.fixture
def default_battle():
    return make_battle(
        [build_pokemon('tauros'), build_pokemon('chansey'), build_pokemon('exeggutor')],
        [build_pokemon('snorlax'), build_pokemon('starmie'), build_pokemon('zapdos')],
    )


@pytest.fixture
def deterministic_duel():
    """Sure-hit moves without secondaries: with crits off every turn has one outcome."""
    return make_battle(
        [build_pokemon('tauros', moves=['earthquake', 'slash', 'quickattack', 'swordsdance'])],
        [build_pokemon('snorlax', moves=['earthquake', 'quickattack'])],
    )
