"""
Gen1 OU sample sets for LocalSim battles.
Based on typical Gen1 OU competitive sets from high-level play, trimmed to
the moves LocalSim can model.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from poke_env.environment.move_category import MoveCategory
from poke_env.environment.pokemon_type import PokemonType
from poke_env.environment.status import Status

from pokesearch.local_sim import STAT_KEYS, SimBattle, SimMove, SimPokemon


T = PokemonType
PHYSICAL = MoveCategory.PHYSICAL
SPECIAL = MoveCategory.SPECIAL
STATUS = MoveCategory.STATUS

# Gen1 has a single Special stat, mirrored into spa and spd.
MOVES: Dict[str, SimMove] = {
    m.id: m
    for m in (
        SimMove("bodyslam", T.NORMAL, PHYSICAL, 85, status=Status.PAR, status_chance=0.3),
        SimMove("hyperbeam", T.NORMAL, PHYSICAL, 150, accuracy=0.9),
        SimMove("earthquake", T.GROUND, PHYSICAL, 100),
        SimMove("rockslide", T.ROCK, PHYSICAL, 75, accuracy=0.9),
        SimMove("drillpeck", T.FLYING, PHYSICAL, 80),
        SimMove("quickattack", T.NORMAL, PHYSICAL, 40, priority=1),
        SimMove("slash", T.NORMAL, PHYSICAL, 70, crit_ratio=8.0),
        SimMove("selfdestruct", T.NORMAL, PHYSICAL, 130, selfdestruct=True),
        SimMove("explosion", T.NORMAL, PHYSICAL, 170, selfdestruct=True),
        SimMove("blizzard", T.ICE, SPECIAL, 120, accuracy=0.9, status=Status.FRZ, status_chance=0.1),
        SimMove("icebeam", T.ICE, SPECIAL, 95, status=Status.FRZ, status_chance=0.1),
        SimMove("thunderbolt", T.ELECTRIC, SPECIAL, 95, status=Status.PAR, status_chance=0.1),
        SimMove("psychic", T.PSYCHIC, SPECIAL, 90),
        SimMove("surf", T.WATER, SPECIAL, 95),
        SimMove("razorleaf", T.GRASS, SPECIAL, 55, accuracy=0.95, crit_ratio=8.0),
        SimMove("seismictoss", T.FIGHTING, PHYSICAL, fixed_damage=100),
        SimMove("nightshade", T.GHOST, SPECIAL, fixed_damage=100),
        SimMove("thunderwave", T.ELECTRIC, STATUS, status=Status.PAR, status_chance=1.0),
        SimMove("stunspore", T.GRASS, STATUS, accuracy=0.75, status=Status.PAR, status_chance=1.0),
        SimMove("sleeppowder", T.GRASS, STATUS, accuracy=0.75, status=Status.SLP, status_chance=1.0),
        SimMove("hypnosis", T.PSYCHIC, STATUS, accuracy=0.6, status=Status.SLP, status_chance=1.0),
        SimMove("lovelykiss", T.NORMAL, STATUS, accuracy=0.75, status=Status.SLP, status_chance=1.0),
        SimMove("sing", T.NORMAL, STATUS, accuracy=0.55, status=Status.SLP, status_chance=1.0),
        SimMove("toxic", T.POISON, STATUS, accuracy=0.85, status=Status.TOX, status_chance=1.0),
        SimMove("confuseray", T.GHOST, STATUS, confuse_chance=1.0),
        SimMove("softboiled", T.NORMAL, STATUS, accuracy=None, heal=0.5),
        SimMove("recover", T.NORMAL, STATUS, accuracy=None, heal=0.5),
        SimMove("swordsdance", T.NORMAL, STATUS, accuracy=None, self_boosts=(("atk", 2),)),
        SimMove("agility", T.PSYCHIC, STATUS, accuracy=None, self_boosts=(("spe", 2),)),
        SimMove("amnesia", T.PSYCHIC, STATUS, accuracy=None, self_boosts=(("spa", 2), ("spd", 2))),
    )
}

# Base stats as (hp, atk, def, special, spe).
GEN1_POKEDEX = {
    'tauros': {'types': (T.NORMAL,), 'base': (75, 100, 95, 70, 110)},
    'snorlax': {'types': (T.NORMAL,), 'base': (160, 110, 65, 65, 30)},
    'chansey': {'types': (T.NORMAL,), 'base': (250, 5, 5, 105, 50)},
    'exeggutor': {'types': (T.GRASS, T.PSYCHIC), 'base': (95, 95, 85, 125, 55)},
    'alakazam': {'types': (T.PSYCHIC,), 'base': (55, 50, 45, 135, 120)},
    'starmie': {'types': (T.WATER, T.PSYCHIC), 'base': (60, 75, 85, 100, 115)},
    'zapdos': {'types': (T.ELECTRIC, T.FLYING), 'base': (90, 90, 85, 125, 100)},
    'rhydon': {'types': (T.GROUND, T.ROCK), 'base': (105, 130, 120, 45, 40)},
    'gengar': {'types': (T.GHOST, T.POISON), 'base': (60, 65, 60, 130, 110)},
    'jynx': {'types': (T.ICE, T.PSYCHIC), 'base': (65, 50, 35, 95, 95)},
    'lapras': {'types': (T.WATER, T.ICE), 'base': (130, 85, 80, 95, 60)},
    'slowbro': {'types': (T.WATER, T.PSYCHIC), 'base': (95, 75, 110, 80, 30)},
}

GEN1_COMMON_SETS = {
    'tauros': ['bodyslam', 'hyperbeam', 'earthquake', 'blizzard'],
    'snorlax': ['bodyslam', 'selfdestruct', 'earthquake', 'hyperbeam'],
    'chansey': ['softboiled', 'icebeam', 'thunderwave', 'thunderbolt'],
    'exeggutor': ['psychic', 'sleeppowder', 'explosion', 'stunspore'],
    'alakazam': ['psychic', 'thunderwave', 'recover', 'seismictoss'],
    'starmie': ['blizzard', 'thunderbolt', 'thunderwave', 'recover'],
    'zapdos': ['thunderbolt', 'drillpeck', 'thunderwave', 'agility'],
    'rhydon': ['earthquake', 'rockslide', 'bodyslam', 'swordsdance'],
    'gengar': ['hypnosis', 'explosion', 'thunderbolt', 'nightshade'],
    'jynx': ['lovelykiss', 'blizzard', 'psychic', 'icebeam'],
    'lapras': ['blizzard', 'thunderbolt', 'bodyslam', 'sing'],
    'slowbro': ['psychic', 'thunderwave', 'amnesia', 'surf'],
}

DEFAULT_TEAMS = (
    ('tauros', 'chansey', 'exeggutor'),
    ('snorlax', 'starmie', 'zapdos'),
)


def gen1_stats(base) -> Dict[str, int]:
    """Level 100 stats with max DVs and stat experience."""
    hp, atk, dfn, spc, spe = base
    return {
        'hp': 2 * hp + 203,
        'atk': 2 * atk + 98,
        'def': 2 * dfn + 98,
        'spa': 2 * spc + 98,
        'spd': 2 * spc + 98,
        'spe': 2 * spe + 98,
    }


def get_move(move_id: str) -> SimMove:
    move_id = move_id.lower().replace(' ', '').replace('-', '')
    if move_id not in MOVES:
        raise KeyError(f"LocalSim does not model move {move_id!r}")
    return MOVES[move_id]


def build_pokemon(
    species: str,
    moves: Optional[Iterable[str]] = None,
    hp_fraction: float = 1.0,
    status: Optional[Status] = None,
) -> SimPokemon:
    species = species.lower()
    if species not in GEN1_POKEDEX:
        raise KeyError(f"unknown species {species!r}")
    entry = GEN1_POKEDEX[species]
    stats = gen1_stats(entry['base'])
    move_ids = GEN1_COMMON_SETS[species] if moves is None else list(moves)
    return SimPokemon(
        species=species,
        types=entry['types'],
        stats=tuple((key, stats[key]) for key in STAT_KEYS),
        current_hp=max(1, int(round(stats['hp'] * hp_fraction))),
        moves=tuple(get_move(m) for m in move_ids),
        status=status,
    )


def build_team(species: Sequence[str]) -> tuple:
    return tuple(build_pokemon(name) for name in species)


def build_battle(team_a: Sequence[str] = DEFAULT_TEAMS[0], team_b: Sequence[str] = DEFAULT_TEAMS[1]) -> SimBattle:
    return SimBattle(teams=(build_team(team_a), build_team(team_b)))


def available_species() -> List[str]:
    return sorted(GEN1_COMMON_SETS)
