"""
LocalSim: a small immutable Gen1-flavoured battle model.

Implements the ``BattleOracle`` queries over frozen dataclass snapshots so the
search can be exercised offline, by the arena, the scripts and the tests.
It is a reference collaborator, not a faithful game engine: every move is
resolved as a full outcome distribution (miss, hit, critical hit, secondary
effects) with probabilities rather than by sampling.
"""

import dataclasses
from dataclasses import dataclass
from typing import Dict, FrozenSet, Hashable, List, Mapping, Optional, Sequence, Tuple

from poke_env.environment.effect import Effect
from poke_env.environment.move_category import MoveCategory
from poke_env.environment.pokemon_type import PokemonType
from poke_env.environment.status import Status

from pokesearch.data_cache import DEFAULT_TYPE_CHART_GEN, type_effectiveness
from pokesearch.heuristic import stage_multiplier
from pokesearch.oracle import SIDES, Outcome


LEVEL = 100
MAX_STAGE = 6
STAT_KEYS = ("hp", "atk", "def", "spa", "spd", "spe")


@dataclass(frozen=True)
class SimMove:
    id: str
    type: PokemonType
    category: MoveCategory
    base_power: int = 0
    # Hit chance as a fraction; None never misses.
    accuracy: Optional[float] = 1.0
    priority: int = 0
    status: Optional[Status] = None
    status_chance: float = 0.0
    confuse_chance: float = 0.0
    self_boosts: Tuple[Tuple[str, int], ...] = ()
    heal: float = 0.0
    crit_ratio: float = 1.0
    fixed_damage: int = 0
    selfdestruct: bool = False
    targets_self: bool = False


@dataclass(frozen=True)
class SimPokemon:
    species: str
    types: Tuple[PokemonType, ...]
    stats: Tuple[Tuple[str, int], ...]
    current_hp: int
    moves: Tuple[SimMove, ...] = ()
    status: Optional[Status] = None
    effects: FrozenSet[Effect] = frozenset()
    boosts: Tuple[Tuple[str, int], ...] = ()

    @property
    def stat_map(self) -> Dict[str, int]:
        return dict(self.stats)

    @property
    def max_hp(self) -> int:
        return self.stat_map["hp"]

    @property
    def fainted(self) -> bool:
        return self.current_hp <= 0

    def boost(self, stat: str) -> int:
        return dict(self.boosts).get(stat, 0)

    def with_hp(self, hp: int) -> "SimPokemon":
        hp = max(0, min(self.max_hp, int(hp)))
        if hp == 0:
            return dataclasses.replace(self, current_hp=0, status=Status.FNT, effects=frozenset(), boosts=())
        return dataclasses.replace(self, current_hp=hp)

    def with_status(self, status: Optional[Status]) -> "SimPokemon":
        return dataclasses.replace(self, status=status)

    def with_effect(self, effect: Effect) -> "SimPokemon":
        return dataclasses.replace(self, effects=self.effects | {effect})

    def with_boosts(self, changes: Sequence[Tuple[str, int]]) -> "SimPokemon":
        boosts = dict(self.boosts)
        for stat, delta in changes:
            boosts[stat] = max(-MAX_STAGE, min(MAX_STAGE, boosts.get(stat, 0) + delta))
        return dataclasses.replace(self, boosts=tuple(sorted((k, v) for k, v in boosts.items() if v)))


@dataclass(frozen=True)
class SimBattle:
    teams: Tuple[Tuple[SimPokemon, ...], Tuple[SimPokemon, ...]]
    active: Tuple[int, int] = (0, 0)
    turn: int = 0

    def pokemon(self, side: int) -> SimPokemon:
        return self.teams[side][self.active[side]]

    def with_pokemon(self, side: int, mon: SimPokemon) -> "SimBattle":
        team = list(self.teams[side])
        team[self.active[side]] = mon
        teams = list(self.teams)
        teams[side] = tuple(team)
        return dataclasses.replace(self, teams=(teams[0], teams[1]))

    def with_active(self, side: int, index: int) -> "SimBattle":
        active = list(self.active)
        active[side] = index
        return dataclasses.replace(self, active=(active[0], active[1]))


def _merge(outcomes: List[Outcome]) -> List[Outcome]:
    """Combine outcomes that landed on equal snapshots, keeping first-seen order."""
    merged: Dict[SimBattle, float] = {}
    for probability, state in outcomes:
        if probability > 0.0:
            merged[state] = merged.get(state, 0.0) + probability
    return [(p, s) for s, p in merged.items()]


class LocalSim:
    """Reference ``BattleOracle`` over :class:`SimBattle` snapshots."""

    def __init__(
        self,
        crit_chance: float = 1 / 16,
        damage_roll: float = 0.925,
        type_chart_gen: int = DEFAULT_TYPE_CHART_GEN,
    ):
        if not 0.0 <= crit_chance <= 1.0:
            raise ValueError(f"crit_chance must be a probability, got {crit_chance}")
        self.crit_chance = crit_chance
        self.damage_roll = damage_roll
        self.type_chart_gen = type_chart_gen

    # Read queries

    def is_over(self, state: SimBattle) -> bool:
        return any(all(mon.fainted for mon in state.teams[side]) for side in SIDES)

    def active_combatant(self, state: SimBattle, side: int) -> SimPokemon:
        return state.pokemon(side)

    def roster(self, state: SimBattle, side: int) -> Sequence[SimPokemon]:
        return state.teams[side]

    def available_actions(self, combatant: SimPokemon) -> Sequence[SimMove]:
        if combatant.fainted:
            return ()
        return combatant.moves

    def has_fainted(self, combatant: SimPokemon) -> bool:
        return combatant.fainted

    def stat_value(self, combatant: SimPokemon, stat: str) -> float:
        base = combatant.stat_map[stat]
        if stat == "hp":
            return float(base)
        return base * stage_multiplier(combatant.boost(stat))

    def current_hp(self, combatant: SimPokemon) -> int:
        return combatant.current_hp

    def max_hp(self, combatant: SimPokemon) -> int:
        return combatant.max_hp

    def status(self, combatant: SimPokemon) -> Optional[Status]:
        return combatant.status

    def volatile_flag(self, combatant: SimPokemon, flag: Effect) -> bool:
        return flag in combatant.effects

    def boosts(self, combatant: SimPokemon) -> Mapping[str, int]:
        return dict(combatant.boosts)

    def types(self, combatant: SimPokemon) -> Tuple[PokemonType, ...]:
        return combatant.types

    def priority(self, action) -> int:
        return getattr(action, "priority", 0)

    def combatant_key(self, combatant: SimPokemon) -> Hashable:
        return combatant.species

    # Transitions

    def effectiveness(self, move_type: Optional[PokemonType], defender: SimPokemon) -> float:
        if move_type is None or not defender.types:
            return 1.0
        second = defender.types[1] if len(defender.types) > 1 else None
        return type_effectiveness(move_type, defender.types[0], second, self.type_chart_gen)

    def damage(self, move, attacker: SimPokemon, defender: SimPokemon, crit: bool = False) -> int:
        """Expected damage of one hit, with the fixed average roll."""
        targets_self = getattr(move, "targets_self", False)
        multiplier = 1.0 if targets_self else self.effectiveness(move.type, defender)
        if multiplier == 0.0:
            return 0
        if getattr(move, "fixed_damage", 0):
            return int(move.fixed_damage)

        physical = move.category == MoveCategory.PHYSICAL
        attack = self.stat_value(attacker, "atk" if physical else "spa")
        defense = max(1.0, self.stat_value(defender, "def" if physical else "spd"))
        base = ((2 * LEVEL / 5 + 2) * move.base_power * attack / defense) / 50 + 2
        if crit:
            base *= 2
        if not targets_self and move.type in attacker.types:
            base *= 1.5
        if physical and attacker.status == Status.BRN:
            base *= 0.5
        return max(1, int(base * multiplier * self.damage_roll))

    def _crit_chance(self, move) -> float:
        return min(1.0, self.crit_chance * getattr(move, "crit_ratio", 1.0))

    def _secondary(self, probability: float, state: SimBattle, move: SimMove, target_side: int) -> List[Outcome]:
        """Branch over secondary status and confusion on the target."""
        outcomes: List[Outcome] = [(probability, state)]
        target = state.pokemon(target_side)
        if target.fainted:
            return outcomes

        if move.status is not None and move.status_chance > 0.0 and target.status is None:
            inflicted = state.with_pokemon(target_side, target.with_status(move.status))
            outcomes = [
                (probability * (1.0 - move.status_chance), state),
                (probability * move.status_chance, inflicted),
            ]

        if move.confuse_chance > 0.0 and Effect.CONFUSION not in target.effects:
            split: List[Outcome] = []
            for p, s in outcomes:
                confused = s.with_pokemon(target_side, s.pokemon(target_side).with_effect(Effect.CONFUSION))
                split.append((p * (1.0 - move.confuse_chance), s))
                split.append((p * move.confuse_chance, confused))
            outcomes = split
        return outcomes

    def _self_effects(self, state: SimBattle, move: SimMove, side: int) -> SimBattle:
        user = state.pokemon(side)
        if move.self_boosts:
            user = user.with_boosts(move.self_boosts)
        if move.heal > 0.0:
            user = user.with_hp(user.current_hp + int(move.heal * user.max_hp))
        return state.with_pokemon(side, user)

    def apply_action(self, state: SimBattle, action, acting_side: int, other_side: int) -> List[Outcome]:
        attacker = state.pokemon(acting_side)
        if attacker.fainted:
            return [(1.0, state)]

        if getattr(action, "targets_self", False):
            hit = self.damage(action, attacker, attacker)
            return [(1.0, state.with_pokemon(acting_side, attacker.with_hp(attacker.current_hp - hit)))]

        defender = state.pokemon(other_side)
        accuracy = 1.0 if action.accuracy is None else action.accuracy
        outcomes: List[Outcome] = []

        after_miss = state
        if action.selfdestruct:
            after_miss = state.with_pokemon(acting_side, attacker.with_hp(0))
        if accuracy < 1.0:
            outcomes.append((1.0 - accuracy, after_miss))

        if action.category == MoveCategory.STATUS:
            hit_state = self._self_effects(state, action, acting_side)
            immune = action.status is not None and self.effectiveness(action.type, defender) == 0.0
            if immune:
                outcomes.append((accuracy, hit_state))
            else:
                outcomes.extend(self._secondary(accuracy, hit_state, action, other_side))
            return _merge(outcomes)

        crit = self._crit_chance(action) if not action.fixed_damage else 0.0
        for p_branch, is_crit in ((accuracy * (1.0 - crit), False), (accuracy * crit, True)):
            if p_branch <= 0.0:
                continue
            dealt = self.damage(action, attacker, defender, crit=is_crit)
            hit_state = after_miss.with_pokemon(other_side, defender.with_hp(defender.current_hp - dealt))
            hit_state = self._self_effects(hit_state, action, acting_side)
            outcomes.extend(self._secondary(p_branch, hit_state, action, other_side))
        return _merge(outcomes)

    def end_turn(self, state: SimBattle) -> List[Outcome]:
        """Burn and poison chip each active combatant for 1/16 of its max HP."""
        for side in SIDES:
            mon = state.pokemon(side)
            if not mon.fainted and mon.status in (Status.BRN, Status.PSN, Status.TOX):
                state = state.with_pokemon(side, mon.with_hp(mon.current_hp - max(1, mon.max_hp // 16)))
        return [(1.0, dataclasses.replace(state, turn=state.turn + 1))]

    def replacements(self, state: SimBattle, side: int) -> List[SimBattle]:
        if not state.pokemon(side).fainted:
            return []
        successors = []
        for index, mon in enumerate(state.teams[side]):
            if index == state.active[side] or mon.fainted:
                continue
            successors.append(state.with_active(side, index))
        return successors
