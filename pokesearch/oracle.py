"""
State oracle contract.

The search engine never inspects battle states directly. Everything it knows
about a position comes through the read and transition queries below, which an
external battle simulator provides. States are treated as immutable snapshots:
every transition returns new state objects and many search nodes may share one.

Status conditions and volatile flags use poke_env's vocabulary (``Status`` and
``Effect``), and stats use poke_env's keys (``hp``, ``atk``, ``def``, ``spa``,
``spd``, ``spe``).
"""

from typing import Any, Hashable, Mapping, Optional, Protocol, Sequence, Tuple

from poke_env.environment.effect import Effect
from poke_env.environment.pokemon_type import PokemonType
from poke_env.environment.status import Status


State = Any
Combatant = Any
Action = Any
Outcome = Tuple[float, State]

SIDES = (0, 1)


def opponent_of(side: int) -> int:
    if side not in SIDES:
        raise ValueError(f"side must be 0 or 1, got {side!r}")
    return 1 - side


class BattleOracle(Protocol):
    """Query interface the search core needs from the battle simulator."""

    def is_over(self, state: State) -> bool:
        ...

    def active_combatant(self, state: State, side: int) -> Combatant:
        ...

    def roster(self, state: State, side: int) -> Sequence[Combatant]:
        ...

    def available_actions(self, combatant: Combatant) -> Sequence[Action]:
        """Ordered legal actions; empty means a forced non-move turn."""
        ...

    def apply_action(
        self, state: State, action: Action, acting_side: int, other_side: int
    ) -> Sequence[Outcome]:
        """
        Full outcome distribution of ``acting_side`` committing ``action``.

        Covers hit/miss, secondary effects and critical variations. The
        probabilities sum to 1.0. Must accept
        :class:`pokesearch.gen1_quirks.ConfusionSelfHit`.
        """
        ...

    def end_turn(self, state: State) -> Sequence[Outcome]:
        """Residual end-of-turn effects (status chip damage, counters)."""
        ...

    def replacements(self, state: State, side: int) -> Sequence[State]:
        """
        One successor state per legal replacement for a fainted active combatant.

        Empty when the active combatant is healthy or nobody can come in.
        """
        ...

    def has_fainted(self, combatant: Combatant) -> bool:
        ...

    def stat_value(self, combatant: Combatant, stat: str) -> float:
        """Current stat with stage modifiers applied."""
        ...

    def current_hp(self, combatant: Combatant) -> int:
        ...

    def max_hp(self, combatant: Combatant) -> int:
        ...

    def status(self, combatant: Combatant) -> Optional[Status]:
        ...

    def volatile_flag(self, combatant: Combatant, flag: Effect) -> bool:
        ...

    def boosts(self, combatant: Combatant) -> Mapping[str, int]:
        ...

    def types(self, combatant: Combatant) -> Tuple[PokemonType, ...]:
        ...

    def priority(self, action: Action) -> int:
        ...

    def combatant_key(self, combatant: Combatant) -> Hashable:
        ...


def remaining_count(oracle: BattleOracle, state: State, side: int) -> int:
    return sum(1 for c in oracle.roster(state, side) if not oracle.has_fainted(c))


def winner(oracle: BattleOracle, state: State) -> Optional[int]:
    """The side whose opponent has nothing left, or None if undecided or drawn."""
    left = [remaining_count(oracle, state, side) for side in SIDES]
    if left[0] > 0 and left[1] == 0:
        return 0
    if left[1] > 0 and left[0] == 0:
        return 1
    return None


def hp_fraction(oracle: BattleOracle, combatant: Combatant) -> float:
    max_hp = oracle.max_hp(combatant)
    if max_hp <= 0:
        return 0.0
    return max(0.0, min(1.0, oracle.current_hp(combatant) / max_hp))
