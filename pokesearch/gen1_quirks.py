"""Gen1-style move prevention rules used by the chance layers."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from poke_env.environment.effect import Effect
from poke_env.environment.move_category import MoveCategory
from poke_env.environment.pokemon_type import PokemonType
from poke_env.environment.status import Status

from pokesearch.oracle import Action, BattleOracle, Combatant


@dataclass(frozen=True)
class PreventionModel:
    """
    Fixed per-turn probabilities of a status getting in the way of a move.

    These approximate the game's distributions; the search only reasons about
    them and never reproduces the real RNG.
    """

    # Chance a sleeping or frozen combatant manages to act this turn.
    wake_chance: float = 0.098
    thaw_chance: float = 0.098
    # Chance a paralyzed combatant loses its turn.
    full_paralysis_chance: float = 0.25
    paralysis_speed_factor: float = 0.75
    # Chance a confused combatant hits itself instead of acting.
    confusion_self_hit_chance: float = 0.5
    confusion_power: int = 40

    def __post_init__(self):
        for name in ("wake_chance", "thaw_chance", "full_paralysis_chance", "confusion_self_hit_chance"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be a probability, got {value}")
        if self.paralysis_speed_factor < 0.0:
            raise ValueError("paralysis_speed_factor must be non-negative")


@dataclass(frozen=True)
class ConfusionSelfHit:
    """
    Synthetic action executed when confusion makes a combatant hit itself.

    Typeless physical hit with fixed power and perfect accuracy that targets
    the user and ignores STAB and type effectiveness.
    """

    base_power: int = 40
    id: str = "confusionselfhit"
    category: MoveCategory = MoveCategory.PHYSICAL
    type: Optional[PokemonType] = None
    accuracy: Optional[float] = None
    priority: int = 0
    targets_self: bool = True


class Gen1Quirks:
    """Gen1 mechanics the search models probabilistically."""

    @staticmethod
    def effective_speed(oracle: BattleOracle, combatant: Combatant, model: PreventionModel) -> float:
        speed = float(oracle.stat_value(combatant, "spe"))
        if oracle.status(combatant) == Status.PAR:
            speed *= model.paralysis_speed_factor
        return speed

    @staticmethod
    def prevention_chance(status: Optional[Status], model: PreventionModel) -> float:
        """Probability that ``status`` stops the move outright this turn."""
        if status == Status.SLP:
            return 1.0 - model.wake_chance
        if status == Status.FRZ:
            return 1.0 - model.thaw_chance
        if status == Status.PAR:
            return model.full_paralysis_chance
        return 0.0

    @staticmethod
    def action_outcomes(
        oracle: BattleOracle,
        combatant: Combatant,
        action: Optional[Action],
        model: PreventionModel,
    ) -> List[Tuple[float, Optional[Action]]]:
        """
        What the combatant actually does this turn, with probabilities.

        ``None`` in the result is a no-op. The non-volatile prevention and the
        confusion split compose multiplicatively; zero-mass branches are
        dropped.
        """
        if action is None:
            return [(1.0, None)]

        outcomes: List[Tuple[float, Optional[Action]]] = []
        prevented = Gen1Quirks.prevention_chance(oracle.status(combatant), model)
        if prevented > 0.0:
            outcomes.append((prevented, None))
        acting = 1.0 - prevented

        if acting > 0.0 and oracle.volatile_flag(combatant, Effect.CONFUSION):
            self_hit = acting * model.confusion_self_hit_chance
            if self_hit > 0.0:
                outcomes.append((self_hit, ConfusionSelfHit(base_power=model.confusion_power)))
            acting -= self_hit

        if acting > 0.0:
            outcomes.append((acting, action))
        return outcomes
