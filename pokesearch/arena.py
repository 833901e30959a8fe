"""Local battles between two players over a BattleOracle."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pokesearch.config import SearchConfig
from pokesearch.expansion import TurnResolver
from pokesearch.minimax_optimizer import canonical_action
from pokesearch.oracle import SIDES, BattleOracle, State, winner
from pokesearch.player import BattlePlayer


logger = logging.getLogger(__name__)


@dataclass
class BattleRecord:
    winner: Optional[int]
    turns: int
    final_state: State
    # (turn, side 0 action, side 1 action)
    actions: List[Tuple[int, str, str]] = field(default_factory=list)
    replacements: int = 0
    truncated: bool = False


def play_battle(
    oracle: BattleOracle,
    players: Sequence[BattlePlayer],
    state: State,
    seed: Optional[int] = None,
    max_turns: int = 200,
    config: Optional[SearchConfig] = None,
) -> BattleRecord:
    """
    Play one battle to the end, sampling each turn from the turn distribution.

    Both players choose from the same snapshot, then one outcome of the
    resolved turn is drawn with a numpy Generator.
    """
    if len(players) != 2:
        raise ValueError("a battle needs exactly two players")
    resolver = TurnResolver(oracle, config if config is not None else SearchConfig())
    rng = np.random.default_rng(seed)
    record = BattleRecord(winner=None, turns=0, final_state=state)

    for turn in range(max_turns):
        if oracle.is_over(state):
            break

        for side in SIDES:
            if oracle.has_fainted(oracle.active_combatant(state, side)):
                successor = players[side].choose_replacement(state, side)
                if successor is None:
                    break
                state = successor
                record.replacements += 1
        if oracle.is_over(state):
            break

        actions = {side: players[side].choose_move(state, side) for side in SIDES}
        outcomes = resolver.resolve(state, actions)
        if not outcomes:
            logger.warning("Turn %d produced no outcomes, stopping the battle", turn)
            record.truncated = True
            break

        probabilities = np.array([p for p, _ in outcomes], dtype=float)
        index = int(rng.choice(len(outcomes), p=probabilities / probabilities.sum()))
        state = outcomes[index][1]
        record.turns = turn + 1
        record.actions.append((turn + 1, canonical_action(actions[0]), canonical_action(actions[1])))
        logger.debug("Turn %d: %s vs %s", turn + 1, record.actions[-1][1], record.actions[-1][2])
    else:
        record.truncated = not oracle.is_over(state)

    record.final_state = state
    record.winner = winner(oracle, state)
    return record
