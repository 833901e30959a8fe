"""
Tree expansion.

A decision node expands into one CHANCE child per kept action. A chance node
resolves one game turn for the committed action pair through four layers
(move order, prevention, resolution, post-turn). Probabilities multiply
across layers and the children of a chance node always sum to 1.0.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pokesearch.config import SearchConfig
from pokesearch.gen1_quirks import Gen1Quirks
from pokesearch.node import Role, SearchNode, side_for_role
from pokesearch.oracle import SIDES, Action, BattleOracle, Outcome, State, opponent_of
from pokesearch.ranking import ActionRanker


logger = logging.getLogger(__name__)

Ordering = Tuple[int, int]


def cap_outcomes(outcomes: Sequence[Outcome], limit: Optional[int] = None) -> List[Outcome]:
    """
    Keep the ``limit`` most probable outcomes and renormalize them to 1.0.

    Equal probabilities keep generation order. Zero-mass outcomes are dropped.
    """
    kept = [(p, s) for p, s in outcomes if p > 0.0]
    if limit is not None and len(kept) > limit:
        order = sorted(range(len(kept)), key=lambda i: (-kept[i][0], i))[:limit]
        kept = [kept[i] for i in sorted(order)]
    total = sum(p for p, _ in kept)
    if total <= 0.0:
        return []
    return [(p / total, s) for p, s in kept]


class TurnResolver:
    """Resolves one turn of committed actions into an outcome distribution."""

    def __init__(self, oracle: BattleOracle, config: SearchConfig):
        self.oracle = oracle
        self.config = config
        self.dropped_branches = 0

    def move_order(self, state: State, actions: Dict[int, Optional[Action]]) -> List[Tuple[float, Ordering]]:
        """Possible (first, second) orderings with their probabilities."""
        present = [side for side in SIDES if actions.get(side) is not None]
        if len(present) < 2:
            first = present[0] if present else SIDES[0]
            return [(1.0, (first, opponent_of(first)))]

        priorities = {side: self.oracle.priority(actions[side]) for side in SIDES}
        if priorities[0] != priorities[1]:
            first = 0 if priorities[0] > priorities[1] else 1
            return [(1.0, (first, opponent_of(first)))]

        model = self.config.prevention
        speeds = {
            side: Gen1Quirks.effective_speed(self.oracle, self.oracle.active_combatant(state, side), model)
            for side in SIDES
        }
        if speeds[0] != speeds[1]:
            first = 0 if speeds[0] > speeds[1] else 1
            return [(1.0, (first, opponent_of(first)))]
        return [(0.5, (0, 1)), (0.5, (1, 0))]

    def _act(self, probability: float, state: State, side: int, action: Optional[Action]) -> List[Outcome]:
        """Prevention and resolution layers for one side acting on one branch."""
        oracle = self.oracle
        if oracle.is_over(state):
            return [(probability, state)]
        combatant = oracle.active_combatant(state, side)
        # A combatant knocked out earlier in the turn does not act.
        if action is None or oracle.has_fainted(combatant):
            return [(probability, state)]

        results: List[Outcome] = []
        for p_effective, effective in Gen1Quirks.action_outcomes(oracle, combatant, action, self.config.prevention):
            if effective is None:
                results.append((probability * p_effective, state))
                continue
            distribution = oracle.apply_action(state, effective, side, opponent_of(side))
            if not distribution:
                self.dropped_branches += 1
                logger.warning(
                    "Oracle returned an empty distribution for %s on side %d, dropping branch",
                    getattr(effective, "id", effective),
                    side,
                )
                continue
            for p_out, result in distribution:
                if p_out > 0.0:
                    results.append((probability * p_effective * p_out, result))
        return results

    def _post_turn(self, branches: List[Outcome]) -> List[Outcome]:
        results: List[Outcome] = []
        for probability, state in branches:
            if self.oracle.is_over(state):
                results.append((probability, state))
                continue
            residual = self.oracle.end_turn(state)
            if not residual:
                self.dropped_branches += 1
                logger.warning("Oracle returned an empty end-of-turn distribution, dropping branch")
                continue
            results.extend((probability * p, s) for p, s in residual if p > 0.0)
        return results

    def resolve(
        self,
        state: State,
        actions: Dict[int, Optional[Action]],
        limit: Optional[int] = None,
    ) -> List[Outcome]:
        """
        Full turn distribution for the given per-side actions.

        A missing or None action means that side does not move this turn.
        ``limit`` caps the number of outcomes kept; the result is
        renormalized either way. Returns an empty list only if every branch
        was dropped.
        """
        turn: List[Outcome] = []
        for p_order, ordering in self.move_order(state, actions):
            branches: List[Outcome] = [(p_order, state)]
            for side in ordering:
                acted: List[Outcome] = []
                for probability, branch_state in branches:
                    acted.extend(self._act(probability, branch_state, side, actions.get(side)))
                branches = acted
            turn.extend(branches)

        turn = self._post_turn(turn)
        if not turn:
            logger.warning("Every branch of the turn was dropped")
        return cap_outcomes(turn, limit)


class TreeExpander:
    """Generates the children of search nodes for one decision."""

    def __init__(
        self,
        oracle: BattleOracle,
        ranker: ActionRanker,
        resolver: TurnResolver,
        config: SearchConfig,
        root_side: int,
    ):
        self.oracle = oracle
        self.ranker = ranker
        self.resolver = resolver
        self.config = config
        self.root_side = root_side

    def expand(self, node: SearchNode) -> List[SearchNode]:
        if node.role is Role.CHANCE:
            return self.expand_chance(node)
        if node.role.is_decision:
            return self.expand_decision(node)
        raise ValueError(f"Unknown node role: {node.role!r}")

    def branching_cap(self, role: Role) -> int:
        if role is Role.MAXIMIZER:
            return self.config.max_branching_max
        return self.config.max_branching_min

    def candidate_actions(self, state: State, side: int, role: Role, actions: Sequence[Action]) -> List[Action]:
        """
        Actions kept at a decision node.

        Branching above the cap is cut to the top-K by 1-ply ranking. This is
        a search-breadth approximation, not a rules constraint: an action
        ranked outside the top-K can still be the best one.
        """
        cap = self.branching_cap(role)
        if len(actions) <= cap and not self.config.order_moves:
            return list(actions)
        ranked = [action for action, _ in self.ranker.rank(state, side, actions)]
        kept = ranked[:cap]
        if self.config.order_moves:
            return kept
        kept_ids = {id(action) for action in kept}
        return [action for action in actions if id(action) in kept_ids]

    def expand_decision(self, node: SearchNode) -> List[SearchNode]:
        oracle = self.oracle
        side = side_for_role(node.role, self.root_side)
        combatant = oracle.active_combatant(node.state, side)

        if oracle.has_fainted(combatant):
            # The replacement keeps the actor of the turn that caused the faint,
            # so the side that scored the knockout does not move twice.
            actor = node.actor if node.actor is not None else node.role
            return [
                node.child(successor, Role.CHANCE, actor=actor, replacement=True)
                for successor in oracle.replacements(node.state, side)
            ]

        actions = oracle.available_actions(combatant)
        if not actions:
            return [node.child(node.state, Role.CHANCE, actor=node.role)]

        return [
            node.child(node.state, Role.CHANCE, incoming_action=action, actor=node.role)
            for action in self.candidate_actions(node.state, side, node.role, actions)
        ]

    def counterpart_action(self, state: State, side: int) -> Optional[Action]:
        if self.config.counterpart_policy == "none":
            return None
        return self.ranker.best_reply(state, side)

    def next_role(self, state: State, actor: Role) -> Role:
        """
        Who decides after a resolved turn.

        A side whose active combatant fainted decides next (its replacement);
        if both fainted the maximizer goes first. Otherwise roles alternate
        from the side that committed the chance node's action; after a
        replacement that is still the side that acted before the faint.
        """
        root_fainted = self.oracle.has_fainted(self.oracle.active_combatant(state, self.root_side))
        other_fainted = self.oracle.has_fainted(
            self.oracle.active_combatant(state, opponent_of(self.root_side))
        )
        if root_fainted:
            return Role.MAXIMIZER
        if other_fainted:
            return Role.MINIMIZER
        return actor.opposite()

    def expand_chance(self, node: SearchNode) -> List[SearchNode]:
        if node.actor is None or not node.actor.is_decision:
            raise ValueError(f"Chance node without a decision actor: {node!r}")

        if node.replacement:
            outcomes: List[Outcome] = [(1.0, node.state)]
        else:
            actor_side = side_for_role(node.actor, self.root_side)
            other_side = opponent_of(actor_side)
            actions = {
                actor_side: node.incoming_action,
                other_side: self.counterpart_action(node.state, other_side),
            }
            outcomes = self.resolver.resolve(node.state, actions, self.config.max_chance_outcomes)

        children = []
        for probability, state in outcomes:
            role = self.next_role(state, node.actor)
            children.append(
                node.child(
                    state,
                    role,
                    incoming_action=node.incoming_action,
                    reach_probability=probability,
                    actor=node.actor,
                )
            )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Expanded %r into %d outcomes", node, len(children))
        return children


