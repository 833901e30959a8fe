"""
Tree expansion tests.

Covers the four chance layers (move order, prevention, resolution,
post-turn), outcome capping and decision-node expansion.
"""

import logging

import pytest
from poke_env.environment.status import Status
from poke_env.environment.effect import Effect

from conftest import fainted, make_battle
from pokesearch.config import SearchConfig
from pokesearch.expansion import TreeExpander, TurnResolver, cap_outcomes
from pokesearch.gen1_quirks import ConfusionSelfHit, Gen1Quirks, PreventionModel
from pokesearch.heuristic import WeightedHeuristic
from pokesearch.local_sim import LocalSim
from pokesearch.node import Role, SearchNode
from pokesearch.ranking import ActionRanker
from pokesearch.teams import build_pokemon, get_move


def make_expander(oracle, config=None, root_side=0):
    config = config if config is not None else SearchConfig()
    ranker = ActionRanker(oracle, WeightedHeuristic(oracle))
    return TreeExpander(oracle, ranker, TurnResolver(oracle, config), config, root_side)


def reach_sum(children):
    return sum(child.reach_probability for child in children)


class EmptyHyperBeamSim(LocalSim):
    """Oracle defect: no outcomes at all for Hyper Beam."""

    def apply_action(self, state, action, acting_side, other_side):
        if getattr(action, 'id', None) == 'hyperbeam':
            return []
        return super().apply_action(state, action, acting_side, other_side)


# =============================================================================
# Move order layer
# =============================================================================


class TestMoveOrder:
    def test_speed_tie_gives_two_even_orderings(self, sim):
        state = make_battle([build_pokemon('tauros')], [build_pokemon('tauros')])
        resolver = TurnResolver(sim, SearchConfig())
        orderings = resolver.move_order(state, {0: get_move('bodyslam'), 1: get_move('bodyslam')})
        assert orderings == [(0.5, (0, 1)), (0.5, (1, 0))]

    def test_speed_tie_resolves_into_two_children(self, sim):
        state = make_battle([build_pokemon('tauros')], [build_pokemon('tauros')])
        resolver = TurnResolver(sim, SearchConfig())
        outcomes = resolver.resolve(state, {0: get_move('earthquake'), 1: get_move('earthquake')})
        assert [p for p, _ in outcomes] == [0.5, 0.5]

    def test_priority_beats_speed(self, sim):
        state = make_battle([build_pokemon('snorlax', moves=['quickattack'])], [build_pokemon('tauros')])
        resolver = TurnResolver(sim, SearchConfig())
        orderings = resolver.move_order(state, {0: get_move('quickattack'), 1: get_move('bodyslam')})
        assert orderings == [(1.0, (0, 1))]

    def test_faster_side_moves_first(self, sim, tauros_vs_chansey):
        resolver = TurnResolver(sim, SearchConfig())
        orderings = resolver.move_order(tauros_vs_chansey, {0: get_move('bodyslam'), 1: get_move('icebeam')})
        assert orderings == [(1.0, (0, 1))]

    def test_paralysis_slows_effective_speed(self, sim):
        # Alakazam (338) outspeeds Tauros (318) until paralysis cuts it to 253.5.
        state = make_battle([build_pokemon('alakazam', status=Status.PAR)], [build_pokemon('tauros')])
        resolver = TurnResolver(sim, SearchConfig())
        orderings = resolver.move_order(state, {0: get_move('psychic'), 1: get_move('bodyslam')})
        assert orderings == [(1.0, (1, 0))]

    def test_absent_side_acts_second(self, sim, tauros_vs_chansey):
        resolver = TurnResolver(sim, SearchConfig())
        assert resolver.move_order(tauros_vs_chansey, {0: None, 1: get_move('icebeam')}) == [(1.0, (1, 0))]
        assert resolver.move_order(tauros_vs_chansey, {0: get_move('bodyslam'), 1: None}) == [(1.0, (0, 1))]


# =============================================================================
# Move prevention layer
# =============================================================================


class TestPrevention:
    def test_frozen_mostly_cannot_act(self, sim):
        frozen = build_pokemon('tauros', status=Status.FRZ)
        move = get_move('bodyslam')
        outcomes = Gen1Quirks.action_outcomes(sim, frozen, move, PreventionModel())
        assert outcomes == [(pytest.approx(0.902), None), (pytest.approx(0.098), move)]
        assert sum(p for p, _ in outcomes) == pytest.approx(1.0)

    def test_asleep_uses_wake_chance(self, sim):
        asleep = build_pokemon('tauros', status=Status.SLP)
        outcomes = Gen1Quirks.action_outcomes(sim, asleep, get_move('bodyslam'), PreventionModel(wake_chance=0.25))
        assert [p for p, _ in outcomes] == [pytest.approx(0.75), pytest.approx(0.25)]

    def test_full_paralysis(self, sim):
        paralyzed = build_pokemon('tauros', status=Status.PAR)
        outcomes = Gen1Quirks.action_outcomes(sim, paralyzed, get_move('bodyslam'), PreventionModel())
        assert [p for p, _ in outcomes] == [pytest.approx(0.25), pytest.approx(0.75)]

    def test_confusion_composes_with_paralysis(self, sim):
        mon = build_pokemon('tauros', status=Status.PAR).with_effect(Effect.CONFUSION)
        move = get_move('bodyslam')
        outcomes = Gen1Quirks.action_outcomes(sim, mon, move, PreventionModel())
        assert [p for p, _ in outcomes] == [pytest.approx(0.25), pytest.approx(0.375), pytest.approx(0.375)]
        assert outcomes[0][1] is None
        assert isinstance(outcomes[1][1], ConfusionSelfHit)
        assert outcomes[2][1] is move

    def test_no_action_is_a_single_no_op(self, sim):
        assert Gen1Quirks.action_outcomes(sim, build_pokemon('tauros'), None, PreventionModel()) == [(1.0, None)]

    def test_frozen_turn_distribution(self, sim):
        frozen = build_pokemon('tauros', status=Status.FRZ)
        state = make_battle([frozen], [build_pokemon('chansey')])
        resolver = TurnResolver(sim, SearchConfig())
        outcomes = resolver.resolve(state, {0: get_move('earthquake'), 1: None})
        assert len(outcomes) == 2
        no_op = [p for p, s in outcomes if s.pokemon(1).current_hp == s.pokemon(1).max_hp]
        acted = [p for p, s in outcomes if s.pokemon(1).current_hp < s.pokemon(1).max_hp]
        assert no_op == [pytest.approx(0.902)]
        assert acted == [pytest.approx(0.098)]


# =============================================================================
# Resolution and post-turn layers
# =============================================================================


class TestResolve:
    def test_sums_to_one_uncapped(self, crit_sim, default_battle):
        resolver = TurnResolver(crit_sim, SearchConfig())
        outcomes = resolver.resolve(default_battle, {0: get_move('bodyslam'), 1: get_move('bodyslam')})
        assert len(outcomes) > 3
        assert sum(p for p, _ in outcomes) == pytest.approx(1.0, abs=1e-6)

    def test_sums_to_one_capped(self, crit_sim, default_battle):
        resolver = TurnResolver(crit_sim, SearchConfig())
        outcomes = resolver.resolve(default_battle, {0: get_move('bodyslam'), 1: get_move('bodyslam')}, limit=3)
        assert len(outcomes) == 3
        assert sum(p for p, _ in outcomes) == pytest.approx(1.0, abs=1e-6)

    def test_second_actor_skipped_once_battle_is_over(self, sim, tauros_vs_last_snorlax):
        resolver = TurnResolver(sim, SearchConfig())
        outcomes = resolver.resolve(tauros_vs_last_snorlax, {0: get_move('bodyslam'), 1: get_move('bodyslam')})
        assert all(sim.is_over(s) for _, s in outcomes)
        assert all(s.pokemon(0).current_hp == s.pokemon(0).max_hp for _, s in outcomes)

    def test_end_turn_applied(self, sim):
        state = make_battle([build_pokemon('tauros', status=Status.PSN)], [build_pokemon('chansey')])
        resolver = TurnResolver(sim, SearchConfig())
        [(p, after)] = resolver.resolve(state, {0: None, 1: None})
        assert p == 1.0
        assert after.turn == 1
        assert after.pokemon(0).current_hp < after.pokemon(0).max_hp

    def test_empty_distribution_drops_branch_and_logs(self, caplog):
        oracle = EmptyHyperBeamSim(crit_chance=0.0)
        state = make_battle([build_pokemon('tauros', status=Status.PAR)], [build_pokemon('chansey')])
        resolver = TurnResolver(oracle, SearchConfig())
        with caplog.at_level(logging.WARNING, logger="pokesearch.expansion"):
            outcomes = resolver.resolve(state, {0: get_move('hyperbeam'), 1: None})
        # Only the fully paralyzed branch survives, renormalized.
        assert len(outcomes) == 1
        assert outcomes[0][0] == pytest.approx(1.0)
        assert resolver.dropped_branches == 1
        assert "empty distribution" in caplog.text


class TestCapOutcomes:
    def test_keeps_most_probable_and_renormalizes(self):
        capped = cap_outcomes([(0.5, 'a'), (0.2, 'b'), (0.2, 'c'), (0.1, 'd')], limit=2)
        assert [s for _, s in capped] == ['a', 'b']
        assert [p for p, _ in capped] == [pytest.approx(0.5 / 0.7), pytest.approx(0.2 / 0.7)]

    def test_renormalizes_without_cap(self):
        capped = cap_outcomes([(0.3, 'a'), (0.3, 'b')])
        assert sum(p for p, _ in capped) == pytest.approx(1.0)

    def test_empty(self):
        assert cap_outcomes([], limit=3) == []


# =============================================================================
# Decision and chance node expansion
# =============================================================================


class TestTreeExpander:
    def test_decision_children_are_chance_nodes_one_ply_deeper(self, sim, default_battle):
        expander = make_expander(sim, SearchConfig(max_branching_max=2))
        root = SearchNode(default_battle, Role.MAXIMIZER, depth=3)
        children = expander.expand(root)
        assert len(children) == 2
        tauros_moves = set(default_battle.pokemon(0).moves)
        for child in children:
            assert child.role is Role.CHANCE
            assert child.depth == 4
            assert child.reach_probability == 1.0
            assert child.actor is Role.MAXIMIZER
            assert child.incoming_action in tauros_moves

    def test_minimizer_uses_its_own_cap(self, sim, default_battle):
        expander = make_expander(sim, SearchConfig(max_branching_max=4, max_branching_min=1))
        children = expander.expand(SearchNode(default_battle, Role.MINIMIZER))
        assert len(children) == 1
        assert children[0].incoming_action in default_battle.pokemon(1).moves

    def test_unordered_keeps_oracle_order(self, sim, default_battle):
        expander = make_expander(sim, SearchConfig(max_branching_max=4, order_moves=False))
        children = expander.expand(SearchNode(default_battle, Role.MAXIMIZER))
        assert [c.incoming_action for c in children] == list(default_battle.pokemon(0).moves)

    def test_forced_non_move_turn(self, sim):
        state = make_battle([build_pokemon('tauros', moves=[])], [build_pokemon('chansey')])
        children = make_expander(sim).expand(SearchNode(state, Role.MAXIMIZER))
        assert len(children) == 1
        assert children[0].role is Role.CHANCE
        assert children[0].incoming_action is None

    def test_fainted_side_expands_into_replacements(self, sim):
        state = make_battle(
            [build_pokemon('tauros')],
            [fainted('snorlax'), build_pokemon('starmie'), build_pokemon('zapdos')],
        )
        children = make_expander(sim).expand(SearchNode(state, Role.MINIMIZER))
        assert [c.state.pokemon(1).species for c in children] == ['starmie', 'zapdos']
        assert all(c.replacement and c.incoming_action is None for c in children)

    def test_replacement_passes_through_to_the_other_side(self, sim):
        state = make_battle([build_pokemon('tauros')], [fainted('snorlax'), build_pokemon('starmie')])
        expander = make_expander(sim)
        [replacement] = expander.expand(SearchNode(state, Role.MINIMIZER))
        [child] = expander.expand(replacement)
        assert child.role is Role.MAXIMIZER
        assert child.reach_probability == 1.0
        assert child.state == replacement.state

    def test_chance_children_sum_to_one_and_alternate(self, sim, tauros_vs_chansey):
        expander = make_expander(sim)
        root = SearchNode(tauros_vs_chansey, Role.MAXIMIZER)
        chance = root.child(tauros_vs_chansey, Role.CHANCE, incoming_action=get_move('bodyslam'), actor=Role.MAXIMIZER)
        children = expander.expand(chance)
        assert reach_sum(children) == pytest.approx(1.0, abs=1e-6)
        assert all(c.role is Role.MINIMIZER and c.depth == 2 for c in children)

    def test_chance_children_respect_outcome_cap(self, crit_sim, default_battle):
        expander = make_expander(crit_sim, SearchConfig(max_chance_outcomes=2))
        root = SearchNode(default_battle, Role.MAXIMIZER)
        chance = root.child(default_battle, Role.CHANCE, incoming_action=get_move('bodyslam'), actor=Role.MAXIMIZER)
        children = expander.expand(chance)
        assert len(children) == 2
        assert reach_sum(children) == pytest.approx(1.0, abs=1e-6)

    def test_faint_hands_the_decision_to_the_replacing_side(self, sim):
        snorlax = build_pokemon('snorlax').with_hp(1)
        state = make_battle([build_pokemon('tauros')], [snorlax, build_pokemon('starmie')])
        expander = make_expander(sim)
        root = SearchNode(state, Role.MAXIMIZER)
        chance = root.child(state, Role.CHANCE, incoming_action=get_move('bodyslam'), actor=Role.MAXIMIZER)
        children = expander.expand(chance)
        assert children
        assert all(c.state.pokemon(1).fainted and c.role is Role.MINIMIZER for c in children)

    def test_knockout_side_waits_for_the_replacement_turn(self, sim):
        # Starmie outspeeds and knocks tauros out: after chansey comes in the
        # maximizer answers, starmie does not get a second move in a row.
        state = make_battle([build_pokemon('tauros').with_hp(1), build_pokemon('chansey')], [build_pokemon('starmie')])
        expander = make_expander(sim)
        root = SearchNode(state, Role.MINIMIZER)
        chance = root.child(state, Role.CHANCE, incoming_action=get_move('surf'), actor=Role.MINIMIZER)
        children = expander.expand(chance)
        assert children
        assert all(c.role is Role.MAXIMIZER and c.actor is Role.MINIMIZER for c in children)
        [replacement] = expander.expand(children[0])
        assert replacement.replacement
        assert replacement.actor is Role.MINIMIZER
        [after] = expander.expand(replacement)
        assert after.state.pokemon(0).species == 'chansey'
        assert after.role is Role.MAXIMIZER

    def test_knocked_out_minimizer_replaces_then_moves(self, sim):
        snorlax = build_pokemon('snorlax').with_hp(1)
        state = make_battle([build_pokemon('tauros')], [snorlax, build_pokemon('starmie')])
        expander = make_expander(sim)
        root = SearchNode(state, Role.MAXIMIZER)
        chance = root.child(state, Role.CHANCE, incoming_action=get_move('bodyslam'), actor=Role.MAXIMIZER)
        [replacement] = expander.expand(expander.expand(chance)[0])
        [after] = expander.expand(replacement)
        assert after.state.pokemon(1).species == 'starmie'
        assert after.role is Role.MINIMIZER

    def test_double_faint_goes_to_maximizer(self, sim):
        state = make_battle(
            [fainted('tauros'), build_pokemon('chansey')],
            [fainted('snorlax'), build_pokemon('starmie')],
        )
        assert make_expander(sim).next_role(state, Role.MINIMIZER) is Role.MAXIMIZER

    def test_greedy_counterpart_replies(self, sim, tauros_vs_chansey):
        expander = make_expander(sim)
        root = SearchNode(tauros_vs_chansey, Role.MAXIMIZER)
        chance = root.child(tauros_vs_chansey, Role.CHANCE, incoming_action=get_move('earthquake'), actor=Role.MAXIMIZER)
        children = expander.expand(chance)
        assert all(c.state.pokemon(0).current_hp < c.state.pokemon(0).max_hp for c in children)

    def test_no_counterpart_policy(self, sim, tauros_vs_chansey):
        expander = make_expander(sim, SearchConfig(counterpart_policy="none"))
        root = SearchNode(tauros_vs_chansey, Role.MAXIMIZER)
        chance = root.child(tauros_vs_chansey, Role.CHANCE, incoming_action=get_move('earthquake'), actor=Role.MAXIMIZER)
        children = expander.expand(chance)
        assert all(c.state.pokemon(0).current_hp == c.state.pokemon(0).max_hp for c in children)
