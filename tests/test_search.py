"""
Search controller tests: anytime behaviour, fallbacks and short-circuits.
"""

import threading
import time

import pytest

from conftest import fainted, make_battle
from pokesearch.config import SearchConfig
from pokesearch.exceptions import NoActionAvailable
from pokesearch.minimax_optimizer import canonical_action
from pokesearch.search import SearchController, SearchPhase
from pokesearch.teams import build_pokemon


class TestNoAction:
    def test_fainted_active(self, sim):
        state = make_battle([fainted('tauros'), build_pokemon('chansey')], [build_pokemon('snorlax')])
        with pytest.raises(NoActionAvailable) as excinfo:
            SearchController(sim).search(state, 0)
        assert excinfo.value.side == 0

    def test_empty_move_list(self, sim):
        state = make_battle([build_pokemon('tauros', moves=[])], [build_pokemon('snorlax')])
        with pytest.raises(NoActionAvailable):
            SearchController(sim).select_action(state, 0)


class TestFallback:
    def test_expired_deadline_returns_a_legal_action(self, sim, default_battle):
        controller = SearchController(sim)
        start = time.monotonic()
        result = controller.search(default_battle, 0, deadline=time.monotonic())
        assert time.monotonic() - start < 1.0
        assert result.phase is SearchPhase.FALLBACK
        assert controller.phase is SearchPhase.FALLBACK
        assert result.action in default_battle.pokemon(0).moves
        assert result.depth_reached == 0

    def test_cancelled_search_returns_a_legal_action(self, sim, small_config, default_battle):
        cancel = threading.Event()
        cancel.set()
        result = SearchController(sim, config=small_config).search(default_battle, 0, cancel_event=cancel)
        assert result.phase is SearchPhase.FALLBACK
        assert result.action in default_battle.pokemon(0).moves

    def test_unscored_fallback_uses_first_legal_action(self, sim, default_battle):
        result = SearchController(sim).search(default_battle, 0, deadline=time.monotonic() - 1.0)
        assert result.action is default_battle.pokemon(0).moves[0]
        assert result.value is None


class TestShortCircuit:
    def test_decisive_action_skips_deep_search(self, sim, small_config, tauros_vs_last_snorlax):
        controller = SearchController(sim, config=small_config)
        result = controller.search(tauros_vs_last_snorlax, 0)
        assert result.phase is SearchPhase.SHORT_CIRCUIT_RETURN
        assert result.action.id == 'bodyslam'
        assert result.value == 10000.0
        assert result.nodes_evaluated == 0

    def test_search_completes_when_every_line_ends(self, sim, small_config, tauros_vs_last_snorlax):
        config = small_config.with_overrides(decisive_threshold=20000.0)
        result = SearchController(sim, config=config).search(tauros_vs_last_snorlax, 0)
        assert result.phase is SearchPhase.COMPLETE
        assert result.depth_reached == config.initial_depth
        assert result.value == 10000.0
        assert result.action.id == 'bodyslam'


class TestIterativeDeepening:
    def test_reports_depth_and_values(self, sim, small_config, default_battle):
        result = SearchController(sim, config=small_config).search(default_battle, 0)
        assert result.phase in (SearchPhase.DEPTH_CAP, SearchPhase.COMPLETE)
        assert result.depth_reached == small_config.max_depth
        assert result.iterations == 2
        assert len(result.action_values) == small_config.max_branching_max
        assert canonical_action(result.action) in result.action_values
        assert result.value == max(result.action_values.values())
        assert result.nodes_evaluated > 0
        assert len(result.ranked) == len(default_battle.pokemon(0).moves)

    def test_same_snapshot_same_answer(self, sim, small_config, default_battle):
        controller = SearchController(sim, config=small_config)
        first = controller.search(default_battle, 0)
        second = controller.search(default_battle, 0)
        assert first.action is second.action
        assert first.action_values == second.action_values

    def test_searches_for_either_side(self, sim, small_config, default_battle):
        result = SearchController(sim, config=small_config).search(default_battle, 1)
        assert result.action in default_battle.pokemon(1).moves

    def test_phase_is_terminal_after_search(self, sim, small_config, default_battle):
        controller = SearchController(sim, config=small_config)
        assert controller.phase is SearchPhase.IDLE
        controller.select_action(default_battle, 0)
        assert controller.phase in (SearchPhase.DEPTH_CAP, SearchPhase.COMPLETE)

    def test_config_without_ordering(self, sim, default_battle):
        config = SearchConfig(max_depth=2, initial_depth=2, max_branching_max=4, order_moves=False, move_time_limit_s=60.0)
        result = SearchController(sim, config=config).search(default_battle, 0)
        assert list(result.action_values) == [canonical_action(m) for m in default_battle.pokemon(0).moves]


class TestAlphaBeta:
    @pytest.fixture
    def config(self):
        return SearchConfig(
            max_depth=4,
            initial_depth=4,
            max_branching_max=4,
            max_branching_min=2,
            move_time_limit_s=60.0,
        )

    def test_pruned_search_agrees_with_full_search(self, sim, config, deterministic_duel):
        pruned = SearchController(sim, config=config).search(deterministic_duel, 0)
        full = SearchController(sim, config=config.with_overrides(alpha_beta=False)).search(deterministic_duel, 0)
        assert pruned.cutoffs > 0
        assert full.cutoffs == 0
        assert pruned.action is full.action
        assert pruned.value == pytest.approx(full.value)
        assert pruned.nodes_evaluated < full.nodes_evaluated

    def test_pruned_actions_never_beat_the_choice(self, sim, config, deterministic_duel):
        result = SearchController(sim, config=config).search(deterministic_duel, 0)
        assert result.value == max(result.action_values.values())
        assert result.action_values[canonical_action(result.action)] == result.value
