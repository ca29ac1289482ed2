"""Tests for the phase state machine."""

from __future__ import annotations

import pytest

from rivals.agents.catalog import ActionId
from rivals.agents.phases import (
    OwnCounts,
    SUSTAIN_UNIVERSE,
    apply_transition,
    check_transition,
    get_available_actions,
    phase_objectives,
    phase_temperature,
    reconcile_phase,
    record_round,
    should_skip_turn,
    waiting_advance,
)
from rivals.world.resource_types import SingletonKind
from rivals.world.state import PersistedState
from rivals.world.types import Phase, Role

from tests.testing_utils import PACKAGE_ID, oid


@pytest.fixture
def state() -> PersistedState:
    return PersistedState.fresh(PACKAGE_ID, oid(1), oid(2))


class TestAvailableActions:
    """Legal action whitelists per (phase, role)."""

    def test_genesis_is_the_same_for_both_roles(self) -> None:
        expected = {ActionId.MINT_AGENT, ActionId.BUILD_SHIP}
        assert get_available_actions(Phase.GENESIS, Role.PRIMARY) == expected
        assert get_available_actions(Phase.GENESIS, Role.RIVAL) == expected

    def test_waiting_phases_are_empty(self) -> None:
        assert get_available_actions(Phase.WORLD_BUILD, Role.RIVAL) == frozenset()
        assert get_available_actions(Phase.COLONIZE, Role.PRIMARY) == frozenset()

    def test_content_splits_by_role(self) -> None:
        primary = get_available_actions(Phase.CONTENT, Role.PRIMARY)
        rival = get_available_actions(Phase.CONTENT, Role.RIVAL)
        assert ActionId.CREATE_MISSION_TEMPLATE in primary
        assert ActionId.START_MISSION in rival
        assert not primary & rival

    def test_sustain_never_offers_finalize_or_execute(self) -> None:
        for role in Role:
            actions = get_available_actions(Phase.SUSTAIN, role)
            assert ActionId.FINALIZE_PROPOSAL not in actions
            assert ActionId.EXECUTE_PROPOSAL not in actions

    def test_sustain_rival_excludes_primary_bootstrap(self) -> None:
        rival = get_available_actions(Phase.SUSTAIN, Role.RIVAL)
        assert ActionId.DISCOVER_PLANET not in rival
        assert ActionId.CREATE_AND_SHARE_REACTOR not in rival
        assert ActionId.CAST_VOTE in rival
        assert get_available_actions(Phase.SUSTAIN, Role.PRIMARY) == SUSTAIN_UNIVERSE

    def test_every_pair_is_defined(self) -> None:
        for phase in Phase:
            for role in Role:
                assert isinstance(get_available_actions(phase, role), frozenset)


class TestTransitions:
    """Exit conditions of each phase."""

    def test_genesis_needs_agent_and_ship(self, state: PersistedState) -> None:
        assert check_transition(state.primary, OwnCounts(1, 0), state) is None
        assert check_transition(state.primary, OwnCounts(0, 1), state) is None
        assert check_transition(state.primary, OwnCounts(1, 1), state) == Phase.WORLD_BUILD
        assert check_transition(state.rival, OwnCounts(2, 3), state) == Phase.COLONIZE

    def test_world_build_needs_five_planets(self, state: PersistedState) -> None:
        state.primary.phase = Phase.WORLD_BUILD
        for i in range(4):
            state.add_planet(oid(100 + i))
        assert check_transition(state.primary, OwnCounts(), state) is None
        state.add_planet(oid(200))
        assert check_transition(state.primary, OwnCounts(), state) == Phase.CONTENT

    def test_colonize_waits_for_a_template(self, state: PersistedState) -> None:
        state.rival.phase = Phase.COLONIZE
        state.rival.rounds_in_phase = 10
        assert check_transition(state.rival, OwnCounts(), state) is None
        state.add_mission_template(oid(300))
        assert check_transition(state.rival, OwnCounts(), state) == Phase.CONTENT

    def test_colonize_needs_three_rounds(self, state: PersistedState) -> None:
        state.rival.phase = Phase.COLONIZE
        state.add_mission_template(oid(300))
        state.rival.rounds_in_phase = 2
        assert check_transition(state.rival, OwnCounts(), state) is None

    def test_primary_content_needs_three_templates(self, state: PersistedState) -> None:
        state.primary.phase = Phase.CONTENT
        state.add_mission_template(oid(1))
        state.add_mission_template(oid(2))
        assert check_transition(state.primary, OwnCounts(), state) is None
        state.add_mission_template(oid(3))
        assert check_transition(state.primary, OwnCounts(), state) == Phase.ECONOMY

    def test_rival_content_needs_reactor(self, state: PersistedState) -> None:
        state.rival.phase = Phase.CONTENT
        state.rival.rounds_in_phase = 3
        assert check_transition(state.rival, OwnCounts(), state) is None
        state.shared_objects.set_once(SingletonKind.REACTOR, oid(9))
        assert check_transition(state.rival, OwnCounts(), state) == Phase.ECONOMY

    def test_economy_round_quota_differs_by_role(self, state: PersistedState) -> None:
        state.primary.phase = Phase.ECONOMY
        state.rival.phase = Phase.ECONOMY
        state.primary.rounds_in_phase = 3
        state.rival.rounds_in_phase = 3
        assert check_transition(state.primary, OwnCounts(), state) is None
        assert check_transition(state.rival, OwnCounts(), state) == Phase.MILITARY
        state.primary.rounds_in_phase = 4
        assert check_transition(state.primary, OwnCounts(), state) == Phase.MILITARY

    def test_military_and_governance_quotas(self, state: PersistedState) -> None:
        state.primary.phase = Phase.MILITARY
        state.primary.rounds_in_phase = 4
        assert check_transition(state.primary, OwnCounts(), state) == Phase.GOVERNANCE
        state.primary.phase = Phase.GOVERNANCE
        state.primary.rounds_in_phase = 2
        assert check_transition(state.primary, OwnCounts(), state) is None
        state.primary.rounds_in_phase = 3
        assert check_transition(state.primary, OwnCounts(), state) == Phase.SUSTAIN

    def test_sustain_is_terminal(self, state: PersistedState) -> None:
        state.primary.phase = Phase.SUSTAIN
        state.primary.rounds_in_phase = 1000
        assert check_transition(state.primary, OwnCounts(9, 9), state) is None


class TestRoundBookkeeping:
    def test_record_round_counts_both(self, state: PersistedState) -> None:
        record_round(state.primary)
        record_round(state.primary)
        assert state.primary.rounds_in_phase == 2
        assert state.primary.total_rounds == 2

    def test_apply_transition_resets_phase_rounds(self, state: PersistedState) -> None:
        state.primary.rounds_in_phase = 7
        state.primary.total_rounds = 7
        apply_transition(state.primary, Phase.WORLD_BUILD)
        assert state.primary.phase == Phase.WORLD_BUILD
        assert state.primary.rounds_in_phase == 0
        assert state.primary.total_rounds == 7


class TestWaiting:
    def test_skip_while_waiting(self, state: PersistedState) -> None:
        state.rival.phase = Phase.WORLD_BUILD
        state.primary.phase = Phase.COLONIZE
        assert should_skip_turn(state.rival, state)
        assert should_skip_turn(state.primary, state)

    def test_no_skip_in_active_phase(self, state: PersistedState) -> None:
        assert not should_skip_turn(state.primary, state)

    def test_rival_leaves_world_build_once_a_planet_exists(self, state: PersistedState) -> None:
        state.rival.phase = Phase.WORLD_BUILD
        assert waiting_advance(state.rival, state) is None
        state.add_planet(oid(5))
        assert waiting_advance(state.rival, state) == Phase.COLONIZE

    def test_waiting_advance_ignores_primary(self, state: PersistedState) -> None:
        state.primary.phase = Phase.WORLD_BUILD
        state.add_planet(oid(5))
        assert waiting_advance(state.primary, state) is None


class TestReconcile:
    def test_rival_economy_without_reactor_goes_back(self, state: PersistedState) -> None:
        state.rival.phase = Phase.ECONOMY
        assert reconcile_phase(state.rival, state) == Phase.CONTENT

    def test_rival_content_without_templates_goes_back(self, state: PersistedState) -> None:
        state.rival.phase = Phase.CONTENT
        state.add_planet(oid(5))
        assert reconcile_phase(state.rival, state) == Phase.COLONIZE

    def test_rival_content_without_planets_stays(self, state: PersistedState) -> None:
        state.rival.phase = Phase.CONTENT
        assert reconcile_phase(state.rival, state) is None

    def test_primary_never_reconciled(self, state: PersistedState) -> None:
        state.primary.phase = Phase.ECONOMY
        assert reconcile_phase(state.primary, state) is None


class TestTuning:
    @pytest.mark.parametrize(
        "phase,expected",
        [
            (Phase.GENESIS, 0.3),
            (Phase.WORLD_BUILD, 0.5),
            (Phase.CONTENT, 0.6),
            (Phase.ECONOMY, 0.3),
            (Phase.SUSTAIN, 0.9),
        ],
    )
    def test_temperature_is_capped_per_phase(self, phase: Phase, expected: float) -> None:
        assert phase_temperature(phase, 0.9) == expected

    def test_low_base_temperature_is_kept(self) -> None:
        assert phase_temperature(Phase.CONTENT, 0.2) == 0.2

    def test_objectives_differ_by_role(self) -> None:
        assert "Discover" in phase_objectives(Phase.WORLD_BUILD, Role.PRIMARY)
        assert "Waiting" in phase_objectives(Phase.WORLD_BUILD, Role.RIVAL)
