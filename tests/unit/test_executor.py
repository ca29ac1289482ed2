"""Tests for ActionExecutor and GameTransactions.

Checks the transaction each decision produces, how created ids flow back
into the persisted state, and that rejected decisions never reach the
ledger.
"""

from __future__ import annotations

import pytest

from rivals.agents.catalog import parse_decision
from rivals.errors import ErrorCode, InvalidDecision, MissingResourceFailure, TransactionFailure
from rivals.ledger.transaction import Address, GasCoin, ObjectInput, SplitCoins, String, U64
from rivals.world.executor import ActionExecutor, ActionOutcome, ExecutionContext, insurance_premium
from rivals.world.queries import GameQueries
from rivals.world.resource_types import AdminCapKind, SingletonKind
from rivals.world.state import PersistedState
from rivals.ledger.bcs import U64_MAX
from rivals.world.types import DECIMALS, MINIMUM_LIQUIDITY, to_raw, u64

from tests.testing_utils import PACKAGE_ID, FakeLedger, FakeSigner, oid, type_of


@pytest.fixture
def executor(fake_ledger: FakeLedger, primary_signer: FakeSigner) -> ActionExecutor:
    ctx = ExecutionContext(fake_ledger, primary_signer, PACKAGE_ID)
    return ActionExecutor(ctx, GameQueries(fake_ledger, PACKAGE_ID), lambda: 42)


def run(executor: ActionExecutor, state: PersistedState, decision: dict) -> ActionOutcome:
    return executor.execute(parse_decision(decision), state, state.primary)


class TestFleetActions:
    def test_mint_agent_records_created_id(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        outcome = run(executor, fresh_state, {
            "action": "mint_agent", "name": "Oracle", "agent_type": "Android", "agent_class": "Hacker",
        })
        assert fake_ledger.targets() == ["mint_agent_to"]
        assert fresh_state.primary.owned_agent_ids == [outcome.created_id]
        plan, sender = fake_ledger.submitted[0]
        assert sender == executor.address
        assert String("Oracle") in plan.inputs
        assert Address(executor.address) in plan.inputs

    def test_build_ship_and_station(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        run(executor, fresh_state, {"action": "build_ship", "name": "Ledger", "ship_class": "Freighter"})
        run(executor, fresh_state, {
            "action": "build_station", "name": "Vault", "station_type": "YieldFarm", "x": 1, "y": 2, "z": 3,
        })
        assert fake_ledger.targets() == ["build_ship_to", "build_station_to"]
        assert len(fresh_state.primary.owned_ship_ids) == 1
        assert len(fresh_state.primary.owned_station_ids) == 1

    def test_dock_ship_updates_both_sides(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fresh_state.primary.owned_ship_ids = [oid(11)]
        fresh_state.primary.owned_station_ids = [oid(12)]
        run(executor, fresh_state, {"action": "dock_ship", "station_id": oid(12), "ship_id": oid(11)})
        assert fake_ledger.targets() == ["dock_ship", "dock"]

    def test_unknown_agent_rejected_before_submit(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        with pytest.raises(InvalidDecision) as exc_info:
            run(executor, fresh_state, {"action": "train_agent", "agent_id": oid(77)})
        assert exc_info.value.code == ErrorCode.UNKNOWN_OBJECT
        assert fake_ledger.submitted == []


class TestPlanets:
    def test_discover_planet_shares_and_records(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        outcome = run(executor, fresh_state, {
            "action": "discover_planet",
            "name": "Kepler",
            "planet_type": "Ocean",
            "primary_resource": "Bio",
            "secondary_resource": "Fuel",
        })
        assert fresh_state.planet_ids == [outcome.created_id]
        plan, _ = fake_ledger.submitted[0]
        calls = plan.move_calls()
        assert calls[0].function == "discover_planet"
        assert calls[1].target == "0x2::transfer::public_share_object"
        assert calls[1].type_arguments == (type_of("planet", "Planet"),)
        assert ObjectInput(fresh_state.shared_objects.cap(AdminCapKind.PLANET)) in plan.inputs

    def test_discover_planet_needs_admin_cap(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        del fresh_state.shared_objects.admin_caps[AdminCapKind.PLANET]
        with pytest.raises(MissingResourceFailure, match="PlanetAdminCap"):
            run(executor, fresh_state, {
                "action": "discover_planet", "name": "K", "planet_type": "Desert", "primary_resource": "Metal",
            })
        assert fake_ledger.submitted == []

    def test_colonize_claimed_planet_rejected(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        planet = fake_ledger.add_object("planet", "Planet", {"name": "Ash", "owner": {"vec": [oid(0xB2)]}})
        fresh_state.add_planet(planet)
        with pytest.raises(InvalidDecision) as exc_info:
            run(executor, fresh_state, {"action": "colonize_planet", "planet_id": planet})
        assert exc_info.value.code == ErrorCode.ALREADY_EXISTS
        assert fake_ledger.submitted == []

    def test_colonize_unclaimed_planet(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        planet = fake_ledger.add_object("planet", "Planet", {"name": "Ash", "owner": {"vec": []}})
        fresh_state.add_planet(planet)
        run(executor, fresh_state, {"action": "colonize_planet", "planet_id": planet})
        assert fake_ledger.targets() == ["colonize"]

    def test_extract_requires_ownership(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        planet = fake_ledger.add_object("planet", "Planet", {"name": "Ash", "owner": oid(0xB2)})
        fresh_state.add_planet(planet)
        with pytest.raises(InvalidDecision) as exc_info:
            run(executor, fresh_state, {"action": "extract_resources", "planet_id": planet})
        assert exc_info.value.code == ErrorCode.NOT_OWNER

    def test_extract_passes_current_epoch(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fake_ledger.epoch = 31
        planet = fake_ledger.add_object("planet", "Planet", {"name": "Ash", "owner": executor.address})
        fresh_state.add_planet(planet)
        run(executor, fresh_state, {"action": "extract_resources", "planet_id": planet})
        plan, _ = fake_ledger.submitted[0]
        assert U64(31) in plan.inputs


class TestMissions:
    def test_create_template_records_id_and_scales_amounts(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        outcome = run(executor, fresh_state, {
            "action": "create_mission_template",
            "name": "Vault Breach",
            "mission_type": "DataHeist",
            "galactic_cost": 250,
            "base_reward": 1000,
        })
        assert fresh_state.mission_template_ids == [outcome.created_id]
        plan, _ = fake_ledger.submitted[0]
        assert U64(250 * DECIMALS) in plan.inputs
        assert U64(1000 * DECIMALS) in plan.inputs

    def _mission_setup(self, fake_ledger: FakeLedger, state: PersistedState, level: int) -> tuple[str, str]:
        agent_id = fake_ledger.add_owned(
            state.primary.address, "agent", "Agent", {"name": "Oracle", "level": level, "processing": 5}
        )
        state.primary.owned_agent_ids = [agent_id]
        template = fake_ledger.add_object(
            "missions", "MissionTemplate",
            {"name": "Heist", "min_agent_level": 2, "galactic_cost": 7},
        )
        state.add_mission_template(template)
        fake_ledger.fund(state.primary.address, galactic=1000)
        return agent_id, template

    def test_start_mission_uses_seed_and_template_cost(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        agent_id, template = self._mission_setup(fake_ledger, fresh_state, level=3)
        run(executor, fresh_state, {"action": "start_mission", "template_id": template, "agent_id": agent_id})
        plan, _ = fake_ledger.submitted[0]
        assert U64(42) in plan.inputs
        split = next(c for c in plan.commands if isinstance(c, SplitCoins))
        assert plan.resolve(split.amounts[0]) == U64(7)

    def test_start_mission_checks_requirements(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        agent_id, template = self._mission_setup(fake_ledger, fresh_state, level=1)
        with pytest.raises(InvalidDecision, match="level 1 < 2"):
            run(executor, fresh_state, {"action": "start_mission", "template_id": template, "agent_id": agent_id})
        assert fake_ledger.submitted == []

    def test_start_mission_agent_must_be_on_chain(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        _, template = self._mission_setup(fake_ledger, fresh_state, level=3)
        fresh_state.primary.owned_agent_ids.append(oid(0xDEAD))
        with pytest.raises(InvalidDecision) as exc_info:
            run(executor, fresh_state, {"action": "start_mission", "template_id": template, "agent_id": oid(0xDEAD)})
        assert exc_info.value.code == ErrorCode.UNKNOWN_OBJECT

    def test_complete_mission_needs_an_active_mission(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        template = fake_ledger.add_object("missions", "MissionTemplate", {"name": "Heist"})
        fresh_state.add_mission_template(template)
        with pytest.raises(InvalidDecision):
            run(executor, fresh_state, {"action": "complete_mission", "template_id": template, "mission_id": oid(5)})

        mission = fake_ledger.add_owned(executor.address, "missions", "ActiveMission", {"template_id": template})
        run(executor, fresh_state, {"action": "complete_mission", "template_id": template, "mission_id": mission})
        assert fake_ledger.targets() == ["complete_mission"]

    def test_fund_reward_pool_needs_galactic_coin(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        with pytest.raises(MissingResourceFailure, match="GALACTIC coin"):
            run(executor, fresh_state, {"action": "fund_reward_pool", "amount": 10})
        assert fake_ledger.submitted == []


class TestEconomy:
    def test_reactor_created_once(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        outcome = run(executor, fresh_state, {"action": "create_and_share_reactor"})
        assert fresh_state.shared_objects.reactor_id == outcome.created_id
        with pytest.raises(InvalidDecision) as exc_info:
            run(executor, fresh_state, {"action": "create_and_share_reactor"})
        assert exc_info.value.code == ErrorCode.ALREADY_EXISTS
        assert len(fake_ledger.submitted) == 1

    def test_add_liquidity_caps_at_balance(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fresh_state.shared_objects.set_once(SingletonKind.REACTOR, oid(0x300))
        fake_ledger.fund(executor.address, galactic=5 * DECIMALS)
        outcome = run(executor, fresh_state, {"action": "add_liquidity", "galactic_amount": 50, "sui_amount": 1})
        assert "5000000000 GALACTIC" in outcome.description
        assert fresh_state.primary.lp_receipt_ids == [outcome.created_id]

    def test_add_liquidity_below_minimum(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fresh_state.shared_objects.set_once(SingletonKind.REACTOR, oid(0x300))
        fake_ledger.fund(executor.address, galactic=MINIMUM_LIQUIDITY - 1)
        with pytest.raises(MissingResourceFailure):
            run(executor, fresh_state, {"action": "add_liquidity", "galactic_amount": 50, "sui_amount": 1})
        assert fake_ledger.submitted == []

    def test_swap_needs_reactor(self, executor: ActionExecutor, fresh_state: PersistedState) -> None:
        with pytest.raises(MissingResourceFailure, match="Energy Reactor"):
            run(executor, fresh_state, {"action": "swap_sui_for_galactic", "sui_amount": 1})

    def test_purchase_insurance_premium(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fresh_state.shared_objects.set_once(SingletonKind.INSURANCE_POOL, oid(0x301))
        fake_ledger.fund(executor.address, galactic=10**15)
        outcome = run(executor, fresh_state, {"action": "purchase_insurance", "insured_amount": 10000})
        plan, _ = fake_ledger.submitted[0]
        split = next(c for c in plan.commands if isinstance(c, SplitCoins))
        assert plan.resolve(split.amounts[0]) == U64(200 * DECIMALS)
        assert fresh_state.primary.insurance_policy_ids == [outcome.created_id]

    @pytest.mark.parametrize("insured,premium", [(10_000, 200), (1, 1), (0, 0), (50, 1), (51, 2)])
    def test_insurance_premium_rounds_up(self, insured: int, premium: int) -> None:
        assert insurance_premium(insured) == premium

    def test_mint_galactic_defaults_to_self(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        run(executor, fresh_state, {"action": "mint_galactic", "amount": 3})
        plan, _ = fake_ledger.submitted[0]
        assert Address(executor.address) in plan.inputs
        assert U64(3 * DECIMALS) in plan.inputs

    def test_transfer_sui_splits_gas(self, executor: ActionExecutor, fake_ledger: FakeLedger) -> None:
        executor.transfer_sui(oid(0xB2), 200)
        plan, _ = fake_ledger.submitted[0]
        split = plan.commands[0]
        assert isinstance(split, SplitCoins)
        assert split.coin == GasCoin()
        assert plan.move_calls() == []


class TestGovernance:
    def test_voting_power_is_stored(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        outcome = run(executor, fresh_state, {"action": "create_voting_power"})
        assert fresh_state.primary.voting_power_id == outcome.created_id

    def test_proposal_needs_voting_power(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fake_ledger.fund(executor.address, galactic=10**15)
        with pytest.raises(MissingResourceFailure, match="VotingPower"):
            run(executor, fresh_state, {"action": "create_proposal", "title": "Lower fees"})

    def test_proposal_deposit_by_type(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fake_ledger.fund(executor.address, galactic=10**15)
        fresh_state.primary.voting_power_id = oid(0x400)
        outcome = run(executor, fresh_state, {
            "action": "create_proposal", "title": "Fund fleet", "proposal_type": "TreasurySpend",
        })
        assert fresh_state.proposal_ids == [outcome.created_id]
        plan, _ = fake_ledger.submitted[0]
        split = next(c for c in plan.commands if isinstance(c, SplitCoins))
        assert plan.resolve(split.amounts[0]) == U64(10_000 * DECIMALS)

    def test_cast_vote_records_vote(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fresh_state.primary.voting_power_id = oid(0x400)
        fresh_state.add_proposal(oid(0x500))
        run(executor, fresh_state, {"action": "cast_vote", "proposal_id": oid(0x500), "support": False})
        assert fresh_state.primary.voted_proposal_ids == [oid(0x500)]

    def test_update_governance_parameters(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        executor.update_governance_parameters(fresh_state, 1, 0, 10**9, 10)
        assert fake_ledger.targets() == ["update_parameters"]
        plan, _ = fake_ledger.submitted[0]
        assert ObjectInput(fresh_state.shared_objects.cap(AdminCapKind.GOVERNANCE)) in plan.inputs


class TestOversizedArguments:
    """Out-of-range numbers from a decision are clamped before encoding."""

    @pytest.mark.parametrize("value,expected", [
        (2**70, U64_MAX),
        (-5, 0),
        ("12", 12),
        (float("inf"), 0),
        (float("nan"), 0),
        ("1e30", U64_MAX),
        (None, 0),
    ])
    def test_u64_clamps(self, value: object, expected: int) -> None:
        assert u64(value) == expected

    def test_to_raw_clamps(self) -> None:
        assert to_raw(1e12) == U64_MAX
        assert to_raw(float("inf")) == 0
        assert to_raw(2) == 2 * DECIMALS

    def test_build_station_with_huge_coordinate(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        run(executor, fresh_state, {
            "action": "build_station", "name": "Far", "station_type": "WarpGate", "x": 2**70, "y": 1, "z": 2,
        })
        assert fake_ledger.targets() == ["build_station_to"]
        plan, _ = fake_ledger.submitted[0]
        assert U64(U64_MAX) in plan.inputs

    @pytest.mark.parametrize("amount,raw", [(1e12, U64_MAX), ("inf", 0)])
    def test_mint_galactic_amount_clamped(
        self,
        executor: ActionExecutor,
        fresh_state: PersistedState,
        fake_ledger: FakeLedger,
        amount: object,
        raw: int,
    ) -> None:
        run(executor, fresh_state, {"action": "mint_galactic", "amount": amount})
        plan, _ = fake_ledger.submitted[0]
        assert U64(raw) in plan.inputs


class TestFailures:
    def test_failed_status_raises_with_digest(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        fake_ledger.fail_next("MoveAbort(planet, 3)")
        with pytest.raises(TransactionFailure) as exc_info:
            run(executor, fresh_state, {"action": "build_ship", "name": "X", "ship_class": "Scout"})
        assert exc_info.value.reason == "MoveAbort(planet, 3)"
        assert exc_info.value.digest == "digest-fail-0"
        assert fresh_state.primary.owned_ship_ids == []

    def test_created_object_of_other_package_ignored(
        self, executor: ActionExecutor, fresh_state: PersistedState, fake_ledger: FakeLedger
    ) -> None:
        from rivals.ledger.client import ObjectChange, TransactionOutcome

        fake_ledger.queue(TransactionOutcome(
            "success", "d1",
            object_changes=[ObjectChange("created", oid(5), type_of("ship", "Ship", oid(0xFFFF)))],
        ))
        outcome = run(executor, fresh_state, {"action": "build_ship", "name": "X", "ship_class": "Scout"})
        assert outcome.created_id is None
        assert fresh_state.primary.owned_ship_ids == []
