"""Tests for action parsing and caller-side decision validation."""

from __future__ import annotations

import pytest

from rivals.agents.catalog import (
    ActionId,
    BuildShipParams,
    CreateMissionTemplateParams,
    DiscoverPlanetParams,
    IdSource,
    KnownIds,
    PARAMS_BY_ACTION,
    StartMissionParams,
    action_doc,
    parse_decision,
    required_fields,
    validate_decision,
)
from rivals.errors import ErrorCode, InvalidDecision
from rivals.world.types import ResourceType, ShipClass

from tests.testing_utils import oid


class TestParseDecision:
    def test_labels_are_case_insensitive(self) -> None:
        decision = parse_decision({"action": "build_ship", "name": "Viper", "ship_class": "fIgHtEr"})
        assert isinstance(decision, BuildShipParams)
        assert decision.ship_class == ShipClass.Fighter

    def test_integer_codes_accepted(self) -> None:
        decision = parse_decision({"action": "build_ship", "name": "Hauler", "ship_class": 2})
        assert decision.ship_class == ShipClass.Freighter

    def test_missing_action(self) -> None:
        with pytest.raises(InvalidDecision) as exc_info:
            parse_decision({"name": "x"})
        assert exc_info.value.code == ErrorCode.MISSING_ARGUMENT

    def test_unknown_action(self) -> None:
        with pytest.raises(InvalidDecision, match="Unknown action: warp_drive"):
            parse_decision({"action": "warp_drive"})

    def test_not_an_object(self) -> None:
        with pytest.raises(InvalidDecision):
            parse_decision(["build_ship"])  # type: ignore[arg-type]

    def test_bad_label(self) -> None:
        with pytest.raises(InvalidDecision, match="Invalid parameters for build_ship"):
            parse_decision({"action": "build_ship", "name": "x", "ship_class": "Submarine"})

    def test_missing_required_field(self) -> None:
        with pytest.raises(InvalidDecision, match="ship_class"):
            parse_decision({"action": "build_ship", "name": "x"})

    def test_negative_coordinates_clamp_to_zero(self) -> None:
        decision = parse_decision({
            "action": "discover_planet",
            "name": "Kepler",
            "planet_type": "Terran",
            "x": -40,
            "y": "12.7",
            "z": "far",
            "primary_resource": "Metal",
        })
        assert isinstance(decision, DiscoverPlanetParams)
        assert (decision.x, decision.y, decision.z) == (0, 12, 0)
        assert decision.secondary_resource is None
        assert decision.primary_resource == ResourceType.Metal

    def test_null_like_optionals(self) -> None:
        decision = parse_decision({
            "action": "start_mission",
            "template_id": oid(1),
            "agent_id": oid(2),
            "ship_id": "null",
        })
        assert isinstance(decision, StartMissionParams)
        assert decision.ship_id is None

    def test_mission_template_defaults(self) -> None:
        decision = parse_decision({
            "action": "create_mission_template",
            "name": "Deep Scan",
            "mission_type": "Exploration",
            "required_ship_class": "none",
            "galactic_cost": -5,
        })
        assert isinstance(decision, CreateMissionTemplateParams)
        assert decision.required_ship_class is None
        assert decision.galactic_cost == 0.0
        assert decision.base_reward == 100.0

    def test_reasoning_is_kept(self) -> None:
        decision = parse_decision({"action": "create_voting_power", "reasoning": "Need a voice"})
        assert decision.reasoning == "Need a voice"
        assert decision.action_id == ActionId.CREATE_VOTING_POWER

    def test_every_action_has_a_model(self) -> None:
        assert set(PARAMS_BY_ACTION) == set(ActionId)


class TestValidateDecision:
    def known(self) -> KnownIds:
        known = KnownIds()
        known.add(IdSource.OWN_AGENT, [oid(2)])
        known.add(IdSource.MISSION_TEMPLATE, [oid(1)])
        return known

    def test_action_not_available(self) -> None:
        decision = parse_decision({"action": "create_voting_power"})
        with pytest.raises(InvalidDecision) as exc_info:
            validate_decision(decision, {ActionId.BUILD_SHIP}, self.known())
        assert exc_info.value.code == ErrorCode.ACTION_NOT_AVAILABLE
        assert "build_ship" in exc_info.value.message

    def test_malformed_id(self) -> None:
        decision = parse_decision({"action": "train_agent", "agent_id": "0xabc"})
        with pytest.raises(InvalidDecision) as exc_info:
            validate_decision(decision, {ActionId.TRAIN_AGENT}, self.known())
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT
        assert exc_info.value.details["field"] == "agent_id"

    def test_unknown_id(self) -> None:
        decision = parse_decision({"action": "train_agent", "agent_id": oid(99)})
        with pytest.raises(InvalidDecision) as exc_info:
            validate_decision(decision, {ActionId.TRAIN_AGENT}, self.known())
        assert exc_info.value.code == ErrorCode.UNKNOWN_OBJECT

    def test_id_from_wrong_source(self) -> None:
        # A template id is not one of the agent's own agents
        decision = parse_decision({"action": "train_agent", "agent_id": oid(1)})
        with pytest.raises(InvalidDecision) as exc_info:
            validate_decision(decision, {ActionId.TRAIN_AGENT}, self.known())
        assert exc_info.value.code == ErrorCode.UNKNOWN_OBJECT

    def test_valid_references_pass(self) -> None:
        decision = parse_decision({"action": "start_mission", "template_id": oid(1), "agent_id": oid(2)})
        validate_decision(decision, {ActionId.START_MISSION}, self.known())

    def test_bad_recipient(self) -> None:
        decision = parse_decision({"action": "mint_galactic", "amount": 10, "recipient": "me"})
        with pytest.raises(InvalidDecision) as exc_info:
            validate_decision(decision, {ActionId.MINT_GALACTIC}, self.known())
        assert exc_info.value.details["field"] == "recipient"


class TestDocs:
    def test_doc_format(self) -> None:
        doc = action_doc(ActionId.CAST_VOTE)
        assert doc.startswith("cast_vote - Vote on a proposal\n  ")
        assert '"proposal_id"' in doc

    def test_every_action_documented(self) -> None:
        for action in ActionId:
            assert action_doc(action).startswith(action.value)

    def test_required_fields(self) -> None:
        assert required_fields(ActionId.BUILD_SHIP) == ("name", "ship_class")
        assert required_fields(ActionId.CREATE_VOTING_POWER) == ()
