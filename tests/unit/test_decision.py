"""Tests for the decision collaborator adapter."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from rivals.agents.catalog import ActionId, BuildShipParams, IdSource, KnownIds
from rivals.agents.decision import DecisionEnvelope, DecisionMaker, DecisionResult, extract_json_object
from rivals.errors import DecisionUnavailable, ErrorCode, InvalidDecision
from rivals.llm_client import Completion, LLMSettings

from tests.testing_utils import oid

LEGAL = frozenset({ActionId.BUILD_SHIP, ActionId.TRAIN_AGENT})


def llm_result(content: str) -> Completion:
    return Completion(text=content, model="test-model", prompt_tokens=30, completion_tokens=12, cost=0.002)


def decide(maker: DecisionMaker, known: KnownIds | None = None) -> DecisionResult:
    return maker.decide("system", "user", LEGAL, known or KnownIds(), 0.5)


class TestExtractJsonObject:
    def test_plain_json(self) -> None:
        assert extract_json_object('{"action": "build_ship"}') == {"action": "build_ship"}

    def test_fenced_block(self) -> None:
        raw = 'Here you go:\n```json\n{"action": "mint_agent"}\n```\nGood luck!'
        assert extract_json_object(raw) == {"action": "mint_agent"}

    def test_object_inside_prose(self) -> None:
        raw = 'I choose {"action": "build_ship", "name": "A {b} c"} because reasons.'
        assert extract_json_object(raw) == {"action": "build_ship", "name": "A {b} c"}

    def test_skips_unparseable_braces(self) -> None:
        raw = 'Plan {not json} then {"action": "train_agent"}'
        assert extract_json_object(raw) == {"action": "train_agent"}

    def test_empty_reply(self) -> None:
        with pytest.raises(InvalidDecision, match="Empty"):
            extract_json_object("   ")

    def test_array_is_not_an_object(self) -> None:
        with pytest.raises(InvalidDecision):
            extract_json_object('["build_ship"]')


class TestDecisionMaker:
    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_valid_decision(self, mock_call: MagicMock) -> None:
        mock_call.return_value = llm_result(json.dumps({
            "action": "build_ship", "name": "Viper", "ship_class": "Fighter", "reasoning": "Speed",
        }))
        result = decide(DecisionMaker("test-model", max_tokens=300, api_base="http://gw"))

        assert isinstance(result.decision, BuildShipParams)
        assert result.cost == 0.002
        assert result.usage["total_tokens"] == 42
        settings, messages, temperature = mock_call.call_args.args
        assert settings == LLMSettings("test-model", max_tokens=300, api_base="http://gw")
        assert temperature == 0.5
        assert [m["role"] for m in messages] == ["system", "user"]

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_raw_reply_kept(self, mock_call: MagicMock) -> None:
        reply = 'Sure: {"action": "build_ship", "name": "V", "ship_class": 0}'
        mock_call.return_value = llm_result(reply)
        result = decide(DecisionMaker("test-model"))
        assert result.raw == reply

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_illegal_action_rejected(self, mock_call: MagicMock) -> None:
        mock_call.return_value = llm_result('{"action": "create_voting_power"}')
        with pytest.raises(InvalidDecision) as exc_info:
            decide(DecisionMaker("test-model"))
        assert exc_info.value.code == ErrorCode.ACTION_NOT_AVAILABLE

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_unshown_id_rejected(self, mock_call: MagicMock) -> None:
        known = KnownIds()
        known.add(IdSource.OWN_AGENT, [oid(1)])
        mock_call.return_value = llm_result(json.dumps({"action": "train_agent", "agent_id": oid(2)}))
        with pytest.raises(InvalidDecision) as exc_info:
            decide(DecisionMaker("test-model"), known)
        assert exc_info.value.code == ErrorCode.UNKNOWN_OBJECT

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_garbage_reply(self, mock_call: MagicMock) -> None:
        mock_call.return_value = llm_result("I'd rather not say.")
        with pytest.raises(InvalidDecision, match="No JSON object"):
            decide(DecisionMaker("test-model"))

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_json")
    def test_provider_error_becomes_unavailable(self, mock_call: MagicMock) -> None:
        mock_call.side_effect = TimeoutError("gateway timed out")
        with pytest.raises(DecisionUnavailable, match="gateway timed out") as exc_info:
            decide(DecisionMaker("test-model"))
        assert exc_info.value.retriable
        assert exc_info.value.details["model"] == "test-model"

    # mock-ok: LLM calls are external API
    @patch("rivals.agents.decision.complete_structured")
    def test_structured_mode(self, mock_structured: MagicMock) -> None:
        envelope = MagicMock()
        envelope.decision = BuildShipParams(name="Viper", ship_class=1)
        mock_structured.return_value = (envelope, llm_result("{}"))

        result = decide(DecisionMaker("test-model", structured=True))

        assert result.decision.name == "Viper"
        assert mock_structured.call_args.args[3] is DecisionEnvelope
        assert result.cost == 0.002
