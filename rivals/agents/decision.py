"""Decision collaborator adapter.

Sends the system and user prompts to the LLM, extracts one JSON object from
the reply, and turns it into a validated ActionParams. Nothing reaches the
executor unless the action is legal for the phase and every referenced id
was present in the prompt.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from pydantic import BaseModel

from ..errors import DecisionUnavailable, InvalidDecision
from ..llm_client import Completion, LLMSettings, complete_json, complete_structured
from .catalog import ActionId, ActionParams, Decision, KnownIds, parse_decision, validate_decision

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class DecisionEnvelope(BaseModel):
    """Wrapper used for instructor extraction of the decision union."""

    decision: Decision


@dataclass
class DecisionResult:
    decision: ActionParams
    raw: str
    cost: float = 0.0
    usage: dict[str, Any] = field(default_factory=dict)


def _balanced_objects(text: str) -> Iterator[str]:
    """Yield brace-balanced ``{...}`` spans in order, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(raw: str) -> dict[str, Any]:
    """Pull one JSON object out of an LLM reply.

    Tries, in order: the whole reply, a fenced code block, and the first
    brace-balanced span in surrounding prose that parses.

    Raises:
        InvalidDecision: No JSON object could be recovered.
    """
    text = raw.strip()
    if not text:
        raise InvalidDecision("Empty response from decision model")

    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    for block in _FENCE.findall(text):
        parsed = _loads_object(block.strip())
        if parsed is not None:
            return parsed

    for span in _balanced_objects(text):
        parsed = _loads_object(span)
        if parsed is not None:
            return parsed

    raise InvalidDecision(f"No JSON object in response: {text[:120]}")


class DecisionMaker:
    """Asks the LLM for one action and validates the answer."""

    def __init__(
        self,
        model: str,
        timeout: int = 60,
        num_retries: int = 2,
        structured: bool = False,
        max_tokens: int | None = None,
        api_base: str | None = None,
    ) -> None:
        self.settings = LLMSettings(
            model=model,
            timeout=timeout,
            num_retries=num_retries,
            max_tokens=max_tokens,
            api_base=api_base,
        )
        self.structured = structured

    def _complete(self, messages: list[dict[str, Any]], temperature: float) -> tuple[ActionParams, Completion]:
        if self.structured:
            envelope, completion = complete_structured(
                self.settings, messages, temperature, DecisionEnvelope
            )
            return envelope.decision, completion

        completion = complete_json(self.settings, messages, temperature)
        return parse_decision(extract_json_object(completion.text)), completion

    def decide(
        self,
        system_prompt: str,
        user_prompt: str,
        legal_actions: frozenset[ActionId],
        known_ids: KnownIds,
        temperature: float,
    ) -> DecisionResult:
        """One LLM round trip producing a validated decision.

        Raises:
            DecisionUnavailable: The LLM call failed.
            InvalidDecision: The reply is unusable, illegal or references
                ids that were not shown.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            decision, completion = self._complete(messages, temperature)
        except InvalidDecision:
            raise
        except Exception as e:
            # litellm and instructor raise provider-specific exception types
            raise DecisionUnavailable(f"LLM call failed: {e}", model=self.settings.model) from e

        validate_decision(decision, legal_actions, known_ids)
        logger.debug("Decision %s (%s)", decision.action_id.value, decision.reasoning[:80])
        return DecisionResult(
            decision=decision, raw=completion.text, cost=completion.cost, usage=completion.usage
        )
