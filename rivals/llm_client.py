"""LLM access for the decision collaborator, through litellm.

The run builds one ``LLMSettings`` from the ``llm:`` config block. Every
call returns a ``Completion`` with the reply text and what the call cost;
the runner charges that to the agent whose turn it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TypeVar

import instructor
import litellm
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

litellm.suppress_debug_info = True

JSON_OBJECT = {"type": "json_object"}


@dataclass(frozen=True)
class LLMSettings:
    model: str
    timeout: int = 60
    num_retries: int = 2
    max_tokens: int | None = None
    api_base: str | None = None

    def request_kwargs(self, temperature: float) -> dict[str, Any]:
        """Keyword arguments shared by plain and structured calls."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "timeout": self.timeout,
            "temperature": temperature,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        if self.api_base:
            # Self-hosted or gateway endpoint speaking the OpenAI protocol
            kwargs["api_base"] = self.api_base
        return kwargs


@dataclass
class Completion:
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def usage(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_response(cls, response: Any, model: str, text: str) -> Completion:
        usage = getattr(response, "usage", None)
        return cls(
            text=text,
            model=model,
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            cost=price(response),
        )


def price(response: Any) -> float:
    """USD cost of one response; models without a price entry are free."""
    try:
        return float(litellm.completion_cost(completion_response=response))
    except Exception:
        # litellm raises a bare Exception for unmapped models
        logger.debug("No price entry for this model")
        return 0.0


def complete_json(
    settings: LLMSettings,
    messages: list[dict[str, Any]],
    temperature: float,
) -> Completion:
    """Ask for a single JSON object.

    ``drop_params`` lets litellm strip ``response_format`` for providers
    without JSON mode; the caller still extracts the object from prose.
    Provider errors propagate unchanged.
    """
    response = litellm.completion(
        messages=messages,
        num_retries=settings.num_retries,
        response_format=JSON_OBJECT,
        drop_params=True,
        **settings.request_kwargs(temperature),
    )
    completion = Completion.from_response(
        response, settings.model, response.choices[0].message.content or ""
    )
    logger.debug(
        "LLM %s: %d tokens, $%.6f", settings.model, completion.total_tokens, completion.cost
    )
    return completion


def complete_structured(
    settings: LLMSettings,
    messages: list[dict[str, Any]],
    temperature: float,
    response_model: type[T],
) -> tuple[T, Completion]:
    """Extract ``response_model`` with instructor; it re-asks on validation errors."""
    client = instructor.from_litellm(litellm.completion)
    parsed, response = client.chat.completions.create_with_completion(
        messages=messages,
        response_model=response_model,
        max_retries=settings.num_retries,
        **settings.request_kwargs(temperature),
    )
    return parsed, Completion.from_response(response, settings.model, parsed.model_dump_json())
