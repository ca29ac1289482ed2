"""Agents module - phase machine, action catalog and LLM decisions."""

from .catalog import ActionId, ActionParams, parse_decision, validate_decision
from .phases import check_transition, get_available_actions, should_skip_turn

__all__ = [
    "ActionId",
    "ActionParams",
    "parse_decision",
    "validate_decision",
    "check_transition",
    "get_available_actions",
    "should_skip_turn",
]
