"""World module - persisted state, discovery and the action executor."""

from .state import AgentState, PersistedState, SharedObjectIds
from .store import StateRepository
from .types import Phase, Role

__all__ = [
    "AgentState",
    "PersistedState",
    "SharedObjectIds",
    "StateRepository",
    "Phase",
    "Role",
]
