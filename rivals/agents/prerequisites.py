"""Narrowing of the legal action set to what can actually succeed now.

The phase table says what an agent may do; these filters remove actions
whose on-chain prerequisites are missing, so the collaborator is never
offered a move that is certain to fail. All functions are pure.
"""

from __future__ import annotations

from typing import Iterable

from ..world.queries import MissionTemplateInfo, PlanetInfo, ProposalInfo, ReactorInfo
from ..world.state import AgentState, PersistedState
from ..world.types import Phase, ProposalStatus
from .catalog import GOVERNANCE_ACTIONS, ActionId

A = ActionId

GOVERNANCE_PHASES = frozenset({Phase.GOVERNANCE, Phase.SUSTAIN})

NEEDS_SHIP = frozenset({A.ASSIGN_PILOT, A.ADD_CREW, A.DOCK_SHIP})
NEEDS_AGENT = frozenset({A.ASSIGN_PILOT, A.ADD_CREW, A.ASSIGN_OPERATOR, A.TRAIN_AGENT, A.UPGRADE_AGENT})
NEEDS_STATION = frozenset({A.ASSIGN_OPERATOR, A.DOCK_SHIP})
NEEDS_GALACTIC = frozenset({A.CREATE_PROPOSAL, A.ADD_LIQUIDITY, A.SWAP_GALACTIC_FOR_SUI, A.FUND_REWARD_POOL})
NEEDS_REACTOR = frozenset({A.ADD_LIQUIDITY, A.SWAP_GALACTIC_FOR_SUI, A.SWAP_SUI_FOR_GALACTIC})
SWAPS = frozenset({A.SWAP_GALACTIC_FOR_SUI, A.SWAP_SUI_FOR_GALACTIC})
PLANET_ACTIONS = frozenset({A.COLONIZE_PLANET, A.EXTRACT_RESOURCES, A.UPGRADE_DEFENSE})
MISSION_ACTIONS = frozenset({A.START_MISSION, A.COMPLETE_MISSION})


def _without(actions: frozenset[ActionId], removed: Iterable[ActionId]) -> frozenset[ActionId]:
    return actions - frozenset(removed)


def filter_by_holdings(
    actions: frozenset[ActionId],
    agent_state: AgentState,
    shared_state: PersistedState,
    has_galactic: bool,
) -> frozenset[ActionId]:
    """Drop actions needing voting power, proposals, fleet objects or GALACTIC."""
    if agent_state.voting_power_id:
        actions = _without(actions, {A.CREATE_VOTING_POWER})
    else:
        actions = _without(actions, {A.CREATE_PROPOSAL, A.CAST_VOTE})
    if not shared_state.proposal_ids:
        actions = _without(actions, {A.CAST_VOTE})
    if not agent_state.owned_ship_ids:
        actions = _without(actions, NEEDS_SHIP)
    if not agent_state.owned_agent_ids:
        actions = _without(actions, NEEDS_AGENT)
    if not agent_state.owned_station_ids:
        actions = _without(actions, NEEDS_STATION)
    if not has_galactic:
        actions = _without(actions, NEEDS_GALACTIC)
    return actions


def votable(proposals: list[ProposalInfo], epoch: int, voted: Iterable[str] = ()) -> list[ProposalInfo]:
    """Active proposals still inside their voting window and not yet voted on."""
    skip = set(voted)
    return [
        p for p in proposals
        if p.status == ProposalStatus.Active and p.voting_ends_at > epoch and p.id not in skip
    ]


def finalizable(proposals: list[ProposalInfo], epoch: int) -> list[ProposalInfo]:
    return [p for p in proposals if p.status == ProposalStatus.Active and p.voting_ends_at <= epoch]


def executable(proposals: list[ProposalInfo], epoch: int) -> list[ProposalInfo]:
    return [p for p in proposals if p.status == ProposalStatus.Passed and p.execution_after <= epoch]


def filter_by_world(
    actions: frozenset[ActionId],
    shared_state: PersistedState,
    planets: list[PlanetInfo],
    templates: list[MissionTemplateInfo],
    reactor: ReactorInfo | None,
    proposals: list[ProposalInfo],
    epoch: int,
    voted: Iterable[str] = (),
) -> frozenset[ActionId]:
    """Drop actions whose shared objects are missing, exhausted or already created."""
    shared = shared_state.shared_objects

    if planets and all(p.is_claimed for p in planets):
        actions = _without(actions, {A.COLONIZE_PLANET})
    if not planets:
        actions = _without(actions, PLANET_ACTIONS)
    if not templates:
        actions = _without(actions, MISSION_ACTIONS)

    if not shared.reactor_id:
        actions = _without(actions, NEEDS_REACTOR)
    elif reactor is not None and reactor.is_empty:
        # No price can be quoted against an empty pool
        actions = _without(actions, SWAPS)
    if not shared.insurance_pool_id:
        actions = _without(actions, {A.PURCHASE_INSURANCE})

    if shared.reactor_id:
        actions = _without(actions, {A.CREATE_AND_SHARE_REACTOR})
    if shared.insurance_pool_id:
        actions = _without(actions, {A.CREATE_AND_SHARE_INSURANCE_POOL})

    if not proposals:
        return _without(actions, {A.FINALIZE_PROPOSAL, A.EXECUTE_PROPOSAL, A.CAST_VOTE})
    if not finalizable(proposals, epoch):
        actions = _without(actions, {A.FINALIZE_PROPOSAL})
    if not executable(proposals, epoch):
        actions = _without(actions, {A.EXECUTE_PROPOSAL})
    if not votable(proposals, epoch, voted):
        actions = _without(actions, {A.CAST_VOTE})
    return actions


def is_governance_round(agent_state: AgentState, every: int = 3) -> bool:
    return agent_state.phase == Phase.SUSTAIN and agent_state.rounds_in_phase % every == 0


def restrict_to_governance(actions: frozenset[ActionId]) -> frozenset[ActionId]:
    """Governance subset of ``actions``; unchanged when that subset is empty."""
    governance = actions & GOVERNANCE_ACTIONS
    return governance or actions


def ordered(actions: Iterable[ActionId]) -> list[ActionId]:
    """Stable catalog order, for prompts and logs."""
    wanted = set(actions)
    return [a for a in ActionId if a in wanted]
