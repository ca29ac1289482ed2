"""Phase state machine: legal actions, transitions and per-phase tuning.

Progressions:
    primary: GENESIS -> WORLD_BUILD -> CONTENT -> ECONOMY -> MILITARY -> GOVERNANCE -> SUSTAIN
    rival:   GENESIS -> COLONIZE    -> CONTENT -> ECONOMY -> MILITARY -> GOVERNANCE -> SUSTAIN

Everything here is pure. The orchestrator owns persistence and calls
``record_round`` / ``apply_transition`` to mutate an AgentState.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..world.state import AgentState, PersistedState
from ..world.types import Phase, Role
from .catalog import ActionId

A = ActionId

GENESIS_ACTIONS = frozenset({A.MINT_AGENT, A.BUILD_SHIP})
WORLD_BUILD_ACTIONS = frozenset({A.DISCOVER_PLANET})
COLONIZE_ACTIONS = frozenset({A.COLONIZE_PLANET, A.EXTRACT_RESOURCES, A.UPGRADE_DEFENSE})
CONTENT_PRIMARY_ACTIONS = frozenset({A.CREATE_MISSION_TEMPLATE, A.MINT_GALACTIC, A.FUND_REWARD_POOL})
CONTENT_RIVAL_ACTIONS = frozenset({A.START_MISSION, A.COMPLETE_MISSION})
ECONOMY_PRIMARY_ACTIONS = frozenset({
    A.CREATE_AND_SHARE_REACTOR,
    A.CREATE_AND_SHARE_INSURANCE_POOL,
    A.MINT_GALACTIC,
    A.ADD_LIQUIDITY,
})
ECONOMY_RIVAL_ACTIONS = frozenset({
    A.ADD_LIQUIDITY,
    A.SWAP_GALACTIC_FOR_SUI,
    A.SWAP_SUI_FOR_GALACTIC,
    A.PURCHASE_INSURANCE,
})
MILITARY_PRIMARY_ACTIONS = frozenset({
    A.BUILD_SHIP,
    A.BUILD_STATION,
    A.MINT_AGENT,
    A.ASSIGN_PILOT,
    A.ADD_CREW,
    A.ASSIGN_OPERATOR,
    A.DOCK_SHIP,
})
MILITARY_RIVAL_ACTIONS = frozenset({
    A.BUILD_SHIP,
    A.MINT_AGENT,
    A.ASSIGN_PILOT,
    A.ADD_CREW,
    A.DOCK_SHIP,
})
GOVERNANCE_PHASE_ACTIONS = frozenset({
    A.CREATE_VOTING_POWER,
    A.CREATE_PROPOSAL,
    A.CAST_VOTE,
    A.MINT_GALACTIC,
})

# Proposal finalization/execution is automated by the orchestrator and is
# never offered to the collaborator.
SUSTAIN_UNIVERSE = frozenset(ActionId) - {A.FINALIZE_PROPOSAL, A.EXECUTE_PROPOSAL}

PRIMARY_ONLY_BOOTSTRAP = frozenset({
    A.DISCOVER_PLANET,
    A.CREATE_MISSION_TEMPLATE,
    A.FUND_REWARD_POOL,
    A.CREATE_AND_SHARE_REACTOR,
    A.CREATE_AND_SHARE_INSURANCE_POOL,
})

_EMPTY: frozenset[ActionId] = frozenset()

_ACTIONS: dict[tuple[Phase, Role], frozenset[ActionId]] = {
    (Phase.GENESIS, Role.PRIMARY): GENESIS_ACTIONS,
    (Phase.GENESIS, Role.RIVAL): GENESIS_ACTIONS,
    (Phase.WORLD_BUILD, Role.PRIMARY): WORLD_BUILD_ACTIONS,
    (Phase.WORLD_BUILD, Role.RIVAL): _EMPTY,
    (Phase.COLONIZE, Role.PRIMARY): _EMPTY,
    (Phase.COLONIZE, Role.RIVAL): COLONIZE_ACTIONS,
    (Phase.CONTENT, Role.PRIMARY): CONTENT_PRIMARY_ACTIONS,
    (Phase.CONTENT, Role.RIVAL): CONTENT_RIVAL_ACTIONS,
    (Phase.ECONOMY, Role.PRIMARY): ECONOMY_PRIMARY_ACTIONS,
    (Phase.ECONOMY, Role.RIVAL): ECONOMY_RIVAL_ACTIONS,
    (Phase.MILITARY, Role.PRIMARY): MILITARY_PRIMARY_ACTIONS,
    (Phase.MILITARY, Role.RIVAL): MILITARY_RIVAL_ACTIONS,
    (Phase.GOVERNANCE, Role.PRIMARY): GOVERNANCE_PHASE_ACTIONS,
    (Phase.GOVERNANCE, Role.RIVAL): GOVERNANCE_PHASE_ACTIONS,
    (Phase.SUSTAIN, Role.PRIMARY): SUSTAIN_UNIVERSE,
    (Phase.SUSTAIN, Role.RIVAL): SUSTAIN_UNIVERSE - PRIMARY_ONLY_BOOTSTRAP,
}

# Phases in which a role has nothing to do but wait for the other agent
WAITING_PHASES: dict[Role, Phase] = {
    Role.RIVAL: Phase.WORLD_BUILD,
    Role.PRIMARY: Phase.COLONIZE,
}


@dataclass(frozen=True)
class OwnCounts:
    """Counts of game objects the acting agent owns on chain."""

    agents: int = 0
    ships: int = 0

    @classmethod
    def of(cls, agent_state: AgentState) -> OwnCounts:
        return cls(len(agent_state.owned_agent_ids), len(agent_state.owned_ship_ids))


def get_available_actions(phase: Phase, role: Role) -> frozenset[ActionId]:
    """Legal action whitelist for ``(phase, role)``; empty while waiting."""
    return _ACTIONS[(phase, role)]


def check_transition(
    agent_state: AgentState, own_counts: OwnCounts, shared_state: PersistedState
) -> Phase | None:
    """Next phase if the current phase's exit condition holds, else None."""
    phase = agent_state.phase
    rounds = agent_state.rounds_in_phase
    primary = agent_state.role == Role.PRIMARY

    if phase == Phase.GENESIS:
        if own_counts.agents >= 1 and own_counts.ships >= 1:
            return Phase.WORLD_BUILD if primary else Phase.COLONIZE
        return None

    if phase == Phase.WORLD_BUILD:
        return Phase.CONTENT if len(shared_state.planet_ids) >= 5 else None

    if phase == Phase.COLONIZE:
        # Rival waits on the primary's first template even after its quota
        if rounds >= 3 and len(shared_state.mission_template_ids) >= 1:
            return Phase.CONTENT
        return None

    if phase == Phase.CONTENT:
        if primary:
            return Phase.ECONOMY if len(shared_state.mission_template_ids) >= 3 else None
        if rounds >= 3 and shared_state.shared_objects.reactor_id:
            return Phase.ECONOMY
        return None

    if phase == Phase.ECONOMY:
        return Phase.MILITARY if rounds >= (4 if primary else 3) else None

    if phase == Phase.MILITARY:
        return Phase.GOVERNANCE if rounds >= 4 else None

    if phase == Phase.GOVERNANCE:
        return Phase.SUSTAIN if rounds >= 3 else None

    return None


def should_skip_turn(agent_state: AgentState, shared_state: PersistedState) -> bool:
    """True while the agent is waiting or has no legal action."""
    if WAITING_PHASES[agent_state.role] == agent_state.phase:
        return True
    return not get_available_actions(agent_state.phase, agent_state.role)


def apply_transition(agent_state: AgentState, next_phase: Phase) -> None:
    agent_state.phase = next_phase
    agent_state.rounds_in_phase = 0


def record_round(agent_state: AgentState) -> None:
    agent_state.rounds_in_phase += 1
    agent_state.total_rounds += 1


def waiting_advance(agent_state: AgentState, shared_state: PersistedState) -> Phase | None:
    """A rival parked in WORLD_BUILD may start colonizing once a planet exists."""
    if (
        agent_state.role == Role.RIVAL
        and agent_state.phase == Phase.WORLD_BUILD
        and shared_state.planet_ids
    ):
        return Phase.COLONIZE
    return None


def reconcile_phase(agent_state: AgentState, shared_state: PersistedState) -> Phase | None:
    """Correct a rival phase that ran ahead of the shared world.

    Applies at startup only: a rival in ECONOMY without a reactor goes back
    to CONTENT; a rival in CONTENT with no templates but existing planets
    goes back to COLONIZE.
    """
    if agent_state.role != Role.RIVAL:
        return None
    if agent_state.phase == Phase.ECONOMY and not shared_state.shared_objects.reactor_id:
        return Phase.CONTENT
    if (
        agent_state.phase == Phase.CONTENT
        and not shared_state.mission_template_ids
        and shared_state.planet_ids
    ):
        return Phase.COLONIZE
    return None


_OBJECTIVES: dict[Phase, tuple[str, str]] = {
    Phase.GENESIS: (
        "Build your initial fleet. Mint 1 agent and build 1 ship to get started.",
        "Build your initial fleet. Mint 1 agent and build 1 ship to get started.",
    ),
    Phase.WORLD_BUILD: (
        "Discover 5-8 planets of varied types across different galaxies and systems. "
        "Each planet should have different resources.",
        "Waiting for NEXUS-7 to discover planets...",
    ),
    Phase.COLONIZE: (
        "KRAIT-X is colonizing planets.",
        "Colonize unclaimed planets to establish territory. Upgrade defenses on your planets.",
    ),
    Phase.CONTENT: (
        "Create 3-5 diverse mission templates (DataHeist, Espionage, Combat, Exploration). "
        "Mint GALACTIC tokens and fund the reward pool.",
        "Start and complete available missions to earn rewards and experience.",
    ),
    Phase.ECONOMY: (
        "Create the Energy Reactor (liquidity pool) and Insurance Pool. "
        "Mint GALACTIC and add initial liquidity.",
        "Participate in DeFi: add liquidity, make swaps, purchase insurance.",
    ),
    Phase.MILITARY: (
        "Build economic fleet (Freighters, Carriers). Build stations. Assign crews and operators.",
        "Build war fleet (Fighters, Dreadnoughts, Battleships). Assign pilots and crew.",
    ),
    Phase.GOVERNANCE: (
        "Create voting power, submit proposals, and cast votes on governance issues.",
        "Create voting power, submit proposals, and cast votes on governance issues.",
    ),
    Phase.SUSTAIN: (
        "All actions available. PRIORITIES: (1) Add liquidity to the reactor (add_liquidity), "
        "(2) Fund the reward pool, (3) Create governance proposals, (4) Run missions, "
        "(5) Expand fleet/territory. You MUST use economy actions (add_liquidity, swap, "
        "mint_galactic) and governance actions (create_voting_power, create_proposal). "
        "Do NOT only train agents or build ships.",
        "All actions available. PRIORITIES: (1) Add liquidity to the reactor (add_liquidity), "
        "(2) Start and complete missions, (3) Make swaps (swap_galactic_for_sui, "
        "swap_sui_for_galactic), (4) Purchase insurance, (5) Vote on proposals. You MUST use "
        "economy actions and governance. Do NOT only train agents or build ships.",
    ),
}


def phase_objectives(phase: Phase, role: Role) -> str:
    primary_text, rival_text = _OBJECTIVES[phase]
    return primary_text if role == Role.PRIMARY else rival_text


# Upper bound on sampling temperature per phase; None means uncapped
_TEMPERATURE_CAPS: dict[Phase, float | None] = {
    Phase.GENESIS: 0.3,
    Phase.WORLD_BUILD: 0.5,
    Phase.COLONIZE: 0.3,
    Phase.CONTENT: 0.6,
    Phase.ECONOMY: 0.3,
    Phase.MILITARY: 0.5,
    Phase.GOVERNANCE: 0.6,
    Phase.SUSTAIN: None,
}


def phase_temperature(phase: Phase, base: float) -> float:
    cap = _TEMPERATURE_CAPS[phase]
    return base if cap is None else min(base, cap)
