"""Phase-aware prompt builders for the decision collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence, TypeVar

from ..world.executor import known_ids_from_state
from ..world.queries import (
    ActiveMissionInfo,
    AgentInfo,
    FleetState,
    MissionTemplateInfo,
    PlanetInfo,
    ProposalInfo,
    ReactorInfo,
    ShipInfo,
    StationInfo,
)
from ..world.state import AgentState, PersistedState
from ..world.types import (
    DECIMALS,
    MissionType,
    Phase,
    PlanetType,
    ProposalStatus,
    ProposalType,
    ResourceType,
    Role,
    enum_label,
)
from .catalog import ActionId, KnownIds, action_doc

T = TypeVar("T")


class Profile(Protocol):
    name: str
    personality: str
    preferences: str


@dataclass
class PromptView:
    """Everything the user prompt shows for one turn of one agent."""

    state: PersistedState
    agent_state: AgentState
    rival_name: str
    own: FleetState
    rival: FleetState
    planets: list[PlanetInfo] = field(default_factory=list)
    templates: list[MissionTemplateInfo] = field(default_factory=list)
    proposals: list[ProposalInfo] = field(default_factory=list)
    galactic_balance: int | None = None
    reactor: ReactorInfo | None = None

    @property
    def phase(self) -> Phase:
        return self.agent_state.phase

    def known_ids(self) -> KnownIds:
        """Ids the collaborator was shown and may therefore reference."""
        return known_ids_from_state(
            self.state, self.agent_state, [m.id for m in self.own.missions]
        )


# --- formatters -----------------------------------------------------------


def fmt_agent(a: AgentInfo) -> str:
    flags = (" [STAKED]" if a.is_staked else "") + (" [ON MISSION]" if a.on_mission else "")
    return (
        f"  - {a.name} [{a.id}] ({a.agent_type} {a.agent_class}, Lv{a.level}, "
        f"XP:{a.experience}, FW:v{a.firmware_version}) "
        f"P{a.processing}/M{a.mobility}/W{a.power}/R{a.resilience}{flags}"
    )


def fmt_ship(s: ShipInfo) -> str:
    docked = " [DOCKED]" if s.is_docked else ""
    return (
        f"  - {s.name} [{s.id}] ({s.ship_class}) HP:{s.health}/{s.max_health} "
        f"SPD:{s.speed} FP:{s.firepower} Fuel:{s.fuel}/{s.max_fuel} "
        f"Crew:{s.crew_count}/{s.max_crew} Pilot:{s.pilot or 'none'}{docked}"
    )


def fmt_station(st: StationInfo) -> str:
    return f"  - {st.name} [{st.id}] ({st.station_type}, Lv{st.level}) at ({st.x}, {st.y}, {st.z})"


def fmt_planet(p: PlanetInfo) -> str:
    owner = p.owner[:8] + "..." if p.owner else "unclaimed"
    return (
        f"  - {p.name} [{p.id}] ({enum_label(PlanetType, p.planet_type)}, "
        f"{enum_label(ResourceType, p.primary_resource)}) owner:{owner} "
        f"pop:{p.population} def:{p.defense_level} "
        f"reserves:{p.extracted_resources}/{p.total_reserves}"
    )


def fmt_mission(m: MissionTemplateInfo) -> str:
    return (
        f"  - {m.name} [{m.id}] ({enum_label(MissionType, m.mission_type)}, "
        f"diff:{m.difficulty}, reward:{m.base_reward}, xp:{m.experience_reward}, "
        f"cost:{m.galactic_cost}) req:Lv{m.min_agent_level}/proc{m.min_processing}"
        f"/mob{m.min_mobility}/pow{m.min_power} completed:{m.times_completed}x"
    )


def fmt_active_mission(m: ActiveMissionInfo) -> str:
    return f"  - [{m.id}] template:{m.template_id or '?'} agent:{m.agent_id or '?'} ends epoch {m.ends_at}"


def fmt_proposal(p: ProposalInfo) -> str:
    status = enum_label(ProposalStatus, p.status)
    ptype = enum_label(ProposalType, p.proposal_type)
    execute = f", execute after epoch {p.execution_after}" if p.status == ProposalStatus.Passed else ""
    return (
        f'  - "{p.title}" [{p.id}] ({ptype}, status:{status}, '
        f"for:{p.votes_for}/against:{p.votes_against}, "
        f"voting ends epoch {p.voting_ends_at}{execute})"
    )


def fmt_list(items: Sequence[T], formatter: Callable[[T], str]) -> str:
    return "\n".join(formatter(i) for i in items) if items else "  (none)"


def _whole(raw: int) -> str:
    return f"{raw // DECIMALS:,}"


def _fleet_section(title: str, fleet: FleetState) -> str:
    return f"""=== {title} ===
Agents ({len(fleet.agents)}):
{fmt_list(fleet.agents, fmt_agent)}

Ships ({len(fleet.ships)}):
{fmt_list(fleet.ships, fmt_ship)}

Stations ({len(fleet.stations)}):
{fmt_list(fleet.stations, fmt_station)}"""


# --- prompts --------------------------------------------------------------


def build_system_prompt(
    profile: Profile,
    rival_name: str,
    rival_address: str,
    phase: Phase,
    objectives: str,
    actions: Sequence[ActionId],
) -> str:
    """Persona, phase objective, legal action schemas and output rules."""
    action_docs = "\n\n".join(action_doc(a) for a in actions)
    return f"""You are {profile.name}, an AI commander in the Sui-In-Space universe.
You are competing against {rival_name} at address {rival_address}.

{profile.personality}
{profile.preferences}

CURRENT PHASE: {phase.value}
OBJECTIVE: {objectives}

You must decide ONE action to take right now. Respond with a JSON object.
Also include a brief "reasoning" field explaining your strategic thinking.

Available actions for this phase:

{action_docs}

Rules:
- Pick ONE action only
- Include a "reasoning" field with 1-2 sentences of strategy
- Choose creative names that fit your personality and the sci-fi theme
- Consider what you and your rival own when deciding
- CRITICAL: Object IDs look like "0x" followed by 64 hex characters. You MUST copy exact IDs from the state below. NEVER invent, abbreviate, or make up IDs.
- All numeric values (coordinates, amounts, reserves) MUST be non-negative integers
- Respond with ONLY the JSON object, no other text"""


def build_user_prompt(view: PromptView) -> str:
    """Render the agent's view of the world for this turn."""
    state = view.state
    agent = view.agent_state
    shared = state.shared_objects
    phase = view.phase

    sections = [
        _fleet_section("YOUR FLEET", view.own),
        _fleet_section(f"{view.rival_name}'s FLEET", view.rival),
    ]
    prompt = "\n\n".join(sections)

    if view.galactic_balance is not None:
        prompt += f"\n\nYour GALACTIC balance: {_whole(view.galactic_balance)} GALACTIC"
    if view.reactor is not None:
        prompt += (
            f"\nReactor reserves: {_whole(view.reactor.galactic_reserve)} GALACTIC"
            f" / {_whole(view.reactor.sui_reserve)} SUI"
        )

    if view.planets:
        unclaimed = [p for p in view.planets if not p.is_claimed]
        claimed = [p for p in view.planets if p.is_claimed]
        if phase == Phase.COLONIZE and unclaimed:
            prompt += (
                f"\n\n=== UNCLAIMED PLANETS. Available to colonize ({len(unclaimed)}) ===\n"
                f"{fmt_list(unclaimed, fmt_planet)}"
            )
            if claimed:
                prompt += f"\n\n=== CLAIMED PLANETS ({len(claimed)}) ===\n{fmt_list(claimed, fmt_planet)}"
        else:
            prompt += f"\n\n=== PLANETS ({len(view.planets)}) ===\n{fmt_list(view.planets, fmt_planet)}"

    if view.templates:
        prompt += (
            f"\n\n=== MISSION TEMPLATES ({len(view.templates)}) ===\n"
            "Use the exact template ID (the value in [brackets]) for start_mission.\n"
            f"{fmt_list(view.templates, fmt_mission)}"
        )
    elif phase == Phase.CONTENT and agent.role == Role.RIVAL:
        prompt += (
            f"\n\nNo mission templates exist yet. Wait for {state.primary.name} to create them. "
            "Pick a different available action if possible."
        )

    if view.own.missions:
        prompt += (
            f"\n\n=== YOUR ACTIVE MISSIONS ({len(view.own.missions)}) ===\n"
            "Use the exact mission ID for complete_mission.\n"
            f"{fmt_list(view.own.missions, fmt_active_mission)}"
        )

    if phase in (Phase.ECONOMY, Phase.SUSTAIN):
        if shared.reactor_id:
            prompt += f"\n\nReactor ID: {shared.reactor_id}"
        if shared.insurance_pool_id:
            prompt += f"\nInsurance Pool ID: {shared.insurance_pool_id}"
        if shared.treasury_id:
            prompt += f"\nTreasury ID: {shared.treasury_id}"

    if phase in (Phase.GOVERNANCE, Phase.SUSTAIN):
        if shared.governance_registry_id:
            prompt += f"\n\nGovernance Registry ID: {shared.governance_registry_id}"
        if agent.voting_power_id:
            prompt += f"\nYour Voting Power ID: {agent.voting_power_id}"
        if view.proposals:
            prompt += f"\n\n=== PROPOSALS ({len(view.proposals)}) ===\n{fmt_list(view.proposals, fmt_proposal)}"
        elif state.proposal_ids:
            prompt += f"\nProposal IDs: {', '.join(state.proposal_ids)}"

    prompt += f"\n\nYour address: {agent.address}"
    if shared.mission_registry_id:
        prompt += f"\nMission Registry ID: {shared.mission_registry_id}"

    prompt += (
        f"\n\nPhase: {phase.value} (Round {agent.rounds_in_phase + 1} in this phase, "
        f"{agent.total_rounds} total)"
    )
    prompt += "\n\nWhat is your next move, Commander?"
    return prompt
