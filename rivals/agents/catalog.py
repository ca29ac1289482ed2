"""Action catalog: identifiers, parameter schemas and their documentation.

Every action the decision collaborator can select has one pydantic model
with a Literal ``action`` discriminator. ``parse_decision`` turns the
collaborator's JSON object into exactly one of these models, and
``validate_decision`` checks it against the legal action set and the ids
actually present in the state before anything is encoded.

Usage:
    decision = parse_decision({"action": "build_ship", "name": "Viper",
                               "ship_class": "Fighter"})
    validate_decision(decision, legal_actions, known_ids)
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Callable, ClassVar, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ErrorCode, InvalidDecision
from ..world.types import (
    AgentClass,
    AgentType,
    MissionType,
    PlanetType,
    ProposalType,
    ResourceType,
    ShipClass,
    StationType,
    enum_labels,
    u64,
)

OBJECT_ID_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


def is_valid_object_id(value: object) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


class ActionId(str, Enum):
    """Closed set of actions. Values are the wire names the collaborator uses."""

    MINT_AGENT = "mint_agent"
    BUILD_SHIP = "build_ship"
    BUILD_STATION = "build_station"
    TRAIN_AGENT = "train_agent"
    UPGRADE_AGENT = "upgrade_agent"
    ASSIGN_PILOT = "assign_pilot"
    ADD_CREW = "add_crew"
    DISCOVER_PLANET = "discover_planet"
    COLONIZE_PLANET = "colonize_planet"
    EXTRACT_RESOURCES = "extract_resources"
    UPGRADE_DEFENSE = "upgrade_defense"
    CREATE_MISSION_TEMPLATE = "create_mission_template"
    FUND_REWARD_POOL = "fund_reward_pool"
    START_MISSION = "start_mission"
    COMPLETE_MISSION = "complete_mission"
    MINT_GALACTIC = "mint_galactic"
    CREATE_AND_SHARE_REACTOR = "create_and_share_reactor"
    CREATE_AND_SHARE_INSURANCE_POOL = "create_and_share_insurance_pool"
    ADD_LIQUIDITY = "add_liquidity"
    SWAP_GALACTIC_FOR_SUI = "swap_galactic_for_sui"
    SWAP_SUI_FOR_GALACTIC = "swap_sui_for_galactic"
    PURCHASE_INSURANCE = "purchase_insurance"
    ASSIGN_OPERATOR = "assign_operator"
    DOCK_SHIP = "dock_ship"
    CREATE_VOTING_POWER = "create_voting_power"
    CREATE_PROPOSAL = "create_proposal"
    CAST_VOTE = "cast_vote"
    FINALIZE_PROPOSAL = "finalize_proposal"
    EXECUTE_PROPOSAL = "execute_proposal"


GOVERNANCE_ACTIONS: frozenset[ActionId] = frozenset({
    ActionId.CREATE_VOTING_POWER,
    ActionId.CREATE_PROPOSAL,
    ActionId.CAST_VOTE,
    ActionId.FINALIZE_PROPOSAL,
    ActionId.EXECUTE_PROPOSAL,
})


class IdSource(str, Enum):
    """Where a referenced object id must come from."""

    OWN_AGENT = "own_agent"
    OWN_SHIP = "own_ship"
    OWN_STATION = "own_station"
    OWN_MISSION = "own_mission"
    PLANET = "planet"
    MISSION_TEMPLATE = "mission_template"
    PROPOSAL = "proposal"


# --- field coercion ---------------------------------------------------------


def _by_label(enum_cls: type[Enum]) -> Callable[[Any], Any]:
    """Accept an enum label (case-insensitive) or its wire code."""

    def coerce(value: Any) -> Any:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            for member in enum_cls:
                if member.name.lower() == value.strip().lower():
                    return member
            raise ValueError(f"expected one of {[m.name for m in enum_cls]}, got {value!r}")
        return value

    return coerce


def _optional_label(enum_cls: type[Enum]) -> Callable[[Any], Any]:
    strict = _by_label(enum_cls)

    def coerce(value: Any) -> Any:
        if value is None or (isinstance(value, str) and value.strip().lower() in ("", "null", "none")):
            return None
        return strict(value)

    return coerce


def _amount(value: Any) -> float:
    """Whole-token amount; negative, non-finite or non-numeric becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _optional_id(value: Any) -> Any:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "null", "none")):
        return None
    return value


U64Int = Annotated[int, BeforeValidator(u64)]
Amount = Annotated[float, BeforeValidator(_amount)]
OptionalId = Annotated[Union[str, None], BeforeValidator(_optional_id)]

AgentTypeLabel = Annotated[AgentType, BeforeValidator(_by_label(AgentType))]
AgentClassLabel = Annotated[AgentClass, BeforeValidator(_by_label(AgentClass))]
ShipClassLabel = Annotated[ShipClass, BeforeValidator(_by_label(ShipClass))]
OptionalShipClass = Annotated[Union[ShipClass, None], BeforeValidator(_optional_label(ShipClass))]
StationTypeLabel = Annotated[StationType, BeforeValidator(_by_label(StationType))]
PlanetTypeLabel = Annotated[PlanetType, BeforeValidator(_by_label(PlanetType))]
ResourceLabel = Annotated[ResourceType, BeforeValidator(_by_label(ResourceType))]
OptionalResource = Annotated[Union[ResourceType, None], BeforeValidator(_optional_label(ResourceType))]
MissionTypeLabel = Annotated[MissionType, BeforeValidator(_by_label(MissionType))]
ProposalTypeLabel = Annotated[ProposalType, BeforeValidator(_by_label(ProposalType))]


# --- parameter models -------------------------------------------------------


class ActionParams(BaseModel):
    """Common base: every selection carries a short reasoning string."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    reasoning: str = ""

    # Object-id fields and the state collection each must come from
    id_fields: ClassVar[dict[str, IdSource]] = {}

    @property
    def action_id(self) -> ActionId:
        return ActionId(getattr(self, "action"))

    def referenced_ids(self) -> dict[str, tuple[IdSource, str]]:
        """Object-id fields that are set, with their required source."""
        refs: dict[str, tuple[IdSource, str]] = {}
        for name, source in self.id_fields.items():
            value = getattr(self, name)
            if value is not None:
                refs[name] = (source, value)
        return refs


class MintAgentParams(ActionParams):
    action: Literal["mint_agent"] = "mint_agent"
    name: str = Field(min_length=1)
    agent_type: AgentTypeLabel
    agent_class: AgentClassLabel


class BuildShipParams(ActionParams):
    action: Literal["build_ship"] = "build_ship"
    name: str = Field(min_length=1)
    ship_class: ShipClassLabel


class BuildStationParams(ActionParams):
    action: Literal["build_station"] = "build_station"
    name: str = Field(min_length=1)
    station_type: StationTypeLabel
    x: U64Int = 0
    y: U64Int = 0
    z: U64Int = 0


class TrainAgentParams(ActionParams):
    action: Literal["train_agent"] = "train_agent"
    agent_id: str
    id_fields = {"agent_id": IdSource.OWN_AGENT}


class UpgradeAgentParams(ActionParams):
    action: Literal["upgrade_agent"] = "upgrade_agent"
    agent_id: str
    id_fields = {"agent_id": IdSource.OWN_AGENT}


class AssignPilotParams(ActionParams):
    action: Literal["assign_pilot"] = "assign_pilot"
    ship_id: str
    agent_id: str
    id_fields = {"ship_id": IdSource.OWN_SHIP, "agent_id": IdSource.OWN_AGENT}


class AddCrewParams(ActionParams):
    action: Literal["add_crew"] = "add_crew"
    ship_id: str
    agent_id: str
    id_fields = {"ship_id": IdSource.OWN_SHIP, "agent_id": IdSource.OWN_AGENT}


class DiscoverPlanetParams(ActionParams):
    action: Literal["discover_planet"] = "discover_planet"
    name: str = Field(min_length=1)
    planet_type: PlanetTypeLabel
    galaxy_id: U64Int = 1
    system_id: U64Int = 1
    x: U64Int = 0
    y: U64Int = 0
    z: U64Int = 0
    primary_resource: ResourceLabel
    secondary_resource: OptionalResource = None
    total_reserves: U64Int = 10_000


class ColonizePlanetParams(ActionParams):
    action: Literal["colonize_planet"] = "colonize_planet"
    planet_id: str
    id_fields = {"planet_id": IdSource.PLANET}


class ExtractResourcesParams(ActionParams):
    action: Literal["extract_resources"] = "extract_resources"
    planet_id: str
    id_fields = {"planet_id": IdSource.PLANET}


class UpgradeDefenseParams(ActionParams):
    action: Literal["upgrade_defense"] = "upgrade_defense"
    planet_id: str
    amount: U64Int = 1
    id_fields = {"planet_id": IdSource.PLANET}


class CreateMissionTemplateParams(ActionParams):
    action: Literal["create_mission_template"] = "create_mission_template"
    name: str = Field(min_length=1)
    description: str = ""
    mission_type: MissionTypeLabel
    difficulty: U64Int = Field(default=1, ge=1, le=5)
    min_agent_level: U64Int = 0
    min_processing: U64Int = 0
    min_mobility: U64Int = 0
    min_power: U64Int = 0
    required_ship_class: OptionalShipClass = None
    energy_cost: U64Int = 0
    galactic_cost: Amount = 0.0
    duration_epochs: U64Int = 1
    base_reward: Amount = 100.0
    experience_reward: U64Int = 50
    loot_chance: U64Int = Field(default=20, le=100)


class FundRewardPoolParams(ActionParams):
    action: Literal["fund_reward_pool"] = "fund_reward_pool"
    amount: Amount


class StartMissionParams(ActionParams):
    action: Literal["start_mission"] = "start_mission"
    template_id: str
    agent_id: str
    ship_id: OptionalId = None
    id_fields = {
        "template_id": IdSource.MISSION_TEMPLATE,
        "agent_id": IdSource.OWN_AGENT,
        "ship_id": IdSource.OWN_SHIP,
    }


class CompleteMissionParams(ActionParams):
    action: Literal["complete_mission"] = "complete_mission"
    template_id: str
    mission_id: str
    id_fields = {
        "template_id": IdSource.MISSION_TEMPLATE,
        "mission_id": IdSource.OWN_MISSION,
    }


class MintGalacticParams(ActionParams):
    action: Literal["mint_galactic"] = "mint_galactic"
    amount: Amount
    recipient: OptionalId = None


class CreateReactorParams(ActionParams):
    action: Literal["create_and_share_reactor"] = "create_and_share_reactor"


class CreateInsurancePoolParams(ActionParams):
    action: Literal["create_and_share_insurance_pool"] = "create_and_share_insurance_pool"


class AddLiquidityParams(ActionParams):
    action: Literal["add_liquidity"] = "add_liquidity"
    galactic_amount: Amount
    sui_amount: Amount


class SwapGalacticForSuiParams(ActionParams):
    action: Literal["swap_galactic_for_sui"] = "swap_galactic_for_sui"
    galactic_amount: Amount
    min_sui_out: U64Int = 1


class SwapSuiForGalacticParams(ActionParams):
    action: Literal["swap_sui_for_galactic"] = "swap_sui_for_galactic"
    sui_amount: Amount
    min_galactic_out: U64Int = 1


class PurchaseInsuranceParams(ActionParams):
    action: Literal["purchase_insurance"] = "purchase_insurance"
    insured_amount: Amount


class AssignOperatorParams(ActionParams):
    action: Literal["assign_operator"] = "assign_operator"
    station_id: str
    agent_id: str
    id_fields = {"station_id": IdSource.OWN_STATION, "agent_id": IdSource.OWN_AGENT}


class DockShipParams(ActionParams):
    action: Literal["dock_ship"] = "dock_ship"
    station_id: str
    ship_id: str
    id_fields = {"station_id": IdSource.OWN_STATION, "ship_id": IdSource.OWN_SHIP}


class CreateVotingPowerParams(ActionParams):
    action: Literal["create_voting_power"] = "create_voting_power"


class CreateProposalParams(ActionParams):
    action: Literal["create_proposal"] = "create_proposal"
    title: str = Field(min_length=1)
    description: str = ""
    proposal_type: ProposalTypeLabel = ProposalType.ParameterChange
    target_module: str = "defi"
    target_function: str = "update_swap_fee"
    parameters: list[U64Int] = Field(default_factory=lambda: [25])


class CastVoteParams(ActionParams):
    action: Literal["cast_vote"] = "cast_vote"
    proposal_id: str
    support: bool = True
    id_fields = {"proposal_id": IdSource.PROPOSAL}


class FinalizeProposalParams(ActionParams):
    action: Literal["finalize_proposal"] = "finalize_proposal"
    proposal_id: str
    total_supply: U64Int = 0
    id_fields = {"proposal_id": IdSource.PROPOSAL}


class ExecuteProposalParams(ActionParams):
    action: Literal["execute_proposal"] = "execute_proposal"
    proposal_id: str
    id_fields = {"proposal_id": IdSource.PROPOSAL}


Decision = Annotated[
    Union[
        MintAgentParams,
        BuildShipParams,
        BuildStationParams,
        TrainAgentParams,
        UpgradeAgentParams,
        AssignPilotParams,
        AddCrewParams,
        DiscoverPlanetParams,
        ColonizePlanetParams,
        ExtractResourcesParams,
        UpgradeDefenseParams,
        CreateMissionTemplateParams,
        FundRewardPoolParams,
        StartMissionParams,
        CompleteMissionParams,
        MintGalacticParams,
        CreateReactorParams,
        CreateInsurancePoolParams,
        AddLiquidityParams,
        SwapGalacticForSuiParams,
        SwapSuiForGalacticParams,
        PurchaseInsuranceParams,
        AssignOperatorParams,
        DockShipParams,
        CreateVotingPowerParams,
        CreateProposalParams,
        CastVoteParams,
        FinalizeProposalParams,
        ExecuteProposalParams,
    ],
    Field(discriminator="action"),
]

_DECISION_ADAPTER: TypeAdapter[Decision] = TypeAdapter(Decision)

PARAMS_BY_ACTION: dict[ActionId, type[ActionParams]] = {
    ActionId(cls.model_fields["action"].default): cls
    for cls in ActionParams.__subclasses__()
}


def parse_decision(data: dict[str, Any]) -> ActionParams:
    """Validate a collaborator JSON object into its parameter model.

    Raises:
        InvalidDecision: Missing/unknown action or malformed fields.
    """
    if not isinstance(data, dict):
        raise InvalidDecision("Decision must be a JSON object")
    action = data.get("action")
    if not action:
        raise InvalidDecision('Response missing "action" field', code=ErrorCode.MISSING_ARGUMENT)
    if action not in {a.value for a in ActionId}:
        raise InvalidDecision(f"Unknown action: {action}", action=str(action))
    try:
        return _DECISION_ADAPTER.validate_python(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'value'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidDecision(f"Invalid parameters for {action}: {errors}", action=action) from e


def required_fields(action: ActionId) -> tuple[str, ...]:
    """Parameter names the collaborator must supply for ``action``."""
    model = PARAMS_BY_ACTION[action]
    return tuple(
        name
        for name, info in model.model_fields.items()
        if info.is_required()
    )


# --- documentation ----------------------------------------------------------

_DOCS: dict[ActionId, tuple[str, str]] = {
    ActionId.MINT_AGENT: (
        "Recruit a new agent",
        f'{{ "action": "mint_agent", "name": "<name>", "agent_type": "{enum_labels(AgentType)}", '
        f'"agent_class": "{enum_labels(AgentClass)}" }}',
    ),
    ActionId.BUILD_SHIP: (
        "Build a new ship",
        f'{{ "action": "build_ship", "name": "<name>", "ship_class": "{enum_labels(ShipClass)}" }}',
    ),
    ActionId.BUILD_STATION: (
        "Build a space station",
        f'{{ "action": "build_station", "name": "<name>", "station_type": "{enum_labels(StationType)}", '
        '"x": <num>, "y": <num>, "z": <num> }',
    ),
    ActionId.TRAIN_AGENT: (
        "Train agent (+100 XP)",
        '{ "action": "train_agent", "agent_id": "<id>" }',
    ),
    ActionId.UPGRADE_AGENT: (
        "Upgrade firmware (not staked/on mission)",
        '{ "action": "upgrade_agent", "agent_id": "<id>" }',
    ),
    ActionId.ASSIGN_PILOT: (
        "Assign agent as ship pilot",
        '{ "action": "assign_pilot", "ship_id": "<id>", "agent_id": "<id>" }',
    ),
    ActionId.ADD_CREW: (
        "Add agent to ship crew",
        '{ "action": "add_crew", "ship_id": "<id>", "agent_id": "<id>" }',
    ),
    ActionId.DISCOVER_PLANET: (
        "Discover a new planet (admin only)",
        f'{{ "action": "discover_planet", "name": "<name>", "planet_type": "{enum_labels(PlanetType)}", '
        '"galaxy_id": <num>, "system_id": <num>, "x": <num>, "y": <num>, "z": <num>, '
        f'"primary_resource": "{enum_labels(ResourceType)}", '
        '"secondary_resource": "<resource_name or null>", "total_reserves": <num 1000-50000> }',
    ),
    ActionId.COLONIZE_PLANET: (
        "Claim an unclaimed planet",
        '{ "action": "colonize_planet", "planet_id": "<id>" }',
    ),
    ActionId.EXTRACT_RESOURCES: (
        "Extract resources from a planet you own",
        '{ "action": "extract_resources", "planet_id": "<id>" }',
    ),
    ActionId.UPGRADE_DEFENSE: (
        "Upgrade planet defenses",
        '{ "action": "upgrade_defense", "planet_id": "<id>", "amount": <num 1-10> }',
    ),
    ActionId.CREATE_MISSION_TEMPLATE: (
        "Create a mission (admin only, galactic_cost and base_reward in whole tokens)",
        f'{{ "action": "create_mission_template", "name": "<name>", "description": "<desc>", '
        f'"mission_type": "{enum_labels(MissionType)}", "difficulty": <1-5>, '
        '"min_agent_level": <num>, "min_processing": <num>, "min_mobility": <num>, '
        '"min_power": <num>, "required_ship_class": "<class or null>", "energy_cost": <num>, '
        '"galactic_cost": <num 100-10000>, "duration_epochs": <num 1-5>, '
        '"base_reward": <num 100-5000>, "experience_reward": <num>, "loot_chance": <num 0-100> }',
    ),
    ActionId.FUND_REWARD_POOL: (
        "Fund mission reward pool with GALACTIC (amounts in whole tokens, e.g. 10000 = 10K GALACTIC)",
        '{ "action": "fund_reward_pool", "amount": <num> }',
    ),
    ActionId.START_MISSION: (
        "Start a mission with your agent",
        '{ "action": "start_mission", "template_id": "<id>", "agent_id": "<id>", "ship_id": "<id or null>" }',
    ),
    ActionId.COMPLETE_MISSION: (
        "Complete an active mission",
        '{ "action": "complete_mission", "template_id": "<id>", "mission_id": "<id>" }',
    ),
    ActionId.MINT_GALACTIC: (
        "Mint GALACTIC tokens (amounts in whole tokens, e.g. 50000 = 50K GALACTIC)",
        '{ "action": "mint_galactic", "amount": <num>, "recipient": "<address>" }',
    ),
    ActionId.CREATE_AND_SHARE_REACTOR: (
        "Create Energy Reactor / LP pool (admin only, one-time)",
        '{ "action": "create_and_share_reactor" }',
    ),
    ActionId.CREATE_AND_SHARE_INSURANCE_POOL: (
        "Create Insurance Pool (admin only, one-time)",
        '{ "action": "create_and_share_insurance_pool" }',
    ),
    ActionId.ADD_LIQUIDITY: (
        "Add GALACTIC + SUI liquidity to reactor (amounts in whole tokens, "
        "e.g. galactic_amount: 50000, sui_amount: 5000)",
        '{ "action": "add_liquidity", "galactic_amount": <num 1000-100000>, "sui_amount": <num 100-10000> }',
    ),
    ActionId.SWAP_GALACTIC_FOR_SUI: (
        "Swap GALACTIC for SUI (amounts in whole tokens; set to 5-20% of your balance)",
        '{ "action": "swap_galactic_for_sui", "galactic_amount": <num>, "min_sui_out": 1 }',
    ),
    ActionId.SWAP_SUI_FOR_GALACTIC: (
        "Swap SUI for GALACTIC (amounts in whole tokens; set to a small portion of your SUI)",
        '{ "action": "swap_sui_for_galactic", "sui_amount": <num>, "min_galactic_out": 1 }',
    ),
    ActionId.PURCHASE_INSURANCE: (
        "Buy insurance (2% premium, amounts in whole tokens, e.g. insured_amount: 10000 = 10K GALACTIC)",
        '{ "action": "purchase_insurance", "insured_amount": <num> }',
    ),
    ActionId.ASSIGN_OPERATOR: (
        "Assign agent as station operator",
        '{ "action": "assign_operator", "station_id": "<id>", "agent_id": "<id>" }',
    ),
    ActionId.DOCK_SHIP: (
        "Dock ship at station",
        '{ "action": "dock_ship", "station_id": "<id>", "ship_id": "<id>" }',
    ),
    ActionId.CREATE_VOTING_POWER: (
        "Create a voting power snapshot from your token balance, agent levels and planets",
        '{ "action": "create_voting_power" }',
    ),
    ActionId.CREATE_PROPOSAL: (
        "Submit a governance proposal (deposit by type: ParameterChange=1K, TreasurySpend=10K, "
        "ModuleUpgrade=50K, Emergency=100K GALACTIC)",
        f'{{ "action": "create_proposal", "title": "<title>", "description": "<desc>", '
        f'"proposal_type": "{enum_labels(ProposalType)}", "target_module": "<module>", '
        '"target_function": "<function>", "parameters": [<num>...] }',
    ),
    ActionId.CAST_VOTE: (
        "Vote on a proposal",
        '{ "action": "cast_vote", "proposal_id": "<id>", "support": <true|false> }',
    ),
    ActionId.FINALIZE_PROPOSAL: (
        "Finalize a proposal after voting period ends (check voting_ends_at vs current epoch)",
        '{ "action": "finalize_proposal", "proposal_id": "<id>", "total_supply": <num> }',
    ),
    ActionId.EXECUTE_PROPOSAL: (
        "Execute a passed proposal (status must be Passed and past execution delay)",
        '{ "action": "execute_proposal", "proposal_id": "<id>" }',
    ),
}


def action_doc(action: ActionId) -> str:
    """Schema text for one action, as shown to the decision collaborator."""
    summary, example = _DOCS[action]
    return f"{action.value} - {summary}\n  {example}"


# --- caller-side validation -------------------------------------------------


@dataclass
class KnownIds:
    """Object ids literally present in the state supplied to the collaborator."""

    ids: dict[IdSource, set[str]] = field(default_factory=dict)

    def add(self, source: IdSource, values: list[str] | set[str]) -> None:
        self.ids.setdefault(source, set()).update(values)

    def contains(self, source: IdSource, value: str) -> bool:
        return value in self.ids.get(source, set())


_SOURCE_HINTS: dict[IdSource, str] = {
    IdSource.OWN_AGENT: "pick an ID from YOUR Agents list",
    IdSource.OWN_SHIP: "pick an ID from YOUR Ships list",
    IdSource.OWN_STATION: "pick an ID from YOUR Stations list",
    IdSource.OWN_MISSION: "pick an ID from your active missions",
    IdSource.PLANET: "use an exact ID from the PLANETS list",
    IdSource.MISSION_TEMPLATE: "use an exact ID from the MISSION TEMPLATES list",
    IdSource.PROPOSAL: "use an exact ID from the PROPOSALS list",
}


def validate_decision(
    decision: ActionParams,
    legal_actions: frozenset[ActionId] | set[ActionId],
    known_ids: KnownIds,
) -> None:
    """Reject a selection that is not legal or references unknown objects.

    Raises:
        InvalidDecision: With ACTION_NOT_AVAILABLE, INVALID_ARGUMENT or
            UNKNOWN_OBJECT codes.
    """
    action = decision.action_id
    if action not in legal_actions:
        available = ", ".join(sorted(a.value for a in legal_actions))
        raise InvalidDecision(
            f'Action "{action.value}" not available. Available: {available}',
            code=ErrorCode.ACTION_NOT_AVAILABLE,
            action=action.value,
        )

    for name, (source, value) in decision.referenced_ids().items():
        if not is_valid_object_id(value):
            raise InvalidDecision(
                f"Invalid {name}: {str(value)[:40]} - must be a real object ID from the state",
                code=ErrorCode.INVALID_ARGUMENT,
                field=name,
            )
        if not known_ids.contains(source, value):
            raise InvalidDecision(
                f"{name} {value[:10]}... not found - {_SOURCE_HINTS[source]}",
                code=ErrorCode.UNKNOWN_OBJECT,
                field=name,
            )

    recipient = getattr(decision, "recipient", None)
    if recipient is not None and not is_valid_object_id(recipient):
        raise InvalidDecision(
            f"Invalid recipient address: {str(recipient)[:40]}",
            code=ErrorCode.INVALID_ARGUMENT,
            field="recipient",
        )
