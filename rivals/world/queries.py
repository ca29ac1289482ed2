"""Read-only views of on-chain game objects.

These are the facts the prompts show to the decision collaborator and the
executor uses for pre-checks (planet ownership, mission eligibility,
balances). Every reader tolerates a missing or unreadable object by
skipping it; ledger transport errors on single objects are logged at debug
level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..errors import RivalsError
from ..ledger.client import LedgerClient
from .resource_types import OwnedKind, ResourceTypeRegistry
from .types import (
    SUI_COIN_TYPE,
    ZERO_ADDRESS,
    AgentClass,
    AgentType,
    ShipClass,
    StationType,
    enum_label,
    galactic_coin_type,
)

logger = logging.getLogger(__name__)


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _option_value(value: Any) -> Any:
    """Unwrap a Move Option as rendered by the RPC (None, scalar or {vec: [...]})."""
    if value is None:
        return None
    if isinstance(value, dict):
        if "vec" in value:
            vec = value["vec"]
            return vec[0] if vec else None
        values = list(value.values())
        return values[0] if values else None
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _balance(value: Any) -> int:
    """Balance<T> fields appear either nested ({fields: {balance}}) or flat."""
    if isinstance(value, dict):
        inner = value.get("fields", value)
        return _int(inner.get("balance", inner.get("value")))
    return _int(value)


@dataclass
class AgentInfo:
    id: str
    name: str
    agent_type: str
    agent_class: str
    level: int = 1
    experience: int = 0
    processing: int = 0
    mobility: int = 0
    power: int = 0
    resilience: int = 0
    luck: int = 0
    firmware_version: int = 1
    is_staked: bool = False
    on_mission: bool = False

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> AgentInfo:
        return cls(
            id=object_id,
            name=fields.get("name") or "Unknown",
            agent_type=enum_label(AgentType, _int(fields.get("agent_type"))),
            agent_class=enum_label(AgentClass, _int(fields.get("class"))),
            level=_int(fields.get("level"), 1),
            experience=_int(fields.get("experience")),
            processing=_int(fields.get("processing")),
            mobility=_int(fields.get("mobility")),
            power=_int(fields.get("power")),
            resilience=_int(fields.get("resilience")),
            luck=_int(fields.get("luck")),
            firmware_version=_int(fields.get("firmware_version"), 1),
            is_staked=bool(fields.get("is_staked")),
            on_mission=_option_value(fields.get("current_mission")) is not None,
        )


@dataclass
class ShipInfo:
    id: str
    name: str
    ship_class: str
    health: int = 0
    max_health: int = 0
    speed: int = 0
    firepower: int = 0
    fuel: int = 0
    max_fuel: int = 0
    crew_count: int = 0
    max_crew: int = 0
    pilot: str | None = None
    is_docked: bool = False

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> ShipInfo:
        crew = fields.get("crew")
        pilot = _option_value(fields.get("pilot"))
        return cls(
            id=object_id,
            name=fields.get("name") or "Unknown",
            ship_class=enum_label(ShipClass, _int(fields.get("ship_class"))),
            health=_int(fields.get("current_health")),
            max_health=_int(fields.get("max_health")),
            speed=_int(fields.get("speed")),
            firepower=_int(fields.get("firepower")),
            fuel=_int(fields.get("fuel")),
            max_fuel=_int(fields.get("max_fuel")),
            crew_count=len(crew) if isinstance(crew, list) else 0,
            max_crew=_int(fields.get("max_crew")),
            pilot=str(pilot) if pilot is not None else None,
            is_docked=bool(fields.get("is_docked")),
        )


@dataclass
class StationInfo:
    id: str
    name: str
    station_type: str
    level: int = 1
    x: int = 0
    y: int = 0
    z: int = 0

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> StationInfo:
        return cls(
            id=object_id,
            name=fields.get("name") or "Unknown",
            station_type=enum_label(StationType, _int(fields.get("station_type"))),
            level=_int(fields.get("level"), 1),
            x=_int(fields.get("coordinates_x")),
            y=_int(fields.get("coordinates_y")),
            z=_int(fields.get("coordinates_z")),
        )


@dataclass
class ActiveMissionInfo:
    id: str
    template_id: str | None = None
    agent_id: str | None = None
    ends_at: int = 0

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> ActiveMissionInfo:
        return cls(
            id=object_id,
            template_id=fields.get("template_id"),
            agent_id=fields.get("agent_id"),
            ends_at=_int(fields.get("ends_at", fields.get("end_epoch"))),
        )


@dataclass
class FleetState:
    """Everything one account owns that the game cares about."""

    agents: list[AgentInfo] = field(default_factory=list)
    ships: list[ShipInfo] = field(default_factory=list)
    stations: list[StationInfo] = field(default_factory=list)
    missions: list[ActiveMissionInfo] = field(default_factory=list)

    def agent(self, agent_id: str) -> AgentInfo | None:
        return next((a for a in self.agents if a.id == agent_id), None)

    @property
    def total_agent_levels(self) -> int:
        return sum(a.level for a in self.agents)


@dataclass
class PlanetInfo:
    id: str
    name: str
    planet_type: int = 0
    primary_resource: int = 0
    secondary_resource: int | None = None
    owner: str | None = None
    population: int = 0
    defense_level: int = 0
    total_reserves: int = 0
    extracted_resources: int = 0
    galaxy_id: int = 0
    system_id: int = 0
    x: int = 0
    y: int = 0
    z: int = 0
    station_count: int = 0
    is_under_attack: bool = False

    @property
    def is_claimed(self) -> bool:
        return self.owner is not None

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> PlanetInfo:
        owner = _option_value(fields.get("owner"))
        if owner == ZERO_ADDRESS or not owner:
            owner = None
        secondary = _option_value(fields.get("secondary_resource"))
        stations = fields.get("stations")
        return cls(
            id=object_id,
            name=fields.get("name") or "Unknown",
            planet_type=_int(fields.get("planet_type")),
            primary_resource=_int(fields.get("primary_resource")),
            secondary_resource=_int(secondary) if secondary is not None else None,
            owner=str(owner) if owner is not None else None,
            population=_int(fields.get("population")),
            defense_level=_int(fields.get("defense_level")),
            total_reserves=_int(fields.get("total_reserves")),
            extracted_resources=_int(fields.get("extracted_resources")),
            galaxy_id=_int(fields.get("galaxy_id")),
            system_id=_int(fields.get("system_id")),
            x=_int(fields.get("x")),
            y=_int(fields.get("y")),
            z=_int(fields.get("z")),
            station_count=len(stations) if isinstance(stations, list) else 0,
            is_under_attack=bool(fields.get("is_under_attack")),
        )


@dataclass
class MissionTemplateInfo:
    id: str
    name: str
    description: str = ""
    mission_type: int = 0
    difficulty: int = 1
    min_agent_level: int = 0
    min_processing: int = 0
    min_mobility: int = 0
    min_power: int = 0
    energy_cost: int = 0
    galactic_cost: int = 0
    duration_epochs: int = 1
    base_reward: int = 0
    experience_reward: int = 0
    times_completed: int = 0
    is_active: bool = True

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> MissionTemplateInfo:
        return cls(
            id=object_id,
            name=fields.get("name") or "Unknown",
            description=fields.get("description") or "",
            mission_type=_int(fields.get("mission_type")),
            difficulty=_int(fields.get("difficulty"), 1),
            min_agent_level=_int(fields.get("min_agent_level")),
            min_processing=_int(fields.get("min_processing")),
            min_mobility=_int(fields.get("min_mobility")),
            min_power=_int(fields.get("min_power")),
            energy_cost=_int(fields.get("energy_cost")),
            galactic_cost=_int(fields.get("galactic_cost")),
            duration_epochs=_int(fields.get("duration_epochs"), 1),
            base_reward=_int(fields.get("base_reward")),
            experience_reward=_int(fields.get("experience_reward")),
            times_completed=_int(fields.get("times_completed")),
            is_active=fields.get("is_active") is not False,
        )

    def unmet_requirements(self, agent: AgentInfo) -> list[str]:
        """Human-readable list of template minimums ``agent`` does not meet."""
        checks = (
            ("level", agent.level, self.min_agent_level),
            ("processing", agent.processing, self.min_processing),
            ("mobility", agent.mobility, self.min_mobility),
            ("power", agent.power, self.min_power),
        )
        return [f"{name} {have} < {need}" for name, have, need in checks if have < need]


@dataclass
class ProposalInfo:
    id: str
    title: str = ""
    description: str = ""
    proposal_type: int = 0
    target_module: str = ""
    target_function: str = ""
    parameters: list[int] = field(default_factory=list)
    votes_for: int = 0
    votes_against: int = 0
    status: int = 0
    created_at: int = 0
    voting_ends_at: int = 0
    execution_after: int = 0

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> ProposalInfo:
        params = fields.get("parameters")
        return cls(
            id=object_id,
            title=fields.get("title") or "",
            description=fields.get("description") or "",
            proposal_type=_int(fields.get("proposal_type")),
            target_module=fields.get("target_module") or "",
            target_function=fields.get("target_function") or "",
            parameters=[_int(p) for p in params] if isinstance(params, list) else [],
            votes_for=_int(fields.get("votes_for")),
            votes_against=_int(fields.get("votes_against")),
            status=_int(fields.get("status")),
            created_at=_int(fields.get("created_at")),
            voting_ends_at=_int(fields.get("voting_ends_at")),
            execution_after=_int(fields.get("execution_after")),
        )


@dataclass
class ReactorInfo:
    id: str
    galactic_reserve: int = 0
    sui_reserve: int = 0
    total_lp_shares: int = 0
    swap_fee_bps: int = 0
    total_swaps: int = 0
    is_active: bool = True

    @property
    def is_empty(self) -> bool:
        return self.galactic_reserve == 0 or self.sui_reserve == 0

    @classmethod
    def from_fields(cls, object_id: str, fields: dict[str, Any]) -> ReactorInfo:
        return cls(
            id=object_id,
            galactic_reserve=_balance(fields.get("galactic_reserve")),
            sui_reserve=_balance(fields.get("sui_reserve")),
            total_lp_shares=_int(fields.get("total_lp_shares")),
            swap_fee_bps=_int(fields.get("swap_fee_bps")),
            total_swaps=_int(fields.get("total_swaps")),
            is_active=fields.get("is_active") is not False,
        )


class GameQueries:
    """Reads game objects for one package deployment."""

    def __init__(self, ledger: LedgerClient, package_id: str) -> None:
        self.ledger = ledger
        self.registry = ResourceTypeRegistry(package_id)
        self.package_id = self.registry.package_id
        self.galactic_coin_type = galactic_coin_type(self.package_id)

    def fleet(self, address: str) -> FleetState:
        """Owned agents, ships, stations and active missions of ``address``."""
        fleet = FleetState()
        cursor: str | None = None
        while True:
            page = self.ledger.list_owned_objects(address, cursor)
            for obj in page.items:
                if not obj.fields:
                    continue
                kind = self.registry.classify(obj.object_type)
                if kind == OwnedKind.AGENT:
                    fleet.agents.append(AgentInfo.from_fields(obj.object_id, obj.fields))
                elif kind == OwnedKind.SHIP:
                    fleet.ships.append(ShipInfo.from_fields(obj.object_id, obj.fields))
                elif kind == OwnedKind.STATION:
                    fleet.stations.append(StationInfo.from_fields(obj.object_id, obj.fields))
                elif kind == OwnedKind.ACTIVE_MISSION:
                    fleet.missions.append(ActiveMissionInfo.from_fields(obj.object_id, obj.fields))
            if not page.has_more or not page.next_cursor:
                return fleet
            cursor = page.next_cursor

    def _fields(self, object_id: str) -> dict[str, Any] | None:
        try:
            obj = self.ledger.get_object(object_id)
        except RivalsError as e:
            logger.debug("Skipping %s: %s", object_id[:10], e.message)
            return None
        if obj is None or not obj.fields:
            return None
        return obj.fields

    def planets(self, planet_ids: list[str]) -> list[PlanetInfo]:
        planets = []
        for planet_id in planet_ids:
            fields = self._fields(planet_id)
            if fields is not None:
                planets.append(PlanetInfo.from_fields(planet_id, fields))
        return planets

    def planet(self, planet_id: str) -> PlanetInfo | None:
        fields = self._fields(planet_id)
        return PlanetInfo.from_fields(planet_id, fields) if fields is not None else None

    def mission_templates(self, template_ids: list[str]) -> list[MissionTemplateInfo]:
        templates = []
        for template_id in template_ids:
            fields = self._fields(template_id)
            if fields is not None:
                templates.append(MissionTemplateInfo.from_fields(template_id, fields))
        return templates

    def mission_template(self, template_id: str) -> MissionTemplateInfo | None:
        fields = self._fields(template_id)
        if fields is None:
            return None
        return MissionTemplateInfo.from_fields(template_id, fields)

    def proposals(self, proposal_ids: list[str]) -> list[ProposalInfo]:
        proposals = []
        for proposal_id in proposal_ids:
            fields = self._fields(proposal_id)
            if fields is not None:
                proposals.append(ProposalInfo.from_fields(proposal_id, fields))
        return proposals

    def reactor(self, reactor_id: str | None) -> ReactorInfo | None:
        if not reactor_id:
            return None
        fields = self._fields(reactor_id)
        return ReactorInfo.from_fields(reactor_id, fields) if fields is not None else None

    def galactic_balance(self, address: str) -> int:
        return sum(c.balance for c in self.ledger.list_coins(address, self.galactic_coin_type))

    def sui_balance(self, address: str) -> int:
        return sum(c.balance for c in self.ledger.list_coins(address, SUI_COIN_TYPE))

    def has_galactic(self, address: str) -> bool:
        return bool(self.ledger.list_coins(address, self.galactic_coin_type))

    def current_epoch(self) -> int:
        return self.ledger.current_epoch()
