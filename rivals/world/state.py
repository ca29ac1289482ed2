"""Persisted simulation state.

One PersistedState exists per process. It is valid only for the package
deployment whose id it carries; the discovery layer rebuilds it when the
package changes. JSON keys are camelCase because the frontend reads the
same file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .resource_types import AdminCapKind, SingletonKind
from .types import Phase, Role

PRIMARY_KEY = "nexus7"
RIVAL_KEY = "kraitX"

DEFAULT_PRIMARY_NAME = "NEXUS-7"
DEFAULT_RIVAL_NAME = "KRAIT-X"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _append_unique(target: list[str], value: str) -> None:
    if value not in target:
        target.append(value)


@dataclass
class AgentState:
    """Per-actor phase position and owned-resource ids."""

    name: str
    role: Role
    address: str
    phase: Phase = Phase.GENESIS
    rounds_in_phase: int = 0
    total_rounds: int = 0
    owned_agent_ids: list[str] = field(default_factory=list)
    owned_ship_ids: list[str] = field(default_factory=list)
    owned_station_ids: list[str] = field(default_factory=list)
    lp_receipt_ids: list[str] = field(default_factory=list)
    insurance_policy_ids: list[str] = field(default_factory=list)
    voted_proposal_ids: list[str] = field(default_factory=list)
    voting_power_id: str | None = None

    @property
    def is_primary(self) -> bool:
        return self.role == Role.PRIMARY

    def record_vote(self, proposal_id: str) -> None:
        _append_unique(self.voted_proposal_ids, proposal_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "role": self.role.value,
            "address": self.address,
            "phase": self.phase.value,
            "roundsInPhase": self.rounds_in_phase,
            "totalRounds": self.total_rounds,
            "ownedAgentIds": list(self.owned_agent_ids),
            "ownedShipIds": list(self.owned_ship_ids),
            "ownedStationIds": list(self.owned_station_ids),
            "lpReceiptIds": list(self.lp_receipt_ids),
            "insurancePolicyIds": list(self.insurance_policy_ids),
            "votedProposalIds": list(self.voted_proposal_ids),
        }
        if self.voting_power_id:
            data["votingPowerId"] = self.voting_power_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentState:
        return cls(
            name=data["name"],
            role=Role(data["role"]),
            address=data.get("address", ""),
            phase=Phase(data.get("phase", Phase.GENESIS.value)),
            rounds_in_phase=int(data.get("roundsInPhase", 0)),
            total_rounds=int(data.get("totalRounds", 0)),
            owned_agent_ids=list(data.get("ownedAgentIds", [])),
            owned_ship_ids=list(data.get("ownedShipIds", [])),
            owned_station_ids=list(data.get("ownedStationIds", [])),
            lp_receipt_ids=list(data.get("lpReceiptIds", [])),
            insurance_policy_ids=list(data.get("insurancePolicyIds", [])),
            voted_proposal_ids=list(data.get("votedProposalIds", [])),
            voting_power_id=data.get("votingPowerId"),
        )


@dataclass
class SharedObjectIds:
    """Singleton shared-object ids plus the admin capability map."""

    singletons: dict[SingletonKind, str] = field(default_factory=dict)
    admin_caps: dict[AdminCapKind, str] = field(default_factory=dict)

    def get(self, kind: SingletonKind) -> str | None:
        return self.singletons.get(kind)

    def set_once(self, kind: SingletonKind, object_id: str) -> bool:
        """Populate ``kind`` unless already set. Returns True if stored."""
        if self.singletons.get(kind):
            return False
        self.singletons[kind] = object_id
        return True

    def cap(self, kind: AdminCapKind) -> str | None:
        return self.admin_caps.get(kind)

    def has_any_singleton(self) -> bool:
        return any(self.singletons.values())

    @property
    def treasury_id(self) -> str | None:
        return self.get(SingletonKind.TREASURY)

    @property
    def reactor_id(self) -> str | None:
        return self.get(SingletonKind.REACTOR)

    @property
    def insurance_pool_id(self) -> str | None:
        return self.get(SingletonKind.INSURANCE_POOL)

    @property
    def mission_registry_id(self) -> str | None:
        return self.get(SingletonKind.MISSION_REGISTRY)

    @property
    def governance_registry_id(self) -> str | None:
        return self.get(SingletonKind.GOVERNANCE_REGISTRY)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            kind.value: self.singletons[kind]
            for kind in SingletonKind
            if self.singletons.get(kind)
        }
        data["adminCaps"] = {
            kind.value: self.admin_caps[kind]
            for kind in AdminCapKind
            if self.admin_caps.get(kind)
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SharedObjectIds:
        caps = data.get("adminCaps") or {}
        return cls(
            singletons={k: data[k.value] for k in SingletonKind if data.get(k.value)},
            admin_caps={k: caps[k.value] for k in AdminCapKind if caps.get(k.value)},
        )


@dataclass
class PersistedState:
    """Process-wide state shared by both agents."""

    package_id: str
    primary: AgentState
    rival: AgentState
    shared_objects: SharedObjectIds = field(default_factory=SharedObjectIds)
    planet_ids: list[str] = field(default_factory=list)
    mission_template_ids: list[str] = field(default_factory=list)
    proposal_ids: list[str] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_now_iso)

    @classmethod
    def fresh(
        cls,
        package_id: str,
        primary_address: str,
        rival_address: str,
        primary_name: str = DEFAULT_PRIMARY_NAME,
        rival_name: str = DEFAULT_RIVAL_NAME,
    ) -> PersistedState:
        return cls(
            package_id=package_id,
            primary=AgentState(primary_name, Role.PRIMARY, primary_address),
            rival=AgentState(rival_name, Role.RIVAL, rival_address),
        )

    def agent(self, role: Role) -> AgentState:
        return self.primary if role == Role.PRIMARY else self.rival

    def other(self, agent_state: AgentState) -> AgentState:
        return self.rival if agent_state.role == Role.PRIMARY else self.primary

    def add_planet(self, planet_id: str) -> None:
        _append_unique(self.planet_ids, planet_id)

    def add_mission_template(self, template_id: str) -> None:
        _append_unique(self.mission_template_ids, template_id)

    def add_proposal(self, proposal_id: str) -> None:
        _append_unique(self.proposal_ids, proposal_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageId": self.package_id,
            "sharedObjects": self.shared_objects.to_dict(),
            PRIMARY_KEY: self.primary.to_dict(),
            RIVAL_KEY: self.rival.to_dict(),
            "planetIds": list(self.planet_ids),
            "missionTemplateIds": list(self.mission_template_ids),
            "proposalIds": list(self.proposal_ids),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersistedState:
        """Create from dictionary.

        Raises:
            KeyError, ValueError, TypeError: On a structurally invalid document.
        """
        return cls(
            package_id=data["packageId"],
            shared_objects=SharedObjectIds.from_dict(data.get("sharedObjects") or {}),
            primary=AgentState.from_dict(data[PRIMARY_KEY]),
            rival=AgentState.from_dict(data[RIVAL_KEY]),
            planet_ids=list(data.get("planetIds", [])),
            mission_template_ids=list(data.get("missionTemplateIds", [])),
            proposal_ids=list(data.get("proposalIds", [])),
            last_updated=data.get("lastUpdated", ""),
        )
