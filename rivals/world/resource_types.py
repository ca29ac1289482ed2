"""Typed registry of the game's on-chain resource types.

Raw type strings reported by the ledger are parsed into StructType at this
boundary and mapped to a semantic kind by ``(module, name)``. Only types
published by the active package are classified; a look-alike type from an
earlier deployment resolves to ``None``.
"""

from __future__ import annotations

from enum import Enum

from ..ledger.bcs import normalize_address
from ..ledger.type_tags import StructType, parse_struct_type


class SingletonKind(str, Enum):
    """Shared objects that must exist at most once per deployment.

    Values are the SharedObjectIds field names they populate.
    """

    TREASURY = "treasuryId"
    MISSION_REGISTRY = "missionRegistryId"
    GOVERNANCE_REGISTRY = "governanceRegistryId"
    CODE_REGISTRY = "codeRegistryId"
    REACTOR = "reactorId"
    INSURANCE_POOL = "insurancePoolId"


class AdminCapKind(str, Enum):
    """One admin capability per game subsystem, keyed by adminCaps field."""

    PLANET = "planetAdminCap"
    MISSION = "missionAdminCap"
    DEFI = "defiAdminCap"
    GOVERNANCE = "governanceAdminCap"
    AGENT = "agentAdminCap"
    SHIP = "shipAdminCap"
    STATION = "stationAdminCap"
    REGISTRY = "registryAdminCap"
    GALACTIC = "galacticAdminCap"


class OwnedKind(str, Enum):
    """Privately owned game objects tracked per agent."""

    AGENT = "agent"
    SHIP = "ship"
    STATION = "station"
    VOTING_POWER = "voting_power"
    LP_RECEIPT = "lp_receipt"
    INSURANCE_POLICY = "insurance_policy"
    ACTIVE_MISSION = "active_mission"


class SharedKind(str, Enum):
    """Shared objects created repeatedly during play."""

    PLANET = "planet"
    MISSION_TEMPLATE = "mission_template"
    PROPOSAL = "proposal"


ResourceKind = SingletonKind | AdminCapKind | OwnedKind | SharedKind

SINGLETON_TYPES: dict[tuple[str, str], SingletonKind] = {
    ("galactic_token", "GalacticTreasury"): SingletonKind.TREASURY,
    ("missions", "MissionRegistry"): SingletonKind.MISSION_REGISTRY,
    ("governance", "GovernanceRegistry"): SingletonKind.GOVERNANCE_REGISTRY,
    ("code_registry", "CodeRegistry"): SingletonKind.CODE_REGISTRY,
    ("defi", "EnergyReactor"): SingletonKind.REACTOR,
    ("defi", "InsurancePool"): SingletonKind.INSURANCE_POOL,
}

ADMIN_CAP_TYPES: dict[tuple[str, str], AdminCapKind] = {
    ("planet", "PlanetAdminCap"): AdminCapKind.PLANET,
    ("missions", "MissionAdminCap"): AdminCapKind.MISSION,
    ("defi", "DefiAdminCap"): AdminCapKind.DEFI,
    ("governance", "GovernanceAdminCap"): AdminCapKind.GOVERNANCE,
    ("agent", "AgentAdminCap"): AdminCapKind.AGENT,
    ("ship", "ShipAdminCap"): AdminCapKind.SHIP,
    ("station", "StationAdminCap"): AdminCapKind.STATION,
    ("code_registry", "RegistryAdminCap"): AdminCapKind.REGISTRY,
    ("galactic_token", "AdminCap"): AdminCapKind.GALACTIC,
}

OWNED_TYPES: dict[tuple[str, str], OwnedKind] = {
    ("agent", "Agent"): OwnedKind.AGENT,
    ("ship", "Ship"): OwnedKind.SHIP,
    ("station", "Station"): OwnedKind.STATION,
    ("governance", "VotingPower"): OwnedKind.VOTING_POWER,
    ("defi", "LPReceipt"): OwnedKind.LP_RECEIPT,
    ("defi", "InsurancePolicy"): OwnedKind.INSURANCE_POLICY,
    ("missions", "ActiveMission"): OwnedKind.ACTIVE_MISSION,
}

SHARED_TYPES: dict[tuple[str, str], SharedKind] = {
    ("planet", "Planet"): SharedKind.PLANET,
    ("missions", "MissionTemplate"): SharedKind.MISSION_TEMPLATE,
    ("governance", "Proposal"): SharedKind.PROPOSAL,
}

_ALL_TYPES: dict[tuple[str, str], ResourceKind] = {
    **SINGLETON_TYPES,
    **ADMIN_CAP_TYPES,
    **OWNED_TYPES,
    **SHARED_TYPES,
}

_TYPE_BY_KIND: dict[ResourceKind, tuple[str, str]] = {v: k for k, v in _ALL_TYPES.items()}


class ResourceTypeRegistry:
    """Classifies ledger type strings for one package deployment."""

    def __init__(self, package_id: str) -> None:
        self.package_id = normalize_address(package_id)

    def parse(self, raw_type: str) -> StructType | None:
        """Parse a raw type string; None if it is not a struct type."""
        try:
            return parse_struct_type(raw_type)
        except ValueError:
            return None

    def classify(self, raw_type: str) -> ResourceKind | None:
        struct = self.parse(raw_type)
        if struct is None or struct.address != self.package_id:
            return None
        return _ALL_TYPES.get((struct.module, struct.name))

    def classify_singleton(self, raw_type: str) -> SingletonKind | None:
        kind = self.classify(raw_type)
        return kind if isinstance(kind, SingletonKind) else None

    def classify_admin_cap(self, raw_type: str) -> AdminCapKind | None:
        kind = self.classify(raw_type)
        return kind if isinstance(kind, AdminCapKind) else None

    def is_kind(self, raw_type: str, kind: ResourceKind) -> bool:
        return self.classify(raw_type) == kind

    def type_string(self, kind: ResourceKind) -> str:
        """Fully-qualified type string of ``kind`` in this package."""
        module, name = _TYPE_BY_KIND[kind]
        return f"{self.package_id}::{module}::{name}"

    def type_fragment(self, kind: ResourceKind) -> str:
        """``::module::Name`` fragment used to spot created objects."""
        module, name = _TYPE_BY_KIND[kind]
        return f"::{module}::{name}"

    def event_type(self, module: str, event: str) -> str:
        return f"{self.package_id}::{module}::{event}"
