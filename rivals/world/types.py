"""Domain enums and constants mirrored from the on-chain contracts.

The integer values of the IntEnums are u8 codes on the wire and must match
the Move modules exactly. Member names are the labels the decision
collaborator sees.
"""

from __future__ import annotations

import math
from enum import Enum, IntEnum
from typing import TypeVar

from ..ledger.bcs import U64_MAX


class Phase(str, Enum):
    """Lifecycle phases. WORLD_BUILD is primary-only, COLONIZE rival-only."""

    GENESIS = "GENESIS"
    WORLD_BUILD = "WORLD_BUILD"
    COLONIZE = "COLONIZE"
    CONTENT = "CONTENT"
    ECONOMY = "ECONOMY"
    MILITARY = "MILITARY"
    GOVERNANCE = "GOVERNANCE"
    SUSTAIN = "SUSTAIN"


class Role(str, Enum):
    """Fixed identity class of an actor."""

    PRIMARY = "game_master"
    RIVAL = "rival_player"


class AgentType(IntEnum):
    Human = 0
    Cyborg = 1
    Android = 2
    AlienSynthetic = 3


class AgentClass(IntEnum):
    Hacker = 0
    Pilot = 1
    MechOperator = 2
    QuantumEngineer = 3
    Psionic = 4
    BountyAI = 5


class ShipClass(IntEnum):
    Scout = 0
    Fighter = 1
    Freighter = 2
    Cruiser = 3
    Battleship = 4
    Carrier = 5
    Dreadnought = 6


class StationType(IntEnum):
    YieldFarm = 0
    ResearchLab = 1
    BlackMarket = 2
    WarpGate = 3
    DefensePlatform = 4


class PlanetType(IntEnum):
    Terran = 0
    GasGiant = 1
    IceWorld = 2
    Desert = 3
    Ocean = 4
    Volcanic = 5
    Artificial = 6


class ResourceType(IntEnum):
    Energy = 0
    Metal = 1
    Bio = 2
    Fuel = 3
    Quantum = 4
    DarkMatter = 5
    Psionic = 6
    Relics = 7


class MissionType(IntEnum):
    DataHeist = 0
    Espionage = 1
    Smuggling = 2
    AITraining = 3
    Combat = 4
    Exploration = 5


class ProposalType(IntEnum):
    ParameterChange = 0
    TreasurySpend = 1
    ModuleUpgrade = 2
    Emergency = 3


class ProposalStatus(IntEnum):
    Active = 0
    Passed = 1
    Rejected = 2
    Executed = 3
    Cancelled = 4


E = TypeVar("E", bound=IntEnum)


def enum_label(enum_cls: type[E], code: int) -> str:
    """Return the label for a wire code, or the code itself if unknown."""
    try:
        return enum_cls(code).name
    except ValueError:
        return str(code)


def enum_labels(enum_cls: type[IntEnum]) -> str:
    """Pipe-joined labels, as shown in action documentation."""
    return "|".join(member.name for member in enum_cls)


# GALACTIC and SUI both carry 9 decimals
DECIMALS: int = 1_000_000_000

SUI_COIN_TYPE: str = "0x2::sui::SUI"

# Placeholder owner value used by the planet module for unclaimed planets
ZERO_ADDRESS: str = "0x" + "0" * 64

# Proposal deposit by proposal type code, in raw GALACTIC units
PROPOSAL_COSTS: dict[int, int] = {
    0: 1_000 * DECIMALS,
    1: 10_000 * DECIMALS,
    2: 50_000 * DECIMALS,
    3: 100_000 * DECIMALS,
    4: 500_000 * DECIMALS,
}

# Insurance premium rate in basis points
INSURANCE_PREMIUM_BPS: int = 200
BPS_DENOMINATOR: int = 10_000

# Reactor minimum contribution per side, in raw units
MINIMUM_LIQUIDITY: int = 1_000

# SUI kept back for gas when swapping SUI away
GAS_RESERVE: int = 50_000_000


def _clamp_u64(number: float | int) -> int:
    if isinstance(number, float) and not math.isfinite(number):
        return 0
    return min(U64_MAX, max(0, int(number)))


def to_raw(whole_tokens: float | int) -> int:
    """Convert a whole-token amount to raw 9-decimal units, clamped to u64."""
    return _clamp_u64(whole_tokens * DECIMALS)


def u64(value: object) -> int:
    """Coerce an untrusted value to an integer in [0, U64_MAX]."""
    if isinstance(value, int) and not isinstance(value, bool):
        return _clamp_u64(value)
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0
    return _clamp_u64(number)


def galactic_coin_type(package_id: str) -> str:
    return f"{package_id}::galactic_token::GALACTIC_TOKEN"
