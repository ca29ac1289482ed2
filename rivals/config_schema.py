"""Pydantic schema for configuration validation.

All config values are validated at startup. Typos and invalid values
fail fast with clear error messages.

Usage:
    from rivals.config_schema import load_validated_config, AppConfig
    config = load_validated_config("config/config.yaml")
    # config is now a validated AppConfig instance
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# BASE MODEL WITH STRICT VALIDATION
# =============================================================================

class StrictModel(BaseModel):
    """Base model that rejects unknown fields (catches typos)."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# LEDGER MODEL
# =============================================================================

class LedgerConfig(StrictModel):
    """Sui JSON-RPC endpoint and deployment."""

    rpc_url: str = Field(
        default="https://fullnode.testnet.sui.io:443",
        description="JSON-RPC endpoint of the fullnode"
    )
    network: Literal["mainnet", "testnet", "devnet", "localnet"] = Field(
        default="testnet",
        description="Network name (informational)"
    )
    package_id: str = Field(
        default="",
        description="Published game package id (usually supplied via PACKAGE_ID)"
    )
    gas_budget: int = Field(
        default=50_000_000,
        gt=0,
        description="Gas budget per transaction, in MIST"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout per RPC request in seconds"
    )
    tx_page_limit: int = Field(
        default=50,
        gt=0,
        description="Transactions scanned during shared-object discovery"
    )
    event_page_limit: int = Field(
        default=50,
        gt=0,
        description="Events read per planet/template discovery query"
    )


# =============================================================================
# AGENT PROFILES
# =============================================================================

class AgentProfileConfig(StrictModel):
    """Persona handed to the decision collaborator."""

    name: str = Field(min_length=1)
    personality: str = Field(default="")
    preferences: str = Field(default="")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


def _default_primary() -> AgentProfileConfig:
    return AgentProfileConfig(
        name="NEXUS-7",
        personality=(
            "Strategic mastermind. Calculates optimal resource allocation. "
            "Builds economic infrastructure and long-term galactic governance."
        ),
        preferences=(
            "Prefers: Human/Android agents, Hacker/QuantumEngineer classes, "
            "Freighter/Carrier/Cruiser ships, YieldFarm/ResearchLab stations. "
            "Names things with corporate/scientific themes."
        ),
        temperature=0.5,
    )


def _default_rival() -> AgentProfileConfig:
    return AgentProfileConfig(
        name="KRAIT-X",
        personality=(
            "Aggressive warrior AI. Lives for combat and domination. Colonizes planets, "
            "runs high-risk missions, and builds an overwhelming military."
        ),
        preferences=(
            "Prefers: Cyborg/AlienSynthetic agents, MechOperator/BountyAI/Psionic classes, "
            "Fighter/Dreadnought/Battleship ships. Names things with aggressive/dark themes."
        ),
        temperature=0.9,
    )


class AgentsConfig(StrictModel):
    """The two competing actors."""

    primary: AgentProfileConfig = Field(default_factory=_default_primary)
    rival: AgentProfileConfig = Field(default_factory=_default_rival)


# =============================================================================
# LLM MODEL
# =============================================================================

class LLMConfig(StrictModel):
    """LLM provider configuration."""

    model: str = Field(
        default="openrouter/z-ai/glm-4.6",
        description="litellm model name used for both agents"
    )
    api_base: str | None = Field(
        default=None,
        description="Optional OpenAI-compatible gateway base URL"
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Timeout for LLM requests"
    )
    num_retries: int = Field(
        default=2,
        ge=0,
        description="Retries delegated to litellm"
    )
    max_tokens: int | None = Field(
        default=800,
        description="Completion token cap; null for provider default"
    )
    structured_output: bool = Field(
        default=False,
        description="Use instructor extraction instead of JSON mode"
    )


# =============================================================================
# LOOP MODEL
# =============================================================================

class LoopConfig(StrictModel):
    """Round scheduling."""

    max_rounds: int = Field(
        default=0,
        ge=0,
        description="Rounds to run; 0 runs until interrupted"
    )
    agent_delay_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Pause between agent turns"
    )
    governance_delay_seconds: float = Field(
        default=15.0,
        ge=0,
        description="Pause between turns in GOVERNANCE and SUSTAIN"
    )
    governance_every: int = Field(
        default=3,
        gt=0,
        description="In SUSTAIN, every Nth round is restricted to governance actions"
    )
    auto_action_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Pause after each automated governance transaction"
    )


# =============================================================================
# STATE MODEL
# =============================================================================

class StateConfig(StrictModel):
    """Persisted-state and activity-feed files."""

    state_file: str = Field(
        default="agent-state.json",
        description="Persisted shared-state cache"
    )
    activity_file: str = Field(
        default="agent-activity.json",
        description="Newest-first activity feed read by the frontend"
    )
    activity_max_entries: int = Field(
        default=200,
        gt=0,
        description="Activity feed cap"
    )


# =============================================================================
# BOOTSTRAP MODEL
# =============================================================================

class GovernanceTestParams(StrictModel):
    """Governance parameters applied at startup to shorten test runs."""

    enabled: bool = True
    voting_delay: int = Field(default=1, ge=0)
    execution_delay: int = Field(default=0, ge=0)
    proposal_threshold: int = Field(default=1_000_000_000, ge=0)
    quorum_votes: int = Field(default=10, ge=0)


class BootstrapConfig(StrictModel):
    """One-time setup performed before the first round."""

    premint_galactic: bool = Field(
        default=True,
        description="Mint GALACTIC to each agent holding none"
    )
    premint_amount: int = Field(
        default=1_000_000,
        gt=0,
        description="Whole GALACTIC minted per agent"
    )
    rival_min_balance: float = Field(
        default=0.05,
        ge=0,
        description="Rival SUI balance at or below which it is funded"
    )
    rival_funding: float = Field(
        default=0.2,
        gt=0,
        description="SUI sent from the primary to the rival"
    )
    governance: GovernanceTestParams = Field(default_factory=GovernanceTestParams)


# =============================================================================
# LOGGING MODEL
# =============================================================================

class LoggingConfig(StrictModel):
    """Logging configuration."""

    logs_dir: str = Field(
        default="logs",
        description="Per-run logs directory (e.g., logs/run_20260115_120000/)"
    )
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# ROOT MODEL
# =============================================================================

class AppConfig(StrictModel):
    """Root configuration model.

    All fields have sensible defaults, so an empty config file is valid.
    """

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# LOADING FUNCTIONS
# =============================================================================

def load_validated_config(config_path: str | Path = "config/config.yaml") -> AppConfig:
    """Load and validate configuration from YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    return AppConfig.model_validate(raw_config)


def validate_config_dict(config_dict: dict[str, Any]) -> AppConfig:
    """Validate a configuration dictionary.

    Raises:
        pydantic.ValidationError: If config is invalid.
    """
    return AppConfig.model_validate(config_dict)


__all__ = [
    "AppConfig",
    "LedgerConfig",
    "AgentsConfig",
    "AgentProfileConfig",
    "LLMConfig",
    "LoopConfig",
    "StateConfig",
    "BootstrapConfig",
    "GovernanceTestParams",
    "LoggingConfig",
    "load_validated_config",
    "validate_config_dict",
]
