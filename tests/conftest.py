"""Pytest fixtures for space-rivals tests.

Common fixtures: an in-memory ledger, two fake signers, a fresh shared
state and a validated config pointing every file into tmp_path.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import load_dotenv

from rivals.config import reset_config
from rivals.config_schema import AppConfig, validate_config_dict
from rivals.world.resource_types import AdminCapKind, SingletonKind
from rivals.world.state import PersistedState

from tests.testing_utils import PACKAGE_ID, FakeLedger, FakeSigner, oid

# Load environment variables from .env before any tests run
load_dotenv()


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "external: mark test as requiring external services (real API calls)"
    )


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command-line options."""
    parser.addoption(
        "--run-external",
        action="store_true",
        default=False,
        help="Run tests marked as external (real API calls, slow)",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip external tests unless --run-external is given."""
    if config.getoption("--run-external"):
        return
    skip_external = pytest.mark.skip(reason="need --run-external option to run")
    for item in items:
        if "external" in item.keywords:
            item.add_marker(skip_external)


@pytest.fixture(autouse=True)
def _isolated_config() -> None:
    """Every test starts without a cached global config."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def primary_signer() -> FakeSigner:
    return FakeSigner(oid(0xA1))


@pytest.fixture
def rival_signer() -> FakeSigner:
    return FakeSigner(oid(0xB2))


@pytest.fixture
def fresh_state(primary_signer: FakeSigner, rival_signer: FakeSigner) -> PersistedState:
    """State for PACKAGE_ID with all init singletons and admin caps known."""
    state = PersistedState.fresh(PACKAGE_ID, primary_signer.address, rival_signer.address)
    shared = state.shared_objects
    shared.set_once(SingletonKind.TREASURY, oid(0x100))
    shared.set_once(SingletonKind.MISSION_REGISTRY, oid(0x101))
    shared.set_once(SingletonKind.GOVERNANCE_REGISTRY, oid(0x102))
    shared.set_once(SingletonKind.CODE_REGISTRY, oid(0x103))
    for i, kind in enumerate(AdminCapKind):
        shared.admin_caps[kind] = oid(0x200 + i)
    return state


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Config with no delays, no bootstrap side effects and files in tmp_path."""
    return validate_config_dict({
        "ledger": {"package_id": PACKAGE_ID},
        "loop": {
            "agent_delay_seconds": 0,
            "governance_delay_seconds": 0,
            "auto_action_delay_seconds": 0,
        },
        "state": {
            "state_file": str(tmp_path / "agent-state.json"),
            "activity_file": str(tmp_path / "agent-activity.json"),
        },
        "bootstrap": {
            "premint_galactic": False,
            "governance": {"enabled": False},
        },
        "logging": {"logs_dir": str(tmp_path / "logs")},
    })
