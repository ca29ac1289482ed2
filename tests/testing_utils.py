"""Testing utilities for the orchestrator.

Provides an in-memory ledger, a fake signer and a scripted decision maker
so the runner, executor and discovery layers can be exercised without a
network or an LLM.

Usage:
    from tests.testing_utils import FakeLedger, FakeSigner, PACKAGE_ID, oid

    ledger = FakeLedger()
    signer = FakeSigner(oid(1))
    ledger.add_coin(signer.address, ledger.galactic_type, 10**12)
    outcome = ledger.submit(plan, signer)
    assert ledger.targets() == ["mint_agent_to"]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from rivals.agents.catalog import ActionId, KnownIds, parse_decision
from rivals.agents.decision import DecisionResult
from rivals.errors import LedgerError, RivalsError
from rivals.ledger.client import (
    Coin,
    LedgerObject,
    ObjectChange,
    OwnedObject,
    Page,
    TransactionOutcome,
    TransactionRecord,
)
from rivals.ledger.transaction import TransactionPlan
from rivals.world.types import SUI_COIN_TYPE, galactic_coin_type

PACKAGE_ID = "0x" + "ab" * 32


def oid(n: int) -> str:
    """Deterministic, well-formed 32-byte object id."""
    return "0x" + f"{n:064x}"


def type_of(module: str, name: str, package_id: str = PACKAGE_ID) -> str:
    return f"{package_id}::{module}::{name}"


# Move function -> (module, struct, owned by sender?) of the object it creates
CREATES: dict[str, tuple[str, str, bool]] = {
    "mint_agent_to": ("agent", "Agent", True),
    "build_ship_to": ("ship", "Ship", True),
    "build_station_to": ("station", "Station", True),
    "discover_planet": ("planet", "Planet", False),
    "create_mission_template": ("missions", "MissionTemplate", False),
    "create_proposal": ("governance", "Proposal", False),
    "create_voting_power": ("governance", "VotingPower", True),
    "create_and_share_reactor": ("defi", "EnergyReactor", False),
    "create_and_share_insurance_pool": ("defi", "InsurancePool", False),
    "add_liquidity": ("defi", "LPReceipt", True),
    "purchase_insurance": ("defi", "InsurancePolicy", True),
    "start_mission": ("missions", "ActiveMission", True),
}


@dataclass
class FakeSigner:
    """Signer with a fixed address; signatures are never checked."""

    _address: str

    @property
    def address(self) -> str:
        return self._address

    def sign_transaction(self, tx_bytes: bytes) -> str:
        return "c2lnbmF0dXJl"


@dataclass
class FakeLedger:
    """In-memory LedgerClient.

    Successful submissions create the object their Move call produces (see
    CREATES) so that follow-up reads see it. Queue an outcome with
    ``fail_next`` or ``queue`` to override the next submission.
    """

    package_id: str = PACKAGE_ID
    epoch: int = 1
    owned: dict[str, list[OwnedObject]] = field(default_factory=dict)
    objects: dict[str, LedgerObject] = field(default_factory=dict)
    coins: dict[tuple[str, str], list[Coin]] = field(default_factory=dict)
    events: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    transactions: dict[str, list[TransactionRecord]] = field(default_factory=dict)
    submitted: list[tuple[TransactionPlan, str]] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    queued: list[TransactionOutcome] = field(default_factory=list)
    broken: set[str] = field(default_factory=set)
    page_size: int = 50
    _next_id: int = 0x10000

    @property
    def galactic_type(self) -> str:
        return galactic_coin_type(self.package_id)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.broken:
            raise LedgerError(f"{name} unavailable")

    def new_id(self) -> str:
        self._next_id += 1
        return oid(self._next_id)

    # --- setup helpers -----------------------------------------------------

    def add_owned(
        self, owner: str, module: str, name: str, fields: dict[str, Any] | None = None
    ) -> str:
        object_id = self.new_id()
        self.owned.setdefault(owner, []).append(
            OwnedObject(object_id, type_of(module, name, self.package_id), fields or {"name": name})
        )
        return object_id

    def add_object(
        self, module: str, name: str, fields: dict[str, Any], object_id: str | None = None
    ) -> str:
        object_id = object_id or self.new_id()
        self.objects[object_id] = LedgerObject(object_id, type_of(module, name, self.package_id), fields)
        return object_id

    def add_coin(self, owner: str, coin_type: str, balance: int) -> str:
        coin_id = self.new_id()
        self.coins.setdefault((owner, coin_type), []).append(Coin(coin_id, coin_type, balance))
        return coin_id

    def fund(self, owner: str, galactic: int = 0, sui: int = 0) -> None:
        if galactic:
            self.add_coin(owner, self.galactic_type, galactic)
        if sui:
            self.add_coin(owner, SUI_COIN_TYPE, sui)

    def queue(self, outcome: TransactionOutcome) -> None:
        self.queued.append(outcome)

    def fail_next(self, error: str = "MoveAbort(1)") -> None:
        self.queue(TransactionOutcome("failure", f"digest-fail-{len(self.queued)}", error))

    def targets(self) -> list[str]:
        """Function names of every game Move call submitted, in order."""
        return [
            call.function
            for plan, _ in self.submitted
            for call in plan.move_calls()
            if call.package == self.package_id
        ]

    def plans_for(self, function: str) -> list[TransactionPlan]:
        return [
            plan for plan, _ in self.submitted
            if any(c.function == function for c in plan.move_calls())
        ]

    # --- LedgerClient ------------------------------------------------------

    def submit(self, plan: TransactionPlan, signer: Any) -> TransactionOutcome:
        self._call("submit")
        self.submitted.append((plan, signer.address))
        digest = f"digest{len(self.submitted):04d}"
        if self.queued:
            return self.queued.pop(0)

        changes: list[ObjectChange] = []
        for call in plan.move_calls():
            created = CREATES.get(call.function)
            if created is None or call.package != self.package_id:
                continue
            module, name, owned = created
            if owned:
                object_id = self.add_owned(signer.address, module, name)
            else:
                object_id = self.add_object(module, name, {"name": name})
            changes.append(ObjectChange("created", object_id, type_of(module, name, self.package_id)))
        self.transactions.setdefault(signer.address, []).insert(0, TransactionRecord(digest, changes))
        return TransactionOutcome("success", digest, object_changes=changes)

    def list_owned_objects(self, address: str, cursor: str | None = None) -> Page[OwnedObject]:
        self._call("list_owned_objects")
        items = self.owned.get(address, [])
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        has_more = end < len(items)
        return Page(items[start:end], str(end) if has_more else None, has_more)

    def list_transactions_from(self, address: str, limit: int) -> list[TransactionRecord]:
        self._call("list_transactions_from")
        return self.transactions.get(address, [])[:limit]

    def query_events(self, event_type: str, limit: int) -> list[dict[str, Any]]:
        self._call("query_events")
        return self.events.get(event_type, [])[:limit]

    def list_coins(self, owner: str, coin_type: str) -> list[Coin]:
        self._call("list_coins")
        return list(self.coins.get((owner, coin_type), []))

    def get_object(self, object_id: str) -> LedgerObject | None:
        self._call("get_object")
        return self.objects.get(object_id)

    def current_epoch(self) -> int:
        self._call("current_epoch")
        return self.epoch


@dataclass
class DecisionCall:
    system_prompt: str
    user_prompt: str
    legal_actions: frozenset[ActionId]
    temperature: float


class ScriptedDecisionMaker:
    """Replays a fixed list of decisions instead of calling an LLM.

    Each script entry is either a decision dict or a RivalsError to raise.
    Entries are consumed in order; an exhausted script raises IndexError.
    """

    def __init__(self, script: list[dict[str, Any] | RivalsError]) -> None:
        self.script = list(script)
        self.calls: list[DecisionCall] = []

    def decide(
        self,
        system_prompt: str,
        user_prompt: str,
        legal_actions: frozenset[ActionId],
        known_ids: KnownIds,
        temperature: float,
    ) -> DecisionResult:
        self.calls.append(DecisionCall(system_prompt, user_prompt, legal_actions, temperature))
        entry = self.script.pop(0)
        if isinstance(entry, RivalsError):
            raise entry
        return DecisionResult(
            decision=parse_decision(entry),
            raw=str(entry),
            cost=0.001,
            usage={"total_tokens": 100},
        )
