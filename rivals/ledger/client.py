"""Ledger client interface.

The orchestrator core never talks to a specific RPC surface; it depends on
the LedgerClient protocol below. SuiJsonRpcLedger is the production
implementation and tests use an in-memory fake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from .transaction import TransactionPlan

T = TypeVar("T")


@dataclass
class ObjectChange:
    """One entry of a transaction's object-change list."""

    change_type: str  # created | mutated | deleted | transferred | published ...
    object_id: str
    object_type: str = ""
    owner: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectChange:
        return cls(
            change_type=str(data.get("type", "")),
            object_id=str(data.get("objectId", "")),
            object_type=str(data.get("objectType", "")),
            owner=data.get("owner"),
        )


@dataclass
class TransactionOutcome:
    status: str
    digest: str
    error: str | None = None
    object_changes: list[ObjectChange] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def created(self) -> list[ObjectChange]:
        return [c for c in self.object_changes if c.change_type == "created"]


@dataclass
class TransactionRecord:
    digest: str
    object_changes: list[ObjectChange] = field(default_factory=list)


@dataclass
class OwnedObject:
    object_id: str
    object_type: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class Page(Generic[T]):
    items: list[T]
    next_cursor: str | None = None
    has_more: bool = False


@dataclass
class Coin:
    coin_object_id: str
    coin_type: str
    balance: int


@dataclass
class LedgerObject:
    """A single object read with its Move fields and owner."""

    object_id: str
    object_type: str
    fields: dict[str, Any] = field(default_factory=dict)
    owner: Any = None


class Signer(Protocol):
    @property
    def address(self) -> str: ...

    def sign_transaction(self, tx_bytes: bytes) -> str:
        """Return the serialized, base64-encoded signature for ``tx_bytes``."""
        ...


class LedgerClient(Protocol):
    """Blocking ledger operations consumed by the core."""

    def submit(self, plan: TransactionPlan, signer: Signer) -> TransactionOutcome:
        """Sign, submit and wait for finalized effects."""
        ...

    def list_owned_objects(
        self, address: str, cursor: str | None = None
    ) -> Page[OwnedObject]: ...

    def list_transactions_from(
        self, address: str, limit: int
    ) -> list[TransactionRecord]:
        """Most-recent-first transactions sent by ``address``."""
        ...

    def query_events(self, event_type: str, limit: int) -> list[dict[str, Any]]:
        """Parsed JSON payloads of events of ``event_type``."""
        ...

    def list_coins(self, owner: str, coin_type: str) -> list[Coin]: ...

    def get_object(self, object_id: str) -> LedgerObject | None: ...

    def current_epoch(self) -> int: ...
