"""Sui JSON-RPC implementation of the LedgerClient protocol.

Uses a pooled ``requests`` session. Only connection failures are retried
by the transport adapter; a submitted transaction is never re-sent.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import LedgerError, MissingResourceFailure
from ..world.types import SUI_COIN_TYPE
from . import bcs
from .client import (
    Coin,
    LedgerObject,
    ObjectChange,
    OwnedObject,
    Page,
    Signer,
    TransactionOutcome,
    TransactionRecord,
)
from .transaction import ObjectInput, PureValue, TransactionPlan

logger = logging.getLogger(__name__)

# Hard protocol cap on gas payment coins
MAX_GAS_OBJECTS = 255


@contextmanager
def malformed_reply(method: str) -> Iterator[None]:
    """Raise LedgerError when a node reply lacks the fields we read."""
    try:
        yield
    except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
        raise LedgerError(f"{method} returned a malformed reply: {e!r}", method=method) from e


def encode_object_ref(object_id: str, version: int, digest: str) -> bytes:
    return bcs.address(object_id) + bcs.u64(version) + bcs.byte_vector(bcs.b58decode(digest))


def encode_call_arg(value: PureValue | ObjectInput, resolved: dict[str, dict[str, Any]]) -> bytes:
    """Encode one transaction input as a CallArg.

    ``resolved`` maps object ids to their ``sui_multiGetObjects`` data.
    """
    if isinstance(value, PureValue):
        return bcs.uleb128(0) + bcs.byte_vector(value.encode())

    data = resolved[value.object_id]
    owner = data.get("owner")
    if isinstance(owner, dict) and "Shared" in owner:
        initial_version = int(owner["Shared"]["initial_shared_version"])
        return (
            bcs.uleb128(1)
            + bcs.uleb128(1)
            + bcs.address(value.object_id)
            + bcs.u64(initial_version)
            + bcs.boolean(True)
        )
    return (
        bcs.uleb128(1)
        + bcs.uleb128(0)
        + encode_object_ref(value.object_id, int(data["version"]), data["digest"])
    )


def serialize_transaction_data(
    plan: TransactionPlan,
    resolved: dict[str, dict[str, Any]],
    sender: str,
    gas_payment: list[dict[str, Any]],
    gas_price: int,
    gas_budget: int,
) -> bytes:
    """BCS-serialize TransactionData::V1 for a programmable transaction."""
    inputs = [encode_call_arg(v, resolved) for v in plan.inputs]
    kind = (
        bcs.uleb128(0)  # ProgrammableTransaction
        + bcs.vector(inputs, lambda b: b)
        + bcs.vector(plan.commands, lambda c: c.encode())
    )
    gas_data = (
        bcs.vector(
            gas_payment,
            lambda c: encode_object_ref(c["coinObjectId"], int(c["version"]), c["digest"]),
        )
        + bcs.address(sender)
        + bcs.u64(gas_price)
        + bcs.u64(gas_budget)
    )
    return (
        bcs.uleb128(0)  # V1
        + kind
        + bcs.address(sender)
        + gas_data
        + bcs.uleb128(0)  # no expiration
    )


class SuiJsonRpcLedger:
    """Blocking JSON-RPC 2.0 client for a Sui full node."""

    def __init__(self, rpc_url: str, timeout: float = 30.0, gas_budget: int = 50_000_000):
        self.url = rpc_url
        self.timeout = timeout
        self.gas_budget = gas_budget
        self.session = self._create_session()
        self._request_id = 0

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=3,
            read=0,
            connect=3,
            backoff_factor=0.3,
            status_forcelist=(500, 502, 504),
            allowed_methods=frozenset(),
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _request(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise LedgerError(f"{method} failed: {e}", method=method) from e

        if not isinstance(body, dict):
            raise LedgerError(f"{method} returned a non-object body", method=method)
        if "error" in body:
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise LedgerError(f"{method} error: {message}", method=method)
        return body.get("result")

    def _page(self, method: str, params: list[Any]) -> tuple[dict[str, Any], list[Any]]:
        """Request a paged result; a null result reads as an empty page."""
        result = self._request(method, params) or {}
        with malformed_reply(method):
            return result, list(result.get("data") or [])

    # --- reads -------------------------------------------------------------

    def list_owned_objects(self, address: str, cursor: str | None = None) -> Page[OwnedObject]:
        method = "suix_getOwnedObjects"
        result, entries = self._page(
            method,
            [
                address,
                {"filter": None, "options": {"showType": True, "showContent": True}},
                cursor,
                None,
            ],
        )
        items = []
        with malformed_reply(method):
            for entry in entries:
                data = entry.get("data")
                if not data:
                    continue
                content = data.get("content") or {}
                items.append(
                    OwnedObject(
                        object_id=data["objectId"],
                        object_type=data.get("type", ""),
                        fields=content.get("fields") or {},
                    )
                )
            return Page(
                items=items,
                next_cursor=result.get("nextCursor"),
                has_more=bool(result.get("hasNextPage")),
            )

    def list_transactions_from(self, address: str, limit: int) -> list[TransactionRecord]:
        method = "suix_queryTransactionBlocks"
        _, entries = self._page(
            method,
            [
                {"filter": {"FromAddress": address}, "options": {"showObjectChanges": True}},
                None,
                limit,
                True,
            ],
        )
        with malformed_reply(method):
            return [
                TransactionRecord(
                    digest=tx.get("digest", ""),
                    object_changes=[ObjectChange.from_dict(c) for c in tx.get("objectChanges") or []],
                )
                for tx in entries
            ]

    def query_events(self, event_type: str, limit: int) -> list[dict[str, Any]]:
        method = "suix_queryEvents"
        _, entries = self._page(method, [{"MoveEventType": event_type}, None, limit, False])
        with malformed_reply(method):
            return [e.get("parsedJson") or {} for e in entries]

    def list_coins(self, owner: str, coin_type: str) -> list[Coin]:
        method = "suix_getCoins"
        _, entries = self._page(method, [owner, coin_type, None, None])
        with malformed_reply(method):
            return [
                Coin(
                    coin_object_id=c["coinObjectId"],
                    coin_type=c.get("coinType", coin_type),
                    balance=int(c.get("balance", 0)),
                )
                for c in entries
            ]

    def get_object(self, object_id: str) -> LedgerObject | None:
        method = "sui_getObject"
        result = self._request(
            method,
            [object_id, {"showType": True, "showContent": True, "showOwner": True}],
        )
        with malformed_reply(method):
            data = (result or {}).get("data")
            if not data:
                return None
            content = data.get("content") or {}
            return LedgerObject(
                object_id=data["objectId"],
                object_type=data.get("type", ""),
                fields=content.get("fields") or {},
                owner=data.get("owner"),
            )

    def current_epoch(self) -> int:
        method = "suix_getLatestSuiSystemState"
        result = self._request(method, []) or {}
        with malformed_reply(method):
            return int(result.get("epoch", 0))

    # --- submission --------------------------------------------------------

    def _resolve_objects(self, object_ids: list[str]) -> dict[str, dict[str, Any]]:
        if not object_ids:
            return {}
        method = "sui_multiGetObjects"
        result = self._request(method, [object_ids, {"showOwner": True}]) or []
        if not isinstance(result, list) or len(result) != len(object_ids):
            raise LedgerError(
                f"{method} did not return one entry per object", method=method
            )
        resolved: dict[str, dict[str, Any]] = {}
        with malformed_reply(method):
            for object_id, entry in zip(object_ids, result):
                data = (entry or {}).get("data")
                if not data:
                    raise MissingResourceFailure(f"object {object_id}")
                resolved[object_id] = data
        return resolved

    def _select_gas(self, sender: str, exclude: set[str]) -> list[dict[str, Any]]:
        method = "suix_getCoins"
        _, entries = self._page(method, [sender, SUI_COIN_TYPE, None, None])
        with malformed_reply(method):
            coins = [c for c in entries if c["coinObjectId"] not in exclude]
            if not coins:
                raise MissingResourceFailure("SUI gas coin", owner=sender)
            coins.sort(key=lambda c: int(c["balance"]), reverse=True)
            selected: list[dict[str, Any]] = []
            total = 0
            for coin in coins[:MAX_GAS_OBJECTS]:
                selected.append(coin)
                total += int(coin["balance"])
                if total >= self.gas_budget:
                    break
        return selected

    def _gas_price(self) -> int:
        method = "suix_getReferenceGasPrice"
        result = self._request(method, [])
        with malformed_reply(method):
            return int(result)

    def submit(self, plan: TransactionPlan, signer: Signer) -> TransactionOutcome:
        sender = signer.address
        object_ids = plan.object_ids()
        resolved = self._resolve_objects(object_ids)
        gas_payment = self._select_gas(sender, set(object_ids))
        gas_price = self._gas_price()

        with malformed_reply("input resolution"):
            tx_bytes = serialize_transaction_data(
                plan, resolved, sender, gas_payment, gas_price, self.gas_budget
            )
        signature = signer.sign_transaction(tx_bytes)

        method = "sui_executeTransactionBlock"
        result = self._request(
            method,
            [
                base64.b64encode(tx_bytes).decode("ascii"),
                [signature],
                {"showEffects": True, "showObjectChanges": True},
                "WaitForLocalExecution",
            ],
        )
        if not result:
            # The transaction may still have landed; it is never re-sent
            raise LedgerError(f"{method} returned no result", method=method)
        with malformed_reply(method):
            status = ((result.get("effects") or {}).get("status")) or {}
            outcome = TransactionOutcome(
                status=status.get("status", "failure"),
                digest=result.get("digest", ""),
                error=status.get("error"),
                object_changes=[ObjectChange.from_dict(c) for c in result.get("objectChanges") or []],
            )
        logger.debug("Executed %s: %s", outcome.digest, outcome.status)
        return outcome
