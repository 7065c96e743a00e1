"""
JSON-RPC Client for CometBFT (Tendermint) nodes.

Lightweight alternative to a full chain SDK: uses httpx for HTTP and speaks
the node's JSON-RPC directly. Supports ABCI queries, transaction broadcast
and inclusion polling.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..utils import b64decode, b64encode, sha256_hex
from .errors import (
    LedgerError,
    TxOutcomeUnknown,
    TxTimeout,
    Unreachable,
    classify_query_failure,
    classify_tx_failure,
)

logger = logging.getLogger(__name__)

# Default RPC endpoint (Juno testnet)
DEFAULT_RPC_URL = "https://juno-testnet-rpc.polkachu.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_TX_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 2.0


def get_rpc_url() -> str:
    """Get the RPC URL from environment or default."""
    return os.environ.get("WASMTODO_RPC", DEFAULT_RPC_URL)


def get_chain_id() -> Optional[str]:
    """Get a chain ID override from environment (None: ask the node)."""
    return os.environ.get("WASMTODO_CHAIN_ID") or None


@dataclass(frozen=True)
class TxResult:
    """Outcome of an included transaction."""
    hash: str
    height: int
    raw_log: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    events: tuple[dict[str, Any], ...] = ()

    def attribute(self, event_type: str, key: str) -> Optional[str]:
        """Return the first value of ``key`` in an event of ``event_type``."""
        for event in self.events:
            if event.get("type") != event_type:
                continue
            for attr in event.get("attributes", []):
                if attr.get("key") == key:
                    return attr.get("value")
        return None


def encodes_event_attributes(node_version: Optional[str]) -> bool:
    """Nodes before CometBFT 0.37 send event attribute keys and values base64-encoded."""
    match = re.match(r"v?(\d+)\.(\d+)", node_version or "")
    if not match:
        return False
    return (int(match.group(1)), int(match.group(2))) < (0, 37)


def _decode_events(events: list[dict[str, Any]], encoded: bool) -> tuple[dict[str, Any], ...]:
    decoded = []
    for event in events or []:
        attrs = []
        for attr in event.get("attributes", []):
            key, value = attr.get("key") or "", attr.get("value") or ""
            if encoded:
                key = b64decode(key).decode("utf-8")
                value = b64decode(value).decode("utf-8")
            attrs.append({"key": key, "value": value})
        decoded.append({"type": event.get("type", ""), "attributes": attrs})
    return tuple(decoded)


class Connection:
    """
    An open connection to one node endpoint.

    Reusable across many calls. Only ``connect`` and ``close`` change it.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._request_id = 0
        self.chain_id: Optional[str] = None
        self.node_version: Optional[str] = None

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def call(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "abci_query")
            params: RPC parameters

        Returns:
            Result field from the RPC response

        Raises:
            Unreachable: If the node cannot be reached or answers non-JSON
            LedgerError: If the node returns a JSON-RPC error
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": self._request_id,
        }

        try:
            response = self._client.post(self.endpoint, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TransportError as exc:
            raise Unreachable(f"Cannot reach {self.endpoint}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise Unreachable(
                f"{self.endpoint} answered HTTP {exc.response.status_code}"
            ) from exc
        except ValueError as exc:
            raise Unreachable(f"{self.endpoint} returned invalid JSON") from exc

        if data.get("error"):
            error = data["error"]
            detail = error.get("data") or error.get("message") if isinstance(error, dict) else error
            raise LedgerError(f"RPC error: {detail}")

        return data.get("result")

    def status(self) -> dict[str, Any]:
        return self.call("status")

    def abci_query(self, path: str, data: bytes, height: int = 0) -> bytes:
        """
        Run an ABCI query.

        Args:
            path: gRPC-style query path (e.g. "/cosmos.bank.v1beta1.Query/Balance")
            data: protobuf-encoded request
            height: block height (0: latest)

        Returns:
            Raw protobuf-encoded response value

        Raises:
            QueryRejected / ContractQueryError: If the query failed
        """
        result = self.call(
            "abci_query",
            {"path": path, "data": data.hex(), "height": str(height), "prove": False},
        )
        response = result.get("response", {})
        code = int(response.get("code") or 0)
        if code != 0:
            raise classify_query_failure(
                code, response.get("codespace") or "", response.get("log") or ""
            )
        return b64decode(response.get("value"))

    def broadcast(
        self,
        tx_bytes: bytes,
        timeout: float = DEFAULT_TX_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TxResult:
        """
        Broadcast a signed transaction and wait for it to be included.

        Returns:
            TxResult for the included transaction

        Raises:
            BroadcastRejected (and subclasses): CheckTx rejected the tx
            ContractExecutionError: The contract failed during DeliverTx
            TxOutcomeUnknown: Contact lost after the tx was handed over
            TxTimeout: Not included within ``timeout``; outcome unknown
        """
        tx_hash = sha256_hex(tx_bytes).upper()
        try:
            result = self.call("broadcast_tx_sync", {"tx": b64encode(tx_bytes)})
        except Unreachable as exc:
            raise TxOutcomeUnknown(
                tx_hash, f"Lost contact with {self.endpoint} while broadcasting {tx_hash}: {exc}"
            ) from exc

        tx_hash = (result.get("hash") or tx_hash).upper()
        code = int(result.get("code") or 0)
        if code != 0:
            raise classify_tx_failure(
                code, result.get("codespace") or "", result.get("log") or "", tx_hash
            )

        logger.info("broadcast tx %s", tx_hash)
        return self.wait_for_tx(tx_hash, timeout=timeout, poll_interval=poll_interval)

    def get_tx(self, tx_hash: str) -> Optional[dict[str, Any]]:
        """Look up an included transaction; None while it is still pending."""
        try:
            return self.call("tx", {"hash": b64encode(bytes.fromhex(tx_hash)), "prove": False})
        except LedgerError as exc:
            if isinstance(exc, Unreachable) or "not found" not in str(exc):
                raise
            return None

    def wait_for_tx(
        self,
        tx_hash: str,
        timeout: float = DEFAULT_TX_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TxResult:
        """
        Wait for a transaction to be included in a block.

        Transport failures while polling do not end the wait; the node is
        asked again until the deadline.

        Raises:
            TxTimeout: If not included within timeout
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                found = self.get_tx(tx_hash)
            except Unreachable as exc:
                logger.warning("polling tx %s failed: %s", tx_hash, exc)
                found = None
            if found is not None:
                return self._to_tx_result(tx_hash, found)
            time.sleep(poll_interval)

        raise TxTimeout(tx_hash, timeout)

    def _to_tx_result(self, tx_hash: str, found: dict[str, Any]) -> TxResult:
        tx_result = found.get("tx_result", {})
        code = int(tx_result.get("code") or 0)
        log = tx_result.get("log") or ""
        if code != 0:
            raise classify_tx_failure(code, tx_result.get("codespace") or "", log, tx_hash)

        result = TxResult(
            hash=tx_hash,
            height=int(found.get("height") or 0),
            raw_log=log,
            gas_wanted=int(tx_result.get("gas_wanted") or 0),
            gas_used=int(tx_result.get("gas_used") or 0),
            events=_decode_events(
                tx_result.get("events", []), encodes_event_attributes(self.node_version)
            ),
        )
        logger.info("tx %s included at height %d", tx_hash, result.height)
        return result


def connect(
    endpoint: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> Connection:
    """
    Open a connection and check that the node answers.

    Args:
        endpoint: RPC URL (default: WASMTODO_RPC or the Juno testnet)
        timeout: HTTP timeout in seconds
        transport: Optional httpx transport (tests inject a MockTransport)

    Returns:
        Connection with ``chain_id`` and ``node_version`` filled in

    Raises:
        Unreachable: If the node does not answer ``status``
    """
    connection = Connection(endpoint or get_rpc_url(), timeout=timeout, transport=transport)
    try:
        status = connection.status()
    except LedgerError as exc:
        connection.close()
        if isinstance(exc, Unreachable):
            raise
        raise Unreachable(f"Node at {connection.endpoint} did not report status: {exc}") from exc

    node_info = status.get("node_info", {})
    connection.chain_id = get_chain_id() or node_info.get("network")
    connection.node_version = node_info.get("version")
    logger.debug("connected to %s (chain %s)", connection.endpoint, connection.chain_id)
    return connection
