"""
Entries Gateway - Typed access to one deployed entries contract.

The gateway walks a one-way lifecycle:

    UNBOUND -> UPLOADED(code_id) -> INSTANTIATED(address) -> READY

``bind()`` attaches to an already deployed contract and goes straight to
READY. Entry operations are only allowed in READY. To target a different
contract, build a new gateway.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Iterator, Optional, Sequence

from .pneuma.client import ContractRef, SigningClient
from .pneuma.coins import Coin
from .pneuma.errors import ContractQueryError, LedgerError
from .pneuma.rpc import TxResult
from .sigil.keys import validate_address
from .spec.messages import (
    DeleteEntry,
    Entry,
    ExecuteMessage,
    InstantiateMessage,
    NewEntry,
    Priority,
    QueryEntry,
    QueryList,
    QueryMessage,
    Status,
    UpdateEntry,
)
from .spec.schemas import SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 30


class GatewayState(enum.Enum):
    UNBOUND = "unbound"
    UPLOADED = "uploaded"
    INSTANTIATED = "instantiated"
    READY = "ready"


class GatewayStateError(LedgerError):
    exit_code = 11


class EntryNotFound(ContractQueryError):
    exit_code = 12

    def __init__(self, entry_id: int, reason: str = "") -> None:
        super().__init__(reason or f"Entry {entry_id} not found")
        self.entry_id = entry_id


def _is_not_found(exc: ContractQueryError) -> bool:
    return "not found" in exc.reason.lower()


class EntriesGateway:
    """
    Args:
        client: Signing client; its account sends every execute
        funds: Coins attached to every execute unless overridden per call
        page_size: Entries requested per query_list page (capped at 30)
        registry: Schema registry used to validate outgoing messages
    """

    def __init__(
        self,
        client: SigningClient,
        funds: Sequence[Coin] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
        registry: Optional[SchemaRegistry] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.client = client
        self.funds = tuple(funds)
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.registry = registry or SchemaRegistry.default()
        self.state = GatewayState.UNBOUND
        self.code_id: Optional[int] = None
        self.address: Optional[str] = None

    # ============ Lifecycle ============

    def _require(self, *states: GatewayState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise GatewayStateError(
                f"Gateway is {self.state.value}; operation needs {allowed}"
            )

    def upload(self, bytecode: bytes) -> int:
        self._require(GatewayState.UNBOUND)
        self.code_id = self.client.upload_code(bytecode)
        self.state = GatewayState.UPLOADED
        return self.code_id

    def instantiate(
        self,
        label: str,
        init: Optional[InstantiateMessage] = None,
        code_id: Optional[int] = None,
        admin: Optional[str] = None,
    ) -> ContractRef:
        """
        Instantiate the uploaded code (or ``code_id`` when starting UNBOUND).
        """
        if code_id is not None:
            self._require(GatewayState.UNBOUND)
            self.code_id = code_id
        else:
            self._require(GatewayState.UPLOADED)

        init_msg = (init or InstantiateMessage()).to_json()
        self.registry.validate_message(init_msg, "instantiate")
        ref = self.client.instantiate(self.code_id, init_msg, label, admin=admin)
        self.address = ref.address
        self.state = GatewayState.INSTANTIATED
        return ref

    def ready(self) -> "EntriesGateway":
        self._require(GatewayState.INSTANTIATED)
        self.state = GatewayState.READY
        return self

    def bind(self, address: str, code_id: Optional[int] = None) -> "EntriesGateway":
        self._require(GatewayState.UNBOUND)
        self.address = validate_address(address)
        self.code_id = code_id
        self.state = GatewayState.READY
        return self

    @property
    def ref(self) -> ContractRef:
        self._require(GatewayState.INSTANTIATED, GatewayState.READY)
        return ContractRef(code_id=self.code_id or 0, address=self.address or "")

    # ============ Raw messages ============

    def execute(self, message: ExecuteMessage, funds: Optional[Sequence[Coin]] = None) -> TxResult:
        self._require(GatewayState.READY)
        payload = message.to_json()
        self.registry.validate_message(payload, "execute")
        attached = self.funds if funds is None else tuple(funds)
        logger.debug("execute %s on %s", message.tag, self.address)
        return self.client.execute(self.address, payload, funds=attached)

    def query(self, message: QueryMessage) -> Any:
        self._require(GatewayState.READY)
        payload = message.to_json()
        self.registry.validate_message(payload, "query")
        return self.client.query(self.address, payload)

    # ============ Entries ============

    def new_entry(
        self,
        description: str,
        priority: Optional[Priority] = None,
        funds: Optional[Sequence[Coin]] = None,
    ) -> int:
        """Create an entry and return the id the contract assigned."""
        result = self.execute(NewEntry(description=description, priority=priority), funds)
        new_id = result.attribute("wasm", "new_entry_id")
        if new_id is None:
            raise LedgerError(f"No new_entry_id in wasm events of tx {result.hash}")
        return int(new_id)

    def update_entry(
        self,
        entry_id: int,
        description: Optional[str] = None,
        status: Optional[Status] = None,
        priority: Optional[Priority] = None,
        funds: Optional[Sequence[Coin]] = None,
    ) -> TxResult:
        """Update an existing entry. Raises EntryNotFound for an unknown id."""
        self.get_entry(entry_id)
        message = UpdateEntry(
            id=entry_id, description=description, status=status, priority=priority
        )
        return self.execute(message, funds)

    def delete_entry(self, entry_id: int, funds: Optional[Sequence[Coin]] = None) -> TxResult:
        """
        Delete an existing entry.

        The contract's own delete accepts unknown ids, so existence is checked
        first; deleting twice raises EntryNotFound the second time.
        """
        self.get_entry(entry_id)
        return self.execute(DeleteEntry(id=entry_id), funds)

    def get_entry(self, entry_id: int) -> Entry:
        try:
            payload = self.query(QueryEntry(id=entry_id))
        except ContractQueryError as exc:
            if _is_not_found(exc):
                raise EntryNotFound(entry_id, exc.reason) from exc
            raise
        return Entry.from_dict(payload)

    def list_page(self, start_after: Optional[int], limit: int) -> list[Entry]:
        payload = self.query(QueryList(start_after=start_after, limit=limit))
        self.registry.validate_message(payload, "list_response")
        return [Entry.from_dict(item) for item in payload["entries"]]

    def list_entries(
        self,
        start_after: Optional[int] = 0,
        limit: Optional[int] = None,
    ) -> Iterator[Entry]:
        """
        Iterate entries with id > ``start_after`` in ascending id order.

        Pages are fetched lazily ``page_size`` at a time until a page comes
        back short or ``limit`` entries have been produced.
        """
        produced = 0
        cursor = start_after
        while limit is None or produced < limit:
            want = self.page_size
            if limit is not None:
                want = min(want, limit - produced)
            page = self.list_page(cursor, want)
            logger.debug("query_list after %s: %d entries", cursor, len(page))
            for entry in page:
                if cursor is not None and entry.id <= cursor:
                    raise LedgerError(
                        f"Contract returned out-of-order entry {entry.id} after {cursor}"
                    )
                cursor = entry.id
                produced += 1
                yield entry
            if len(page) < want:
                return
