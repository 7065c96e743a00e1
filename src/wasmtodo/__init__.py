__all__ = [
    # Keys
    "Account",
    "InvalidMnemonic",
    "KeyMaterial",
    "derive",
    "generate_mnemonic",
    # Transport
    "Connection",
    "TxResult",
    "connect",
    # Coins and gas
    "Coin",
    "GasPolicy",
    "GasPrice",
    # Signing client
    "ContractRef",
    "SigningClient",
    # Errors
    "BroadcastRejected",
    "ContractExecutionError",
    "ContractQueryError",
    "InstantiationFailed",
    "InsufficientFunds",
    "LedgerError",
    "OutOfGas",
    "QueryRejected",
    "TxOutcomeUnknown",
    "TxTimeout",
    "Unreachable",
    # Gateway
    "EntriesGateway",
    "EntryNotFound",
    "GatewayState",
    "GatewayStateError",
    # Messages
    "DeleteEntry",
    "Entry",
    "InstantiateMessage",
    "NewEntry",
    "Priority",
    "QueryEntry",
    "QueryList",
    "Status",
    "UpdateEntry",
    # Schema
    "SchemaRegistry",
    "SchemaValidationError",
]

from .sigil.keys import Account, InvalidMnemonic, KeyMaterial, derive, generate_mnemonic
from .pneuma.rpc import Connection, TxResult, connect
from .pneuma.coins import Coin, GasPolicy, GasPrice
from .pneuma.client import ContractRef, SigningClient
from .pneuma.errors import (
    BroadcastRejected,
    ContractExecutionError,
    ContractQueryError,
    InstantiationFailed,
    InsufficientFunds,
    LedgerError,
    OutOfGas,
    QueryRejected,
    TxOutcomeUnknown,
    TxTimeout,
    Unreachable,
)
from .gateway import EntriesGateway, EntryNotFound, GatewayState, GatewayStateError
from .spec.messages import (
    DeleteEntry,
    Entry,
    InstantiateMessage,
    NewEntry,
    Priority,
    QueryEntry,
    QueryList,
    Status,
    UpdateEntry,
)
from .spec.schemas import SchemaRegistry, SchemaValidationError
