"""
Ledger error taxonomy.

Every failure of a remote call surfaces as one of these. ``retryable`` says
whether the same call may be repeated unchanged; mutating calls are never
retried by this package.
"""

from __future__ import annotations

from typing import Optional


# Cosmos SDK root codespace error codes
SDK_CODESPACE = "sdk"
WASM_CODESPACE = "wasm"
SDK_INSUFFICIENT_FUNDS = 5
SDK_OUT_OF_GAS = 11
SDK_INSUFFICIENT_FEE = 13


class LedgerError(RuntimeError):
    exit_code: int = 1
    retryable: bool = False

    @property
    def kind(self) -> str:
        return type(self).__name__


class Unreachable(LedgerError):
    exit_code = 3
    retryable = True


class BroadcastRejected(LedgerError):
    """The node refused the transaction (malformed, underpriced, bad sequence)."""

    exit_code = 4

    def __init__(
        self,
        reason: str,
        code: int = 0,
        codespace: str = "",
        tx_hash: Optional[str] = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code
        self.codespace = codespace
        self.tx_hash = tx_hash


class InsufficientFunds(BroadcastRejected):
    exit_code = 5


class OutOfGas(BroadcastRejected):
    exit_code = 6


class ContractExecutionError(LedgerError):
    """The contract rejected an execute message."""

    exit_code = 7

    def __init__(self, code: int, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(f"contract error (code {code}): {message}")
        self.code = code
        self.message = message
        self.tx_hash = tx_hash


class InstantiationFailed(LedgerError):
    exit_code = 8


class QueryRejected(LedgerError):
    exit_code = 9
    retryable = True

    def __init__(self, reason: str, code: int = 0, codespace: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code
        self.codespace = codespace


class ContractQueryError(QueryRejected):
    """The contract's query handler returned an error."""


class TxOutcomeUnknown(LedgerError):
    """The transaction may have reached the node but its result was lost.

    Re-query state instead of resubmitting.
    """

    exit_code = 10

    def __init__(self, tx_hash: str, reason: str) -> None:
        super().__init__(reason)
        self.tx_hash = tx_hash


class TxTimeout(TxOutcomeUnknown):
    """The transaction was broadcast but not seen in a block in time."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(tx_hash, f"Transaction {tx_hash} not confirmed within {timeout}s")
        self.timeout = timeout


def classify_tx_failure(
    code: int,
    codespace: str,
    log: str,
    tx_hash: Optional[str] = None,
) -> LedgerError:
    """Map a non-zero CheckTx/DeliverTx result onto the taxonomy."""
    if codespace == WASM_CODESPACE:
        return ContractExecutionError(code, log, tx_hash=tx_hash)
    if codespace == SDK_CODESPACE and code == SDK_INSUFFICIENT_FUNDS:
        return InsufficientFunds(log, code, codespace, tx_hash)
    if codespace == SDK_CODESPACE and code == SDK_OUT_OF_GAS:
        return OutOfGas(log, code, codespace, tx_hash)
    return BroadcastRejected(log, code, codespace, tx_hash)


def classify_query_failure(code: int, codespace: str, log: str) -> QueryRejected:
    if codespace == WASM_CODESPACE:
        return ContractQueryError(log, code, codespace)
    return QueryRejected(log, code, codespace)
