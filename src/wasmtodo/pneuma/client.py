"""
Signing Client - Sign, submit and query on behalf of one account.

Composes a KeyMaterial with a node Connection. All mutating calls go through
one lock per client; the account sequence is read fresh from the chain
inside that lock, so submissions from one client are strictly ordered.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from google.protobuf.message import Message

from cosmpy.protos.cosmos.auth.v1beta1.auth_pb2 import BaseAccount
from cosmpy.protos.cosmos.auth.v1beta1.query_pb2 import (
    QueryAccountRequest,
    QueryAccountResponse,
)
from cosmpy.protos.cosmos.bank.v1beta1.query_pb2 import (
    QueryBalanceRequest,
    QueryBalanceResponse,
)
from cosmpy.protos.cosmos.tx.v1beta1.service_pb2 import SimulateRequest, SimulateResponse
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import (
    QuerySmartContractStateRequest,
    QuerySmartContractStateResponse,
)

from ..sigil.keys import DEFAULT_PREFIX, KeyMaterial, derive, validate_address
from .coins import Coin, GasPolicy
from .errors import (
    InstantiationFailed,
    LedgerError,
    QueryRejected,
    classify_tx_failure,
)
from .rpc import Connection, TxResult, connect
from .tx import (
    SignerData,
    build_tx,
    encode_json,
    msg_execute,
    msg_instantiate,
    msg_send,
    msg_store_code,
)

logger = logging.getLogger(__name__)

ACCOUNT_PATH = "/cosmos.auth.v1beta1.Query/Account"
BALANCE_PATH = "/cosmos.bank.v1beta1.Query/Balance"
SIMULATE_PATH = "/cosmos.tx.v1beta1.Service/Simulate"
SMART_QUERY_PATH = "/cosmwasm.wasm.v1.Query/SmartContractState"


@dataclass(frozen=True)
class ContractRef:
    code_id: int
    address: str


@dataclass(frozen=True)
class AccountInfo:
    address: str
    account_number: int
    sequence: int


class SigningClient:
    """
    Client that signs with one key and submits through one connection.

    Args:
        connection: Open node connection
        key: Signing key; its account is the sender of every transaction
        gas_policy: Default gas policy for submissions
    """

    def __init__(
        self,
        connection: Connection,
        key: KeyMaterial,
        gas_policy: Optional[GasPolicy] = None,
    ) -> None:
        self.connection = connection
        self.key = key
        self.gas_policy = gas_policy or GasPolicy.auto()
        self._submit_lock = threading.Lock()

    @classmethod
    def build(
        cls,
        endpoint: Optional[str],
        mnemonic: str,
        prefix: str = DEFAULT_PREFIX,
        gas_policy: Optional[GasPolicy] = None,
    ) -> "SigningClient":
        """
        Derive the key and connect.

        Raises:
            InvalidMnemonic: Bad mnemonic (checked before any network I/O)
            Unreachable: Node did not answer
        """
        key = derive(mnemonic, prefix=prefix)
        connection = connect(endpoint)
        return cls(connection, key, gas_policy)

    @property
    def address(self) -> str:
        return self.key.address

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> "SigningClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ============ Reads ============

    def get_account_info(self, address: Optional[str] = None) -> AccountInfo:
        address = address or self.address
        raw = self.connection.abci_query(
            ACCOUNT_PATH, QueryAccountRequest(address=address).SerializeToString()
        )
        response = QueryAccountResponse.FromString(raw)
        account = BaseAccount()
        if not response.account.Unpack(account):
            raise LedgerError(
                f"Unsupported account type for {address}: {response.account.type_url}"
            )
        return AccountInfo(
            address=address,
            account_number=account.account_number,
            sequence=account.sequence,
        )

    def get_balance(self, address: str, denom: str) -> Coin:
        """Bank balance of ``address`` in ``denom``. No signature needed."""
        raw = self.connection.abci_query(
            BALANCE_PATH,
            QueryBalanceRequest(address=address, denom=denom).SerializeToString(),
        )
        response = QueryBalanceResponse.FromString(raw)
        if not response.HasField("balance"):
            return Coin(denom=denom, amount="0")
        return Coin.from_proto(response.balance)

    def query(self, contract: str, msg: dict[str, Any]) -> Any:
        """
        Smart-query a contract. Read-only and safe to retry.

        Returns:
            Decoded JSON response
        """
        request = QuerySmartContractStateRequest(address=contract, query_data=encode_json(msg))
        raw = self.connection.abci_query(SMART_QUERY_PATH, request.SerializeToString())
        response = QuerySmartContractStateResponse.FromString(raw)
        return json.loads(response.data.decode("utf-8"))

    def simulate(self, messages: list[Message], sequence: int, memo: str = "") -> int:
        """Estimate gas for ``messages``; contract failures surface as execution errors."""
        tx_bytes = build_tx(
            messages,
            self.key,
            SignerData(chain_id=self.connection.chain_id or "", account_number=0, sequence=sequence),
            gas_limit=0,
            memo=memo,
            sign=False,
        )
        try:
            raw = self.connection.abci_query(
                SIMULATE_PATH, SimulateRequest(tx_bytes=tx_bytes).SerializeToString()
            )
        except QueryRejected as exc:
            raise classify_tx_failure(exc.code, exc.codespace, exc.reason) from exc
        gas_used = SimulateResponse.FromString(raw).gas_info.gas_used
        logger.debug("simulated %d message(s): %d gas", len(messages), gas_used)
        return gas_used

    # ============ Writes ============

    def sign_and_broadcast(
        self,
        messages: list[Message],
        gas_policy: Optional[GasPolicy] = None,
        memo: str = "",
    ) -> TxResult:
        """
        Sign ``messages`` into one transaction and broadcast it.

        Never retried: a timeout or lost contact after the hand-over raises
        TxOutcomeUnknown and the caller must re-query state rather than
        resubmit.
        """
        policy = gas_policy or self.gas_policy
        with self._submit_lock:
            info = self.get_account_info()
            if policy.gas_limit is not None:
                gas_limit = policy.gas_limit
            else:
                gas_limit = policy.limit_from_estimate(
                    self.simulate(messages, info.sequence, memo)
                )

            signer = SignerData(
                chain_id=self.connection.chain_id or "",
                account_number=info.account_number,
                sequence=info.sequence,
            )
            tx_bytes = build_tx(
                messages,
                self.key,
                signer,
                gas_limit=gas_limit,
                fee=policy.fee(gas_limit),
                memo=memo,
            )
            logger.debug(
                "submitting %d message(s) with sequence %d, gas %d",
                len(messages), info.sequence, gas_limit,
            )
            return self.connection.broadcast(tx_bytes)

    def send_tokens(
        self,
        recipient: str,
        coins: Iterable[Coin],
        gas_policy: Optional[GasPolicy] = None,
        memo: str = "",
    ) -> TxResult:
        validate_address(recipient)
        return self.sign_and_broadcast(
            [msg_send(self.address, recipient, coins)], gas_policy, memo
        )

    def upload_code(self, bytecode: bytes, gas_policy: Optional[GasPolicy] = None) -> int:
        """
        Store contract bytecode. Each call creates a new code id.

        Returns:
            The new code id
        """
        result = self.sign_and_broadcast([msg_store_code(self.address, bytecode)], gas_policy)
        code_id = result.attribute("store_code", "code_id")
        if code_id is None:
            raise LedgerError(f"No code_id in store_code events of tx {result.hash}")
        logger.info("stored code id %s (tx %s)", code_id, result.hash)
        return int(code_id)

    def instantiate(
        self,
        code_id: int,
        init_msg: dict[str, Any],
        label: str,
        gas_policy: Optional[GasPolicy] = None,
        admin: Optional[str] = None,
        funds: Iterable[Coin] = (),
    ) -> ContractRef:
        """
        Instantiate stored code. Each call creates a new contract address.

        Raises:
            InstantiationFailed: The tx succeeded without reporting an address
        """
        message = msg_instantiate(self.address, code_id, init_msg, label, funds, admin)
        result = self.sign_and_broadcast([message], gas_policy)
        address = result.attribute("instantiate", "_contract_address")
        if address is None:
            raise InstantiationFailed(
                f"No contract address in instantiate events of tx {result.hash}"
            )
        logger.info("instantiated code %d at %s", code_id, address)
        return ContractRef(code_id=code_id, address=address)

    def execute(
        self,
        contract: str,
        msg: dict[str, Any],
        funds: Iterable[Coin] = (),
        gas_policy: Optional[GasPolicy] = None,
        memo: str = "",
    ) -> TxResult:
        """Execute a contract message exactly once."""
        return self.sign_and_broadcast(
            [msg_execute(self.address, contract, msg, funds)], gas_policy, memo
        )
