"""
Shared fixtures: an in-memory ledger that speaks the Connection interface.

The fake ledger decodes the real protobuf transactions produced by the
signing client, checks signatures, chain id and account sequence, and runs a
small entries contract with the same rules as the deployed one (owner-only
writes, monotonic ids, exclusive ``start_after``, page cap of 30).
"""

from __future__ import annotations

import copy
import json
from collections import defaultdict
from typing import Any, Callable, Optional

import pytest
from eth_keys import keys

from cosmpy.protos.cosmos.auth.v1beta1.auth_pb2 import BaseAccount
from cosmpy.protos.cosmos.auth.v1beta1.query_pb2 import (
    QueryAccountRequest,
    QueryAccountResponse,
)
from cosmpy.protos.cosmos.bank.v1beta1.query_pb2 import (
    QueryBalanceRequest,
    QueryBalanceResponse,
)
from cosmpy.protos.cosmos.bank.v1beta1.tx_pb2 import MsgSend
from cosmpy.protos.cosmos.base.abci.v1beta1.abci_pb2 import GasInfo
from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.v1beta1.service_pb2 import SimulateRequest, SimulateResponse
from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import AuthInfo, SignDoc, TxBody, TxRaw
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import (
    QuerySmartContractStateRequest,
    QuerySmartContractStateResponse,
)
from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import (
    MsgExecuteContract,
    MsgInstantiateContract,
    MsgStoreCode,
)

from wasmtodo.gateway import EntriesGateway
from wasmtodo.pneuma.client import (
    ACCOUNT_PATH,
    BALANCE_PATH,
    SIMULATE_PATH,
    SMART_QUERY_PATH,
    SigningClient,
)
from wasmtodo.pneuma.coins import Coin, GasPolicy
from wasmtodo.pneuma.errors import (
    BroadcastRejected,
    ContractExecutionError,
    InsufficientFunds,
    LedgerError,
    QueryRejected,
    classify_query_failure,
)
from wasmtodo.pneuma.rpc import TxResult
from wasmtodo.sigil.keys import KeyMaterial, address_from_public_key, derive, generate_mnemonic
from wasmtodo.utils import sha256_digest, sha256_hex

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
CHAIN_ID = "uni-6"
DENOM = "ujunox"
FEE_FUNDS = (Coin(denom=DENOM, amount="10000"),)
SIMULATED_GAS = 100_000


# ============ Fake entries contract ============


class ContractFailure(Exception):
    pass


class FakeEntriesContract:
    MAX_LIMIT = 30
    DEFAULT_LIMIT = 10

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self.seq = 0
        self.entries: dict[int, dict[str, Any]] = {}

    def _not_found(self, entry_id: int) -> ContractFailure:
        return ContractFailure(
            f"type: entries::state::Entry; key: [{entry_id}] not found"
        )

    def execute(self, sender: str, msg: dict[str, Any], funds: list[Coin]) -> list[tuple[str, str]]:
        if not any(int(c.amount) > 0 for c in funds):
            raise ContractFailure("Payment required")
        if sender != self.owner:
            raise ContractFailure("Unauthorized")

        (tag, body), = msg.items()
        if tag == "new_entry":
            self.seq += 1
            self.entries[self.seq] = {
                "id": self.seq,
                "description": body["description"],
                "priority": body.get("priority") or "none",
                "status": "pending",
            }
            return [("method", "execute_create_new_entry"), ("new_entry_id", str(self.seq))]
        if tag == "update_entry":
            entry_id = body["id"]
            if entry_id not in self.entries:
                raise self._not_found(entry_id)
            updated = dict(self.entries[entry_id])
            for field in ("description", "status", "priority"):
                if body.get(field) is not None:
                    updated[field] = body[field]
            self.entries[entry_id] = updated
            return [("method", "execute_update_entry"), ("updated_entry_id", str(entry_id))]
        if tag == "delete_entry":
            # the deployed contract removes unknown ids without complaint
            self.entries.pop(body["id"], None)
            return [("method", "execute_delete_entry"), ("deleted_entry_id", str(body["id"]))]
        raise ContractFailure(f"unknown variant `{tag}`")

    def query(self, msg: dict[str, Any]) -> Any:
        (tag, body), = msg.items()
        if tag == "query_entry":
            entry_id = body["id"]
            if entry_id not in self.entries:
                raise self._not_found(entry_id)
            return dict(self.entries[entry_id])
        if tag == "query_list":
            start = body.get("start_after")
            limit = min(body.get("limit") or self.DEFAULT_LIMIT, self.MAX_LIMIT)
            ids = sorted(i for i in self.entries if start is None or i > start)
            return {"entries": [dict(self.entries[i]) for i in ids[:limit]]}
        raise ContractFailure(f"unknown variant `{tag}`")


# ============ Fake ledger ============


class FakeLedger:
    """In-memory stand-in for a Connection."""

    def __init__(self, chain_id: str = CHAIN_ID) -> None:
        self.chain_id = chain_id
        self.height = 100
        self.accounts: dict[str, dict[str, int]] = {}
        self.balances: dict[tuple[str, str], int] = defaultdict(int)
        self.codes: dict[int, bytes] = {}
        self.contracts: dict[str, FakeEntriesContract] = {}
        self.broadcasts: list[dict[str, Any]] = []
        self.queries: list[tuple[str, Any]] = []
        self.reject_next: Optional[LedgerError] = None
        self.closed = False

    # ---- setup helpers ----

    def fund(self, address: str, amount: int, denom: str = DENOM) -> None:
        self.accounts.setdefault(address, {"number": len(self.accounts) + 7, "sequence": 0})
        self.balances[(address, denom)] += amount

    def close(self) -> None:
        self.closed = True

    # ---- queries ----

    def abci_query(self, path: str, data: bytes) -> bytes:
        if path == ACCOUNT_PATH:
            address = QueryAccountRequest.FromString(data).address
            account = self.accounts.get(address)
            if account is None:
                raise QueryRejected(f"account {address} not found", 22, "sdk")
            response = QueryAccountResponse()
            response.account.Pack(
                BaseAccount(
                    address=address,
                    account_number=account["number"],
                    sequence=account["sequence"],
                ),
                type_url_prefix="/",
            )
            return response.SerializeToString()

        if path == BALANCE_PATH:
            request = QueryBalanceRequest.FromString(data)
            amount = self.balances.get((request.address, request.denom), 0)
            return QueryBalanceResponse(
                balance=CoinProto(denom=request.denom, amount=str(amount))
            ).SerializeToString()

        if path == SMART_QUERY_PATH:
            request = QuerySmartContractStateRequest.FromString(data)
            msg = json.loads(request.query_data)
            self.queries.append((request.address, msg))
            contract = self.contracts.get(request.address)
            if contract is None:
                raise classify_query_failure(2, "wasm", "no such contract")
            try:
                result = contract.query(msg)
            except ContractFailure as exc:
                raise classify_query_failure(9, "wasm", f"{exc}: query wasm contract failed")
            return QuerySmartContractStateResponse(
                data=json.dumps(result).encode("utf-8")
            ).SerializeToString()

        if path == SIMULATE_PATH:
            raw = TxRaw.FromString(SimulateRequest.FromString(data).tx_bytes)
            body = TxBody.FromString(raw.body_bytes)
            sender = self._signer_address(AuthInfo.FromString(raw.auth_info_bytes))
            snapshot = self._snapshot()
            try:
                self._apply(sender, body)
            except ContractFailure as exc:
                raise classify_query_failure(5, "wasm", str(exc))
            except InsufficientFunds as exc:
                raise classify_query_failure(exc.code, exc.codespace, exc.reason)
            finally:
                self._restore(snapshot)
            return SimulateResponse(gas_info=GasInfo(gas_used=SIMULATED_GAS)).SerializeToString()

        raise QueryRejected(f"unknown query path {path}", 6, "sdk")

    # ---- transactions ----

    def broadcast(self, tx_bytes: bytes) -> TxResult:
        tx_hash = sha256_hex(tx_bytes).upper()
        if self.reject_next is not None:
            error, self.reject_next = self.reject_next, None
            raise error

        raw = TxRaw.FromString(tx_bytes)
        body = TxBody.FromString(raw.body_bytes)
        auth_info = AuthInfo.FromString(raw.auth_info_bytes)
        signer_info = auth_info.signer_infos[0]
        pubkey = PubKey()
        signer_info.public_key.Unpack(pubkey)
        sender = address_from_public_key(pubkey.key, "juno")
        account = self.accounts.get(sender)
        if account is None:
            raise BroadcastRejected(f"account {sender} not found", 9, "sdk", tx_hash)
        if signer_info.sequence != account["sequence"]:
            raise BroadcastRejected(
                f"account sequence mismatch, expected {account['sequence']}, "
                f"got {signer_info.sequence}: incorrect account sequence",
                32, "sdk", tx_hash,
            )

        sign_doc = SignDoc(
            body_bytes=raw.body_bytes,
            auth_info_bytes=raw.auth_info_bytes,
            chain_id=self.chain_id,
            account_number=account["number"],
        ).SerializeToString()
        if not _verify(pubkey.key, sign_doc, raw.signatures[0]):
            raise BroadcastRejected("signature verification failed", 4, "sdk", tx_hash)

        for fee in auth_info.fee.amount:
            if self.balances[(sender, fee.denom)] < int(fee.amount):
                raise InsufficientFunds("insufficient fees", 5, "sdk", tx_hash)
            self.balances[(sender, fee.denom)] -= int(fee.amount)

        account["sequence"] += 1
        self.height += 1
        self.broadcasts.append({
            "sender": sender,
            "sequence": signer_info.sequence,
            "gas_limit": auth_info.fee.gas_limit,
            "fee": [Coin.from_proto(c) for c in auth_info.fee.amount],
            "memo": body.memo,
            "type_urls": [m.type_url for m in body.messages],
        })

        snapshot = self._snapshot()
        try:
            events = self._apply(sender, body)
        except ContractFailure as exc:
            self._restore(snapshot)
            raise ContractExecutionError(
                5, f"{exc}: execute wasm contract failed", tx_hash=tx_hash
            )
        except InsufficientFunds:
            self._restore(snapshot)
            raise
        return TxResult(
            hash=tx_hash,
            height=self.height,
            gas_wanted=auth_info.fee.gas_limit,
            gas_used=SIMULATED_GAS,
            events=tuple(events),
        )

    # ---- internals ----

    def _signer_address(self, auth_info: AuthInfo) -> str:
        pubkey = PubKey()
        auth_info.signer_infos[0].public_key.Unpack(pubkey)
        return address_from_public_key(pubkey.key, "juno")

    def _snapshot(self) -> tuple:
        return (copy.deepcopy(self.balances), copy.deepcopy(self.contracts), dict(self.codes))

    def _restore(self, snapshot: tuple) -> None:
        self.balances, self.contracts, self.codes = snapshot

    def _move(self, sender: str, recipient: str, coins: list[Coin]) -> None:
        for coin in coins:
            if self.balances[(sender, coin.denom)] < int(coin.amount):
                raise InsufficientFunds(
                    f"spendable balance is smaller than {coin}: insufficient funds", 5, "sdk"
                )
            self.balances[(sender, coin.denom)] -= int(coin.amount)
            self.balances[(recipient, coin.denom)] += int(coin.amount)

    def _apply(self, sender: str, body: TxBody) -> list[dict[str, Any]]:
        events = []
        for packed in body.messages:
            type_url = packed.type_url
            if type_url == "/cosmos.bank.v1beta1.MsgSend":
                msg = MsgSend.FromString(packed.value)
                self._move(sender, msg.to_address, [Coin.from_proto(c) for c in msg.amount])
                events.append(_event("transfer", recipient=msg.to_address, sender=sender))
            elif type_url == "/cosmwasm.wasm.v1.MsgStoreCode":
                msg = MsgStoreCode.FromString(packed.value)
                code_id = len(self.codes) + 1
                self.codes[code_id] = msg.wasm_byte_code
                events.append(_event("store_code", code_id=str(code_id)))
            elif type_url == "/cosmwasm.wasm.v1.MsgInstantiateContract":
                msg = MsgInstantiateContract.FromString(packed.value)
                if msg.code_id not in self.codes:
                    raise ContractFailure(f"code {msg.code_id} not found")
                init = json.loads(msg.msg)
                address = address_from_public_key(
                    f"contract-{len(self.contracts) + 1}".encode(), "juno"
                )
                self.contracts[address] = FakeEntriesContract(init.get("owner") or sender)
                events.append(_event("instantiate", _contract_address=address, code_id=str(msg.code_id)))
            elif type_url == "/cosmwasm.wasm.v1.MsgExecuteContract":
                msg = MsgExecuteContract.FromString(packed.value)
                contract = self.contracts.get(msg.contract)
                if contract is None:
                    raise ContractFailure(f"no such contract: {msg.contract}")
                funds = [Coin.from_proto(c) for c in msg.funds]
                self._move(sender, msg.contract, funds)
                attrs = contract.execute(sender, json.loads(msg.msg), funds)
                events.append(_event("wasm", _contract_address=msg.contract, **dict(attrs)))
            else:
                raise ContractFailure(f"unsupported message {type_url}")
        return events


def _event(event_type: str, **attributes: str) -> dict[str, Any]:
    return {
        "type": event_type,
        "attributes": [{"key": k, "value": v} for k, v in attributes.items()],
    }


def _verify(public_key: bytes, sign_doc: bytes, signature: bytes) -> bool:
    pub = keys.PublicKey.from_compressed_bytes(public_key)
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    digest = sha256_digest(sign_doc)
    for v in (0, 1):
        try:
            if pub.verify_msg_hash(digest, keys.Signature(vrs=(v, r, s))):
                return True
        except Exception:
            continue
    return False


# ============ Fixtures ============


@pytest.fixture(scope="session")
def key() -> KeyMaterial:
    return derive(TEST_MNEMONIC)


@pytest.fixture(scope="session")
def other_key() -> KeyMaterial:
    return derive(generate_mnemonic())


@pytest.fixture()
def ledger(key: KeyMaterial) -> FakeLedger:
    ledger = FakeLedger()
    ledger.fund(key.address, 50_000_000)
    return ledger


@pytest.fixture()
def client(ledger: FakeLedger, key: KeyMaterial) -> SigningClient:
    return SigningClient(ledger, key, GasPolicy.fixed("0.025ujunox"))


@pytest.fixture()
def deploy(client: SigningClient) -> Callable[..., EntriesGateway]:
    """Upload, instantiate and ready a fresh entries contract."""

    def _deploy(page_size: int = 10, signer: Optional[SigningClient] = None) -> EntriesGateway:
        gateway = EntriesGateway(signer or client, funds=FEE_FUNDS, page_size=page_size)
        gateway.upload(b"\0asm-entries")
        gateway.instantiate("entries")
        return gateway.ready()

    return _deploy


@pytest.fixture()
def gateway(deploy: Callable[..., EntriesGateway]) -> EntriesGateway:
    return deploy()
