"""
Transaction Builder - Build and sign Cosmos SDK transactions.

Uses the cosmpy generated protobuf types for encoding and the local
KeyMaterial for SIGN_MODE_DIRECT signatures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from google.protobuf.any_pb2 import Any as AnyProto
from google.protobuf.message import Message

from cosmpy.protos.cosmos.bank.v1beta1.tx_pb2 import MsgSend
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SignMode
from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import (
    AuthInfo,
    Fee,
    ModeInfo,
    SignDoc,
    SignerInfo,
    TxBody,
    TxRaw,
)
from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import (
    MsgExecuteContract,
    MsgInstantiateContract,
    MsgStoreCode,
)

from ..sigil.keys import KeyMaterial
from .coins import Coin, coins_to_proto


@dataclass(frozen=True)
class SignerData:
    """Per-submission signing context, fetched fresh from the chain."""
    chain_id: str
    account_number: int
    sequence: int


def pack_any(message: Message) -> AnyProto:
    packed = AnyProto()
    packed.Pack(message, type_url_prefix="/")
    return packed


def encode_json(payload: dict[str, Any]) -> bytes:
    """Contract messages are compact UTF-8 JSON."""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def msg_send(sender: str, recipient: str, coins: Iterable[Coin]) -> MsgSend:
    return MsgSend(from_address=sender, to_address=recipient, amount=coins_to_proto(coins))


def msg_store_code(sender: str, wasm: bytes) -> MsgStoreCode:
    return MsgStoreCode(sender=sender, wasm_byte_code=wasm)


def msg_instantiate(
    sender: str,
    code_id: int,
    init_msg: dict[str, Any],
    label: str,
    funds: Iterable[Coin] = (),
    admin: Optional[str] = None,
) -> MsgInstantiateContract:
    return MsgInstantiateContract(
        sender=sender,
        admin=admin or "",
        code_id=code_id,
        label=label,
        msg=encode_json(init_msg),
        funds=coins_to_proto(funds),
    )


def msg_execute(
    sender: str,
    contract: str,
    msg: dict[str, Any],
    funds: Iterable[Coin] = (),
) -> MsgExecuteContract:
    return MsgExecuteContract(
        sender=sender,
        contract=contract,
        msg=encode_json(msg),
        funds=coins_to_proto(funds),
    )


def build_tx(
    messages: list[Message],
    key: KeyMaterial,
    signer: SignerData,
    gas_limit: int,
    fee: Iterable[Coin] = (),
    memo: str = "",
    sign: bool = True,
) -> bytes:
    """
    Assemble and sign a transaction.

    Args:
        messages: Cosmos SDK messages (packed into Any)
        key: Signing key; its public key goes into the signer info
        signer: chain id, account number and sequence
        gas_limit: Gas limit
        fee: Fee coins
        memo: Transaction memo
        sign: False produces the unsigned form used for simulation

    Returns:
        Serialized TxRaw
    """
    body = TxBody(messages=[pack_any(m) for m in messages], memo=memo)
    signer_info = SignerInfo(
        public_key=pack_any(PubKey(key=key.account.public_key)),
        mode_info=ModeInfo(single=ModeInfo.Single(mode=SignMode.SIGN_MODE_DIRECT)),
        sequence=signer.sequence,
    )
    auth_info = AuthInfo(
        signer_infos=[signer_info],
        fee=Fee(amount=coins_to_proto(fee), gas_limit=gas_limit),
    )

    body_bytes = body.SerializeToString()
    auth_info_bytes = auth_info.SerializeToString()

    if sign:
        sign_doc = SignDoc(
            body_bytes=body_bytes,
            auth_info_bytes=auth_info_bytes,
            chain_id=signer.chain_id,
            account_number=signer.account_number,
        )
        signature = key.sign(sign_doc.SerializeToString())
    else:
        signature = b""

    raw = TxRaw(
        body_bytes=body_bytes,
        auth_info_bytes=auth_info_bytes,
        signatures=[signature],
    )
    return raw.SerializeToString()
