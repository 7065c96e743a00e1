"""Shared option handling for commands that talk to the chain."""

from __future__ import annotations

import sys
from typing import NoReturn, Optional

import click

from ..pneuma.client import SigningClient
from ..pneuma.coins import GasPolicy
from ..pneuma.errors import ContractExecutionError, LedgerError
from ..pneuma.rpc import DEFAULT_RPC_URL, connect
from ..sigil.keys import DEFAULT_PREFIX, InvalidMnemonic, load_key

rpc_option = click.option(
    "--rpc-url",
    envvar="WASMTODO_RPC",
    default=DEFAULT_RPC_URL,
    show_default=True,
    help="CometBFT RPC URL",
)
gas_price_option = click.option(
    "--gas-price",
    envvar="WASMTODO_GAS_PRICE",
    default=None,
    help="Gas price such as 0.025ujunox (default: auto)",
)
prefix_option = click.option(
    "--prefix",
    envvar="WASMTODO_PREFIX",
    default=DEFAULT_PREFIX,
    show_default=True,
    help="bech32 address prefix",
)


def fail(exc: Exception) -> NoReturn:
    """Report a failure by kind and exit with its code."""
    kind = getattr(exc, "kind", type(exc).__name__)
    click.secho(f"ERROR [{kind}]: {exc}", fg="red")
    if isinstance(exc, ContractExecutionError):
        click.echo(f"  Contract code: {exc.code}")
    tx_hash = getattr(exc, "tx_hash", None)
    if tx_hash:
        click.echo(f"  TX: {tx_hash}")
    sys.exit(getattr(exc, "exit_code", 1))


def open_client(rpc_url: str, gas_price: Optional[str], prefix: str = DEFAULT_PREFIX) -> SigningClient:
    """Load the wallet, connect, and build a signing client (exits on failure)."""
    try:
        key = load_key(prefix=prefix)
    except InvalidMnemonic as exc:
        fail(exc)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    try:
        policy = GasPolicy.parse(gas_price)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    try:
        connection = connect(rpc_url)
    except LedgerError as exc:
        fail(exc)

    return SigningClient(connection, key, policy)
