"""
Deploy - Upload contract bytecode and instantiate it.

Neither step is idempotent: each upload yields a new code id and each
instantiate a new contract address.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ..gateway import EntriesGateway
from ..pneuma.errors import LedgerError
from ..sigil.keys import save_env_value
from ..spec.messages import InstantiateMessage
from ..spec.schemas import SchemaValidationError
from .session import fail, gas_price_option, open_client, prefix_option, rpc_option


@click.command()
@click.argument("wasm", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@rpc_option
@gas_price_option
@prefix_option
def upload(wasm: Path, rpc_url: str, gas_price: Optional[str], prefix: str) -> None:
    """Upload contract bytecode and print the new code id."""
    bytecode = wasm.read_bytes()
    click.echo(f"  Code: {wasm} ({len(bytecode)} bytes)")

    with open_client(rpc_url, gas_price, prefix) as client:
        try:
            code_id = EntriesGateway(client).upload(bytecode)
        except LedgerError as exc:
            fail(exc)

    click.secho(f"SUCCESS: stored code id {code_id}", fg="green")


@click.command()
@click.argument("code_id", type=int)
@click.option("--label", default="entries", show_default=True, help="Contract label")
@click.option("--owner", default=None, help="Contract owner (default: sender)")
@click.option("--admin", default=None, help="Migration admin address")
@click.option("--save/--no-save", default=True, help="Store the address as WASMTODO_CONTRACT")
@rpc_option
@gas_price_option
@prefix_option
def instantiate(
    code_id: int,
    label: str,
    owner: Optional[str],
    admin: Optional[str],
    save: bool,
    rpc_url: str,
    gas_price: Optional[str],
    prefix: str,
) -> None:
    """Instantiate stored code and print the contract address."""
    with open_client(rpc_url, gas_price, prefix) as client:
        try:
            ref = EntriesGateway(client).instantiate(
                label, InstantiateMessage(owner=owner), code_id=code_id, admin=admin
            )
        except (LedgerError, SchemaValidationError) as exc:
            fail(exc)

    click.secho("SUCCESS: contract instantiated", fg="green")
    click.echo(f"  Code ID: {ref.code_id}")
    click.echo(f"  Address: {ref.address}")
    if save:
        env_path = save_env_value("WASMTODO_CONTRACT", ref.address)
        click.echo(f"  Saved to: {env_path}")
