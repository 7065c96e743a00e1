"""
Wallet - Create or inspect the signing wallet.

The mnemonic lives in ~/.wasmtodo/.env (MNEMONIC). It is written there and
never echoed in full.
"""

from __future__ import annotations

import sys

import click

from ..sigil.keys import (
    WASMTODO_ENV,
    InvalidMnemonic,
    derive,
    generate_mnemonic,
    load_mnemonic,
    save_mnemonic,
)
from ..utils import mask_secret
from .session import fail, prefix_option


@click.group()
def wallet() -> None:
    """Create or inspect the signing wallet."""


@wallet.command()
@click.option("--words", default=12, type=click.Choice(["12", "15", "18", "21", "24"]), help="Mnemonic length")
@click.option("--force", is_flag=True, help="Replace an existing mnemonic")
@prefix_option
def generate(words: str, force: bool, prefix: str) -> None:
    """Generate a new mnemonic and store it in the wallet .env."""
    if not force:
        try:
            load_mnemonic()
            click.secho("A wallet already exists. Use --force to replace it.", fg="yellow")
            sys.exit(1)
        except ValueError:
            pass

    mnemonic = generate_mnemonic(int(words))
    env_path = save_mnemonic(mnemonic)
    address = derive(mnemonic, prefix=prefix).address

    click.secho("Wallet created.", fg="green")
    click.echo(f"  Address:  {address}")
    click.echo(f"  Mnemonic: {mask_secret(mnemonic)}")
    click.echo(f"  Saved to: {env_path}")


@wallet.command()
@prefix_option
def address(prefix: str) -> None:
    """Show the wallet address."""
    try:
        key = derive(load_mnemonic(), prefix=prefix)
    except InvalidMnemonic as exc:
        fail(exc)
    except ValueError:
        click.echo("No wallet found.")
        click.echo(f"Run 'wasmtodo wallet generate' or set MNEMONIC in {WASMTODO_ENV}.")
        sys.exit(1)
    click.echo(f"Address: {key.address}")
