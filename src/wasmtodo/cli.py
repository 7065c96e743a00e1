"""
wasmtodo CLI

Command-line interface for driving a CosmWasm entries contract on the Juno
testnet.

Identity = one secp256k1 key derived from a BIP-39 mnemonic stored in
~/.wasmtodo/.env. Every mutating command signs with that key.

Commands:
  wallet       - Generate a mnemonic / show the address
  faucet       - Request testnet tokens
  balance      - Show an account balance
  send         - Send tokens
  upload       - Store contract bytecode
  instantiate  - Instantiate stored code
  entry        - new / get / update / delete / list entries
  info         - Show configuration
"""

from __future__ import annotations

import logging
import os
import sys

import click
from dotenv import load_dotenv

from .pneuma.coins import GasPolicy
from .pneuma.rpc import get_rpc_url
from .sigil.keys import WASMTODO_ENV, derive, load_mnemonic


# ============ Constants ============

VERSION = "0.1.0"


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="wasmtodo")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """wasmtodo - CosmWasm entries contract client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Environment wins over the .env file
    if WASMTODO_ENV.exists():
        load_dotenv(WASMTODO_ENV, override=False)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.wallet import wallet
from .theurgy.faucet import faucet
from .theurgy.bank import balance, send
from .theurgy.deploy import upload, instantiate
from .theurgy.entry import entry

cli.add_command(wallet)
cli.add_command(faucet)
cli.add_command(balance)
cli.add_command(send)
cli.add_command(upload)
cli.add_command(instantiate)
cli.add_command(entry)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show configuration."""
    click.secho("  Status ─────────────────────────────────", fg="cyan")
    click.echo()

    try:
        address = derive(load_mnemonic()).address
        click.echo(
            click.style("  Address:   ", dim=True)
            + click.style(address, fg="bright_white")
        )
    except ValueError:
        click.echo(
            click.style("  Address:   ", dim=True)
            + click.style("not initialized", fg="yellow")
            + click.style("  (run: wasmtodo wallet generate)", dim=True)
        )

    try:
        policy = GasPolicy.parse(os.environ.get("WASMTODO_GAS_PRICE"))
        gas_text = "auto" if policy.is_auto else str(policy.price)
    except ValueError as exc:
        gas_text = click.style(f"invalid ({exc})", fg="red")

    contract = os.environ.get("WASMTODO_CONTRACT") or click.style("not set", fg="yellow")

    click.echo(click.style("  RPC:       ", dim=True) + get_rpc_url())
    click.echo(click.style("  Gas price: ", dim=True) + gas_text)
    click.echo(click.style("  Contract:  ", dim=True) + contract)
    click.echo(click.style("  Config:    ", dim=True) + str(WASMTODO_ENV))
    click.echo()


# ============ Entry Points ============


def main() -> None:
    """wasmtodo CLI entry point."""
    # Ensure UTF-8 output on Windows (for box-drawing characters)
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
