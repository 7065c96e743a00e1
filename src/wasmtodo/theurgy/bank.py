"""
Bank - Balance lookup and token transfer.
"""

from __future__ import annotations

import sys
from typing import Optional

import click

from ..pneuma.coins import parse_coins
from ..pneuma.errors import LedgerError
from .session import fail, gas_price_option, open_client, prefix_option, rpc_option


@click.command()
@click.option("--address", default=None, help="Account to inspect (default: wallet)")
@click.option("--denom", default="ujunox", show_default=True, help="Token denom")
@rpc_option
@gas_price_option
@prefix_option
def balance(address: Optional[str], denom: str, rpc_url: str, gas_price: Optional[str], prefix: str) -> None:
    """Show an account balance."""
    with open_client(rpc_url, gas_price, prefix) as client:
        target = address or client.address
        try:
            coin = client.get_balance(target, denom)
        except LedgerError as exc:
            fail(exc)
    click.echo(f"  Address: {target}")
    click.echo(f"  Balance: {coin}")


@click.command()
@click.argument("recipient")
@click.argument("amount")
@click.option("--memo", default="", help="Transaction memo")
@rpc_option
@gas_price_option
@prefix_option
def send(recipient: str, amount: str, memo: str, rpc_url: str, gas_price: Optional[str], prefix: str) -> None:
    """Send tokens, e.g. `send juno1... 1000000ujunox`."""
    try:
        coins = parse_coins(amount)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    with open_client(rpc_url, gas_price, prefix) as client:
        click.echo(f"  From: {client.address}")
        click.echo(f"  To:   {recipient}")
        click.echo(f"  Amount: {', '.join(str(c) for c in coins)}")
        try:
            result = client.send_tokens(recipient, coins, memo=memo)
        except ValueError as exc:
            click.secho(f"ERROR: {exc}", fg="red")
            sys.exit(1)
        except LedgerError as exc:
            fail(exc)

    click.secho("SUCCESS: Transfer confirmed!", fg="green")
    click.echo(f"  TX: {result.hash} (height {result.height})")
