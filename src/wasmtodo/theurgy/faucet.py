"""
Faucet - Request testnet tokens for the wallet address.
"""

from __future__ import annotations

import sys

import click
import httpx

from ..sigil.keys import load_key
from .session import prefix_option

DEFAULT_FAUCET_URL = "https://faucet.uni.juno.deuslabs.fi/credit"


def request_tokens(faucet_url: str, address: str, denom: str, timeout: float = 100.0) -> httpx.Response:
    """POST a credit request to the faucet."""
    with httpx.Client(timeout=timeout) as client:
        response = client.post(faucet_url, json={"denom": denom, "address": address})
    response.raise_for_status()
    return response


@click.command()
@click.option("--denom", default="ujunox", show_default=True, help="Token denom")
@click.option(
    "--faucet-url",
    envvar="WASMTODO_FAUCET",
    default=DEFAULT_FAUCET_URL,
    show_default=True,
    help="Faucet credit endpoint",
)
@prefix_option
def faucet(denom: str, faucet_url: str, prefix: str) -> None:
    """Request testnet tokens for the wallet address."""
    try:
        address = load_key(prefix=prefix).address
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    click.echo(f"  Address: {address}")
    click.echo(f"  Faucet:  {faucet_url}")

    try:
        response = request_tokens(faucet_url, address, denom)
    except httpx.HTTPError as exc:
        click.secho(f"Faucet request failed: {exc}", fg="red")
        sys.exit(1)

    click.secho(f"SUCCESS: faucet answered {response.status_code}", fg="green")
    if response.text:
        click.echo(f"  {response.text.strip()}")
