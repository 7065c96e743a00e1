"""
Entry - Create, read, update, delete and list contract entries.

Every execute attaches the configured fee funds (default 10000ujunox);
the entries contract rejects calls without them.
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from ..gateway import EntriesGateway
from ..pneuma.coins import parse_coins
from ..pneuma.errors import LedgerError
from ..spec.messages import Priority, Status
from .session import fail, gas_price_option, open_client, prefix_option, rpc_option

DEFAULT_FUNDS = "10000ujunox"


def _entry_options(func):
    for option in reversed([
        click.option(
            "--contract",
            envvar="WASMTODO_CONTRACT",
            required=True,
            help="Entries contract address",
        ),
        click.option(
            "--funds",
            envvar="WASMTODO_FUNDS",
            default=DEFAULT_FUNDS,
            show_default=True,
            help="Coins attached to each execute",
        ),
        rpc_option,
        gas_price_option,
        prefix_option,
    ]):
        func = option(func)
    return func


def _gateway(ctx: click.Context) -> EntriesGateway:
    params = ctx.obj
    try:
        funds = parse_coins(params["funds"])
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)
    client = ctx.with_resource(open_client(params["rpc_url"], params["gas_price"], params["prefix"]))
    try:
        return EntriesGateway(client, funds=funds).bind(params["contract"])
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)


@click.group()
@_entry_options
@click.pass_context
def entry(
    ctx: click.Context,
    contract: str,
    funds: str,
    rpc_url: str,
    gas_price: Optional[str],
    prefix: str,
) -> None:
    """Manage entries of a deployed contract."""
    ctx.obj = {
        "contract": contract,
        "funds": funds,
        "rpc_url": rpc_url,
        "gas_price": gas_price,
        "prefix": prefix,
    }


_PRIORITY = click.Choice([p.value for p in Priority])
_STATUS = click.Choice([s.value for s in Status])


@entry.command("new")
@click.argument("description")
@click.option("--priority", type=_PRIORITY, default=None, help="Entry priority")
@click.pass_context
def new_entry(ctx: click.Context, description: str, priority: Optional[str]) -> None:
    """Create an entry."""
    gateway = _gateway(ctx)
    try:
        entry_id = gateway.new_entry(description, Priority(priority) if priority else None)
    except LedgerError as exc:
        fail(exc)
    click.secho(f"SUCCESS: created entry {entry_id}", fg="green")


@entry.command("get")
@click.argument("entry_id", type=int)
@click.pass_context
def get_entry(ctx: click.Context, entry_id: int) -> None:
    """Show one entry."""
    gateway = _gateway(ctx)
    try:
        found = gateway.get_entry(entry_id)
    except LedgerError as exc:
        fail(exc)
    click.echo(json.dumps(found.to_dict(), indent=2))


@entry.command("update")
@click.argument("entry_id", type=int)
@click.option("--description", default=None, help="New description")
@click.option("--status", type=_STATUS, default=None, help="New status")
@click.option("--priority", type=_PRIORITY, default=None, help="New priority")
@click.pass_context
def update_entry(
    ctx: click.Context,
    entry_id: int,
    description: Optional[str],
    status: Optional[str],
    priority: Optional[str],
) -> None:
    """Update an entry."""
    if description is None and status is None and priority is None:
        click.secho("Nothing to update: pass --description, --status or --priority.", fg="yellow")
        sys.exit(1)
    gateway = _gateway(ctx)
    try:
        result = gateway.update_entry(
            entry_id,
            description=description,
            status=Status(status) if status else None,
            priority=Priority(priority) if priority else None,
        )
    except LedgerError as exc:
        fail(exc)
    click.secho(f"SUCCESS: updated entry {entry_id}", fg="green")
    click.echo(f"  TX: {result.hash}")


@entry.command("delete")
@click.argument("entry_id", type=int)
@click.pass_context
def delete_entry(ctx: click.Context, entry_id: int) -> None:
    """Delete an entry."""
    gateway = _gateway(ctx)
    try:
        result = gateway.delete_entry(entry_id)
    except LedgerError as exc:
        fail(exc)
    click.secho(f"SUCCESS: deleted entry {entry_id}", fg="green")
    click.echo(f"  TX: {result.hash}")


@entry.command("list")
@click.option("--start-after", default=0, type=int, show_default=True, help="Exclusive lower id bound")
@click.option("--limit", default=None, type=int, help="Maximum entries to show")
@click.pass_context
def list_entries(ctx: click.Context, start_after: int, limit: Optional[int]) -> None:
    """List entries in ascending id order."""
    gateway = _gateway(ctx)
    try:
        entries = [e.to_dict() for e in gateway.list_entries(start_after=start_after, limit=limit)]
    except LedgerError as exc:
        fail(exc)
    click.echo(json.dumps({"entries": entries}, indent=2))
