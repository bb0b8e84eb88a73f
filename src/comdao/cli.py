"""
comdao CLI

Thin command-line front end over the bindings.

Commands:
  networks   - List embedded network records for a contract
  libraries  - Show unresolved library placeholders in a contract binary
  call       - Call a constant function
  send       - Submit a transaction and wait for confirmation
  logs       - Print past events emitted at a contract address
  wait       - Wait for a receipt for an already submitted transaction
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import click

from .chain.rpc import JsonRpcTransport
from .chain.wallet import get_address
from .config import load_settings
from .contracts import FACTORIES, build_factory
from .errors import ContractError
from .orchestrator.confirm import ConfirmationTracker, TransactionResult

logger = logging.getLogger(__name__)

VERSION = "0.3.0"


def _parse_args(args_json: str) -> list:
    try:
        args = json.loads(args_json)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid args: {exc}", param_hint="--args") from exc
    if not isinstance(args, list):
        raise click.BadParameter("Args must be a JSON array", param_hint="--args")
    return args


def _fail(message: str) -> None:
    click.secho(f"ERROR: {message}", fg="red")
    sys.exit(1)


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _block(value: str) -> Any:
    return int(value) if value.isdigit() else value


contract_argument = click.argument("contract", type=click.Choice(sorted(FACTORIES)))


@click.group()
@click.version_option(version=VERSION, prog_name="comdao")
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logging")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Optional .env file with COMDAO_* settings",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, env_file: Optional[Path]) -> None:
    """ComDAO / SGBManager contract bindings."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj = {"env_file": env_file}


@cli.command()
@contract_argument
def networks(contract: str) -> None:
    """List the embedded network records."""
    factory = build_factory(contract)
    for network_id in factory.networks():
        record = factory.all_networks[network_id]
        updated = "-"
        if record.updated_at:
            updated = datetime.fromtimestamp(record.updated_at / 1000, tz=timezone.utc).isoformat()
        click.echo(f"  {network_id:<10} address={record.address or '(not deployed)'}  updated={updated}")
        click.echo(f"  {'':<10} events={len(record.events)} links={len(record.links)}")


@cli.command()
@contract_argument
@click.option("--link", "links", multiple=True, help="NAME=ADDRESS, may be repeated")
def libraries(contract: str, links: tuple[str, ...]) -> None:
    """Show libraries that still need linking before deployment."""
    factory = build_factory(contract)
    try:
        for item in links:
            name, _, address = item.partition("=")
            factory.link(name, address)
    except ContractError as exc:
        _fail(str(exc))

    unresolved = factory.unresolved_libraries()
    if unresolved:
        click.secho(f"Unresolved libraries: {', '.join(unresolved)}", fg="yellow")
        sys.exit(1)
    click.secho(f"{contract}: all libraries resolved", fg="green")


def _factory_with_transport(ctx: click.Context, contract: str):
    settings = load_settings(ctx.obj.get("env_file"))
    if settings.private_key:
        logger.info("Signing locally as %s", get_address(settings.private_key))
    transport = JsonRpcTransport(settings.rpc_url, private_key=settings.private_key)
    return build_factory(contract, settings, transport), transport


@cli.command()
@contract_argument
@click.argument("function")
@click.option("--address", required=True, help="Contract address")
@click.option("--args", "args_json", default="[]", help="Function args as JSON array")
@click.pass_context
def call(ctx: click.Context, contract: str, function: str, address: str, args_json: str) -> None:
    """Call a constant function and print the result."""
    args = _parse_args(args_json)

    async def run() -> Any:
        factory, transport = _factory_with_transport(ctx, contract)
        async with transport:
            instance = factory.at(address)
            return await instance.function(function).call(*args)

    try:
        result = asyncio.run(run())
    except (ContractError, AttributeError, ValueError) as exc:
        _fail(str(exc))
    click.echo(json.dumps(_jsonable(result), indent=2, default=str))


@cli.command()
@contract_argument
@click.argument("function")
@click.option("--address", required=True, help="Contract address")
@click.option("--args", "args_json", default="[]", help="Function args as JSON array")
@click.option("--value", default=0, type=int, help="ETH value in wei")
@click.option("--gas", default=None, type=int, help="Gas limit")
@click.option(
    "--extended/--plain",
    default=None,
    help="Print receipt and decoded events (default: COMDAO_EXTENDED_RESULTS)",
)
@click.pass_context
def send(
    ctx: click.Context,
    contract: str,
    function: str,
    address: str,
    args_json: str,
    value: int,
    gas: Optional[int],
    extended: Optional[bool],
) -> None:
    """Submit a transaction and wait for it to be mined."""
    args = _parse_args(args_json)
    options: dict[str, Any] = {}
    if value:
        options["value"] = value
    if gas:
        options["gas"] = gas

    async def run() -> Any:
        factory, transport = _factory_with_transport(ctx, contract)
        async with transport:
            instance = factory.at(address)
            return await instance.function(function).transact(*args, options, extended=extended)

    try:
        result = asyncio.run(run())
    except (ContractError, AttributeError, ValueError) as exc:
        _fail(str(exc))

    if isinstance(result, TransactionResult):
        click.secho("SUCCESS: Transaction confirmed!", fg="green")
        click.echo(f"  TX: {result.tx}")
        click.echo(f"  Block: {result.receipt.get('blockNumber')}")
        for event in result.logs:
            click.echo(f"  Event {event.event}: {json.dumps(_jsonable(event.args), default=str)}")
    else:
        click.secho("SUCCESS: Transaction confirmed!", fg="green")
        click.echo(f"  TX: {result}")


@cli.command()
@contract_argument
@click.option("--address", required=True, help="Contract address")
@click.option("--event", default=None, help="Only this event name")
@click.option("--from-block", default="earliest", help="Block number or tag")
@click.option("--to-block", default="latest", help="Block number or tag")
@click.pass_context
def logs(
    ctx: click.Context,
    contract: str,
    address: str,
    event: Optional[str],
    from_block: str,
    to_block: str,
) -> None:
    """Print past events emitted at a contract address."""

    async def run() -> Any:
        factory, transport = _factory_with_transport(ctx, contract)
        async with transport:
            instance = factory.at(address)
            return await instance.get_logs(event, _block(from_block), _block(to_block))

    try:
        events = asyncio.run(run())
    except (ContractError, AttributeError) as exc:
        _fail(str(exc))

    for item in events:
        click.echo(f"  block={item.block_number} {item.event}: {json.dumps(_jsonable(item.args), default=str)}")
    click.echo(f"{len(events)} event(s)")


@cli.command()
@click.argument("tx_hash")
@click.option("--timeout", default=None, type=float, help="Seconds to wait (0 = no limit)")
@click.pass_context
def wait(ctx: click.Context, tx_hash: str, timeout: Optional[float]) -> None:
    """Wait for the receipt of an already submitted transaction."""
    settings = load_settings(ctx.obj.get("env_file"))

    async def run() -> Any:
        async with JsonRpcTransport(settings.rpc_url) as transport:
            tracker = ConfirmationTracker(
                transport,
                timeout=settings.synchronization_timeout if timeout is None else timeout,
                poll_interval=settings.poll_interval,
            )
            return await tracker.wait(tx_hash, extended=True)

    try:
        result = asyncio.run(run())
    except ContractError as exc:
        _fail(str(exc))
    click.secho(f"Mined in block {result.receipt.get('blockNumber')}", fg="green")
    click.echo(json.dumps(result.receipt, indent=2, default=str))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
