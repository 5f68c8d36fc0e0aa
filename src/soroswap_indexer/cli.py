"""CLI entry point for soroswap_indexer."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from soroswap_indexer.config import load_config
from soroswap_indexer.daemon import IndexerDaemon, run_daemon
from soroswap_indexer.errors import IndexerError
from soroswap_indexer.models.config import IndexerConfig
from soroswap_indexer.models.pools import LiquidityPool
from soroswap_indexer.models.records import ContractType
from soroswap_indexer.stellar.address import is_address, shorten_address


def _short(address: str) -> str:
    return shorten_address(address) if is_address(address) else address


def _require_credentials(cfg: IndexerConfig) -> None:
    """Exit with error if no Mercury credentials are configured."""
    if not cfg.mercury_api_key and not (cfg.mercury_email and cfg.mercury_password):
        click.echo("Error: No Mercury credentials configured.", err=True)
        click.echo(
            "Set SOROSWAP_INDEXER_MERCURY_EMAIL / SOROSWAP_INDEXER_MERCURY_PASSWORD"
            " or [mercury] api_key in config.",
            err=True,
        )
        sys.exit(1)


def _print_pools(pools: list[LiquidityPool], as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([p.to_dict() for p in pools], indent=2))
        return
    if not pools:
        click.echo("No liquidity pools.")
        return
    for p in pools:
        click.echo(
            f"  {_short(p.address)}  {p.token0.code}/{p.token1.code}  "
            f"reserves={p.reserve0}/{p.reserve1}"
        )


def _run_with_daemon(cfg: IndexerConfig, action):
    """Open a daemon's components, run ``action(daemon)``, always close."""

    async def _runner():
        daemon = IndexerDaemon(cfg)
        await daemon.open()
        try:
            return await action(daemon)
        finally:
            await daemon.close()

    try:
        return asyncio.run(_runner())
    except IndexerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-n", "--network", default=None, help="mainnet or testnet (overrides config)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, network: str | None, verbose: bool) -> None:
    """soroswap_indexer - Soroswap pair subscription indexer for Mercury."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["network"] = network
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _config(ctx: click.Context) -> IndexerConfig:
    try:
        return load_config(ctx.obj["config_path"], network=ctx.obj["network"])
    except ValueError as exc:
        click.echo(f"Error: invalid configuration: {exc}", err=True)
        sys.exit(1)


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the periodic sync daemon."""
    cfg = _config(ctx)
    _require_credentials(cfg)

    click.echo(f"Starting soroswap_indexer daemon (network: {cfg.network.value})")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print pools as JSON")
@click.pass_context
def sync(ctx: click.Context, as_json: bool) -> None:
    """Run one synchronization pass and print the resulting pools."""
    cfg = _config(ctx)
    _require_credentials(cfg)

    async def _sync(daemon: IndexerDaemon):
        pools = await daemon.sync_once()
        return pools, daemon.synchronizer.last_report

    pools, report = _run_with_daemon(cfg, _sync)
    if not as_json and report is not None:
        click.echo(f"Pairs:       {report.old_count} -> {report.new_count}")
        click.echo(f"Counter:     {report.saved_count}")
        click.echo(f"Subscribed:  {report.subscriptions_created} new")
        click.echo(f"Failures:    {len(report.failures)}")
        for failure in report.failures:
            click.echo(f"  {failure}")
    _print_pools(pools, as_json)
    if report is not None and report.failures:
        sys.exit(2)


# ── Queries ────────────────────────────────────────────


@cli.command()
@click.pass_context
def counter(ctx: click.Context) -> None:
    """Compare the on-chain pair counter with the stored one."""
    cfg = _config(ctx)
    _require_credentials(cfg)

    async def _counter(daemon: IndexerDaemon):
        on_chain = await daemon.counter.get_pair_counter()
        stored = await daemon.store.get_counter(cfg.network)
        return on_chain, stored

    on_chain, stored = _run_with_daemon(cfg, _counter)
    click.echo(f"On-chain pairs: {on_chain}")
    click.echo(f"Stored counter: {stored if stored is not None else '(not initialized)'}")
    if stored is not None and on_chain > stored:
        click.echo(f"Pending:        {on_chain - stored} new pairs")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print pools as JSON")
@click.pass_context
def pools(ctx: click.Context, as_json: bool) -> None:
    """List liquidity pools for every pair known to the factory (no subscribing)."""
    cfg = _config(ctx)
    _require_credentials(cfg)

    async def _pools(daemon: IndexerDaemon):
        count = await daemon.counter.get_pair_counter()
        addresses = await daemon.synchronizer.get_pair_addresses(count)
        if not addresses:
            return []
        return await daemon.pools.assemble(list(addresses.values()))

    _print_pools(_run_with_daemon(cfg, _pools), as_json)


@cli.command()
@click.pass_context
def populate(ctx: click.Context) -> None:
    """Classify every Mercury subscription into the local database."""
    cfg = _config(ctx)
    _require_credentials(cfg)

    async def _populate(daemon: IndexerDaemon):
        return await daemon.reconciler.populate()

    report = _run_with_daemon(cfg, _populate)
    click.echo(f"Subscriptions seen:  {report.total_seen}")
    click.echo(f"Rows created:        {report.created}")
    for name, count in report.counters.items():
        click.echo(f"  {name:28s} {count}")


# ── Local state ────────────────────────────────────────


@cli.command()
@click.option(
    "--type", "contract_type",
    type=click.Choice([t.value for t in ContractType], case_sensitive=False),
    default=None, help="Filter by contract type",
)
@click.pass_context
def subscriptions(ctx: click.Context, contract_type: str | None) -> None:
    """List stored subscriptions for the selected network."""
    cfg = _config(ctx)

    async def _list(daemon: IndexerDaemon):
        ctype = ContractType(contract_type.upper()) if contract_type else None
        return await daemon.store.list_subscriptions(cfg.network, ctype)

    subs = _run_with_daemon(cfg, _list)
    if not subs:
        click.echo("No subscriptions.")
        return
    for s in subs:
        protocol = s.protocol.value if s.protocol else "-"
        ctype = s.contract_type.value if s.contract_type else "-"
        stype = s.storage_type.value if s.storage_type else "-"
        click.echo(f"  {_short(s.contract_id)}  {s.key_xdr:40s} {protocol:9s} {ctype:8s} {stype}")


@cli.command()
@click.option("-n", "--limit", type=int, default=5, help="Number of recent passes to show")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recent synchronization passes."""
    cfg = _config(ctx)

    async def _history(daemon: IndexerDaemon):
        return await daemon.store.get_sync_history(cfg.network, limit)

    reports = _run_with_daemon(cfg, _history)
    if not reports:
        click.echo("No synchronization passes recorded.")
        return
    for r in reports:
        click.echo(
            f"  at={r.completed_at} pairs={r.old_count}->{r.new_count} saved={r.saved_count} "
            f"created={r.subscriptions_created} calls={r.subscribe_calls} "
            f"failures={len(r.failures)} pools={r.pools_returned}"
        )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show indexer configuration."""
    cfg = _config(ctx)
    click.echo(f"Network:    {cfg.network.value}")
    click.echo(f"GraphQL:    {cfg.mercury_graphql_url}")
    click.echo(f"Backend:    {cfg.mercury_backend_url}")
    click.echo(f"Factory:    {cfg.factory_contract_id or cfg.factory_address_url}")
    click.echo(f"Token list: {cfg.token_list_url}")
    click.echo(f"Interval:   {cfg.sync_interval}s")
    click.echo(f"DB path:    {cfg.db_path}")
    if cfg.mercury_api_key:
        auth = "***api key***"
    elif cfg.mercury_email and cfg.mercury_password:
        auth = f"{cfg.mercury_email} / ***"
    else:
        auth = "(not set)"
    click.echo(f"Mercury:    {auth}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
