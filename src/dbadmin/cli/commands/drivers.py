"""Commands for managing the on-disk driver cache."""

import typer

from dbadmin.cli.common.context import AppContext
from dbadmin.cli.common.exits import exit_from_engine_error, ok_exit, warn_exit
from dbadmin.cli.common.output import out
from dbadmin.core.dialects import Dialect
from dbadmin.core.errors import DbAdminError

drivers_app = typer.Typer(
    help="Download and inspect cached database drivers.",
    no_args_is_help=True,
)


@drivers_app.command("fetch")
def fetch(
    ctx: typer.Context,
    dialect: Dialect = typer.Argument(..., help="Dialect whose driver to fetch"),
    load: bool = typer.Option(False, "--load", help="Also import the driver"),
):
    """Ensure the driver for a dialect is downloaded and extracted."""
    appctx: AppContext = ctx.obj
    engine = appctx.engine
    asset = engine.assets[dialect]

    try:
        with out.status(f"Fetching {asset.package_id} {asset.version}..."):
            path = engine.ensure_driver(dialect)
            if load:
                engine.load_driver(dialect)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    out.success(f"{asset.package_id} {asset.version} ready")
    out.kv({"path": path, "loaded": "yes" if load else "no"})


@drivers_app.command("list")
def list_(ctx: typer.Context):
    """List cached driver packages."""
    appctx: AppContext = ctx.obj
    cache = appctx.engine.cache

    entries = cache.entries()
    if not entries:
        warn_exit(f"Driver cache is empty ({cache.root})", code=0)

    out.info(f"Cache root: {cache.root}")
    out.cache_entries_table(entries)


@drivers_app.command("clear")
def clear(
    ctx: typer.Context,
    dialect: Dialect = typer.Argument(..., help="Dialect whose cached driver to remove"),
):
    """Remove the cached package for a dialect's pinned driver version."""
    appctx: AppContext = ctx.obj
    engine = appctx.engine
    asset = engine.assets[dialect]

    if asset.bundled:
        ok_exit(f"{asset.package_id} ships with Python; nothing cached")

    if not engine.cache.clear(asset):
        warn_exit(f"{asset.package_id} {asset.version} is not cached", code=0)

    out.success(f"Removed {asset.package_id} {asset.version} from the cache")
