"""Commands that act on the database named by the connection string."""

import typer

from dbadmin.cli.common.context import AppContext, build_context
from dbadmin.cli.common.exits import die, exit_from_engine_error, ok_exit, warn_exit
from dbadmin.cli.common.options import (
    ConfirmOpt,
    ConnectionOpt,
    DryRunOpt,
    ParamOpt,
    VerboseOpt,
)
from dbadmin.cli.common.output import configure_logging, out
from dbadmin.cli.common.params import build_parameters
from dbadmin.core.dialects import Dialect
from dbadmin.core.errors import DbAdminError

app = typer.Typer(
    help="dbadmin - provider-agnostic database administration",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    connection: str | None = ConnectionOpt,
    verbose: bool = VerboseOpt,
):
    """Initialize the engine context shared by all commands."""
    configure_logging(verbose)
    ctx.obj = build_context(connection)


@app.command()
def classify(ctx: typer.Context):
    """
    Show the dialect and derived fields of the connection string.
    """
    appctx: AppContext = ctx.obj
    descriptor = appctx.descriptor()

    out.header("Connection")
    fields = {"dialect": descriptor.dialect.value, "connection": descriptor.redacted}
    if descriptor.dialect == Dialect.SQLITE:
        fields["path"] = descriptor.path
    else:
        fields["host"] = descriptor.host
        fields["database"] = descriptor.database
        fields["admin connection"] = descriptor.admin().redacted
    out.kv(fields)


@app.command()
def info(ctx: typer.Context):
    """
    Show server and database version information.
    """
    appctx: AppContext = ctx.obj
    descriptor = appctx.descriptor()

    try:
        with out.status("Querying server info..."):
            result = appctx.engine.get_info(descriptor)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    out.header(f"{descriptor.dialect.value} info")
    for row in result.as_dicts():
        out.kv(row)


@app.command()
def tables(ctx: typer.Context):
    """
    List user tables.
    """
    appctx: AppContext = ctx.obj
    descriptor = appctx.descriptor()

    try:
        with out.status("Loading tables..."):
            result = appctx.engine.list_tables(descriptor)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    if not result.rows:
        warn_exit("No tables found", code=0)

    out.info(f"Tables: {len(result)}")
    out.result_table(result, title="Tables")


@app.command()
def query(
    ctx: typer.Context,
    sql: str = typer.Argument(..., help="SQL text; bind parameters as @name"),
    param: list[str] = ParamOpt,
):
    """
    Execute SQL and print the result set.
    """
    appctx: AppContext = ctx.obj

    try:
        parameters = build_parameters(param)
    except ValueError as e:
        die(str(e), code=2)

    descriptor = appctx.descriptor()

    try:
        with out.status("Running query..."):
            result = appctx.engine.execute(descriptor, sql, parameters)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    if not result.columns:
        ok_exit("Statement executed (no result set)")

    out.info(f"Rows: {len(result)}")
    out.result_table(result, title="Result")


@app.command()
def drop(
    ctx: typer.Context,
    confirm: bool = ConfirmOpt,
    dry_run: bool = DryRunOpt,
):
    """
    Drop the database (SQLite: delete the file).
    """
    appctx: AppContext = ctx.obj
    descriptor = appctx.descriptor()
    engine = appctx.engine

    try:
        plan = engine.drop_database(descriptor, dry_run=True)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    if not plan.target_exists:
        warn_exit(plan.describe(), code=0)

    out.header(plan.describe())
    if plan.steps:
        out.steps_table(plan.steps)

    if dry_run:
        warn_exit("Dry-run enabled: nothing was dropped", code=0)

    if confirm and not out.confirm(f"Drop {plan.target}? This cannot be undone."):
        ok_exit("Cancelled")

    try:
        with out.status(f"Dropping {plan.target}..."):
            result = engine.drop_database(descriptor)
    except DbAdminError as exc:
        exit_from_engine_error(exc)

    if result.performed:
        out.success(result.describe())
    else:
        out.warn(result.describe())
