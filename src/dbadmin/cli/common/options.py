"""Common CLI options for the CLI."""

import typer

ConnectionOpt = typer.Option(
    None,
    "--connection",
    "-c",
    envvar="DBADMIN_CONNECTION",
    help="Connection string (SQL Server, PostgreSQL or SQLite)",
    show_default=False,
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Show engine debug logging",
)

ParamOpt = typer.Option(
    [],
    "--param",
    "-p",
    help="Query parameter (name=value), bound as @name. This is reusable.",
    show_default=False,
)

ConfirmOpt = typer.Option(
    True,
    "--confirm/--no-confirm",
    help="Ask for confirmation before dropping",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would be dropped, but don't drop anything",
)
