"""CLI application for provider-agnostic database administration."""

from dbadmin.cli.commands.database import app
from dbadmin.cli.commands.drivers import drivers_app

app.add_typer(drivers_app, name="drivers")


if __name__ == "__main__":
    app()
