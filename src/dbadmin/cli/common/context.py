"""Application context management for the CLI."""

from dataclasses import dataclass

from dbadmin.cli.common.exits import die
from dbadmin.core.connection import ConnectionDescriptor
from dbadmin.core.engine import DbAdmin
from dbadmin.core.errors import ClassificationError


@dataclass
class AppContext:
    """Application context holding the engine and the raw connection string."""

    connection: str | None
    engine: DbAdmin

    def descriptor(self) -> ConnectionDescriptor:
        """Return the classified connection, exiting on missing or unknown input."""
        if not self.connection:
            die(
                "Missing connection string. Use --connection or set DBADMIN_CONNECTION.",
                code=2,
            )
        try:
            return self.engine.describe(self.connection)
        except ClassificationError as exc:
            die(str(exc), code=2)


def build_context(connection: str | None) -> AppContext:
    """Build and return the application context.

    Args:
        connection: Connection string from --connection / DBADMIN_CONNECTION.

    Returns:
        AppContext: Application context with a configured engine.
    """
    return AppContext(connection=connection, engine=DbAdmin())
