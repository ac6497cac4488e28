import structlog
from alembic import context
from sqlalchemy import Connection

logger = structlog.stdlib.get_logger(__name__)

# There's no alembic.ini: the only way to run the migrations is through
# keyvault.db.migrations.alembic_utilities, which passes in an already opened
# connection (shared with the async engine, see the alembic cookbook).
_connection: None | Connection = context.config.attributes.get("connection", None)


def run_migrations_online(connection: Connection) -> None:
    logger.info(f"running migrations on a {connection.dialect.name} database")

    context.configure(
        connection=connection,
        # Migrations are written by hand, so no autogenerate support
        target_metadata=None,
        # SQLite cannot alter tables in place
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


if _connection is None:
    raise RuntimeError(
        "migrations need an open connection, use keyvault-upgrade-db to run them"
    )

run_migrations_online(_connection)
