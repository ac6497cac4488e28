from alembic import command
from alembic.config import Config
from sqlalchemy import Connection

SCRIPT_LOCATION = "keyvault:db/migrations"


def upgrade_to_connection(conn: Connection, version: str) -> None:
    alembic_cfg = Config()
    # see https://alembic.sqlalchemy.org/en/latest/cookbook.html#programmatic-api-use-connection-sharing-with-asyncio
    # pylint: disable=unsupported-assignment-operation
    alembic_cfg.attributes["connection"] = conn
    alembic_cfg.set_main_option("script_location", SCRIPT_LOCATION)
    command.upgrade(alembic_cfg, version)


def upgrade_to_head_connection(conn: Connection) -> None:
    upgrade_to_connection(conn, "head")
