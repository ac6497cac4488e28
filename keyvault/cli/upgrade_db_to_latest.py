import asyncio

import structlog
from sqlalchemy.ext.asyncio import create_async_engine
from tap import Tap

from keyvault.db.repository import migrate
from keyvault.logging_util import setup_structlog

setup_structlog()

logger = structlog.stdlib.get_logger(__name__)


class Arguments(Tap):
    db_connection_url: (
        str  # Connection URL for the database (e.g. postgresql+asyncpg://user:pw@host/db)
    )


async def _upgrade_db_to_latest(args: Arguments) -> None:
    engine = create_async_engine(args.db_connection_url)
    await migrate(engine)
    await engine.dispose()
    logger.info(
        "database updated to latest version, it's now ready to use!",
    )


def main() -> None:
    asyncio.run(
        _upgrade_db_to_latest(Arguments(underscores_to_dashes=True).parse_args()),
    )


if __name__ == "__main__":
    main()
