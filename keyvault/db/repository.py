import re
from typing import Any
from typing import Final

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import delete
from sqlalchemy.sql import select

from keyvault.db import orm
from keyvault.db.migrations.alembic_utilities import upgrade_to_head_connection

# The generated search fragment contains casts ("::text") and, possibly, user text with
# colons in it. Neither of those must be mistaken for a bind parameter by text().
_COLON: Final = re.compile(r":")


def escape_bind_markers(sql_fragment: str) -> str:
    return _COLON.sub(r"\\:", sql_fragment)


def search_statement_text(sql_fragment: str) -> str:
    return (
        "SELECT secret_key, project_key, secret_value FROM secrets"
        f" WHERE project_key = :project_key AND ({escape_bind_markers(sql_fragment)})"
    )


async def migrate(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(upgrade_to_head_connection)


async def retrieve_secret(
    session: AsyncSession, project_key: str, secret_key: str
) -> None | orm.Secret:
    return (
        await session.scalars(
            select(orm.Secret).where(
                (orm.Secret.project_key == project_key)
                & (orm.Secret.secret_key == secret_key),
            ),
        )
    ).one_or_none()


async def upsert_secret(
    session: AsyncSession, project_key: str, secret_key: str, value: Any
) -> None:
    existing = await retrieve_secret(session, project_key, secret_key)
    if existing is None:
        session.add(
            orm.Secret(
                project_key=project_key,
                secret_key=secret_key,
                secret_value=value,
            ),
        )
    else:
        existing.secret_value = value
    await session.commit()


async def delete_secret(
    session: AsyncSession, project_key: str, secret_key: str
) -> bool:
    result = await session.execute(
        delete(orm.Secret).where(
            (orm.Secret.project_key == project_key)
            & (orm.Secret.secret_key == secret_key),
        ),
    )
    await session.commit()
    return result.rowcount > 0  # type: ignore


async def search_secrets(
    session: AsyncSession, project_key: str, sql_fragment: str
) -> list[orm.Secret]:
    statement = text(search_statement_text(sql_fragment)).columns(
        orm.Secret.secret_key,
        orm.Secret.project_key,
        orm.Secret.secret_value,
    )
    return list(
        (
            await session.scalars(
                select(orm.Secret).from_statement(statement),
                {"project_key": project_key},
            )
        ).all(),
    )
