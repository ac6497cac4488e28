import json
import os
from functools import lru_cache
from typing import Annotated
from typing import Any
from typing import AsyncGenerator

import structlog
from fastapi import Depends
from fastapi import Header
from fastapi import HTTPException
from sqlalchemy import NullPool
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine

from keyvault.config import AppConfig
from keyvault.config import ConfigError
from keyvault.config import load_app_config

logger = structlog.stdlib.get_logger(__name__)


def _json_serializer_allow_nan_false(obj: Any, **kwargs: Any) -> str:
    return json.dumps(obj, **kwargs, allow_nan=False)


@lru_cache(maxsize=None)
def get_orm_sessionmaker_with_url(db_url: str) -> async_sessionmaker[AsyncSession]:
    # For the sqlite in-memory stuff, see here:
    #
    # https://docs.sqlalchemy.org/en/13/dialects/sqlite.html#threading-pooling-behavior
    #
    # In short, with in-memory databases, we normally get one DB per thread.
    in_memory_db = db_url == "sqlite+aiosqlite://"

    engine = create_async_engine(
        db_url,
        echo="DB_ECHO" in os.environ,
        connect_args={"check_same_thread": False} if in_memory_db else {},
        poolclass=StaticPool if in_memory_db else NullPool,
        json_serializer=_json_serializer_allow_nan_false,
    )

    return async_sessionmaker(engine, expire_on_commit=False)


def get_app_config() -> AppConfig:
    try:
        return load_app_config()
    except ConfigError as e:
        logger.error(f"server is misconfigured: {e}")
        raise HTTPException(status_code=500, detail="Server misconfigured") from e


async def get_read_db(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[AsyncSession, None]:
    async_session = get_orm_sessionmaker_with_url(config.read_db_url)

    async with async_session() as session:
        yield session


async def get_write_db(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[AsyncSession, None]:
    async_session = get_orm_sessionmaker_with_url(config.write_db_url)

    async with async_session() as session:
        yield session


def require_read_access(
    config: Annotated[AppConfig, Depends(get_app_config)],
    x_api_key: Annotated[None | str, Header()] = None,
) -> None:
    # The write key implies read access
    if x_api_key is None or x_api_key not in (
        config.api_master_key_read,
        config.api_master_key_write,
    ):
        raise HTTPException(status_code=401, detail="Read key invalid")


def require_write_access(
    config: Annotated[AppConfig, Depends(get_app_config)],
    x_api_key: Annotated[None | str, Header()] = None,
) -> None:
    if x_api_key is None or x_api_key != config.api_master_key_write:
        raise HTTPException(status_code=401, detail="Write key invalid")


def get_project_key(
    x_project_key: Annotated[None | str, Header()] = None,
) -> str:
    if not x_project_key:
        raise HTTPException(status_code=400, detail="Missing X-PROJECT-KEY")
    return x_project_key
