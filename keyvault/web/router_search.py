from typing import Annotated

import structlog
from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keyvault.db import repository
from keyvault.search.errors import QueryInternalError
from keyvault.search.errors import QuerySyntaxError
from keyvault.search.sql import compile_search_query
from keyvault.web.fastapi_utils import get_project_key
from keyvault.web.fastapi_utils import get_read_db
from keyvault.web.fastapi_utils import require_read_access
from keyvault.web.json_models import JsonSearchInput
from keyvault.web.json_models import JsonSecretOutput

router = APIRouter()

logger = structlog.stdlib.get_logger(__name__)


@router.post("/search", tags=["search"])
async def search_secrets(
    input_: JsonSearchInput,
    _auth: Annotated[None, Depends(require_read_access)],
    project_key: Annotated[str, Depends(get_project_key)],
    session: Annotated[AsyncSession, Depends(get_read_db)],
) -> list[JsonSecretOutput]:
    search_logger = logger.bind(project_key=project_key)
    raw_query = input_.query if input_.query is not None else ""

    try:
        where_clause = compile_search_query(raw_query)
    except QuerySyntaxError as e:
        search_logger.info(f"rejecting search query {raw_query!r}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except QueryInternalError as e:
        search_logger.exception(f"could not compile search query {raw_query!r}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    search_logger.debug(f"raw query = {raw_query!r}")
    search_logger.debug(f"generated WHERE clause = {where_clause}")

    try:
        secrets = await repository.search_secrets(session, project_key, where_clause)
    except SQLAlchemyError as e:
        search_logger.exception("error executing search")
        raise HTTPException(status_code=500, detail="DB error") from e

    return [
        JsonSecretOutput(
            secret_key=s.secret_key,
            project_key=s.project_key,
            secret_value=s.secret_value,
        )
        for s in secrets
    ]
