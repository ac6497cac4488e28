from typing import Annotated
from typing import Any

import structlog
from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keyvault.db import repository
from keyvault.web.fastapi_utils import get_project_key
from keyvault.web.fastapi_utils import get_read_db
from keyvault.web.fastapi_utils import get_write_db
from keyvault.web.fastapi_utils import require_read_access
from keyvault.web.fastapi_utils import require_write_access
from keyvault.web.json_models import JsonSecretInput
from keyvault.web.json_models import JsonSecretValueOnly

router = APIRouter()

logger = structlog.stdlib.get_logger(__name__)


@router.get("/secrets/{key}", tags=["secrets"])
async def read_secret(
    key: str,
    _auth: Annotated[None, Depends(require_read_access)],
    project_key: Annotated[str, Depends(get_project_key)],
    session: Annotated[AsyncSession, Depends(get_read_db)],
) -> Any:
    try:
        secret = await repository.retrieve_secret(session, project_key, key)
    except SQLAlchemyError as e:
        logger.exception("error reading secret", project_key=project_key)
        raise HTTPException(status_code=500, detail="DB error") from e
    if secret is None:
        raise HTTPException(status_code=404, detail="Not found")
    return secret.secret_value


async def _upsert(
    session: AsyncSession, project_key: str, key: str, value: Any
) -> Response:
    secret_logger = logger.bind(project_key=project_key, secret_key=key)
    try:
        await repository.upsert_secret(session, project_key, key, value)
    except SQLAlchemyError as e:
        secret_logger.exception("error writing secret")
        raise HTTPException(status_code=500, detail="DB error") from e
    secret_logger.info("secret written")
    return Response(status_code=204)


@router.post("/secrets", tags=["secrets"], status_code=204)
async def create_or_update_secret(
    input_: JsonSecretInput,
    _auth: Annotated[None, Depends(require_write_access)],
    project_key: Annotated[str, Depends(get_project_key)],
    session: Annotated[AsyncSession, Depends(get_write_db)],
) -> Response:
    return await _upsert(session, project_key, input_.key, input_.value)


@router.put("/secrets/{key}", tags=["secrets"], status_code=204)
async def create_or_update_secret_by_path(
    key: str,
    input_: JsonSecretValueOnly,
    _auth: Annotated[None, Depends(require_write_access)],
    project_key: Annotated[str, Depends(get_project_key)],
    session: Annotated[AsyncSession, Depends(get_write_db)],
) -> Response:
    return await _upsert(session, project_key, key, input_.value)


@router.delete("/secrets/{key}", tags=["secrets"], status_code=204)
async def delete_secret(
    key: str,
    _auth: Annotated[None, Depends(require_write_access)],
    project_key: Annotated[str, Depends(get_project_key)],
    session: Annotated[AsyncSession, Depends(get_write_db)],
) -> Response:
    secret_logger = logger.bind(project_key=project_key, secret_key=key)
    try:
        deleted = await repository.delete_secret(session, project_key, key)
    except SQLAlchemyError as e:
        secret_logger.exception("error deleting secret")
        raise HTTPException(status_code=500, detail="DB error") from e
    # Deleting something that isn't there is fine, the outcome is the same
    secret_logger.info("secret deleted" if deleted else "secret to delete not found")
    return Response(status_code=204)
