import os
from pathlib import Path
from typing import Any
from typing import Mapping
from typing import Optional

import structlog
import yaml
from pydantic import BaseModel

logger = structlog.stdlib.get_logger(__name__)

CONFIG_FILE_ENV_VAR = "KEYVAULT_CONFIG"


class ConfigError(Exception):
    def __init__(self, setting: str) -> None:
        super().__init__(f'setting "{setting}" is missing')
        self.setting = setting


class AppConfig(BaseModel):
    read_db_url: str
    write_db_url: str
    api_master_key_read: str
    api_master_key_write: str
    log_level: str = "warning"


class _FileConfig(BaseModel):
    read_db_url: Optional[str] = None
    write_db_url: Optional[str] = None
    api_master_key_read: Optional[str] = None
    api_master_key_write: Optional[str] = None
    log_level: Optional[str] = None


def load_config_file(path: Path) -> dict[str, Any]:
    logger.info(f"reading configuration from {path}")
    with path.open("r") as f:
        content = yaml.load(f, Loader=yaml.SafeLoader)
    return _FileConfig(**(content or {})).model_dump(exclude_none=True)


def _postgres_url(env: Mapping[str, str], user_var: str, password_var: str) -> None | str:
    database = env.get("POSTGRES_DB")
    user = env.get(user_var)
    if database is None or user is None:
        return None
    host = env.get("PG_HOST", "postgres")
    password = env.get(password_var, "")
    credentials = f"{user}:{password}" if password else user
    return f"postgresql+asyncpg://{credentials}@{host}/{database}"


def load_app_config(env: None | Mapping[str, str] = None) -> AppConfig:
    if env is None:
        env = os.environ

    values: dict[str, Any] = {}
    config_file = env.get(CONFIG_FILE_ENV_VAR)
    if config_file:
        values.update(load_config_file(Path(config_file)))

    overrides = {
        "read_db_url": env.get("KEYVAULT_READ_DB_URL", env.get("DB_URL")),
        "write_db_url": env.get("KEYVAULT_WRITE_DB_URL", env.get("DB_URL")),
        "api_master_key_read": env.get("API_MASTER_KEY_READ"),
        "api_master_key_write": env.get("API_MASTER_KEY_WRITE"),
        "log_level": env.get("KEYVAULT_LOG_LEVEL"),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})

    # Separate database users for reading and writing, as in the docker-compose setup
    if "read_db_url" not in values:
        read_url = _postgres_url(env, "SECRETS_READ_USER", "SECRETS_READ_PASSWORD")
        if read_url is not None:
            values["read_db_url"] = read_url
    if "write_db_url" not in values:
        write_url = _postgres_url(env, "SECRETS_WRITE_USER", "SECRETS_WRITE_PASSWORD")
        if write_url is not None:
            values["write_db_url"] = write_url

    for required in (
        "read_db_url",
        "write_db_url",
        "api_master_key_read",
        "api_master_key_write",
    ):
        if required not in values:
            raise ConfigError(required)

    return AppConfig(**values)
