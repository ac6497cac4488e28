from typing import Any

from pydantic import BaseModel


class JsonSecretInput(BaseModel):
    key: str
    value: Any


class JsonSecretValueOnly(BaseModel):
    value: Any


class JsonSearchInput(BaseModel):
    # Missing or null means "match everything"
    query: None | str = None


class JsonSecretOutput(BaseModel):
    secret_key: str
    project_key: str
    secret_value: Any
