import asyncio
from pathlib import Path
from typing import Any
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine

from keyvault.cli.webserver import app
from keyvault.db import orm
from keyvault.db import repository
from keyvault.db.repository import migrate

IN_MEMORY_DB_URL = "sqlite+aiosqlite://"

READ_KEY = "read-master-key"
WRITE_KEY = "write-master-key"
PROJECT = "test-project"

READ_HEADERS = {"X-API-KEY": READ_KEY, "X-PROJECT-KEY": PROJECT}
WRITE_HEADERS = {"X-API-KEY": WRITE_KEY, "X-PROJECT-KEY": PROJECT}


async def init_db(url: str) -> None:
    engine = create_async_engine(url)
    await migrate(engine)
    await engine.dispose()


@pytest.fixture
def client(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[TestClient, None, None]:
    url = f"{IN_MEMORY_DB_URL}/{tmp_path}/db"
    monkeypatch.setenv("DB_URL", url)
    monkeypatch.setenv("API_MASTER_KEY_READ", READ_KEY)
    monkeypatch.setenv("API_MASTER_KEY_WRITE", WRITE_KEY)
    monkeypatch.delenv("KEYVAULT_CONFIG", raising=False)
    monkeypatch.delenv("KEYVAULT_READ_DB_URL", raising=False)
    monkeypatch.delenv("KEYVAULT_WRITE_DB_URL", raising=False)
    asyncio.run(init_db(url))
    yield TestClient(app)


def test_put_then_get_secret(client: TestClient) -> None:
    response = client.put(
        "/secrets/database",
        json={"value": {"user": "admin", "password": "hunter2"}},
        headers=WRITE_HEADERS,
    )
    assert response.status_code == 204

    response = client.get("/secrets/database", headers=READ_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"user": "admin", "password": "hunter2"}


def test_post_then_get_secret(client: TestClient) -> None:
    response = client.post(
        "/secrets",
        json={"key": "token", "value": "abc"},
        headers=WRITE_HEADERS,
    )
    assert response.status_code == 204

    response = client.get("/secrets/token", headers=READ_HEADERS)
    assert response.status_code == 200
    assert response.json() == "abc"


def test_post_overwrites_existing_secret(client: TestClient) -> None:
    client.post("/secrets", json={"key": "k", "value": 1}, headers=WRITE_HEADERS)
    client.post("/secrets", json={"key": "k", "value": 2}, headers=WRITE_HEADERS)

    assert client.get("/secrets/k", headers=READ_HEADERS).json() == 2


def test_write_key_can_read(client: TestClient) -> None:
    client.post("/secrets", json={"key": "k", "value": [1, 2]}, headers=WRITE_HEADERS)

    response = client.get("/secrets/k", headers=WRITE_HEADERS)
    assert response.status_code == 200
    assert response.json() == [1, 2]


def test_get_missing_secret(client: TestClient) -> None:
    response = client.get("/secrets/nothing-here", headers=READ_HEADERS)
    assert response.status_code == 404
    assert response.json()["detail"] == "Not found"


def test_secrets_are_scoped_by_project(client: TestClient) -> None:
    client.post("/secrets", json={"key": "k", "value": "x"}, headers=WRITE_HEADERS)

    response = client.get(
        "/secrets/k",
        headers={"X-API-KEY": READ_KEY, "X-PROJECT-KEY": "other-project"},
    )
    assert response.status_code == 404


def test_delete_secret(client: TestClient) -> None:
    client.post("/secrets", json={"key": "k", "value": "x"}, headers=WRITE_HEADERS)

    assert client.delete("/secrets/k", headers=WRITE_HEADERS).status_code == 204
    assert client.get("/secrets/k", headers=READ_HEADERS).status_code == 404
    # Deleting again is still fine
    assert client.delete("/secrets/k", headers=WRITE_HEADERS).status_code == 204


def test_read_key_cannot_write(client: TestClient) -> None:
    response = client.post(
        "/secrets", json={"key": "k", "value": "x"}, headers=READ_HEADERS
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Write key invalid"

    assert client.delete("/secrets/k", headers=READ_HEADERS).status_code == 401
    assert (
        client.put("/secrets/k", json={"value": 1}, headers=READ_HEADERS).status_code
        == 401
    )


def test_invalid_key_cannot_read(client: TestClient) -> None:
    response = client.get(
        "/secrets/k", headers={"X-API-KEY": "wrong", "X-PROJECT-KEY": PROJECT}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Read key invalid"


def test_missing_api_key(client: TestClient) -> None:
    response = client.get("/secrets/k", headers={"X-PROJECT-KEY": PROJECT})
    assert response.status_code == 401


def test_missing_project_key(client: TestClient) -> None:
    response = client.get("/secrets/k", headers={"X-API-KEY": READ_KEY})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing X-PROJECT-KEY"


def test_search_with_invalid_query(client: TestClient) -> None:
    response = client.post(
        "/search", json={"query": "a:b OR AND c:d"}, headers=READ_HEADERS
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid query syntax")


def test_search_requires_read_access(client: TestClient) -> None:
    response = client.post(
        "/search",
        json={"query": "foo"},
        headers={"X-API-KEY": "wrong", "X-PROJECT-KEY": PROJECT},
    )
    assert response.status_code == 401


class _RecordingSearch:
    def __init__(self, result: list[orm.Secret]) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    async def __call__(
        self, _session: AsyncSession, project_key: str, sql_fragment: str
    ) -> list[orm.Secret]:
        self.calls.append((project_key, sql_fragment))
        return self.result


# The generated SQL only runs on PostgreSQL, so here we just check what's handed to the database
@pytest.mark.parametrize(
    "body, expected_fragment",
    [
        ({}, "TRUE"),
        ({"query": None}, "TRUE"),
        ({"query": "  "}, "TRUE"),
        (
            {"query": "secret_key:db_password"},
            "secret_key ILIKE '%db\\_password%'",
        ),
    ],
)
def test_search_passes_compiled_query_to_database(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
    body: dict[str, Any],
    expected_fragment: str,
) -> None:
    recording_search = _RecordingSearch(
        [
            orm.Secret(
                project_key=PROJECT,
                secret_key="db_password",
                secret_value={"password": "hunter2"},
            ),
        ]
    )
    monkeypatch.setattr(repository, "search_secrets", recording_search)

    response = client.post("/search", json=body, headers=READ_HEADERS)

    assert response.status_code == 200
    assert response.json() == [
        {
            "secret_key": "db_password",
            "project_key": PROJECT,
            "secret_value": {"password": "hunter2"},
        }
    ]
    assert recording_search.calls == [(PROJECT, expected_fragment)]


def test_search_with_deeply_nested_query(client: TestClient) -> None:
    response = client.post(
        "/search",
        json={"query": "(" * 500 + "a" + ")" * 500},
        headers=READ_HEADERS,
    )
    assert response.status_code == 400
    assert "nested too deeply" in response.json()["detail"]
