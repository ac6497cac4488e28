import setuptools

setuptools.setup(
    name="keyvault",
    version="0.1.0",
    description="Project-scoped JSON secret store with a Lucene-style search language",
    packages=setuptools.find_packages(include=["keyvault", "keyvault.*"]),
    package_data={
        # alembic loads these from the file system, they're not imported as modules
        "keyvault.db.migrations": ["versions/*.py"],
    },
    entry_points={
        "console_scripts": [
            "keyvault-webserver = keyvault.cli.webserver:main",
            "keyvault-upgrade-db = keyvault.cli.upgrade_db_to_latest:main",
            "keyvault-compile-query = keyvault.cli.compile_query:main",
        ]
    },
    install_requires=[
        # for general DB access
        "SQLAlchemy[asyncio]>=2.0",
        # for PostgreSQL, the only database the search SQL is written for
        "asyncpg>=0.29",
        # for migrating a DB
        "alembic>=1.12",
        # to parse search queries
        "lark>=1.1",
        # For the config file
        "PyYAML>=6.0",
        "pydantic>=2.0",
        # For the command line tools
        "typed-argument-parser>=1.8",
        "structlog>=23.1",
        "fastapi>=0.100",
        "uvicorn>=0.23",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
            # for the in-memory/file-based test databases
            "aiosqlite>=0.19",
            # needed by fastapi's TestClient
            "httpx>=0.24",
        ],
    },
    python_requires=">=3.10",
)
