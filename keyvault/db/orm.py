from typing import Any
from typing import Generator

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import MappedAsDataclass
from sqlalchemy.orm import mapped_column

# PostgreSQL needs JSONB for the containment operator (@>) the search uses, the tests
# run on SQLite, which only knows plain JSON.
SecretValueType: Any = sa.JSON().with_variant(JSONB(), "postgresql")


# see
#
# https://stackoverflow.com/questions/54026174/proper-autogenerate-of-str-implementation-also-for-sqlalchemy-classes
def keyvalgen(obj: Any) -> Generator[tuple[str, Any], None, None]:
    """Generate attr name/val pairs, filtering out SQLA attrs."""
    excl = ("_sa_adapter", "_sa_instance_state")
    for k, v in vars(obj).items():
        if not k.startswith("_") and not any(hasattr(v, a) for a in excl):  # type: ignore
            yield k, v


class Base(AsyncAttrs, DeclarativeBase, MappedAsDataclass):
    def __repr__(self) -> str:
        # Secret values shouldn't end up in log files just because someone printed a row
        params = ", ".join(
            f"{k}={v if k != 'secret_value' else '...'}" for k, v in keyvalgen(self)
        )
        return f"{self.__class__.__name__}({params})"


class Secret(Base):
    __tablename__ = "secrets"

    project_key: Mapped[str] = mapped_column(sa.String(length=255), primary_key=True)
    secret_key: Mapped[str] = mapped_column(sa.String(length=255), primary_key=True)
    # Any JSON document, not necessarily an object
    secret_value: Mapped[Any] = mapped_column(SecretValueType)
