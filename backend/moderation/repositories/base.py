"""Repository base (storage port).

- Repositories are the only layer that talks to the database.
- Query helpers accept SELECT statements only; commands go through `_add`.
- Driver-level connectivity failures surface as StorageUnavailable so callers
  can tell a missing answer from an empty one. Nothing is ever substituted.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy.engine import Result
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable
from sqlalchemy.sql.selectable import Select

from engine.core.errors import StorageUnavailable


class RepositoryMisuse(RuntimeError):
    """Raised when a non-SELECT statement is routed through the query helper."""


@contextmanager
def storage_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except OperationalError as e:
        raise StorageUnavailable(f"Storage unavailable during {operation}.") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise StorageUnavailable(f"Storage connection lost during {operation}.") from e
        raise


class BaseRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def _assert_select_only(self, stmt: Executable) -> None:
        if not isinstance(stmt, Select):
            raise RepositoryMisuse(f"Query helper accepts SELECT statements only (got {type(stmt)!r}).")

    def _execute(self, stmt: Executable, *, params: Optional[dict[str, Any]] = None) -> Result[Any]:
        self._assert_select_only(stmt)
        with storage_guard(self.__class__.__name__):
            return self._session.execute(stmt, params or {})

    def _add(self, obj: Any) -> Any:
        with storage_guard(self.__class__.__name__):
            self._session.add(obj)
            self._session.flush()
        return obj
