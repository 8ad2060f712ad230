# src/studiq/infrastructure/storage.py
"""
Synchronous string key/value storage that survives restarts, used for
client-side preferences such as the favourite coins list.
"""

import logging
from typing import Dict, Optional, Protocol

from sqlalchemy.engine import Engine

from studiq.infrastructure.db.base import build_session_factory, create_tables, session_scope
from studiq.infrastructure.db.models import ClientStorageItem

log = logging.getLogger(__name__)


class ClientStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


class InMemoryClientStorage:
    """Process-local storage; handy for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class SqlClientStorage:
    """Stores items in the `client_storage` table."""

    def __init__(self, engine: Engine, create_schema: bool = True):
        if create_schema:
            create_tables(engine)
        self._session_factory = build_session_factory(engine)

    def get_item(self, key: str) -> Optional[str]:
        with session_scope(self._session_factory) as session:
            item = session.get(ClientStorageItem, key)
            return item.value if item is not None else None

    def set_item(self, key: str, value: str) -> None:
        with session_scope(self._session_factory) as session:
            item = session.get(ClientStorageItem, key)
            if item is None:
                session.add(ClientStorageItem(key=key, value=value))
            else:
                item.value = value
        log.debug(f"Stored client item '{key}' ({len(value)} chars).")
