"""Durable list of configured connections.

The registry file is a JSON array of connection records. It is read in full
on every access so edits made by another process are picked up without a
restart.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from polyquery.core.exceptions import (
    ConfigurationError,
    ConnectionNotFoundError,
    DuplicateConnectionError,
)
from polyquery.engine.storage import write_json_atomic
from polyquery.models.connections import Connection, SourceType

logger = logging.getLogger(__name__)

_connections_adapter = TypeAdapter(list[Connection])

DEFAULT_CONNECTION_ID = "default"


class ConnectionRegistry:
    """File-backed connection registry.

    Attributes:
        path: Location of the JSON registry file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def list_connections(self) -> list[Connection]:
        """Load every registered connection (empty when the file does not exist)."""
        if not self.path.exists():
            return []
        try:
            return _connections_adapter.validate_json(self.path.read_bytes())
        except ValidationError as e:
            raise ConfigurationError(
                f"Connection registry {self.path} is malformed: {e}",
                config_key="CONNECTIONS_FILE",
            ) from e

    def _write(self, connections: list[Connection]) -> None:
        payload = _connections_adapter.dump_python(connections, mode="json", by_alias=True)
        write_json_atomic(self.path, payload)

    def add(self, connection: Connection) -> Connection:
        """Append a connection.

        Raises:
            DuplicateConnectionError: The id is already registered.
        """
        connections = self.list_connections()
        if any(c.id == connection.id for c in connections):
            raise DuplicateConnectionError(connection.id)
        connections.append(connection)
        self._write(connections)
        logger.info(
            "Connection registered",
            extra={"connection_id": connection.id, "type": str(connection.type)},
        )
        return connection

    def get(self, connection_id: str) -> Connection | None:
        for connection in self.list_connections():
            if connection.id == connection_id:
                return connection
        return None

    def resolve(self, connection_id: str | None = None) -> Connection:
        """Return the requested connection, falling back to the first registered one.

        Raises:
            ConnectionNotFoundError: The registry is empty.
        """
        connections = self.list_connections()
        if not connections:
            raise ConnectionNotFoundError(
                "No connections are registered", connection_id=connection_id
            )
        if connection_id:
            for connection in connections:
                if connection.id == connection_id:
                    return connection
            logger.info(
                "Unknown connection id, using first registered connection",
                extra={"requested": connection_id, "resolved": connections[0].id},
            )
        return connections[0]

    def first_of_type(self, source_type: SourceType) -> Connection | None:
        return next((c for c in self.list_connections() if c.type == source_type), None)

    def seed_default(self, mongodb_uri: str | None) -> Connection | None:
        """Register a ``default`` MongoDB connection when the registry is empty."""
        if not mongodb_uri or self.list_connections():
            return None
        connection = Connection(
            id=DEFAULT_CONNECTION_ID,
            name="Default MongoDB",
            type=SourceType.MONGODB,
            config={"uri": mongodb_uri},
        )
        return self.add(connection)
