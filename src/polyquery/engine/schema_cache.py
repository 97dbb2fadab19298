"""On-disk schema snapshots with age-based regeneration.

One ``<connection id>.json`` file per connection holds the last inferred
schemas. A snapshot is stale when it is missing or its file is older than
the TTL; stale snapshots are regenerated synchronously on read.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from polyquery.engine.adapters.base import SourceAdapter
from polyquery.engine.metadata import MetadataStore
from polyquery.engine.registry import ConnectionRegistry
from polyquery.engine.storage import write_json_atomic
from polyquery.models.connections import Connection, SourceType
from polyquery.models.schema import SchemaSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class SchemaCache:
    """Schema snapshots for every registered connection.

    Attributes:
        schemas_dir: Directory holding one snapshot file per connection.
        ttl_seconds: Maximum snapshot age before regeneration.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        adapters: Mapping[SourceType, SourceAdapter],
        metadata: MetadataStore,
        schemas_dir: Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.adapters = adapters
        self.metadata = metadata
        self.schemas_dir = Path(schemas_dir)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def snapshot_path(self, connection_id: str) -> Path:
        safe_id = _UNSAFE_FILENAME_CHARS.sub("_", connection_id)
        return self.schemas_dir / f"{safe_id}.json"

    def is_stale(self, path: Path) -> bool:
        """A snapshot is stale when missing or strictly older than the TTL."""
        if not path.exists():
            return True
        age = self._clock() - path.stat().st_mtime_ns / 1e9
        return age > self.ttl_seconds

    def adapter_for(self, connection: Connection) -> SourceAdapter:
        return self.adapters[connection.type]

    def _generate(self, connection: Connection) -> SchemaSnapshot:
        schemas = self.adapter_for(connection).infer_schema(connection.config)
        snapshot = SchemaSnapshot(generated_at=datetime.now(UTC), schemas=schemas)

        path = self.snapshot_path(connection.id)
        payload = snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
        write_json_atomic(path, payload)

        logger.info(
            "Schema snapshot generated",
            extra={"connection_id": connection.id, "collections": len(schemas)},
        )
        return snapshot

    def _read(self, path: Path) -> SchemaSnapshot | None:
        try:
            return SchemaSnapshot.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("Unreadable schema snapshot", extra={"path": str(path), "error": str(e)})
            return None

    def _load_or_generate(self, connection: Connection) -> SchemaSnapshot:
        path = self.snapshot_path(connection.id)
        previous = self._read(path) if path.exists() else None

        if previous is not None and not self.is_stale(path):
            return previous

        if previous is None:
            return self._generate(connection)

        try:
            return self._generate(connection)
        except Exception as e:
            logger.warning(
                "Schema regeneration failed, serving last good snapshot",
                extra={"connection_id": connection.id, "error": str(e)},
                exc_info=True,
            )
            return previous

    def get_snapshot(self, connection_id: str | None = None) -> tuple[Connection, SchemaSnapshot]:
        """Return the resolved connection and its snapshot with metadata merged in.

        Raises:
            ConnectionNotFoundError: No connections are registered.
            ConfigInvalidError: Regeneration was required and the config is incomplete.
            SourceUnreachableError: Regeneration was required and the source failed.
        """
        connection = self.registry.resolve(connection_id)
        snapshot = self._load_or_generate(connection)
        return connection, self._with_metadata(connection, snapshot)

    def refresh(self, connection_id: str | None = None) -> tuple[Connection, SchemaSnapshot]:
        """Regenerate the snapshot now, regardless of age; failures propagate."""
        connection = self.registry.resolve(connection_id)
        snapshot = self._generate(connection)
        return connection, self._with_metadata(connection, snapshot)

    def _with_metadata(self, connection: Connection, snapshot: SchemaSnapshot) -> SchemaSnapshot:
        merged = self.metadata.apply(connection.id, snapshot.schemas)
        return snapshot.model_copy(update={"schemas": merged})
