"""Operator metadata overlay.

Descriptions and tips written by operators live in their own JSON file and
are layered onto inferred schemas at read time. They are never written into
schema snapshots, so regenerating a snapshot cannot lose them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from polyquery.core.exceptions import ConfigurationError
from polyquery.engine.storage import write_json_atomic
from polyquery.models.connections import FieldAnnotation, MetadataOverlay
from polyquery.models.schema import CollectionSchema

logger = logging.getLogger(__name__)

_overlay_adapter: TypeAdapter[MetadataOverlay] = TypeAdapter(MetadataOverlay)


class MetadataStore:
    """File-backed ``connectionId -> collection -> field -> annotation`` mapping."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> MetadataOverlay:
        if not self.path.exists():
            return {}
        try:
            return _overlay_adapter.validate_json(self.path.read_bytes())
        except ValidationError as e:
            raise ConfigurationError(
                f"Metadata file {self.path} is malformed: {e}",
                config_key="METADATA_FILE",
            ) from e

    def save_field(
        self,
        connection_id: str,
        collection_name: str,
        field_name: str,
        description: str | None = None,
        tips: str | None = None,
    ) -> FieldAnnotation:
        """Create or replace the annotation for one field."""
        overlay = self.load()
        annotation = FieldAnnotation(description=description, tips=tips)
        overlay.setdefault(connection_id, {}).setdefault(collection_name, {})[field_name] = (
            annotation
        )

        payload = _overlay_adapter.dump_python(overlay, mode="json", exclude_none=True)
        write_json_atomic(self.path, payload)

        logger.info(
            "Field metadata saved",
            extra={
                "connection_id": connection_id,
                "collection": collection_name,
                "field": field_name,
            },
        )
        return annotation

    def apply(
        self,
        connection_id: str,
        schemas: list[CollectionSchema],
        overlay: MetadataOverlay | None = None,
    ) -> list[CollectionSchema]:
        """Return copies of ``schemas`` with annotations merged in.

        Only fields present both in the overlay and in the schema are touched;
        annotations for fields the schema does not know are ignored.
        """
        overlay = self.load() if overlay is None else overlay
        collections = overlay.get(connection_id, {})
        merged: list[CollectionSchema] = []
        for schema in schemas:
            copy = schema.model_copy(deep=True)
            for field_name, annotation in collections.get(schema.collection_name, {}).items():
                info = copy.fields.get(field_name)
                if info is None:
                    continue
                if annotation.description is not None:
                    info.description = annotation.description
                if annotation.tips is not None:
                    info.tips = annotation.tips
            merged.append(copy)
        return merged
