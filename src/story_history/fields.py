"""Static field configuration: tracked fields, storage types and the full schema."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TRACKED_FILE = "tracked.json"
MAPPINGS_FILE = "mappings.json"
SCHEMA_FILE = "schema.json"

STORAGE_TYPES = frozenset({"string", "integer", "float", "boolean", "date", "object"})


@dataclass(frozen=True)
class TrackedFieldSet:
    """Field names whose presence in an observation opens a new revision."""

    names: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, names: Iterable[str]) -> TrackedFieldSet:
        return cls(frozenset(names))

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)

    def present_in(self, keys: Iterable[str]) -> frozenset[str]:
        """Return the tracked names among ``keys``."""
        return self.names.intersection(keys)

    def any_in(self, keys: Iterable[str]) -> bool:
        return bool(self.present_in(keys))


@dataclass(frozen=True)
class FieldConfig:
    tracked: TrackedFieldSet
    mappings: Mapping[str, str]
    schema: Mapping[str, Any]

    def nulled_template(self) -> dict[str, None]:
        """Return a document with every schema field set to ``None``."""
        return dict.fromkeys(self.schema)


def _read_json(path: Path) -> Any:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def load_field_config(config_dir: str | Path) -> FieldConfig:
    """Read tracked.json, mappings.json and schema.json from ``config_dir``."""
    directory = Path(config_dir)

    tracked = _read_json(directory / TRACKED_FILE)
    if not isinstance(tracked, list) or not all(isinstance(n, str) for n in tracked):
        raise ValueError(f"{TRACKED_FILE} must be a JSON list of field names")

    mappings = _read_json(directory / MAPPINGS_FILE)
    if not isinstance(mappings, dict):
        raise ValueError(f"{MAPPINGS_FILE} must be a JSON object")
    unknown = {t for t in mappings.values() if t not in STORAGE_TYPES}
    if unknown:
        raise ValueError(f"{MAPPINGS_FILE} has unknown storage types: {sorted(unknown)}")

    schema = _read_json(directory / SCHEMA_FILE)
    if not isinstance(schema, dict):
        raise ValueError(f"{SCHEMA_FILE} must be a JSON object")

    logger.info(
        "Field config loaded — dir=%s tracked=%d mapped=%d schema=%d",
        directory,
        len(tracked),
        len(mappings),
        len(schema),
    )
    return FieldConfig(
        tracked=TrackedFieldSet.of(tracked),
        mappings=dict(mappings),
        schema=dict(schema),
    )


def build_indexing_policy(mappings: Mapping[str, str]) -> dict[str, Any]:
    """Build the revisions container indexing policy from the storage-type mapping.

    Only the interval columns and mapped fields are indexed; free-form objects
    are stored but never queried, so they stay out of the index.
    """
    included = [{"path": "/story_id/?"}, {"path": "/entered/?"}, {"path": "/exited/?"}]
    included.extend(
        {"path": f"/fields/{name}/?"}
        for name, storage_type in sorted(mappings.items())
        if storage_type != "object"
    )
    return {
        "indexingMode": "consistent",
        "automatic": True,
        "includedPaths": included,
        "excludedPaths": [{"path": "/*"}],
    }


def _coerce(value: Any, storage_type: str) -> Any:
    if value is None:
        return None
    match storage_type:
        case "string":
            return str(value)
        case "integer":
            return int(value)
        case "float":
            return float(value)
        case "boolean":
            if isinstance(value, str):
                return value.strip().lower() == "true"
            return bool(value)
        case "date":
            if isinstance(value, datetime):
                dt = value
            else:
                dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=UTC)
            return dt.isoformat()
        case _:
            return value


def coerce_fields(values: Mapping[str, Any], mappings: Mapping[str, str]) -> dict[str, Any]:
    """Coerce mapped values to their storage type; unmapped values pass through."""
    coerced: dict[str, Any] = {}
    for name, value in values.items():
        storage_type = mappings.get(name)
        if storage_type is None:
            coerced[name] = value
            continue
        try:
            coerced[name] = _coerce(value, storage_type)
        except (TypeError, ValueError):
            logger.warning(
                "Could not coerce field %s=%r to %s, storing as-is", name, value, storage_type
            )
            coerced[name] = value
    return coerced
