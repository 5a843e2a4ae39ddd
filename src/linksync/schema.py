"""
Field schema for link fields.

Provides the ``FieldSchemaProvider`` protocol consumed by the engine and a
``SchemaRegistry`` built from a plain document::

    {
      "types": {
        "Article": {
          "fields": {"related": {"cardinality": 2, "targets": ["Article"]}},
          "subtypes": {
            "News": {"fields": {"sources": {"languages": ["en", "de"]}}}
          }
        }
      }
    }

Fields declared directly under a type apply to all of its subtypes. A type
without ``subtypes`` has a single subtype named like the type.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .descriptor import UNLIMITED, FieldDescriptor
from .errors import ConfigError
from .records import DEFAULT_LANGUAGE, Record

logger = logging.getLogger(__name__)

# Cardinality spellings that mean "no limit"
UNLIMITED_VALUES = (None, 0, "unlimited", "*", "n")


@runtime_checkable
class FieldSchemaProvider(Protocol):
    """Resolves link fields and reports their language variants."""

    def resolve(self, record_type: str, subtype: str, field_name: str) -> Optional[FieldDescriptor]:
        """Return the field descriptor, or None if the field does not exist."""
        ...

    def available_languages(self, record: Record, field: FieldDescriptor) -> Tuple[str, ...]:
        """Return the languages ``field`` supports on ``record``, in order."""
        ...


def parse_cardinality(value: Any) -> Optional[int]:
    """
    Normalize a cardinality setting.

    Raises:
        ConfigError: If the value is negative or not understood.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid cardinality: {value!r}")
    if isinstance(value, str):
        value = value.strip().lower()
    if value in UNLIMITED_VALUES:
        return UNLIMITED
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid cardinality: {value!r}")
    if number < 0:
        raise ConfigError(f"Invalid cardinality: {value!r}")
    return number or UNLIMITED


class SchemaRegistry:
    """In-memory ``FieldSchemaProvider`` backed by a schema document."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self._fields: Dict[Tuple[str, str, str], FieldDescriptor] = {}
        self._subtypes: Dict[str, List[str]] = {}
        if document:
            self.load(document)

    @classmethod
    def from_file(cls, path: Path) -> "SchemaRegistry":
        """Load and validate a JSON schema document."""
        from .io import load_schema_document

        return cls(load_schema_document(path))

    def load(self, document: Dict[str, Any]) -> None:
        """Add every type, subtype and field of ``document`` to the registry."""
        for record_type, type_spec in document.get("types", {}).items():
            type_spec = type_spec or {}
            common = type_spec.get("fields", {})
            subtypes = type_spec.get("subtypes") or {record_type: {}}
            for subtype, subtype_spec in subtypes.items():
                merged = dict(common)
                merged.update((subtype_spec or {}).get("fields", {}))
                self._subtypes.setdefault(record_type, [])
                if subtype not in self._subtypes[record_type]:
                    self._subtypes[record_type].append(subtype)
                for field_name, field_spec in merged.items():
                    self.add_field(record_type, subtype, field_name, **(field_spec or {}))
        logger.debug(f"Schema loaded: {len(self._fields)} link fields")

    def add_field(
        self,
        record_type: str,
        subtype: str,
        field_name: str,
        cardinality: Any = None,
        languages: Optional[List[str]] = None,
        targets: Optional[List[str]] = None,
    ) -> FieldDescriptor:
        """Register a single link field and return its descriptor."""
        descriptor = FieldDescriptor(
            record_type=record_type,
            subtype=subtype,
            field_name=field_name,
            cardinality=parse_cardinality(cardinality),
            languages=tuple(languages) if languages else (DEFAULT_LANGUAGE,),
            targets=tuple(targets or ()),
        )
        self._fields[(record_type, subtype, field_name)] = descriptor
        if subtype not in self._subtypes.setdefault(record_type, []):
            self._subtypes[record_type].append(subtype)
        return descriptor

    def resolve(self, record_type: str, subtype: str, field_name: str) -> Optional[FieldDescriptor]:
        return self._fields.get((record_type, subtype, field_name))

    def available_languages(self, record: Record, field: FieldDescriptor) -> Tuple[str, ...]:
        if not record.languages:
            return field.languages
        enabled = tuple(lang for lang in field.languages if lang in record.languages)
        # An untranslated field keeps its single default variant
        return enabled or field.languages

    def subtypes(self, record_type: str) -> List[str]:
        return list(self._subtypes.get(record_type, []))

    def fields(self) -> List[FieldDescriptor]:
        return list(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)
