"""
Link-pair descriptors.

A link pair is defined by a six-token key::

    localType,localSubtype,localField,remoteType,remoteSubtype,remoteField

A link stored in ``localField`` on a local record must be mirrored by a link
stored in ``remoteField`` on the target record. Parsing resolves both sides
against a schema provider so each side carries its cardinality and language
list.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from .errors import ConfigError
from .records import DEFAULT_LANGUAGE, Record

if TYPE_CHECKING:
    from .schema import FieldSchemaProvider

logger = logging.getLogger(__name__)

KEY_DELIMITER = ","
KEY_PARTS = 6

# Cardinality value meaning "no limit"
UNLIMITED: Optional[int] = None


@dataclass(frozen=True)
class FieldDescriptor:
    """A link field on one record type/subtype, as resolved from the schema."""

    record_type: str
    subtype: str
    field_name: str
    cardinality: Optional[int] = UNLIMITED
    languages: Tuple[str, ...] = (DEFAULT_LANGUAGE,)
    targets: Tuple[str, ...] = ()

    @property
    def unlimited(self) -> bool:
        return self.cardinality is UNLIMITED

    @property
    def path(self) -> str:
        """Short ``Type.Subtype.field`` label for log messages."""
        return f"{self.record_type}.{self.subtype}.{self.field_name}"

    def matches(self, record: Record) -> bool:
        """True if ``record`` is of this field's type and subtype."""
        return record.record_type == self.record_type and record.subtype == self.subtype


def build_key(
    local_type: str,
    local_subtype: str,
    local_field: str,
    remote_type: str,
    remote_subtype: str,
    remote_field: str,
) -> str:
    """Join the six tokens of a link-pair key."""
    return KEY_DELIMITER.join(
        [local_type, local_subtype, local_field, remote_type, remote_subtype, remote_field]
    )


def split_key(key: str) -> Tuple[str, ...]:
    """
    Split a link-pair key into its six tokens.

    Raises:
        ConfigError: If the key does not have exactly six non-empty tokens.
    """
    parts = tuple(part.strip() for part in (key or "").split(KEY_DELIMITER))
    if len(parts) != KEY_PARTS:
        raise ConfigError(
            f"Invalid link key '{key}': expected {KEY_PARTS} parts separated "
            f"by '{KEY_DELIMITER}', got {len(parts)}"
        )
    if not all(parts):
        raise ConfigError(f"Invalid link key '{key}': empty token")
    return parts


@dataclass(frozen=True)
class LinkDescriptor:
    """One directional field-to-field correspondence."""

    local: FieldDescriptor
    remote: FieldDescriptor

    @classmethod
    def parse(cls, key: str, schema: "FieldSchemaProvider") -> "LinkDescriptor":
        """
        Parse a six-token key and resolve both sides against ``schema``.

        Raises:
            ConfigError: If the key is malformed or a side does not resolve.
        """
        parts = split_key(key)
        local = _resolve_side(schema, "local", parts[0:3], key)
        remote = _resolve_side(schema, "remote", parts[3:6], key)
        descriptor = cls(local=local, remote=remote)
        logger.debug(f"Parsed link key '{key}' -> {descriptor}")
        return descriptor

    def reversed(self) -> "LinkDescriptor":
        """Return the same correspondence seen from the remote side."""
        return LinkDescriptor(local=self.remote, remote=self.local)

    @property
    def key(self) -> str:
        return build_key(
            self.local.record_type,
            self.local.subtype,
            self.local.field_name,
            self.remote.record_type,
            self.remote.subtype,
            self.remote.field_name,
        )

    @property
    def is_symmetric(self) -> bool:
        """True when both sides are the same field (self-referencing pair)."""
        return self.local == self.remote

    def matches_local(self, record: Record) -> bool:
        return self.local.matches(record)

    def matches_remote(self, record: Record) -> bool:
        return self.remote.matches(record)

    def __str__(self) -> str:
        return f"{self.local.path} <-> {self.remote.path}"


def _resolve_side(
    schema: "FieldSchemaProvider", side: str, parts: Tuple[str, ...], key: str
) -> FieldDescriptor:
    record_type, subtype, field_name = parts
    resolved = schema.resolve(record_type, subtype, field_name)
    if resolved is None:
        raise ConfigError(
            f"Invalid link key '{key}': {side} field "
            f"{record_type}.{subtype}.{field_name} does not exist"
        )
    return resolved
