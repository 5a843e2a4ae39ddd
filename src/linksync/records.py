"""
Record model for linksync.

A record holds its links in an explicit mapping::

    field_name -> language_tag -> [LinkEntry, ...]

Every read and write of link entries goes through the accessor methods
below. Non-link attributes are carried in ``data`` and never touched by the
synchronization engine.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import TypeMismatchError

# Language tag used by fields that are not translated
DEFAULT_LANGUAGE = "default"


@dataclass
class LinkEntry:
    """A single stored pointer to another record."""

    target_id: Optional[str]
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {"target_id": self.target_id}
        if self.meta:
            data["meta"] = dict(self.meta)
        return data

    @classmethod
    def from_value(cls, value: Any) -> "LinkEntry":
        """Build an entry from a plain id or a ``{"target_id": ...}`` dict."""
        if isinstance(value, dict):
            target_id = value.get("target_id")
            return cls(
                target_id=None if target_id is None else str(target_id),
                meta=dict(value.get("meta", {})),
            )
        return cls(target_id=None if value is None else str(value))


LinkFields = Dict[str, Dict[str, List[LinkEntry]]]


@dataclass
class Record:
    """
    An entity with link fields keyed by field name and language.

    ``languages`` lists the locale tags enabled on this record; when empty,
    every language a field supports is used.
    """

    record_type: str
    id: str
    subtype: str = ""
    fields: LinkFields = field(default_factory=dict)
    languages: Tuple[str, ...] = ()
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.id = str(self.id)
        if not self.subtype:
            self.subtype = self.record_type
        self.languages = tuple(self.languages)

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.record_type, self.id)

    # ------------------------------------------------------------------
    # Field accessors
    # ------------------------------------------------------------------

    def has_field(self, field_name: str) -> bool:
        return field_name in self.fields

    def get_field(self, field_name: str) -> Dict[str, List[LinkEntry]]:
        """Return the language mapping of a field (empty if absent)."""
        return self.fields.get(field_name, {})

    def get_entries(self, field_name: str, language: str) -> List[LinkEntry]:
        """Return the entries stored for one language of a field."""
        return self.fields.get(field_name, {}).get(language, [])

    def iter_entries(self, field_name: str) -> Iterator[Tuple[str, LinkEntry]]:
        """Yield ``(language, entry)`` for every entry of a field."""
        for language, entries in self.get_field(field_name).items():
            for entry in entries:
                yield language, entry

    def append_entry(self, field_name: str, language: str, entry: LinkEntry) -> None:
        self.fields.setdefault(field_name, {}).setdefault(language, []).append(entry)

    def remove_target(self, field_name: str, target_id: str) -> int:
        """
        Remove every entry pointing at ``target_id`` across all languages.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for language, entries in self.get_field(field_name).items():
            kept = [e for e in entries if e.target_id != target_id]
            removed += len(entries) - len(kept)
            self.fields[field_name][language] = kept
        return removed

    def set_links(
        self,
        field_name: str,
        target_ids: Iterable[Any],
        languages: Iterable[str] = (DEFAULT_LANGUAGE,),
    ) -> None:
        """Replace a field with the same list of targets in each language."""
        ids = [str(t) for t in target_ids]
        self.fields[field_name] = {
            language: [LinkEntry(target_id=t) for t in ids] for language in languages
        }

    # ------------------------------------------------------------------
    # Copies and serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> "Record":
        """Return an independent deep copy, used as the previous state of an update."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.record_type,
            "id": self.id,
            "subtype": self.subtype,
            "languages": list(self.languages),
            "fields": {
                name: {
                    language: [entry.to_dict() for entry in entries]
                    for language, entries in by_lang.items()
                }
                for name, by_lang in self.fields.items()
            },
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        """
        Create a record from a dictionary.

        A field may be given as a language mapping or, for untranslated
        fields, directly as a list of ids.
        """
        fields: LinkFields = {}
        for name, value in data.get("fields", {}).items():
            if isinstance(value, list):
                value = {DEFAULT_LANGUAGE: value}
            fields[name] = {
                language: [LinkEntry.from_value(v) for v in entries or []]
                for language, entries in value.items()
            }
        return cls(
            record_type=data["type"],
            id=str(data["id"]),
            subtype=data.get("subtype", ""),
            fields=fields,
            languages=tuple(data.get("languages", ())),
            data=dict(data.get("data", {})),
        )


def extract_id(record_type: str, record: Record) -> str:
    """
    Return the id of ``record`` after checking its declared type.

    Raises:
        TypeMismatchError: If the record is not of ``record_type``.
    """
    if record.record_type != record_type:
        raise TypeMismatchError(record_type, record.record_type)
    return record.id
