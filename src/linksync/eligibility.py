"""
Eligibility rules for link values.

An ``EligibilityValidator`` decides whether a candidate id is an allowed value
for a link field on a given record.
"""

import logging
from typing import Protocol, Tuple, runtime_checkable

from .descriptor import FieldDescriptor
from .records import Record
from .repository import BaseRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class EligibilityValidator(Protocol):
    """Domain-specific selection rules for link fields."""

    def is_allowed(self, field: FieldDescriptor, candidate_id: str, context_record: Record) -> bool:
        ...


def parse_target(target: str) -> Tuple[str, str]:
    """Split ``"Type"`` or ``"Type.Subtype"`` into ``(type, subtype)``; subtype may be empty."""
    record_type, _, subtype = target.partition(".")
    return record_type, subtype


class AllowAllValidator:
    """Accepts any non-empty candidate id."""

    def is_allowed(self, field: FieldDescriptor, candidate_id: str, context_record: Record) -> bool:
        return bool(candidate_id)


class RuleValidator:
    """
    Validator driven by the ``targets`` declared on each field.

    A field without targets accepts any non-empty id. Otherwise the candidate
    must exist in the repository as one of the target types (and subtype, when
    the target names one). Links from a record to itself are refused unless
    ``allow_self`` is set.
    """

    def __init__(self, repository: BaseRepository, allow_self: bool = False):
        self.repository = repository
        self.allow_self = allow_self

    def is_allowed(self, field: FieldDescriptor, candidate_id: str, context_record: Record) -> bool:
        if not candidate_id:
            return False
        if not field.targets:
            return True

        for target in field.targets:
            record_type, subtype = parse_target(target)
            if (
                not self.allow_self
                and record_type == context_record.record_type
                and candidate_id == context_record.id
            ):
                logger.debug(f"Refusing self link on {field.path} for '{candidate_id}'")
                return False
            candidate = self.repository.get(record_type, candidate_id)
            if candidate is None:
                continue
            if subtype and candidate.subtype != subtype:
                continue
            return True

        logger.debug(f"'{candidate_id}' is not a valid target for {field.path}")
        return False
