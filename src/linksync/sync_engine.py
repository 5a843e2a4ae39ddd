"""
Reciprocal link synchronization engine for linksync.

Keeps the back-links of one link pair consistent. Given a link descriptor and
a local record, the engine creates, refreshes or removes the reciprocal links
stored on the remote records the local record points at.

Principles:
- Each remote record is loaded, changed, saved and evicted from the read cache
  on its own; there is no transaction spanning several records
- A failure on one target is recorded and the remaining targets are processed
- Duplicate links and full fields are expected outcomes, not errors
- Only a target that is not eligible on both sides stops ``reference()``
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from .descriptor import FieldDescriptor, LinkDescriptor
from .eligibility import EligibilityValidator
from .errors import (
    CardinalityExceededError,
    ConfigError,
    DuplicateLinkError,
    InvalidReferenceError,
    LinkSyncError,
    TypeMismatchError,
)
from .records import LinkEntry, Record, extract_id
from .repository import EntityRepository
from .schema import FieldSchemaProvider

logger = logging.getLogger(__name__)


class AddOutcome(Enum):
    """Result of trying to add one link to one field."""

    ADDED = "added"
    ALREADY_PRESENT = "already_present"
    CAPACITY_EXCEEDED = "capacity_exceeded"


@dataclass
class ReferenceResult:
    """Outcome of ``reference()`` for both directions of a link."""

    target_id: str
    outgoing: AddOutcome
    incoming: AddOutcome

    @property
    def changed(self) -> bool:
        return AddOutcome.ADDED in (self.outgoing, self.incoming)


@dataclass
class DereferenceResult:
    """Number of entries removed by ``dereference()`` on each side."""

    target_id: str
    removed_outgoing: int = 0
    removed_incoming: int = 0


@dataclass
class TargetError:
    """An error raised while processing a single target."""

    target_id: str
    error: LinkSyncError

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "error": type(self.error).__name__,
            "message": self.error.message,
        }


@dataclass
class SyncReport:
    """Per-target results of an insert, update or delete pass."""

    operation: str
    descriptor_key: str
    local_id: str
    linked: List[str] = field(default_factory=list)
    full: List[str] = field(default_factory=list)
    unlinked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[TargetError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def raise_first(self) -> None:
        """Re-raise the first recorded error, if any."""
        if self.errors:
            raise self.errors[0].error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "operation": self.operation,
            "descriptor": self.descriptor_key,
            "local_id": self.local_id,
            "success": self.success,
            "linked": self.linked,
            "full": self.full,
            "unlinked": self.unlinked,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


def link_set_of(record: Record, field: FieldDescriptor) -> Set[str]:
    """
    Collect the target ids of ``field`` across all languages of ``record``.

    Empty ids are dropped; a field missing on the record yields an empty set.
    """
    return {
        entry.target_id
        for _, entry in record.iter_entries(field.field_name)
        if entry.target_id
    }


def is_full(link_set: Set[str], field: FieldDescriptor) -> bool:
    """True if ``field`` has a finite cardinality that ``link_set`` has reached."""
    return not field.unlimited and len(link_set) >= field.cardinality


class SyncEngine:
    """
    Reconciles the reciprocal links of one link pair for one local record.

    The local record is mutated in memory only; persisting it is the caller's
    job. Remote records are loaded, saved and evicted from the repository
    cache by the engine.
    """

    def __init__(
        self,
        descriptor: LinkDescriptor,
        local_record: Record,
        repository: EntityRepository,
        schema: FieldSchemaProvider,
        validator: EligibilityValidator,
    ):
        """
        Raises:
            ConfigError: If ``local_record`` is not of the descriptor's local type.
        """
        self.descriptor = descriptor
        self.local = local_record
        self.repository = repository
        self.schema = schema
        self.validator = validator

        try:
            self.local_id = extract_id(descriptor.local.record_type, local_record)
        except TypeMismatchError as e:
            raise ConfigError(f"Cannot synchronize {descriptor}: {e.message}")

    # ------------------------------------------------------------------
    # Public passes
    # ------------------------------------------------------------------

    def insert(self, collect_errors: bool = False) -> SyncReport:
        """
        Establish the reciprocal link on every record the local record links to.

        Args:
            collect_errors: If True, errors are only recorded in the report.
                Otherwise the first one is raised once all targets are done.
        """
        report = self._new_report("insert")
        self._insert_pass(report)
        return self._finish(report, collect_errors)

    def update(self, previous: Optional[Record] = None, collect_errors: bool = False) -> SyncReport:
        """
        Remove back-links of dropped targets, then run the insert pass.

        ``previous`` is the local record as it was before the change. Without
        it the old link set is taken to be the current one, so no back-link is
        removed.

        Raises:
            TypeMismatchError: If ``previous`` is not of the local record type.
            ConfigError: If ``previous`` is the state of another record.
        """
        local_field = self.descriptor.local
        if previous is not None:
            previous_id = extract_id(local_field.record_type, previous)
            if previous_id != self.local_id:
                raise ConfigError(
                    f"Previous state belongs to '{previous_id}', not '{self.local_id}'"
                )

        report = self._new_report("update")
        current = link_set_of(self.local, local_field)

        if previous is None:
            logger.debug(
                f"[SYNC] No previous state for '{self.local_id}', skipping unlink pass"
            )
            old = current
        else:
            old = link_set_of(previous, local_field)

        for target_id in sorted(old - current):
            self._process(target_id, report, self._unlink_target)

        self._insert_pass(report)
        return self._finish(report, collect_errors)

    def delete(self, collect_errors: bool = False) -> SyncReport:
        """Remove the reciprocal link from every record the local record links to."""
        report = self._new_report("delete")
        for target_id in sorted(link_set_of(self.local, self.descriptor.local)):
            self._process(target_id, report, self._unlink_target)
        return self._finish(report, collect_errors)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def references(self, target: Record) -> bool:
        """True if the local record links to ``target``."""
        return self._target_id(target) in link_set_of(self.local, self.descriptor.local)

    def referenced_by(self, target: Record) -> bool:
        """True if ``target`` links back to the local record."""
        return self.local_id in link_set_of(target, self.descriptor.remote)

    def referenceable(self, target: Record) -> bool:
        """True if a link is allowed in both directions between local and ``target``."""
        target_id = self._target_id(target)
        return self.validator.is_allowed(
            self.descriptor.local, target_id, self.local
        ) and self.validator.is_allowed(self.descriptor.remote, self.local_id, target)

    # ------------------------------------------------------------------
    # Single-target mutations
    # ------------------------------------------------------------------

    def reference(self, target: Record) -> ReferenceResult:
        """
        Link the local record and ``target`` in both directions.

        Each direction is attempted independently: a duplicate or a full
        field on one side does not prevent the other side from being linked.

        Raises:
            InvalidReferenceError: If ``target`` is not referenceable.
        """
        target_id = self._target_id(target)
        if not self.referenceable(target):
            raise InvalidReferenceError(
                self.local_id, target_id, f"not an allowed value for {self.descriptor}"
            )

        result = ReferenceResult(
            target_id=target_id,
            outgoing=self.add_link_to(target),
            incoming=self.add_link_from(target),
        )
        if AddOutcome.CAPACITY_EXCEEDED in (result.outgoing, result.incoming):
            logger.info(
                f"[SYNC] Partial link '{self.local_id}' <-> '{target_id}': "
                f"outgoing={result.outgoing.value}, incoming={result.incoming.value}"
            )
        return result

    def dereference(self, target: Record) -> DereferenceResult:
        """Remove every link between the local record and ``target``, both ways."""
        target_id = self._target_id(target)
        result = DereferenceResult(target_id=target_id)

        if self.references(target):
            result.removed_outgoing = self.local.remove_target(
                self.descriptor.local.field_name, target_id
            )
        if self.referenced_by(target):
            result.removed_incoming = target.remove_target(
                self.descriptor.remote.field_name, self.local_id
            )
        return result

    def add_link_to(self, target: Record, strict: bool = False) -> AddOutcome:
        """
        Add ``target`` to the local field.

        Raises:
            DuplicateLinkError: If strict and the link already exists.
            CardinalityExceededError: If strict and the local field is full.
        """
        return self._add_link(
            self.local, self.descriptor.local, self._target_id(target), strict
        )

    def add_link_from(self, target: Record, strict: bool = False) -> AddOutcome:
        """
        Add the local record to the remote field of ``target``.

        Raises:
            DuplicateLinkError: If strict and the link already exists.
            CardinalityExceededError: If strict and the remote field is full.
        """
        self._target_id(target)
        return self._add_link(target, self.descriptor.remote, self.local_id, strict)

    def link_set_of(self, record: Record, field: FieldDescriptor) -> Set[str]:
        return link_set_of(record, field)

    def is_full(self, link_set: Set[str], field: FieldDescriptor) -> bool:
        return is_full(link_set, field)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _add_link(
        self, record: Record, field: FieldDescriptor, target_id: str, strict: bool
    ) -> AddOutcome:
        current = link_set_of(record, field)

        if target_id in current:
            if strict:
                raise DuplicateLinkError(field.field_name, record.id, target_id)
            return AddOutcome.ALREADY_PRESENT

        if is_full(current, field):
            if strict:
                raise CardinalityExceededError(field.field_name, record.id, field.cardinality)
            return AddOutcome.CAPACITY_EXCEEDED

        for language in self.schema.available_languages(record, field):
            record.append_entry(field.field_name, language, LinkEntry(target_id=target_id))
        logger.debug(f"[SYNC] Linked {record.record_type} '{record.id}'.{field.field_name} -> '{target_id}'")
        return AddOutcome.ADDED

    def _target_id(self, target: Record) -> str:
        return extract_id(self.descriptor.remote.record_type, target)

    def _insert_pass(self, report: SyncReport) -> None:
        for target_id in sorted(link_set_of(self.local, self.descriptor.local)):
            self._process(target_id, report, self._link_target)

    def _link_target(self, target: Record, report: SyncReport) -> None:
        result = self.reference(target)
        if result.incoming is AddOutcome.CAPACITY_EXCEEDED:
            report.full.append(result.target_id)
        else:
            report.linked.append(result.target_id)

    def _unlink_target(self, target: Record, report: SyncReport) -> None:
        self.dereference(target)
        report.unlinked.append(target.id)

    def _process(
        self,
        target_id: str,
        report: SyncReport,
        action: Callable[[Record, SyncReport], None],
    ) -> None:
        """Load one target, apply ``action``, then save it and evict it from the cache."""
        remote = self.descriptor.remote
        try:
            records = self.repository.load(remote.record_type, [target_id])
        except LinkSyncError as e:
            logger.warning(f"[SYNC] Cannot load {remote.record_type} '{target_id}': {e}")
            report.errors.append(TargetError(target_id=target_id, error=e))
            return
        if not records:
            logger.warning(f"[SYNC] {remote.record_type} '{target_id}' not found, skipping")
            report.skipped.append(target_id)
            return

        target = records[0]
        if not remote.matches(target):
            logger.debug(
                f"[SYNC] {remote.record_type} '{target_id}' has subtype "
                f"'{target.subtype}', not '{remote.subtype}', skipping"
            )
            report.skipped.append(target_id)
            self.repository.invalidate_cache(remote.record_type, [target_id])
            return

        try:
            action(target, report)
        except LinkSyncError as e:
            logger.warning(f"[SYNC] {report.operation} failed for '{target_id}': {e}")
            report.errors.append(TargetError(target_id=target_id, error=e))
        finally:
            self._persist(target, report)

    def _persist(self, target: Record, report: SyncReport) -> None:
        try:
            self.repository.save(target)
        except LinkSyncError as e:
            logger.warning(f"[SYNC] Cannot save {target.record_type} '{target.id}': {e}")
            report.errors.append(TargetError(target_id=target.id, error=e))
        finally:
            self.repository.invalidate_cache(target.record_type, [target.id])

    def _new_report(self, operation: str) -> SyncReport:
        logger.info(f"[SYNC] {operation} '{self.local_id}' on {self.descriptor}")
        return SyncReport(
            operation=operation,
            descriptor_key=self.descriptor.key,
            local_id=self.local_id,
        )

    def _finish(self, report: SyncReport, collect_errors: bool) -> SyncReport:
        logger.info(
            f"[SYNC] {report.operation} complete for '{self.local_id}': "
            f"linked={len(report.linked)}, unlinked={len(report.unlinked)}, "
            f"full={len(report.full)}, skipped={len(report.skipped)}, "
            f"errors={len(report.errors)}"
        )
        if not collect_errors:
            report.raise_first()
        return report
