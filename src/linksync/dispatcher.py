"""
Lifecycle event dispatch for linksync.

Turns a record lifecycle event into sync engine runs: every enabled link
definition whose local side matches the record is run as is, every definition
whose remote side matches is run reversed. In batch mode errors are collected
and processing continues with the next definition; otherwise the first error
propagates.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .descriptor import LinkDescriptor
from .eligibility import EligibilityValidator
from .errors import LinkSyncError
from .hooks import HookContext, HookManager, HookType
from .records import Record
from .repository import EntityRepository
from .schema import FieldSchemaProvider
from .sync_engine import SyncEngine, SyncReport

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Record lifecycle events handled by the dispatcher."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


HOOK_EVENTS: Dict[HookType, EventKind] = {
    HookType.POST_INSERT: EventKind.INSERT,
    HookType.POST_UPDATE: EventKind.UPDATE,
    HookType.PRE_DELETE: EventKind.DELETE,
}


@dataclass
class LifecycleEvent:
    """A record was inserted, updated or is being deleted."""

    kind: EventKind
    record: Record
    previous: Optional[Record] = None


@dataclass
class LinkDefinition:
    """A configured link pair."""

    key: str
    enabled: bool = True
    label: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkDefinition":
        return cls(
            key=data["key"],
            enabled=bool(data.get("enabled", True)),
            label=data.get("label", ""),
        )


@dataclass
class DispatchError:
    """An error recorded while dispatching one event."""

    key: str
    message: str
    error_type: str
    target_id: Optional[str] = None

    def __str__(self) -> str:
        where = f" (target '{self.target_id}')" if self.target_id else ""
        return f"[{self.key}]{where} {self.error_type}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "message": self.message,
            "error_type": self.error_type,
            "target_id": self.target_id,
        }


@dataclass
class DispatchReport:
    """All sync reports and errors produced by one event."""

    kind: EventKind
    record_type: str
    record_id: str
    reports: List[SyncReport] = field(default_factory=list)
    errors: List[DispatchError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "event": self.kind.value,
            "record": {"type": self.record_type, "id": self.record_id},
            "success": self.success,
            "reports": [r.to_dict() for r in self.reports],
            "errors": [e.to_dict() for e in self.errors],
        }


class Dispatcher:
    """Runs the sync engine for every link definition an event touches."""

    def __init__(
        self,
        definitions: Iterable[LinkDefinition],
        repository: EntityRepository,
        schema: FieldSchemaProvider,
        validator: EligibilityValidator,
    ):
        self.definitions = list(definitions)
        self.repository = repository
        self.schema = schema
        self.validator = validator

    def descriptors(self, strict: bool = False) -> Tuple[List[LinkDescriptor], List[DispatchError]]:
        """
        Parse every enabled definition.

        Args:
            strict: Raise the first parse error instead of collecting it.

        Returns:
            The parsed descriptors and the errors of the definitions that failed.
        """
        parsed: List[LinkDescriptor] = []
        errors: List[DispatchError] = []
        for definition in self.definitions:
            if not definition.enabled:
                continue
            try:
                parsed.append(LinkDescriptor.parse(definition.key, self.schema))
            except LinkSyncError as e:
                if strict:
                    raise
                logger.warning(f"Skipping link definition '{definition.key}': {e}")
                errors.append(_dispatch_error(definition.key, e))
        return parsed, errors

    def applicable(self, record: Record, strict: bool = False) -> List[LinkDescriptor]:
        """Descriptors to run for ``record``, oriented with the record on the local side."""
        descriptors, _ = self.descriptors(strict=strict)
        return self._orient(descriptors, record)

    def dispatch(self, event: LifecycleEvent, batch: bool = True) -> DispatchReport:
        """
        Run the sync operation matching ``event`` for every applicable descriptor.

        Args:
            event: The lifecycle event.
            batch: Collect errors and keep going. When False the first error
                is raised once the failing descriptor has processed all its targets.
        """
        record = event.record
        report = DispatchReport(
            kind=event.kind, record_type=record.record_type, record_id=record.id
        )

        descriptors, parse_errors = self.descriptors(strict=not batch)
        report.errors.extend(parse_errors)

        for descriptor in self._orient(descriptors, record):
            try:
                engine = SyncEngine(
                    descriptor, record, self.repository, self.schema, self.validator
                )
                sync_report = self._run(engine, event, collect_errors=batch)
            except LinkSyncError as e:
                if not batch:
                    raise
                logger.warning(f"Link sync failed for {descriptor}: {e}")
                report.errors.append(_dispatch_error(descriptor.key, e))
                continue

            report.reports.append(sync_report)
            for target_error in sync_report.errors:
                report.errors.append(
                    _dispatch_error(descriptor.key, target_error.error, target_error.target_id)
                )

        logger.info(
            f"Dispatched {event.kind.value} of {record.record_type} '{record.id}': "
            f"{len(report.reports)} link pair(s), {len(report.errors)} error(s)"
        )
        return report

    def register(self, hooks: HookManager, priority: int = 100) -> None:
        """Subscribe the dispatcher to the lifecycle hooks of ``hooks``."""
        for hook_type, kind in HOOK_EVENTS.items():
            hooks.register(
                hook_type,
                self._hook_callback(kind),
                name=f"linksync_{kind.value}",
                priority=priority,
            )

    def _hook_callback(self, kind: EventKind):
        def callback(context: HookContext) -> None:
            if context.record is None:
                context.add_warning(f"linksync: {kind.value} hook without a record")
                return
            report = self.dispatch(
                LifecycleEvent(kind=kind, record=context.record, previous=context.previous)
            )
            context.results.append(report)
            for error in report.errors:
                context.add_error(str(error))

        return callback

    @staticmethod
    def _orient(descriptors: List[LinkDescriptor], record: Record) -> List[LinkDescriptor]:
        oriented: List[LinkDescriptor] = []
        for descriptor in descriptors:
            candidates = []
            if descriptor.matches_local(record):
                candidates.append(descriptor)
            if descriptor.matches_remote(record):
                candidates.append(descriptor.reversed())
            for candidate in candidates:
                # Self-referencing pairs reverse onto themselves
                if candidate not in oriented:
                    oriented.append(candidate)
        return oriented

    @staticmethod
    def _run(engine: SyncEngine, event: LifecycleEvent, collect_errors: bool) -> SyncReport:
        if event.kind is EventKind.INSERT:
            return engine.insert(collect_errors=collect_errors)
        if event.kind is EventKind.UPDATE:
            return engine.update(previous=event.previous, collect_errors=collect_errors)
        return engine.delete(collect_errors=collect_errors)


def _dispatch_error(key: str, error: LinkSyncError, target_id: Optional[str] = None) -> DispatchError:
    return DispatchError(
        key=key,
        message=error.message,
        error_type=type(error).__name__,
        target_id=target_id,
    )
