"""
linksync - reciprocal link synchronization for record stores.

This package keeps back-links consistent between linked records:
- Link-pair descriptors parsed from six-part keys
- A sync engine that creates, refreshes and removes reciprocal links
- A dispatcher that runs the engine on record lifecycle events
- In-memory and SQLite record repositories
"""

__version__ = "1.0.0"

from .descriptor import FieldDescriptor, LinkDescriptor, build_key
from .dispatcher import Dispatcher, EventKind, LifecycleEvent, LinkDefinition
from .eligibility import AllowAllValidator, RuleValidator
from .errors import (
    CardinalityExceededError,
    ConfigError,
    DuplicateLinkError,
    InvalidReferenceError,
    LinkSyncError,
    StorageError,
    TypeMismatchError,
)
from .records import LinkEntry, Record, extract_id
from .repository import InMemoryRepository, SQLiteRepository, init_db
from .schema import SchemaRegistry
from .sync_engine import AddOutcome, SyncEngine, SyncReport, is_full, link_set_of

__all__ = [
    # Descriptors
    "FieldDescriptor",
    "LinkDescriptor",
    "build_key",
    # Engine
    "SyncEngine",
    "SyncReport",
    "AddOutcome",
    "link_set_of",
    "is_full",
    # Dispatch
    "Dispatcher",
    "EventKind",
    "LifecycleEvent",
    "LinkDefinition",
    # Collaborators
    "SchemaRegistry",
    "AllowAllValidator",
    "RuleValidator",
    "InMemoryRepository",
    "SQLiteRepository",
    "init_db",
    # Records
    "Record",
    "LinkEntry",
    "extract_id",
    # Errors
    "LinkSyncError",
    "ConfigError",
    "TypeMismatchError",
    "InvalidReferenceError",
    "DuplicateLinkError",
    "CardinalityExceededError",
    "StorageError",
    # Version
    "__version__",
]
