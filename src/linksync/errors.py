"""
Custom error types and exit codes for linksync.
"""

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_TYPE_MISMATCH = 3
EXIT_INVALID_REFERENCE = 4
EXIT_LINK_ERROR = 5
EXIT_VALIDATION_ERROR = 6
EXIT_STORAGE_ERROR = 7


class LinkSyncError(Exception):
    """Base exception for linksync errors."""

    exit_code = EXIT_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(LinkSyncError):
    """Malformed link keys, unresolved fields, bad config or schema files."""

    exit_code = EXIT_CONFIG_ERROR


class TypeMismatchError(LinkSyncError):
    """A record is not of the declared record type."""

    exit_code = EXIT_TYPE_MISMATCH

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected record of type '{expected}', got '{actual}'")


class InvalidReferenceError(LinkSyncError):
    """A link was requested to a target that is not eligible on both sides."""

    exit_code = EXIT_INVALID_REFERENCE

    def __init__(self, local_id: str, target_id: str, reason: str = ""):
        self.local_id = local_id
        self.target_id = target_id
        message = f"Record '{local_id}' cannot reference '{target_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LinkError(LinkSyncError):
    """Base class for recoverable link insertion failures."""

    exit_code = EXIT_LINK_ERROR


class DuplicateLinkError(LinkError):
    """The link already exists on the field."""

    def __init__(self, field_name: str, record_id: str, target_id: str):
        self.field_name = field_name
        self.record_id = record_id
        self.target_id = target_id
        super().__init__(
            f"'{record_id}'.{field_name} already links to '{target_id}'"
        )


class CardinalityExceededError(LinkError):
    """The field already holds as many links as its cardinality allows."""

    def __init__(self, field_name: str, record_id: str, cardinality: int):
        self.field_name = field_name
        self.record_id = record_id
        self.cardinality = cardinality
        super().__init__(
            f"'{record_id}'.{field_name} is full (cardinality {cardinality})"
        )


class ValidationError(LinkSyncError):
    """Input document failed schema validation."""

    exit_code = EXIT_VALIDATION_ERROR


class StorageError(LinkSyncError):
    """A stored record could not be read or written."""

    exit_code = EXIT_STORAGE_ERROR
