"""
I/O utilities for linksync.

Provides functions for:
- Loading JSON documents (records, field schemas)
- Validating them against the bundled JSON schemas
- Writing records back to JSON
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from .errors import ConfigError, ValidationError
from .records import Record

logger = logging.getLogger(__name__)

SCHEMAS_DIR = Path(__file__).parent / "schemas"
RECORDS_SCHEMA = "records.schema.json"
FIELD_SCHEMA_SCHEMA = "field_schema.schema.json"


@dataclass
class ValidationIssue:
    """Represents a single validation issue."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def get_schema_path(name: str) -> Path:
    """Get the path to one of the bundled JSON schemas."""
    return SCHEMAS_DIR / name


def load_json(file_path: Path) -> Any:
    """
    Load a JSON file.

    Raises:
        ConfigError: If the file is missing, unreadable or not valid JSON.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigError(f"File not found: {file_path}")
    try:
        with open(file_path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {file_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read {file_path}: {e}")


def _format_json_path(path: List[Any]) -> str:
    """Format a JSON path like ``$.records[0].fields``."""
    parts = ["$"]
    for component in path:
        if isinstance(component, int):
            parts.append(f"[{component}]")
        else:
            parts.append(f".{component}")
    return "".join(parts)


def validate_document(data: Any, schema_name: str) -> List[ValidationIssue]:
    """
    Validate ``data`` against a bundled schema.

    Returns:
        Issues sorted by location. Empty if the document is valid.
    """
    with open(get_schema_path(schema_name), encoding="utf-8") as f:
        schema = json.load(f)

    validator = Draft7Validator(schema)
    return [
        ValidationIssue(path=_format_json_path(list(error.absolute_path)), message=error.message)
        for error in sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.path)))
    ]


def _validated(file_path: Path, schema_name: str) -> Any:
    data = load_json(file_path)
    issues = validate_document(data, schema_name)
    if issues:
        for issue in issues:
            logger.error(f"{file_path}: {issue}")
        raise ValidationError(
            f"{file_path} is not valid ({len(issues)} issue(s)); first: {issues[0]}"
        )
    return data


def load_schema_document(file_path: Path) -> Dict[str, Any]:
    """
    Load and validate a field schema document.

    Raises:
        ConfigError: If the file cannot be read.
        ValidationError: If the document does not match the field schema format.
    """
    document = _validated(file_path, FIELD_SCHEMA_SCHEMA)
    logger.debug(f"Loaded field schema from {file_path}")
    return document


def load_records(file_path: Path) -> List[Record]:
    """
    Load and validate a records document.

    Raises:
        ConfigError: If the file cannot be read.
        ValidationError: If the document does not match the records format.
    """
    data = _validated(file_path, RECORDS_SCHEMA)
    records = [Record.from_dict(item) for item in data["records"]]
    logger.info(f"Loaded {len(records)} record(s) from {file_path}")
    return records


def dump_records(records: List[Record], file_path: Path) -> None:
    """Write records as a records document."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump({"records": [r.to_dict() for r in records]}, f, indent=2, ensure_ascii=False)
        f.write("\n")
