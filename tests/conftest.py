"""Test configuration and fixtures for linksync tests."""

import sys
from pathlib import Path
from typing import Iterable

import pytest

# Add src to path for development testing
_src_dir = Path(__file__).parent.parent / "src"
if _src_dir.exists():
    sys.path.insert(0, str(_src_dir))

from linksync.descriptor import LinkDescriptor  # noqa: E402
from linksync.eligibility import RuleValidator  # noqa: E402
from linksync.records import Record  # noqa: E402
from linksync.repository import InMemoryRepository, SQLiteRepository, init_db  # noqa: E402
from linksync.schema import SchemaRegistry  # noqa: E402


# ==============================================================================
# Schema and keys
# ==============================================================================

SCHEMA_DOCUMENT = {
    "types": {
        "Article": {
            "fields": {
                "related": {"cardinality": 2, "targets": ["Article"]},
            },
        },
        "Book": {
            "subtypes": {
                "Novel": {
                    "fields": {
                        "authors": {
                            "cardinality": "unlimited",
                            "languages": ["en", "de"],
                            "targets": ["Author"],
                        },
                    },
                },
                "Manual": {},
            },
        },
        "Author": {
            "fields": {
                "books": {"cardinality": 2, "targets": ["Book.Novel"]},
            },
        },
    }
}

ARTICLE_KEY = "Article,Article,related,Article,Article,related"
AUTHOR_KEY = "Author,Author,books,Book,Novel,authors"


def make_article(record_id: str, related: Iterable[str] = ()) -> Record:
    record = Record(record_type="Article", id=record_id)
    record.set_links("related", related)
    return record


def make_author(record_id: str, books: Iterable[str] = ()) -> Record:
    record = Record(record_type="Author", id=record_id)
    record.set_links("books", books)
    return record


def make_book(record_id: str, subtype: str = "Novel", authors: Iterable[str] = (), languages=()) -> Record:
    record = Record(record_type="Book", id=record_id, subtype=subtype, languages=tuple(languages))
    if authors:
        record.set_links("authors", authors, languages=("en", "de"))
    return record


# ==============================================================================
# Shared pytest fixtures
# ==============================================================================

@pytest.fixture
def schema_document() -> dict:
    """Return the field schema document used across tests."""
    return SCHEMA_DOCUMENT


@pytest.fixture
def schema() -> SchemaRegistry:
    """Return a schema registry with Article, Book and Author link fields."""
    return SchemaRegistry(SCHEMA_DOCUMENT)


@pytest.fixture
def article_descriptor(schema) -> LinkDescriptor:
    return LinkDescriptor.parse(ARTICLE_KEY, schema)


@pytest.fixture
def author_descriptor(schema) -> LinkDescriptor:
    return LinkDescriptor.parse(AUTHOR_KEY, schema)


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    """Return an empty repository of each implementation."""
    if request.param == "memory":
        return InMemoryRepository()
    return SQLiteRepository(init_db(tmp_path / "records.db"))


@pytest.fixture
def memory_repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def validator(repository) -> RuleValidator:
    return RuleValidator(repository)
