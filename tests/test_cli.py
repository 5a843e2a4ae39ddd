"""
Tests for linksync.cli module.

Tests the command-line interface.
"""

import json

import pytest

from conftest import AUTHOR_KEY, SCHEMA_DOCUMENT
from linksync.cli import create_parser, main
from linksync.config import ENV_DB_PATH, ENV_SCHEMA_PATH
from linksync.repository import SQLiteRepository

CONFIG_TEMPLATE = """
[paths]
db = "records.db"
schema = "schema.json"

[[links]]
key = "{key}"
"""

RECORDS = {"records": [
    {"type": "Author", "id": "a1", "data": {"name": "Goethe"}},
    {"type": "Author", "id": "a2"},
    {
        "type": "Book",
        "id": "b1",
        "subtype": "Novel",
        "fields": {"authors": {"en": ["a1", "a2"], "de": ["a1", "a2"]}},
    },
]}


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run every CLI test in an empty directory without path overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(ENV_DB_PATH, raising=False)
    monkeypatch.delenv(ENV_SCHEMA_PATH, raising=False)


@pytest.fixture
def project(tmp_path):
    """Write a schema, a config file and a records file; return the config path."""
    (tmp_path / "schema.json").write_text(json.dumps(SCHEMA_DOCUMENT), encoding="utf-8")
    (tmp_path / "records.json").write_text(json.dumps(RECORDS), encoding="utf-8")
    config_file = tmp_path / "linksync.toml"
    config_file.write_text(CONFIG_TEMPLATE.format(key=AUTHOR_KEY), encoding="utf-8")
    return config_file


def books_of(db_path, author_id):
    record = SQLiteRepository(db_path).get("Author", author_id)
    return [e.target_id for e in record.get_entries("books", "default")]


class TestCLI:
    """Tests for the CLI."""

    def test_help_flag(self, capsys):
        """Test that --help flag works."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])

        assert exc_info.value.code == 0
        captured = capsys.readouterr()
        assert "linksync" in captured.out

    def test_version_flag(self, capsys):
        """Test that --version flag works."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "linksync 1.0.0" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "commands" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "missing.toml"), "check"]) == 2
        assert "Config error" in capsys.readouterr().out


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_parser_apply_command(self):
        args = create_parser().parse_args(["apply", "records.json", "--db", "x.db", "--schema", "s.json"])

        assert args.command == "apply"
        assert args.file == "records.json"
        assert args.db == "x.db"
        assert args.schema == "s.json"

    def test_parser_global_flags(self):
        args = create_parser().parse_args(["-v", "--debug", "-c", "cfg.toml", "check"])

        assert args.verbose is True
        assert args.debug is True
        assert args.config_file == "cfg.toml"

    def test_parser_db_init_command(self):
        args = create_parser().parse_args(["db", "init", "--force"])

        assert args.db_command == "init"
        assert args.force is True
        assert args.func.__name__ == "db_init_command"

    def test_parser_key_reverse(self):
        args = create_parser().parse_args(["key", AUTHOR_KEY, "--reverse"])
        assert args.key == AUTHOR_KEY
        assert args.reverse is True


class TestKeyCommand:
    """Tests for the key command."""

    def test_key(self, project, capsys):
        assert main(["-c", str(project), "key", AUTHOR_KEY]) == 0

        out = capsys.readouterr().out
        assert "local: Author.Author.books cardinality=2" in out
        assert "remote: Book.Novel.authors cardinality=unlimited" in out

    def test_key_reverse(self, project, capsys):
        assert main(["-c", str(project), "key", AUTHOR_KEY, "--reverse"]) == 0
        assert "key: Book,Novel,authors,Author,Author,books" in capsys.readouterr().out

    def test_bad_key(self, project, capsys):
        assert main(["-c", str(project), "key", "Author,Author,books"]) == 2
        assert "expected 6 parts" in capsys.readouterr().out

    def test_no_schema_configured(self, capsys):
        assert main(["key", AUTHOR_KEY]) == 2
        assert "No field schema configured" in capsys.readouterr().out

    def test_schema_option(self, tmp_path, capsys):
        schema_file = tmp_path / "other.json"
        schema_file.write_text(json.dumps(SCHEMA_DOCUMENT), encoding="utf-8")

        assert main(["key", AUTHOR_KEY, "--schema", str(schema_file)]) == 0


class TestCheckCommand:
    """Tests for the check command."""

    def test_all_resolve(self, project, capsys):
        assert main(["-c", str(project), "check"]) == 0
        assert "✅" in capsys.readouterr().out

    def test_unresolved_definition(self, project, capsys):
        project.write_text(
            CONFIG_TEMPLATE.format(key="Author,Author,missing,Book,Novel,authors"), encoding="utf-8"
        )

        assert main(["-c", str(project), "check"]) == 2
        assert "❌" in capsys.readouterr().out


class TestDBCommands:
    """Tests for db CLI commands."""

    def test_db_init(self, project, tmp_path):
        assert main(["-c", str(project), "db", "init"]) == 0
        assert (tmp_path / "records.db").exists()

    def test_db_init_explicit_path(self, tmp_path):
        assert main(["db", "init", "--db", str(tmp_path / "custom.db")]) == 0
        assert (tmp_path / "custom.db").exists()

    def test_db_import_and_show(self, project, capsys):
        main(["-c", str(project), "db", "init"])
        assert main(["-c", str(project), "db", "import", "records.json"]) == 0
        capsys.readouterr()

        assert main(["-c", str(project), "db", "show", "Author", "a1"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["data"] == {"name": "Goethe"}
        assert shown["fields"] == {}

    def test_db_show_missing(self, project):
        main(["-c", str(project), "db", "init"])
        assert main(["-c", str(project), "db", "show", "Author", "zz"]) == 1

    def test_db_missing_database(self, project, capsys):
        assert main(["-c", str(project), "db", "show", "Author", "a1"]) == 2
        assert "Database not found" in capsys.readouterr().out

    def test_db_import_invalid_document(self, project, tmp_path):
        main(["-c", str(project), "db", "init"])
        (tmp_path / "bad.json").write_text(json.dumps({"records": [{"id": 1}]}), encoding="utf-8")

        assert main(["-c", str(project), "db", "import", "bad.json"]) == 6


class TestApplyAndDelete:
    """End-to-end tests for the apply and delete commands."""

    def test_apply_links_authors(self, project, tmp_path):
        main(["-c", str(project), "db", "init"])

        assert main(["-c", str(project), "apply", "records.json"]) == 0

        assert books_of(tmp_path / "records.db", "a1") == ["b1"]
        assert books_of(tmp_path / "records.db", "a2") == ["b1"]

    def test_apply_is_idempotent(self, project, tmp_path):
        main(["-c", str(project), "db", "init"])
        main(["-c", str(project), "apply", "records.json"])

        assert main(["-c", str(project), "apply", "records.json"]) == 0
        assert books_of(tmp_path / "records.db", "a1") == ["b1"]

    def test_apply_update_unlinks_dropped_author(self, project, tmp_path):
        main(["-c", str(project), "db", "init"])
        main(["-c", str(project), "apply", "records.json"])
        (tmp_path / "update.json").write_text(json.dumps({"records": [{
            "type": "Book",
            "id": "b1",
            "subtype": "Novel",
            "fields": {"authors": {"en": ["a1"], "de": ["a1"]}},
        }]}), encoding="utf-8")

        assert main(["-c", str(project), "apply", "update.json"]) == 0

        assert books_of(tmp_path / "records.db", "a1") == ["b1"]
        assert books_of(tmp_path / "records.db", "a2") == []

    def test_delete_removes_back_links(self, project, tmp_path, capsys):
        main(["-c", str(project), "db", "init"])
        main(["-c", str(project), "apply", "records.json"])

        assert main(["-c", str(project), "delete", "Book", "b1"]) == 0

        repository = SQLiteRepository(tmp_path / "records.db")
        assert repository.get("Book", "b1") is None
        assert books_of(tmp_path / "records.db", "a1") == []
        assert "delete Book 'b1'" in capsys.readouterr().out

    def test_delete_missing_record(self, project):
        main(["-c", str(project), "db", "init"])
        assert main(["-c", str(project), "delete", "Book", "nope"]) == 1
