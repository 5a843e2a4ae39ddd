"""
Command-line interface for linksync.

Provides the `linksync` command with the following subcommands:
- key: Parse a link-pair key against the field schema
- check: Validate every configured link definition
- db: SQLite record store operations (init, import, show)
- apply: Store records and synchronize their reciprocal links
- delete: Remove a record and its reciprocal links
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from . import __version__
from .config import Config, load_config
from .descriptor import LinkDescriptor
from .dispatcher import Dispatcher, DispatchReport, EventKind, LifecycleEvent
from .eligibility import RuleValidator
from .errors import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SUCCESS,
    ConfigError,
    LinkSyncError,
)
from .io import load_records
from .logging_config import level_from_name, setup_logging
from .repository import SQLiteRepository, init_db
from .schema import SchemaRegistry

logger = logging.getLogger(__name__)


def _config(args: argparse.Namespace) -> Config:
    config = getattr(args, "_config", None)
    return config if config is not None else Config()


def _load_schema(args: argparse.Namespace) -> SchemaRegistry:
    schema_path = _config(args).schema_path(getattr(args, "schema", None))
    if schema_path is None:
        raise ConfigError("No field schema configured (use --schema or [paths] schema)")
    return SchemaRegistry.from_file(schema_path)


def _open_repository(args: argparse.Namespace) -> SQLiteRepository:
    return SQLiteRepository(_config(args).db_path(getattr(args, "db", None)))


def _build_dispatcher(args: argparse.Namespace) -> Tuple[Dispatcher, SQLiteRepository]:
    config = _config(args)
    schema = _load_schema(args)
    repository = _open_repository(args)
    validator = RuleValidator(repository, allow_self=config.sync.allow_self_links)
    return Dispatcher(config.links, repository, schema, validator), repository


def _print_dispatch(report: DispatchReport) -> None:
    status = "✅" if report.success else "⚠️"
    print(f"{status} {report.kind.value} {report.record_type} '{report.record_id}'")
    for sync_report in report.reports:
        print(
            f"   {sync_report.descriptor_key}: linked={sync_report.linked} "
            f"unlinked={sync_report.unlinked} full={sync_report.full} "
            f"skipped={sync_report.skipped}"
        )
    for error in report.errors:
        print(f"   ❌ {error}")


def key_command(args: argparse.Namespace) -> int:
    """
    Execute the key command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code.
    """
    schema = _load_schema(args)
    descriptor = LinkDescriptor.parse(args.key, schema)
    if args.reverse:
        descriptor = descriptor.reversed()

    for side, field in (("local", descriptor.local), ("remote", descriptor.remote)):
        cardinality = "unlimited" if field.unlimited else field.cardinality
        print(
            f"{side:>6}: {field.path} cardinality={cardinality} "
            f"languages={list(field.languages)}"
        )
    print(f"   key: {descriptor.key}")
    return EXIT_SUCCESS


def check_command(args: argparse.Namespace) -> int:
    """Execute the check command."""
    config = _config(args)
    schema = _load_schema(args)

    if not config.links:
        print("No link definitions configured")
        return EXIT_SUCCESS

    failures = 0
    for definition in config.links:
        state = "" if definition.enabled else " (disabled)"
        try:
            descriptor = LinkDescriptor.parse(definition.key, schema)
        except ConfigError as e:
            failures += 1
            print(f"❌ {definition.key}{state}: {e}")
            continue
        print(f"✅ {definition.key}{state}: {descriptor}")

    if failures:
        logger.error(f"{failures} link definition(s) do not resolve")
        return EXIT_CONFIG_ERROR
    return EXIT_SUCCESS


def db_init_command(args: argparse.Namespace) -> int:
    """Execute the db init command."""
    db_path = init_db(_config(args).db_path(args.db), force=args.force)
    print(f"✅ Database initialized: {db_path}")
    return EXIT_SUCCESS


def db_import_command(args: argparse.Namespace) -> int:
    """Execute the db import command. Records are stored without link synchronization."""
    repository = _open_repository(args)
    records = load_records(Path(args.file))
    for record in records:
        repository.save(record)
    print(f"📥 Imported {len(records)} record(s) into {repository.db_path}")
    return EXIT_SUCCESS


def db_show_command(args: argparse.Namespace) -> int:
    """Execute the db show command."""
    repository = _open_repository(args)
    record = repository.get(args.type, args.id)
    if record is None:
        print(f"❌ {args.type} '{args.id}' not found")
        return EXIT_ERROR
    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
    return EXIT_SUCCESS


def apply_command(args: argparse.Namespace) -> int:
    """
    Execute the apply command.

    Each record in the file is stored, then an insert event (new record) or
    an update event (existing record, stored copy as previous state) is
    dispatched.
    """
    dispatcher, repository = _build_dispatcher(args)
    records = load_records(Path(args.file))

    exit_code = EXIT_SUCCESS
    for record in records:
        previous = repository.get(record.record_type, record.id)
        repository.save(record)
        repository.invalidate_cache(record.record_type, [record.id])

        kind = EventKind.INSERT if previous is None else EventKind.UPDATE
        report = dispatcher.dispatch(LifecycleEvent(kind=kind, record=record, previous=previous))

        # The engine may have changed the local record in memory
        repository.save(record)
        repository.invalidate_cache(record.record_type, [record.id])

        _print_dispatch(report)
        if not report.success:
            exit_code = EXIT_ERROR
    return exit_code


def delete_command(args: argparse.Namespace) -> int:
    """Execute the delete command."""
    dispatcher, repository = _build_dispatcher(args)
    record = repository.get(args.type, args.id)
    if record is None:
        print(f"❌ {args.type} '{args.id}' not found")
        return EXIT_ERROR

    report = dispatcher.dispatch(LifecycleEvent(kind=EventKind.DELETE, record=record))
    repository.delete(record.record_type, record.id)
    _print_dispatch(report)
    return EXIT_SUCCESS if report.success else EXIT_ERROR


def _add_store_options(parser: argparse.ArgumentParser, schema: bool = False) -> None:
    parser.add_argument(
        "--db",
        type=str,
        help="Path to the SQLite database (default: from config or linksync.db)"
    )
    if schema:
        parser.add_argument(
            "--schema",
            type=str,
            help="Path to the field schema JSON (default: from config)"
        )


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="linksync",
        description="Keep reciprocal links between records consistent.",
        epilog="Example: linksync apply records.json"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"linksync {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output (INFO level logging)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output (DEBUG level logging)"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        dest="config_file",
        help="Path to config file (default: linksync.toml)"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands"
    )

    # Key command
    key_parser = subparsers.add_parser(
        "key",
        help="Parse a link-pair key",
        description="Resolve a six-part link key against the field schema."
    )
    key_parser.add_argument("key", help="localType,localSubtype,localField,remoteType,remoteSubtype,remoteField")
    key_parser.add_argument(
        "--reverse",
        action="store_true",
        help="Show the reversed descriptor"
    )
    key_parser.add_argument("--schema", type=str, help="Path to the field schema JSON")
    key_parser.set_defaults(func=key_command)

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        help="Validate configured link definitions",
        description="Parse every [[links]] definition and report those that do not resolve."
    )
    check_parser.add_argument("--schema", type=str, help="Path to the field schema JSON")
    check_parser.set_defaults(func=check_command)

    # DB command group
    db_parser = subparsers.add_parser(
        "db",
        help="Record store operations",
        description="Initialize and inspect the SQLite record store."
    )
    db_subparsers = db_parser.add_subparsers(
        dest="db_command",
        title="db commands"
    )

    db_init_parser = db_subparsers.add_parser("init", help="Create the database")
    _add_store_options(db_init_parser)
    db_init_parser.add_argument(
        "--force",
        action="store_true",
        help="Recreate the database if it exists"
    )
    db_init_parser.set_defaults(func=db_init_command)

    db_import_parser = db_subparsers.add_parser(
        "import",
        help="Import records without synchronizing links"
    )
    db_import_parser.add_argument("file", help="Records JSON file")
    _add_store_options(db_import_parser)
    db_import_parser.set_defaults(func=db_import_command)

    db_show_parser = db_subparsers.add_parser("show", help="Print a stored record")
    db_show_parser.add_argument("type", help="Record type")
    db_show_parser.add_argument("id", help="Record id")
    _add_store_options(db_show_parser)
    db_show_parser.set_defaults(func=db_show_command)

    db_parser.set_defaults(func=lambda args: db_parser.print_help() or EXIT_SUCCESS)

    # Apply command
    apply_parser = subparsers.add_parser(
        "apply",
        help="Store records and synchronize reciprocal links",
        description="Insert or update each record of a JSON file and sync its back-links."
    )
    apply_parser.add_argument("file", help="Records JSON file")
    _add_store_options(apply_parser, schema=True)
    apply_parser.set_defaults(func=apply_command)

    # Delete command
    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a record and remove its reciprocal links"
    )
    delete_parser.add_argument("type", help="Record type")
    delete_parser.add_argument("id", help="Record id")
    _add_store_options(delete_parser, schema=True)
    delete_parser.set_defaults(func=delete_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, debug=args.debug, quiet=args.quiet)

    config_path = Path(args.config_file) if args.config_file else None
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error(f"Config error: {e}")
        print(f"❌ Config error: {e}")
        return EXIT_CONFIG_ERROR
    args._config = config

    # Reconfigure with the config file's level and log file when no flag overrides it
    if config.config_path is not None:
        setup_logging(
            verbose=args.verbose,
            debug=args.debug,
            quiet=args.quiet,
            log_file=config.log_file_path(),
            default_level=level_from_name(config.logging.level),
        )

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_SUCCESS

    try:
        return args.func(args)
    except LinkSyncError as e:
        logger.error(str(e))
        print(f"❌ Error: {e}")
        return e.exit_code


def main_cli() -> None:
    """
    CLI entry point for setuptools console_scripts.

    Calls main() and exits with the returned code.
    """
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
