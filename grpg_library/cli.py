"""
grpg_library/cli.py -- Command-line front end.

    grpg-library validate LIBRARY [--json] [--strict] [--config FILE]
    grpg-library schema TYPE
    grpg-library stats LIBRARY

``validate`` exits 0 when the library has no errors, 1 when it has errors
(or warnings, with ``--strict`` or ``warningsAsErrors`` in the settings),
and 2 when the library or settings cannot be loaded at all.
"""

import argparse
import json
import logging
import sys

from grpg_library.config import load_settings
from grpg_library.exceptions import LibraryError
from grpg_library.loader import load_library
from grpg_library.query import LibraryQuery
from grpg_library.schema_registry import RECORD_TYPES, default_registry

logger = logging.getLogger("grpg_library")

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_LOAD_FAILED = 2


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the command-line run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

def cmd_validate(args) -> int:
    settings = load_settings(args.config)
    library = load_library(args.library, settings)
    report = library.validate()

    if args.json:
        payload = report.to_dict()
        payload["meta"] = library.meta
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(report.format_human())
        print(f"\n{len(library.store)} records checked: {report.summary()}")

    if report.has_errors:
        return EXIT_FINDINGS
    if (args.strict or settings.warnings_as_errors) and report.warnings:
        return EXIT_FINDINGS
    return EXIT_OK


def cmd_schema(args) -> int:
    schema = default_registry().json_schema(args.record_type)
    print(json.dumps(schema, indent=2))
    return EXIT_OK


def cmd_stats(args) -> int:
    settings = load_settings(args.config)
    library = load_library(args.library, settings)
    query = LibraryQuery(library.store, library.tags)
    graph = query.graph()

    stats = graph.get_stats()
    stats["records_by_category"] = library.store.counts()
    stats["unreferenced_traits"] = graph.get_orphans("traits")
    stats["unreferenced_abilities"] = graph.get_orphans("abilities")
    stats["meta"] = library.meta
    print(json.dumps(stats, indent=2, ensure_ascii=False))
    return EXIT_OK


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grpg-library",
        description="Validate and inspect a tabletop RPG content library.",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Check a library and report every defect")
    validate.add_argument("library", help="Library JSON file or directory")
    validate.add_argument("--json", action="store_true", help="Print the report as JSON")
    validate.add_argument("--strict", action="store_true",
                          help="Exit non-zero on warnings as well as errors")
    validate.add_argument("--config", default=None, help="Settings JSON file")
    validate.set_defaults(func=cmd_validate)

    schema = sub.add_parser("schema", help="Print the JSON Schema of a record type")
    schema.add_argument("record_type", choices=RECORD_TYPES)
    schema.set_defaults(func=cmd_schema)

    stats = sub.add_parser("stats", help="Print record counts and reference-graph statistics")
    stats.add_argument("library", help="Library JSON file or directory")
    stats.add_argument("--config", default=None, help="Settings JSON file")
    stats.set_defaults(func=cmd_stats)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    try:
        return args.func(args)
    except LibraryError as exc:
        logger.error("%s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_LOAD_FAILED


if __name__ == "__main__":
    sys.exit(main())
