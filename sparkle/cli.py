"""Command line interface for sparkle."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .file_metadata import FileMetadataError, build_metadata
from .logger import configure_logging, next_log_path
from .organizer import Organizer
from .reporter import write_report
from .rules import RulesValidationError, load_rules, validate_config


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "handler"):
        parser.print_help()
        return 1
    return args.handler(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sparkle", description="Rule-based file organizer")
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Apply every configured rule")
    run.add_argument("--config", "-c", type=Path, required=True, help="TOML configuration file")
    run.add_argument("--dry-run", action="store_true", help="Log intended actions without touching files")
    verbosity = run.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Log routine matches too")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only log errors")
    run.add_argument(
        "--base-dir",
        type=Path,
        help="Base directory recorded for results (default: directory of the config file)",
    )
    run.add_argument(
        "--log-file",
        type=Path,
        help="Write JSON logs here (default: a new file under ~/.sparkle/logs)",
    )
    run.add_argument("--report-dir", type=Path, help="Write report.json and report.txt here")
    run.set_defaults(handler=_handle_run)

    validate = subparsers.add_parser("validate", help="Validate a configuration file")
    validate.add_argument("config", type=Path)
    validate.set_defaults(handler=_handle_validate)

    inspect = subparsers.add_parser("inspect", help="Show metadata and categories for files")
    inspect.add_argument("paths", nargs="+", type=Path)
    inspect.set_defaults(handler=_handle_inspect)

    return parser


def _handle_run(args: argparse.Namespace) -> int:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = logging.INFO
    log_path = args.log_file or next_log_path("dry-run" if args.dry_run else "run")
    logger = configure_logging(log_path, level=level)

    config_path = args.config.expanduser()
    base_dir = (args.base_dir or config_path.resolve().parent).expanduser().resolve()
    try:
        rules = load_rules(config_path, base_dir=base_dir)
    except RulesValidationError as exc:
        logger.error("Invalid configuration %s: %s", config_path, exc)
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        logger.error("Cannot read configuration %s: %s", config_path, exc)
        print(f"Cannot read configuration: {exc}", file=sys.stderr)
        return 1

    organizer = Organizer(base_dir=base_dir, dry_run=args.dry_run, quiet=args.quiet, logger=logger)
    summary = organizer.run(rules)

    if args.report_dir:
        json_path, txt_path = write_report(summary, args.report_dir)
        print(f"Report written to {json_path} and {txt_path}")
    print(f"Matched {summary.matched_files} file(s), {summary.failed_files} failure(s).")
    print(f"Log: {log_path}")
    return 0


def _handle_validate(args: argparse.Namespace) -> int:
    try:
        validate_config(args.config)
    except RulesValidationError as exc:
        print(f"Validation failed: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Validation failed: {exc}", file=sys.stderr)
        return 1
    print("Configuration is valid.")
    return 0


def _handle_inspect(args: argparse.Namespace) -> int:
    exit_code = 0
    for path in args.paths:
        try:
            metadata = build_metadata(path)
        except FileMetadataError as exc:
            print(f"{path}: {exc}", file=sys.stderr)
            exit_code = 1
            continue
        print(json.dumps({"path": str(path), **metadata.to_dict()}, ensure_ascii=False))
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
