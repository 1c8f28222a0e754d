# src/pubrules/app.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from extractor.model import DocumentSource
from pubrules.controllers.validation_controller import Validator
from pubrules.core.errors import PubrulesError
from pubrules.core.loop_runner import ensure_background_loop
from pubrules.core.managers.config_manager import config_manager
from pubrules.core.managers.progress_manager import ProgressManager
from pubrules.core.rule_registry import get_default_registry
from pubrules.core.services.report_service import ReportService
from pubrules.core.sink import Sink
from pubrules.core.utils.configure_logging import configure_logger
from pubrules.profiles import PROFILES, build_profile

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2


def _setup_windows_event_loop_if_needed() -> None:
    """Installs Windows compatible asyncio policy if possible."""
    if not sys.platform.startswith("win"):
        return
    try:
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
        logger.info("Using WindowsSelectorEventLoopPolicy for asyncio on Windows.")
    except Exception as exc:  # pragma: no cover
        logger.warning("Could not set WindowsSelectorEventLoopPolicy: %s", exc)


def parse_config_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    """['status=WD', 'previousVersion=true'] -> {'status': 'WD', 'previousVersion': True}"""
    config: Dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        value: Any = raw.strip()
        if value.lower() in ("true", "false"):
            value = value.lower() == "true"
        config[key.strip()] = value
    return config


def _source_from_args(args: argparse.Namespace) -> DocumentSource:
    if args.file:
        return DocumentSource(file=Path(args.file), base_url=args.base_url)
    return DocumentSource(url=args.url)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubrules", description="Check a specification against publication rules.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    parser.add_argument("--log-file", help="Also write a debug log to this file.")
    parser.add_argument("--settings", metavar="JSON", help="Settings file merged over the defaults.")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_source(p: argparse.ArgumentParser) -> None:
        group = p.add_mutually_exclusive_group(required=True)
        group.add_argument("--file", help="Local HTML file to check.")
        group.add_argument("--url", help="Public URL of the document to check.")
        p.add_argument("--base-url", help="Public URL of a local file, used to resolve its links.")
        p.add_argument("--json", action="store_true", help="Print the result as JSON.")

    validate = sub.add_parser("validate", help="Run a profile's rules against a document.")
    add_source(validate)
    validate.add_argument("--profile", "-p", help=f"One of {', '.join(PROFILES)}.")
    validate.add_argument("--rule", "-r", action="append", help="Rule id to run (repeatable).")
    validate.add_argument("--config", "-c", action="append", metavar="KEY=VALUE", help="Configuration override.")
    validate.add_argument("--timeout", type=float, help="Seconds before unsettled rules are given up on.")
    validate.add_argument("--export", metavar="CSV", help="Write the findings to a CSV file.")
    validate.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")

    metadata = sub.add_parser("metadata", help="Print the metadata extracted from a document.")
    add_source(metadata)

    sub.add_parser("rules", help="List registered rules and the keys they report.")
    sub.add_parser("profiles", help="List the bundled profiles.")
    return parser


def cmd_validate(args: argparse.Namespace, validator: Validator) -> int:
    try:
        overrides = parse_config_pairs(args.config)
        profile = build_profile(args.profile, args.rule, overrides)
    except (argparse.ArgumentTypeError, KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    sink = Sink()
    if not args.json and not args.no_progress:
        ProgressManager(total=len(set(profile.rules)), desc=profile.name).attach(sink)

    result = validator.validate_sync(_source_from_args(args), profile, sink=sink, timeout=args.timeout)

    report = ReportService(result)
    print(report.to_json() if args.json else report.render_text())
    if args.export:
        path = report.export_csv(args.export)
        if not args.json:
            print(f"Findings exported to {path}")

    if not result.complete:
        return EXIT_FATAL
    return EXIT_FINDINGS if result.errors else EXIT_OK


def cmd_metadata(args: argparse.Namespace, validator: Validator) -> int:
    result = validator.extract_metadata_sync(_source_from_args(args))
    if result.fatal or result.meta is None:
        for exc in result.exceptions:
            print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_FATAL
    print(json.dumps(result.meta.metadata(), indent=2, default=str))
    return EXIT_OK


def cmd_rules(_args: argparse.Namespace, validator: Validator) -> int:
    for rule_id in validator.registry.ids():
        rule = validator.registry.get(rule_id)
        kind = "async" if rule.is_async else "sync"
        print(f"{rule_id:<28} {kind:<5} {', '.join(rule.codes)}")
    return EXIT_OK


def cmd_profiles(_args: argparse.Namespace, _validator: Validator) -> int:
    for name, profile in PROFILES.items():
        print(f"{name:<5} {len(profile.rules):>3} rules  {profile.config.long_status or ''}")
    return EXIT_OK


COMMANDS = {
    "validate": cmd_validate,
    "metadata": cmd_metadata,
    "rules": cmd_rules,
    "profiles": cmd_profiles,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.settings and not config_manager.load_file(Path(args.settings)):
        print(f"Error: could not read settings file {args.settings}", file=sys.stderr)
        return EXIT_FATAL

    configure_logger(
        "DEBUG" if args.verbose else config_manager.get_nested("debug.level", "WARNING"),
        config_manager.get_nested("debug.module_levels", {}),
        config_manager.get_nested("debug.silenced_loggers", {}),
        log_file=args.log_file or config_manager.get_nested("debug.log_file"),
    )
    _setup_windows_event_loop_if_needed()
    ensure_background_loop()

    try:
        validator = Validator(registry=get_default_registry())
        return COMMANDS[args.command](args, validator)
    except PubrulesError as e:
        logger.debug("Fatal error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
