#!/usr/bin/env python3
"""
Accessibility Scanner - Command Line Entry
Scans a live page with axe-core and attributes each violation to the React
component that rendered it, using Playwright.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from scripts.a11y_core.config import BrowserEngine, ScanConfig, load_config, parse_tags, split_selector_list
from scripts.a11y_core.errors import ConfigurationError, ScanError
from scripts.a11y_core.models import ScanOptions
from scripts.a11y_core.orchestrator import ScanOrchestrator
from scripts.a11y_core.reporting import (
    EXIT_FAILURE,
    EXIT_SUCCESS,
    EXIT_VALIDATION,
    format_for_ci,
    render_summary,
    write_json,
)

LOGGER = logging.getLogger("a11y-scan")

ALLOWED_SCHEMES = ("http", "https", "file")


def setup_logging(verbose: bool = False) -> None:
    LOGGER.handlers.clear()
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)
    LOGGER.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    LOGGER.addHandler(console_handler)


def validate_url(url: str) -> str:
    parsed = urlparse(url or "")
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ConfigurationError(f"Invalid URL '{url}': scheme must be http, https or file", "url")
    if parsed.scheme != "file" and not parsed.netloc:
        raise ConfigurationError(f"Invalid URL '{url}': missing host", "url")
    return url


def build_config(args: argparse.Namespace) -> ScanConfig:
    config = load_config(Path(args.config) if args.config else None)
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ConfigurationError("--timeout must be a positive number of milliseconds", "timeout")
        config = config.with_overrides(browser=replace(config.browser, timeout=args.timeout))
    if args.custom_checks:
        config = config.with_overrides(run_custom_checks=True)
    if args.verbose:
        config = config.with_overrides(verbose=True)
    return config


def build_options(args: argparse.Namespace) -> ScanOptions:
    return ScanOptions(
        url=validate_url(args.url),
        engine=BrowserEngine.parse(args.browser).value,
        headless=not args.headed,
        tags=parse_tags(args.tags),
        include_keyboard_tests=args.keyboard,
        mobile=args.mobile,
        disable_rules=parse_tags(args.disable_rules),
        exclude=list(split_selector_list(args.exclude)),
        require_framework=args.require_framework,
    )


async def main_async(args: argparse.Namespace, options: ScanOptions, config: ScanConfig) -> int:
    orchestrator = ScanOrchestrator(config)
    try:
        results = await orchestrator.perform_scan(options)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc.message)
        return EXIT_VALIDATION
    except ScanError as exc:
        LOGGER.error("%s", exc.message)
        return EXIT_FAILURE

    if args.output:
        output_path = Path(args.output)
        write_json(output_path, results)
        print(f"Report: {output_path}")

    print(render_summary(results))

    if args.ci:
        ci = format_for_ci(results, args.threshold)
        print(ci.message)
        return EXIT_SUCCESS if ci.passed else EXIT_FAILURE
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scan a page for accessibility violations and map them to components")
    parser.add_argument("url", help="Page URL (http, https or file)")
    parser.add_argument(
        "--browser",
        default=BrowserEngine.CHROMIUM.value,
        choices=[e.value for e in BrowserEngine],
        help="Browser engine to scan with",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--tags", help="Comma-separated axe-core tags, e.g. wcag2a,wcag2aa")
    parser.add_argument("--keyboard", action="store_true", help="Run keyboard navigation checks")
    parser.add_argument("--mobile", action="store_true", help="Emulate a 375x812 touch viewport")
    parser.add_argument("--disable-rules", help="Comma-separated axe-core rule ids to skip")
    parser.add_argument("--exclude", help="Comma-separated CSS selectors to leave out of the scan")
    parser.add_argument(
        "--require-framework",
        action="store_true",
        help="Fail when no React component tree is found instead of running an unattributed scan",
    )
    parser.add_argument("--custom-checks", action="store_true", help="Run WCAG 2.2 heuristic checks (target size)")
    parser.add_argument("--output", "-o", help="Write the full JSON report to this file")
    parser.add_argument("--ci", action="store_true", help="Exit non-zero when violations exceed --threshold")
    parser.add_argument("--threshold", type=int, default=0, help="Violations allowed in --ci mode")
    parser.add_argument("--config", help="JSON config file merged over the defaults")
    parser.add_argument("--timeout", type=int, help="Navigation timeout in milliseconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = build_config(args)
        options = build_options(args)
    except ConfigurationError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return EXIT_VALIDATION
    setup_logging(config.verbose)

    try:
        return asyncio.run(main_async(args, options, config))
    except KeyboardInterrupt:
        print("Scan cancelled", file=sys.stderr)
        return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> None:
    raise SystemExit(run(argv))


if __name__ == "__main__":
    main()
