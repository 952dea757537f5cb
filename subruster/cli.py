from __future__ import annotations

"""Command-line interface for subruster.

This module translates CLI flags into a `RunConfig`, runs the scan through
`subruster.core` and handles setup/report workflows backed by local storage.
"""

import argparse
import sys
from typing import List, Optional

from .cli_parts.report import report_mode as _report_mode
from .cli_parts.scan_flow import FindingWriter, run_scan as _run_scan, run_wildcard_test as _run_wildcard_test
from .cli_parts.setup import compact_home as _compact_home, load_saved_runtime_settings as _load_saved_runtime_settings, setup_mode as _setup_mode
from .cli_parts.status import render_runtime_status_panel as _render_runtime_status_panel
from .core import (
    ConfigurationError,
    ResolverUnavailableError,
    RunConfig,
    Wordlist,
    build_resolver,
    set_quiet,
)
from .engine.models import RECORD_TYPES, WILDCARD_POLICIES
from .output import console, err_console, output, print_json_output
from .storage import STORAGE_ERRORS, save_scan
from .version import __version__

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_OUTAGE = 2
EXIT_INTERRUPTED = 130


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return parsed


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value!r}") from exc
    if not parsed > 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value!r}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subruster",
        description=(
            f"subruster v.{__version__} - DNS subdomain enumeration with wildcard filtering\n"
            "CLI options > saved setup (--setup) > environment > built-in defaults."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"subruster {__version__}")

    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-d", "--domain", help="Target domain (required for scans).")
    target_group.add_argument("-w", "--wordlist", help="Candidate label file, one per line (default: bundled list).")

    runtime_group = parser.add_argument_group("Runtime")
    runtime_group.add_argument("-c", "--concurrency", type=_positive_int, help="Concurrent lookups (default: 100).")
    runtime_group.add_argument("--timeout", type=_positive_float, help="Per-query timeout in seconds (default: 5).")
    runtime_group.add_argument("--dns", help="DNS server(s), comma separated (default: system resolver).")
    runtime_group.add_argument("--record-type", choices=RECORD_TYPES, type=str.upper, help="Record type to query (default: A).")
    runtime_group.add_argument(
        "--wildcard-policy",
        choices=WILDCARD_POLICIES,
        type=str.lower,
        help="When a result counts as wildcard noise: exact set match, subset of, or overlap with the baseline.",
    )
    runtime_group.add_argument("--retry-timeouts", action="store_true", help="Retry timed-out lookups once.")
    runtime_group.add_argument(
        "--no-abort",
        action="store_true",
        help="Keep going when every early lookup fails with a resolver error.",
    )

    mode_group = parser.add_argument_group("Modes")
    mode_group.add_argument("--wildcard", action="store_true", help="Test the domain for wildcard DNS and exit.")
    mode_group.add_argument("--setup", action="store_true", help="Interactive setup: save runtime defaults in the local DB.")
    mode_group.add_argument(
        "--report",
        nargs="?",
        const="latest",
        help="Show a saved scan: 'latest' (default), an id, a domain, or 'list'.",
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("-o", "--output", help="Write found FQDNs to this file, one per line.")
    output_group.add_argument("-s", "--silent", action="store_true", help="Print only found FQDNs.")
    output_group.add_argument("--json", action="store_true", help="JSON-only output (forces --silent).")
    output_group.add_argument("--no-save", action="store_true", help="Do not store the scan in the reports DB.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint.

    Returns the process exit code: 0 on completion (even with no findings),
    1 on configuration errors, 2 when the resolver looks unreachable.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True
    set_quiet(args.silent)

    if args.setup or args.report is not None:
        try:
            if args.setup:
                return _setup_mode()
            return _report_mode(args.report, as_json=args.json)
        except STORAGE_ERRORS as exc:
            err_console.print(f"[red]Reports DB unavailable:[/red] {exc}")
            return EXIT_CONFIG

    if not args.domain:
        err_console.print("[red]Missing target domain:[/red] use -d/--domain")
        parser.print_usage(sys.stderr)
        return EXIT_CONFIG

    saved = _load_saved_runtime_settings()
    try:
        config = RunConfig.build(
            args.domain,
            concurrency=args.concurrency if args.concurrency is not None else saved["concurrency"],
            timeout=args.timeout if args.timeout is not None else saved["timeout"],
            silent=args.silent,
            nameservers=args.dns or saved["dns"],
            record_type=args.record_type or saved["record_type"],
            wildcard_policy=args.wildcard_policy or saved["wildcard_policy"],
            retry_timeouts=args.retry_timeouts,
            abort_on_outage=not args.no_abort,
        )
    except ConfigurationError as exc:
        err_console.print(f"[red]{exc}[/red]")
        return EXIT_CONFIG

    try:
        resolver = build_resolver(config)

        if args.wildcard:
            baseline = _run_wildcard_test(config, resolver)
            if args.json:
                print_json_output({"domain": config.domain, "wildcard": sorted(baseline) if baseline else None})
            elif baseline:
                console.print(f"[yellow]Wildcard seems active for {config.domain}:[/yellow] {', '.join(sorted(baseline))}")
            else:
                console.print(f"[green]No wildcard DNS detected for {config.domain}[/green]")
            return EXIT_OK

        wordlist = Wordlist(args.wordlist or saved["wordlist"])
        labels = wordlist.load()

        if not args.silent:
            _render_runtime_status_panel(
                config,
                wordlist=_compact_home(wordlist.path) + (" (default)" if wordlist.is_default else ""),
                word_count=len(labels),
                nameservers=", ".join(resolver.nameservers) or "system",
                output_path=args.output,
            )

        with FindingWriter(args.output, silent=args.silent, echo=not args.json) as writer:
            result = _run_scan(config, labels, writer, resolver=resolver)
    except ConfigurationError as exc:
        err_console.print(f"[red]{exc}[/red]")
        return EXIT_CONFIG
    except ResolverUnavailableError as exc:
        err_console.print(f"[red]Aborted:[/red] {exc}")
        return EXIT_OUTAGE
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        return EXIT_INTERRUPTED

    if not args.no_save:
        try:
            report_id = save_scan(
                config.domain,
                "bruteforce",
                {**config.as_settings(), "wordlist": str(wordlist.path)},
                [f.to_dict() for f in result.sorted_findings()],
                result.elapsed,
                wildcard=sorted(result.baseline) if result.baseline is not None else None,
            )
        except STORAGE_ERRORS as exc:
            err_console.print(f"[yellow]Scan not saved:[/yellow] {exc}")
        else:
            if not args.silent:
                console.print(f"[green]Saved report #[/green]{report_id}")

    if args.json:
        print_json_output(result.to_dict())
    elif not args.silent:
        output(result)
        if args.output:
            console.print(f"[green][✓][/green] Saved {writer.count} results to {args.output}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
