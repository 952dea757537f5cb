from __future__ import annotations

"""Terminal rendering helpers for subruster.

Presentation only: nothing here resolves names or touches storage. Bare
FQDN lines go through `sys.stdout` so piped output stays clean; everything
decorative goes through the rich consoles.
"""

import json
import sys
from datetime import timedelta
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core import Finding, ScanResult, fmt_td

console = Console()
err_console = Console(stderr=True)


def _format_ips(values: List[str], limit: int = 4) -> str:
    if not values:
        return "-"
    shown = ", ".join(values[:limit])
    if len(values) > limit:
        shown += f" (+{len(values) - limit})"
    return shown


def write_line(text: str) -> None:
    try:
        sys.stdout.write(f"{text}\n")
        sys.stdout.flush()
    except BrokenPipeError:
        # `| head` closed the pipe; stay quiet.
        return


def print_finding(finding: Finding, silent: bool = False) -> None:
    if silent:
        write_line(finding.fqdn)
        return
    console.print(
        f"[green][+][/green] [bold]{finding.fqdn}[/bold]  => [dim]{_format_ips(sorted(finding.addresses))}[/dim]",
        highlight=False,
    )


def print_wildcard_result(domain: str, baseline: Optional[frozenset]) -> None:
    if baseline:
        err_console.print(
            f"[yellow][!] Wildcard detected![/yellow] Filtering results for {domain} pointing to: "
            f"[red]{', '.join(sorted(baseline))}[/red]",
            highlight=False,
        )
    else:
        err_console.print(f"[cyan][*][/cyan] No wildcard DNS detected for {domain}", highlight=False)


def print_json_output(payload: Any) -> None:
    try:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        return


def _findings_table(rows: List[Dict[str, Any]], title: Optional[str] = None) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY, header_style="bold cyan", title_justify="left")
    table.add_column("Domain", style="cyan", no_wrap=True, overflow="ellipsis")
    table.add_column("IP", style="white", overflow="fold")
    for row in rows:
        table.add_row(str(row.get("domain") or "-"), _format_ips(list(row.get("ip") or [])))
    return table


def output(result: Optional[ScanResult], elapsed: Optional[timedelta] = None) -> None:
    """Render the summary shown after a non-silent scan."""
    if result is None:
        err_console.print("[yellow]No results to display.[/yellow]")
        return

    rows = [f.to_dict() for f in result.sorted_findings()]
    if rows:
        console.print(_findings_table(rows))
    else:
        err_console.print("[yellow]No subdomains found.[/yellow]")

    stats = result.stats
    wildcard = ", ".join(sorted(result.baseline)) if result.baseline else "none"
    console.print(
        Panel.fit(
            f"[bold]Found:[/bold] {len(rows)}  [bold]Checked:[/bold] {stats.settled}  "
            f"[bold]Wildcard:[/bold] {wildcard}  [bold]Suppressed:[/bold] {stats.wildcard_suppressed}  "
            f"[bold]Timeouts:[/bold] {stats.timeouts}  [bold]Errors:[/bold] {stats.transient}  "
            f"[bold]Elapsed:[/bold] {fmt_td(elapsed if elapsed is not None else result.elapsed)}",
            border_style="cyan",
        )
    )


def show_reports_catalog(reports: List[Dict[str, Any]]) -> None:
    if not reports:
        err_console.print("[yellow]No reports found in database.[/yellow]")
        return
    table = Table(title="Saved Scans", box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Created")
    table.add_column("Target", style="cyan")
    table.add_column("Mode")
    table.add_column("Found", justify="right")
    table.add_column("Elapsed", justify="right")
    for report in reports:
        elapsed = report.get("elapsed_seconds")
        table.add_row(
            str(report.get("id")),
            str(report.get("created_at") or "-"),
            str(report.get("target") or "-"),
            str(report.get("mode") or "-"),
            str(report.get("finding_count") or 0),
            fmt_td(timedelta(seconds=float(elapsed))) if elapsed is not None else "-",
        )
    console.print(table)


def show_report(report: Dict[str, Any]) -> None:
    console.print(
        Panel.fit(
            f"[bold]Report[/bold] #{report['id']}  [bold]Target:[/bold] {report['target']}  "
            f"[bold]Created:[/bold] {report['created_at']}  [bold]Mode:[/bold] {report['mode']}",
            border_style="blue",
        )
    )
    findings = report.get("findings") or []
    if findings:
        console.print(_findings_table(findings))
    else:
        console.print("[yellow]No findings in this report.[/yellow]")
    wildcard = report.get("wildcard")
    console.print(f"[cyan]Wildcard:[/cyan] {', '.join(wildcard) if wildcard else 'none'}")
