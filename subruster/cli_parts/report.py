from __future__ import annotations

from typing import Optional

from ..output import err_console, print_json_output, show_report, show_reports_catalog
from ..storage import get_report, list_reports


def report_mode(selector: Optional[str], as_json: bool = False) -> int:
    """Show saved scans: `list` for the catalog, otherwise latest/id/domain."""
    selector = (selector or "latest").strip()
    if selector == "list":
        reports = list_reports(limit=50)
        if as_json:
            print_json_output(reports)
        else:
            show_reports_catalog(reports)
        return 0

    report = get_report(selector)
    if report is None:
        err_console.print(f"[yellow]No report found for:[/yellow] {selector}")
        return 1
    if as_json:
        print_json_output(report)
    else:
        show_report(report)
    return 0
