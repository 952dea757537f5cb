from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core import RunConfig
from ..output import console
from ..storage import get_db_path
from ..version import __version__
from .setup import compact_home

BANNER = r"""
   _____       __    ____             __
  / ___/__  __/ /_  / __ \__  _______/ /____  _____
  \__ \/ / / / __ \/ /_/ / / / / ___/ __/ _ \/ ___/
 ___/ / /_/ / /_/ / _, _/ /_/ (__  ) /_/  __/ /
/____/\__,_/_.___/_/ |_|\__,_/____/\__/\___/_/
"""


def render_runtime_status_panel(
    config: RunConfig,
    wordlist: str,
    word_count: Optional[int],
    nameservers: str,
    output_path: Optional[str] = None,
) -> None:
    """Print the banner and the effective runtime settings."""
    status = Table(box=box.MINIMAL, show_header=False, pad_edge=False, expand=False)
    status.add_column("Key", width=16, no_wrap=True, style="cyan")
    status.add_column("Value", no_wrap=True, overflow="ellipsis")
    status.add_row("Target", config.domain)
    status.add_row("Concurrency", str(config.concurrency))
    status.add_row("Timeout", f"{config.timeout:g}s")
    status.add_row("DNS", nameservers)
    status.add_row("Record type", config.record_type)
    status.add_row("Wordlist", wordlist)
    status.add_row("Words", "-" if word_count is None else str(word_count))
    status.add_row("Wildcard policy", f"{config.wildcard_policy} ({config.wildcard_probes} probes)")
    status.add_row("Retry timeouts", "yes" if config.retry_timeouts else "no")
    status.add_row("Output", output_path or "stdout")
    status.add_row("Reports DB", compact_home(get_db_path()))

    banner = Text(BANNER, style="bold blue")
    console.print(
        Panel(
            Group(banner, status),
            title=f"Subruster v{__version__}",
            border_style="blue",
            expand=False,
        )
    )
