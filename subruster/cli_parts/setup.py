from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..core import DEFAULT_WORDLIST, logger
from ..engine.models import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT, RECORD_TYPES, WILDCARD_POLICIES
from ..output import console, err_console
from ..storage import STORAGE_ERRORS, get_settings, set_setting


def compact_home(path: Path) -> str:
    home = Path.home().resolve()
    resolved = path.expanduser().resolve()
    try:
        rel = resolved.relative_to(home)
        return f"~/{rel.as_posix()}" if str(rel) != "." else "~"
    except ValueError:
        return str(resolved)


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_saved_runtime_settings() -> Dict[str, Any]:
    """Saved setup layered over environment and built-in defaults.

    An unreadable settings DB only costs the saved layer: a warning is
    logged and the environment and defaults still apply.
    """
    try:
        saved = get_settings()
    except STORAGE_ERRORS as exc:
        logger.warning("Saved settings unavailable (%s); using defaults", exc)
        saved = {}
    record_type = (saved.get("runtime.record_type") or "A").upper()
    policy = (saved.get("runtime.wildcard_policy") or "exact").lower()
    return {
        "dns": _normalize_optional(saved.get("runtime.dns")) or _normalize_optional(os.getenv("SUBRUSTER_DNS")),
        "timeout": _parse_float(saved.get("runtime.timeout"), DEFAULT_TIMEOUT),
        "concurrency": _parse_int(saved.get("runtime.concurrency"), DEFAULT_CONCURRENCY),
        "wordlist": _normalize_optional(saved.get("runtime.wordlist")),
        "record_type": record_type if record_type in RECORD_TYPES else "A",
        "wildcard_policy": policy if policy in WILDCARD_POLICIES else "exact",
    }


def setup_mode() -> int:
    """Interactive editor for persisted runtime defaults."""
    if not sys.stdin.isatty():
        err_console.print("[red]--setup requires interactive terminal.[/red]")
        return 1

    config = load_saved_runtime_settings()
    console.print(Panel.fit("Subruster Setup", border_style="blue"))
    console.print("Select ID 1-6 to edit a single field. Use 0 to save and exit.")
    console.print("Use '-' to clear optional values (DNS/wordlist).")

    def _render_table(title: str) -> None:
        table = Table(title=title, box=box.SIMPLE_HEAVY)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Key", style="cyan")
        table.add_column("Value", overflow="fold")
        table.add_row("1", "DNS", str(config["dns"] or "system"))
        table.add_row("2", "Timeout", str(config["timeout"]))
        table.add_row("3", "Concurrency", str(config["concurrency"]))
        table.add_row(
            "4",
            "Wordlist",
            str(config["wordlist"]) if config["wordlist"] else f"default ({compact_home(DEFAULT_WORDLIST)})",
        )
        table.add_row("5", "Record type", str(config["record_type"]))
        table.add_row("6", "Wildcard policy", str(config["wildcard_policy"]))
        console.print(table)

    def _ask_text(label: str, current_value: Optional[str], optional: bool = False) -> Optional[str]:
        raw = input(f"{label} [{current_value if current_value is not None else ''}]: ").strip()
        if raw == "":
            return current_value
        if optional and raw == "-":
            return None
        return raw

    while True:
        _render_table("Current Setup")
        console.print("0 save and exit")
        choice = input("Select field [1-6] or 0 to save: ").strip()
        if choice == "0":
            break
        if choice == "1":
            config["dns"] = _ask_text("DNS servers (comma separated)", config["dns"], optional=True)
            continue
        if choice == "2":
            raw_timeout = input(f"Timeout seconds [{config['timeout']}]: ").strip()
            if raw_timeout:
                parsed_timeout = _parse_float(raw_timeout, -1.0)
                if parsed_timeout > 0:
                    config["timeout"] = parsed_timeout
                else:
                    err_console.print("[yellow]Invalid timeout, value unchanged.[/yellow]")
            continue
        if choice == "3":
            raw_concurrency = input(f"Concurrency [{config['concurrency']}]: ").strip()
            if raw_concurrency:
                parsed_concurrency = _parse_int(raw_concurrency, -1)
                if parsed_concurrency > 0:
                    config["concurrency"] = parsed_concurrency
                else:
                    err_console.print("[yellow]Invalid concurrency, value unchanged.[/yellow]")
            continue
        if choice == "4":
            config["wordlist"] = _ask_text("Wordlist path", config["wordlist"], optional=True)
            continue
        if choice == "5":
            value = (_ask_text("Record type (A/AAAA)", config["record_type"]) or "A").upper()
            if value in RECORD_TYPES:
                config["record_type"] = value
            else:
                err_console.print("[yellow]Invalid record type, value unchanged.[/yellow]")
            continue
        if choice == "6":
            value = (_ask_text("Wildcard policy (exact/subset/overlap)", config["wildcard_policy"]) or "exact").lower()
            if value in WILDCARD_POLICIES:
                config["wildcard_policy"] = value
            else:
                err_console.print("[yellow]Invalid wildcard policy, value unchanged.[/yellow]")
            continue
        err_console.print("[red]Invalid selection.[/red] Use 0-6.")

    set_setting("runtime.dns", config["dns"])
    set_setting("runtime.timeout", str(config["timeout"]))
    set_setting("runtime.concurrency", str(config["concurrency"]))
    set_setting("runtime.wordlist", config["wordlist"])
    set_setting("runtime.record_type", config["record_type"])
    set_setting("runtime.wildcard_policy", config["wildcard_policy"])

    _render_table("Saved Setup")
    return 0
