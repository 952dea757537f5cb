from __future__ import annotations

from pathlib import Path
from typing import IO, Any, List, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ..core import ConfigurationError, Finding, RunConfig, ScanResult, _detect_async, _run_async, _run_coro_sync
from ..output import console, print_finding, print_wildcard_result


class FindingWriter:
    """Single sink for findings: terminal echo plus the optional `-o` file.

    Only bare FQDNs ever reach the file, one per line.
    """

    def __init__(self, output_path: Optional[str] = None, silent: bool = False, echo: bool = True):
        self.output_path = output_path
        self.silent = silent
        self.echo = echo
        self.count = 0
        self._fh: Optional[IO[str]] = None

    def open(self) -> "FindingWriter":
        if self.output_path:
            path = Path(self.output_path).expanduser()
            if path.is_dir():
                raise ConfigurationError(f"Output path is a directory: {path}")
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = path.open("w", encoding="utf-8")
            except OSError as exc:
                raise ConfigurationError(f"Cannot write output file {path}: {exc}") from exc
        return self

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "FindingWriter":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __call__(self, finding: Finding) -> None:
        self.count += 1
        if self.echo:
            print_finding(finding, silent=self.silent)
        if self._fh is not None:
            self._fh.write(f"{finding.fqdn}\n")
            self._fh.flush()


def run_scan(
    config: RunConfig,
    labels: List[str],
    writer: FindingWriter,
    resolver: Optional[Any] = None,
    show_progress: bool = True,
) -> ScanResult:
    """Run the wildcard barrier and the enumeration, streaming findings to `writer`."""
    silent = config.silent

    def on_baseline(baseline: Optional[frozenset]) -> None:
        if not silent:
            print_wildcard_result(config.domain, baseline)
            console.print(f"[cyan][*][/cyan] Loaded {len(labels)} words. Starting enumeration...")

    if silent or not show_progress:
        return _run_coro_sync(
            _run_async(config, labels, resolver=resolver, on_finding=writer, on_baseline=on_baseline)
        )

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Resolving", total=max(len(labels), 1))

        def cb(done: int, total: Optional[int]) -> None:
            progress.update(task_id, total=max(total or done, 1), completed=done)

        return _run_coro_sync(
            _run_async(
                config,
                labels,
                resolver=resolver,
                on_finding=writer,
                on_baseline=on_baseline,
                progress_callback=cb,
            )
        )


def run_wildcard_test(config: RunConfig, resolver: Optional[Any] = None) -> Optional[frozenset]:
    return _run_coro_sync(_detect_async(config, resolver))

