from __future__ import annotations

"""Scan orchestration for subruster.

This module ties the pieces together for both the CLI and the Python API:
- candidate loading (`Wordlist`)
- the wildcard barrier followed by the enumeration pass (`_run_async`)
- sync entrypoints (`_run_coro_sync`, `SUBRUSTER`)

Keep it free of terminal output: rendering lives in `subruster/output.py`.
"""

import asyncio
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dotenv import load_dotenv

from .controller import Enumerator, RunStats
from .errors import ConfigurationError
from .models import Finding, RunConfig, WildcardBaseline
from .resolver import DnsResolver
from .wildcard import detect_wildcard

load_dotenv()

ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = Path.home() / ".subruster"
DEFAULT_WORDLIST = ROOT / "wordlist" / "wordlist.txt"

logger = logging.getLogger("subruster")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)


def set_quiet(quiet: bool) -> None:
    """Silent and JSON runs only let errors through the logger."""
    logger.setLevel(logging.ERROR if quiet else logging.INFO)


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class Wordlist:
    _CACHE: Dict[str, Tuple[float, List[str]]] = {}

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_WORDLIST

    @property
    def is_default(self) -> bool:
        return self.path == DEFAULT_WORDLIST

    def load(self) -> List[str]:
        """Read labels: lower-cased, de-duplicated, blanks and `#` comments skipped."""
        key = str(self.path)
        try:
            mtime = self.path.stat().st_mtime
            cached = self._CACHE.get(key)
            if cached and cached[0] == mtime:
                return list(cached[1])

            words: List[str] = []
            seen: set[str] = set()
            with open(self.path, "r", encoding="utf-8", errors="ignore") as fh:
                for raw in fh:
                    word = raw.strip().lower().strip(".")
                    if not word or word.startswith("#"):
                        continue
                    if word in seen:
                        continue
                    seen.add(word)
                    words.append(word)
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Wordlist not found: {self.path}") from exc
        except IsADirectoryError as exc:
            raise ConfigurationError(f"Wordlist is a directory: {self.path}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Cannot read wordlist {self.path}: {exc}") from exc

        self._CACHE[key] = (mtime, words)
        return list(words)


@dataclass
class ScanResult:
    domain: str
    baseline: WildcardBaseline
    findings: List[Finding] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)
    elapsed: Optional[timedelta] = None

    @property
    def wildcard(self) -> bool:
        return self.baseline is not None

    def sorted_findings(self) -> List[Finding]:
        return sorted(self.findings, key=lambda f: f.fqdn)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "wildcard": sorted(self.baseline) if self.baseline is not None else None,
            "findings": [f.to_dict() for f in self.sorted_findings()],
            "stats": self.stats.as_dict(),
            "elapsed_seconds": self.elapsed.total_seconds() if self.elapsed else None,
        }


def build_resolver(config: RunConfig) -> DnsResolver:
    return DnsResolver(nameservers=config.nameservers, record_type=config.record_type)


async def _detect_async(config: RunConfig, resolver: Optional[Any] = None) -> WildcardBaseline:
    resolver = resolver or build_resolver(config)
    return await detect_wildcard(
        resolver,
        config.domain,
        config.timeout,
        probes=config.wildcard_probes,
        concurrency=config.concurrency,
    )


async def _run_async(
    config: RunConfig,
    candidates: Iterable[str],
    resolver: Optional[Any] = None,
    on_finding: Optional[Callable[[Finding], None]] = None,
    on_baseline: Optional[Callable[[WildcardBaseline], None]] = None,
    progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
) -> ScanResult:
    """Main orchestrator used by both CLI and Python API.

    Flow:
    1. resolve the wildcard probes and settle the baseline (barrier)
    2. run the enumerator over every candidate with bounded concurrency
    3. hand each finding to `on_finding` as it arrives and collect it
    """
    resolver = resolver or build_resolver(config)
    started = time.monotonic()

    baseline = await _detect_async(config, resolver)
    if baseline is not None:
        logger.info("Wildcard detected for %s: %s", config.domain, ", ".join(sorted(baseline)))
    else:
        logger.debug("No wildcard baseline for %s", config.domain)
    if on_baseline:
        on_baseline(baseline)

    enumerator = Enumerator(config, resolver, baseline, progress_callback=progress_callback)
    result = ScanResult(domain=config.domain, baseline=baseline, stats=enumerator.stats)
    try:
        async for finding in enumerator.run(candidates):
            result.findings.append(finding)
            if on_finding:
                on_finding(finding)
    finally:
        result.elapsed = timedelta(seconds=time.monotonic() - started)

    stats = enumerator.stats
    logger.debug(
        "Run finished: %s settled, %s findings, %s suppressed, %s timeouts, %s errors, %s retries",
        stats.settled,
        stats.findings,
        stats.wildcard_suppressed,
        stats.timeouts,
        stats.transient,
        stats.retries,
    )
    return result


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except BaseException as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def SUBRUSTER(
    domain: str,
    wordlist: Optional[str] = None,
    candidates: Optional[Iterable[str]] = None,
    concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
    dns: Optional[str] = None,
    record_type: Optional[str] = None,
    wildcard_policy: Optional[str] = None,
    retry_timeouts: bool = False,
    abort_on_outage: bool = True,
    resolver: Optional[Any] = None,
) -> ScanResult:
    """Public synchronous Python API entrypoint.

    Example:
    `SUBRUSTER("example.com", concurrency=50).sorted_findings()`
    """
    config = RunConfig.build(
        domain,
        concurrency=concurrency,
        timeout=timeout,
        silent=True,
        nameservers=dns,
        record_type=record_type,
        wildcard_policy=wildcard_policy,
        retry_timeouts=retry_timeouts,
        abort_on_outage=abort_on_outage,
    )
    labels = list(candidates) if candidates is not None else Wordlist(wordlist).load()
    return _run_coro_sync(_run_async(config, labels, resolver=resolver))
