from __future__ import annotations

"""Compatibility facade for the subruster engine.

Public imports remain stable while implementation lives in `subruster.engine`.
"""

from .engine.controller import Enumerator, OutageMonitor, RunStats, run
from .engine.errors import ConfigurationError, ResolverUnavailableError, SubrusterError
from .engine.models import (
    FailureKind,
    Failed,
    Finding,
    NotFound,
    Resolved,
    RunConfig,
    normalize_domain,
)
from .engine.resolver import DnsResolver
from .engine.runtime import (
    DEFAULT_WORDLIST,
    ROOT,
    SUBRUSTER,
    ScanResult,
    Wordlist,
    _detect_async,
    _run_async,
    _run_coro_sync,
    build_resolver,
    fmt_td,
    logger,
    set_quiet,
)
from .engine.wildcard import detect_wildcard, is_wildcard_match, probe_label

__all__ = [
    "ROOT",
    "DEFAULT_WORDLIST",
    "SUBRUSTER",
    "ScanResult",
    "Wordlist",
    "RunConfig",
    "Finding",
    "Resolved",
    "NotFound",
    "Failed",
    "FailureKind",
    "DnsResolver",
    "Enumerator",
    "OutageMonitor",
    "RunStats",
    "run",
    "detect_wildcard",
    "is_wildcard_match",
    "probe_label",
    "normalize_domain",
    "build_resolver",
    "fmt_td",
    "logger",
    "set_quiet",
    "SubrusterError",
    "ConfigurationError",
    "ResolverUnavailableError",
    "_detect_async",
    "_run_async",
    "_run_coro_sync",
]
