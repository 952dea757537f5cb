from __future__ import annotations

"""Bounded-concurrency enumeration of candidate labels.

`Enumerator.run` starts `config.concurrency` worker tasks that share one
iterator over the candidates. Each worker resolves a label, applies the
retry and wildcard rules, and pushes findings onto a bounded queue. The
async generator returned by `run` is the only reader of that queue, so
whatever consumes it (terminal, output file, storage) is written from a
single task.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

from .errors import ResolverUnavailableError
from .models import (
    FailureKind,
    Failed,
    Finding,
    NotFound,
    Resolved,
    ResolutionOutcome,
    RunConfig,
    WildcardBaseline,
)
from .wildcard import is_wildcard_match

logger = logging.getLogger("subruster")

_DONE = object()


def _clean_label(raw: Any) -> str:
    return str(raw).strip().lower()


@dataclass
class RunStats:
    total: Optional[int] = None
    settled: int = 0
    resolved: int = 0
    not_found: int = 0
    timeouts: int = 0
    transient: int = 0
    retries: int = 0
    wildcard_suppressed: int = 0
    findings: int = 0

    def record(self, outcome: ResolutionOutcome) -> None:
        self.settled += 1
        if isinstance(outcome, Resolved):
            self.resolved += 1
        elif isinstance(outcome, NotFound):
            self.not_found += 1
        elif outcome.kind is FailureKind.TIMEOUT:
            self.timeouts += 1
        else:
            self.transient += 1

    def as_dict(self) -> dict:
        return asdict(self)


class OutageMonitor:
    """Flag a dead resolver from the first `sample` settled lookups.

    The verdict is taken once: when `sample` lookups have settled, or at the
    end of a run that had fewer candidates than that.
    """

    def __init__(self, sample: int):
        self.sample = sample
        self.seen = 0
        self.transient = 0
        self.decided = False

    def _verdict(self) -> bool:
        self.decided = True
        return self.seen > 0 and self.transient == self.seen

    def record(self, outcome: ResolutionOutcome) -> bool:
        if self.decided:
            return False
        self.seen += 1
        if isinstance(outcome, Failed) and outcome.kind is FailureKind.TRANSIENT:
            self.transient += 1
        if self.seen >= self.sample:
            return self._verdict()
        return False

    def finish(self) -> bool:
        if self.decided:
            return False
        return self._verdict()


class Enumerator:
    """Drive candidates through a resolver with at most `concurrency` lookups in flight."""

    def __init__(
        self,
        config: RunConfig,
        resolver: Any,
        baseline: WildcardBaseline = None,
        progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.baseline = baseline
        self.progress_callback = progress_callback
        self.stats = RunStats()
        self._monitor = OutageMonitor(config.outage_sample)

    def _should_retry(self, outcome: ResolutionOutcome) -> bool:
        if not isinstance(outcome, Failed):
            return False
        if outcome.kind is FailureKind.TRANSIENT:
            return True
        return self.config.retry_timeouts

    async def _lookup(self, fqdn: str) -> ResolutionOutcome:
        outcome = await self.resolver.resolve(fqdn, self.config.timeout)
        if self._should_retry(outcome):
            self.stats.retries += 1
            logger.debug("Retrying %s after %s", fqdn, outcome)
            outcome = await self.resolver.resolve(fqdn, self.config.timeout)
        return outcome

    def classify(self, label: str, fqdn: str, outcome: ResolutionOutcome) -> Optional[Finding]:
        if not isinstance(outcome, Resolved):
            return None
        if is_wildcard_match(outcome.addresses, self.baseline, self.config.wildcard_policy):
            self.stats.wildcard_suppressed += 1
            logger.debug("Suppressed %s: matches wildcard baseline", fqdn)
            return None
        return Finding(label=label, fqdn=fqdn, addresses=outcome.addresses)

    def _outage_error(self) -> ResolverUnavailableError:
        seen = self._monitor.seen
        message = f"All of the first {seen} lookups failed with resolver errors; DNS looks unreachable"
        logger.warning(message)
        return ResolverUnavailableError(message, sampled=seen)

    async def run(self, candidates: Iterable[str]) -> AsyncIterator[Finding]:
        """Yield findings in completion order until every candidate has settled.

        Raises `ResolverUnavailableError` when the outage monitor trips and
        `config.abort_on_outage` is set; pending lookups are cancelled first.
        """
        total: Optional[int] = None
        if hasattr(candidates, "__len__"):
            candidates = [label for label in (_clean_label(raw) for raw in candidates) if label]
            total = len(candidates)
        self.stats.total = total
        iterator = iter(candidates)
        queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=self.config.concurrency)

        async def worker() -> None:
            for raw in iterator:
                label = _clean_label(raw)
                if not label:
                    continue
                fqdn = self.config.fqdn(label)
                outcome = await self._lookup(fqdn)
                self.stats.record(outcome)
                finding = self.classify(label, fqdn, outcome)
                if finding is not None:
                    self.stats.findings += 1
                    await queue.put(finding)
                if self.progress_callback:
                    self.progress_callback(self.stats.settled, total)
                if self._monitor.record(outcome):
                    error = self._outage_error()
                    if self.config.abort_on_outage:
                        raise error

        worker_count = self.config.concurrency if total is None else max(1, min(self.config.concurrency, total))
        workers: List["asyncio.Task[None]"] = [asyncio.create_task(worker()) for _ in range(worker_count)]

        async def supervise() -> None:
            try:
                await asyncio.gather(*workers)
            except Exception:
                for task in workers:
                    task.cancel()
                await asyncio.gather(*workers, return_exceptions=True)
                await queue.put(_DONE)
                raise
            await queue.put(_DONE)

        supervisor = asyncio.create_task(supervise())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item
            await supervisor
        finally:
            if not supervisor.done():
                supervisor.cancel()
                for task in workers:
                    task.cancel()
                await asyncio.gather(supervisor, *workers, return_exceptions=True)

        if self._monitor.finish():
            error = self._outage_error()
            if self.config.abort_on_outage:
                raise error


async def run(
    candidates: Iterable[str],
    config: RunConfig,
    baseline: WildcardBaseline,
    resolver: Any,
    progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
) -> AsyncIterator[Finding]:
    """Functional form of `Enumerator.run`."""
    enumerator = Enumerator(config, resolver, baseline, progress_callback=progress_callback)
    async for finding in enumerator.run(candidates):
        yield finding
