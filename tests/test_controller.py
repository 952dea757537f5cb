from __future__ import annotations

import asyncio
import time

import pytest

from subruster.core import (
    DnsResolver,
    Enumerator,
    NotFound,
    OutageMonitor,
    ResolverUnavailableError,
    RunConfig,
    _run_async,
    run,
)

from dns_stubs import TIMEOUT, TRANSIENT, StubResolver, resolved

WORDS = ["www", "mail", "ghost123xyz"]


def _config(**kwargs) -> RunConfig:
    return RunConfig.build("example.com", **kwargs)


def _collect(config, candidates, resolver, baseline=None):
    async def go():
        enumerator = Enumerator(config, resolver, baseline)
        findings = [f async for f in enumerator.run(candidates)]
        return findings, enumerator.stats

    return asyncio.run(go())


def _fqdns(findings):
    return {f.fqdn for f in findings}


def test_scenario_without_wildcard():
    stub = StubResolver({"www": resolved("1.1.1.1"), "mail": resolved("2.2.2.2"), "ghost123xyz": NotFound()})
    result = asyncio.run(_run_async(_config(), WORDS, resolver=stub))

    assert result.baseline is None
    assert _fqdns(result.findings) == {"www.example.com", "mail.example.com"}
    assert result.stats.settled == 3
    assert result.stats.not_found == 1


def test_scenario_with_catch_all_wildcard():
    stub = StubResolver({"www": resolved("9.9.9.9"), "mail": resolved("2.2.2.2")}, wildcard=frozenset({"9.9.9.9"}))
    result = asyncio.run(_run_async(_config(), WORDS, resolver=stub))

    assert result.baseline == frozenset({"9.9.9.9"})
    assert _fqdns(result.findings) == {"mail.example.com"}
    assert result.stats.wildcard_suppressed == 2


def test_wildcard_baseline_is_settled_before_first_candidate():
    stub = StubResolver({"www": resolved("1.1.1.1")}, wildcard=frozenset({"9.9.9.9"}))
    asyncio.run(_run_async(_config(), ["www", "mail"], resolver=stub))
    probes = stub.calls[:3]
    assert all(call.split(".", 1)[0] not in {"www", "mail"} for call in probes)
    assert sorted(stub.calls[3:]) == ["mail.example.com", "www.example.com"]


def test_no_finding_equals_the_baseline():
    baseline = frozenset({"9.9.9.9"})
    answers = {f"host{i}": resolved("9.9.9.9") if i % 3 else resolved(f"10.0.0.{i}") for i in range(60)}
    stub = StubResolver(answers, wildcard=baseline)
    findings, stats = _collect(_config(concurrency=8), list(answers), stub, baseline)
    assert findings
    assert all(f.addresses != baseline for f in findings)
    assert stats.wildcard_suppressed + stats.findings == 60


def test_partial_overlap_with_baseline_is_reported_by_default():
    baseline = frozenset({"9.9.9.9"})
    stub = StubResolver({"api": resolved("9.9.9.9", "3.3.3.3")})
    findings, _ = _collect(_config(), ["api"], stub, baseline)
    assert _fqdns(findings) == {"api.example.com"}

    findings, stats = _collect(_config(wildcard_policy="overlap"), ["api"], stub, baseline)
    assert findings == []
    assert stats.wildcard_suppressed == 1


def test_every_resolved_candidate_is_a_finding_without_baseline():
    answers = {f"h{i}": resolved(f"10.0.1.{i}") for i in range(25)}
    answers.update({f"x{i}": NotFound() for i in range(25)})
    stub = StubResolver(answers)
    findings, _ = _collect(_config(concurrency=10), list(answers), stub)
    assert _fqdns(findings) == {f"h{i}.example.com" for i in range(25)}


@pytest.mark.parametrize("count", [1, 7, 50, 300])
def test_concurrency_never_exceeds_limit(count):
    stub = StubResolver(default=resolved("10.1.1.1"), delay=0.005)
    findings, stats = _collect(_config(concurrency=7), [f"w{i}" for i in range(count)], stub)
    assert stub.max_active <= 7
    assert stub.max_active == min(7, count)
    assert len(findings) == count
    assert stats.settled == count


@pytest.mark.parametrize("concurrency", [1, 2])
def test_whole_run_respects_concurrency_including_wildcard_checks(concurrency):
    stub = StubResolver(default=resolved("10.1.1.2"), delay=0.02)
    result = asyncio.run(_run_async(_config(concurrency=concurrency), ["a", "b", "c"], resolver=stub))
    assert stub.max_active == concurrency
    assert len(stub.calls) == 3 + 3
    assert result.baseline == frozenset({"10.1.1.2"})


def test_transient_failure_is_retried_once():
    stub = StubResolver({"flaky": [TRANSIENT, resolved("4.4.4.4")], "dead": [TRANSIENT, TRANSIENT, resolved("5.5.5.5")]})
    findings, stats = _collect(_config(), ["flaky", "dead"], stub)

    assert _fqdns(findings) == {"flaky.example.com"}
    assert stub.calls_for("flaky") == 2
    assert stub.calls_for("dead") == 2
    assert stats.retries == 2
    assert stats.transient == 1


def test_timeout_is_not_retried_by_default():
    stub = StubResolver({"slow": [TIMEOUT, resolved("6.6.6.6")]})
    findings, stats = _collect(_config(), ["slow"], stub)
    assert findings == []
    assert stub.calls_for("slow") == 1
    assert stats.timeouts == 1


def test_timeout_retry_can_be_enabled():
    stub = StubResolver({"slow": [TIMEOUT, resolved("6.6.6.6")]})
    findings, stats = _collect(_config(retry_timeouts=True), ["slow"], stub)
    assert _fqdns(findings) == {"slow.example.com"}
    assert stats.retries == 1


def test_hung_lookups_release_workers_after_timeout(monkeypatch):
    client = DnsResolver(nameservers=["127.0.0.1"])

    async def never_answers(fqdn, timeout):
        await asyncio.sleep(3600)

    monkeypatch.setattr(client, "_query", never_answers)
    config = _config(concurrency=2, timeout=0.2)

    started = time.monotonic()
    findings, stats = _collect(config, ["a", "b", "c", "d"], client)
    elapsed = time.monotonic() - started

    assert findings == []
    assert stats.timeouts == 4
    # two rounds of two lookups, each bounded by its own deadline
    assert elapsed < 2 * 0.2 + 0.6


def test_pipeline_is_idempotent_on_deterministic_backend():
    answers = {f"n{i}": resolved(f"10.2.0.{i % 5}") if i % 2 else NotFound() for i in range(40)}
    baseline = frozenset({"10.2.0.1"})

    first, _ = _collect(_config(concurrency=6), list(answers), StubResolver(answers), baseline)
    second, _ = _collect(_config(concurrency=13), list(answers), StubResolver(answers), baseline)
    assert _fqdns(first) == _fqdns(second)
    assert set(first) == set(second)


def test_unsized_candidates_and_progress_callback():
    progress = []
    stub = StubResolver(default=resolved("10.3.0.1"))

    async def go():
        enumerator = Enumerator(_config(concurrency=3), stub, progress_callback=lambda d, t: progress.append((d, t)))
        return [f async for f in enumerator.run(label for label in ["a", "b", "", "c"])]

    findings = asyncio.run(go())
    assert _fqdns(findings) == {"a.example.com", "b.example.com", "c.example.com"}
    assert progress[-1] == (3, None)
    assert [d for d, _ in progress] == [1, 2, 3]


def test_progress_total_ignores_blank_candidates():
    progress = []
    stub = StubResolver(default=resolved("10.3.0.2"))

    async def go():
        enumerator = Enumerator(_config(concurrency=2), stub, progress_callback=lambda d, t: progress.append((d, t)))
        findings = [f async for f in enumerator.run(["www", "", "   ", "MAIL"])]
        return findings, enumerator.stats

    findings, stats = asyncio.run(go())
    assert _fqdns(findings) == {"www.example.com", "mail.example.com"}
    assert stats.total == 2
    assert progress[-1] == (2, 2)


def test_functional_run_matches_enumerator():
    stub = StubResolver({"www": resolved("1.1.1.1")})

    async def go():
        return [f async for f in run(["www", "nope"], _config(), None, stub)]

    assert _fqdns(asyncio.run(go())) == {"www.example.com"}


def test_early_close_cancels_pending_workers():
    stub = StubResolver(default=resolved("10.4.0.1"), delay=0.01)

    async def go():
        enumerator = Enumerator(_config(concurrency=5), stub)
        stream = enumerator.run([f"w{i}" for i in range(500)])
        first = await stream.__anext__()
        await stream.aclose()
        await asyncio.sleep(0.05)
        return first

    first = asyncio.run(go())
    assert first.fqdn.endswith(".example.com")
    assert stub.active == 0
    assert len(stub.calls) < 500


def test_outage_aborts_when_every_sampled_lookup_fails():
    stub = StubResolver(default=TRANSIENT, delay=0.001)
    config = RunConfig.build("example.com", concurrency=4, outage_sample=10)

    async def go():
        enumerator = Enumerator(config, stub)
        return [f async for f in enumerator.run([f"w{i}" for i in range(200)])]

    with pytest.raises(ResolverUnavailableError) as excinfo:
        asyncio.run(go())
    assert excinfo.value.sampled == 10
    assert len(stub.calls) < 100


def test_outage_is_only_a_warning_when_abort_disabled():
    stub = StubResolver(default=TRANSIENT)
    config = RunConfig.build("example.com", concurrency=4, outage_sample=10, abort_on_outage=False)
    findings, stats = _collect(config, [f"w{i}" for i in range(30)], stub)
    assert findings == []
    assert stats.settled == 30
    assert stats.transient == 30


def test_short_run_with_only_resolver_errors_is_an_outage():
    stub = StubResolver(default=TRANSIENT)
    with pytest.raises(ResolverUnavailableError):
        _collect(_config(), ["a", "b"], stub)


def test_mixed_failures_do_not_trip_outage_monitor():
    answers = {f"w{i}": TRANSIENT for i in range(20)}
    answers["w2"] = NotFound()
    findings, stats = _collect(RunConfig.build("example.com", outage_sample=5), list(answers), StubResolver(answers))
    assert findings == []
    assert stats.settled == 20


def test_outage_monitor_decides_once():
    monitor = OutageMonitor(sample=2)
    assert monitor.record(TRANSIENT) is False
    assert monitor.record(TRANSIENT) is True
    assert monitor.record(TRANSIENT) is False
    assert monitor.finish() is False

    healthy = OutageMonitor(sample=2)
    healthy.record(TRANSIENT)
    assert healthy.record(NotFound()) is False
    assert healthy.finish() is False
