from __future__ import annotations

import asyncio
import re

import pytest

from subruster.core import NotFound, detect_wildcard, is_wildcard_match, probe_label

from dns_stubs import TIMEOUT, TRANSIENT, StubResolver, resolved


def test_probe_label_is_long_random_and_valid():
    labels = {probe_label() for _ in range(50)}
    assert len(labels) == 50
    for label in labels:
        assert 20 <= len(label) <= 30
        assert re.match(r"^[a-z][a-z0-9]+$", label)
    assert len(probe_label(12)) == 12


def test_detect_wildcard_none_when_probes_not_found():
    stub = StubResolver()
    assert asyncio.run(detect_wildcard(stub, "example.com", 1.0)) is None
    assert len(stub.calls) == 3
    assert len(set(stub.calls)) == 3
    assert all(call.endswith(".example.com") for call in stub.calls)


def test_detect_wildcard_returns_consistent_address_set():
    stub = StubResolver(wildcard=frozenset({"9.9.9.9", "9.9.9.8"}))
    baseline = asyncio.run(detect_wildcard(stub, "example.com", 1.0, probes=5))
    assert baseline == frozenset({"9.9.9.9", "9.9.9.8"})
    assert len(stub.calls) == 5


class _RotatingStub(StubResolver):
    """Catch-all that answers each probe with the next scripted outcome."""

    def __init__(self, outcomes):
        super().__init__()
        self.outcomes = list(outcomes)

    async def resolve(self, fqdn, timeout):
        self.calls.append(fqdn)
        return self.outcomes.pop(0)


@pytest.mark.parametrize(
    "outcomes",
    [
        [resolved("9.9.9.9"), resolved("9.9.9.9"), resolved("9.9.9.7")],
        [resolved("9.9.9.9"), resolved("9.9.9.9"), NotFound()],
        [resolved("9.9.9.9"), TIMEOUT, resolved("9.9.9.9")],
        [TRANSIENT, resolved("9.9.9.9"), resolved("9.9.9.9")],
        [resolved("9.9.9.9"), resolved("9.9.9.9", "9.9.9.8"), resolved("9.9.9.9")],
    ],
)
def test_detect_wildcard_none_on_any_miss_or_disagreement(outcomes):
    stub = _RotatingStub(outcomes)
    assert asyncio.run(detect_wildcard(stub, "example.com", 1.0)) is None
    assert len(stub.calls) == 3


def test_detect_wildcard_waits_for_every_probe():
    stub = StubResolver(wildcard=frozenset({"9.9.9.9"}), delay=0.05)
    asyncio.run(detect_wildcard(stub, "example.com", 1.0))
    assert stub.active == 0
    assert len(stub.calls) == 3


def test_is_wildcard_match_policies():
    baseline = frozenset({"9.9.9.9", "9.9.9.8"})
    same = frozenset({"9.9.9.9", "9.9.9.8"})
    subset = frozenset({"9.9.9.9"})
    partial = frozenset({"9.9.9.9", "2.2.2.2"})
    other = frozenset({"2.2.2.2"})

    assert is_wildcard_match(same, baseline) is True
    assert is_wildcard_match(subset, baseline) is False
    assert is_wildcard_match(partial, baseline) is False

    assert is_wildcard_match(subset, baseline, "subset") is True
    assert is_wildcard_match(partial, baseline, "subset") is False

    assert is_wildcard_match(partial, baseline, "overlap") is True
    assert is_wildcard_match(other, baseline, "overlap") is False


def test_is_wildcard_match_without_baseline_never_matches():
    assert is_wildcard_match(frozenset({"1.1.1.1"}), None) is False
    assert is_wildcard_match(frozenset({"1.1.1.1"}), None, "overlap") is False


def test_is_wildcard_match_rejects_unknown_policy():
    with pytest.raises(ValueError):
        is_wildcard_match(frozenset({"1.1.1.1"}), frozenset({"1.1.1.1"}), "fuzzy")


def test_detect_wildcard_limits_lookups_in_flight():
    stub = StubResolver(wildcard=frozenset({"9.9.9.9"}), delay=0.02)
    baseline = asyncio.run(detect_wildcard(stub, "example.com", 1.0, probes=3, concurrency=1))
    assert baseline == frozenset({"9.9.9.9"})
    assert stub.max_active == 1
    assert len(stub.calls) == 3
