from __future__ import annotations

"""Wildcard (catch-all) DNS detection.

A zone with `*.example.com` answers every label, so brute forcing it would
report the whole wordlist. Before enumeration we resolve a few labels that
cannot exist; if all of them come back with the same address set, that set
is the baseline every candidate is compared against.
"""

import asyncio
import logging
import random
import string
from typing import Any, FrozenSet, List, Optional

from .models import FailureKind, Failed, Resolved, ResolutionOutcome, WildcardBaseline

logger = logging.getLogger("subruster")

PROBE_ALPHABET = string.ascii_lowercase + string.digits
PROBE_MIN_LENGTH = 20
PROBE_MAX_LENGTH = 30


def probe_label(length: Optional[int] = None) -> str:
    size = length or random.randint(PROBE_MIN_LENGTH, PROBE_MAX_LENGTH)
    # first character is always a letter
    return random.choice(string.ascii_lowercase) + "".join(random.choice(PROBE_ALPHABET) for _ in range(size - 1))


async def detect_wildcard(
    resolver: Any,
    domain: str,
    timeout: float,
    probes: int = 3,
    concurrency: Optional[int] = None,
) -> WildcardBaseline:
    """Return the catch-all address set for `domain`, or None.

    All probes are awaited before returning, with at most `concurrency` of
    them in flight. A single NotFound, a failure of any kind (timeouts
    included) or two probes that disagree means no baseline.
    """
    labels: List[str] = []
    while len(labels) < probes:
        label = probe_label()
        if label not in labels:
            labels.append(label)

    limiter = asyncio.Semaphore(max(1, concurrency or probes))

    async def probe(label: str) -> ResolutionOutcome:
        async with limiter:
            return await resolver.resolve(f"{label}.{domain}", timeout)

    outcomes = await asyncio.gather(*(probe(label) for label in labels))

    for label, outcome in zip(labels, outcomes):
        logger.debug("Wildcard probe %s.%s -> %s", label, domain, outcome)

    if outcomes and all(isinstance(o, Failed) and o.kind is FailureKind.TRANSIENT for o in outcomes):
        logger.warning("Every wildcard probe failed with a resolver error; DNS may be unreachable")

    if not all(isinstance(o, Resolved) for o in outcomes):
        return None

    first = outcomes[0].addresses
    if any(o.addresses != first for o in outcomes[1:]):
        logger.info("Wildcard probes for %s disagree; not filtering", domain)
        return None
    return first


def is_wildcard_match(addresses: FrozenSet[str], baseline: WildcardBaseline, policy: str = "exact") -> bool:
    """Tell whether `addresses` is explained by the catch-all baseline.

    - exact: identical sets only
    - subset: every address belongs to the baseline
    - overlap: at least one address is shared with the baseline
    """
    if baseline is None:
        return False
    if policy == "exact":
        return addresses == baseline
    if policy == "subset":
        return bool(addresses) and addresses <= baseline
    if policy == "overlap":
        return bool(addresses & baseline)
    raise ValueError(f"Unknown wildcard policy: {policy}")
