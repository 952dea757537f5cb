from __future__ import annotations

"""Value types shared by the resolver, wildcard detector and controller.

Everything here is immutable once built and shared across worker tasks as is.
"""

import enum
import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

from .errors import ConfigurationError

DEFAULT_CONCURRENCY = 100
DEFAULT_TIMEOUT = 5.0
DEFAULT_WILDCARD_PROBES = 3
DEFAULT_OUTAGE_SAMPLE = 50
RECORD_TYPES = ("A", "AAAA")
WILDCARD_POLICIES = ("exact", "subset", "overlap")

_LABEL_RE = re.compile(r"^[a-z0-9_-]+$")


def normalize_domain(domain: Optional[str]) -> Optional[str]:
    """Return a lower-case ASCII domain, or None when the input is not one."""
    host = (domain or "").strip().lower()
    if not host:
        return None

    host = re.sub(r"^\w+://", "", host)
    host = host.split("/", 1)[0].split(":", 1)[0].strip(".")
    if not host or " " in host:
        return None

    try:
        host = host.encode("idna").decode("ascii")
    except Exception:
        return None

    if len(host) > 253:
        return None
    labels = host.split(".")
    if any(not lbl or len(lbl) > 63 for lbl in labels):
        return None
    if any(not _LABEL_RE.match(lbl) or lbl.startswith("-") or lbl.endswith("-") for lbl in labels):
        return None
    return host


class FailureKind(str, enum.Enum):
    TIMEOUT = "timeout"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Resolved:
    addresses: FrozenSet[str]


@dataclass(frozen=True)
class NotFound:
    """Authoritative negative or empty answer."""


@dataclass(frozen=True)
class Failed:
    kind: FailureKind
    reason: Optional[str] = field(default=None, compare=False)


ResolutionOutcome = Union[Resolved, NotFound, Failed]
WildcardBaseline = Optional[FrozenSet[str]]


@dataclass(frozen=True)
class Finding:
    """A candidate that resolved to something the wildcard does not explain."""

    label: str
    fqdn: str
    addresses: FrozenSet[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"domain": self.fqdn, "label": self.label, "ip": sorted(self.addresses)}


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _parse_nameservers(values: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = values.split(",")
    servers = []
    for raw in values:
        text = str(raw or "").strip()
        if not text:
            continue
        try:
            ipaddress.ip_address(text)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid DNS server address: {text}") from exc
        if text not in servers:
            servers.append(text)
    return tuple(servers)


@dataclass(frozen=True)
class RunConfig:
    """Process-wide settings, built once by `RunConfig.build` and never mutated."""

    domain: str
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    silent: bool = False
    nameservers: Tuple[str, ...] = ()
    record_type: str = "A"
    wildcard_probes: int = DEFAULT_WILDCARD_PROBES
    wildcard_policy: str = "exact"
    retry_timeouts: bool = False
    abort_on_outage: bool = True
    outage_sample: int = DEFAULT_OUTAGE_SAMPLE

    @classmethod
    def build(
        cls,
        domain: Optional[str],
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        silent: bool = False,
        nameservers: Union[str, Iterable[str], None] = None,
        record_type: Optional[str] = None,
        wildcard_probes: Optional[int] = None,
        wildcard_policy: Optional[str] = None,
        retry_timeouts: bool = False,
        abort_on_outage: bool = True,
        outage_sample: Optional[int] = None,
    ) -> "RunConfig":
        if not domain or not str(domain).strip():
            raise ConfigurationError("A target domain is required")
        normalized = normalize_domain(str(domain))
        if not normalized:
            raise ConfigurationError(f"Invalid domain: {domain}")

        concurrency = DEFAULT_CONCURRENCY if concurrency is None else concurrency
        if not _is_positive_int(concurrency):
            raise ConfigurationError(f"Concurrency must be a positive integer, got {concurrency!r}")

        timeout = DEFAULT_TIMEOUT if timeout is None else timeout
        try:
            timeout = float(timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Timeout must be a number, got {timeout!r}") from exc
        if not timeout > 0:
            raise ConfigurationError(f"Timeout must be positive, got {timeout}")

        rtype = (record_type or "A").strip().upper()
        if rtype not in RECORD_TYPES:
            raise ConfigurationError(f"Unsupported record type: {record_type} (use A or AAAA)")

        policy = (wildcard_policy or "exact").strip().lower()
        if policy not in WILDCARD_POLICIES:
            raise ConfigurationError(
                f"Unsupported wildcard policy: {wildcard_policy} (use {', '.join(WILDCARD_POLICIES)})"
            )

        probes = DEFAULT_WILDCARD_PROBES if wildcard_probes is None else wildcard_probes
        if not _is_positive_int(probes):
            raise ConfigurationError(f"Wildcard probes must be a positive integer, got {probes!r}")

        sample = DEFAULT_OUTAGE_SAMPLE if outage_sample is None else outage_sample
        if not _is_positive_int(sample):
            raise ConfigurationError(f"Outage sample must be a positive integer, got {sample!r}")

        return cls(
            domain=normalized,
            concurrency=concurrency,
            timeout=timeout,
            silent=bool(silent),
            nameservers=_parse_nameservers(nameservers),
            record_type=rtype,
            wildcard_probes=probes,
            wildcard_policy=policy,
            retry_timeouts=bool(retry_timeouts),
            abort_on_outage=bool(abort_on_outage),
            outage_sample=sample,
        )

    def fqdn(self, label: str) -> str:
        return f"{label}.{self.domain}"

    def as_settings(self) -> Dict[str, Any]:
        return {
            "concurrency": self.concurrency,
            "timeout": self.timeout,
            "dns": list(self.nameservers),
            "record_type": self.record_type,
            "wildcard_probes": self.wildcard_probes,
            "wildcard_policy": self.wildcard_policy,
            "retry_timeouts": self.retry_timeouts,
            "abort_on_outage": self.abort_on_outage,
        }
