from __future__ import annotations

"""Single-shot asynchronous DNS lookups.

`DnsResolver.resolve` is the only place that talks to the network. Every
call sends one UDP query to one nameserver and folds the response (or any
exception) into a `ResolutionOutcome`, so callers never need try/except
around it. Anything exposing the same coroutine signature (stub backends in
tests, for instance) can be passed to the wildcard detector and the
controller instead.
"""

import asyncio
import ipaddress
import itertools
import logging
from typing import Iterable, List, Optional

import dns.asyncquery
import dns.asyncresolver
import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype
import dns.resolver

from .models import FailureKind, Failed, NotFound, Resolved, ResolutionOutcome

logger = logging.getLogger("subruster")

FALLBACK_NAMESERVERS = ("8.8.8.8", "1.1.1.1")


class DnsResolver:
    """Send one query per lookup, rotating over the configured nameservers.

    `dns.asyncresolver.Resolver` is only used to read the system
    configuration; queries go out through `dns.asyncquery.udp` so a lookup
    never fails over to another server or retries on its own.
    """

    def __init__(self, nameservers: Optional[Iterable[str]] = None, record_type: str = "A", port: int = 53):
        self.record_type = record_type
        self._rdtype = dns.rdatatype.from_text(record_type)
        self._resolver = self._build_resolver(list(nameservers or ()), port)
        self._turn = itertools.count()

    @staticmethod
    def _build_resolver(nameservers: List[str], port: int) -> dns.asyncresolver.Resolver:
        if nameservers:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.port = port
            resolver.nameservers = nameservers
        else:
            try:
                resolver = dns.asyncresolver.Resolver()
            except dns.resolver.NoResolverConfiguration:
                logger.warning(
                    "No system resolver configuration found, using %s",
                    ", ".join(FALLBACK_NAMESERVERS),
                )
                resolver = dns.asyncresolver.Resolver(configure=False)
                resolver.nameservers = list(FALLBACK_NAMESERVERS)
        resolver.cache = None
        resolver.retry_servfail = False
        return resolver

    @property
    def nameservers(self) -> List[str]:
        return [str(getattr(ns, "address", ns)) for ns in self._resolver.nameservers]

    def _next_nameserver(self) -> Optional[str]:
        servers = self.nameservers
        if not servers:
            return None
        return servers[next(self._turn) % len(servers)]

    def _port_for(self, nameserver: str) -> int:
        return self._resolver.nameserver_ports.get(nameserver, self._resolver.port)

    async def _query(self, fqdn: str, timeout: float) -> ResolutionOutcome:
        where = self._next_nameserver()
        if where is None:
            return Failed(FailureKind.TRANSIENT, "no nameservers configured")

        query = dns.message.make_query(fqdn, self._rdtype)
        response = await dns.asyncquery.udp(query, where, timeout=timeout, port=self._port_for(where))

        rcode = response.rcode()
        if rcode in (dns.rcode.NXDOMAIN, dns.rcode.YXDOMAIN):
            return NotFound()
        if rcode != dns.rcode.NOERROR:
            return Failed(FailureKind.TRANSIENT, f"{dns.rcode.to_text(rcode)} from {where}")

        addresses = set()
        for rrset in response.answer:
            if rrset.rdtype != self._rdtype:
                continue
            for rr in rrset:
                ip_text = str(rr).strip()
                try:
                    ipaddress.ip_address(ip_text)
                except ValueError:
                    continue
                addresses.add(ip_text)
        if not addresses:
            return NotFound()
        return Resolved(frozenset(addresses))

    async def resolve(self, fqdn: str, timeout: float) -> ResolutionOutcome:
        """Resolve `fqdn` once, giving up after `timeout` seconds.

        The deadline is enforced twice: the UDP exchange gets it as its own
        timeout, and `asyncio.wait_for` cancels the query task if that
        overruns, so a stuck lookup never outlives its timeout.
        """
        try:
            return await asyncio.wait_for(self._query(fqdn, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            return Failed(FailureKind.TIMEOUT, "deadline exceeded")
        except dns.exception.Timeout as exc:
            return Failed(FailureKind.TIMEOUT, str(exc) or "timeout")
        except (dns.exception.DNSException, OSError) as exc:
            return Failed(FailureKind.TRANSIENT, f"{exc.__class__.__name__}: {exc}")
