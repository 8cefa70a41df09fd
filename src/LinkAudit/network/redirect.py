# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.network.redirect",
#   "purpose": "Bounded manual redirect resolution from seed identifiers to canonical item pages.",
#   "sections": [
#     {
#       "id": "anchorcollector",
#       "name": "_AnchorCollector",
#       "anchor": "class-anchorcollector",
#       "kind": "class"
#     },
#     {
#       "id": "extract-anchor-targets",
#       "name": "extract_anchor_targets",
#       "anchor": "function-extract-anchor-targets",
#       "kind": "function"
#     },
#     {
#       "id": "redirectresolver",
#       "name": "RedirectResolver",
#       "anchor": "class-redirectresolver",
#       "kind": "class"
#     },
#     {
#       "id": "format-audit-trail",
#       "name": "format_audit_trail",
#       "anchor": "function-format-audit-trail",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Bounded manual redirect resolution.

Handle-style identifiers reach the item page a crawler can check only after
one or more indirections, and the link checker stops at the first redirect it
sees. This module walks the chain itself:

- **Explicit hops**: the transport never follows redirects; each 3xx
  ``Location`` is resolved against the request URL and recorded
- **Item-page detection**: with a canonical prefix configured, the walk
  continues until the URI is an item page, independent of status code; a 2xx
  landing page is scanned for its first anchor into the item space
- **Hop bound**: a chain of exactly ``max_hops`` hops succeeds, one more fails
- **No raising**: every failure is recorded on the returned ResolvedLink

Example:
    >>> resolver = RedirectResolver(client, canonical_prefix="https://repo.example/items/")
    >>> link = resolver.resolve("https://repo.example/handle/11205/42")
    >>> link.canonical_url
    'https://repo.example/items/7f3c...'
"""

import logging
from html.parser import HTMLParser
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple, Union

import httpx

from LinkAudit.models import ResolvedLink, RunStatistics, SeedURI
from LinkAudit.network.policy import DEFAULT_MAX_HOPS, REDIRECT_STATUS_CODES

if TYPE_CHECKING:
    from LinkAudit.network.polite_client import PoliteHttpClient
    from LinkAudit.settings import ResolverSettings

logger = logging.getLogger(__name__)

HOP_LIMIT_EXCEEDED = "hop limit exceeded"
MISSING_LOCATION = "redirect without Location header"
NO_CANONICAL_LINK = "no canonical link found"


# ============================================================================
# Anchor Extraction
# ============================================================================


class _AnchorCollector(HTMLParser):
    """Collect ``href`` targets of ``<a>`` elements in document order."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.hrefs: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag.lower() != "a":
            return
        for name, value in attrs:
            if name.lower() == "href" and value:
                self.hrefs.append(value.strip())


def extract_anchor_targets(html_text: str, base_url: Union[str, httpx.URL]) -> List[str]:
    """Return every anchor target in ``html_text`` resolved against ``base_url``."""
    collector = _AnchorCollector()
    collector.feed(html_text)
    collector.close()
    base = httpx.URL(str(base_url))
    targets: List[str] = []
    for href in collector.hrefs:
        try:
            targets.append(str(base.join(href)))
        except httpx.InvalidURL:
            logger.debug("Skipping unparseable anchor", extra={"href": href})
    return targets


# ============================================================================
# Resolver
# ============================================================================


class RedirectResolver:
    """Follow each seed's redirect chain to its canonical URL.

    Args:
        client: A PoliteHttpClient or any object with ``request(method, url, ...)``
        max_hops: Maximum hops followed per seed
        canonical_prefix: URL prefix identifying item pages
        method: Method used for each hop (HEAD by default)
        scan_body_links: Follow the first item-page anchor on 2xx landing pages
    """

    def __init__(
        self,
        client: "PoliteHttpClient",
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        canonical_prefix: Optional[str] = None,
        method: str = "HEAD",
        scan_body_links: bool = True,
    ):
        if max_hops < 1:
            raise ValueError(f"max_hops must be at least 1, got: {max_hops}")
        self._client = client
        self.max_hops = max_hops
        self.canonical_prefix = canonical_prefix or None
        self.method = method.upper()
        self.scan_body_links = scan_body_links

    @classmethod
    def from_settings(
        cls, client: "PoliteHttpClient", resolver_settings: "ResolverSettings"
    ) -> "RedirectResolver":
        """Build a resolver from :class:`~LinkAudit.settings.ResolverSettings`."""
        return cls(
            client,
            max_hops=resolver_settings.max_hops,
            canonical_prefix=resolver_settings.canonical_prefix,
            method=resolver_settings.method,
            scan_body_links=resolver_settings.scan_body_links,
        )

    def is_canonical(self, uri: str) -> bool:
        return self.canonical_prefix is not None and uri.startswith(self.canonical_prefix)

    def resolve(self, seed: Union[str, SeedURI]) -> ResolvedLink:
        """Resolve one seed; failures are returned, never raised."""
        if isinstance(seed, str):
            seed = SeedURI(uri=seed, identifier=seed)

        trail: List[Tuple[str, int]] = []
        current = seed.uri
        hops = 0

        def _fail(reason: str) -> ResolvedLink:
            logger.info(
                "Seed resolution failed",
                extra={"seed": seed.uri, "reason": reason, "last_uri": current, "hops": hops},
            )
            return ResolvedLink(seed=seed, trail=tuple(trail), failure=reason, last_uri=current)

        def _hop_limit() -> ResolvedLink:
            return _fail(
                f"{HOP_LIMIT_EXCEEDED} (max {self.max_hops}): {format_audit_trail(trail)}"
            )

        while True:
            if self.is_canonical(current):
                return self._success(seed, current, trail, hops)

            try:
                response = self._client.request(self.method, current, key="resolver")
            except httpx.HTTPError as exc:
                return _fail(f"request error: {type(exc).__name__}: {exc}")
            trail.append((current, response.status_code))

            if response.status_code in REDIRECT_STATUS_CODES:
                location = response.headers.get("location")
                if not location:
                    return _fail(f"{MISSING_LOCATION} (status {response.status_code})")
                if hops >= self.max_hops:
                    return _hop_limit()
                try:
                    current = str(response.url.join(location))
                except httpx.InvalidURL as exc:
                    return _fail(f"invalid Location {location!r}: {exc}")
                hops += 1
                logger.debug(
                    "Following redirect",
                    extra={"from": trail[-1][0], "to": current, "status": response.status_code, "hop": hops},
                )
                continue

            if not response.is_success:
                return _fail(f"error status {response.status_code}")

            if self.canonical_prefix is None:
                return self._success(seed, current, trail, hops)

            if not self.scan_body_links:
                return _fail(f"{NO_CANONICAL_LINK} (landed on {current})")
            if hops >= self.max_hops:
                return _hop_limit()

            try:
                page = response if self.method == "GET" else self._client.request("GET", current, key="resolver")
            except httpx.HTTPError as exc:
                return _fail(f"request error: {type(exc).__name__}: {exc}")
            if page is not response:
                trail.append((current, page.status_code))
                if not page.is_success:
                    return _fail(f"error status {page.status_code}")

            target = self._first_canonical_anchor(page.text, page.url)
            if target is None:
                return _fail(f"{NO_CANONICAL_LINK} (landed on {current})")
            current = target
            hops += 1
            logger.debug("Following item-page anchor", extra={"to": current, "hop": hops})

    def resolve_all(
        self,
        seeds: Iterable[Union[str, SeedURI]],
        statistics: Optional[RunStatistics] = None,
    ) -> List[ResolvedLink]:
        """Resolve seeds in order, one ResolvedLink per seed."""
        results: List[ResolvedLink] = []
        for seed in seeds:
            link = self.resolve(seed)
            results.append(link)
            if statistics is not None:
                if link.ok:
                    statistics.resolved += 1
                else:
                    statistics.resolution_failures += 1
                    statistics.record_failure((link.failure or "unresolved").split(" (")[0].split(":")[0])
        logger.info(
            "Resolved seeds",
            extra={
                "seeds": len(results),
                "resolved": sum(1 for link in results if link.ok),
                "failed": sum(1 for link in results if not link.ok),
            },
        )
        return results

    def _first_canonical_anchor(self, html_text: str, base_url) -> Optional[str]:
        for target in extract_anchor_targets(html_text, base_url):
            if self.is_canonical(target):
                return target
        return None

    @staticmethod
    def _success(seed: SeedURI, url: str, trail: List[Tuple[str, int]], hops: int) -> ResolvedLink:
        logger.debug("Seed resolved", extra={"seed": seed.uri, "canonical_url": url, "hops": hops})
        return ResolvedLink(seed=seed, canonical_url=url, trail=tuple(trail), last_uri=url)


# ============================================================================
# Utilities
# ============================================================================


def format_audit_trail(audit_trail: Sequence[Tuple[str, int]]) -> str:
    """Format an audit trail as ``"http://a (301) -> http://b (200)"``."""
    return " -> ".join(f"{url} ({status})" for url, status in audit_trail)


__all__ = [
    "HOP_LIMIT_EXCEEDED",
    "MISSING_LOCATION",
    "NO_CANONICAL_LINK",
    "RedirectResolver",
    "extract_anchor_targets",
    "format_audit_trail",
]
