# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.harvester",
#   "purpose": "Drive an OAI-PMH ListRecords listing to completion and emit seed URIs",
#   "sections": [
#     {"id": "harvestresult", "name": "HarvestResult", "anchor": "class-harvestresult", "kind": "class"},
#     {"id": "listingpage", "name": "ListingPage", "anchor": "class-listingpage", "kind": "class"},
#     {"id": "parse-listing-page", "name": "parse_listing_page", "anchor": "function-parse-listing-page", "kind": "function"},
#     {"id": "oaipmhharvester", "name": "OaiPmhHarvester", "anchor": "class-oaipmhharvester", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Paginated harvester for repository platforms without a crawlable entry point.

The harvester pages through ``verb=ListRecords`` and pulls one identifier per
record. Two cursor styles are supported:

* **Protocol tokens** (preferred): each page's ``resumptionToken`` drives the
  next request; an empty token, a ``noRecordsMatch`` error or an empty page
  ends the listing.
* **Counter-derived tokens** (fallback): when a page carries no token, the
  next cursor is rendered from a running record offset through
  ``resumption_template`` and the listing is bounded by a page budget.

Every request goes through the polite client, so the configured minimum
interval separates consecutive pages.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

import httpx

from .errors import ConfigurationError, RemoteCallError
from .models import RunStatistics, SeedURI

if TYPE_CHECKING:
    from .network.polite_client import PoliteHttpClient
    from .settings import HarvestSettings

__all__ = [
    "OAI_NAMESPACE",
    "HarvestResult",
    "ListingPage",
    "parse_listing_page",
    "rewrite_identifier",
    "OaiPmhHarvester",
]

logger = logging.getLogger(__name__)

OAI_NAMESPACE = "http://www.openarchives.org/OAI/2.0/"
_OAI = f"{{{OAI_NAMESPACE}}}"


@dataclass(frozen=True)
class HarvestResult:
    """Outcome of one listing pass.

    Attributes:
        seeds: Seed URIs in listing order
        pages_fetched: Pages that returned a parseable response
        page_failures: Pages that failed and were skipped
        exhausted: True when the listing reached its natural or budgeted end
    """

    seeds: Tuple[SeedURI, ...]
    pages_fetched: int
    page_failures: int
    exhausted: bool


@dataclass(frozen=True)
class ListingPage:
    """Parsed content of one ``ListRecords`` response.

    ``resumption_token`` is ``None`` when the element is absent and ``""`` when
    it is present but empty.
    """

    identifiers: Tuple[str, ...]
    record_count: int
    resumption_token: Optional[str]
    error_code: Optional[str] = None

    @property
    def no_records(self) -> bool:
        return self.error_code == "noRecordsMatch" or self.record_count == 0


def parse_listing_page(content: bytes, identifier_path: str, namespaces: Dict[str, str]) -> ListingPage:
    """Parse a ``ListRecords`` response body.

    Raises:
        RemoteCallError: If the body is not XML or carries an OAI-PMH error other
            than ``noRecordsMatch``.
    """

    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise RemoteCallError(f"Unparseable listing page: {exc}") from exc

    error = root.find(f"{_OAI}error")
    if error is not None:
        code = error.get("code", "")
        if code != "noRecordsMatch":
            raise RemoteCallError(f"OAI-PMH error {code}: {(error.text or '').strip()}")
        return ListingPage(identifiers=(), record_count=0, resumption_token="", error_code=code)

    identifiers = tuple(
        text
        for text in ((element.text or "").strip() for element in root.findall(identifier_path, namespaces))
        if text
    )
    record_count = len(root.findall(f"{_OAI}ListRecords/{_OAI}record"))
    token_element = root.find(f"{_OAI}ListRecords/{_OAI}resumptionToken")
    token = None if token_element is None else (token_element.text or "").strip()
    return ListingPage(identifiers=identifiers, record_count=record_count, resumption_token=token)


def rewrite_identifier(identifier: str, rewrite_from: Optional[str], rewrite_to: Optional[str]) -> str:
    """Apply the single configured substitution to a harvested identifier."""

    if rewrite_from and rewrite_to is not None:
        return identifier.replace(rewrite_from, rewrite_to, 1)
    return identifier


class OaiPmhHarvester:
    """Harvest seed URIs from an OAI-PMH endpoint.

    Args:
        client: A PoliteHttpClient (or any object with ``get(url, key=..., params=...)``)
        harvest_settings: :class:`~LinkAudit.settings.HarvestSettings`
    """

    def __init__(self, client: PoliteHttpClient, harvest_settings: HarvestSettings) -> None:
        if not harvest_settings.base_url:
            raise ConfigurationError("harvest.base_url is required to harvest seeds")
        self._client = client
        self._settings = harvest_settings
        self._namespaces = {"oai": OAI_NAMESPACE, **harvest_settings.namespaces}

    def counter_token(self, offset: int) -> str:
        """Render the counter-derived resumption token for ``offset``."""
        return self._settings.resumption_template.format(
            prefix=self._settings.metadata_prefix, offset=offset
        )

    def fetch_page(self, params: Dict[str, str]) -> ListingPage:
        """Request one listing page.

        Raises:
            RemoteCallError: On transport errors, error statuses or unparseable bodies.
        """
        url = self._settings.base_url
        try:
            response = self._client.get(url, key="listing", params=params)
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Listing request failed: {exc}", target=url) from exc
        if not response.is_success:
            raise RemoteCallError(
                f"Listing request returned HTTP {response.status_code}",
                target=str(response.url),
                status_code=response.status_code,
            )
        try:
            return parse_listing_page(response.content, self._settings.identifier_path, self._namespaces)
        except RemoteCallError as exc:
            exc.target = str(response.url)
            raise

    def harvest(self, statistics: Optional[RunStatistics] = None) -> HarvestResult:
        """Page through the listing and return every harvested seed."""

        settings = self._settings
        budget = settings.page_budget()
        seeds: List[SeedURI] = []
        pages_fetched = 0
        page_failures = 0
        exhausted = False
        token_mode = False
        seen_tokens: Set[str] = set()
        page_number = 1
        params: Dict[str, str] = {"verb": "ListRecords", "metadataPrefix": settings.metadata_prefix}

        while True:
            try:
                page = self.fetch_page(params)
            except RemoteCallError as exc:
                page_failures += 1
                logger.warning(
                    "Listing page failed",
                    extra={"page": page_number, "params": params, "error": str(exc)},
                )
                if token_mode or budget is None:
                    break
            else:
                pages_fetched += 1
                for identifier in page.identifiers:
                    seeds.append(
                        SeedURI(
                            uri=rewrite_identifier(identifier, settings.rewrite_from, settings.rewrite_to),
                            identifier=identifier,
                            page=page_number,
                        )
                    )
                logger.debug(
                    "Listing page harvested",
                    extra={
                        "page": page_number,
                        "records": page.record_count,
                        "identifiers": len(page.identifiers),
                        "token": page.resumption_token,
                    },
                )
                if page.no_records or page.resumption_token == "":
                    exhausted = True
                    break
                if page.resumption_token:
                    if page.resumption_token in seen_tokens:
                        logger.warning(
                            "Resumption token repeated; stopping harvest",
                            extra={"page": page_number, "token": page.resumption_token},
                        )
                        break
                    if settings.max_pages is not None and page_number >= settings.max_pages:
                        logger.info(
                            "Page limit reached with a resumption token outstanding",
                            extra={"page": page_number, "max_pages": settings.max_pages},
                        )
                        break
                    seen_tokens.add(page.resumption_token)
                    token_mode = True
                    page_number += 1
                    params = {"verb": "ListRecords", "resumptionToken": page.resumption_token}
                    continue
                if token_mode:
                    exhausted = True
                    break

            if budget is None or page_number >= budget:
                exhausted = True
                break
            page_number += 1
            params = {
                "verb": "ListRecords",
                "resumptionToken": self.counter_token((page_number - 1) * settings.page_size),
            }

        if statistics is not None:
            statistics.pages_fetched += pages_fetched
            statistics.page_failures += page_failures
            statistics.seeds += len(seeds)
        logger.info(
            "Harvest finished",
            extra={
                "seeds": len(seeds),
                "pages_fetched": pages_fetched,
                "page_failures": page_failures,
                "exhausted": exhausted,
            },
        )
        return HarvestResult(
            seeds=tuple(seeds),
            pages_fetched=pages_fetched,
            page_failures=page_failures,
            exhausted=exhausted,
        )
