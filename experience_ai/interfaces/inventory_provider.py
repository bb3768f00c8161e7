"""
Inventory Provider Client - Viator partner API

Two search strategies:
- destination-scoped: resolve a city to a destination ID, then search within it
- freetext: "{activity} {location}" against the free-text endpoint

Products are normalized into external Candidates carrying affiliate links.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..algorithms.content_filters import city_base_name
from ..algorithms.normalizer import strip_accents
from ..config import settings
from ..schemas import Candidate, CandidateSource


UNKNOWN_LOCATION = "Location varies"
UNKNOWN_DURATION = "Duration varies"


class InventoryProviderError(Exception):
    """Raised when a provider search cannot produce results"""


def format_duration(duration: Optional[Dict[str, Any]]) -> str:
    """
    Provider duration -> human readable

    {"fixedDurationInMinutes": 150} -> "2h 30m"
    {"variableDurationFromMinutes": 180, "variableDurationToMinutes": 300} -> "3-5h"
    """
    if not duration:
        return UNKNOWN_DURATION

    fixed = duration.get("fixedDurationInMinutes")
    if fixed:
        hours, minutes = divmod(int(fixed), 60)
        if hours and minutes:
            return f"{hours}h {minutes}m"
        if hours:
            return f"{hours}h"
        return f"{minutes}m"

    low = duration.get("variableDurationFromMinutes")
    high = duration.get("variableDurationToMinutes")
    if low and high:
        return f"{int(low) // 60}-{int(high) // 60}h"

    return UNKNOWN_DURATION


def extract_location(product: Dict[str, Any], search_location: Optional[str] = None) -> str:
    """
    Build a "City, Country" label for a product.

    Order: redemption point, traveler pickup, primary destination,
    then the location we searched for.
    """
    city = None
    country = None
    logistics = product.get("logistics") or {}

    redemption = logistics.get("redemption") or []
    if redemption and (redemption[0].get("location") or {}).get("name"):
        city = redemption[0]["location"]["name"]

    if not city:
        pickups = (logistics.get("travelerPickup") or {}).get("locations") or []
        if pickups and pickups[0].get("name"):
            city = pickups[0]["name"]

    destinations = product.get("destinations") or []
    if destinations:
        destination = destinations[0]
        if not city and destination.get("destinationName"):
            city = destination["destinationName"]
        if destination.get("parentDestinationName"):
            country = destination["parentDestinationName"]

    if city and country:
        return f"{city}, {country}"
    if city:
        return city
    return search_location or UNKNOWN_LOCATION


def add_affiliate_params(product_url: Optional[str]) -> Optional[str]:
    """Append partner tracking parameters to a product URL"""
    if not product_url:
        return None

    try:
        url = httpx.URL(product_url).copy_merge_params({
            "pid": settings.AFFILIATE_PARTNER_ID,
            "mcid": settings.AFFILIATE_CAMPAIGN_ID,
            "medium": "link",
        })
        return str(url)
    except Exception as e:
        logger.warning(f"Failed to add affiliate params to URL {product_url}: {e}")
        return product_url


def transform_product(product: Dict[str, Any], search_location: Optional[str] = None) -> Optional[Candidate]:
    """Provider product -> external Candidate (None when it has no product code)"""
    code = product.get("productCode")
    if not code:
        return None

    pricing = product.get("pricing") or {}
    reviews = product.get("reviews") or {}
    images = product.get("images") or []
    variants = (images[0].get("variants") or []) if images else []

    return Candidate(
        id=str(code),
        provider_ref=str(code),
        source=CandidateSource.EXTERNAL,
        title=product.get("title") or "",
        description=product.get("description") or product.get("title"),
        location=extract_location(product, search_location),
        tags=[str(tag) for tag in product.get("tags") or []],
        price=(pricing.get("summary") or {}).get("fromPrice"),
        currency=pricing.get("currency") or settings.DEFAULT_CURRENCY,
        rating=float(reviews.get("combinedAverageRating") or 0),
        review_count=int(reviews.get("totalReviews") or 0),
        duration=format_duration(product.get("duration")),
        image_url=variants[0].get("url") if variants else None,
        product_url=add_affiliate_params(product.get("productUrl")),
    )


class ViatorClient:
    """
    Async client for the Viator partner API

    Usage:
        client = ViatorClient()
        destination_id = await client.resolve_destination_id("Lisbon, Portugal")
        products = await client.search_freetext("surfing Lisbon")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        currency: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_memo: Optional[int] = None
    ):
        self.api_key = settings.INVENTORY_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.INVENTORY_BASE_URL).rstrip("/")
        self.currency = currency or settings.DEFAULT_CURRENCY
        self.timeout = settings.INVENTORY_TIMEOUT_SECONDS if timeout is None else timeout
        self._http_client = http_client

        self._destinations: Optional[List[Dict[str, Any]]] = None
        self.max_memo = settings.MEMO_MAX_ENTRIES if max_memo is None else max_memo
        self._destination_ids: "OrderedDict[str, Optional[str]]" = OrderedDict()

        if not self.api_key:
            logger.warning("Viator API key not configured - external search disabled")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "exp-api-key": self.api_key,
            "Accept": "application/json;version=2.0",
            "Accept-Language": "en-US",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        if not self.configured:
            raise InventoryProviderError("Viator API key not configured")

        url = f"{self.base_url}{path}"
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, json=payload, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise InventoryProviderError(f"Viator {path} returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise InventoryProviderError(f"Viator {path} request failed: {e}") from e

    # ============================================
    # Destinations
    # ============================================

    async def _load_destinations(self) -> List[Dict[str, Any]]:
        if self._destinations is None:
            data = await self._request("GET", "/destinations")
            self._destinations = data.get("destinations") or []
            logger.info(f"Loaded {len(self._destinations)} Viator destinations")
        return self._destinations

    async def resolve_destination_id(self, location: Optional[str]) -> Optional[str]:
        """
        Resolve a city name to a provider destination ID.

        Exact city-name matches win over containment in either direction.
        Lookups are memoized per location. Returns None when nothing
        matches or the lookup fails.
        """
        base = city_base_name(location)
        if not base or not self.configured:
            return None
        if base in self._destination_ids:
            self._destination_ids.move_to_end(base)
            return self._destination_ids[base]

        try:
            destinations = await self._load_destinations()
        except InventoryProviderError as e:
            logger.error(f"Viator destination lookup failed for '{location}': {e}")
            return None

        exact = None
        partial = None
        for destination in destinations:
            name = strip_accents(destination.get("destinationName") or "").lower().strip()
            if not name:
                continue
            if name == base:
                exact = destination
                break
            if partial is None and (base in name or name in base):
                partial = destination

        match = exact or partial
        destination_id = str(match["destinationId"]) if match and match.get("destinationId") else None
        self._destination_ids[base] = destination_id
        while len(self._destination_ids) > self.max_memo:
            self._destination_ids.popitem(last=False)

        if destination_id:
            logger.info(f"Found destination ID {destination_id} for '{location}'")
        else:
            logger.info(f"No destination ID found for '{location}'")
        return destination_id

    # ============================================
    # Searches
    # ============================================

    async def search_by_destination(
        self,
        destination_id: str,
        limit: Optional[int] = None,
        search_location: Optional[str] = None
    ) -> List[Candidate]:
        """
        Top-rated products within a destination.

        Raises:
            InventoryProviderError: request failed
        """
        limit = limit or settings.INVENTORY_SEARCH_LIMIT
        data = await self._request("POST", "/products/search", {
            "filtering": {"destination": str(destination_id)},
            "sorting": {"sort": "TRAVELER_RATING", "order": "DESCENDING"},
            "pagination": {"start": 1, "count": limit},
            "currency": self.currency,
        })

        products = data.get("products") or []
        logger.info(f"Destination search returned {len(products)} products (destination {destination_id})")
        return self._transform_all(products, search_location)

    async def search_freetext(
        self,
        search_term: str,
        limit: Optional[int] = None,
        search_location: Optional[str] = None
    ) -> List[Candidate]:
        """
        Free-text product search.

        Raises:
            InventoryProviderError: request failed
        """
        limit = limit or settings.INVENTORY_SEARCH_LIMIT
        data = await self._request("POST", "/search/freetext", {
            "searchTerm": search_term,
            "searchTypes": [{"searchType": "PRODUCTS", "pagination": {"start": 1, "count": limit}}],
            "productFiltering": {"includeAutomaticTranslations": True},
            "currency": self.currency,
        })

        products = (data.get("products") or {}).get("results") or []
        logger.info(f"Freetext found {len(products)} products for '{search_term}'")
        return self._transform_all(products, search_location)

    @staticmethod
    def _transform_all(products: List[Dict[str, Any]], search_location: Optional[str]) -> List[Candidate]:
        candidates = []
        for product in products:
            candidate = transform_product(product, search_location)
            if candidate is not None:
                candidates.append(candidate)
        return candidates
