"""
Square API Service
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Dict, Any, Optional, AsyncIterator, Iterator

import httpx

from profit_dashboard.config import settings
from profit_dashboard.schemas.inventory import MerchantInfo, UNKNOWN_MERCHANT

logger = logging.getLogger(__name__)

PRODUCTION_BASE_URL = "https://connect.squareup.com"
SANDBOX_BASE_URL = "https://connect.squareupsandbox.com"

BATCH_SIZE = 100


class SquareConfigurationError(Exception):
    """Raised when the Square credentials are missing or unusable"""


class SquareAPIError(Exception):
    """Raised when a Square request fails (non-2xx or transport error)"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def chunked(values: List[str], size: int = BATCH_SIZE) -> Iterator[List[str]]:
    """Yield consecutive slices of at most `size` values"""
    for i in range(0, len(values), size):
        yield values[i:i + size]


def _parse_quantity(value: Any) -> Decimal:
    """Square sends quantities as decimal strings ("3", "2.5")"""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal(0)


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    # Naive timestamps are treated as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SquareService:
    """Read-only client for the Square catalog, inventory and merchant APIs"""

    def __init__(
        self,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_version = api_version or settings.SQUARE_API_VERSION
        self.timeout = timeout if timeout is not None else settings.SQUARE_TIMEOUT_SECONDS
        self.transport = transport

    def base_url(self, is_production: bool) -> str:
        return PRODUCTION_BASE_URL if is_production else SANDBOX_BASE_URL

    async def request(
        self,
        method: str,
        endpoint: str,
        access_token: str,
        is_production: bool,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Issue one authenticated request against the Square API

        Args:
            method: HTTP method
            endpoint: Path such as /v2/locations
            access_token: Square access token
            is_production: Use the production base URL instead of sandbox
            params: Query parameters
            json: JSON body for POST requests

        Returns:
            Decoded JSON response

        Raises:
            SquareConfigurationError: access token is empty
            SquareAPIError: non-2xx response or transport failure
        """
        if not access_token:
            raise SquareConfigurationError("Missing SQUARE_ACCESS_TOKEN")

        headers = {
            "Authorization": f"Bearer {access_token}",
            "Square-Version": self.api_version,
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url(is_production)}{endpoint}",
                    headers=headers,
                    params=params,
                    json=json,
                )
            except httpx.HTTPError as e:
                raise SquareAPIError(f"Square API request failed: {e}") from e

        if response.is_error:
            raise SquareAPIError(
                f"Square API Failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SquareAPIError(
                f"Square API returned invalid JSON: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise SquareAPIError(
                f"Square API returned unexpected payload: {type(data).__name__}",
                status_code=response.status_code,
                body=response.text,
            )
        return data

    async def list_catalog_objects(
        self,
        access_token: str,
        is_production: bool,
        types: str = "ITEM,TAX",
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Iterate every catalog object of the given types, following the cursor

        Errors propagate: the catalog is the backbone of a sync.

        Args:
            access_token: Square access token
            is_production: Production or sandbox
            types: Comma-separated catalog object types

        Yields:
            Raw catalog objects
        """
        cursor = None

        while True:
            params: Dict[str, Any] = {"types": types}
            if cursor:
                params["cursor"] = cursor

            data = await self.request("GET", "/v2/catalog/list", access_token, is_production, params=params)

            for obj in data.get("objects") or []:
                yield obj

            cursor = data.get("cursor")
            if not cursor:
                break

    async def list_locations(self, access_token: str, is_production: bool) -> List[str]:
        """
        List the merchant's location ids

        Returns:
            Location ids, or an empty list if the request fails
        """
        try:
            data = await self.request("GET", "/v2/locations", access_token, is_production)
        except SquareAPIError as e:
            logger.error("Could not fetch locations: %s", e)
            return []

        locations = data.get("locations") or []
        logger.info(
            "Found %d locations: %s",
            len(locations),
            ", ".join(f"{loc.get('name')} ({loc.get('id')})" for loc in locations),
        )
        return [loc["id"] for loc in locations if loc.get("id")]

    async def get_inventory_counts(
        self,
        variation_ids: List[str],
        location_ids: List[str],
        access_token: str,
        is_production: bool,
    ) -> Dict[str, int]:
        """
        Sum IN_STOCK quantities per variation across locations

        Variation ids are sent in batches of 100. A failed batch is logged and
        contributes nothing; the other batches still count.

        Args:
            variation_ids: Catalog variation ids
            location_ids: Locations to restrict counts to (all if empty)
            access_token: Square access token
            is_production: Production or sandbox

        Returns:
            Mapping of variation id to on-hand quantity
        """
        totals: Dict[str, Decimal] = {}

        for batch_ids in chunked(variation_ids):
            body: Dict[str, Any] = {
                "catalog_object_ids": batch_ids,
                "states": ["IN_STOCK"],
            }
            if location_ids:
                body["location_ids"] = location_ids

            batch_totals: Dict[str, Decimal] = {}
            try:
                cursor = None
                while True:
                    if cursor:
                        body["cursor"] = cursor
                    data = await self.request(
                        "POST", "/v2/inventory/batch-retrieve-counts", access_token, is_production, json=body
                    )
                    for count in data.get("counts") or []:
                        object_id = count.get("catalog_object_id")
                        if object_id:
                            batch_totals[object_id] = batch_totals.get(object_id, Decimal(0)) + _parse_quantity(count.get("quantity"))

                    cursor = data.get("cursor")
                    if not cursor:
                        break
            except SquareAPIError as e:
                logger.warning("Could not fetch inventory counts for batch of %d: %s", len(batch_ids), e)
                continue

            for object_id, qty in batch_totals.items():
                totals[object_id] = totals.get(object_id, Decimal(0)) + qty

        return {object_id: max(int(qty), 0) for object_id, qty in totals.items()}

    async def get_last_sold_dates(
        self,
        variation_ids: List[str],
        access_token: str,
        is_production: bool,
    ) -> Dict[str, str]:
        """
        Find the most recent SOLD adjustment per variation

        Same batching and failure handling as get_inventory_counts.

        Returns:
            Mapping of variation id to the latest occurred_at timestamp
        """
        last_sold: Dict[str, str] = {}
        parsed: Dict[str, datetime] = {}

        for batch_ids in chunked(variation_ids):
            body: Dict[str, Any] = {
                "catalog_object_ids": batch_ids,
                "types": ["ADJUSTMENT"],
                "states": ["SOLD"],
            }

            changes: List[Dict[str, Any]] = []
            try:
                cursor = None
                while True:
                    if cursor:
                        body["cursor"] = cursor
                    data = await self.request(
                        "POST", "/v2/inventory/changes/batch-retrieve", access_token, is_production, json=body
                    )
                    changes.extend(data.get("changes") or [])

                    cursor = data.get("cursor")
                    if not cursor:
                        break
            except SquareAPIError as e:
                logger.warning("Could not fetch inventory changes for batch of %d: %s", len(batch_ids), e)
                continue

            for change in changes:
                adjustment = change.get("adjustment") or {}
                object_id = adjustment.get("catalog_object_id")
                occurred_at = adjustment.get("occurred_at")
                if not object_id or not occurred_at:
                    continue

                when = _parse_timestamp(occurred_at)
                if when is None:
                    continue

                if object_id not in parsed or when > parsed[object_id]:
                    parsed[object_id] = when
                    last_sold[object_id] = occurred_at

        return last_sold

    async def get_merchant_info(self, access_token: str, is_production: bool) -> MerchantInfo:
        """
        Get merchant information

        Returns:
            Merchant summary, or the "Unknown Business" sentinel on failure
        """
        try:
            data = await self.request("GET", "/v2/merchants/me", access_token, is_production)
        except SquareAPIError as e:
            logger.error("Could not fetch merchant info: %s", e)
            return UNKNOWN_MERCHANT.model_copy()

        merchant = data.get("merchant") or {}
        return MerchantInfo(
            name=merchant.get("business_name") or "Unknown Business",
            id=merchant.get("id") or "",
            country=merchant.get("country") or "",
        )
