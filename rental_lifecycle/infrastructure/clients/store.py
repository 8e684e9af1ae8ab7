"""Transaction store HTTP client (marketplace integration API)"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from rental_lifecycle.config import settings
from rental_lifecycle.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from rental_lifecycle.domain.models import LineItem, Listing, Page, Party, Transaction
from rental_lifecycle.domain.state import deep_merge

logger = logging.getLogger(__name__)

INCLUDE = "customer,provider,listing,booking"


def _ref_id(ref: Any) -> Optional[str]:
    if isinstance(ref, dict):
        return ref.get("uuid") or ref.get("id")
    return str(ref) if ref is not None else None


def _included_key(entity: Dict[str, Any]) -> str:
    return f"{entity.get('type')}/{_ref_id(entity.get('id'))}"


def _related(raw: Dict[str, Any], name: str, included: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    ref = ((raw.get("relationships") or {}).get(name) or {}).get("data")
    if not ref:
        return None
    return included.get(_included_key(ref))


def _parse_party(entity: Optional[Dict[str, Any]]) -> Optional[Party]:
    if not entity:
        return None
    profile = (entity.get("attributes") or {}).get("profile") or {}
    protected = profile.get("protectedData") or {}
    return Party(
        id=_ref_id(entity.get("id")),
        phone=protected.get("phone") or protected.get("phoneNumber"),
        display_name=profile.get("displayName"),
    )


def _parse_listing(entity: Optional[Dict[str, Any]]) -> Optional[Listing]:
    if not entity:
        return None
    attributes = entity.get("attributes") or {}
    price = attributes.get("price") or {}
    return Listing(
        id=_ref_id(entity.get("id")),
        title=attributes.get("title") or "",
        price_cents=price.get("amount"),
        public_data=attributes.get("publicData") or {},
    )


def parse_transaction(raw: Dict[str, Any], included: Dict[str, Dict[str, Any]]) -> Transaction:
    """Map a JSON:API transaction resource (plus included resources) to the domain model"""
    attributes = raw["attributes"]
    state = str(attributes["state"]).replace("state/", "")

    booking = _related(raw, "booking", included)
    booking_attrs = (booking or {}).get("attributes") or attributes.get("booking") or {}

    return Transaction(
        id=_ref_id(raw["id"]),
        state=state,
        booking_start=booking_attrs.get("start"),
        booking_end=booking_attrs.get("end") or attributes.get("deliveryEnd"),
        protected_data=attributes.get("protectedData") or {},
        metadata=attributes.get("metadata") or {},
        customer=_parse_party(_related(raw, "customer", included)),
        provider=_parse_party(_related(raw, "provider", included)),
        listing=_parse_listing(_related(raw, "listing", included)),
    )


def parse_document(document: Dict[str, Any]) -> List[Transaction]:
    """Transactions in a JSON:API document (single resource or list)"""
    included = {_included_key(entity): entity for entity in document.get("included") or []}
    try:
        data = document["data"]
        resources = data if isinstance(data, list) else [data]
        return [parse_transaction(raw, included) for raw in resources]
    except (KeyError, TypeError) as e:
        raise StoreError(f"Invalid transaction data from store: {e}") from e


class TransactionStoreClient:
    """Client for the external transaction store"""

    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.store_api_base).rstrip("/")
        self.client_id = client_id or settings.store_client_id
        self.client_secret = client_secret or settings.store_client_secret
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        response = await client.post(
            f"{self.base_url}/v1/auth/token",
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
                "scope": "integ",
            },
        )
        self._raise_for_status(response, "auth")
        data = response.json()
        self._token = data["access_token"]
        # refresh a minute early
        self._token_expires_at = time.monotonic() + max(float(data.get("expires_in", 3600)) - 60, 0)
        return self._token

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        status = response.status_code
        if status < 400:
            return
        message = f"Store {operation} failed: {status} {response.text[:200]}"
        if status in (401, 403):
            raise AuthorizationError(message, status_code=status)
        if status == 404:
            raise NotFoundError(message, status_code=status)
        if status in (409, 429) or status >= 500:
            raise TransientStoreError(message, status_code=status)
        raise StoreError(message, status_code=status)

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                token = await self._access_token(client)
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers={"Authorization": f"Bearer {token}"},
                    **kwargs,
                )
                self._raise_for_status(response, operation)
                return response.json()
            except httpx.TimeoutException as e:
                raise TransientStoreError(f"Store {operation} timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise TransientStoreError(f"Store {operation} network error: {e}") from e
            except (KeyError, ValueError) as e:
                raise StoreError(f"Invalid {operation} response from store: {e}") from e

    async def query(self, states: Sequence[str], page: int = 1, per_page: int = 100) -> Page:
        """Fetch one page of transactions in any of the given states"""
        document = await self._request(
            "GET",
            "/v1/integration_api/transactions/query",
            "query",
            params={"states": ",".join(states), "page": page, "perPage": per_page, "include": INCLUDE},
        )
        transactions = parse_document(document)
        meta = document.get("meta") or {}
        next_page = meta.get("next_page")
        if next_page is None and meta.get("totalPages") and page < int(meta["totalPages"]):
            next_page = page + 1
        return Page(transactions=transactions, page=page, next_page=next_page)

    async def show(self, tx_id: str) -> Transaction:
        document = await self._request(
            "GET",
            "/v1/integration_api/transactions/show",
            "show",
            params={"id": tx_id, "include": INCLUDE},
        )
        return parse_document(document)[0]

    async def _merged_protected_data(self, tx_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        # The store replaces top-level protectedData keys, so merge the patch
        # into a fresh read of each touched sub-record.
        current = await self.show(tx_id)
        return {
            key: deep_merge(current.protected_data.get(key) or {}, value) if isinstance(value, dict) else value
            for key, value in patch.items()
        }

    async def update(self, tx_id: str, protected_data_patch: Dict[str, Any]) -> Transaction:
        """Merge a patch into the transaction's protectedData"""
        protected_data = await self._merged_protected_data(tx_id, protected_data_patch)
        document = await self._request(
            "POST",
            "/v1/integration_api/transactions/update_metadata",
            "update",
            params={"include": INCLUDE},
            json={"id": tx_id, "protectedData": protected_data},
        )
        return parse_document(document)[0]

    async def transition(
        self,
        tx_id: str,
        name: str,
        line_items: Optional[List[LineItem]] = None,
        protected_data_patch: Optional[Dict[str, Any]] = None,
    ) -> Transaction:
        """
        Run a privileged transition.

        Line items and the protectedData patch travel in the same request, so
        the store applies both or neither.
        """
        params: Dict[str, Any] = {}
        if line_items:
            params["lineItems"] = [item.to_payload() for item in line_items]
        if protected_data_patch:
            params["protectedData"] = await self._merged_protected_data(tx_id, protected_data_patch)

        logger.info("Store transition", extra={"tx_id": tx_id, "transition": name, "line_items": len(line_items or [])})
        document = await self._request(
            "POST",
            "/v1/integration_api/transactions/transition",
            "transition",
            params={"include": INCLUDE},
            json={"id": tx_id, "transition": name, "params": params},
        )
        return parse_document(document)[0]
