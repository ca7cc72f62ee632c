"""Shopify Admin REST connector — connection probe and paged collection reads."""
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import requests

from storesync.config import settings
from storesync.errors import ShopifyConnectionError

logger = logging.getLogger(__name__)

COLLECTIONS = ("customers", "products", "orders")


@dataclass
class ConnectionCheck:
    """Result of a connection probe; never raised, always returned."""

    success: bool
    shop: Optional[dict[str, Any]] = None
    error: Optional[str] = None


def _base_url(shop_domain: str) -> str:
    return f"https://{shop_domain}/admin/api/{settings.shopify_api_version}"


def _headers(access_token: str) -> dict[str, str]:
    return {"X-Shopify-Access-Token": access_token, "Accept": "application/json"}


def _error_reason(response: requests.Response) -> str:
    """Prefer Shopify's own `errors` field over the bare status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("errors"):
        return str(body["errors"])
    return f"HTTP {response.status_code} {response.reason or ''}".strip()


def _get(session: requests.Session, url: str, access_token: str, params: Optional[dict] = None) -> requests.Response:
    """GET with the tenant credential and a bounded timeout; normalizes failures."""
    try:
        r = session.get(url, params=params, headers=_headers(access_token), timeout=settings.shopify_timeout_seconds)
    except requests.Timeout as e:
        raise ShopifyConnectionError(f"Timed out after {settings.shopify_timeout_seconds}s: {e}") from e
    except requests.RequestException as e:
        raise ShopifyConnectionError(f"Request failed: {e}") from e
    if not r.ok:
        raise ShopifyConnectionError(_error_reason(r), status_code=r.status_code)
    return r


def _json(r: requests.Response) -> dict[str, Any]:
    try:
        data = r.json()
    except ValueError as e:
        raise ShopifyConnectionError(f"Invalid JSON from {r.url}") from e
    if not isinstance(data, dict):
        raise ShopifyConnectionError(f"Unexpected response body from {r.url}")
    return data


def verify_connection(shop_domain: str, access_token: str) -> ConnectionCheck:
    """Cheap authenticated read of shop.json; used at onboarding and before every sync."""
    with requests.Session() as session:
        try:
            r = _get(session, f"{_base_url(shop_domain)}/shop.json", access_token)
            data = _json(r)
        except ShopifyConnectionError as e:
            logger.warning("Shopify connection check failed for %s: %s", shop_domain, e.detail)
            return ConnectionCheck(success=False, error=e.detail)
    return ConnectionCheck(success=True, shop=data.get("shop"))


def iter_pages(
    shop_domain: str,
    access_token: str,
    kind: str,
    page_info: Optional[str] = None,
) -> Iterator[list[dict[str, Any]]]:
    """
    Lazily yield pages of a collection, following the Link rel="next" header.

    Pass page_info (the cursor from a previous next link) to restart from that page.
    Nothing is requested until the first page is consumed.
    """
    if kind not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {kind}")

    url: Optional[str] = f"{_base_url(shop_domain)}/{kind}.json"
    params: Optional[dict[str, Any]] = {"limit": settings.shopify_page_size}
    if page_info:
        # Shopify rejects filters alongside a cursor
        params["page_info"] = page_info
    elif kind == "orders":
        params["status"] = "any"

    with requests.Session() as session:
        while url:
            r = _get(session, url, access_token, params=params)
            records = _json(r).get(kind) or []
            logger.debug("Fetched %d %s from %s", len(records), kind, shop_domain)
            yield records
            url = r.links.get("next", {}).get("url")
            params = None  # the next link already carries limit and page_info


def fetch_collection(shop_domain: str, access_token: str, kind: str) -> Iterator[dict[str, Any]]:
    """Yield every record of a collection across all pages."""
    for page in iter_pages(shop_domain, access_token, kind):
        yield from page
