"""
In-memory stand-in for storesync.connectors.shopify.

Exposes the same verify_connection / fetch_collection interface, keyed by
shop domain, so sync_tenant can run without HTTP.
"""

import threading
from typing import Any, Optional

from storesync.connectors.shopify import ConnectionCheck
from storesync.errors import ShopifyConnectionError


class FakeShopify:
    def __init__(self, shops: Optional[dict[str, dict[str, Any]]] = None):
        self.shops = shops or {}
        # (domain, kind) -> detail; raised after that collection's records are yielded
        self.fetch_errors: dict[tuple[str, str], str] = {}
        self.fetch_calls: list[tuple[str, str]] = []
        self.verify_calls: list[str] = []
        # When set, verify_connection blocks until released
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def verify_connection(self, shop_domain: str, access_token: str) -> ConnectionCheck:
        self.verify_calls.append(shop_domain)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        shop = self.shops.get(shop_domain)
        if shop is None:
            return ConnectionCheck(success=False, error="Request failed: Name or service not known")
        if shop["token"] != access_token:
            return ConnectionCheck(success=False, error="[API] Invalid API key or access token")
        return ConnectionCheck(success=True, shop={"domain": shop_domain})

    def fetch_collection(self, shop_domain: str, access_token: str, kind: str):
        self.fetch_calls.append((shop_domain, kind))
        for record in self.shops[shop_domain].get(kind, []):
            yield record
        if (shop_domain, kind) in self.fetch_errors:
            raise ShopifyConnectionError(self.fetch_errors[(shop_domain, kind)], status_code=503)
