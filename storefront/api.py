"""
HTTP client for the storefront API.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from decouple import config

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000"


class ApiError(Exception):
    """
    Non-2xx response or transport failure. ``status`` is None when the
    server was never reached.
    """

    def __init__(self, status: Optional[int], message: str, payload=None):
        self.status = status
        self.message = message
        self.payload = payload
        super().__init__(f"[{status}] {message}" if status else message)

    @property
    def is_retryable(self) -> bool:
        return self.status is None or self.status >= 500


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    shipping_address: str
    phone: str = ""


class StorefrontClient:

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 admin_secret: Optional[str] = None, timeout: float = 10.0, session=None):
        self.base_url = (base_url or config("STOREFRONT_API_URL", default=DEFAULT_API_URL)).rstrip("/")
        self.token = token
        self.admin_secret = admin_secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.admin_secret:
            headers["x-admin-secret"] = self.admin_secret
        return headers

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(None, "Could not reach the store. Please try again.") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if not resp.ok:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ApiError(resp.status_code, message or resp.reason or "Request failed", payload)
        return payload

    # --- Catalog ---

    def list_products(self, **filters):
        """
        ``filters`` are passed as query parameters (category, min_price,
        max_price, availability, featured, search, ordering).
        """
        params = {k: v for k, v in filters.items() if v not in (None, "", [], ())}
        return self._request("GET", "/api/products", params=params)

    def new_arrivals(self):
        return self._request("GET", "/api/products/new-arrivals")

    def get_product(self, product_id):
        return self._request("GET", f"/api/products/{product_id}")

    def related_products(self, product_id, limit: int = 4):
        return self._request("GET", f"/api/products/{product_id}/related", params={"limit": limit})

    def list_categories(self):
        return self._request("GET", "/api/categories")

    def category_products(self, category_id):
        return self._request("GET", f"/api/categories/{category_id}/products")

    def site_config(self):
        return self._request("GET", "/api/settings/config")

    # --- Checkout ---

    def place_order(self, customer: Customer, items, total_price):
        return self._request("POST", "/api/orders", json={
            "customer_name": customer.name,
            "customer_email": customer.email,
            "customer_phone": customer.phone,
            "shipping_address": customer.shipping_address,
            "total_price": str(total_price),
            "items": items,
        })

    def checkout(self, cart, customer: Customer):
        """
        Submits the cart as an order and empties it once the order exists.
        On any error the cart is left untouched.
        """
        if cart.is_empty():
            raise ValueError("Cart is empty")

        result = self.place_order(customer, cart.to_order_items(), cart.total)
        logger.info("Order %s placed (%d items)", (result or {}).get("order_id"), cart.count)
        cart.clear()
        return result

    def my_orders(self):
        return self._request("GET", "/api/orders/mine")

    # --- Store admin ---

    def create_product(self, data: dict):
        return self._request("POST", "/api/products", json=data)

    def update_product(self, product_id, data: dict):
        return self._request("PUT", f"/api/products/{product_id}", json=data)

    def adjust_stock(self, product_id, adjustment: int):
        return self._request("PATCH", f"/api/products/{product_id}/stock", json={"adjustment": adjustment})

    def delete_product(self, product_id):
        return self._request("DELETE", f"/api/products/{product_id}")

    def create_category(self, data: dict):
        return self._request("POST", "/api/categories", json=data)

    def delete_category(self, category_id):
        return self._request("DELETE", f"/api/categories/{category_id}")

    def list_orders(self):
        return self._request("GET", "/api/orders")

    def order_items(self, order_id):
        return self._request("GET", f"/api/orders/{order_id}/items")

    def update_order(self, order_id, status: Optional[str] = None, admin_notes: Optional[str] = None):
        data = {}
        if status is not None:
            data["status"] = status
        if admin_notes is not None:
            data["admin_notes"] = admin_notes
        return self._request("PUT", f"/api/orders/{order_id}", json=data)

    def update_settings(self, is_ecommerce_active: Optional[bool] = None, whatsapp_number: Optional[str] = None):
        data = {}
        if is_ecommerce_active is not None:
            data["is_ecommerce_active"] = is_ecommerce_active
        if whatsapp_number:
            data["whatsapp_number"] = whatsapp_number
        return self._request("PUT", "/api/settings", json=data)
