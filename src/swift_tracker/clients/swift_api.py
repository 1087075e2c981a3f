"""Client for the SWIFT order explorer API."""

from __future__ import annotations

import asyncio
import re
from typing import Any

import backoff
import requests
from pydantic import ValidationError

from ..constants import SWIFT_ORDER_ID_PREFIX
from ..domain import SwiftOrder
from ..errors import InvalidOrderIdError, NotFoundError, OrderApiError
from ..logger import get_logger

logger = get_logger(__name__)

_ORDER_ID_PATTERN = re.compile(r"^SWIFT_0x[a-fA-F0-9]{64}$")
_BARE_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")


def normalize_order_id(order_id: str) -> str:
    """Add the ``SWIFT_`` prefix to a bare 32-byte hex order hash."""
    order_id = order_id.strip()
    if _BARE_HASH_PATTERN.match(order_id):
        return f"{SWIFT_ORDER_ID_PREFIX}{order_id}"
    return order_id


def is_valid_order_id(order_id: str) -> bool:
    return bool(_ORDER_ID_PATTERN.match(order_id))


def _is_client_error(exc: Exception) -> bool:
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return 400 <= status < 500 and status != 429
    return False


class SwiftApiClient:
    """Fetches order records from ``{base_url}/swap/order-id/{order_id}``."""

    def __init__(
        self,
        base_url: str,
        *,
        request_timeout: float = 15.0,
        max_retry_seconds: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._max_retry_seconds = max_retry_seconds
        self._session = requests.Session()

    def _get(self, url: str) -> requests.Response:
        response = self._session.get(url, timeout=self._request_timeout)
        if response.status_code == 404:
            return response
        response.raise_for_status()
        return response

    def fetch_order_payload(self, order_id: str) -> dict[str, Any]:
        """Return the raw order record.

        Raises:
            InvalidOrderIdError: If ``order_id`` is not ``SWIFT_0x`` + 64 hex chars.
            NotFoundError: If the API does not know the order.
            OrderApiError: On transport failures or an unusable payload.
        """
        if not is_valid_order_id(order_id):
            raise InvalidOrderIdError(
                f"Invalid order ID format: {order_id}. Expected SWIFT_0x followed by 64 hex characters"
            )

        url = f"{self._base_url}/swap/order-id/{order_id}"
        get = backoff.on_exception(
            backoff.expo,
            requests.RequestException,
            max_time=self._max_retry_seconds,
            jitter=backoff.full_jitter,
            giveup=_is_client_error,
        )(self._get)

        logger.debug("Fetching order %s from %s", order_id, self._base_url)
        try:
            response = get(url)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise OrderApiError(
                f"Order API returned HTTP {status} for {order_id}",
                retry_recommended=status is None or status >= 500 or status == 429,
            ) from exc
        except requests.RequestException as exc:
            raise OrderApiError(
                f"Order API request failed: {exc}", retry_recommended=True
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(f"Order not found: {order_id}", reference=order_id)

        try:
            payload = response.json()
        except ValueError as exc:
            raise OrderApiError(f"Order API returned invalid JSON for {order_id}") from exc

        if not isinstance(payload, dict) or not payload.get("orderId") or not payload.get("id"):
            raise OrderApiError(f"Invalid order data received for {order_id}")
        return payload

    def fetch_order(self, order_id: str) -> SwiftOrder:
        payload = self.fetch_order_payload(order_id)
        try:
            return SwiftOrder.model_validate(payload)
        except ValidationError as exc:
            raise OrderApiError(f"Invalid order data received for {order_id}: {exc}") from exc

    async def fetch_order_async(self, order_id: str) -> SwiftOrder:
        return await asyncio.to_thread(self.fetch_order, order_id)

    def close(self) -> None:
        self._session.close()
