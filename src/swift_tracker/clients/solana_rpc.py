"""Solana JSON-RPC client.

Only the ``getTransaction`` surface is needed: the decoders work on the raw
``json`` encoding (fulfill, cost analysis) and the ``jsonParsed`` encoding
(source lock analysis).
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Literal, TypedDict

import backoff
import requests

from ..logger import TRACE, get_logger

logger = get_logger(__name__)

Encoding = Literal["json", "jsonParsed"]


class SolanaRpcError(Exception):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class SolanaRateLimitError(SolanaRpcError):
    """Raised on HTTP 429 or a node-side rate limit error."""


class JsonRpcRequest(TypedDict):
    jsonrpc: str
    id: int
    method: str
    params: list[Any]


class JsonRpcResponse(TypedDict, total=False):
    jsonrpc: str
    id: int
    result: Any
    error: dict[str, Any]


def _is_client_error(exc: Exception) -> bool:
    """4xx responses other than 429 are not worth retrying."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return 400 <= status < 500 and status != 429
    return False


class SolanaRpcClient:
    """Blocking JSON-RPC client with async wrappers.

    The HTTP session is reused across calls. Transient transport failures and
    rate limits are retried with exponential backoff; JSON-RPC errors are not.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = "confirmed",
        request_timeout: float = 15.0,
        max_retry_seconds: float = 30.0,
    ):
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._request_timeout = request_timeout
        self._max_retry_seconds = max_retry_seconds
        self._session = requests.Session()
        self._ids = itertools.count(1)

    @property
    def commitment(self) -> str:
        return self._commitment

    def _post(self, payload: JsonRpcRequest) -> JsonRpcResponse:
        """POST one request; node error objects raise here so rate limits get retried."""
        response = self._session.post(
            self._rpc_url,
            json=payload,
            timeout=self._request_timeout,
        )
        if response.status_code == 429:
            raise SolanaRateLimitError("Solana RPC rate limit reached", code=429)
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("Unexpected Solana RPC payload format")

        error = body.get("error")
        if error:
            code = error.get("code")
            message = error.get("message", "unknown error")
            if code == 429 or "rate limit" in str(message).lower():
                raise SolanaRateLimitError(message, code=code)
            raise SolanaRpcError(f"Solana RPC {payload['method']} failed: {message}", code=code)
        return body  # type: ignore[return-value]

    def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result``.

        Raises:
            SolanaRpcError: If the node returns an error object.
            requests.RequestException: If the transport keeps failing.
        """
        payload: JsonRpcRequest = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        post = backoff.on_exception(
            backoff.expo,
            (requests.RequestException, SolanaRateLimitError),
            max_time=self._max_retry_seconds,
            jitter=backoff.full_jitter,
            giveup=_is_client_error,
        )(self._post)

        logger.debug("Solana RPC %s %s", method, params[:1])
        body = post(payload)

        logger.log(TRACE, "Solana RPC %s result: %s", method, body.get("result"))
        return body.get("result")

    def get_transaction(
        self,
        signature: str,
        encoding: Encoding = "json",
        commitment: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch a transaction by signature; ``None`` when the node does not know it."""
        config = {
            "encoding": encoding,
            "commitment": commitment or self._commitment,
            "maxSupportedTransactionVersion": 0,
        }
        return self.call("getTransaction", [signature, config])

    async def get_transaction_async(
        self,
        signature: str,
        encoding: Encoding = "json",
        commitment: str | None = None,
    ) -> dict[str, Any] | None:
        return await asyncio.to_thread(
            self.get_transaction, signature, encoding, commitment
        )

    def close(self) -> None:
        self._session.close()
