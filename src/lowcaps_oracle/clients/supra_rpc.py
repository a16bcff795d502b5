"""Supra RPC client for read-only Move view calls.

The client owns one HTTP session per established connection. Connection
setup is lazy: the first caller triggers it, and every concurrent caller
awaits that same attempt.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Sequence

import requests

from ..constants import (
    CHAIN_ID_FUNCTION,
    COIN_BALANCE_FUNCTION,
    COIN_SUPPLY_FUNCTION,
    SUPRA_MAINNET_CHAIN_ID,
)
from ..logger import get_logger

logger = get_logger(__name__)

VIEW_PATH = "/rpc/v1/view"
CHAIN_ID_PATH = "/rpc/v1/transactions/chain_id"


class GatewayError(Exception):
    """Raised when the node cannot be reached or returns an unusable payload."""

    def __init__(self, message: str, function_id: str | None = None):
        super().__init__(message)
        self.function_id = function_id


def _parse_uint(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"boolean is not an integer: {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"negative value: {raw}")
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text and text.isascii() and text.isdecimal():
            return int(text)
    raise ValueError(f"not a decimal-encoded unsigned integer: {raw!r}")


def decode_u64_values(result: Any, expected: int, function_id: str) -> list[int]:
    """Decode the first ``expected`` entries of a view result as unsigned ints.

    Numeric view results arrive as decimal strings. They are parsed straight
    into Python ints and never pass through float.

    Raises:
        GatewayError: If the result is not a list, is too short, or holds a
            value that is not a decimal-encoded unsigned integer.
    """
    if not isinstance(result, list):
        raise GatewayError(
            f"Invalid response format for {function_id}: expected a list, "
            f"got {type(result).__name__}",
            function_id,
        )
    if len(result) < expected:
        raise GatewayError(
            f"Invalid response format for {function_id}: expected {expected} "
            f"values, got {len(result)}",
            function_id,
        )

    try:
        return [_parse_uint(raw) for raw in result[:expected]]
    except ValueError as e:
        raise GatewayError(
            f"Invalid numeric value from {function_id}: {e}", function_id
        ) from e


class SupraRpcClient:
    """Gateway to a Supra node's view-function endpoint.

    Provides:
    - Lazy, de-duplicated connection setup
    - A single ``call_view`` primitive (no retries; callers own retry policy)
    - Strict decoding helpers for numeric results
    - A liveness probe and a cold ``reset``
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 15.0,
        expected_chain_id: int = SUPRA_MAINNET_CHAIN_ID,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self._rpc_url = rpc_url.rstrip("/")
        self._timeout = timeout
        self._expected_chain_id = expected_chain_id
        self._session_factory = session_factory

        self._session: requests.Session | None = None
        self._connecting: asyncio.Future[requests.Session] | None = None
        self._generation = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def is_ready(self) -> bool:
        return self._session is not None

    def _request(
        self,
        session: requests.Session,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self._rpc_url}{path}"
        try:
            response = session.request(method, url, json=body, timeout=self._timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"{method} {url} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"Invalid JSON from {url}") from e

    async def _connect(self) -> requests.Session:
        generation = self._generation
        logger.info("Connecting to Supra RPC at %s", self._rpc_url)
        session = self._session_factory()

        try:
            payload = await asyncio.to_thread(
                self._request, session, "GET", CHAIN_ID_PATH
            )
        except GatewayError as e:
            session.close()
            logger.error("Failed to connect to Supra RPC: %s", e)
            raise GatewayError(f"Failed to connect to {self._rpc_url}: {e}") from e

        chain_id = payload.get("id") if isinstance(payload, dict) else None
        if generation != self._generation:
            session.close()
            logger.debug("Connection finished after reset; discarding it")
            raise GatewayError("Connection reset while connecting")

        self._session = session
        self._connecting = None
        logger.info("Connected to Supra RPC (chain id: %s)", chain_id)
        if isinstance(chain_id, int) and chain_id != self._expected_chain_id:
            logger.warning(
                "Node reports chain id %d, expected %d",
                chain_id,
                self._expected_chain_id,
            )
        return session

    async def _ensure_connected(self) -> requests.Session:
        if self._session is not None:
            return self._session

        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        connecting = self._connecting

        try:
            # shield: one cancelled waiter must not cancel the shared attempt
            return await asyncio.shield(connecting)
        except GatewayError:
            if self._connecting is connecting:
                self._connecting = None
            raise

    async def call_view(
        self,
        function_id: str,
        type_arguments: Sequence[str],
        args: Sequence[str] = (),
    ) -> list[Any]:
        """Call a read-only Move function and return its raw result list.

        Raises:
            GatewayError: If the connection cannot be established, the call
                fails, or the payload carries no result.
        """
        session = await self._ensure_connected()
        body = {
            "function": function_id,
            "type_arguments": list(type_arguments),
            "arguments": list(args),
        }
        logger.debug(
            "Calling %s type_args=%s args=%s",
            function_id,
            [t[:20] + "..." for t in body["type_arguments"]],
            body["arguments"],
        )

        try:
            payload = await asyncio.to_thread(
                self._request, session, "POST", VIEW_PATH, body
            )
        except GatewayError as e:
            raise GatewayError(
                f"Failed to call {function_id}: {e}", function_id
            ) from e

        if not isinstance(payload, dict) or "result" not in payload:
            raise GatewayError(f"No result for {function_id}", function_id)

        result = payload["result"]
        if result is None:
            raise GatewayError(f"No result for {function_id}", function_id)

        return result if isinstance(result, list) else [result]

    async def call_view_u64(
        self,
        function_id: str,
        type_arguments: Sequence[str],
        args: Sequence[str] = (),
        *,
        expected: int,
    ) -> list[int]:
        """``call_view`` followed by strict unsigned-integer decoding."""
        result = await self.call_view(function_id, type_arguments, args)
        return decode_u64_values(result, expected, function_id)

    async def chain_id(self) -> int:
        """Chain id from the node, or the configured default if unavailable."""
        try:
            (chain_id,) = await self.call_view_u64(
                CHAIN_ID_FUNCTION, [], [], expected=1
            )
        except GatewayError as e:
            logger.warning(
                "Could not get chain id, using default %d: %s",
                self._expected_chain_id,
                e,
            )
            return self._expected_chain_id
        return chain_id

    async def get_coin_balance(self, account_address: str, coin_type: str) -> int:
        (balance,) = await self.call_view_u64(
            COIN_BALANCE_FUNCTION, [coin_type], [account_address], expected=1
        )
        return balance

    async def get_coin_supply(self, coin_type: str) -> int | None:
        """Total minted supply of ``coin_type`` in base units.

        The framework returns ``Option<u128>``, encoded as ``{"vec": [...]}``.
        ``None`` means the coin does not track its supply.
        """
        result = await self.call_view(COIN_SUPPLY_FUNCTION, [coin_type], [])
        option = result[0] if result else None
        if not isinstance(option, dict) or not isinstance(option.get("vec"), list):
            raise GatewayError(
                f"Invalid Option payload from {COIN_SUPPLY_FUNCTION}: {option!r}",
                COIN_SUPPLY_FUNCTION,
            )
        if not option["vec"]:
            return None
        (supply,) = decode_u64_values(option["vec"], 1, COIN_SUPPLY_FUNCTION)
        return supply

    async def health_check(self) -> bool:
        """Return whether the node is reachable.

        A node that accepts the connection but fails the diagnostic call still
        counts as reachable.
        """
        try:
            await self._ensure_connected()
        except GatewayError as e:
            logger.error("Supra RPC health check failed: %s", e)
            return False

        try:
            await self.call_view(CHAIN_ID_FUNCTION, [], [])
        except GatewayError as e:
            logger.warning("Supra RPC connected but diagnostic call failed: %s", e)
            return True

        logger.debug("Supra RPC health check passed")
        return True

    def reset(self) -> None:
        """Drop the connection so the next call reconnects from scratch."""
        self._generation += 1
        session, self._session = self._session, None
        self._connecting = None
        if session is not None:
            session.close()
        logger.info("Supra RPC connection reset")
