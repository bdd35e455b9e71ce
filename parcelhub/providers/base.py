"""Common contract and HTTP plumbing for delivery-partner adapters."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Awaitable, Iterator, Mapping, Optional, Protocol, Type, TypeVar

import httpx

from parcelhub.core.constants import OrderStatus
from parcelhub.core.money import to_decimal

from .exceptions import ProviderError, ProviderUnavailable, ShipmentOutcomeUnknown
from .models import Address, PackageInfo, ProviderQuote, Serviceability, ShipmentReceipt, TrackingInfo
from .status import fold_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({401, 403, 408, 425, 429})

# Operations that must not be re-sent once the partner may have acted on them.
NON_IDEMPOTENT_OPERATIONS = frozenset({"create_shipment"})

# What a payload of the wrong shape raises while being picked apart.
PARSE_ERRORS = (KeyError, IndexError, TypeError, AttributeError, ValueError)


class AuthScheme(Protocol):
    async def headers(self) -> dict[str, str]: ...

    def invalidate(self) -> None: ...


class ProviderAdapter(ABC):
    """Uniform interface over one delivery partner.

    Adapters convert partner payloads into the normalized value objects in
    :mod:`parcelhub.providers.models` and raise only :class:`ProviderError`
    subclasses. Weights arrive in kilograms; conversion to partner units
    happens here.
    """

    name: str = ""
    display_name: str = ""
    international: bool = False
    status_map: Mapping[str, OrderStatus] = {}

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float,
        auth: Optional[AuthScheme] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = float(timeout)
        self._auth = auth
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    @abstractmethod
    async def quote_rate(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> ProviderQuote:
        """Return the partner's price for the corridor."""

    @abstractmethod
    async def create_shipment(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        order_ref: str,
        service_code: Optional[str] = None,
    ) -> ShipmentReceipt:
        """Book the shipment with the partner and return its tracking id."""

    @abstractmethod
    async def track_shipment(self, tracking_id: str) -> TrackingInfo:
        """Fetch the current partner status for a tracking id."""

    async def check_serviceability(self, origin: str, destination: str) -> Serviceability:
        return Serviceability(serviceable=True, message="Serviceability lookup not offered by partner")

    def map_status(self, partner_status: object) -> OrderStatus:
        return fold_status(partner_status, self.status_map)

    def tracking_url(self, tracking_id: str) -> Optional[str]:
        return None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a partner call under the adapter's overall deadline.

        A deadline hit during a non-idempotent operation is reported as
        :class:`ShipmentOutcomeUnknown`, since the partner may already have
        acted on the request. Anything an adapter lets escape while reading
        a malformed payload is converted the same way as in :meth:`_parsing`.
        """
        try:
            with self._parsing(operation):
                return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("[%s] %s exceeded %.0fs deadline", self.name, operation, self.timeout)
            raise self._error(self._unsettled(operation), operation, "deadline exceeded") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def kg_to_grams(weight_kg: float) -> int:
        return int(round(float(weight_kg) * 1000))

    @staticmethod
    def amount(value: Any) -> Decimal:
        return to_decimal(value)

    def _unsettled(self, operation: str) -> Type[ProviderError]:
        if operation in NON_IDEMPOTENT_OPERATIONS:
            return ShipmentOutcomeUnknown
        return ProviderUnavailable

    @contextmanager
    def _parsing(self, operation: str) -> Iterator[None]:
        """Turn shape errors in a partner payload into a ProviderError."""
        try:
            yield
        except PARSE_ERRORS as exc:
            logger.warning("[%s] %s returned a malformed payload: %r", self.name, operation, exc)
            raise self._error(self._unsettled(operation), operation, f"malformed partner response ({exc!r})") from exc

    def _error(self, error_cls: Type[ProviderError], operation: str, message: str, status_code: Optional[int] = None) -> ProviderError:
        return error_cls(message, partner=self.name, operation=operation, status_code=status_code)

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        authenticated: bool = True,
        rejection: Type[ProviderError] = ProviderUnavailable,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and translate transport and HTTP failures.

        4xx responses other than auth and throttling are raised as
        ``rejection``; everything else that fails is ProviderUnavailable,
        except that a request which may have been delivered without an
        answer (timeout or dropped connection after connecting) fails a
        non-idempotent operation with ShipmentOutcomeUnknown.
        A 401 on an authenticated call drops the cached credential and the
        request is retried once.
        """
        extra_headers = dict(kwargs.pop("headers", None) or {})
        for attempt in (1, 2):
            headers = dict(extra_headers)
            if authenticated and self._auth is not None:
                headers.update(await self._auth.headers())
            try:
                response = await self._client.request(method, url, headers=headers, **kwargs)
            except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as exc:
                logger.warning("[%s] %s could not reach partner: %s", self.name, operation, exc)
                raise self._error(ProviderUnavailable, operation, str(exc) or type(exc).__name__) from exc
            except httpx.TimeoutException as exc:
                logger.warning("[%s] %s timed out after %.0fs", self.name, operation, self.timeout)
                raise self._error(self._unsettled(operation), operation, "request timed out") from exc
            except (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError) as exc:
                logger.warning("[%s] %s lost the connection mid-request: %s", self.name, operation, exc)
                raise self._error(self._unsettled(operation), operation, str(exc) or type(exc).__name__) from exc
            except httpx.HTTPError as exc:
                logger.warning("[%s] %s transport error: %s", self.name, operation, exc)
                raise self._error(ProviderUnavailable, operation, str(exc) or type(exc).__name__) from exc

            if response.status_code == 401 and authenticated and self._auth is not None and attempt == 1:
                self._auth.invalidate()
                continue
            break

        if response.is_error:
            message = self._error_message(response)
            logger.warning("[%s] %s returned HTTP %s: %s", self.name, operation, response.status_code, message)
            if response.status_code >= 500 or response.status_code in RETRYABLE_STATUS_CODES:
                raise self._error(ProviderUnavailable, operation, message, response.status_code)
            raise self._error(rejection, operation, message, response.status_code)
        return response

    def _json(self, operation: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise self._error(self._unsettled(operation), operation, "partner returned a non-JSON body") from exc

    def _json_object(self, operation: str, response: httpx.Response) -> dict[str, Any]:
        body = self._json(operation, response)
        if not isinstance(body, dict):
            raise self._error(self._unsettled(operation), operation, "unexpected response shape")
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        if isinstance(body, dict):
            for key in ("message", "error", "detail", "rmk", "Message", "Error"):
                value = body.get(key)
                if value:
                    return str(value)
        return str(body)[:200]
