"""Normalized payment results and the abstract gateway contract."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

import aiohttp

from logging_config import get_logger

from .errors import GatewayError

SessionFactory = Callable[[], aiohttp.ClientSession]

WebhookEventType = Literal[
    "payment_completed",
    "payment_expired",
    "payment_failed",
    "payment_updated",
    "unknown",
]


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def as_amount(value: Any) -> Optional[float]:
    """Vendors send amounts as numbers or decimal strings."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    name: str
    symbol: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "name": self.name, "symbol": self.symbol}


@dataclass(frozen=True)
class InvoiceResult:
    """Outcome of creating an invoice with a gateway."""

    success: bool
    gateway: str
    invoice_id: Optional[str] = None
    payment_url: Optional[str] = None
    payment_address: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    pay_currency: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, gateway: str, error: str) -> "InvoiceResult":
        return cls(success=False, gateway=gateway, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "success": self.success,
                "gateway": self.gateway,
                "invoiceId": self.invoice_id,
                "paymentUrl": self.payment_url,
                "paymentAddress": self.payment_address,
                "amount": self.amount,
                "currency": self.currency,
                "payCurrency": self.pay_currency,
                "status": self.status,
                "error": self.error,
            }
        )


@dataclass(frozen=True)
class InvoiceStatus:
    """Current state of an invoice as reported by its gateway."""

    success: bool
    gateway: str
    status: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    pay_amount: Optional[float] = None
    pay_currency: Optional[str] = None
    paid: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, gateway: str, error: str) -> "InvoiceStatus":
        return cls(success=False, gateway=gateway, error=error)

    def to_dict(self) -> Dict[str, Any]:
        payload = _drop_none(
            {
                "success": self.success,
                "gateway": self.gateway,
                "status": self.status,
                "amount": self.amount,
                "currency": self.currency,
                "payAmount": self.pay_amount,
                "payCurrency": self.pay_currency,
                "error": self.error,
            }
        )
        if self.success:
            payload["paid"] = self.paid
        return payload


@dataclass(frozen=True)
class WebhookEvent:
    """A vendor webhook translated into the shared event vocabulary."""

    success: bool
    gateway: Optional[str] = None
    event: Optional[WebhookEventType] = None
    invoice_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    pay_amount: Optional[float] = None
    pay_currency: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    data: Optional[Mapping[str, Any]] = field(default=None, compare=False)

    @classmethod
    def failure(cls, error: str, gateway: Optional[str] = None) -> "WebhookEvent":
        return cls(success=False, gateway=gateway, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "success": self.success,
                "gateway": self.gateway,
                "event": self.event,
                "invoiceId": self.invoice_id,
                "amount": self.amount,
                "currency": self.currency,
                "payAmount": self.pay_amount,
                "payCurrency": self.pay_currency,
                "status": self.status,
                "error": self.error,
                "data": dict(self.data) if self.data is not None else None,
            }
        )


class PaymentGateway(ABC):
    """Base class for a remote crypto payment processor.

    Subclasses translate between the vendor's JSON and the normalized result
    types above. Remote failures surface as :class:`GatewayError`; turning
    them into ``success=False`` results is the job of the service layer.
    """

    digestmod: Any = hashlib.sha256

    def __init__(
        self,
        *,
        webhook_secret: str = "",
        timeout: float = 30.0,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._webhook_secret = webhook_secret
        self._timeout = timeout
        self._session_factory = session_factory or aiohttp.ClientSession
        self.logger = get_logger(__name__, gateway=self.name)

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in results and configuration (``btcpay``, ``nowpayments``)."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether API credentials are present."""

    @property
    @abstractmethod
    def _headers(self) -> dict[str, str]:
        ...

    @abstractmethod
    async def create_invoice(
        self,
        amount: float,
        currency: Optional[str],
        order_id: str,
        description: str,
    ) -> InvoiceResult:
        ...

    @abstractmethod
    async def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        ...

    @abstractmethod
    def parse_webhook(self, data: Mapping[str, Any]) -> WebhookEvent:
        """Map a decoded webhook body onto a :class:`WebhookEvent`."""

    @abstractmethod
    async def get_supported_currencies(self) -> List[CurrencyInfo]:
        ...

    @property
    def has_webhook_secret(self) -> bool:
        return bool(self._webhook_secret)

    def expected_signature(self, payload: bytes | str) -> str:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return hmac.new(
            self._webhook_secret.encode("utf-8"), payload, self.digestmod
        ).hexdigest()

    def verify_signature(self, payload: bytes | str, signature: Optional[str]) -> bool:
        if not signature:
            return False
        if not self._webhook_secret:
            self.logger.warning("Webhook secret is not configured, rejecting signature")
            return False
        presented = self._normalize_signature(signature).encode("utf-8")
        return hmac.compare_digest(presented, self.expected_signature(payload).encode("ascii"))

    def _normalize_signature(self, signature: str) -> str:
        return signature.strip().lower()

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Perform one HTTP call and return the decoded JSON body."""
        try:
            async with self._session_factory() as session:
                async with session.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as response:
                    status = response.status
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        if status >= 400:
                            raise GatewayError.from_response(self.name, status, None) from None
                        raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise GatewayError(str(exc) or exc.__class__.__name__, gateway=self.name) from exc

        if status >= 400:
            raise GatewayError.from_response(self.name, status, data)
        return data

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
