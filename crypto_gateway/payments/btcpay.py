"""BTCPay Server Greenfield API integration."""

from __future__ import annotations

import hashlib
from typing import Any, List, Mapping, Optional

from .base import (
    CurrencyInfo,
    InvoiceResult,
    InvoiceStatus,
    PaymentGateway,
    SessionFactory,
    WebhookEvent,
    as_amount,
)
from .currencies import BTCPAY_CURRENCIES

_SETTLED_STATUS = "Settled"
_SIGNATURE_PREFIX = "sha256="


class BTCPayGateway(PaymentGateway):
    """Client for a BTCPay Server store."""

    digestmod = hashlib.sha256

    def __init__(
        self,
        *,
        server_url: str,
        api_key: str,
        store_id: str,
        webhook_secret: str = "",
        notification_url: str,
        redirect_url: str,
        timeout: float = 30.0,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._api_key = api_key
        self._store_id = store_id
        self._notification_url = notification_url
        self._redirect_url = redirect_url
        super().__init__(webhook_secret=webhook_secret, timeout=timeout, session_factory=session_factory)

    @property
    def name(self) -> str:
        return "btcpay"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._store_id)

    @property
    def _invoices_url(self) -> str:
        return f"{self._server_url}/api/v1/stores/{self._store_id}/invoices"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self._api_key}",
            "Content-Type": "application/json",
        }

    async def create_invoice(
        self,
        amount: float,
        currency: Optional[str],
        order_id: str,
        description: str,
    ) -> InvoiceResult:
        request_payload = {
            "amount": amount,
            "currency": currency or "USD",
            "orderId": order_id,
            "itemDesc": description,
            "notificationURL": self._notification_url,
            "redirectURL": self._redirect_url,
            "fullNotifications": True,
            "extendedNotifications": True,
        }
        data = await self._request_json("POST", self._invoices_url, json=request_payload)
        addresses = data.get("addresses") or {}
        return InvoiceResult(
            success=True,
            gateway=self.name,
            invoice_id=str(data["id"]),
            payment_url=data.get("checkoutLink"),
            payment_address=addresses.get("BTC", ""),
            amount=as_amount(data.get("amount")),
            currency=data.get("currency"),
            status=data.get("status"),
        )

    async def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        data = await self._request_json("GET", f"{self._invoices_url}/{invoice_id}")
        status = data.get("status")
        return InvoiceStatus(
            success=True,
            gateway=self.name,
            status=status,
            amount=as_amount(data.get("amount")),
            currency=data.get("currency"),
            paid=status == _SETTLED_STATUS,
        )

    def parse_webhook(self, data: Mapping[str, Any]) -> WebhookEvent:
        event_type = data.get("type")
        invoice_id = data.get("invoiceId")
        if invoice_id is not None:
            invoice_id = str(invoice_id)
        if event_type == "InvoiceSettled":
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_completed",
                invoice_id=invoice_id,
                amount=as_amount(data.get("amount")),
                currency=data.get("currency"),
            )
        if event_type == "InvoiceExpired":
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_expired",
                invoice_id=invoice_id,
            )
        if event_type == "InvoiceInvalid":
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_failed",
                invoice_id=invoice_id,
                error=data.get("error"),
            )
        return WebhookEvent(
            success=True,
            gateway=self.name,
            event="unknown",
            invoice_id=invoice_id,
            data=dict(data),
        )

    async def get_supported_currencies(self) -> List[CurrencyInfo]:
        return list(BTCPAY_CURRENCIES)

    def _normalize_signature(self, signature: str) -> str:
        normalized = super()._normalize_signature(signature)
        if normalized.startswith(_SIGNATURE_PREFIX):
            return normalized[len(_SIGNATURE_PREFIX):]
        return normalized
