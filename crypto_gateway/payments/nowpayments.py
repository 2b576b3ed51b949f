"""NowPayments REST API integration."""

from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Mapping, Optional

from .base import (
    CurrencyInfo,
    InvoiceResult,
    InvoiceStatus,
    PaymentGateway,
    SessionFactory,
    WebhookEvent,
    as_amount,
)
from .currencies import describe_currency

PAID_STATUSES = frozenset({"confirmed", "finished"})
_CHECKOUT_URL = "https://nowpayments.io/payment/?iid={payment_id}"


class NowPaymentsGateway(PaymentGateway):
    """Client for the NowPayments API (``x-api-key`` authentication)."""

    digestmod = hashlib.sha512

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.nowpayments.io/v1",
        webhook_secret: str = "",
        ipn_callback_url: str,
        timeout: float = 30.0,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._ipn_callback_url = ipn_callback_url
        super().__init__(webhook_secret=webhook_secret, timeout=timeout, session_factory=session_factory)

    @property
    def name(self) -> str:
        return "nowpayments"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "Content-Type": "application/json",
        }

    async def create_invoice(
        self,
        amount: float,
        currency: Optional[str],
        order_id: str,
        description: str,
        pay_currency: str = "btc",
    ) -> InvoiceResult:
        request_payload = {
            "price_amount": amount,
            "price_currency": currency or "usd",
            "pay_currency": pay_currency,
            "order_id": order_id,
            "order_description": description,
            "ipn_callback_url": self._ipn_callback_url,
            "is_fixed_rate": True,
            "is_fee_paid_by_user": False,
        }
        data = await self._request_json("POST", f"{self._base_url}/payment", json=request_payload)
        payment_id = str(data["payment_id"])
        return InvoiceResult(
            success=True,
            gateway=self.name,
            invoice_id=payment_id,
            payment_url=_CHECKOUT_URL.format(payment_id=payment_id),
            payment_address=data.get("pay_address"),
            amount=as_amount(data.get("price_amount")),
            currency=data.get("price_currency"),
            pay_currency=data.get("pay_currency"),
            status=data.get("payment_status"),
        )

    async def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        data = await self._request_json("GET", f"{self._base_url}/payment/{invoice_id}")
        status = data.get("payment_status")
        return InvoiceStatus(
            success=True,
            gateway=self.name,
            status=status,
            amount=as_amount(data.get("price_amount")),
            currency=data.get("price_currency"),
            pay_amount=as_amount(data.get("pay_amount")),
            pay_currency=data.get("pay_currency"),
            paid=status in PAID_STATUSES,
        )

    def parse_webhook(self, data: Mapping[str, Any]) -> WebhookEvent:
        status = data.get("payment_status")
        invoice_id = data.get("payment_id")
        if invoice_id is not None:
            invoice_id = str(invoice_id)

        if status in PAID_STATUSES:
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_completed",
                invoice_id=invoice_id,
                amount=as_amount(data.get("price_amount")),
                currency=data.get("price_currency"),
                pay_amount=as_amount(data.get("pay_amount")),
                pay_currency=data.get("pay_currency"),
            )
        if status == "expired":
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_expired",
                invoice_id=invoice_id,
            )
        if status == "failed":
            return WebhookEvent(
                success=True,
                gateway=self.name,
                event="payment_failed",
                invoice_id=invoice_id,
                error=data.get("failure_reason"),
            )
        return WebhookEvent(
            success=True,
            gateway=self.name,
            event="payment_updated",
            invoice_id=invoice_id,
            status=status,
        )

    async def get_supported_currencies(self) -> List[CurrencyInfo]:
        data = await self._request_json("GET", f"{self._base_url}/currencies")
        return [describe_currency(str(code)) for code in data["currencies"]]

    async def estimate(self, usd_amount: float, crypto_code: str) -> float:
        data = await self._request_json(
            "GET",
            f"{self._base_url}/estimate",
            params={
                "amount": str(usd_amount),
                "currency_from": "usd",
                "currency_to": crypto_code.lower(),
            },
        )
        estimated = as_amount(data.get("estimated_amount"))
        if estimated is None:
            raise ValueError(f"NowPayments returned no estimate for {crypto_code}")
        return estimated

    async def get_minimum_amount(self, currency: str = "BTC") -> Dict[str, Any]:
        return await self._request_json("GET", f"{self._base_url}/min-amount/{currency}")
