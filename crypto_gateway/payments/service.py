"""Unified crypto payment service over the configured gateways."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from config import GatewaySettings, load_gateway_settings

from .base import CurrencyInfo, InvoiceResult, InvoiceStatus, PaymentGateway, SessionFactory, WebhookEvent
from .btcpay import BTCPayGateway
from .currencies import FALLBACK_MINIMUM_AMOUNTS, NOWPAYMENTS_FALLBACK_CURRENCIES, fallback_conversion
from .errors import GatewayError
from .nowpayments import NowPaymentsGateway

logger = logging.getLogger(__name__)

# Statuses after which an unpaid invoice will never settle.
_TERMINAL_UNPAID_STATUSES = frozenset({"Expired", "Invalid", "expired", "failed", "refunded"})


class CryptoPaymentService:
    """One invoice/status/webhook contract regardless of the active gateway.

    Both gateways are always constructed so that webhooks and signature checks
    can address either of them explicitly; ``settings.gateway`` only decides
    which one serves calls that do not name a gateway.

    Remote failures never raise out of this class: they are logged and
    returned as results with ``success=False``.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        *,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.settings = settings
        self.btcpay = BTCPayGateway(
            server_url=settings.btcpay_url,
            api_key=settings.btcpay_api_key,
            store_id=settings.btcpay_store_id,
            webhook_secret=settings.btcpay_webhook_secret,
            notification_url=settings.webhook_url,
            redirect_url=settings.redirect_url,
            timeout=settings.http_timeout,
            session_factory=session_factory,
        )
        self.nowpayments = NowPaymentsGateway(
            api_key=settings.nowpayments_api_key,
            base_url=settings.nowpayments_base_url,
            webhook_secret=settings.nowpayments_webhook_secret,
            ipn_callback_url=settings.webhook_url,
            timeout=settings.http_timeout,
            session_factory=session_factory,
        )
        self._gateways: Dict[str, PaymentGateway] = {
            self.btcpay.name: self.btcpay,
            self.nowpayments.name: self.nowpayments,
        }

    @property
    def gateway_name(self) -> str:
        return self.settings.gateway

    @property
    def active_gateway(self) -> PaymentGateway:
        return self._gateways[self.settings.gateway]

    def get_gateway(self, name: Optional[str] = None) -> PaymentGateway:
        key = (name or self.settings.gateway).lower()
        try:
            return self._gateways[key]
        except KeyError:
            raise ValueError(f"Unknown crypto gateway: {name!r}") from None

    async def create_invoice(
        self,
        amount: float,
        currency: Optional[str],
        order_id: str,
        description: str,
    ) -> InvoiceResult:
        gateway = self.active_gateway
        try:
            invoice = await gateway.create_invoice(amount, currency, order_id, description)
        except (GatewayError, KeyError, TypeError, AttributeError) as exc:
            logger.error("%s invoice creation error: %s", gateway.name, _describe(exc))
            return InvoiceResult.failure(gateway.name, _error_message(exc))
        logger.info(
            "Created %s invoice %s for order %s (%s %s)",
            gateway.name,
            invoice.invoice_id,
            order_id,
            invoice.amount,
            invoice.currency,
        )
        return invoice

    async def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        gateway = self.active_gateway
        try:
            return await gateway.get_invoice_status(invoice_id)
        except (GatewayError, TypeError, AttributeError) as exc:
            logger.error("%s get invoice error: %s", gateway.name, _describe(exc))
            return InvoiceStatus.failure(gateway.name, _error_message(exc))

    def verify_webhook_signature(
        self,
        payload: bytes | str,
        signature: Optional[str],
        gateway: Optional[str] = None,
    ) -> bool:
        try:
            return self.get_gateway(gateway).verify_signature(payload, signature)
        except ValueError as exc:
            logger.error("Webhook signature verification error: %s", exc)
            return False

    async def process_webhook(
        self,
        payload: bytes | str,
        signature: Optional[str],
        gateway: Optional[str] = None,
    ) -> WebhookEvent:
        current = gateway or self.settings.gateway
        if not self.verify_webhook_signature(payload, signature, current):
            logger.warning("Rejected %s webhook with invalid signature", current)
            return WebhookEvent.failure("Invalid signature", gateway=current)

        try:
            data = json.loads(payload)
        except ValueError as exc:
            logger.error("Webhook processing error: %s", exc)
            return WebhookEvent.failure(str(exc), gateway=current)
        if not isinstance(data, dict):
            return WebhookEvent.failure("Webhook payload must be a JSON object", gateway=current)

        event = self.get_gateway(current).parse_webhook(data)
        logger.info("Processed %s webhook: %s for invoice %s", current, event.event, event.invoice_id)
        return event

    async def get_supported_currencies(self) -> List[CurrencyInfo]:
        gateway = self.active_gateway
        try:
            return await gateway.get_supported_currencies()
        except (GatewayError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Error fetching %s currencies: %s", gateway.name, _describe(exc))
            return list(NOWPAYMENTS_FALLBACK_CURRENCIES)

    async def convert_to_crypto(self, usd_amount: float, crypto_code: str) -> float:
        """Estimate how much ``crypto_code`` buys ``usd_amount`` dollars.

        Uses the NowPayments estimate endpoint when that gateway is active and
        falls back to the static demo rates otherwise.
        """
        if self.settings.gateway == self.nowpayments.name:
            try:
                return await self.nowpayments.estimate(usd_amount, crypto_code)
            except (GatewayError, ValueError, AttributeError) as exc:
                logger.error("Error getting NowPayments rate: %s", _describe(exc))
        return fallback_conversion(usd_amount, crypto_code)

    async def get_minimum_amounts(self) -> Dict[str, Any]:
        if self.settings.gateway == self.nowpayments.name:
            try:
                return await self.nowpayments.get_minimum_amount("BTC")
            except GatewayError as exc:
                logger.error("Error getting minimum amounts: %s", _describe(exc))
        return dict(FALLBACK_MINIMUM_AMOUNTS)

    async def poll_until_paid(
        self,
        invoice_id: str,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Poll the active gateway until the invoice settles or can no longer settle.

        ``interval`` and ``timeout`` default to the poll settings.
        """
        if interval is None:
            interval = self.settings.poll_interval
        if timeout is None:
            timeout = self.settings.poll_timeout
        deadline = asyncio.get_running_loop().time() + timeout
        while asyncio.get_running_loop().time() < deadline:
            status = await self.get_invoice_status(invoice_id)
            if status.paid:
                return True
            if status.status in _TERMINAL_UNPAID_STATUSES:
                return False
            await asyncio.sleep(interval)
        return False


def build_payment_service(settings: Optional[GatewaySettings] = None) -> CryptoPaymentService:
    return CryptoPaymentService(settings or load_gateway_settings())


def _error_message(exc: Exception) -> str:
    if isinstance(exc, GatewayError):
        return exc.message
    return str(exc) or exc.__class__.__name__


def _describe(exc: Exception) -> str:
    if isinstance(exc, GatewayError) and exc.payload is not None:
        return f"{exc.message} ({exc.payload})"
    return _error_message(exc)
