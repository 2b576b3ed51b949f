"""Payment gateway abstractions for crypto checkout."""

from .base import CurrencyInfo, InvoiceResult, InvoiceStatus, PaymentGateway, WebhookEvent, WebhookEventType
from .btcpay import BTCPayGateway
from .errors import GatewayError
from .nowpayments import NowPaymentsGateway
from .service import CryptoPaymentService, build_payment_service

__all__ = [
    "BTCPayGateway",
    "CryptoPaymentService",
    "CurrencyInfo",
    "GatewayError",
    "InvoiceResult",
    "InvoiceStatus",
    "NowPaymentsGateway",
    "PaymentGateway",
    "WebhookEvent",
    "WebhookEventType",
    "build_payment_service",
]
