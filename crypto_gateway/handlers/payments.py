"""HTTP endpoints for crypto checkout and gateway callbacks."""

from __future__ import annotations

import logging
from typing import Any, Optional

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession

from config import SUPPORTED_GATEWAYS
from crypto_gateway.middlewares import SESSION_KEY, error_response
from crypto_gateway.payments import CryptoPaymentService
from crypto_gateway.utils import ledger

logger = logging.getLogger(__name__)

PAYMENT_SERVICE_KEY = web.AppKey("payment_service", CryptoPaymentService)
API_PREFIX = "/api/membership/payments/crypto"

# Header each vendor signs its callbacks with.
SIGNATURE_HEADERS = {
    "btcpay": "BTCPay-Sig",
    "nowpayments": "x-nowpayments-sig",
}

routes = web.RouteTableDef()


def _service(request: web.Request) -> CryptoPaymentService:
    return request.app[PAYMENT_SERVICE_KEY]


def _session(request: web.Request) -> AsyncSession:
    return request[SESSION_KEY]


def _parse_amount(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if amount <= 0 or amount != amount or amount == float("inf"):
        return None
    return amount


def _detect_gateway(request: web.Request, default: str) -> Optional[str]:
    requested = request.query.get("gateway")
    if requested:
        requested = requested.lower()
        return requested if requested in SUPPORTED_GATEWAYS else None
    for gateway, header in SIGNATURE_HEADERS.items():
        if header in request.headers:
            return gateway
    return default


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    service = _service(request)
    return web.json_response(
        {
            "success": True,
            "gateway": service.gateway_name,
            "configured": service.active_gateway.is_configured,
        }
    )


@routes.post(f"{API_PREFIX}/invoices")
async def create_invoice(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        return error_response(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        return error_response(400, "Request body must be a JSON object")

    amount = _parse_amount(body.get("amount"))
    if amount is None:
        return error_response(400, "amount must be a positive number")
    order_id = body.get("orderId")
    if order_id is None or str(order_id).strip() == "":
        return error_response(400, "orderId is required")
    order_id = str(order_id).strip()
    currency = body.get("currency")
    if currency is not None and not isinstance(currency, str):
        return error_response(400, "currency must be a string")
    description = body.get("description") or f"Order {order_id}"

    service = _service(request)
    invoice = await service.create_invoice(amount, currency, order_id, description)
    if not invoice.success:
        return error_response(502, "Failed to create crypto invoice", invoice.error)

    await ledger.record_invoice(_session(request), invoice, order_id=order_id, description=description)
    return web.json_response(invoice.to_dict(), status=201)


@routes.get(f"{API_PREFIX}/invoices/{{invoice_id}}")
async def get_invoice_status(request: web.Request) -> web.Response:
    invoice_id = request.match_info["invoice_id"]
    service = _service(request)
    status = await service.get_invoice_status(invoice_id)
    if not status.success:
        return error_response(502, "Failed to get invoice status", status.error)

    payload = status.to_dict()
    payment = await ledger.get_payment(_session(request), status.gateway, invoice_id)
    if payment is not None:
        await ledger.apply_status(_session(request), payment, status)
        payload["orderId"] = payment.order_id
    return web.json_response(payload)


@routes.post(f"{API_PREFIX}/webhook")
async def webhook(request: web.Request) -> web.Response:
    service = _service(request)
    gateway = _detect_gateway(request, service.gateway_name)
    if gateway is None:
        return error_response(400, "Unknown gateway", request.query.get("gateway"))

    payload = await request.read()
    signature = request.headers.get(SIGNATURE_HEADERS[gateway])
    event = await service.process_webhook(payload, signature, gateway)
    if not event.success:
        status = 401 if event.error == "Invalid signature" else 400
        return error_response(status, "Webhook rejected", event.error)

    payment = await ledger.apply_webhook_event(_session(request), event)
    response = event.to_dict()
    response["recorded"] = payment is not None
    return web.json_response(response)


@routes.get(f"{API_PREFIX}/currencies")
async def supported_currencies(request: web.Request) -> web.Response:
    service = _service(request)
    currencies = await service.get_supported_currencies()
    return web.json_response(
        {
            "success": True,
            "gateway": service.gateway_name,
            "currencies": [currency.to_dict() for currency in currencies],
        }
    )


@routes.get(f"{API_PREFIX}/convert")
async def convert(request: web.Request) -> web.Response:
    amount = _parse_amount(request.query.get("amount"))
    if amount is None:
        return error_response(400, "amount must be a positive number")
    currency = (request.query.get("currency") or "").strip()
    if not currency:
        return error_response(400, "currency is required")

    estimated = await _service(request).convert_to_crypto(amount, currency)
    return web.json_response(
        {
            "success": True,
            "amount": amount,
            "currency": currency.upper(),
            "estimatedAmount": estimated,
        }
    )


@routes.get(f"{API_PREFIX}/minimum-amounts")
async def minimum_amounts(request: web.Request) -> web.Response:
    service = _service(request)
    amounts = await service.get_minimum_amounts()
    return web.json_response(
        {"success": True, "gateway": service.gateway_name, "minimumAmounts": amounts}
    )
