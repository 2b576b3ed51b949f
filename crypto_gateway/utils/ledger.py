from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crypto_gateway.payments import InvoiceResult, InvoiceStatus, WebhookEvent
from db import CryptoPayment

logger = logging.getLogger(__name__)

_EVENT_STATUSES = {
    "payment_completed": "paid",
    "payment_expired": "expired",
    "payment_failed": "failed",
}


async def record_invoice(
    session: AsyncSession,
    invoice: InvoiceResult,
    *,
    order_id: str,
    description: Optional[str] = None,
) -> CryptoPayment:
    """Store a freshly created invoice."""
    if not invoice.success or not invoice.invoice_id:
        raise ValueError("Only successful invoices can be recorded")

    now = datetime.utcnow()
    payment = CryptoPayment(
        order_id=order_id,
        gateway=invoice.gateway,
        invoice_id=invoice.invoice_id,
        description=description,
        amount=invoice.amount,
        currency=invoice.currency,
        pay_currency=invoice.pay_currency,
        payment_url=invoice.payment_url,
        payment_address=invoice.payment_address,
        status=invoice.status or "new",
        paid=False,
        created_at=now,
        updated_at=now,
    )
    session.add(payment)
    await session.flush()
    return payment


async def get_payment(session: AsyncSession, gateway: str, invoice_id: str) -> Optional[CryptoPayment]:
    return await session.scalar(
        select(CryptoPayment).where(
            CryptoPayment.gateway == gateway,
            CryptoPayment.invoice_id == invoice_id,
        )
    )


async def apply_status(session: AsyncSession, payment: CryptoPayment, status: InvoiceStatus) -> CryptoPayment:
    """Refresh a ledger row from a status poll."""
    if not status.success:
        return payment
    if status.status and not payment.paid:
        payment.status = status.status
    if status.pay_amount is not None:
        payment.pay_amount = status.pay_amount
    if status.pay_currency:
        payment.pay_currency = status.pay_currency
    payment.paid = payment.paid or status.paid
    payment.updated_at = datetime.utcnow()
    await session.flush()
    return payment


async def apply_webhook_event(session: AsyncSession, event: WebhookEvent) -> Optional[CryptoPayment]:
    """Apply a verified webhook event; returns ``None`` for invoices we never issued."""
    if not event.success or not event.gateway or not event.invoice_id:
        return None

    payment = await get_payment(session, event.gateway, event.invoice_id)
    if payment is None:
        logger.warning("Webhook for unknown %s invoice %s ignored", event.gateway, event.invoice_id)
        return None

    payment.last_event = event.event
    if event.event == "payment_completed":
        payment.paid = True
        payment.status = _EVENT_STATUSES[event.event]
        if event.pay_amount is not None:
            payment.pay_amount = event.pay_amount
        if event.pay_currency:
            payment.pay_currency = event.pay_currency
    elif payment.paid:
        logger.info(
            "Late %s for paid %s invoice %s kept as paid", event.event, event.gateway, event.invoice_id
        )
    elif event.event in _EVENT_STATUSES:
        payment.status = _EVENT_STATUSES[event.event]
    elif event.status:
        payment.status = event.status
    if event.data is not None:
        payment.details = json.dumps(dict(event.data), default=str)
    payment.updated_at = datetime.utcnow()
    await session.flush()
    return payment
