from sqlalchemy import (
    Integer,
    String,
    Text,
    Index,
    Boolean,
    DateTime,
    UniqueConstraint,
    Numeric,
    func,
)
from sqlalchemy.orm import mapped_column
from datetime import datetime
from .base import Base


class CryptoPayment(Base):
    """An invoice opened with a crypto gateway and its latest known state."""
    __tablename__ = "crypto_payments"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id = mapped_column(String(128), nullable=False, index=True)
    gateway = mapped_column(String(32), nullable=False)
    invoice_id = mapped_column(String(128), nullable=False)
    description = mapped_column(String(255), nullable=True)
    amount = mapped_column(Numeric(18, 8), nullable=True)
    currency = mapped_column(String(16), nullable=True)
    pay_amount = mapped_column(Numeric(24, 12), nullable=True)
    pay_currency = mapped_column(String(16), nullable=True)
    payment_url = mapped_column(String(512), nullable=True)
    payment_address = mapped_column(String(255), nullable=True)
    status = mapped_column(String(32), nullable=False, default="new", server_default="new")
    paid = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    last_event = mapped_column(String(32), nullable=True)
    created_at = mapped_column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.current_timestamp())
    updated_at = mapped_column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.current_timestamp())
    details = mapped_column(Text, nullable=True)  # Raw JSON of the last unmapped webhook

    __table_args__ = (
        UniqueConstraint("gateway", "invoice_id", name="uq_crypto_payments_gateway_invoice"),
        Index("idx_crypto_payments_created", "created_at"),
    )
