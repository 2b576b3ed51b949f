"""
Crypto payment gateway service - BTCPay Server / NowPayments checkout API
"""

import argparse
import asyncio
import logging
import sys

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from logging_config import setup_logging

from config import (
    DATABASE_URL,
    WEB_SERVER_HOST,
    WEB_SERVER_PORT,
    load_gateway_settings,
    missing_webhook_secret_warning,
)

from crypto_gateway.app import create_app
from crypto_gateway.payments import CryptoPaymentService, build_payment_service

from db import Base

logger = logging.getLogger(__name__)


def parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and return CLI arguments."""

    parser = argparse.ArgumentParser(description="Run the crypto payment gateway service")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        metavar="LEVEL",
        help="Override base log level (name or number)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Print gateway configuration, currencies and sample conversions, then exit",
    )
    parser.add_argument(
        "--wait",
        dest="wait_invoice",
        metavar="INVOICE_ID",
        help="Poll the active gateway until the invoice is paid, then exit (0 paid, 2 not paid)",
    )
    parser.add_argument("--host", default=WEB_SERVER_HOST, help="Bind address for the web server")
    parser.add_argument("--port", type=int, default=WEB_SERVER_PORT, help="Port for the web server")
    return parser.parse_args(argv)


def build_engine(database_url: str) -> AsyncEngine:
    engine_kwargs: dict[str, object] = {}
    if database_url.startswith("sqlite+aiosqlite"):
        engine_kwargs["connect_args"] = {"timeout": 30}
        engine_kwargs["poolclass"] = NullPool
    return create_async_engine(database_url, **engine_kwargs)


def _apply_sqlite_pragmas(sync_conn) -> None:
    """Enable WAL mode and generous timeouts for concurrent SQLite access."""
    sync_conn.exec_driver_sql("PRAGMA journal_mode=WAL")
    sync_conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
    sync_conn.exec_driver_sql("PRAGMA busy_timeout=30000")


async def init_database(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        if engine.url.drivername.startswith("sqlite"):
            await conn.run_sync(_apply_sqlite_pragmas)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/ensured.")


def build_web_app(service: CryptoPaymentService, engine: AsyncEngine) -> web.Application:
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    app = create_app(service, sessionmaker)

    async def on_startup(_: web.Application) -> None:
        logger.info("Service starting with %s gateway", service.gateway_name)
        await init_database(engine)

    async def on_cleanup(_: web.Application) -> None:
        logger.info("Shutting down, closing database connections...")
        await engine.dispose()
        logger.info("Database connections closed.")

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


async def run_check(service: CryptoPaymentService) -> None:
    """Exercise the read-only gateway calls and log what they return."""

    settings = service.settings
    logger.info("Active gateway: %s", settings.gateway)
    if not service.active_gateway.is_configured:
        logger.warning("%s credentials are not configured", settings.gateway)
    logger.info("BTCPay URL: %s", settings.btcpay_url)
    logger.info("NowPayments base URL: %s", settings.nowpayments_base_url)
    logger.info("Webhook URL: %s", settings.webhook_url)

    currencies = await service.get_supported_currencies()
    logger.info("Found %s currencies", len(currencies))
    for currency in currencies[:5]:
        logger.info("  %s (%s) %s", currency.code, currency.name, currency.symbol)
    if len(currencies) > 5:
        logger.info("  ... and %s more", len(currencies) - 5)

    btc_amount = await service.convert_to_crypto(100, "BTC")
    logger.info("$100 USD = %s BTC", btc_amount)

    minimums = await service.get_minimum_amounts()
    for code, amount in list(minimums.items())[:5]:
        logger.info("Minimum %s: %s", code, amount)


async def wait_for_payment(service: CryptoPaymentService, invoice_id: str) -> bool:
    settings = service.settings
    logger.info(
        "Waiting for %s invoice %s (every %ss, up to %ss)",
        settings.gateway,
        invoice_id,
        settings.poll_interval,
        settings.poll_timeout,
    )
    paid = await service.poll_until_paid(invoice_id)
    if paid:
        logger.info("Invoice %s is paid", invoice_id)
    else:
        logger.warning("Invoice %s was not paid", invoice_id)
    return paid


def main(argv: list[str] | None = None) -> int:
    args = parse_cli_args(argv)
    setup_logging(level=args.log_level)

    try:
        settings = load_gateway_settings()
    except ValueError as exc:
        logger.error("Invalid gateway configuration: %s", exc)
        return 1
    warning = missing_webhook_secret_warning(settings)
    if warning:
        logger.warning(warning)
    service = build_payment_service(settings)

    if args.check:
        asyncio.run(run_check(service))
        return 0
    if args.wait_invoice:
        paid = asyncio.run(wait_for_payment(service, args.wait_invoice))
        return 0 if paid else 2

    app = build_web_app(service, build_engine(DATABASE_URL))
    logger.info("Starting web server on %s:%s", args.host, args.port)
    web.run_app(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
