import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import make_url

# Load environment variables from the .env file in the current directory
load_dotenv()

SUPPORTED_GATEWAYS = ("btcpay", "nowpayments")
WEBHOOK_PATH = "/api/membership/payments/crypto/webhook"
PAYMENT_SUCCESS_PATH = "/payment/success"


def _resolve_sqlite_path(url: str | None) -> str | None:
    """Resolve relative SQLite URLs against the project root."""
    if not url:
        return url

    try:
        parsed = make_url(url)
    except Exception:
        return url

    if not parsed.drivername.startswith("sqlite"):
        return url

    database = parsed.database
    if not database or database == ":memory:":
        return url

    db_path = Path(database)
    if db_path.is_absolute():
        return url

    absolute_path = (Path(__file__).resolve().parent / db_path).resolve()
    updated = parsed.set(database=absolute_path.as_posix())
    return updated.render_as_string(hide_password=False)


def _normalize_gateway(value: str | None) -> str:
    gateway = (value or "nowpayments").strip().lower()
    if gateway not in SUPPORTED_GATEWAYS:
        raise ValueError(
            f"CRYPTO_GATEWAY must be one of {', '.join(SUPPORTED_GATEWAYS)}, got {value!r}"
        )
    return gateway


@dataclass(frozen=True)
class GatewaySettings:
    """Credentials and URLs for both crypto gateways plus the active selection."""

    gateway: str = "nowpayments"
    btcpay_url: str = "https://testnet.demo.btcpayserver.org"
    btcpay_api_key: str = ""
    btcpay_store_id: str = ""
    btcpay_webhook_secret: str = ""
    nowpayments_api_key: str = ""
    nowpayments_base_url: str = "https://api.nowpayments.io/v1"
    nowpayments_webhook_secret: str = ""
    base_url: str = "http://localhost:5000"
    frontend_url: str = "http://localhost:3000"
    http_timeout: float = 30.0
    poll_interval: float = 5.0
    poll_timeout: float = 300.0

    @property
    def webhook_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{WEBHOOK_PATH}"

    @property
    def redirect_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}{PAYMENT_SUCCESS_PATH}"


def load_gateway_settings(env: Optional[Mapping[str, str]] = None) -> GatewaySettings:
    """Build :class:`GatewaySettings` from ``env`` (defaults to ``os.environ``)."""

    source = os.environ if env is None else env
    defaults = GatewaySettings()
    return GatewaySettings(
        gateway=_normalize_gateway(source.get("CRYPTO_GATEWAY")),
        btcpay_url=source.get("BTCPAY_URL") or defaults.btcpay_url,
        btcpay_api_key=source.get("BTCPAY_API_KEY", ""),
        btcpay_store_id=source.get("BTCPAY_STORE_ID", ""),
        btcpay_webhook_secret=source.get("BTCPAY_WEBHOOK_SECRET", ""),
        nowpayments_api_key=source.get("NOWPAYMENTS_API_KEY", ""),
        nowpayments_base_url=source.get("NOWPAYMENTS_BASE_URL") or defaults.nowpayments_base_url,
        nowpayments_webhook_secret=source.get("NOWPAYMENTS_WEBHOOK_SECRET", ""),
        base_url=source.get("BASE_URL") or defaults.base_url,
        frontend_url=source.get("FRONTEND_URL") or defaults.frontend_url,
        http_timeout=float(source.get("HTTP_TIMEOUT", defaults.http_timeout)),
        poll_interval=float(source.get("CRYPTO_POLL_INTERVAL", defaults.poll_interval)),
        poll_timeout=float(source.get("CRYPTO_POLL_TIMEOUT", defaults.poll_timeout)),
    )


DATABASE_URL = _resolve_sqlite_path(os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./payments.db"))
WEB_SERVER_HOST = os.getenv("WEB_SERVER_HOST", "0.0.0.0")
WEB_SERVER_PORT = int(os.getenv("WEB_SERVER_PORT", "5000"))


def missing_webhook_secret_warning(settings: GatewaySettings) -> str | None:
    """Describe the unset webhook secret of the active gateway, if any."""
    if settings.gateway == "btcpay" and not settings.btcpay_webhook_secret:
        return "BTCPAY_WEBHOOK_SECRET is not set in .env, BTCPay webhooks will be rejected."
    if settings.gateway == "nowpayments" and not settings.nowpayments_webhook_secret:
        return "NOWPAYMENTS_WEBHOOK_SECRET is not set in .env, NowPayments webhooks will be rejected."
    return None
