"""
Tests for the NowPayments gateway.
"""

import aiohttp
import pytest

from crypto_gateway.payments import GatewayError, NowPaymentsGateway


@pytest.fixture
def gateway(fake_http):
    return NowPaymentsGateway(
        api_key="np-key",
        base_url="https://nowpayments.mock/v1/",
        webhook_secret="nowpayments-test-secret",
        ipn_callback_url="https://members.mock/api/membership/payments/crypto/webhook",
        session_factory=fake_http,
    )


class TestCreateInvoice:

    async def test_creates_payment(self, gateway, fake_http):
        fake_http.respond(
            {
                "payment_id": 5512,
                "pay_address": "bc1qnow",
                "price_amount": 25,
                "price_currency": "usd",
                "pay_currency": "btc",
                "payment_status": "waiting",
            }
        )

        invoice = await gateway.create_invoice(25, None, "order-1", "Annual plan")

        call = fake_http.calls[0]
        assert call.method == "POST"
        assert call.url == "https://nowpayments.mock/v1/payment"
        assert call.headers["x-api-key"] == "np-key"
        assert call.json == {
            "price_amount": 25,
            "price_currency": "usd",
            "pay_currency": "btc",
            "order_id": "order-1",
            "order_description": "Annual plan",
            "ipn_callback_url": "https://members.mock/api/membership/payments/crypto/webhook",
            "is_fixed_rate": True,
            "is_fee_paid_by_user": False,
        }
        assert invoice.success is True
        assert invoice.invoice_id == "5512"
        assert invoice.payment_url == "https://nowpayments.io/payment/?iid=5512"
        assert invoice.payment_address == "bc1qnow"
        assert invoice.amount == 25.0
        assert invoice.pay_currency == "btc"
        assert invoice.status == "waiting"

    async def test_network_error_becomes_gateway_error(self, gateway, fake_http):
        fake_http.fail(aiohttp.ClientConnectionError("connection refused"))
        with pytest.raises(GatewayError, match="connection refused"):
            await gateway.create_invoice(25, "usd", "order-1", "Annual plan")


class TestInvoiceStatus:

    @pytest.mark.parametrize("vendor_status", ["confirmed", "finished"])
    async def test_confirmed_and_finished_are_paid(self, gateway, fake_http, vendor_status):
        fake_http.respond(
            {
                "payment_status": vendor_status,
                "price_amount": 25,
                "price_currency": "usd",
                "pay_amount": 0.0005,
                "pay_currency": "btc",
            }
        )
        status = await gateway.get_invoice_status("5512")
        assert fake_http.calls[0].url == "https://nowpayments.mock/v1/payment/5512"
        assert status.paid is True
        assert status.pay_amount == 0.0005

    @pytest.mark.parametrize(
        "vendor_status", ["waiting", "confirming", "sending", "partially_paid", "failed", "expired", "refunded"]
    )
    async def test_other_statuses_are_not_paid(self, gateway, fake_http, vendor_status):
        fake_http.respond({"payment_status": vendor_status})
        status = await gateway.get_invoice_status("5512")
        assert status.paid is False
        assert status.status == vendor_status


class TestWebhookMapping:

    @pytest.mark.parametrize("vendor_status", ["confirmed", "finished"])
    def test_paid_statuses_complete(self, gateway, vendor_status):
        event = gateway.parse_webhook(
            {
                "payment_id": 5512,
                "payment_status": vendor_status,
                "price_amount": 25,
                "price_currency": "usd",
                "pay_amount": "0.0005",
                "pay_currency": "btc",
            }
        )
        assert event.event == "payment_completed"
        assert event.invoice_id == "5512"
        assert event.pay_amount == 0.0005

    def test_expired(self, gateway):
        assert gateway.parse_webhook({"payment_id": 1, "payment_status": "expired"}).event == "payment_expired"

    def test_failed_carries_reason(self, gateway):
        event = gateway.parse_webhook({"payment_id": 1, "payment_status": "failed", "failure_reason": "timeout"})
        assert event.event == "payment_failed"
        assert event.error == "timeout"

    def test_intermediate_status_is_update(self, gateway):
        event = gateway.parse_webhook({"payment_id": 1, "payment_status": "confirming"})
        assert event.event == "payment_updated"
        assert event.status == "confirming"


class TestRemoteLookups:

    async def test_currencies_are_decorated(self, gateway, fake_http):
        fake_http.respond({"currencies": ["btc", "usdt", "xyz"]})
        currencies = await gateway.get_supported_currencies()
        assert [c.to_dict() for c in currencies] == [
            {"code": "BTC", "name": "Bitcoin", "symbol": "₿"},
            {"code": "USDT", "name": "Tether", "symbol": "₮"},
            {"code": "XYZ", "name": "XYZ", "symbol": "XYZ"},
        ]

    async def test_estimate_queries_lowercase_code(self, gateway, fake_http):
        fake_http.respond({"estimated_amount": "0.00231"})
        assert await gateway.estimate(100, "BTC") == 0.00231
        call = fake_http.calls[0]
        assert call.url == "https://nowpayments.mock/v1/estimate"
        assert call.params == {"amount": "100", "currency_from": "usd", "currency_to": "btc"}

    async def test_minimum_amount(self, gateway, fake_http):
        fake_http.respond({"currency_from": "btc", "min_amount": 0.0002})
        assert await gateway.get_minimum_amount() == {"currency_from": "btc", "min_amount": 0.0002}
        assert fake_http.calls[0].url == "https://nowpayments.mock/v1/min-amount/BTC"


class TestSignature:

    def test_sha512_signature(self, gateway, signer):
        body = b'{"payment_id":1,"payment_status":"finished"}'
        assert gateway.verify_signature(body, signer(body, "nowpayments")) is True
        assert gateway.verify_signature(body, signer(body, "btcpay")) is False
        assert gateway.verify_signature(body, None) is False

    def test_missing_secret_rejects_everything(self, fake_http):
        unsigned = NowPaymentsGateway(api_key="k", ipn_callback_url="https://x", session_factory=fake_http)
        body = b"{}"
        assert unsigned.verify_signature(body, unsigned.expected_signature(body)) is False
