from urllib.parse import parse_qs

import httpx
import pytest

from app.core.exceptions import GatewayError
from app.services.payment.gateways.base import PaymentStatus
from app.services.payment.gateways.factory import PaymentGatewayFactory
from app.services.payment.gateways.stripe import StripeGateway


def make_gateway(handler):
    return StripeGateway({"secret_key": "sk_test_123", "transport": httpx.MockTransport(handler)})


async def test_create_checkout_session_posts_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        seen["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"})

    session = await make_gateway(handler).create_checkout_session(
        product_name="Logo Design Sprint",
        unit_amount=1000,
        currency="USD",
        success_url="http://localhost/ok?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="http://localhost/cancel",
        metadata={"contest_id": "c1", "user_email": "alice@example.com"},
        customer_email="alice@example.com"
    )

    assert session.session_id == "cs_1"
    assert session.url == "https://checkout.stripe.com/c/cs_1"
    assert seen["method"] == "POST"
    assert seen["path"] == "/v1/checkout/sessions"
    assert seen["auth"].startswith("Basic ")
    assert seen["form"]["line_items[0][price_data][unit_amount]"] == "1000"
    assert seen["form"]["line_items[0][price_data][currency]"] == "usd"
    assert seen["form"]["metadata[contest_id]"] == "c1"
    assert seen["form"]["customer_email"] == "alice@example.com"


async def test_create_checkout_session_error_response():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "Invalid currency"}})

    with pytest.raises(GatewayError) as exc_info:
        await make_gateway(handler).create_checkout_session("x", 100, "zzz", "http://ok", "http://cancel")

    assert "Invalid currency" in exc_info.value.message


async def test_transport_failure_is_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(GatewayError):
        await make_gateway(handler).retrieve_session("cs_1")


@pytest.mark.parametrize("payment_status, session_status, expected", [
    ("paid", "complete", PaymentStatus.PAID),
    ("unpaid", "open", PaymentStatus.UNPAID),
    ("unpaid", "expired", PaymentStatus.EXPIRED),
    ("no_payment_required", "complete", PaymentStatus.NO_PAYMENT_REQUIRED),
    ("weird", "open", PaymentStatus.UNKNOWN),
])
async def test_retrieve_session_maps_status(payment_status, session_status, expected):
    def handler(request):
        assert request.url.path == "/v1/checkout/sessions/cs_9"
        return httpx.Response(200, json={
            "id": "cs_9",
            "payment_status": payment_status,
            "status": session_status,
            "amount_total": 1000,
            "currency": "usd",
            "metadata": {"contest_id": "c1", "user_email": "alice@example.com"}
        })

    result = await make_gateway(handler).retrieve_session("cs_9")

    assert result.status == expected
    assert result.is_paid is (expected == PaymentStatus.PAID)
    assert result.amount == 10.0
    assert result.metadata["user_email"] == "alice@example.com"


async def test_retrieve_missing_session():
    def handler(request):
        return httpx.Response(404, json={"error": {"message": "No such checkout.session"}})

    with pytest.raises(GatewayError):
        await make_gateway(handler).retrieve_session("cs_missing")


def test_secret_key_required(monkeypatch):
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("STRIPE_SECRET", raising=False)

    with pytest.raises(ValueError):
        StripeGateway()


def test_factory_unknown_gateway():
    with pytest.raises(ValueError):
        PaymentGatewayFactory.create("paypal")


def test_factory_builds_stripe(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_env")
    PaymentGatewayFactory.reset()

    gateway = PaymentGatewayFactory.create("stripe")

    assert isinstance(gateway, StripeGateway)
    assert gateway.secret_key == "sk_test_env"
    assert "stripe" in PaymentGatewayFactory.available()
    assert PaymentGatewayFactory.create("stripe") is gateway
    PaymentGatewayFactory.reset()
