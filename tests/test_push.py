"""Testes do transmissor push."""
import json
from unittest.mock import patch

import httpx
import pytest
import requests
from pywebpush import WebPushException

from app.core.vapid import VapidSigner
from app.models.subscription import PushSubscription
from app.services.push import PushPayload, PushService

ENDPOINT = "https://fcm.googleapis.com/fcm/send/device-token-1"


@pytest.fixture()
def subscription():
    return PushSubscription(id=1, user_id=1, endpoint=ENDPOINT, p256dh="p256dh-key", auth="auth-secret")


def _service(handler, **kwargs) -> PushService:
    return PushService(client=httpx.Client(transport=httpx.MockTransport(handler)), **kwargs)


def test_plaintext_delivery_headers_and_body(subscription, vapid_keys):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(201)

    payload = PushPayload(title="💊 Hora do LeveFit!", body="Tome sua cápsula", tag="levefit-capsule-1", url="/calendar")
    result = _service(handler).deliver(subscription, payload)

    assert result.ok
    request = captured["request"]
    assert request.method == "POST"
    assert str(request.url) == ENDPOINT
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["TTL"] == "86400"
    assert request.headers["Urgency"] == "high"
    assert int(request.headers["Content-Length"]) == len(request.content)
    assert request.headers["Authorization"].startswith("vapid t=")
    assert request.headers["Authorization"].endswith(f", k={vapid_keys['public']}")
    assert json.loads(request.content) == {
        "title": "💊 Hora do LeveFit!",
        "body": "Tome sua cápsula",
        "icon": "/pwa-192x192.png",
        "tag": "levefit-capsule-1",
        "data": {"url": "/calendar"},
    }


def test_payload_defaults():
    assert PushPayload(title="t", body="b").to_dict() == {
        "title": "t",
        "body": "b",
        "icon": "/pwa-192x192.png",
        "tag": "levefit-notification",
        "data": {"url": "/dashboard"},
    }


@pytest.mark.parametrize("status_code", [404, 410])
def test_gone_subscription_is_flagged_expired(subscription, status_code):
    result = _service(lambda request: httpx.Response(status_code, text="gone")).deliver(
        subscription, PushPayload(title="t", body="b")
    )

    assert not result.ok
    assert result.expired
    assert result.status_code == status_code


def test_server_error_is_a_plain_failure(subscription):
    result = _service(lambda request: httpx.Response(500, text="boom")).deliver(
        subscription, PushPayload(title="t", body="b")
    )

    assert not result.ok
    assert not result.expired
    assert result.error == "boom"


def test_network_error_does_not_raise(subscription):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert _service(handler).send_notification(subscription, PushPayload(title="t", body="b")) is False


def test_signing_failure_fails_only_this_delivery(subscription, vapid_keys):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(201)

    broken = VapidSigner("c2hvcnQ", vapid_keys["public"], "mailto:admin@levefit.com")
    result = _service(handler, signer=broken).deliver(subscription, PushPayload(title="t", body="b"))

    assert not result.ok
    assert "32 bytes" in result.error
    assert calls == []


def test_encrypted_mode_delegates_to_pywebpush(subscription, vapid_keys):
    with patch("app.services.push.webpush") as webpush:
        webpush.return_value.status_code = 201
        result = _service(lambda request: httpx.Response(500), encrypt=True).deliver(
            subscription, PushPayload(title="t", body="b")
        )

    assert result.ok
    kwargs = webpush.call_args.kwargs
    assert kwargs["subscription_info"] == {
        "endpoint": ENDPOINT,
        "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"},
    }
    assert kwargs["vapid_private_key"] == vapid_keys["private"]
    assert kwargs["vapid_claims"] == {"sub": "mailto:admin@levefit.com"}
    assert kwargs["ttl"] == 86400
    assert json.loads(kwargs["data"])["title"] == "t"


def test_encrypted_mode_classifies_gone_response(subscription):
    response = requests.Response()
    response.status_code = 410

    with patch("app.services.push.webpush", side_effect=WebPushException("Push failed", response=response)):
        result = _service(lambda request: httpx.Response(201), encrypt=True).deliver(
            subscription, PushPayload(title="t", body="b")
        )

    assert not result.ok
    assert result.expired
