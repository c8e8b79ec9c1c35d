"""Tests for the APNs sender against a mocked APNs server."""

import json
import uuid

import httpx
import pytest

from apns_sender.apns_client import PushNotificationSender, build_url
from apns_sender.errors import (
    InvalidPassphrase,
    InvalidToken,
    MissingClientIdentity,
    ResponseError,
    TransportError,
)
from apns_sender.models import Environment, Notification

from .conftest import PASSPHRASE

DEVICE_TOKEN = "a" * 64
PAYLOAD = b'{"aps":{"alert":"hi"}}'


class MockAPNs:
    """Records requests and answers with a fixed response."""

    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content, headers=self.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def notification():
    return Notification(topic="com.example.app", payload=PAYLOAD, kind="alert", priority=10)


def test_end_to_end_send(client_identity):
    notification_id = uuid.uuid4()
    notification = Notification(
        topic="com.example.app",
        payload=PAYLOAD,
        kind="alert",
        priority=10,
        id=notification_id,
    )
    server = MockAPNs(headers={"apns-id": str(notification_id).upper()})
    sender = PushNotificationSender(client_identity, transport=server.transport)

    assert sender.send(notification, DEVICE_TOKEN, Environment.PRODUCTION) is None

    assert len(server.requests) == 1
    request = server.requests[0]
    assert request.method == "POST"
    assert str(request.url) == f"https://api.push.apple.com/3/device/{DEVICE_TOKEN}"
    assert request.headers["content-type"] == "application/json"
    assert request.headers["accept"] == "application/json"
    assert request.headers["apns-push-type"] == "alert"
    assert request.headers["apns-priority"] == "10"
    assert request.headers["apns-topic"] == "com.example.app"
    assert request.headers["apns-id"] == str(notification_id).upper()
    assert "apns-expiration" not in request.headers
    assert "apns-collapse-id" not in request.headers
    assert request.content == PAYLOAD


def test_payload_is_sent_verbatim(client_identity):
    # Whitespace and key order must survive; the payload is never re-serialized
    payload = b'{ "aps" : { "alert" : "hi" },  "b": 1, "a": 2 }'
    server = MockAPNs()
    sender = PushNotificationSender(client_identity, transport=server.transport)

    sender.send(Notification(topic="com.example.app", payload=payload), DEVICE_TOKEN)

    assert server.requests[0].content == payload


def test_development_environment_host(client_identity, notification):
    server = MockAPNs()
    sender = PushNotificationSender(client_identity, transport=server.transport)

    sender.send(notification, DEVICE_TOKEN, Environment.DEVELOPMENT)

    assert server.requests[0].url.host == "api.development.push.apple.com"


def test_environment_can_be_given_as_string(client_identity, notification):
    server = MockAPNs()
    sender = PushNotificationSender(client_identity, transport=server.transport)

    sender.send(notification, DEVICE_TOKEN, "development")

    assert server.requests[0].url.host == "api.development.push.apple.com"


def test_notification_without_id_omits_header(client_identity):
    server = MockAPNs()
    sender = PushNotificationSender(client_identity, transport=server.transport)

    sender.send(Notification(topic="com.example.app", payload=PAYLOAD, id=None), DEVICE_TOKEN)

    assert "apns-id" not in server.requests[0].headers


def test_success_ignores_body(client_identity, notification):
    server = MockAPNs(content=b"not json at all")
    sender = PushNotificationSender(client_identity, transport=server.transport)

    sender.send(notification, DEVICE_TOKEN)


def test_bad_device_token_response(client_identity, notification):
    body = '{"reason":"BadDeviceToken"}'
    server = MockAPNs(status_code=410, content=body.encode())
    sender = PushNotificationSender(client_identity, transport=server.transport)

    with pytest.raises(ResponseError) as excinfo:
        sender.send(notification, DEVICE_TOKEN)

    assert excinfo.value.status_code == 410
    assert excinfo.value.body == body
    assert json.loads(excinfo.value.body) == {"reason": "BadDeviceToken"}
    assert str(excinfo.value) == f"Failed to send push notification (410):\n{body}"


def test_non_json_error_body_is_passed_through(client_identity, notification):
    server = MockAPNs(status_code=503, content=b"Service Unavailable")
    sender = PushNotificationSender(client_identity, transport=server.transport)

    with pytest.raises(ResponseError) as excinfo:
        sender.send(notification, DEVICE_TOKEN)

    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "Service Unavailable"


def test_empty_error_body(client_identity, notification):
    server = MockAPNs(status_code=500)
    sender = PushNotificationSender(client_identity, transport=server.transport)

    with pytest.raises(ResponseError) as excinfo:
        sender.send(notification, DEVICE_TOKEN)

    assert excinfo.value.body is None
    assert str(excinfo.value) == "Failed to send push notification (500)."


def test_connection_failure_is_a_transport_error(client_identity, notification):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    sender = PushNotificationSender(client_identity, transport=httpx.MockTransport(refuse))

    with pytest.raises(TransportError) as excinfo:
        sender.send(notification, DEVICE_TOKEN)

    assert isinstance(excinfo.value.cause, httpx.ConnectError)
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert str(excinfo.value) == "Could not connect to the APNS server."


def test_timeout_is_a_transport_error(client_identity, notification):
    def time_out(request):
        raise httpx.ReadTimeout("timed out", request=request)

    sender = PushNotificationSender(client_identity, transport=httpx.MockTransport(time_out))

    with pytest.raises(TransportError):
        sender.send(notification, DEVICE_TOKEN)


@pytest.mark.parametrize("device_token", ["", "abc def", "abc/../def", "abc?x=1", "ab#cd", "abc123\n", "\nabc123"])
def test_malformed_device_token(client_identity, notification, device_token):
    server = MockAPNs()
    sender = PushNotificationSender(client_identity, transport=server.transport)

    with pytest.raises(InvalidToken):
        sender.send(notification, device_token)

    assert server.requests == []


def test_unknown_environment_is_an_invalid_token(client_identity, notification):
    with pytest.raises(InvalidToken):
        PushNotificationSender(client_identity).send(notification, DEVICE_TOKEN, "staging")


def test_sender_requires_an_identity():
    with pytest.raises(MissingClientIdentity):
        PushNotificationSender(None)


def test_from_certificate(p12_path):
    sender = PushNotificationSender.from_certificate(p12_path, PASSPHRASE, timeout=5.0)

    assert sender.identity.certificate is not None
    assert sender.timeout == 5.0


def test_from_certificate_fails_fast(p12_path):
    with pytest.raises(InvalidPassphrase):
        PushNotificationSender.from_certificate(p12_path, "wrong")


def test_request_carries_timeout(client_identity, notification):
    sender = PushNotificationSender(client_identity, timeout=12.5)

    request = sender.build_request(notification, DEVICE_TOKEN)

    assert request.extensions["timeout"]["connect"] == 12.5


def test_build_url():
    assert build_url("abc123") == "https://api.push.apple.com/3/device/abc123"
    assert build_url("abc123", Environment.DEVELOPMENT) == (
        "https://api.development.push.apple.com/3/device/abc123"
    )
