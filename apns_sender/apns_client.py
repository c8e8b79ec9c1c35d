"""APNs HTTP/2 push notification sender."""

import logging
import re
from typing import Optional, Union

import httpx

from .certificate_loader import load_certificate
from .errors import InvalidToken, MissingClientIdentity, ResponseError, TransportError
from .identity_loader import ClientIdentity, ClientIdentityLoader
from .models import Environment, Notification

logger = logging.getLogger(__name__)

# Seconds; applies to connect, read and write
DEFAULT_TIMEOUT = 60.0

_DEVICE_TOKEN_PATTERN = re.compile(r"[0-9A-Za-z]+")


def build_url(device_token: str, environment: Union[Environment, str] = Environment.PRODUCTION) -> str:
    """
    Build the APNs endpoint URL for a device.

    Args:
        device_token: The device token (hex string).
        environment: The APNs environment to deliver to.

    Returns:
        The destination URL.

    Raises:
        InvalidToken: If the token or environment cannot form a valid URL.
    """
    try:
        environment = Environment(environment)
    except ValueError:
        raise InvalidToken(f"Unknown APNs environment: {environment}") from None

    if not device_token or not _DEVICE_TOKEN_PATTERN.fullmatch(device_token):
        raise InvalidToken()

    return f"https://{environment.host}/3/device/{device_token}"


class PushNotificationSender:
    """Sends push notifications to APNs, authenticating with a client certificate."""

    def __init__(
        self,
        identity: Optional[ClientIdentity],
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the sender.

        Args:
            identity: The client identity presented during the TLS handshake.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used instead of a network connection.

        Raises:
            MissingClientIdentity: If no identity is given. The sender never
                connects without a client certificate.
        """
        if identity is None:
            raise MissingClientIdentity()

        self.identity = identity
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_certificate(
        cls,
        certificate_path: str,
        passphrase: str,
        loader: Optional[ClientIdentityLoader] = None,
        **kwargs,
    ) -> "PushNotificationSender":
        """Create a sender from a .p12 file, failing immediately if it cannot be loaded."""
        identity = load_certificate(certificate_path, passphrase, loader=loader)
        return cls(identity, **kwargs)

    def build_request(
        self,
        notification: Notification,
        device_token: str,
        environment: Union[Environment, str] = Environment.PRODUCTION,
    ) -> httpx.Request:
        """
        Build the APNs request for a notification.

        Args:
            notification: The notification to send.
            device_token: The device token to send it to.
            environment: The APNs environment.

        Returns:
            A POST request carrying the notification headers and its raw payload.
        """
        url = build_url(device_token, environment)
        return httpx.Request(
            "POST",
            url,
            headers=notification.headers(),
            content=notification.payload,
            extensions={"timeout": httpx.Timeout(self.timeout).as_dict()},
        )

    def send(
        self,
        notification: Notification,
        device_token: str,
        environment: Union[Environment, str] = Environment.PRODUCTION,
    ) -> None:
        """
        Send a notification and wait for the APNs response.

        Args:
            notification: The notification to send.
            device_token: The device token to send it to.
            environment: The APNs environment.

        Raises:
            InvalidToken: If the destination URL cannot be built.
            TransportError: If no response was received.
            ResponseError: If APNs answered with a status other than 200.
        """
        request = self.build_request(notification, device_token, environment)
        logger.info(
            f"Sending {notification.kind.value} notification for {notification.topic} "
            f"to {request.url.host}"
        )
        logger.debug(f"Request headers: {dict(request.headers)}")

        try:
            with httpx.Client(
                http2=True,
                verify=self.identity.ssl_context,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.send(request)
        except httpx.TransportError as e:
            logger.info(f"Could not connect to the APNS server: {e}")
            raise TransportError(e) from e

        if response.status_code != 200:
            body = response.content.decode("utf-8", errors="replace") or None
            logger.info(f"APNs rejected the notification ({response.status_code}): {body}")
            raise ResponseError(response.status_code, body)

        logger.info(
            f"Notification delivered (apns-id: {response.headers.get('apns-id', 'n/a')}, "
            f"{response.http_version})"
        )
