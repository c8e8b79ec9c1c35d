"""Main entry point for the APNs command line tool."""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from .apns_client import PushNotificationSender
from .config import AppConfig, load_config
from .errors import APNsError, InvalidExpiration, MissingOption
from .models import Environment, Notification, Priority, PushType
from .payload import resolve_payload

VERSION = "0.2.0"

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    """Configure logging to stderr so stdout stays free for scripting."""
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = _ArgumentParser(
        prog="apns",
        description="Send push notifications using APNS."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    payload = parser.add_argument_group(
        "payload",
        "The first of --payload, --payload-path and --message that is given is sent."
    )
    payload.add_argument(
        "--message",
        help="The message of the push notification."
    )
    payload.add_argument(
        "--payload-path", "--payload-file",
        dest="payload_path",
        help="The path to a JSON file to send as the payload."
    )
    payload.add_argument(
        "--payload",
        help="A JSON object to send as the payload."
    )

    parser.add_argument(
        "--environment",
        default=None,
        help="The APNS environment to send the push notification to (development or production). "
             "Default: APNS_ENVIRONMENT or production."
    )
    parser.add_argument(
        "--topic",
        help="The topic (bundle id) for the push notification. Default: APNS_TOPIC."
    )
    parser.add_argument(
        "--priority",
        default=str(Priority.IMMEDIATE.value),
        help="The priority for the push notification (5 or 10)."
    )
    parser.add_argument(
        "--type",
        dest="kind",
        default=PushType.ALERT.value,
        help="The push notification type ({}).".format(", ".join(kind.value for kind in PushType))
    )
    parser.add_argument(
        "--collapse-identifier",
        help="The collapse identifier for the push notification."
    )
    parser.add_argument(
        "--expiration",
        help="The push notification expiration time in seconds from now."
    )
    parser.add_argument(
        "--device-token",
        help="The device token to send the push notification to."
    )
    parser.add_argument(
        "--certificate-path",
        help="The path to the p12 PN certificate. Default: APNS_CERTIFICATE_PATH."
    )
    parser.add_argument(
        "--certificate-passphrase",
        help="The passphrase for the p12 PN certificate. Default: APNS_CERTIFICATE_PASSPHRASE."
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging."
    )
    return parser


def _require(value: Optional[str], option: str, env_var: Optional[str] = None) -> str:
    if value is None:
        raise MissingOption(option, env_var)
    return value


def _expiration_date(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        seconds = int(value)
    except ValueError:
        raise InvalidExpiration() from None
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def create_notification(args: argparse.Namespace, config: AppConfig) -> Notification:
    """Build the notification from parsed arguments, falling back to configuration."""
    return Notification(
        topic=_require(args.topic or config.topic, "topic", "APNS_TOPIC"),
        payload=resolve_payload(
            payload=args.payload,
            payload_path=args.payload_path,
            message=args.message,
        ),
        kind=PushType.parse(args.kind),
        priority=Priority.parse(args.priority),
        expiration_date=_expiration_date(args.expiration),
        collapse_identifier=args.collapse_identifier,
    )


def run(args: argparse.Namespace, config: AppConfig) -> None:
    """Send one push notification as described by the arguments."""
    # Validate every input before touching the certificate or the network
    notification = create_notification(args, config)
    device_token = _require(args.device_token, "device-token")
    environment = Environment.parse(args.environment) if args.environment else config.environment
    certificate_path = _require(
        args.certificate_path or config.certificate_path,
        "certificate-path",
        "APNS_CERTIFICATE_PATH",
    )
    passphrase = _require(
        args.certificate_passphrase if args.certificate_passphrase is not None
        else config.certificate_passphrase,
        "certificate-passphrase",
        "APNS_CERTIFICATE_PASSPHRASE",
    )

    logger.info(f"Loading certificate from {certificate_path}...")
    sender = PushNotificationSender.from_certificate(certificate_path, passphrase)

    logger.info(f"Sending push notification ({environment.value})...")
    sender.send(notification, device_token, environment)
    logger.info("Push notification sent successfully.")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point with command-line argument parsing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        _configure_logging("DEBUG" if args.verbose else config.log_level)
        run(args, config)
    except APNsError as e:
        logger.debug("Send failed", exc_info=True)
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
