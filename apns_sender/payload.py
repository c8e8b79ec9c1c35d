"""Payload resolution from command line input."""

import json
import logging
from typing import Optional

from .errors import MissingPayload, PayloadFileError

logger = logging.getLogger(__name__)


def message_payload(message: str) -> bytes:
    """Build a simple alert payload with the default sound."""
    return json.dumps(
        {"aps": {"alert": message, "sound": "default"}},
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


def resolve_payload(
    payload: Optional[str] = None,
    payload_path: Optional[str] = None,
    message: Optional[str] = None,
) -> bytes:
    """
    Pick the notification payload. The first source given wins:
    explicit payload, then payload file, then message.

    Args:
        payload: A JSON object as a string, sent as-is.
        payload_path: Path to a JSON file, sent as-is.
        message: Plain text wrapped into {"aps": {"alert": ..., "sound": "default"}}.

    Returns:
        The payload bytes.

    Raises:
        PayloadFileError: If the payload file cannot be read.
        MissingPayload: If no source is given.
    """
    if payload is not None:
        return payload.encode("utf-8")

    if payload_path is not None:
        try:
            with open(payload_path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.info(f"Could not read payload file {payload_path}: {e}")
            raise PayloadFileError() from e

    if message is not None:
        return message_payload(message)

    raise MissingPayload()
