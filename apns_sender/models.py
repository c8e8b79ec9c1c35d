"""Data models for push notifications."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from .errors import InvalidEnvironment, InvalidKind, InvalidNotification, InvalidPriority


class PushType(str, Enum):
    """Value of the apns-push-type header."""
    ALERT = "alert"
    BACKGROUND = "background"
    VOIP = "voip"
    COMPLICATION = "complication"
    FILEPROVIDER = "fileprovider"
    MDM = "mdm"

    @classmethod
    def parse(cls, value) -> "PushType":
        try:
            return cls(value)
        except ValueError:
            raise InvalidKind() from None


class Priority(int, Enum):
    """Value of the apns-priority header."""
    IMMEDIATE = 10
    CONSERVE_POWER = 5

    @classmethod
    def parse(cls, value) -> "Priority":
        # bool is an int subclass; True must not turn into a priority
        if isinstance(value, bool):
            raise InvalidPriority()
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise InvalidPriority() from None


class Environment(str, Enum):
    """APNs environment a notification is delivered to."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @property
    def host(self) -> str:
        if self is Environment.DEVELOPMENT:
            return "api.development.push.apple.com"
        return "api.push.apple.com"

    @classmethod
    def parse(cls, value) -> "Environment":
        try:
            return cls(value)
        except ValueError:
            raise InvalidEnvironment() from None


@dataclass(frozen=True)
class Notification:
    """A single push notification: APNs metadata plus the raw JSON payload."""
    topic: str                  # bundle identifier of the target app
    payload: bytes              # JSON object with an "aps" key, sent verbatim
    kind: PushType = PushType.ALERT
    priority: Priority = Priority.IMMEDIATE
    id: Optional[uuid.UUID] = field(default_factory=uuid.uuid4)  # None lets APNs assign one
    expiration_date: Optional[datetime] = None
    collapse_identifier: Optional[str] = None

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "kind", PushType.parse(self.kind))
        object.__setattr__(self, "priority", Priority.parse(self.priority))
        if isinstance(self.payload, str):
            object.__setattr__(self, "payload", self.payload.encode("utf-8"))
        if isinstance(self.id, str):
            try:
                object.__setattr__(self, "id", uuid.UUID(self.id))
            except ValueError:
                raise InvalidNotification(f"Invalid notification id: {self.id}") from None

        if not self.topic:
            raise InvalidNotification("The notification topic cannot be empty.")
        if not self.payload:
            raise InvalidNotification("The notification payload cannot be empty.")

    @property
    def expiration(self) -> Optional[int]:
        """Expiration as integer seconds since the epoch."""
        if self.expiration_date is None:
            return None
        return int(self.expiration_date.timestamp())

    def headers(self) -> Dict[str, str]:
        """
        Build the APNs request headers for this notification.

        Returns:
            Header mapping; optional headers are only present when set.
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "apns-push-type": self.kind.value,
            "apns-priority": str(self.priority.value),
            "apns-topic": self.topic,
        }
        if self.id is not None:
            headers["apns-id"] = str(self.id).upper()
        if self.expiration is not None:
            headers["apns-expiration"] = str(self.expiration)
        if self.collapse_identifier is not None:
            headers["apns-collapse-id"] = self.collapse_identifier
        return headers
