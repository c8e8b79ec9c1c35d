"""Exception hierarchy for the APNs sender."""

from typing import Optional


class APNsError(Exception):
    """Base class for every error the sender reports to the user."""

    message = "An unknown error occurred."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


# Notification construction

class NotificationError(APNsError, ValueError):
    """The notification could not be constructed from the given values."""


class InvalidPriority(NotificationError):
    message = "Priority must be either 5 or 10."


class InvalidKind(NotificationError):
    message = (
        "Type must be one of the following values: "
        "alert, background, voip, complication, fileprovider, mdm."
    )


class InvalidNotification(NotificationError):
    message = "The notification requires a topic and a payload."


# Certificate loading

class CertificateError(APNsError):
    """The client certificate could not be turned into a TLS identity."""


class TemporaryStoreFailure(CertificateError):
    message = "Could not create a temporary file, which is needed for loading the certificate."


class FileReadFailure(CertificateError):
    message = "The file passed in for certificate-path could not be loaded."


class InvalidCertificate(CertificateError):
    message = "The passed certificate file is invalid."


class EmptyPassphrase(CertificateError):
    message = "The passphrase passed for the certificate file cannot be empty."


class InvalidPassphrase(CertificateError):
    message = "The passphrase passed for the certificate file is invalid."


class MissingClientIdentity(CertificateError):
    message = "A client certificate is required to connect to the APNS server."


# Sending

class SendError(APNsError):
    """The notification could not be delivered to APNs."""


class InvalidToken(SendError):
    message = "The device token is invalid."


class TransportError(SendError):
    """No response was obtained from APNs (DNS, connection, TLS or timeout)."""

    message = "Could not connect to the APNS server."

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__()
        self.cause = cause


class ResponseError(SendError):
    """APNs answered with a status code other than 200."""

    def __init__(self, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(self._format(status_code, body))

    @staticmethod
    def _format(status_code: Optional[int], body: Optional[str]) -> str:
        if status_code is None and body is None:
            return TransportError.message
        if status_code is not None and body is not None:
            return f"Failed to send push notification ({status_code}):\n{body}"
        if body is not None:
            return f"Failed to send push notification:\n{body}"
        return f"Failed to send push notification ({status_code})."


# Command line

class CommandError(APNsError):
    """Invalid or missing command line input."""


class InvalidEnvironment(CommandError):
    message = "Environment must be either development or production."


class InvalidExpiration(CommandError):
    message = "The expiration should be a valid integer."


class PayloadFileError(CommandError):
    message = "Failed to read payload file."


class MissingPayload(CommandError):
    message = "Either message, payload-path or payload has to be specified."


class MissingOption(CommandError):
    """A required option was given neither on the command line nor in the environment."""

    def __init__(self, option: str, env_var: Optional[str] = None):
        self.option = option
        hint = f" (or set {env_var})" if env_var else ""
        super().__init__(f"Missing required option --{option}{hint}.")
