"""Abstract client identity loader interface."""

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes


@dataclass(frozen=True)
class ClientIdentity:
    """Private key and certificate chain presented to APNs during mutual TLS."""
    private_key: PrivateKeyTypes
    certificate: x509.Certificate
    ssl_context: ssl.SSLContext  # holds the chain; handed to the HTTP client as-is
    additional_certificates: List[x509.Certificate] = field(default_factory=list)

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()


class ClientIdentityLoader(ABC):
    """Abstract base class for turning a certificate container into a client identity."""

    @abstractmethod
    def load(self, data: bytes, passphrase: str) -> ClientIdentity:
        """
        Load a client identity from the raw bytes of a certificate container.

        Args:
            data: The container contents (e.g. a PKCS#12 file).
            passphrase: The passphrase protecting the container.

        Returns:
            The extracted client identity.

        Raises:
            CertificateError: If no usable identity can be extracted.
        """
        pass
