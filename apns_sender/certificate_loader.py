"""PKCS#12 certificate loading for APNs client authentication."""

import logging
import os
import ssl
import tempfile
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import (
    EmptyPassphrase,
    FileReadFailure,
    InvalidCertificate,
    InvalidPassphrase,
    TemporaryStoreFailure,
)
from .identity_loader import ClientIdentity, ClientIdentityLoader

logger = logging.getLogger(__name__)

_ASN1_SEQUENCE = 0x30
_ASN1_INTEGER = 0x02
_PFX_VERSION = 3


def _is_pfx(data: bytes) -> bool:
    """
    Check whether the data has the outer shape of a PKCS#12 PFX.

    A PFX is a SEQUENCE whose first element is INTEGER 3. Only the header is
    inspected, so a file that passes but still fails to parse was rejected by
    the integrity (MAC) check rather than for being malformed.
    """
    if len(data) < 5 or data[0] != _ASN1_SEQUENCE:
        return False

    offset = 2
    length_byte = data[1]
    if length_byte == 0x80:
        # BER indefinite length, as written by some keychain exports
        pass
    elif length_byte & 0x80:
        num_octets = length_byte & 0x7F
        if num_octets > 4 or len(data) < offset + num_octets:
            return False
        length = int.from_bytes(data[offset:offset + num_octets], "big")
        offset += num_octets
        if offset + length > len(data):
            return False
    elif offset + length_byte > len(data):
        return False

    return data[offset:offset + 3] == bytes((_ASN1_INTEGER, 1, _PFX_VERSION))


class PKCS12IdentityLoader(ClientIdentityLoader):
    """Loads a client identity from a PKCS#12 (.p12) container."""

    def __init__(self, scratch_dir: Optional[str] = None):
        """
        Initialize the loader.

        Args:
            scratch_dir: Directory for the temporary PEM file handed to ssl.
                Defaults to the system temporary directory.
        """
        self.scratch_dir = scratch_dir

    def load(self, data: bytes, passphrase: str) -> ClientIdentity:
        """
        Parse a PKCS#12 container and build an SSL context presenting its identity.

        Args:
            data: The PKCS#12 file contents.
            passphrase: The container passphrase.

        Returns:
            The client identity.

        Raises:
            EmptyPassphrase: If the passphrase is empty.
            InvalidPassphrase: If the container fails its integrity check.
            InvalidCertificate: If the container is malformed or has no key or certificate.
            TemporaryStoreFailure: If the scratch file cannot be created.
        """
        # The scratch key is re-encrypted with the passphrase, which must not be empty
        if not passphrase:
            raise EmptyPassphrase()

        password = passphrase.encode("utf-8")
        private_key, certificate, additional_certificates = self._parse(data, password)
        ssl_context = self._create_ssl_context(
            private_key, certificate, additional_certificates, password
        )

        identity = ClientIdentity(
            private_key=private_key,
            certificate=certificate,
            ssl_context=ssl_context,
            additional_certificates=additional_certificates,
        )
        logger.info(f"Loaded client certificate: {identity.subject}")
        return identity

    def _parse(
        self, data: bytes, password: bytes
    ) -> Tuple[PrivateKeyTypes, x509.Certificate, List[x509.Certificate]]:
        try:
            private_key, certificate, additional_certificates = pkcs12.load_key_and_certificates(
                data, password
            )
        except UnsupportedAlgorithm as e:
            logger.info(f"Certificate file uses an unsupported algorithm: {e}")
            raise InvalidCertificate() from e
        except ValueError as e:
            if _is_pfx(data):
                logger.info("Certificate file failed its integrity check; the passphrase is wrong")
                raise InvalidPassphrase() from e
            logger.info(f"Certificate file is not a valid PKCS#12 container: {e}")
            raise InvalidCertificate() from e

        if private_key is None or certificate is None:
            logger.info(
                f"Certificate file holds no usable identity "
                f"(private key: {private_key is not None}, certificate: {certificate is not None})"
            )
            raise InvalidCertificate()

        return private_key, certificate, list(additional_certificates)

    def _create_ssl_context(
        self,
        private_key: PrivateKeyTypes,
        certificate: x509.Certificate,
        additional_certificates: List[x509.Certificate],
        password: bytes,
    ) -> ssl.SSLContext:
        # ssl only reads key material from files, so the chain goes through a
        # scratch file that is removed before this method returns.
        pem = certificate.public_bytes(serialization.Encoding.PEM)
        for extra in additional_certificates:
            pem += extra.public_bytes(serialization.Encoding.PEM)
        pem += private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(password),
        )

        try:
            fd, scratch_path = tempfile.mkstemp(prefix="apns-", suffix=".pem", dir=self.scratch_dir)
        except OSError as e:
            logger.info(f"Could not create temporary certificate file: {e}")
            raise TemporaryStoreFailure() from e

        try:
            try:
                with open(fd, "wb") as scratch:
                    scratch.write(pem)
            except OSError as e:
                logger.info(f"Could not write temporary certificate file: {e}")
                raise TemporaryStoreFailure() from e

            ssl_context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
            try:
                ssl_context.load_cert_chain(scratch_path, password=password)
            except ssl.SSLError as e:
                logger.info(f"Could not load client certificate into TLS context: {e}")
                raise InvalidCertificate() from e
        finally:
            try:
                os.remove(scratch_path)
            except FileNotFoundError:
                pass
            logger.debug(f"Removed temporary certificate file {scratch_path}")

        return ssl_context


def load_certificate(
    path: str,
    passphrase: str,
    loader: Optional[ClientIdentityLoader] = None,
) -> ClientIdentity:
    """
    Load the client identity stored in a certificate file.

    Args:
        path: Path to the .p12 file.
        passphrase: Passphrase of the file. Must not be empty.
        loader: Identity loader to use (defaults to PKCS12IdentityLoader).

    Returns:
        The client identity.

    Raises:
        EmptyPassphrase: If the passphrase is empty. Checked before the file is opened.
        FileReadFailure: If the file cannot be read.
        CertificateError: Any error raised by the loader.
    """
    if not passphrase:
        raise EmptyPassphrase()

    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.info(f"Could not read certificate file {path}: {e}")
        raise FileReadFailure() from e

    if loader is None:
        loader = PKCS12IdentityLoader()
    return loader.load(data, passphrase)
