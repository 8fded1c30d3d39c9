"""TLS credential resolution for devlisten

This module turns the ``https`` listen option into one normalized
``Certificate`` shape, whatever the source:
- Self-signed certificates minted on the fly (``https=True``)
- PEM key/certificate files, optionally with an encrypted key
- PKCS#12 keystores (.p12/.pfx) protected by a passphrase

It also carries the certificate hygiene checks:
- Permission checks for private keys (0600 on Unix)
- Certificate expiration warnings (30-day threshold)
"""

import asyncio
import datetime
import ipaddress
import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .errors import CredentialReadError, InvalidPassphraseError

logger = logging.getLogger("devlisten.certificates")

DEFAULT_VALIDITY_DAYS = 1
DEFAULT_DOMAINS = ("localhost", "127.0.0.1", "::1")
DEFAULT_KEY_SIZE = 2048
EXPIRY_WARNING_DAYS = 30


@dataclass
class Certificate:
    """PEM encoded TLS credential"""

    key: str
    cert: str
    passphrase: str | None = None

    @property
    def is_key_encrypted(self) -> bool:
        return "ENCRYPTED" in self.key


@dataclass
class HTTPSOptions:
    """Where TLS material comes from.

    cert/key: PEM files. pfx: PKCS#12 keystore. passphrase protects either
    the keystore or an encrypted PEM key. validity_days/domains only apply
    to self-signed certificates.
    """

    cert: str | None = None
    key: str | None = None
    pfx: str | None = None
    passphrase: str | None = None
    validity_days: int | None = None
    domains: list[str] = field(default_factory=list)


def check_key_permissions(key_path: Path) -> tuple[bool, str]:
    """Check if private key has secure permissions (0600 on Unix)

    Args:
        key_path: Path to private key file

    Returns:
        Tuple of (is_secure, error_message)
        - is_secure: True if permissions are secure or on Windows
        - error_message: Empty string if secure, error message otherwise
    """
    if not key_path.exists():
        return False, f"Key file does not exist: {key_path}"

    # Windows doesn't use Unix permissions - rely on NTFS ACLs
    if os.name == "nt":
        return True, ""

    try:
        mode = key_path.stat().st_mode

        if mode & (stat.S_IROTH | stat.S_IWOTH):
            return False, f"Private key {key_path} is world-readable/writable (permissions: {oct(stat.S_IMODE(mode))})"

        if mode & (stat.S_IRGRP | stat.S_IWGRP):
            logger.warning(
                f"Private key {key_path} is group-readable/writable (permissions: {oct(stat.S_IMODE(mode))}). Consider setting to 0600."
            )

        return True, ""

    except OSError as e:
        return False, f"Cannot check permissions for {key_path}: {e}"


def set_secure_key_permissions(key_path: Path) -> tuple[bool, str]:
    """Set secure permissions (0600) on private key file (Unix only)

    Returns:
        Tuple of (success, error_message)
    """
    if not key_path.exists():
        return False, f"Key file does not exist: {key_path}"

    if os.name == "nt":
        return True, "Windows uses NTFS ACLs (skipping chmod)"

    try:
        key_path.chmod(0o600)
        return True, ""
    except OSError as e:
        return False, f"Cannot set permissions on {key_path}: {e}"


def check_certificate_expiration(
    cert_pem: str, warning_days: int = EXPIRY_WARNING_DAYS
) -> tuple[bool, datetime.datetime | None, str]:
    """Check if a PEM certificate is expiring soon

    Args:
        cert_pem: PEM text of the certificate (first certificate is checked)
        warning_days: Number of days before expiration to warn (default: 30)

    Returns:
        Tuple of (is_expiring_soon, expiration_date, message)
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
    except ValueError as e:
        return False, None, f"Cannot parse certificate: {e}"

    expiration_date = cert.not_valid_after_utc
    days_until_expiry = (expiration_date - datetime.datetime.now(datetime.timezone.utc)).days

    if days_until_expiry < 0:
        return True, expiration_date, f"Certificate EXPIRED on {expiration_date.strftime('%Y-%m-%d')}"
    if days_until_expiry <= warning_days:
        return (
            True,
            expiration_date,
            f"Certificate expires in {days_until_expiry} days ({expiration_date.strftime('%Y-%m-%d')})",
        )
    return (
        False,
        expiration_date,
        f"Certificate valid until {expiration_date.strftime('%Y-%m-%d')} ({days_until_expiry} days remaining)",
    )


def _subject_alt_names(domains) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for domain in domains:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(domain)))
        except ValueError:
            names.append(x509.DNSName(domain))
    return names


def generate_self_signed_certificate(
    domains=None,
    validity_days: int | None = None,
    key_size: int = DEFAULT_KEY_SIZE,
) -> Certificate:
    """Mint a fresh self-signed certificate for local development.

    The first DNS name in ``domains`` becomes the common name. Every call
    produces new key material.

    Args:
        domains: Hostnames and IPs the certificate is valid for
            (default: localhost, 127.0.0.1, ::1)
        validity_days: Days until expiry (default: 1)
        key_size: RSA key size in bits
    """
    domains = list(domains or DEFAULT_DOMAINS)
    validity_days = validity_days or DEFAULT_VALIDITY_DAYS

    common_name = next((d for d in domains if not _is_ip(d)), "localhost")
    key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "devlisten"),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=validity_days))
        .add_extension(x509.SubjectAlternativeName(_subject_alt_names(domains)), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .sign(key, hashes.SHA256())
    )

    logger.debug("Generated self-signed certificate for %s (valid %d days)", ", ".join(domains), validity_days)
    return Certificate(
        key=key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii"),
        cert=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
    )


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def load_pkcs12(data: bytes, passphrase: str | None) -> Certificate:
    """Decode a PKCS#12 keystore into PEM key and certificate chain.

    Raises:
        InvalidPassphraseError: The passphrase is missing or wrong; the
            message is the decoder's own
    """
    password = passphrase.encode("utf-8") if passphrase else None
    try:
        key, cert, additional = pkcs12.load_key_and_certificates(data, password)
    except ValueError as e:
        raise InvalidPassphraseError(str(e)) from e

    if key is None or cert is None:
        raise InvalidPassphraseError("PKCS#12 keystore does not contain both a private key and a certificate")

    chain = [cert, *(additional or [])]
    return Certificate(
        key=key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii"),
        cert="".join(c.public_bytes(serialization.Encoding.PEM).decode("ascii") for c in chain),
    )


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise CredentialReadError(f"Cannot read {path}: {e}") from e


def _read_bytes(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise CredentialReadError(f"Cannot read {path}: {e}") from e


def _warn_if_expiring(certificate: Certificate) -> None:
    is_expiring, _, message = check_certificate_expiration(certificate.cert)
    if is_expiring:
        logger.warning(message)


async def resolve_certificate(options: "HTTPSOptions | bool") -> Certificate:
    """Obtain a Certificate for the ``https`` listen option.

    Keystores are decoded here, so a wrong keystore passphrase fails now.
    An encrypted PEM key is only decrypted when the TLS context is built at
    bind time, so its passphrase is carried on the Certificate unchecked.

    Raises:
        CredentialReadError: A key, certificate or keystore file is unreadable
        InvalidPassphraseError: The keystore rejected the passphrase
    """
    if not isinstance(options, HTTPSOptions):
        options = HTTPSOptions()

    if options.pfx:
        data = await asyncio.to_thread(_read_bytes, options.pfx)
        certificate = await asyncio.to_thread(load_pkcs12, data, options.passphrase)
        _warn_if_expiring(certificate)
        return certificate

    if options.cert and options.key:
        key = await asyncio.to_thread(_read_text, options.key)
        cert = await asyncio.to_thread(_read_text, options.cert)
        is_secure, error_msg = check_key_permissions(Path(options.key))
        if not is_secure:
            logger.warning(error_msg)
        certificate = Certificate(key=key, cert=cert, passphrase=options.passphrase)
        _warn_if_expiring(certificate)
        return certificate

    return await asyncio.to_thread(
        generate_self_signed_certificate,
        options.domains or None,
        options.validity_days,
    )


class CertificateFiles:
    """Certificate written to a private temporary directory.

    uvicorn loads TLS material from files only. The directory is created
    with mode 0700 and the key with 0600; ``cleanup()`` removes both.

    Usage:
        with CertificateFiles(certificate) as files:
            config = uvicorn.Config(app, ssl_certfile=files.cert_path, ssl_keyfile=files.key_path)
            config.load()
    """

    def __init__(self, certificate: Certificate):
        self.certificate = certificate
        self.directory = Path(tempfile.mkdtemp(prefix="devlisten-tls-"))
        self.cert_path = self.directory / "cert.pem"
        self.key_path = self.directory / "key.pem"

        self.key_path.touch(mode=0o600)
        set_secure_key_permissions(self.key_path)
        self.key_path.write_text(certificate.key, encoding="utf-8")
        self.cert_path.write_text(certificate.cert, encoding="utf-8")

    def cleanup(self) -> None:
        shutil.rmtree(self.directory, ignore_errors=True)

    def __enter__(self) -> "CertificateFiles":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()
