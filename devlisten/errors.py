"""Exceptions raised while bringing a listener up"""


class ListenError(Exception):
    """Base class for every fatal listen() failure"""


class CredentialReadError(ListenError):
    """TLS key, certificate or keystore file could not be read"""


class InvalidPassphraseError(ListenError):
    """PKCS#12 keystore rejected the passphrase (message from the decoder)"""


class KeyDecryptionError(ListenError):
    """Encrypted private key could not be decrypted when the TLS context was built"""


class BindError(ListenError):
    """Endpoint could not be bound (address in use, permission denied, bad address)"""


class TunnelStartError(ListenError):
    """A requested tunnel could not be established"""
