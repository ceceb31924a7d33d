"""
The boundary to the age file format, implemented by pyrage.

Only the header of an envelope is inspected here, to tell apart input that is
not encrypted at all, passphrase envelopes and envelopes for recipients.
"""

import base64
import binascii
import enum
import logging
import typing

import pyrage

from . import keys
from .utils import ConfigurationError, CryptoError, UnsupportedEnvelopeError

log = logging.getLogger(__name__)

VERSION_LINE = b'age-encryption.org/v1\n'
ARMOR_BEGIN = b'-----BEGIN AGE ENCRYPTED FILE-----'
ARMOR_END = b'-----END AGE ENCRYPTED FILE-----'
PASSPHRASE_STANZA = b'-> scrypt '
MAC_LINE = b'--- '


class Envelope(enum.Enum):
    NOT_AN_ENVELOPE = 'not-an-envelope'
    PASSPHRASE = 'passphrase'
    RECIPIENTS = 'recipients'


def dearmor(data: bytes) -> bytes:
    """Return the binary form of an envelope, decoding ASCII armor if present."""
    stripped = data.strip()
    if not stripped.startswith(ARMOR_BEGIN):
        return data
    if not stripped.endswith(ARMOR_END):
        raise CryptoError("Armored input is truncated")
    body = stripped[len(ARMOR_BEGIN):-len(ARMOR_END)]
    try:
        return base64.b64decode(b''.join(body.split()), validate=True)
    except binascii.Error as error:
        raise CryptoError(f"Armored input is malformed: {error}")


def sniff(data: bytes) -> Envelope:
    """
    Classify binary input by its header.

    Input shorter than a complete header is not an envelope.
    """
    if not data.startswith(VERSION_LINE):
        return Envelope.NOT_AN_ENVELOPE

    for line in data[len(VERSION_LINE):].split(b'\n'):
        if line.startswith(PASSPHRASE_STANZA):
            return Envelope.PASSPHRASE
        if line.startswith(MAC_LINE):
            return Envelope.RECIPIENTS

    return Envelope.NOT_AN_ENVELOPE


def encrypt(recipients: typing.Sequence[str], plaintext: bytes) -> bytes:
    handles = keys.load_recipients(recipients)
    try:
        return pyrage.encrypt(plaintext, handles)
    except pyrage.EncryptError as error:
        raise CryptoError(
            f"Couldn't encrypt for recipients {list(recipients)}: {error}") from error


def decrypt(identities: typing.Sequence[str], ciphertext: bytes) -> typing.Optional[bytes]:
    """
    Decrypt an envelope.

    Returns None when the input is not an age envelope. Passphrase envelopes
    are refused.
    """
    binary = dearmor(ciphertext)
    envelope = sniff(binary)
    log.debug(f"Input classified as {envelope.value}")

    if envelope is Envelope.NOT_AN_ENVELOPE:
        return None
    if envelope is Envelope.PASSPHRASE:
        raise UnsupportedEnvelopeError("Passphrase encrypted files are not supported")
    if not identities:
        raise ConfigurationError(
            "No identities are configured, add one with 'git-agecrypt config add -i <path>'")

    handles = keys.load_identities(identities)
    try:
        return pyrage.decrypt(binary, handles)
    except pyrage.DecryptError as error:
        raise CryptoError(f"Couldn't decrypt input: {error}") from error


def validate_identity(locator: str) -> None:
    keys.validate_identity(locator)


def validate_recipients(recipients: typing.Iterable[str]) -> None:
    keys.validate_recipients(recipients)
