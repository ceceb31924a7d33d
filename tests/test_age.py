import base64

import pytest

from agecrypt import age
from agecrypt.utils import ConfigurationError, CryptoError, UnsupportedEnvelopeError

PASSPHRASE_ENVELOPE = b"age-encryption.org/v1\n-> scrypt c2FsdA 18\nYm9keQ\n--- bWFj\nciphertext"


def armor(data: bytes) -> bytes:
    body = base64.b64encode(data)
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return b'\n'.join([age.ARMOR_BEGIN, *lines, age.ARMOR_END, b''])


@pytest.mark.parametrize('data', [
    b'',
    b'hunter2\n',
    b'age-encryption',
    b'age-encryption.org/v1\n-> X25519 abc\n',
], ids=['empty', 'plaintext', 'short', 'truncated-header'])
def test_sniff_not_an_envelope(data):
    assert age.sniff(data) is age.Envelope.NOT_AN_ENVELOPE


def test_sniff_passphrase():
    assert age.sniff(PASSPHRASE_ENVELOPE) is age.Envelope.PASSPHRASE


def test_round_trip(keypair):
    ciphertext = age.encrypt([keypair.recipient], b'hunter2\n')
    assert age.sniff(ciphertext) is age.Envelope.RECIPIENTS
    assert age.decrypt([str(keypair.identity)], ciphertext) == b'hunter2\n'


def test_encryption_is_randomised(keypair):
    assert age.encrypt([keypair.recipient], b'x') != age.encrypt([keypair.recipient], b'x')


def test_any_recipient_can_decrypt(make_keypair):
    alice, bob = make_keypair('alice.txt'), make_keypair('bob.txt')
    ciphertext = age.encrypt([alice.recipient, bob.recipient], b'shared')
    assert age.decrypt([str(bob.identity)], ciphertext) == b'shared'


def test_wrong_identity(make_keypair):
    alice, bob = make_keypair('alice.txt'), make_keypair('bob.txt')
    ciphertext = age.encrypt([alice.recipient], b'private')
    with pytest.raises(CryptoError, match="Couldn't decrypt"):
        age.decrypt([str(bob.identity)], ciphertext)


def test_decrypt_armored(keypair):
    ciphertext = armor(age.encrypt([keypair.recipient], b'armored'))
    assert age.decrypt([str(keypair.identity)], ciphertext) == b'armored'


def test_decrypt_truncated_armor():
    with pytest.raises(CryptoError, match='truncated'):
        age.dearmor(age.ARMOR_BEGIN + b'\nYWdl\n')


def test_decrypt_plaintext(keypair):
    assert age.decrypt([str(keypair.identity)], b'hunter2\n') is None


def test_decrypt_passphrase_envelope(keypair):
    with pytest.raises(UnsupportedEnvelopeError):
        age.decrypt([str(keypair.identity)], PASSPHRASE_ENVELOPE)


def test_decrypt_without_identities(keypair):
    ciphertext = age.encrypt([keypair.recipient], b'x')
    with pytest.raises(ConfigurationError, match='No identities'):
        age.decrypt([], ciphertext)


def test_encrypt_for_invalid_recipient():
    with pytest.raises(ConfigurationError, match='Invalid recipient'):
        age.encrypt(['nobody'], b'x')
