"""OpenPGP encryption and decryption of secrets, backed by PGPy."""

from typing import List, Optional

import pgpy
from pgpy.constants import SymmetricKeyAlgorithm
from pgpy.errors import PGPDecryptionError

from conspire import output
from conspire.keyring import KeyEntry, format_keyid


class UnlockedKey(object):
    """A secret key together with the passphrase known to unlock it."""

    def __init__(self, entry: KeyEntry, passphrase: Optional[str]):
        self.entry = entry
        self.passphrase = passphrase

    @property
    def keyid(self):
        return self.entry.keyid


class CryptoEngine(object):

    cipher = SymmetricKeyAlgorithm.AES256

    def read_message(self, text) -> pgpy.PGPMessage:
        message = pgpy.PGPMessage.from_blob(text)
        if not message.is_encrypted:
            raise ValueError("not an encrypted message")
        return message

    def recipients(self, message: pgpy.PGPMessage) -> List[int]:
        return sorted(int(keyid, 16) for keyid in message.encrypters)

    def encrypt(self, plaintext: bytes, recipients: List[KeyEntry]) -> str:
        """Encrypt `plaintext` for all `recipients` and return the armor.

        All recipients share one session key so the message holds a
        single copy of the ciphertext.
        """
        message = pgpy.PGPMessage.new(bytes(plaintext))
        sessionkey = self.cipher.gen_key()
        for recipient in recipients:
            output.annotate(
                "Encrypting for {}".format(format_keyid(recipient.keyid)),
                debug=True,
            )
            message = recipient.public().key.encrypt(
                message, cipher=self.cipher, sessionkey=sessionkey
            )
        del sessionkey
        return str(message)

    def unlock(self, entry: KeyEntry, passphrase) -> Optional[UnlockedKey]:
        """Return the unlocked key, or None if `passphrase` is wrong."""
        if not entry.is_protected:
            return UnlockedKey(entry, None)
        try:
            with entry.key.unlock(passphrase):
                pass
        except PGPDecryptionError:
            return None
        return UnlockedKey(entry, passphrase)

    def decrypt(
        self, message: pgpy.PGPMessage, unlocked: UnlockedKey
    ) -> bytes:
        key = unlocked.entry.key
        if unlocked.passphrase is None:
            decrypted = key.decrypt(message)
        else:
            with key.unlock(unlocked.passphrase):
                decrypted = key.decrypt(message)
        content = decrypted.message
        if isinstance(content, str):
            return content.encode("utf-8")
        return bytes(content)
