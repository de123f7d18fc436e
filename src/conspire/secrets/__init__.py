import pathlib
import sys
from typing import List, Optional

from pgpy.errors import PGPError

from conspire import (
    EncryptionError,
    NoRecipientsError,
    SecretNotFound,
    VaultReadError,
    output,
)
from conspire.keyring import KeyEntry, KeyStore, format_keyid
from conspire.passphrase import PassphraseBroker
from conspire.utils import atomic_write, check_name

from .encryption import CryptoEngine


class SecretStore(object):
    """Read and write the encrypted secrets of one vault."""

    def __init__(
        self,
        config,
        keystore: Optional[KeyStore] = None,
        engine: Optional[CryptoEngine] = None,
        broker: Optional[PassphraseBroker] = None,
    ):
        self.config = config
        self.keystore = keystore or KeyStore(config)
        self.engine = engine or CryptoEngine()
        self._broker = broker

    @property
    def broker(self) -> PassphraseBroker:
        if self._broker is None:
            self._broker = PassphraseBroker.from_config(
                self.config, self.engine
            )
        return self._broker

    def close(self):
        if self._broker is not None:
            self._broker.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def path(self, name) -> pathlib.Path:
        return self.config.vault_dir / check_name(name)

    def exists(self, name) -> bool:
        return self.path(name).exists()

    def read(self, name):
        path = self.path(name)
        try:
            text = path.read_text("ascii")
        except FileNotFoundError:
            raise SecretNotFound.from_context(name, path)
        except (OSError, UnicodeDecodeError) as e:
            raise VaultReadError.from_context(path, e) from e
        try:
            return self.engine.read_message(text)
        except Exception as e:
            raise VaultReadError.from_context(path, e) from e

    def recipients(self, name) -> List[int]:
        return self.engine.recipients(self.read(name))

    def candidates(self, recipients: List[int]) -> List[KeyEntry]:
        """Local secret keys that may decrypt a message for `recipients`."""
        secret_keys = self.keystore.load_secret_keys()
        if not recipients:
            return secret_keys
        return [
            entry
            for entry in secret_keys
            if any(entry.matches(keyid) for keyid in recipients)
        ]

    def get(self, name) -> bytes:
        """Decrypt the secret `name` and return its plaintext."""
        message = self.read(name)
        recipients = self.engine.recipients(message)
        for keyid in recipients:
            output.annotate(
                "Secret encrypted for {}".format(format_keyid(keyid)),
                debug=True,
            )
        unlocked = self.broker.unlock(self.candidates(recipients))
        try:
            return self.engine.decrypt(message, unlocked)
        except PGPError as e:
            raise VaultReadError.from_context(self.path(name), e) from e

    def show(self, name, out=None):
        secret = self.get(name)
        if out is None:
            out = sys.stdout.buffer
        if self.config.verbose:
            out.write(b"-----BEGIN UNENCRYPTED SECRET-----\n")
        out.write(secret)
        if self.config.verbose:
            if secret and not secret.endswith(b"\n"):
                out.write(b"\n")
            out.write(b"-----END UNENCRYPTED SECRET-----\n")
        out.flush()

    def write(self, name, plaintext: bytes, group):
        """Encrypt `plaintext` for the current members of `group`.

        The members are read while holding the vault lock so a concurrent
        membership change is either fully seen or not at all.
        """
        path = self.path(name)
        with self.keystore.locked():
            members = self.keystore.load_group(group)
            if not members:
                raise NoRecipientsError.from_context(group)
            try:
                armored = self.engine.encrypt(plaintext, members)
            except PGPError as e:
                raise EncryptionError.from_context(group, e) from e
            atomic_write(path, armored.encode("ascii"))
        output.annotate(
            "Encrypted {} for {} member(s) of group {}.".format(
                name, len(members), group
            ),
            debug=True,
        )
