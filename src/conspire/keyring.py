"""Key collections: the local keyrings and the per-group public keys."""

import binascii
import pathlib
from typing import List, Optional

import pgpy

from conspire import KeyIdFormatError, VaultReadError, armor, output
from conspire.utils import atomic_write, check_name, locked

VAULT_LOCK = ".conspire.lock"


def parse_keyid(text: str) -> int:
    """Decode a key id given as 16 hex digits."""
    try:
        raw = binascii.unhexlify(text)
    except (binascii.Error, ValueError, TypeError):
        raise KeyIdFormatError(text)
    if len(raw) != 8:
        raise KeyIdFormatError(text)
    return int.from_bytes(raw, "big")


def format_keyid(keyid: int) -> str:
    return "{:016X}".format(keyid)


class KeyEntry(object):
    """One OpenPGP primary key together with its subkeys and user ids."""

    def __init__(self, key: pgpy.PGPKey):
        self.key = key

    @property
    def keyid(self) -> int:
        return int(self.key.fingerprint.keyid, 16)

    @property
    def fingerprint(self) -> bytes:
        return bytes.fromhex(str(self.key.fingerprint).replace(" ", ""))

    @property
    def subkey_ids(self) -> List[int]:
        return [int(keyid, 16) for keyid in self.key.subkeys]

    @property
    def identities(self) -> List[str]:
        labels = []
        for uid in self.key.userids:
            label = uid.name
            if uid.comment:
                label += " ({})".format(uid.comment)
            if uid.email:
                label += " <{}>".format(uid.email)
            labels.append(label)
        return labels

    @property
    def is_public(self) -> bool:
        return self.key.is_public

    @property
    def is_protected(self) -> bool:
        return not self.key.is_public and self.key.is_protected

    def matches(self, keyid: int) -> bool:
        return keyid == self.keyid or keyid in self.subkey_ids

    def public(self) -> "KeyEntry":
        if self.is_public:
            return self
        return KeyEntry(self.key.pubkey)

    def __bytes__(self):
        return bytes(self.key)

    def __repr__(self):
        return "<KeyEntry {} {}>".format(
            format_keyid(self.keyid), "public" if self.is_public else "secret"
        )


def parse_keys(blob) -> List[KeyEntry]:
    """Parse a binary or armored key collection, keeping the key order."""
    if not blob:
        return []
    loaded = pgpy.PGPKey.from_blob(bytes(blob))
    if isinstance(loaded, tuple):
        first, others = loaded
        keys = [first] + list(others.values())
    else:
        keys = [loaded]
    entries = []
    seen = set()
    for key in keys:
        if not key.is_primary:
            continue
        identity = (str(key.fingerprint), key.is_public)
        if identity in seen:
            continue
        seen.add(identity)
        entries.append(KeyEntry(key))
    return entries


class KeyStore(object):
    """Loads and persists the key collections one invocation works with.

    Every load returns a fresh list; nothing is cached between calls so a
    re-load always reflects what is on disk right now.
    """

    def __init__(self, config):
        self.config = config

    @property
    def vault_dir(self) -> pathlib.Path:
        return self.config.vault_dir

    def locked(self):
        """Hold the vault's advisory lock while mutating vault files."""
        return locked(self.vault_dir / VAULT_LOCK)

    def load_collection(self, path) -> List[KeyEntry]:
        path = pathlib.Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise VaultReadError.from_context(path, e) from e
        try:
            return parse_keys(data)
        except Exception as e:
            raise VaultReadError.from_context(path, e) from e

    def load_secret_keys(self) -> List[KeyEntry]:
        entries = self.load_collection(self.config.secret_keyring)
        return [e for e in entries if not e.is_public]

    def load_public_keys(self) -> List[KeyEntry]:
        entries = self.load_collection(self.config.public_keyring)
        return [e.public() for e in entries]

    def group_path(self, group) -> pathlib.Path:
        return self.vault_dir / check_name(group)

    def load_group(
        self, group, missing_ok: bool = False
    ) -> Optional[List[KeyEntry]]:
        """Return the members of `group`.

        With `missing_ok`, a group without a file yet is returned as None
        instead of failing.
        """
        path = self.group_path(group)
        if missing_ok and not path.exists():
            return None
        try:
            text = path.read_text("ascii")
        except (OSError, UnicodeDecodeError) as e:
            raise VaultReadError.from_context(path, e) from e
        try:
            members = parse_keys(armor.decode(text, armor.PUBLIC_KEY_BLOCK))
        except Exception as e:
            raise VaultReadError.from_context(path, e) from e
        for member in members:
            if not member.is_public:
                raise VaultReadError.from_context(
                    path,
                    "group file contains secret key material for {}".format(
                        format_keyid(member.keyid)
                    ),
                )
        return members

    def save_group(self, group, members: List[KeyEntry]):
        path = self.group_path(group)
        data = b"".join(bytes(member.public()) for member in members)
        output.annotate(
            "Writing {} member(s) to {}".format(len(members), path),
            debug=True,
        )
        atomic_write(
            path, armor.encode(data, armor.PUBLIC_KEY_BLOCK).encode("ascii")
        )
