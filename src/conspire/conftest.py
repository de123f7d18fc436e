import pytest
from pgpy import PGPKey, PGPUID
from pgpy.constants import (
    CompressionAlgorithm,
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SymmetricKeyAlgorithm,
)

from conspire.config import Config
from conspire.keyring import KeyEntry

PASSPHRASES = {
    "alice": "alice-passphrase",
    "bob": "bob-passphrase",
    "carol": None,
}


def generate_key(name, passphrase=None):
    key = PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    uid = PGPUID.new(name.title(), email="{}@example.com".format(name))
    key.add_uid(
        uid,
        usage={
            KeyFlags.Sign,
            KeyFlags.EncryptCommunications,
            KeyFlags.EncryptStorage,
        },
        hashes=[HashAlgorithm.SHA256],
        ciphers=[SymmetricKeyAlgorithm.AES256],
        compression=[
            CompressionAlgorithm.ZLIB,
            CompressionAlgorithm.Uncompressed,
        ],
    )
    if passphrase is not None:
        key.protect(
            passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256
        )
    return key


@pytest.fixture(scope="session")
def keys():
    """Secret test keys, generated once per test run."""
    return {
        name: KeyEntry(generate_key(name, passphrase))
        for name, passphrase in PASSPHRASES.items()
    }


@pytest.fixture(scope="session")
def keyids(keys):
    return {
        name: "{:016X}".format(entry.keyid) for name, entry in keys.items()
    }


def write_keyrings(home, secret_keys, public_keys):
    home.mkdir(exist_ok=True)
    (home / "secring.gpg").write_bytes(
        b"".join(bytes(entry) for entry in secret_keys)
    )
    (home / "pubring.gpg").write_bytes(
        b"".join(bytes(entry.public()) for entry in public_keys)
    )
    return home


@pytest.fixture
def vault(tmp_path):
    vault = tmp_path / "vault"
    vault.mkdir()
    return vault


@pytest.fixture
def gnupg_home(tmp_path, keys):
    """Alice's GnuPG home: her own secret key, everybody's public keys."""
    return write_keyrings(
        tmp_path / "gnupg-alice", [keys["alice"]], list(keys.values())
    )


@pytest.fixture
def config(gnupg_home, vault):
    return Config(gnupg_home=gnupg_home, vault_dir=vault, editor="true")


@pytest.fixture
def bob_config(tmp_path, keys, vault):
    """Bob works on the same vault with his own GnuPG home."""
    home = write_keyrings(
        tmp_path / "gnupg-bob", [keys["bob"]], list(keys.values())
    )
    return Config(gnupg_home=home, vault_dir=vault, editor="true")


@pytest.fixture(autouse=True)
def output(monkeypatch):
    from conspire import output
    from conspire._output import TestBackend

    backend = TestBackend()
    monkeypatch.setattr(output, "backend", backend)
    monkeypatch.setattr(output, "enable_debug", False)
    return output


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("GNUPGHOME", "CONSPIRACY_VAULT", "EDITOR", "GPG_AGENT_INFO"):
        monkeypatch.delenv(name, raising=False)
