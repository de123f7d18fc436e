import io

import mock
import pytest
from pgpy import PGPKey, PGPUID
from pgpy.constants import HashAlgorithm, KeyFlags, PubKeyAlgorithm

from conspire import (
    EncryptionError,
    FileLockedError,
    InvalidNameError,
    NoRecipientsError,
    NoUsableKey,
    SecretNotFound,
    VaultReadError,
)
from conspire.group import GroupManager
from conspire.keyring import KeyEntry, KeyStore
from conspire.secrets import SecretStore
from conspire.secrets.edit import EditSession


@pytest.fixture
def group(config, keyids):
    GroupManager(KeyStore(config)).add(
        "default", [keyids["alice"], keyids["bob"]]
    )
    return "default"


@pytest.fixture
def store(config):
    with SecretStore(config) as store:
        yield store


@pytest.fixture
def getpass():
    with mock.patch("getpass.getpass") as getpass:
        yield getpass


def test_write_and_get(store, group, getpass):
    getpass.return_value = "alice-passphrase"
    store.write("db", b"hello", group)
    assert store.exists("db")
    assert store.get("db") == b"hello"
    assert getpass.call_count == 1


def test_secret_file_is_an_armored_message(store, group, config):
    store.write("db", b"hello", group)
    text = (config.vault_dir / "db").read_text()
    assert text.startswith("-----BEGIN PGP MESSAGE-----")
    assert b"hello" not in (config.vault_dir / "db").read_bytes()


def test_secret_is_encrypted_for_all_members(store, group, keys):
    store.write("db", b"hello", group)
    assert store.recipients("db") == sorted(
        [keys["alice"].keyid, keys["bob"].keyid]
    )


def test_other_member_can_decrypt(store, group, bob_config, getpass):
    store.write("db", b"hello", group)
    getpass.return_value = "bob-passphrase"
    with SecretStore(bob_config) as bobs_store:
        assert bobs_store.get("db") == b"hello"


def test_missing_secret(store):
    with pytest.raises(SecretNotFound):
        store.get("nope")


def test_malformed_secret(store, config):
    (config.vault_dir / "db").write_text("garbage\n")
    with pytest.raises(VaultReadError) as e:
        store.get("db")
    assert e.value.path == str(config.vault_dir / "db")


def test_secret_names_are_plain_file_names(store):
    with pytest.raises(InvalidNameError):
        store.get("../db")
    with pytest.raises(InvalidNameError):
        store.write(".conspire.lock", b"", "default")


def test_write_refuses_empty_group(store, config, group, keyids):
    GroupManager(KeyStore(config)).delete(
        group, [keyids["alice"], keyids["bob"]]
    )
    with pytest.raises(NoRecipientsError):
        store.write("db", b"hello", group)
    assert not store.exists("db")


def test_write_to_missing_group(store):
    with pytest.raises(VaultReadError):
        store.write("db", b"hello", "nope")
    assert not store.exists("db")


def test_write_refuses_member_without_encryption_key(store, config):
    """It reports a sign-only member and leaves no secret behind."""
    key = PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    key.add_uid(
        PGPUID.new("Dave", email="dave@example.com"),
        usage={KeyFlags.Sign},
        hashes=[HashAlgorithm.SHA256],
    )
    KeyStore(config).save_group("signers", [KeyEntry(key)])
    with pytest.raises(EncryptionError) as e:
        store.write("db", b"hello", "signers")
    assert e.value.group == "signers"
    assert "usage flag" in e.value.error
    assert not store.exists("db")
    assert sorted(p.name for p in config.vault_dir.iterdir()) == [
        ".conspire.lock",
        "signers",
    ]


def test_write_fails_while_vault_is_locked(store, group):
    with mock.patch("fcntl.lockf", side_effect=BlockingIOError()):
        with pytest.raises(FileLockedError):
            store.write("db", b"hello", group)
    assert not store.exists("db")


def test_no_local_secret_key_for_recipients(store, config, keyids, getpass):
    GroupManager(KeyStore(config)).add("ops", [keyids["carol"]])
    store.write("db", b"hello", "ops")
    with pytest.raises(NoUsableKey):
        store.get("db")
    assert not getpass.called


def test_revocation_takes_effect_after_recrypt(
    store, group, config, bob_config, keyids, getpass
):
    store.write("db", b"hello", group)
    GroupManager(KeyStore(config)).delete(group, [keyids["bob"]])

    # Removing Bob alone does not take away what he could already read.
    getpass.return_value = "bob-passphrase"
    with SecretStore(bob_config) as bobs_store:
        assert bobs_store.get("db") == b"hello"

    getpass.return_value = "alice-passphrase"
    EditSession(store, "db", group).recrypt()

    getpass.return_value = "bob-passphrase"
    with SecretStore(bob_config) as bobs_store:
        with pytest.raises(NoUsableKey):
            bobs_store.get("db")


def test_stray_temporary_files_do_not_matter(
    store, group, config, keyids, getpass
):
    getpass.return_value = "alice-passphrase"
    store.write("db", b"hello", group)
    stray = config.vault_dir / ".tmp.db.abc123"
    stray.write_bytes(b"leftover plaintext")
    assert store.get("db") == b"hello"
    store.write("db", b"changed", group)
    assert store.get("db") == b"changed"
    assert GroupManager(KeyStore(config)).add(group, [keyids["carol"]]) == (
        1,
        0,
    )
    assert stray.read_bytes() == b"leftover plaintext"


def test_show(store, group, config, getpass, output):
    getpass.return_value = "alice-passphrase"
    store.write("db", b"hello", group)
    out = io.BytesIO()
    store.show("db", out)
    assert out.getvalue() == b"hello"

    config.verbose = True
    output.enable_debug = True
    out = io.BytesIO()
    store.show("db", out)
    assert out.getvalue() == (
        b"-----BEGIN UNENCRYPTED SECRET-----\n"
        b"hello\n"
        b"-----END UNENCRYPTED SECRET-----\n"
    )
    assert "Secret encrypted for" in output.backend.output
