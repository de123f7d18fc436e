import pytest

from conspire import KeyIdFormatError, VaultReadError, armor
from conspire.keyring import KeyStore, format_keyid, parse_keyid, parse_keys


def test_parse_keyid_decodes_16_hex_digits():
    assert parse_keyid("0123456789ABCDEF") == 0x0123456789ABCDEF
    assert parse_keyid("0123456789abcdef") == 0x0123456789ABCDEF


@pytest.mark.parametrize(
    "text", ["", "0123", "0123456789ABCDEF00", "0123456789ABCDEG", "nope"]
)
def test_parse_keyid_rejects_everything_else(text):
    with pytest.raises(KeyIdFormatError):
        parse_keyid(text)


def test_format_keyid_pads_to_16_digits():
    assert format_keyid(0xABC) == "0000000000000ABC"


def test_key_entry_describes_key(keys):
    alice = keys["alice"]
    assert alice.identities == ["Alice <alice@example.com>"]
    assert len(alice.fingerprint) == 20
    assert format_keyid(alice.keyid) == alice.fingerprint.hex().upper()[-16:]
    assert alice.matches(alice.keyid)
    assert not alice.matches(keys["bob"].keyid)
    assert not alice.is_public
    assert alice.is_protected
    assert not keys["carol"].is_protected


def test_public_entry_drops_secret_material(keys):
    public = keys["alice"].public()
    assert public.is_public
    assert not public.is_protected
    assert public.keyid == keys["alice"].keyid
    assert public.public() is public


def test_parse_keys_keeps_order_and_drops_duplicates(keys):
    blob = b"".join(
        bytes(keys[name].public()) for name in ["bob", "alice", "bob"]
    )
    entries = parse_keys(blob)
    assert [e.keyid for e in entries] == [
        keys["bob"].keyid,
        keys["alice"].keyid,
    ]


def test_parse_keys_of_empty_blob():
    assert parse_keys(b"") == []


def test_load_keyrings(config, keys):
    store = KeyStore(config)
    secret = store.load_secret_keys()
    assert [e.keyid for e in secret] == [keys["alice"].keyid]
    public = store.load_public_keys()
    assert {e.keyid for e in public} == {e.keyid for e in keys.values()}
    assert all(e.is_public for e in public)


def test_load_armored_keyring(config, keys):
    config.public_keyring.write_text(
        armor.encode(bytes(keys["bob"].public()), armor.PUBLIC_KEY_BLOCK)
    )
    public = KeyStore(config).load_public_keys()
    assert [e.keyid for e in public] == [keys["bob"].keyid]


def test_load_armored_keyring_with_several_keys(config, keys):
    data = bytes(keys["bob"].public()) + bytes(keys["carol"].public())
    config.public_keyring.write_text(
        armor.encode(data, armor.PUBLIC_KEY_BLOCK)
    )
    public = KeyStore(config).load_public_keys()
    assert [e.keyid for e in public] == [
        keys["bob"].keyid,
        keys["carol"].keyid,
    ]


def test_missing_keyring_is_reported(config):
    config.secret_keyring.unlink()
    with pytest.raises(VaultReadError) as e:
        KeyStore(config).load_secret_keys()
    assert e.value.path == str(config.secret_keyring)


def test_group_roundtrip(config, keys):
    store = KeyStore(config)
    members = [keys["bob"], keys["alice"]]
    store.save_group("default", members)
    text = (config.vault_dir / "default").read_text()
    assert text.startswith("-----BEGIN PGP PUBLIC KEY BLOCK-----\n")
    loaded = store.load_group("default")
    assert [e.keyid for e in loaded] == [e.keyid for e in members]
    # Secret material is never written to a group file.
    assert all(e.is_public for e in loaded)


def test_empty_group_roundtrip(config):
    store = KeyStore(config)
    store.save_group("empty", [])
    assert store.load_group("empty") == []


def test_missing_group(config):
    store = KeyStore(config)
    assert store.load_group("nope", missing_ok=True) is None
    with pytest.raises(VaultReadError):
        store.load_group("nope")


def test_group_with_secret_material_is_rejected(config, keys):
    (config.vault_dir / "leaky").write_text(
        armor.encode(bytes(keys["carol"]), armor.PUBLIC_KEY_BLOCK)
    )
    with pytest.raises(VaultReadError) as e:
        KeyStore(config).load_group("leaky")
    assert "secret key material" in e.value.error


def test_malformed_group_is_rejected(config):
    (config.vault_dir / "broken").write_text("not a key block\n")
    with pytest.raises(VaultReadError):
        KeyStore(config).load_group("broken")
