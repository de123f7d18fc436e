"""OpenPGP ASCII armor (RFC 4880, section 6).

Reading is left to PGPy's `Armorable.ascii_unarmor`. Group files hold a
whole collection of public keys in one block, which PGPy has no writer
for, so `encode` frames the concatenated keys itself.
"""

import base64

from pgpy.types import Armorable

PUBLIC_KEY_BLOCK = "PUBLIC KEY BLOCK"
PRIVATE_KEY_BLOCK = "PRIVATE KEY BLOCK"
MESSAGE = "MESSAGE"

LINE_LENGTH = 64


class ArmorError(ValueError):
    """The text is not a well-formed armored block."""


def _crc(data):
    crc = Armorable.crc24(bytes(data))
    return base64.b64encode(crc.to_bytes(3, "big")).decode("ascii")


def encode(data, block_type, headers=None):
    payload = base64.b64encode(bytes(data)).decode("ascii")
    lines = ["-----BEGIN PGP {}-----".format(block_type)]
    for key, value in (headers or {}).items():
        lines.append("{}: {}".format(key, value))
    lines.append("")
    lines.extend(
        payload[i : i + LINE_LENGTH]
        for i in range(0, len(payload), LINE_LENGTH)
    )
    lines.append("=" + _crc(data))
    lines.append("-----END PGP {}-----".format(block_type))
    return "\n".join(lines) + "\n"


def _is_empty_block(text, block_type):
    # PGPy's parser wants at least one line of payload.
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("latin-1")
    return text.split() == encode(b"", block_type).split()


def decode(text, block_type=None):
    """Return the binary payload of the armored block in `text`.

    Binary input is passed through unchanged unless a `block_type` is
    required.
    """
    if block_type is not None and _is_empty_block(text, block_type):
        return b""
    try:
        unarmored = Armorable.ascii_unarmor(text)
    except ValueError as e:
        raise ArmorError("no armored PGP block found: {}".format(e))
    magic = unarmored["magic"]
    if block_type is not None and magic != block_type:
        raise ArmorError(
            "expected PGP {}, got {}".format(
                block_type,
                "PGP {}".format(magic) if magic else "binary data",
            )
        )
    body = bytes(unarmored["body"])
    crc = unarmored["crc"]
    if crc is not None and crc != Armorable.crc24(body):
        raise ArmorError("armor checksum mismatch")
    return body
