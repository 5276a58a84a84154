"""
VAPID public key codec.

The registry publishes its application server key as unpadded URL-safe
base64; the push platform wants the raw bytes.
"""

import base64
import binascii

from pushsync.core.errors import InvalidKeyFormat


def decode_server_key(key: str) -> bytes:
    """Decode a URL-safe base64 server key into raw bytes.

    Raises InvalidKeyFormat for non-string input, undecodable text, or a key
    that decodes to nothing.
    """
    if not isinstance(key, str):
        raise InvalidKeyFormat(f"Server key must be a string, got {type(key).__name__}")

    padding = "=" * ((4 - len(key) % 4) % 4)
    standard = (key + padding).replace("-", "+").replace("_", "/")
    try:
        raw = base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyFormat(f"Server key is not valid base64url: {exc}", cause=exc) from exc

    if not raw:
        raise InvalidKeyFormat("Server key decoded to zero bytes")
    return raw


def encode_server_key(raw: bytes) -> str:
    """Inverse of decode_server_key: unpadded URL-safe base64."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
