import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from typing import Tuple

from utils.dataModels import IV_LEN
from utils.errors import DecryptionFailed


def new_iv() -> bytes:
    return os.urandom(IV_LEN)


def aead_encrypt(key: bytes, plaintext: bytes, iv: bytes | None = None, aad: bytes | None = None) -> Tuple[bytes, bytes]:
    """AES-256-GCM. Returns (iv, ciphertext || tag)."""
    if iv is None:
        iv = new_iv()
    if len(iv) != IV_LEN:
        raise ValueError(f"IV must be {IV_LEN} bytes")
    aesgcm = AESGCM(key)
    ct = aesgcm.encrypt(iv, plaintext, aad)
    return iv, ct


def aead_decrypt(key: bytes, iv: bytes, ct: bytes, aad: bytes | None = None) -> bytes:
    try:
        if len(iv) != IV_LEN:
            raise ValueError("bad IV length")
        aesgcm = AESGCM(key)
        return aesgcm.decrypt(iv, ct, aad)
    except (InvalidTag, ValueError) as e:
        # Same failure for wrong key, bad tag and truncated input
        raise DecryptionFailed() from e
