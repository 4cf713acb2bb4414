from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from utils.dataModels import KEY_LEN, MAX_ITERATIONS


def derive_key(passphrase: str, salt: bytes, iterations: int) -> bytes:
    """key = PBKDF2-HMAC-SHA256(passphrase, salt, iterations) -> 32 bytes

    Deterministic for identical inputs. Deliberately slow; never cache the
    result across salts.
    """
    if not 1 <= iterations <= MAX_ITERATIONS:
        raise ValueError(f"iterations must be between 1 and {MAX_ITERATIONS}")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LEN,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8"))
