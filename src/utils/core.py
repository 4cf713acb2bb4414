import argparse
import json
import os
import sys

from pathlib import Path
from typing import Any

from crypto.aead import aead_encrypt, aead_decrypt, new_iv
from crypto.kdf import derive_key
from storage.envelope import deserialize, load_envelope_bytes
from utils.config import SyncConfig
from utils.dataModels import ALGO_AES_GCM_256, KDF_PBKDF2_SHA256, SALT_LEN, Envelope
from utils.errors import (
    ConfigurationError, DecryptionFailed, EnvelopeNotFound, MalformedEnvelope,
)
from utils.helper import is_within, mirror_path


def seal(plaintext: bytes, passphrase: str, iterations: int) -> Envelope:
    """Encrypt under a fresh salt and IV. Never reuses either."""
    if not passphrase:
        raise ConfigurationError("Passphrase must not be empty")
    salt = os.urandom(SALT_LEN)
    key = derive_key(passphrase, salt, iterations)
    iv, ct = aead_encrypt(key, plaintext, new_iv())
    return Envelope(salt=salt, iv=iv, ct=ct, iterations=iterations)


def open_envelope(env: Envelope, passphrase: str) -> bytes:
    if env.kdf != KDF_PBKDF2_SHA256:
        raise MalformedEnvelope(f"Unsupported kdf: {env.kdf}")
    if env.algo != ALGO_AES_GCM_256:
        raise MalformedEnvelope(f"Unsupported algorithm: {env.algo}")
    key = derive_key(passphrase, env.salt, env.iterations)
    return aead_decrypt(key, env.iv, env.ct)


def decrypt(envelope_bytes: bytes, passphrase: str) -> bytes:
    """Serialized envelope + passphrase -> plaintext.

    Raises MalformedEnvelope if the bytes don't parse and DecryptionFailed
    for a wrong passphrase or tampered ciphertext. No retries; the caller
    prompts again.
    """
    return open_envelope(deserialize(envelope_bytes), passphrase)


def load_secret(mirror_root: Path, file_id: str, passphrase: str) -> bytes:
    """Decrypt the envelope mirroring source-relative path file_id."""
    path = mirror_path(mirror_root, file_id)
    if not is_within(mirror_root, path):
        raise EnvelopeNotFound(f"{file_id} is outside {mirror_root}")
    return decrypt(load_envelope_bytes(path), passphrase)


def load_secret_json(mirror_root: Path, file_id: str, passphrase: str) -> Any:
    raw = load_secret(mirror_root, file_id, passphrase)
    return json.loads(raw.decode("utf-8"))


def cmd_decrypt(args: argparse.Namespace) -> None:
    try:
        config = SyncConfig.from_env(project_root=args.root, mirror_dir=args.mirror)
    except ConfigurationError as e:
        print(f"[!] {e}")
        sys.exit(1)
    passphrase = args.passphrase or config.read_passphrase()
    if not passphrase:
        print(f"[!] No passphrase given and {config.passphrase_env} is not set")
        sys.exit(1)

    try:
        plaintext = load_secret(config.mirror_dir, args.id, passphrase)
    except EnvelopeNotFound:
        print(f"[!] No envelope for {args.id} under {config.mirror_dir}")
        sys.exit(1)
    except MalformedEnvelope as e:
        print(f"[!] Malformed envelope for {args.id}: {e}")
        sys.exit(1)
    except DecryptionFailed:
        print("[!] Invalid passphrase or corrupted envelope")
        sys.exit(1)

    if args.out:
        out = Path(args.out)
        out.write_bytes(plaintext)
        print(f"[+] Decrypted {args.id} -> {out}")
    else:
        sys.stdout.buffer.write(plaintext)
        sys.stdout.flush()
