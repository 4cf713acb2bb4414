"""Envelope codec and envelope file I/O.

On-disk format, one compact JSON object per encrypted file:

    {"v": 1, "kdf": "PBKDF2-SHA256", "iter": 300000,
     "salt": "<b64 16 bytes>", "iv": "<b64 12 bytes>",
     "ct": "<b64 ciphertext||tag>", "algo": "AES-GCM-256"}

The codec checks shape only. Whether the salt, IV or tag are any good is
left to the cipher.
"""
import base64
import binascii
import json
import os

from pathlib import Path
from typing import Any, Dict

from utils.dataModels import ENVELOPE_FIELDS, ENVELOPE_VERSION, MAX_ITERATIONS, Envelope
from utils.errors import EnvelopeNotFound, MalformedEnvelope


def _b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def _b64d(obj: Dict[str, Any], name: str) -> bytes:
    value = obj[name]
    if not isinstance(value, str):
        raise MalformedEnvelope(f"Field '{name}' must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelope(f"Field '{name}' is not valid base64") from e


def _int_field(obj: Dict[str, Any], name: str) -> int:
    value = obj[name]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEnvelope(f"Field '{name}' must be an integer")
    return value


def _str_field(obj: Dict[str, Any], name: str) -> str:
    value = obj[name]
    if not isinstance(value, str):
        raise MalformedEnvelope(f"Field '{name}' must be a string")
    return value


def to_dict(env: Envelope) -> Dict[str, Any]:
    d: Dict[str, Any] = dict(env.extra)
    d.update({
        "v": env.version,
        "kdf": env.kdf,
        "iter": env.iterations,
        "salt": _b64e(env.salt),
        "iv": _b64e(env.iv),
        "ct": _b64e(env.ct),
        "algo": env.algo,
    })
    return d


def serialize(env: Envelope) -> bytes:
    d = to_dict(env)
    ordered = {k: d[k] for k in ENVELOPE_FIELDS}
    ordered.update({k: v for k, v in d.items() if k not in ordered})
    return json.dumps(ordered, separators=(",", ":")).encode("utf-8")


def deserialize(data: bytes | str) -> Envelope:
    try:
        obj = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEnvelope("Envelope is not valid JSON") from e
    if not isinstance(obj, dict):
        raise MalformedEnvelope("Envelope must be a JSON object")

    missing = [k for k in ENVELOPE_FIELDS if k not in obj]
    if missing:
        raise MalformedEnvelope(f"Envelope missing field(s): {', '.join(missing)}")

    version = _int_field(obj, "v")
    if version != ENVELOPE_VERSION:
        raise MalformedEnvelope(f"Unsupported envelope version: {version}")

    iterations = _int_field(obj, "iter")
    if not 1 <= iterations <= MAX_ITERATIONS:
        raise MalformedEnvelope(f"Field 'iter' must be between 1 and {MAX_ITERATIONS}")

    return Envelope(
        version=version,
        kdf=_str_field(obj, "kdf"),
        iterations=iterations,
        salt=_b64d(obj, "salt"),
        iv=_b64d(obj, "iv"),
        ct=_b64d(obj, "ct"),
        algo=_str_field(obj, "algo"),
        extra={k: v for k, v in obj.items() if k not in ENVELOPE_FIELDS},
    )


def save_envelope(path: Path, env: Envelope) -> None:
    """Write atomically: a reader or a killed process never sees half a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with tmp.open("wb") as f:
            f.write(serialize(env))
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def load_envelope_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
        raise EnvelopeNotFound(f"No envelope at {path}") from e


def load_envelope(path: Path) -> Envelope:
    return deserialize(load_envelope_bytes(path))
