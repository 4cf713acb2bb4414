from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ENVELOPE_VERSION = 1
KDF_PBKDF2_SHA256 = "PBKDF2-SHA256"
ALGO_AES_GCM_256 = "AES-GCM-256"

SALT_LEN = 16
IV_LEN = 12
KEY_LEN = 32  # AES-256
TAG_LEN = 16

DEFAULT_ITERATIONS = 300_000
MAX_ITERATIONS = 2**31 - 1  # PBKDF2 backends take a C int
DEFAULT_DEBOUNCE_MS = 200
MIRROR_SUFFIX = ".json"

# Field order of the serialized envelope
ENVELOPE_FIELDS = ("v", "kdf", "iter", "salt", "iv", "ct", "algo")


@dataclass
class Envelope:
    salt: bytes
    iv: bytes
    ct: bytes  # ciphertext || 16-byte GCM tag
    iterations: int = DEFAULT_ITERATIONS
    version: int = ENVELOPE_VERSION
    kdf: str = KDF_PBKDF2_SHA256
    algo: str = ALGO_AES_GCM_256
    # Unknown fields read from disk, written back untouched
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FileFailure:
    path: str
    stage: str  # "walk" | "encrypt" | "prune"
    error: str


@dataclass
class SyncReport:
    encrypted: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)
    failures: List[FileFailure] = field(default_factory=list)
    pruning_skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return (f"encrypted={len(self.encrypted)} pruned={len(self.pruned)} "
                f"failed={len(self.failures)}")


@dataclass(frozen=True)
class Video:
    id: str
    title: str
    published_at: str  # ISO date
    thumbnail: str     # URL

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "publishedAt": self.published_at,
            "thumbnail": self.thumbnail,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Video":
        return Video(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            published_at=str(d.get("publishedAt", "")),
            thumbnail=str(d.get("thumbnail", "")),
        )


@dataclass
class PlainData:
    """Decrypted per-owner payload: a playlist id and its current videos."""
    playlist_id: str
    videos: List[Video]
    other: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.other)
        d["playlist_id"] = self.playlist_id
        d["videos"] = [v.to_dict() for v in self.videos]
        return d

    @staticmethod
    def from_dict(obj: Dict[str, Any]) -> "PlainData":
        playlist_id: Optional[str] = obj.get("playlist_id")
        if not playlist_id:
            raise ValueError("Plain data missing playlist_id")
        other = {k: v for k, v in obj.items() if k not in ("playlist_id", "videos")}
        videos = [Video.from_dict(v) for v in obj.get("videos") or []]
        return PlainData(playlist_id=playlist_id, videos=videos, other=other)
