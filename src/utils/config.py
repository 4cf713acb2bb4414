import os

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from utils.dataModels import DEFAULT_DEBOUNCE_MS, DEFAULT_ITERATIONS, MAX_ITERATIONS
from utils.errors import ConfigurationError

DEFAULT_RAW_DIR = "src/stores/secrets/raw"
DEFAULT_ENC_DIR = "src/stores/secrets/encrypted"
DEFAULT_PASSPHRASE_ENV = "SECRETS_PASSPHRASE"

# VCS metadata and dependency caches; never watched
DEFAULT_IGNORE_DIRS = (".git", "node_modules", ".venv", "__pycache__")


def _parse_int(name: str, raw: str | int, minimum: int, maximum: Optional[int] = None) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(f"{name} must be <= {maximum}, got {value}")
    return value


@dataclass
class SyncConfig:
    project_root: Path = field(default_factory=Path.cwd)
    source_dir: Path = Path(DEFAULT_RAW_DIR)
    mirror_dir: Path = Path(DEFAULT_ENC_DIR)
    iterations: int = DEFAULT_ITERATIONS
    prune: bool = False
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    watch_project: bool = True
    fail_on_missing_passphrase: bool = False
    passphrase_env: str = DEFAULT_PASSPHRASE_ENV
    ignore_dirs: Tuple[str, ...] = DEFAULT_IGNORE_DIRS
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        self.project_root = Path(self.project_root).resolve()
        # Relative paths are taken from the project root
        self.source_dir = (self.project_root / self.source_dir).resolve()
        self.mirror_dir = (self.project_root / self.mirror_dir).resolve()
        self.iterations = _parse_int("iterations", self.iterations, 1, MAX_ITERATIONS)
        self.debounce_ms = _parse_int("debounce_ms", self.debounce_ms, 0)
        if self.max_workers is not None:
            self.max_workers = _parse_int("max_workers", self.max_workers, 1)
        # Nested trees would prune plaintext or re-encrypt envelopes
        if self.mirror_dir.is_relative_to(self.source_dir) or self.source_dir.is_relative_to(self.mirror_dir):
            raise ConfigurationError(
                f"source ({self.source_dir}) and mirror ({self.mirror_dir}) must not overlap")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "SyncConfig":
        """Explicit overrides > environment variables > defaults. None means unset."""
        env = os.environ if environ is None else environ
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        values = {}
        if env.get("SECRETS_RAW_DIR"):
            values["source_dir"] = Path(env["SECRETS_RAW_DIR"])
        if env.get("SECRETS_ENC_DIR"):
            values["mirror_dir"] = Path(env["SECRETS_ENC_DIR"])
        if env.get("SECRETS_PBKDF2_ITER"):
            values["iterations"] = env["SECRETS_PBKDF2_ITER"]
        if "SECRETS_PRUNE" in env:
            values["prune"] = env["SECRETS_PRUNE"] == "1"
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def watch_root(self) -> Path:
        return self.project_root if self.watch_project else self.source_dir

    def ignore_prefixes(self) -> List[str]:
        prefixes = [str(self.mirror_dir) + os.sep]
        prefixes += [str(self.project_root / d) + os.sep for d in self.ignore_dirs]
        return prefixes

    def read_passphrase(self, environ: Optional[Mapping[str, str]] = None) -> str:
        env = os.environ if environ is None else environ
        return env.get(self.passphrase_env, "")
