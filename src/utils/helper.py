import logging
import os

from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional

from utils.dataModels import MIRROR_SUFFIX

logger = logging.getLogger(__name__)


def mirror_rel(source_rel: str, suffix: str = MIRROR_SUFFIX) -> str:
    """'a/b.txt' -> 'a/b.txt.json'"""
    return source_rel + suffix


def mirror_path(mirror_root: Path, source_rel: str, suffix: str = MIRROR_SUFFIX) -> Path:
    return Path(mirror_root).joinpath(*PurePosixPath(mirror_rel(source_rel, suffix)).parts)


def is_within(root: Path, path: Path) -> bool:
    try:
        Path(os.path.abspath(path)).relative_to(os.path.abspath(root))
        return True
    except ValueError:
        return False


def list_files_recursive(root: Path, on_error: Optional[Callable[[str, OSError], None]] = None) -> List[str]:
    """Relative POSIX paths of every regular file under root, sorted.

    Symlinks are not followed. Unreadable directories are reported to
    on_error (or logged) and skipped.
    """
    root = Path(root)
    out: List[str] = []

    def _report(rel: str, err: OSError) -> None:
        logger.warning("Skipping %s: %s", rel or ".", err)
        if on_error is not None:
            on_error(rel, err)

    def _walk_error(err: OSError) -> None:
        where = err.filename or str(root)
        try:
            rel = Path(where).relative_to(root).as_posix()
        except ValueError:
            rel = str(where)
        _report("" if rel == "." else rel, err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_walk_error, followlinks=False):
        base = Path(dirpath)
        # os.walk lists symlinked directories in dirnames but won't enter them
        for d in dirnames:
            if (base / d).is_symlink():
                logger.warning("Skipping symlinked directory %s", (base / d).relative_to(root).as_posix())
        for name in filenames:
            p = base / name
            rel = p.relative_to(root).as_posix()
            if p.is_symlink():
                logger.warning("Skipping symlink %s", rel)
                continue
            if p.is_file():
                out.append(rel)
    out.sort()
    return out
