"""Mirror a plaintext source tree into a tree of per-file envelopes.

Every source file is re-encrypted on every pass with a fresh salt and IV.
Staleness is judged by path only: an envelope whose source path no longer
exists is removed when pruning is on. Per-file errors are collected in the
returned SyncReport and never abort the rest of the pass.
"""
import logging
import os
import threading

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Set

from storage.envelope import save_envelope
from utils.core import seal
from utils.dataModels import MIRROR_SUFFIX, FileFailure, SyncReport
from utils.errors import ConfigurationError, FilesystemError
from utils.helper import list_files_recursive, mirror_path, mirror_rel

logger = logging.getLogger(__name__)

# Whole passes never overlap within one process
_pass_lock = threading.Lock()


def _read_source(path: Path) -> bytes:
    return path.read_bytes()


def _encrypt_one(source_root: Path, mirror_root: Path, rel: str, passphrase: str, iterations: int) -> None:
    src = Path(source_root).joinpath(*PurePosixPath(rel).parts)
    try:
        plaintext = _read_source(src)
    except OSError as e:
        raise FilesystemError(f"read failed: {e}") from e
    env = seal(plaintext, passphrase, iterations)
    try:
        save_envelope(mirror_path(mirror_root, rel), env)
    except OSError as e:
        raise FilesystemError(f"write failed: {e}") from e


def encrypt_tree(source_root: Path, mirror_root: Path, files: Iterable[str], passphrase: str,
                 iterations: int, report: SyncReport, max_workers: Optional[int] = None) -> None:
    files = list(files)
    if not files:
        return
    Path(mirror_root).mkdir(parents=True, exist_ok=True)

    # Thread pool sized to CPU cores
    max_workers = max_workers or max(1, (os.cpu_count() or 1))
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        future_map = {
            ex.submit(_encrypt_one, source_root, mirror_root, rel, passphrase, iterations): rel
            for rel in files
        }
        for fut in as_completed(future_map):
            rel = future_map[fut]
            try:
                fut.result()
                report.encrypted.append(rel)
            except Exception as e:
                logger.error("Failed to encrypt %s: %s", rel, e)
                report.failures.append(FileFailure(path=rel, stage="encrypt", error=str(e)))
    report.encrypted.sort()


def _under_any(rel: str, prefixes: Iterable[str]) -> bool:
    for prefix in prefixes:
        if prefix == "" or rel == prefix or rel.startswith(prefix + "/"):
            return True
    return False


def prune_stale(mirror_root: Path, source_files: Iterable[str], report: SyncReport,
                protected: Iterable[str] = (), suffix: str = MIRROR_SUFFIX) -> None:
    """Delete envelopes with no matching source file.

    Envelopes under a protected prefix (a source subtree that could not be
    walked) are kept.
    """
    keep: Set[str] = {mirror_rel(rel, suffix) for rel in source_files}
    protected = list(protected)
    if not Path(mirror_root).is_dir():
        return

    for rel in list_files_recursive(mirror_root):
        if not rel.endswith(suffix) or rel in keep:
            continue
        if _under_any(rel, protected):
            continue
        target = Path(mirror_root).joinpath(*PurePosixPath(rel).parts)
        try:
            target.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Failed to prune %s: %s", rel, e)
            report.failures.append(FileFailure(path=rel, stage="prune", error=str(e)))
            continue
        logger.info("Pruned stale envelope %s", rel)
        report.pruned.append(rel)
    report.pruned.sort()


def sync_tree(source_root: Path, mirror_root: Path, passphrase: str, iterations: int,
              prune: bool = False, max_workers: Optional[int] = None) -> SyncReport:
    if not passphrase:
        raise ConfigurationError("Passphrase must not be empty")
    source_root = Path(source_root)
    mirror_root = Path(mirror_root)
    report = SyncReport()
    unwalkable: List[str] = []

    def _on_walk_error(rel: str, err: OSError) -> None:
        unwalkable.append(rel)
        report.failures.append(FileFailure(path=rel or ".", stage="walk", error=str(err)))

    with _pass_lock:
        logger.info("Encrypting %s -> %s (iter=%d)", source_root, mirror_root, iterations)
        files = list_files_recursive(source_root, on_error=_on_walk_error)
        encrypt_tree(source_root, mirror_root, files, passphrase, iterations, report, max_workers)

        if prune:
            if "" in unwalkable:
                # Source root itself unreadable; an empty listing would wipe the mirror
                logger.warning("Source root %s not readable; skipping prune", source_root)
                report.pruning_skipped = True
            else:
                prune_stale(mirror_root, files, report, protected=unwalkable)

        log = logger.info if report.ok else logger.error
        log("Sync pass finished: %s", report.summary())
    return report
