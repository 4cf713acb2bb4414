"""Refresh each owner's encrypted video list from the remote playlist.

For owner "alice" the plaintext lives at <source>/alice.json and its
envelope at <mirror>/alice.json.json. The plaintext is always rewritten;
the envelope only when the normalized video list actually changed.
"""
import argparse
import json
import logging
import os
import sys

from typing import Iterable, List, Mapping, Optional

from remote.youtube import fetch_playlist_videos
from storage.envelope import save_envelope
from utils.config import SyncConfig
from utils.core import load_secret_json, seal
from utils.dataModels import PlainData, Video
from utils.errors import ConfigurationError
from utils.helper import mirror_path

logger = logging.getLogger(__name__)

API_KEY_ENV = "YOUTUBE_API_KEY"


def owner_passphrase_env(owner: str) -> str:
    return f"{owner.upper()}_PASSPHRASE"


def normalize_videos(videos: Iterable[Video]) -> List[Video]:
    by_id = {}
    for v in videos:
        by_id[v.id] = v
    return sorted(by_id.values(), key=lambda v: v.id)


def update_owner(owner: str, config: SyncConfig, passphrase: str, api_key: str, session=None) -> str:
    if not passphrase:
        raise ConfigurationError(f"Missing env {owner_passphrase_env(owner)}")
    if not api_key:
        raise ConfigurationError(f"Missing env {API_KEY_ENV}")

    file_id = f"{owner}.json"
    current = PlainData.from_dict(load_secret_json(config.mirror_dir, file_id, passphrase))

    latest = fetch_playlist_videos(current.playlist_id, api_key, session=session)
    logger.info("%s: fetched %d videos from playlist %s", owner, len(latest), current.playlist_id)

    prev = normalize_videos(current.videos)
    nxt = normalize_videos(latest)
    changed = prev != nxt

    updated = PlainData(playlist_id=current.playlist_id, videos=nxt, other=current.other)
    text = json.dumps(updated.to_dict(), ensure_ascii=False)

    raw_path = config.source_dir / file_id
    raw_path.parent.mkdir(parents=True, exist_ok=True)
    raw_path.write_text(text, encoding="utf-8")

    if not changed:
        return "unchanged"

    env = seal(text.encode("utf-8"), passphrase, config.iterations)
    save_envelope(mirror_path(config.mirror_dir, file_id), env)
    return "updated"


def update_owners(owners: Iterable[str], config: SyncConfig, environ: Optional[Mapping[str, str]] = None,
                  session=None) -> int:
    """Best-effort batch. Returns the number of owners that failed."""
    env = os.environ if environ is None else environ
    api_key = env.get(API_KEY_ENV, "")
    failed = 0
    any_updated = False
    for owner in owners:
        try:
            result = update_owner(owner, config, env.get(owner_passphrase_env(owner), ""), api_key, session=session)
        except Exception as e:
            logger.error("%s: %s", owner, e)
            failed += 1
            continue
        logger.info("%s: %s", owner, result)
        any_updated = any_updated or result == "updated"
    if any_updated:
        logger.info("Some owners updated.")
    return failed


def cmd_update_videos(args: argparse.Namespace) -> None:
    try:
        config = SyncConfig.from_env(project_root=args.root, source_dir=args.source, mirror_dir=args.mirror,
                                     iterations=args.iterations)
    except ConfigurationError as e:
        print(f"[!] {e}")
        sys.exit(1)
    failed = update_owners(args.owners, config)
    if failed:
        print(f"[!] {failed} owner(s) failed")
        sys.exit(1)
    print("[+] All owners processed")
