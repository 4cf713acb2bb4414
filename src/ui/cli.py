import argparse
import logging

from utils.core import cmd_decrypt
from utils.dataModels import DEFAULT_DEBOUNCE_MS
from utils.maintain import cmd_sync, cmd_watch
from utils.playlist import cmd_update_videos

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def _add_tree_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--source", help="Plaintext source directory (default: src/stores/secrets/raw)")
    p.add_argument("--mirror", help="Encrypted mirror directory (default: src/stores/secrets/encrypted)")
    p.add_argument("--iterations", type=int, help="PBKDF2 iterations (default: $SECRETS_PBKDF2_ITER or 300000)")
    p.add_argument("--workers", type=int, help="Encryption worker threads (default: CPU count)")
    prune = p.add_mutually_exclusive_group()
    prune.add_argument("--prune", dest="prune", action="store_true", default=None,
                       help="Delete envelopes whose source file is gone (default: $SECRETS_PRUNE=1)")
    prune.add_argument("--no-prune", dest="prune", action="store_false")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Encrypt a secrets tree into per-file envelopes")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--root", help="Project root (default: current directory)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_sync = sub.add_parser("sync", help="Run one encryption pass")
    _add_tree_args(p_sync)
    p_sync.add_argument("--require-passphrase", action="store_true",
                        help="Fail instead of skipping when the passphrase is not set")
    p_sync.set_defaults(func=cmd_sync)

    p_watch = sub.add_parser("watch", help="Encrypt now, then again on every change")
    _add_tree_args(p_watch)
    p_watch.add_argument("--debounce-ms", type=int, default=DEFAULT_DEBOUNCE_MS)
    p_watch.add_argument("--source-only", action="store_true", help="Watch only the source directory")
    p_watch.add_argument("--fail-on-missing-passphrase", action="store_true")
    p_watch.set_defaults(func=cmd_watch)

    p_dec = sub.add_parser("decrypt", help="Decrypt one envelope by source-relative path")
    p_dec.add_argument("id", help="Source-relative path, e.g. alice.json")
    p_dec.add_argument("--mirror", help="Encrypted mirror directory")
    p_dec.add_argument("--passphrase", help="Passphrase (default: $SECRETS_PASSPHRASE)")
    p_dec.add_argument("--out", help="Output plaintext path (default: stdout)")
    p_dec.set_defaults(func=cmd_decrypt)

    p_upd = sub.add_parser("update-videos", help="Refresh owners' encrypted playlists")
    p_upd.add_argument("owners", nargs="+", help="Owner names; passphrase from $<OWNER>_PASSPHRASE")
    p_upd.add_argument("--source", help="Plaintext source directory")
    p_upd.add_argument("--mirror", help="Encrypted mirror directory")
    p_upd.add_argument("--iterations", type=int)
    p_upd.set_defaults(func=cmd_update_videos)

    return p
