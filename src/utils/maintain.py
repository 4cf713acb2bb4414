import argparse
import sys
import threading

from sync.tree import sync_tree
from sync.trigger import check_passphrase, start_watch
from utils.config import SyncConfig
from utils.errors import ConfigurationError


def _config_from_args(args: argparse.Namespace) -> SyncConfig:
    return SyncConfig.from_env(
        project_root=args.root,
        source_dir=args.source,
        mirror_dir=args.mirror,
        iterations=args.iterations,
        prune=args.prune,
        debounce_ms=getattr(args, "debounce_ms", None),
        watch_project=False if getattr(args, "source_only", False) else None,
        fail_on_missing_passphrase=getattr(args, "fail_on_missing_passphrase", False) or None,
        max_workers=args.workers,
    )


def cmd_sync(args: argparse.Namespace) -> None:
    try:
        config = _config_from_args(args)
        config.fail_on_missing_passphrase = args.require_passphrase
        passphrase = config.read_passphrase()
        if not check_passphrase(config, passphrase):
            return
    except ConfigurationError as e:
        print(f"[!] {e}")
        sys.exit(1)

    report = sync_tree(config.source_dir, config.mirror_dir, passphrase, config.iterations,
                       prune=config.prune, max_workers=config.max_workers)
    if not report.ok:
        for f in report.failures:
            print(f"[!] {f.stage} {f.path}: {f.error}")
        sys.exit(1)
    print(f"[+] Encrypted {config.source_dir} -> {config.mirror_dir} ({report.summary()})")


def cmd_watch(args: argparse.Namespace) -> None:
    try:
        config = _config_from_args(args)
        watch = start_watch(config, config.read_passphrase())
    except ConfigurationError as e:
        print(f"[!] {e}")
        sys.exit(1)
    if watch is None:
        return

    print(f"[+] Watching {config.watch_root} (Ctrl+C to stop)")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        watch.stop()
