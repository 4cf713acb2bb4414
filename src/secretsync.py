#!/usr/bin/env python3
"""
secretsync – keep a directory of plaintext secrets mirrored as encrypted envelopes

Layout (paths relative to the project root):
  src/stores/secrets/
    raw/                    # plaintext, never committed
      alice.json
    encrypted/              # one envelope per raw file, safe to commit
      alice.json.json

Envelope (JSON):
  {"v": 1, "kdf": "PBKDF2-SHA256", "iter": 300000,
   "salt": "<b64 16 bytes>", "iv": "<b64 12 bytes>",
   "ct": "<b64 ciphertext||tag>", "algo": "AES-GCM-256"}

Commands:
  sync                 One pass: encrypt every raw file, optionally prune stale envelopes
  watch                Initial pass, then re-run (debounced) on filesystem changes
  decrypt <id>         Decrypt one envelope by its source-relative path
  update-videos <own>  Refresh owners' playlists from YouTube and re-encrypt on change

Security choices:
  - key = PBKDF2-HMAC-SHA256(passphrase, salt, iter) -> 32 bytes
  - AEAD: AES-256-GCM via cryptography.hazmat, 96-bit IV, 128-bit tag
  - Fresh salt and IV for every envelope, every pass
  - Passphrase only from the environment ($SECRETS_PASSPHRASE), never written
"""
from __future__ import annotations
from ui.cli import build_parser, configure_logging


def main():
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
