#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from ticketbot.services.media_crypto import MediaCipher, MediaDecryptionError


def decrypt_file(cipher: MediaCipher, source: Path, output_dir: Path | None) -> Path:
    target_dir = output_dir or source.parent
    target = target_dir / source.with_suffix(".jpg").name
    target_dir.mkdir(parents=True, exist_ok=True)
    target.write_bytes(cipher.decrypt(source.read_bytes()))
    return target


def main() -> int:
    parser = argparse.ArgumentParser(description="Decrypt stored media attachments.")
    parser.add_argument("paths", type=Path, nargs="+", help="Encrypted .enc files")
    parser.add_argument(
        "--key",
        default=os.environ.get("MEDIA_ENCRYPTION_KEY"),
        help="Key material (defaults to MEDIA_ENCRYPTION_KEY)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for decrypted files (defaults to each file's directory)",
    )
    args = parser.parse_args()

    if not args.key:
        parser.error("--key or MEDIA_ENCRYPTION_KEY is required")

    cipher = MediaCipher(args.key)
    failures = 0
    for path in args.paths:
        try:
            target = decrypt_file(cipher, path, args.output_dir)
        except (OSError, MediaDecryptionError) as exc:
            failures += 1
            print(f"{path}: {exc}", file=sys.stderr)
            continue
        print(target)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
