#!/usr/bin/env python3
"""Encrypt a secret (for example BOT_TOKEN) for use in .env.

Usage:
    ENCRYPTION_KEY=<fernet key> python scripts/encrypt_env_value.py "secret"

Prints ``encrypted:<value>``, which afkguard.config decrypts at startup.
Generate a key with:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

import base64
import os
import sys
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken


def _read_key() -> bytes:
    if os.getenv("ENCRYPTION_KEY"):
        return os.environ["ENCRYPTION_KEY"].strip().encode()
    key_file = os.getenv("ENCRYPTION_KEY_FILE")
    if key_file:
        return Path(key_file).read_bytes().strip()
    print("ENCRYPTION_KEY or ENCRYPTION_KEY_FILE must be set", file=sys.stderr)
    sys.exit(1)


def main() -> None:
    if len(sys.argv) != 2:
        print(__doc__, file=sys.stderr)
        sys.exit(1)

    try:
        token = Fernet(_read_key()).encrypt(sys.argv[1].encode())
    except (ValueError, InvalidToken) as e:
        print(f"Invalid encryption key: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"encrypted:{base64.urlsafe_b64encode(token).decode()}")


if __name__ == "__main__":
    main()
