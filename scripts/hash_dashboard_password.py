#!/usr/bin/env python3
"""Print a bcrypt hash to use as DASHBOARD_PASSWORD for the status API."""

import getpass
import sys

from afkguard.auth import hash_password


def main() -> None:
    password = sys.argv[1] if len(sys.argv) > 1 else getpass.getpass("Dashboard password: ")
    if not password:
        print("A password is required.", file=sys.stderr)
        sys.exit(1)

    print(f"DASHBOARD_PASSWORD={hash_password(password)}")


if __name__ == "__main__":
    main()
