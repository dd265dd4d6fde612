#!/usr/bin/env python3
"""Snapshot or restore the guild configuration database and .env files."""

import argparse
import json
import os
import shutil
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

BACKUP_DIR = Path("backups")
ENV_FILES = (Path(".env"), Path(".env.encrypted"))


def _database_path() -> Path:
    return Path(os.getenv("DATABASE_PATH", "data/afkguard.sqlite3"))


def create_backup() -> bool:
    database = _database_path()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target = BACKUP_DIR / f"backup_{timestamp}"
    target.mkdir(parents=True, exist_ok=True)

    saved = []
    if database.exists():
        # sqlite3 online backup gives a consistent copy while the bot is running
        with sqlite3.connect(database) as source, sqlite3.connect(target / database.name) as dest:
            source.backup(dest)
        saved.append(str(database))
        print(f"✓ Backed up {database}")

    for env_file in ENV_FILES:
        if env_file.exists():
            shutil.copy2(env_file, target / env_file.name)
            saved.append(str(env_file))
            print(f"✓ Backed up {env_file}")

    if not saved:
        print("⚠ Nothing to back up")
        target.rmdir()
        return False

    manifest = {"timestamp": timestamp, "database": str(database), "files": saved}
    (target / "manifest.json").write_text(json.dumps(manifest, indent=2))
    print(f"\n✅ Backup created: {target}")
    return True


def list_backups() -> None:
    backups = sorted(BACKUP_DIR.glob("backup_*"), reverse=True) if BACKUP_DIR.exists() else []
    if not backups:
        print("No backups found")
        return
    print("Available backups:")
    for backup in backups:
        manifest_path = backup / "manifest.json"
        files = json.loads(manifest_path.read_text()).get("files", []) if manifest_path.exists() else []
        print(f"  - {backup.name} ({len(files)} file(s))")


def restore_backup(name: str) -> bool:
    source = BACKUP_DIR / name
    manifest_path = source / "manifest.json"
    if not manifest_path.exists():
        print(f"❌ Backup not found or missing manifest: {name}")
        return False

    manifest = json.loads(manifest_path.read_text())
    for original in manifest.get("files", []):
        original_path = Path(original)
        stored = source / original_path.name
        if not stored.exists():
            print(f"⚠ {stored} missing from backup, skipped")
            continue
        original_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(stored, original_path)
        print(f"✓ Restored {original_path}")
    print("\n✅ Restore complete. Restart the bot to pick up the restored data.")
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("backup", help="Create a backup")
    sub.add_parser("list", help="List backups")
    restore = sub.add_parser("restore", help="Restore a backup")
    restore.add_argument("name")
    args = parser.parse_args()

    if args.command == "backup":
        ok = create_backup()
    elif args.command == "list":
        list_backups()
        ok = True
    else:
        ok = restore_backup(args.name)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
