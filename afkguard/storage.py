# Per-guild configuration store with merge-on-write upserts
from __future__ import annotations

import abc
import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import aiosqlite

from .models import (
    DEFAULT_AFK_TIMEOUT,
    DEFAULT_LANGUAGE,
    AllowedRole,
    GuildConfig,
    GuildConfigUpdate,
    merge_config,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS guild_configs (
    guild_id TEXT PRIMARY KEY,
    server_name TEXT,
    afk_channel_id TEXT,
    afk_channel_name TEXT,
    allowed_roles TEXT,
    language TEXT NOT NULL DEFAULT 'en_us',
    afk_timeout INTEGER NOT NULL DEFAULT 5
)
"""

COLUMNS = (
    "guild_id",
    "server_name",
    "afk_channel_id",
    "afk_channel_name",
    "allowed_roles",
    "language",
    "afk_timeout",
)


class ConfigStoreError(Exception):
    """Raised when a configuration write could not be committed."""


class RoleSerializer(abc.ABC):
    """Encodes the allowed-role list for storage."""

    @abc.abstractmethod
    def dumps(self, roles: Iterable[AllowedRole]) -> str: ...

    @abc.abstractmethod
    def loads(self, raw: Optional[str]) -> tuple[AllowedRole, ...]: ...


class JsonRoleSerializer(RoleSerializer):
    def dumps(self, roles: Iterable[AllowedRole]) -> str:
        return json.dumps([role.to_dict() for role in roles])

    def loads(self, raw: Optional[str]) -> tuple[AllowedRole, ...]:
        if not raw:
            return ()
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable allowed_roles payload: %r", raw[:80])
            return ()
        if not isinstance(payload, list):
            return ()

        roles: list[AllowedRole] = []
        for entry in payload:
            if not isinstance(entry, dict) or "id" not in entry:
                continue
            roles.append(AllowedRole(id=str(entry["id"]), name=str(entry.get("name", ""))))
        return tuple(roles)


class ConfigStore(abc.ABC):
    """Repository mapping guild ids to :class:`GuildConfig` records."""

    def __init__(
        self,
        *,
        default_language: str = DEFAULT_LANGUAGE,
        default_timeout: int = DEFAULT_AFK_TIMEOUT,
    ) -> None:
        self._lock = asyncio.Lock()
        self.default_language = default_language
        self.default_timeout = default_timeout

    async def initialize(self) -> None:
        """Prepare the backing storage. No-op by default."""

    async def get(self, guild_id: int | str) -> Optional[GuildConfig]:
        """Return the stored record, or None if absent or unreadable."""
        try:
            return await self._read(str(guild_id))
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to read configuration for guild %s: %s", guild_id, e)
            return None

    async def upsert(self, guild_id: int | str, update: GuildConfigUpdate) -> GuildConfig:
        """Merge ``update`` into the stored record and commit it.

        Raises ConfigStoreError if the write fails.
        """
        return await self.update_with(guild_id, lambda existing: update)

    async def update_with(
        self,
        guild_id: int | str,
        build: Callable[[Optional[GuildConfig]], GuildConfigUpdate],
    ) -> GuildConfig:
        """Like :meth:`upsert`, but the update is built from the record read under the write lock."""
        key = str(guild_id)
        async with self._lock:
            try:
                existing = await self._read(key)
                update = build(existing)
                merged = merge_config(
                    key,
                    existing,
                    update,
                    default_language=self.default_language,
                    default_timeout=self.default_timeout,
                )
                await self._write(merged)
            except (sqlite3.Error, OSError) as e:
                logger.error("Failed to save configuration for guild %s: %s", key, e)
                raise ConfigStoreError(f"configuration for guild {key} not saved") from e
        logger.debug("Saved configuration for guild %s", key)
        return merged

    async def list_all(self) -> list[GuildConfig]:
        try:
            return await self._read_all()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to list guild configurations: %s", e)
            return []

    async def close(self) -> None:
        """Release backend resources. No-op by default."""

    @abc.abstractmethod
    async def _read(self, guild_id: str) -> Optional[GuildConfig]: ...

    @abc.abstractmethod
    async def _read_all(self) -> list[GuildConfig]: ...

    @abc.abstractmethod
    async def _write(self, config: GuildConfig) -> None: ...


class SqliteConfigStore(ConfigStore):
    """ConfigStore backed by a single SQLite table."""

    def __init__(
        self,
        path: Path | str,
        *,
        serializer: RoleSerializer | None = None,
        default_language: str = DEFAULT_LANGUAGE,
        default_timeout: int = DEFAULT_AFK_TIMEOUT,
    ) -> None:
        super().__init__(default_language=default_language, default_timeout=default_timeout)
        self._path = Path(path)
        self._serializer = serializer or JsonRoleSerializer()

    @property
    def path(self) -> Path:
        return self._path

    async def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self._path) as db:
            await db.execute(SCHEMA)
            await db.commit()
        logger.info("Configuration database ready at %s", self._path)

    def _row_to_config(self, row: Any) -> GuildConfig:
        timeout = row["afk_timeout"]
        return GuildConfig(
            guild_id=row["guild_id"],
            server_name=row["server_name"],
            afk_channel_id=row["afk_channel_id"],
            afk_channel_name=row["afk_channel_name"],
            allowed_roles=self._serializer.loads(row["allowed_roles"]),
            language=row["language"] or self.default_language,
            afk_timeout=timeout if isinstance(timeout, int) and timeout > 0 else self.default_timeout,
        )

    async def _read(self, guild_id: str) -> Optional[GuildConfig]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            cur = await db.execute(
                f"SELECT {', '.join(COLUMNS)} FROM guild_configs WHERE guild_id = ?",
                (guild_id,),
            )
            row = await cur.fetchone()
            await cur.close()
        return self._row_to_config(row) if row else None

    async def _read_all(self) -> list[GuildConfig]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            cur = await db.execute(f"SELECT {', '.join(COLUMNS)} FROM guild_configs ORDER BY guild_id")
            rows = await cur.fetchall()
            await cur.close()
        return [self._row_to_config(row) for row in rows]

    async def _write(self, config: GuildConfig) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                f"""
                INSERT INTO guild_configs ({', '.join(COLUMNS)})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    server_name = excluded.server_name,
                    afk_channel_id = excluded.afk_channel_id,
                    afk_channel_name = excluded.afk_channel_name,
                    allowed_roles = excluded.allowed_roles,
                    language = excluded.language,
                    afk_timeout = excluded.afk_timeout
                """,
                (
                    config.guild_id,
                    config.server_name,
                    config.afk_channel_id,
                    config.afk_channel_name,
                    self._serializer.dumps(config.allowed_roles),
                    config.language,
                    config.afk_timeout,
                ),
            )
            await db.commit()


class MemoryConfigStore(ConfigStore):
    """Process-local ConfigStore, used for ``DATABASE_PATH=:memory:`` and in tests."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._records: dict[str, GuildConfig] = {}

    async def _read(self, guild_id: str) -> Optional[GuildConfig]:
        return self._records.get(guild_id)

    async def _read_all(self) -> list[GuildConfig]:
        return [self._records[key] for key in sorted(self._records)]

    async def _write(self, config: GuildConfig) -> None:
        self._records[config.guild_id] = config


def create_config_store(
    database_path: str,
    *,
    default_language: str = DEFAULT_LANGUAGE,
    default_timeout: int = DEFAULT_AFK_TIMEOUT,
) -> ConfigStore:
    if database_path == ":memory:":
        return MemoryConfigStore(default_language=default_language, default_timeout=default_timeout)
    return SqliteConfigStore(
        database_path,
        default_language=default_language,
        default_timeout=default_timeout,
    )
