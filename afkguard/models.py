"""Typed records for per-guild configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional

DEFAULT_LANGUAGE = "en_us"
DEFAULT_AFK_TIMEOUT = 5


@dataclass(frozen=True)
class AllowedRole:
    """A role permitted to change the guild configuration, with its cached name."""

    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class GuildConfig:
    guild_id: str
    server_name: Optional[str] = None
    afk_channel_id: Optional[str] = None
    afk_channel_name: Optional[str] = None
    allowed_roles: tuple[AllowedRole, ...] = ()
    language: str = DEFAULT_LANGUAGE
    afk_timeout: int = DEFAULT_AFK_TIMEOUT

    @property
    def allowed_role_ids(self) -> set[str]:
        return {role.id for role in self.allowed_roles}

    @property
    def idle_relocation_enabled(self) -> bool:
        return self.afk_channel_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "server_name": self.server_name,
            "afk_channel_id": self.afk_channel_id,
            "afk_channel_name": self.afk_channel_name,
            "allowed_roles": [role.to_dict() for role in self.allowed_roles],
            "language": self.language,
            "afk_timeout": self.afk_timeout,
        }


@dataclass(frozen=True)
class GuildConfigUpdate:
    """Partial update for a guild record.

    ``None`` means "leave the stored value alone". Clearing the AFK channel
    has to be requested explicitly with ``clear_afk_channel``.
    """

    server_name: Optional[str] = None
    afk_channel_id: Optional[str] = None
    afk_channel_name: Optional[str] = None
    allowed_roles: Optional[tuple[AllowedRole, ...]] = None
    language: Optional[str] = None
    afk_timeout: Optional[int] = None
    clear_afk_channel: bool = False

    def __post_init__(self) -> None:
        if self.afk_timeout is not None and self.afk_timeout < 1:
            raise ValueError("afk_timeout must be a positive number of minutes")
        if self.allowed_roles is not None and not isinstance(self.allowed_roles, tuple):
            object.__setattr__(self, "allowed_roles", tuple(self.allowed_roles))

    def is_empty(self) -> bool:
        return not self.clear_afk_channel and all(
            getattr(self, f.name) is None for f in fields(self) if f.name != "clear_afk_channel"
        )


def merge_config(
    guild_id: str,
    existing: Optional[GuildConfig],
    update: GuildConfigUpdate,
    *,
    default_language: str = DEFAULT_LANGUAGE,
    default_timeout: int = DEFAULT_AFK_TIMEOUT,
) -> GuildConfig:
    """Apply ``update`` on top of ``existing`` one field at a time."""
    base = existing or GuildConfig(
        guild_id=guild_id,
        language=default_language,
        afk_timeout=default_timeout,
    )
    changes: dict[str, Any] = {}
    for name in ("server_name", "afk_channel_id", "afk_channel_name", "allowed_roles", "language", "afk_timeout"):
        value = getattr(update, name)
        if value is not None:
            changes[name] = value

    if update.clear_afk_channel:
        changes["afk_channel_id"] = None
        changes["afk_channel_name"] = None

    return replace(base, **changes)


__all__ = [
    "AllowedRole",
    "DEFAULT_AFK_TIMEOUT",
    "DEFAULT_LANGUAGE",
    "GuildConfig",
    "GuildConfigUpdate",
    "merge_config",
]
