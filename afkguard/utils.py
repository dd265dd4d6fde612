"""Utility functions for the bot."""

import logging
import re
from typing import Any, Iterable, Optional

import discord

logger = logging.getLogger(__name__)

ROLE_MENTION_RE = re.compile(r"^<@&(\d+)>$")


def format_uptime(seconds: float) -> str:
    """Format uptime in seconds to human-readable string.

    Args:
        seconds: Uptime in seconds

    Returns:
        Formatted string like "2d 3h 15m"
    """
    if seconds < 0:
        return "0s"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    seconds = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 and len(parts) < 2:
        parts.append(f"{seconds}s")

    return " ".join(parts) if parts else "0s"


def truncate_text(text: str, max_length: int = 1024, suffix: str = "...") -> str:
    """Truncate text to maximum length (embed field values are capped at 1024)."""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Safely convert value to integer.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Integer value or default
    """
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def find_voice_channel(guild: discord.Guild, query: str) -> Optional[discord.VoiceChannel]:
    """Find a voice channel by ID, mention or case-insensitive name."""
    query = query.strip()
    if not query:
        return None

    channel_id = safe_int(query.removeprefix("<#").removesuffix(">"))
    if channel_id is not None:
        channel = guild.get_channel(channel_id)
        if isinstance(channel, discord.VoiceChannel):
            return channel

    target = query.casefold()
    for channel in guild.voice_channels:
        if channel.name.casefold() == target:
            return channel
    return None


def split_references(raw: str) -> list[str]:
    """Split a comma separated list of references, dropping blanks and duplicates."""
    items: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if value and value not in items:
            items.append(value)
    return items


def resolve_roles(guild: discord.Guild, raw: str) -> tuple[list[discord.Role], list[str]]:
    """Resolve role mentions, IDs or names.

    Returns the roles found and the references that matched nothing.
    """
    found: list[discord.Role] = []
    missing: list[str] = []

    for reference in split_references(raw):
        role: Optional[discord.Role] = None
        match = ROLE_MENTION_RE.match(reference)
        role_id = int(match.group(1)) if match else safe_int(reference)
        if role_id is not None:
            role = guild.get_role(role_id)
        if role is None:
            target = reference.casefold()
            role = next((r for r in guild.roles if r.name.casefold() == target), None)

        if role is None:
            missing.append(reference)
        elif role not in found:
            found.append(role)

    return found, missing


def find_admin_roles(guild: discord.Guild) -> list[discord.Role]:
    """Roles holding Administrator that are not managed by an integration."""
    return [role for role in guild.roles if role.permissions.administrator and not role.managed]


def format_role_mentions(role_ids: Iterable[str]) -> str:
    return ", ".join(f"<@&{role_id}>" for role_id in role_ids)
