"""Pytest configuration and shared fixtures."""

import asyncio
import shutil
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from afkguard.config import PACKAGE_TRANSLATIONS_DIR, Settings
from afkguard.i18n import Localizer
from afkguard.storage import MemoryConfigStore

GUILD_ID = 1000
BOT_ID = 999


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def minimal_settings():
    """Create minimal settings for testing."""
    return Settings(
        discord_token="test_token",
        client_id=123456,
        discord_guild_id=None,
        database_path=":memory:",
        translations_dir=PACKAGE_TRANSLATIONS_DIR,
        default_language="en_us",
        default_afk_timeout=5,
        reconcile_interval_minutes=5,
        api_enabled=False,
        api_host="127.0.0.1",
        api_port=8000,
        dashboard_username=None,
        dashboard_password=None,
        dashboard_secret_key="test_secret_key",
    )


@pytest.fixture
def localizer():
    return Localizer.load(PACKAGE_TRANSLATIONS_DIR)


@pytest.fixture
def store():
    return MemoryConfigStore()


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_voice_channel(channel_id, name, *, move_members=True):
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = channel_id
    channel.name = name
    channel.permissions_for = MagicMock(return_value=MagicMock(move_members=move_members))
    return channel


def make_role(role_id, name, *, administrator=False, managed=False):
    role = MagicMock(spec=discord.Role)
    role.id = role_id
    role.name = name
    role.managed = managed
    role.permissions = MagicMock(administrator=administrator)
    return role


def make_guild(guild_id=GUILD_ID, name="Test Guild", *, channels=(), roles=(), afk_channel=None, locale="en-US"):
    guild = MagicMock(spec=discord.Guild)
    guild.id = guild_id
    guild.name = name
    guild.voice_channels = list(channels)
    guild.roles = list(roles)
    guild.afk_channel = afk_channel
    guild.preferred_locale = locale

    channels_by_id = {channel.id: channel for channel in channels}
    roles_by_id = {role.id: role for role in roles}
    guild.get_channel = MagicMock(side_effect=channels_by_id.get)
    guild.get_role = MagicMock(side_effect=roles_by_id.get)

    me = MagicMock(spec=discord.Member)
    me.id = BOT_ID
    guild.me = me
    return guild


def make_voice_state(channel=None, *, self_mute=False, self_deaf=False):
    state = MagicMock(spec=discord.VoiceState)
    state.channel = channel
    state.self_mute = self_mute
    state.self_deaf = self_deaf
    return state


def make_member(member_id, guild, *, administrator=False, roles=(), voice=None):
    member = MagicMock(spec=discord.Member)
    member.id = member_id
    member.guild = guild
    member.roles = list(roles)
    member.guild_permissions = MagicMock(administrator=administrator)
    member.voice = voice
    member.move_to = AsyncMock()
    return member


def http_error(cls=discord.HTTPException, status=500):
    """Build a discord HTTP error without a real aiohttp response."""
    return cls(MagicMock(status=status, reason="Error"), "request failed")


class HeldReadStore(MemoryConfigStore):
    """MemoryConfigStore whose next read blocks until ``release`` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = asyncio.Event()
        self.hold_next = False

    async def _read(self, guild_id):
        if self.hold_next:
            self.hold_next = False
            await self.release.wait()
        return await super()._read(guild_id)
