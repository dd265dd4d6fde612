"""Relocation of members who sit muted and deafened outside the AFK channel."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

import discord

if TYPE_CHECKING:
    from .i18n import Localizer
    from .models import GuildConfig
    from .storage import ConfigStore

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[object]]
MemberKey = tuple[int, int]


@dataclass
class PendingRelocation:
    channel_id: int
    timeout_minutes: int
    task: asyncio.Task


def _is_idle(state: Optional[discord.VoiceState]) -> bool:
    return state is not None and state.channel is not None and bool(state.self_mute) and bool(state.self_deaf)


def _channel_id(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class IdleWatcher:
    """Owns one cancellable relocation timer per guild member."""

    def __init__(
        self,
        config_store: "ConfigStore",
        localizer: "Localizer",
        *,
        sleep: SleepFunc = asyncio.sleep,
        bot_user_id: Callable[[], Optional[int]] = lambda: None,
    ) -> None:
        self.config_store = config_store
        self.localizer = localizer
        self._sleep = sleep
        self._bot_user_id = bot_user_id
        self._pending: dict[MemberKey, PendingRelocation] = {}
        # Latest update sequence number per member still in voice.
        self._latest: dict[MemberKey, int] = {}
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._pending)

    @staticmethod
    def _key(member: discord.Member) -> MemberKey:
        return (member.guild.id, member.id)

    def pending(self, member: discord.Member) -> Optional[PendingRelocation]:
        return self._pending.get(self._key(member))

    def cancel(self, member: discord.Member) -> bool:
        """Cancel the pending relocation for ``member``. Returns True if one was pending."""
        entry = self._pending.pop(self._key(member), None)
        if entry is None:
            return False
        entry.task.cancel()
        logger.debug("Cancelled idle relocation for member %s in guild %s", member.id, member.guild.id)
        return True

    def cancel_guild(self, guild_id: int) -> int:
        """Cancel every pending relocation in a guild. Returns how many were cancelled."""
        keys = [key for key in self._pending if key[0] == guild_id]
        for key in keys:
            self._pending.pop(key).task.cancel()
        if keys:
            logger.debug("Cancelled %d idle relocation(s) in guild %s", len(keys), guild_id)
        return len(keys)

    def shutdown(self) -> None:
        for entry in self._pending.values():
            entry.task.cancel()
        self._pending.clear()
        self._latest.clear()

    async def handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Arm, keep or cancel the member's timer based on their new voice state."""
        if member.id == self._bot_user_id():
            return

        key = self._key(member)
        if after.channel is None:
            self._latest.pop(key, None)
        else:
            self._latest[key] = sequence = next(self._sequence)

        if not _is_idle(after):
            self.cancel(member)
            return

        config = await self.config_store.get(member.guild.id)
        if self._latest.get(key) != sequence:
            # A newer update for this member was handled while the config was loading.
            return

        afk_channel_id = _channel_id(config.afk_channel_id) if config else None
        if afk_channel_id is None or after.channel.id == afk_channel_id:
            self.cancel(member)
            return

        existing = self.pending(member)
        if existing is not None and existing.channel_id == after.channel.id:
            return

        self.arm(member, after.channel.id, config.afk_timeout)

    def arm(self, member: discord.Member, channel_id: int, timeout_minutes: int) -> PendingRelocation:
        """Start a relocation timer, replacing any timer already pending for ``member``."""
        if timeout_minutes < 1:
            raise ValueError("timeout_minutes must be at least 1")
        key = self._key(member)
        if previous := self._pending.pop(key, None):
            previous.task.cancel()

        task = asyncio.create_task(
            self._run(member, channel_id, timeout_minutes),
            name=f"idle-relocation-{key[0]}-{key[1]}",
        )
        entry = PendingRelocation(channel_id=channel_id, timeout_minutes=timeout_minutes, task=task)
        self._pending[key] = entry
        task.add_done_callback(lambda t: self._forget(key, t))
        logger.debug(
            "Armed idle relocation for member %s in guild %s (%d minute(s))",
            member.id,
            member.guild.id,
            timeout_minutes,
        )
        return entry

    def _forget(self, key: MemberKey, task: asyncio.Task) -> None:
        entry = self._pending.get(key)
        if entry is not None and entry.task is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Idle relocation task failed", exc_info=task.exception())

    async def _run(self, member: discord.Member, channel_id: int, timeout_minutes: int) -> None:
        waited = 0.0
        deadline = timeout_minutes * 60.0
        while waited < deadline:
            await self._sleep(deadline - waited)
            waited = deadline
            config = await self.config_store.get(member.guild.id)
            if config is None or config.afk_channel_id is None:
                logger.debug("AFK channel cleared for guild %s, dropping relocation", member.guild.id)
                return
            # Honour a timeout raised while we were waiting.
            deadline = max(deadline, config.afk_timeout * 60.0)

        await self._relocate(member, channel_id, config)

    async def _relocate(self, member: discord.Member, channel_id: int, config: "GuildConfig") -> None:
        state = member.voice
        if not _is_idle(state) or state.channel.id != channel_id:
            logger.debug("Member %s no longer idle in channel %s, skipping relocation", member.id, channel_id)
            return

        afk_channel = member.guild.get_channel(_channel_id(config.afk_channel_id) or 0)
        if not isinstance(afk_channel, discord.VoiceChannel) or afk_channel.id == channel_id:
            logger.debug("AFK channel %s unavailable in guild %s", config.afk_channel_id, member.guild.id)
            return

        reason = self.localizer.resolve(config.language, "idle_move_reason", {"minutes": config.afk_timeout})
        try:
            await member.move_to(afk_channel, reason=reason)
        except discord.Forbidden:
            logger.warning(
                "Missing permission to move member %s to AFK channel %s in guild %s",
                member.id,
                afk_channel.id,
                member.guild.id,
            )
        except discord.HTTPException as e:
            logger.warning("Failed to move member %s to AFK channel: %s", member.id, e)
        else:
            logger.info(
                "Moved idle member %s to AFK channel %s in guild %s",
                member.id,
                afk_channel.id,
                member.guild.id,
            )
