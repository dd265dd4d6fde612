from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from ..bot import AfkCoordinator

logger = logging.getLogger(__name__)


class VoiceCog(commands.Cog):
    """Routes voice-state updates to the AFK enforcer and the idle watcher."""

    def __init__(self, coordinator: "AfkCoordinator"):
        self.coordinator = coordinator

    def cog_unload(self) -> None:
        self.coordinator.idle_watcher.shutdown()

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            disconnected = await self.coordinator.afk_enforcer.handle_voice_update(member, after)
            if disconnected:
                self.coordinator.idle_watcher.cancel(member)
                self.coordinator.record_disconnect()
                return
            await self.coordinator.idle_watcher.handle_voice_update(member, before, after)
        except Exception:
            logger.exception(
                "Error handling voice state update for member %s in guild %s",
                member.id,
                member.guild.id,
            )
            self.coordinator.record_error()
