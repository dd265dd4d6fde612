from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

import discord

if TYPE_CHECKING:
    from .i18n import Localizer
    from .storage import ConfigStore

logger = logging.getLogger(__name__)


class AfkEnforcer:
    """Disconnects anyone found in the guild's configured AFK channel."""

    def __init__(
        self,
        config_store: "ConfigStore",
        localizer: "Localizer",
        *,
        bot_user_id: Callable[[], Optional[int]] = lambda: None,
    ) -> None:
        self.config_store = config_store
        self.localizer = localizer
        self._bot_user_id = bot_user_id

    async def handle_voice_update(self, member: discord.Member, after: discord.VoiceState) -> bool:
        """Disconnect ``member`` if ``after`` puts them in the AFK channel.

        Returns True when a disconnect was issued.
        """
        channel = after.channel
        if channel is None or member.id == self._bot_user_id():
            return False

        config = await self.config_store.get(member.guild.id)
        if config is None or config.afk_channel_id is None:
            return False
        if str(channel.id) != config.afk_channel_id:
            return False

        me = member.guild.me
        if me is None or not channel.permissions_for(me).move_members:
            logger.warning(
                "Missing Move Members permission in AFK channel %s of guild %s",
                channel.id,
                member.guild.id,
            )
            return False

        reason = self.localizer.resolve(config.language, "afk_disconnect_reason")
        try:
            await member.move_to(None, reason=reason)
        except discord.Forbidden:
            logger.warning("Not allowed to disconnect member %s in guild %s", member.id, member.guild.id)
            return False
        except discord.HTTPException as e:
            logger.warning("Failed to disconnect member %s from AFK channel: %s", member.id, e)
            return False

        logger.info("Disconnected member %s from AFK channel %s in guild %s", member.id, channel.id, member.guild.id)
        return True
