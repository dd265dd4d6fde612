from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import discord
from discord.ext import commands, tasks

from ..models import AllowedRole, GuildConfig, GuildConfigUpdate
from ..storage import ConfigStoreError
from ..utils import find_admin_roles, safe_int

if TYPE_CHECKING:
    from ..bot import AfkCoordinator
    from ..i18n import Localizer

logger = logging.getLogger(__name__)


def build_reconcile_update(
    guild: discord.Guild,
    config: Optional[GuildConfig],
    localizer: "Localizer",
) -> GuildConfigUpdate:
    """Fields the sweep may fill in: the server name always, everything else only while unset."""
    language = None
    allowed_roles = None
    afk_channel_id = afk_channel_name = None

    if config is None:
        language = localizer.normalize(str(guild.preferred_locale)) or localizer.default_language

    if config is None or not config.allowed_roles:
        admin_roles = find_admin_roles(guild)
        if admin_roles:
            allowed_roles = tuple(AllowedRole(id=str(role.id), name=role.name) for role in admin_roles)

    if config is None or config.afk_channel_id is None:
        native = guild.afk_channel
        if native is not None:
            afk_channel_id, afk_channel_name = str(native.id), native.name
    else:
        # Keep the cached display name in step with renames.
        channel = guild.get_channel(safe_int(config.afk_channel_id, 0))
        if channel is not None and channel.name != config.afk_channel_name:
            afk_channel_name = channel.name

    return GuildConfigUpdate(
        server_name=guild.name,
        afk_channel_id=afk_channel_id,
        afk_channel_name=afk_channel_name,
        allowed_roles=allowed_roles,
        language=language,
    )


class ReconcileCog(commands.Cog):
    """Periodically records every guild the bot can see."""

    def __init__(self, coordinator: "AfkCoordinator"):
        self.coordinator = coordinator
        self.reconcile_guilds.change_interval(minutes=coordinator.settings.reconcile_interval_minutes)

    async def cog_load(self) -> None:
        self.reconcile_guilds.start()

    def cog_unload(self) -> None:
        if self.reconcile_guilds.is_running():
            self.reconcile_guilds.cancel()

    async def reconcile_guild(self, guild: discord.Guild) -> Optional[GuildConfig]:
        localizer = self.coordinator.localizer
        # Decided under the store's write lock so a concurrent command is never overwritten.
        return await self.coordinator.config_store.update_with(
            guild.id,
            lambda config: build_reconcile_update(guild, config, localizer),
        )

    async def run_sweep(self) -> int:
        """Reconcile every guild; returns how many were saved."""
        saved = 0
        for guild in list(self.coordinator.discord_bot.guilds):
            try:
                await self.reconcile_guild(guild)
            except ConfigStoreError:
                self.coordinator.record_error()
            except Exception:
                logger.exception("Error reconciling guild %s", guild.id)
                self.coordinator.record_error()
            else:
                saved += 1
        logger.info("Guild data reconciled for %d/%d guilds", saved, len(self.coordinator.discord_bot.guilds))
        return saved

    @tasks.loop(minutes=5)
    async def reconcile_guilds(self) -> None:
        await self.run_sweep()

    @reconcile_guilds.before_loop
    async def _before_reconcile(self) -> None:
        await self.coordinator.discord_bot.wait_until_ready()

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("Joined guild %s (%s)", guild.name, guild.id)
        try:
            await self.reconcile_guild(guild)
        except ConfigStoreError:
            self.coordinator.record_error()
