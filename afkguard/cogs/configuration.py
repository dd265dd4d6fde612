from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..commands import Reply

if TYPE_CHECKING:
    from ..bot import AfkCoordinator

logger = logging.getLogger(__name__)


class ConfigurationCog(commands.Cog):
    """Slash commands for managing the per-guild AFK configuration."""

    def __init__(self, coordinator: "AfkCoordinator"):
        self.coordinator = coordinator

    @property
    def router(self):
        return self.coordinator.command_router

    async def _send(self, interaction: discord.Interaction, reply: Reply) -> None:
        kwargs = {"ephemeral": True}
        if reply.content is not None:
            kwargs["content"] = reply.content
        if reply.embed is not None:
            kwargs["embed"] = reply.embed
        if interaction.response.is_done():
            await interaction.followup.send(**kwargs)
        else:
            await interaction.response.send_message(**kwargs)

    async def _guild_context(
        self, interaction: discord.Interaction
    ) -> tuple[Optional[discord.Guild], Optional[discord.Member]]:
        guild = interaction.guild
        member = interaction.user
        if guild is None or not isinstance(member, discord.Member):
            await interaction.response.send_message(
                self.coordinator.localizer.resolve(None, "guild_only"),
                ephemeral=True,
            )
            return None, None
        return guild, member

    async def _language_choices(self, current: str) -> list[app_commands.Choice[str]]:
        current = current.strip().lower()
        return [
            app_commands.Choice(name=code.upper(), value=code)
            for code in self.coordinator.localizer.languages
            if current in code
        ][:25]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    @app_commands.command(name="setup", description="Set up the AFK channel, roles, language and idle timeout.")
    @app_commands.guild_only()
    @app_commands.describe(
        channel="The voice channel to use as AFK (name or ID).",
        roles="Roles allowed to configure the bot (comma-separated mentions, IDs or names).",
        language="Language for this server.",
        timeout="Minutes a muted and deafened member may idle before being moved.",
    )
    async def setup_command(
        self,
        interaction: discord.Interaction,
        channel: str,
        roles: str,
        language: str,
        timeout: Optional[app_commands.Range[int, 1, 1440]] = None,
    ) -> None:
        guild, member = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.setup(
            guild, member, channel=channel, roles=roles, language=language, timeout=timeout
        )
        await self._send(interaction, reply)

    @setup_command.autocomplete("language")
    async def _setup_language_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._language_choices(current)

    @app_commands.command(name="setchannel", description="Change the AFK voice channel.")
    @app_commands.guild_only()
    @app_commands.describe(
        channel="The voice channel to use as AFK (name or ID).",
        clear="Remove the AFK channel instead.",
    )
    async def set_channel_command(
        self,
        interaction: discord.Interaction,
        channel: Optional[str] = None,
        clear: bool = False,
    ) -> None:
        guild, member = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.set_channel(guild, member, channel, clear=clear)
        await self._send(interaction, reply)

    @app_commands.command(name="setroles", description="Change the roles allowed to configure the bot.")
    @app_commands.guild_only()
    @app_commands.describe(roles="Comma-separated role mentions, IDs or names.")
    async def set_roles_command(self, interaction: discord.Interaction, roles: str) -> None:
        guild, member = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.set_roles(guild, member, roles)
        await self._send(interaction, reply)

    @app_commands.command(name="setlanguage", description="Change the bot language, or list the available languages.")
    @app_commands.guild_only()
    @app_commands.describe(language="Language code; leave empty to list the available languages.")
    async def set_language_command(
        self,
        interaction: discord.Interaction,
        language: Optional[str] = None,
    ) -> None:
        guild, member = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.set_language(guild, member, language)
        await self._send(interaction, reply)

    @set_language_command.autocomplete("language")
    async def _set_language_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._language_choices(current)

    @app_commands.command(name="settimeout", description="Change the idle timeout before members are moved.")
    @app_commands.guild_only()
    @app_commands.describe(minutes="Minutes a muted and deafened member may idle.")
    async def set_timeout_command(
        self,
        interaction: discord.Interaction,
        minutes: app_commands.Range[int, 1, 1440],
    ) -> None:
        guild, member = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.set_timeout(guild, member, minutes)
        await self._send(interaction, reply)

    @app_commands.command(name="afkinfo", description="Show the current AFK configuration.")
    @app_commands.guild_only()
    async def afk_info_command(self, interaction: discord.Interaction) -> None:
        guild, _ = await self._guild_context(interaction)
        if guild is None:
            return
        reply = await self.router.status(guild)
        await self._send(interaction, reply)

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        logger.error("Command %s failed", getattr(interaction.command, "name", "?"), exc_info=error)
        self.coordinator.record_error()
        config = None
        if interaction.guild is not None:
            config = await self.coordinator.config_store.get(interaction.guild.id)
        await self._send(interaction, Reply(content=self.router.translate(config, "command_failed")))
