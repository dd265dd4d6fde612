from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

if TYPE_CHECKING:
    from ..bot import AfkCoordinator
    from ..models import GuildConfig

HELP_ENTRIES = (
    ("/setup", "help_setup"),
    ("/setchannel", "help_setchannel"),
    ("/setroles", "help_setroles"),
    ("/setlanguage", "help_setlanguage"),
    ("/settimeout", "help_settimeout"),
    ("/afkinfo", "help_afkinfo"),
)


class HelpCog(commands.Cog):
    """Localized overview of the bot's commands."""

    def __init__(self, coordinator: "AfkCoordinator"):
        self.coordinator = coordinator

    def build_help_embed(self, config: Optional["GuildConfig"]) -> discord.Embed:
        language = config.language if config else None
        t = self.coordinator.localizer.resolve

        embed = discord.Embed(
            title=t(language, "help_title"),
            description=t(language, "help_description"),
            colour=discord.Colour.green(),
        )
        for command, key in HELP_ENTRIES:
            embed.add_field(name=f"`{command}`", value=t(language, key), inline=False)
        embed.set_footer(text=t(language, "help_footer"))
        return embed

    @app_commands.command(name="afkhelp", description="Show what the AFK bot does and how to configure it.")
    async def afk_help(self, interaction: discord.Interaction) -> None:
        config = None
        if interaction.guild is not None:
            config = await self.coordinator.config_store.get(interaction.guild.id)
        await interaction.response.send_message(embed=self.build_help_embed(config), ephemeral=True)
