"""Configuration command handling independent of the slash-command layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import discord

from .models import AllowedRole, GuildConfig, GuildConfigUpdate
from .storage import ConfigStoreError
from .utils import find_admin_roles, find_voice_channel, format_role_mentions, resolve_roles, truncate_text

if TYPE_CHECKING:
    from .i18n import Localizer
    from .idle import IdleWatcher
    from .storage import ConfigStore

logger = logging.getLogger(__name__)

STATUS_COLOUR = 0x0099FF


@dataclass
class Reply:
    content: Optional[str] = None
    embed: Optional[discord.Embed] = None
    saved: bool = False


class CommandRouter:
    """Validates configuration commands, applies them to the store and renders replies."""

    def __init__(
        self,
        config_store: "ConfigStore",
        localizer: "Localizer",
        idle_watcher: Optional["IdleWatcher"] = None,
    ):
        self.config_store = config_store
        self.localizer = localizer
        self.idle_watcher = idle_watcher

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _language(self, config: Optional[GuildConfig]) -> str:
        return config.language if config else self.localizer.default_language

    def translate(self, config: Optional[GuildConfig], key: str, **placeholders: Any) -> str:
        return self.localizer.resolve(self._language(config), key, placeholders)

    @staticmethod
    def is_authorized(actor: discord.Member, config: Optional[GuildConfig]) -> bool:
        """Administrators always pass; otherwise the actor needs one of the allowed roles."""
        if actor.guild_permissions.administrator:
            return True
        if config is None or not config.allowed_roles:
            return False
        allowed = config.allowed_role_ids
        return any(str(role.id) in allowed for role in actor.roles)

    async def _authorize(self, guild: discord.Guild, actor: discord.Member) -> tuple[Optional[GuildConfig], Optional[Reply]]:
        config = await self.config_store.get(guild.id)
        if not self.is_authorized(actor, config):
            logger.info("Rejected configuration change by %s in guild %s", actor.id, guild.id)
            return config, Reply(content=self.translate(config, "no_permission"))
        return config, None

    async def _save(
        self,
        guild: discord.Guild,
        config: Optional[GuildConfig],
        update: GuildConfigUpdate,
    ) -> tuple[Optional[GuildConfig], Optional[Reply]]:
        try:
            saved = await self.config_store.upsert(guild.id, update)
        except ConfigStoreError:
            return None, Reply(content=self.translate(config, "config_save_failed"))
        return saved, None

    def _channel_error(self, config: Optional[GuildConfig], channel: str) -> Reply:
        return Reply(content=self.translate(config, "invalid_channel", channel=channel))

    def _roles_error(self, config: Optional[GuildConfig], missing: list[str]) -> Reply:
        return Reply(content=self.translate(config, "invalid_roles", roles=", ".join(missing)))

    def _language_error(self, config: Optional[GuildConfig], language: str) -> Reply:
        return Reply(
            content=self.translate(
                config,
                "invalid_language",
                language=language,
                languages=self._language_list(),
            )
        )

    def _language_list(self) -> str:
        return ", ".join(code.upper() for code in self.localizer.languages)

    @staticmethod
    def _allowed_roles(roles: list[discord.Role]) -> tuple[AllowedRole, ...]:
        seen: set[int] = set()
        allowed = []
        for role in roles:
            if role.id not in seen:
                seen.add(role.id)
                allowed.append(AllowedRole(id=str(role.id), name=role.name))
        return tuple(allowed)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def setup(
        self,
        guild: discord.Guild,
        actor: discord.Member,
        *,
        channel: str,
        roles: str,
        language: str,
        timeout: Optional[int] = None,
    ) -> Reply:
        config, denied = await self._authorize(guild, actor)
        if denied:
            return denied

        afk_channel = find_voice_channel(guild, channel)
        if afk_channel is None:
            return self._channel_error(config, channel)

        found, missing = resolve_roles(guild, roles)
        if missing:
            return self._roles_error(config, missing)

        language = language.strip().lower()
        if not self.localizer.has_language(language):
            return self._language_error(config, language)

        if timeout is not None and timeout < 1:
            return Reply(content=self.translate(config, "invalid_timeout"))

        saved, failed = await self._save(
            guild,
            config,
            GuildConfigUpdate(
                server_name=guild.name,
                afk_channel_id=str(afk_channel.id),
                afk_channel_name=afk_channel.name,
                # Administrator roles always come first.
                allowed_roles=self._allowed_roles(find_admin_roles(guild) + found),
                language=language,
                afk_timeout=timeout,
            ),
        )
        if failed:
            return failed

        logger.info("Guild %s configured by %s (channel=%s)", guild.id, actor.id, afk_channel.id)
        return Reply(
            content=self.translate(
                saved,
                "setup_success",
                channel=afk_channel.name,
                language=saved.language.upper(),
                minutes=saved.afk_timeout,
            ),
            saved=True,
        )

    async def set_channel(
        self,
        guild: discord.Guild,
        actor: discord.Member,
        channel: Optional[str],
        *,
        clear: bool = False,
    ) -> Reply:
        config, denied = await self._authorize(guild, actor)
        if denied:
            return denied

        if clear:
            saved, failed = await self._save(
                guild, config, GuildConfigUpdate(server_name=guild.name, clear_afk_channel=True)
            )
            if failed:
                return failed
            if self.idle_watcher is not None:
                self.idle_watcher.cancel_guild(guild.id)
            return Reply(content=self.translate(saved, "channel_cleared"), saved=True)

        afk_channel = find_voice_channel(guild, channel or "")
        if afk_channel is None:
            return self._channel_error(config, channel or "")

        saved, failed = await self._save(
            guild,
            config,
            GuildConfigUpdate(
                server_name=guild.name,
                afk_channel_id=str(afk_channel.id),
                afk_channel_name=afk_channel.name,
            ),
        )
        if failed:
            return failed
        return Reply(content=self.translate(saved, "channel_success", channel=afk_channel.name), saved=True)

    async def set_roles(self, guild: discord.Guild, actor: discord.Member, roles: str) -> Reply:
        config, denied = await self._authorize(guild, actor)
        if denied:
            return denied

        found, missing = resolve_roles(guild, roles)
        if missing or not found:
            return self._roles_error(config, missing or [roles])

        saved, failed = await self._save(
            guild,
            config,
            GuildConfigUpdate(server_name=guild.name, allowed_roles=self._allowed_roles(found)),
        )
        if failed:
            return failed
        mentions = format_role_mentions(role.id for role in saved.allowed_roles)
        return Reply(content=self.translate(saved, "roles_success", roles=mentions), saved=True)

    async def set_language(self, guild: discord.Guild, actor: discord.Member, language: Optional[str]) -> Reply:
        if not language:
            config = await self.config_store.get(guild.id)
            return Reply(content=self.translate(config, "language_list", languages=self._language_list()))

        config, denied = await self._authorize(guild, actor)
        if denied:
            return denied

        language = language.strip().lower()
        if not self.localizer.has_language(language):
            return self._language_error(config, language)

        saved, failed = await self._save(
            guild, config, GuildConfigUpdate(server_name=guild.name, language=language)
        )
        if failed:
            return failed
        return Reply(content=self.translate(saved, "language_success", language=language.upper()), saved=True)

    async def set_timeout(self, guild: discord.Guild, actor: discord.Member, minutes: int) -> Reply:
        config, denied = await self._authorize(guild, actor)
        if denied:
            return denied

        if minutes < 1:
            return Reply(content=self.translate(config, "invalid_timeout"))

        saved, failed = await self._save(
            guild, config, GuildConfigUpdate(server_name=guild.name, afk_timeout=minutes)
        )
        if failed:
            return failed
        return Reply(content=self.translate(saved, "timeout_success", minutes=minutes), saved=True)

    async def status(self, guild: discord.Guild) -> Reply:
        config = await self.config_store.get(guild.id)
        if config is None:
            return Reply(content=self.translate(None, "no_configuration"))
        return Reply(embed=self.build_status_embed(config))

    def build_status_embed(self, config: GuildConfig) -> discord.Embed:
        def t(key: str, **placeholders: Any) -> str:
            return self.translate(config, key, **placeholders)

        embed = discord.Embed(title=t("afkinfo_title"), colour=STATUS_COLOUR)
        if config.server_name:
            embed.description = f"**{t('afkinfo_server')}:** {discord.utils.escape_markdown(config.server_name)}"
        embed.add_field(
            name=t("afkinfo_channel"),
            value=config.afk_channel_name or t("afkinfo_not_set"),
            inline=True,
        )
        embed.add_field(
            name=t("afkinfo_roles"),
            value=truncate_text(format_role_mentions(role.id for role in config.allowed_roles))
            if config.allowed_roles
            else t("afkinfo_no_roles"),
            inline=True,
        )
        embed.add_field(name=t("afkinfo_language"), value=config.language.upper(), inline=True)
        embed.add_field(
            name=t("afkinfo_timeout"),
            value=t("afkinfo_timeout_value", minutes=config.afk_timeout),
            inline=True,
        )
        embed.set_footer(text=t("afkinfo_footer"))
        embed.timestamp = discord.utils.utcnow()
        return embed
