import logging
import time
from typing import Optional

import discord
from discord.ext import commands

from .cogs import ConfigurationCog, HelpCog, ReconcileCog, VoiceCog
from .commands import CommandRouter
from .config import Settings
from .enforcer import AfkEnforcer
from .i18n import Localizer
from .idle import IdleWatcher
from .storage import ConfigStore, create_config_store
from .utils import format_uptime

logger = logging.getLogger(__name__)


class AfkBot(commands.Bot):
    """Discord client hosting the AFK cogs."""

    def __init__(self, coordinator: "AfkCoordinator"):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.voice_states = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
            application_id=coordinator.settings.client_id,
        )
        self.coordinator = coordinator

    async def setup_hook(self) -> None:
        await self.coordinator.on_discord_setup()
        await self.add_cog(ConfigurationCog(self.coordinator))
        await self.add_cog(VoiceCog(self.coordinator))
        await self.add_cog(ReconcileCog(self.coordinator))
        await self.add_cog(HelpCog(self.coordinator))
        # Commands are synced in on_discord_ready

    async def on_ready(self) -> None:
        await self.coordinator.on_discord_ready()
        logger.info("Discord bot connected as %s in %d guild(s)", self.user, len(self.guilds))

    async def on_resume(self) -> None:
        self.coordinator.record_discord_reconnect()
        logger.info("Discord bot session resumed")

    async def on_disconnect(self) -> None:
        logger.warning("Discord bot disconnected")

    async def on_error(self, event_method: str, /, *args, **kwargs) -> None:
        logger.exception("Unhandled error in event %s", event_method)
        self.coordinator.record_error()


class AfkCoordinator:
    """Process-scoped context shared by every cog: settings, storage, localizer and the voice components."""

    def __init__(
        self,
        settings: Settings,
        *,
        localizer: Optional[Localizer] = None,
        config_store: Optional[ConfigStore] = None,
    ):
        self.settings = settings
        self.localizer = localizer or Localizer.load(settings.translations_dir, settings.default_language)
        self.config_store = config_store or create_config_store(
            settings.database_path,
            default_language=settings.default_language,
            default_timeout=settings.default_afk_timeout,
        )
        self.afk_enforcer = AfkEnforcer(self.config_store, self.localizer, bot_user_id=self._bot_user_id)
        self.idle_watcher = IdleWatcher(self.config_store, self.localizer, bot_user_id=self._bot_user_id)
        self.command_router = CommandRouter(self.config_store, self.localizer, self.idle_watcher)
        self.discord_bot = AfkBot(self)
        self._slash_synced = False

        # Health tracking
        self._start_time = time.time()
        self._error_count = 0
        self._last_error_time: Optional[float] = None
        self._discord_reconnect_count = 0
        self._disconnect_count = 0

    def _bot_user_id(self) -> Optional[int]:
        user = self.discord_bot.user
        return user.id if user else None

    def get_uptime(self) -> float:
        return time.time() - self._start_time

    def record_error(self) -> None:
        self._error_count += 1
        self._last_error_time = time.time()

    def record_discord_reconnect(self) -> None:
        self._discord_reconnect_count += 1

    def record_disconnect(self) -> None:
        self._disconnect_count += 1

    def get_health_stats(self) -> dict:
        """Get system health statistics."""
        uptime_seconds = self.get_uptime()
        discord_ready = self.discord_bot.is_ready()

        health_status = "healthy" if discord_ready else "degraded"
        if self._error_count > 100 or (self._last_error_time and (time.time() - self._last_error_time) < 60):
            health_status = "unhealthy"

        return {
            "uptime_seconds": uptime_seconds,
            "uptime_formatted": format_uptime(uptime_seconds),
            "error_count": self._error_count,
            "last_error_time": self._last_error_time,
            "discord_connected": discord_ready,
            "discord_reconnect_count": self._discord_reconnect_count,
            "afk_disconnect_count": self._disconnect_count,
            "pending_relocations": len(self.idle_watcher),
            "languages": self.localizer.languages,
            "health_status": health_status,
        }

    async def on_discord_setup(self) -> None:
        await self.config_store.initialize()

    async def on_discord_ready(self) -> None:
        if self._slash_synced:
            return

        guild_id = self.settings.discord_guild_id
        tree = self.discord_bot.tree
        try:
            if guild_id:
                guild = discord.Object(id=guild_id)
                tree.copy_global_to(guild=guild)
                synced = await tree.sync(guild=guild)
            else:
                synced = await tree.sync()
        except discord.HTTPException:
            logger.exception("Failed to sync application commands")
            self.record_error()
            return

        self._slash_synced = True
        logger.info("Synced %d slash command(s) %s", len(synced), f"to guild {guild_id}" if guild_id else "globally")

    async def start_discord(self) -> None:
        await self.discord_bot.start(self.settings.discord_token)

    async def shutdown(self) -> None:
        self.idle_watcher.shutdown()
        if not self.discord_bot.is_closed():
            await self.discord_bot.close()
        await self.config_store.close()
        logger.info("Shutdown complete")
