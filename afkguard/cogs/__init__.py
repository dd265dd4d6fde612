"""Discord command and event cogs bundled with the AFK bot."""

from .configuration import ConfigurationCog
from .help import HelpCog
from .reconcile import ReconcileCog
from .voice import VoiceCog

__all__ = [
    "ConfigurationCog",
    "HelpCog",
    "ReconcileCog",
    "VoiceCog",
]
