"""Discord bot that disconnects members in the AFK channel and moves idle members into it."""

__version__ = "1.0.0"
