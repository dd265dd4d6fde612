"""Tests for utility functions."""

from afkguard.utils import (
    find_admin_roles,
    find_voice_channel,
    format_role_mentions,
    format_uptime,
    resolve_roles,
    safe_int,
    split_references,
    truncate_text,
)

from conftest import make_guild, make_role, make_voice_channel


def test_format_uptime():
    assert format_uptime(0) == "0s"
    assert format_uptime(-5) == "0s"
    assert format_uptime(45) == "45s"
    assert format_uptime(3600) == "1h"
    assert format_uptime(90061) == "1d 1h 1m"


def test_truncate_text():
    assert truncate_text("short", 10) == "short"
    assert truncate_text("a" * 20, 10) == "aaaaaaa..."


def test_safe_int():
    assert safe_int("123") == 123
    assert safe_int("abc") is None
    assert safe_int(None, 0) == 0


def test_find_voice_channel_by_id_mention_and_name():
    afk = make_voice_channel(10, "AFK Lounge")
    guild = make_guild(channels=[afk, make_voice_channel(20, "General")])

    assert find_voice_channel(guild, "10") is afk
    assert find_voice_channel(guild, "<#10>") is afk
    assert find_voice_channel(guild, "  afk lounge ") is afk
    assert find_voice_channel(guild, "Music") is None
    assert find_voice_channel(guild, "") is None


def test_find_voice_channel_ignores_text_channels():
    text_channel = object()
    guild = make_guild(channels=[make_voice_channel(20, "General")])
    guild.get_channel.side_effect = lambda channel_id: text_channel

    assert find_voice_channel(guild, "55") is None


def test_split_references():
    assert split_references("Mods, Admins,,Mods , ") == ["Mods", "Admins"]
    assert split_references("") == []


def test_resolve_roles():
    mods = make_role(7, "Mods")
    admins = make_role(8, "Admins")
    guild = make_guild(roles=[mods, admins])

    found, missing = resolve_roles(guild, "<@&7>, 8, admins, Ghost")

    assert found == [mods, admins]
    assert missing == ["Ghost"]


def test_find_admin_roles_skips_managed_roles():
    admins = make_role(8, "Admins", administrator=True)
    guild = make_guild(roles=[make_role(7, "Mods"), admins, make_role(9, "Bot", administrator=True, managed=True)])

    assert find_admin_roles(guild) == [admins]


def test_format_role_mentions():
    assert format_role_mentions(["1", "2"]) == "<@&1>, <@&2>"
    assert format_role_mentions([]) == ""
