"""Tests for AFK channel enforcement."""

import discord
import pytest

from afkguard.enforcer import AfkEnforcer
from afkguard.models import GuildConfigUpdate

from conftest import BOT_ID, http_error, make_guild, make_member, make_voice_channel, make_voice_state


@pytest.fixture
def afk_channel():
    return make_voice_channel(10, "AFK Lounge")


@pytest.fixture
def guild(afk_channel):
    return make_guild(channels=[afk_channel, make_voice_channel(20, "General")])


@pytest.fixture
def enforcer(store, localizer):
    return AfkEnforcer(store, localizer, bot_user_id=lambda: BOT_ID)


async def configure(store, language="en_us"):
    await store.upsert(
        1000,
        GuildConfigUpdate(afk_channel_id="10", afk_channel_name="AFK Lounge", language=language),
    )


@pytest.mark.asyncio
async def test_member_joining_afk_channel_is_disconnected(enforcer, store, guild, afk_channel):
    await configure(store)
    member = make_member(1, guild)

    assert await enforcer.handle_voice_update(member, make_voice_state(afk_channel)) is True
    member.move_to.assert_awaited_once_with(None, reason="Joined the AFK channel")


@pytest.mark.asyncio
async def test_disconnect_reason_is_localized(enforcer, store, guild, afk_channel, localizer):
    await configure(store, language="pt_br")
    member = make_member(1, guild)

    await enforcer.handle_voice_update(member, make_voice_state(afk_channel))
    member.move_to.assert_awaited_once_with(None, reason=localizer.resolve("pt_br", "afk_disconnect_reason"))


@pytest.mark.asyncio
async def test_other_channels_are_ignored(enforcer, store, guild):
    await configure(store)
    member = make_member(1, guild)

    assert await enforcer.handle_voice_update(member, make_voice_state(guild.get_channel(20))) is False
    assert await enforcer.handle_voice_update(member, make_voice_state(None)) is False
    member.move_to.assert_not_awaited()


@pytest.mark.asyncio
async def test_unconfigured_guild_is_ignored(enforcer, guild, afk_channel):
    member = make_member(1, guild)

    assert await enforcer.handle_voice_update(member, make_voice_state(afk_channel)) is False
    member.move_to.assert_not_awaited()


@pytest.mark.asyncio
async def test_bot_is_never_disconnected(enforcer, store, guild, afk_channel):
    await configure(store)
    bot_member = make_member(BOT_ID, guild)

    assert await enforcer.handle_voice_update(bot_member, make_voice_state(afk_channel)) is False
    bot_member.move_to.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_move_permission_skips_disconnect(enforcer, store, guild):
    await configure(store)
    locked = make_voice_channel(10, "AFK Lounge", move_members=False)
    member = make_member(1, guild)

    assert await enforcer.handle_voice_update(member, make_voice_state(locked)) is False
    locked.permissions_for.assert_called_once_with(guild.me)
    member.move_to.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("error_cls", [discord.Forbidden, discord.HTTPException])
async def test_api_errors_are_swallowed(enforcer, store, guild, afk_channel, error_cls):
    await configure(store)
    member = make_member(1, guild)
    member.move_to.side_effect = http_error(error_cls)

    assert await enforcer.handle_voice_update(member, make_voice_state(afk_channel)) is False
