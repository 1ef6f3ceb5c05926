"""Tests for the py-cord enforcement gateway."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modledger.datatypes.sanction_datatypes import EnforcementParams, SanctionKind
from modledger.enforcement.discord_gateway import MAX_TIMEOUT_SECONDS, DiscordEnforcementGateway


def _guild(member=None) -> MagicMock:
    guild = MagicMock()
    guild.name = "Test Guild"
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()
    guild.kick = AsyncMock()
    guild.get_member.return_value = member
    guild.fetch_member = AsyncMock(return_value=member)
    return guild


def _member() -> MagicMock:
    member = MagicMock()
    member.id = 2000
    member.timeout = AsyncMock()
    member.remove_timeout = AsyncMock()
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    member.send = AsyncMock()
    return member


def _bot(guild) -> MagicMock:
    bot = MagicMock()
    bot.get_guild.return_value = guild
    bot.fetch_guild = AsyncMock(return_value=guild)
    return bot


def _params(reason="spamming", duration=None) -> EnforcementParams:
    return EnforcementParams(reason=reason, duration_seconds=duration)


class TestApply:

    @pytest.mark.asyncio
    async def test_ban_uses_snowflake_and_audit_reason(self):
        guild = _guild()
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.apply("1000", "2000", SanctionKind.BAN, _params())

        assert outcome.succeeded is True
        target = guild.ban.await_args.args[0]
        assert target.id == 2000
        assert guild.ban.await_args.kwargs["reason"] == "Dashboard: spamming"

    @pytest.mark.asyncio
    async def test_kick_resolves_member(self):
        member = _member()
        guild = _guild(member)
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.apply("1000", "2000", SanctionKind.KICK, _params())

        assert outcome.succeeded is True
        guild.kick.assert_awaited_once_with(member, reason="Dashboard: spamming")

    @pytest.mark.asyncio
    async def test_timeout_sets_until(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        before = discord.utils.utcnow()
        outcome = await gateway.apply("1000", "2000", SanctionKind.TIMEOUT, _params(duration=600))

        assert outcome.succeeded is True
        until = member.timeout.await_args.args[0]
        assert until - before >= timedelta(seconds=600)
        assert until - before < timedelta(seconds=660)

    @pytest.mark.asyncio
    async def test_timeout_over_platform_limit_fails(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.apply("1000", "2000", SanctionKind.TIMEOUT, _params(duration=MAX_TIMEOUT_SECONDS + 1))

        assert outcome.succeeded is False
        member.timeout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mute_adds_configured_role(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)), mute_roles={1000: 555})

        outcome = await gateway.apply("1000", "2000", SanctionKind.MUTE, _params(duration=60))

        assert outcome.succeeded is True
        role = member.add_roles.await_args.args[0]
        assert role.id == 555

    @pytest.mark.asyncio
    async def test_mute_without_role_fails(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.apply("1000", "2000", SanctionKind.MUTE, _params(duration=60))

        assert outcome.succeeded is False
        assert outcome.error_message == "no mute role configured for this guild"

    @pytest.mark.asyncio
    async def test_warn_sends_dm(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.apply("1000", "2000", SanctionKind.WARN, _params())

        assert outcome.succeeded is True
        embed = member.send.await_args.kwargs["embed"]
        assert "spamming" in embed.description

    @pytest.mark.asyncio
    async def test_warn_with_closed_dms_still_succeeds(self):
        member = _member()
        member.send.side_effect = discord.Forbidden(MagicMock(), "Cannot send messages to this user")
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.apply("1000", "2000", SanctionKind.WARN, _params())

        assert outcome.succeeded is True

    @pytest.mark.asyncio
    async def test_member_fetched_when_not_cached(self):
        member = _member()
        guild = _guild()
        guild.fetch_member = AsyncMock(return_value=member)
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.apply("1000", "2000", SanctionKind.KICK, _params())

        assert outcome.succeeded is True
        guild.fetch_member.assert_awaited_once_with(2000)

    @pytest.mark.asyncio
    async def test_missing_member_is_reported(self):
        guild = _guild()
        guild.fetch_member = AsyncMock(side_effect=discord.NotFound(MagicMock(), "Unknown Member"))
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.apply("1000", "2000", SanctionKind.KICK, _params())

        assert outcome.succeeded is False
        assert outcome.error_message == "member not found"

    @pytest.mark.asyncio
    async def test_missing_guild_is_reported(self):
        bot = _bot(None)
        bot.fetch_guild = AsyncMock(side_effect=discord.NotFound(MagicMock(), "Unknown Guild"))
        gateway = DiscordEnforcementGateway(bot)

        outcome = await gateway.apply("1000", "2000", SanctionKind.BAN, _params())

        assert outcome.succeeded is False
        assert outcome.error_message == "guild not found"

    @pytest.mark.asyncio
    async def test_forbidden_is_reported(self):
        guild = _guild()
        guild.ban.side_effect = discord.Forbidden(MagicMock(), "Missing Permissions")
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.apply("1000", "2000", SanctionKind.BAN, _params())

        assert outcome.error_message == "missing permissions"

    @pytest.mark.asyncio
    async def test_non_numeric_ids_are_reported(self):
        gateway = DiscordEnforcementGateway(_bot(_guild()))

        outcome = await gateway.apply("guild", "2000", SanctionKind.BAN, _params())

        assert outcome.error_message == "invalid guild or user id"

    @pytest.mark.asyncio
    async def test_reversal_kinds_cannot_be_applied(self):
        gateway = DiscordEnforcementGateway(_bot(_guild()))

        outcome = await gateway.apply("1000", "2000", SanctionKind.UNBAN, _params())

        assert outcome.succeeded is False


class TestRevoke:

    @pytest.mark.asyncio
    async def test_unban(self):
        guild = _guild()
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.revoke("1000", "2000", SanctionKind.BAN, reason="appeal")

        assert outcome.succeeded is True
        assert guild.unban.await_args.args[0].id == 2000
        assert guild.unban.await_args.kwargs["reason"] == "appeal"

    @pytest.mark.asyncio
    async def test_unban_of_user_not_banned(self):
        guild = _guild()
        guild.unban.side_effect = discord.NotFound(MagicMock(), "Unknown Ban")
        gateway = DiscordEnforcementGateway(_bot(guild))

        outcome = await gateway.revoke("1000", "2000", SanctionKind.BAN)

        assert outcome.error_message == "user is not banned"

    @pytest.mark.asyncio
    async def test_remove_timeout(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.revoke("1000", "2000", SanctionKind.TIMEOUT, reason="served")

        assert outcome.succeeded is True
        member.remove_timeout.assert_awaited_once_with(reason="served")

    @pytest.mark.asyncio
    async def test_unmute_removes_role(self):
        member = _member()
        gateway = DiscordEnforcementGateway(_bot(_guild(member)), mute_roles={"1000": "555"})

        outcome = await gateway.revoke("1000", "2000", SanctionKind.MUTE)

        assert outcome.succeeded is True
        assert member.remove_roles.await_args.args[0].id == 555

    @pytest.mark.asyncio
    async def test_warn_cannot_be_revoked(self):
        gateway = DiscordEnforcementGateway(_bot(_guild()))

        outcome = await gateway.revoke("1000", "2000", SanctionKind.WARN)

        assert outcome.succeeded is False

    @pytest.mark.asyncio
    async def test_unexpected_error_message_is_kept(self):
        member = _member()
        member.remove_timeout.side_effect = RuntimeError("gateway closed")
        gateway = DiscordEnforcementGateway(_bot(_guild(member)))

        outcome = await gateway.revoke("1000", "2000", SanctionKind.TIMEOUT)

        assert outcome.error_message == "gateway closed"
