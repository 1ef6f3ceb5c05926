"""
py-cord binding of the enforcement gateway.

Every public method returns an EnforcementOutcome and never raises: missing
guilds or members, missing permissions and HTTP errors are all reported as
failed outcomes so the engine can store them on the audit record.
"""

from __future__ import annotations

import datetime
from typing import Mapping, Optional

import discord

from modledger.datatypes.sanction_datatypes import EnforcementOutcome, EnforcementParams, SanctionKind
from modledger.util.logger import get_logger

logger = get_logger("discord_gateway")

# Discord rejects communication timeouts longer than 28 days
MAX_TIMEOUT_SECONDS = 28 * 24 * 60 * 60


class MemberNotFound(Exception):
    pass


class GuildNotFound(Exception):
    pass


class DiscordEnforcementGateway:
    """
    Applies sanctions through a py-cord ``discord.Bot``.

    Args:
        bot: Connected bot client.
        mute_roles: Guild id -> role id of the role used for role-based mutes.
    """

    def __init__(self, bot: discord.Bot, mute_roles: Optional[Mapping[str, str]] = None) -> None:
        self.bot = bot
        self.mute_roles = {str(k): str(v) for k, v in (mute_roles or {}).items()}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _resolve_guild(self, guild_id: str) -> discord.Guild:
        guild = self.bot.get_guild(int(guild_id))
        if guild is not None:
            return guild
        try:
            return await self.bot.fetch_guild(int(guild_id))
        except discord.NotFound:
            raise GuildNotFound(guild_id) from None

    @staticmethod
    async def _resolve_member(guild: discord.Guild, user_id: str) -> discord.Member:
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound:
            raise MemberNotFound(user_id) from None

    def _mute_role(self, guild_id: str) -> Optional[discord.Object]:
        role_id = self.mute_roles.get(str(guild_id))
        return discord.Object(id=int(role_id)) if role_id else None

    # ------------------------------------------------------------------
    # Gateway API
    # ------------------------------------------------------------------

    async def apply(
        self, guild_id: str, user_id: str, kind: SanctionKind, params: EnforcementParams
    ) -> EnforcementOutcome:
        """Apply a forward sanction to ``user_id`` in ``guild_id``."""
        try:
            guild = await self._resolve_guild(guild_id)
            audit_reason = f"Dashboard: {params.reason}"

            match kind:
                case SanctionKind.BAN:
                    await guild.ban(discord.Object(id=int(user_id)), reason=audit_reason)

                case SanctionKind.KICK:
                    member = await self._resolve_member(guild, user_id)
                    await guild.kick(member, reason=audit_reason)

                case SanctionKind.TIMEOUT:
                    duration = params.duration_seconds or 0
                    if duration > MAX_TIMEOUT_SECONDS:
                        return EnforcementOutcome.failed("timeout longer than 28 days")
                    member = await self._resolve_member(guild, user_id)
                    until = discord.utils.utcnow() + datetime.timedelta(seconds=duration)
                    await member.timeout(until, reason=audit_reason)

                case SanctionKind.MUTE:
                    role = self._mute_role(guild_id)
                    if role is None:
                        return EnforcementOutcome.failed("no mute role configured for this guild")
                    member = await self._resolve_member(guild, user_id)
                    await member.add_roles(role, reason=audit_reason)

                case SanctionKind.WARN:
                    member = await self._resolve_member(guild, user_id)
                    await self._notify_warning(member, guild, params.reason)

                case _:
                    return EnforcementOutcome.failed(f"{kind.value} cannot be applied")

        except Exception as exc:
            return self._failure("apply", kind, guild_id, user_id, exc)

        logger.debug("[GATEWAY] Applied %s to user %s in guild %s", kind.value, user_id, guild_id)
        return EnforcementOutcome.ok()

    async def revoke(
        self, guild_id: str, user_id: str, kind: SanctionKind, *, reason: Optional[str] = None
    ) -> EnforcementOutcome:
        """Lift a ban, timeout or mute. ``kind`` is the original forward kind."""
        try:
            guild = await self._resolve_guild(guild_id)

            match kind:
                case SanctionKind.BAN:
                    try:
                        await guild.unban(discord.Object(id=int(user_id)), reason=reason)
                    except discord.NotFound:
                        return EnforcementOutcome.failed("user is not banned")

                case SanctionKind.TIMEOUT:
                    member = await self._resolve_member(guild, user_id)
                    await member.remove_timeout(reason=reason)

                case SanctionKind.MUTE:
                    role = self._mute_role(guild_id)
                    if role is None:
                        return EnforcementOutcome.failed("no mute role configured for this guild")
                    member = await self._resolve_member(guild, user_id)
                    await member.remove_roles(role, reason=reason)

                case _:
                    return EnforcementOutcome.failed(f"{kind.value} cannot be revoked")

        except Exception as exc:
            return self._failure("revoke", kind, guild_id, user_id, exc)

        logger.debug("[GATEWAY] Revoked %s for user %s in guild %s", kind.value, user_id, guild_id)
        return EnforcementOutcome.ok()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _notify_warning(member: discord.Member, guild: discord.Guild, reason: str) -> None:
        """DM the warning; members with closed DMs are still considered warned."""
        embed = discord.Embed(
            title="⚠️ Warning",
            description=f"You have been warned in **{guild.name}**.\n**Reason:** {reason}",
            colour=discord.Colour.yellow(),
            timestamp=datetime.datetime.now(datetime.timezone.utc),
        )
        try:
            await member.send(embed=embed)
        except discord.Forbidden:
            logger.debug("[GATEWAY] Could not DM warning to %s: DMs closed", member.id)

    @staticmethod
    def _failure(operation: str, kind: SanctionKind, guild_id: str, user_id: str, exc: Exception) -> EnforcementOutcome:
        if isinstance(exc, MemberNotFound):
            message = "member not found"
        elif isinstance(exc, GuildNotFound):
            message = "guild not found"
        elif isinstance(exc, discord.NotFound):
            message = "user not found"
        elif isinstance(exc, discord.Forbidden):
            message = "missing permissions"
        elif isinstance(exc, ValueError):
            message = "invalid guild or user id"
        else:
            message = str(exc) or type(exc).__name__

        logger.warning("[GATEWAY] Failed to %s %s for user %s in guild %s: %s",
                       operation, kind.value, user_id, guild_id, message)
        return EnforcementOutcome.failed(message)
