"""
modledger entry point.

Starts the moderation ledger: the SQLite audit database, the py-cord bot that
carries out sanctions, and the FastAPI dashboard API served by uvicorn. The
bot and the API share one event loop (and so one aiosqlite connection); when
either stops, the other is told to stop and the database is closed.
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path

import discord
import uvicorn
from dotenv import load_dotenv

from modledger.api.app import create_app
from modledger.configuration.app_configuration import AppConfig
from modledger.database.database import Database
from modledger.enforcement.discord_gateway import DiscordEnforcementGateway
from modledger.moderation.sanction_engine import SanctionEngine
from modledger.repositories.sanction_repo import SanctionRepo
from modledger.util.logger import get_logger, handle_exception


def resolve_base_dir() -> Path:
    """``MODLEDGER_HOME`` when set, otherwise the checkout root (holds ``config/`` and ``.env``)."""
    home = os.getenv("MODLEDGER_HOME")
    if home:
        return Path(home).resolve()
    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

logger = get_logger("main")


@dataclass(frozen=True)
class Secrets:
    discord_token: str
    api_token: str


def load_environment() -> Secrets:
    """Read ``.env`` into the environment and collect the two required tokens.

    Raises
    ------
    SystemExit
        When either ``DISCORD_BOT_TOKEN`` or ``MODLEDGER_API_TOKEN`` is unset.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")

    values = {}
    for name, purpose in (("DISCORD_BOT_TOKEN", "enforce sanctions"), ("MODLEDGER_API_TOKEN", "serve the API")):
        values[name] = os.getenv(name, "").strip()
        if not values[name]:
            logger.critical("%s is not set; cannot %s.", name, purpose)
            sys.exit(1)

    return Secrets(discord_token=values["DISCORD_BOT_TOKEN"], api_token=values["MODLEDGER_API_TOKEN"])


def build_intents() -> discord.Intents:
    """Guild and member caches are enough to resolve sanction targets."""
    intents = discord.Intents.none()
    intents.guilds = True
    intents.members = True
    return intents


def resolve_path(path: Path) -> Path:
    """Anchor relative config paths at :data:`BASE_DIR`."""
    return path if path.is_absolute() else (BASE_DIR / path).resolve()


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("Logging in to Discord")
    try:
        await bot.start(token)
    finally:
        logger.info("Discord client stopped")


async def run_services(bot: discord.Bot, server: uvicorn.Server, token: str) -> None:
    """Run the bot and the API server until either stops, then stop the other.

    An exception from whichever finished first is re-raised.
    """
    services = {
        asyncio.create_task(start_bot(bot, token), name="modledger-bot"),
        asyncio.create_task(server.serve(), name="modledger-api"),
    }
    finished, still_running = await asyncio.wait(services, return_when=asyncio.FIRST_COMPLETED)

    server.should_exit = True
    for task in still_running:
        task.cancel()
    await asyncio.gather(*still_running, return_exceptions=True)

    for task in finished:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()


async def async_main() -> int:
    """Assemble and run the service; the return value is the process exit code."""
    secrets = load_environment()
    config = AppConfig(BASE_DIR / "config" / "app_config.yml")

    database = Database(resolve_path(config.database_path))
    try:
        await database.initialize()
    except Exception as exc:
        logger.critical("Ledger database unavailable: %s", exc)
        return 1

    bot = discord.Bot(intents=build_intents())
    engine = SanctionEngine(
        SanctionRepo(database.connection),
        DiscordEnforcementGateway(bot, mute_roles=config.mute_roles),
        default_reversal_reason=config.default_reversal_reason,
    )
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(engine, secrets.api_token),
            host=config.api_host,
            port=config.api_port,
            log_level="warning",
        )
    )

    logger.info("Moderation API listening on http://%s:%d", config.api_host, config.api_port)
    try:
        await run_services(bot, server, secrets.discord_token)
        return 0
    except Exception:
        logger.exception("Service stopped with an error")
        return 1
    finally:
        if not bot.is_closed():
            await bot.close()
        await database.shutdown()
        logger.info("modledger stopped")


def main() -> int:
    sys.excepthook = handle_exception
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
