"""
Pytest configuration and fixtures for modledger tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work without an editable install
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modledger.database.database import Database  # noqa: E402
from modledger.datatypes.sanction_datatypes import SanctionRequest  # noqa: E402
from modledger.enforcement.gateway import InMemoryEnforcementGateway  # noqa: E402
from modledger.moderation.sanction_engine import SanctionEngine  # noqa: E402
from modledger.repositories.sanction_repo import SanctionRepo  # noqa: E402

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock handed to the engine instead of datetime.now."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


def make_request(kind="ban", **overrides) -> SanctionRequest:
    fields = {
        "guild_id": "1000",
        "user_id": "2000",
        "moderator_id": "3000",
        "kind": kind,
        "reason": "spamming",
        "duration_seconds": None,
    }
    fields.update(overrides)
    return SanctionRequest(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def database(tmp_path: Path):
    db = Database(tmp_path / "ledger.db")
    await db.initialize()
    yield db
    await db.shutdown()


@pytest.fixture
def store(database: Database) -> SanctionRepo:
    return SanctionRepo(database.connection)


@pytest.fixture
def gateway() -> InMemoryEnforcementGateway:
    return InMemoryEnforcementGateway()


@pytest.fixture
def engine(store: SanctionRepo, gateway: InMemoryEnforcementGateway, clock: FakeClock) -> SanctionEngine:
    return SanctionEngine(store, gateway, clock=clock)
