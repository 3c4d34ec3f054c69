import asyncio
import os
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="rental-core-tests-"))

# Settings are read at import time, so these must be in place before the app loads.
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR / 'api.db'}")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("BOOKING_LEASE_BACKOFF_SECONDS", "0.01")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from rental_core.db.init_db import init_db  # noqa: E402
from rental_core.db.session import build_engine, build_session_factory  # noqa: E402
from rental_core.db.store import EntityStore  # noqa: E402


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'core.db'}"


@pytest.fixture
def run_with_store(database_url):
    """Run ``scenario(store)`` against a fresh, fully initialized database."""

    def _run(scenario):
        async def _main():
            engine = build_engine(database_url)
            try:
                await init_db(engine)
                async with build_session_factory(engine)() as session:
                    return await scenario(EntityStore(session))
            finally:
                await engine.dispose()

        return asyncio.run(_main())

    return _run
