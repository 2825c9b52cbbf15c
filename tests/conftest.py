"""Test harness configuration.

This repo uses a `src/` layout. Ensure tests always import the in-repo code
rather than an older installed `crossbot` package.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 120


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    This relies on `pytest-timeout` when installed; if it isn't installed, the
    marker is inert but still documents the intent.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def lang_manager():
    """English/Russian tables loaded from the packaged locale files."""

    from crossbot.core.localization import LangManager

    return LangManager(default_locale="en")


@pytest.fixture()
async def store(tmp_path: Path):
    from crossbot.core.store import BotStore

    bot_store = BotStore(tmp_path / "state.sqlite3")
    await bot_store.initialize()
    try:
        yield bot_store
    finally:
        await bot_store.close()
