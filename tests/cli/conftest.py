"""Shared fixtures for CLI execution tests."""

from __future__ import annotations

import pytest

_RELAY_ENV = (
    "UDP_HOST",
    "UDP_PORT",
    "SAMPLE_EVERY_N_FRAMES",
    "WS_HOST",
    "WS_PORT",
    "WS_PATH",
    "SEND_TIMEOUT",
    "QUEUE_SIZE",
    "RESET_ON_NEW_SESSION",
    "STATS_INTERVAL",
)


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: object) -> None:
    """Run every CLI test with no relay variables set and no ``.env`` in reach."""
    for key in _RELAY_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)  # type: ignore[arg-type]
