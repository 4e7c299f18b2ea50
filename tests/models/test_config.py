"""Tests for RelaySettings environment loading and validation."""

from __future__ import annotations

import pytest

from f1relay.errors import ConfigError
from f1relay.models.config import RelaySettings

_ENV_VARS = (
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
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: object) -> None:
    """Isolate from the caller's environment and any ``.env`` in the cwd."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)  # type: ignore[arg-type]


class TestDefaults:
    def test_defaults(self) -> None:
        s = RelaySettings()
        assert s.udp_host == "0.0.0.0"
        assert s.udp_port == 20777
        assert s.sample_every_n_frames == 2
        assert s.ws_host == "0.0.0.0"
        assert s.ws_port == 8080
        assert s.ws_path == "/telemetry"
        assert s.send_timeout == 1.0
        assert s.queue_size == 256
        assert s.reset_on_new_session is True
        assert s.stats_interval == 0.0


class TestEnvironment:
    def test_reads_unprefixed_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UDP_PORT", "20999")
        monkeypatch.setenv("SAMPLE_EVERY_N_FRAMES", "5")
        monkeypatch.setenv("WS_PATH", "/live")
        monkeypatch.setenv("RESET_ON_NEW_SESSION", "false")
        s = RelaySettings()
        assert s.udp_port == 20999
        assert s.sample_every_n_frames == 5
        assert s.ws_path == "/live"
        assert s.reset_on_new_session is False

    def test_reads_dotenv_file(self, tmp_path: object) -> None:
        from pathlib import Path

        Path(str(tmp_path), ".env").write_text("WS_PORT=9100\n")
        assert RelaySettings().ws_port == 9100

    def test_overrides_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UDP_PORT", "20999")
        assert RelaySettings.load(udp_port=21000).udp_port == 21000

    def test_none_overrides_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UDP_PORT", "20999")
        assert RelaySettings.load(udp_port=None).udp_port == 20999


class TestValidation:
    @pytest.mark.parametrize("value", [0, -3])
    def test_sample_every_must_be_positive(self, value: int) -> None:
        with pytest.raises(ConfigError, match="sample_every_n_frames"):
            RelaySettings.load(sample_every_n_frames=value)

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SAMPLE_EVERY_N_FRAMES", "0")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            RelaySettings.load()

    def test_port_out_of_range(self) -> None:
        with pytest.raises(ConfigError, match="ws_port"):
            RelaySettings.load(ws_port=70000)

    def test_port_zero_allowed(self) -> None:
        assert RelaySettings.load(udp_port=0).udp_port == 0

    def test_ws_path_needs_leading_slash(self) -> None:
        with pytest.raises(ConfigError, match="must start with"):
            RelaySettings.load(ws_path="telemetry")

    def test_send_timeout_positive(self) -> None:
        with pytest.raises(ConfigError, match="send_timeout"):
            RelaySettings.load(send_timeout=0)


class TestMergeOverrides:
    def test_returns_new_instance(self) -> None:
        base = RelaySettings()
        merged = base.merge_overrides(ws_port=9000, udp_host=None)
        assert merged.ws_port == 9000
        assert merged.udp_host == "0.0.0.0"
        assert base.ws_port == 8080

    def test_revalidates(self) -> None:
        with pytest.raises(ConfigError):
            RelaySettings().merge_overrides(queue_size=0)
