"""Tests for bridge wiring and the command line entry point."""

import json
from unittest.mock import AsyncMock

import pytest

from slackirc.clients.client_factory import ClientFactory
from slackirc.errors import ConfigurationError
from slackirc.main import EXIT_CONFIGURATION, EXIT_FATAL, BridgeApplication, main
from tests.conftest import make_config


class TestClientFactory:
    def test_requires_app_token(self):
        with pytest.raises(ConfigurationError, match="appToken"):
            ClientFactory(make_config(appToken=None))

    def test_wiring(self):
        config = make_config(channelMapping={"general": "#Bridge key", "random": "#random"})
        factory = ClientFactory(config)
        assert factory.irc_client.channels == [("#bridge", "key"), ("#random", None)]
        assert factory.irc_client._on_event == factory.router.handle
        assert factory.slack_client._on_event == factory.router.handle
        status = factory.get_client_status()
        assert status["mapped_channels"] == 2
        assert status["irc_client"] == {"running": False, "connected": False}


class TestBridgeApplication:
    @pytest.mark.asyncio
    async def test_abort_stops_with_failure_code(self):
        app = BridgeApplication([make_config()])
        app.initialize()
        for factory in app.factories:
            factory.start_all = AsyncMock()
            factory.stop_all = AsyncMock()

        await app.start()
        app.factories[0].router._on_fatal()
        await app._shutdown_event.wait()
        await app.stop()

        assert app.exit_code == EXIT_FATAL
        app.factories[0].stop_all.assert_awaited_once()


class TestMain:
    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.json")]) == EXIT_CONFIGURATION

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": "irc.example.org"}), encoding="utf-8")
        assert main(["--config", str(path), "--log-level", "ERROR"]) == EXIT_CONFIGURATION
