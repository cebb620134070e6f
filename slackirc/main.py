"""
Main application entry point for the Slack <-> IRC relay bridge.
Loads the bridge definitions, starts one client factory per bridge and runs
until a shutdown signal or a fatal IRC connection failure.
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

import structlog
import uvloop

from slackirc.clients import ClientFactory
from slackirc.config import BridgeConfig, Settings, get_settings, load_bridge_configs
from slackirc.errors import ConfigurationError

logger = structlog.get_logger(__name__)

EXIT_FATAL = 1
EXIT_CONFIGURATION = 2


def configure_logging(app_settings: Settings) -> None:
    """Configure structlog on top of stdlib logging."""
    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = logging.DEBUG if app_settings.debug_mode else getattr(logging, app_settings.log_level)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


class BridgeApplication:
    """Runs every configured bridge on one event loop."""

    def __init__(self, configs: List[BridgeConfig]):
        self.configs = configs
        self.factories: List[ClientFactory] = []
        self.exit_code = 0
        self._shutdown_event = asyncio.Event()
        self._running = False

    def initialize(self) -> None:
        """Build a client factory per bridge; raises ConfigurationError before connecting."""
        logger.info("Initializing relay bridges...", bridges=len(self.configs))
        self.factories = [ClientFactory(config, on_fatal=self.abort) for config in self.configs]

    async def start(self) -> None:
        if self._running:
            return

        logger.info("Starting relay bridges...")
        try:
            for factory in self.factories:
                await factory.start_all()
            self._running = True
            logger.info("Relay bridges are now running")
            for factory in self.factories:
                logger.info("Client status", **factory.get_client_status())
        except Exception as e:
            logger.error("Failed to start bridge", error=str(e), exc_info=True)
            self.exit_code = EXIT_FATAL
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop all bridges gracefully."""
        logger.info("Stopping relay bridges...")
        self._running = False

        for factory in self.factories:
            try:
                await factory.stop_all()
            except Exception as e:
                logger.error("Error during shutdown", error=str(e), exc_info=True)

        logger.info("Relay bridges stopped")

    async def run(self) -> int:
        """Run until a shutdown signal or a fatal error, then return the exit code."""
        self.initialize()
        await self.start()
        await self._shutdown_event.wait()
        await self.stop()
        return self.exit_code

    def abort(self) -> None:
        """Fatal condition raised by a router: stop everything with a failure code."""
        self.exit_code = EXIT_FATAL
        self._shutdown_event.set()

    def shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(sig, lambda signum, frame: self.shutdown())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Relay messages between Slack and IRC channels")
    parser.add_argument('-c', '--config', help='Path to the JSON bridge configuration '
                                               '(defaults to $SLACKIRC_CONFIG_PATH)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Override the configured log level')
    return parser.parse_args(argv)


async def run_bridges(configs: List[BridgeConfig]) -> int:
    app = BridgeApplication(configs)
    app._setup_signal_handlers()
    return await app.run()


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""
    args = parse_args(argv)
    app_settings = get_settings()
    if args.log_level:
        app_settings = app_settings.model_copy(update={"log_level": args.log_level})
    configure_logging(app_settings)

    config_path = args.config or app_settings.config_path
    if not config_path:
        logger.error("No configuration file given, use --config or SLACKIRC_CONFIG_PATH")
        return EXIT_CONFIGURATION

    try:
        configs = load_bridge_configs(config_path)
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=e.message)
        return EXIT_CONFIGURATION

    # Use uvloop for better performance on Unix systems
    if sys.platform != 'win32':
        uvloop.install()

    try:
        return asyncio.run(run_bridges(configs))
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=e.message)
        return EXIT_CONFIGURATION
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 0
    except Exception as e:
        logger.error("Unexpected error in main", error=str(e), exc_info=True)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
