import asyncio
import signal
import logging
from typing import Optional, TYPE_CHECKING

from hypercorn.asyncio import serve
from hypercorn.config import Config as HyperConfig

from .config import AppConfig

if TYPE_CHECKING:
    from .application import Application


class Server:
    """Runs an Application under hypercorn with graceful shutdown."""

    def __init__(self, app: "Application", config: Optional[AppConfig] = None):
        self.app = app
        self.config = config or app.config
        self._shutdown_event: Optional[asyncio.Event] = None
        self.logger = logging.getLogger("cascade.server")

    async def start(self) -> None:
        """Start the server with configured options"""
        self._shutdown_event = asyncio.Event()
        try:
            self._setup_signal_handlers()
            hyper_config = self._create_hyper_config()
            self.logger.info(f"Starting server on {self.config.host}:{self.config.port}")
            await serve(self.app, hyper_config, shutdown_trigger=self._shutdown_wait)
        except Exception as e:
            self.logger.error(f"Failed to start server: {e}")
            raise
        finally:
            self.logger.info("Server shutdown complete")

    def _create_hyper_config(self) -> HyperConfig:
        """Create Hypercorn configuration"""
        config = HyperConfig()
        config.bind = [f"{self.config.host}:{self.config.port}"]
        config.backlog = self.config.backlog
        config.keep_alive_timeout = self.config.keep_alive_timeout
        if self.config.access_log:
            config.accesslog = "-"

        if self.config.ssl_certfile and self.config.ssl_keyfile:
            config.certfile = self.config.ssl_certfile
            config.keyfile = self.config.ssl_keyfile

        return config

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()
        for sig in [signal.SIGTERM, signal.SIGINT]:
            try:
                loop.add_signal_handler(sig, lambda s=sig: self._handle_shutdown_signal(s))
            except (NotImplementedError, RuntimeError):
                # not supported on this platform or outside the main thread
                self.logger.debug(f"Cannot install handler for {sig!r}")

    def _handle_shutdown_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals gracefully"""
        sig_name = signal.Signals(sig).name
        self.logger.info(f"Received signal {sig_name}, shutting down gracefully...")
        self._shutdown_event.set()

    async def _shutdown_wait(self) -> None:
        """Wait for shutdown event"""
        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        """Graceful shutdown of the server"""
        self.logger.info("Initiating graceful shutdown...")
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def run(self) -> None:
        """Run the server (blocking call)"""
        logging.basicConfig(
            level=logging.DEBUG if self.config.debug else logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        try:
            if self.config.use_uvloop:
                import uvloop
                self.logger.info("Using uvloop for enhanced performance")
                uvloop.run(self.start())
            else:
                asyncio.run(self.start())
        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
