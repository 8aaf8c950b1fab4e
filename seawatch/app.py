"""Application bootstrap for SeaWatch.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → store → LLM client → analyzer → MCP → REST

Shutdown stops components in reverse startup order. Each component's stop
error is caught and logged independently so that one failing teardown does
not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from seawatch.config import load_config
from seawatch.models.config import SeaWatchConfig
from seawatch.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from seawatch.analysis.pipeline import EventAnalyzer
    from seawatch.llm.client import OllamaClient
    from seawatch.store.sqlite_store import TelemetryStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class SeaWatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: SeaWatchConfig | None = None) -> None:
        self.config: SeaWatchConfig | None = config

        self._store: TelemetryStore | None = None
        self._llm_client: OllamaClient | None = None
        self._analyzer: EventAnalyzer | None = None
        self._mcp_server: object | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: FilteringBoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("seawatch starting", version=_seawatch_version())

        # --- 3. Store ---------------------------------------------------
        await self._start_store()

        # --- 4. LLM client ----------------------------------------------
        await self._start_llm()

        # --- 5. Analyzer ------------------------------------------------
        await self._start_analyzer()

        # --- 6. MCP server (optional) -----------------------------------
        if self.config.mcp.stdio_enabled:
            await self._start_mcp()

        # --- 7. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("seawatch started", host=self.config.api.host, port=self.config.api.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_store(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting store")
        try:
            from seawatch.store import TelemetryStore

            store = TelemetryStore(self.config.store.db_path)
            await store.open()
            self._store = store
            self._log.info("store started", db_path=self.config.store.db_path)
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_llm(self) -> None:
        """Create the Ollama client. An unhealthy model is not fatal."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting llm client")
        try:
            from seawatch.llm.client import OllamaClient

            client = OllamaClient(config=self.config.ollama)
            healthy = await client.health_check()
            self._llm_client = client
            self._log.info("llm client started", model=self.config.ollama.model, healthy=healthy)
        except Exception as exc:
            raise _ComponentError("llm", exc) from exc

    async def _start_analyzer(self) -> None:
        assert self._log is not None
        assert self._store is not None
        assert self._llm_client is not None
        try:
            from seawatch.analysis.pipeline import EventAnalyzer

            self._analyzer = EventAnalyzer(store=self._store, generator=self._llm_client)
            self._log.info("analyzer started")
        except Exception as exc:
            raise _ComponentError("analyzer", exc) from exc

    async def _start_mcp(self) -> None:
        """Start the MCP stdio server."""
        assert self._log is not None
        assert self._analyzer is not None
        assert self._store is not None
        self._log.debug("starting mcp server")
        try:
            from seawatch.mcp import MCPServer

            mcp = MCPServer(analyzer=self._analyzer, store=self._store)
            task = asyncio.create_task(mcp.start(), name="mcp-server")
            self._background_tasks.append(task)
            self._mcp_server = mcp
            self._log.info("mcp server started")
        except Exception as exc:
            # MCP is non-fatal; REST API remains available
            self._log.warning("mcp server failed to start; stdio interface unavailable", error=str(exc))
            self._mcp_server = None

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._analyzer is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from seawatch.api import create_app

            fastapi_app = create_app(
                analyzer=self._analyzer,
                store=self._store,
                config=self.config,
                client=self._llm_client,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host=self.config.api.host,
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("seawatch shutting down")

        self._running = False

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()

        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._stop_component("llm", self._llm_client)
        await self._stop_component("store", self._store)
        self._rest_server = None
        self._mcp_server = None
        self._analyzer = None
        self._llm_client = None
        self._store = None

        log.info("seawatch stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _seawatch_version() -> str:
    from seawatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = SeaWatchApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()


def run() -> None:
    """Console-script entry point for ``seawatch-server``."""
    asyncio.run(main())
