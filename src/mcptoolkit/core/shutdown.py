"""
ShutdownCoordinator - clean up every live toolkit on SIGINT/SIGTERM.

Signal handlers are global per process, so one coordinator serves the whole
registry. The first signal latches the coordinator and schedules a single
sweep; later signals are ignored until the sweep restores the original
handlers, after which the host's default behaviour applies again.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Dict, Iterable, Optional

from loguru import logger

from mcptoolkit.core.registry import ActiveToolkitRegistry, active_toolkits

# Marker for handlers installed through loop.add_signal_handler.
_LOOP_HANDLER = object()


def default_signals() -> tuple:
    return tuple(getattr(signal, name) for name in ("SIGINT", "SIGTERM") if hasattr(signal, name))


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


class ShutdownCoordinator:
    def __init__(self, registry: ActiveToolkitRegistry = active_toolkits) -> None:
        self._registry = registry
        self._triggered = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: Dict[int, Any] = {}
        self._task: Optional[asyncio.Task] = None
        self.finished = asyncio.Event()
        self.sweeps = 0

    @property
    def triggered(self) -> bool:
        return self._triggered

    @property
    def installed(self) -> bool:
        return bool(self._installed)

    def install(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        signals: Optional[Iterable[int]] = None,
    ) -> bool:
        """
        Install the signal handlers on ``loop`` (idempotent per loop).

        Returns:
            True if at least one handler is installed
        """
        loop = loop or asyncio.get_running_loop()
        if self._triggered:
            return False
        if self._installed and self._loop is loop:
            return True
        if self._installed:
            self.uninstall()

        self._loop = loop
        for sig in signals or default_signals():
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig)
                self._installed[sig] = _LOOP_HANDLER
                continue
            except NotImplementedError:
                pass  # Windows event loops
            except (RuntimeError, ValueError) as e:
                logger.debug(f"Could not install {_signal_name(sig)} handler on the event loop: {e}")
                continue

            try:
                previous = signal.getsignal(sig)
                signal.signal(sig, self._threadsafe_handler)
                self._installed[sig] = previous
            except (OSError, ValueError) as e:
                logger.debug(f"Could not install {_signal_name(sig)} handler: {e}")

        if self._installed:
            logger.debug(
                "Shutdown handlers installed for " + ", ".join(_signal_name(s) for s in self._installed)
            )
        return bool(self._installed)

    def uninstall(self) -> None:
        """Restore whatever handlers were in place before `install`."""
        for sig, previous in list(self._installed.items()):
            try:
                if previous is _LOOP_HANDLER:
                    if self._loop is not None:
                        self._loop.remove_signal_handler(sig)
                elif previous is not None:
                    signal.signal(sig, previous)
            except (OSError, RuntimeError, ValueError) as e:
                logger.debug(f"Could not restore {_signal_name(sig)} handler: {e}")
        self._installed.clear()

    def _threadsafe_handler(self, signum: int, _frame: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.handle_signal, signum)

    def _claim(self, reason: str) -> bool:
        if self._triggered:
            logger.debug(f"Ignoring {reason}: MCP shutdown already in progress")
            return False
        self._triggered = True
        return True

    def handle_signal(self, signum: int) -> None:
        """Signal entry point; runs on the event loop."""
        name = _signal_name(signum)
        if not self._claim(name):
            return
        self._task = asyncio.get_running_loop().create_task(self._sweep(name), name="mcp-shutdown-sweep")

    async def shutdown(self, reason: str = "shutdown request") -> int:
        """
        Run the sweep now unless one already ran or is running.

        Returns:
            Number of toolkits this call cleaned up
        """
        if not self._claim(reason):
            await self.finished.wait()
            return 0
        return await self._sweep(reason)

    async def wait(self) -> None:
        await self.finished.wait()

    async def _sweep(self, reason: str) -> int:
        try:
            # Copy first: cleanup() removes members while we iterate.
            toolkits = self._registry.snapshot()
            if not toolkits:
                logger.info(f"Received {reason}. No active MCP toolkits to clean up")
                return 0

            logger.info(f"Received {reason}. Cleaning up {len(toolkits)} MCP toolkit(s)...")
            results = await asyncio.gather(*(tk.cleanup() for tk in toolkits), return_exceptions=True)
            for toolkit, result in zip(toolkits, results):
                if isinstance(result, BaseException):
                    logger.error(f"Cleanup of MCP toolkit {toolkit.id} failed: {result!r}")
            logger.success(f"Finished MCP toolkit cleanup ({len(toolkits)} toolkit(s))")
            return len(toolkits)
        finally:
            self.sweeps += 1
            self.uninstall()
            self.finished.set()


shutdown_coordinator = ShutdownCoordinator(active_toolkits)
