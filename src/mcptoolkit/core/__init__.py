"""Core - process-wide toolkit bookkeeping and coordinated shutdown."""

from mcptoolkit.core.registry import ActiveToolkitRegistry, active_toolkits
from mcptoolkit.core.shutdown import ShutdownCoordinator, shutdown_coordinator

__all__ = ["ActiveToolkitRegistry", "ShutdownCoordinator", "active_toolkits", "shutdown_coordinator"]
