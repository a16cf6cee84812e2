from .config import BootstrapConfig, load_config
from .context import BootstrapState, Capabilities, Context, Orchestrator, bootstrap

__all__ = [
    "BootstrapConfig",
    "BootstrapState",
    "Capabilities",
    "Context",
    "Orchestrator",
    "bootstrap",
    "load_config",
]
