"""
Fabric Data Agent Router.

Routes natural-language questions to the Microsoft Fabric Data Agent best
suited to answer them, either through a function-calling LLM router or a
local heuristic classifier.
"""

from fabric_router.exceptions import ConfigurationError, FabricRouterError, QueryCancelledError
from fabric_router.registry_loader import load_registry
from fabric_router.router_factory import create_router

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "FabricRouterError",
    "QueryCancelledError",
    "create_router",
    "load_registry",
    "__version__",
]
