"""
Error taxonomy for the router.

Only ``ConfigurationError`` and ``QueryCancelledError`` are expected to reach
callers. The rest are raised internally and converted into failed
``AgentResponse`` values or tool error payloads at component boundaries.
"""


class FabricRouterError(Exception):
    """Base class for all router errors."""


class ConfigurationError(FabricRouterError):
    """Invalid or incomplete configuration (registry, endpoints, credentials)."""


class TransportError(FabricRouterError):
    """HTTP failure, timeout or refused connection talking to a downstream agent."""


class ProtocolError(FabricRouterError):
    """A JSON-RPC envelope carried an ``error`` member or could not be understood."""


class TokenAcquisitionError(FabricRouterError):
    """The credential provider could not issue an access token."""


class RunFailure(FabricRouterError):
    """A remote run reached a terminal status other than ``completed``."""

    def __init__(self, status: str, detail: str | None = None):
        self.status = status
        self.detail = detail
        message = f"Run ended with status: {status}"
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message)


class MissingArgumentError(FabricRouterError):
    """A function call did not carry a usable ``query`` argument."""


class UnknownAgentError(FabricRouterError):
    """A function name did not map to any enabled agent."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Agent not found for function: {function_name}")


class QueryCancelledError(FabricRouterError):
    """The caller cancelled an in-flight query."""
