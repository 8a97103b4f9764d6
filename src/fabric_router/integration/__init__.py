from .token_cache import AccessToken, TokenCache, build_token_cache
from .mcp_client import ProtocolClient
from .agent_run_service import AgentRunService, AzureAssistantsRunService

__all__ = [
    "AccessToken",
    "TokenCache",
    "build_token_cache",
    "ProtocolClient",
    "AgentRunService",
    "AzureAssistantsRunService",
]
