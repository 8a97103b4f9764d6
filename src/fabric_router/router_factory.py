"""
Router construction from application configuration.

``ROUTER_MODE`` selects the routing strategy:

- ``function_calling``: ConversationOrchestrator over Azure OpenAI Assistants
- ``rule_based``: RuleBasedRouter over the heuristic IntentClassifier
"""

import logging
from typing import Optional

from fabric_router.app_config import AppConfig
from fabric_router.configs import (
    AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET,
    AZURE_OPENAI_API_KEY,
    AZURE_OPENAI_API_VERSION,
    AZURE_OPENAI_CHAT_MODEL,
    AZURE_OPENAI_ENDPOINT,
    AZURE_TENANT_ID,
    FABRIC_TOKEN_SCOPE,
    ROUTER_AGENT_NAME,
    ROUTER_MODE,
    ROUTER_POLL_INTERVAL,
)
from fabric_router.exceptions import ConfigurationError
from fabric_router.integration.agent_run_service import AgentRunService, AzureAssistantsRunService
from fabric_router.integration.mcp_client import ProtocolClient
from fabric_router.integration.token_cache import TokenCache, build_token_cache
from fabric_router.model.registry import AgentRegistry, AuthSettings
from fabric_router.services.intent_classifier import IntentClassifier
from fabric_router.services.orchestrator import ConversationOrchestrator
from fabric_router.services.router import Router, RuleBasedRouter
from fabric_router.services.tool_dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

FUNCTION_CALLING_MODE = "function_calling"
RULE_BASED_MODE = "rule_based"
ROUTER_MODES = (FUNCTION_CALLING_MODE, RULE_BASED_MODE)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


def get_router_mode(app_config: AppConfig) -> str:
    mode = (app_config.get(ROUTER_MODE.env_name) or FUNCTION_CALLING_MODE).strip().lower()
    if mode not in ROUTER_MODES:
        raise ConfigurationError(
            f"Unsupported ROUTER_MODE '{mode}' (expected one of: {', '.join(ROUTER_MODES)})"
        )
    return mode


def resolve_auth_settings(app_config: AppConfig, registry: AgentRegistry) -> AuthSettings:
    """Credential identity from the registry; empty ids fall back to the environment."""
    auth = registry.authentication
    return auth.model_copy(
        update={
            "tenant_id": auth.tenant_id or app_config.get(AZURE_TENANT_ID.env_name) or "",
            "client_id": auth.client_id or app_config.get(AZURE_CLIENT_ID.env_name) or "",
        }
    )


def create_protocol_client(app_config: AppConfig, registry: AgentRegistry) -> ProtocolClient:
    token_cache = build_token_cache(
        resolve_auth_settings(app_config, registry),
        scopes=[app_config.get(FABRIC_TOKEN_SCOPE.env_name)],
        client_secret=app_config.get(AZURE_CLIENT_SECRET.env_name),
    )
    return ProtocolClient(
        token_cache,
        timeout=registry.routing.timeout_seconds,
        max_retries=registry.routing.max_retries,
    )


def create_run_service(
    app_config: AppConfig,
    registry: AgentRegistry,
    token_cache: Optional[TokenCache] = None,
) -> AgentRunService:
    """
    Create the Azure OpenAI Assistants run service.

    Uses ``AZURE_OPENAI_API_KEY`` when set, otherwise an Entra ID token for
    the Cognitive Services scope from the registry's credential identity.

    Raises:
        ConfigurationError: If ``AZURE_OPENAI_ENDPOINT`` is not set
    """
    endpoint = app_config.get(AZURE_OPENAI_ENDPOINT.env_name)
    if not endpoint:
        raise ConfigurationError("AZURE_OPENAI_ENDPOINT is required for function_calling mode")

    api_key = app_config.get(AZURE_OPENAI_API_KEY.env_name)
    if not api_key and token_cache is None:
        token_cache = build_token_cache(
            resolve_auth_settings(app_config, registry),
            scopes=[COGNITIVE_SERVICES_SCOPE],
            client_secret=app_config.get(AZURE_CLIENT_SECRET.env_name),
        )

    return AzureAssistantsRunService(
        endpoint=endpoint,
        model=app_config.get(AZURE_OPENAI_CHAT_MODEL.env_name),
        api_version=app_config.get(AZURE_OPENAI_API_VERSION.env_name),
        api_key=api_key,
        token_cache=token_cache,
    )


def create_router(
    app_config: AppConfig,
    registry: AgentRegistry,
    run_service: Optional[AgentRunService] = None,
    protocol_client: Optional[ProtocolClient] = None,
) -> Router:
    """
    Build the configured router. The router still needs ``initialize()``.

    Args:
        app_config: Resolved application configuration
        registry: Loaded agent registry
        run_service: Agent-run service override for function_calling mode
        protocol_client: Shared downstream client; built from configuration when omitted

    Raises:
        ConfigurationError: For an unknown mode or incomplete credentials
    """
    mode = get_router_mode(app_config)
    if protocol_client is None:
        protocol_client = create_protocol_client(app_config, registry)
    classifier = IntentClassifier(protocol_client)

    if mode == RULE_BASED_MODE:
        logger.info("Using rule-based routing")
        return RuleBasedRouter(registry, classifier, protocol_client)

    logger.info("Using function-calling routing")
    return ConversationOrchestrator(
        registry=registry,
        dispatcher=ToolDispatcher(registry, protocol_client),
        run_service=run_service or create_run_service(app_config, registry),
        classifier=classifier,
        agent_name=app_config.get(ROUTER_AGENT_NAME.env_name) or "FabricDataAgentRouter",
        poll_interval=app_config.get_float(ROUTER_POLL_INTERVAL.env_name, 0.5),
    )
