from fabric_router.app_config import Config

FABRIC_AGENTS_CONFIG = Config(
    env_name="FABRIC_AGENTS_CONFIG", is_required=True, default_value="config/fabric-agents.json"
)
ROUTER_MODE = Config(env_name="ROUTER_MODE", is_required=True, default_value="function_calling")
ROUTER_POLL_INTERVAL = Config(
    env_name="ROUTER_POLL_INTERVAL", is_required=False, default_value="0.5"
)
ROUTER_AGENT_NAME = Config(
    env_name="ROUTER_AGENT_NAME", is_required=False, default_value="FabricDataAgentRouter"
)

# Azure OpenAI (agent-run service)
AZURE_OPENAI_ENDPOINT = Config(
    env_name="AZURE_OPENAI_ENDPOINT", is_required=False, default_value=None
)
AZURE_OPENAI_API_KEY = Config(
    env_name="AZURE_OPENAI_API_KEY", is_required=False, default_value=None
)
AZURE_OPENAI_API_VERSION = Config(
    env_name="AZURE_OPENAI_API_VERSION", is_required=False, default_value="2024-05-01-preview"
)
AZURE_OPENAI_CHAT_MODEL = Config(
    env_name="AZURE_OPENAI_CHAT_MODEL", is_required=False, default_value="gpt-4o"
)

# Entra ID credentials for downstream agent calls
AZURE_TENANT_ID = Config(env_name="AZURE_TENANT_ID", is_required=False, default_value=None)
AZURE_CLIENT_ID = Config(env_name="AZURE_CLIENT_ID", is_required=False, default_value=None)
AZURE_CLIENT_SECRET = Config(env_name="AZURE_CLIENT_SECRET", is_required=False, default_value=None)
FABRIC_TOKEN_SCOPE = Config(
    env_name="FABRIC_TOKEN_SCOPE",
    is_required=False,
    default_value="https://analysis.windows.net/powerbi/api/.default",
)

LOG_LEVEL = Config(env_name="LOG_LEVEL", is_required=False, default_value="INFO")

CONFIGS = [
    FABRIC_AGENTS_CONFIG,
    ROUTER_MODE,
    ROUTER_POLL_INTERVAL,
    ROUTER_AGENT_NAME,
    # Azure OpenAI
    AZURE_OPENAI_ENDPOINT,
    AZURE_OPENAI_API_KEY,
    AZURE_OPENAI_API_VERSION,
    AZURE_OPENAI_CHAT_MODEL,
    # Entra ID
    AZURE_TENANT_ID,
    AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET,
    FABRIC_TOKEN_SCOPE,
    LOG_LEVEL,
]
