"""
Models for the agent registry document.

The registry document uses camelCase keys (``exampleQueries``,
``confidenceThreshold`` ...); the models expose snake_case attributes and
accept either spelling on input.
"""

from typing import Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fabric_router.exceptions import ConfigurationError

WORKSPACE_PLACEHOLDER = "{workspaceId}"
AGENT_PLACEHOLDER = "{agentId}"


class RegistryModel(BaseModel):
    """Base for registry models: camelCase document keys, snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DataSourceRef(RegistryModel):
    """A data source connected to a downstream agent."""
    name: str = ""
    type: str = ""
    connection_string: str = ""
    schema_name: str = Field(default="", alias="schema")
    tables: list[str] = Field(default_factory=list)
    description: str = ""


class AgentDescriptor(RegistryModel):
    """A downstream Fabric Data Agent addressable over the MCP endpoint."""
    id: str
    name: str
    description: str = ""
    domains: list[str] = Field(default_factory=list)
    example_queries: list[str] = Field(default_factory=list)
    data_sources: list[DataSourceRef] = Field(default_factory=list)
    endpoint_template: str = Field(
        default="",
        validation_alias=AliasChoices("endpointTemplate", "mcpServerUrl", "endpoint_template"),
    )
    workspace_id: str = ""
    agent_id: str = ""
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("agent id cannot be empty")
        return value

    @field_validator("domains")
    @classmethod
    def _dedupe_domains(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        domains = []
        for domain in value:
            key = domain.strip().lower()
            if key and key not in seen:
                seen.add(key)
                domains.append(domain.strip())
        return domains

    def resolve_endpoint(self) -> str:
        """
        Substitute workspace and agent ids into the endpoint template.

        Raises:
            ConfigurationError: If an id is empty, a placeholder is left
                unresolved or the result is not an absolute http(s) URL.
        """
        if not self.endpoint_template:
            raise ConfigurationError(f"Agent '{self.id}' has no endpoint template")
        if WORKSPACE_PLACEHOLDER in self.endpoint_template and not self.workspace_id:
            raise ConfigurationError(f"Agent '{self.id}' is missing workspaceId")
        if AGENT_PLACEHOLDER in self.endpoint_template and not self.agent_id:
            raise ConfigurationError(f"Agent '{self.id}' is missing agentId")

        url = self.endpoint_template.replace(WORKSPACE_PLACEHOLDER, self.workspace_id).replace(
            AGENT_PLACEHOLDER, self.agent_id
        )
        if "{" in url or "}" in url:
            raise ConfigurationError(
                f"Agent '{self.id}' endpoint has unresolved placeholders: {url}"
            )

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Agent '{self.id}' endpoint is not a valid URL: {url}")
        return url


class RoutingPolicy(RegistryModel):
    """Routing settings shared by both routing strategies."""
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    default_agent_id: Optional[str] = None
    timeout_seconds: float = Field(default=30, gt=0)
    max_retries: int = Field(default=3, ge=0)

    @field_validator("default_agent_id")
    @classmethod
    def _blank_default_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class AuthSettings(RegistryModel):
    """Credential identity used to call downstream agents."""
    use_managed_identity: bool = True
    tenant_id: str = ""
    client_id: str = ""


class AgentRegistry(RegistryModel):
    """Validated set of downstream agents plus routing policy."""
    agents: list[AgentDescriptor] = Field(default_factory=list)
    routing: RoutingPolicy = Field(default_factory=RoutingPolicy)
    authentication: AuthSettings = Field(default_factory=AuthSettings)

    @model_validator(mode="after")
    def _check_references(self) -> "AgentRegistry":
        ids = [agent.id for agent in self.agents]
        duplicates = sorted({agent_id for agent_id in ids if ids.count(agent_id) > 1})
        if duplicates:
            raise ValueError(f"duplicate agent ids: {', '.join(duplicates)}")

        default_id = self.routing.default_agent_id
        if default_id is not None and default_id not in ids:
            raise ValueError(f"defaultAgentId '{default_id}' does not reference a configured agent")
        return self

    def enabled_agents(self) -> list[AgentDescriptor]:
        return [agent for agent in self.agents if agent.enabled]

    def get_agent(self, agent_id: str) -> Optional[AgentDescriptor]:
        return next((agent for agent in self.agents if agent.id == agent_id), None)

    def validate_endpoints(self) -> None:
        """Resolve every enabled endpoint, raising ``ConfigurationError`` on the first bad one."""
        for agent in self.enabled_agents():
            agent.resolve_endpoint()
