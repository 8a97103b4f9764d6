"""
Tool Dispatcher.

Turns function calls emitted by the remote router run into downstream agent
queries. Tool names are derived once from the registry into an explicit
``agent id <-> tool name`` table; dispatch looks names up in that table and
never parses them.

Every dispatch returns a string that can be submitted as a tool output:
either the agent's answer, the agent catalog, or a ``{"error": ...}`` JSON
payload.
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional

from fabric_router.exceptions import ConfigurationError, MissingArgumentError, UnknownAgentError
from fabric_router.integration.mcp_client import ProtocolClient
from fabric_router.model.registry import AgentDescriptor, AgentRegistry
from fabric_router.model.run import PendingCall, ToolOutput
from fabric_router.prompts.router_instructions import (
    LIST_AGENTS_TOOL_DESCRIPTION,
    QUERY_PARAMETER_DESCRIPTION,
    build_tool_description,
)

logger = logging.getLogger(__name__)

LIST_AGENTS_TOOL_NAME = "list_available_agents"
TOOL_NAME_PREFIX = "query_"
MAX_TOOL_NAME_LENGTH = 64

_INVALID_TOOL_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def tool_name_for_id(agent_id: str) -> str:
    """``sales-agent`` -> ``query_sales_agent``"""
    return TOOL_NAME_PREFIX + _INVALID_TOOL_NAME_CHARS.sub("_", agent_id)


class ToolNameMap:
    """Bidirectional mapping between agent ids and function tool names."""

    def __init__(self, names_by_id: dict[str, str]):
        self._names_by_id = dict(names_by_id)
        self._ids_by_name = {name: agent_id for agent_id, name in names_by_id.items()}

    @classmethod
    def from_registry(cls, registry: AgentRegistry) -> "ToolNameMap":
        """
        Build the table for all enabled agents.

        Raises:
            ConfigurationError: If two ids map to the same tool name or a
                name exceeds the function-calling limit
        """
        names_by_id: dict[str, str] = {}
        owners: dict[str, str] = {}
        for agent in registry.enabled_agents():
            name = tool_name_for_id(agent.id)
            if len(name) > MAX_TOOL_NAME_LENGTH:
                raise ConfigurationError(
                    f"Tool name for agent '{agent.id}' exceeds {MAX_TOOL_NAME_LENGTH} characters"
                )
            if name in owners:
                raise ConfigurationError(
                    f"Agents '{owners[name]}' and '{agent.id}' both map to tool name '{name}'"
                )
            owners[name] = agent.id
            names_by_id[agent.id] = name
        return cls(names_by_id)

    def tool_name_for(self, agent_id: str) -> Optional[str]:
        return self._names_by_id.get(agent_id)

    def agent_id_for(self, tool_name: str) -> Optional[str]:
        return self._ids_by_name.get(tool_name)

    def items(self) -> list[tuple[str, str]]:
        return list(self._names_by_id.items())

    def __len__(self) -> int:
        return len(self._names_by_id)


class ToolDispatcher:
    """Executes router function calls against downstream agents."""

    def __init__(self, registry: AgentRegistry, protocol_client: ProtocolClient):
        """
        Args:
            registry: Agent registry; only enabled agents get tools
            protocol_client: Client used to query downstream agents

        Raises:
            ConfigurationError: If tool names cannot be derived unambiguously
        """
        self.registry = registry
        self.protocol_client = protocol_client
        self.tool_names = ToolNameMap.from_registry(registry)

    # =========================================================================
    # Tool Definitions
    # =========================================================================

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Function tool definitions, one per enabled agent plus the catalog tool."""
        tools = []
        for agent in self.registry.enabled_agents():
            tools.append(
                {
                    "type": "function",
                    "function": {
                        "name": self.tool_names.tool_name_for(agent.id),
                        "description": build_tool_description(agent),
                        "parameters": {
                            "type": "object",
                            "properties": {
                                "query": {
                                    "type": "string",
                                    "description": QUERY_PARAMETER_DESCRIPTION,
                                }
                            },
                            "required": ["query"],
                        },
                    },
                }
            )

        tools.append(
            {
                "type": "function",
                "function": {
                    "name": LIST_AGENTS_TOOL_NAME,
                    "description": LIST_AGENTS_TOOL_DESCRIPTION,
                    "parameters": {"type": "object", "properties": {}},
                },
            }
        )
        return tools

    def resolve_agent(self, function_name: str) -> Optional[AgentDescriptor]:
        agent_id = self.tool_names.agent_id_for(function_name)
        if agent_id is None:
            return None
        return self.registry.get_agent(agent_id)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def list_agents_payload(self) -> str:
        return json.dumps(
            {
                "agents": [
                    {"name": agent.name, "description": agent.description, "domains": agent.domains}
                    for agent in self.registry.enabled_agents()
                ]
            }
        )

    @staticmethod
    def parse_query_argument(arguments_json: str) -> str:
        """
        Extract the ``query`` argument from a function call.

        Raises:
            MissingArgumentError: If arguments are not a JSON object or the
                query is missing, empty or not a string
        """
        try:
            arguments = json.loads(arguments_json or "{}")
        except json.JSONDecodeError as e:
            raise MissingArgumentError(f"Invalid function arguments: {e}") from e
        if not isinstance(arguments, dict):
            raise MissingArgumentError("Function arguments must be a JSON object")

        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise MissingArgumentError("No query provided")
        return query

    async def dispatch(self, function_name: str, arguments_json: str) -> str:
        """
        Execute one function call.

        Args:
            function_name: Tool name chosen by the router run
            arguments_json: JSON-encoded arguments

        Returns:
            Agent answer, agent catalog, or ``{"error": ...}`` JSON
        """
        if function_name == LIST_AGENTS_TOOL_NAME:
            return self.list_agents_payload()

        try:
            query = self.parse_query_argument(arguments_json)
            agent = self.resolve_agent(function_name)
            if agent is None:
                raise UnknownAgentError(function_name)

            logger.info(f"Dispatching {function_name} to agent {agent.name}")
            response = await self.protocol_client.query(agent, query)
            if response.is_success:
                return response.content
            return json.dumps({"error": response.error_message or "Agent query failed"})
        except (MissingArgumentError, UnknownAgentError) as e:
            logger.warning(f"Rejected function call {function_name}: {e}")
            return json.dumps({"error": str(e)})
        except Exception as e:
            logger.error(f"Function call {function_name} failed: {e}", exc_info=True)
            return json.dumps({"error": str(e)})

    async def dispatch_all(self, pending_calls: list[PendingCall]) -> list[ToolOutput]:
        """Dispatch every pending call concurrently; output order matches input order."""
        results = await asyncio.gather(
            *(self.dispatch(call.function_name, call.arguments_json) for call in pending_calls)
        )
        return [
            ToolOutput(call_id=call.id, result_text=result)
            for call, result in zip(pending_calls, results)
        ]
