"""
MCP client for Fabric Data Agents.

Downstream agents expose an MCP endpoint that speaks JSON-RPC 2.0 over HTTP
POST with bearer-token authorization. Three methods are used:

- tools/call: run the agent's ``query`` tool (the routing path)
- initialize: connectivity check
- tools/list: tool discovery for validation workflows

``ProtocolClient.query`` never raises for transport, protocol or
configuration problems; they are reported as a failed ``AgentResponse`` so
callers can keep a conversation going.
"""

import json
import logging
import time
import uuid
from typing import Any, Optional

import httpx

from fabric_router.exceptions import ConfigurationError, ProtocolError, TransportError
from fabric_router.integration.token_cache import TokenCache
from fabric_router.model.registry import AgentDescriptor
from fabric_router.model.responses import AgentResponse

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"


def get_package_version() -> str:
    """Get package version for MCP client identification."""
    try:
        from importlib.metadata import version

        return version("fabric-agent-router")
    except Exception:
        return "1.0.0"


def build_jsonrpc_request(method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    request: dict[str, Any] = {
        "jsonrpc": "2.0",
        "id": str(uuid.uuid4()),
        "method": method,
    }
    if params is not None:
        request["params"] = params
    return request


def parse_jsonrpc_body(response: httpx.Response) -> dict[str, Any]:
    """
    Decode a JSON-RPC envelope from a plain JSON or SSE response body.

    Streamable-HTTP MCP servers may answer with ``text/event-stream``; the
    last ``data:`` line that decodes to a JSON object is the envelope.

    Raises:
        ProtocolError: If no JSON object can be decoded
    """
    content_type = response.headers.get("content-type", "")
    if "text/event-stream" in content_type:
        envelope = None
        for line in response.text.splitlines():
            if not line.startswith("data:"):
                continue
            try:
                candidate = json.loads(line[len("data:"):].strip())
            except json.JSONDecodeError:
                continue
            if isinstance(candidate, dict):
                envelope = candidate
        if envelope is None:
            raise ProtocolError("Event stream did not contain a JSON-RPC message")
        return envelope

    try:
        envelope = response.json()
    except ValueError as e:
        raise ProtocolError(f"Invalid JSON in response: {e}") from e
    if not isinstance(envelope, dict):
        raise ProtocolError("JSON-RPC response is not an object")
    return envelope


def extract_tool_result(envelope: dict[str, Any]) -> str:
    """
    Extract the text of a ``tools/call`` result.

    Raises:
        ProtocolError: If the envelope carries an error, or a tool error
    """
    if "result" in envelope:
        result = envelope["result"] or {}
        text = ""
        content = result.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict):
                text = first.get("text") or ""
        if result.get("isError"):
            raise ProtocolError(text or "Tool reported an error")
        return text

    if "error" in envelope:
        error = envelope["error"]
        message = error.get("message") if isinstance(error, dict) else None
        raise ProtocolError(message or "Unknown MCP error")

    raise ProtocolError("Malformed JSON-RPC response")


class ProtocolClient:
    """
    JSON-RPC client for Fabric Data Agent MCP endpoints.

    All calls share one ``TokenCache``; the token scope is the same for every
    downstream agent.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        timeout: float = 30.0,
        max_retries: int = 3,
        client_name: str = "FabricDataAgentRouter",
        client_version: Optional[str] = None,
    ):
        """
        Args:
            token_cache: Bearer token source
            timeout: Per-request HTTP timeout in seconds
            max_retries: Extra attempts after a transport-level failure
            client_name: Name reported in ``initialize``
            client_version: Version reported in ``initialize``
        """
        self.token_cache = token_cache
        self.timeout = timeout
        self.max_retries = max_retries
        self.client_name = client_name
        self.client_version = client_version or get_package_version()

    @staticmethod
    def resolve_endpoint(agent: AgentDescriptor) -> str:
        return agent.resolve_endpoint()

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        """
        POST a JSON-RPC payload, retrying transport failures.

        Raises:
            TransportError: If every attempt failed at the transport level
        """
        token = await self.token_cache.get()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    http_response = await client.post(url, json=payload, headers=headers)
                if http_response.status_code == 401:
                    # Rejected token; the next call acquires a fresh one
                    self.token_cache.invalidate()
                return http_response
            except httpx.TransportError as e:
                last_error = e
                logger.warning(
                    f"Transport error calling {url} (attempt {attempt + 1}/"
                    f"{self.max_retries + 1}): {e!r}"
                )
        raise TransportError(f"Request to {url} failed: {last_error!r}") from last_error

    async def query(self, agent: AgentDescriptor, query_text: str) -> AgentResponse:
        """
        Query a Fabric Data Agent with the MCP ``tools/call`` method.

        Args:
            agent: Target agent
            query_text: Natural-language query

        Returns:
            AgentResponse; ``is_success`` is False for any failure
        """
        start = time.perf_counter()
        response = AgentResponse(agent_id=agent.id)

        try:
            url = self.resolve_endpoint(agent)
            logger.info(f"Querying agent {agent.name} at {url}")

            payload = build_jsonrpc_request(
                "tools/call", {"name": "query", "arguments": {"query": query_text}}
            )
            http_response = await self._post(url, payload)

            if http_response.is_success:
                envelope = parse_jsonrpc_body(http_response)
                response.raw_response = envelope
                response.content = extract_tool_result(envelope)
                response.is_success = True
            else:
                response.error_message = (
                    f"HTTP {http_response.status_code}: {http_response.reason_phrase}"
                )
                logger.error(f"Agent query failed: {response.error_message}")
        except (ConfigurationError, TransportError, ProtocolError) as e:
            response.is_success = False
            response.error_message = str(e)
            logger.error(f"Error querying agent {agent.id}: {e}")
        except Exception as e:
            response.is_success = False
            response.error_message = str(e)
            logger.error(f"Error querying agent {agent.id}: {e}", exc_info=True)
        finally:
            response.execution_time = time.perf_counter() - start

        return response

    async def test_connectivity(self, agent: AgentDescriptor) -> bool:
        """Send MCP ``initialize``; any 2xx answer counts as reachable."""
        try:
            url = self.resolve_endpoint(agent)
            payload = build_jsonrpc_request(
                "initialize",
                {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": self.client_name, "version": self.client_version},
                },
            )
            http_response = await self._post(url, payload)
            return http_response.is_success
        except Exception as e:
            logger.warning(f"Connectivity test failed for agent {agent.id}: {e}")
            return False

    async def list_tools(self, agent: AgentDescriptor) -> list[str]:
        """List tool names exposed by an agent; empty on any failure."""
        try:
            url = self.resolve_endpoint(agent)
            http_response = await self._post(url, build_jsonrpc_request("tools/list"))
            if not http_response.is_success:
                logger.warning(
                    f"Failed to list tools for agent {agent.id}: HTTP {http_response.status_code}"
                )
                return []

            envelope = parse_jsonrpc_body(http_response)
            tools = (envelope.get("result") or {}).get("tools")
            if not isinstance(tools, list):
                return []
            return [tool["name"] for tool in tools if isinstance(tool, dict) and "name" in tool]
        except Exception as e:
            logger.warning(f"Failed to list tools for agent {agent.id}: {e}")
            return []
