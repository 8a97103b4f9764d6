"""
Pytest fixtures for router testing.

Provides sample registries, a scripted agent-run service, a fake clock and
a mocked protocol client.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from fabric_router.integration.agent_run_service import AgentRunService
from fabric_router.integration.mcp_client import ProtocolClient
from fabric_router.model.registry import AgentRegistry
from fabric_router.model.responses import AgentResponse
from fabric_router.model.run import PendingCall, Run, RunStatus, Session, ToolOutput

ENDPOINT_TEMPLATE = "https://fabric.example.com/workspaces/{workspaceId}/agents/{agentId}/mcp"


def make_agent(agent_id: str, domains: list[str], **overrides: Any) -> dict[str, Any]:
    agent = {
        "id": agent_id,
        "name": f"{agent_id} name",
        "description": "",
        "endpointTemplate": ENDPOINT_TEMPLATE,
        "workspaceId": "ws-1",
        "agentId": f"{agent_id}-remote",
        "domains": domains,
        "exampleQueries": [],
        "dataSources": [],
        "enabled": True,
    }
    agent.update(overrides)
    return agent


def make_registry(agents: list[dict[str, Any]], **routing: Any) -> AgentRegistry:
    document = {"agents": agents, "routing": routing}
    return AgentRegistry.model_validate(document)


def make_run(
    status: RunStatus,
    pending_calls: Optional[list[PendingCall]] = None,
    last_error: Optional[str] = None,
) -> Run:
    return Run(
        id="run-1",
        session_id="thread-1",
        status=status,
        pending_calls=pending_calls or [],
        last_error=last_error,
    )


# ============================================================================
# Registry Fixtures
# ============================================================================


@pytest.fixture
def sales_hr_registry():
    """Two agents with disjoint domains."""
    return make_registry(
        [
            make_agent("sales-agent", ["revenue", "orders"]),
            make_agent("hr-agent", ["headcount", "turnover"]),
        ]
    )


@pytest.fixture
def sample_registry():
    """Registry with descriptions, examples and data sources."""
    return make_registry(
        [
            make_agent(
                "services-agent",
                ["tickets", "incidents", "sla"],
                name="Services Data Agent",
                description="IT service tickets and incidents",
                exampleQueries=["How many open incidents are there?"],
                dataSources=[{"name": "ServiceDesk", "type": "lakehouse"}],
            ),
            make_agent(
                "employee-agent",
                ["employees", "headcount", "departments"],
                name="Employee Data Agent",
                description="Employee headcount and departments",
                exampleQueries=["Show me headcount by department"],
                dataSources=[{"name": "HRWarehouse", "type": "warehouse"}],
            ),
        ],
        confidenceThreshold=0.3,
        timeoutSeconds=5,
    )


@pytest.fixture
def empty_registry():
    """Registry whose only agent is disabled."""
    return make_registry([make_agent("off-agent", ["anything"], enabled=False)])


# ============================================================================
# Collaborator Fixtures
# ============================================================================


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRunService(AgentRunService):
    """
    Scripted agent-run service.

    ``start_run`` returns the first scripted run; every ``get_run`` and
    ``submit_tool_outputs`` returns the next one. Once the script is
    exhausted the last run is repeated.
    """

    def __init__(self, runs: list[Run], final_message: Optional[str] = "final answer"):
        self.runs = list(runs)
        self.final_message = final_message
        self.created_agents: list[dict[str, Any]] = []
        self.sessions_created = 0
        self.messages: list[tuple[str, str]] = []
        self.submitted: list[list[ToolOutput]] = []
        self.get_run_calls = 0

    def _next_run(self) -> Run:
        if len(self.runs) > 1:
            return self.runs.pop(0)
        return self.runs[0]

    async def create_agent(self, name, instructions, tools):
        self.created_agents.append({"name": name, "instructions": instructions, "tools": tools})
        return "router-agent-1"

    async def create_session(self):
        self.sessions_created += 1
        return Session(id=f"thread-{self.sessions_created}")

    async def add_user_message(self, session_id, text):
        self.messages.append((session_id, text))

    async def start_run(self, session_id, agent_id):
        return self._next_run()

    async def get_run(self, run):
        self.get_run_calls += 1
        return self._next_run()

    async def submit_tool_outputs(self, run, outputs):
        self.submitted.append(list(outputs))
        return self._next_run()

    async def get_latest_agent_message(self, session_id):
        return self.final_message


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_protocol_client():
    """ProtocolClient whose queries succeed with a canned answer."""
    client = Mock(spec=ProtocolClient)

    async def query(agent, query_text):
        return AgentResponse(agent_id=agent.id, content=f"{agent.id} answer", is_success=True)

    client.query = AsyncMock(side_effect=query)
    client.test_connectivity = AsyncMock(return_value=True)
    return client
