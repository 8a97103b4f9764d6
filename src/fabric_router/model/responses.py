"""
Models for agent and router responses.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from fabric_router.model.routing import RoutingResult


class AgentResponse(BaseModel):
    """Response from a downstream agent (or from the remote router run)."""
    agent_id: str = ""
    content: str = ""
    is_success: bool = False
    error_message: Optional[str] = None
    execution_time: float = 0.0
    raw_response: Optional[dict[str, Any]] = None


class RouterResponse(BaseModel):
    """Complete response for one query: routing decision plus agent answer."""
    query: str
    routing: RoutingResult = Field(default_factory=RoutingResult)
    agent_response: AgentResponse = Field(default_factory=AgentResponse)
    total_execution_time: float = 0.0
    session_id: Optional[str] = None
