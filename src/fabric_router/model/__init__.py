"""
Model package for the router.

This package contains all data models used across the router,
organized by domain.
"""

from .registry import (
    AgentDescriptor,
    AgentRegistry,
    AuthSettings,
    DataSourceRef,
    RoutingPolicy,
)

from .routing import (
    AgentScore,
    RoutingResult,
)

from .responses import (
    AgentResponse,
    RouterResponse,
)

from .run import (
    PendingCall,
    Run,
    RunStatus,
    Session,
    ToolOutput,
)

__all__ = [
    # Registry Models
    "AgentDescriptor",
    "AgentRegistry",
    "AuthSettings",
    "DataSourceRef",
    "RoutingPolicy",
    # Routing Models
    "AgentScore",
    "RoutingResult",
    # Response Models
    "AgentResponse",
    "RouterResponse",
    # Run Models
    "PendingCall",
    "Run",
    "RunStatus",
    "Session",
    "ToolOutput",
]
