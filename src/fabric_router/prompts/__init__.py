"""Prompts package for the router agent."""

from .router_instructions import (
    LIST_AGENTS_TOOL_DESCRIPTION,
    QUERY_PARAMETER_DESCRIPTION,
    build_router_instructions,
    build_tool_description,
)

__all__ = [
    "LIST_AGENTS_TOOL_DESCRIPTION",
    "QUERY_PARAMETER_DESCRIPTION",
    "build_router_instructions",
    "build_tool_description",
]
