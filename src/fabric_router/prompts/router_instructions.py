"""
Prompts for the function-calling router persona.

This module contains the system instructions given to the remote router
agent and the descriptions attached to each per-agent function tool.
"""

from fabric_router.model.registry import AgentDescriptor


ROUTER_INSTRUCTIONS_TEMPLATE = """You are an intelligent query router that directs user questions to the most appropriate Fabric Data Agent.

Available Data Agents:
{agent_descriptions}

Your responsibilities:
1. Analyze each user query to understand the intent and domain
2. Select the most appropriate data agent based on the query content
3. Call the corresponding function to get the answer
4. Present the response clearly to the user

Routing Guidelines:
- Match queries to agents based on domain keywords and context
- If a query spans multiple domains, choose the primary domain or ask for clarification
- If no agent is clearly appropriate, use the default agent or ask the user to clarify
- Always explain which agent you're using and why

Response Format:
- Provide clear, concise answers based on the agent's response
- If the agent returns an error, explain it to the user and suggest alternatives
- Maintain conversation context for follow-up questions"""


def format_agent_line(agent: AgentDescriptor) -> str:
    return f"- {agent.name}: {agent.description} (domains: {', '.join(agent.domains)})"


def build_router_instructions(agents: list[AgentDescriptor]) -> str:
    """
    Build the system instructions for the router agent.

    Args:
        agents: Enabled agents, in registry order

    Returns:
        Complete instructions text
    """
    agent_descriptions = "\n".join(format_agent_line(agent) for agent in agents)
    return ROUTER_INSTRUCTIONS_TEMPLATE.format(agent_descriptions=agent_descriptions)


def build_tool_description(agent: AgentDescriptor) -> str:
    return (
        f"Query the {agent.name} for {agent.description}. "
        f"Use this for questions about: {', '.join(agent.domains)}."
    )


LIST_AGENTS_TOOL_DESCRIPTION = "List all available data agents and their capabilities"
QUERY_PARAMETER_DESCRIPTION = "The natural language query to send to the agent"
