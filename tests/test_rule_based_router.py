"""
Unit tests for the classifier-driven router.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_agent, make_registry
from fabric_router.exceptions import ConfigurationError, QueryCancelledError
from fabric_router.services.intent_classifier import IntentClassifier
from fabric_router.services.router import RuleBasedRouter


class TestRuleBasedRouter:
    """Test classify-then-query routing."""

    @pytest.mark.asyncio
    async def test_routes_to_classified_agent(self, sales_hr_registry, mock_protocol_client):
        """Test that the selected agent is queried directly."""
        router = RuleBasedRouter(sales_hr_registry, IntentClassifier(), mock_protocol_client)
        await router.initialize()

        response = await router.process_query("show me headcount by department")

        assert response.routing.selected_agent.id == "hr-agent"
        assert response.agent_response.is_success is True
        assert response.agent_response.content == "hr-agent answer"
        assert response.session_id is None
        assert response.total_execution_time >= 0
        agent, query = mock_protocol_client.query.call_args.args
        assert agent.id == "hr-agent"
        assert query == "show me headcount by department"

    @pytest.mark.asyncio
    async def test_no_enabled_agents(self, empty_registry, mock_protocol_client):
        """Test that a router with nothing to route to cannot initialize."""
        router = RuleBasedRouter(empty_registry, IntentClassifier(), mock_protocol_client)
        with pytest.raises(ConfigurationError):
            await router.initialize()

    @pytest.mark.asyncio
    async def test_no_selection_reported(self, empty_registry, mock_protocol_client):
        """Test that an empty routing result is a failed response with the reasoning."""
        router = RuleBasedRouter(empty_registry, IntentClassifier(), mock_protocol_client)

        response = await router.process_query("anything")

        assert response.agent_response.is_success is False
        assert response.agent_response.error_message == "no enabled agents"
        mock_protocol_client.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_endpoint_rejected(self, mock_protocol_client):
        """Test endpoint validation at initialization."""
        registry = make_registry([make_agent("a", [], endpointTemplate="not a url")])
        router = RuleBasedRouter(registry, IntentClassifier(), mock_protocol_client)
        with pytest.raises(ConfigurationError):
            await router.initialize()

    @pytest.mark.asyncio
    async def test_unexpected_error_contained(self, sales_hr_registry, mock_protocol_client):
        """Test that errors become failed responses."""
        mock_protocol_client.query = AsyncMock(side_effect=RuntimeError("boom"))
        router = RuleBasedRouter(sales_hr_registry, IntentClassifier(), mock_protocol_client)

        response = await router.process_query("revenue")

        assert response.agent_response.is_success is False
        assert response.agent_response.error_message == "boom"

    @pytest.mark.asyncio
    async def test_cancelled_before_query(self, sales_hr_registry, mock_protocol_client):
        """Test that an already-set cancel event stops routing before any agent call."""
        router = RuleBasedRouter(sales_hr_registry, IntentClassifier(), mock_protocol_client)
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(QueryCancelledError):
            await router.process_query("headcount", cancel_event=cancel_event)

        mock_protocol_client.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_during_query(self, sales_hr_registry, mock_protocol_client):
        """Test that cancelling abandons an in-flight agent call."""
        cancel_event = asyncio.Event()
        call_abandoned = asyncio.Event()

        async def slow_query(agent, query):
            cancel_event.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                call_abandoned.set()
                raise

        mock_protocol_client.query = slow_query
        router = RuleBasedRouter(sales_hr_registry, IntentClassifier(), mock_protocol_client)

        with pytest.raises(QueryCancelledError):
            await router.process_query("headcount by department", cancel_event=cancel_event)

        await asyncio.sleep(0)
        assert call_abandoned.is_set()

    def test_clear_session_is_noop(self, sales_hr_registry, mock_protocol_client):
        router = RuleBasedRouter(sales_hr_registry, IntentClassifier(), mock_protocol_client)
        router.clear_session()
        router.clear_session()
