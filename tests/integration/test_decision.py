"""Tests for decision makers and the LLM adapters."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from watchtower.integration.decision import (
    ChatCompletionDecisionMaker,
    Decision,
    ScriptedDecisionMaker,
    function_name_for,
    tool_name_for,
)
from watchtower.integration.llm_adapter import (
    DedalusLLMAdapter,
    MockLLMAdapter,
    text_completion,
    tool_call_completion,
)
from watchtower.integration.orchestrator import AssistantEntry, FunctionOutcomeEntry, UserEntry
from watchtower.integration.source_registry import FunctionCall, FunctionResult
from watchtower.protocol.messages import OperationDescriptor, ParameterDescriptor, ParameterType


@pytest.fixture
def catalog():
    op = OperationDescriptor(
        "fetchLogs",
        "Fetch logs",
        [ParameterDescriptor("limit", ParameterType.INTEGER, "Maximum logs")],
    )
    return [op.namespaced("AWS"), op.namespaced("GCP")]


class TestToolNames:
    def test_round_trip(self):
        assert tool_name_for("AWS.fetchLogs") == "AWS__fetchLogs"
        assert function_name_for("AWS__fetchLogs") == "AWS.fetchLogs"


class TestChatCompletionDecisionMaker:
    """Tests for the LLM-backed decision maker."""

    @pytest.mark.asyncio
    async def test_offers_catalog_as_tools(self, catalog):
        llm = MockLLMAdapter([text_completion("Nothing to do")])
        maker = ChatCompletionDecisionMaker(llm, system_prompt="Be brief.")

        decision = await maker.decide([UserEntry("status?")], catalog)

        assert decision.is_final
        assert decision.answer == "Nothing to do"
        call = llm.call_history[0]
        assert [t["function"]["name"] for t in call["tools"]] == ["AWS__fetchLogs", "GCP__fetchLogs"]
        assert call["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "status?"},
        ]

    @pytest.mark.asyncio
    async def test_tool_call_becomes_function_call(self, catalog):
        llm = MockLLMAdapter([
            tool_call_completion("GCP__fetchLogs", {"limit": 3}, content="Checking GCP"),
        ])
        decision = await ChatCompletionDecisionMaker(llm).decide([UserEntry("why?")], catalog)

        assert not decision.is_final
        assert decision.call == FunctionCall("GCP.fetchLogs", {"limit": 3})
        assert decision.rationale == "Checking GCP"

    @pytest.mark.asyncio
    async def test_source_name_with_double_underscore(self):
        catalog = [OperationDescriptor("fetchLogs", "Fetch logs").namespaced("my__src")]
        llm = MockLLMAdapter([tool_call_completion("my__src__fetchLogs", {"limit": 2})])

        decision = await ChatCompletionDecisionMaker(llm).decide([UserEntry("why?")], catalog)

        assert llm.call_history[0]["tools"][0]["function"]["name"] == "my__src__fetchLogs"
        assert decision.call == FunctionCall("my__src.fetchLogs", {"limit": 2})

    @pytest.mark.asyncio
    async def test_bad_arguments_become_empty(self, catalog):
        response = tool_call_completion("AWS__fetchLogs", {})
        response["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = "{oops"
        decision = await ChatCompletionDecisionMaker(MockLLMAdapter([response])).decide(
            [UserEntry("x")], catalog
        )
        assert decision.call.arguments == {}

    @pytest.mark.asyncio
    async def test_conversation_rendering(self, catalog):
        llm = MockLLMAdapter()
        call = FunctionCall("AWS.fetchLogs", {"limit": 1})
        conversation = [
            UserEntry("why?"),
            AssistantEntry("look", call, "call_0"),
            FunctionOutcomeEntry(FunctionResult.ok(call.name, {"count": 0}), '{"count":0}', "call_0"),
        ]

        await ChatCompletionDecisionMaker(llm).decide(conversation, catalog)

        messages = llm.call_history[0]["messages"]
        assert messages[2]["tool_calls"][0]["function"]["name"] == "AWS__fetchLogs"
        assert messages[3] == {"role": "tool", "tool_call_id": "call_0", "content": '{"count":0}'}

    @pytest.mark.asyncio
    async def test_empty_catalog_sends_no_tools(self):
        llm = MockLLMAdapter()
        await ChatCompletionDecisionMaker(llm).decide([UserEntry("x")], [])
        assert llm.call_history[0]["tools"] is None


class TestScriptedDecisionMaker:
    @pytest.mark.asyncio
    async def test_replays_then_falls_back(self):
        first = Decision.invoke(FunctionCall("AWS.fetchLogs"))
        maker = ScriptedDecisionMaker([first])
        assert await maker.decide([], []) is first
        fallback = await maker.decide([], [])
        assert fallback.is_final
        assert len(maker.seen) == 2


class TestDedalusLLMAdapter:
    @pytest.mark.asyncio
    async def test_forwards_tools(self):
        response = MagicMock()
        response.model_dump.return_value = text_completion("ok")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)

        adapter = DedalusLLMAdapter(client, model="openai/gpt-4o")
        result = await adapter.chat_completion(
            [{"role": "user", "content": "hi"}],
            tools=[{"type": "function", "function": {"name": "AWS__fetchLogs"}}],
        )

        assert result == text_completion("ok")
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["tool_choice"] == "auto"
        assert "temperature" not in kwargs
