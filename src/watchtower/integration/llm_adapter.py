"""Chat-completion backends used by the LLM decision maker."""

from __future__ import annotations

from typing import Any, Protocol, TYPE_CHECKING

from watchtower.lib import oj

if TYPE_CHECKING:
    from dedalus_labs import AsyncDedalus

DEFAULT_MODEL = "anthropic/claude-sonnet-4-5-20250929"


class LLMInterface(Protocol):
    """
    Protocol for chat completions with function calling.

    Responses are OpenAI-shaped dicts: ``choices[0].message`` carries
    ``content`` and optionally ``tool_calls``.
    """

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        ...


def _as_dict(response: Any) -> dict[str, Any]:
    if hasattr(response, "model_dump"):
        return response.model_dump()
    if isinstance(response, dict):
        return response
    return dict(response)


class DedalusLLMAdapter:
    """Runs chat completions through the Dedalus SDK."""

    def __init__(self, client: "AsyncDedalus", model: str = DEFAULT_MODEL):
        """
        Args:
            client: Dedalus SDK async client instance.
            model: Model identifier passed on every call.
        """
        self.client = client
        self.model = model

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**kwargs)
        return _as_dict(response)


def text_completion(content: str) -> dict[str, Any]:
    """Build a completion that answers with plain text."""
    return {
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def tool_call_completion(
    tool_name: str,
    arguments: dict[str, Any],
    content: str = "",
    call_id: str = "call_0",
) -> dict[str, Any]:
    """Build a completion that requests one tool call."""
    return {
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": content,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": tool_name,
                                "arguments": oj.dumps(arguments).decode(),
                            },
                        }
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ],
    }


class MockLLMAdapter:
    """
    Canned completions for tests.

    Returns ``responses`` in order, then a fixed text answer once they run
    out. Every call is recorded in ``call_history``.
    """

    def __init__(self, responses: list[dict[str, Any]] | None = None):
        self.responses = responses or []
        self.call_history: list[dict[str, Any]] = []
        self._response_index = 0

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        self.call_history.append({
            "messages": [dict(m) for m in messages],
            "tools": tools,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })

        if self._response_index < len(self.responses):
            response = self.responses[self._response_index]
            self._response_index += 1
            return response
        return text_completion("Mock response for testing.")
