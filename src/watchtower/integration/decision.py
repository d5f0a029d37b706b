"""Decision makers: choose the next function call or the final answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence, TYPE_CHECKING

from watchtower.lib import oj
from watchtower.integration.llm_adapter import LLMInterface
from watchtower.integration.source_registry import FunctionCall, NAMESPACE_SEPARATOR
from watchtower.protocol.messages import OperationDescriptor

if TYPE_CHECKING:
    from watchtower.integration.orchestrator import ConversationEntry

logger = logging.getLogger(__name__)

# Tool names may not contain dots
TOOL_NAME_SEPARATOR = "__"

DEFAULT_SYSTEM_PROMPT = (
    "You are an operations assistant investigating production issues. "
    "Call the available functions to gather logs and metrics, then reply "
    "with a concise final answer once you have enough evidence."
)


@dataclass
class Decision:
    """Either a function call with its rationale, or a final answer."""

    call: FunctionCall | None = None
    rationale: str = ""
    answer: str | None = None

    @classmethod
    def invoke(cls, call: FunctionCall, rationale: str = "") -> "Decision":
        return cls(call=call, rationale=rationale)

    @classmethod
    def final(cls, answer: str) -> "Decision":
        return cls(answer=answer)

    @property
    def is_final(self) -> bool:
        return self.call is None


class DecisionMaker(Protocol):
    """Chooses the next step given the conversation so far and the catalog."""

    async def decide(
        self,
        conversation: Sequence["ConversationEntry"],
        catalog: Sequence[OperationDescriptor],
    ) -> Decision:
        ...


def tool_name_for(function_name: str) -> str:
    return function_name.replace(NAMESPACE_SEPARATOR, TOOL_NAME_SEPARATOR, 1)


def function_name_for(tool_name: str) -> str:
    return tool_name.replace(TOOL_NAME_SEPARATOR, NAMESPACE_SEPARATOR, 1)


class ChatCompletionDecisionMaker:
    """
    Asks a chat-completion model to pick the next step.

    The catalog is offered as tools, with ``AWS.fetchLogs`` exposed as
    ``AWS__fetchLogs``. A reply with a tool call becomes a FunctionCall;
    a reply without one is the final answer.
    """

    def __init__(
        self,
        llm: LLMInterface,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tokens: int = 1024,
    ):
        self.llm = llm
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens

    async def decide(
        self,
        conversation: Sequence["ConversationEntry"],
        catalog: Sequence[OperationDescriptor],
    ) -> Decision:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.system_prompt}]
        for entry in conversation:
            messages.extend(entry.to_messages())
        tool_names = {tool_name_for(op.name): op.name for op in catalog}
        tools = [op.to_tool_schema(tool_name_for(op.name)) for op in catalog]

        response = await self.llm.chat_completion(
            messages,
            tools=tools or None,
            max_tokens=self.max_tokens,
        )
        message = response["choices"][0]["message"]
        content = message.get("content") or ""

        tool_calls = message.get("tool_calls") or []
        if not tool_calls:
            return Decision.final(content)
        if len(tool_calls) > 1:
            logger.debug(f"Model requested {len(tool_calls)} calls; taking the first")

        function = tool_calls[0]["function"]
        raw_arguments = function.get("arguments") or "{}"
        try:
            arguments = oj.loads(raw_arguments) if isinstance(raw_arguments, str) else raw_arguments
        except oj.JSONDecodeError:
            logger.warning(f"Unparseable arguments for {function['name']}: {raw_arguments!r}")
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}

        tool_name = function["name"]
        name = tool_names.get(tool_name) or function_name_for(tool_name)
        call = FunctionCall(name=name, arguments=arguments)
        return Decision.invoke(call, rationale=content)


class ScriptedDecisionMaker:
    """
    Replays a fixed list of decisions.

    Once the script is exhausted it keeps returning ``fallback`` (a final
    answer by default). Every call's inputs are recorded in ``seen``.
    """

    def __init__(
        self,
        decisions: Sequence[Decision],
        fallback: Decision | None = None,
    ):
        self.decisions = list(decisions)
        self.fallback = fallback or Decision.final("No further steps.")
        self.seen: list[tuple[list["ConversationEntry"], list[OperationDescriptor]]] = []

    async def decide(
        self,
        conversation: Sequence["ConversationEntry"],
        catalog: Sequence[OperationDescriptor],
    ) -> Decision:
        self.seen.append((list(conversation), list(catalog)))
        index = len(self.seen) - 1
        if index < len(self.decisions):
            return self.decisions[index]
        return self.fallback
