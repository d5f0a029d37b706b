"""Bounded decide/execute loop over a SourceRegistry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from watchtower.lib import oj
from watchtower.integration.decision import DecisionMaker, tool_name_for
from watchtower.integration.source_registry import (
    FunctionCall,
    FunctionResult,
    RegistryError,
    SourceRegistry,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


@dataclass
class UserEntry:
    """The task as the user stated it."""

    text: str

    def to_messages(self) -> list[dict[str, Any]]:
        return [{"role": "user", "content": self.text}]


@dataclass
class AssistantEntry:
    """The decision maker's rationale and the call it asked for."""

    rationale: str
    call: FunctionCall
    call_id: str

    def to_messages(self) -> list[dict[str, Any]]:
        return [{
            "role": "assistant",
            "content": self.rationale,
            "tool_calls": [{
                "id": self.call_id,
                "type": "function",
                "function": {
                    "name": tool_name_for(self.call.name),
                    "arguments": oj.dumps(self.call.arguments).decode(),
                },
            }],
        }]


@dataclass
class FunctionOutcomeEntry:
    """Rendered result of executing the preceding call."""

    result: FunctionResult
    summary: str
    call_id: str

    def to_messages(self) -> list[dict[str, Any]]:
        return [{"role": "tool", "tool_call_id": self.call_id, "content": self.summary}]


ConversationEntry = Union[UserEntry, AssistantEntry, FunctionOutcomeEntry]


class OrchestrationStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"


@dataclass
class OrchestrationResult:
    """How a run ended, with the full conversation."""

    status: OrchestrationStatus
    answer: str | None
    iterations: int
    conversation: list[ConversationEntry] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status is OrchestrationStatus.COMPLETED


def render_result(result: FunctionResult) -> str:
    """Textual summary of a FunctionResult for the conversation."""
    if result.success:
        try:
            return oj.dumps(result.result).decode()
        except oj.JSONEncodeError:
            return str(result.result)
    if result.error_code is not None:
        return f"Error ({result.error_code}): {result.error}"
    return f"Error: {result.error}"


class Orchestrator:
    """
    Lets a decision maker call registry functions until it answers.

    Strictly sequential: each iteration rediscovers the catalog, asks for a
    decision, and runs at most one call before the next iteration starts.
    Failed calls are fed back into the conversation instead of raising.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        decision_maker: DecisionMaker,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.registry = registry
        self.decision_maker = decision_maker
        self.max_iterations = max_iterations

    async def run(self, task: str) -> OrchestrationResult:
        """
        Work on a task until a final answer or the iteration limit.

        Returns:
            COMPLETED with the answer, or INCOMPLETE after max_iterations.
        """
        conversation: list[ConversationEntry] = [UserEntry(task)]
        logger.info(f"Orchestrating task: {task}")

        for iteration in range(self.max_iterations):
            catalog = await self.registry.discover_all()
            decision = await self.decision_maker.decide(list(conversation), catalog)

            if decision.is_final:
                logger.info(f"Task completed after {iteration + 1} iteration(s)")
                return OrchestrationResult(
                    status=OrchestrationStatus.COMPLETED,
                    answer=decision.answer or "",
                    iterations=iteration + 1,
                    conversation=conversation,
                )

            call = decision.call
            call_id = f"call_{iteration}"
            conversation.append(AssistantEntry(decision.rationale, call, call_id))

            logger.info(f"Iteration {iteration + 1}: calling {call.name}")
            try:
                result = await self.registry.execute(call.name, call.arguments)
            except RegistryError as e:
                logger.warning(f"Call to {call.name} rejected: {e}")
                result = FunctionResult.failed(call.name, str(e))

            conversation.append(FunctionOutcomeEntry(result, render_result(result), call_id))

        logger.warning(f"No final answer after {self.max_iterations} iterations")
        return OrchestrationResult(
            status=OrchestrationStatus.INCOMPLETE,
            answer=None,
            iterations=self.max_iterations,
            conversation=conversation,
        )
