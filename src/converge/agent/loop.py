"""Tool-calling agent loop implementation."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from converge.agent.state import ConversationState, LoopBudget, MessageObserver
from converge.errors import BudgetExceeded, ConvergeError, TransportFailure, ValidationFailure
from converge.llm.client import Message, NormalizedTurn, ProviderAdapter, ToolCallRequest
from converge.tools.base import ToolResult
from converge.tools.registry import NOT_FOUND, ToolRegistry

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """States of the agent loop."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"
    FAILED = "failed"
    BUDGET_EXCEEDED = "budget_exceeded"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {LoopState.DONE, LoopState.FAILED, LoopState.BUDGET_EXCEEDED, LoopState.CANCELLED}
)

StateObserver = Callable[[LoopState], None]


@dataclass(frozen=True)
class AgentOutcome:
    """Result of one :meth:`Agent.run` call."""

    status: LoopState
    answer: str | None = None
    error: ConvergeError | None = None
    iterations: int = 0

    @property
    def ok(self) -> bool:
        return self.status is LoopState.DONE


class Agent:
    """Agent that alternates model turns with tool execution.

    The agent owns one conversation. Each :meth:`run` appends the user's
    message and loops until the model answers without tool calls, the
    iteration budget runs out, or the model call fails.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        registry: ToolRegistry,
        max_iterations: int = 8,
        system_prompt: str | None = None,
        model_timeout: float = 300.0,
        on_message: MessageObserver | None = None,
        on_state: StateObserver | None = None,
    ):
        """Initialize the agent.

        Args:
            adapter: Provider adapter used for model turns
            registry: Tools the model may call
            max_iterations: Tool-dispatch cycles allowed per run
            system_prompt: System prompt opening the conversation
            model_timeout: Upper bound in seconds for one model call
            on_message: Observer called with every appended message
            on_state: Observer called on every loop state change
        """
        self.adapter = adapter
        self.registry = registry
        self.max_iterations = max_iterations
        self.system_prompt = system_prompt
        self.model_timeout = model_timeout
        self._on_message = on_message
        self._on_state = on_state

        self.state = LoopState.IDLE
        self._task: asyncio.Task | None = None
        self._cancel_requested = False
        self.conversation = self._new_conversation()

    def _new_conversation(self) -> ConversationState:
        conversation = ConversationState()
        if self._on_message:
            conversation.subscribe(self._on_message)
        if self.system_prompt:
            conversation.append(Message.system(self.system_prompt))
        return conversation

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.conversation.messages

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        """Start a new conversation."""
        if self.running:
            raise RuntimeError("Cannot reset while the agent is running")
        self.conversation = self._new_conversation()
        self._set_state(LoopState.IDLE)

    def cancel(self) -> bool:
        """Abandon the in-flight model request and tool executions.

        Returns:
            True if a run was cancelled
        """
        if not self.running:
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True

    async def run(self, user_input: str) -> AgentOutcome:
        """Run the agent on a user message.

        Args:
            user_input: User's input message

        Returns:
            AgentOutcome whose status is done, failed, budget_exceeded or
            cancelled
        """
        if self.running:
            raise RuntimeError("Agent is already running")

        self._cancel_requested = False
        self._task = asyncio.ensure_future(self._run(user_input))
        try:
            return await self._task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            logger.info("Run cancelled")
            return self._finish(LoopState.CANCELLED)
        finally:
            self._task = None

    async def _run(self, user_input: str) -> AgentOutcome:
        budget = LoopBudget(self.max_iterations)
        self.conversation.append(Message.user(user_input))

        while True:
            self._set_state(LoopState.AWAITING_MODEL)
            try:
                turn = await self._request_turn()
            except ConvergeError as e:
                logger.error("Model call failed: %s", e.describe())
                return self._finish(LoopState.FAILED, error=e, iterations=budget.elapsed_iterations)

            if not turn.tool_calls:
                self.conversation.append(Message.assistant(turn))
                return self._finish(
                    LoopState.DONE, answer=turn.text or "", iterations=budget.elapsed_iterations
                )

            self._set_state(LoopState.DISPATCHING_TOOLS)
            results = await self._dispatch(turn.tool_calls)

            # Appended together so a cancelled dispatch leaves no partial turn
            self.conversation.append(Message.assistant(turn))
            for call, result in zip(turn.tool_calls, results):
                self.conversation.append(Message.tool_result(result, call.name))

            budget.consume()
            if budget.exhausted:
                logger.warning("Loop budget of %d iteration(s) exhausted", budget.max_iterations)
                return self._finish(
                    LoopState.BUDGET_EXCEEDED,
                    error=BudgetExceeded(
                        f"Stopped after {budget.elapsed_iterations} tool iteration(s) "
                        "without a final answer"
                    ),
                    iterations=budget.elapsed_iterations,
                )

    async def _request_turn(self) -> NormalizedTurn:
        try:
            turn = await asyncio.wait_for(
                self.adapter.converse(self.conversation.messages, self.registry.describe()),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError:
            raise TransportFailure(f"Model call exceeded {self.model_timeout}s") from None

        ids = [call.id for call in turn.tool_calls]
        if len(ids) != len(set(ids)):
            raise ValidationFailure(f"Model turn repeated a tool call id: {ids}")
        return turn

    async def _dispatch(self, calls: tuple[ToolCallRequest, ...]) -> list[ToolResult]:
        """Run every call of one turn concurrently; results keep request order."""
        return list(await asyncio.gather(*(self._execute(call) for call in calls)))

    async def _execute(self, call: ToolCallRequest) -> ToolResult:
        executor = self.registry.resolve(call.name)
        if executor is NOT_FOUND:
            logger.warning("Model requested unknown tool %s", call.name)
            return ToolResult.failure(call.id, f"Unknown tool '{call.name}'", kind="not_found")

        logger.debug("Executing tool %s (%s)", call.name, call.id)
        try:
            return await executor.execute(call.arguments, tool_call_id=call.id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Tool %s raised outside its executor", call.name)
            return ToolResult.failure(call.id, f"{type(e).__name__}: {e}", kind="runtime")

    def _set_state(self, state: LoopState) -> None:
        self.state = state
        if self._on_state:
            try:
                self._on_state(state)
            except Exception:
                logger.exception("State observer failed")

    def _finish(
        self,
        status: LoopState,
        answer: str | None = None,
        error: ConvergeError | None = None,
        iterations: int = 0,
    ) -> AgentOutcome:
        self._set_state(status)
        return AgentOutcome(status=status, answer=answer, error=error, iterations=iterations)
