"""Conversation log and loop budget."""

import logging
from collections.abc import Callable, Iterator
from dataclasses import asdict, dataclass

from converge.errors import ValidationFailure
from converge.llm.client import Message

logger = logging.getLogger(__name__)

MessageObserver = Callable[[Message], None]


class ConversationState:
    """Append-only, ordered log of the messages in one session.

    Messages are never removed or reordered. Observers (for example a
    renderer) are notified of every append and only ever see immutable
    messages and read-only tuples.
    """

    def __init__(self):
        self._messages: list[Message] = []
        self._observers: list[MessageObserver] = []

    @property
    def messages(self) -> tuple[Message, ...]:
        """Read-only view of the log."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def subscribe(self, observer: MessageObserver) -> Callable[[], None]:
        """Register an observer called with each appended message.

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def append(self, message: Message) -> None:
        """Append a message after checking it fits the log.

        Raises:
            ValidationFailure: For a misplaced system message or an orphaned
                tool result
        """
        self._check(message)
        self._messages.append(message)

        for observer in list(self._observers):
            try:
                observer(message)
            except Exception:
                logger.exception("Conversation observer failed")

    def _check(self, message: Message) -> None:
        if message.role == "system" and self._messages:
            raise ValidationFailure("A system message may only open the conversation")

        if message.role != "tool_result":
            return

        if not message.tool_call_id:
            raise ValidationFailure("Tool result without a tool_call_id")

        # Walk back over the results already appended for the current turn
        answered: set[str] = set()
        for previous in reversed(self._messages):
            if previous.role == "tool_result":
                answered.add(previous.tool_call_id or "")
                continue
            if previous.role == "assistant" and any(
                tc.id == message.tool_call_id for tc in previous.tool_calls
            ):
                if message.tool_call_id in answered:
                    raise ValidationFailure(
                        f"Tool call {message.tool_call_id} already has a result"
                    )
                return
            break

        raise ValidationFailure(
            f"Orphaned tool result: {message.tool_call_id} does not answer the preceding "
            "assistant message"
        )

    def transcript(self) -> list[dict]:
        """Plain-dict copy of the log, e.g. for display or debugging."""
        return [asdict(message) for message in self._messages]


@dataclass
class LoopBudget:
    """Cap on tool-dispatch cycles for one user request."""

    max_iterations: int
    elapsed_iterations: int = 0

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

    @property
    def exhausted(self) -> bool:
        return self.elapsed_iterations >= self.max_iterations

    @property
    def remaining(self) -> int:
        return max(self.max_iterations - self.elapsed_iterations, 0)

    def consume(self) -> None:
        """Record one completed loop pass."""
        self.elapsed_iterations += 1
