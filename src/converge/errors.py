"""Error taxonomy shared by adapters, tools and the agent loop."""


class ConvergeError(Exception):
    """Base class for all converge failures."""

    kind = "error"

    def __init__(self, message: str, *, status: int | None = None, body_excerpt: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.body_excerpt = body_excerpt

    def describe(self) -> str:
        """Human readable description including HTTP details when known."""
        parts = [self.message]
        if self.status is not None:
            parts.append(f"(status {self.status})")
        if self.body_excerpt:
            parts.append(f": {self.body_excerpt}")
        return " ".join(parts)


class TransportFailure(ConvergeError):
    """Network error, timeout or server-side failure."""

    kind = "transport"


class AuthFailure(ConvergeError):
    """Missing or rejected credentials. Never retried."""

    kind = "auth"


class ValidationFailure(ConvergeError):
    """Malformed tool arguments or a malformed provider response."""

    kind = "validation"


class ToolRuntimeFailure(ConvergeError):
    """Exception raised while a tool was executing.

    ``details`` is merged into the error result payload so partial output
    (for example captured stdout) reaches the model.
    """

    kind = "runtime"

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ExecutionTimeout(ToolRuntimeFailure):
    """A tool exceeded its wall-clock limit and was aborted."""

    kind = "timeout"


class BudgetExceeded(ConvergeError):
    """The loop reached its iteration cap before a final answer."""

    kind = "budget_exceeded"


BODY_EXCERPT_LIMIT = 500


def excerpt(body: str, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Trim a response body for inclusion in an error message."""
    body = body.strip()
    if len(body) <= limit:
        return body
    return body[:limit] + "..."
