"""
Totem Relay: Custom Exception Types
=====================================
Raised from services, caught in main.py and mapped to HTTP status codes.
"""


class CompletionServiceError(Exception):
    """Raised when the chat-completion API is unreachable or returns an error."""

    def __init__(self, detail: str = "", status_code: int | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Completion error ({status_code}): {detail}")


class InteractionLogNotFoundError(Exception):
    """Raised when the interaction log has not been written yet."""

    def __init__(self, path: str = ""):
        self.path = path
        super().__init__(f"Interaction log not found: {path}")
