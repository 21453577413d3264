"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (vector store, embeddings, LLM)
is misconfigured or unreachable so the API can return 503 with a user-facing message.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UpstreamTimeoutError(ServiceUnavailableError):
    """Raised when an upstream call (LLM, embeddings) times out or drops the connection. Safe to retry."""

    retryable = True


class SessionBusyError(Exception):
    """Raised when another request holds the session's lock for longer than the lock timeout."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.message = f"Session {session_id} is busy with another request"
        super().__init__(self.message)
