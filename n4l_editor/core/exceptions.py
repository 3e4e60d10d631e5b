"""Custom exceptions for N4L editor operations."""


class N4LError(Exception):
    """Base exception for N4L editor operations."""
    pass


class VersionNotFoundError(N4LError):
    """Raised when a version id is not in the history."""
    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Version '{version_id}' not found")


class SessionNotFoundError(N4LError):
    """Raised when a dialogue session is neither active nor archived."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session: {session_id}")


class GenerationError(N4LError):
    """Raised when the generative-text service fails or answers garbage."""
    pass
