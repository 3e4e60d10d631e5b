"""HTTP server components for the N4L editor backend."""

from .ollama import OllamaService, clean_json
from .session_manager import SocraticSessionManager

__all__ = [
    "OllamaService",
    "SocraticSessionManager",
    "clean_json",
]
