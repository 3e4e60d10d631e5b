"""Runtime configuration read from N4L_* environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    DEFAULT_OLLAMA_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TIMEOUT,
    HISTORY_FILE,
    SESSIONS_DIR,
)


@dataclass(frozen=True)
class EditorConfig:
    """Editor backend configuration."""
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"
    ollama_url: str = DEFAULT_OLLAMA_URL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_timeout: float = DEFAULT_OLLAMA_TIMEOUT
    history_path: Path = Path(HISTORY_FILE)
    sessions_dir: Path = Path(SESSIONS_DIR)

    @classmethod
    def from_env(cls) -> "EditorConfig":
        """Create configuration from environment variables."""
        return cls(
            host=os.getenv("N4L_HTTP_HOST", cls.host),
            port=int(os.getenv("N4L_HTTP_PORT", str(cls.port))),
            log_level=os.getenv("N4L_LOG_LEVEL", cls.log_level).upper(),
            ollama_url=os.getenv("N4L_OLLAMA_URL", cls.ollama_url),
            ollama_model=os.getenv("N4L_OLLAMA_MODEL", cls.ollama_model),
            ollama_timeout=float(os.getenv("N4L_OLLAMA_TIMEOUT", str(cls.ollama_timeout))),
            history_path=Path(os.getenv("N4L_HISTORY_PATH", str(cls.history_path))),
            sessions_dir=Path(os.getenv("N4L_SESSIONS_DIR", str(cls.sessions_dir))),
        )
