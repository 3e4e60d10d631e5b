"""
Startup script for the N4L editor HTTP server.

Usage:
    n4l-editor [--port PORT] [--host HOST] [--log-level LEVEL]
    python -m n4l_editor [...]

Environment variables:
    N4L_HTTP_PORT: Server port (default: 8080)
    N4L_HTTP_HOST: Server host (default: 127.0.0.1)
    N4L_LOG_LEVEL: Logging level (default: INFO)
    N4L_OLLAMA_URL: Ollama generate endpoint
    N4L_OLLAMA_MODEL: Model name (default: gpt-oss:20b)
    N4L_HISTORY_PATH: Version history file (default: versions_history.json)
    N4L_SESSIONS_DIR: Saved dialogue sessions directory (default: sessions)
"""

import argparse
import os
import sys

from .core.config import EditorConfig


def main():
    """Start the HTTP server."""
    parser = argparse.ArgumentParser(description="N4L Editor HTTP Server")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: 8080)")
    parser.add_argument("--host", default=None, help="Server host (default: 127.0.0.1)")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")

    args = parser.parse_args()

    # Set environment variables from args if provided
    if args.port:
        os.environ["N4L_HTTP_PORT"] = str(args.port)
    if args.host:
        os.environ["N4L_HTTP_HOST"] = args.host
    if args.log_level:
        os.environ["N4L_LOG_LEVEL"] = args.log_level.upper()

    config = EditorConfig.from_env()

    print(f"Starting N4L Editor HTTP Server on {config.host}:{config.port}")
    print(f"Log level: {config.log_level}")
    print(f"Press Ctrl+C to stop")
    print("")

    try:
        import uvicorn
        from .api.app import app

        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
