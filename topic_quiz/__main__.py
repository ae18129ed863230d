"""
Topic Quiz server entry point.

Usage:
    python -m topic_quiz serve [--host HOST] [--port PORT]
    python -m topic_quiz list-models

Configure OPENAI_API_KEY (and optionally QUIZ_MODEL, OPENAI_BASE_URL) in the
environment or in a .env file.
"""

import argparse
import asyncio
import socket
import sys

import uvicorn

from topic_quiz.core.config import get_settings
from topic_quiz.core.errors import QuizError
from topic_quiz.core.openai_qg import list_models


def port_is_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def pick_port(host: str, port: int, attempts: int) -> int:
    """First free port in [port, port + attempts]; raises when all are taken."""
    for offset in range(attempts + 1):
        candidate = port + offset
        if port_is_free(host, candidate):
            return candidate
        print(f"Port {candidate} is in use, retrying on port {candidate + 1} (attempt {offset + 1}/{attempts})")
    raise OSError(f"No free port in {port}-{port + attempts}")


def serve(host: str, port: int) -> int:
    settings = get_settings()
    try:
        port = pick_port(host, port, settings.port_attempts)
    except OSError as e:
        print(f"❌ Failed to start server: {e}")
        return 1
    print(f"🚀 Server is running at http://{host}:{port}")
    print(f"🔎 Configured model: {settings.model}")
    uvicorn.run("topic_quiz.app:app", host=host, port=port, log_level=settings.log_level.lower())
    return 0


def print_models() -> int:
    try:
        models = asyncio.run(list_models())
    except (QuizError, NotImplementedError) as e:
        print(f"❌ {e}")
        return 1
    except Exception as e:
        print(f"❌ Error listing models: {e}")
        return 1
    print("Available models:")
    for m in models:
        print(m["id"])
    return 0


def main(argv=None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="topic_quiz", description="Topic Quiz proxy server")
    sub = parser.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="run the HTTP proxy (default)")
    serve_p.add_argument("--host", default=settings.host)
    serve_p.add_argument("--port", type=int, default=settings.port)
    sub.add_parser("list-models", help="print the models available to the configured key")

    args = parser.parse_args(argv)
    if args.command == "list-models":
        return print_models()
    return serve(getattr(args, "host", settings.host), getattr(args, "port", settings.port))


if __name__ == "__main__":
    sys.exit(main())
