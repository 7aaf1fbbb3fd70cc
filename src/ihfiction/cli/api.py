"""CLI entrypoint for serving the fiction HTTP API."""

from __future__ import annotations

import argparse
import os

import uvicorn

from ihfiction.adapters.observability import configure_runtime_logging


def build_arg_parser() -> argparse.ArgumentParser:
    """Create CLI args for the API server process."""
    parser = argparse.ArgumentParser(description="Serve the IHFiction API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for metadata persistence (default: work/local/ihfiction.db).",
    )
    parser.add_argument(
        "--content-backend",
        choices=("document", "sqlite"),
        default="",
        help="Content body store (default: document).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI flags and start uvicorn with the app module path."""
    configure_runtime_logging()
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    db_path = str(parsed.db_path).strip()
    if db_path:
        os.environ["IHFICTION_DB_PATH"] = db_path
    if parsed.content_backend:
        os.environ["IHFICTION_CONTENT_BACKEND"] = str(parsed.content_backend)
    uvicorn.run(
        "ihfiction.api.app:app",
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
